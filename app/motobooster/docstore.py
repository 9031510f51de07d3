from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from app.motobooster.models import Document


class DocumentStoreError(RuntimeError):
    pass


class DocumentNotFound(DocumentStoreError):
    pass


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    data: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


class DocumentStore:
    """
    Collection + id CRUD with single-field equality queries.
    No transactions, retries or pagination: every call is one round trip.
    """

    def list_all(self, collection: str, *, order_by: str | None = None) -> list[DocumentSnapshot]:
        raise NotImplementedError

    def get(self, collection: str, doc_id: str) -> DocumentSnapshot | None:
        raise NotImplementedError

    def create(self, collection: str, fields: dict[str, Any]) -> str:
        raise NotImplementedError

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        raise NotImplementedError

    def delete(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError

    def query(self, collection: str, field_name: str, value: Any, *, limit: int | None = None) -> list[DocumentSnapshot]:
        raise NotImplementedError


def _order_key(field_name: str):
    def key(snap: DocumentSnapshot) -> tuple[bool, str]:
        v = snap.data.get(field_name)
        return (v is None, "" if v is None else str(v))

    return key


@dataclass(frozen=True)
class SqlDocumentStore(DocumentStore):
    """
    Documents kept as JSON text in the `documents` table.
    Each operation opens and commits its own session.
    """

    sessions: sessionmaker

    def _run(self, fn):
        s: Session = self.sessions()
        try:
            result = fn(s)
            s.commit()
            return result
        except DocumentStoreError:
            s.rollback()
            raise
        except Exception as e:
            s.rollback()
            raise DocumentStoreError(f"Document store operation failed: {e}") from e
        finally:
            s.close()

    @staticmethod
    def _snapshot(row: Document) -> DocumentSnapshot:
        return DocumentSnapshot(id=row.id, data=json.loads(row.data_json or "{}"))

    def list_all(self, collection: str, *, order_by: str | None = None) -> list[DocumentSnapshot]:
        def op(s: Session) -> list[DocumentSnapshot]:
            rows = s.query(Document).filter(Document.collection == collection).order_by(Document.created_at.asc()).all()
            return [self._snapshot(r) for r in rows]

        snaps = self._run(op)
        if order_by:
            snaps.sort(key=_order_key(order_by))
        return snaps

    def get(self, collection: str, doc_id: str) -> DocumentSnapshot | None:
        def op(s: Session) -> DocumentSnapshot | None:
            row = s.get(Document, (collection, doc_id))
            return self._snapshot(row) if row else None

        return self._run(op)

    def create(self, collection: str, fields: dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex

        def op(s: Session) -> str:
            now = datetime.utcnow()
            s.add(
                Document(
                    collection=collection,
                    id=doc_id,
                    data_json=json.dumps(fields, sort_keys=True),
                    created_at=now,
                    updated_at=now,
                )
            )
            return doc_id

        return self._run(op)

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        def op(s: Session) -> None:
            row = s.get(Document, (collection, doc_id))
            if row is None:
                raise DocumentNotFound(f"{collection}/{doc_id} does not exist")
            data = json.loads(row.data_json or "{}")
            data.update(fields)
            row.data_json = json.dumps(data, sort_keys=True)
            row.updated_at = datetime.utcnow()

        self._run(op)

    def delete(self, collection: str, doc_id: str) -> None:
        def op(s: Session) -> None:
            row = s.get(Document, (collection, doc_id))
            if row is not None:
                s.delete(row)

        self._run(op)

    def query(self, collection: str, field_name: str, value: Any, *, limit: int | None = None) -> list[DocumentSnapshot]:
        matches = [snap for snap in self.list_all(collection) if snap.data.get(field_name) == value]
        return matches[:limit] if limit is not None else matches


@lru_cache(maxsize=None)
def _firebase_app(project_id: str, client_email: str, private_key: str):
    import firebase_admin  # type: ignore
    from firebase_admin import credentials  # type: ignore

    try:
        return firebase_admin.get_app(project_id)
    except ValueError:
        cred = credentials.Certificate(
            {
                "type": "service_account",
                "project_id": project_id,
                "client_email": client_email,
                "private_key": private_key,
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )
        return firebase_admin.initialize_app(cred, {"projectId": project_id}, name=project_id)


@dataclass(frozen=True)
class FirestoreDocumentStore(DocumentStore):
    project_id: str
    client_email: str
    private_key: str

    def _client(self):
        try:
            from firebase_admin import firestore  # type: ignore
        except Exception as e:  # pragma: no cover
            raise DocumentStoreError("firebase-admin required for Firestore storage. Install firebase-admin.") from e
        return firestore.client(_firebase_app(self.project_id, self.client_email, self.private_key))

    @staticmethod
    def _snapshot(snap) -> DocumentSnapshot:
        return DocumentSnapshot(id=snap.id, data=snap.to_dict() or {})

    def list_all(self, collection: str, *, order_by: str | None = None) -> list[DocumentSnapshot]:
        try:
            ref = self._client().collection(collection)
            # Firestore's order_by drops documents missing the field; sort client-side instead.
            snaps = [self._snapshot(d) for d in ref.stream()]
        except DocumentStoreError:
            raise
        except Exception as e:
            raise DocumentStoreError(f"Firestore list failed ({collection}): {e}") from e
        if order_by:
            snaps.sort(key=_order_key(order_by))
        return snaps

    def get(self, collection: str, doc_id: str) -> DocumentSnapshot | None:
        try:
            snap = self._client().collection(collection).document(doc_id).get()
        except DocumentStoreError:
            raise
        except Exception as e:
            raise DocumentStoreError(f"Firestore get failed ({collection}/{doc_id}): {e}") from e
        return self._snapshot(snap) if snap.exists else None

    def create(self, collection: str, fields: dict[str, Any]) -> str:
        try:
            _, ref = self._client().collection(collection).add(fields)
        except DocumentStoreError:
            raise
        except Exception as e:
            raise DocumentStoreError(f"Firestore create failed ({collection}): {e}") from e
        return ref.id

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        try:
            from google.api_core import exceptions as gexc  # type: ignore
        except Exception as e:  # pragma: no cover
            raise DocumentStoreError("google-api-core required for Firestore storage.") from e

        try:
            self._client().collection(collection).document(doc_id).update(fields)
        except gexc.NotFound as e:
            raise DocumentNotFound(f"{collection}/{doc_id} does not exist") from e
        except DocumentStoreError:
            raise
        except Exception as e:
            raise DocumentStoreError(f"Firestore update failed ({collection}/{doc_id}): {e}") from e

    def delete(self, collection: str, doc_id: str) -> None:
        try:
            self._client().collection(collection).document(doc_id).delete()
        except DocumentStoreError:
            raise
        except Exception as e:
            raise DocumentStoreError(f"Firestore delete failed ({collection}/{doc_id}): {e}") from e

    def query(self, collection: str, field_name: str, value: Any, *, limit: int | None = None) -> list[DocumentSnapshot]:
        try:
            from google.cloud.firestore_v1.base_query import FieldFilter  # type: ignore

            q = self._client().collection(collection).where(filter=FieldFilter(field_name, "==", value))
            if limit is not None:
                q = q.limit(limit)
            return [self._snapshot(d) for d in q.stream()]
        except DocumentStoreError:
            raise
        except Exception as e:
            raise DocumentStoreError(f"Firestore query failed ({collection}.{field_name}): {e}") from e


def docstore_from_config(config: dict, sessions: sessionmaker | None = None) -> DocumentStore:
    backend = (config.get("DOCSTORE_BACKEND") or "sql").strip().lower()
    if backend == "firestore":
        return FirestoreDocumentStore(
            project_id=(config.get("FIREBASE_PROJECT_ID") or "").strip(),
            client_email=(config.get("FIREBASE_CLIENT_EMAIL") or "").strip(),
            private_key=config.get("FIREBASE_PRIVATE_KEY") or "",
        )
    if sessions is None:
        raise DocumentStoreError("SQL document store needs a sessionmaker (call init_db first).")
    return SqlDocumentStore(sessions=sessions)


def current_store() -> DocumentStore:
    """The store bound by create_app(); tests may swap app.extensions["docstore"]."""
    from flask import current_app

    return current_app.extensions["docstore"]
