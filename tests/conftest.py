from __future__ import annotations

from collections import defaultdict
from typing import Any

import pytest

from app.motobooster import auth as auth_module
from app.motobooster import create_app
from app.motobooster.docstore import DocumentSnapshot, DocumentStore, DocumentStoreError
from app.motobooster.identity import AuthError, IdentityProvider
from app.motobooster.models import Base


class MemoryStore(DocumentStore):
    """
    In-memory document store. `fail[op]` is a predicate (collection, doc_id)
    that makes that operation raise DocumentStoreError when it returns True.
    """

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.calls: list[tuple[str, str, str | None]] = []
        self.fail: dict[str, Any] = {}
        self._seq = 0

    def _check(self, op: str, collection: str, key: str | None = None) -> None:
        self.calls.append((op, collection, key))
        pred = self.fail.get(op)
        if pred and pred(collection, key):
            raise DocumentStoreError(f"{op} failed for {collection}/{key}")

    def add(self, collection: str, doc_id: str, data: dict[str, Any]) -> str:
        self.collections[collection][doc_id] = dict(data)
        return doc_id

    def docs(self, collection: str) -> dict[str, dict[str, Any]]:
        return self.collections[collection]

    def list_all(self, collection, *, order_by=None):
        self._check("list_all", collection)
        return [DocumentSnapshot(id=k, data=dict(v)) for k, v in self.collections[collection].items()]

    def get(self, collection, doc_id):
        self._check("get", collection, doc_id)
        data = self.collections[collection].get(doc_id)
        return DocumentSnapshot(id=doc_id, data=dict(data)) if data is not None else None

    def create(self, collection, fields):
        self._seq += 1
        doc_id = f"{collection}-{self._seq}"
        self._check("create", collection, doc_id)
        self.collections[collection][doc_id] = dict(fields)
        return doc_id

    def update(self, collection, doc_id, fields):
        self._check("update", collection, doc_id)
        self.collections[collection][doc_id].update(fields)

    def delete(self, collection, doc_id):
        self._check("delete", collection, doc_id)
        self.collections[collection].pop(doc_id, None)

    def query(self, collection, field_name, value, *, limit=None):
        self._check("query", collection, field_name)
        hits = [
            DocumentSnapshot(id=k, data=dict(v))
            for k, v in self.collections[collection].items()
            if v.get(field_name) == value
        ]
        return hits[:limit] if limit is not None else hits


class FakeIdentity(IdentityProvider):
    def __init__(self, accounts: dict[str, tuple[str, str]] | None = None) -> None:
        # email -> (password, uid)
        self.accounts = accounts or {}
        self.calls: list[str] = []

    def sign_in(self, email: str, password: str) -> str:
        self.calls.append(email)
        entry = self.accounts.get(email)
        if not entry or entry[0] != password:
            raise AuthError("INVALID_LOGIN_CREDENTIALS")
        return entry[1]


@pytest.fixture(autouse=True)
def _reset_login_attempts():
    auth_module._login_attempts.clear()
    yield
    auth_module._login_attempts.clear()


@pytest.fixture()
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def fake_identity() -> FakeIdentity:
    return FakeIdentity()


@pytest.fixture()
def flask_app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("DOCSTORE_BACKEND", "sql")
    monkeypatch.setenv("IDENTITY_BACKEND", "local")
    for k in ("FIREBASE_PROJECT_ID", "FIREBASE_CLIENT_EMAIL", "FIREBASE_PRIVATE_KEY", "FIREBASE_API_KEY"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    app.config["TESTING"] = True
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


@pytest.fixture()
def store(flask_app) -> DocumentStore:
    return flask_app.extensions["docstore"]


@pytest.fixture()
def client(flask_app):
    c = flask_app.test_client()
    with c.session_transaction() as sess:
        sess["csrf_token"] = "t"
    return c


@pytest.fixture()
def login_as(client):
    def _login(*roles: str, name: str = "Tester", uid: str = "user-1") -> None:
        with client.session_transaction() as sess:
            sess["auth_user"] = {"id": uid, "name": name, "roles": list(roles)}

    return _login
