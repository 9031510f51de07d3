from datetime import datetime, timezone
from typing import Any

from flask import g, has_request_context

from app.motobooster.docstore import DocumentStore
from app.motobooster.modules.accounts.models import SessionUser

AUDIT_EVENTS = "auditEvents"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def record_event(
    store: DocumentStore,
    *,
    actor: SessionUser | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> str:
    """
    Append-only audit event. Returns the new event's document id.
    """
    rid = getattr(g, "request_id", None) if has_request_context() else None
    return store.create(
        AUDIT_EVENTS,
        {
            "action": action,
            "entityType": entity_type,
            "entityId": entity_id,
            "actorId": actor.id if actor else None,
            "actorName": actor.name if actor else None,
            "requestId": rid,
            "createdAt": utc_now_iso(),
            "metadata": metadata or {},
        },
    )
