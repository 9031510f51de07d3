"""
Customer record operations.

Lifecycle (soft delete):

    ACTIVE --archive--> ARCHIVED --unarchive--> ACTIVE
                        ARCHIVED --hard_delete--> (removed)

Hard delete is only reachable from ARCHIVED and needs `customers.delete`.
Every mutation is a single write to the document store; bulk actions issue one
write per record, in order, and stop at the first failure.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from app.motobooster.audit import record_event, utc_now_iso
from app.motobooster.docstore import DocumentStore, DocumentStoreError
from app.motobooster.modules.accounts.models import SessionUser
from app.motobooster.modules.customers.models import ALL_TYPES, CUSTOMERS, VEHICLE_TYPE_OPTIONS, CustomerRecord
from app.motobooster.modules.customers.utils import clean_vehicle_types, next_customer_id
from app.motobooster.rbac import user_has_permission

logger = logging.getLogger(__name__)

BULK_ACTIONS = ("archive", "unarchive", "delete")
DELETE_CONFIRMATIONS_REQUIRED = 2


@dataclass(frozen=True)
class ValidationError:
    field: str
    message: str


class CustomerValidationError(ValueError):
    def __init__(self, errors: list[ValidationError]) -> None:
        super().__init__("; ".join(e.message for e in errors))
        self.errors = errors


class InvalidTransition(Exception):
    pass


class PermissionDenied(Exception):
    def __init__(self, permission_key: str) -> None:
        super().__init__(f"Missing permission: {permission_key}")
        self.permission_key = permission_key


class ConfirmationRequired(Exception):
    """Bulk hard delete needs another confirmation before anything is written."""

    def __init__(self, stage: int) -> None:
        super().__init__(f"Confirmation {stage} of {DELETE_CONFIRMATIONS_REQUIRED} required")
        self.stage = stage


class BulkActionFailed(Exception):
    def __init__(self, action: str, completed: list[str], failed_id: str) -> None:
        super().__init__(f"Bulk {action} failed at {failed_id} after {len(completed)} record(s)")
        self.action = action
        self.completed = completed
        self.failed_id = failed_id


def _audit(store: DocumentStore, **event: Any) -> None:
    """The change is already saved; a lost audit event must not report it as failed."""
    try:
        record_event(store, **event)
    except DocumentStoreError:
        logger.warning(
            "Could not record audit event %s for %s", event.get("action"), event.get("entity_id"), exc_info=True
        )


def load_customers(store: DocumentStore) -> list[CustomerRecord]:
    """Full collection scan; callers filter and sort in memory."""
    return [CustomerRecord.from_snapshot(snap) for snap in store.list_all(CUSTOMERS)]


def get_customer(store: DocumentStore, doc_id: str) -> CustomerRecord | None:
    snap = store.get(CUSTOMERS, doc_id)
    return CustomerRecord.from_snapshot(snap) if snap else None


def vehicle_types_from_form(values: Iterable[str]) -> frozenset[str]:
    values = list(values)
    if ALL_TYPES in values:
        return frozenset(VEHICLE_TYPE_OPTIONS)
    return clean_vehicle_types(values)


def validate_customer_payload(payload: dict[str, Any]) -> list[ValidationError]:
    errs: list[ValidationError] = []
    if not (payload.get("name") or "").strip():
        errs.append(ValidationError("name", "Please fill in Customer Name."))
    return errs


def _fields_from_payload(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": (payload.get("name") or "").strip(),
        "contact": (payload.get("contact") or "").strip(),
        "email": (payload.get("email") or "").strip(),
        "address": (payload.get("address") or "").strip(),
        "vehicleTypes": sorted(clean_vehicle_types(payload.get("vehicle_types") or [])),
    }


def create_customer(
    store: DocumentStore,
    payload: dict[str, Any],
    *,
    existing: Iterable[CustomerRecord],
    user: SessionUser,
    now: Callable[[], str] = utc_now_iso,
) -> CustomerRecord:
    """
    `existing` is the caller's snapshot of the collection; the new business id
    is allocated from it, not from a fresh read.
    """
    errs = validate_customer_payload(payload)
    if errs:
        raise CustomerValidationError(errs)
    customer_id = next_customer_id(c.customer_id for c in existing)
    ts = now()
    fields = {
        **_fields_from_payload(payload),
        "customerId": customer_id,
        "isArchived": False,
        "archivedAt": None,
        "archivedBy": None,
        "createdAt": ts,
        "updatedAt": ts,
    }
    doc_id = store.create(CUSTOMERS, fields)
    _audit(
        store,
        actor=user,
        action="customer.create",
        entity_type="Customer",
        entity_id=doc_id,
        metadata={"customerId": customer_id, "name": fields["name"]},
    )
    return CustomerRecord(
        id=doc_id,
        customer_id=customer_id,
        name=fields["name"],
        contact=fields["contact"],
        email=fields["email"],
        address=fields["address"],
        vehicle_types=frozenset(fields["vehicleTypes"]),
    )


def update_customer(
    store: DocumentStore,
    customer: CustomerRecord,
    payload: dict[str, Any],
    *,
    user: SessionUser,
    now: Callable[[], str] = utc_now_iso,
) -> CustomerRecord:
    """Edit the descriptive fields. customerId and archive state are left alone."""
    errs = validate_customer_payload(payload)
    if errs:
        raise CustomerValidationError(errs)
    fields = _fields_from_payload(payload)
    before = customer.to_document()
    store.update(CUSTOMERS, customer.id, {**fields, "updatedAt": now()})
    fields_changed = [k for k in fields if before.get(k) != fields[k]]
    _audit(
        store,
        actor=user,
        action="customer.update",
        entity_type="Customer",
        entity_id=customer.id,
        metadata={"fields_changed": fields_changed},
    )
    return CustomerRecord(
        id=customer.id,
        customer_id=customer.customer_id,
        name=fields["name"],
        contact=fields["contact"],
        email=fields["email"],
        address=fields["address"],
        vehicle_types=frozenset(fields["vehicleTypes"]),
        state=customer.state,
        archived_at=customer.archived_at,
        archived_by=customer.archived_by,
    )


def archive_customer(
    store: DocumentStore,
    customer: CustomerRecord,
    *,
    user: SessionUser,
    now: Callable[[], str] = utc_now_iso,
) -> CustomerRecord:
    """ACTIVE -> ARCHIVED. Archiving an archived record is a no-op (no write)."""
    if customer.is_archived:
        return customer
    updated = customer.archived(at=now(), by=user.name or None)
    store.update(CUSTOMERS, customer.id, updated.archive_fields())
    _audit(store, actor=user, action="customer.archive", entity_type="Customer", entity_id=customer.id)
    return updated


def unarchive_customer(store: DocumentStore, customer: CustomerRecord, *, user: SessionUser) -> CustomerRecord:
    """ARCHIVED -> ACTIVE, clearing timestamp and actor. No-op on an active record."""
    if not customer.is_archived:
        return customer
    updated = customer.restored()
    store.update(CUSTOMERS, customer.id, updated.archive_fields())
    _audit(store, actor=user, action="customer.unarchive", entity_type="Customer", entity_id=customer.id)
    return updated


def hard_delete_customer(store: DocumentStore, customer: CustomerRecord, *, user: SessionUser) -> None:
    """ARCHIVED -> removed. Irreversible."""
    if not user_has_permission(user, "customers.delete"):
        raise PermissionDenied("customers.delete")
    if not customer.is_archived:
        raise InvalidTransition("Only archived customers can be permanently deleted.")
    store.delete(CUSTOMERS, customer.id)
    _audit(
        store,
        actor=user,
        action="customer.delete",
        entity_type="Customer",
        entity_id=customer.id,
        metadata={"customerId": customer.customer_id, "name": customer.name},
    )


def bulk_apply(
    store: DocumentStore,
    customers: list[CustomerRecord],
    action: str,
    *,
    user: SessionUser,
    confirmations: int = 0,
) -> list[str]:
    """
    Apply `action` to each record in order. Returns the ids written.

    Deletes need DELETE_CONFIRMATIONS_REQUIRED confirmations first and every
    selected record must already be archived. A store failure stops the loop:
    records before it stay changed, the rest are not touched.
    """
    if action not in BULK_ACTIONS:
        raise ValueError(f"Unknown bulk action: {action}")
    if action == "delete":
        if not user_has_permission(user, "customers.delete"):
            raise PermissionDenied("customers.delete")
        if any(not c.is_archived for c in customers):
            raise InvalidTransition("Only archived customers can be permanently deleted.")
        if confirmations < DELETE_CONFIRMATIONS_REQUIRED:
            raise ConfirmationRequired(confirmations + 1)

    done: list[str] = []
    for c in customers:
        try:
            if action == "archive":
                if c.is_archived:
                    continue
                archive_customer(store, c, user=user)
            elif action == "unarchive":
                if not c.is_archived:
                    continue
                unarchive_customer(store, c, user=user)
            else:
                hard_delete_customer(store, c, user=user)
        except DocumentStoreError as e:
            logger.error("Bulk %s stopped at %s after %d record(s): %s", action, c.id, len(done), e)
            raise BulkActionFailed(action, done, c.id) from e
        done.append(c.id)
    return done
