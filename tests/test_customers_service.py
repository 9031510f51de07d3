import pytest

from app.motobooster.audit import AUDIT_EVENTS
from app.motobooster.modules.accounts.models import SessionUser
from app.motobooster.modules.customers.models import CUSTOMERS, CustomerRecord
from app.motobooster.modules.customers.service import (
    BulkActionFailed,
    ConfirmationRequired,
    CustomerValidationError,
    InvalidTransition,
    PermissionDenied,
    archive_customer,
    bulk_apply,
    create_customer,
    hard_delete_customer,
    load_customers,
    unarchive_customer,
    update_customer,
)

NOW = "2026-02-03T04:05:06+00:00"
SUPERADMIN = SessionUser(id="u-super", name="Sam Super", roles=("superadmin",))
ADMIN = SessionUser(id="u-admin", name="Ada Admin", roles=("Admin",))


def _now():
    return NOW


def _seed(store, doc_id, customer_id, name, *, archived=False):
    store.add(
        CUSTOMERS,
        doc_id,
        {
            "customerId": customer_id,
            "name": name,
            "contact": "",
            "email": "",
            "address": "",
            "vehicleTypes": ["Scooter"],
            "isArchived": archived,
            "archivedAt": "2026-01-01T00:00:00+00:00" if archived else None,
            "archivedBy": "Someone" if archived else None,
        },
    )
    return CustomerRecord.from_snapshot(store.get(CUSTOMERS, doc_id))


def _writes(store, op):
    return [c for c in store.calls if c[0] == op and c[1] == CUSTOMERS]


class TestCreateAndUpdate:
    def test_create_allocates_next_id_and_writes_active_record(self, memory_store):
        existing = [_seed(memory_store, d, cid, "x") for d, cid in (("a", "CUS-001"), ("b", "CUS-002"), ("c", "CUS-005"))]

        c = create_customer(
            memory_store,
            {"name": "  Juan  ", "contact": "0917", "vehicle_types": ["Cruiser", "Scooter"]},
            existing=existing,
            user=ADMIN,
            now=_now,
        )

        assert c.customer_id == "CUS-006"
        assert not c.is_archived
        doc = memory_store.docs(CUSTOMERS)[c.id]
        assert doc["name"] == "Juan"
        assert doc["vehicleTypes"] == ["Cruiser", "Scooter"]
        assert doc["isArchived"] is False
        assert doc["archivedAt"] is None and doc["archivedBy"] is None
        assert doc["createdAt"] == NOW
        events = list(memory_store.docs(AUDIT_EVENTS).values())
        assert [e["action"] for e in events] == ["customer.create"]
        assert events[0]["actorName"] == "Ada Admin"

    def test_create_requires_name(self, memory_store):
        with pytest.raises(CustomerValidationError) as ei:
            create_customer(memory_store, {"name": "   "}, existing=[], user=ADMIN)
        assert str(ei.value) == "Please fill in Customer Name."
        assert ei.value.errors[0].field == "name"
        assert memory_store.docs(CUSTOMERS) == {}

    def test_update_keeps_id_and_archive_state(self, memory_store):
        c = _seed(memory_store, "a", "CUS-001", "Old", archived=True)
        updated = update_customer(memory_store, c, {"name": "New", "email": "n@example.com", "vehicle_types": ["Scooter"]}, user=ADMIN, now=_now)
        doc = memory_store.docs(CUSTOMERS)["a"]
        assert doc["name"] == "New"
        assert doc["customerId"] == "CUS-001"
        assert doc["isArchived"] is True
        assert doc["updatedAt"] == NOW
        assert updated.is_archived
        event = list(memory_store.docs(AUDIT_EVENTS).values())[0]
        assert set(event["metadata"]["fields_changed"]) == {"name", "email"}


class TestArchiveLifecycle:
    def test_archive_sets_timestamp_and_actor(self, memory_store):
        c = _seed(memory_store, "a", "CUS-001", "Juan")
        archived = archive_customer(memory_store, c, user=ADMIN, now=_now)
        doc = memory_store.docs(CUSTOMERS)["a"]
        assert doc["isArchived"] is True
        assert doc["archivedAt"] == NOW
        assert doc["archivedBy"] == "Ada Admin"
        assert archived.archived_by == "Ada Admin"

    def test_archive_is_idempotent(self, memory_store):
        c = _seed(memory_store, "a", "CUS-001", "Juan", archived=True)
        assert archive_customer(memory_store, c, user=ADMIN, now=_now) is c
        assert _writes(memory_store, "update") == []
        assert memory_store.docs(CUSTOMERS)["a"]["archivedAt"] == "2026-01-01T00:00:00+00:00"

    def test_unarchive_clears_archive_fields(self, memory_store):
        c = _seed(memory_store, "a", "CUS-001", "Juan", archived=True)
        restored = unarchive_customer(memory_store, c, user=SUPERADMIN)
        doc = memory_store.docs(CUSTOMERS)["a"]
        assert (doc["isArchived"], doc["archivedAt"], doc["archivedBy"]) == (False, None, None)
        assert not restored.is_archived

    def test_unarchive_active_is_noop(self, memory_store):
        c = _seed(memory_store, "a", "CUS-001", "Juan")
        unarchive_customer(memory_store, c, user=SUPERADMIN)
        assert _writes(memory_store, "update") == []

    def test_hard_delete_requires_archived(self, memory_store):
        c = _seed(memory_store, "a", "CUS-001", "Juan")
        with pytest.raises(InvalidTransition):
            hard_delete_customer(memory_store, c, user=SUPERADMIN)
        assert "a" in memory_store.docs(CUSTOMERS)

    def test_hard_delete_requires_permission(self, memory_store):
        c = _seed(memory_store, "a", "CUS-001", "Juan", archived=True)
        with pytest.raises(PermissionDenied):
            hard_delete_customer(memory_store, c, user=ADMIN)
        assert "a" in memory_store.docs(CUSTOMERS)

    def test_hard_delete_archived(self, memory_store):
        c = _seed(memory_store, "a", "CUS-001", "Juan", archived=True)
        hard_delete_customer(memory_store, c, user=SUPERADMIN)
        assert memory_store.docs(CUSTOMERS) == {}
        assert load_customers(memory_store) == []


class TestBulkApply:
    def test_unknown_action(self, memory_store):
        with pytest.raises(ValueError):
            bulk_apply(memory_store, [], "purge", user=SUPERADMIN)

    def test_archive_skips_already_archived(self, memory_store):
        a = _seed(memory_store, "a", "CUS-001", "A")
        b = _seed(memory_store, "b", "CUS-002", "B", archived=True)
        c = _seed(memory_store, "c", "CUS-003", "C")
        assert bulk_apply(memory_store, [a, b, c], "archive", user=ADMIN) == ["a", "c"]
        assert all(d["isArchived"] for d in memory_store.docs(CUSTOMERS).values())

    def test_delete_needs_two_confirmations(self, memory_store):
        records = [_seed(memory_store, d, f"CUS-00{i}", d, archived=True) for i, d in enumerate("ab", 1)]

        with pytest.raises(ConfirmationRequired) as first:
            bulk_apply(memory_store, records, "delete", user=SUPERADMIN)
        assert first.value.stage == 1
        with pytest.raises(ConfirmationRequired) as second:
            bulk_apply(memory_store, records, "delete", user=SUPERADMIN, confirmations=1)
        assert second.value.stage == 2
        assert _writes(memory_store, "delete") == []

        assert bulk_apply(memory_store, records, "delete", user=SUPERADMIN, confirmations=2) == ["a", "b"]
        assert memory_store.docs(CUSTOMERS) == {}

    def test_delete_rejects_active_in_selection(self, memory_store):
        a = _seed(memory_store, "a", "CUS-001", "A", archived=True)
        b = _seed(memory_store, "b", "CUS-002", "B")
        with pytest.raises(InvalidTransition):
            bulk_apply(memory_store, [a, b], "delete", user=SUPERADMIN, confirmations=2)
        assert set(memory_store.docs(CUSTOMERS)) == {"a", "b"}

    def test_delete_requires_permission(self, memory_store):
        a = _seed(memory_store, "a", "CUS-001", "A", archived=True)
        with pytest.raises(PermissionDenied):
            bulk_apply(memory_store, [a], "delete", user=ADMIN, confirmations=2)

    def test_failure_stops_loop(self, memory_store):
        records = [_seed(memory_store, d, f"CUS-00{i}", d) for i, d in enumerate("abc", 1)]
        memory_store.fail["update"] = lambda collection, key: key == "b"

        with pytest.raises(BulkActionFailed) as ei:
            bulk_apply(memory_store, records, "archive", user=ADMIN)

        assert ei.value.completed == ["a"]
        assert ei.value.failed_id == "b"
        docs = memory_store.docs(CUSTOMERS)
        assert docs["a"]["isArchived"] is True
        assert docs["b"]["isArchived"] is False
        assert docs["c"]["isArchived"] is False
        assert ("update", CUSTOMERS, "c") not in memory_store.calls


class TestAuditWriteFailure:
    @pytest.fixture(autouse=True)
    def _fail_audit(self, memory_store):
        memory_store.fail["create"] = lambda collection, key: collection == AUDIT_EVENTS

    def test_create_still_succeeds(self, memory_store):
        c = create_customer(memory_store, {"name": "Ana"}, existing=[], user=ADMIN, now=_now)
        assert c.customer_id == "CUS-001"
        assert list(memory_store.docs(CUSTOMERS)) == [c.id]
        assert memory_store.docs(AUDIT_EVENTS) == {}

    def test_archive_unarchive_delete_still_succeed(self, memory_store):
        c = _seed(memory_store, "a", "CUS-001", "Juan")
        archived = archive_customer(memory_store, c, user=SUPERADMIN, now=_now)
        assert memory_store.docs(CUSTOMERS)["a"]["isArchived"] is True
        restored = unarchive_customer(memory_store, archived, user=SUPERADMIN)
        assert memory_store.docs(CUSTOMERS)["a"]["isArchived"] is False
        hard_delete_customer(memory_store, restored.archived(at=NOW, by="x"), user=SUPERADMIN)
        assert memory_store.docs(CUSTOMERS) == {}

    def test_bulk_counts_changed_records(self, memory_store):
        a = _seed(memory_store, "a", "CUS-001", "A")
        b = _seed(memory_store, "b", "CUS-002", "B")
        assert bulk_apply(memory_store, [a, b], "archive", user=ADMIN) == ["a", "b"]
        assert all(d["isArchived"] for d in memory_store.docs(CUSTOMERS).values())
