"""
FirestoreDocumentStore against a stand-in client (no network, no credentials).
"""

import pytest
from google.api_core import exceptions as gexc

from app.motobooster.docstore import DocumentNotFound, DocumentStoreError, FirestoreDocumentStore


class _Snap:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class _DocRef:
    def __init__(self, client, collection, doc_id):
        self.client = client
        self.collection = collection
        self.id = doc_id

    def get(self):
        return _Snap(self.id, self.client.data[self.collection].get(self.id))

    def update(self, fields):
        docs = self.client.data[self.collection]
        if self.id not in docs:
            raise gexc.NotFound(f"No document to update: {self.id}")
        docs[self.id].update(fields)

    def delete(self):
        self.client.data[self.collection].pop(self.id, None)


class _Query:
    def __init__(self, client, collection, flt):
        self.client = client
        self.collection = collection
        self.filter = flt
        self.limit_value = None
        client.queries.append(self)

    def limit(self, n):
        self.limit_value = n
        return self

    def stream(self):
        f = self.filter
        hits = [_Snap(k, v) for k, v in self.client.data[self.collection].items() if v.get(f.field_path) == f.value]
        return hits[: self.limit_value] if self.limit_value is not None else hits


class _Collection:
    def __init__(self, client, name):
        self.client = client
        self.name = name

    def add(self, fields):
        doc_id = f"fs-{len(self.client.data[self.name]) + 1}"
        self.client.data[self.name][doc_id] = dict(fields)
        return ("2026-01-01T00:00:00Z", _DocRef(self.client, self.name, doc_id))

    def document(self, doc_id):
        return _DocRef(self.client, self.name, doc_id)

    def stream(self):
        return [_Snap(k, v) for k, v in self.client.data[self.name].items()]

    def where(self, *, filter):
        return _Query(self.client, self.name, filter)


class _Client:
    def __init__(self):
        self.data = {}
        self.queries = []

    def collection(self, name):
        self.data.setdefault(name, {})
        return _Collection(self, name)


class _BrokenClient:
    def collection(self, name):
        raise RuntimeError("503 Service Unavailable")


@pytest.fixture()
def fs_client(monkeypatch):
    client = _Client()
    monkeypatch.setattr(FirestoreDocumentStore, "_client", lambda self: client)
    return client


@pytest.fixture()
def fs_store():
    return FirestoreDocumentStore(project_id="moto", client_email="svc@moto.iam.gserviceaccount.com", private_key="key")


def test_create_returns_generated_id(fs_client, fs_store):
    doc_id = fs_store.create("customers", {"customerId": "CUS-001", "name": "Ana"})
    assert doc_id == "fs-1"
    snap = fs_store.get("customers", doc_id)
    assert snap.data == {"customerId": "CUS-001", "name": "Ana"}


def test_get_missing_returns_none(fs_client, fs_store):
    assert fs_store.get("customers", "nope") is None


def test_list_all_order_by_puts_missing_field_last(fs_client, fs_store):
    fs_store.create("customers", {"name": "NoId"})
    fs_store.create("customers", {"customerId": "CUS-002"})
    fs_store.create("customers", {"customerId": "CUS-001"})
    ordered = fs_store.list_all("customers", order_by="customerId")
    assert [s.data.get("customerId") for s in ordered] == ["CUS-001", "CUS-002", None]


def test_query_uses_field_filter_and_limit(fs_client, fs_store):
    fs_store.create("users", {"username": "juan", "email": "a@example.com"})
    fs_store.create("users", {"username": "juan", "email": "b@example.com"})

    hits = fs_store.query("users", "username", "juan", limit=1)

    assert len(hits) == 1
    q = fs_client.queries[-1]
    assert (q.filter.field_path, q.filter.op_string, q.filter.value) == ("username", "==", "juan")
    assert q.limit_value == 1
    assert len(fs_store.query("users", "username", "juan")) == 2
    assert fs_client.queries[-1].limit_value is None


def test_update_merges_and_missing_maps_to_not_found(fs_client, fs_store):
    doc_id = fs_store.create("customers", {"name": "Ana", "isArchived": False})
    fs_store.update("customers", doc_id, {"isArchived": True})
    assert fs_store.get("customers", doc_id).data == {"name": "Ana", "isArchived": True}

    with pytest.raises(DocumentNotFound):
        fs_store.update("customers", "nope", {"name": "x"})


def test_delete(fs_client, fs_store):
    doc_id = fs_store.create("customers", {"name": "Ana"})
    fs_store.delete("customers", doc_id)
    assert fs_store.get("customers", doc_id) is None


def test_client_errors_are_wrapped(monkeypatch, fs_store):
    monkeypatch.setattr(FirestoreDocumentStore, "_client", lambda self: _BrokenClient())
    calls = [
        lambda: fs_store.list_all("customers"),
        lambda: fs_store.get("customers", "a"),
        lambda: fs_store.create("customers", {"name": "Ana"}),
        lambda: fs_store.update("customers", "a", {"name": "Ana"}),
        lambda: fs_store.delete("customers", "a"),
        lambda: fs_store.query("users", "username", "juan", limit=1),
    ]
    for call in calls:
        with pytest.raises(DocumentStoreError) as ei:
            call()
        assert not isinstance(ei.value, DocumentNotFound)
        assert "503" in str(ei.value)
