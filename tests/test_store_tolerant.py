# tests/test_store_tolerant.py
import pytest

from camera_auction.errors import (
    ConcurrentModification,
    ConflictError,
    NotFoundError,
    SchemaDrift,
    UpstreamUnavailable,
)
from camera_auction.store import DocumentStore

from conftest import utc


class RestrictedStore(DocumentStore):
    """허용 필드 외에는 SchemaDrift 를 내는 메모리 저장소."""

    def __init__(self, allowed):
        self.allowed = set(allowed)
        self.docs = {}
        self.calls = []

    def _check(self, fields):
        for name in fields:
            if name not in self.allowed:
                raise SchemaDrift(name, "things")

    def get_document(self, collection, doc_id):
        if doc_id not in self.docs:
            raise NotFoundError(doc_id)
        return dict(self.docs[doc_id])

    def create_document(self, collection, fields):
        self.calls.append(("create", sorted(fields)))
        self._check(fields)
        doc_id = f"d{len(self.docs) + 1}"
        self.docs[doc_id] = {"id": doc_id, **fields}
        return dict(self.docs[doc_id])

    def update_document(self, collection, doc_id, fields, expected=None):
        self.calls.append(("update", sorted(fields)))
        self._check(fields)
        doc = self.docs[doc_id]
        for k, v in (expected or {}).items():
            if doc.get(k) != v:
                raise ConcurrentModification(doc_id)
        doc.update(fields)
        return dict(doc)


def test_unknown_fields_are_dropped_one_by_one():
    s = RestrictedStore({"status", "note"})
    s.docs["d1"] = {"id": "d1", "status": "a"}

    doc = s.write_tolerant("things", "d1", {"status": "b", "extra1": 1, "extra2": 2}, minimal_keys=("status",))

    assert doc == {"id": "d1", "status": "b"}
    assert len(s.calls) == 3


def test_falls_back_to_minimal_keys_after_max_attempts():
    s = RestrictedStore({"status"})
    s.docs["d1"] = {"id": "d1", "status": "a"}

    doc = s.write_tolerant(
        "things", "d1",
        {"status": "b", "x1": 1, "x2": 2, "x3": 3},
        minimal_keys=("status",),
        max_attempts=2,
    )
    assert doc["status"] == "b"
    assert s.calls[-1] == ("update", ["status"])


def test_minimal_write_rejected_is_upstream_unavailable():
    s = RestrictedStore(set())
    s.docs["d1"] = {"id": "d1"}
    with pytest.raises(UpstreamUnavailable):
        s.write_tolerant("things", "d1", {"status": "b"}, minimal_keys=("status",), max_attempts=3)


def test_minimal_write_skips_fields_already_rejected():
    s = RestrictedStore({"transaction_status"})
    s.docs["d1"] = {"id": "d1", "transaction_status": "dispatch_pending"}

    doc = s.write_tolerant(
        "transactions", "d1",
        {"seller_dispatch_status": "sent", "j1": 1, "j2": 2, "j3": 3, "transaction_status": "dispatch_sent"},
        minimal_keys=("transaction_status", "seller_dispatch_status"),
        max_attempts=3,
    )

    assert doc == {"id": "d1", "transaction_status": "dispatch_sent"}
    assert s.calls[-1] == ("update", ["transaction_status"])


def test_minimal_write_keeps_stripping_newly_rejected_keys():
    s = RestrictedStore({"status"})
    s.docs["d1"] = {"id": "d1", "status": "a"}

    doc = s.write_tolerant(
        "things", "d1",
        {"x1": 1, "x2": 2, "legacy_flag": True, "status": "b"},
        minimal_keys=("legacy_flag", "status"),
        max_attempts=1,
    )

    assert doc["status"] == "b"
    assert "legacy_flag" not in doc
    assert s.calls[-2:] == [("update", ["legacy_flag", "status"]), ("update", ["status"])]


def test_minimal_create_drops_rejected_keys():
    s = RestrictedStore({"status"})
    doc = s.create_tolerant("things", {"status": "new", "extra": 1, "old": 2}, minimal_keys=("status", "extra"), max_attempts=1)
    assert doc == {"id": "d1", "status": "new"}


def test_conditional_write_conflict_is_not_retried():
    s = RestrictedStore({"status"})
    s.docs["d1"] = {"id": "d1", "status": "a"}
    with pytest.raises(ConcurrentModification):
        s.write_tolerant("things", "d1", {"status": "c"}, minimal_keys=("status",), expected={"status": "b"})
    assert len(s.calls) == 1


def test_create_tolerant_strips_unknown_fields():
    s = RestrictedStore({"title"})
    doc = s.create_tolerant("things", {"title": "x", "legacy": True}, minimal_keys=("title",))
    assert doc == {"id": "d1", "title": "x"}


# -------------------------------------------------------
# SqlDocumentStore
# -------------------------------------------------------
def test_sql_store_roundtrips_aware_utc(store, make_listing):
    listing = make_listing(auction_start=utc(2024, 1, 8, 1))
    got = store.get_document("listings", listing["id"])
    assert got["auction_start"] == utc(2024, 1, 8, 1)
    assert got["auction_start"].tzinfo is not None


def test_sql_store_unknown_column_is_schema_drift(store, make_listing):
    listing = make_listing()
    with pytest.raises(SchemaDrift) as ei:
        store.update_document("listings", listing["id"], {"shutter_count": 1200})
    assert ei.value.field == "shutter_count"

    doc = store.write_tolerant(
        "listings", listing["id"], {"shutter_count": 1200, "condition": "mint"}, minimal_keys=("status",)
    )
    assert doc["condition"] == "mint"


def test_sql_store_conditional_update(store, make_listing):
    listing = make_listing(status="queued")

    with pytest.raises(ConcurrentModification):
        store.update_document("listings", listing["id"], {"status": "live"}, expected={"status": "pending_approval"})
    assert store.get_document("listings", listing["id"])["status"] == "queued"

    doc = store.update_document("listings", listing["id"], {"status": "live"}, expected={"status": "queued"})
    assert doc["status"] == "live"


def test_sql_store_not_found_and_duplicates(store, make_user):
    with pytest.raises(NotFoundError):
        store.get_document("listings", "missing")
    with pytest.raises(NotFoundError):
        store.update_document("listings", "missing", {"status": "live"})

    make_user("dup@example.com")
    with pytest.raises(ConflictError):
        make_user("dup@example.com")


def test_sql_store_list_filters_and_order(store, make_listing):
    a = make_listing(status="queued", auction_start=utc(2024, 1, 8, 1))
    b = make_listing(status="queued", auction_start=utc(2024, 1, 1, 1))
    make_listing(status="queued", auction_start=utc(2024, 1, 15, 1))
    make_listing(status="live", auction_start=utc(2024, 1, 1, 1))

    rows = store.list_documents(
        "listings",
        {"status": "queued", "auction_start": ("<=", utc(2024, 1, 10))},
        order_by="auction_start",
    )
    assert [r["id"] for r in rows] == [b["id"], a["id"]]

    rows = store.list_documents("listings", {"status": ("in", ("queued", "live"))}, order_by="-auction_start", limit=1)
    assert rows[0]["auction_start"] == utc(2024, 1, 15, 1)
