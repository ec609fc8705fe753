from datetime import datetime

import pytest
from google.api_core.exceptions import NotFound

from services.firestore_service import MAX_BATCH_SIZE, DocumentNotFoundError, FirestoreRepository
from services.query_filters import Equals, OrderBy

from conftest import COMPANY_A, COMPANY_B


def test_create_stamps_lifecycle_fields_over_caller_values(repo: FirestoreRepository) -> None:
    created = repo.create({"id": "chosen", "name": "Villa", "isDeleted": True, "createdAt": "yesterday"})

    assert created["id"] != "chosen"
    model = repo.get_by_id(created["id"])
    assert model.isDeleted is False
    assert isinstance(model.createdAt, datetime)
    assert isinstance(model.updatedAt, datetime)
    assert model.name == "Villa"


def test_create_with_id_overwrites_existing_document(repo: FirestoreRepository) -> None:
    repo.create_with_id("fixed", {"name": "first", "extra": 1})
    repo.create_with_id("fixed", {"name": "second"})

    model = repo.get_by_id("fixed")
    assert model.name == "second"
    assert "extra" not in model.to_dict()


def test_get_by_id_missing_returns_none(repo: FirestoreRepository) -> None:
    assert repo.get_by_id("nope") is None
    with pytest.raises(DocumentNotFoundError):
        repo.require("nope")


def test_update_merges_fields_and_refreshes_updated_at(repo: FirestoreRepository) -> None:
    created = repo.create({"name": "Loft", "price": 10, "address": {"city": "Dubai", "zip": "1"}})
    before = repo.get_by_id(created["id"])

    updated = repo.update(created["id"], {"price": 20, "address.city": "Abu Dhabi"})

    assert updated.price == 20
    assert updated.name == "Loft"
    assert updated.address == {"city": "Abu Dhabi", "zip": "1"}
    assert updated.createdAt == before.createdAt
    assert updated.updatedAt >= before.updatedAt


def test_update_missing_document_raises_not_found(repo: FirestoreRepository) -> None:
    with pytest.raises(NotFound):
        repo.update("missing", {"name": "x"})


def test_listing_excludes_soft_deleted_unless_requested(repo: FirestoreRepository) -> None:
    first = repo.create({"company_id": COMPANY_A, "name": "one"})
    repo.create({"company_id": COMPANY_A, "name": "two"})
    repo.soft_delete(first["id"])

    assert len(repo.get_all_by_company(COMPANY_A)) == 1
    assert len(repo.get_all_by_company(COMPANY_A, include_deleted=True)) == 2
    assert repo.count([Equals("company_id", COMPANY_A)]) == 1
    assert repo.count([Equals("company_id", COMPANY_A)], include_deleted=True) == 2


def test_company_listings_only_return_that_company(repo: FirestoreRepository) -> None:
    for _ in range(3):
        repo.create({"company_id": COMPANY_A})
    for _ in range(2):
        repo.create({"company_id": COMPANY_B})

    assert len(repo.get_all_by_company(COMPANY_A)) == 3
    assert len(repo.get_all_by_company(COMPANY_B)) == 2
    assert all(model.company_id == COMPANY_A for model in repo.get_all_by_company(COMPANY_A))


def test_get_all_by_company_requires_company(repo: FirestoreRepository) -> None:
    with pytest.raises(ValueError):
        repo.get_all_by_company("")


def test_soft_delete_then_restore_keeps_other_fields(repo: FirestoreRepository) -> None:
    created = repo.create({"company_id": COMPANY_A, "name": "Plot", "tags": ["a"]})

    deleted = repo.soft_delete(created["id"])
    assert deleted.isDeleted is True
    assert isinstance(deleted.deletedAt, datetime)

    restored = repo.restore(created["id"])
    assert restored.isDeleted is False
    assert restored.deletedAt is None
    assert restored.name == "Plot"
    assert restored.tags == ["a"]
    assert restored.company_id == COMPANY_A


def test_array_helpers_and_increment(repo: FirestoreRepository) -> None:
    created = repo.create({"tags": ["a"], "views": 1})

    repo.append_to_array(created["id"], "tags", "b", "a")
    model = repo.increment(created["id"], "views", 2)
    assert model.tags == ["a", "b"]
    assert model.views == 3

    model = repo.remove_from_array(created["id"], "tags", "a")
    assert model.tags == ["b"]


def test_ordering_and_cursor(repo: FirestoreRepository) -> None:
    ids = {rank: repo.create({"company_id": COMPANY_A, "rank": rank})["id"] for rank in range(1, 6)}

    ordered = repo.get_all_by_company(COMPANY_A, order_by=[OrderBy("rank")])
    assert [m.rank for m in ordered] == [1, 2, 3, 4, 5]

    after = repo.get_all_by_company(COMPANY_A, order_by=[OrderBy("rank")], start_after=ids[2], limit=2)
    assert [m.rank for m in after] == [3, 4]

    descending = repo.get_all_by_company(COMPANY_A, order_by=[("rank", "desc")], limit=2)
    assert [m.rank for m in descending] == [5, 4]


def test_missing_cursor_document_raises(repo: FirestoreRepository) -> None:
    repo.create({"rank": 1})
    with pytest.raises(DocumentNotFoundError):
        repo.get_all(order_by=[OrderBy("rank")], start_after="ghost")


def test_batch_write_applies_all_operations_with_one_timestamp(repo: FirestoreRepository) -> None:
    existing = repo.create({"name": "keep"})
    doomed = repo.create({"name": "doomed"})
    hidden = repo.create({"name": "hidden"})

    result = repo.batch_write([
        {"type": "create", "data": {"name": "new-1"}},
        {"type": "createWithId", "id": "custom", "data": {"name": "new-2"}},
        {"type": "update", "id": existing["id"], "data": {"name": "kept"}},
        {"type": "delete", "id": doomed["id"]},
        {"type": "softDelete", "id": hidden["id"]},
    ])

    assert result is True
    names = sorted(m.name for m in repo.get_all())
    assert names == ["kept", "new-1", "new-2"]
    assert repo.get_by_id(doomed["id"]) is None
    assert repo.get_by_id(hidden["id"]).isDeleted is True

    new_docs = [m for m in repo.get_all() if m.name.startswith("new")]
    assert new_docs[0].createdAt == new_docs[1].createdAt


def test_batch_write_skips_malformed_entries(repo: FirestoreRepository) -> None:
    result = repo.batch_write([
        {"type": "bogus", "data": {"name": "x"}},
        {"type": "update", "data": {"name": "no id"}},
        {"type": "create"},
        "not an operation",
        {"type": "create", "data": {"name": "valid"}},
    ])

    assert result is True
    assert [m.name for m in repo.get_all()] == ["valid"]


def test_rejected_batch_applies_nothing(repo: FirestoreRepository, db) -> None:
    existing = repo.create({"name": "before"})
    commits = db.commit_count

    with pytest.raises(NotFound):
        repo.batch_write([
            {"type": "create", "data": {"name": "should not exist"}},
            {"type": "update", "id": existing["id"], "data": {"name": "after"}},
            {"type": "update", "id": "missing", "data": {"name": "boom"}},
        ])

    assert db.commit_count == commits
    assert [m.name for m in repo.get_all()] == ["before"]


def test_batch_write_over_limit_is_rejected(repo: FirestoreRepository) -> None:
    operations = [{"type": "create", "data": {"n": i}} for i in range(MAX_BATCH_SIZE + 1)]
    with pytest.raises(ValueError):
        repo.batch_write(operations)
    assert repo.count() == 0


def test_subscribe_to_document_delivers_changes_until_unsubscribed(repo: FirestoreRepository) -> None:
    created = repo.create({"name": "v1"})
    seen = []

    unsubscribe = repo.subscribe_to_document(created["id"], lambda model: seen.append(model.name if model else None))
    repo.update(created["id"], {"name": "v2"})
    repo.delete(created["id"])
    unsubscribe()
    repo.create_with_id(created["id"], {"name": "v3"})

    assert seen == ["v1", "v2", None]


def test_subscribe_to_collection_applies_filters(repo: FirestoreRepository) -> None:
    snapshots = []
    unsubscribe = repo.subscribe_to_collection(
        lambda models: snapshots.append(sorted(m.name for m in models)),
        filters=[Equals("company_id", COMPANY_A)],
    )
    repo.create({"company_id": COMPANY_A, "name": "a1"})
    repo.create({"company_id": COMPANY_B, "name": "b1"})
    unsubscribe()

    assert snapshots[0] == []
    assert snapshots[-1] == ["a1"]


def test_status_helpers_require_status_field(repo: FirestoreRepository) -> None:
    created = repo.create({"company_id": COMPANY_A})
    with pytest.raises(ValueError):
        repo.update_status(created["id"], "Anything")
    with pytest.raises(ValueError):
        repo.get_by_status(COMPANY_A, "Anything")


def test_repository_needs_collection_name(db) -> None:
    with pytest.raises(ValueError):
        FirestoreRepository(db)
