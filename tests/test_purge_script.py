from datetime import datetime, timedelta, timezone

import pytest

from scripts.purge_soft_deleted import purge_soft_deleted
from services.contact_service import ContactService
from services.lead_service import LeadService

from conftest import COMPANY_A


@pytest.fixture()
def seeded(db) -> dict:
    contacts = ContactService(db)
    leads = LeadService(db)
    ids = {
        "deleted_contact": contacts.create({"company_id": COMPANY_A})["id"],
        "live_contact": contacts.create({"company_id": COMPANY_A})["id"],
        "restored_contact": contacts.create({"company_id": COMPANY_A})["id"],
        "deleted_lead": leads.create({"company_id": COMPANY_A, "name": "Gone"})["id"],
    }
    contacts.soft_delete(ids["deleted_contact"])
    contacts.soft_delete(ids["restored_contact"])
    contacts.restore(ids["restored_contact"])
    leads.soft_delete(ids["deleted_lead"])
    return ids


def _later(days: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


def test_dry_run_counts_without_deleting(db, seeded: dict) -> None:
    counts = purge_soft_deleted(db, older_than_days=30, dry_run=True, now=_later(40))

    assert counts["contacts"] == 1
    assert counts["leads"] == 1
    assert db.collection("contacts").document(seeded["deleted_contact"]).get().exists


def test_confirmed_purge_removes_only_expired_soft_deletes(db, seeded: dict) -> None:
    counts = purge_soft_deleted(db, older_than_days=30, dry_run=False, now=_later(40))

    assert sum(counts.values()) == 2
    contacts = db.collection("contacts")
    assert not contacts.document(seeded["deleted_contact"]).get().exists
    assert contacts.document(seeded["live_contact"]).get().exists
    assert contacts.document(seeded["restored_contact"]).get().exists
    assert not db.collection("leads").document(seeded["deleted_lead"]).get().exists


def test_recent_soft_deletes_are_kept(db, seeded: dict) -> None:
    counts = purge_soft_deleted(db, older_than_days=30, dry_run=False)

    assert sum(counts.values()) == 0
    assert db.collection("contacts").document(seeded["deleted_contact"]).get().exists


def test_purge_can_target_collections(db, seeded: dict) -> None:
    counts = purge_soft_deleted(db, older_than_days=0, collections=["leads"], dry_run=False, now=_later(1))

    assert counts == {"leads": 1}
    assert db.collection("contacts").document(seeded["deleted_contact"]).get().exists


def test_negative_window_rejected(db) -> None:
    with pytest.raises(ValueError):
        purge_soft_deleted(db, older_than_days=-1)
