"""
Activity history (audit trail) for CRM records
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from google.cloud import firestore

from models.activity import HistoryEntry
from models.enums import HistoryAction
from services.collections import HISTORY
from services.firestore_service import FirestoreRepository
from services.query_filters import Equals, In, OrderBy, between

logger = logging.getLogger(__name__)

BY_TIME_DESC = [OrderBy("timestamp", "desc")]


def _user_fields(user: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    user = user or {}
    return {
        "performedBy": user.get("id", ""),
        "performedByName": user.get("full_name") or user.get("name") or user.get("email", ""),
        "isSystem": not user,
    }


class HistoryService(FirestoreRepository[HistoryEntry]):
    collection_name = HISTORY
    model = HistoryEntry
    default_order = (OrderBy("timestamp", "desc"),)

    def log_activity(self, data: Dict[str, Any]) -> Dict[str, Any]:
        for field, label in (("action", "Action"), ("entityType", "Entity type"), ("entityId", "Entity ID"),
                             ("company_id", "Company ID")):
            if not data.get(field):
                raise ValueError(f"{label} is required")
        entry = {"details": {}, **data, "timestamp": firestore.SERVER_TIMESTAMP}
        return self.create(entry)

    def _log(self, action: str, entity_type: str, entity_id: str, company_id: str,
             user: Optional[Dict[str, Any]], description: str, details: Optional[Dict[str, Any]] = None):
        return self.log_activity({
            "action": action,
            "entityType": entity_type,
            "entityId": entity_id,
            "company_id": company_id,
            "description": description,
            "details": details or {},
            **_user_fields(user),
        })

    def log_creation(self, entity_type: str, entity_id: str, company_id: str, user=None, data=None):
        return self._log(HistoryAction.CREATED.value, entity_type, entity_id, company_id, user,
                         f"Created {entity_type}", data)

    def log_update(self, entity_type: str, entity_id: str, company_id: str, user=None, data=None):
        return self._log(HistoryAction.UPDATED.value, entity_type, entity_id, company_id, user,
                         f"Updated {entity_type}", data)

    def log_deletion(self, entity_type: str, entity_id: str, company_id: str, user=None, data=None):
        return self._log(HistoryAction.DELETED.value, entity_type, entity_id, company_id, user,
                         f"Deleted {entity_type}", data)

    def log_restore(self, entity_type: str, entity_id: str, company_id: str, user=None):
        return self._log(HistoryAction.RESTORED.value, entity_type, entity_id, company_id, user,
                         f"Restored {entity_type}")

    def log_status_change(self, entity_type: str, entity_id: str, company_id: str, user,
                          old_status: Optional[str], new_status: str):
        return self._log(HistoryAction.STATUS_CHANGED.value, entity_type, entity_id, company_id, user,
                         f"Changed {entity_type} status from {old_status or 'none'} to {new_status}",
                         {"oldStatus": old_status, "newStatus": new_status})

    def log_assignment(self, entity_type: str, entity_id: str, company_id: str, user, assigned_to: str):
        return self._log(HistoryAction.ASSIGNED.value, entity_type, entity_id, company_id, user,
                         f"Assigned {entity_type} to {assigned_to}", {"assignedTo": assigned_to})

    def log_note_added(self, entity_type: str, entity_id: str, company_id: str, user, note: str):
        return self._log(HistoryAction.COMMENT_ADDED.value, entity_type, entity_id, company_id, user,
                         f"Added a note to {entity_type}", {"note": note})

    def get_history_by_entity(self, company_id: str, entity_type: str, entity_id: str, **options) -> List[HistoryEntry]:
        options.setdefault("order_by", BY_TIME_DESC)
        return self.get_all_by_company(
            company_id, [Equals("entityType", entity_type), Equals("entityId", entity_id)], **options
        )

    def get_history_by_user(self, company_id: str, user_id: str, **options) -> List[HistoryEntry]:
        options.setdefault("order_by", BY_TIME_DESC)
        return self.get_all_by_company(company_id, [Equals("performedBy", user_id)], **options)

    def get_history_by_action(self, company_id: str, action: str, **options) -> List[HistoryEntry]:
        options.setdefault("order_by", BY_TIME_DESC)
        return self.get_all_by_company(company_id, [Equals("action", action)], **options)

    def get_history_by_date_range(self, company_id: str, start: Optional[datetime] = None,
                                  end: Optional[datetime] = None, **options) -> List[HistoryEntry]:
        options.setdefault("order_by", BY_TIME_DESC)
        return self.get_all_by_company(company_id, between("timestamp", start, end), **options)

    def get_recent_activity(self, company_id: str, limit: int = 20) -> List[HistoryEntry]:
        return self.get_all_by_company(company_id, order_by=BY_TIME_DESC, limit=limit)

    def get_activity_feed(self, company_id: str, entity_types: Sequence[str] = (), user_ids: Sequence[str] = (),
                          limit: int = 10) -> List[HistoryEntry]:
        """Most recent entries, optionally restricted to entity types and users"""
        filters = []
        if entity_types:
            filters.append(In("entityType", list(entity_types)))
        if user_ids:
            filters.append(In("performedBy", list(user_ids)))
        return self.get_all_by_company(company_id, filters, order_by=BY_TIME_DESC, limit=limit)
