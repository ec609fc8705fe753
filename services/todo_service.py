"""
Todos and recurring tasks
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from models.activity import Todo
from models.enums import TodoPriority, TodoStatus
from services.collections import CREATED_AT, DELETED_AT, IS_DELETED, TODOS, UPDATED_AT
from services.firestore_service import FirestoreRepository, utcnow
from services.query_filters import Equals, In, OrderBy, Range, between
from services.recurrence import advance, is_recurring

logger = logging.getLogger(__name__)

OPEN_STATUSES = [TodoStatus.PENDING.value, TodoStatus.IN_PROGRESS.value]

# Fields that belong to one occurrence and are not copied to the next
_OCCURRENCE_FIELDS = {"id", "status", "completedAt", "completedBy", CREATED_AT, UPDATED_AT, IS_DELETED, DELETED_AT}


def _start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


class TodoService(FirestoreRepository[Todo]):
    collection_name = TODOS
    model = Todo
    status_field = "status"
    status_enum = TodoStatus

    def _user_filters(self, user_id: Optional[str]) -> list:
        return [Equals("assignedTo.id", user_id)] if user_id else []

    def get_todos_by_priority(self, company_id: str, priority: str, **options) -> List[Todo]:
        return self.get_all_by_company(company_id, [Equals("priority", priority)], **options)

    def get_todos_by_assigned_user(self, company_id: str, user_id: str, **options) -> List[Todo]:
        return self.get_all_by_company(company_id, self._user_filters(user_id), **options)

    def get_todos_by_related_entity(self, company_id: str, related_type: str, related_id: str, **options) -> List[Todo]:
        return self.get_all_by_company(
            company_id, [Equals("relatedType", related_type), Equals("relatedId", related_id)], **options
        )

    def get_todos_for_today(self, company_id: str, user_id: Optional[str] = None) -> List[Todo]:
        today = _start_of_day(utcnow())
        filters = [
            Range("dueDate", today, ">="),
            Range("dueDate", today + timedelta(days=1), "<"),
            In("status", OPEN_STATUSES),
        ] + self._user_filters(user_id)
        return self.get_all_by_company(company_id, filters, order_by=[OrderBy("dueDate", "asc")])

    def get_overdue_todos(self, company_id: str, user_id: Optional[str] = None) -> List[Todo]:
        filters = [
            Range("dueDate", _start_of_day(utcnow()), "<"),
            In("status", OPEN_STATUSES),
        ] + self._user_filters(user_id)
        return self.get_all_by_company(company_id, filters, order_by=[OrderBy("dueDate", "asc")])

    def get_upcoming_todos(self, company_id: str, start: datetime, end: datetime, user_id: Optional[str] = None) -> List[Todo]:
        filters = between("dueDate", start, end) + [In("status", OPEN_STATUSES)] + self._user_filters(user_id)
        return self.get_all_by_company(company_id, filters, order_by=[OrderBy("dueDate", "asc")])

    def create_todo(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data.get("title") or not str(data["title"]).strip():
            raise ValueError("Todo title is required")
        todo = {
            **data,
            "title": str(data["title"]).strip(),
            "status": TodoStatus.validate(data.get("status") or TodoStatus.PENDING.value),
            "priority": TodoPriority.validate(data.get("priority") or TodoPriority.MEDIUM.value, "priority"),
        }
        return self.create(todo)

    def update_priority(self, todo_id: str, priority: str) -> Optional[Todo]:
        return self.update(todo_id, {"priority": TodoPriority.validate(priority, "priority")})

    def assign_to(self, todo_id: str, user_id: str, field: str = "assignedTo") -> Optional[Todo]:
        if not user_id:
            raise ValueError("User ID is required")
        return self.update(todo_id, {field: {"id": user_id}})

    def assign_to_user(self, todo_id: str, user: Dict[str, Any]) -> Optional[Todo]:
        if not user or not user.get("id"):
            raise ValueError("User ID is required")
        return self.update(todo_id, {"assignedTo": {"id": user["id"], "name": user.get("full_name") or user.get("name", "")}})

    def _next_occurrence(self, todo: Todo) -> Dict[str, Any]:
        data = {key: value for key, value in todo.to_dict().items() if key not in _OCCURRENCE_FIELDS}
        data["dueDate"] = advance(todo.dueDate or utcnow(), todo.recurrenceType)
        data["status"] = TodoStatus.PENDING.value
        data["isRecurrenceOf"] = todo.id
        return data

    def mark_as_completed(self, todo_id: str, completed_by: Optional[Dict[str, Any]] = None) -> Optional[Todo]:
        """Complete a todo; a recurring one spawns its next occurrence in the same commit"""
        todo = self.require(todo_id)
        operations = [{
            "type": "update",
            "id": todo_id,
            "data": {
                "status": TodoStatus.COMPLETED.value,
                "completedAt": utcnow(),
                "completedBy": {
                    "id": (completed_by or {}).get("id", ""),
                    "name": (completed_by or {}).get("full_name") or (completed_by or {}).get("name", ""),
                },
            },
        }]
        if is_recurring(todo.recurrenceType):
            operations.append({"type": "create_with_id", "id": self.new_id(), "data": self._next_occurrence(todo)})

        self.batch_write(operations)
        return self.get_by_id(todo_id)
