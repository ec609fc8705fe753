"""
Employee attendance records
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from google.cloud import firestore

from models.activity import AttendanceRecord
from models.enums import AttendanceStatus
from services.collections import ATTENDANCE
from services.firestore_service import FirestoreRepository, utcnow
from services.query_filters import Equals, OrderBy, Range, between

logger = logging.getLogger(__name__)

BY_DATE_DESC = [OrderBy("date", "desc")]


class AttendanceService(FirestoreRepository[AttendanceRecord]):
    collection_name = ATTENDANCE
    model = AttendanceRecord
    status_field = "status"
    status_enum = AttendanceStatus
    default_order = (OrderBy("date", "desc"),)

    def get_attendance_by_employee(self, company_id: str, employee_id: str, filters=None, **options) -> List[AttendanceRecord]:
        options.setdefault("order_by", BY_DATE_DESC)
        return self.get_all_by_company(company_id, [Equals("employee_id", employee_id)] + list(filters or []), **options)

    def get_attendance_by_date_range(self, company_id: str, start: Optional[datetime] = None,
                                     end: Optional[datetime] = None, **options) -> List[AttendanceRecord]:
        options.setdefault("order_by", BY_DATE_DESC)
        return self.get_all_by_company(company_id, between("date", start, end), **options)

    def get_attendance_by_status(self, company_id: str, status: str, **options) -> List[AttendanceRecord]:
        options.setdefault("order_by", BY_DATE_DESC)
        return self.get_by_status(company_id, status, **options)

    def create_attendance_record(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data.get("employee_id"):
            raise ValueError("Employee ID is required")
        if not data.get("company_id"):
            raise ValueError("Company ID is required")
        if not str(data.get("employeeName") or "").strip():
            raise ValueError("Employee name is required")

        record = {
            **data,
            "employeeName": str(data["employeeName"]).strip(),
            "date": data.get("date") or firestore.SERVER_TIMESTAMP,
            "status": AttendanceStatus.validate(data.get("status") or AttendanceStatus.PRESENT.value),
        }
        return self.create(record)

    def update_attendance_record(self, record_id: str, data: Dict[str, Any]) -> Optional[AttendanceRecord]:
        changes = dict(data)
        if "status" in changes:
            changes["status"] = AttendanceStatus.validate(changes["status"])
        return self.update(record_id, changes)

    def mark_attendance(self, employee_id: str, company_id: str, employee_name: str, status: str,
                        extra: Optional[Dict[str, Any]] = None):
        """Update today's record for the employee, or create one"""
        status = AttendanceStatus.validate(status)
        today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        existing = self.get_attendance_by_employee(company_id, employee_id, [Range("date", today, ">=")], limit=1)
        if existing:
            return self.update_attendance_record(existing[0].id, {"status": status, **(extra or {})})
        return self.create_attendance_record({
            **(extra or {}),
            "employee_id": employee_id,
            "company_id": company_id,
            "employeeName": employee_name,
            "status": status,
            "date": utcnow(),
        })
