"""
Analytics service for aggregating CRM statistics per company
"""
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

import sys
from pathlib import Path
sys.path.append(str(Path(__file__).parent.parent))

from config import get_firestore_client
from models.enums import AttendanceStatus, DealStatus, InvoiceStatus, TodoStatus
from services.application_service import ApplicationService
from services.attendance_service import AttendanceService
from services.contact_service import ContactService
from services.deal_service import DealService
from services.firestore_service import utcnow
from services.invoice_service import InvoiceService
from services.lead_service import LeadService
from services.property_service import PropertyService
from services.query_filters import Equals, Range, between
from services.recurrence import add_months
from services.todo_service import TodoService

logger = logging.getLogger(__name__)

# Statuses that count as a day at work
PRESENT_STATUSES = {
    AttendanceStatus.PRESENT.value,
    AttendanceStatus.LATE.value,
    AttendanceStatus.HALF_DAY.value,
}


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _percent(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def _count_by(items: Iterable[Any], attribute: str) -> Dict[str, int]:
    counts = defaultdict(int)
    for item in items:
        counts[getattr(item, attribute) or "Unknown"] += 1
    return dict(counts)


class AnalyticsService:
    """Service for analytics and statistics aggregation"""

    def __init__(self, db=None):
        """Initialize analytics with repositories sharing one Firestore client"""
        self.db = db if db is not None else get_firestore_client()
        self.contacts = ContactService(self.db)
        self.leads = LeadService(self.db)
        self.deals = DealService(self.db)
        self.properties = PropertyService(self.db)
        self.invoices = InvoiceService(self.db)
        self.todos = TodoService(self.db)
        self.applications = ApplicationService(self.db)
        self.attendance = AttendanceService(self.db)

    def get_deal_analytics(self, company_id: str) -> Dict[str, Any]:
        """Count and amount per status, plus win rate over closed deals"""
        try:
            deals = self.deals.get_all_by_company(company_id)
        except Exception as e:
            logger.error(f"Failed to get deal analytics for {company_id}: {e}")
            raise

        by_status = defaultdict(lambda: {"count": 0, "amount": 0.0})
        total_amount = 0.0
        for deal in deals:
            bucket = by_status[deal.Status or "Unknown"]
            bucket["count"] += 1
            bucket["amount"] += deal.Amount or 0
            total_amount += deal.Amount or 0

        won = by_status.get(DealStatus.GAIN.value, {"count": 0, "amount": 0.0})
        lost = by_status.get(DealStatus.LOSS.value, {"count": 0, "amount": 0.0})

        return {
            "totalDeals": len(deals),
            "totalAmount": round(total_amount, 2),
            "wonAmount": round(won["amount"], 2),
            "byStatus": dict(by_status),
            "winRate": _percent(won["count"], won["count"] + lost["count"]),
            "averageDealSize": round(total_amount / len(deals), 2) if deals else 0.0,
        }

    def get_invoice_analytics(self, company_id: str, start: Optional[datetime] = None,
                              end: Optional[datetime] = None) -> Dict[str, Any]:
        """Invoice totals for invoices created within [start, end]"""
        try:
            invoices = self.invoices.get_all_by_company(company_id, between("createdAt", start, end))
        except Exception as e:
            logger.error(f"Failed to get invoice analytics for {company_id}: {e}")
            raise

        now = utcnow()
        by_status = defaultdict(lambda: {"count": 0, "amount": 0.0})
        total_amount = total_paid = outstanding = overdue_amount = 0.0
        overdue_count = 0

        for invoice in invoices:
            amount = invoice.amount or 0
            bucket = by_status[invoice.Status or "Unknown"]
            bucket["count"] += 1
            bucket["amount"] += amount
            total_amount += amount
            total_paid += invoice.totalPaid or 0

            if invoice.Status == InvoiceStatus.PENDING.value:
                balance = max(amount - (invoice.totalPaid or 0), 0)
                outstanding += balance
                due = _aware(invoice.DateLimit)
                if due is not None and due < now:
                    overdue_count += 1
                    overdue_amount += balance

        return {
            "totalInvoices": len(invoices),
            "totalAmount": round(total_amount, 2),
            "totalPaid": round(total_paid, 2),
            "outstanding": round(outstanding, 2),
            "overdueCount": overdue_count,
            "overdueAmount": round(overdue_amount, 2),
            "byStatus": dict(by_status),
            "collectionRate": _percent(total_paid, total_amount),
        }

    def get_todo_statistics(self, company_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        filters = [Equals("assignedTo.id", user_id)] if user_id else []
        try:
            todos = self.todos.get_all_by_company(company_id, filters)
        except Exception as e:
            logger.error(f"Failed to get todo statistics for {company_id}: {e}")
            raise

        now = utcnow()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        tomorrow = today + timedelta(days=1)
        open_statuses = {TodoStatus.PENDING.value, TodoStatus.IN_PROGRESS.value}

        overdue = due_today = 0
        for todo in todos:
            due = _aware(todo.dueDate)
            if due is None or todo.status not in open_statuses:
                continue
            if due < today:
                overdue += 1
            elif due < tomorrow:
                due_today += 1

        by_status = _count_by(todos, "status")
        return {
            "total": len(todos),
            "byStatus": by_status,
            "byPriority": _count_by(todos, "priority"),
            "overdue": overdue,
            "dueToday": due_today,
            "completionRate": _percent(by_status.get(TodoStatus.COMPLETED.value, 0), len(todos)),
        }

    def get_application_statistics(self, company_id: str) -> Dict[str, Any]:
        try:
            applications = self.applications.get_all_by_company(company_id)
        except Exception as e:
            logger.error(f"Failed to get application statistics for {company_id}: {e}")
            raise

        return {
            "total": len(applications),
            "byStatus": _count_by(applications, "Status"),
            "byJob": _count_by(applications, "Job"),
        }

    def get_monthly_attendance_statistics(self, company_id: str, year: int, month: int) -> Dict[str, Any]:
        """Per-status and per-employee attendance for one calendar month"""
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month: {month}")
        start = datetime(year, month, 1, tzinfo=timezone.utc)
        end = add_months(start, 1)
        try:
            records = self.attendance.get_all_by_company(
                company_id, [Range("date", start, ">="), Range("date", end, "<")]
            )
        except Exception as e:
            logger.error(f"Failed to get attendance statistics for {company_id}: {e}")
            raise

        employees: Dict[str, Dict[str, Any]] = {}
        for record in records:
            summary = employees.setdefault(record.employee_id, {
                "employeeName": record.employeeName,
                "days": 0,
                "daysPresent": 0,
                "totalHoursWorked": 0.0,
                "statusBreakdown": defaultdict(int),
            })
            summary["days"] += 1
            summary["totalHoursWorked"] += record.totalHoursWorked or 0
            summary["statusBreakdown"][record.status] += 1
            if record.status in PRESENT_STATUSES:
                summary["daysPresent"] += 1

        for summary in employees.values():
            summary["statusBreakdown"] = dict(summary["statusBreakdown"])
            summary["totalHoursWorked"] = round(summary["totalHoursWorked"], 2)

        present = sum(1 for record in records if record.status in PRESENT_STATUSES)
        return {
            "year": year,
            "month": month,
            "totalRecords": len(records),
            "statusBreakdown": _count_by(records, "status"),
            "attendanceRate": _percent(present, len(records)),
            "employees": employees,
        }

    def get_employee_summary(self, company_id: str, employee_id: str, start: Optional[datetime] = None,
                             end: Optional[datetime] = None) -> Dict[str, Any]:
        try:
            records = self.attendance.get_attendance_by_employee(company_id, employee_id, between("date", start, end))
        except Exception as e:
            logger.error(f"Failed to get attendance summary for employee {employee_id}: {e}")
            raise

        total_hours = sum(record.totalHoursWorked or 0 for record in records)
        days_present = sum(1 for record in records if record.status in PRESENT_STATUSES)
        return {
            "employee_id": employee_id,
            "employeeName": records[0].employeeName if records else "",
            "totalDays": len(records),
            "daysPresent": days_present,
            "totalHoursWorked": round(total_hours, 2),
            "averageHoursPerDay": round(total_hours / days_present, 2) if days_present else 0.0,
            "statusBreakdown": _count_by(records, "status"),
        }

    def get_dashboard(self, company_id: str) -> Dict[str, Any]:
        """Roll-up of record counts and the per-area statistics"""
        if not company_id:
            raise ValueError("company_id is required")
        logger.info(f"Building dashboard analytics for company {company_id}")

        company = [Equals("company_id", company_id)]
        return {
            "counts": {
                "contacts": self.contacts.count(company),
                "leads": self.leads.count(company),
                "deals": self.deals.count(company),
                "properties": self.properties.count(company),
                "invoices": self.invoices.count(company),
                "todos": self.todos.count(company),
                "applications": self.applications.count(company),
            },
            "deals": self.get_deal_analytics(company_id),
            "invoices": self.get_invoice_analytics(company_id),
            "todos": self.get_todo_statistics(company_id),
            "applications": self.get_application_statistics(company_id),
            "generatedAt": utcnow().isoformat(),
        }
