from datetime import datetime, timedelta, timezone

import pytest

from services.analytics_service import AnalyticsService

from conftest import COMPANY_A, COMPANY_B


@pytest.fixture()
def analytics(db) -> AnalyticsService:
    return AnalyticsService(db)


def test_deal_analytics_win_rate_and_amounts(analytics: AnalyticsService) -> None:
    for amount, status in ((100, "Gain"), (300, "Gain"), (200, "Loss"), (400, "Opened")):
        analytics.deals.create({"company_id": COMPANY_A, "Amount": amount, "Status": status})
    analytics.deals.create({"company_id": COMPANY_B, "Amount": 9999, "Status": "Gain"})

    result = analytics.get_deal_analytics(COMPANY_A)

    assert result["totalDeals"] == 4
    assert result["totalAmount"] == 1000
    assert result["wonAmount"] == 400
    assert result["byStatus"]["Gain"] == {"count": 2, "amount": 400}
    assert result["winRate"] == pytest.approx(66.67)
    assert result["averageDealSize"] == 250


def test_deal_analytics_without_closed_deals(analytics: AnalyticsService) -> None:
    analytics.deals.create({"company_id": COMPANY_A, "Amount": 10, "Status": "Opened"})
    assert analytics.get_deal_analytics(COMPANY_A)["winRate"] == 0.0
    assert analytics.get_deal_analytics(COMPANY_B)["averageDealSize"] == 0.0


def test_invoice_analytics_collection_and_overdue(analytics: AnalyticsService) -> None:
    now = datetime.now(timezone.utc)
    paid = analytics.invoices.create_invoice({"company_id": COMPANY_A, "amount": 500})
    analytics.invoices.mark_as_paid(paid["id"])
    partial = analytics.invoices.create_invoice({"company_id": COMPANY_A, "amount": 300, "DateLimit": now - timedelta(days=5)})
    analytics.invoices.add_payment(partial["id"], {"amount": 100})
    analytics.invoices.create_invoice({"company_id": COMPANY_A, "amount": 200, "DateLimit": now + timedelta(days=5)})

    result = analytics.get_invoice_analytics(COMPANY_A)

    assert result["totalInvoices"] == 3
    assert result["totalAmount"] == 1000
    assert result["totalPaid"] == 600
    assert result["outstanding"] == 400
    assert result["overdueCount"] == 1
    assert result["overdueAmount"] == 200
    assert result["collectionRate"] == 60.0
    assert result["byStatus"]["Pending"]["count"] == 2


def test_todo_statistics(analytics: AnalyticsService) -> None:
    now = datetime.now(timezone.utc)
    todos = analytics.todos
    todos.create_todo({"company_id": COMPANY_A, "title": "late", "dueDate": now - timedelta(days=3), "assignedTo": {"id": "u1"}})
    todos.create_todo({"company_id": COMPANY_A, "title": "today", "priority": "High",
                       "dueDate": now.replace(hour=12, minute=0, second=0, microsecond=0)})
    todos.create_todo({"company_id": COMPANY_A, "title": "done", "status": "Completed", "dueDate": now - timedelta(days=3)})
    todos.create_todo({"company_id": COMPANY_A, "title": "someday"})

    result = analytics.get_todo_statistics(COMPANY_A)

    assert result["total"] == 4
    assert result["overdue"] == 1
    assert result["dueToday"] == 1
    assert result["byPriority"] == {"Medium": 3, "High": 1}
    assert result["completionRate"] == 25.0
    assert analytics.get_todo_statistics(COMPANY_A, user_id="u1")["total"] == 1


def test_application_statistics(analytics: AnalyticsService) -> None:
    for job, status in (("Agent", "Pending"), ("Agent", "Hired"), ("Manager", "Pending")):
        analytics.applications.create_application(
            {"company_id": COMPANY_A, "firstname": "A", "lastname": "B", "Job": job, "Status": status}
        )

    result = analytics.get_application_statistics(COMPANY_A)
    assert result == {"total": 3, "byStatus": {"Pending": 2, "Hired": 1}, "byJob": {"Agent": 2, "Manager": 1}}


def _attendance(analytics: AnalyticsService, employee: str, day: datetime, status: str, hours: float) -> None:
    analytics.attendance.create_attendance_record({
        "company_id": COMPANY_A,
        "employee_id": employee,
        "employeeName": employee.upper(),
        "date": day,
        "status": status,
        "totalHoursWorked": hours,
    })


def test_monthly_attendance_statistics(analytics: AnalyticsService) -> None:
    march = datetime(2026, 3, 1, 9, tzinfo=timezone.utc)
    _attendance(analytics, "e1", march, "Present", 8)
    _attendance(analytics, "e1", march + timedelta(days=1), "Late", 6.5)
    _attendance(analytics, "e2", march + timedelta(days=30), "Absent", 0)
    _attendance(analytics, "e1", datetime(2026, 4, 1, tzinfo=timezone.utc), "Present", 8)

    result = analytics.get_monthly_attendance_statistics(COMPANY_A, 2026, 3)

    assert result["totalRecords"] == 3
    assert result["statusBreakdown"] == {"Present": 1, "Late": 1, "Absent": 1}
    assert result["attendanceRate"] == pytest.approx(66.67)
    assert result["employees"]["e1"]["daysPresent"] == 2
    assert result["employees"]["e1"]["totalHoursWorked"] == 14.5
    assert result["employees"]["e2"]["statusBreakdown"] == {"Absent": 1}

    with pytest.raises(ValueError):
        analytics.get_monthly_attendance_statistics(COMPANY_A, 2026, 13)


def test_employee_summary(analytics: AnalyticsService) -> None:
    day = datetime(2026, 5, 4, 9, tzinfo=timezone.utc)
    _attendance(analytics, "e1", day, "Present", 8)
    _attendance(analytics, "e1", day + timedelta(days=1), "Half Day", 4)
    _attendance(analytics, "e1", day + timedelta(days=2), "Sick Leave", 0)

    summary = analytics.get_employee_summary(COMPANY_A, "e1")

    assert summary["employeeName"] == "E1"
    assert summary["totalDays"] == 3
    assert summary["daysPresent"] == 2
    assert summary["averageHoursPerDay"] == 6.0
    assert analytics.get_employee_summary(COMPANY_A, "e1", start=day + timedelta(days=1))["totalDays"] == 2
    assert analytics.get_employee_summary(COMPANY_A, "ghost")["totalDays"] == 0


def test_dashboard_counts_only_live_company_records(analytics: AnalyticsService) -> None:
    analytics.contacts.create({"company_id": COMPANY_A})
    doomed = analytics.contacts.create({"company_id": COMPANY_A})
    analytics.contacts.soft_delete(doomed["id"])
    analytics.leads.create({"company_id": COMPANY_B})

    dashboard = analytics.get_dashboard(COMPANY_A)

    assert dashboard["counts"]["contacts"] == 1
    assert dashboard["counts"]["leads"] == 0
    assert dashboard["deals"]["totalDeals"] == 0
    assert "generatedAt" in dashboard

    with pytest.raises(ValueError):
        analytics.get_dashboard("")
