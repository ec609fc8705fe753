"""
Enumerated field values for CRM records
"""
from enum import Enum


class StrEnum(str, Enum):
    @classmethod
    def values(cls):
        return [member.value for member in cls]

    @classmethod
    def validate(cls, value: str, label: str = "status") -> str:
        """Return the canonical value or raise ValueError listing the allowed ones"""
        raw = value.value if isinstance(value, Enum) else value
        if raw not in cls.values():
            raise ValueError(f"Invalid {label}: {raw}. Must be one of: {', '.join(cls.values())}")
        return raw


class ContactStatus(StrEnum):
    PENDING = "Pending"
    CONTACTED = "Contacted"
    DEAL = "Deal"
    LOSS = "Loss"


class ContactType(StrEnum):
    CLIENT = "Client"
    PROSPECT = "Prospect"
    PARTNER = "Partner"
    VENDOR = "Vendor"
    OTHER = "Other"


class LeadStatus(StrEnum):
    PENDING = "Pending"
    GAIN = "Gain"
    LOSS = "Loss"


class LeadInterestLevel(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class DealStatus(StrEnum):
    OPENED = "Opened"
    GAIN = "Gain"
    LOSS = "Loss"


class PropertyStatus(StrEnum):
    FOR_SALE = "For Sale"
    FOR_RENT = "For Rent"
    SOLD = "Sold"
    RENTED = "Rented"
    PENDING = "Pending"
    OFF_MARKET = "Off Market"


class InvoiceStatus(StrEnum):
    PENDING = "Pending"
    PAID = "Paid"
    MISSED = "Missed"
    CANCELLED = "Cancelled"


class MeetingStatus(StrEnum):
    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    POSTPONED = "Postponed"
    IN_PROGRESS = "In Progress"


class AttendeeStatus(StrEnum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    DECLINED = "Declined"
    TENTATIVE = "Tentative"


class TodoStatus(StrEnum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class TodoPriority(StrEnum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class RecurrenceType(StrEnum):
    NONE = "None"
    DAILY = "Daily"
    WEEKLY = "Weekly"
    BIWEEKLY = "Biweekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    YEARLY = "Yearly"


class AttendanceStatus(StrEnum):
    PRESENT = "Present"
    ABSENT = "Absent"
    LATE = "Late"
    SICK_LEAVE = "Sick Leave"
    VACATION = "Vacation"
    HALF_DAY = "Half Day"


class ApplicationStatus(StrEnum):
    PENDING = "Pending"
    REVIEWED = "Reviewed"
    INTERVIEWED = "Interviewed"
    HIRED = "Hired"
    REJECTED = "Rejected"


class HistoryAction(StrEnum):
    CREATED = "Created"
    UPDATED = "Updated"
    DELETED = "Deleted"
    ARCHIVED = "Archived"
    RESTORED = "Restored"
    CONTACTED = "Contacted"
    ASSIGNED = "Assigned"
    STATUS_CHANGED = "Status Changed"
    COMMENT_ADDED = "Comment Added"
    FILE_UPLOADED = "File Uploaded"
    EMAIL_SENT = "Email Sent"
    MEETING_SCHEDULED = "Meeting Scheduled"
    INVOICE_GENERATED = "Invoice Generated"
    PAYMENT_RECEIVED = "Payment Received"
    LOGIN = "Login"
    LOGOUT = "Logout"


class EntityType(StrEnum):
    LEAD = "Lead"
    CONTACT = "Contact"
    DEAL = "Deal"
    PROPERTY = "Property"
    INVOICE = "Invoice"
    TODO = "Todo"
    MEETING = "Meeting"
    USER = "User"
    COMPANY = "Company"
    SYSTEM = "System"


class PaymentMethod(StrEnum):
    BANK_TRANSFER = "Bank Transfer"
    CREDIT_CARD = "Credit Card"
    CASH = "Cash"
    CHECK = "Check"
    PAYPAL = "PayPal"
    OTHER = "Other"
