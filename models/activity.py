"""
Scheduling, workforce and audit records
"""
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import Field

from models.base import FirestoreModel
from models.enums import ApplicationStatus, AttendanceStatus, MeetingStatus, RecurrenceType, TodoPriority, TodoStatus


class Meeting(FirestoreModel):
    date_fields: ClassVar[Tuple[str, ...]] = ("startTime", "endTime", "completedAt", "cancelledAt")

    title: str = ""
    description: str = ""
    location: Dict[str, Any] = Field(default_factory=dict)
    startTime: Optional[datetime] = None
    endTime: Optional[datetime] = None
    status: str = MeetingStatus.SCHEDULED.value
    attendees: List[Dict[str, Any]] = Field(default_factory=list)
    relatedType: str = "None"
    relatedId: str = ""
    notes: str = ""
    organizerId: str = ""
    recurrenceType: str = RecurrenceType.NONE.value
    seriesId: Optional[str] = None
    recurrenceIndex: int = 0
    isRecurring: bool = False
    isSeriesMaster: bool = False
    cancellationReason: str = ""
    completedAt: Optional[datetime] = None
    cancelledAt: Optional[datetime] = None
    outcome: Dict[str, Any] = Field(default_factory=dict)


class Todo(FirestoreModel):
    date_fields: ClassVar[Tuple[str, ...]] = ("dueDate", "completedAt")

    title: str = ""
    description: str = ""
    dueDate: Optional[datetime] = None
    priority: str = TodoPriority.MEDIUM.value
    status: str = TodoStatus.PENDING.value
    relatedType: str = "None"
    relatedId: str = ""
    assignedTo: Dict[str, Any] = Field(default_factory=dict)
    createdBy: str = ""
    completedAt: Optional[datetime] = None
    completedBy: Optional[Dict[str, Any]] = None
    recurrenceType: str = RecurrenceType.NONE.value
    isRecurrenceOf: Optional[str] = None


class AttendanceRecord(FirestoreModel):
    date_fields: ClassVar[Tuple[str, ...]] = ("date", "checkIn", "checkOut")

    employee_id: str = ""
    employeeName: str = ""
    date: Optional[datetime] = None
    status: str = AttendanceStatus.PRESENT.value
    checkIn: Optional[datetime] = None
    checkOut: Optional[datetime] = None
    totalHoursWorked: float = 0
    notes: str = ""


class Application(FirestoreModel):
    date_fields: ClassVar[Tuple[str, ...]] = ("ApplicantDate",)

    firstname: str = ""
    lastname: str = ""
    email: str = ""
    phone: str = ""
    Job: str = ""
    Status: str = ApplicationStatus.PENDING.value
    ApplicantDate: Optional[datetime] = None
    resumeUrl: str = ""
    notes: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.firstname} {self.lastname}".strip()


class HistoryEntry(FirestoreModel):
    date_fields: ClassVar[Tuple[str, ...]] = ("timestamp",)

    action: str = ""
    entityType: str = ""
    entityId: str = ""
    entityName: str = ""
    description: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)
    performedBy: str = ""
    performedByName: str = ""
    timestamp: Optional[datetime] = None
    isSystem: bool = False
