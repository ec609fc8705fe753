"""
Meetings, attendees and recurring series
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from google.cloud.firestore import ArrayRemove, ArrayUnion

from models.activity import Meeting
from models.base import to_datetime
from models.enums import AttendeeStatus, MeetingStatus, RecurrenceType
from services.collections import MEETINGS
from services.firestore_service import FirestoreRepository, utcnow
from services.query_filters import ArrayContains, Equals, OrderBy, between
from services.recurrence import advance

logger = logging.getLogger(__name__)

# A whole series is committed as one batch
MAX_RECURRENCE_COUNT = 100


def _meeting_times(data: Dict[str, Any]):
    start = to_datetime(data.get("startTime"))
    end = to_datetime(data.get("endTime"))
    if not data.get("title") or start is None or end is None:
        raise ValueError("Meeting requires title, start time, and end time")
    if end <= start:
        raise ValueError("Meeting end time must be after its start time")
    return start, end


class MeetingService(FirestoreRepository[Meeting]):
    collection_name = MEETINGS
    model = Meeting
    status_field = "status"
    status_enum = MeetingStatus

    def get_meetings_for_user(self, company_id: str, user_id: str, **options) -> List[Meeting]:
        """Meetings the user organizes or attends; limit caps the merged result"""
        limit = options.pop("limit", None)
        meetings: Dict[str, Meeting] = {}
        for clause in (Equals("organizerId", user_id), ArrayContains("attendeeIds", user_id)):
            for meeting in self.get_all_by_company(company_id, [clause], limit=limit, **options):
                meetings.setdefault(meeting.id, meeting)
        merged = list(meetings.values())
        return merged[:limit] if limit else merged

    def get_meetings_by_date_range(self, company_id: str, start: datetime, end: datetime,
                                   user_id: Optional[str] = None) -> List[Meeting]:
        filters = between("startTime", start, end)
        if user_id:
            filters.append(Equals("organizerId", user_id))
        return self.get_all_by_company(company_id, filters, order_by=[OrderBy("startTime", "asc")])

    def get_meetings_by_related_entity(self, company_id: str, related_type: str, related_id: str, **options) -> List[Meeting]:
        return self.get_all_by_company(
            company_id, [Equals("relatedType", related_type), Equals("relatedId", related_id)], **options
        )

    def get_meetings_by_series(self, company_id: str, series_id: str) -> List[Meeting]:
        return self.get_all_by_company(
            company_id, [Equals("seriesId", series_id)], order_by=[OrderBy("recurrenceIndex", "asc")]
        )

    def get_upcoming_meetings(self, company_id: str, user_id: Optional[str] = None, days: int = 7) -> List[Meeting]:
        now = utcnow()
        return self.get_meetings_by_date_range(company_id, now, now + timedelta(days=days), user_id)

    def _meeting_payload(self, data: Dict[str, Any]) -> Dict[str, Any]:
        start, end = _meeting_times(data)
        attendees = [self._attendee(a) for a in data.get("attendees") or []]
        return {
            **data,
            "startTime": start,
            "endTime": end,
            "status": MeetingStatus.validate(data.get("status") or MeetingStatus.SCHEDULED.value),
            "attendees": attendees,
            "attendeeIds": [a["id"] for a in attendees],
            "recurrenceType": data.get("recurrenceType") or RecurrenceType.NONE.value,
        }

    @staticmethod
    def _attendee(attendee: Dict[str, Any]) -> Dict[str, Any]:
        if not attendee or not attendee.get("id"):
            raise ValueError("Attendee id is required")
        return {
            **attendee,
            "type": attendee.get("type") or "User",
            "status": AttendeeStatus.validate(attendee.get("status") or AttendeeStatus.PENDING.value, "attendee status"),
        }

    def schedule_meeting(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.create(self._meeting_payload(data))

    def add_attendee(self, meeting_id: str, attendee: Dict[str, Any]) -> Meeting:
        entry = self._attendee(attendee)
        meeting = self.require(meeting_id)
        if any(a.get("id") == entry["id"] for a in meeting.attendees):
            return meeting
        return self.update(meeting_id, {
            "attendees": ArrayUnion([entry]),
            "attendeeIds": ArrayUnion([entry["id"]]),
        })

    def remove_attendee(self, meeting_id: str, attendee_id: str) -> Optional[Meeting]:
        """Drop an attendee by id.

        The attendee list is rewritten from a fresh read, so a concurrent
        attendee change between the read and the write is lost.
        """
        meeting = self.require(meeting_id)
        attendees = [a for a in meeting.attendees if a.get("id") != attendee_id]
        return self.update(meeting_id, {"attendees": attendees, "attendeeIds": ArrayRemove([attendee_id])})

    def update_attendee_status(self, meeting_id: str, attendee_id: str, status: str) -> Optional[Meeting]:
        """Set one attendee's response; read-modify-write like remove_attendee"""
        status = AttendeeStatus.validate(status, "attendee status")
        meeting = self.require(meeting_id)
        if not any(a.get("id") == attendee_id for a in meeting.attendees):
            raise ValueError(f"Attendee {attendee_id} is not invited to meeting {meeting_id}")
        attendees = [{**a, "status": status} if a.get("id") == attendee_id else a for a in meeting.attendees]
        return self.update(meeting_id, {"attendees": attendees})

    def reschedule(self, meeting_id: str, start_time: datetime, end_time: datetime) -> Optional[Meeting]:
        meeting = self.require(meeting_id)
        start, end = _meeting_times({"title": meeting.title or "meeting", "startTime": start_time, "endTime": end_time})
        return self.update(meeting_id, {
            "startTime": start,
            "endTime": end,
            "rescheduled": True,
            "previousStartTime": meeting.startTime,
            "previousEndTime": meeting.endTime,
        })

    def cancel(self, meeting_id: str, reason: str = "") -> Optional[Meeting]:
        self.require(meeting_id)
        return self.update(meeting_id, {
            "status": MeetingStatus.CANCELLED.value,
            "cancellationReason": reason,
            "cancelledAt": utcnow(),
        })

    def mark_as_completed(self, meeting_id: str, outcome: Optional[Dict[str, Any]] = None) -> Optional[Meeting]:
        return self.update_status(meeting_id, MeetingStatus.COMPLETED.value, {
            "outcome": outcome or {},
            "completedAt": utcnow(),
        })

    def create_recurring_meetings(self, data: Dict[str, Any], recurrence_type: str, count: int = 10) -> List[str]:
        """Create a whole series in one atomic batch and return the meeting ids"""
        recurrence_type = RecurrenceType.validate(recurrence_type, "recurrence type")
        if recurrence_type == RecurrenceType.NONE.value:
            raise ValueError("A recurring series needs a recurrence type")
        if not 1 <= int(count) <= MAX_RECURRENCE_COUNT:
            raise ValueError(f"Recurrence count must be between 1 and {MAX_RECURRENCE_COUNT}")

        base = self._meeting_payload(data)
        start, duration = base["startTime"], base["endTime"] - base["startTime"]
        series_id = f"series-{uuid.uuid4().hex}"

        ids: List[str] = []
        operations = []
        for index in range(int(count)):
            occurrence_start = advance(start, recurrence_type, index) if index else start
            doc_id = self.new_id()
            ids.append(doc_id)
            operations.append({
                "type": "create_with_id",
                "id": doc_id,
                "data": {
                    **base,
                    "startTime": occurrence_start,
                    "endTime": occurrence_start + duration,
                    "status": base["status"] if index == 0 else MeetingStatus.SCHEDULED.value,
                    "recurrenceType": recurrence_type,
                    "seriesId": series_id,
                    "recurrenceIndex": index,
                    "isRecurring": True,
                    "isSeriesMaster": index == 0,
                },
            })

        self.batch_write(operations)
        logger.info(f"Created recurring series {series_id} with {len(ids)} meetings")
        return ids
