"""
Base model for Firestore-backed records
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, ClassVar, Dict, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

logger = logging.getLogger(__name__)

BASE_DATE_FIELDS = ("createdAt", "updatedAt", "deletedAt", "CreationDate", "LastUpdate", "LastUpdateDate")


def to_datetime(value: Any) -> Optional[datetime]:
    """Normalise a date-like stored value into a datetime.

    Accepts datetimes (including Firestore's DatetimeWithNanoseconds), dates,
    ISO strings, epoch numbers (milliseconds when large) and serialized
    timestamp maps. Anything else, such as an unresolved server timestamp
    sentinel, becomes None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if isinstance(seconds, (int, float)):
            nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
            return datetime.fromtimestamp(seconds + nanos / 1e9, tz=timezone.utc)
    return None


class FirestoreModel(BaseModel):
    """Common shape of every stored CRM record.

    Unknown fields are kept as extras so loosely-typed documents round-trip.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    date_fields: ClassVar[Tuple[str, ...]] = ()

    id: str = ""
    company_id: str = ""
    createdAt: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("createdAt", "CreationDate")
    )
    updatedAt: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("updatedAt", "LastUpdate", "LastUpdateDate")
    )
    isDeleted: bool = False
    deletedAt: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _normalise_dates(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in BASE_DATE_FIELDS + cls.date_fields:
            if key in data:
                data[key] = to_datetime(data[key])
        # Stored nulls fall back to field defaults
        for key, value in list(data.items()):
            if value is None and key in cls.model_fields and cls.model_fields[key].default is not None:
                data.pop(key)
        return data

    @classmethod
    def from_firestore(cls, doc_id: str, data: Optional[Dict[str, Any]]):
        payload = dict(data or {})
        payload["id"] = doc_id
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            # Mistyped stored fields fall back to their defaults
            invalid = {error["loc"][0] for error in e.errors() if error["loc"]}
            logger.warning(f"{cls.__name__} {doc_id}: ignoring invalid stored fields {sorted(map(str, invalid))}")
            return cls.model_validate({key: value for key, value in payload.items() if key not in invalid})

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
