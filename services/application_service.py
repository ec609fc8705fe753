"""
Job applications
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from models.activity import Application
from models.enums import ApplicationStatus
from services.collections import APPLICATIONS
from services.firestore_service import FirestoreRepository, utcnow
from services.query_filters import Equals, OrderBy

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("firstname", "lastname", "email", "phone", "Job")


class ApplicationService(FirestoreRepository[Application]):
    collection_name = APPLICATIONS
    model = Application
    status_field = "Status"
    status_enum = ApplicationStatus
    default_order = (OrderBy("ApplicantDate", "desc"),)

    def get_applications_by_job(self, company_id: str, job: str, **options) -> List[Application]:
        return self.get_all_by_company(company_id, [Equals("Job", job)], **options)

    def get_applications_paginated(self, company_id: str, page: int = 1, page_size: int = 10,
                                   status: Optional[str] = None, job: Optional[str] = None) -> Dict[str, Any]:
        filters = []
        if status:
            filters.append(Equals("Status", status))
        if job:
            filters.append(Equals("Job", job))
        return self.get_paginated_by_company(company_id, filters, page=page, page_size=page_size)

    def create_application(self, data: Dict[str, Any]) -> Dict[str, Any]:
        for field, label in (("firstname", "First name"), ("lastname", "Last name"), ("Job", "Job"), ("company_id", "Company ID")):
            if not str(data.get(field) or "").strip():
                raise ValueError(f"{label} is required")

        application = {
            **data,
            "firstname": data["firstname"].strip(),
            "lastname": data["lastname"].strip(),
            "Status": ApplicationStatus.validate(data.get("Status") or ApplicationStatus.PENDING.value),
            "ApplicantDate": data.get("ApplicantDate") or utcnow(),
        }
        return self.create(application)

    def bulk_update_status(self, application_ids: Iterable[str], status: str) -> int:
        """Set the same status on many applications in one commit"""
        status = ApplicationStatus.validate(status)
        ids = [app_id for app_id in application_ids if app_id]
        if not ids:
            raise ValueError("At least one application ID is required")
        self.batch_write([{"type": "update", "id": app_id, "data": {"Status": status}} for app_id in ids])
        return len(ids)

    def search_applications(self, company_id: str, search_text: str, **options) -> List[Application]:
        """Case-insensitive substring match, filtered after fetching the company's applications"""
        applications = self.get_all_by_company(company_id, **options)
        needle = (search_text or "").strip().lower()
        if not needle:
            return applications
        return [
            app for app in applications
            if any(needle in str(getattr(app, field, "") or "").lower() for field in SEARCH_FIELDS)
        ]
