"""
Leads and bulk lead import
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from models.crm import Lead
from models.enums import LeadInterestLevel, LeadStatus
from services.collections import CREATED_AT, LEADS
from services.firestore_service import FirestoreRepository, utcnow
from services.query_filters import Equals, OrderBy, prefix

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("name", "email", "phoneNumber")


class LeadService(FirestoreRepository[Lead]):
    collection_name = LEADS
    model = Lead
    status_field = "status"
    status_enum = LeadStatus

    def get_leads_by_seller(self, company_id: str, seller_id: str, **options) -> List[Lead]:
        return self.get_all_by_company(company_id, [Equals("seller_id", seller_id)], **options)

    def get_leads_by_source(self, company_id: str, source: str, **options) -> List[Lead]:
        return self.get_all_by_company(company_id, [Equals("RedirectedFrom", source)], **options)

    def get_leads_by_interest_level(self, company_id: str, interest_level: str, **options) -> List[Lead]:
        LeadInterestLevel.validate(interest_level, "interest level")
        return self.get_all_by_company(company_id, [Equals("InterestLevel", interest_level)], **options)

    def get_leads_by_region(self, company_id: str, region: str, **options) -> List[Lead]:
        return self.get_all_by_company(company_id, [Equals("region", region)], **options)

    def get_leads_by_assigned_user(self, company_id: str, user_id: str, **options) -> List[Lead]:
        return self.get_all_by_company(company_id, [Equals("assignedTo", user_id)], **options)

    def search_leads(self, company_id: str, search_term: str, **options) -> List[Lead]:
        """Prefix search over name, email and phone, merged without duplicates"""
        if not search_term:
            return self.get_all_by_company(company_id, **options)

        results: Dict[str, Lead] = {}
        for field in SEARCH_FIELDS:
            for lead in self.get_all_by_company(company_id, prefix(field, search_term), **options):
                results.setdefault(lead.id, lead)
        return list(results.values())

    def get_recent_leads(self, company_id: str, limit: int = 5) -> List[Lead]:
        return self.get_all_by_company(company_id, order_by=[OrderBy(CREATED_AT, "desc")], limit=limit)

    def add_note(self, lead_id: str, text: str, author: Optional[Dict[str, Any]] = None) -> Optional[Lead]:
        if not text or not text.strip():
            raise ValueError("Note text is required")
        note = {"note": text.strip(), "CreationDate": utcnow(), "author": author or {}}
        return self.append_to_array(lead_id, "Notes", note)

    def add_tag(self, lead_id: str, tag: str) -> Optional[Lead]:
        return self.append_to_array(lead_id, "tags", tag)

    def remove_tag(self, lead_id: str, tag: str) -> Optional[Lead]:
        return self.remove_from_array(lead_id, "tags", tag)

    def convert_to_contact(self, lead_id: str, contact_service) -> Dict[str, Any]:
        """Create a contact from the lead and mark the lead as gained, in one commit"""
        lead = self.require(lead_id)
        contact_data = {
            "company_id": lead.company_id,
            "name": lead.name,
            "email": lead.email,
            "phoneNumber": lead.phoneNumber,
            "region": lead.region,
            "seller_id": lead.seller_id,
            "assignedTo": lead.assignedTo,
            "source": lead.RedirectedFrom,
            "type": "Prospect",
            "Notes": list(lead.Notes),
            "tags": list(lead.tags),
            "convertedFromLeadId": lead_id,
        }

        contact_id = contact_service.new_id()
        contact_payload = contact_service._prepare_create(contact_data)
        batch = self.db.batch()
        batch.set(contact_service.collection.document(contact_id), contact_payload)
        batch.update(
            self.collection.document(lead_id),
            self._prepare_update({
                "status": LeadStatus.GAIN.value,
                "convertedToContactId": contact_id,
                "convertedAt": utcnow(),
            }),
        )
        try:
            batch.commit()
        except Exception as e:
            logger.error(f"Failed to convert lead {lead_id} to contact: {e}")
            raise
        logger.info(f"Converted lead {lead_id} to contact {contact_id}")
        return {"id": contact_id, **contact_payload}

    def import_leads(self, company_id: str, rows: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        """Create one lead per parsed row, counting failures and continuing past them"""
        if not company_id:
            raise ValueError("company_id is required")

        success_count = 0
        errors: List[Dict[str, Any]] = []
        created_ids: List[str] = []

        for index, row in enumerate(rows, start=1):
            try:
                if not isinstance(row, dict):
                    raise ValueError("Row is not an object")
                name = str(row.get("name") or "").strip()
                if not name:
                    raise ValueError("Lead name is required")
                data = {
                    **row,
                    "name": name,
                    "company_id": company_id,
                    "status": row.get("status") or LeadStatus.PENDING.value,
                    "InterestLevel": row.get("InterestLevel") or LeadInterestLevel.MEDIUM.value,
                    "Budget": float(row.get("Budget") or 0),
                    "Notes": row.get("Notes") or [],
                }
                LeadStatus.validate(data["status"])
                created = self.create(data)
                created_ids.append(created["id"])
                success_count += 1
            except Exception as e:
                logger.warning(f"Lead import row {index} failed: {e}")
                errors.append({"row": index, "error": str(e)})

        logger.info(f"Lead import for {company_id}: {success_count} created, {len(errors)} failed")
        return {
            "success_count": success_count,
            "error_count": len(errors),
            "errors": errors,
            "created_ids": created_ids,
        }
