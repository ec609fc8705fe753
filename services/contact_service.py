"""
Contacts: clients, prospects, partners and vendors
"""
import logging
from typing import Any, Dict, List, Optional

from models.crm import Contact
from models.enums import ContactStatus, ContactType
from services.collections import CONTACTS, CREATED_AT
from services.firestore_service import FirestoreRepository, utcnow
from services.query_filters import ArrayContains, Equals, OrderBy, prefix

logger = logging.getLogger(__name__)


class ContactService(FirestoreRepository[Contact]):
    collection_name = CONTACTS
    model = Contact
    status_field = "status"
    status_enum = ContactStatus

    def get_contacts_by_type(self, company_id: str, contact_type: str, **options) -> List[Contact]:
        return self.get_all_by_company(company_id, [Equals("type", contact_type)], **options)

    def get_contacts_by_assigned_user(self, company_id: str, user_id: str, **options) -> List[Contact]:
        return self.get_all_by_company(company_id, [Equals("assignedTo", user_id)], **options)

    def get_contacts_by_property(self, company_id: str, property_id: str, **options) -> List[Contact]:
        return self.get_all_by_company(company_id, [ArrayContains("relatedProperties", property_id)], **options)

    def search_contacts(self, company_id: str, search_term: str, **options) -> List[Contact]:
        """Prefix match on email; Firestore has no OR across fields"""
        if not search_term:
            return self.get_all_by_company(company_id, **options)
        return self.get_all_by_company(company_id, prefix("email", search_term), **options)

    def get_recent_contacts(self, company_id: str, limit: int = 5) -> List[Contact]:
        return self.get_all_by_company(company_id, order_by=[OrderBy(CREATED_AT, "desc")], limit=limit)

    def add_note(self, contact_id: str, text: str, author: Optional[Dict[str, Any]] = None) -> Optional[Contact]:
        if not text or not text.strip():
            raise ValueError("Note text is required")
        note = {"note": text.strip(), "CreationDate": utcnow(), "author": author or {}}
        return self.append_to_array(contact_id, "Notes", note)

    def add_tag(self, contact_id: str, tag: str) -> Optional[Contact]:
        return self.append_to_array(contact_id, "tags", tag)

    def remove_tag(self, contact_id: str, tag: str) -> Optional[Contact]:
        return self.remove_from_array(contact_id, "tags", tag)

    def change_type(self, contact_id: str, contact_type: str) -> Optional[Contact]:
        return self.update(contact_id, {"type": ContactType.validate(contact_type, "contact type")})

    def add_related_property(self, contact_id: str, property_id: str) -> Optional[Contact]:
        return self.append_to_array(contact_id, "relatedProperties", property_id)

    def remove_related_property(self, contact_id: str, property_id: str) -> Optional[Contact]:
        return self.remove_from_array(contact_id, "relatedProperties", property_id)
