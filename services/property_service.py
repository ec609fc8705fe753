"""
Property listings
"""
import logging
from typing import List, Optional

from models.crm import Property
from models.enums import PropertyStatus
from services.collections import CREATED_AT, PROPERTIES
from services.firestore_service import FirestoreRepository
from services.query_filters import Equals, OrderBy, between, prefix

logger = logging.getLogger(__name__)


class PropertyService(FirestoreRepository[Property]):
    collection_name = PROPERTIES
    model = Property
    status_field = "status"
    status_enum = PropertyStatus

    def get_properties_by_type(self, company_id: str, property_type: str, **options) -> List[Property]:
        return self.get_all_by_company(company_id, [Equals("type", property_type)], **options)

    def get_properties_by_agent(self, company_id: str, agent_id: str, **options) -> List[Property]:
        return self.get_all_by_company(company_id, [Equals("assignedTo", agent_id)], **options)

    def get_properties_by_price_range(self, company_id: str, min_price: Optional[float] = None,
                                      max_price: Optional[float] = None, **options) -> List[Property]:
        return self.get_all_by_company(company_id, between("price", min_price, max_price), **options)

    def search_properties_by_location(self, company_id: str, city: str, **options) -> List[Property]:
        if not city:
            return self.get_all_by_company(company_id, **options)
        return self.get_all_by_company(company_id, prefix("address.city", city), **options)

    def get_featured_properties(self, company_id: str, limit: int = 10) -> List[Property]:
        return self.get_all_by_company(company_id, [Equals("featured", True)], limit=limit)

    def get_recent_properties(self, company_id: str, limit: int = 5) -> List[Property]:
        return self.get_all_by_company(company_id, order_by=[OrderBy(CREATED_AT, "desc")], limit=limit)

    def set_featured(self, property_id: str, featured: bool) -> Optional[Property]:
        return self.update(property_id, {"featured": bool(featured)})

    def add_amenity(self, property_id: str, amenity: str) -> Optional[Property]:
        if not amenity:
            raise ValueError("Amenity is required")
        return self.append_to_array(property_id, "amenities", amenity)

    def remove_amenity(self, property_id: str, amenity: str) -> Optional[Property]:
        return self.remove_from_array(property_id, "amenities", amenity)
