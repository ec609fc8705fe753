"""
Deals pipeline
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from models.crm import Deal
from models.enums import DealStatus
from services.collections import CREATED_AT, DEALS
from services.firestore_service import FirestoreRepository, utcnow
from services.query_filters import Equals, OrderBy, between

logger = logging.getLogger(__name__)


class DealService(FirestoreRepository[Deal]):
    collection_name = DEALS
    model = Deal
    status_field = "Status"
    status_enum = DealStatus

    def get_deals_by_seller(self, company_id: str, seller_id: str, **options) -> List[Deal]:
        return self.get_all_by_company(company_id, [Equals("seller_id", seller_id)], **options)

    def get_deals_by_contact(self, company_id: str, contact_id: str, **options) -> List[Deal]:
        return self.get_all_by_company(company_id, [Equals("contact_id", contact_id)], **options)

    def get_deals_by_property(self, company_id: str, property_id: str, **options) -> List[Deal]:
        return self.get_all_by_company(company_id, [Equals("property_id", property_id)], **options)

    def get_deals_by_amount_range(self, company_id: str, min_amount: Optional[float] = None,
                                  max_amount: Optional[float] = None, **options) -> List[Deal]:
        return self.get_all_by_company(company_id, between("Amount", min_amount, max_amount), **options)

    def get_deals_by_close_date_range(self, company_id: str, start: Optional[datetime] = None,
                                      end: Optional[datetime] = None, **options) -> List[Deal]:
        return self.get_all_by_company(company_id, between("ExpectedCloseDate", start, end), **options)

    def get_recent_deals(self, company_id: str, limit: int = 5) -> List[Deal]:
        return self.get_all_by_company(company_id, order_by=[OrderBy(CREATED_AT, "desc")], limit=limit)

    def add_note(self, deal_id: str, text: str, author: Optional[Dict[str, Any]] = None) -> Optional[Deal]:
        if not text or not text.strip():
            raise ValueError("Note text is required")
        note = {"text": text.strip(), "createdBy": author or {}, "createdAt": utcnow()}
        return self.append_to_array(deal_id, "Notes", note)

    def add_activity(self, deal_id: str, activity: Dict[str, Any]) -> Optional[Deal]:
        if not activity:
            raise ValueError("Activity is required")
        return self.append_to_array(deal_id, "activities", {**activity, "createdAt": utcnow()})

    def update_amount(self, deal_id: str, amount: float) -> Optional[Deal]:
        if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount < 0:
            raise ValueError("Deal amount must be a non-negative number")
        return self.update(deal_id, {"Amount": amount})

    def mark_as_won(self, deal_id: str) -> Optional[Deal]:
        return self.update_status(deal_id, DealStatus.GAIN.value, {"ClosedDate": utcnow()})

    def mark_as_lost(self, deal_id: str, reason: str = "") -> Optional[Deal]:
        extra: Dict[str, Any] = {"ClosedDate": utcnow()}
        if reason:
            extra["LossReason"] = reason
        return self.update_status(deal_id, DealStatus.LOSS.value, extra)
