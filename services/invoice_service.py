"""
Invoices and payments
"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from google.cloud.firestore import ArrayUnion, Increment

from models.crm import Invoice
from models.enums import InvoiceStatus, PaymentMethod
from services.collections import INVOICES
from services.firestore_service import FirestoreRepository, utcnow
from services.query_filters import Equals, OrderBy, Range

logger = logging.getLogger(__name__)


def _payment_amount(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError("Payment amount must be a positive number")
    return float(value)


class InvoiceService(FirestoreRepository[Invoice]):
    collection_name = INVOICES
    model = Invoice
    status_field = "Status"
    status_enum = InvoiceStatus

    def get_invoices_by_contact(self, company_id: str, contact_id: str, **options) -> List[Invoice]:
        return self.get_all_by_company(company_id, [Equals("contact_id", contact_id)], **options)

    def get_invoices_by_deal(self, company_id: str, deal_id: str, **options) -> List[Invoice]:
        return self.get_all_by_company(company_id, [Equals("deal_id", deal_id)], **options)

    def get_overdue_invoices(self, company_id: str) -> List[Invoice]:
        """Pending invoices whose DateLimit has passed"""
        return self.get_all_by_company(
            company_id,
            [Equals("Status", InvoiceStatus.PENDING.value), Range("DateLimit", utcnow(), "<")],
            order_by=[OrderBy("DateLimit", "asc")],
        )

    def create_invoice(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data.get("company_id"):
            raise ValueError("Company ID is required")
        amount = data.get("amount", 0)
        if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount < 0:
            raise ValueError("Invoice amount must be a non-negative number")

        invoice = {
            **data,
            "Title": data.get("Title") or data.get("title") or "",
            "description": data.get("description", ""),
            "Notes": data.get("Notes", ""),
            "amount": float(amount),
            "totalPaid": 0.0,
            "paymentHistory": [],
            "paymentUrl": data.get("paymentUrl", ""),
            "Status": InvoiceStatus.validate(data.get("Status") or InvoiceStatus.PENDING.value),
        }
        invoice.pop("title", None)
        return self.create(invoice)

    def add_payment(self, invoice_id: str, payment: Dict[str, Any]) -> Optional[Invoice]:
        """Record a payment and mark the invoice Paid once fully covered.

        The history append and the totalPaid increment happen in one atomic
        update, so concurrent payments are never lost.
        """
        amount = _payment_amount(payment.get("amount"))
        method = PaymentMethod.validate(payment.get("method") or PaymentMethod.OTHER.value, "payment method")
        entry = {
            "id": uuid.uuid4().hex,
            "amount": amount,
            "method": method,
            "reference": payment.get("reference", ""),
            "notes": payment.get("notes", ""),
            "paymentDate": payment.get("paymentDate") or utcnow(),
            "recordedAt": utcnow(),
        }
        self.require(invoice_id)
        invoice = self.update(invoice_id, {"paymentHistory": ArrayUnion([entry]), "totalPaid": Increment(amount)})
        logger.info(f"Recorded payment of {amount} on invoice {invoice_id}")

        if invoice.amount > 0 and invoice.totalPaid >= invoice.amount and invoice.Status != InvoiceStatus.PAID.value:
            invoice = self.update(invoice_id, {"Status": InvoiceStatus.PAID.value, "paidAt": utcnow()})
        return invoice

    def mark_as_paid(self, invoice_id: str, payment_details: Optional[Dict[str, Any]] = None) -> Optional[Invoice]:
        """Settle the outstanding balance and set Paid.

        The balance comes from a read before the write, so a payment recorded
        in between is counted on top of it and totalPaid can exceed amount.
        """
        details = payment_details or {}
        invoice = self.require(invoice_id)
        outstanding = max(invoice.amount - invoice.totalPaid, 0)

        changes: Dict[str, Any] = {"Status": InvoiceStatus.PAID.value, "paidAt": utcnow()}
        if outstanding > 0:
            changes["paymentHistory"] = ArrayUnion([{
                "id": uuid.uuid4().hex,
                "amount": outstanding,
                "method": PaymentMethod.validate(details.get("method") or PaymentMethod.OTHER.value, "payment method"),
                "reference": details.get("reference", ""),
                "notes": details.get("notes", ""),
                "paymentDate": utcnow(),
                "recordedAt": utcnow(),
            }])
            changes["totalPaid"] = Increment(outstanding)
        return self.update(invoice_id, changes)
