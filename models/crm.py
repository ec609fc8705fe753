"""
Sales-side CRM records: contacts, leads, deals, properties and invoices
"""
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import AliasChoices, Field

from models.base import FirestoreModel
from models.enums import ContactStatus, ContactType, DealStatus, InvoiceStatus, LeadInterestLevel, LeadStatus, PropertyStatus


class Contact(FirestoreModel):
    date_fields: ClassVar[Tuple[str, ...]] = ("AffectingDate", "lastActivity")

    name: str = ""
    firstName: str = ""
    lastName: str = ""
    email: str = ""
    phoneNumber: str = ""
    region: str = ""
    company: str = ""
    position: str = ""
    type: str = ContactType.CLIENT.value
    status: str = ContactStatus.PENDING.value
    source: str = ""
    seller_id: str = ""
    assignedTo: str = ""
    AffectingDate: Optional[datetime] = None
    lastActivity: Optional[datetime] = None
    Notes: List[Dict[str, Any]] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    relatedProperties: List[str] = Field(default_factory=list)
    socialMedia: Dict[str, str] = Field(default_factory=dict)


class Lead(FirestoreModel):
    name: str = ""
    email: str = ""
    phoneNumber: str = ""
    region: str = ""
    seller_id: str = ""
    assignedTo: str = ""
    RedirectedFrom: str = ""
    status: str = LeadStatus.PENDING.value
    InterestLevel: str = LeadInterestLevel.MEDIUM.value
    Budget: float = 0
    Notes: List[Dict[str, Any]] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    convertedToContactId: Optional[str] = None


class Deal(FirestoreModel):
    date_fields: ClassVar[Tuple[str, ...]] = ("ExpectedCloseDate", "ClosedDate")

    seller_id: str = ""
    contact_id: str = ""
    lead_id: str = ""
    property_id: str = ""
    Source: str = "Leads"
    Amount: float = 0
    Status: str = DealStatus.OPENED.value
    Description: str = ""
    Notes: List[Dict[str, Any]] = Field(default_factory=list)
    activities: List[Dict[str, Any]] = Field(default_factory=list)
    ExpectedCloseDate: Optional[datetime] = None
    ClosedDate: Optional[datetime] = None
    LossReason: str = ""
    assignedTo: str = ""


class Property(FirestoreModel):
    title: str = ""
    description: str = ""
    type: str = ""
    subType: str = ""
    status: str = PropertyStatus.FOR_SALE.value
    address: Dict[str, Any] = Field(default_factory=dict)
    price: float = 0
    currency: str = "USD"
    size: float = 0
    sizeUnit: str = "sqft"
    bedrooms: int = 0
    bathrooms: int = 0
    amenities: List[str] = Field(default_factory=list)
    images: List[Any] = Field(default_factory=list)
    featured: bool = False
    ownerId: str = ""
    assignedTo: str = ""


class Invoice(FirestoreModel):
    date_fields: ClassVar[Tuple[str, ...]] = ("DateLimit", "paidAt")

    creator_id: str = ""
    contact_id: str = ""
    deal_id: str = ""
    Title: str = Field(default="", validation_alias=AliasChoices("Title", "title"))
    description: str = ""
    Notes: str = ""
    amount: float = 0
    totalPaid: float = 0
    Status: str = Field(default=InvoiceStatus.PENDING.value, validation_alias=AliasChoices("Status", "status"))
    DateLimit: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("DateLimit", "dateLimit"))
    paidAt: Optional[datetime] = None
    paymentUrl: str = ""
    paymentHistory: List[Dict[str, Any]] = Field(default_factory=list)
