"""
FastAPI Backend for the real-estate CRM
Company-scoped CRUD, listings and workflows over Firestore collections
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from time import time
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from pydantic import BaseModel, Field, ValidationError

from config import settings, get_firestore_client
from models.base import FirestoreModel, to_datetime
from models.enums import EntityType, HistoryAction
from services.analytics_service import AnalyticsService
from services.application_service import ApplicationService
from services.attendance_service import AttendanceService
from services.contact_service import ContactService
from services.deal_service import DealService
from services.firestore_service import DocumentNotFoundError, FirestoreRepository
from services.history_service import HistoryService
from services.invoice_service import InvoiceService
from services.lead_service import LeadService
from services.meeting_service import MeetingService
from services.property_service import PropertyService
from services.query_filters import Equals, parse_sort
from services.todo_service import TodoService
from simple_auth import SimpleAuth

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Initialize Firestore-backed services
try:
    db = get_firestore_client()
    logger.info("Firestore client initialized")
except Exception as e:
    logger.warning(f"Failed to initialize Firestore client: {e}")
    db = None

SERVICES: Dict[str, FirestoreRepository] = {}
analytics_service: Optional[AnalyticsService] = None
simple_auth: Optional[SimpleAuth] = None

if db is not None:
    try:
        SERVICES = {
            "contacts": ContactService(db),
            "leads": LeadService(db),
            "deals": DealService(db),
            "properties": PropertyService(db),
            "invoices": InvoiceService(db),
            "meetings": MeetingService(db),
            "todos": TodoService(db),
            "attendance": AttendanceService(db),
            "applications": ApplicationService(db),
            "history": HistoryService(db),
        }
        logger.info(f"Entity services initialized: {', '.join(SERVICES)}")
    except Exception as e:
        logger.warning(f"Failed to initialize entity services: {e}")
        SERVICES = {}

    try:
        analytics_service = AnalyticsService(db)
        logger.info("Analytics service initialized")
    except Exception as e:
        logger.warning(f"Failed to initialize analytics service: {e}")

    try:
        simple_auth = SimpleAuth(db)
        logger.info("Auth service initialized")
    except Exception as e:
        logger.warning(f"Failed to initialize auth service: {e}")

# History entity type recorded for each collection
ENTITY_TYPES = {
    "contacts": EntityType.CONTACT.value,
    "leads": EntityType.LEAD.value,
    "deals": EntityType.DEAL.value,
    "properties": EntityType.PROPERTY.value,
    "invoices": EntityType.INVOICE.value,
    "meetings": EntityType.MEETING.value,
    "todos": EntityType.TODO.value,
    "attendance": "Attendance",
    "applications": "Application",
}

# Entities whose create goes through a validating service method
CREATORS = {
    "invoices": "create_invoice",
    "meetings": "schedule_meeting",
    "todos": "create_todo",
    "attendance": "create_attendance_record",
    "applications": "create_application",
}

# The audit trail is append-only through the API
READ_ONLY = {"history"}

NOTE_ENTITIES = {"leads", "contacts", "deals"}

# Analytics cache (key: company id, value: (data, timestamp))
_analytics_cache: Dict[str, tuple] = {}


def _cleanup_cache(cache: Dict[str, tuple], ttl: int, max_entries: int = 100) -> None:
    """Remove expired and excess cache entries to prevent memory issues"""
    now = time()
    expired_keys = [k for k, (_, ts) in cache.items() if now - ts > ttl]
    for k in expired_keys:
        del cache[k]
    if len(cache) > max_entries:
        sorted_keys = sorted(cache.keys(), key=lambda k: cache[k][1])
        for k in sorted_keys[:len(cache) - max_entries]:
            del cache[k]


def invalidate_analytics_cache(company_id: str) -> None:
    _analytics_cache.pop(company_id, None)


def jsonable(obj):
    """Convert models, Decimals, datetimes and unresolved sentinels to JSON-safe values"""
    if isinstance(obj, FirestoreModel):
        return obj.to_json()
    if obj is firestore.SERVER_TIMESTAMP:
        return None
    if isinstance(obj, Decimal):
        return int(obj) if obj % 1 == 0 else float(obj)
    if isinstance(obj, datetime):
        # Firestore DatetimeWithNanoseconds inherits from datetime
        return obj.isoformat()
    if isinstance(obj, dict):
        return {key: jsonable(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [jsonable(item) for item in obj]
    return obj


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    print("🚀 Starting CRM Backend...")
    if db is not None:
        print(f"✅ Firestore client initialized ({type(db).__name__})")
    else:
        print("⚠️  Firestore client not initialized")
    print(f"✅ {len(SERVICES)} entity services ready" if SERVICES else "⚠️  Entity services not initialized")
    if simple_auth is None:
        print("⚠️  Auth service not initialized")

    yield

    print("🛑 Shutting down CRM Backend...")


app = FastAPI(
    title="Real Estate CRM API",
    description="Multi-tenant CRM data API backed by Firestore",
    version="1.0.0",
    lifespan=lifespan
)

allowed_origins = list(dict.fromkeys(settings.CORS_ORIGINS))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info(f"CORS allowed origins: {allowed_origins}")


def _cors_headers(request: Request) -> Dict[str, str]:
    origin = request.headers.get("origin")
    if origin and origin in allowed_origins:
        return {"Access-Control-Allow-Origin": origin, "Access-Control-Allow-Credentials": "true"}
    if not origin:
        # Non-browser clients
        return {"Access-Control-Allow-Origin": "*"}
    return {}


# Exception handlers to ensure CORS headers are included in error responses
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=_cors_headers(request))


@app.exception_handler(ValueError)
async def validation_exception_handler(request: Request, exc: ValueError):
    logger.warning(f"Rejected request {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)}, headers=_cors_headers(request))


@app.exception_handler(DocumentNotFoundError)
async def not_found_exception_handler(request: Request, exc: DocumentNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)}, headers=_cors_headers(request))


@app.exception_handler(gcp_exceptions.NotFound)
async def store_not_found_exception_handler(request: Request, exc: gcp_exceptions.NotFound):
    return JSONResponse(status_code=404, content={"detail": "Document not found"}, headers=_cors_headers(request))


@app.exception_handler(gcp_exceptions.ServiceUnavailable)
@app.exception_handler(gcp_exceptions.DeadlineExceeded)
async def store_unavailable_exception_handler(request: Request, exc: gcp_exceptions.GoogleAPICallError):
    logger.error(f"Firestore unavailable for {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Database temporarily unavailable"}, headers=_cors_headers(request))


@app.exception_handler(ValidationError)
async def model_validation_exception_handler(request: Request, exc: ValidationError):
    """A model failing to validate is a server fault, not a bad request"""
    logger.error(f"Model validation failed for {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"}, headers=_cors_headers(request))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler that ensures CORS headers are always present"""
    logger.error(f"Unhandled exception: {type(exc).__name__}: {str(exc)}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"}, headers=_cors_headers(request))


# Simple authentication dependency
security = HTTPBearer()


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Get current user from JWT token"""
    if simple_auth is None:
        raise HTTPException(status_code=503, detail="Authentication not available")

    result = simple_auth.get_user(credentials.credentials)
    if not result["success"]:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=result["error"],
        )
    return result["user"]


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get('role') != 'admin':
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


# Request bodies
class LoginRequest(BaseModel):
    email: str
    password: str


class CreateUserRequest(BaseModel):
    email: str
    password: str
    full_name: str
    role: str = "agent"


class StatusUpdate(BaseModel):
    status: str
    extra: Dict[str, Any] = Field(default_factory=dict)


class BatchRequest(BaseModel):
    operations: List[Dict[str, Any]]


class NoteRequest(BaseModel):
    text: str


class PaymentRequest(BaseModel):
    amount: float
    method: Optional[str] = None
    reference: str = ""
    notes: str = ""
    paymentDate: Optional[datetime] = None


class RecurringMeetingRequest(BaseModel):
    meeting: Dict[str, Any]
    recurrenceType: str
    count: int = 10


class CancelRequest(BaseModel):
    reason: str = ""


class BulkStatusRequest(BaseModel):
    ids: List[str]
    status: str


class LeadImportRequest(BaseModel):
    rows: List[Dict[str, Any]]


# Helpers

def get_service(entity: str) -> FirestoreRepository:
    if not SERVICES:
        raise HTTPException(status_code=503, detail="Firestore not available")
    service = SERVICES.get(entity)
    if service is None:
        raise HTTPException(status_code=404, detail=f"Unknown entity: {entity}")
    return service


def _writable(entity: str) -> FirestoreRepository:
    if entity in READ_ONLY:
        raise HTTPException(status_code=405, detail=f"{entity} cannot be modified through the API")
    return get_service(entity)


def _coerce_dates(service: FirestoreRepository, data: Dict[str, Any]) -> Dict[str, Any]:
    """Parse ISO strings in the model's date fields so range queries match"""
    payload = dict(data or {})
    for field in service.model.date_fields:
        if isinstance(payload.get(field), str):
            payload[field] = to_datetime(payload[field])
    return payload


def _record_history(entity: str, action: str, doc_id: str, user: Dict[str, Any], details: Optional[Dict] = None) -> None:
    """Best-effort audit entry; a failed log never fails the request"""
    history = SERVICES.get("history")
    if history is None or entity not in ENTITY_TYPES:
        return
    try:
        history.log_activity({
            "action": action,
            "entityType": ENTITY_TYPES[entity],
            "entityId": doc_id,
            "company_id": user["company_id"],
            "description": f"{action} {ENTITY_TYPES[entity]}",
            "details": jsonable(details or {}),
            "performedBy": user.get("id", ""),
            "performedByName": user.get("full_name", ""),
        })
    except Exception as e:
        logger.warning(f"Failed to record history for {entity}/{doc_id}: {e}")


def _changed(entity: str, user: Dict[str, Any], action: str, doc_id: str, details: Optional[Dict] = None) -> None:
    invalidate_analytics_cache(user["company_id"])
    _record_history(entity, action, doc_id, user, details)


def _owned(entity: str, doc_id: str, user: Dict[str, Any]) -> FirestoreRepository:
    """Return the entity's service after checking the caller's company owns doc_id"""
    service = _writable(entity)
    service.scoped(user["company_id"]).require(doc_id)
    return service


# API Routes

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Real Estate CRM API",
        "version": "1.0.0",
        "status": "running",
        "entities": list(SERVICES),
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "firestore": "ready" if db is not None else "not initialized",
        "services": "ready" if SERVICES else "not initialized",
        "analytics_service": "ready" if analytics_service else "not initialized",
        "auth": "ready" if simple_auth else "not initialized",
    }


# Simple Authentication Endpoints
@app.post("/api/auth/login")
async def login(body: LoginRequest):
    """
    Login with email and password.
    Returns JWT token for authenticated requests.
    """
    if simple_auth is None:
        raise HTTPException(status_code=503, detail="Authentication not available")
    if not body.email or not body.password:
        return JSONResponse(content={"success": False, "error": "Email and password are required"}, status_code=400)

    result = simple_auth.login(body.email, body.password)
    return JSONResponse(content=jsonable(result), status_code=200 if result.get("success") else 401)


@app.get("/api/auth/profile")
async def get_profile(current_user: Dict[str, Any] = Depends(get_current_user)):
    return JSONResponse(content={"success": True, "user": current_user})


@app.post("/api/auth/users")
async def create_user(body: CreateUserRequest, admin: Dict[str, Any] = Depends(require_admin)):
    """Create a user in the admin's company"""
    result = simple_auth.register(body.email, body.password, body.full_name, admin["company_id"], role=body.role)
    if not result["success"]:
        return JSONResponse(content=result, status_code=400)
    return JSONResponse(content=jsonable({"success": True, "user": result["user"]}), status_code=201)


# Analytics
@app.get("/api/analytics/dashboard")
async def get_dashboard(current_user: Dict[str, Any] = Depends(get_current_user)):
    """Company dashboard statistics. Cached briefly per company."""
    if not analytics_service:
        raise HTTPException(status_code=503, detail="Analytics not available")

    company_id = current_user["company_id"]
    now = time()
    if company_id in _analytics_cache:
        cached_data, cached_time = _analytics_cache[company_id]
        if now - cached_time < settings.ANALYTICS_CACHE_TTL:
            logger.info(f"📊 Returning cached dashboard for {company_id} (age: {now - cached_time:.1f}s)")
            return JSONResponse(content=cached_data)

    response_data = {"success": True, "dashboard": jsonable(analytics_service.get_dashboard(company_id))}
    _analytics_cache[company_id] = (response_data, now)
    _cleanup_cache(_analytics_cache, settings.ANALYTICS_CACHE_TTL)
    return JSONResponse(content=response_data)


# History
@app.get("/api/history/feed")
async def get_activity_feed(
    entity_types: Optional[str] = None,
    user_ids: Optional[str] = None,
    limit: int = 10,
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    """Recent activity, optionally filtered by comma-separated entity types and user ids"""
    history: HistoryService = get_service("history")
    entries = history.get_activity_feed(
        current_user["company_id"],
        entity_types=[t.strip() for t in (entity_types or "").split(",") if t.strip()],
        user_ids=[u.strip() for u in (user_ids or "").split(",") if u.strip()],
        limit=max(1, min(limit, settings.MAX_PAGE_SIZE)),
    )
    return JSONResponse(content={"success": True, "items": jsonable(entries)})


# Leads
@app.post("/api/leads/import")
async def import_leads(body: LeadImportRequest, current_user: Dict[str, Any] = Depends(get_current_user)):
    leads: LeadService = _writable("leads")
    result = leads.import_leads(current_user["company_id"], body.rows)
    invalidate_analytics_cache(current_user["company_id"])
    return JSONResponse(content={"success": True, **jsonable(result)})


@app.post("/api/leads/{lead_id}/convert")
async def convert_lead(lead_id: str, current_user: Dict[str, Any] = Depends(get_current_user)):
    """Turn a lead into a contact"""
    leads: LeadService = _owned("leads", lead_id, current_user)
    contacts: ContactService = get_service("contacts")
    contact = leads.convert_to_contact(lead_id, contacts)
    _changed("leads", current_user, HistoryAction.STATUS_CHANGED.value, lead_id, {"convertedToContactId": contact["id"]})
    return JSONResponse(content={"success": True, "contact": jsonable(contacts.get_by_id(contact["id"]))}, status_code=201)


@app.post("/api/{entity}/{doc_id}/notes")
async def add_note(entity: str, doc_id: str, body: NoteRequest, current_user: Dict[str, Any] = Depends(get_current_user)):
    if entity not in NOTE_ENTITIES:
        raise HTTPException(status_code=404, detail=f"{entity} do not take notes")
    if not body.text.strip():
        raise ValueError("Note text is required")
    service = _owned(entity, doc_id, current_user)
    record = service.add_note(doc_id, body.text.strip(), current_user)
    _record_history(entity, HistoryAction.COMMENT_ADDED.value, doc_id, current_user, {"note": body.text.strip()})
    return JSONResponse(content={"success": True, "item": jsonable(record)})


# Invoices
@app.post("/api/invoices/{invoice_id}/payments")
async def add_payment(invoice_id: str, body: PaymentRequest, current_user: Dict[str, Any] = Depends(get_current_user)):
    invoices: InvoiceService = _owned("invoices", invoice_id, current_user)
    invoice = invoices.add_payment(invoice_id, body.model_dump(exclude_none=True))
    _changed("invoices", current_user, HistoryAction.PAYMENT_RECEIVED.value, invoice_id, {"amount": body.amount})
    return JSONResponse(content={"success": True, "item": jsonable(invoice)})


# Meetings
@app.post("/api/meetings/recurring")
async def create_recurring_meetings(body: RecurringMeetingRequest, current_user: Dict[str, Any] = Depends(get_current_user)):
    meetings: MeetingService = _writable("meetings")
    data = {**body.meeting, "company_id": current_user["company_id"]}
    data.setdefault("organizerId", current_user.get("id", ""))
    ids = meetings.create_recurring_meetings(data, body.recurrenceType, body.count)
    _changed("meetings", current_user, HistoryAction.MEETING_SCHEDULED.value, ids[0], {"count": len(ids)})
    return JSONResponse(content={"success": True, "ids": ids}, status_code=201)


@app.post("/api/meetings/{meeting_id}/attendees")
async def add_attendee(meeting_id: str, attendee: Dict[str, Any] = Body(...),
                       current_user: Dict[str, Any] = Depends(get_current_user)):
    meetings: MeetingService = _owned("meetings", meeting_id, current_user)
    meeting = meetings.add_attendee(meeting_id, attendee)
    return JSONResponse(content={"success": True, "item": jsonable(meeting)})


@app.delete("/api/meetings/{meeting_id}/attendees/{attendee_id}")
async def remove_attendee(meeting_id: str, attendee_id: str, current_user: Dict[str, Any] = Depends(get_current_user)):
    meetings: MeetingService = _owned("meetings", meeting_id, current_user)
    meeting = meetings.remove_attendee(meeting_id, attendee_id)
    return JSONResponse(content={"success": True, "item": jsonable(meeting)})


@app.post("/api/meetings/{meeting_id}/cancel")
async def cancel_meeting(meeting_id: str, body: CancelRequest, current_user: Dict[str, Any] = Depends(get_current_user)):
    meetings: MeetingService = _owned("meetings", meeting_id, current_user)
    meeting = meetings.cancel(meeting_id, body.reason)
    _changed("meetings", current_user, HistoryAction.STATUS_CHANGED.value, meeting_id, {"status": meeting.status})
    return JSONResponse(content={"success": True, "item": jsonable(meeting)})


# Todos
@app.post("/api/todos/{todo_id}/complete")
async def complete_todo(todo_id: str, current_user: Dict[str, Any] = Depends(get_current_user)):
    todos: TodoService = _owned("todos", todo_id, current_user)
    todo = todos.mark_as_completed(todo_id, current_user)
    _changed("todos", current_user, HistoryAction.STATUS_CHANGED.value, todo_id, {"status": todo.status})
    return JSONResponse(content={"success": True, "item": jsonable(todo)})


# Applications
@app.post("/api/applications/bulk-status")
async def bulk_update_application_status(body: BulkStatusRequest, current_user: Dict[str, Any] = Depends(get_current_user)):
    applications: ApplicationService = _writable("applications")
    scoped = applications.scoped(current_user["company_id"])
    for application_id in body.ids:
        scoped.require(application_id)
    updated = applications.bulk_update_status(body.ids, body.status)
    invalidate_analytics_cache(current_user["company_id"])
    return JSONResponse(content={"success": True, "updated": updated})


# Generic entity routes

@app.get("/api/{entity}")
async def list_entities(
    entity: str,
    page: int = 1,
    page_size: Optional[int] = None,
    include_deleted: bool = False,
    sort: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    """List one page of the caller's company records"""
    service = get_service(entity)
    page_size = max(1, min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE))
    filters = []
    if status_filter:
        if not service.status_field:
            raise ValueError(f"{entity} have no status field")
        filters.append(Equals(service.status_field, status_filter))

    result = service.scoped(current_user["company_id"]).get_paginated(
        filters,
        page=page,
        page_size=page_size,
        order_by=parse_sort(sort) or None,
        include_deleted=include_deleted,
    )
    return JSONResponse(content={"success": True, **jsonable(result)})


@app.post("/api/{entity}")
async def create_entity(entity: str, data: Dict[str, Any] = Body(...),
                        current_user: Dict[str, Any] = Depends(get_current_user)):
    service = _writable(entity)
    company_id = current_user["company_id"]
    payload = _coerce_dates(service, data)

    if entity in CREATORS:
        created = getattr(service, CREATORS[entity])({**payload, "company_id": company_id})
    else:
        created = service.scoped(company_id).create(payload)

    _changed(entity, current_user, HistoryAction.CREATED.value, created["id"])
    return JSONResponse(content={"success": True, "item": jsonable(service.get_by_id(created["id"]))}, status_code=201)


@app.post("/api/{entity}/batch")
async def batch_entities(entity: str, body: BatchRequest, current_user: Dict[str, Any] = Depends(get_current_user)):
    """Apply create/update/delete operations atomically"""
    service = _writable(entity)
    operations = [
        {**op, "data": _coerce_dates(service, op["data"])} if isinstance(op.get("data"), dict) else op
        for op in body.operations
    ]
    service.scoped(current_user["company_id"]).batch_write(operations)
    invalidate_analytics_cache(current_user["company_id"])
    return JSONResponse(content={"success": True, "count": len(operations)})


@app.get("/api/{entity}/{doc_id}")
async def get_entity(entity: str, doc_id: str, current_user: Dict[str, Any] = Depends(get_current_user)):
    record = get_service(entity).scoped(current_user["company_id"]).require(doc_id)
    return JSONResponse(content={"success": True, "item": jsonable(record)})


@app.put("/api/{entity}/{doc_id}")
async def update_entity(entity: str, doc_id: str, data: Dict[str, Any] = Body(...),
                        current_user: Dict[str, Any] = Depends(get_current_user)):
    service = _writable(entity)
    record = service.scoped(current_user["company_id"]).update(doc_id, _coerce_dates(service, data))
    _changed(entity, current_user, HistoryAction.UPDATED.value, doc_id, {"fields": sorted(data)})
    return JSONResponse(content={"success": True, "item": jsonable(record)})


@app.delete("/api/{entity}/{doc_id}")
async def delete_entity(entity: str, doc_id: str, hard: bool = False,
                        current_user: Dict[str, Any] = Depends(get_current_user)):
    """Soft-delete by default; hard=true permanently removes the document (admins only)"""
    scoped = _writable(entity).scoped(current_user["company_id"])
    if hard:
        if current_user.get("role") != "admin":
            raise HTTPException(status_code=403, detail="Admin access required for permanent deletion")
        scoped.delete(doc_id)
    else:
        scoped.soft_delete(doc_id)
    _changed(entity, current_user, HistoryAction.DELETED.value, doc_id, {"hard": hard})
    return JSONResponse(content={"success": True, "id": doc_id, "hard": hard})


@app.post("/api/{entity}/{doc_id}/restore")
async def restore_entity(entity: str, doc_id: str, current_user: Dict[str, Any] = Depends(get_current_user)):
    record = _writable(entity).scoped(current_user["company_id"]).restore(doc_id)
    _changed(entity, current_user, HistoryAction.RESTORED.value, doc_id)
    return JSONResponse(content={"success": True, "item": jsonable(record)})


@app.put("/api/{entity}/{doc_id}/status")
async def update_entity_status(entity: str, doc_id: str, body: StatusUpdate,
                               current_user: Dict[str, Any] = Depends(get_current_user)):
    service = _writable(entity)
    scoped = service.scoped(current_user["company_id"])
    previous = getattr(scoped.require(doc_id), service._require_status_field(), None)
    record = scoped.update_status(doc_id, body.status, _coerce_dates(service, body.extra))
    _changed(entity, current_user, HistoryAction.STATUS_CHANGED.value, doc_id,
             {"oldStatus": previous, "newStatus": body.status})
    return JSONResponse(content={"success": True, "item": jsonable(record)})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
