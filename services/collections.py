"""
Firestore collection names and shared field names
"""

CONTACTS = "contacts"
LEADS = "leads"
DEALS = "deals"
PROPERTIES = "properties"
INVOICES = "invoices"
MEETINGS = "meetings"
TODOS = "todos"
ATTENDANCE = "attendees"
APPLICATIONS = "applications"
HISTORY = "history"
USERS = "users"

# Collections holding soft-deletable CRM records
CRM_COLLECTIONS = [
    CONTACTS,
    LEADS,
    DEALS,
    PROPERTIES,
    INVOICES,
    MEETINGS,
    TODOS,
    ATTENDANCE,
    APPLICATIONS,
]

COMPANY_FIELD = "company_id"
CREATED_AT = "createdAt"
UPDATED_AT = "updatedAt"
IS_DELETED = "isDeleted"
DELETED_AT = "deletedAt"
