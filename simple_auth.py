"""
Simple Authentication System
Register, login and token verification for CRM users stored in Firestore.

Every flow returns a result dict ({"success": bool, ...}) instead of raising,
so callers check "success" and surface "error" to the client.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import bcrypt
from google.cloud.firestore import FieldFilter
from jose import JWTError, jwt

from config import settings, get_firestore_client
from services.collections import USERS

logger = logging.getLogger(__name__)

ROLES = ("admin", "agent")


class SimpleAuth:
    """Simple authentication class"""

    def __init__(self, db=None):
        self.db = db if db is not None else get_firestore_client()
        self.users = self.db.collection(USERS)

    def hash_password(self, password: str) -> str:
        """Hash a password"""
        password_bytes = password.encode('utf-8')
        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(password_bytes, salt)
        return hashed.decode('utf-8')

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password"""
        if not hashed_password:
            return False
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))

    def create_token(self, user_id: str, email: str, company_id: str) -> str:
        """Create JWT token"""
        expire = datetime.now(timezone.utc) + timedelta(days=settings.JWT_TTL_DAYS)
        data = {
            "sub": user_id,
            "email": email,
            "company_id": company_id,
            "exp": expire
        }
        return jwt.encode(data, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    def verify_token(self, token: str) -> Optional[Dict]:
        """Verify JWT token, returning its claims or None"""
        try:
            return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        except JWTError as e:
            logger.warning(f"Rejected token: {e}")
            return None

    def _find_by_email(self, email: str) -> Optional[Dict]:
        docs = list(self.users.where(filter=FieldFilter("email", "==", email)).limit(1).stream())
        if not docs:
            return None
        return {"id": docs[0].id, **docs[0].to_dict()}

    def _public(self, user: Dict) -> Dict:
        return {
            "id": user['id'],
            "email": user['email'],
            "full_name": user.get('full_name', ''),
            "role": user.get('role', 'agent'),
            "company_id": user.get('company_id', ''),
        }

    def _session(self, user: Dict, message: str) -> Dict:
        token = self.create_token(user['id'], user['email'], user.get('company_id', ''))
        return {
            "success": True,
            "message": message,
            "user": self._public(user),
            "tokens": {
                "access_token": token,
                "refresh_token": token,
                "token_type": "bearer"
            }
        }

    def register(self, email: str, password: str, full_name: str, company_id: str, role: str = "agent") -> Dict:
        """Register a user inside a company. New users are agents unless a role is given."""
        email = (email or "").strip().lower()
        if not email:
            return {"success": False, "error": "Email is required"}
        if not company_id:
            return {"success": False, "error": "Company ID is required"}
        if len(password or "") < 8:
            return {"success": False, "error": "Password must be at least 8 characters"}
        if not full_name or not full_name.strip():
            return {"success": False, "error": "Full name is required"}
        if role not in ROLES:
            return {"success": False, "error": f"Invalid role: {role}"}

        try:
            if self._find_by_email(email):
                return {"success": False, "error": "Email already registered"}

            doc_ref = self.users.document()
            user = {
                "email": email,
                "password": self.hash_password(password),
                "full_name": full_name.strip(),
                "role": role,
                "company_id": company_id,
                "is_active": True,
                "created_at": datetime.now(timezone.utc),
            }
            doc_ref.set(user)
        except Exception as e:
            logger.error(f"Failed to register {email}: {e}")
            return {"success": False, "error": "Registration failed"}

        logger.info(f"New {role} registered: {email} (ID: {doc_ref.id}, company: {company_id})")
        return self._session({"id": doc_ref.id, **user}, "Account created successfully")

    def login(self, email: str, password: str) -> Dict:
        """
        Login user with email and password.
        Returns JWT token for authenticated requests.
        """
        email = (email or "").strip().lower()

        try:
            user = self._find_by_email(email)
        except Exception as e:
            logger.error(f"Failed to look up user {email}: {e}")
            return {"success": False, "error": "Login failed"}

        if not user:
            logger.warning(f"Login attempt with non-existent email: {email}")
            return {"success": False, "error": "Invalid email or password"}

        if user.get('is_active') is False:
            logger.warning(f"Login attempt for inactive user: {email}")
            return {"success": False, "error": "Account is inactive. Please contact administrator."}

        if not self.verify_password(password or "", user.get('password', '')):
            logger.warning(f"Failed login attempt for: {email}")
            return {"success": False, "error": "Invalid email or password"}

        logger.info(f"User logged in: {email} (ID: {user['id']}, Role: {user.get('role', 'agent')})")
        return self._session(user, "Login successful")

    def get_user(self, token: str) -> Dict:
        """Get user from token"""
        payload = self.verify_token(token)
        if not payload:
            return {"success": False, "error": "Invalid token"}

        user_id = payload.get('sub')
        if not user_id:
            return {"success": False, "error": "Invalid token"}

        try:
            snapshot = self.users.document(user_id).get()
        except Exception as e:
            logger.error(f"Failed to load user {user_id}: {e}")
            return {"success": False, "error": "User lookup failed"}

        if not snapshot.exists:
            return {"success": False, "error": "User not found"}

        user = {"id": snapshot.id, **snapshot.to_dict()}
        if user.get('is_active') is False:
            return {"success": False, "error": "Account is inactive"}
        if not user.get('company_id'):
            return {"success": False, "error": "User has no company"}

        return {"success": True, "user": self._public(user)}

    def get_user_by_email(self, email: str) -> Optional[Dict]:
        """Public profile of the user with this email, or None"""
        user = self._find_by_email((email or "").strip().lower())
        return self._public(user) if user else None

    def update_user_role(self, user_id: str, role: str) -> Dict:
        """Change a user's role"""
        if role not in ROLES:
            return {"success": False, "error": f"Invalid role: {role}"}
        doc_ref = self.users.document(user_id)
        if not doc_ref.get().exists:
            return {"success": False, "error": "User not found"}
        doc_ref.update({"role": role})
        logger.info(f"Updated role for user {user_id} -> {role}")
        return {"success": True, "user_id": user_id, "role": role}

    def is_admin(self, user_id: str) -> bool:
        """Check if user is admin"""
        snapshot = self.users.document(user_id).get()
        return snapshot.exists and snapshot.to_dict().get('role') == 'admin'
