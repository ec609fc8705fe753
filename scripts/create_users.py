#!/usr/bin/env python3
"""
Script to create the first users of a company.

Registers a user (an admin by default) so a fresh deployment has someone who
can log in and create the rest of the team through the API. An existing user
with the same email keeps their password; only their role is updated.

Usage:
    python scripts/create_users.py --email admin@example.com --full-name "Admin User" --company-id acme [--role agent]

    Without --password the script prompts for one.
"""

import sys
import argparse
import getpass
from pathlib import Path
from typing import Dict, List, Optional

# Add parent directory to path to import config
sys.path.append(str(Path(__file__).parent.parent))

from config import get_firestore_client
from simple_auth import ROLES, SimpleAuth
import logging

logger = logging.getLogger(__name__)


def create_user(auth: SimpleAuth, email: str, password: str, full_name: str, company_id: str,
                role: str = "admin") -> Dict:
    """Register the user, or bring an existing user's role in line; returns a result dict"""
    existing = auth.get_user_by_email(email)
    if existing:
        if existing["company_id"] != company_id:
            return {"success": False, "error": f"{email} already belongs to company {existing['company_id']}"}
        if existing["role"] == role:
            logger.info(f"⏭️  User already exists: {email}")
            return {"success": True, "created": False, "user": existing}
        result = auth.update_user_role(existing["id"], role)
        if not result["success"]:
            return result
        logger.info(f"✅ Updated role for existing user: {email} -> {role}")
        return {"success": True, "created": False, "user": {**existing, "role": role}}

    result = auth.register(email, password, full_name, company_id, role=role)
    if not result["success"]:
        logger.error(f"❌ Failed to create user {email}: {result['error']}")
        return result
    logger.info(f"✅ Created {role} user: {result['user']['email']} (company: {company_id})")
    return {"success": True, "created": True, "user": result["user"]}


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description='Create a user for a company (admin by default)',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # First admin of a company (prompts for the password):
  python scripts/create_users.py --email admin@acme.com --full-name "Acme Admin" --company-id acme

  # An agent:
  python scripts/create_users.py --email agent@acme.com --full-name "Agent" --company-id acme --role agent --password s3cret-pass
        """
    )
    parser.add_argument('--email', required=True, help='Login email')
    parser.add_argument('--full-name', required=True, help='Display name')
    parser.add_argument('--company-id', required=True, help='Company the user belongs to')
    parser.add_argument('--role', choices=ROLES, default='admin', help='User role (default: admin)')
    parser.add_argument('--password', default=None, help='Password (prompted when omitted)')

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    password = args.password or getpass.getpass(f"Password for {args.email}: ")

    try:
        auth = SimpleAuth(get_firestore_client())
        result = create_user(auth, args.email, password, args.full_name, args.company_id, role=args.role)
    except Exception as e:
        logger.error(f"❌ Fatal error: {e}")
        return 1

    if not result["success"]:
        logger.error(f"❌ {result['error']}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
