"""Seed script to create (or reset) the administrator account.

The account is placed in the "Admin" group, which is granted every permission
in the catalog. A generated password is printed once; change it after first
use.

Usage:
    python scripts/seed_admin.py admin@example.com [First] [Last]
"""

import sys
import os
import uuid

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cms_auth.database import SessionLocal, init_db
from cms_auth.models.enums import LifecycleStatus, UserType
from cms_auth.models.user import User, normalize_email
from cms_auth.services.catalog_service import CatalogService
from cms_auth.services.password_service import PasswordService
from cms_auth.services.token_service import REASON_PASSWORD_RESET, TokenService
from cms_auth.utils.clock import utcnow

ADMIN_GROUP = "Admin"


def seed_admin(email: str, first_name: str = "System", last_name: str = "Administrator"):
    """Create or update the administrator account."""
    init_db()
    db = SessionLocal()
    passwords = PasswordService()

    try:
        catalog = CatalogService(db)
        catalog.seed_permissions()
        admin_group = catalog.grant_all(catalog.ensure_group(ADMIN_GROUP))

        password = passwords.generate_password()
        password_hash = passwords.hash(password)
        now = utcnow()

        email = normalize_email(email)
        user = db.query(User).filter(User.email == email).first()
        if user:
            user.update_password(password_hash, now=now)
            user.activate(now=now)
            TokenService(db).revoke_all_for_user(user.id, reason=REASON_PASSWORD_RESET)
            action = "UPDATED"
        else:
            user = User(
                id=str(uuid.uuid4()),
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                user_type=UserType.CORPORATE.value,
                status=LifecycleStatus.ACTIVE.value,
                email_confirmed=True,
                two_factor_enabled=False,
                created_at=now,
                updated_at=now,
            )
            db.add(user)
            action = "CREATED"

        user.assign_group(admin_group, now=now)
        db.commit()

        print("=" * 70)
        print(f"ADMIN ACCOUNT {action}")
        print("=" * 70)
        print(f"Email:       {email}")
        print(f"Password:    {password}")
        print(f"Group:       {admin_group.name}")
        print(f"Permissions: {len(admin_group.permissions)}")
        print("=" * 70)
        print("\nWARNING: Change this password after first sign-in!")

    except Exception as e:
        print(f"ERROR: Failed to seed admin account: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    seed_admin(*sys.argv[1:4])
