"""Delete refresh tokens that expired or were revoked long ago.

Meant to run from cron or a scheduled job; the service itself never purges.

Usage:
    python scripts/purge_refresh_tokens.py [older_than_days]
"""

import sys
import os
import logging

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cms_auth.config import settings
from cms_auth.database import SessionLocal
from cms_auth.services.token_service import TokenService

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def purge(older_than_days: int = None) -> int:
    db = SessionLocal()
    try:
        deleted = TokenService(db).purge_expired_tokens(older_than_days)
        db.commit()
        return deleted
    except Exception as e:
        logger.error(f"Refresh token purge failed: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    days = int(sys.argv[1]) if len(sys.argv) > 1 else settings.REFRESH_TOKEN_RETENTION_DAYS
    count = purge(days)
    print(f"Deleted {count} refresh token(s) older than {days} day(s)")
