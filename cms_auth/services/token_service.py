"""Access-token (JWT) and refresh-token issuance, validation and revocation."""

import calendar
import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import List, Tuple

import jwt
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import or_
from sqlalchemy.orm import Session

from cms_auth.config import settings
from cms_auth.exceptions import UnauthorizedError, ValidationError
from cms_auth.models.refresh_token import RefreshToken
from cms_auth.models.user import User
from cms_auth.schemas.auth import AccessTokenClaims
from cms_auth.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)

INVALID_REFRESH_TOKEN = "Invalid refresh token"

# Revocation reasons
REASON_ROTATED = "rotated"
REASON_LOGIN = "superseded-by-login"
REASON_LOGOUT = "logout"
REASON_REVOKED = "revoked"
REASON_PASSWORD_CHANGED = "password-changed"
REASON_PASSWORD_RESET = "password-reset"
REASON_REUSE_DETECTED = "reuse-detected"
REASON_DEACTIVATED = "account-deactivated"

REQUIRED_CLAIMS = ["sub", "email", "jti", "iss", "aud", "iat", "exp"]


class RefreshTokenReuseError(UnauthorizedError):
    """A refresh token that was already rotated has been presented again."""

    def __init__(self, user_id: str):
        super().__init__(INVALID_REFRESH_TOKEN)
        self.user_id = user_id


def _epoch(dt: datetime) -> int:
    return calendar.timegm(dt.utctimetuple())


class TokenService:
    """Issues signed access tokens and tracks opaque refresh tokens."""

    def __init__(self, db: Session = None, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.secret_key = settings.JWT_SECRET_KEY
        self.algorithm = settings.JWT_ALGORITHM
        self.issuer = settings.JWT_ISSUER
        self.audience = settings.JWT_AUDIENCE
        self.leeway = settings.JWT_LEEWAY_SECONDS
        self.access_token_lifetime = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.refresh_token_lifetime = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        self.refresh_token_bytes = settings.REFRESH_TOKEN_BYTES

    # ------------------------------------------------------------------
    # Access tokens
    # ------------------------------------------------------------------

    def create_access_token(self, user: User, allow_no_permissions: bool = False) -> Tuple[str, datetime]:
        """
        Mint a signed access token for a fully loaded user.

        Permission claims are a snapshot of the user's group at issuance.
        A user without a group is refused unless the caller explicitly asks
        for a token carrying no permissions.

        Returns:
            (encoded token, expiry as naive UTC)
        """
        group = user.user_group
        if group is None and not allow_no_permissions:
            raise ValidationError("User has no user group assigned")

        # A deactivated group carries neither a role nor permissions
        granting_group = group if group is not None and group.is_active else None

        now = self.clock()
        expires_at = now + self.access_token_lifetime

        claims = AccessTokenClaims(
            sub=user.id,
            email=user.email,
            name=user.full_name,
            jti=uuid.uuid4().hex,
            user_type=user.user_type,
            user_group_id=granting_group.id if granting_group is not None else None,
            user_group=granting_group.name if granting_group is not None else None,
            permissions=[int(code) for code in granting_group.permission_codes()] if granting_group is not None else [],
            iss=self.issuer,
            aud=self.audience,
            iat=_epoch(now),
            exp=_epoch(expires_at),
        )

        token = jwt.encode(claims.model_dump(mode="json"), self.secret_key, algorithm=self.algorithm)
        return token, expires_at

    def decode_access_token(self, token: str) -> AccessTokenClaims:
        """
        Validate signature, issuer, audience and expiry.

        Clock skew tolerance is JWT_LEEWAY_SECONDS (zero by default).
        """
        if not token:
            raise UnauthorizedError("Authentication required")
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                leeway=self.leeway,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError("Token has expired")
        except jwt.InvalidTokenError:
            raise UnauthorizedError("Invalid token")

        try:
            return AccessTokenClaims.model_validate(payload)
        except SchemaValidationError:
            logger.warning("Access token with a valid signature had an unexpected claim shape")
            raise UnauthorizedError("Invalid token")

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    def issue_refresh_token(self, user_id: str) -> RefreshToken:
        """Create and stage a new refresh token for the user."""
        now = self.clock()
        record = RefreshToken(
            id=str(uuid.uuid4()),
            user_id=user_id,
            token=secrets.token_urlsafe(self.refresh_token_bytes),
            created_at=now,
            expires_at=now + self.refresh_token_lifetime,
        )
        self.db.add(record)
        return record

    def get_active_refresh_token(self, token: str) -> RefreshToken:
        """
        Look up a refresh token and require it to be active.

        Raises:
            RefreshTokenReuseError: the token was already consumed by rotation
            UnauthorizedError: the token is unknown, expired or revoked
        """
        if not token:
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        record = self.db.query(RefreshToken).filter(RefreshToken.token == token).first()
        if record is None:
            logger.warning("Refresh attempted with an unknown token")
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        if record.is_revoked:
            if record.revoked_reason == REASON_ROTATED:
                logger.warning(f"Rotated refresh token presented again for user {record.user_id}")
                raise RefreshTokenReuseError(record.user_id)
            logger.info(f"Revoked refresh token presented for user {record.user_id} ({record.revoked_reason})")
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        if record.is_expired(self.clock()):
            logger.info(f"Expired refresh token presented for user {record.user_id}")
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        return record

    def rotate_refresh_token(self, record: RefreshToken) -> RefreshToken:
        """
        Consume ``record`` and stage its successor.

        The old row is revoked with a conditional update so that two
        concurrent rotations of the same token cannot both succeed.
        """
        successor = self.issue_refresh_token(record.user_id)
        updated = (
            self.db.query(RefreshToken)
            .filter(RefreshToken.id == record.id, RefreshToken.revoked_at.is_(None))
            .update(
                {
                    RefreshToken.revoked_at: self.clock(),
                    RefreshToken.revoked_reason: REASON_ROTATED,
                    RefreshToken.revoked_by: record.user_id,
                    RefreshToken.replaced_by_token_id: successor.id,
                },
                synchronize_session="fetch",
            )
        )
        if updated != 1:
            logger.warning(f"Refresh token for user {record.user_id} was consumed concurrently")
            raise RefreshTokenReuseError(record.user_id)
        return successor

    def active_tokens_for_user(self, user_id: str) -> List[RefreshToken]:
        now = self.clock()
        return (
            self.db.query(RefreshToken)
            .filter(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .with_for_update()
            .all()
        )

    def revoke_all_for_user(self, user_id: str, reason: str, revoked_by: str = None) -> int:
        """Revoke every active refresh token of the user; returns how many."""
        now = self.clock()
        count = 0
        for record in self.active_tokens_for_user(user_id):
            if record.revoke(reason, revoked_by=revoked_by, now=now):
                count += 1
        if count:
            logger.info(f"Revoked {count} refresh token(s) for user {user_id} ({reason})")
        return count

    def revoke_refresh_token(self, token: str, user_id: str, revoked_by: str = None) -> bool:
        """Revoke a single token owned by ``user_id``."""
        record = (
            self.db.query(RefreshToken)
            .filter(RefreshToken.token == token, RefreshToken.user_id == user_id)
            .first()
        )
        if record is None:
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)
        return record.revoke(REASON_REVOKED, revoked_by=revoked_by or user_id, now=self.clock())

    def purge_expired_tokens(self, older_than_days: int = None) -> int:
        """
        Delete refresh tokens that expired or were revoked before the cutoff.

        Intended for an external housekeeping job; nothing calls it in-process.
        """
        days = settings.REFRESH_TOKEN_RETENTION_DAYS if older_than_days is None else older_than_days
        cutoff = self.clock() - timedelta(days=days)
        deleted = (
            self.db.query(RefreshToken)
            .filter(or_(RefreshToken.expires_at < cutoff, RefreshToken.revoked_at < cutoff))
            .delete(synchronize_session=False)
        )
        logger.info(f"Purged {deleted} refresh token(s) older than {cutoff.isoformat()}")
        return deleted
