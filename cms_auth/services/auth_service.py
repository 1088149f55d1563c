"""Authentication flows: register, login, refresh, logout and password changes."""

import logging
import uuid
from contextlib import contextmanager
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cms_auth.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from cms_auth.models.enums import LifecycleStatus, UserType
from cms_auth.models.login_log import UserLoginLog
from cms_auth.models.user import User, normalize_email
from cms_auth.schemas.auth import AuthResponse, RegisterRequest, UpdateProfileRequest
from cms_auth.schemas.user import UserResponse
from cms_auth.services.catalog_service import CatalogService
from cms_auth.services.notification_service import LoggingNotificationService, NotificationService
from cms_auth.services.password_service import PasswordService
from cms_auth.services.token_service import (
    INVALID_REFRESH_TOKEN,
    REASON_LOGIN,
    REASON_LOGOUT,
    REASON_PASSWORD_CHANGED,
    REASON_PASSWORD_RESET,
    REASON_REUSE_DETECTED,
    RefreshTokenReuseError,
    TokenService,
)
from cms_auth.utils.client_info import ClientInfo
from cms_auth.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)

# Every credential failure surfaces with this exact message
INVALID_CREDENTIALS = "Invalid email or password"


class AuthService:
    """
    Coordinates the credential and token flows.

    Each public method is one unit of work: changes are committed once at
    the end, and any exception rolls the session back before propagating.
    """

    def __init__(
        self,
        db: Session,
        passwords: PasswordService = None,
        tokens: TokenService = None,
        notifications: NotificationService = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.clock = clock
        self.passwords = passwords or PasswordService()
        self.tokens = tokens or TokenService(db, clock=clock)
        self.notifications = notifications or LoggingNotificationService()
        self.catalog = CatalogService(db, clock=clock)

    @contextmanager
    def _transaction(self):
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(self, request: RegisterRequest, user_type: UserType = None) -> AuthResponse:
        """Create an account in the default group for its type and sign it in."""
        user_type = UserType(user_type or request.user_type)
        email = normalize_email(request.email)
        self.passwords.validate_strength(request.password)
        password_hash = self.passwords.hash(request.password)

        with self._transaction():
            if self._find_by_email(email) is not None:
                logger.warning(f"Registration rejected, email already in use: {email}")
                raise ConflictError("User with this email already exists")

            group = self.catalog.ensure_group(user_type.value)
            now = self.clock()
            user = User(
                id=str(uuid.uuid4()),
                email=email,
                password_hash=password_hash,
                first_name=request.first_name.strip(),
                last_name=(request.last_name or "").strip(),
                phone_number=request.phone_number,
                user_type=user_type.value,
                status=LifecycleStatus.ACTIVE.value,
                email_confirmed=False,
                two_factor_enabled=False,
                created_at=now,
                updated_at=now,
            )
            user.assign_group(group, now=now)
            self.db.add(user)
            try:
                self.db.flush()
            except IntegrityError:
                raise ConflictError("User with this email already exists")

            response = self._issue_pair(user)

        logger.info(f"User registered: {email} ({user_type.value})")
        self._notify(self.notifications.send_welcome, email, response.user.full_name)
        return response

    def login(self, email: str, password: str, client: ClientInfo = None) -> AuthResponse:
        """
        Verify credentials and start a new refresh chain.

        Unknown e-mail, deactivated account and wrong password all raise the
        same UnauthorizedError.
        """
        email = normalize_email(email)
        user = self._find_by_email(email)

        failure_reason = None
        if user is None:
            self.passwords.dummy_verify()
            failure_reason = "Unknown email"
        elif not user.is_active:
            self.passwords.dummy_verify()
            failure_reason = "Account is deactivated"
        elif not self.passwords.verify(password, user.password_hash):
            failure_reason = "Invalid password"

        if failure_reason:
            logger.warning(f"Authentication failed for {email}: {failure_reason}")
            if user is not None:
                self._record_failed_login(user, failure_reason, client)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        with self._transaction():
            now = self.clock()
            self.db.add(UserLoginLog.successful(user.id, client, now=now))
            user.record_login(now=now)
            self.tokens.revoke_all_for_user(user.id, reason=REASON_LOGIN, revoked_by=user.id)
            self._ensure_group(user)
            response = self._issue_pair(user)

        logger.info(f"User authenticated successfully: {email}")
        return response

    def refresh(self, refresh_token: str) -> AuthResponse:
        """Rotate a refresh token and mint a new access token."""
        try:
            with self._transaction():
                record = self.tokens.get_active_refresh_token(refresh_token)
                user = self.db.get(User, record.user_id)
                if user is None or not user.is_active:
                    logger.warning(f"Refresh rejected for missing or inactive user {record.user_id}")
                    raise UnauthorizedError(INVALID_REFRESH_TOKEN)

                self._ensure_group(user)
                successor = self.tokens.rotate_refresh_token(record)
                response = self._issue_pair(user, refresh_record=successor)
        except RefreshTokenReuseError as e:
            # Replay of a consumed token: end every chain the user holds
            with self._transaction():
                self.tokens.revoke_all_for_user(e.user_id, reason=REASON_REUSE_DETECTED)
            raise

        logger.info(f"Refresh token rotated for user {user.id}")
        return response

    def logout(self, user_id: str) -> int:
        """Revoke all refresh tokens and close the latest open session."""
        with self._transaction():
            user = self._get_user(user_id)
            revoked = self.tokens.revoke_all_for_user(user.id, reason=REASON_LOGOUT, revoked_by=user.id)

            session = (
                self.db.query(UserLoginLog)
                .filter(
                    UserLoginLog.user_id == user.id,
                    UserLoginLog.is_successful.is_(True),
                    UserLoginLog.logout_time.is_(None),
                )
                .order_by(UserLoginLog.login_time.desc(), UserLoginLog.created_at.desc())
                .first()
            )
            if session is not None:
                session.record_logout(now=self.clock())

        logger.info(f"User {user_id} logged out, {revoked} refresh token(s) revoked")
        return revoked

    def revoke_token(self, refresh_token: str, user_id: str) -> bool:
        """Revoke one of the caller's own refresh tokens."""
        with self._transaction():
            revoked = self.tokens.revoke_refresh_token(refresh_token, user_id)
        logger.info(f"Refresh token revoked by user {user_id}")
        return revoked

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    def change_password(self, user_id: str, current_password: str, new_password: str) -> int:
        """
        Replace the caller's password after verifying the current one.

        Existing refresh tokens are revoked, forcing other sessions to sign in
        again. Returns how many were revoked.
        """
        user = self._get_user(user_id)
        if not self.passwords.verify(current_password, user.password_hash):
            logger.warning(f"Password change rejected for user {user_id}: current password mismatch")
            raise ValidationError("Current password is incorrect")
        if new_password == current_password:
            raise ValidationError("New password must differ from the current password")
        self.passwords.validate_strength(new_password)
        password_hash = self.passwords.hash(new_password)

        with self._transaction():
            user.update_password(password_hash, now=self.clock())
            revoked = self.tokens.revoke_all_for_user(user.id, reason=REASON_PASSWORD_CHANGED, revoked_by=user.id)

        logger.info(f"Password changed for user: {user_id}")
        return revoked

    def reset_password(self, user_id: str, actor_id: str = None):
        """
        Replace a user's password with a generated one and notify the user.

        The plaintext goes to the notification collaborator exactly once and
        is never stored or logged. A failed delivery rolls the reset back.
        """
        user = self._get_user(user_id)
        new_password = self.passwords.generate_password()
        password_hash = self.passwords.hash(new_password)

        with self._transaction():
            user.update_password(password_hash, now=self.clock())
            self.tokens.revoke_all_for_user(user.id, reason=REASON_PASSWORD_RESET, revoked_by=actor_id)
            self.db.flush()
            self.notifications.send_password_reset(user.email, new_password)

        logger.info(f"Password reset for user: {user_id} by {actor_id or 'system'}")

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_profile(self, user_id: str) -> UserResponse:
        return UserResponse.from_user(self._get_user(user_id))

    def update_profile(self, user_id: str, request: UpdateProfileRequest) -> UserResponse:
        with self._transaction():
            user = self._get_user(user_id)
            try:
                user.update_profile(request.first_name, request.last_name, request.phone_number, now=self.clock())
            except ValueError as e:
                raise ValidationError(str(e))
            response = UserResponse.from_user(user)
        return response

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == normalize_email(email)).first()

    def _get_user(self, user_id: str) -> User:
        user = self.db.get(User, user_id) if user_id else None
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _ensure_group(self, user: User):
        """Give a group-less user the default group for its type."""
        if user.user_group is None:
            logger.warning(f"User {user.id} had no user group; assigning default '{user.user_type}'")
            user.assign_group(self.catalog.ensure_group(user.user_type), now=self.clock())

    def _issue_pair(self, user: User, refresh_record=None) -> AuthResponse:
        access_token, expires_at = self.tokens.create_access_token(user)
        if refresh_record is None:
            refresh_record = self.tokens.issue_refresh_token(user.id)
        return AuthResponse(
            access_token=access_token,
            refresh_token=refresh_record.token,
            expires_at=expires_at,
            user=UserResponse.from_user(user),
        )

    def _record_failed_login(self, user: User, reason: str, client: ClientInfo):
        """Persist a failed attempt; audit failures never mask the login error."""
        try:
            self.db.add(UserLoginLog.failed(user.id, reason, client, now=self.clock()))
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to record failed login for user {user.id}: {e}")

    def _notify(self, send, *args):
        """Fire-and-forget notification; delivery errors are logged, not raised."""
        try:
            send(*args)
        except Exception as e:
            logger.error(f"Notification {getattr(send, '__name__', send)} failed: {e}")
