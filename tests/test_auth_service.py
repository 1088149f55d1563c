"""Tests for the authentication flows."""

import pytest

from cms_auth.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from cms_auth.models.enums import UserType
from cms_auth.models.login_log import UserLoginLog
from cms_auth.models.permission import PermissionCode
from cms_auth.models.refresh_token import RefreshToken
from cms_auth.models.user import User
from cms_auth.models.user_group import UserGroup
from cms_auth.schemas.auth import UpdateProfileRequest
from cms_auth.services import permission_guard
from cms_auth.services.auth_service import INVALID_CREDENTIALS
from cms_auth.services.token_service import (
    REASON_LOGIN,
    REASON_PASSWORD_CHANGED,
    REASON_REUSE_DETECTED,
    RefreshTokenReuseError,
)
from cms_auth.utils.client_info import ClientInfo

PASSWORD = "Secret123!"
CHROME_ON_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def active_tokens(db, user_id):
    return (
        db.query(RefreshToken)
        .filter(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
        .all()
    )


class TestRegister:
    """Test self-service registration."""

    def test_register_individual_creates_group_and_tokens(self, db, register_user, notifications):
        db.query(UserGroup).filter(UserGroup.name == "Individual").delete()
        db.commit()

        response = register_user("alice@x.com", PASSWORD)

        assert response.access_token
        assert response.refresh_token
        assert response.user.email == "alice@x.com"
        assert response.user.user_group.name == "Individual"
        assert db.query(UserGroup).filter(UserGroup.name == "Individual").count() == 1
        assert notifications.of_kind("welcome") == [("welcome", "alice@x.com", "Alice Smith")]

    def test_register_corporate_uses_corporate_group(self, register_user):
        response = register_user("corp@x.com", user_type=UserType.CORPORATE)
        assert response.user.user_type == UserType.CORPORATE
        assert response.user.user_group.name == "Corporate"

    def test_email_is_normalized(self, register_user):
        response = register_user("  Alice@X.COM ")
        assert response.user.email == "alice@x.com"

    def test_duplicate_email_is_conflict(self, register_user):
        register_user("alice@x.com")
        with pytest.raises(ConflictError):
            register_user("ALICE@x.com")

    def test_weak_password_rejected(self, db, register_user):
        with pytest.raises(ValidationError):
            register_user("alice@x.com", "short")
        assert db.query(User).count() == 0

    def test_password_is_stored_hashed(self, db, register_user, passwords):
        response = register_user("alice@x.com", PASSWORD)
        user = db.get(User, response.user.id)
        assert user.password_hash != PASSWORD
        assert passwords.verify(PASSWORD, user.password_hash)

    def test_register_writes_no_login_log(self, db, register_user):
        register_user("alice@x.com")
        assert db.query(UserLoginLog).count() == 0


class TestLogin:
    """Test credential verification."""

    def test_login_success(self, db, auth_service, register_user):
        register_user("alice@x.com", PASSWORD)
        client = ClientInfo.from_user_agent(CHROME_ON_WINDOWS, "10.0.0.7")

        response = auth_service.login("Alice@x.com", PASSWORD, client)

        user = db.get(User, response.user.id)
        assert user.last_login_at is not None
        log = db.query(UserLoginLog).filter(UserLoginLog.user_id == user.id).one()
        assert log.is_successful is True
        assert log.ip_address == "10.0.0.7"
        assert log.browser == "Chrome"
        assert log.operating_system == "Windows"

    def test_wrong_password_and_unknown_email_look_identical(self, auth_service, register_user):
        register_user("alice@x.com", PASSWORD)

        with pytest.raises(UnauthorizedError) as wrong_password:
            auth_service.login("alice@x.com", "Wrong123!")
        with pytest.raises(UnauthorizedError) as unknown_email:
            auth_service.login("nobody@x.com", PASSWORD)

        assert wrong_password.value.message == INVALID_CREDENTIALS
        assert unknown_email.value.message == INVALID_CREDENTIALS

    def test_failed_attempt_is_logged(self, db, auth_service, register_user):
        response = register_user("alice@x.com", PASSWORD)
        with pytest.raises(UnauthorizedError):
            auth_service.login("alice@x.com", "Wrong123!")

        log = db.query(UserLoginLog).filter(UserLoginLog.user_id == response.user.id).one()
        assert log.is_successful is False
        assert log.failure_reason == "Invalid password"

    def test_deactivated_user_cannot_login(self, db, auth_service, user_service, register_user):
        response = register_user("alice@x.com", PASSWORD)
        user_service.deactivate_user(response.user.id)

        with pytest.raises(UnauthorizedError) as exc:
            auth_service.login("alice@x.com", PASSWORD)
        assert exc.value.message == INVALID_CREDENTIALS

    def test_login_supersedes_previous_refresh_tokens(self, db, auth_service, register_user):
        registered = register_user("alice@x.com", PASSWORD)
        first = auth_service.login("alice@x.com", PASSWORD)
        second = auth_service.login("alice@x.com", PASSWORD)

        active = active_tokens(db, second.user.id)
        assert [t.token for t in active] == [second.refresh_token]

        previous = db.query(RefreshToken).filter(RefreshToken.token == first.refresh_token).one()
        assert previous.revoked_reason == REASON_LOGIN
        with pytest.raises(UnauthorizedError):
            auth_service.refresh(registered.refresh_token)

    def test_user_without_group_gets_default_group(self, db, auth_service, register_user):
        response = register_user("alice@x.com", PASSWORD)
        user = db.get(User, response.user.id)
        user.user_group = None
        db.commit()

        result = auth_service.login("alice@x.com", PASSWORD)
        assert result.user.user_group.name == "Individual"


class TestRefresh:
    """Test refresh token rotation."""

    def test_refresh_rotates(self, db, auth_service, register_user):
        registered = register_user("alice@x.com", PASSWORD)

        refreshed = auth_service.refresh(registered.refresh_token)

        assert refreshed.refresh_token != registered.refresh_token
        assert refreshed.access_token
        assert [t.token for t in active_tokens(db, registered.user.id)] == [refreshed.refresh_token]

    def test_refresh_is_one_shot(self, auth_service, register_user):
        registered = register_user("alice@x.com", PASSWORD)
        auth_service.refresh(registered.refresh_token)

        for _ in range(2):
            with pytest.raises(UnauthorizedError):
                auth_service.refresh(registered.refresh_token)

    def test_replay_revokes_whole_chain(self, db, auth_service, register_user):
        registered = register_user("alice@x.com", PASSWORD)
        refreshed = auth_service.refresh(registered.refresh_token)

        with pytest.raises(RefreshTokenReuseError):
            auth_service.refresh(registered.refresh_token)

        assert active_tokens(db, registered.user.id) == []
        successor = db.query(RefreshToken).filter(RefreshToken.token == refreshed.refresh_token).one()
        assert successor.revoked_reason == REASON_REUSE_DETECTED
        with pytest.raises(UnauthorizedError):
            auth_service.refresh(refreshed.refresh_token)

    def test_refresh_for_deactivated_user_fails(self, auth_service, user_service, register_user):
        registered = register_user("alice@x.com", PASSWORD)
        user_service.deactivate_user(registered.user.id)

        with pytest.raises(UnauthorizedError):
            auth_service.refresh(registered.refresh_token)

    def test_refresh_picks_up_new_permissions(self, db, auth_service, tokens, catalog, register_user):
        registered = register_user("alice@x.com", PASSWORD)
        group = db.query(UserGroup).filter(UserGroup.name == "Individual").one()
        group.replace_permissions(catalog.resolve_permissions([PermissionCode.GET_USERS]))
        db.commit()

        old_claims = tokens.decode_access_token(registered.access_token)
        new_claims = tokens.decode_access_token(auth_service.refresh(registered.refresh_token).access_token)

        assert old_claims.permissions == []
        assert new_claims.permission_codes() == [PermissionCode.GET_USERS]


class TestLogout:
    """Test logout and single-token revocation."""

    def test_logout_then_refresh_fails(self, db, auth_service, register_user):
        registered = register_user("alice@x.com", PASSWORD)
        login = auth_service.login("alice@x.com", PASSWORD)

        assert auth_service.logout(login.user.id) == 1

        with pytest.raises(UnauthorizedError):
            auth_service.refresh(login.refresh_token)
        assert active_tokens(db, registered.user.id) == []

    def test_logout_closes_session(self, db, auth_service, register_user):
        register_user("alice@x.com", PASSWORD)
        login = auth_service.login("alice@x.com", PASSWORD)
        auth_service.logout(login.user.id)

        log = db.query(UserLoginLog).filter(UserLoginLog.user_id == login.user.id).one()
        assert log.logout_time is not None
        assert log.is_session_active is False

    def test_logout_unknown_user(self, auth_service):
        with pytest.raises(NotFoundError):
            auth_service.logout("missing")

    def test_revoke_token(self, auth_service, register_user):
        registered = register_user("alice@x.com", PASSWORD)
        assert auth_service.revoke_token(registered.refresh_token, registered.user.id) is True

        with pytest.raises(UnauthorizedError):
            auth_service.refresh(registered.refresh_token)


class TestPasswords:
    """Test password change and reset."""

    def test_change_password(self, db, auth_service, register_user):
        registered = register_user("alice@x.com", PASSWORD)

        revoked = auth_service.change_password(registered.user.id, PASSWORD, "NewSecret456!")

        assert revoked == 1
        revoked_row = db.query(RefreshToken).filter(RefreshToken.token == registered.refresh_token).one()
        assert revoked_row.revoked_reason == REASON_PASSWORD_CHANGED
        with pytest.raises(UnauthorizedError):
            auth_service.login("alice@x.com", PASSWORD)
        assert auth_service.login("alice@x.com", "NewSecret456!").access_token

    def test_change_password_wrong_current(self, auth_service, register_user):
        registered = register_user("alice@x.com", PASSWORD)
        with pytest.raises(ValidationError):
            auth_service.change_password(registered.user.id, "Wrong123!", "NewSecret456!")

    @pytest.mark.parametrize("new_password", ["", "short", PASSWORD])
    def test_change_password_rejects_bad_new_password(self, auth_service, register_user, new_password):
        registered = register_user("alice@x.com", PASSWORD)
        with pytest.raises(ValidationError):
            auth_service.change_password(registered.user.id, PASSWORD, new_password)

    def test_reset_password_notifies_once(self, db, auth_service, register_user, notifications, passwords):
        registered = register_user("alice@x.com", PASSWORD)

        auth_service.reset_password(registered.user.id, actor_id="admin-1")

        resets = notifications.of_kind("password_reset")
        assert len(resets) == 1
        _, email, plaintext = resets[0]
        assert email == "alice@x.com"
        assert len(plaintext) == 16
        user = db.get(User, registered.user.id)
        assert passwords.verify(plaintext, user.password_hash)
        assert active_tokens(db, user.id) == []

    def test_reset_rolled_back_when_delivery_fails(self, db, auth_service, register_user, notifications, passwords):
        registered = register_user("alice@x.com", PASSWORD)

        def broken(email, new_password):
            raise RuntimeError("mail server down")

        notifications.send_password_reset = broken
        with pytest.raises(RuntimeError):
            auth_service.reset_password(registered.user.id)

        user = db.get(User, registered.user.id)
        assert passwords.verify(PASSWORD, user.password_hash)
        assert len(active_tokens(db, user.id)) == 1

    def test_reset_unknown_user(self, auth_service):
        with pytest.raises(NotFoundError):
            auth_service.reset_password("missing")


class TestProfile:
    """Test the caller's own profile."""

    def test_update_profile(self, auth_service, register_user):
        registered = register_user("alice@x.com")
        request = UpdateProfileRequest(first_name=" Alicia ", last_name="Jones", phone_number="555-0100")

        updated = auth_service.update_profile(registered.user.id, request)

        assert updated.full_name == "Alicia Jones"
        assert auth_service.get_profile(registered.user.id).phone_number == "555-0100"


class TestAdminScenario:
    """Permission grant end to end: group, token, guard."""

    def test_admin_token_carries_granted_permission(self, db, auth_service, tokens, catalog, register_user):
        registered = register_user("root@x.com", PASSWORD)
        admin = catalog.ensure_group("Admin")
        admin.replace_permissions(catalog.resolve_permissions([PermissionCode.GET_USERS]))
        db.get(User, registered.user.id).assign_group(admin)
        db.commit()

        claims = tokens.decode_access_token(auth_service.login("root@x.com", PASSWORD).access_token)

        assert claims.user_group == "Admin"
        assert PermissionCode.GET_USERS in claims.permissions
        assert permission_guard.has_permission(claims, PermissionCode.GET_USERS) is True
        assert permission_guard.has_permission(claims, PermissionCode.DELETE_USER) is False
