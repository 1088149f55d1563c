"""Tests for access and refresh token handling."""

from datetime import timedelta

import jwt
import pytest

from cms_auth.config import settings
from cms_auth.exceptions import UnauthorizedError, ValidationError
from cms_auth.models.permission import PermissionCode
from cms_auth.models.refresh_token import RefreshToken
from cms_auth.models.user import User
from cms_auth.services.token_service import (
    REASON_LOGOUT,
    REASON_ROTATED,
    RefreshTokenReuseError,
    TokenService,
)
from cms_auth.utils.clock import FrozenClock, utcnow


@pytest.fixture
def alice(db, register_user):
    response = register_user("alice@x.com")
    return db.get(User, response.user.id)


class TestAccessTokens:
    """Test JWT issuance and validation."""

    def test_round_trip_claims(self, tokens, alice):
        token, expires_at = tokens.create_access_token(alice)
        claims = tokens.decode_access_token(token)

        assert claims.ver == 1
        assert claims.user_id == alice.id
        assert claims.email == "alice@x.com"
        assert claims.iss == settings.JWT_ISSUER
        assert claims.aud == settings.JWT_AUDIENCE
        assert claims.user_group == "Individual"
        assert claims.permissions == []
        assert claims.exp - claims.iat == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        assert expires_at > utcnow()

    def test_claims_are_a_snapshot(self, db, tokens, catalog, alice):
        group = alice.user_group
        group.replace_permissions(catalog.resolve_permissions([PermissionCode.GET_USERS]))
        db.commit()
        token, _ = tokens.create_access_token(alice)

        group.replace_permissions([])
        db.commit()

        claims = tokens.decode_access_token(token)
        assert claims.permission_codes() == [PermissionCode.GET_USERS]
        fresh, _ = tokens.create_access_token(alice)
        assert tokens.decode_access_token(fresh).permissions == []

    def test_deactivated_group_grants_nothing(self, db, tokens, catalog, alice):
        alice.user_group.replace_permissions(catalog.resolve_permissions([PermissionCode.GET_USERS]))
        alice.user_group.deactivate()
        db.commit()

        token, _ = tokens.create_access_token(alice)
        claims = tokens.decode_access_token(token)
        assert claims.permissions == []
        assert claims.user_group is None
        assert claims.user_group_id is None

    def test_user_without_group_is_refused(self, db, tokens, alice):
        alice.user_group = None
        with pytest.raises(ValidationError):
            tokens.create_access_token(alice)

        token, _ = tokens.create_access_token(alice, allow_no_permissions=True)
        claims = tokens.decode_access_token(token)
        assert claims.permissions == []
        assert claims.user_group is None

    def test_expired_token_rejected(self, db, alice):
        issued_earlier = TokenService(db, clock=FrozenClock(utcnow() - timedelta(hours=2)))
        token, _ = issued_earlier.create_access_token(alice)

        with pytest.raises(UnauthorizedError) as exc:
            TokenService(db).decode_access_token(token)
        assert exc.value.message == "Token has expired"

    def test_tampered_token_rejected(self, tokens, alice):
        token, _ = tokens.create_access_token(alice)
        header, payload, signature = token.split(".")
        forged = ".".join([header, payload, signature[::-1]])

        with pytest.raises(UnauthorizedError) as exc:
            tokens.decode_access_token(forged)
        assert exc.value.message == "Invalid token"

    def test_wrong_audience_rejected(self, tokens, alice):
        token, _ = tokens.create_access_token(alice)
        other = TokenService()
        other.audience = "Some-Other-Service"

        with pytest.raises(UnauthorizedError):
            other.decode_access_token(token)

    def test_wrong_key_rejected(self, tokens, alice):
        token, _ = tokens.create_access_token(alice)
        other = TokenService()
        other.secret_key = "a-different-signing-key-0123456789abcdef"

        with pytest.raises(UnauthorizedError):
            other.decode_access_token(token)

    def test_missing_token(self, tokens):
        with pytest.raises(UnauthorizedError) as exc:
            tokens.decode_access_token("")
        assert exc.value.message == "Authentication required"

    def test_unknown_claims_version_rejected(self, tokens, alice):
        token, _ = tokens.create_access_token(alice)
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=["HS256"], audience=settings.JWT_AUDIENCE)
        payload["ver"] = 2
        reissued = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm="HS256")

        with pytest.raises(UnauthorizedError):
            tokens.decode_access_token(reissued)


class TestRefreshTokens:
    """Test refresh token lifecycle."""

    def test_issued_token_is_active(self, db, tokens, alice):
        record = tokens.issue_refresh_token(alice.id)
        db.commit()

        assert len(record.token) >= 64
        assert record.expires_at - record.created_at == timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        assert tokens.get_active_refresh_token(record.token).id == record.id

    def test_unknown_token_rejected(self, tokens):
        with pytest.raises(UnauthorizedError):
            tokens.get_active_refresh_token("no-such-token")

    def test_expired_token_rejected(self, db, tokens, clock, alice):
        record = tokens.issue_refresh_token(alice.id)
        db.commit()

        clock.advance(days=settings.REFRESH_TOKEN_EXPIRE_DAYS, seconds=1)
        with pytest.raises(UnauthorizedError):
            tokens.get_active_refresh_token(record.token)

    def test_rotation_links_successor(self, db, tokens, alice):
        record = tokens.issue_refresh_token(alice.id)
        db.commit()

        successor = tokens.rotate_refresh_token(record)
        db.commit()

        db.refresh(record)
        assert record.revoked_reason == REASON_ROTATED
        assert record.replaced_by_token_id == successor.id
        assert successor.token != record.token
        assert tokens.get_active_refresh_token(successor.token).id == successor.id

    def test_rotated_token_presented_again_is_reuse(self, db, tokens, alice):
        record = tokens.issue_refresh_token(alice.id)
        db.commit()
        tokens.rotate_refresh_token(record)
        db.commit()

        with pytest.raises(RefreshTokenReuseError) as exc:
            tokens.get_active_refresh_token(record.token)
        assert exc.value.user_id == alice.id

    def test_second_rotation_of_same_row_fails(self, db, tokens, alice):
        record = tokens.issue_refresh_token(alice.id)
        db.commit()
        tokens.rotate_refresh_token(record)
        db.commit()

        with pytest.raises(RefreshTokenReuseError):
            tokens.rotate_refresh_token(record)

    def test_revoke_all_enumerates_every_active_token(self, db, tokens, alice):
        from_registration = len(tokens.active_tokens_for_user(alice.id))
        for _ in range(3):
            tokens.issue_refresh_token(alice.id)
        db.commit()

        assert tokens.revoke_all_for_user(alice.id, reason=REASON_LOGOUT) == from_registration + 3
        db.commit()
        assert tokens.active_tokens_for_user(alice.id) == []
        assert tokens.revoke_all_for_user(alice.id, reason=REASON_LOGOUT) == 0

    def test_revoke_single_token_requires_ownership(self, db, tokens, alice, register_user):
        bob = register_user("bob@x.com")
        record = tokens.issue_refresh_token(alice.id)
        db.commit()

        with pytest.raises(UnauthorizedError):
            tokens.revoke_refresh_token(record.token, bob.user.id)
        assert tokens.revoke_refresh_token(record.token, alice.id) is True
        assert tokens.revoke_refresh_token(record.token, alice.id) is False

    def test_purge_removes_only_old_tokens(self, db, tokens, clock, alice):
        old_id = tokens.issue_refresh_token(alice.id).id
        db.commit()
        clock.advance(days=60)
        recent_id = tokens.issue_refresh_token(alice.id).id
        db.commit()

        # The registration token is as old as ``old``
        assert tokens.purge_expired_tokens(older_than_days=30) == 2
        db.commit()
        remaining = {t.id for t in db.query(RefreshToken).filter(RefreshToken.user_id == alice.id).all()}
        assert old_id not in remaining
        assert recent_id in remaining
