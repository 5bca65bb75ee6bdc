"""
Tests for security functions: password hashing, JWT tokens and role checks.
"""
from datetime import timedelta
from jose import jwt
from sqlalchemy import select

from app.core.security import (
    create_access_token,
    create_user_token,
    decode_access_token,
    verify_password,
    get_password_hash,
)
from app.config import settings
from app.models.audit_log import ActionType, AuditLog
from app.services.user_service import UserService
from conftest import TEST_PASSWORD


class TestPasswordHashing:
    """Tests for password hashing functions."""

    def test_get_password_hash_returns_hash(self):
        """Password hashing should return a bcrypt hash."""
        password = "test_password_123"
        hashed = get_password_hash(password)

        assert hashed != password
        assert hashed.startswith("$2b$")  # bcrypt prefix

    def test_password_hash_different_each_time(self):
        """Same password should produce different hashes (due to salt)."""
        password = "same_password"
        hash1 = get_password_hash(password)
        hash2 = get_password_hash(password)

        assert hash1 != hash2

    def test_verify_password_correct(self):
        """Verification should succeed with correct password."""
        password = "correct_password"
        hashed = get_password_hash(password)

        assert verify_password(password, hashed) is True

    def test_verify_password_incorrect(self):
        """Verification should fail with incorrect password."""
        password = "correct_password"
        hashed = get_password_hash(password)

        assert verify_password("wrong_password", hashed) is False


class TestJWTTokens:
    """Tests for JWT token creation and validation."""

    def test_create_access_token_returns_string(self):
        """Token creation should return a JWT string."""
        data = {"sub": "user123"}
        token = create_access_token(data)

        assert isinstance(token, str)
        assert len(token) > 0
        # JWT tokens have 3 parts separated by dots
        assert token.count(".") == 2

    def test_create_access_token_with_custom_expiry(self):
        """Token should respect custom expiry delta."""
        data = {"sub": "user123"}
        expires_delta = timedelta(hours=1)
        token = create_access_token(data, expires_delta)

        # Token should be decodable
        payload = decode_access_token(token)
        assert payload is not None
        assert "exp" in payload

    def test_decode_access_token_valid(self):
        """Valid token should decode successfully."""
        original_data = {"sub": "user123", "role": "admin"}
        token = create_access_token(original_data)

        payload = decode_access_token(token)

        assert payload is not None
        assert payload["sub"] == "user123"
        assert payload["role"] == "admin"
        assert "exp" in payload

    def test_decode_access_token_invalid(self):
        """Invalid token should return None."""
        invalid_token = "not.a.valid.jwt.token"

        payload = decode_access_token(invalid_token)

        assert payload is None

    def test_decode_access_token_tampered(self):
        """Tampered token should return None."""
        data = {"sub": "user123"}
        token = create_access_token(data)

        # Tamper with the token
        parts = token.split(".")
        parts[1] = parts[1][:-5] + "XXXXX"  # Modify payload
        tampered_token = ".".join(parts)

        payload = decode_access_token(tampered_token)

        assert payload is None

    def test_decode_access_token_empty(self):
        """Empty token should return None."""
        payload = decode_access_token("")

        assert payload is None

    def test_decode_access_token_expired(self):
        """Expired token should return None."""
        token = create_access_token({"sub": "1"}, timedelta(seconds=-1))

        assert decode_access_token(token) is None

    def test_token_signed_with_other_key(self):
        """Token signed with another secret should return None."""
        token = jwt.encode({"sub": "1"}, "another-secret-key-of-sufficient-length", algorithm=settings.ALGORITHM)

        assert decode_access_token(token) is None


class TestAuthentication:
    """Tests for password authentication and the current-user dependency."""

    async def test_authenticate_success_sets_last_login(self, db_session, agent_user):
        user = await UserService.authenticate(db_session, "AGENT@example.com", TEST_PASSWORD)

        assert user is not None
        assert user.id == agent_user.id
        assert user.last_login is not None

    async def test_authenticate_wrong_password(self, db_session, agent_user):
        assert await UserService.authenticate(db_session, agent_user.email, "wrong-password") is None

    async def test_authenticate_inactive_user(self, db_session, agent_user):
        agent_user.is_active = False
        await db_session.commit()

        assert await UserService.authenticate(db_session, agent_user.email, TEST_PASSWORD) is None

    async def test_me_requires_token(self, async_client):
        response = await async_client.get("/api/v1/auth/me")

        assert response.status_code == 401

    async def test_me_with_token_for_unknown_user(self, async_client):
        token = create_access_token({"sub": "999"})

        response = await async_client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    async def test_inactive_user_token_is_refused(self, async_client, db_session, agent_user, agent_headers):
        agent_user.is_active = False
        await db_session.commit()

        response = await async_client.get("/api/v1/auth/me", headers=agent_headers)

        assert response.status_code == 403


class TestRoleChecks:
    """Tests for role-restricted endpoints."""

    async def test_viewer_cannot_validate(self, async_client, db_session, submission, viewer_headers):
        response = await async_client.post(
            f"/api/v1/submissions/{submission.id}/validate", headers=viewer_headers
        )

        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"

        denied = (await db_session.execute(
            select(AuditLog).where(AuditLog.action_type == ActionType.PERMISSION_DENIED)
        )).scalars().all()
        assert len(denied) == 1

    async def test_agent_cannot_manage_users(self, async_client, agent_headers):
        response = await async_client.get("/api/v1/users", headers=agent_headers)

        assert response.status_code == 403

    async def test_viewer_can_read(self, async_client, submission, viewer_headers):
        response = await async_client.get(f"/api/v1/submissions/{submission.id}", headers=viewer_headers)

        assert response.status_code == 200


class TestSecurityEdgeCases:
    """Tests for edge cases in security functions."""

    def test_password_hash_special_characters(self):
        """Password with special characters should hash correctly."""
        password = "p@$$w0rd!#$%^&*()"
        hashed = get_password_hash(password)

        assert verify_password(password, hashed) is True

    def test_password_hash_unicode(self):
        """Password with unicode characters should hash correctly."""
        password = "пароль_密码_パスワード"
        hashed = get_password_hash(password)

        assert verify_password(password, hashed) is True

    def test_token_with_special_data(self):
        """Token with special characters in data should work."""
        data = {
            "sub": "user@example.com",
            "name": "José García",
            "role": "admin/superuser",
        }
        token = create_access_token(data)
        payload = decode_access_token(token)

        assert payload["sub"] == "user@example.com"
        assert payload["name"] == "José García"


class TestUserTokens:
    """Tests for staff access tokens."""

    async def test_user_token_carries_role(self, agent_user):
        payload = decode_access_token(create_user_token(agent_user))

        assert payload["sub"] == str(agent_user.id)
        assert payload["role"] == "agent"

    async def test_token_without_role_is_refused(self, async_client, agent_user):
        token = create_access_token({"sub": str(agent_user.id)})

        response = await async_client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
