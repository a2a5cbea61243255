"""Tests for API key issuance, validation and revocation."""

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from app.services.auth_keys import ALGORITHM, AuthKeyService


def b64(data: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


@pytest.fixture
def auth(users, settings):
    return AuthKeyService(users, settings)


@pytest.fixture
async def user(users):
    return await users.create("John Haack", "John@Example.com", verified=True)


class TestGenerate:
    def test_payload_fields(self, auth, settings):
        token = auth.generate_key(7, "Jane", "jane@example.com", 3)
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
        assert payload["id"] == 7
        assert payload["apiKeyVersion"] == 3
        assert payload["email"] == "jane@example.com"
        assert payload["exp"] > payload["iat"]

    def test_admin_keys_live_longer(self, auth, settings):
        regular = auth.decode_key(auth.generate_key(1, "a", "a@x.com", 0))
        admin = auth.decode_key(auth.generate_key(1, "a", "a@x.com", 0, admin=True))
        assert regular["exp"] - regular["iat"] == settings.api_key_expire_days * 86400
        assert admin["exp"] - admin["iat"] == settings.admin_api_key_expire_days * 86400


class TestValidate:
    @pytest.mark.asyncio
    async def test_valid_key(self, auth, user):
        token = auth.generate_key(user.id, user.name, user.email, user.api_key_version)
        validated = await auth.validate_key(token)
        assert validated.id == user.id
        assert validated.email == "john@example.com"

    @pytest.mark.asyncio
    async def test_malformed(self, auth):
        assert await auth.validate_key("not-a-jwt") is None

    @pytest.mark.asyncio
    async def test_wrong_secret(self, auth, user):
        token = jwt.encode({"id": user.id, "apiKeyVersion": 0}, "other-secret", algorithm=ALGORITHM)
        assert await auth.validate_key(token) is None

    @pytest.mark.asyncio
    async def test_unsigned_token_rejected(self, auth, user):
        token = f"{b64({'alg': 'none', 'typ': 'JWT'})}.{b64({'id': user.id, 'apiKeyVersion': 0})}."
        assert await auth.validate_key(token) is None

    @pytest.mark.asyncio
    async def test_expired(self, auth, user, settings):
        past = datetime.now(timezone.utc) - timedelta(days=1)
        token = jwt.encode(
            {"id": user.id, "apiKeyVersion": 0, "iat": past - timedelta(days=90), "exp": past},
            settings.jwt_secret, algorithm=ALGORITHM,
        )
        assert await auth.validate_key(token) is None

    @pytest.mark.asyncio
    async def test_unknown_user(self, auth):
        token = auth.generate_key(9999, "Ghost", "ghost@example.com", 0)
        assert await auth.validate_key(token) is None

    @pytest.mark.asyncio
    async def test_deleted_user(self, auth, users):
        gone = await users.create("Gone", "gone@example.com", deleted=True)
        token = auth.generate_key(gone.id, gone.name, gone.email, 0)
        assert await auth.validate_key(token) is None

    @pytest.mark.asyncio
    async def test_non_integer_claims(self, auth, settings):
        token = jwt.encode({"id": "1", "apiKeyVersion": "0"}, settings.jwt_secret, algorithm=ALGORITHM)
        assert await auth.validate_key(token) is None


class TestRegenerate:
    @pytest.mark.asyncio
    async def test_old_keys_revoked(self, auth, user):
        old = auth.generate_key(user.id, user.name, user.email, user.api_key_version)

        new = await auth.regenerate_key(user.id)

        assert await auth.validate_key(old) is None
        validated = await auth.validate_key(new)
        assert validated.api_key_version == 1

    @pytest.mark.asyncio
    async def test_every_older_version_revoked(self, auth, user):
        keys = [auth.generate_key(user.id, user.name, user.email, 0)]
        for _ in range(2):
            keys.append(await auth.regenerate_key(user.id))

        results = [await auth.validate_key(k) for k in keys]
        assert results[0] is None
        assert results[1] is None
        assert results[2] is not None

    @pytest.mark.asyncio
    async def test_unknown_user(self, auth):
        assert await auth.regenerate_key(4242) is None

    @pytest.mark.asyncio
    async def test_new_key_is_mailed(self, users, settings, mailer, user):
        auth = AuthKeyService(users, settings, mailer)

        new = await auth.regenerate_key(user.id)

        assert new is not None
        assert mailer.sent == [("new_api_key", "john@example.com")]
