"""
Unit tests for JWT issuing, verification and revocation.

Redis is replaced by the in-memory DummyRedisClient.
"""

import uuid
from datetime import timedelta

import pytest
from fastapi import HTTPException

from app.repositories.dummy_redis_client import DummyRedisClient
from app.services.token_service import TokenService


@pytest.fixture
def token_service():
    service = TokenService()
    service.token_repo.redis_client = DummyRedisClient()
    return service


@pytest.fixture
def claims(token_service):
    return token_service.build_claims(
        user_id=str(uuid.uuid4()),
        username="ana",
        scopes=["users:read"],
        org_id=str(uuid.uuid4()),
        role="admin",
    )


class TestTokenService:
    def test_password_hashing(self, token_service):
        hashed = token_service.get_password_hash("s3cret!")
        assert hashed != "s3cret!"
        assert token_service.verify_password("s3cret!", hashed)
        assert not token_service.verify_password("wrong", hashed)

    def test_claims_without_org_have_no_role(self, token_service):
        claims = token_service.build_claims(user_id="u1", username="ana", role="admin")
        assert claims == {"sub": "u1", "username": "ana", "scopes": []}

    def test_token_pair_carries_organization(self, token_service, claims):
        pair = token_service.create_token_pair(claims)

        assert pair.organization_id == claims["org_id"]
        assert pair.role == "admin"

        access = token_service.decode_token(pair.access_token)
        assert access["token_type"] == "access"
        assert access["org_id"] == claims["org_id"]
        assert token_service.decode_token(pair.refresh_token)["token_type"] == "refresh"

    def test_verify_checks_token_type(self, token_service, claims):
        pair = token_service.create_token_pair(claims)

        assert token_service.verify_token(pair.access_token, expected_type="access")
        assert not token_service.verify_token(pair.refresh_token, expected_type="access")
        assert token_service.verify_token(pair.refresh_token, expected_type="refresh")

    def test_revoked_token_fails_verification(self, token_service, claims):
        token = token_service.create_access_token(claims)

        assert token_service.revoke_token(token)
        assert not token_service.verify_token(token)

    def test_unknown_but_valid_token_is_accepted(self, token_service, claims):
        token = token_service.create_access_token(claims)
        token_service.token_repo.redis_client = DummyRedisClient()

        assert token_service.verify_token(token)

    def test_expired_token(self, token_service, claims):
        token = token_service.create_access_token(claims, expires_delta=timedelta(seconds=-1))

        assert not token_service.verify_token(token)
        with pytest.raises(HTTPException) as exc_info:
            token_service.decode_token(token)
        assert exc_info.value.status_code == 401

    def test_garbage_token(self, token_service):
        assert not token_service.verify_token("not-a-jwt")
        assert not token_service.revoke_token("not-a-jwt")

    def test_current_user_id(self, token_service, claims):
        token = token_service.create_access_token(claims)
        assert token_service.get_current_user_id(token) == claims["sub"]
