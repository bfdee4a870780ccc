import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import bcrypt
from fastapi import HTTPException, status
from jose import JWTError, jwt

from app.config.settings import get_settings
from app.models.auth import TokenMetadata, TokenResponse
from app.repositories.redis_repository import RedisRepository

logger = logging.getLogger(__name__)


class TokenService:
    """
    JWT issuing, verification and revocation.

    Every issued token is recorded in Redis so logout and refresh can revoke it.
    Tokens carry the user's current organization (org_id) and role in it.
    """

    def __init__(self):
        self.settings = get_settings()
        self.token_repo = RedisRepository[TokenMetadata](TokenMetadata, prefix="token")

        self.SECRET_KEY = self.settings.JWT_SECRET_KEY
        self.ALGORITHM = "HS256"
        self.ACCESS_TOKEN_EXPIRE_MINUTES = self.settings.ACCESS_TOKEN_EXPIRE_MINUTES
        self.REFRESH_TOKEN_EXPIRE_DAYS = self.settings.REFRESH_TOKEN_EXPIRE_DAYS

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))

    def get_password_hash(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

    def _encode(self, data: Dict[str, Any], token_type: str, expire: datetime) -> str:
        now = datetime.now(timezone.utc)
        to_encode = data.copy()
        to_encode.update({"exp": expire, "iat": now, "token_type": token_type})

        encoded_jwt = jwt.encode(to_encode, self.SECRET_KEY, algorithm=self.ALGORITHM)

        user_id = to_encode.get("sub", "unknown")
        token_metadata = TokenMetadata(
            token=encoded_jwt,
            type=token_type,
            exp=expire.timestamp(),
            revoked=False,
            created_at=now.timestamp(),
            user_id=user_id,
            org_id=data.get("org_id"),
            scopes=data.get("scopes", []),
        )
        self.token_repo.set(
            f"tokens:{user_id}:{encoded_jwt}",
            token_metadata,
            expiration=int((expire - now).total_seconds()),
        )
        return encoded_jwt

    def create_access_token(self, data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """
        Create an access token.

        Args:
            data: Claims to include (sub, username, org_id, role, scopes)
            expires_delta: Lifetime override

        Returns:
            Encoded JWT
        """
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=self.ACCESS_TOKEN_EXPIRE_MINUTES))
        return self._encode(data, "access", expire)

    def create_refresh_token(self, data: Dict[str, Any]) -> str:
        expire = datetime.now(timezone.utc) + timedelta(days=self.REFRESH_TOKEN_EXPIRE_DAYS)
        return self._encode(data, "refresh", expire)

    def build_claims(
        self,
        user_id: str,
        username: str,
        scopes: Optional[List[str]] = None,
        org_id: Optional[str] = None,
        role: Optional[str] = None,
    ) -> Dict[str, Any]:
        claims: Dict[str, Any] = {"sub": user_id, "username": username, "scopes": scopes or []}
        if org_id:
            claims["org_id"] = org_id
            claims["role"] = role
        return claims

    def create_token_pair(self, claims: Dict[str, Any]) -> TokenResponse:
        """Issue an access/refresh pair carrying the same claims."""
        return TokenResponse(
            access_token=self.create_access_token(claims),
            refresh_token=self.create_refresh_token(claims),
            organization_id=claims.get("org_id"),
            role=claims.get("role"),
        )

    def decode_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate a JWT signature and expiry.

        Raises:
            HTTPException: 401 when the token cannot be decoded
        """
        try:
            return jwt.decode(token, self.SECRET_KEY, algorithms=[self.ALGORITHM])
        except JWTError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token: {str(e)}",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

    def verify_token(self, token: str, expected_type: Optional[str] = None) -> bool:
        """
        Check that a token is valid and not revoked.

        1. Signature and expiry are checked by decoding the JWT.
        2. Revocation is read from Redis.
        3. A valid JWT missing from Redis is accepted (Redis restarted or flushed).
        """
        try:
            payload = self.decode_token(token)
        except HTTPException:
            return False

        user_id = payload.get("sub")
        if user_id is None:
            return False
        if expected_type and payload.get("token_type") != expected_type:
            return False

        token_metadata = self.token_repo.get(f"tokens:{user_id}:{token}")
        if token_metadata:
            return not token_metadata.revoked

        logger.warning(f"Valid token not found in Redis (user: {user_id}), accepting")
        return True

    def revoke_token(self, token: str) -> bool:
        """Mark a token revoked for the rest of its lifetime."""
        try:
            payload = self.decode_token(token)
        except HTTPException:
            return False

        user_id = payload.get("sub")
        if user_id is None:
            return False

        key = f"tokens:{user_id}:{token}"
        token_metadata = self.token_repo.get(key)
        if not token_metadata:
            token_metadata = TokenMetadata(
                token=token,
                type=payload.get("token_type", "access"),
                exp=float(payload.get("exp", 0)),
                created_at=float(payload.get("iat", 0)),
                user_id=user_id,
                org_id=payload.get("org_id"),
                scopes=payload.get("scopes", []),
            )

        token_metadata.revoked = True
        remaining_ttl = int(token_metadata.exp - datetime.now(timezone.utc).timestamp())
        if remaining_ttl <= 0:
            return False
        return self.token_repo.set(key, token_metadata, expiration=remaining_ttl)

    def get_current_user_id(self, token: str) -> str:
        """
        Return the user id (sub) of a valid access token.

        Raises:
            HTTPException: 401 when the token is invalid, revoked or has no sub
        """
        if not self.verify_token(token, expected_type="access"):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return self.decode_token(token)["sub"]

    def get_token_scopes(self, token: str) -> List[str]:
        return self.decode_token(token).get("scopes", [])
