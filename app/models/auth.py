from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class UserBase(BaseModel):
    """Base user model"""

    username: str
    email: EmailStr
    full_name: Optional[str] = None
    disabled: bool = False


class UserCreate(UserBase):
    """Registration payload"""

    password: str = Field(..., min_length=8)


class User(UserBase):
    """Public user model"""

    id: str
    auth_provider: str = "password"


class TokenResponse(BaseModel):
    """Token pair returned by login, refresh and organization switch"""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    organization_id: Optional[str] = None
    role: Optional[str] = None


class LoginRequest(BaseModel):
    """JSON login request"""

    username: str
    password: str


class RefreshTokenRequest(BaseModel):
    """Refresh token request"""

    refresh_token: str


class TokenDataJwt(BaseModel):
    """Decoded JWT claims"""

    sub: Optional[str] = None  # user id
    username: Optional[str] = None
    org_id: Optional[str] = None
    role: Optional[str] = None
    scopes: List[str] = Field(default_factory=list)
    exp: Optional[int] = None
    iat: Optional[int] = None
    token_type: Optional[str] = None  # access or refresh


class TokenMetadata(BaseModel):
    """Token metadata stored in Redis"""

    token: str
    type: str  # "access" or "refresh"
    exp: float
    revoked: bool = False
    created_at: float
    user_id: str
    org_id: Optional[str] = None
    scopes: List[str] = Field(default_factory=list)


class SessionOrganization(BaseModel):
    """Organization block of the session payload"""

    id: str
    name: str
    slug: str
    role: str
    logo_url: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    accent_color: Optional[str] = None


class SessionResponse(BaseModel):
    """Current user plus the selected organization and its branding"""

    user: User
    organization: Optional[SessionOrganization] = None
    organizations: List[SessionOrganization] = Field(default_factory=list)
