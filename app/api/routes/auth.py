"""
Authentication API - password login, Google sign-in, refresh, logout and session.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_current_user_db, get_token_payload, oauth2_scheme, token_service
from app.database.async_db import get_async_db
from app.models.auth import (
    LoginRequest,
    RefreshTokenRequest,
    SessionOrganization,
    SessionResponse,
    TokenResponse,
    User,
    UserCreate,
)
from app.models.db.user import UserDB
from app.repositories.organization_repository import OrganizationRepository
from app.repositories.user_repository import UserRepository
from app.services.google_oauth_service import GoogleOAuthError, GoogleOAuthService
from app.services.user_service import UserAlreadyExistsError, UserService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])


# ============================================================
# HELPER FUNCTIONS
# ============================================================


async def issue_tokens(db: AsyncSession, user: UserDB, org_id: str | None = None) -> TokenResponse:
    """
    Issue a token pair for `user`.

    The organization is `org_id` when given, else the one stored in the
    user's preferences, else the first organization the user belongs to.
    Organizations the user is no longer a member of are ignored.
    """
    memberships = await OrganizationRepository(db).list_memberships_for_user(user.id)
    roles = {str(m.organization_id): m.role for m in memberships}

    if org_id is None:
        preferences = await UserRepository(db).get_preferences(user.id)
        if preferences and preferences.current_organization_id:
            org_id = str(preferences.current_organization_id)

    if org_id not in roles:
        org_id = next(iter(roles), None)

    claims = token_service.build_claims(
        user_id=str(user.id),
        username=user.username,
        scopes=user.scopes or [],
        org_id=org_id,
        role=roles.get(org_id) if org_id else None,
    )
    return token_service.create_token_pair(claims)


def _bad_credentials() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Incorrect username or password",
        headers={"WWW-Authenticate": "Bearer"},
    )


# ============================================================
# ENDPOINTS
# ============================================================


@router.post("/token", response_model=TokenResponse)
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """OAuth2 password flow (form data); username may also be the email."""
    user = await UserService.with_session(db, token_service).authenticate_user(form_data.username, form_data.password)
    if not user:
        raise _bad_credentials()
    return await issue_tokens(db, user)


@router.post("/login", response_model=TokenResponse)
async def login_with_json(
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """JSON login for clients that do not use the OAuth2 form."""
    user = await UserService.with_session(db, token_service).authenticate_user(login_data.username, login_data.password)
    if not user:
        raise _bad_credentials()
    return await issue_tokens(db, user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_access_token(
    refresh_request: RefreshTokenRequest,
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """
    Exchange a refresh token for a new pair.

    The old refresh token is revoked and the organization in it is kept.
    """
    if not token_service.verify_token(refresh_request.refresh_token, expected_type="refresh"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = token_service.decode_token(refresh_request.refresh_token)
    user = await UserRepository(db).get_by_id(UUID(payload["sub"]))
    if user is None or user.disabled:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or disabled")

    token_service.revoke_token(refresh_request.refresh_token)
    return await issue_tokens(db, user, org_id=payload.get("org_id"))


@router.post("/register", response_model=User, status_code=status.HTTP_201_CREATED)
async def register_user(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    service = UserService.with_session(db, token_service)
    try:
        user = await service.create_user(user_data)
    except UserAlreadyExistsError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return UserService.to_public(user)


@router.post("/logout")
async def logout(
    token: str = Depends(oauth2_scheme),  # noqa: B008
    _payload: dict = Depends(get_token_payload),  # noqa: B008
):
    """Revoke the access token used for this request."""
    if not token_service.revoke_token(token):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not revoke the token",
        )
    return {"message": "Logged out"}


@router.get("/me", response_model=User)
async def get_current_user_info(user: UserDB = Depends(get_current_user_db)):  # noqa: B008
    return UserService.to_public(user)


@router.get("/session", response_model=SessionResponse)
async def get_session(
    payload: dict = Depends(get_token_payload),  # noqa: B008
    user: UserDB = Depends(get_current_user_db),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """
    Current user, the organizations they belong to and the selected one.

    The selected organization is the token's org_id, else the first one.
    """
    memberships = await OrganizationRepository(db).list_memberships_for_user(user.id)
    organizations = [
        SessionOrganization(
            id=str(m.organization.id),
            name=m.organization.name,
            slug=m.organization.slug,
            role=m.role,
            **m.organization.branding,
        )
        for m in memberships
        if m.organization is not None
    ]

    current = next((o for o in organizations if o.id == payload.get("org_id")), None)
    if current is None and organizations:
        current = organizations[0]

    return SessionResponse(user=UserService.to_public(user), organization=current, organizations=organizations)


@router.get("/google/login")
async def google_login():
    """Redirect to Google's consent screen."""
    service = GoogleOAuthService()
    if not service.is_configured:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Google sign-in is not configured")
    return RedirectResponse(service.build_authorization_url())


@router.get("/google/callback", response_model=TokenResponse)
async def google_callback(
    code: str = Query(..., description="Authorization code"),
    state: str = Query(..., description="Anti-CSRF state"),
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """
    Finish Google sign-in and issue tokens.

    The user is created on first sign-in.
    """
    service = GoogleOAuthService()
    if not service.consume_state(state):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired OAuth state")

    try:
        profile = await service.exchange_code(code)
    except GoogleOAuthError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e)) from e

    user = await UserService.with_session(db, token_service).get_or_create_oauth_user(profile.email, profile.name)
    if user.disabled:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is disabled")

    return await issue_tokens(db, user)
