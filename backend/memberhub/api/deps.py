"""
API dependencies (auth, shared DI).

Clerk-based auth bridge:
- The Next.js front end verifies the Clerk session and calls us server-side
- It authenticates itself with the internal API token (Authorization header)
- It forwards the Clerk user id in the X-User-Id header
- The user's email and name are resolved from Clerk
"""
import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from memberhub.core.config import Settings
from memberhub.core.container import AppServices
from memberhub.core.logging import get_logger
from memberhub.services.circle import CircleAdminClient, CircleHeadlessAuthClient, CircleMemberClient
from memberhub.services.identity import (
    ClerkIdentityProvider,
    IdentityConfigError,
    IdentityServiceError,
    UserProfile,
)
from memberhub.services.payments import StripeGateway

logger = get_logger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_payments(services: AppServices = Depends(get_services)) -> StripeGateway:
    return services.payments


def get_identity_provider(services: AppServices = Depends(get_services)) -> ClerkIdentityProvider:
    return services.identity


def get_circle_admin(services: AppServices = Depends(get_services)) -> CircleAdminClient:
    return services.circle_admin


def get_circle_auth(services: AppServices = Depends(get_services)) -> CircleHeadlessAuthClient:
    return services.circle_auth


def get_circle_member(services: AppServices = Depends(get_services)) -> CircleMemberClient:
    return services.circle_member


def get_current_user_id(
    settings: Settings = Depends(get_settings),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> str:
    """Validate the internal API token and return the forwarded Clerk user id."""
    api_token = settings.INTERNAL_API_TOKEN
    if not api_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Auth not configured",
        )

    presented = (authorization or "").strip()
    if not hmac.compare_digest(presented, f"Bearer {api_token}"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization token",
        )

    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return x_user_id


def get_current_identity(
    user_id: str = Depends(get_current_user_id),
    identity: ClerkIdentityProvider = Depends(get_identity_provider),
) -> UserProfile:
    """Resolve the caller's Clerk profile; an email address is required."""
    try:
        profile = identity.get_user_profile(user_id)
    except (IdentityConfigError, IdentityServiceError) as e:
        logger.error(str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Identity service unavailable",
        )

    if profile is None or not profile.email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                "Could not verify your user session details. Please try signing out "
                "and signing back in, or contact support."
            ),
        )
    return profile


def require_admin(
    identity: UserProfile = Depends(get_current_identity),
    settings: Settings = Depends(get_settings),
) -> UserProfile:
    if identity.email.lower() not in settings.admin_emails:
        logger.warning(f"User {identity.id} attempted an admin action without authorization")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized.")
    return identity
