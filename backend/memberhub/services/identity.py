"""Clerk identity provider: user profiles and signed profile webhooks."""
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx
from clerk_backend_api import Clerk, models
from svix.webhooks import Webhook, WebhookVerificationError

from memberhub.core.logging import get_logger

logger = get_logger(__name__)

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


class IdentityConfigError(RuntimeError):
    pass


class IdentityWebhookError(ValueError):
    pass


class IdentityServiceError(RuntimeError):
    """Clerk could not be reached or failed to answer."""


@dataclass(frozen=True)
class UserProfile:
    id: str
    email: Optional[str]
    name: Optional[str]


def display_name(
    first_name: Optional[str],
    last_name: Optional[str],
    username: Optional[str],
    email: Optional[str],
) -> Optional[str]:
    """Best available display name, falling back to the email's local part."""
    full = f"{first_name or ''} {last_name or ''}".strip()
    if full:
        return full
    if username:
        return username
    if email:
        return email.split("@")[0]
    return None


def _primary_email(user: Any) -> Optional[str]:
    addresses = getattr(user, "email_addresses", None) or []
    primary_id = getattr(user, "primary_email_address_id", None)
    for address in addresses:
        if primary_id and getattr(address, "id", None) == primary_id:
            return address.email_address
    return addresses[0].email_address if addresses else None


class ClerkIdentityProvider:
    def __init__(self, secret_key: Optional[str], webhook_secret: Optional[str] = None):
        self._clerk = Clerk(bearer_auth=secret_key) if secret_key else None
        self.webhook_secret = webhook_secret

    def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        """Fetch the user from Clerk; None when Clerk does not know the user."""
        if self._clerk is None:
            raise IdentityConfigError("CLERK_SECRET_KEY is not configured")
        try:
            user = self._clerk.users.get(user_id=user_id)
        except models.ClerkErrors as e:
            status_code = getattr(getattr(e, "raw_response", None), "status_code", None)
            if status_code == 401:
                raise IdentityConfigError(f"Clerk rejected the secret key: {e}") from e
            logger.warning(f"Clerk could not resolve user {user_id}: {e}")
            return None
        except (models.SDKError, httpx.HTTPError) as e:
            logger.error(f"Clerk user lookup failed for {user_id}: {e}")
            raise IdentityServiceError(f"Clerk user lookup failed for {user_id}") from e
        if user is None:
            return None

        email = _primary_email(user)
        return UserProfile(
            id=user_id,
            email=email,
            name=display_name(
                getattr(user, "first_name", None),
                getattr(user, "last_name", None),
                getattr(user, "username", None),
                email,
            ),
        )

    def parse_webhook(self, payload: bytes, headers: Mapping[str, str]) -> dict:
        """Verify Svix signature headers and return the event payload."""
        svix_headers = {name: headers.get(name) for name in SVIX_HEADERS}
        if not all(svix_headers.values()):
            raise IdentityWebhookError("Missing Svix headers")
        if not self.webhook_secret:
            raise IdentityConfigError("CLERK_WEBHOOK_SECRET is not configured")

        try:
            return Webhook(self.webhook_secret).verify(payload, svix_headers)
        except WebhookVerificationError as e:
            raise IdentityWebhookError(f"Error verifying webhook: {e}") from e
