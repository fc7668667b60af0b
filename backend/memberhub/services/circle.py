"""
Circle.so API clients.

Three surfaces share one request/error path:
- admin API (service key): member directory and space membership
- headless auth API (service key): issues member access tokens
- member API (member token): spaces and posts as seen by the member

Circle reports errors as an HTTP status plus a JSON body with ``message`` or
``error``. It does not use 404 consistently for missing members, so "not found"
and "already a member" are classified on the error object itself.
"""
from typing import Any, Optional

import httpx

from memberhub.core.logging import get_logger

logger = get_logger(__name__)

NOT_FOUND_MARKERS = ("not found",)
ALREADY_MEMBER_MARKERS = ("already a member", "already been taken")


class CircleConfigError(RuntimeError):
    pass


class CircleAPIError(RuntimeError):
    """Non-2xx or unparseable response from Circle."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    @property
    def detail_message(self) -> str:
        if isinstance(self.details, dict):
            value = self.details.get("message") or self.details.get("error") or ""
            return str(value)
        if isinstance(self.details, str):
            return self.details
        return ""

    def _mentions(self, markers: tuple[str, ...]) -> bool:
        haystacks = (self.message.lower(), self.detail_message.lower())
        return any(marker in text for marker in markers for text in haystacks)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404 or self._mentions(NOT_FOUND_MARKERS)

    @property
    def is_already_member(self) -> bool:
        return self._mentions(ALREADY_MEMBER_MARKERS)


class _CircleClient:
    api_prefix = ""
    label = "Circle"

    def __init__(
        self,
        base_url: Optional[str],
        timeout: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self._http = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def _check_config(self) -> None:
        if not self.base_url:
            raise CircleConfigError(f"{self.label} base URL is not configured")

    def _request(
        self,
        method: str,
        endpoint: str,
        token: str,
        params: Optional[dict[str, Any]] = None,
        body: Optional[dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}{self.api_prefix}{endpoint.lstrip('/')}"
        logger.info(f"Calling {self.label} API: {method} {url}")

        try:
            response = self._http.request(
                method,
                url,
                params=params,
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            logger.error(f"Network error calling {self.label} API {method} {url}: {e}")
            raise CircleAPIError(f"{self.label} API request failed: {e}") from e

        if response.status_code == 204:
            return {"success": True}

        data: Any = None
        error_text: Optional[str] = None
        if "application/json" in response.headers.get("content-type", ""):
            try:
                data = response.json()
            except ValueError as e:
                raise CircleAPIError(
                    f"Failed to parse API response: {e}", status_code=response.status_code
                ) from e
        else:
            error_text = response.text
            if response.is_success:
                data = {"success": True, "status": response.status_code}

        if not response.is_success:
            message = f"Circle API Error: {response.status_code}"
            if isinstance(data, dict) and (data.get("message") or data.get("error")):
                message = str(data.get("message") or data.get("error"))
            elif error_text:
                message = f"{message} - {error_text}"
            logger.error(
                f"{self.label} API error ({response.status_code}) for {method} {url}: {data or error_text}"
            )
            raise CircleAPIError(message, status_code=response.status_code, details=data or error_text)

        return data


class CircleAdminClient(_CircleClient):
    """Admin v2 API, authenticated with the community's admin key."""

    api_prefix = "/api/admin/v2/"
    label = "Circle Admin"

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str],
        community_id: Optional[int] = None,
        timeout: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(base_url, timeout=timeout, transport=transport)
        self.api_key = api_key
        self.community_id = community_id

    def _call(self, method: str, endpoint: str, **kwargs) -> Any:
        self._check_config()
        if not self.api_key:
            raise CircleConfigError("Circle admin API key is not configured")
        return self._request(method, endpoint, self.api_key, **kwargs)

    def find_member_id(self, email: str) -> Optional[int]:
        """
        Look up a community member by email.

        Returns None when Circle says the member does not exist, whether it
        answers with an empty result, a 404, or a "not found" message.
        """
        try:
            data = self._call("GET", "community_members/search", params={"email": email})
        except CircleAPIError as e:
            if e.is_not_found:
                return None
            raise

        if not isinstance(data, dict):
            return None
        if "community_members" in data:
            members = data.get("community_members") or []
            return members[0]["id"] if members else None
        return data.get("id")

    def create_member(self, email: str, name: Optional[str], skip_invitation: bool = True) -> Optional[int]:
        body: dict[str, Any] = {
            "email": email,
            "name": name or email.split("@")[0],
            "skip_invitation": skip_invitation,
        }
        if self.community_id:
            body["community_id"] = self.community_id

        data = self._call("POST", "community_members", body=body)
        if not isinstance(data, dict):
            return None
        member = data.get("community_member") or data
        return member.get("id")

    def add_space_member(self, member_id: int, space_id: int, email: str) -> None:
        self._call(
            "POST",
            "space_members",
            body={"community_member_id": member_id, "space_id": space_id, "email": email},
        )

    def remove_space_member(self, email: str, space_id: int) -> None:
        self._call("DELETE", "space_members", params={"email": email, "space_id": space_id})


class CircleHeadlessAuthClient(_CircleClient):
    """Issues member access tokens; tokens are requested per call, never cached."""

    api_prefix = "/api/headless/v1/"
    label = "Circle Headless Auth"

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str],
        timeout: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(base_url, timeout=timeout, transport=transport)
        self.api_key = api_key

    def create_member_token(self, email: str) -> str:
        self._check_config()
        if not self.api_key:
            raise CircleConfigError("Circle headless auth API key is not configured")
        data = self._request("POST", "auth_token", self.api_key, body={"email": email})
        token = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise CircleAPIError("Circle auth response did not include an access token", details=data)
        return token


class CircleMemberClient(_CircleClient):
    """Member v1 API, called with a member access token."""

    api_prefix = "/api/v1/"
    label = "Circle Member"

    def _call(self, method: str, endpoint: str, access_token: str, **kwargs) -> Any:
        self._check_config()
        if not access_token:
            raise CircleConfigError("Circle member API access token is required")
        return self._request(method, endpoint, access_token, **kwargs)

    def get_space(self, space_id: int, access_token: str) -> dict:
        return self._call("GET", f"spaces/{space_id}", access_token)

    def list_posts(self, space_id: int, access_token: str, per_page: int = 10) -> list[dict]:
        data = self._call("GET", f"spaces/{space_id}/posts", access_token, params={"per_page": per_page})
        if isinstance(data, dict):
            return data.get("records") or []
        return []
