"""
HTTP client for the conversation platform tenant API.

The platform exposes:
- Users (bot user bootstrap)
- Dialog messages (send, list, query by meta tag)
- Meta tags scoped to dialogs and messages
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx

from helper_bot.config import get_settings

logger = logging.getLogger(__name__)


class PlatformError(Exception):
    """Raised when a platform API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UserLookup(str, Enum):
    """Outcome of a find-or-create user call."""

    FOUND = "found"
    CREATED = "created"
    FAILED = "failed"


@dataclass
class EnsureUserResult:
    """Result of ensure_user."""

    status: UserLookup
    user: Optional[dict] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != UserLookup.FAILED


@dataclass
class SendResult:
    """Result of sending a message to a dialog."""

    success: bool
    message_id: Optional[str] = None
    data: Optional[dict] = None
    error: Optional[str] = None
    status_code: Optional[int] = None


def _unwrap(response: httpx.Response) -> Any:
    """Return the ``data`` envelope of a platform response if present."""
    if not response.content:
        return None
    body = response.json()
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


class PlatformClient:
    """
    HTTP client for the conversation platform.

    Endpoints (relative to the configured base URL):
    - GET /users/{userId}, POST /users
    - POST /dialogs/{dialogId}/messages
    - GET /dialogs/{dialogId}/messages
    - GET /meta/{scope}/{entityId}, PUT /meta/{scope}/{entityId}/{key}
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        tenant_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize client.

        Args:
            base_url: Platform API base URL (defaults to settings)
            api_key: API key (defaults to settings)
            tenant_id: Tenant id (defaults to settings)
            timeout: Request timeout in seconds
        """
        settings = get_settings()
        self.base_url = (base_url or settings.platform_api_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.platform_api_key
        self.tenant_id = tenant_id or settings.platform_tenant_id
        self.timeout = timeout or settings.platform_timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    "X-API-Key": self.api_key,
                    "X-Tenant-ID": self.tenant_id,
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    # === Users ===

    async def ensure_user(
        self,
        user_id: str,
        name: str,
        user_type: str = "bot",
    ) -> EnsureUserResult:
        """Find a user, creating it when the platform reports 404.

        Args:
            user_id: Platform user id
            name: Display name for creation
            user_type: User type for creation

        Returns:
            EnsureUserResult tagged found / created / failed
        """
        client = await self._get_client()

        try:
            response = await client.get(f"/users/{user_id}")

            if response.status_code == 200:
                logger.info(f"User {user_id} already exists")
                return EnsureUserResult(status=UserLookup.FOUND, user=_unwrap(response))

            if response.status_code != 404:
                return EnsureUserResult(
                    status=UserLookup.FAILED,
                    reason=f"lookup returned HTTP {response.status_code}",
                )

            logger.info(f"Creating user {user_id} of type {user_type}")
            response = await client.post(
                "/users",
                json={"userId": user_id, "name": name, "type": user_type},
            )

            if response.status_code in (200, 201):
                return EnsureUserResult(status=UserLookup.CREATED, user=_unwrap(response))

            return EnsureUserResult(
                status=UserLookup.FAILED,
                reason=f"create returned HTTP {response.status_code}",
            )

        except httpx.HTTPError as e:
            logger.error(f"Failed to ensure user {user_id}: {e}")
            return EnsureUserResult(status=UserLookup.FAILED, reason=str(e))

    async def check_health(self, user_id: str) -> bool:
        """Check the platform answers authenticated requests."""
        client = await self._get_client()

        try:
            response = await client.get(f"/users/{user_id}")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"Platform health check failed: {e}")
            return False

    # === Messages ===

    async def send_message(
        self,
        dialog_id: str,
        content: str,
        sender_id: str,
        message_type: str = "internal.text",
    ) -> SendResult:
        """Create a message in a dialog on behalf of ``sender_id``.

        Args:
            dialog_id: Dialog identifier
            content: Message text
            sender_id: Sender user id (the bot)
            message_type: Platform message type

        Returns:
            SendResult with the created message id
        """
        client = await self._get_client()

        try:
            response = await client.post(
                f"/dialogs/{dialog_id}/messages",
                json={"senderId": sender_id, "type": message_type, "content": content},
            )

            if response.status_code not in (200, 201):
                logger.error(
                    f"Failed to send message to dialog {dialog_id}: "
                    f"HTTP {response.status_code} {response.text[:200]}"
                )
                return SendResult(
                    success=False,
                    error=f"HTTP {response.status_code}",
                    status_code=response.status_code,
                )

            data = _unwrap(response) or {}
            message_id = data.get("messageId", data.get("id")) if isinstance(data, dict) else None
            logger.info(f"Message sent to dialog {dialog_id}: {content[:100]}")
            return SendResult(success=True, message_id=message_id, data=data)

        except httpx.HTTPError as e:
            logger.error(f"Failed to send message to dialog {dialog_id}: {e}")
            return SendResult(success=False, error=str(e))

    async def list_messages(
        self,
        dialog_id: str,
        limit: int = 10,
        newest_first: bool = True,
        meta: Optional[dict[str, Any]] = None,
    ) -> list[dict]:
        """List dialog messages, optionally filtered by meta tags.

        Args:
            dialog_id: Dialog identifier
            limit: Maximum messages to return
            newest_first: Sort by creation time descending
            meta: Meta tag filters, sent as ``meta[<key>]=<value>``

        Returns:
            List of raw message dicts

        Raises:
            PlatformError: If the request fails
        """
        client = await self._get_client()

        params: dict[str, Any] = {
            "limit": limit,
            "sort": "createdAt:desc" if newest_first else "createdAt:asc",
        }
        for key, value in (meta or {}).items():
            if isinstance(value, bool):
                value = "true" if value else "false"
            params[f"meta[{key}]"] = value

        try:
            response = await client.get(f"/dialogs/{dialog_id}/messages", params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PlatformError(
                f"Failed to list messages of dialog {dialog_id}: {e}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise PlatformError(f"Failed to list messages of dialog {dialog_id}: {e}") from e

        data = _unwrap(response)
        if isinstance(data, dict):
            data = data.get("messages", data.get("items", []))
        return list(data or [])

    # === Meta ===

    async def get_meta(self, scope: str, entity_id: str) -> dict:
        """Get all meta tags of an entity.

        Args:
            scope: "dialog" or "message"
            entity_id: Dialog or message id

        Returns:
            Mapping key -> {value, dataType} (or plain value)

        Raises:
            PlatformError: If the request fails
        """
        client = await self._get_client()

        try:
            response = await client.get(f"/meta/{scope}/{entity_id}")
            if response.status_code == 404:
                return {}
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PlatformError(
                f"Failed to get {scope} meta {entity_id}: {e}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise PlatformError(f"Failed to get {scope} meta {entity_id}: {e}") from e

        data = _unwrap(response)
        return data if isinstance(data, dict) else {}

    async def set_meta(
        self,
        scope: str,
        entity_id: str,
        key: str,
        value: Any,
        data_type: Optional[str] = None,
        meta_scope: Optional[str] = None,
    ) -> Any:
        """Set one meta tag of an entity.

        Args:
            scope: "dialog" or "message"
            entity_id: Dialog or message id
            key: Meta key
            value: JSON-serializable value
            data_type: Optional platform data type (string, boolean, ...)
            meta_scope: Optional visibility scope of the tag

        Returns:
            Platform acknowledgement payload

        Raises:
            PlatformError: If the request fails
        """
        client = await self._get_client()

        payload: dict[str, Any] = {"value": value}
        if data_type:
            payload["dataType"] = data_type
        if meta_scope:
            payload["scope"] = meta_scope

        try:
            response = await client.put(f"/meta/{scope}/{entity_id}/{key}", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PlatformError(
                f"Failed to set {scope} meta {key} on {entity_id}: {e}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise PlatformError(f"Failed to set {scope} meta {key} on {entity_id}: {e}") from e

        return _unwrap(response)
