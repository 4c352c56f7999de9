"""Anthropic Messages API client over httpx.

One request per call, no retries: transport and API failures surface as
ModelApiError with a category the process boundary can explain to the
human.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any

import httpx

from ghostpen.api.models import ApiResponse
from ghostpen.cognitive.schemas import SystemContext
from ghostpen.config import Settings

logger = logging.getLogger(__name__)

# Anthropic API version header
_API_VERSION = "2023-06-01"
_OAUTH_BETA = "oauth-2025-04-20"


class ErrorCategory(StrEnum):
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    CONNECTIVITY = "connectivity"
    TIMEOUT = "timeout"
    GENERIC = "generic"


class ModelApiError(Exception):
    """A model call failed. Never retried."""

    def __init__(
        self,
        category: ErrorCategory,
        message: str,
        status_code: int | None = None,
        error_type: str | None = None,
    ) -> None:
        self.category = category
        self.status_code = status_code
        self.error_type = error_type
        super().__init__(message)


def _categorize(status_code: int, error_type: str) -> ErrorCategory:
    if status_code in (401, 403) or error_type in ("authentication_error", "permission_error"):
        return ErrorCategory.AUTH
    if status_code == 429 or error_type == "rate_limit_error":
        return ErrorCategory.RATE_LIMIT
    return ErrorCategory.GENERIC


def build_auth_headers(api_key: str, auth_token: str) -> dict[str, str]:
    """Pick the auth header for the configured credential.

    OAuth tokens (sk-ant-oat*) need Bearer auth plus the OAuth beta
    headers, whichever variable they come from. Regular API keys use
    x-api-key.
    """
    token = auth_token or (api_key if "sk-ant-oat" in api_key else "")
    if token:
        headers = {"authorization": f"Bearer {token}"}
        if "sk-ant-oat" in token:
            headers["anthropic-beta"] = _OAUTH_BETA
            headers["anthropic-dangerous-direct-browser-access"] = "true"
        return headers
    if api_key:
        return {"x-api-key": api_key}
    return {}


class AnthropicClient:
    """Thin async client for POST /v1/messages."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def start(self) -> None:
        """Initialize the httpx client with auth and timeout settings."""
        settings = self._settings
        headers = {
            "anthropic-version": _API_VERSION,
            "content-type": "application/json",
            **build_auth_headers(settings.anthropic_api_key, settings.anthropic_auth_token),
        }
        if "x-api-key" not in headers and "authorization" not in headers:
            logger.warning(
                "Neither ANTHROPIC_API_KEY nor ANTHROPIC_AUTH_TOKEN is set -- "
                "API calls will fail"
            )

        timeout = httpx.Timeout(
            connect=settings.api_timeout_connect,
            read=settings.api_timeout_read,
            write=10.0,
            pool=10.0,
        )
        self._http = httpx.AsyncClient(
            base_url=settings.api_base_url,
            headers=headers,
            timeout=timeout,
            transport=self._transport,
        )
        auth_type = "Bearer token" if "authorization" in headers else "API key"
        logger.info("httpx client initialized (auth: %s)", auth_type)

    async def close(self) -> None:
        """Clean up httpx client."""
        if self._http:
            await self._http.aclose()
            self._http = None

    def build_payload(
        self,
        system: SystemContext,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self._settings.model,
            "max_tokens": self._settings.max_tokens,
            "system": system.to_api(),
            "messages": messages,
        }
        if tools:
            payload["tools"] = tools
            if tool_choice:
                payload["tool_choice"] = tool_choice
        return payload

    async def create(
        self,
        system: SystemContext,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: dict[str, Any] | None = None,
    ) -> ApiResponse:
        """Call the Messages API once and parse the response."""
        if not self._http:
            raise RuntimeError("httpx client not initialized -- call start() first")

        payload = self.build_payload(system, messages, tools, tool_choice)
        try:
            response = await self._http.post("/v1/messages", json=payload)
        except httpx.TimeoutException as e:
            raise ModelApiError(ErrorCategory.TIMEOUT, f"API request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ModelApiError(ErrorCategory.CONNECTIVITY, f"HTTP error: {e}") from e

        if response.status_code != 200:
            try:
                error = response.json().get("error", {})
                error_type = error.get("type", "unknown")
                error_msg = error.get("message", "unknown error")
            except (ValueError, AttributeError):
                error_type = "http_error"
                error_msg = f"HTTP {response.status_code}: {response.text[:500]}"
            raise ModelApiError(
                _categorize(response.status_code, error_type),
                f"Anthropic API error ({response.status_code}): {error_type} - {error_msg}",
                status_code=response.status_code,
                error_type=error_type,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ModelApiError(
                ErrorCategory.GENERIC,
                f"Anthropic API returned a non-JSON body: {response.text[:200]}",
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict):
            raise ModelApiError(
                ErrorCategory.GENERIC,
                f"Anthropic API returned unexpected {type(data).__name__} body",
                status_code=response.status_code,
            )
        return ApiResponse(
            content=data.get("content") or [],
            stop_reason=data.get("stop_reason") or "end_turn",
            usage=data.get("usage"),
            model=data.get("model"),
        )
