"""Tests for AnthropicClient: payload shape, auth headers, error categories."""

import json

import httpx
import pytest

from ghostpen.api.client import AnthropicClient, ErrorCategory, ModelApiError, build_auth_headers
from ghostpen.cognitive.schemas import SystemContext, SystemSegment

SYSTEM = SystemContext(segments=(
    SystemSegment(label="rules", text="be brief"),
    SystemSegment(label="profile", text="{}", cacheable=True),
))
MESSAGES = [{"role": "user", "content": [{"type": "text", "text": "write a post"}]}]
TOOLS = [{"name": "track_feedback", "description": "x", "input_schema": {"type": "object"}}]


def _ok_body(**overrides) -> dict:
    body = {
        "id": "msg_1",
        "model": "claude-sonnet-4-20250514",
        "content": [{"type": "text", "text": "Draft"}],
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 10, "output_tokens": 5},
    }
    body.update(overrides)
    return body


async def _client(settings, handler) -> AnthropicClient:
    client = AnthropicClient(settings, transport=httpx.MockTransport(handler))
    await client.start()
    return client


# ------------------------------------------------------------------
# Auth headers
# ------------------------------------------------------------------


class TestAuthHeaders:
    def test_api_key(self):
        assert build_auth_headers("sk-ant-api-1", "") == {"x-api-key": "sk-ant-api-1"}

    def test_auth_token_wins(self):
        headers = build_auth_headers("sk-ant-api-1", "tok")
        assert headers == {"authorization": "Bearer tok"}

    def test_oauth_token_in_api_key(self):
        headers = build_auth_headers("sk-ant-oat01-abc", "")
        assert headers["authorization"] == "Bearer sk-ant-oat01-abc"
        assert headers["anthropic-beta"] == "oauth-2025-04-20"
        assert "x-api-key" not in headers

    def test_nothing_configured(self):
        assert build_auth_headers("", "") == {}


# ------------------------------------------------------------------
# Requests
# ------------------------------------------------------------------


class TestCreate:
    @pytest.mark.asyncio
    async def test_payload_and_parse(self, settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_ok_body())

        client = await _client(settings, handler)
        try:
            response = await client.create(SYSTEM, MESSAGES, tools=TOOLS)
        finally:
            await client.close()

        assert seen["path"] == "/v1/messages"
        assert seen["headers"]["x-api-key"] == "test-key"
        assert seen["headers"]["anthropic-version"] == "2023-06-01"
        body = seen["body"]
        assert body["model"] == settings.model
        assert body["system"][1]["cache_control"] == {"type": "ephemeral"}
        assert body["tools"] == TOOLS
        assert "tool_choice" not in body
        assert response.text() == "Draft"
        assert response.usage == {"input_tokens": 10, "output_tokens": 5}
        assert response.wants_tools is False

    def test_tool_choice_needs_tools(self, settings):
        client = AnthropicClient(settings)
        payload = client.build_payload(SYSTEM, MESSAGES, tool_choice={"type": "none"})
        assert "tools" not in payload
        assert "tool_choice" not in payload

        payload = client.build_payload(SYSTEM, MESSAGES, tools=TOOLS, tool_choice={"type": "none"})
        assert payload["tool_choice"] == {"type": "none"}

    @pytest.mark.asyncio
    async def test_tool_use_response(self, settings):
        body = _ok_body(
            stop_reason="tool_use",
            content=[
                {"type": "text", "text": "Checking"},
                {"type": "tool_use", "id": "tu_1", "name": "read_past_posts", "input": {"keywords": ["ai"]}},
            ],
        )
        client = await _client(settings, lambda request: httpx.Response(200, json=body))
        try:
            response = await client.create(SYSTEM, MESSAGES, tools=TOOLS)
        finally:
            await client.close()
        assert response.wants_tools is True
        assert response.tool_uses[0].input == {"keywords": ["ai"]}

    @pytest.mark.asyncio
    async def test_not_started(self, settings):
        with pytest.raises(RuntimeError):
            await AnthropicClient(settings).create(SYSTEM, MESSAGES)


# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------


class TestErrors:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, error_type, category",
        [
            (401, "authentication_error", ErrorCategory.AUTH),
            (403, "permission_error", ErrorCategory.AUTH),
            (429, "rate_limit_error", ErrorCategory.RATE_LIMIT),
            (529, "overloaded_error", ErrorCategory.GENERIC),
            (400, "invalid_request_error", ErrorCategory.GENERIC),
        ],
    )
    async def test_status_categories(self, settings, status, error_type, category):
        def handler(request):
            return httpx.Response(status, json={"type": "error", "error": {"type": error_type, "message": "nope"}})

        client = await _client(settings, handler)
        try:
            with pytest.raises(ModelApiError) as exc_info:
                await client.create(SYSTEM, MESSAGES)
        finally:
            await client.close()
        assert exc_info.value.category is category
        assert exc_info.value.status_code == status
        assert "nope" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, settings):
        client = await _client(settings, lambda request: httpx.Response(502, text="<html>bad gateway</html>"))
        try:
            with pytest.raises(ModelApiError) as exc_info:
                await client.create(SYSTEM, MESSAGES)
        finally:
            await client.close()
        assert exc_info.value.category is ErrorCategory.GENERIC
        assert exc_info.value.error_type == "http_error"

    @pytest.mark.asyncio
    async def test_non_json_success_body(self, settings):
        client = await _client(settings, lambda request: httpx.Response(200, text="<html>proxy login</html>"))
        try:
            with pytest.raises(ModelApiError) as exc_info:
                await client.create(SYSTEM, MESSAGES)
        finally:
            await client.close()
        assert exc_info.value.category is ErrorCategory.GENERIC
        assert exc_info.value.status_code == 200
        assert "proxy login" in str(exc_info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [200, 500])
    async def test_json_body_not_an_object(self, settings, status):
        client = await _client(settings, lambda request: httpx.Response(status, json=["unexpected"]))
        try:
            with pytest.raises(ModelApiError) as exc_info:
                await client.create(SYSTEM, MESSAGES)
        finally:
            await client.close()
        assert exc_info.value.category is ErrorCategory.GENERIC
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_timeout(self, settings):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        client = await _client(settings, handler)
        try:
            with pytest.raises(ModelApiError) as exc_info:
                await client.create(SYSTEM, MESSAGES)
        finally:
            await client.close()
        assert exc_info.value.category is ErrorCategory.TIMEOUT

    @pytest.mark.asyncio
    async def test_connect_error(self, settings):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = await _client(settings, handler)
        try:
            with pytest.raises(ModelApiError) as exc_info:
                await client.create(SYSTEM, MESSAGES)
        finally:
            await client.close()
        assert exc_info.value.category is ErrorCategory.CONNECTIVITY
