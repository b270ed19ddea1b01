"""Tests for schedbot.core.channels.messaging."""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from schedbot.core.channels.messaging import (
    AgentMessage,
    StoreMessenger,
    WebhookMessenger,
    build_messenger,
)
from schedbot.core.config import Config

MESSAGE = AgentMessage(
    agent_id="local-1",
    recipient_profile_id="u1",
    workspace_id="ws-1",
    body="hello",
    metadata={"execution_id": "e1"},
)

_REAL_CLIENT = httpx.AsyncClient


def _mock_client(handler):
    return lambda **kw: _REAL_CLIENT(transport=httpx.MockTransport(handler), **kw)


@pytest.mark.asyncio
async def test_store_messenger(store):
    result = await StoreMessenger(store).send(MESSAGE)
    assert result.success
    assert result.conversation_id

    again = await StoreMessenger(store).send(MESSAGE)
    assert again.conversation_id == result.conversation_id

    msgs = store.get_user_agent_messages("u1")
    assert [m["content"] for m in msgs] == ["hello", "hello"]


@pytest.mark.asyncio
async def test_store_messenger_error():
    broken = MagicMock()
    broken.get_or_create_conversation.side_effect = RuntimeError("db locked")
    result = await StoreMessenger(broken).send(MESSAGE)
    assert not result.success
    assert "db locked" in result.error


@pytest.mark.asyncio
async def test_webhook_messenger_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"messageId": "m1", "conversationId": "c1"})

    with patch("schedbot.core.channels.messaging.httpx.AsyncClient", side_effect=_mock_client(handler)):
        result = await WebhookMessenger("http://hook.test/send", token="tok").send(MESSAGE)

    assert result.success
    assert (result.message_id, result.conversation_id) == ("m1", "c1")
    assert seen["auth"] == "Bearer tok"
    assert seen["body"] == {
        "agentId": "local-1",
        "recipientProfileId": "u1",
        "workspaceId": "ws-1",
        "content": "hello",
        "metadata": {"execution_id": "e1"},
    }


@pytest.mark.asyncio
async def test_webhook_messenger_http_error():
    handler = lambda request: httpx.Response(500, text="boom")  # noqa: E731
    with patch("schedbot.core.channels.messaging.httpx.AsyncClient", side_effect=_mock_client(handler)):
        result = await WebhookMessenger("http://hook.test/send").send(MESSAGE)
    assert not result.success
    assert result.error == "HTTP 500"


@pytest.mark.asyncio
async def test_webhook_messenger_connect_error():
    def handler(request):
        raise httpx.ConnectError("refused")

    with patch("schedbot.core.channels.messaging.httpx.AsyncClient", side_effect=_mock_client(handler)):
        result = await WebhookMessenger("http://hook.test/send").send(MESSAGE)
    assert not result.success


def test_build_messenger(store):
    assert isinstance(build_messenger(Config(), store), StoreMessenger)
    hooked = build_messenger(Config(messaging={"webhook_url": "http://hook.test"}), store)
    assert isinstance(hooked, WebhookMessenger)
