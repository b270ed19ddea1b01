"""Agent messaging - deliver a message from an agent to a workspace member."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import httpx
from loguru import logger
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from schedbot.core.config.schema import Config
    from schedbot.memory.store import ScheduleStore


class AgentMessage(BaseModel):
    agent_id: str  # local agent (agents.id)
    recipient_profile_id: str
    workspace_id: str
    body: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class SendResult(BaseModel):
    success: bool
    message_id: str | None = None
    conversation_id: str | None = None
    error: str | None = None


class Messenger(Protocol):
    async def send(self, message: AgentMessage) -> SendResult: ...


class StoreMessenger:
    """Posts into the recipient's agent chat (agent_conversations / agent_messages).

    Reuses the latest conversation for the agent/user pair, otherwise opens a
    new "Scheduled Tasks" conversation.
    """

    def __init__(self, store: ScheduleStore, title: str = "Scheduled Tasks"):
        self.store = store
        self.title = title

    async def send(self, message: AgentMessage) -> SendResult:
        try:
            conversation_id = self.store.get_or_create_conversation(
                message.agent_id,
                message.recipient_profile_id,
                message.workspace_id,
                title=self.title,
            )
            message_id = self.store.add_agent_message(conversation_id, message.body)
        except Exception as e:
            logger.error(
                f"Failed to store agent message for {message.recipient_profile_id}: {e}"
            )
            return SendResult(success=False, error=str(e))

        logger.debug(
            f"Agent {message.agent_id} → {message.recipient_profile_id} "
            f"(conversation {conversation_id})"
        )
        return SendResult(
            success=True, message_id=message_id, conversation_id=conversation_id
        )


class WebhookMessenger:
    """POSTs each message as JSON to an external delivery service."""

    def __init__(self, url: str, token: str = "", timeout_s: float = 10.0):
        self.url = url
        self.token = token
        self.timeout_s = timeout_s

    async def send(self, message: AgentMessage) -> SendResult:
        payload = {
            "agentId": message.agent_id,
            "recipientProfileId": message.recipient_profile_id,
            "workspaceId": message.workspace_id,
            "content": message.body,
            "metadata": message.metadata,
        }
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_s), headers=self._headers()
        ) as client:
            try:
                resp = await client.post(self.url, json=payload)
            except httpx.HTTPError as e:
                logger.warning(f"Webhook delivery error: {e}")
                return SendResult(success=False, error=str(e))

        if resp.status_code not in (200, 201, 202):
            logger.warning(
                f"Webhook delivery failed ({resp.status_code}): {resp.text[:200]}"
            )
            return SendResult(success=False, error=f"HTTP {resp.status_code}")

        data = _json_or_empty(resp)
        return SendResult(
            success=True,
            message_id=data.get("messageId"),
            conversation_id=data.get("conversationId"),
        )

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers


def _json_or_empty(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def build_messenger(config: Config, store: ScheduleStore) -> Messenger:
    """Webhook delivery when configured, agent chat store otherwise."""
    if config.messaging.webhook_url:
        logger.info(f"Messaging via webhook: {config.messaging.webhook_url}")
        return WebhookMessenger(
            config.messaging.webhook_url,
            token=config.messaging.webhook_token,
            timeout_s=config.messaging.timeout_s,
        )
    return StoreMessenger(store)
