"""Outbound channels - recipient resolution and message delivery."""

from schedbot.core.channels.messaging import StoreMessenger, WebhookMessenger, build_messenger
from schedbot.core.channels.notify import NotificationDispatcher
from schedbot.core.channels.recipients import resolve_recipients

__all__ = [
    "StoreMessenger",
    "WebhookMessenger",
    "build_messenger",
    "NotificationDispatcher",
    "resolve_recipients",
]
