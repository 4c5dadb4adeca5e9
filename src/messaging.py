"""
Notification channels used after checkout.

Each sender implements the single ``send(to, content)`` capability.  The
shipped senders are console stubs: they print the message instead of
talking to a mail server or SMS gateway, so swapping one for a real
transport does not affect the cart logic.  ``channel`` names the user
contact field a sender expects as its recipient (``email`` or
``phone``).
"""

from __future__ import annotations

import logging
from typing import Dict, List

logger = logging.getLogger(__name__)


class MessageSender:
    """Abstract base for notification senders."""

    channel: str = ""

    def send(self, to: str, content: str) -> None:
        raise NotImplementedError


class EmailSender(MessageSender):
    """Pretend to send an e-mail by writing it to stdout."""

    channel = "email"

    def send(self, to: str, content: str) -> None:
        print(f"Sending Email to {to}: {content}")
        logger.info("email sent", extra={"extra": {"recipient": to}})


class SmsSender(MessageSender):
    """Pretend to send a text message by writing it to stdout."""

    channel = "phone"

    def send(self, to: str, content: str) -> None:
        print(f"Sending SMS to {to}: {content}")
        logger.info("sms sent", extra={"extra": {"recipient": to}})


_SENDERS: Dict[str, MessageSender] = {}


def register_sender(name: str, sender: MessageSender) -> None:
    _SENDERS[name.strip().lower()] = sender


def get_sender(name: str) -> MessageSender:
    """Look up a registered sender by name (case-insensitive).

    Raises:
        ValueError: If no sender is registered under ``name``.
    """
    sender = _SENDERS.get(name.strip().lower())
    if sender is None:
        raise ValueError(f"No message sender registered for channel '{name}'")
    return sender


def available_senders() -> List[str]:
    return sorted(_SENDERS)


register_sender("email", EmailSender())
register_sender("sms", SmsSender())
