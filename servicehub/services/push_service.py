"""
Push Notification Transport
Sends notifications to mobile devices through the Expo push service
"""

import logging
from typing import Optional

import httpx

from ..config import EXPO_PUSH_URL, PUSH_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

# Expo accepts at most 100 messages per request
EXPO_BATCH_SIZE = 100


def build_messages(tokens: list[str], title: str, message: str, data: Optional[dict] = None) -> list[dict]:
    """Build one Expo message per device token"""
    return [
        {
            "to": token,
            "title": title,
            "body": message,
            "sound": "default",
            "data": data or {},
        }
        for token in tokens
    ]


def send_push_notification(
    tokens: list[str], title: str, message: str, data: Optional[dict] = None
) -> list[str]:
    """
    Send a push notification to a set of device tokens.

    Args:
        tokens: Expo push tokens of the recipient's devices
        title: Notification title
        message: Notification body
        data: Extra payload (deep link, related record)

    Returns:
        Tokens Expo reported as no longer registered (callers should deactivate them)

    Raises:
        httpx.HTTPError: If the push service cannot be reached
    """
    if not tokens:
        return []

    invalid_tokens = []
    messages = build_messages(tokens, title, message, data)

    with httpx.Client(timeout=PUSH_TIMEOUT_SECONDS) as client:
        for start in range(0, len(messages), EXPO_BATCH_SIZE):
            batch = messages[start : start + EXPO_BATCH_SIZE]
            response = client.post(
                EXPO_PUSH_URL,
                json=batch,
                headers={"Accept": "application/json", "Content-Type": "application/json"},
            )
            response.raise_for_status()

            tickets = response.json().get("data", [])
            for ticket, sent in zip(tickets, batch):
                if ticket.get("status") == "error":
                    error = (ticket.get("details") or {}).get("error")
                    if error == "DeviceNotRegistered":
                        invalid_tokens.append(sent["to"])
                    else:
                        logger.warning(f"⚠️ Push ticket error for token {sent['to'][:20]}...: {ticket}")

    logger.info(f"📱 Push sent to {len(tokens)} device(s), {len(invalid_tokens)} unregistered")
    return invalid_tokens
