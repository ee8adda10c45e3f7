"""Delivery mechanisms for fired reminders.

The scheduler hands a rendered reminder to a DeliveryMechanism. Direct
deliveries that hit an unreachable target fall back once to a broadcast
at the reminder's origin.
"""
import asyncio
from typing import Callable, Protocol

import aiohttp
from loguru import logger

from .errors import DeliveryError, UnreachableError
from .models import Reminder
from .types import DeliveryMode

logger = logger.bind(module="scheduler.delivery")

# HTTP statuses that mean the destination cannot receive messages
UNREACHABLE_STATUSES = frozenset({403, 404, 410})

Renderer = Callable[[Reminder], str]


# ============== Protocol Definitions ==============

class DeliveryMechanism(Protocol):
    """Protocol for sending a rendered reminder."""

    async def deliver(self, target_id: str, mode: DeliveryMode, content: str) -> None:
        """Deliver content to a target.

        Raises:
            UnreachableError: The target cannot receive messages
            DeliveryError: Any other delivery failure
        """
        ...


def render_reminder(reminder: Reminder) -> str:
    """Default plain-text rendering of a reminder."""
    header = f"⏰ Reminder: {reminder.title}" if reminder.title else "⏰ Reminder"
    lines = [header, reminder.message]
    if reminder.recurrence is not None:
        lines.append(f"This reminder repeats {reminder.recurrence}")
    return "\n".join(lines)


async def deliver_reminder(
    delivery: DeliveryMechanism,
    reminder: Reminder,
    content: str,
) -> DeliveryMode:
    """Deliver a reminder, falling back to its origin when unreachable.

    Args:
        delivery: Delivery mechanism
        reminder: The reminder being fired
        content: Rendered reminder content

    Returns:
        The mode the reminder was finally delivered with

    Raises:
        DeliveryError: Delivery failed and no fallback applies
    """
    if reminder.delivery_mode == DeliveryMode.DIRECT:
        try:
            await delivery.deliver(reminder.target_id, DeliveryMode.DIRECT, content)
            return DeliveryMode.DIRECT
        except UnreachableError:
            if not reminder.origin_id:
                raise
            logger.warning(
                f"Target {reminder.target_id} unreachable for reminder {reminder.id}, "
                f"falling back to {reminder.origin_id}"
            )

    if not reminder.origin_id:
        raise DeliveryError(f"Reminder {reminder.id} has no origin to broadcast to")

    await delivery.deliver(reminder.origin_id, DeliveryMode.BROADCAST, content)
    return DeliveryMode.BROADCAST


# ============== Implementations ==============

class LoggingDelivery:
    """Delivery mechanism that only logs reminders."""

    async def deliver(self, target_id: str, mode: DeliveryMode, content: str) -> None:
        logger.info(f"[{mode.value}] -> {target_id}: {content}")


class WebhookDelivery:
    """Posts reminders to an HTTP webhook.

    The webhook receives ``{"target_id", "mode", "content"}`` as JSON.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 10.0,
        headers: dict[str, str] | None = None,
    ):
        """Initialize webhook delivery.

        Args:
            url: Webhook URL
            timeout_seconds: Total request timeout
            headers: Extra request headers
        """
        if not url:
            raise ValueError("No webhook URL configured")
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.headers = headers or {}

    async def deliver(self, target_id: str, mode: DeliveryMode, content: str) -> None:
        request_payload = {
            "target_id": target_id,
            "mode": mode.value,
            "content": content,
        }

        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, json=request_payload, headers=self.headers) as resp:
                    if resp.status in UNREACHABLE_STATUSES:
                        raise UnreachableError(
                            f"Webhook reported {target_id} unreachable (status {resp.status})"
                        )
                    if resp.status >= 400:
                        raise DeliveryError(f"Webhook failed with status {resp.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DeliveryError(f"Webhook request failed: {e}") from e

        logger.debug(f"Delivered to {target_id} via webhook ({mode.value})")
