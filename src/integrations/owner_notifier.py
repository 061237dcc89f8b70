"""
src/integrations/owner_notifier.py — Push a short alert to the dashboard owner.

Used by the agents when a run fails. The notification service receives

    POST {NOTIFICATION_API_URL}
    Authorization: Bearer {NOTIFICATION_API_KEY}
    {"title": "...", "content": "..."}

Delivery problems never raise: a non-2xx response or a transport error is
logged and `notify()` returns False. Bad input and missing configuration do
raise, because they are programming / deployment errors.
"""

import logging

import httpx

from config import Settings, settings as default_settings
from src.utils.exceptions import ConfigurationError, NotificationPayloadError

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 1200
CONTENT_MAX_LENGTH = 20000


def validate_payload(title: str, content: str) -> tuple[str, str]:
    """Trim and bound-check a notification. Raises NotificationPayloadError."""
    title = (title or "").strip()
    content = (content or "").strip()
    if not title:
        raise NotificationPayloadError("Notification title is required")
    if not content:
        raise NotificationPayloadError("Notification content is required")
    if len(title) > TITLE_MAX_LENGTH:
        raise NotificationPayloadError(
            f"Notification title must be at most {TITLE_MAX_LENGTH} characters",
            details={"length": len(title)},
        )
    if len(content) > CONTENT_MAX_LENGTH:
        raise NotificationPayloadError(
            f"Notification content must be at most {CONTENT_MAX_LENGTH} characters",
            details={"length": len(content)},
        )
    return title, content


class OwnerNotifier:

    def __init__(self, config: Settings | None = None):
        self._config = config or default_settings

    async def notify(self, title: str, content: str) -> bool:
        title, content = validate_payload(title, content)

        if not self._config.notification_api_url:
            raise ConfigurationError("notification_api_url")
        if not self._config.notification_api_key:
            raise ConfigurationError("notification_api_key")

        headers = {
            "Authorization": f"Bearer {self._config.notification_api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self._config.http_timeout_seconds) as client:
                resp = await client.post(
                    self._config.notification_api_url,
                    json={"title": title, "content": content},
                    headers=headers,
                )
        except httpx.HTTPError as exc:
            logger.warning("Owner notification failed: %s", exc)
            return False

        if resp.status_code >= 300:
            logger.warning(
                "Owner notification rejected (%d): %s", resp.status_code, resp.text[:200]
            )
            return False
        return True
