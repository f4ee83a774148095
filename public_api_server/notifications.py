"""
Usage warning notifications.

When a key's daily usage crosses a warning threshold the gateway asks the
notifier to email the key owner. The send runs as a detached asyncio task:
the request never waits for it, and any failure is logged and dropped.
There is no retry.
"""

import asyncio
import html
from typing import Any, Dict, Optional, Set

import httpx
from email_validator import EmailNotValidError, validate_email

from public_api_server.logging_config import get_logger
from public_api_server.models import ApiKeyRecord
from public_api_server.store import RecordStore, eq

logger = get_logger("notifications")

CRITICAL_THRESHOLD = 95


def render_warning_email(
    key_name: str,
    recipient_name: str,
    percent: int,
    current: int,
    limit: int,
) -> Dict[str, str]:
    """Build the subject and HTML body of a usage warning."""
    safe_key = html.escape(key_name)
    safe_name = html.escape(recipient_name)
    critical = percent >= CRITICAL_THRESHOLD
    color = "#dc2626" if critical else "#f59e0b"
    advice = (
        "You are about to reach your limit. Further requests may be rejected."
        if critical
        else "Please keep an eye on your usage to avoid being rate limited."
    )

    subject = f"⚠️ API key \"{key_name}\" has reached {percent}% of its daily limit"
    body = f"""
      <h2>Rate limit warning</h2>
      <p>Hello {safe_name},</p>
      <p>Your API key <strong>"{safe_key}"</strong> has used <strong>{percent}%</strong> of its daily limit.</p>
      <table style="border-collapse: collapse; margin: 20px 0;">
        <tr>
          <td style="padding: 8px; border: 1px solid #ddd;">Used:</td>
          <td style="padding: 8px; border: 1px solid #ddd;"><strong>{current:,} requests</strong></td>
        </tr>
        <tr>
          <td style="padding: 8px; border: 1px solid #ddd;">Limit:</td>
          <td style="padding: 8px; border: 1px solid #ddd;"><strong>{limit:,} requests/day</strong></td>
        </tr>
      </table>
      <p style="color: {color};">{advice}</p>
      <p>Contact an administrator if you need a higher limit.</p>
    """
    return {"subject": subject, "html": body}


class UsageWarningNotifier:
    """Sends usage warning emails through the notification function."""

    def __init__(
        self,
        store: RecordStore,
        notification_url: Optional[str],
        auth_token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            store: Record store used to look up the key owner's profile
            notification_url: Endpoint of the email-sending function (None disables sending)
            auth_token: Optional bearer token for that endpoint
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.store = store
        self.notification_url = notification_url
        self.auth_token = auth_token
        self.timeout = timeout
        self._transport = transport
        self._background_tasks: Set[asyncio.Task] = set()

    def dispatch(self, key: ApiKeyRecord, percent: int, current: int, limit: int) -> None:
        """Schedule a warning without waiting for it."""
        task = asyncio.create_task(self.send_warning(key, percent, current, limit))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def drain(self) -> None:
        """Wait for outstanding warnings (shutdown, tests)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._background_tasks)

    async def send_warning(
        self, key: ApiKeyRecord, percent: int, current: int, limit: int
    ) -> bool:
        """
        Look up the owner, render the email and post it.

        Returns:
            True if the notification endpoint accepted the email
        """
        try:
            if not self.notification_url:
                logger.info("usage_warning_skipped", key_id=key.id, reason="notifications_disabled")
                return False

            profile = await self.store.select_one("profiles", [eq("user_id", key.user_id)])
            email = (profile or {}).get("email")
            if not email:
                logger.info("usage_warning_skipped", key_id=key.id, reason="no_email")
                return False

            try:
                email = validate_email(email, check_deliverability=False).normalized
            except EmailNotValidError as e:
                logger.warning("usage_warning_skipped", key_id=key.id, reason="invalid_email", error=str(e))
                return False

            message = render_warning_email(
                key_name=key.name,
                recipient_name=profile.get("full_name") or email,
                percent=percent,
                current=current,
                limit=limit,
            )
            payload: Dict[str, Any] = {"to": email, **message}
            headers = {"Content-Type": "application/json"}
            if self.auth_token:
                headers["Authorization"] = f"Bearer {self.auth_token}"

            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.notification_url, json=payload, headers=headers)
                response.raise_for_status()

            logger.info("usage_warning_sent", key_id=key.id, percent=percent)
            return True

        except Exception as e:
            logger.error("usage_warning_failed", key_id=key.id, percent=percent, error=str(e))
            return False
