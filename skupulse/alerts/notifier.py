"""
Alert Notifications

Posts plain-text messages to an incoming-webhook sink (Slack format).
Delivery failures are logged and swallowed; an alert must never fail a run.
"""

from typing import Optional

import httpx
import structlog

from skupulse.config.settings import AlertSettings
from skupulse.exceptions import NotificationError
from skupulse.metrics.rollup import SkuMetrics

logger = structlog.get_logger(__name__)


def restock_message(metrics: SkuMetrics) -> str:
    cover = metrics.days_of_cover if metrics.days_of_cover is not None else 0.0
    return (
        f":warning: RESTOCK ALERT - SKU: {metrics.sku}\n"
        f"Stock: {metrics.current_stock} | Avg daily (30d): {metrics.rolling30:.2f} "
        f"-> ~{cover:.1f} days"
    )


def run_completed_message(products: int, orders: int, finished_at: str) -> str:
    return f":white_check_mark: ETL completed {finished_at}: products {products}, orders {orders}"


def run_failed_message(error: str) -> str:
    return f":x: ETL failed: {error}"


class SlackNotifier:
    """
    Webhook notification sink.

    With no webhook URL configured every send is a no-op.
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._transport = transport
        self.sent = 0
        self.failed = 0

    @classmethod
    def from_settings(cls, settings: AlertSettings) -> "SlackNotifier":
        return cls(settings.slack_webhook_url, timeout=settings.timeout_seconds)

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def _post(self, text: str) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(self.webhook_url, json={"text": text})
            except httpx.HTTPError as e:
                raise NotificationError(f"webhook post failed: {e}") from e
        if response.status_code >= 400:
            raise NotificationError(f"webhook returned {response.status_code}: {response.text[:200]}")

    async def send(self, text: str) -> bool:
        """
        Deliver one message.

        Returns:
            True if the sink accepted it, False if disabled or delivery failed
        """
        if not self.enabled:
            logger.debug("Notification skipped, no webhook configured")
            return False
        try:
            await self._post(text)
        except NotificationError as e:
            self.failed += 1
            logger.warning("Notification delivery failed", error=str(e))
            return False
        self.sent += 1
        return True

    async def restock_alert(self, metrics: SkuMetrics) -> bool:
        logger.info(
            "Restock alert",
            sku=metrics.sku,
            current_stock=metrics.current_stock,
            rolling30=round(metrics.rolling30, 3),
            days_of_cover=metrics.days_of_cover,
        )
        return await self.send(restock_message(metrics))
