"""
Unit Tests - Alert Notifications
"""
from datetime import date

import httpx

from conftest import WEBHOOK_URL, FakeWebhook
from skupulse.alerts.notifier import (
    SlackNotifier,
    restock_message,
    run_completed_message,
    run_failed_message,
)
from skupulse.metrics.rollup import SkuMetrics


def metrics(cover=7.636) -> SkuMetrics:
    return SkuMetrics("SKU-A", date(2025, 3, 15), 5, 5.0, 5.5, 42, cover)


class TestMessages:
    """Tests for message formatting"""

    def test_restock_message(self):
        text = restock_message(metrics())

        assert "SKU: SKU-A" in text
        assert "Stock: 42" in text
        assert "5.50" in text
        assert "~7.6 days" in text

    def test_run_messages(self):
        assert "products 2, orders 32" in run_completed_message(2, 32, "2025-03-15T12:00:00")
        assert run_failed_message("boom").endswith("ETL failed: boom")


class TestSlackNotifier:
    """Tests for SlackNotifier delivery"""

    async def test_posts_text_payload(self):
        webhook = FakeWebhook()
        notifier = webhook.notifier()

        assert await notifier.restock_alert(metrics()) is True

        assert webhook.payloads == [{"text": restock_message(metrics())}]
        assert notifier.sent == 1

    async def test_disabled_without_url(self):
        calls = []
        notifier = SlackNotifier(None, transport=httpx.MockTransport(lambda r: calls.append(r)))

        assert notifier.enabled is False
        assert await notifier.send("hello") is False
        assert calls == []

    async def test_error_status_is_swallowed(self):
        webhook = FakeWebhook(status_code=500)
        notifier = webhook.notifier()

        assert await notifier.send("hello") is False
        assert notifier.failed == 1
        assert notifier.sent == 0

    async def test_transport_error_is_swallowed(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        notifier = SlackNotifier(WEBHOOK_URL, transport=httpx.MockTransport(handler))

        assert await notifier.send("hello") is False
        assert notifier.failed == 1
