"""
Error taxonomy for the sync service.

Fatal errors (configuration, catalog fetch) abort a run and surface to the
trigger endpoint. Everything else is handled where it happens.
"""

from typing import Any, List, Optional


class SkuPulseError(Exception):
    """Base class for all service errors"""


class ConfigurationError(SkuPulseError):
    """Required configuration is missing or invalid"""


class ShopifyAPIError(SkuPulseError):
    """An outbound call to the store API failed"""

    def __init__(
        self,
        operation: str,
        url: str,
        status: Optional[int] = None,
        body: str = "",
        message: Optional[str] = None,
    ):
        self.operation = operation
        self.url = url
        self.status = status
        self.body = body[:500]
        super().__init__(message or f"Shopify {operation} failed with status {status}")


class CatalogFetchError(SkuPulseError):
    """The product catalog could not be fetched; the run cannot continue"""


class FetchFailure(SkuPulseError):
    """
    A paginated fetch stopped on an error.

    Carries whatever items were collected before the failing page so a
    degraded stage can keep them.
    """

    def __init__(self, stage: str, items: List[Any], cause: Exception):
        self.stage = stage
        self.items = items
        self.cause = cause
        super().__init__(f"{stage} fetch failed after {len(items)} items: {cause}")


class NotificationError(SkuPulseError):
    """An alert message could not be delivered"""
