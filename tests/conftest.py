"""
Test Suite Configuration

In-memory SQLite through aiosqlite stands in for PostgreSQL; the Shopify
Admin API and the Slack webhook are served by httpx.MockTransport. The read
cache runs against a dict-backed double of the few Redis calls it makes.
"""
import json
from datetime import date, timedelta
from fnmatch import fnmatch
from typing import AsyncGenerator, AsyncIterator, Dict, List, Optional, Set

import httpx
import pytest

from skupulse.alerts.notifier import SlackNotifier
from skupulse.config.settings import (
    AlertSettings,
    DatabaseSettings,
    RedisSettings,
    Settings,
    ShopifySettings,
    SyncSettings,
)
from skupulse.database.connection import Database
from skupulse.ingestion.shopify import ShopifyClient

STORE = "test-shop.myshopify.com"
WEBHOOK_URL = "https://hooks.slack.test/services/T000/B000/XXX"
ETL_SECRET = "s3cret"
AS_OF = date(2025, 3, 15)


def build_settings(
    store: Optional[str] = STORE,
    api_key: Optional[str] = "shpat_test",
    database_url: Optional[str] = "sqlite+aiosqlite://",
    etl_secret: Optional[str] = ETL_SECRET,
    app_env: str = "testing",
    **extra,
) -> Settings:
    """Settings with every section set explicitly; extra takes top-level aliases"""
    return Settings(
        APP_ENV=app_env,
        **extra,
        database=DatabaseSettings(DATABASE_URL=database_url),
        shopify=ShopifySettings(store=store, admin_api_key=api_key),
        sync=SyncSettings(ETL_SECRET=etl_secret, ORDER_WINDOW_DAYS=60, RESTOCK_THRESHOLD_DAYS=14),
        alerts=AlertSettings(SLACK_WEBHOOK_URL=WEBHOOK_URL),
        redis=RedisSettings(REDIS_URL=None),
    )


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return build_settings()


@pytest.fixture
async def db() -> AsyncGenerator[Database, None]:
    """Fresh in-memory database with the schema created"""
    database = Database.from_url("sqlite+aiosqlite://")
    await database.create_all()
    yield database
    await database.dispose()


# =============================================================================
# FAKE SHOPIFY
# =============================================================================

def _product_node(gid: int, title: str, handle: str, variants: List[dict]) -> dict:
    return {
        "id": f"gid://shopify/Product/{gid}",
        "handle": handle,
        "title": title,
        "images": {"edges": [{"node": {"src": f"https://cdn.test/{handle}.jpg", "altText": title}}]},
        "variants": {"edges": [{"node": v} for v in variants]},
    }


def _variant(gid: int, sku: Optional[str], price: str, inventory_item: Optional[int]) -> dict:
    return {
        "id": f"gid://shopify/ProductVariant/{gid}",
        "sku": sku,
        "price": price,
        "inventoryItem": {"id": f"gid://shopify/InventoryItem/{inventory_item}"} if inventory_item else None,
    }


def build_orders(as_of: date) -> List[dict]:
    """
    Order history around as_of:
    - SKU-A: 4 units on each of the 30 days ending as_of
    - SKU-B: 10 units three days before as_of, 100 units 45 days before
    """
    orders = []
    for i in range(30):
        day = as_of - timedelta(days=i)
        lines = [{"sku": "SKU-A", "quantity": 4, "price": "40.00"}]
        if i == 0:
            lines.append({"sku": None, "quantity": 1, "price": "5.00"})
        orders.append({"id": 5000 + i, "created_at": f"{day.isoformat()}T10:00:00-05:00", "line_items": lines})
    orders.append({
        "id": 6001,
        "created_at": f"{(as_of - timedelta(days=3)).isoformat()}T09:30:00-05:00",
        "line_items": [{"sku": "SKU-B", "quantity": 10, "price": "12.50"}],
    })
    orders.append({
        "id": 6002,
        "created_at": f"{(as_of - timedelta(days=45)).isoformat()}T09:30:00-05:00",
        "line_items": [{"sku": "SKU-B", "quantity": 100, "price": "12.50"}],
    })
    return orders


class FakeShopify:
    """
    Admin API double.

    Products come back over two GraphQL pages, inventory over two Link-header
    pages (the second holds a level with an unknown inventory item). Names in
    `fail` make the matching call return HTTP 500 and names in `garbled` make
    it return 200 with an HTML page: "products", "locations", "inventory",
    "inventory_next", "orders".
    """

    def __init__(self, as_of: date = AS_OF):
        self.as_of = as_of
        self.fail: Set[str] = set()
        self.garbled: Set[str] = set()
        self.requests: List[httpx.Request] = []
        self.products = [
            _product_node(1, "Linen Shirt", "linen-shirt", [
                _variant(11, "SKU-A", "40.00", 1001),
                _variant(12, "", "40.00", 1003),
            ]),
            _product_node(2, "Wool Socks", "wool-socks", [
                _variant(21, "SKU-B", "12.50", 1002),
            ]),
        ]
        self.locations = [{"id": 11, "name": "Warehouse"}, {"id": 12, "name": "Shop floor"}]
        self.inventory_pages = [
            [
                {"inventory_item_id": 1001, "location_id": 11, "available": 30},
                {"inventory_item_id": 1001, "location_id": 12, "available": 12},
            ],
            [
                {"inventory_item_id": 1002, "location_id": 11, "available": 500},
                {"inventory_item_id": 9999, "location_id": 11, "available": 7},
            ],
        ]
        self.orders = build_orders(as_of)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, settings: Settings) -> ShopifyClient:
        return ShopifyClient(settings.shopify, transport=self.transport())

    def requests_for(self, resource: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(f"/{resource}.json")]

    def _broken(self, name: str) -> Optional[httpx.Response]:
        if name in self.fail:
            return httpx.Response(500, json={"errors": "Internal Server Error"})
        if name in self.garbled:
            return httpx.Response(200, text="<html>Down for maintenance</html>")
        return None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/graphql.json"):
            broken = self._broken("products")
            if broken is not None:
                return broken
            cursor = json.loads(request.content)["variables"].get("cursor")
            index = 0 if cursor is None else int(cursor.split("-")[1]) + 1
            node = self.products[index]
            return httpx.Response(200, json={"data": {"products": {
                "edges": [{"cursor": f"cur-{index}", "node": node}],
                "pageInfo": {"hasNextPage": index + 1 < len(self.products)},
            }}})

        if path.endswith("/locations.json"):
            broken = self._broken("locations")
            if broken is not None:
                return broken
            return httpx.Response(200, json={"locations": self.locations})

        if path.endswith("/inventory_levels.json"):
            if request.url.params.get("page_info") == "p2":
                broken = self._broken("inventory_next")
                if broken is not None:
                    return broken
                return httpx.Response(200, json={"inventory_levels": self.inventory_pages[1]})
            broken = self._broken("inventory")
            if broken is not None:
                return broken
            next_url = f"https://{STORE}/admin/api/2025-07/inventory_levels.json?limit=250&page_info=p2"
            return httpx.Response(
                200,
                json={"inventory_levels": self.inventory_pages[0]},
                headers={"Link": f'<{next_url}>; rel="next"'},
            )

        if path.endswith("/orders.json"):
            broken = self._broken("orders")
            if broken is not None:
                return broken
            return httpx.Response(200, json={"orders": self.orders})

        return httpx.Response(404, json={"errors": "Not Found"})


@pytest.fixture
def shopify() -> FakeShopify:
    return FakeShopify()


# =============================================================================
# FAKE WEBHOOK
# =============================================================================

class FakeWebhook:
    """Records every posted message; status_code controls the reply"""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.messages: List[str] = []
        self.payloads: List[Dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.payloads.append(payload)
        self.messages.append(payload["text"])
        return httpx.Response(self.status_code, text="ok")

    def notifier(self) -> SlackNotifier:
        return SlackNotifier(WEBHOOK_URL, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def webhook() -> FakeWebhook:
    return FakeWebhook()


# =============================================================================
# FAKE REDIS
# =============================================================================

class MemoryRedis:
    """Dict-backed double for the Redis calls CacheManager makes"""

    def __init__(self, down: bool = False):
        self.down = down
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}

    def _check(self):
        if self.down:
            raise ConnectionError("redis unavailable")

    async def get(self, key: str) -> Optional[str]:
        self._check()
        return self.store.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self._check()
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    async def scan_iter(self, match: str = "*") -> AsyncIterator[str]:
        self._check()
        for key in list(self.store):
            if fnmatch(key, match):
                yield key

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = [k for k in keys if self.store.pop(k, None) is not None]
        return len(removed)

    async def ping(self) -> bool:
        self._check()
        return True


@pytest.fixture
def redis() -> MemoryRedis:
    return MemoryRedis()
