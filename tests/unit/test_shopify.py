"""
Unit Tests - Shopify Client and Normalization
"""
from datetime import date, datetime
from decimal import Decimal

import httpx
import pytest

from conftest import AS_OF, FakeShopify, build_settings
from skupulse.exceptions import FetchFailure, ShopifyAPIError
from skupulse.ingestion.shopify import (
    ShopifyClient,
    flatten_line_items,
    flatten_variants,
    gid_tail,
    orders_since,
    parse_timestamp,
    to_decimal,
)


class TestNormalization:
    """Tests for payload normalization helpers"""

    def test_gid_tail(self):
        assert gid_tail("gid://shopify/InventoryItem/4242") == "4242"
        assert gid_tail(4242) == "4242"
        assert gid_tail(None) is None

    def test_to_decimal_treats_junk_as_zero(self):
        assert to_decimal("12.50") == Decimal("12.50")
        assert to_decimal("") == Decimal("0")
        assert to_decimal("n/a") == Decimal("0")

    def test_timestamp_keeps_store_wall_clock(self):
        assert parse_timestamp("2025-03-15T23:30:00-05:00") == datetime(2025, 3, 15, 23, 30)
        assert parse_timestamp("2025-03-15T04:30:00Z") == datetime(2025, 3, 15, 4, 30)
        assert parse_timestamp("not a date") is None

    def test_orders_since_is_start_of_day_utc(self):
        assert orders_since(date(2025, 3, 15), 60) == "2025-01-14T00:00:00Z"

    def test_flatten_variants_skips_blank_skus(self):
        shop = FakeShopify()

        records = flatten_variants(shop.products)

        assert [r.sku for r in records] == ["SKU-A", "SKU-B"]
        first = records[0]
        assert first.inventory_item_id == "1001"
        assert first.handle == "linen-shirt"
        assert first.image == "https://cdn.test/linen-shirt.jpg"
        assert first.price == Decimal("40.00")

    def test_flatten_line_items(self):
        orders = [
            {"id": 1, "created_at": "2025-03-15T10:00:00-05:00", "line_items": [
                {"sku": "SKU-A", "quantity": 2, "price": "40.00"},
                {"sku": "  ", "quantity": 1, "price": "1.00"},
            ]},
            {"id": None, "created_at": "2025-03-15T10:00:00-05:00", "line_items": [{"sku": "SKU-A", "quantity": 1}]},
        ]

        records = flatten_line_items(orders)

        assert len(records) == 1
        assert records[0].order_id == "1"
        assert records[0].quantity == 2
        assert records[0].created_at == datetime(2025, 3, 15, 10, 0)


class TestShopifyClient:
    """Tests for ShopifyClient against the fake Admin API"""

    async def test_products_follow_graphql_cursor(self):
        shop = FakeShopify()
        async with shop.client(build_settings()) as client:
            result = await client.fetch_products()

        assert [p["handle"] for p in result.items] == ["linen-shirt", "wool-socks"]
        assert result.pages == 2
        graphql = shop.requests_for("graphql")
        assert graphql[0].headers["X-Shopify-Access-Token"] == "shpat_test"

    async def test_inventory_follows_link_header(self):
        shop = FakeShopify()
        async with shop.client(build_settings()) as client:
            result = await client.fetch_inventory_levels(["11", "12"])

        assert len(result.items) == 4
        first, second = shop.requests_for("inventory_levels")
        assert first.url.params["location_ids"] == "11,12"
        assert second.url.params["page_info"] == "p2"

    async def test_orders_request_window(self):
        shop = FakeShopify()
        async with shop.client(build_settings()) as client:
            result = await client.fetch_orders(orders_since(AS_OF, 60))

        assert len(result.items) == len(shop.orders)
        request = shop.requests_for("orders")[0]
        assert request.url.params["status"] == "any"
        assert request.url.params["created_at_min"] == "2025-01-14T00:00:00Z"
        assert request.url.path == "/admin/api/2025-07/orders.json"

    async def test_http_error_becomes_fetch_failure(self):
        shop = FakeShopify()
        shop.fail.add("inventory_next")
        async with shop.client(build_settings()) as client:
            with pytest.raises(FetchFailure) as exc:
                await client.fetch_inventory_levels()

        assert len(exc.value.items) == 2
        assert isinstance(exc.value.cause, ShopifyAPIError)
        assert exc.value.cause.status == 500

    async def test_graphql_errors_in_body_fail(self):
        def handler(request):
            return httpx.Response(200, json={"errors": [{"message": "Throttled"}]})

        client = ShopifyClient(build_settings().shopify, transport=httpx.MockTransport(handler))
        with pytest.raises(ShopifyAPIError, match="returned errors"):
            await client.graphql("productsPage", "query { shop { name } }")
        await client.aclose()

    async def test_transport_error_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = ShopifyClient(build_settings().shopify, transport=httpx.MockTransport(handler))
        with pytest.raises(ShopifyAPIError) as exc:
            await client.fetch_locations()
        await client.aclose()

        assert exc.value.status is None

    async def test_non_json_body_is_api_error(self):
        shop = FakeShopify()
        shop.garbled.add("locations")

        async with shop.client(build_settings()) as client:
            with pytest.raises(ShopifyAPIError, match="non-JSON") as exc:
                await client.fetch_locations()

        assert exc.value.status == 200
        assert "maintenance" in exc.value.body
