"""
Shopify Admin API Client

Fetches the product catalog (GraphQL, cursor paging), locations, inventory
levels and recent orders (REST, Link-header paging). Every listing goes
through the shared Paginator with the ceilings from ShopifySettings.

Never log the access token.
"""

from dataclasses import dataclass
from datetime import datetime, date, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx
import structlog

from skupulse.config.settings import ShopifySettings
from skupulse.exceptions import ShopifyAPIError
from skupulse.ingestion.pagination import (
    Page,
    PageLimits,
    PaginationResult,
    Paginator,
    graphql_cursor,
    parse_link_header,
)

logger = structlog.get_logger(__name__)


PRODUCTS_QUERY = """
query productsPage($pageSize: Int!, $cursor: String) {
  products(first: $pageSize, after: $cursor) {
    edges {
      cursor
      node {
        id
        handle
        title
        images(first: 1) { edges { node { src altText } } }
        variants(first: 250) {
          edges {
            node { id sku price inventoryItem { id } }
          }
        }
      }
    }
    pageInfo { hasNextPage }
  }
}
"""


# =============================================================================
# NORMALIZED RECORDS
# =============================================================================

@dataclass
class VariantRecord:
    """A catalog variant that carries a SKU"""
    sku: str
    title: Optional[str]
    product_id: Optional[str]
    variant_id: Optional[str]
    inventory_item_id: Optional[str]
    image: Optional[str]
    handle: Optional[str]
    price: Decimal


@dataclass
class LineItemRecord:
    """One order line with a SKU"""
    order_id: str
    sku: str
    quantity: int
    price: Decimal
    created_at: datetime


def gid_tail(gid: Optional[Any]) -> Optional[str]:
    """
    Trailing component of a global id.

    >>> gid_tail("gid://shopify/InventoryItem/4242")
    '4242'
    """
    if gid is None:
        return None
    tail = str(gid).rstrip("/").split("/")[-1].strip()
    return tail or None


def to_decimal(value: Any) -> Decimal:
    """Parse a money string, treating junk as zero"""
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an API timestamp into a naive datetime on the store's wall clock.

    The UTC offset is dropped rather than converted so calendar-day grouping
    follows the store's own day boundaries.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def flatten_variants(products: List[Dict[str, Any]]) -> List[VariantRecord]:
    """
    Turn GraphQL product nodes into one record per SKU-bearing variant.

    Variants without a SKU are skipped silently.
    """
    records = []
    for product in products:
        image_edges = (product.get("images") or {}).get("edges") or []
        image = image_edges[0]["node"].get("src") if image_edges else None
        for edge in (product.get("variants") or {}).get("edges") or []:
            variant = edge.get("node") or {}
            sku = (variant.get("sku") or "").strip()
            if not sku:
                continue
            inventory_item = variant.get("inventoryItem") or {}
            records.append(VariantRecord(
                sku=sku,
                title=product.get("title"),
                product_id=product.get("id"),
                variant_id=variant.get("id"),
                inventory_item_id=gid_tail(inventory_item.get("id")),
                image=image,
                handle=product.get("handle"),
                price=to_decimal(variant.get("price")),
            ))
    return records


def flatten_line_items(orders: List[Dict[str, Any]]) -> List[LineItemRecord]:
    """Turn REST orders into line item records, skipping lines without a SKU"""
    records = []
    for order in orders:
        order_id = order.get("id")
        created_at = parse_timestamp(order.get("created_at"))
        if order_id is None or created_at is None:
            logger.warning("Skipping order without id or creation time", order_id=order_id)
            continue
        for line in order.get("line_items") or []:
            sku = (line.get("sku") or "").strip()
            if not sku:
                continue
            records.append(LineItemRecord(
                order_id=str(order_id),
                sku=sku,
                quantity=int(line.get("quantity") or 0),
                price=to_decimal(line.get("price")),
                created_at=created_at,
            ))
    return records


def orders_since(as_of: date, window_days: int) -> str:
    """created_at_min for a trailing window: start of day, ISO seconds, UTC 'Z'"""
    start = datetime.combine(as_of, time.min) - timedelta(days=window_days)
    return start.replace(tzinfo=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# =============================================================================
# CLIENT
# =============================================================================

class ShopifyClient:
    """
    Authenticated Admin API client.

    Example:
        async with ShopifyClient(settings.shopify) as client:
            products = await client.fetch_products()
    """

    def __init__(
        self,
        settings: ShopifySettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        token = settings.admin_api_key.get_secret_value() if settings.admin_api_key else ""
        self._http = httpx.AsyncClient(
            base_url=settings.base_url,
            headers={"X-Shopify-Access-Token": token},
            timeout=settings.timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "ShopifyClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _check(self, op: str, response: httpx.Response) -> None:
        if response.status_code != 200:
            body = response.text[:500]
            logger.error(
                "Shopify call failed",
                op=op,
                url=str(response.request.url),
                status=response.status_code,
                body=body,
            )
            raise ShopifyAPIError(op, str(response.request.url), response.status_code, body)

    def _decode(self, op: str, response: httpx.Response) -> dict:
        """JSON object body of a successful response; anything else is a failed call"""
        try:
            payload = response.json()
        except ValueError as e:
            body = response.text[:500]
            logger.error("Shopify returned a non-JSON body", op=op, url=str(response.request.url), body=body)
            raise ShopifyAPIError(
                op, str(response.request.url), response.status_code, body,
                message=f"Shopify {op} returned a non-JSON body",
            ) from e
        if not isinstance(payload, dict):
            raise ShopifyAPIError(
                op, str(response.request.url), response.status_code, response.text[:500],
                message=f"Shopify {op} returned an unexpected payload",
            )
        return payload

    async def graphql(self, op: str, query: str, variables: Optional[dict] = None) -> dict:
        """POST a GraphQL query and return its `data` object"""
        logger.info("Shopify graphql call", op=op, variables=variables)
        try:
            response = await self._http.post("graphql.json", json={"query": query, "variables": variables or {}})
        except httpx.HTTPError as e:
            raise ShopifyAPIError(op, "graphql.json", None, message=f"Shopify {op} request error: {e}") from e
        self._check(op, response)
        payload = self._decode(op, response)
        if payload.get("errors"):
            body = str(payload["errors"])[:500]
            logger.error("Shopify graphql errors", op=op, errors=body)
            raise ShopifyAPIError(op, str(response.request.url), response.status_code, body, message=f"Shopify {op} returned errors")
        return payload.get("data") or {}

    async def rest(self, op: str, path_or_url: str, params: Optional[dict] = None) -> httpx.Response:
        """GET a REST resource; absolute URLs (Link next pointers) are used as-is"""
        logger.info("Shopify rest call", op=op, url=path_or_url, params=params)
        try:
            response = await self._http.get(path_or_url, params=params)
        except httpx.HTTPError as e:
            raise ShopifyAPIError(op, path_or_url, None, message=f"Shopify {op} request error: {e}") from e
        self._check(op, response)
        return response

    async def _rest_listing(
        self,
        stage: str,
        path: str,
        key: str,
        params: dict,
        limits: PageLimits,
    ) -> PaginationResult[dict]:
        async def fetch_page(next_url: Optional[str]) -> Page[dict]:
            if next_url is None:
                response = await self.rest(stage, path, params)
            else:
                # page_info URLs already carry every parameter
                response = await self.rest(f"{stage}_next", next_url)
            return Page(
                items=list(self._decode(stage, response).get(key) or []),
                next=parse_link_header(response.headers.get("link")),
            )

        return await Paginator(stage, fetch_page, limits).collect()

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------

    async def fetch_products(self) -> PaginationResult[dict]:
        """All products with their variants, up to product_item_cap"""
        async def fetch_page(cursor: Optional[str]) -> Page[dict]:
            data = await self.graphql(
                "productsPage",
                PRODUCTS_QUERY,
                {"pageSize": self.settings.product_page_size, "cursor": cursor},
            )
            connection = data.get("products") or {}
            nodes = [edge["node"] for edge in connection.get("edges") or []]
            return Page(items=nodes, next=graphql_cursor(connection))

        limits = PageLimits(max_items=self.settings.product_item_cap)
        return await Paginator("products", fetch_page, limits).collect()

    async def fetch_locations(self) -> List[dict]:
        """Every stock location (single page)"""
        response = await self.rest("locations", "locations.json", {"limit": self.settings.page_limit})
        return list(self._decode("locations", response).get("locations") or [])

    async def fetch_inventory_levels(self, location_ids: Optional[List[str]] = None) -> PaginationResult[dict]:
        """Inventory levels across locations, up to inventory_page_cap follow-up pages"""
        params: Dict[str, Any] = {"limit": self.settings.page_limit}
        if location_ids:
            params["location_ids"] = ",".join(location_ids)
        limits = PageLimits(max_pages=self.settings.inventory_page_cap)
        return await self._rest_listing("inventory_levels", "inventory_levels.json", "inventory_levels", params, limits)

    async def fetch_orders(self, created_at_min: str) -> PaginationResult[dict]:
        """Orders of any status created at or after created_at_min"""
        params = {
            "limit": self.settings.page_limit,
            "status": "any",
            "created_at_min": created_at_min,
        }
        limits = PageLimits(
            max_pages=self.settings.order_page_cap,
            max_items=self.settings.order_item_cap,
        )
        return await self._rest_listing("orders", "orders.json", "orders", params, limits)
