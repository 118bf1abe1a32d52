"""
Store Sync Routine

One pass: products -> locations -> inventory -> orders -> metrics, strictly
in sequence. Each stage commits its own writes; there is no run-wide
transaction, so a crashed run is recovered by running it again.

Failure policy:
- product catalog failure is fatal
- locations / inventory failures are logged and the run continues
- orders failure is logged and the run continues with no orders
- notification failures are swallowed by the notifier
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

import structlog

from skupulse.alerts.notifier import SlackNotifier, run_completed_message, run_failed_message
from skupulse.config.settings import Settings
from skupulse.database.connection import Database
from skupulse.database.models import SyncRun
from skupulse.exceptions import CatalogFetchError, FetchFailure, ShopifyAPIError
from skupulse.ingestion.persistence import (
    InventoryStats,
    build_inventory_item_map,
    dialect_insert,
    insert_line_items,
    upsert_inventory,
    upsert_locations,
    upsert_products,
)
from skupulse.ingestion.shopify import (
    ShopifyClient,
    flatten_line_items,
    flatten_variants,
    orders_since,
)
from skupulse.metrics.service import MetricsRollup

logger = structlog.get_logger(__name__)

JOB_NAME = "store_sync"


@dataclass
class SyncSummary:
    """Counts from one sync pass"""
    as_of: date
    products: int = 0
    variants: int = 0
    locations: int = 0
    inventory: InventoryStats = field(default_factory=InventoryStats)
    orders: int = 0
    line_items: int = 0
    skus_computed: int = 0
    restock_alerts: int = 0
    warnings: List[str] = field(default_factory=list)

    def as_text(self) -> str:
        return f"ETL completed (products {self.products}, orders {self.orders})"


async def _record_success(db: Database, summary: SyncSummary, finished_at: datetime) -> None:
    async with db.session() as session:
        stmt = dialect_insert(session, SyncRun).values(
            name=JOB_NAME,
            last_success_at=finished_at,
            products=summary.products,
            orders=summary.orders,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[SyncRun.name],
            set_={
                "last_success_at": stmt.excluded.last_success_at,
                "products": stmt.excluded.products,
                "orders": stmt.excluded.orders,
            },
        )
        await session.execute(stmt)


async def _sync_products(db: Database, client: ShopifyClient, summary: SyncSummary) -> None:
    try:
        fetched = await client.fetch_products()
    except FetchFailure as e:
        raise CatalogFetchError(f"Product catalog fetch failed: {e.cause}") from e

    variants = flatten_variants(fetched.items)
    summary.products = len(fetched.items)
    async with db.session() as session:
        summary.variants = await upsert_products(session, variants)


async def _sync_locations(db: Database, client: ShopifyClient, summary: SyncSummary) -> List[str]:
    try:
        locations = await client.fetch_locations()
    except ShopifyAPIError as e:
        logger.warning("Locations fetch failed, continuing", error=str(e))
        summary.warnings.append(f"locations: {e}")
        return []

    async with db.session() as session:
        summary.locations = await upsert_locations(session, locations)
    return [str(loc["id"]) for loc in locations if loc.get("id") is not None]


async def _sync_inventory(
    db: Database,
    client: ShopifyClient,
    summary: SyncSummary,
    location_ids: List[str],
    observed_at: datetime,
) -> None:
    try:
        levels = (await client.fetch_inventory_levels(location_ids)).items
    except FetchFailure as e:
        logger.warning(
            "Inventory fetch failed, keeping partial levels",
            error=str(e.cause),
            kept=len(e.items),
        )
        summary.warnings.append(f"inventory: {e.cause}")
        levels = e.items

    async with db.session() as session:
        item_map = await build_inventory_item_map(session)
        summary.inventory = await upsert_inventory(session, levels, item_map, observed_at)


async def _sync_orders(
    db: Database,
    client: ShopifyClient,
    summary: SyncSummary,
    since: str,
) -> None:
    try:
        orders = (await client.fetch_orders(since)).items
    except FetchFailure as e:
        logger.error("Orders fetch failed, continuing without orders", error=str(e.cause), since=since)
        summary.warnings.append(f"orders: {e.cause}")
        orders = []

    summary.orders = len(orders)
    items = flatten_line_items(orders)
    async with db.session() as session:
        summary.line_items = await insert_line_items(session, items)


async def run_sync(
    db: Database,
    client: ShopifyClient,
    notifier: SlackNotifier,
    settings: Settings,
    as_of: Optional[date] = None,
    now: Optional[datetime] = None,
) -> SyncSummary:
    """
    Run one full sync pass.

    Args:
        db: Database handle to write into
        client: Store API client
        notifier: Alert sink
        settings: Application settings (windows, thresholds)
        as_of: Reference calendar day for every date window; defaults to today
        now: Observation timestamp; defaults to the current local time

    Returns:
        SyncSummary with per-stage counts

    Raises:
        CatalogFetchError: The product catalog could not be fetched
    """
    now = now or datetime.now()
    as_of = as_of or now.date()
    summary = SyncSummary(as_of=as_of)

    log = logger.bind(as_of=as_of.isoformat())
    log.info("Sync started")

    try:
        await _sync_products(db, client, summary)
        location_ids = await _sync_locations(db, client, summary)
        await _sync_inventory(db, client, summary, location_ids, now)
        since = orders_since(as_of, settings.sync.order_window_days)
        await _sync_orders(db, client, summary, since)

        rollup = MetricsRollup(db, notifier, settings.sync.restock_threshold_days)
        rolled = await rollup.run(as_of)
        summary.skus_computed = rolled.computed
        summary.restock_alerts = len(rolled.restock)

        await _record_success(db, summary, datetime.now())
    except Exception as e:
        log.error("Sync failed", error=str(e), error_type=type(e).__name__)
        await notifier.send(run_failed_message(str(e)))
        raise

    log.info(
        "Sync completed",
        products=summary.products,
        variants=summary.variants,
        locations=summary.locations,
        inventory_upserted=summary.inventory.upserted,
        orders=summary.orders,
        line_items=summary.line_items,
        skus=summary.skus_computed,
        restock_alerts=summary.restock_alerts,
        warnings=len(summary.warnings),
    )
    await notifier.send(run_completed_message(summary.products, summary.orders, datetime.now().isoformat()))
    return summary


async def run_configured_sync(db: Database, settings: Settings, as_of: Optional[date] = None) -> SyncSummary:
    """Build the client and notifier from settings and run one pass"""
    settings.require_sync_config()
    notifier = SlackNotifier.from_settings(settings.alerts)
    async with ShopifyClient(settings.shopify) as client:
        return await run_sync(db, client, notifier, settings, as_of=as_of)
