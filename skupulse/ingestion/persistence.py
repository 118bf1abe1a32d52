"""
Idempotent Persistence

Writes fetched records with INSERT ... ON CONFLICT so that repeated runs
over overlapping data converge on the same rows. PostgreSQL in production,
SQLite under test; both dialects share the same conflict clauses.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from skupulse.database.connection import session_dialect
from skupulse.database.models import InventoryLevel, Location, OrderLineItem, Product
from skupulse.ingestion.shopify import LineItemRecord, VariantRecord, gid_tail

logger = structlog.get_logger(__name__)


def dialect_insert(session: AsyncSession, model):
    """INSERT construct that supports on_conflict_* for the session's dialect"""
    dialect = session_dialect(session)
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upserts are not supported on {dialect}")


@dataclass
class InventoryStats:
    """Counters from one inventory persistence pass"""
    processed: int = 0
    mapped: int = 0
    backfilled: int = 0
    upserted: int = 0
    skipped: int = 0


async def upsert_products(session: AsyncSession, variants: Iterable[VariantRecord]) -> int:
    """
    Insert or update one product row per SKU; last-fetched values win.

    Returns:
        Number of rows written
    """
    written = 0
    for v in variants:
        stmt = dialect_insert(session, Product).values(
            sku=v.sku,
            title=v.title,
            product_id=v.product_id,
            variant_id=v.variant_id,
            inventory_item_id=v.inventory_item_id,
            image=v.image,
            shopify_handle=v.handle,
            retail_price=v.price,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Product.sku],
            set_={
                "title": stmt.excluded.title,
                "product_id": stmt.excluded.product_id,
                "variant_id": stmt.excluded.variant_id,
                "inventory_item_id": stmt.excluded.inventory_item_id,
                "image": stmt.excluded.image,
                "shopify_handle": stmt.excluded.shopify_handle,
                "retail_price": stmt.excluded.retail_price,
                "updated_at": func.now(),
            },
        )
        await session.execute(stmt)
        written += 1
    logger.info("Products upserted", count=written)
    return written


async def upsert_locations(session: AsyncSession, locations: Iterable[Dict[str, Any]]) -> int:
    """Insert or rename stock locations"""
    written = 0
    for loc in locations:
        if loc.get("id") is None:
            continue
        location_id = str(loc["id"])
        stmt = dialect_insert(session, Location).values(
            location_id=location_id,
            name=loc.get("name") or location_id,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Location.location_id],
            set_={"name": stmt.excluded.name},
        )
        await session.execute(stmt)
        written += 1
    logger.info("Locations upserted", count=written)
    return written


async def build_inventory_item_map(session: AsyncSession) -> Dict[str, str]:
    """
    Map inventory item ids to SKUs from stored product identifiers.

    Keys are the trailing numeric component of the stored id, which is what
    the REST inventory payload carries.
    """
    rows = await session.execute(
        select(Product.sku, Product.inventory_item_id).where(Product.inventory_item_id.is_not(None))
    )
    mapping = {}
    for sku, inventory_item_id in rows:
        key = gid_tail(inventory_item_id)
        if key:
            mapping[key] = sku
    return mapping


async def _backfill_inventory_item(
    session: AsyncSession,
    sku: str,
    inventory_item_id: Optional[str],
) -> bool:
    """Record a missing inventory item id on a known product"""
    known = await session.scalar(select(Product.sku).where(Product.sku == sku).limit(1))
    if known is None:
        return False
    if inventory_item_id:
        await session.execute(
            update(Product).where(Product.sku == sku).values(inventory_item_id=inventory_item_id)
        )
    return True


async def upsert_inventory(
    session: AsyncSession,
    levels: Iterable[Dict[str, Any]],
    item_map: Dict[str, str],
    observed_at: datetime,
) -> InventoryStats:
    """
    Write inventory levels keyed by (sku, location_id), last write wins.

    SKU resolution order: the inventory item map, then a SKU embedded in the
    payload. A payload SKU matching a known product backfills the product's
    inventory item id so later runs resolve it through the map. Levels with
    no resolvable SKU are skipped.
    """
    stats = InventoryStats()
    for level in levels:
        stats.processed += 1
        item_id = gid_tail(level.get("inventory_item_id"))
        sku = item_map.get(item_id) if item_id else None

        if sku is None:
            payload_sku = str(level.get("sku") or "").strip() or None
            if payload_sku and item_id and await _backfill_inventory_item(session, payload_sku, item_id):
                item_map[item_id] = payload_sku
                stats.backfilled += 1
            sku = payload_sku

        if sku is None:
            stats.skipped += 1
            continue
        stats.mapped += 1

        stmt = dialect_insert(session, InventoryLevel).values(
            sku=sku,
            location_id=str(level.get("location_id") or "unknown"),
            available=int(level.get("available") or 0),
            inventory_item_id=item_id,
            timestamp=observed_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[InventoryLevel.sku, InventoryLevel.location_id],
            set_={
                "available": stmt.excluded.available,
                "inventory_item_id": stmt.excluded.inventory_item_id,
                "timestamp": stmt.excluded.timestamp,
            },
        )
        await session.execute(stmt)
        stats.upserted += 1

    logger.info(
        "Inventory upserted",
        processed=stats.processed,
        mapped=stats.mapped,
        backfilled=stats.backfilled,
        upserted=stats.upserted,
        skipped=stats.skipped,
    )
    return stats


async def insert_line_items(session: AsyncSession, items: List[LineItemRecord]) -> int:
    """
    Insert order lines, ignoring any (order_id, sku) pair already stored.

    A second line for the same SKU in the same order is dropped too.

    Returns:
        Number of rows actually inserted
    """
    inserted = 0
    for item in items:
        stmt = dialect_insert(session, OrderLineItem).values(
            order_id=item.order_id,
            sku=item.sku,
            quantity=item.quantity,
            price=item.price,
            created_at=item.created_at,
        ).on_conflict_do_nothing(index_elements=[OrderLineItem.order_id, OrderLineItem.sku])
        result = await session.execute(stmt)
        inserted += max(result.rowcount or 0, 0)
    logger.info("Order line items inserted", offered=len(items), inserted=inserted)
    return inserted
