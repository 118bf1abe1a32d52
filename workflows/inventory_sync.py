"""
Prefect Workflow Orchestration - Store Sync

Scheduled wrapper around the sync routine. The flow runs exactly the same
pass as the HTTP trigger; scheduling and run history belong to Prefect.
"""

from datetime import date
from typing import Optional

from prefect import flow, task, get_run_logger

from skupulse.config import get_settings
from skupulse.config.logging import configure_logging
from skupulse.database.connection import open_database
from skupulse.sync import run_configured_sync


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="run_store_sync",
    description="Pull catalog, stock and orders, then roll up daily metrics",
)
async def run_store_sync(as_of: Optional[date] = None) -> dict:
    """Run one sync pass against the configured store and database"""
    logger = get_run_logger()
    settings = get_settings()
    settings.require_sync_config()

    db = await open_database(settings.database)
    try:
        summary = await run_configured_sync(db, settings, as_of=as_of)
    finally:
        await db.dispose()

    logger.info(summary.as_text())
    return {
        "as_of": summary.as_of.isoformat(),
        "products": summary.products,
        "variants": summary.variants,
        "orders": summary.orders,
        "line_items": summary.line_items,
        "skus_computed": summary.skus_computed,
        "restock_alerts": summary.restock_alerts,
        "warnings": summary.warnings,
    }


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="store_sync",
    description="Shopify inventory and sales-velocity sync",
)
async def store_sync(as_of: Optional[date] = None) -> dict:
    """
    Store sync pipeline.

    Steps:
    1. Upsert products and variants
    2. Upsert locations and inventory levels
    3. Insert order line items for the trailing window
    4. Roll up daily metrics and send restock alerts
    """
    settings = get_settings()
    configure_logging(settings.monitoring, settings.app_env)
    return await run_store_sync(as_of)


# =============================================================================
# DEPLOYMENT CONFIGURATION
# =============================================================================

if __name__ == "__main__":
    import asyncio

    asyncio.run(store_sync())
