"""
Database Models

Relational contract between sync runs. The SKU is the join key across every
table; uniqueness constraints below are what make repeated runs idempotent:

- products: one row per SKU
- inventory_levels: one row per (sku, location_id)
- orders_lineitems: one row per (order_id, sku)
- metrics_daily: one row per (sku, date)
"""

from datetime import datetime, date as calendar_date
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class Product(Base):
    """
    Product catalog, one row per sellable variant SKU.

    External identifiers are overwritten on every sync; the SKU never changes.
    """
    __tablename__ = "products"

    sku: Mapped[str] = mapped_column(String(255), primary_key=True)
    title: Mapped[Optional[str]] = mapped_column(Text)
    product_id: Mapped[Optional[str]] = mapped_column(String(255))
    variant_id: Mapped[Optional[str]] = mapped_column(String(255))
    inventory_item_id: Mapped[Optional[str]] = mapped_column(String(64))  # numeric tail of the GID
    image: Mapped[Optional[str]] = mapped_column(Text)
    shopify_handle: Mapped[Optional[str]] = mapped_column(String(255))
    retail_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_products_inventory_item_id", "inventory_item_id"),
    )


class Location(Base):
    """Stock location known to the store"""
    __tablename__ = "locations"

    location_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))


class InventoryLevel(Base):
    """
    Latest available quantity of a SKU at one location.

    Last write wins; no history is kept at this granularity.
    """
    __tablename__ = "inventory_levels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(String(255), nullable=False)
    location_id: Mapped[str] = mapped_column(String(64), nullable=False)
    available: Mapped[int] = mapped_column(Integer, default=0)
    inventory_item_id: Mapped[Optional[str]] = mapped_column(String(64))
    timestamp: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("sku", "location_id", name="uq_inventory_levels_sku_location"),
    )


class OrderLineItem(Base):
    """
    Sold quantity of a SKU within an order.

    Append-only; a repeated (order_id, sku) pair is ignored.
    """
    __tablename__ = "orders_lineitems"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sku: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("order_id", "sku", name="orders_lineitems_unique"),
        Index("ix_orders_lineitems_sku_created", "sku", "created_at"),
    )


class DailyMetric(Base):
    """
    Per-SKU rollup as of one calendar day.

    days_of_cover is NULL whenever rolling30 is zero.
    """
    __tablename__ = "metrics_daily"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(String(255), nullable=False)
    date: Mapped[calendar_date] = mapped_column(Date, nullable=False)
    daily_sales: Mapped[int] = mapped_column(Integer, default=0)
    rolling7: Mapped[float] = mapped_column(Float, default=0.0)
    rolling30: Mapped[float] = mapped_column(Float, default=0.0)
    current_stock: Mapped[int] = mapped_column(Integer, default=0)
    days_of_cover: Mapped[Optional[float]] = mapped_column(Float)

    __table_args__ = (
        UniqueConstraint("sku", "date", name="uq_metrics_daily_sku_date"),
        Index("ix_metrics_daily_date", "date"),
    )


class SyncRun(Base):
    """Last successful run per job, kept for observability only"""
    __tablename__ = "sync_runs"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    last_success_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    products: Mapped[int] = mapped_column(Integer, default=0)
    orders: Mapped[int] = mapped_column(Integer, default=0)
