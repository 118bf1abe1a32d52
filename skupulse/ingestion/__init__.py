"""
Data Ingestion Module
"""
from .pagination import Page, PageLimits, Paginator, parse_link_header
from .shopify import ShopifyClient, flatten_line_items, flatten_variants

__all__ = [
    "Page",
    "PageLimits",
    "Paginator",
    "parse_link_header",
    "ShopifyClient",
    "flatten_line_items",
    "flatten_variants",
]
