"""
SKU Pulse

Store sync job and SKU velocity metrics for a single e-commerce shop.
"""

__version__ = "1.0.0"
