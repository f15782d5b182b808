"""Marketplace order export import (TikTok Shop / Shopee -> sales_orders)."""

__version__ = "0.1.0"
