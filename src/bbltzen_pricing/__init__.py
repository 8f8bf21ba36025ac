"""
BBltZen Pricing - pricing, VAT and order total consistency engine

Derives unit prices for standard beverages, custom beverages and desserts,
splits VAT-inclusive amounts into taxable base and tax, aggregates order
totals and detects drift between stored and recomputed totals. Catalog and
order data live in MongoDB; an in-memory TTL cache fronts the hot lookups.
"""

__version__ = "0.1.0"

from . import cache
from . import catalog
from . import orders
from . import pricing
from . import utils

__all__ = ["cache", "catalog", "orders", "pricing", "utils"]
