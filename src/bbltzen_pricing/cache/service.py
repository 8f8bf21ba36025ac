"""Known cache domains of the pricing engine and their lifecycle."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..catalog.accessor import CatalogAccessor
from ..catalog.models import CupSize, Ingredient
from ..utils.config import Config
from ..utils.logging import get_logger
from .memory_cache import CacheBulkResult, MemoryCache

logger = get_logger(__name__)

TAX_RATES_KEY = "tax_rates:all"
CUP_SIZES_KEY = "catalog:cup_sizes"
INGREDIENTS_KEY = "catalog:ingredients"
MENU_KEY = "menu:complete"
STATISTICS_KEY = "stats:global"
PRICE_PREFIX = "price:"

KNOWN_DOMAIN_KEYS = (TAX_RATES_KEY, CUP_SIZES_KEY, INGREDIENTS_KEY, MENU_KEY, STATISTICS_KEY)


def price_key(kind_slug: str, entity_id: int) -> str:
    return f"{PRICE_PREFIX}{kind_slug}:{entity_id}"


@dataclass(frozen=True)
class CacheDomainTTLs:
    tax_rates: timedelta = timedelta(hours=24)
    catalog: timedelta = timedelta(hours=1)
    prices: timedelta = timedelta(minutes=30)
    menu: timedelta = timedelta(hours=1)
    statistics: timedelta = timedelta(minutes=15)

    @classmethod
    def from_config(cls, config: Config) -> "CacheDomainTTLs":
        return cls(
            tax_rates=timedelta(seconds=config.get("ttl_tax_rates", 24 * 3600)),
            catalog=timedelta(seconds=config.get("ttl_catalog", 3600)),
            prices=timedelta(seconds=config.get("ttl_prices", 1800)),
            menu=timedelta(seconds=config.get("ttl_menu", 3600)),
            statistics=timedelta(seconds=config.get("ttl_statistics", 900)),
        )


class PricingCacheService:
    """Owns the pricing cache domains: preload, snapshots and invalidation.

    This is an operational layer. Pricing stays correct with an empty cache;
    preload only saves the first round of catalog reads.
    """

    def __init__(self, cache: MemoryCache, catalog: CatalogAccessor, config: Optional[Config] = None) -> None:
        self.cache = cache
        self.catalog = catalog
        self.ttls = CacheDomainTTLs.from_config(config or Config())

    @property
    def statistics(self):
        return self.cache.statistics

    # Domain loaders
    def _load_tax_rates(self) -> Dict[int, Decimal]:
        return {t.tax_rate_id: t.rate for t in self.catalog.list_tax_rates()}

    def _load_cup_sizes(self) -> Dict[int, CupSize]:
        return {c.cup_size_id: c for c in self.catalog.list_cup_sizes()}

    def _load_ingredients(self) -> Dict[int, Ingredient]:
        return {i.ingredient_id: i for i in self.catalog.list_ingredients(available_only=True)}

    def _load_menu(self) -> Dict[str, Any]:
        beverages = self.catalog.list_standard_beverages()
        desserts = self.catalog.list_desserts()
        return {
            "standard_beverages": [
                {"article_id": b.article_id, "price": b.price, "always_orderable": b.always_orderable, "priority": b.priority}
                for b in beverages
            ],
            "desserts": [{"article_id": d.article_id, "price": d.price} for d in desserts],
            "generated_at": datetime.now(timezone.utc),
        }

    def _load_statistics(self) -> Dict[str, Any]:
        stats = self.cache.statistics.snapshot()
        stats.update(
            {
                "cached_entries": len(self.cache),
                "cup_sizes": len(self.catalog.list_cup_sizes()),
                "available_ingredients": len(self.catalog.list_ingredients(available_only=True)),
                "tax_rates": len(self.catalog.list_tax_rates()),
                "generated_at": datetime.now(timezone.utc),
            }
        )
        return stats

    def _domains(self) -> Dict[str, tuple]:
        return {
            TAX_RATES_KEY: (self._load_tax_rates, self.ttls.tax_rates),
            CUP_SIZES_KEY: (self._load_cup_sizes, self.ttls.catalog),
            INGREDIENTS_KEY: (self._load_ingredients, self.ttls.catalog),
            MENU_KEY: (self._load_menu, self.ttls.menu),
            STATISTICS_KEY: (self._load_statistics, self.ttls.statistics),
        }

    # Snapshots
    def tax_rates(self) -> Dict[int, Decimal]:
        return self.cache.get_or_set(TAX_RATES_KEY, self._load_tax_rates, self.ttls.tax_rates)

    def cup_sizes(self) -> Dict[int, CupSize]:
        return self.cache.get_or_set(CUP_SIZES_KEY, self._load_cup_sizes, self.ttls.catalog)

    def ingredients(self) -> Dict[int, Ingredient]:
        return self.cache.get_or_set(INGREDIENTS_KEY, self._load_ingredients, self.ttls.catalog)

    def get_menu_snapshot(self) -> Dict[str, Any]:
        return self.cache.get_or_set(MENU_KEY, self._load_menu, self.ttls.menu)

    def get_statistics_snapshot(self) -> Dict[str, Any]:
        return self.cache.get_or_set(STATISTICS_KEY, self._load_statistics, self.ttls.statistics)

    # Lifecycle
    def preload(self) -> CacheBulkResult:
        """Eagerly populate every known domain; one failing domain never stops the rest."""
        started = datetime.now(timezone.utc)
        result = CacheBulkResult()
        for key, (loader, ttl) in self._domains().items():
            try:
                self.cache.set(key, loader(), ttl)
                result.processed_keys.append(key)
                result.completed += 1
            except Exception as exc:
                logger.warning(f"Preload of cache domain {key} failed: {exc}")
                result.errors.append((key, str(exc)))
                result.failed += 1
        result.elapsed = datetime.now(timezone.utc) - started
        logger.info(f"Cache preload completed: {result.completed} domains loaded, {result.failed} failed")
        return result

    def clear_prices(self) -> int:
        removed = self.cache.remove_prefix(PRICE_PREFIX)
        logger.info(f"Removed {removed} cached prices")
        return removed

    def clear_all(self) -> None:
        self.cache.remove_bulk(KNOWN_DOMAIN_KEYS)
        self.clear_prices()
        self.cache.statistics.reset()
        logger.info("Pricing cache cleared and statistics reset")

    def is_cache_valid(self) -> bool:
        return self.cache.exists(TAX_RATES_KEY) and self.cache.exists(CUP_SIZES_KEY)

    def active_domains(self) -> List[str]:
        return [key for key in KNOWN_DOMAIN_KEYS if self.cache.exists(key)]
