"""Tests for the pricing cache domains."""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from bbltzen_pricing.cache.service import (
    CUP_SIZES_KEY,
    INGREDIENTS_KEY,
    KNOWN_DOMAIN_KEYS,
    MENU_KEY,
    TAX_RATES_KEY,
    CacheDomainTTLs,
    PricingCacheService,
    price_key,
)
from bbltzen_pricing.pricing.price_calculation import PriceCalculationService
from bbltzen_pricing.utils.config import Config


def make_service(cache, catalog, **overrides):
    return PricingCacheService(cache, catalog, Config(**overrides))


def test_domain_ttls_from_config():
    ttls = CacheDomainTTLs.from_config(Config(ttl_prices=60))

    assert ttls.tax_rates == timedelta(hours=24)
    assert ttls.catalog == timedelta(hours=1)
    assert ttls.prices == timedelta(seconds=60)
    assert ttls.menu == timedelta(hours=1)
    assert ttls.statistics == timedelta(minutes=15)


def test_price_key():
    assert price_key("custom", 100) == "price:custom:100"


class TestPreload:
    def test_preload_fills_every_domain(self, cache, catalog):
        service = make_service(cache, catalog)

        result = service.preload()

        assert result.completed == len(KNOWN_DOMAIN_KEYS)
        assert result.failed == 0
        assert service.active_domains() == list(KNOWN_DOMAIN_KEYS)
        assert service.is_cache_valid() is True

    def test_failing_domain_does_not_stop_preload(self, cache, catalog):
        service = make_service(cache, catalog)

        with patch.object(catalog, "list_tax_rates", side_effect=ConnectionError("db down")):
            result = service.preload()

        assert result.failed >= 1
        assert result.errors[0][0] == TAX_RATES_KEY
        assert cache.exists(CUP_SIZES_KEY)
        assert not cache.exists(TAX_RATES_KEY)
        assert service.is_cache_valid() is False

    def test_tax_rate_snapshot_expires_after_a_day(self, cache, catalog, clock):
        service = make_service(cache, catalog)
        service.preload()

        clock.advance(timedelta(hours=1, seconds=1).total_seconds())
        assert cache.exists(TAX_RATES_KEY)
        assert not cache.exists(CUP_SIZES_KEY)

        clock.advance(timedelta(hours=23).total_seconds())
        assert not cache.exists(TAX_RATES_KEY)


class TestSnapshots:
    def test_tax_rates(self, cache, catalog):
        service = make_service(cache, catalog)
        assert service.tax_rates() == {1: Decimal("22.00"), 2: Decimal("10.00")}

    def test_ingredients_are_available_only(self, cache, catalog):
        service = make_service(cache, catalog)
        assert sorted(service.ingredients()) == [10, 12]

    def test_cup_sizes(self, cache, catalog):
        service = make_service(cache, catalog)
        assert service.cup_sizes()[2].multiplier == Decimal("1.30")

    def test_menu_orders_beverages_by_priority(self, cache, catalog):
        service = make_service(cache, catalog)

        menu = service.get_menu_snapshot()

        assert [b["article_id"] for b in menu["standard_beverages"]] == [2, 1]
        assert {d["article_id"] for d in menu["desserts"]} == {20, 21}
        assert cache.exists(MENU_KEY)

    def test_statistics_snapshot(self, cache, catalog):
        service = make_service(cache, catalog)
        service.tax_rates()

        stats = service.get_statistics_snapshot()

        assert stats["tax_rates"] == 2
        assert stats["cup_sizes"] == 2
        assert stats["available_ingredients"] == 2
        assert stats["misses"] >= 1

    def test_pricing_stores_prices_under_price_key(self, cache, catalog):
        pricing = PriceCalculationService(catalog, make_service(cache, catalog))
        pricing.calculate_dessert_price(20)

        assert cache.get(price_key("dessert", 20)) == Decimal("3.80")


class TestInvalidation:
    def test_clear_all(self, cache, catalog):
        service = make_service(cache, catalog)
        service.preload()
        cache.set(price_key("standard", 1), Decimal("4.50"))
        cache.set("unrelated", 1)

        service.clear_all()

        assert service.active_domains() == []
        assert not cache.exists(price_key("standard", 1))
        assert cache.exists("unrelated")
        assert cache.statistics.total_requests == 0

    def test_clear_prices_keeps_domains(self, cache, catalog):
        service = make_service(cache, catalog)
        service.tax_rates()
        cache.set(price_key("custom", 100), Decimal("3.65"))

        assert service.clear_prices() == 1
        assert cache.exists(TAX_RATES_KEY)
        assert cache.exists(INGREDIENTS_KEY) is False
