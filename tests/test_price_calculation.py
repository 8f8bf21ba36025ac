"""Tests for unit price derivation and complete line pricing."""

import threading
import time
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from bbltzen_pricing.catalog.models import ArticleKind
from bbltzen_pricing.errors import InvalidArgumentError, NotFoundError, UnsupportedKindError
from bbltzen_pricing.pricing.models import PriceRequest
from bbltzen_pricing.pricing.price_calculation import PriceCalculationService


class TestUnitPrices:
    """Per-kind unit price lookups."""

    def test_standard_beverage_price(self, pricing):
        assert pricing.calculate_standard_beverage_price(1) == Decimal("4.50")

    def test_dessert_price(self, pricing):
        assert pricing.calculate_dessert_price(20) == Decimal("3.80")

    def test_custom_beverage_reference_drink(self, pricing):
        """Medium cup 3.00 x1.30, tapioca 0.50 available, jelly 0.30 unavailable: 3.65."""
        assert pricing.calculate_custom_beverage_price(100) == Decimal("3.65")

    def test_unavailable_ingredient_contributes_nothing(self, pricing):
        breakdown = pricing.calculate_custom_beverage_breakdown(100)

        contributions = {c.ingredient_id: c.contribution for c in breakdown.ingredients}
        assert contributions == {10: Decimal("0.650"), 11: Decimal("0")}
        assert breakdown.ingredients_total == Decimal("0.650")
        assert breakdown.total == Decimal("3.65")
        assert breakdown.cup_size_id == 2

    def test_custom_price_follows_ingredient_availability(self, pricing, catalog):
        catalog.ingredients[11].available = True
        assert pricing.calculate_custom_beverage_price(100, use_cache=False) == Decimal("4.04")

    def test_ingredient_missing_from_catalog_is_skipped(self, pricing, catalog):
        catalog.add_personalization(103, 1, ingredient_ids=[12, 404])
        assert pricing.calculate_custom_beverage_price(103) == Decimal("2.90")

    def test_missing_cup_size_is_not_found(self, pricing):
        with pytest.raises(NotFoundError):
            pricing.calculate_custom_beverage_price(102)

    def test_missing_entities_are_not_found(self, pricing):
        with pytest.raises(NotFoundError):
            pricing.calculate_standard_beverage_price(999)
        with pytest.raises(NotFoundError):
            pricing.calculate_dessert_price(999)
        with pytest.raises(NotFoundError):
            pricing.calculate_custom_beverage_price(999)

    def test_price_of_dispatches_by_code(self, pricing):
        assert pricing.price_of("BS", 2) == Decimal("5.20")
        assert pricing.price_of("bc", 101) == Decimal("2.90")
        assert pricing.price_of(ArticleKind.DESSERT, 20) == Decimal("3.80")

    def test_price_of_unknown_kind(self, pricing):
        with pytest.raises(UnsupportedKindError):
            pricing.price_of("XX", 1)

    def test_custom_article_resolves_personalization(self, pricing):
        assert pricing.unit_price_for_article(ArticleKind.CUSTOM_BEVERAGE, 3) == Decimal("3.65")
        with pytest.raises(NotFoundError):
            pricing.unit_price_for_article(ArticleKind.CUSTOM_BEVERAGE, 999)


class TestCaching:
    def test_second_lookup_is_a_hit(self, pricing, cache):
        pricing.calculate_standard_beverage_price(1)
        pricing.calculate_standard_beverage_price(1)

        assert "price:standard:1" in cache
        assert cache.statistics.hits == 1
        assert cache.statistics.misses == 1

    def test_bypassing_cache_reads_catalog(self, pricing, catalog):
        assert pricing.calculate_standard_beverage_price(1) == Decimal("4.50")
        catalog.standard_beverages[1].price = Decimal("4.90")

        assert pricing.calculate_standard_beverage_price(1) == Decimal("4.50")
        assert pricing.calculate_standard_beverage_price(1, use_cache=False) == Decimal("4.90")

    def test_cache_failure_degrades_to_direct_computation(self, pricing, cache):
        with patch.object(cache, "try_get", side_effect=RuntimeError("cache down")), \
                patch.object(cache, "set", side_effect=RuntimeError("cache down")):
            assert pricing.calculate_custom_beverage_price(100) == Decimal("3.65")
            assert pricing.get_tax_rate(2) == Decimal("10.00")

    def test_works_without_cache(self, catalog):
        service = PriceCalculationService(catalog)
        assert service.price_of("D", 20) == Decimal("3.80")
        service.preload_cache()
        service.clear_cache()

    def test_clear_cache_drops_prices(self, pricing, cache):
        pricing.calculate_dessert_price(20)
        pricing.clear_cache()
        assert "price:dessert:20" not in cache


class TestTaxRates:
    def test_known_rate(self, pricing):
        assert pricing.get_tax_rate(2) == Decimal("10.00")
        assert pricing.get_tax_rate(2, use_cache=False) == Decimal("10.00")

    @pytest.mark.parametrize("tax_rate_id", [None, 0, -1, 999])
    def test_unknown_rate_defaults(self, pricing, tax_rate_id):
        assert pricing.get_tax_rate(tax_rate_id) == Decimal("22.00")

    def test_catalog_failure_defaults(self, catalog):
        catalog.get_tax_rate = MagicMock(side_effect=ConnectionError("db down"))
        service = PriceCalculationService(catalog)
        assert service.get_tax_rate(2) == Decimal("22.00")

    def test_validate_tax_rate(self, pricing):
        assert pricing.validate_tax_rate(1) is True
        assert pricing.validate_tax_rate(0) is False
        assert pricing.validate_tax_rate(999) is False


class TestCompletePrice:
    def test_standard_line(self, pricing):
        breakdown = pricing.calculate_complete_price(PriceRequest(kind="BS", article_id=1, quantity=2, tax_rate_id=1))

        assert breakdown.kind is ArticleKind.STANDARD_BEVERAGE
        assert breakdown.unit_price == Decimal("4.50")
        assert breakdown.gross_total == Decimal("9.00")
        assert breakdown.imponibile == Decimal("7.38")
        assert breakdown.tax_amount == Decimal("1.62")
        assert breakdown.tax_rate == Decimal("22.00")

    def test_custom_by_personalization(self, pricing):
        request = PriceRequest(kind="BC", article_id=0, personalization_id=100, tax_rate_id=2)
        breakdown = pricing.calculate_complete_price(request)

        assert breakdown.unit_price == Decimal("3.65")
        assert breakdown.imponibile == Decimal("3.32")
        assert breakdown.tax_amount == Decimal("0.33")

    def test_custom_by_article(self, pricing):
        breakdown = pricing.calculate_complete_price(PriceRequest(kind="BC", article_id=3))
        assert breakdown.unit_price == Decimal("3.65")

    def test_unknown_tax_rate_uses_default(self, pricing):
        breakdown = pricing.calculate_complete_price(PriceRequest(kind="D", article_id=20, tax_rate_id=999))
        assert breakdown.tax_rate == Decimal("22.00")

    def test_fixed_price_skips_derivation(self, pricing):
        request = PriceRequest(kind="D", article_id=999, quantity=2, tax_rate_id=1, fixed_price=Decimal("6.10"))
        breakdown = pricing.calculate_complete_price(request)

        assert breakdown.unit_price == Decimal("6.10")
        assert breakdown.gross_total == Decimal("12.20")
        assert breakdown.imponibile == Decimal("10.00")
        assert breakdown.tax_amount == Decimal("2.20")

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_invalid_quantity(self, pricing, quantity):
        with pytest.raises(InvalidArgumentError):
            pricing.calculate_complete_price(PriceRequest(kind="BS", article_id=1, quantity=quantity))

    def test_missing_article_propagates(self, pricing):
        with pytest.raises(NotFoundError):
            pricing.calculate_complete_price(PriceRequest(kind="BS", article_id=999))


class TestBatch:
    def test_one_failure_does_not_abort_batch(self, pricing):
        requests = [
            PriceRequest(kind="BS", article_id=1),
            PriceRequest(kind="BS", article_id=999),
            PriceRequest(kind="D", article_id=20),
            PriceRequest(kind="BC", article_id=4),
        ]

        result = pricing.calculate_batch_prices(requests, max_workers=2)

        assert result.success_count == 3
        assert result.failure_count == 1
        assert [b.unit_price for b in result.succeeded] == [Decimal("4.50"), Decimal("3.80"), Decimal("2.90")]
        failed_request, error = result.failed[0]
        assert failed_request.article_id == 999
        assert isinstance(error, NotFoundError)

    def test_cancelled_before_start(self, pricing):
        cancel = threading.Event()
        cancel.set()

        result = pricing.calculate_batch_prices([PriceRequest(kind="BS", article_id=1)], cancel_event=cancel)

        assert result.cancelled is True
        assert result.success_count == 0

    def test_cancel_keeps_partial_results(self, pricing):
        cancel = threading.Event()
        original = pricing.calculate_complete_price

        ran = []

        def slow_price(request):
            ran.append(request.quantity)
            if request.quantity == 1:
                cancel.set()
                time.sleep(0.05)
            return original(request)

        requests = [PriceRequest(kind="BS", article_id=1, quantity=q) for q in range(1, 51)]
        with patch.object(pricing, "calculate_complete_price", side_effect=slow_price):
            result = pricing.calculate_batch_prices(requests, max_workers=1, cancel_event=cancel)

        assert result.cancelled is True
        assert result.succeeded[0].quantity == 1
        assert [b.quantity for b in result.succeeded] == ran
        assert result.success_count < 50

    def test_unit_price_batch(self, pricing):
        batch = pricing.calculate_batch_unit_prices(
            standard_ids=[1, 2], personalization_ids=[100, 102], dessert_ids=[20, 999]
        )

        assert batch.standard_beverages == {1: Decimal("4.50"), 2: Decimal("5.20")}
        assert batch.custom_beverages == {100: Decimal("3.65")}
        assert batch.desserts == {20: Decimal("3.80")}
        assert batch.success_count == 4
        assert len(batch.errors) == 2
