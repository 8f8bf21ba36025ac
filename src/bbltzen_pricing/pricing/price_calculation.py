"""Unit price derivation for standard beverages, custom beverages and desserts."""

from __future__ import annotations

import threading
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Union

from ..batch import BatchResult, run_batch
from ..cache.memory_cache import MemoryCache
from ..cache.service import PricingCacheService, price_key
from ..catalog.accessor import CatalogAccessor
from ..catalog.models import ArticleKind
from ..errors import InvalidArgumentError, NotFoundError, UnsupportedKindError
from ..utils.config import Config
from ..utils.logging import get_logger
from . import tax_math
from .models import (
    CustomBeverageBreakdown,
    IngredientContribution,
    PriceBreakdown,
    PriceRequest,
    UnitPriceBatch,
)

logger = get_logger(__name__)

_PRICE_SLUGS = {
    ArticleKind.STANDARD_BEVERAGE: "standard",
    ArticleKind.CUSTOM_BEVERAGE: "custom",
    ArticleKind.DESSERT: "dessert",
}


class PriceCalculationService:
    """Derives unit prices and complete VAT breakdowns for order lines.

    Catalog reads may be served from the cache; any cache failure degrades to
    a direct catalog read and is only logged.
    """

    def __init__(
        self,
        catalog: CatalogAccessor,
        cache: Optional[Union[MemoryCache, PricingCacheService]] = None,
        config: Optional[Config] = None,
    ) -> None:
        self.catalog = catalog
        self.config = config or Config()
        self.default_tax_rate: Decimal = self.config.get("default_tax_rate", tax_math.DEFAULT_TAX_RATE)
        if isinstance(cache, MemoryCache):
            cache = PricingCacheService(cache, catalog, self.config)
        self.cache_service: Optional[PricingCacheService] = cache

    # Cache plumbing
    def _cached(self, kind: ArticleKind, entity_id: int, compute: Callable[[], Decimal], use_cache: bool) -> Decimal:
        if not use_cache or self.cache_service is None:
            return compute()
        key = price_key(_PRICE_SLUGS[kind], entity_id)
        try:
            found, value = self.cache_service.cache.try_get(key)
            if found:
                return value
        except Exception as exc:
            logger.warning(f"Cache read failed for {key}, computing directly: {exc}")
        value = compute()
        try:
            self.cache_service.cache.set(key, value, self.cache_service.ttls.prices)
        except Exception as exc:
            logger.warning(f"Cache write failed for {key}: {exc}")
        return value

    # Per-kind prices
    def calculate_standard_beverage_price(self, article_id: int, use_cache: bool = True) -> Decimal:
        def compute() -> Decimal:
            beverage = self.catalog.get_standard_beverage(article_id)
            if beverage is None:
                raise NotFoundError(f"Standard beverage not found for article {article_id}")
            logger.debug(f"Standard beverage {article_id}: {beverage.price}")
            return tax_math.round_money(beverage.price)

        return self._cached(ArticleKind.STANDARD_BEVERAGE, article_id, compute, use_cache)

    def calculate_dessert_price(self, article_id: int, use_cache: bool = True) -> Decimal:
        def compute() -> Decimal:
            dessert = self.catalog.get_dessert(article_id)
            if dessert is None:
                raise NotFoundError(f"Dessert not found for article {article_id}")
            return tax_math.round_money(dessert.price)

        return self._cached(ArticleKind.DESSERT, article_id, compute, use_cache)

    def calculate_custom_beverage_breakdown(self, personalization_id: int) -> CustomBeverageBreakdown:
        """
        Price a custom beverage ingredient by ingredient.

        price = cup.base_price + sum(ingredient.surcharge * cup.multiplier)

        Only available ingredients contribute; unavailable ones stay listed
        with a zero contribution. The sum is rounded once, at the end.
        """
        personalization = self.catalog.get_custom_personalization(personalization_id)
        if personalization is None:
            raise NotFoundError(f"Custom personalization not found: {personalization_id}")

        cup = self.catalog.get_cup_size(personalization.cup_size_id)
        if cup is None:
            raise NotFoundError(
                f"Cup size {personalization.cup_size_id} not found for personalization {personalization_id}"
            )

        contributions: List[IngredientContribution] = []
        ingredients_total = Decimal("0")
        for ingredient_id in self.catalog.get_chosen_ingredients(personalization_id):
            ingredient = self.catalog.get_ingredient(ingredient_id)
            if ingredient is None:
                logger.debug(f"Ingredient {ingredient_id} of personalization {personalization_id} no longer exists")
                continue
            contribution = ingredient.surcharge * cup.multiplier if ingredient.available else Decimal("0")
            ingredients_total += contribution
            contributions.append(
                IngredientContribution(
                    ingredient_id=ingredient.ingredient_id,
                    name=ingredient.name,
                    surcharge=ingredient.surcharge,
                    available=ingredient.available,
                    contribution=contribution,
                )
            )

        total = tax_math.round_money(cup.base_price + ingredients_total)
        logger.info(
            f"Custom beverage {personalization_id}: base={cup.base_price}, "
            f"ingredients={ingredients_total}, total={total}, size={cup.description or cup.cup_size_id}"
        )
        return CustomBeverageBreakdown(
            personalization_id=personalization_id,
            name=personalization.name,
            cup_size_id=cup.cup_size_id,
            cup_base_price=cup.base_price,
            cup_multiplier=cup.multiplier,
            ingredients=contributions,
            ingredients_total=ingredients_total,
            total=total,
        )

    def calculate_custom_beverage_price(self, personalization_id: int, use_cache: bool = True) -> Decimal:
        return self._cached(
            ArticleKind.CUSTOM_BEVERAGE,
            personalization_id,
            lambda: self.calculate_custom_beverage_breakdown(personalization_id).total,
            use_cache,
        )

    def price_of(self, kind: Union[ArticleKind, str], entity_id: int, use_cache: bool = True) -> Decimal:
        """Unit price by kind.

        ``entity_id`` is the article id for standard beverages and desserts,
        and the personalization id for custom beverages.
        """
        kind = ArticleKind.from_code(kind)
        try:
            if kind is ArticleKind.STANDARD_BEVERAGE:
                return self.calculate_standard_beverage_price(entity_id, use_cache)
            elif kind is ArticleKind.CUSTOM_BEVERAGE:
                return self.calculate_custom_beverage_price(entity_id, use_cache)
            elif kind is ArticleKind.DESSERT:
                return self.calculate_dessert_price(entity_id, use_cache)
        except Exception as exc:
            logger.error(f"Price calculation failed for {kind.value} {entity_id}: {exc}")
            raise
        raise UnsupportedKindError(f"Unsupported article kind: {kind!r}")

    def personalization_for_article(self, article_id: int) -> int:
        custom = self.catalog.get_custom_beverage(article_id)
        if custom is None:
            raise NotFoundError(f"Custom beverage not found for article {article_id}")
        return custom.personalization_id

    def unit_price_for_article(self, kind: Union[ArticleKind, str], article_id: int, use_cache: bool = True) -> Decimal:
        """Unit price for an order-line article id (custom articles resolve their personalization)."""
        kind = ArticleKind.from_code(kind)
        if kind is ArticleKind.CUSTOM_BEVERAGE:
            return self.price_of(kind, self.personalization_for_article(article_id), use_cache)
        return self.price_of(kind, article_id, use_cache)

    # Tax rates
    def _lookup_tax_rate(self, tax_rate_id: int, use_cache: bool) -> Optional[Decimal]:
        if use_cache and self.cache_service is not None:
            try:
                return self.cache_service.tax_rates().get(tax_rate_id)
            except Exception as exc:
                logger.warning(f"Tax rate cache unavailable, reading catalog directly: {exc}")
        tax_rate = self.catalog.get_tax_rate(tax_rate_id)
        return tax_rate.rate if tax_rate else None

    def get_tax_rate(self, tax_rate_id: Optional[int], use_cache: bool = True) -> Decimal:
        """Rate percentage for ``tax_rate_id``; falls back to the default, never raises."""
        if tax_rate_id is None or tax_rate_id <= 0:
            return self.default_tax_rate
        try:
            rate = self._lookup_tax_rate(tax_rate_id, use_cache)
        except Exception as exc:
            logger.warning(f"Tax rate {tax_rate_id} lookup failed, using default: {exc}")
            return self.default_tax_rate
        return tax_math.resolve_rate_or_default(rate, self.default_tax_rate)

    def validate_tax_rate(self, tax_rate_id: int) -> bool:
        if tax_rate_id <= 0:
            return False
        try:
            tax_rate = self.catalog.get_tax_rate(tax_rate_id)
        except Exception as exc:
            logger.warning(f"Tax rate {tax_rate_id} validation failed: {exc}")
            return False
        return tax_rate is not None and Decimal("0") < tax_rate.rate <= Decimal("100")

    # Complete line pricing
    def calculate_complete_price(self, request: PriceRequest, use_cache: bool = True) -> PriceBreakdown:
        try:
            if request.quantity <= 0:
                raise InvalidArgumentError(f"Quantity must be greater than zero, got {request.quantity}")
            kind = ArticleKind.from_code(request.kind)

            if request.fixed_price is not None:
                base_price = tax_math.to_decimal(request.fixed_price)
                if base_price < 0:
                    raise InvalidArgumentError(f"Fixed price must not be negative, got {base_price}")
            elif kind is ArticleKind.CUSTOM_BEVERAGE and request.personalization_id is not None:
                base_price = self.price_of(kind, request.personalization_id, use_cache)
            else:
                base_price = self.unit_price_for_article(kind, request.article_id, use_cache)

            rate = self.get_tax_rate(request.tax_rate_id, use_cache)
            unit_price = base_price
            gross = unit_price * request.quantity
            breakdown = PriceBreakdown(
                article_id=request.article_id,
                kind=kind,
                quantity=request.quantity,
                base_price=tax_math.round_money(base_price),
                unit_price=tax_math.round_money(unit_price),
                imponibile=tax_math.gross_to_net(gross, rate),
                tax_amount=tax_math.tax_portion(gross, rate),
                gross_total=tax_math.round_money(gross),
                tax_rate=rate,
                tax_rate_id=request.tax_rate_id,
                detail=f"Price: {unit_price} x {request.quantity} = {gross}, VAT {rate}%",
            )
        except Exception as exc:
            logger.error(f"Complete price calculation failed for article {request.article_id}: {exc}")
            raise

        logger.info(
            f"Priced {kind.value} {request.article_id}: unit={breakdown.unit_price}, "
            f"qty={request.quantity}, gross={breakdown.gross_total}"
        )
        return breakdown

    def calculate_batch_prices(
        self,
        requests: Iterable[PriceRequest],
        max_workers: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchResult[PriceRequest, PriceBreakdown]:
        """Price every request independently; failures are recorded, never raised."""
        workers = max_workers or self.config.get("batch_max_workers", 4)
        return run_batch(
            requests,
            self.calculate_complete_price,
            max_workers=workers,
            cancel_event=cancel_event,
            label="batch-price",
        )

    def calculate_batch_unit_prices(
        self,
        standard_ids: Iterable[int] = (),
        personalization_ids: Iterable[int] = (),
        dessert_ids: Iterable[int] = (),
    ) -> UnitPriceBatch:
        batch = UnitPriceBatch()
        groups = (
            (ArticleKind.STANDARD_BEVERAGE, standard_ids, batch.standard_beverages),
            (ArticleKind.CUSTOM_BEVERAGE, personalization_ids, batch.custom_beverages),
            (ArticleKind.DESSERT, dessert_ids, batch.desserts),
        )
        for kind, ids, prices in groups:
            for entity_id in ids:
                try:
                    prices[entity_id] = self.price_of(kind, entity_id)
                except Exception as exc:
                    logger.warning(f"Unit price batch: {kind.value} {entity_id} failed: {exc}")
                    batch.errors.append(f"{kind.name.lower()} {entity_id}: {exc}")
        logger.info(f"Unit price batch completed: {batch.success_count} succeeded, {len(batch.errors)} failed")
        return batch

    # Cache lifecycle
    def preload_cache(self) -> None:
        if self.cache_service is None:
            return
        self.cache_service.preload()

    def clear_cache(self) -> None:
        if self.cache_service is None:
            return
        self.cache_service.clear_all()
