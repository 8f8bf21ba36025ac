"""In-memory catalog and order store.

Holds entities in plain dicts; used by tests and for local experiments
without a MongoDB instance.
"""

from __future__ import annotations

import threading
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from ..errors import NotFoundError
from .accessor import CatalogAccessor, OrderStore
from .models import (
    ArticleKind,
    CupSize,
    CustomBeverage,
    CustomPersonalization,
    Dessert,
    Ingredient,
    Order,
    OrderLine,
    PersonalizationIngredient,
    StandardBeverage,
    TaxRate,
)


class InMemoryCatalog(CatalogAccessor):
    def __init__(self) -> None:
        self.article_kinds: Dict[int, ArticleKind] = {}
        self.standard_beverages: Dict[int, StandardBeverage] = {}
        self.custom_beverages: Dict[int, CustomBeverage] = {}
        self.personalizations: Dict[int, CustomPersonalization] = {}
        self.cup_sizes: Dict[int, CupSize] = {}
        self.ingredients: Dict[int, Ingredient] = {}
        self.bindings: List[PersonalizationIngredient] = []
        self.desserts: Dict[int, Dessert] = {}
        self.tax_rates: Dict[int, TaxRate] = {}

    # Seed helpers
    def add_cup_size(self, cup_size_id: int, base_price: Decimal, multiplier: Decimal, description: str = "") -> CupSize:
        cup = CupSize(cup_size_id=cup_size_id, base_price=base_price, multiplier=multiplier, description=description)
        self.cup_sizes[cup_size_id] = cup
        return cup

    def add_ingredient(self, ingredient_id: int, surcharge: Decimal, available: bool = True, name: str = "") -> Ingredient:
        ingredient = Ingredient(ingredient_id=ingredient_id, surcharge=surcharge, available=available, name=name)
        self.ingredients[ingredient_id] = ingredient
        return ingredient

    def add_personalization(
        self, personalization_id: int, cup_size_id: int, ingredient_ids: Iterable[int] = (), name: str = ""
    ) -> CustomPersonalization:
        pers = CustomPersonalization(personalization_id=personalization_id, cup_size_id=cup_size_id, name=name)
        self.personalizations[personalization_id] = pers
        for ingredient_id in ingredient_ids:
            self.bindings.append(PersonalizationIngredient(personalization_id, ingredient_id))
        return pers

    def add_standard_beverage(self, article_id: int, price: Decimal, always_orderable: bool = True, priority: int = 0) -> StandardBeverage:
        beverage = StandardBeverage(article_id=article_id, price=price, always_orderable=always_orderable, priority=priority)
        self.standard_beverages[article_id] = beverage
        self.article_kinds[article_id] = ArticleKind.STANDARD_BEVERAGE
        return beverage

    def add_custom_beverage(self, article_id: int, personalization_id: int) -> CustomBeverage:
        beverage = CustomBeverage(article_id=article_id, personalization_id=personalization_id)
        self.custom_beverages[article_id] = beverage
        self.article_kinds[article_id] = ArticleKind.CUSTOM_BEVERAGE
        return beverage

    def add_dessert(self, article_id: int, price: Decimal) -> Dessert:
        dessert = Dessert(article_id=article_id, price=price)
        self.desserts[article_id] = dessert
        self.article_kinds[article_id] = ArticleKind.DESSERT
        return dessert

    def add_tax_rate(self, tax_rate_id: int, rate: Decimal, description: str = "") -> TaxRate:
        tax_rate = TaxRate(tax_rate_id=tax_rate_id, rate=rate, description=description)
        self.tax_rates[tax_rate_id] = tax_rate
        return tax_rate

    # CatalogAccessor
    def get_article_kind(self, article_id: int) -> Optional[ArticleKind]:
        return self.article_kinds.get(article_id)

    def get_standard_beverage(self, article_id: int) -> Optional[StandardBeverage]:
        return self.standard_beverages.get(article_id)

    def get_custom_beverage(self, article_id: int) -> Optional[CustomBeverage]:
        return self.custom_beverages.get(article_id)

    def get_custom_personalization(self, personalization_id: int) -> Optional[CustomPersonalization]:
        return self.personalizations.get(personalization_id)

    def get_cup_size(self, cup_size_id: int) -> Optional[CupSize]:
        return self.cup_sizes.get(cup_size_id)

    def get_ingredient(self, ingredient_id: int) -> Optional[Ingredient]:
        return self.ingredients.get(ingredient_id)

    def get_chosen_ingredients(self, personalization_id: int) -> List[int]:
        return [b.ingredient_id for b in self.bindings if b.personalization_id == personalization_id]

    def get_dessert(self, article_id: int) -> Optional[Dessert]:
        return self.desserts.get(article_id)

    def get_tax_rate(self, tax_rate_id: int) -> Optional[TaxRate]:
        return self.tax_rates.get(tax_rate_id)

    def list_tax_rates(self) -> List[TaxRate]:
        return list(self.tax_rates.values())

    def list_cup_sizes(self) -> List[CupSize]:
        return list(self.cup_sizes.values())

    def list_ingredients(self, available_only: bool = False) -> List[Ingredient]:
        return [i for i in self.ingredients.values() if i.available or not available_only]

    def list_standard_beverages(self) -> List[StandardBeverage]:
        return sorted(self.standard_beverages.values(), key=lambda b: b.priority, reverse=True)

    def list_desserts(self) -> List[Dessert]:
        return list(self.desserts.values())


class InMemoryOrderStore(OrderStore):
    def __init__(self) -> None:
        self.orders: Dict[int, Order] = {}
        self.lines: Dict[int, OrderLine] = {}
        self._lock = threading.Lock()

    def add_order(self, order_id: int, status_id: int = 1, total: Decimal = Decimal("0")) -> Order:
        order = Order(order_id=order_id, status_id=status_id, total=total)
        self.orders[order_id] = order
        return order

    def add_line(
        self,
        order_item_id: int,
        order_id: int,
        article_id: int,
        kind: ArticleKind,
        quantity: int,
        tax_rate_id: int,
        unit_price: Decimal = Decimal("0"),
        discount: Decimal = Decimal("0"),
        total: Decimal = Decimal("0"),
    ) -> OrderLine:
        line = OrderLine(
            order_item_id=order_item_id,
            order_id=order_id,
            article_id=article_id,
            kind=kind,
            quantity=quantity,
            tax_rate_id=tax_rate_id,
            unit_price=unit_price,
            discount=discount,
            total=total,
        )
        self.lines[order_item_id] = line
        return line

    def get_order(self, order_id: int) -> Optional[Order]:
        return self.orders.get(order_id)

    def get_order_lines(self, order_id: int) -> List[OrderLine]:
        return [line for line in self.lines.values() if line.order_id == order_id]

    def get_order_line(self, order_item_id: int) -> Optional[OrderLine]:
        return self.lines.get(order_item_id)

    def list_orders(self, exclude_statuses: Optional[Iterable[int]] = None) -> List[Order]:
        excluded = set(exclude_statuses or ())
        return [o for o in self.orders.values() if o.status_id not in excluded]

    def save_order_total(self, order_id: int, total: Decimal) -> None:
        with self._lock:
            order = self.orders.get(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")
            order.total = total
