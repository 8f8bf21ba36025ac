"""Read/write contracts the engine needs from the persistence layer.

Lookups by id return ``None`` for absent entities; callers decide whether that
is a surfaced ``NotFoundError`` (articles) or a graceful fallback (tax rates).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Iterable, List, Optional

from .models import (
    ArticleKind,
    CupSize,
    CustomBeverage,
    CustomPersonalization,
    Dessert,
    Ingredient,
    Order,
    OrderLine,
    StandardBeverage,
    TaxRate,
)


class CatalogAccessor(ABC):
    @abstractmethod
    def get_article_kind(self, article_id: int) -> Optional[ArticleKind]: ...

    @abstractmethod
    def get_standard_beverage(self, article_id: int) -> Optional[StandardBeverage]: ...

    @abstractmethod
    def get_custom_beverage(self, article_id: int) -> Optional[CustomBeverage]: ...

    @abstractmethod
    def get_custom_personalization(self, personalization_id: int) -> Optional[CustomPersonalization]: ...

    @abstractmethod
    def get_cup_size(self, cup_size_id: int) -> Optional[CupSize]: ...

    @abstractmethod
    def get_ingredient(self, ingredient_id: int) -> Optional[Ingredient]: ...

    @abstractmethod
    def get_chosen_ingredients(self, personalization_id: int) -> List[int]:
        """Ingredient ids bound to a personalization, in insertion order."""

    @abstractmethod
    def get_dessert(self, article_id: int) -> Optional[Dessert]: ...

    @abstractmethod
    def get_tax_rate(self, tax_rate_id: int) -> Optional[TaxRate]: ...

    @abstractmethod
    def list_tax_rates(self) -> List[TaxRate]: ...

    @abstractmethod
    def list_cup_sizes(self) -> List[CupSize]: ...

    @abstractmethod
    def list_ingredients(self, available_only: bool = False) -> List[Ingredient]: ...

    @abstractmethod
    def list_standard_beverages(self) -> List[StandardBeverage]: ...

    @abstractmethod
    def list_desserts(self) -> List[Dessert]: ...


class OrderStore(ABC):
    @abstractmethod
    def get_order(self, order_id: int) -> Optional[Order]: ...

    @abstractmethod
    def get_order_lines(self, order_id: int) -> List[OrderLine]: ...

    @abstractmethod
    def get_order_line(self, order_item_id: int) -> Optional[OrderLine]: ...

    @abstractmethod
    def list_orders(self, exclude_statuses: Optional[Iterable[int]] = None) -> List[Order]: ...

    @abstractmethod
    def save_order_total(self, order_id: int, total: Decimal) -> None: ...
