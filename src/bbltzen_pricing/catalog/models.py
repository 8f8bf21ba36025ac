"""Catalog and order entities read by the pricing engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, List, Optional, Union

from ..errors import UnsupportedKindError

# Completed, cancelled
TERMINAL_ORDER_STATUSES: FrozenSet[int] = frozenset({4, 5})


class ArticleKind(Enum):
    STANDARD_BEVERAGE = "BS"
    CUSTOM_BEVERAGE = "BC"
    DESSERT = "D"

    @classmethod
    def from_code(cls, value: Union["ArticleKind", str]) -> "ArticleKind":
        """Parse a kind from a member or its (case-insensitive) code."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            code = value.strip().upper()
            for kind in cls:
                if kind.value == code or kind.name == code:
                    return kind
        raise UnsupportedKindError(f"Unsupported article kind: {value!r}")


@dataclass(slots=True)
class Article:
    article_id: int
    kind: ArticleKind


@dataclass(slots=True)
class StandardBeverage:
    article_id: int
    price: Decimal
    always_orderable: bool = True
    priority: int = 0
    personalization_id: Optional[int] = None


@dataclass(slots=True)
class CustomBeverage:
    article_id: int
    personalization_id: int


@dataclass(slots=True)
class CustomPersonalization:
    personalization_id: int
    cup_size_id: int
    name: str = ""


@dataclass(slots=True)
class PersonalizationIngredient:
    personalization_id: int
    ingredient_id: int


@dataclass(slots=True)
class CupSize:
    cup_size_id: int
    base_price: Decimal
    multiplier: Decimal
    description: str = ""


@dataclass(slots=True)
class Ingredient:
    ingredient_id: int
    surcharge: Decimal
    available: bool = True
    name: str = ""


@dataclass(slots=True)
class Dessert:
    article_id: int
    price: Decimal


@dataclass(slots=True)
class TaxRate:
    tax_rate_id: int
    rate: Decimal
    description: str = ""


@dataclass(slots=True)
class OrderLine:
    order_item_id: int
    order_id: int
    article_id: int
    kind: ArticleKind
    quantity: int
    tax_rate_id: int
    unit_price: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


@dataclass(slots=True)
class Order:
    order_id: int
    status_id: int
    total: Decimal = Decimal("0")
    lines: List[OrderLine] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status_id in TERMINAL_ORDER_STATUSES
