"""Request and result types for price derivation."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Union

from ..catalog.models import ArticleKind


@dataclass(slots=True)
class PriceRequest:
    """One order-line pricing request.

    ``fixed_price`` is an agreed unit price (e.g. reproducing a historical
    order): derivation is skipped but tax math still applies.
    """

    kind: Union[ArticleKind, str]
    article_id: int
    quantity: int = 1
    tax_rate_id: int = 0
    personalization_id: Optional[int] = None
    fixed_price: Optional[Decimal] = None


@dataclass(slots=True)
class PriceBreakdown:
    article_id: int
    kind: ArticleKind
    quantity: int
    base_price: Decimal
    unit_price: Decimal
    imponibile: Decimal
    tax_amount: Decimal
    gross_total: Decimal
    tax_rate: Decimal
    tax_rate_id: int
    detail: str = ""


@dataclass(slots=True)
class IngredientContribution:
    ingredient_id: int
    name: str
    surcharge: Decimal
    available: bool
    contribution: Decimal


@dataclass(slots=True)
class CustomBeverageBreakdown:
    personalization_id: int
    name: str
    cup_size_id: int
    cup_base_price: Decimal
    cup_multiplier: Decimal
    ingredients: List[IngredientContribution]
    ingredients_total: Decimal
    total: Decimal


@dataclass
class UnitPriceBatch:
    """Per-kind unit prices keyed by id, plus one message per failed id."""

    standard_beverages: Dict[int, Decimal] = field(default_factory=dict)
    custom_beverages: Dict[int, Decimal] = field(default_factory=dict)
    desserts: Dict[int, Decimal] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.standard_beverages) + len(self.custom_beverages) + len(self.desserts)
