"""Pricing module: VAT arithmetic and unit price derivation."""

from . import tax_math
from .models import (
    CustomBeverageBreakdown,
    IngredientContribution,
    PriceBreakdown,
    PriceRequest,
    UnitPriceBatch,
)
from .price_calculation import PriceCalculationService

__all__ = [
    "CustomBeverageBreakdown",
    "IngredientContribution",
    "PriceBreakdown",
    "PriceCalculationService",
    "PriceRequest",
    "UnitPriceBatch",
    "tax_math",
]
