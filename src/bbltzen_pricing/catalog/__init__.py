"""Catalog module: entities, persistence contracts and adapters."""

from .accessor import CatalogAccessor, OrderStore
from .memory import InMemoryCatalog, InMemoryOrderStore
from .models import (
    TERMINAL_ORDER_STATUSES,
    Article,
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
from .repository import MongoCatalogRepository, MongoOrderRepository

__all__ = [
    "TERMINAL_ORDER_STATUSES",
    "Article",
    "ArticleKind",
    "CatalogAccessor",
    "CupSize",
    "CustomBeverage",
    "CustomPersonalization",
    "Dessert",
    "InMemoryCatalog",
    "InMemoryOrderStore",
    "Ingredient",
    "MongoCatalogRepository",
    "MongoOrderRepository",
    "Order",
    "OrderLine",
    "OrderStore",
    "PersonalizationIngredient",
    "StandardBeverage",
    "TaxRate",
]
