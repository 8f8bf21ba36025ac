"""MongoDB repositories for catalog entities and orders."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from bson.decimal128 import Decimal128
from pymongo import MongoClient

from ..errors import NotFoundError
from ..utils.config import Config
from ..utils.logging import get_logger
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
    StandardBeverage,
    TaxRate,
)

logger = get_logger(__name__)

ARTICLES = "ARTICOLO"
STANDARD_BEVERAGES = "BEVANDA_STANDARD"
CUSTOM_BEVERAGES = "BEVANDA_CUSTOM"
PERSONALIZATIONS = "PERSONALIZZAZIONE_CUSTOM"
PERSONALIZATION_INGREDIENTS = "INGREDIENTI_PERSONALIZZAZIONE"
CUP_SIZES = "DIMENSIONE_BICCHIERE"
INGREDIENTS = "INGREDIENTE"
DESSERTS = "DOLCE"
TAX_RATES = "TAX_RATES"
ORDERS = "ORDINE"
ORDER_ITEMS = "ORDER_ITEM"


def to_decimal(value: Any, default: str = "0") -> Decimal:
    """Convert a stored numeric (Decimal128, str, int, float) to Decimal."""
    if value is None:
        return Decimal(default)
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 3.65 from turning into 3.649999...
    return Decimal(str(value))


class MongoRepository:
    """Connection handling shared by the catalog and order repositories."""

    def __init__(self, url: Optional[str] = None, db_name: Optional[str] = None, config: Optional[Config] = None) -> None:
        config = config or Config(".env")
        self._url = url or config.get("mongo_url")
        self._db_name = db_name or config.get("mongo_db")
        if not self._url:
            raise ValueError("DB_CONNECTION_URL is required")
        self._client: Optional[MongoClient] = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    def connect(self) -> None:
        if self._client is None:
            self._client = MongoClient(self._url, serverSelectionTimeoutMS=5000)

    def disconnect(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _collection(self, name: str):
        if self._client is None:
            self.connect()
        return self._client[self._db_name][name]

    def _find_one(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self._collection(collection).find_one(query)


class MongoCatalogRepository(MongoRepository, CatalogAccessor):
    def get_article_kind(self, article_id: int) -> Optional[ArticleKind]:
        doc = self._find_one(ARTICLES, {"articoloId": article_id})
        if not doc:
            return None
        return ArticleKind.from_code(doc.get("tipo", ""))

    def get_standard_beverage(self, article_id: int) -> Optional[StandardBeverage]:
        doc = self._find_one(STANDARD_BEVERAGES, {"articoloId": article_id})
        return self._standard_beverage(doc) if doc else None

    def get_custom_beverage(self, article_id: int) -> Optional[CustomBeverage]:
        doc = self._find_one(CUSTOM_BEVERAGES, {"articoloId": article_id})
        if not doc:
            return None
        return CustomBeverage(article_id=int(doc["articoloId"]), personalization_id=int(doc["persCustomId"]))

    def get_custom_personalization(self, personalization_id: int) -> Optional[CustomPersonalization]:
        doc = self._find_one(PERSONALIZATIONS, {"persCustomId": personalization_id})
        if not doc:
            return None
        return CustomPersonalization(
            personalization_id=int(doc["persCustomId"]),
            cup_size_id=int(doc["dimensioneBicchiereId"]),
            name=doc.get("nome", ""),
        )

    def get_cup_size(self, cup_size_id: int) -> Optional[CupSize]:
        doc = self._find_one(CUP_SIZES, {"dimensioneBicchiereId": cup_size_id})
        return self._cup_size(doc) if doc else None

    def get_ingredient(self, ingredient_id: int) -> Optional[Ingredient]:
        doc = self._find_one(INGREDIENTS, {"ingredienteId": ingredient_id})
        return self._ingredient(doc) if doc else None

    def get_chosen_ingredients(self, personalization_id: int) -> List[int]:
        cursor = self._collection(PERSONALIZATION_INGREDIENTS).find({"persCustomId": personalization_id})
        return [int(doc["ingredienteId"]) for doc in cursor]

    def get_dessert(self, article_id: int) -> Optional[Dessert]:
        doc = self._find_one(DESSERTS, {"articoloId": article_id})
        if not doc:
            return None
        return Dessert(article_id=int(doc["articoloId"]), price=to_decimal(doc.get("prezzo")))

    def get_tax_rate(self, tax_rate_id: int) -> Optional[TaxRate]:
        doc = self._find_one(TAX_RATES, {"taxRateId": tax_rate_id})
        return self._tax_rate(doc) if doc else None

    def list_tax_rates(self) -> List[TaxRate]:
        return [self._tax_rate(doc) for doc in self._collection(TAX_RATES).find({})]

    def list_cup_sizes(self) -> List[CupSize]:
        return [self._cup_size(doc) for doc in self._collection(CUP_SIZES).find({})]

    def list_ingredients(self, available_only: bool = False) -> List[Ingredient]:
        query = {"disponibile": True} if available_only else {}
        return [self._ingredient(doc) for doc in self._collection(INGREDIENTS).find(query)]

    def list_standard_beverages(self) -> List[StandardBeverage]:
        cursor = self._collection(STANDARD_BEVERAGES).find({}).sort("priorita", -1)
        return [self._standard_beverage(doc) for doc in cursor]

    def list_desserts(self) -> List[Dessert]:
        return [
            Dessert(article_id=int(doc["articoloId"]), price=to_decimal(doc.get("prezzo")))
            for doc in self._collection(DESSERTS).find({})
        ]

    @staticmethod
    def _standard_beverage(doc: Dict[str, Any]) -> StandardBeverage:
        pers_id = doc.get("personalizzazioneId")
        return StandardBeverage(
            article_id=int(doc["articoloId"]),
            price=to_decimal(doc.get("prezzo")),
            always_orderable=bool(doc.get("sempreDisponibile", True)),
            priority=int(doc.get("priorita", 0)),
            personalization_id=int(pers_id) if pers_id is not None else None,
        )

    @staticmethod
    def _cup_size(doc: Dict[str, Any]) -> CupSize:
        return CupSize(
            cup_size_id=int(doc["dimensioneBicchiereId"]),
            base_price=to_decimal(doc.get("prezzoBase")),
            multiplier=to_decimal(doc.get("moltiplicatore"), default="1"),
            description=doc.get("descrizione", ""),
        )

    @staticmethod
    def _ingredient(doc: Dict[str, Any]) -> Ingredient:
        return Ingredient(
            ingredient_id=int(doc["ingredienteId"]),
            surcharge=to_decimal(doc.get("prezzoAggiunto")),
            available=bool(doc.get("disponibile", False)),
            name=doc.get("ingrediente", ""),
        )

    @staticmethod
    def _tax_rate(doc: Dict[str, Any]) -> TaxRate:
        return TaxRate(
            tax_rate_id=int(doc["taxRateId"]),
            rate=to_decimal(doc.get("aliquota")),
            description=doc.get("descrizione", ""),
        )


class MongoOrderRepository(MongoRepository, OrderStore):
    def get_order(self, order_id: int) -> Optional[Order]:
        doc = self._find_one(ORDERS, {"ordineId": order_id})
        return self._order(doc) if doc else None

    def get_order_lines(self, order_id: int) -> List[OrderLine]:
        cursor = self._collection(ORDER_ITEMS).find({"ordineId": order_id})
        return [self._order_line(doc) for doc in cursor]

    def get_order_line(self, order_item_id: int) -> Optional[OrderLine]:
        doc = self._find_one(ORDER_ITEMS, {"orderItemId": order_item_id})
        return self._order_line(doc) if doc else None

    def list_orders(self, exclude_statuses: Optional[Iterable[int]] = None) -> List[Order]:
        excluded = list(exclude_statuses or ())
        query = {"statoOrdineId": {"$nin": excluded}} if excluded else {}
        return [self._order(doc) for doc in self._collection(ORDERS).find(query)]

    def save_order_total(self, order_id: int, total: Decimal) -> None:
        result = self._collection(ORDERS).update_one(
            {"ordineId": order_id},
            {"$set": {"totale": Decimal128(total)}, "$currentDate": {"dataAggiornamento": True}},
        )
        if result.matched_count == 0:
            raise NotFoundError(f"Order {order_id} not found")
        logger.debug(f"Saved total {total} for order {order_id}")

    @staticmethod
    def _order(doc: Dict[str, Any]) -> Order:
        return Order(
            order_id=int(doc["ordineId"]),
            status_id=int(doc.get("statoOrdineId", 0)),
            total=to_decimal(doc.get("totale")),
        )

    @staticmethod
    def _order_line(doc: Dict[str, Any]) -> OrderLine:
        return OrderLine(
            order_item_id=int(doc["orderItemId"]),
            order_id=int(doc["ordineId"]),
            article_id=int(doc["articoloId"]),
            kind=ArticleKind.from_code(doc.get("tipoArticolo", "")),
            quantity=int(doc.get("quantita", 0)),
            tax_rate_id=int(doc.get("taxRateId", 0)),
            unit_price=to_decimal(doc.get("prezzoUnitario")),
            discount=to_decimal(doc.get("scontoApplicato")),
            total=to_decimal(doc.get("totale")),
        )
