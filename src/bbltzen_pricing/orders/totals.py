"""Order total aggregation and write-back."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from ..catalog.accessor import OrderStore
from ..catalog.models import Order, OrderLine, TERMINAL_ORDER_STATUSES
from ..errors import InvalidArgumentError, InvalidStateError, NotFoundError
from ..pricing import tax_math
from ..pricing.price_calculation import PriceCalculationService
from ..utils.config import Config
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class OrderLineTotal:
    order_item_id: int
    article_id: int
    kind: str
    quantity: int
    unit_price: Decimal
    discount: Decimal
    imponibile: Decimal
    tax_amount: Decimal
    gross_total: Decimal
    tax_rate: Decimal


@dataclass
class OrderTotal:
    order_id: int
    subtotal: Decimal = Decimal("0.00")
    tax_total: Decimal = Decimal("0.00")
    grand_total: Decimal = Decimal("0.00")
    lines: List[OrderLineTotal] = field(default_factory=list)
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def figures(self) -> tuple:
        """Everything except the timestamp, for comparing two computations."""
        return (self.order_id, self.subtotal, self.tax_total, self.grand_total, tuple(self.lines))


@dataclass
class OrderTotalUpdate:
    order_id: int
    old_total: Decimal
    new_total: Decimal
    delta: Decimal
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class OrderTotalService:
    """Computes order totals line by line and writes the grand total back.

    Stateless per call. Concurrent updates of the same order are serialized by
    the surrounding persistence layer, not here.
    """

    def __init__(
        self,
        orders: OrderStore,
        pricing: PriceCalculationService,
        config: Optional[Config] = None,
        terminal_statuses: Iterable[int] = TERMINAL_ORDER_STATUSES,
    ) -> None:
        self.orders = orders
        self.pricing = pricing
        self.config = config or Config()
        self.terminal_statuses = frozenset(terminal_statuses)

    def load_order(self, order_id: int) -> Order:
        order = self.orders.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order not found: {order_id}")
        return order

    def validate_order_for_calculation(self, order_id: int) -> bool:
        try:
            order = self.orders.get_order(order_id)
        except Exception as exc:
            logger.error(f"Order {order_id} validation failed: {exc}")
            return False
        return order is not None and order.status_id not in self.terminal_statuses

    def calculate_line_total(self, line: OrderLine, use_cache: bool = True) -> OrderLineTotal:
        if line.quantity <= 0:
            raise InvalidArgumentError(
                f"Order item {line.order_item_id}: quantity must be greater than zero, got {line.quantity}"
            )
        if line.discount < 0:
            raise InvalidArgumentError(
                f"Order item {line.order_item_id}: discount must not be negative, got {line.discount}"
            )

        # A stored positive unit price is the agreed price and wins over derivation
        if line.unit_price > 0:
            unit_price = line.unit_price
        else:
            unit_price = self.pricing.unit_price_for_article(line.kind, line.article_id, use_cache)

        rate = self.pricing.get_tax_rate(line.tax_rate_id, use_cache)
        gross = max(unit_price * line.quantity - line.discount, Decimal("0"))
        net = tax_math.gross_to_net(gross, rate)
        gross_rounded = tax_math.round_money(gross)
        return OrderLineTotal(
            order_item_id=line.order_item_id,
            article_id=line.article_id,
            kind=line.kind.value,
            quantity=line.quantity,
            unit_price=tax_math.round_money(unit_price),
            discount=line.discount,
            imponibile=net,
            tax_amount=gross_rounded - net,
            gross_total=gross_rounded,
            tax_rate=rate,
        )

    def compute_order_total(self, order_id: int, use_cache: bool = True, enforce_state: bool = True) -> OrderTotal:
        """Read-only: derive subtotal, VAT and grand total for an order."""
        logger.info(f"Computing total for order {order_id}")
        try:
            order = self.load_order(order_id)
            if enforce_state and order.status_id in self.terminal_statuses:
                raise InvalidStateError(f"Order {order_id} is in terminal status {order.status_id}")

            result = OrderTotal(order_id=order_id)
            subtotal = Decimal("0")
            tax_total = Decimal("0")
            for line in self.orders.get_order_lines(order_id):
                line_total = self.calculate_line_total(line, use_cache)
                result.lines.append(line_total)
                subtotal += line_total.imponibile
                tax_total += line_total.gross_total - line_total.imponibile

            result.subtotal = tax_math.round_money(subtotal)
            result.tax_total = tax_math.round_money(tax_total)
            result.grand_total = tax_math.round_money(subtotal + tax_total)
        except Exception as exc:
            logger.error(f"Total computation failed for order {order_id}: {exc}")
            raise

        logger.info(
            f"Order {order_id}: subtotal={result.subtotal}, tax={result.tax_total}, total={result.grand_total}"
        )
        return result

    def update_order_total(self, order_id: int) -> OrderTotalUpdate:
        """Recompute and persist the grand total; always writes."""
        logger.info(f"Updating total for order {order_id}")
        order = self.load_order(order_id)
        old_total = order.total
        calculation = self.compute_order_total(order_id)
        self.orders.save_order_total(order_id, calculation.grand_total)

        update = OrderTotalUpdate(
            order_id=order_id,
            old_total=old_total,
            new_total=calculation.grand_total,
            delta=calculation.grand_total - old_total,
        )
        logger.info(f"Order {order_id} updated: {old_total} -> {update.new_total} (delta {update.delta})")
        return update

    def recompute_from_scratch(self, order_id: int, enforce_state: bool = True) -> Decimal:
        """Grand total computed without any cached price or tax rate."""
        logger.info(f"Recomputing order {order_id} from scratch")
        return self.compute_order_total(order_id, use_cache=False, enforce_state=enforce_state).grand_total

    def calculate_line_tax(self, order_item_id: int) -> Decimal:
        line = self.orders.get_order_line(order_item_id)
        if line is None:
            raise NotFoundError(f"Order item not found: {order_item_id}")
        return self.calculate_line_total(line).tax_amount

    def calculate_order_lines_totals(self, order_item_ids: Iterable[int]) -> Dict[int, Decimal]:
        """Gross total per order item; unknown ids are skipped."""
        totals: Dict[int, Decimal] = {}
        for order_item_id in order_item_ids:
            line = self.orders.get_order_line(order_item_id)
            if line is None:
                logger.debug(f"Order item {order_item_id} not found, skipping")
                continue
            totals[order_item_id] = self.calculate_line_total(line).gross_total
        return totals
