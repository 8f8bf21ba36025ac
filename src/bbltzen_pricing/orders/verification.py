"""Order total and unit price verification (stored vs recomputed)."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from ..batch import run_batch
from ..catalog.accessor import OrderStore
from ..catalog.models import ArticleKind, Order
from ..errors import InvalidArgumentError, UnsupportedKindError
from ..pricing import tax_math
from ..pricing.price_calculation import PriceCalculationService
from ..utils.config import Config
from ..utils.logging import get_logger
from .totals import OrderTotalService

logger = get_logger(__name__)

TOTAL_TOLERANCE = Decimal("0.01")
PRICE_TOLERANCE = Decimal("0.05")
VALIDATION_POLICIES = ("non_terminal", "all")


@dataclass(slots=True)
class TotalCheck:
    order_id: int
    stored_total: Decimal
    recomputed_total: Decimal
    difference: Decimal
    is_valid: bool


@dataclass
class TotalScanReport:
    checked: List[TotalCheck] = field(default_factory=list)
    failed: List[Tuple[int, Exception]] = field(default_factory=list)
    cancelled: bool = False

    @property
    def invalid_order_ids(self) -> List[int]:
        return [check.order_id for check in self.checked if not check.is_valid]


class OrderTotalVerifier:
    """Compares a stored total with a recomputed one under an absolute tolerance."""

    def __init__(self, tolerance: Decimal = TOTAL_TOLERANCE) -> None:
        self.tolerance = tolerance

    def compare(self, order_id: int, stored: Decimal, recomputed: Decimal) -> TotalCheck:
        recomputed = tax_math.round_money(recomputed)
        difference = stored - recomputed
        return TotalCheck(
            order_id=order_id,
            stored_total=stored,
            recomputed_total=recomputed,
            difference=difference,
            is_valid=abs(difference) <= self.tolerance,
        )


class TotalVerificationService:
    """High-level drift detection over persisted orders."""

    def __init__(
        self,
        orders: OrderStore,
        totals: OrderTotalService,
        pricing: PriceCalculationService,
        config: Optional[Config] = None,
    ) -> None:
        self.orders = orders
        self.totals = totals
        self.pricing = pricing
        self.config = config or Config()
        self.verifier = OrderTotalVerifier(self.config.get("total_tolerance", TOTAL_TOLERANCE))
        self.price_tolerance: Decimal = self.config.get("price_tolerance", PRICE_TOLERANCE)

    def _check_order(self, order: Order, enforce_state: bool = True) -> TotalCheck:
        recomputed = self.totals.recompute_from_scratch(order.order_id, enforce_state=enforce_state)
        check = self.verifier.compare(order.order_id, order.total, recomputed)
        if not check.is_valid:
            logger.warning(
                f"Order {order.order_id}: stored total {order.total} differs from recomputed "
                f"{check.recomputed_total} by {check.difference}"
            )
        return check

    def verify_order_by_id(self, order_id: int) -> TotalCheck:
        order = self.totals.load_order(order_id)
        return self._check_order(order)

    def scan_order_totals(
        self,
        policy: Optional[str] = None,
        max_workers: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TotalScanReport:
        """Recompute every candidate order; per-order errors are recorded, not raised."""
        policy = policy or self.config.get("validation_policy", "non_terminal")
        if policy not in VALIDATION_POLICIES:
            raise InvalidArgumentError(f"Unknown validation policy {policy!r}, expected one of {VALIDATION_POLICIES}")

        if policy == "non_terminal":
            candidates = self.orders.list_orders(exclude_statuses=self.totals.terminal_statuses)
        else:
            candidates = self.orders.list_orders()
        enforce_state = policy == "non_terminal"

        batch = run_batch(
            candidates,
            lambda order: self._check_order(order, enforce_state=enforce_state),
            max_workers=max_workers or self.config.get("batch_max_workers", 4),
            cancel_event=cancel_event,
            label="total-scan",
        )
        report = TotalScanReport(
            checked=batch.succeeded,
            failed=[(order.order_id, exc) for order, exc in batch.failed],
            cancelled=batch.cancelled,
        )
        logger.info(
            f"Checked {len(report.checked)} orders ({policy}): "
            f"{len(report.invalid_order_ids)} with invalid totals, {len(report.failed)} failed"
        )
        return report

    def find_orders_with_invalid_totals(self, policy: Optional[str] = None) -> List[int]:
        return self.scan_order_totals(policy=policy).invalid_order_ids

    def validate_price_calculation(
        self, article_id: int, kind: Union[ArticleKind, str], claimed_price: Decimal
    ) -> bool:
        """Accept a claimed unit price within the relative tolerance (5% by default).

        Custom beverages are accepted unconditionally: their price depends on a
        personalization that is not part of the claim.
        """
        kind = ArticleKind.from_code(kind)
        if kind is ArticleKind.CUSTOM_BEVERAGE:
            return True
        if kind not in (ArticleKind.STANDARD_BEVERAGE, ArticleKind.DESSERT):
            raise UnsupportedKindError(f"Unsupported article kind: {kind!r}")

        try:
            expected = self.pricing.price_of(kind, article_id)
        except Exception as exc:
            logger.warning(f"Cannot validate price of {kind.value} {article_id}: {exc}")
            return False

        tolerance = expected * self.price_tolerance
        return abs(tax_math.to_decimal(claimed_price) - expected) <= tolerance
