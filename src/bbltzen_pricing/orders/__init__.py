"""Orders module: total aggregation and consistency verification."""

from .totals import OrderLineTotal, OrderTotal, OrderTotalService, OrderTotalUpdate
from .verification import (
    OrderTotalVerifier,
    TotalCheck,
    TotalScanReport,
    TotalVerificationService,
)

__all__ = [
    "OrderLineTotal",
    "OrderTotal",
    "OrderTotalService",
    "OrderTotalUpdate",
    "OrderTotalVerifier",
    "TotalCheck",
    "TotalScanReport",
    "TotalVerificationService",
]
