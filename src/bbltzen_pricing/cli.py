"""
Command-line interface for the BBltZen pricing engine.
"""

import argparse
import sys
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from . import __version__
from .cache.memory_cache import MemoryCache
from .catalog.models import ArticleKind
from .catalog.repository import MongoCatalogRepository, MongoOrderRepository
from .orders.totals import OrderTotalService
from .orders.verification import VALIDATION_POLICIES, TotalVerificationService
from .pricing.models import PriceRequest
from .pricing.price_calculation import PriceCalculationService
from .utils.config import Config
from .utils.logging import setup_logging


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        description="BBltZen Pricing - price, VAT and order total verification tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bbltzen-pricing --version
  bbltzen-pricing price --kind BS --id 12 --quantity 2 --tax-rate-id 1
  bbltzen-pricing order-total --order-id 1042 --update
  bbltzen-pricing verify-order --order-id 1042
  bbltzen-pricing find-invalid-totals --policy all
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"BBltZen Pricing {__version__}",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    parser.add_argument(
        "--log-file",
        help="Log file path",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
    )

    price_parser = subparsers.add_parser(
        "price",
        help="Show the complete price breakdown of an article",
    )
    price_parser.add_argument(
        "--kind",
        type=str,
        required=True,
        choices=[kind.value for kind in ArticleKind],
        help="Article kind: BS (standard beverage), BC (custom beverage), D (dessert)",
    )
    price_parser.add_argument(
        "--id",
        dest="article_id",
        type=int,
        required=True,
        help="Article id",
    )
    price_parser.add_argument(
        "--quantity",
        type=int,
        default=1,
        help="Quantity (default: 1)",
    )
    price_parser.add_argument(
        "--tax-rate-id",
        type=int,
        default=0,
        help="Tax rate id; unknown or missing ids use the default rate",
    )
    price_parser.add_argument(
        "--personalization-id",
        type=int,
        help="Price a custom beverage by personalization instead of article",
    )

    total_parser = subparsers.add_parser(
        "order-total",
        help="Compute the total of an order",
    )
    total_parser.add_argument(
        "--order-id",
        type=int,
        required=True,
        help="Id of the order",
    )
    total_parser.add_argument(
        "--update",
        action="store_true",
        help="Persist the recomputed total",
    )

    verify_parser = subparsers.add_parser(
        "verify-order",
        help="Compare the stored total of an order with a fresh recomputation",
    )
    verify_parser.add_argument(
        "--order-id",
        type=int,
        required=True,
        help="Id of the order to verify",
    )

    scan_parser = subparsers.add_parser(
        "find-invalid-totals",
        help="List orders whose stored total drifted from the recomputed one",
    )
    scan_parser.add_argument(
        "--policy",
        choices=list(VALIDATION_POLICIES),
        help="Which orders to check (default: from VALIDATION_POLICY, else non_terminal)",
    )

    return parser


@dataclass
class Services:
    pricing: PriceCalculationService
    totals: OrderTotalService
    verification: TotalVerificationService
    repositories: Tuple[Any, ...] = ()

    def close(self) -> None:
        for repository in self.repositories:
            repository.disconnect()


def build_services(config: Config) -> Services:
    """Wire the Mongo repositories, cache and services together."""
    catalog = MongoCatalogRepository(config=config)
    orders = MongoOrderRepository(config=config)
    cache = MemoryCache(default_ttl=config.get("ttl_prices", 1800))
    pricing = PriceCalculationService(catalog, cache, config)
    totals = OrderTotalService(orders, pricing, config)
    verification = TotalVerificationService(orders, totals, pricing, config)
    return Services(pricing, totals, verification, repositories=(catalog, orders))


def print_box(lines: List[Tuple[str, Any]]) -> None:
    """Print label/value pairs inside a box."""
    label_width = max(len(lbl) for lbl, _ in lines)
    inner_width = max(len(f" {lbl.ljust(label_width)} : {val} ") for lbl, val in lines)
    print("┌" + "─" * inner_width + "┐")
    for lbl, val in lines:
        line = f" {lbl.ljust(label_width)} : {val}"
        print(f"│{line.ljust(inner_width)}│")
    print("└" + "─" * inner_width + "┘")


def show_price(services: Services, kind: str, article_id: int, quantity: int = 1,
               tax_rate_id: int = 0, personalization_id: Optional[int] = None) -> None:
    request = PriceRequest(
        kind=kind,
        article_id=article_id,
        quantity=quantity,
        tax_rate_id=tax_rate_id,
        personalization_id=personalization_id,
    )
    breakdown = services.pricing.calculate_complete_price(request)
    print_box([
        ("Article", f"{breakdown.article_id} ({breakdown.kind.value})"),
        ("Unit price", breakdown.unit_price),
        ("Quantity", breakdown.quantity),
        ("VAT rate", f"{breakdown.tax_rate}%"),
        ("Taxable", breakdown.imponibile),
        ("VAT", breakdown.tax_amount),
        ("Total", breakdown.gross_total),
    ])
    print(breakdown.detail)


def show_order_total(services: Services, order_id: int, update: bool = False) -> None:
    calculation = services.totals.compute_order_total(order_id)
    print_box([
        ("Order ID", order_id),
        ("Lines", len(calculation.lines)),
        ("Subtotal", calculation.subtotal),
        ("VAT", calculation.tax_total),
        ("Total", calculation.grand_total),
    ])
    for line in calculation.lines:
        print(
            f"  item {line.order_item_id:<8} {line.kind:<3} art {line.article_id:<6} "
            f"{line.quantity} x {line.unit_price}  -{line.discount}  = {line.gross_total}  "
            f"(VAT {line.tax_rate}%: {line.tax_amount})"
        )

    if update:
        result = services.totals.update_order_total(order_id)
        print(f"\nStored total updated: {result.old_total} -> {result.new_total} (delta {result.delta})")


def verify_order(services: Services, order_id: int) -> bool:
    check = services.verification.verify_order_by_id(order_id)
    print_box([
        ("Order ID", order_id),
        ("Stored", check.stored_total),
        ("Recomputed", check.recomputed_total),
        ("Difference", check.difference),
        ("Status", "VALID" if check.is_valid else "INVALID"),
    ])
    return check.is_valid


def find_invalid_totals(services: Services, policy: Optional[str] = None) -> List[int]:
    report = services.verification.scan_order_totals(policy=policy)
    print_box([
        ("Policy", policy or services.verification.config.get("validation_policy", "non_terminal")),
        ("Checked", len(report.checked)),
        ("Invalid", len(report.invalid_order_ids)),
        ("Failed", len(report.failed)),
    ])
    for check in report.checked:
        if not check.is_valid:
            print(f"  order {check.order_id}: stored {check.stored_total}, recomputed {check.recomputed_total}")
    for order_id, error in report.failed:
        print(f"  order {order_id}: ERROR {error}")
    return report.invalid_order_ids


def main(args: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    log_level = "DEBUG" if parsed_args.verbose else "INFO"
    logger = setup_logging(level=log_level, log_file=parsed_args.log_file)

    if not parsed_args.command:
        parser.print_help()
        return 1

    services = None
    try:
        services = build_services(Config(".env"))

        if parsed_args.command == "price":
            show_price(
                services,
                kind=parsed_args.kind,
                article_id=parsed_args.article_id,
                quantity=parsed_args.quantity,
                tax_rate_id=parsed_args.tax_rate_id,
                personalization_id=parsed_args.personalization_id,
            )

        elif parsed_args.command == "order-total":
            show_order_total(services, parsed_args.order_id, update=parsed_args.update)

        elif parsed_args.command == "verify-order":
            if not verify_order(services, parsed_args.order_id):
                return 2

        elif parsed_args.command == "find-invalid-totals":
            if find_invalid_totals(services, parsed_args.policy):
                return 2

    except Exception as e:
        logger.error(f"Error: {e}")
        return 1
    finally:
        if services is not None:
            services.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
