"""
Command line entry point for Interio Quoter.
Initializes the database and prints quotation pricing and logs.
"""

import argparse
import sys

from interio.core.calculations import split_gst
from interio.core.config import get_log_level
from interio.core.database import get_db_info, init_db
from interio.core.errors import InterioError
from interio.core.logging_config import log_error, setup_logging
from interio.core.money import format_currency, number_to_indian_words
from interio.core.paths import app_paths
from interio.core.services import QuotationService


def cmd_init_db(args):
    init_db()
    print(f"Database ready: {get_db_info()['database_url']}")
    return 0


def cmd_info(args):
    print(f"Data directory: {app_paths.data_dir}")
    print(f"Logs directory: {app_paths.logs_dir}")
    for key, value in get_db_info().items():
        print(f"{key}: {value}")
    return 0


def cmd_price(args):
    quotation = QuotationService.load_quotation_with_rooms(args.quotation_id)
    breakdown, pricing = QuotationService.get_pricing(args.quotation_id)
    gst = split_gst(pricing)

    print(f"{quotation.quotation_number}  {quotation.title or ''}  [{quotation.status.value}]")
    print("-" * 60)
    for room in breakdown.room_totals:
        print(f"{room.name:<30} {format_currency(room.product_accessory_total):>14} "
              f"+ install {format_currency(room.installation_total)}")
    print("-" * 60)
    rows = [
        ("Subtotal", pricing.product_accessory_subtotal),
        (f"Discount ({pricing.global_discount}%)", -pricing.discount_amount),
        ("Installation", pricing.total_installation),
        ("Taxable amount", pricing.taxable_amount),
        (f"CGST ({gst.rate_each}%)", gst.cgst),
        (f"SGST ({gst.rate_each}%)", gst.sgst),
        ("Grand total", pricing.grand_total),
    ]
    for label, amount in rows:
        print(f"{label:<30} {format_currency(amount):>14}")
    print(number_to_indian_words(pricing.grand_total))
    return 0


def cmd_logs(args):
    """Print the tail of the most recent log file."""
    log_files = sorted(app_paths.logs_dir.glob("*.log"), key=lambda p: p.stat().st_mtime, reverse=True)
    if not log_files:
        print(f"No log files in {app_paths.logs_dir}")
        return 1

    log_file = log_files[0]
    with open(log_file, 'r', encoding='utf-8') as f:
        all_lines = f.readlines()
    start = max(0, len(all_lines) - args.lines)
    print(f"{log_file} (last {len(all_lines) - start} of {len(all_lines)} lines)")
    for number, line in enumerate(all_lines[start:], start + 1):
        print(f"{number:5d}: {line.rstrip()}")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog="interio", description="Interio Quoter")
    parser.add_argument("--no-file-logging", action="store_true", help="log to the console only")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="create database tables").set_defaults(func=cmd_init_db)
    subparsers.add_parser("info", help="show data paths and database").set_defaults(func=cmd_info)

    price = subparsers.add_parser("price", help="print the pricing of a quotation")
    price.add_argument("quotation_id", type=int)
    price.set_defaults(func=cmd_price)

    logs = subparsers.add_parser("logs", help="show the latest log file")
    logs.add_argument("-n", "--lines", type=int, default=50)
    logs.set_defaults(func=cmd_logs)
    return parser


def main(argv=None):
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(log_level=get_log_level(), enable_file_logging=not args.no_file_logging)

    try:
        return args.func(args)
    except InterioError as e:
        log_error(e, context=args.command)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
