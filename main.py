# main.py

"""Entry point for the gshop_tracker command-line tool."""

import argparse
import asyncio
import logging
import sys

from gshop_tracker.config.logging_config import setup_logging

logger = logging.getLogger("gshop_tracker.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="gshop_tracker",
        description="Google Shopping product and price tracker.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    scrape = sub.add_parser("scrape", help="Scrape one product URL.")
    scrape.add_argument("url", help="Google Shopping product URL.")
    scrape.add_argument(
        "-c", "--category", default=None,
        help="Category override (default: inferred from the name).",
    )
    scrape.add_argument(
        "-b", "--brand", default=None,
        help="Brand override (default: inferred from the name).",
    )
    scrape.add_argument(
        "--stores-clicks", type=int, default=None, dest="stores_clicks",
        help="Max 'more stores' clicks.",
    )
    scrape.add_argument(
        "--reviews-clicks", type=int, default=None, dest="reviews_clicks",
        help="Max 'more reviews' clicks.",
    )
    scrape.add_argument(
        "--click-delay", type=float, default=None, dest="click_delay",
        help="Seconds to wait after each click.",
    )
    scrape.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    scrape.add_argument(
        "--export",
        action="store_true",
        default=False,
        help="Also write the stored record to results/.",
    )

    update = sub.add_parser("update", help="Re-scrape stored products.")
    update.add_argument("--limit", type=int, default=None)
    update.add_argument("--offset", type=int, default=0)
    update.add_argument("--category", default=None)
    update.add_argument("--brand", default=None)

    listing = sub.add_parser("list", help="Show stored products.")
    listing.add_argument("--category", default=None)
    listing.add_argument("--brand", default=None)

    sub.add_parser("health", help="Check Google Shopping connectivity.")
    return parser


def _run(args: argparse.Namespace) -> int:
    """Dispatch a parsed command and return its exit code."""
    from gshop_tracker.cli import runner

    if args.command == "scrape":
        return asyncio.run(
            runner.cli_scrape(
                url=args.url,
                category=args.category,
                brand=args.brand,
                stores_clicks=args.stores_clicks,
                reviews_clicks=args.reviews_clicks,
                click_delay=args.click_delay,
                output_format=args.output_format,
                export=args.export,
            )
        )
    if args.command == "update":
        return asyncio.run(
            runner.cli_update(
                limit=args.limit,
                offset=args.offset,
                category=args.category,
                brand=args.brand,
            )
        )
    if args.command == "list":
        return runner.list_products(
            category=args.category, brand=args.brand
        )
    return asyncio.run(runner.run_health_check())


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, run the command and exit with its code."""
    args = _build_parser().parse_args(argv)
    log_file = setup_logging(
        prefix="update" if args.command == "update" else "run"
    )
    logger.info("gshop_tracker starting, log file: %s", log_file)

    try:
        exit_code = _run(args)
    except Exception:
        logger.critical("Fatal error in %s", args.command, exc_info=True)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
