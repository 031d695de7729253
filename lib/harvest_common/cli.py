"""
Command-line entry point for running a harvest.

Prints the run summary as JSON. Exits 2 on configuration errors.
"""

import argparse
import asyncio
import json
import logging
import sys

from harvest_common.config import load_config
from harvest_common.exceptions import ConfigurationError
from harvest_common.harvester.router import harvest
from harvest_common.logging_utils import configure_logging
from harvest_common.storage import create_store

logger = logging.getLogger(__name__)

DEFAULT_STORE = "storage/datasets"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="harvest",
        description="Harvest structured content documents from web pages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  harvest https://example.com/ https://example.com/about
  harvest https://example.com/services --completeness probe --render-concurrency 2
  harvest https://example.com/ --store s3://my-bucket/harvests
        """,
    )

    parser.add_argument("urls", nargs="+", metavar="URL", help="Seed URLs (1-50)")
    parser.add_argument(
        "--max-requests",
        type=int,
        dest="max_requests_per_run",
        help="Request budget per phase (env HARVEST_MAX_REQUESTS, default 100)",
    )
    parser.add_argument(
        "--fast-concurrency",
        type=int,
        help="Static fetch workers (env HARVEST_HTTP_CONCURRENCY, default 10)",
    )
    parser.add_argument(
        "--render-concurrency",
        type=int,
        help="Browser render workers (env HARVEST_JS_CONCURRENCY, default 5)",
    )
    parser.add_argument(
        "--collection",
        help="Dataset collection name (env HARVEST_COLLECTION, default content-harvest)",
    )
    parser.add_argument(
        "--completeness",
        choices=["general", "probe"],
        help="Fields required to accept a static result (default general)",
    )
    parser.add_argument(
        "--store",
        default=DEFAULT_STORE,
        help=f"Local directory or s3:// URI for documents (default {DEFAULT_STORE})",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window during the render phase",
    )
    parser.add_argument("--log-level", help="Log level (env LOG_LEVEL, default INFO)")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the harvest and print its summary."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = load_config(
            {
                "seed_urls": args.urls,
                "max_requests_per_run": args.max_requests_per_run,
                "fast_concurrency": args.fast_concurrency,
                "render_concurrency": args.render_concurrency,
                "collection": args.collection,
                "completeness": args.completeness,
                "headless": False if args.headed else None,
            }
        )
        store = create_store(args.store, config.collection)
        result = asyncio.run(harvest(config, store))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    print(json.dumps(result.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
