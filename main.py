"""CLI entry point for the car search engine."""

import argparse
import asyncio
import json
import logging
import sys

from carhunt.core.config import Settings
from carhunt.core.errors import SearchAbortedError
from carhunt.core.schemas import (
    CompleteEvent,
    ErrorEvent,
    ProgressEvent,
    SearchCriteria,
    age_bounds_from_years,
)
from carhunt.pipeline.orchestrator import Orchestrator
from carhunt.sites import available_sites


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Car search engine - search multiple trade sites and merge listings",
    )
    subparsers = parser.add_subparsers(dest="command")

    # --- search subcommand (default) ---
    search_parser = subparsers.add_parser("search", help="Run a search across enabled sites")
    search_parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    search_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without launching a browser",
    )
    search_parser.add_argument(
        "--stream",
        action="store_true",
        help="Print every stream event as one JSON line",
    )
    search_parser.add_argument("--make", help="Vehicle make, e.g. BMW")
    search_parser.add_argument("--model", help="Vehicle model, e.g. 3 Series")
    search_parser.add_argument("--color", help="Body colour")
    search_parser.add_argument("--min-price", type=int)
    search_parser.add_argument("--max-price", type=int)
    search_parser.add_argument("--min-mileage", type=int)
    search_parser.add_argument("--max-mileage", type=int)
    search_parser.add_argument("--min-year", type=int, help="Oldest registration year")
    search_parser.add_argument("--max-year", type=int, help="Newest registration year")
    search_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    # --- sites subcommand ---
    sites_parser = subparsers.add_parser("sites", help="List registered site drivers")
    sites_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    # --- serve subcommand ---
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=3001)
    serve_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(2)

    return args


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def build_criteria(args: argparse.Namespace) -> SearchCriteria:
    """SearchCriteria from CLI flags; year bounds become age bounds."""
    min_age, max_age = age_bounds_from_years(args.min_year, args.max_year)
    return SearchCriteria(
        make=args.make,
        model=args.model,
        color=args.color,
        min_price=args.min_price,
        max_price=args.max_price,
        min_mileage=args.min_mileage,
        max_mileage=args.max_mileage,
        min_age=min_age,
        max_age=max_age,
    )


def dry_run(settings: Settings, criteria: SearchCriteria) -> None:
    """Print what would happen without actually searching."""
    plan = Orchestrator(settings).site_plan()
    print(f"[DRY RUN] Criteria: {criteria.describe()}")
    print(f"[DRY RUN] {len(plan)} site(s), concurrency limit {settings.concurrency_limit}")
    for site in plan:
        creds = "OK" if site["hasCredentials"] else "MISSING"
        driver = "" if site["registered"] else " (no driver)"
        print(
            f"  {site['siteId']}{driver}: group {site['group']}, "
            f"credentials {creds}, max pages {site['maxPages']}",
        )
    print("[DRY RUN] No browser launched")


async def run(settings: Settings, criteria: SearchCriteria, stream: bool) -> int:
    """Run one search and print the outcome. Returns the exit code."""
    orchestrator = Orchestrator(settings)

    if not stream:
        try:
            records = await orchestrator.search(criteria)
        except SearchAbortedError as e:
            print(f"Search failed: {e}", file=sys.stderr)
            return 1
        print(json.dumps([r.to_wire() for r in records], indent=2))
        return 0

    exit_code = 0
    async for event in orchestrator.search_stream(criteria):
        print(json.dumps(event.to_wire()), flush=True)
        if isinstance(event, ProgressEvent) and event.error:
            print(f"  {event.site_id} failed: {event.error}", file=sys.stderr)
        elif isinstance(event, CompleteEvent):
            print(f"Search complete: {event.total_records} record(s)", file=sys.stderr)
        elif isinstance(event, ErrorEvent):
            exit_code = 1
    return exit_code


def cmd_sites() -> None:
    for site_id in available_sites():
        print(site_id)


def cmd_serve(settings: Settings, host: str, port: int) -> None:
    import uvicorn

    from carhunt.api import create_app

    uvicorn.run(create_app(settings), host=host, port=port)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "sites":
        cmd_sites()
        return

    try:
        settings = Settings.from_yaml(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == "serve":
        cmd_serve(settings, args.host, args.port)
        return

    try:
        criteria = build_criteria(args)
    except ValueError as e:
        print(f"Invalid search criteria: {e}", file=sys.stderr)
        sys.exit(1)

    if args.dry_run:
        dry_run(settings, criteria)
    else:
        sys.exit(asyncio.run(run(settings, criteria, args.stream)))


if __name__ == "__main__":
    main()
