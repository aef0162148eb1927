#!/usr/bin/env python3
"""Market Briefs: headline digests and short investment reads per target.

This CLI fetches the Yahoo Finance headline feed for each configured
target, reduces it to a ranked digest, asks the analyst model for a
short read, and stores the result as the target's latest brief plus a
history entry.

Commands:
    run         Brief every configured target (what the scheduler invokes)
    analyze     On-demand brief for ad-hoc tickers or a topic
    latest      Print the latest stored brief for a target
    history     Print stored history entries for a target
    status      Show configuration, schedules and store statistics

Examples:
    python main.py run --reason preopen
    python main.py run --reason intraday --target tech_megacaps
    python main.py analyze --tickers aapl,nvda --risk high
    python main.py latest us_market
    python main.py history us_market --limit 5

Environment:
    OPENAI_API_KEY: Required for run/analyze
    See config.py for all configuration options
"""

import argparse
import asyncio
import json
import logging
import sys

from config import Config, SCHEDULE_TIMEZONE, SCHEDULES, load_targets
from database import BriefStore
from observability.logging import setup_logging


def cmd_run(args: argparse.Namespace, config: Config) -> int:
    """Brief all configured targets (or the selected subset).

    Returns:
        0 if every target succeeded, 1 if any failed
    """
    from handlers import run_scheduled
    from pipeline import Pipeline

    logger = logging.getLogger(__name__)

    targets = load_targets(config.targets_file)
    if args.target:
        wanted = set(args.target)
        unknown = wanted - {t.key for t in targets}
        if unknown:
            print(f"Error: unknown target(s): {', '.join(sorted(unknown))}", file=sys.stderr)
            return 1
        targets = [t for t in targets if t.key in wanted]

    pipeline = Pipeline(config)
    try:
        report = asyncio.run(run_scheduled(pipeline, targets, args.reason))
    except KeyboardInterrupt:
        logger.info("Stopped by user (Ctrl+C)")
        return 130
    finally:
        pipeline.close()

    print(json.dumps(report.to_dict(), indent=2))
    return 1 if report.failures else 0


def cmd_analyze(args: argparse.Namespace, config: Config) -> int:
    """Run an on-demand brief and print the response."""
    from handlers import OnDemandError, handle_adhoc
    from pipeline import Pipeline

    payload: dict = {}
    if args.tickers:
        payload["tickers"] = [t.strip() for t in args.tickers.split(",") if t.strip()]
    if args.topic:
        payload["topic"] = args.topic
    if args.risk:
        payload["riskLevel"] = args.risk
    if args.page_size is not None:
        payload["pageSize"] = args.page_size

    pipeline = Pipeline(config)
    try:
        response = asyncio.run(handle_adhoc(pipeline, payload, caller="cli"))
    except OnDemandError as e:
        print(f"Error ({e.code}): {e.message}", file=sys.stderr)
        if e.details:
            print(json.dumps(e.details, indent=2, default=str), file=sys.stderr)
        return 1
    finally:
        pipeline.close()

    print(json.dumps(response, indent=2, ensure_ascii=False))
    return 0


def cmd_latest(args: argparse.Namespace, config: Config) -> int:
    """Print the latest brief for a target key."""
    with BriefStore(config.db_path) as store:
        document = store.latest(args.key)

    if document is None:
        print(f"No brief stored for '{args.key}'.")
        return 1

    print(json.dumps(document, indent=2, ensure_ascii=False))
    return 0


def cmd_history(args: argparse.Namespace, config: Config) -> int:
    """Print recent history entries for a target key."""
    with BriefStore(config.db_path) as store:
        entries = store.history(args.key, limit=args.limit)

    if not entries:
        print(f"No history for '{args.key}'.")
        return 0

    if args.full:
        print(json.dumps(entries, indent=2, ensure_ascii=False))
        return 0

    print(f"\n=== History for {args.key} (latest {len(entries)}) ===\n")
    for entry in entries:
        items = entry.get("feed", {}).get("items", [])
        print(f"{entry['historyId']}  {entry.get('updatedAt', '-')}  reason={entry.get('reason', '-')}  items={len(items)}")
        recommendation = entry.get("recommendation") or ""
        if len(recommendation) > 200:
            recommendation = recommendation[:200] + "..."
        if recommendation:
            print(f"   {recommendation}")
        print()
    return 0


def cmd_status(args: argparse.Namespace, config: Config) -> int:
    """Display configuration, schedules and store statistics."""
    targets = load_targets(config.targets_file)
    with BriefStore(config.db_path) as store:
        db_stats = store.stats()
        stored_keys = store.keys()

    status = {
        "config": {
            "analyst_model": config.analyst_model,
            "max_output_tokens": config.analyst_max_output_tokens,
            "feed_timeout": config.feed_timeout_seconds,
            "targets_file": config.targets_file or "(built-in)",
            "enable_logfire": config.enable_logfire,
        },
        "targets": [t.to_document() for t in targets],
        "schedules": {"timezone": SCHEDULE_TIMEZONE, **SCHEDULES},
        "store": {
            "path": str(config.db_path),
            "latest": db_stats["latest"],
            "history": db_stats["history"],
            "keys": stored_keys,
        },
    }

    print(json.dumps(status, indent=2))
    return 0


def main() -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    parser = argparse.ArgumentParser(
        description="Market Briefs: headline digests with a short investment read",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser("run", help="Brief all configured targets")
    run_parser.add_argument(
        "--reason",
        choices=sorted(SCHEDULES),
        default="intraday",
        help="Run reason tag stored with each brief (default: intraday)",
    )
    run_parser.add_argument(
        "--target",
        action="append",
        help="Only brief this target key (repeatable)",
    )

    # analyze command
    analyze_parser = subparsers.add_parser("analyze", help="On-demand brief")
    analyze_parser.add_argument(
        "--tickers",
        help="Comma-separated ticker symbols (max 10)",
    )
    analyze_parser.add_argument(
        "--topic",
        help="Free-text topic (2-64 characters)",
    )
    analyze_parser.add_argument(
        "--risk",
        choices=["low", "medium", "high"],
        help="Risk tolerance (default: medium)",
    )
    analyze_parser.add_argument(
        "--page-size",
        type=int,
        help="Headline count, 3-15 (default: 8)",
    )

    # latest command
    latest_parser = subparsers.add_parser("latest", help="Show the latest brief for a target")
    latest_parser.add_argument("key", help="Target key")

    # history command
    history_parser = subparsers.add_parser("history", help="Show brief history for a target")
    history_parser.add_argument("key", help="Target key")
    history_parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Number of entries (default: 10)",
    )
    history_parser.add_argument(
        "--full",
        action="store_true",
        help="Print full JSON documents",
    )

    # status command
    subparsers.add_parser("status", help="Show configuration and store statistics")

    args = parser.parse_args()

    config = Config.load()
    setup_logging(config, verbose=args.verbose)

    if args.command in ("run", "analyze"):
        error = config.validate()
        if error:
            print(f"Configuration error: {error}", file=sys.stderr)
            return 1

    commands = {
        "run": cmd_run,
        "analyze": cmd_analyze,
        "latest": cmd_latest,
        "history": cmd_history,
        "status": cmd_status,
    }

    if args.command in commands:
        try:
            return commands[args.command](args, config)
        except Exception as e:
            logging.getLogger(__name__).error("Command failed | cmd=%s error=%s", args.command, e, exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            return 1
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
