"""
Command-line maintenance for the recommendation cache.

Usage:
  python -m advisorkit stats
  python -m advisorkit cleanup
  python -m advisorkit clear
  python -m advisorkit metrics client.json
"""

import argparse
import json
import sys
from typing import List, Optional

from advisorkit.config import load_settings
from advisorkit.core.metrics import summarize_cash_flow
from advisorkit.core.recommendations import evaluate_metric_alerts
from advisorkit.models import FinancialMetrics
from advisorkit.utils.cache import create_cache
from advisorkit.utils.logger import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="advisorkit", description="Recommendation cache and cash-flow tools")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    parser.add_argument("--db", default=None, help="Override the cache database path")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("stats", help="Show cache statistics")
    sub.add_parser("cleanup", help="Evict expired and excess entries now")
    sub.add_parser("clear", help="Remove every cached recommendation")
    metrics = sub.add_parser("metrics", help="Compute cash-flow metrics for a client JSON file")
    metrics.add_argument("file", help="Client JSON file, or - for stdin")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(args.env_file)
    if args.db:
        settings = settings.model_copy(update={"cache_db_path": args.db})
    telemetry = configure_logging(settings, start_flusher=False)

    try:
        if args.command == "metrics":
            if args.file == "-":
                client = json.load(sys.stdin)
            else:
                with open(args.file, "r", encoding="utf-8") as f:
                    client = json.load(f)
            summary = summarize_cash_flow(client)
            metrics = FinancialMetrics.model_validate(summary["metrics"])
            summary["alerts"] = [a.model_dump() for a in evaluate_metric_alerts(metrics)]
            print(json.dumps(summary, indent=2, ensure_ascii=False))
            return 0

        cache = create_cache(settings)
        if args.command == "stats":
            print(cache.stats().model_dump_json(indent=2))
        elif args.command == "cleanup":
            print(f"Removed {cache.cleanup(force=True)} entries")
        elif args.command == "clear":
            print(f"Cleared {cache.clear_all()} entries")
        return 0
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        telemetry.close()


if __name__ == "__main__":
    sys.exit(main())
