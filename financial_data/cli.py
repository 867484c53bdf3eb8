"""
Command-line entry point.

Examples:
  python -m financial_data health
  python -m financial_data search apple
  python -m financial_data metadata AAPL
  python -m financial_data financials 0000320193 --concepts Revenues NetIncomeLoss --max-results 8
  python -m financial_data latest AAPL Revenues NetIncomeLoss Assets
  python -m financial_data peers AAPL --limit 5
  python -m financial_data price AAPL
"""

import argparse
import json
import logging
import sys
from datetime import date
from typing import List, Optional

from .bootstrap import build_composite, build_registry
from .cancellation import CancellationScope
from .errors import DataProviderError
from .interfaces import GetFinancialDataOptions
from .metrics import MetricsCollector
from .settings import load_settings

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='financial_data',
        description='Query the financial data gateway',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--env-file', help='.env file to load')
    parser.add_argument('--timeout', type=float, help='Overall deadline in seconds')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    parser.add_argument('--stats', action='store_true', help='Print routing metrics to stderr afterwards')

    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('health', help='Health of every registered provider')

    search = sub.add_parser('search', help='Search companies')
    search.add_argument('query')

    metadata = sub.add_parser('metadata', help='Company metadata')
    metadata.add_argument('identifier', help='CIK or ticker')

    financials = sub.add_parser('financials', help='Normalized financial metrics')
    financials.add_argument('identifier', help='CIK or ticker')
    financials.add_argument('--concepts', nargs='+')
    financials.add_argument('--forms', nargs='+')
    financials.add_argument('--start', type=date.fromisoformat, help='YYYY-MM-DD')
    financials.add_argument('--end', type=date.fromisoformat, help='YYYY-MM-DD')
    financials.add_argument('--max-results', type=int)

    latest = sub.add_parser('latest', help='Most recent value per concept')
    latest.add_argument('identifier', help='CIK or ticker')
    latest.add_argument('concepts', nargs='+')
    latest.add_argument('--merge', action='store_true', help='Merge across every fundamentals provider')

    peers = sub.add_parser('peers', help='Comparable companies')
    peers.add_argument('identifier', help='Ticker')
    peers.add_argument('--limit', type=int)

    price = sub.add_parser('price', help='Real-time quote')
    price.add_argument('ticker')

    return parser


def _run(args: argparse.Namespace) -> object:
    settings = load_settings(args.env_file)
    registry = build_registry(settings)
    metrics = MetricsCollector()
    composite = build_composite(registry, settings, metrics=metrics)

    try:
        if args.command == 'health':
            return {'providers': registry.health_check_all(), 'composite': composite.capabilities.to_dict()}
        if args.command == 'search':
            return [c.to_dict() for c in composite.search_companies(args.query)]
        if args.command == 'metadata':
            return composite.get_company_metadata(args.identifier).to_dict()
        if args.command == 'financials':
            options = GetFinancialDataOptions(
                concepts=args.concepts,
                start_date=args.start,
                end_date=args.end,
                forms=args.forms,
                max_results=args.max_results,
            )
            return composite.get_financial_data(args.identifier, options).to_dict()
        if args.command == 'latest':
            if args.merge:
                return composite.get_merged_latest_metrics(args.identifier, args.concepts).to_dict()
            return composite.get_latest_metrics(args.identifier, args.concepts).to_dict()
        if args.command == 'peers':
            return [p.to_dict() for p in composite.get_peers(args.identifier, args.limit)]
        if args.command == 'price':
            return composite.get_real_time_price(args.ticker).to_dict()
        raise ValueError(f"Unknown command {args.command}")
    finally:
        if args.stats:
            print(json.dumps(metrics.get_stats(), indent=2, default=str), file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    try:
        with CancellationScope(timeout=args.timeout):
            result = _run(args)
    except DataProviderError as e:
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0
