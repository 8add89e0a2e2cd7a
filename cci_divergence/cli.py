"""
Command line scanner.

Usage:
    cci-scan --symbols SPY,QQQ,NVDA --timeframe 15 --min-strength 5
    cci-scan --watch --charts plots/
    cci-scan --api-key YOUR_KEY
"""

import argparse
import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import List, Optional

from .config import clear_api_key, get_api_key, load_config, save_api_key
from .divergence import summarize_divergences
from .models import ScanResult
from .polygon_fetcher import PolygonDataFetcher
from .scanner import TIMEFRAMES, DivergenceScanner, collect_signals, parse_watchlist

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging for the scanner"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler()
        ]
    )

    # Suppress HTTP connection logs
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("matplotlib").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='CCI divergence scanner (Polygon.io bars)')
    parser.add_argument('--symbols', type=str, default=None,
                        help='Comma separated watchlist (default: built-in watchlist)')
    parser.add_argument('--timeframe', choices=list(TIMEFRAMES), default=None,
                        help='Bar size in minutes')
    parser.add_argument('--min-strength', type=float, choices=[3.0, 5.0, 7.0], default=None,
                        help='3 = all, 5 = moderate+, 7 = strong only')
    parser.add_argument('--watch', action='store_true',
                        help='Rescan continuously every refresh interval')
    parser.add_argument('--charts', type=str, default=None, metavar='DIR',
                        help='Save a chart for every symbol with divergences')
    parser.add_argument('--json', action='store_true', help='Print results as JSON')
    parser.add_argument('--config', type=str, default=None,
                        help='JSON file with configuration overrides')
    parser.add_argument('--api-key', type=str, default=None,
                        help='Save a Polygon.io API key to .env and use it')
    parser.add_argument('--forget-api-key', action='store_true',
                        help='Remove the saved API key and exit')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    return parser


def _fmt(value: Optional[float], spec: str) -> str:
    return format(value, spec) if value is not None else '-'


def format_results(results: List[ScanResult]) -> str:
    """Render the per-symbol table followed by the strength-sorted signal list."""
    lines = [
        f"{'SYMBOL':<8} {'PRICE':>10} {'CCI':>8} {'MOM':>7} {'ZONE':<11} {'DIVS':>4}",
        '-' * 53
    ]
    for r in results:
        lines.append(
            f"{r.symbol:<8} {r.price:>10.2f} {_fmt(r.cci, '>8.1f')} "
            f"{_fmt(r.momentum, '>7.1f')} {r.zone.label:<11} {len(r.divergences):>4}"
        )

    signals = collect_signals(results)
    lines.append('')
    if not signals:
        lines.append('No divergences found. Try lowering minimum strength or changing timeframe.')
        return '\n'.join(lines)

    lines.append(f"SIGNALS ({len(signals)})")
    for symbol, d in signals:
        when = datetime.fromtimestamp(d.timestamp / 1000, tz=timezone.utc)
        lines.append(
            f"  {symbol:<6} {summarize_divergences([d])} @ {when:%Y-%m-%d %H:%M} UTC"
        )
    return '\n'.join(lines)


def run_scan(scanner: DivergenceScanner, symbols: List[str], as_json: bool):
    results = scanner.scan(symbols)
    if as_json:
        print(json.dumps({
            'scanned_at': datetime.now(timezone.utc).isoformat(),
            'settings': scanner.describe(),
            'results': [r.to_dict() for r in results]
        }, indent=2))
    else:
        print(format_results(results))
    return results


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    if args.forget_api_key:
        clear_api_key()
        return 0

    if args.api_key:
        save_api_key(args.api_key)

    api_key = get_api_key()
    if not api_key:
        logger.error("❌ No Polygon API key. Pass --api-key or set POLYGON_API_KEY in .env")
        return 1

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"❌ {e}")
        return 1

    symbols = parse_watchlist(args.symbols) if args.symbols else list(config.SCANNER['watchlist'])
    scanner = DivergenceScanner(
        PolygonDataFetcher(api_key, settings=config.POLYGON),
        timeframe=args.timeframe or config.SCANNER['timeframe'],
        min_strength=args.min_strength,
        config=config,
        chart_dir=args.charts
    )

    if not args.watch:
        run_scan(scanner, symbols, args.json)
        return 0

    refresh = config.SCANNER['refresh_seconds']
    logger.info(f"🔁 Watch mode: rescanning every {refresh}s (Ctrl+C to stop)")
    try:
        while True:
            run_scan(scanner, symbols, args.json)
            time.sleep(refresh)
    except KeyboardInterrupt:
        logger.info("🛑 Stopped by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
