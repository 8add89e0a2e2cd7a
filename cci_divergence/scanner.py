"""
Watchlist scanner.

Runs the CCI divergence pipeline for each symbol of a watchlist. Every symbol
is an independent task that computes its own series. The only shared object
is the bar source, which serializes its own rate limiting.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .config import Config
from .divergence import detect_divergences
from .indicators import compute_indicators
from .models import Divergence, ScanResult
from .zones import classify_zone

logger = logging.getLogger(__name__)

TIMEFRAMES = {
    '5': (5, 'minute'),
    '15': (15, 'minute'),
    '60': (60, 'minute'),
}


def parse_watchlist(text: str) -> List[str]:
    """Split a comma separated watchlist into upper-case symbols."""
    return [s.strip().upper() for s in text.split(',') if s.strip()]


def collect_signals(results: Iterable[ScanResult]) -> List[Tuple[str, Divergence]]:
    """Flatten divergences of all results, strongest first."""
    signals = [(result.symbol, d) for result in results for d in result.divergences]
    signals.sort(key=lambda item: item[1].strength, reverse=True)
    return signals


class DivergenceScanner:
    """
    Scans symbols for CCI divergences.

    Features:
    - Parallel per-symbol execution
    - Error isolation (one symbol failure doesn't stop others)
    - Skips symbols without enough history
    """

    def __init__(self, fetcher, timeframe: str = '5', min_strength: Optional[float] = None,
                 min_bars: Optional[int] = None, max_workers: Optional[int] = None,
                 request_delay: Optional[float] = None, config=Config,
                 chart_dir: Optional[str] = None):
        """
        Initialize the scanner

        Args:
            fetcher: bar source exposing fetch_bars(symbol, multiplier, timespan)
            timeframe: minutes per bar, one of '5', '15', '60'
            min_strength: divergence strength threshold (Config default if None)
            min_bars: minimum history per symbol (Config default if None)
            max_workers: thread pool size (Config default if None)
            request_delay: pause after each symbol in seconds (Config default if None)
            config: Config class (or a load_config() subclass)
            chart_dir: save a chart for every symbol with divergences here
        """
        if timeframe not in TIMEFRAMES:
            raise ValueError(
                f"Invalid timeframe '{timeframe}'. Must be one of: {list(TIMEFRAMES)}"
            )

        self.fetcher = fetcher
        self.timeframe = timeframe
        self.config = config
        self.min_strength = (config.DIVERGENCE['min_strength']
                             if min_strength is None else min_strength)
        scanner_settings = config.SCANNER
        self.min_bars = scanner_settings['min_bars'] if min_bars is None else min_bars
        self.max_workers = scanner_settings['max_workers'] if max_workers is None else max_workers
        self.request_delay = (scanner_settings['request_delay']
                              if request_delay is None else request_delay)
        self.indicator_params = config.get_indicator_params()
        self.divergence_params = config.get_divergence_params()
        self.chart_dir = chart_dir

    def analyze(self, symbol: str, bars: pd.DataFrame) -> Optional[ScanResult]:
        """Run the indicator and divergence pipeline on one symbol's bars."""
        if len(bars) < self.min_bars:
            logger.info(f"⏭️  {symbol}: {len(bars)} bars < {self.min_bars}, skipping")
            return None

        indicators = compute_indicators(bars, **self.indicator_params)
        divergences = detect_divergences(
            bars,
            indicators.cci,
            indicators.momentum,
            indicators.volume,
            indicators.avg_volume,
            min_strength=self.min_strength,
            **self.divergence_params
        )

        if self.chart_dir and divergences:
            from .visualization import plot_divergences
            path = plot_divergences(symbol, bars, indicators, divergences, self.chart_dir)
            logger.info(f"📊 {symbol}: chart saved to {path}")

        current_cci = indicators.latest('cci')
        return ScanResult(
            symbol=symbol,
            price=float(bars['close'].iloc[-1]),
            cci=current_cci,
            momentum=indicators.latest('momentum'),
            zone=classify_zone(current_cci),
            divergences=divergences,
            computed_at=datetime.now(timezone.utc)
        )

    def scan_symbol(self, symbol: str) -> Optional[ScanResult]:
        """Fetch and analyze a single symbol. Failures are logged and yield None."""
        multiplier, timespan = TIMEFRAMES[self.timeframe]
        try:
            bars = self.fetcher.fetch_bars(symbol, multiplier=multiplier, timespan=timespan)
            result = self.analyze(symbol, bars)
            if result and result.divergences:
                logger.info(f"🎯 {symbol}: {len(result.divergences)} divergence(s)")
            return result
        except Exception as e:
            logger.error(f"❌ Error scanning {symbol}: {e}", exc_info=True)
            return None
        finally:
            if self.request_delay:
                time.sleep(self.request_delay)

    def scan(self, symbols: List[str]) -> List[ScanResult]:
        """
        Scan a watchlist.

        Returns:
            ScanResult for every symbol that had enough data, in watchlist order
        """
        if not symbols:
            return []

        logger.info(
            f"🔍 Scanning {len(symbols)} symbols on {self.timeframe}m "
            f"(min strength {self.min_strength})"
        )
        started = time.time()

        workers = max(1, min(self.max_workers, len(symbols)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(self.scan_symbol, symbols))

        results = [r for r in outcomes if r is not None]
        logger.info(
            f"✅ Scan complete: {len(results)}/{len(symbols)} symbols, "
            f"{sum(len(r.divergences) for r in results)} signals "
            f"in {time.time() - started:.1f}s"
        )
        return results

    def describe(self) -> Dict[str, Any]:
        return {
            'timeframe': self.timeframe,
            'min_strength': self.min_strength,
            'min_bars': self.min_bars,
            'max_workers': self.max_workers,
            'chart_dir': self.chart_dir,
        }
