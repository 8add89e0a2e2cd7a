"""
CCI Divergence Scanner - Core Components

Double-smoothed Commodity Channel Index, pivot detection and divergence
scoring over OHLCV bars, plus a Polygon.io watchlist scanner.
"""

from .models import (
    Bar,
    Divergence,
    DivergenceType,
    IndicatorResult,
    Quality,
    ScanResult,
    Zone,
    bars_to_frame
)
from .indicators import (
    compute_indicators,
    exponential_average,
    mean_absolute_deviation,
    moving_average
)
from .pivots import find_pivots
from .divergence import detect_divergences, summarize_divergences
from .zones import classify_zone
from .scanner import DivergenceScanner, collect_signals, parse_watchlist

__all__ = [
    'Bar',
    'Divergence',
    'DivergenceType',
    'IndicatorResult',
    'Quality',
    'ScanResult',
    'Zone',
    'bars_to_frame',
    'compute_indicators',
    'exponential_average',
    'mean_absolute_deviation',
    'moving_average',
    'find_pivots',
    'detect_divergences',
    'summarize_divergences',
    'classify_zone',
    'DivergenceScanner',
    'collect_signals',
    'parse_watchlist'
]
