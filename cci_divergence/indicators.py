"""
Smoothing primitives and the smoothed CCI calculator.

Undefined values are NaN. Windowed filters leave a NaN warm-up prefix and any
window touching an undefined value is itself undefined. The exponential
average is the one exception: it re-seeds from the current input whenever its
previous output is undefined.
"""

import logging
from typing import Sequence, Union

import numpy as np
import pandas as pd

from .models import Bar, IndicatorResult, bars_to_frame

logger = logging.getLogger(__name__)

CCI_CONSTANT = 0.015
SECONDARY_SMOOTHING = 2
VOLUME_AVERAGE_PERIOD = 20


def _validate_period(period: int) -> None:
    if period < 1:
        raise ValueError(f"Period must be at least 1, got {period}")


def as_float_series(values) -> pd.Series:
    if isinstance(values, pd.Series):
        return values.astype(float).reset_index(drop=True)
    return pd.Series(values, dtype=float)


def moving_average(values, period: int) -> pd.Series:
    """Simple moving average over a trailing window of ``period`` values."""
    _validate_period(period)
    series = as_float_series(values)
    return series.rolling(window=period, min_periods=period).mean()


def _window_mean_abs_deviation(window: np.ndarray) -> float:
    mean = window.sum() / len(window)
    return np.abs(window - mean).sum() / len(window)


def mean_absolute_deviation(values, period: int) -> pd.Series:
    """Mean absolute deviation from the window mean, same windowing as moving_average."""
    _validate_period(period)
    series = as_float_series(values)
    return series.rolling(window=period, min_periods=period).apply(
        _window_mean_abs_deviation, raw=True
    )


def exponential_average(values, period: int) -> pd.Series:
    """
    Exponential moving average with restart-on-undefined seeding.

    The first output equals the first input. Whenever the previous output is
    undefined the current output equals the current input, so the filter
    re-anchors right after a warm-up gap.
    """
    _validate_period(period)
    series = as_float_series(values)
    source = series.to_numpy()
    result = np.full(len(source), np.nan)
    multiplier = 2.0 / (period + 1)

    for i in range(len(source)):
        if i == 0 or np.isnan(result[i - 1]):
            result[i] = source[i]
        else:
            result[i] = (source[i] - result[i - 1]) * multiplier + result[i - 1]

    return pd.Series(result, index=series.index)


def typical_price(bars: pd.DataFrame) -> pd.Series:
    """HLC/3 per bar."""
    high = bars['high'].astype(float)
    low = bars['low'].astype(float)
    close = bars['close'].astype(float)
    return ((high + low + close) / 3).reset_index(drop=True)


def compute_indicators(bars: Union[pd.DataFrame, Sequence[Bar]],
                       period: int = 20,
                       fast_smoothing: int = 5) -> IndicatorResult:
    """
    Calculate the double-smoothed CCI, its momentum and the volume baseline.

    Args:
        bars: DataFrame with high/low/close/volume columns (or Bar records)
        period: CCI lookback period (default: 20)
        fast_smoothing: period of the first EMA pass (default: 5)

    Returns:
        IndicatorResult with series the same length as ``bars``. Empty input
        yields empty series.
    """
    _validate_period(period)
    _validate_period(fast_smoothing)

    if not isinstance(bars, pd.DataFrame):
        bars = bars_to_frame(bars)

    if bars.empty:
        empty = pd.Series([], dtype=float)
        return IndicatorResult(
            typical_price=empty,
            cci=empty.copy(),
            momentum=empty.copy(),
            volume=empty.copy(),
            avg_volume=empty.copy()
        )

    tp = typical_price(bars)
    volume = bars['volume'].astype(float).reset_index(drop=True)

    tp_avg = moving_average(tp, period)
    mean_dev = mean_absolute_deviation(tp, period)

    # Flat windows have zero deviation; leave them undefined instead of inf
    degenerate = tp_avg.isna() | mean_dev.isna() | (mean_dev == 0)
    raw_cci = (tp - tp_avg) / (CCI_CONSTANT * mean_dev)
    raw_cci = raw_cci.where(~degenerate, np.nan)

    # Fast pass first, then the fixed secondary pass
    cci = exponential_average(raw_cci, fast_smoothing)
    cci = exponential_average(cci, SECONDARY_SMOOTHING)

    momentum = cci.diff()

    avg_volume = moving_average(volume, VOLUME_AVERAGE_PERIOD)

    logger.debug(
        f"Computed CCI over {len(bars)} bars: period={period}, "
        f"fast_smoothing={fast_smoothing}, defined={int(cci.notna().sum())}"
    )

    return IndicatorResult(
        typical_price=tp,
        cci=cci,
        momentum=momentum,
        volume=volume,
        avg_volume=avg_volume
    )
