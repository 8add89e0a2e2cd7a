"""
CCI divergence detection.

Pairs adjacent CCI pivots and compares price direction with oscillator
direction at those pivots:

Regular Bullish: price lower low + CCI higher low (reversal)
Hidden Bullish:  price higher low + CCI lower low (continuation)
Regular Bearish: price higher high + CCI lower high (reversal)
Hidden Bearish:  price lower high + CCI higher high (continuation)

Each finding is scored into a 0-10 strength, graded into a quality tier and
kept only if it is strong enough and formed within the recent bars.
"""

import logging
from typing import List, Optional, Sequence, Union

import pandas as pd

from .indicators import as_float_series
from .models import Bar, Divergence, DivergenceType, IndicatorResult, Quality, bars_to_frame
from .pivots import find_pivots

logger = logging.getLogger(__name__)

DEFAULT_MIN_STRENGTH = 3.0

MAX_COMPONENT_SCORE = 3.0
MAX_STRENGTH = 10.0
OSCILLATOR_SCORE_DIVISOR = 30.0
EXTREME_BONUS = 1.5
VOLUME_BONUS = 1.0
MOMENTUM_BONUS = 1.0

STRONG_THRESHOLD = 7.0
MODERATE_THRESHOLD = 5.0


def calculate_strength(price_change: float, oscillator_change: float,
                       is_extreme: bool, high_volume: bool,
                       momentum_confirmed: bool) -> float:
    """
    Score a divergence on a 0-10 scale.

    Args:
        price_change: relative price move between the pivots (fraction, sign ignored)
        oscillator_change: CCI move between the pivots (points, sign ignored)
        is_extreme: CCI beyond the extreme level in the divergence direction
        high_volume: volume spike at the later pivot
        momentum_confirmed: CCI momentum agrees with the divergence direction
    """
    price_score = min(MAX_COMPONENT_SCORE, abs(price_change) * 100)
    oscillator_score = min(MAX_COMPONENT_SCORE, abs(oscillator_change) / OSCILLATOR_SCORE_DIVISOR)

    extreme_bonus = EXTREME_BONUS if is_extreme else 0.0
    volume_bonus = VOLUME_BONUS if high_volume else 0.0
    momentum_bonus = MOMENTUM_BONUS if momentum_confirmed else 0.0

    return min(MAX_STRENGTH,
               price_score + oscillator_score + extreme_bonus + volume_bonus + momentum_bonus)


def get_quality(strength: float) -> Quality:
    if strength >= STRONG_THRESHOLD:
        return Quality.STRONG
    if strength >= MODERATE_THRESHOLD:
        return Quality.MODERATE
    return Quality.WEAK


def classify_pair(bullish: bool, price_previous: float, price_current: float,
                  cci_previous: float, cci_current: float) -> Optional[DivergenceType]:
    """Label a pivot pair, or None when price and CCI agree."""
    if bullish:
        if price_current < price_previous and cci_current > cci_previous:
            return DivergenceType.REG_BULL
        if price_current > price_previous and cci_current < cci_previous:
            return DivergenceType.HID_BULL
    else:
        if price_current > price_previous and cci_current < cci_previous:
            return DivergenceType.REG_BEAR
        if price_current < price_previous and cci_current > cci_previous:
            return DivergenceType.HID_BEAR
    return None


def _scan_pivot_pairs(pivots: List[int], bullish: bool, prices: pd.Series,
                      timestamps: pd.Series, cci: pd.Series, momentum: pd.Series,
                      volume: pd.Series, avg_volume: pd.Series,
                      min_strength: float, min_pivot_gap: int, max_pivot_gap: int,
                      volume_multiplier: float, extreme_level: float) -> List[Divergence]:
    found: List[Divergence] = []
    value_at = IndicatorResult.value_at

    for previous_idx, current_idx in zip(pivots, pivots[1:]):
        bar_gap = current_idx - previous_idx
        if bar_gap < min_pivot_gap or bar_gap > max_pivot_gap:
            continue

        cci_current = float(cci.iloc[current_idx])
        cci_previous = float(cci.iloc[previous_idx])
        price_current = float(prices.iloc[current_idx])
        price_previous = float(prices.iloc[previous_idx])

        divergence_type = classify_pair(bullish, price_previous, price_current,
                                        cci_previous, cci_current)
        if divergence_type is None:
            continue

        bar_volume = value_at(volume, current_idx)
        bar_avg_volume = value_at(avg_volume, current_idx)
        bar_momentum = value_at(momentum, current_idx)

        high_volume = (bar_volume is not None and bar_avg_volume is not None
                       and bar_volume > bar_avg_volume * volume_multiplier)
        if bullish:
            is_extreme = cci_current < -extreme_level
            momentum_confirmed = bar_momentum is not None and bar_momentum > 0
        else:
            is_extreme = cci_current > extreme_level
            momentum_confirmed = bar_momentum is not None and bar_momentum < 0

        strength = calculate_strength(
            (price_current - price_previous) / price_previous,
            cci_current - cci_previous,
            is_extreme,
            high_volume,
            momentum_confirmed
        )

        if not strength >= min_strength:
            logger.debug(
                f"Discarding {divergence_type.value} at {current_idx}: "
                f"strength {strength:.2f} < {min_strength}"
            )
            continue

        found.append(Divergence(
            type=divergence_type,
            strength=strength,
            quality=get_quality(strength),
            oscillator_value=cci_current,
            price=price_current,
            timestamp=int(timestamps.iloc[current_idx]),
            volume_confirmed=high_volume,
            momentum_confirmed=momentum_confirmed,
            index=current_idx,
            previous_index=previous_idx
        ))

    return found


def filter_recent(divergences: List[Divergence], timestamps: pd.Series,
                  recent_bars: int = 15) -> List[Divergence]:
    """Keep divergences formed at or after the bar ``recent_bars`` from the end."""
    if timestamps.empty:
        return []
    cutoff_idx = max(0, len(timestamps) - recent_bars)
    cutoff = int(timestamps.iloc[cutoff_idx])
    return [d for d in divergences if d.timestamp >= cutoff]


def detect_divergences(bars: Union[pd.DataFrame, Sequence[Bar]],
                       cci: pd.Series,
                       momentum: pd.Series,
                       volume: pd.Series,
                       avg_volume: pd.Series,
                       min_strength: float = DEFAULT_MIN_STRENGTH,
                       lookback_left: int = 5,
                       lookback_right: int = 5,
                       min_pivot_gap: int = 5,
                       max_pivot_gap: int = 60,
                       volume_multiplier: float = 1.2,
                       extreme_level: float = 100.0,
                       recent_bars: int = 15) -> List[Divergence]:
    """
    Detect recent CCI divergences.

    Bullish candidates come from CCI pivot lows priced on bar lows, bearish
    candidates from CCI pivot highs priced on bar highs. Bars must be in
    ascending time order; prices and volumes are not validated.

    Args:
        bars: DataFrame with low/high/timestamp columns (or Bar records)
        cci, momentum, volume, avg_volume: series aligned with ``bars``
        min_strength: minimum strength to keep a divergence (inclusive)

    Returns:
        Bullish divergences in pivot order followed by bearish ones

    Raises:
        ValueError: if any series length differs from the number of bars
    """
    if not isinstance(bars, pd.DataFrame):
        bars = bars_to_frame(bars)

    series = {
        'cci': as_float_series(cci),
        'momentum': as_float_series(momentum),
        'volume': as_float_series(volume),
        'avg_volume': as_float_series(avg_volume),
    }
    mismatched = {name: len(s) for name, s in series.items() if len(s) != len(bars)}
    if mismatched:
        raise ValueError(
            f"Series lengths must match bar count {len(bars)}, got {mismatched}"
        )

    if bars.empty:
        return []

    lows = bars['low'].astype(float).reset_index(drop=True)
    highs = bars['high'].astype(float).reset_index(drop=True)
    timestamps = bars['timestamp'].reset_index(drop=True)

    pivot_lows, pivot_highs = find_pivots(series['cci'], lookback_left, lookback_right)

    common = dict(
        timestamps=timestamps,
        cci=series['cci'],
        momentum=series['momentum'],
        volume=series['volume'],
        avg_volume=series['avg_volume'],
        min_strength=min_strength,
        min_pivot_gap=min_pivot_gap,
        max_pivot_gap=max_pivot_gap,
        volume_multiplier=volume_multiplier,
        extreme_level=extreme_level
    )
    divergences = _scan_pivot_pairs(pivot_lows, True, lows, **common)
    divergences += _scan_pivot_pairs(pivot_highs, False, highs, **common)

    recent = filter_recent(divergences, timestamps, recent_bars)

    logger.debug(
        f"Pivots: {len(pivot_lows)} lows, {len(pivot_highs)} highs; "
        f"divergences: {len(divergences)} scored, {len(recent)} recent"
    )

    return recent


def summarize_divergences(divergences: List[Divergence]) -> str:
    """Generate human-readable divergence summary."""
    if not divergences:
        return "No divergence detected"

    parts = []
    for d in divergences:
        confirmations = []
        if d.volume_confirmed:
            confirmations.append('vol')
        if d.momentum_confirmed:
            confirmations.append('mom')
        suffix = f" [{'+'.join(confirmations)}]" if confirmations else ''
        parts.append(
            f"{d.type.label} ({d.quality.value} {d.strength:.1f}): "
            f"price {d.price:.2f}, CCI {d.oscillator_value:.1f}{suffix}"
        )
    return " | ".join(parts)
