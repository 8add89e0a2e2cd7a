"""
Data records shared by the indicator pipeline, the scanner and the CLI.

Bars are carried through the pipeline as a pandas DataFrame with positional
index so that pivot positions map directly onto bar positions.
"""

import math
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

BAR_COLUMNS = ['open', 'high', 'low', 'close', 'volume', 'timestamp']


@dataclass(frozen=True)
class Bar:
    """Single OHLCV bar. ``timestamp`` is epoch milliseconds."""
    open: float
    high: float
    low: float
    close: float
    volume: float
    timestamp: int


def bars_to_frame(bars: Sequence[Bar]) -> pd.DataFrame:
    """Convert a sequence of Bar records into the DataFrame layout used by the core."""
    if not bars:
        return pd.DataFrame(columns=BAR_COLUMNS)
    return pd.DataFrame([asdict(bar) for bar in bars], columns=BAR_COLUMNS)


class DivergenceType(Enum):
    REG_BULL = 'REG_BULL'
    REG_BEAR = 'REG_BEAR'
    HID_BULL = 'HID_BULL'
    HID_BEAR = 'HID_BEAR'

    @property
    def is_bullish(self) -> bool:
        return self in (DivergenceType.REG_BULL, DivergenceType.HID_BULL)

    @property
    def label(self) -> str:
        kind = 'Regular' if self.name.startswith('REG') else 'Hidden'
        direction = 'Bullish' if self.is_bullish else 'Bearish'
        return f"{kind} {direction}"


class Quality(Enum):
    STRONG = 'STRONG'
    MODERATE = 'MODERATE'
    WEAK = 'WEAK'


class Zone(Enum):
    EXTREME_OVERBOUGHT = 'EXTREME_OVERBOUGHT'
    OVERBOUGHT = 'OVERBOUGHT'
    NEUTRAL = 'NEUTRAL'
    OVERSOLD = 'OVERSOLD'
    EXTREME_OVERSOLD = 'EXTREME_OVERSOLD'

    @property
    def label(self) -> str:
        return {
            Zone.EXTREME_OVERBOUGHT: 'EXTREME OB',
            Zone.OVERBOUGHT: 'Overbought',
            Zone.NEUTRAL: 'Neutral',
            Zone.OVERSOLD: 'Oversold',
            Zone.EXTREME_OVERSOLD: 'EXTREME OS',
        }[self]


@dataclass(frozen=True)
class Divergence:
    """
    A divergence between two adjacent CCI pivots.

    Price, oscillator value and timestamp are taken at the later pivot
    (``index``); ``previous_index`` is the earlier pivot of the pair.
    """
    type: DivergenceType
    strength: float
    quality: Quality
    oscillator_value: float
    price: float
    timestamp: int
    volume_confirmed: bool
    momentum_confirmed: bool
    index: int
    previous_index: int

    @property
    def pivot_gap(self) -> int:
        return self.index - self.previous_index

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'strength': round(self.strength, 2),
            'quality': self.quality.value,
            'oscillator_value': self.oscillator_value,
            'price': self.price,
            'timestamp': self.timestamp,
            'volume_confirmed': self.volume_confirmed,
            'momentum_confirmed': self.momentum_confirmed,
            'index': self.index,
            'previous_index': self.previous_index,
        }


@dataclass(frozen=True)
class IndicatorResult:
    """Parallel indicator series, one entry per input bar (NaN = undefined)."""
    typical_price: pd.Series
    cci: pd.Series
    momentum: pd.Series
    volume: pd.Series
    avg_volume: pd.Series

    def __len__(self) -> int:
        return len(self.cci)

    @staticmethod
    def value_at(series: pd.Series, position: int) -> Optional[float]:
        """Return the value at a position, or None when it is undefined."""
        value = series.iloc[position]
        if pd.isna(value):
            return None
        return float(value)

    def latest(self, name: str) -> Optional[float]:
        series = getattr(self, name)
        if series.empty:
            return None
        return self.value_at(series, len(series) - 1)


@dataclass
class ScanResult:
    """Per-symbol output of a scan, assembled by the scanner from core output."""
    symbol: str
    price: float
    cci: Optional[float]
    momentum: Optional[float]
    zone: Zone
    divergences: List[Divergence] = field(default_factory=list)
    computed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'price': self.price,
            'cci': _finite_or_none(self.cci),
            'momentum': _finite_or_none(self.momentum),
            'zone': self.zone.value,
            'divergences': [d.to_dict() for d in self.divergences],
            'computed_at': self.computed_at.isoformat() if self.computed_at else None,
        }


def _finite_or_none(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return value
