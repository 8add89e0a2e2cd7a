#!/usr/bin/env python3
"""
Tests for chart output.
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from cci_divergence.divergence import detect_divergences
from cci_divergence.models import IndicatorResult
from cci_divergence.visualization import plot_divergences


def test_plot_divergences_saves_png(tmp_path):
    n = 40
    cci = pd.Series([-150.0 + 10 * abs(i - 10) if i <= 20 else -120.0 + 10 * abs(i - 30)
                     for i in range(n)])
    low = np.full(n, 101.0)
    low[10], low[30] = 100.0, 95.0
    bars = pd.DataFrame({
        'open': low + 1, 'high': low + 2, 'low': low, 'close': low + 1,
        'volume': np.full(n, 1000.0),
        'timestamp': 1_700_000_000_000 + np.arange(n) * 300_000
    })
    indicators = IndicatorResult(
        typical_price=(bars['high'] + bars['low'] + bars['close']) / 3,
        cci=cci,
        momentum=cci.diff(),
        volume=bars['volume'],
        avg_volume=pd.Series(np.full(n, 1000.0))
    )
    divergences = detect_divergences(bars, indicators.cci, indicators.momentum,
                                     indicators.volume, indicators.avg_volume)
    assert divergences

    path = plot_divergences('SPY', bars, indicators, divergences, str(tmp_path / 'charts'))

    assert Path(path).exists()
    assert Path(path).name == 'SPY_cci_divergence.png'
    assert Path(path).stat().st_size > 0
