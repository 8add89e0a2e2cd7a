"""
Pivot (swing high/low) detection on an oscillator series.
"""

from typing import List, Tuple

import numpy as np
import pandas as pd


def find_pivots(values, lookback_left: int = 5,
                lookback_right: int = 5) -> Tuple[List[int], List[int]]:
    """
    Find strict local minima and maxima in a series.

    A position is a pivot low when its value is strictly below every value in
    the ``lookback_left`` bars before it and the ``lookback_right`` bars after
    it. Pivot highs are symmetric. Undefined values (NaN) are never pivots and
    an undefined neighbour disqualifies the candidate.

    Returns:
        (lows, highs) as ascending lists of positions
    """
    if lookback_left < 1 or lookback_right < 1:
        raise ValueError(
            f"Lookbacks must be at least 1, got {lookback_left}/{lookback_right}"
        )

    if isinstance(values, pd.Series):
        data = values.to_numpy(dtype=float)
    else:
        data = np.asarray(values, dtype=float)

    lows: List[int] = []
    highs: List[int] = []

    for i in range(lookback_left, len(data) - lookback_right):
        current_value = data[i]
        if np.isnan(current_value):
            continue

        left_window = data[i - lookback_left:i]
        right_window = data[i + 1:i + lookback_right + 1]
        neighbours = np.concatenate([left_window, right_window])

        if np.isnan(neighbours).any():
            continue

        if (current_value < neighbours).all():
            lows.append(i)
        elif (current_value > neighbours).all():
            highs.append(i)

    return lows, highs
