"""
CCI zone classification for the latest oscillator reading.
"""

import math
from typing import Optional

from .models import Zone

EXTREME_LEVEL = 200.0
ZONE_LEVEL = 100.0


def classify_zone(value: Optional[float]) -> Zone:
    """Map a CCI value to its overbought/oversold zone. Undefined is NEUTRAL."""
    if value is None or math.isnan(value):
        return Zone.NEUTRAL
    if value > EXTREME_LEVEL:
        return Zone.EXTREME_OVERBOUGHT
    if value > ZONE_LEVEL:
        return Zone.OVERBOUGHT
    if value < -EXTREME_LEVEL:
        return Zone.EXTREME_OVERSOLD
    if value < -ZONE_LEVEL:
        return Zone.OVERSOLD
    return Zone.NEUTRAL
