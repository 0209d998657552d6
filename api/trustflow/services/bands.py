"""Reputation breakpoints shared by pusher tiering and display bands.

    pusher value     base weight        Trust Flow value   band
    v < 10           1.5                v < 0              red
    10 <= v < 40     2.0                0 <= v < 10        gray
    v >= 40          2.5                10 <= v < 40       yellow
                                        40 <= v < 100      green
                                        v >= 100           blue
"""

from trustflow.models.reputation import ColorBand

TIER_MODERATE = 10.0
TIER_HIGH = 40.0
ELITE = 100.0

BASE_WEIGHT_LOW = 1.5
BASE_WEIGHT_MODERATE = 2.0
BASE_WEIGHT_HIGH = 2.5


def base_weight_for(pusher_value: float) -> float:
    if pusher_value >= TIER_HIGH:
        return BASE_WEIGHT_HIGH
    if pusher_value >= TIER_MODERATE:
        return BASE_WEIGHT_MODERATE
    return BASE_WEIGHT_LOW


def color_band_for(value: float) -> ColorBand:
    if value < 0:
        return ColorBand.red
    if value < TIER_MODERATE:
        return ColorBand.gray
    if value < TIER_HIGH:
        return ColorBand.yellow
    if value < ELITE:
        return ColorBand.green
    return ColorBand.blue
