# ABOUTME: Rounds report values half away from zero for positive inputs.
# ABOUTME: Keeps displayed rates consistent with the legacy dashboard figures.

import math


def round_half_up(value: float, digits: int = 0):
    """Round with .5 going up, returning an int when ``digits`` is 0."""

    scale = 10 ** digits
    rounded = math.floor(value * scale + 0.5) / scale
    return int(rounded) if digits == 0 else rounded
