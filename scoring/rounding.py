"""Score rounding shared by every 0-100 score."""

import math


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves upward (12.5 -> 13, -2.5 -> -2).

    Unlike round(), which sends halves to the even neighbour.
    """
    return int(math.floor(float(value) + 0.5))
