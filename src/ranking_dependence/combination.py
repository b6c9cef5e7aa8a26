"""
Query term weight (QTW) combination for phrase pairs.

Function ids:
    1: phraseQTW = 0.5 * (qtw1 + qtw2)
    2: phraseQTW = qtw1 * qtw2
    3: phraseQTW = min(qtw1, qtw2)
    4: phraseQTW = max(qtw1, qtw2)

Any other id yields a neutral weight of 1.0 so dependence scoring keeps
running; callers are expected to warn about the bad id.
"""

from __future__ import annotations

from enum import IntEnum

NEUTRAL_WEIGHT = 1.0


class QTWFunction(IntEnum):
    AVERAGE = 1
    PRODUCT = 2
    MIN = 3
    MAX = 4


def is_valid_fnid(fnid: int) -> bool:
    return fnid in {f.value for f in QTWFunction}


def combine(weight_a: float, weight_b: float, fnid: int) -> float:
    """Combine the weights of two query terms into one phrase weight."""
    if fnid == QTWFunction.AVERAGE:
        return 0.5 * weight_a + 0.5 * weight_b
    if fnid == QTWFunction.PRODUCT:
        return weight_a * weight_b
    if fnid == QTWFunction.MIN:
        return min(weight_a, weight_b)
    if fnid == QTWFunction.MAX:
        return max(weight_a, weight_b)
    return NEUTRAL_WEIGHT
