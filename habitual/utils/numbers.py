from __future__ import annotations
import math
from typing import Union

Number = Union[int, float]

def round_half_up(value: float) -> int:
    """Round .5 toward positive infinity (round() would round half to even)."""
    return int(math.floor(value + 0.5))

def normalize_number(value: Number) -> Number:
    """Drop a float's trailing .0 so 3.0 renders as 3."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value
