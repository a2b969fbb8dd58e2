"""
AppBuilder Kernel — Path Resolver

resolve(root, "users.0.name") walks a JSON value one dot-separated segment at
a time. Any missing segment, null, or non-container along the way yields None.
Never raises.

stringify(value) turns a resolved value into the text that lands in HTML,
using the same rules as JavaScript's String() and JSON.stringify, which
existing pages already depend on.
"""

from __future__ import annotations

import json
import math
from decimal import Decimal
from typing import Any

# Integers at or past this size print in exponent form
JS_EXPONENT_ABOVE = 10**21


def resolve(root: Any, path: str | None) -> Any:
    """
    Resolve a dotted path against a JSON value.

    Numeric segments index lists (canonical form only, so "01" misses); on
    dicts every segment is a plain key.
    There is no bracket syntax.

    Returns None when the path is empty, the root is None, or any segment
    cannot be followed.
    """
    if root is None or not path:
        return None

    current = root
    for segment in path.split("."):
        if isinstance(current, dict):
            current = current.get(segment)
        elif isinstance(current, list):
            if not (segment.isascii() and segment.isdigit()):
                return None
            if len(segment) > 1 and segment.startswith("0"):
                return None
            index = int(segment)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def stringify(value: Any) -> str:
    """
    Render a resolved value as text.

    None → "", containers → compact JSON, booleans → "true"/"false", numbers
    as JavaScript prints them: 3.0 → "3", 1e-7 → "1e-7", 1e22 → "1e+22".
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value) if abs(value) < JS_EXPONENT_ABOVE else format_number(float(value))
    if isinstance(value, float):
        return format_number(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def format_number(value: float) -> str:
    """
    Number → text with JavaScript's rules: shortest round-trip digits, plain
    decimals for 1e-7 < |x| < 1e21, exponent form ("1.5e-7", "1e+21") outside.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    # repr gives the shortest digits that round-trip, as JavaScript does
    _, digit_tuple, exponent = Decimal(repr(abs(value))).normalize().as_tuple()
    digits = "".join(map(str, digit_tuple))
    k = len(digits)
    n = exponent + k

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = f"{digits[:n]}.{digits[n:]}"
    elif -6 < n <= 0:
        text = f"0.{'0' * -n}{digits}"
    else:
        e = n - 1
        mantissa = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
        text = f"{mantissa}e{'+' if e > 0 else '-'}{abs(e)}"
    return sign + text
