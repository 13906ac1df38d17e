"""
Scalar values flowing through pipeline contexts.

A context maps names to scalars: bool, int, float or str. Rendered template
text is coerced back into a scalar with `coerce_scalar`, and scalars are
turned into template text with `format_scalar`. The two are symmetric for
booleans and integers so a value survives being passed through several
variables.
"""

import math
import re
from decimal import Decimal
from typing import Dict, Union

Scalar = Union[bool, int, float, str]
Context = Dict[str, Scalar]

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

TRUE_LITERALS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
FALSE_LITERALS = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(
    r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?"
)
_SPECIAL_FLOATS = {
    "inf": math.inf,
    "+inf": math.inf,
    "-inf": -math.inf,
    "infinity": math.inf,
    "+infinity": math.inf,
    "-infinity": -math.inf,
    "nan": math.nan,
}


def parse_bool(text: str) -> bool:
    """
    Parse a boolean literal.

    Accepts 1, t, T, TRUE, true, True and their false counterparts.

    Raises:
        ValueError: If text is not a boolean literal
    """
    if text in TRUE_LITERALS:
        return True
    if text in FALSE_LITERALS:
        return False
    raise ValueError(f"not a boolean: {text!r}")


def parse_int(text: str) -> int:
    """
    Parse a base-10 signed 64-bit integer.

    Raises:
        ValueError: If text is not an integer or is out of int64 range
    """
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"not an integer: {text!r}")
    value = int(text)
    if value < INT64_MIN or value > INT64_MAX:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def parse_float(text: str) -> float:
    """
    Parse a decimal floating-point literal (including inf/nan spellings).

    Raises:
        ValueError: If text is not a float literal or overflows
    """
    special = _SPECIAL_FLOATS.get(text.lower())
    if special is not None:
        return special
    if not _FLOAT_RE.fullmatch(text):
        raise ValueError(f"not a float: {text!r}")
    value = float(text)
    if math.isinf(value):
        raise ValueError(f"float out of range: {text!r}")
    return value


def coerce_scalar(text: str) -> Scalar:
    """
    Coerce rendered text into the narrowest scalar type.

    Tries, in order: boolean, int64, float. First success wins; otherwise
    the text is returned unchanged.

    Examples:
        "true" -> True
        "42"   -> 42
        "3.14" -> 3.14
        "x"    -> "x"
    """
    for parser in (parse_bool, parse_int, parse_float):
        try:
            return parser(text)
        except ValueError:
            continue
    return text


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"

    # Shortest round-trip digits, %g layout with exponent outside [-4, 6)
    sign, digits, exponent = Decimal(repr(value)).normalize().as_tuple()
    mantissa = "".join(str(d) for d in digits)
    exp = len(digits) + exponent - 1
    prefix = "-" if sign else ""

    if exp < -4 or exp >= 6:
        body = mantissa[0]
        if len(mantissa) > 1:
            body += "." + mantissa[1:]
        exp_sign = "-" if exp < 0 else "+"
        return f"{prefix}{body}e{exp_sign}{abs(exp):02d}"

    if exp < 0:
        return f"{prefix}0.{'0' * (-exp - 1)}{mantissa}"
    int_len = exp + 1
    if len(mantissa) <= int_len:
        return prefix + mantissa + "0" * (int_len - len(mantissa))
    return f"{prefix}{mantissa[:int_len]}.{mantissa[int_len:]}"


def format_scalar(value: Scalar) -> str:
    """
    Render a scalar as template text.

    Booleans render as true/false, floats in shortest %g form
    (100.0 -> "100", 1e6 -> "1e+06").
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    return str(value)
