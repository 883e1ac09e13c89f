"""
Expression Built-in Functions

Function tables bound into every execution scope, plus the number
helpers shared by the optimizer, the evaluator and the code generator.
Numbers follow JavaScript conventions where authors can see the
difference: integral results print without a fractional part and
Math.round rounds halves up.
"""

import math
from typing import Any, Callable, Dict, Union

from .ast_nodes import is_number

Number = Union[int, float]

# Largest integer a double represents exactly.
MAX_SAFE_INTEGER = 2 ** 53


# ============================================================
# NUMBER HELPERS
# ============================================================

def normalize_number(value: Any) -> Any:
    """Collapse integral floats to int so 6 / 3 is 2, not 2.0."""
    if isinstance(value, float) and value.is_integer() and abs(value) < MAX_SAFE_INTEGER:
        return int(value)
    return value


def format_number(value: Number) -> str:
    """Render a number the way JavaScript's String(number) does."""
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        value = normalize_number(value)
    return str(value) if isinstance(value, int) else repr(value)


def format_value(value: Any) -> str:
    """String coercion with JavaScript spelling for booleans and numbers."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(value)
    if isinstance(value, (list, tuple)):
        return ",".join(format_value(v) for v in value)
    return str(value)


def _check_real(result: Any) -> Number:
    if isinstance(result, complex):
        raise ValueError("result is not a real number")
    return result


# ============================================================
# MATH FUNCTIONS
# ============================================================

def js_round(x: Number) -> int:
    return math.floor(x + 0.5)


def _overflow_sign(base: Number, exponent: Number) -> float:
    if isinstance(exponent, float):
        odd = exponent.is_integer() and int(exponent) % 2 == 1
    else:
        odd = int(exponent) % 2 == 1
    return -math.inf if base < 0 and odd else math.inf


def js_pow(base: Number, exponent: Number) -> Number:
    """
    Exponentiation in double precision, as JavaScript computes it.

    Overflow gives +/-Infinity instead of an arbitrarily large int, and
    0 raised to a negative power is Infinity.
    """
    try:
        result = float(base) ** float(exponent)
    except OverflowError:
        return _overflow_sign(base, exponent)
    except ZeroDivisionError:
        return math.inf
    return normalize_number(_check_real(result))


def js_max(*args: Number) -> Number:
    return max(args) if args else -math.inf


def js_min(*args: Number) -> Number:
    return min(args) if args else math.inf


def _unary(fn: Callable[[float], Number]) -> Callable[[Number], Number]:
    def wrapper(x: Number) -> Number:
        try:
            return normalize_number(fn(x))
        except OverflowError:
            return math.inf
    wrapper.__name__ = getattr(fn, "__name__", "fn")
    return wrapper


MATH_FUNCTIONS: Dict[str, Any] = {
    "pow": js_pow,
    "max": js_max,
    "min": js_min,
    "abs": abs,
    "floor": math.floor,
    "ceil": math.ceil,
    "round": js_round,
    "sqrt": _unary(math.sqrt),
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "log": math.log,
    "exp": _unary(math.exp),
    # Constants, read as zero-argument members (Math.PI)
    "PI": math.pi,
    "E": math.e,
}

# Functions the optimizer may evaluate at fold time.
FOLDABLE_MATH_FUNCTIONS = frozenset({
    "abs", "round", "floor", "ceil", "sqrt", "pow", "min", "max",
})


# ============================================================
# ARRAY PREDICATES
# ============================================================

ARRAY_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "isArray": lambda value: isinstance(value, (list, tuple)),
}


def get_builtin_tables() -> Dict[str, Dict[str, Any]]:
    """Fresh copies of the namespaces bound into every execution scope."""
    return {
        "Math": dict(MATH_FUNCTIONS),
        "Array": dict(ARRAY_FUNCTIONS),
    }
