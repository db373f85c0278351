"""
rational.py

Exact fractions for fares and duration ratios. Rational is a Fraction whose
results are re-checked after every operation so a runaway denominator raises
DenominatorOverflow instead of silently growing (or being approximated).
"""
import re
from fractions import Fraction

from .config import MAX_DENOMINATOR
from .errors import DenominatorOverflow

CURRENCY_SYMBOLS = "£$€₽₴"
_DECIMAL_COMMA = re.compile(r"^-?\d+,\d{2}$")


def _checked(value, limit=MAX_DENOMINATOR):
    if value is NotImplemented:
        return value
    if isinstance(value, (float, complex)):
        raise TypeError("Rational arithmetic does not mix with floating point")
    result = value if type(value) is Rational else Fraction.__new__(Rational, value)
    if result.denominator > limit:
        raise DenominatorOverflow(value, limit)
    return result


class Rational(Fraction):
    __slots__ = ()

    def __new__(cls, numerator=0, denominator=None, *, limit=MAX_DENOMINATOR):
        if isinstance(numerator, float) or isinstance(denominator, float):
            raise TypeError("Rational does not accept floats; pass a string or integers")
        self = super().__new__(cls, numerator, denominator)
        if self.denominator > limit:
            raise DenominatorOverflow(self, limit)
        return self

    def __add__(self, other):
        return _checked(Fraction.__add__(self, other))

    def __radd__(self, other):
        return _checked(Fraction.__radd__(self, other))

    def __sub__(self, other):
        return _checked(Fraction.__sub__(self, other))

    def __rsub__(self, other):
        return _checked(Fraction.__rsub__(self, other))

    def __mul__(self, other):
        return _checked(Fraction.__mul__(self, other))

    def __rmul__(self, other):
        return _checked(Fraction.__rmul__(self, other))

    def __truediv__(self, other):
        return _checked(Fraction.__truediv__(self, other))

    def __rtruediv__(self, other):
        return _checked(Fraction.__rtruediv__(self, other))

    def __neg__(self):
        return _checked(Fraction.__neg__(self))

    def __abs__(self):
        return _checked(Fraction.__abs__(self))

    def display(self, places=2):
        """Decimal rendering for people; exact when the denominator allows it."""
        if self.denominator == 1:
            return str(self.numerator)
        scaled = Fraction(self) * 10**places
        if scaled.denominator != 1:
            return f"{self.numerator}/{self.denominator}"
        sign = "-" if scaled < 0 else ""
        whole, frac = divmod(abs(scaled.numerator), 10**places)
        return f"{sign}{whole}.{frac:0{places}d}"


ZERO = Rational(0)


def parse_rational(text, limit=MAX_DENOMINATOR):
    """Parse "45", "4.50", "£4.50" or "9/2" into a Rational; ValueError otherwise."""
    if text is None:
        raise ValueError("no value")
    cleaned = str(text).strip().strip(CURRENCY_SYMBOLS).strip()
    if not cleaned:
        raise ValueError(f"not a number: {text!r}")
    if "," in cleaned:
        # "4,50" is a decimal comma; "1,500" could be a thousands separator
        if not _DECIMAL_COMMA.match(cleaned):
            raise ValueError(f"ambiguous comma in {text!r}")
        cleaned = cleaned.replace(",", ".")
    try:
        return Rational(cleaned, limit=limit)
    except ZeroDivisionError:
        raise ValueError(f"zero denominator in {text!r}")


def checked(value, limit=MAX_DENOMINATOR):
    """Coerce an int/Fraction into a Rational bounded by ``limit``."""
    return _checked(Fraction(value), limit)


def split_proportionally(total, weights, quantum=None, limit=MAX_DENOMINATOR):
    """
    Split ``total`` into one share per weight so that the shares sum to
    ``total`` exactly.

    Without a quantum each share is total * w / sum(weights). With a quantum
    every share is a whole number of quanta: each gets the floor of its
    proportional count, the leftover quanta go one apiece to the earliest
    segments, and whatever is smaller than one quantum lands on the first.
    """
    weights = [Fraction(w) for w in weights]
    if not weights:
        return ()
    if any(w < 0 for w in weights):
        raise ValueError("segment weights must be non-negative")
    weight_sum = sum(weights)
    if weight_sum == 0:
        raise ValueError("segment weights sum to zero")
    total = Fraction(total)
    if total < 0:
        raise ValueError("total must be non-negative")

    if quantum is None:
        return tuple(checked(total * w / weight_sum, limit) for w in weights)

    quantum = Fraction(quantum)
    if quantum <= 0:
        raise ValueError("quantum must be positive")
    units = total // quantum
    residue = total - units * quantum
    counts = [(units * w) // weight_sum for w in weights]
    for i in range(units - sum(counts)):
        counts[i] += 1
    shares = [Fraction(c) * quantum for c in counts]
    shares[0] += residue
    return tuple(checked(s, limit) for s in shares)
