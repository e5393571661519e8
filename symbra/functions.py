"""
Function registry.

Maps a function name and arity to a FunctionSpec: whether the order of
its arguments matters, a description, and an optional fast-path
evaluator. A fast path computes the function's value exactly when every
argument is a Leaf, e.g. ``sin(pi/6) = 1/2``; it returns None when it
cannot, which leaves the call symbolic.

The process-wide registry is built once by ``default_registry()``.
Client code may register more functions during start-up:

    registry = default_registry()
    registry.register("sinh", 1, description="hyperbolic sine")

Parsing ``sinh(x)`` then produces a function call instead of the
implicit product ``s*i*n*h*(x)``.
"""

import logging
import math
import re
import threading
from fractions import Fraction as Rational
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .errors import DivisionByZero, UnsupportedCalculation
from .numeric import binary_only, unary_only
from .values import Multinomial, Term

logger = logging.getLogger(__name__)

# Fast-path evaluator: receives the Leaf values, returns a value or None (can't fold)
FastPath = Callable[[List[Multinomial]], Optional[Multinomial]]

FUNCTION_NAME = re.compile(r"^[A-Za-z][A-Za-z0-9]*$")

# Largest power a multi-term value is expanded to by exp(base, n)
MAX_EXPANDED_POWER = 16
MAX_LOG_EXPONENT = 256


class FunctionSpec:
    """Immutable description of one (name, arity) function."""

    __slots__ = ('name', 'arity', 'order_sensitive', 'description', 'evaluator')

    def __init__(self, name: str, arity: int, order_sensitive: bool = True,
                 description: str = "", evaluator: Optional[FastPath] = None):
        if not isinstance(name, str) or not FUNCTION_NAME.match(name):
            raise ValueError(f"invalid function name {name!r}: use letters and digits, "
                             f"starting with a letter")
        if not isinstance(arity, int) or arity < 1:
            raise ValueError(f"arity of '{name}' must be a positive integer, got {arity!r}")
        object.__setattr__(self, 'name', name)
        object.__setattr__(self, 'arity', arity)
        object.__setattr__(self, 'order_sensitive', order_sensitive)
        object.__setattr__(self, 'description', description)
        object.__setattr__(self, 'evaluator', evaluator)

    def __setattr__(self, key, value):
        raise AttributeError("FunctionSpec is immutable")

    @property
    def key(self) -> Tuple[str, int]:
        return self.name, self.arity

    def __repr__(self) -> str:
        flags = []
        if self.evaluator is not None:
            flags.append("fast-path")
        if self.arity > 1 and not self.order_sensitive:
            flags.append("commutative")
        extra = f" [{', '.join(flags)}]" if flags else ""
        return f"{self.name}/{self.arity}{extra}"


class FunctionRegistry:
    """
    Table of FunctionSpecs keyed by (name, arity).

    Lookups are read-only and need no locking. Registration takes a lock
    and is meant for the start-up phase, before the registry is shared
    between threads.
    """

    def __init__(self, specs: Iterable[FunctionSpec] = ()):
        self._entries: Dict[Tuple[str, int], FunctionSpec] = {}
        self._lock = threading.Lock()
        for spec in specs:
            self.register_spec(spec)

    def register(self, name: str, arity: int, order_sensitive: bool = True,
                 evaluator: Optional[FastPath] = None,
                 description: str = "") -> 'FunctionRegistry':
        """Add or replace the entry for (name, arity)."""
        return self.register_spec(FunctionSpec(name, arity, order_sensitive, description, evaluator))

    def register_spec(self, spec: FunctionSpec) -> 'FunctionRegistry':
        with self._lock:
            replaced = spec.key in self._entries
            self._entries[spec.key] = spec
        logger.debug("%s function %r", "replaced" if replaced else "registered", spec)
        return self

    def lookup(self, name: str, arity: int) -> Optional[FunctionSpec]:
        return self._entries.get((name, arity))

    def names(self) -> List[str]:
        return sorted({name for name, _ in self._entries})

    def is_function_name(self, name: str) -> bool:
        return any(key[0] == name for key in self._entries)

    def longest_suffix(self, text: str) -> Optional[str]:
        """The longest registered name that ``text`` ends with."""
        best = None
        for name, _ in self._entries:
            if text.endswith(name) and (best is None or len(name) > len(best)):
                best = name
        return best

    def is_order_sensitive(self, name: str, arity: int) -> bool:
        """Unknown functions are treated as order-sensitive."""
        spec = self.lookup(name, arity)
        return spec is None or spec.order_sensitive

    def try_fast_path(self, name: str, args: Sequence) -> Optional[Multinomial]:
        """
        Evaluate ``name(args)`` exactly if possible.

        Args:
            name: Function name
            args: Argument nodes

        Returns:
            The resulting value, or None when not applicable (a non-Leaf
            argument, no evaluator, or no exact result).
        """
        spec = self.lookup(name, len(args))
        if spec is None or spec.evaluator is None:
            return None
        values = []
        for arg in args:
            if not getattr(arg, 'is_leaf', False):
                return None
            values.append(arg.value)
        try:
            return spec.evaluator(values)
        except (UnsupportedCalculation, DivisionByZero) as e:
            logger.debug("no fast path for %s/%d: %s", name, len(args), e)
            return None

    def copy(self) -> 'FunctionRegistry':
        return FunctionRegistry(self._entries.values())

    def __contains__(self, item) -> bool:
        if isinstance(item, tuple):
            return item in self._entries
        return self.is_function_name(item)

    def __iter__(self) -> Iterator[FunctionSpec]:
        return iter(sorted(self._entries.values(), key=lambda s: s.key))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"FunctionRegistry({len(self)} functions)"


# ============================================================
# Built-in fast paths
# ============================================================

def _pi_multiple(value: Multinomial) -> Optional[Rational]:
    """q when value == q*pi for a rational q, else None."""
    if value.is_zero():
        return Rational(0)
    if not value.is_monomial():
        return None
    term = value.terms[0]
    if term.radical != 1 or term.chars != (("pi", 1),):
        return None
    return term.coefficient


def _times_pi(q: Rational) -> Multinomial:
    return Multinomial([Term(q, 1, (("pi", 1),))])


# sin(k*pi/12) for k = 0..6
SIN_TABLE: Tuple[Multinomial, ...] = (
    Multinomial.ZERO,
    Multinomial([Term(Rational(1, 4), 6), Term(Rational(-1, 4), 2)]),
    Multinomial.of(Rational(1, 2)),
    Multinomial.surd(Rational(1, 2), 2),
    Multinomial.surd(Rational(1, 2), 3),
    Multinomial([Term(Rational(1, 4), 6), Term(Rational(1, 4), 2)]),
    Multinomial.ONE,
)

# tan(k*pi/12) for k = 0..5
TAN_TABLE: Tuple[Multinomial, ...] = (
    Multinomial.ZERO,
    Multinomial([Term(2), Term(-1, 3)]),
    Multinomial.surd(Rational(1, 3), 3),
    Multinomial.ONE,
    Multinomial.surd(1, 3),
    Multinomial([Term(2), Term(1, 3)]),
)


def _table_index(q: Rational) -> Optional[int]:
    k = q * 12
    return int(k) if k.denominator == 1 else None


def _sin_of(q: Rational) -> Optional[Multinomial]:
    """sin(q*pi) from the table, using periodicity and symmetry."""
    q %= 2
    sign = 1
    if q >= 1:
        sign, q = -1, q - 1
    if q > Rational(1, 2):
        q = 1 - q
    k = _table_index(q)
    if k is None:
        return None
    value = SIN_TABLE[k]
    return value if sign > 0 else value.negate()


def _tan_of(q: Rational) -> Optional[Multinomial]:
    q %= 1
    if q == Rational(1, 2):
        return None
    sign = 1
    if q > Rational(1, 2):
        sign, q = -1, 1 - q
    k = _table_index(q)
    if k is None:
        return None
    value = TAN_TABLE[k]
    return value if sign > 0 else value.negate()


def _sin(x: Multinomial) -> Optional[Multinomial]:
    q = _pi_multiple(x)
    return None if q is None else _sin_of(q)


def _cos(x: Multinomial) -> Optional[Multinomial]:
    q = _pi_multiple(x)
    return None if q is None else _sin_of(q + Rational(1, 2))


def _tan(x: Multinomial) -> Optional[Multinomial]:
    q = _pi_multiple(x)
    return None if q is None else _tan_of(q)


def _cot(x: Multinomial) -> Optional[Multinomial]:
    q = _pi_multiple(x)
    return None if q is None else _tan_of(Rational(1, 2) - q)


def _inverse_lookup(table: Tuple[Multinomial, ...], x: Multinomial) -> Optional[Multinomial]:
    for k, value in enumerate(table):
        if value == x:
            return _times_pi(Rational(k, 12))
        if value.negate() == x:
            return _times_pi(Rational(-k, 12))
    return None


def _arcsin(x: Multinomial) -> Optional[Multinomial]:
    return _inverse_lookup(SIN_TABLE, x)


def _arccos(x: Multinomial) -> Optional[Multinomial]:
    angle = _arcsin(x)
    return None if angle is None else _times_pi(Rational(1, 2)).subtract(angle)


def _arctan(x: Multinomial) -> Optional[Multinomial]:
    return _inverse_lookup(TAN_TABLE, x)


def _exp(x: Multinomial) -> Optional[Multinomial]:
    n = x.as_integer()
    if n is None or n < 0:
        return None
    return Multinomial([Term(1, 1, (("e", n),))])


def _ln(x: Multinomial) -> Optional[Multinomial]:
    if x.is_one():
        return Multinomial.ZERO
    if x.is_monomial():
        term = x.terms[0]
        if term.coefficient == 1 and term.radical == 1 and len(term.chars) == 1 \
                and term.chars[0][0] == "e":
            return Multinomial.of(term.chars[0][1])
    return None


def _log_exponent(base: Term, x: Term) -> Optional[int]:
    """The integer n with base^n == x, judged from one character or the magnitudes."""
    if base.chars:
        name, power = base.chars[0]
        n = Rational(x.power_of(name), power)
        return n.numerator if n.denominator == 1 else None
    b = float(abs(base.coefficient)) * math.sqrt(base.radical)
    y = float(abs(x.coefficient)) * math.sqrt(x.radical)
    if b == 1 or x.chars:
        return None
    return round(math.log(y) / math.log(b))


def _log(base: Multinomial, x: Multinomial) -> Optional[Multinomial]:
    if base.is_zero() or base.is_one() or not base.is_monomial() or not x.is_monomial():
        return None
    if x.is_one():
        return Multinomial.ZERO
    n = _log_exponent(base.terms[0], x.terms[0])
    if n is None or abs(n) > MAX_LOG_EXPONENT or base.power(n) != x:
        return None
    return Multinomial.of(n)


def _power(base: Multinomial, exponent: Multinomial) -> Optional[Multinomial]:
    q = exponent.as_rational()
    if base.is_zero():
        # 0^0 and 0^-n have no value
        return Multinomial.ZERO if q is not None and q > 0 else None
    if base.is_one():
        return Multinomial.ONE
    if q is None:
        return None
    if q.denominator == 1:
        n = q.numerator
        if len(base.terms) > 1 and abs(n) > MAX_EXPANDED_POWER:
            return None
        if n < 0 and not base.is_invertible_constant():
            return None
        return base.power(n)
    if q.denominator == 2 and base.is_monomial():
        return base.sqrt().power(q.numerator)
    return None


def _reciprocal(x: Multinomial) -> Optional[Multinomial]:
    if not x.is_invertible_constant():
        return None
    return x.reciprocal()


def _abs(x: Multinomial) -> Optional[Multinomial]:
    if x.is_zero():
        return x
    if not x.is_invertible_constant():
        return None
    term = x.terms[0]
    return Multinomial([Term(abs(term.coefficient), term.radical)])


def _sqr(x: Multinomial) -> Optional[Multinomial]:
    return x.sqrt()


BUILTIN_FUNCTIONS: List[FunctionSpec] = [
    FunctionSpec("abs", 1, description="absolute value", evaluator=unary_only(_abs)),
    FunctionSpec("arccos", 1, description="inverse cosine", evaluator=unary_only(_arccos)),
    FunctionSpec("arcsin", 1, description="inverse sine", evaluator=unary_only(_arcsin)),
    FunctionSpec("arctan", 1, description="inverse tangent", evaluator=unary_only(_arctan)),
    FunctionSpec("cos", 1, description="cosine", evaluator=unary_only(_cos)),
    FunctionSpec("cot", 1, description="cotangent", evaluator=unary_only(_cot)),
    FunctionSpec("negate", 1, description="-x", evaluator=unary_only(Multinomial.negate)),
    FunctionSpec("reciprocal", 1, description="1/x", evaluator=unary_only(_reciprocal)),
    FunctionSpec("sin", 1, description="sine", evaluator=unary_only(_sin)),
    FunctionSpec("sqr", 1, description="square root", evaluator=unary_only(_sqr)),
    FunctionSpec("tan", 1, description="tangent", evaluator=unary_only(_tan)),
    FunctionSpec("exp", 1, description="e^x", evaluator=unary_only(_exp)),
    FunctionSpec("exp", 2, description="base^exponent", evaluator=binary_only(_power)),
    FunctionSpec("ln", 1, description="natural logarithm", evaluator=unary_only(_ln)),
    FunctionSpec("log", 2, description="logarithm of x to a base: log(base, x)",
                 evaluator=binary_only(_log)),
]


_default_registry: Optional[FunctionRegistry] = None
_default_lock = threading.Lock()


def default_registry() -> FunctionRegistry:
    """The process-wide registry, built from BUILTIN_FUNCTIONS on first use."""
    global _default_registry
    if _default_registry is None:
        with _default_lock:
            if _default_registry is None:
                _default_registry = FunctionRegistry(BUILTIN_FUNCTIONS)
    return _default_registry
