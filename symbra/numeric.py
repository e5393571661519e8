"""
Numeric contexts.

Expressions are symbolic; evaluating one needs a concrete number type.
A NumberContext bundles that type's arithmetic with a table of function
handlers keyed by function name, so the same tree can be evaluated over
floats, complex numbers or exact rationals:

    tree.evaluate({"x": 2}, FLOAT_CONTEXT)    # math
    tree.evaluate({"x": 2}, COMPLEX_CONTEXT)  # cmath
    tree.evaluate({"x": 2}, EXACT_CONTEXT)    # fractions.Fraction

Handlers take a list of arguments and return a result, or None when
they do not apply to that many arguments.
"""

import cmath
import logging
import math
import operator
from fractions import Fraction as Rational
from typing import Any, Callable, Dict, List, Optional

from .errors import DivisionByZero, DomainError

logger = logging.getLogger(__name__)

# Type aliases
NumericType = Any
Handler = Callable[[List[NumericType]], Optional[NumericType]]
HandlersType = Dict[str, Handler]


# ============================================================
# Handler Builders
# ============================================================

def unary_only(f: Callable[[NumericType], NumericType]) -> Handler:
    """Create a unary-only handler (e.g., sin, ln)."""
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 1:
            return None
        return f(args[0])
    return handler


def binary_only(f: Callable[[NumericType, NumericType], NumericType]) -> Handler:
    """Create a binary-only handler (e.g., exp(base, exponent))."""
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 2:
            return None
        return f(args[0], args[1])
    return handler


def first_of(*handlers: Handler) -> Handler:
    """Try handlers in order and return the first result that is not None.

    Example:
        first_of(unary_only(math.exp), binary_only(math.pow))  # exp/1 and exp/2
    """
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        for h in handlers:
            result = h(args)
            if result is not None:
                return result
        return None
    return handler


# ============================================================
# Number Context
# ============================================================

class NumberContext:
    """
    The arithmetic and function table of one concrete number type.

    Errors from the underlying library are translated: division by zero
    becomes DivisionByZero, and ValueError/OverflowError/ZeroDivisionError
    raised inside a function handler become DomainError.
    """

    def __init__(self, name: str, from_rational: Callable[[Rational], NumericType],
                 handlers: HandlersType, constants: Optional[Dict[str, NumericType]] = None,
                 parse_number: Optional[Callable[[str], NumericType]] = None,
                 coerce: Optional[Callable[[Any], NumericType]] = None):
        self.name = name
        self._from_rational = from_rational
        self.handlers: HandlersType = dict(handlers)
        self.constants: Dict[str, NumericType] = dict(constants or {})
        self._parse_number = parse_number
        self._coerce = coerce

    def of(self, value: Any) -> NumericType:
        """Convert an int or Fraction into this context's number type."""
        return self._from_rational(Rational(value))

    def accept(self, value: Any) -> NumericType:
        """Bring a caller-supplied value (e.g. from a value map) into this context."""
        if self._coerce is not None:
            return self._coerce(value)
        return value

    def parse(self, text: str) -> NumericType:
        """Parse a number written in this context's notation."""
        if self._parse_number is not None:
            return self._parse_number(text)
        return self.of(Rational(text.strip()))

    def add(self, a: NumericType, b: NumericType) -> NumericType:
        return a + b

    def multiply(self, a: NumericType, b: NumericType) -> NumericType:
        return a * b

    def divide(self, a: NumericType, b: NumericType) -> NumericType:
        try:
            return a / b
        except ZeroDivisionError:
            raise DivisionByZero(f"division by zero in the {self.name} context") from None

    def power(self, base: NumericType, exponent: int) -> NumericType:
        try:
            return base ** exponent
        except ZeroDivisionError:
            raise DivisionByZero(f"zero raised to a negative power in the {self.name} context") from None
        except OverflowError as e:
            raise DomainError(f"{base}^{exponent} overflows the {self.name} context") from e

    def sqrt(self, value: NumericType) -> NumericType:
        return self.apply("sqr", [value])

    def constant(self, name: str) -> NumericType:
        try:
            return self.constants[name]
        except KeyError:
            raise DomainError(f"constant '{name}' has no value in the {self.name} context") from None

    def supports(self, name: str) -> bool:
        return name in self.handlers

    def apply(self, name: str, args: List[NumericType]) -> NumericType:
        """Apply the handler registered for ``name``."""
        handler = self.handlers.get(name)
        if handler is None:
            raise DomainError(f"'{name}' is not defined in the {self.name} context", name)
        try:
            result = handler(list(args))
        except (ValueError, OverflowError, ZeroDivisionError) as e:
            logger.debug("%s%r rejected by %s context: %s", name, tuple(args), self.name, e)
            raise DomainError(
                f"{name}{tuple(args)} is outside the domain of the {self.name} context", name
            ) from e
        if result is None:
            raise DomainError(f"'{name}' does not take {len(args)} argument(s)", name)
        return result

    def extend(self, handlers: HandlersType) -> 'NumberContext':
        """Return a copy with additional (or replaced) function handlers."""
        merged = dict(self.handlers)
        merged.update(handlers)
        return NumberContext(self.name, self._from_rational, merged,
                             self.constants, self._parse_number, self._coerce)

    def __repr__(self) -> str:
        return f"NumberContext({self.name!r}, {len(self.handlers)} functions)"


# ============================================================
# Exact rational helpers
# ============================================================

def exact_sqrt(value: NumericType) -> Rational:
    """Square root of a rational that is a perfect square."""
    q = Rational(value)
    if q < 0:
        raise ValueError(f"square root of negative rational {q}")
    num, den = math.isqrt(q.numerator), math.isqrt(q.denominator)
    if num * num != q.numerator or den * den != q.denominator:
        raise ValueError(f"{q} has no rational square root")
    return Rational(num, den)


def exact_power(base: NumericType, exponent: NumericType) -> Rational:
    """``base ** exponent`` for integer and half-integer exponents."""
    exponent = Rational(exponent)
    if exponent.denominator == 1:
        return Rational(base) ** exponent.numerator
    if exponent.denominator == 2:
        return exact_sqrt(base) ** exponent.numerator
    raise ValueError(f"no rational value for {base}^{exponent}")


# ============================================================
# Built-in Contexts
# ============================================================

FLOAT_HANDLERS: HandlersType = {
    "abs": unary_only(abs),
    "negate": unary_only(operator.neg),
    "reciprocal": unary_only(lambda x: 1 / x),
    "sqr": unary_only(math.sqrt),
    "sin": unary_only(math.sin),
    "cos": unary_only(math.cos),
    "tan": unary_only(math.tan),
    "cot": unary_only(lambda x: 1 / math.tan(x)),
    "arcsin": unary_only(math.asin),
    "arccos": unary_only(math.acos),
    "arctan": unary_only(math.atan),
    "exp": first_of(unary_only(math.exp), binary_only(math.pow)),
    "ln": unary_only(math.log),
    "log": binary_only(lambda base, x: math.log(x, base)),
}

COMPLEX_HANDLERS: HandlersType = {
    "abs": unary_only(abs),
    "negate": unary_only(operator.neg),
    "reciprocal": unary_only(lambda x: 1 / x),
    "sqr": unary_only(cmath.sqrt),
    "sin": unary_only(cmath.sin),
    "cos": unary_only(cmath.cos),
    "tan": unary_only(cmath.tan),
    "cot": unary_only(lambda x: 1 / cmath.tan(x)),
    "arcsin": unary_only(cmath.asin),
    "arccos": unary_only(cmath.acos),
    "arctan": unary_only(cmath.atan),
    "exp": first_of(unary_only(cmath.exp), binary_only(operator.pow)),
    "ln": unary_only(cmath.log),
    "log": binary_only(lambda base, x: cmath.log(x, base)),
}

EXACT_HANDLERS: HandlersType = {
    "abs": unary_only(abs),
    "negate": unary_only(operator.neg),
    "reciprocal": unary_only(lambda x: 1 / Rational(x)),
    "sqr": unary_only(exact_sqrt),
    "exp": binary_only(exact_power),
}

FLOAT_CONTEXT = NumberContext(
    "float", float, FLOAT_HANDLERS,
    constants={"pi": math.pi, "e": math.e},
)

COMPLEX_CONTEXT = NumberContext(
    "complex", lambda q: complex(float(q)), COMPLEX_HANDLERS,
    constants={"pi": complex(math.pi), "e": complex(math.e), "i": 1j},
    parse_number=lambda text: complex(text.strip().replace("i", "j")),
)

EXACT_CONTEXT = NumberContext(
    "exact", lambda q: q, EXACT_HANDLERS,
    coerce=lambda value: Rational(value) if isinstance(value, (int, str)) else value,
)

CONTEXTS: Dict[str, NumberContext] = {
    "float": FLOAT_CONTEXT,
    "complex": COMPLEX_CONTEXT,
    "exact": EXACT_CONTEXT,
}
