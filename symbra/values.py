"""
Exact-value substrate.

A Multinomial is a finite sum of terms

    c * sqr(r) * x1^p1 * ... * xn^pn

with an exact rational coefficient ``c``, a square-free integer radical
``r`` and non-zero integer powers. It backs every Leaf of an expression
tree: integers, rationals, surds such as ``sqr(2)/2`` and symbolic
monomial sums such as ``2x^2y+3`` are all Multinomials.

Symbols are single letters, plus the multi-letter constant ``pi``. The
names ``pi``, ``e`` and ``i`` are the named constants; ``i`` is reduced
on construction (``i^2 = -1``), the others are kept symbolic and only
resolved when a numeric context evaluates them.

Example:
    >>> from symbra.values import Multinomial
    >>> Multinomial.parse("2x+x")
    Multinomial('3x')
    >>> str(Multinomial.parse("i^2"))
    '-1'
"""

import math
import string
from fractions import Fraction as Rational
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from .errors import DivisionByZero, LiteralError, UnsupportedCalculation

# Type aliases
CharsType = Tuple[Tuple[str, int], ...]
ValueLike = Union['Multinomial', int, Rational, str]

CONSTANT_NAMES = ("pi", "e", "i")

DIGITS = set(string.digits)
LETTERS = set(string.ascii_letters)


def square_free(n: int) -> Tuple[int, int]:
    """Split a positive integer into ``(s, r)`` with ``n == s*s*r`` and ``r`` square-free."""
    square, rest = 1, 1
    d = 2
    while d * d <= n:
        while n % (d * d) == 0:
            n //= d * d
            square *= d
        if n % d == 0:
            n //= d
            rest *= d
        d += 1
    return square, rest * n


# ============================================================
# Term
# ============================================================

class Term:
    """
    One monomial ``coefficient * sqr(radical) * chars``.

    Terms are normalized on construction: the radical is made
    square-free, powers of the same character are merged, zero powers
    are dropped, ``i`` is reduced modulo 4 and a zero coefficient wipes
    the rest of the term.
    """

    __slots__ = ('coefficient', 'radical', 'chars')

    def __init__(self, coefficient: Union[int, Rational] = 1, radical: int = 1,
                 chars: Iterable[Tuple[str, int]] = ()):
        coefficient = Rational(coefficient)
        if radical < 1:
            raise ValueError(f"radical must be a positive integer, got {radical}")
        if radical != 1:
            square, radical = square_free(radical)
            coefficient *= square

        powers: Dict[str, int] = {}
        for name, power in chars:
            powers[name] = powers.get(name, 0) + power
        if "i" in powers:
            power = powers.pop("i") % 4
            if power >= 2:
                coefficient = -coefficient
                power -= 2
            if power:
                powers["i"] = power

        if coefficient == 0:
            radical, powers = 1, {}

        self.coefficient = coefficient
        self.radical = radical
        self.chars: CharsType = tuple(sorted((n, p) for n, p in powers.items() if p != 0))

    def is_zero(self) -> bool:
        return self.coefficient == 0

    def kind(self) -> Tuple[CharsType, int]:
        """Terms of the same kind can be added by adding coefficients."""
        return self.chars, self.radical

    def power_of(self, name: str) -> int:
        for char, power in self.chars:
            if char == name:
                return power
        return 0

    def multiply(self, other: 'Term') -> 'Term':
        g = math.gcd(self.radical, other.radical)
        radical = (self.radical // g) * (other.radical // g)
        return Term(self.coefficient * other.coefficient * g, radical, self.chars + other.chars)

    def reciprocal(self) -> 'Term':
        if self.is_zero():
            raise DivisionByZero("reciprocal of zero")
        # 1/(c*sqr(r)) == sqr(r)/(c*r)
        return Term(1 / (self.coefficient * self.radical), self.radical,
                    [(name, -power) for name, power in self.chars])

    def sqrt(self) -> 'Term':
        """Exact square root, or UnsupportedCalculation when there is none."""
        if self.is_zero():
            return self
        if self.radical != 1 or any(power % 2 for _, power in self.chars):
            raise UnsupportedCalculation(f"no exact square root of {self.to_text()}")
        chars = [(name, power // 2) for name, power in self.chars]
        c = self.coefficient
        if c < 0:
            chars.append(("i", 1))
            c = -c
        square, rest = square_free(c.numerator * c.denominator)
        return Term(Rational(square, c.denominator), rest, chars)

    def to_text(self) -> str:
        """Render the absolute value of the term; the sign is left to the caller."""
        c = abs(self.coefficient)
        num, den = c.numerator, c.denominator
        body = ""
        if self.radical != 1:
            body = f"sqr({self.radical})"
        chars_text, separator = _chars_text(self.chars)
        if body and chars_text:
            body += separator + chars_text
        else:
            body = body or chars_text

        if not body:
            text = str(num)
        elif num == 1:
            text = body
        else:
            text = f"{num}{separator}{body}"
        if den != 1:
            text += f"/{den}"
        return text

    def __eq__(self, other):
        if not isinstance(other, Term):
            return NotImplemented
        return (self.coefficient, self.radical, self.chars) == \
            (other.coefficient, other.radical, other.chars)

    def __hash__(self):
        return hash((self.coefficient, self.radical, self.chars))

    def __repr__(self) -> str:
        sign = "-" if self.coefficient < 0 else ""
        return f"Term('{sign}{self.to_text()}')"


def _chars_text(chars: CharsType) -> Tuple[str, str]:
    """Render characters; multi-letter names force explicit '*' separators."""
    separator = "" if all(len(name) == 1 or name == "pi" for name, _ in chars) else "*"
    parts = [name if power == 1 else f"{name}^{power}" for name, power in chars]
    return separator.join(parts), separator


# ============================================================
# Multinomial
# ============================================================

class Multinomial:
    """
    Immutable canonical sum of Terms.

    Like terms are combined, zero terms dropped and the rest sorted by
    ``(chars, radical)``, so two mathematically equal Multinomials have
    identical term tuples and compare and hash equal.
    """

    __slots__ = ('terms', '_key')

    ZERO: 'Multinomial'
    ONE: 'Multinomial'

    def __init__(self, terms: Iterable[Term] = ()):
        combined: Dict[Tuple[CharsType, int], Rational] = {}
        for term in terms:
            if term.is_zero():
                continue
            kind = term.kind()
            combined[kind] = combined.get(kind, 0) + term.coefficient
        self.terms: Tuple[Term, ...] = tuple(
            Term(coefficient, radical, chars)
            for (chars, radical), coefficient in sorted(combined.items())
            if coefficient != 0
        )
        self._key = tuple((t.chars, t.radical, t.coefficient) for t in self.terms)

    # ------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------

    @classmethod
    def of(cls, value: ValueLike) -> 'Multinomial':
        """Coerce an int, Fraction, numeric string or Multinomial."""
        if isinstance(value, Multinomial):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        if isinstance(value, bool) or not isinstance(value, (int, Rational)):
            raise TypeError(f"cannot make a Multinomial from {type(value).__name__}")
        return cls([Term(value)])

    @classmethod
    def symbol(cls, name: str) -> 'Multinomial':
        if not name or not isinstance(name, str):
            raise ValueError("symbol name must be a non-empty string")
        return cls([Term(1, 1, ((name, 1),))])

    @classmethod
    def surd(cls, coefficient: Union[int, Rational], radical: int) -> 'Multinomial':
        """``coefficient * sqr(radical)``."""
        return cls([Term(coefficient, radical)])

    @classmethod
    def parse(cls, text: str) -> 'Multinomial':
        """Parse a literal such as ``2x^2y - 3/4``; raises LiteralError."""
        return _LiteralParser(text).parse()

    # ------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------

    def is_zero(self) -> bool:
        return not self.terms

    def is_one(self) -> bool:
        return self._key == (((), 1, 1),)

    def is_monomial(self) -> bool:
        return len(self.terms) == 1

    def is_constant(self) -> bool:
        """True when no term carries a character (radicals allowed)."""
        return all(not t.chars for t in self.terms)

    def is_invertible_constant(self) -> bool:
        return self.is_monomial() and self.is_constant()

    def as_rational(self) -> Optional[Rational]:
        """The value as a Fraction when it is a plain rational number."""
        if not self.terms:
            return Rational(0)
        if len(self.terms) == 1:
            term = self.terms[0]
            if not term.chars and term.radical == 1:
                return term.coefficient
        return None

    def as_integer(self) -> Optional[int]:
        q = self.as_rational()
        if q is None or q.denominator != 1:
            return None
        return q.numerator

    def symbols(self) -> Set[str]:
        """Free symbol names (the named constants are excluded)."""
        return {name for t in self.terms for name, _ in t.chars if name not in CONSTANT_NAMES}

    def contains(self, name: str) -> bool:
        return any(t.power_of(name) for t in self.terms)

    # ------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------

    def add(self, other: 'Multinomial') -> 'Multinomial':
        return Multinomial(self.terms + other.terms)

    def negate(self) -> 'Multinomial':
        return Multinomial(Term(-t.coefficient, t.radical, t.chars) for t in self.terms)

    def subtract(self, other: 'Multinomial') -> 'Multinomial':
        return self.add(other.negate())

    def multiply(self, other: 'Multinomial') -> 'Multinomial':
        return Multinomial(a.multiply(b) for a in self.terms for b in other.terms)

    def reciprocal(self) -> 'Multinomial':
        if self.is_zero():
            raise DivisionByZero("reciprocal of zero")
        if not self.is_monomial():
            raise UnsupportedCalculation(f"reciprocal of non-monomial {self}")
        return Multinomial([self.terms[0].reciprocal()])

    def divide(self, other: 'Multinomial') -> 'Multinomial':
        return self.multiply(other.reciprocal())

    def power(self, exponent: int) -> 'Multinomial':
        if exponent < 0:
            return self.reciprocal().power(-exponent)
        result = Multinomial.ONE
        base = self
        while exponent:
            if exponent & 1:
                result = result.multiply(base)
            exponent >>= 1
            if exponent:
                base = base.multiply(base)
        return result

    def sqrt(self) -> 'Multinomial':
        if self.is_zero():
            return self
        if not self.is_monomial():
            raise UnsupportedCalculation(f"no exact square root of {self}")
        return Multinomial([self.terms[0].sqrt()])

    def substitute(self, name: str, value: 'Multinomial') -> 'Multinomial':
        """Replace every occurrence of symbol ``name`` by ``value``."""
        result = Multinomial.ZERO
        for term in self.terms:
            power = term.power_of(name)
            rest = Term(term.coefficient, term.radical,
                        [(n, p) for n, p in term.chars if n != name])
            result = result.add(Multinomial([rest]).multiply(value.power(power)))
        return result

    @staticmethod
    def simplify_fraction(numerator: 'Multinomial',
                          denominator: 'Multinomial') -> Tuple['Multinomial', 'Multinomial']:
        """
        Reduce the quotient ``numerator / denominator``.

        Cancels the common rational content and the common powers of
        each character, fixes the sign of the denominator's leading term,
        and collapses the quotient when the denominator becomes an
        invertible constant. Full polynomial gcd is not attempted.

        Returns:
            (numerator, denominator) with denominator ONE when the
            quotient is itself a Multinomial.
        """
        if denominator.is_zero():
            raise DivisionByZero("fraction with a zero denominator")
        if numerator.is_zero():
            return Multinomial.ZERO, Multinomial.ONE
        if denominator.is_invertible_constant():
            return numerator.divide(denominator), Multinomial.ONE

        terms = numerator.terms + denominator.terms
        gcd_num, lcm_den = 0, 1
        for term in terms:
            gcd_num = math.gcd(gcd_num, term.coefficient.numerator)
            den = term.coefficient.denominator
            lcm_den = lcm_den * den // math.gcd(lcm_den, den)

        shift: List[Tuple[str, int]] = []
        for name in sorted({n for t in terms for n, _ in t.chars}):
            low = min(t.power_of(name) for t in terms)
            if low:
                shift.append((name, -low))

        factor = Multinomial([Term(Rational(lcm_den, gcd_num), 1, shift)])
        num, den = numerator.multiply(factor), denominator.multiply(factor)
        if den.terms[-1].coefficient < 0:
            num, den = num.negate(), den.negate()

        if num == den:
            return Multinomial.ONE, Multinomial.ONE
        if num == den.negate():
            return Multinomial.ONE.negate(), Multinomial.ONE
        if den.is_invertible_constant():
            return num.divide(den), Multinomial.ONE
        return num, den

    # ------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------

    def evaluate(self, resolve: Callable[[str], Any], context: Any) -> Any:
        """
        Evaluate in a numeric context.

        Args:
            resolve: Maps a character name to a value of the context's type
            context: A NumberContext (see symbra.numeric)
        """
        total = context.of(0)
        for term in self.terms:
            value = context.of(term.coefficient)
            if term.radical != 1:
                value = context.multiply(value, context.sqrt(context.of(term.radical)))
            for name, power in term.chars:
                value = context.multiply(value, context.power(resolve(name), power))
            total = context.add(total, value)
        return total

    # ------------------------------------------------------------
    # Ordering and equality
    # ------------------------------------------------------------

    def compare(self, other: 'Multinomial') -> int:
        a, b = self._key, other._key
        return (a > b) - (a < b)

    def __eq__(self, other):
        if isinstance(other, (int, Rational)) and not isinstance(other, bool):
            other = Multinomial.of(other)
        if not isinstance(other, Multinomial):
            return NotImplemented
        return self._key == other._key

    def __lt__(self, other: 'Multinomial') -> bool:
        return self._key < other._key

    def __hash__(self):
        q = self.as_rational()
        if q is not None:
            return hash(q)
        return hash(self._key)

    # ------------------------------------------------------------
    # Operator sugar
    # ------------------------------------------------------------

    def __add__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else self.add(other)

    __radd__ = __add__

    def __sub__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else self.subtract(other)

    def __rsub__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else other.subtract(self)

    def __mul__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else self.multiply(other)

    __rmul__ = __mul__

    def __truediv__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else self.divide(other)

    def __neg__(self):
        return self.negate()

    def __pow__(self, exponent: int):
        if not isinstance(exponent, int):
            return NotImplemented
        return self.power(exponent)

    # ------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------

    def to_text(self) -> str:
        """Highest total degree first, constants last: ``x^2+2x+1``."""
        if not self.terms:
            return "0"
        symbolic = sorted((t for t in self.terms if t.chars),
                          key=lambda t: -sum(p for _, p in t.chars))
        ordered = symbolic + [t for t in self.terms if not t.chars]
        parts = []
        for index, term in enumerate(ordered):
            text = term.to_text()
            if term.coefficient < 0:
                parts.append("-" + text)
            elif index:
                parts.append("+" + text)
            else:
                parts.append(text)
        return "".join(parts)

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        return f"Multinomial('{self.to_text()}')"


def _coerce(value: Any) -> Optional[Multinomial]:
    if isinstance(value, Multinomial):
        return value
    if isinstance(value, (int, Rational)) and not isinstance(value, bool):
        return Multinomial.of(value)
    return None


Multinomial.ZERO = Multinomial()
Multinomial.ONE = Multinomial([Term(1)])


def as_value(value: ValueLike) -> Multinomial:
    """Coerce anything Multinomial.of accepts."""
    return Multinomial.of(value)


# ============================================================
# Literal parser
# ============================================================

class _LiteralParser:
    """
    Parser for the substrate's literal syntax.

    Grammar:
        literal  := monomial (('+' | '-') monomial)*
        monomial := ('+' | '-')* power (('*' | '/')? power)*
        power    := atom ('^' ('+' | '-')? DIGITS)?
        atom     := NUMBER | 'sqr(' DIGITS ')' | 'pi' | LETTER

    Division is only allowed by a non-zero constant monomial.
    """

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def parse(self) -> Multinomial:
        self._skip()
        if self.pos >= len(self.text):
            raise LiteralError("empty literal", self.pos)
        result = self._signed_monomial()
        while True:
            self._skip()
            ch = self._peek()
            if ch is None:
                return result
            if ch not in "+-":
                raise LiteralError(f"unexpected character {ch!r}", self.pos)
            result = result.add(self._signed_monomial())

    def _peek(self) -> Optional[str]:
        return self.text[self.pos] if self.pos < len(self.text) else None

    def _skip(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _signed_monomial(self) -> Multinomial:
        negative = False
        self._skip()
        while self._peek() in ("+", "-"):
            negative ^= self.text[self.pos] == "-"
            self.pos += 1
            self._skip()
        value = self._monomial()
        return value.negate() if negative else value

    def _monomial(self) -> Multinomial:
        value = self._power()
        while True:
            self._skip()
            ch = self._peek()
            if ch == "*":
                self.pos += 1
                value = value.multiply(self._power())
            elif ch == "/":
                self.pos += 1
                self._skip()
                start = self.pos
                divisor = self._power()
                if divisor.is_zero():
                    raise DivisionByZero("division by zero in literal")
                if not divisor.is_invertible_constant():
                    raise LiteralError("a literal can only be divided by a constant", start)
                value = value.divide(divisor)
            elif ch is not None and (ch in DIGITS or ch in LETTERS or ch == "."):
                value = value.multiply(self._power())
            else:
                return value

    def _power(self) -> Multinomial:
        base = self._atom()
        if self._peek() != "^":
            return base
        self.pos += 1
        start = self.pos
        sign = 1
        if self._peek() in ("+", "-"):
            sign = -1 if self.text[self.pos] == "-" else 1
            self.pos += 1
        digits_start = self.pos
        while self._peek() is not None and self._peek() in DIGITS:
            self.pos += 1
        if self.pos == digits_start:
            raise LiteralError("expected an integer exponent after '^'", start)
        exponent = sign * int(self.text[digits_start:self.pos])
        try:
            return base.power(exponent)
        except UnsupportedCalculation:
            raise LiteralError("negative power of a non-monomial", start) from None

    def _atom(self) -> Multinomial:
        self._skip()
        start = self.pos
        ch = self._peek()
        if ch is None:
            raise LiteralError("expected a number or symbol", start)

        if ch in DIGITS or ch == ".":
            while self._peek() is not None and (self._peek() in DIGITS or self._peek() == "."):
                self.pos += 1
            token = self.text[start:self.pos]
            try:
                return Multinomial.of(Rational(token))
            except ValueError:
                raise LiteralError(f"malformed number {token!r}", start) from None

        if self.text.startswith("sqr(", self.pos):
            self.pos += 4
            digits_start = self.pos
            while self._peek() is not None and self._peek() in DIGITS:
                self.pos += 1
            if self.pos == digits_start or self._peek() != ")":
                raise LiteralError("expected 'sqr(N)' with a non-negative integer N", start)
            radicand = int(self.text[digits_start:self.pos])
            self.pos += 1
            if radicand == 0:
                return Multinomial.ZERO
            return Multinomial.surd(1, radicand)

        if self.text.startswith("pi", self.pos):
            self.pos += 2
            return Multinomial.symbol("pi")

        if ch in LETTERS:
            self.pos += 1
            return Multinomial.symbol(ch)

        raise LiteralError(f"unexpected character {ch!r}", start)
