"""
Recursive-descent parser for algebraic text.

Grammar (additive lowest precedence, left to right):

    expr    := term (('+' | '-') term)*
    term    := ('+' | '-')* factor (('*' | '/')? unary)*
    unary   := ('+' | '-')* factor
    factor  := '(' expr ')' | call | literal
    call    := prefix? NAME '_'? '(' expr (',' expr)* ')'

A leading sign applies to the whole term: ``-a*b`` is ``-(a*b)``.

A literal is a run of letters, digits, '.', '^' and signed exponents;
it is handed to ``Multinomial.parse``. When a run is immediately
followed by '(' its longest suffix that names a registered function is
read as the call (``2sin(x)`` is ``2*sin(x)``). A run ending in the
marker ``_`` forces a call to an unregistered name (``f_(x, y)``).
Anything else before '(' is an implicit multiplication
(``2(x+1)`` is ``2*(x+1)``).
``sqr(q)`` of a non-negative rational is read as the exact surd it
renders (``2sqr(3)`` is a literal, not a call).

Example:
    >>> from symbra.parser import parse
    >>> str(parse("2x + x"))
    '3x'
    >>> str(parse("sin(x)/cos(x)"))
    'sin(x)/cos(x)'
"""

import logging
import re
import string
from typing import List, Optional

from .errors import ExpressionSyntaxError, LiteralError
from .functions import FunctionRegistry, default_registry
from .nodes import (
    FUNCTION_MARKER, Leaf, Node, NodeType, make_fraction, make_function, make_product, make_sum, negate,
)
from .values import Multinomial

logger = logging.getLogger(__name__)

LITERAL_CHARS = set(string.ascii_letters + string.digits + ".^" + FUNCTION_MARKER)

SURD_NAME = "sqr"

MARKED_NAME = re.compile(r"([A-Za-z][A-Za-z0-9]*)" + re.escape(FUNCTION_MARKER) + "$")


class ExprParser:
    """Parses one text into a Node tree; create a new parser per text."""

    def __init__(self, text: str, registry: Optional[FunctionRegistry] = None):
        if not isinstance(text, str):
            raise TypeError(f"expected expression text, got {type(text).__name__}")
        self.text = text
        self.pos = 0
        self.registry = registry or default_registry()

    def parse(self) -> Node:
        self._skip()
        if self.pos >= len(self.text):
            raise self._error("empty expression", self.pos)
        node = self._expr()
        self._skip()
        ch = self._peek()
        if ch == ")":
            raise self._error("unmatched ')'", self.pos)
        if ch is not None:
            raise self._error(f"unexpected character {ch!r}", self.pos)
        return node

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------

    def _peek(self) -> Optional[str]:
        return self.text[self.pos] if self.pos < len(self.text) else None

    def _skip(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _error(self, message: str, position: int) -> ExpressionSyntaxError:
        logger.debug("parse error at offset %d in %r: %s", position, self.text, message)
        return ExpressionSyntaxError(message, position, self.text)

    # ------------------------------------------------------------
    # Grammar
    # ------------------------------------------------------------

    def _expr(self) -> Node:
        terms = [self._term()]
        while True:
            self._skip()
            ch = self._peek()
            if ch == "+":
                self.pos += 1
                terms.append(self._term())
            elif ch == "-":
                self.pos += 1
                terms.append(_negate_term(self._term()))
            else:
                break
        if len(terms) == 1:
            return terms[0]
        return make_sum(terms)

    def _term(self) -> Node:
        negative = self._sign()
        numerators = [self._factor()]
        denominators: List[Node] = []
        while True:
            self._skip()
            ch = self._peek()
            if ch == "*":
                self.pos += 1
                numerators.append(self._unary())
            elif ch == "/":
                self.pos += 1
                denominators.append(self._unary())
            elif ch is not None and (ch == "(" or ch in LITERAL_CHARS):
                # implicit multiplication
                numerators.append(self._factor())
            else:
                break
        term = _build_term(numerators, denominators)
        return _negate_term(term) if negative else term

    def _sign(self) -> bool:
        """Consume a run of '+'/'-' and report whether it is negative."""
        self._skip()
        negative = False
        while self._peek() in ("+", "-"):
            negative ^= self.text[self.pos] == "-"
            self.pos += 1
            self._skip()
        return negative

    def _unary(self) -> Node:
        negative = self._sign()
        node = self._factor()
        return negate(node) if negative else node

    def _factor(self) -> Node:
        self._skip()
        ch = self._peek()
        if ch == "(":
            return self._group()
        if ch is None:
            raise self._error("unexpected end of expression", self.pos)
        if ch in LITERAL_CHARS:
            return self._literal_or_call()
        raise self._error(f"unexpected character {ch!r}", self.pos)

    def _group(self) -> Node:
        start = self.pos
        self.pos += 1
        self._skip()
        if self._peek() == ")":
            raise self._error("empty parentheses", start)
        if self._peek() is None:
            raise self._error("missing closing parenthesis", start)
        node = self._expr()
        self._skip()
        ch = self._peek()
        if ch is None:
            raise self._error("missing closing parenthesis", start)
        if ch != ")":
            raise self._error(f"unexpected character {ch!r}", self.pos)
        self.pos += 1
        return node

    def _literal_or_call(self) -> Node:
        start = self.pos
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch in LITERAL_CHARS:
                self.pos += 1
            elif ch in "+-" and self.pos > start and self.text[self.pos - 1] == "^":
                self.pos += 1
            else:
                break
        run = self.text[start:self.pos]

        if self._peek() == "(":
            call = self._call(run, start)
            if call is not None:
                return call
        return self._literal(run, start)

    def _call(self, run: str, start: int) -> Optional[Node]:
        """Parse ``run(...)`` as a call, or return None when ``run`` names no function."""
        if run.endswith(FUNCTION_MARKER):
            match = MARKED_NAME.search(run)
            if match is None:
                raise self._error("empty function name", start + len(run) - 1)
            name, prefix = match.group(1), run[:match.start()]
        else:
            name = self.registry.longest_suffix(run)
            if name is None:
                return None
            prefix = run[:len(run) - len(name)]

        name_start = start + len(prefix)
        self.pos += 1
        args = self._arguments(name, name_start)
        call = _surd(name, args)
        if call is None:
            call = make_function(name, args, self.registry)
        if prefix:
            return make_product([self._literal(prefix, start), call])
        return call

    def _arguments(self, name: str, name_start: int) -> List[Node]:
        self._skip()
        if self._peek() == ")":
            raise self._error(f"empty argument list in call to '{name}'", self.pos)
        args: List[Node] = []
        while True:
            self._skip()
            ch = self._peek()
            if ch is None:
                raise self._error(f"unterminated call to '{name}'", name_start)
            if ch in ",)":
                raise self._error(f"empty argument in call to '{name}'", self.pos)
            args.append(self._expr())
            self._skip()
            ch = self._peek()
            if ch == ",":
                self.pos += 1
            elif ch == ")":
                self.pos += 1
                return args
            elif ch is None:
                raise self._error(f"unterminated call to '{name}'", name_start)
            else:
                raise self._error(f"unexpected character {ch!r} in call to '{name}'", self.pos)

    def _literal(self, run: str, start: int) -> Leaf:
        try:
            return Leaf(Multinomial.parse(run))
        except LiteralError as e:
            raise self._error(f"invalid literal {run!r}: {e.msg}", start + e.position) from e


def _surd(name: str, args: List[Node]) -> Optional[Leaf]:
    """``sqr(q)`` of a non-negative rational is literal syntax for a surd, as rendered."""
    if name != SURD_NAME or len(args) != 1 or not args[0].is_leaf:
        return None
    q = args[0].value.as_rational()
    if q is None or q < 0:
        return None
    return Leaf(args[0].value.sqrt())


def _negate_term(term: Node) -> Node:
    """Negate a whole term; a quotient carries the sign in its numerator."""
    if term.kind is NodeType.FRACTION:
        return make_fraction(negate(term.numerator), term.denominator)
    return negate(term)


def _build_term(numerators: List[Node], denominators: List[Node]) -> Node:
    """Combine the factors of one term; constant divisors become a coefficient."""
    if not denominators:
        if len(numerators) == 1:
            return numerators[0]
        return make_product(numerators)

    coefficient = Multinomial.ONE
    rest = []
    for denominator in denominators:
        if denominator.is_leaf and denominator.value.is_invertible_constant():
            coefficient = coefficient.divide(denominator.value)
        else:
            rest.append(denominator)

    numerator = make_product(numerators, coefficient)
    if not rest:
        return numerator
    return make_fraction(numerator, make_product(rest))


def parse(text: str, registry: Optional[FunctionRegistry] = None) -> Node:
    """
    Parse algebraic text into a canonical Node tree.

    Raises:
        ExpressionSyntaxError: Malformed text (a SyntaxError subclass
            carrying ``position``)
        DivisionByZero: A denominator is the literal zero
    """
    return ExprParser(text, registry).parse()
