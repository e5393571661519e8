"""
Expression facade.

An Expression is an immutable handle to one root Node. It is the public
entry point for building, rendering and evaluating expressions:

    >>> from symbra import Expression
    >>> expr = Expression.from_string("(a+b)*(a-b)")
    >>> str(expr)
    'a^2-b^2'
    >>> expr.evaluate({"a": 5, "b": 3})
    16.0

Python operators build raw (unsimplified) trees through the canonical
combinators; use ExprCalculator.simplify to rewrite them.
"""

from collections.abc import Mapping
from typing import Any, Callable, Optional, Set, Union

from .errors import UnboundSymbol
from .functions import FunctionRegistry
from .nodes import (
    Node, Resolver, make_fraction, make_leaf, make_product, make_symbol, make_sum, negate, render,
)
from .numeric import FLOAT_CONTEXT, NumberContext
from .parser import parse
from .values import CONSTANT_NAMES, ValueLike

# A value map is a mapping from symbol name to value, or a callable
ValueMap = Union[Mapping, Callable[[str], Any]]


def make_resolver(value_map: Optional[ValueMap], context: NumberContext) -> Resolver:
    """
    Build the symbol lookup used during evaluation.

    Symbols found in ``value_map`` are brought into ``context``. The
    constants ``pi``, ``e`` and ``i`` fall back to the context's own
    values; any other missing symbol raises UnboundSymbol.
    """
    if value_map is None:
        value_map = {}

    def resolve(name: str) -> Any:
        if isinstance(value_map, Mapping):
            if name in value_map:
                return context.accept(value_map[name])
        else:
            value = value_map(name)
            if value is not None:
                return context.accept(value)
        if name in CONSTANT_NAMES:
            return context.constant(name)
        raise UnboundSymbol(name)

    return resolve


class Expression:
    """Immutable wrapper around a root Node with a cached rendering."""

    __slots__ = ('root', '_text')

    def __init__(self, root: Node):
        if not isinstance(root, Node):
            raise TypeError(f"Expression needs a Node, got {type(root).__name__}")
        self.root = root
        self._text: Optional[str] = None

    # ------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------

    @classmethod
    def from_value(cls, value: ValueLike) -> 'Expression':
        return cls(make_leaf(value))

    of = from_value

    @classmethod
    def from_symbol(cls, name: str) -> 'Expression':
        return cls(make_symbol(name))

    @classmethod
    def from_string(cls, text: str, registry: Optional[FunctionRegistry] = None) -> 'Expression':
        return cls(parse(text, registry))

    @classmethod
    def from_node(cls, node: Node) -> 'Expression':
        return cls(node)

    # ------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------

    def evaluate(self, value_map: Optional[ValueMap] = None,
                 context: NumberContext = FLOAT_CONTEXT) -> Any:
        """
        Evaluate numerically.

        Args:
            value_map: Symbol name -> value (mapping or callable)
            context: Numeric representation to evaluate in

        Raises:
            UnboundSymbol: A symbol has no value
            DomainError: A function is undefined for its argument in ``context``
            DivisionByZero: A denominator evaluates to zero
        """
        return self.root.evaluate(make_resolver(value_map, context), context)

    def to_text(self) -> str:
        # Rendering is pure; computing it twice under a race is harmless
        text = self._text
        if text is None:
            text = render(self.root)
            self._text = text
        return text

    def symbols(self) -> Set[str]:
        return self.root.symbols()

    def is_leaf(self) -> bool:
        return self.root.is_leaf

    # ------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------

    def __add__(self, other):
        other = _as_node(other)
        return NotImplemented if other is None else Expression(make_sum([self.root, other]))

    def __radd__(self, other):
        other = _as_node(other)
        return NotImplemented if other is None else Expression(make_sum([other, self.root]))

    def __sub__(self, other):
        other = _as_node(other)
        return NotImplemented if other is None else Expression(make_sum([self.root, negate(other)]))

    def __rsub__(self, other):
        other = _as_node(other)
        return NotImplemented if other is None else Expression(make_sum([other, negate(self.root)]))

    def __mul__(self, other):
        other = _as_node(other)
        return NotImplemented if other is None else Expression(make_product([self.root, other]))

    def __rmul__(self, other):
        other = _as_node(other)
        return NotImplemented if other is None else Expression(make_product([other, self.root]))

    def __truediv__(self, other):
        other = _as_node(other)
        return NotImplemented if other is None else Expression(make_fraction(self.root, other))

    def __rtruediv__(self, other):
        other = _as_node(other)
        return NotImplemented if other is None else Expression(make_fraction(other, self.root))

    def __neg__(self):
        return Expression(negate(self.root))

    # ------------------------------------------------------------
    # Equality and display
    # ------------------------------------------------------------

    def __eq__(self, other):
        if not isinstance(other, Expression):
            return NotImplemented
        return self.root == other.root

    def __hash__(self):
        return hash(self.root)

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        return f"Expression('{self.to_text()}')"


def _as_node(value: Any) -> Optional[Node]:
    if isinstance(value, Expression):
        return value.root
    if isinstance(value, Node):
        return value
    try:
        return make_leaf(value)
    except TypeError:
        return None


ZERO = Expression.of(0)
ONE = Expression.of(1)
PI = Expression.from_symbol("pi")
E = Expression.from_symbol("e")
I = Expression.from_symbol("i")
