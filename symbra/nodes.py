"""
Expression trees.

A tree is built from seven immutable node kinds:

    Leaf           one exact value (a Multinomial)
    Sum            children plus an optional value offset
    Product        children plus an optional value coefficient
    Fraction       numerator and denominator
    UnaryFunction  name(x)
    BinaryFunction name(x, y)
    NAryFunction   name(x, y, z, ...)

The node classes store exactly what they are given. The make_*
combinators build canonical trees: they flatten nested sums and
products, fold Leaf children into the offset/coefficient, merge
duplicate terms (``x + x = 2*x``, ``x * x = exp(x, 2)``), drop neutral
elements, degenerate single-child results and sort children with the
canonical comparator. Two trees built the same way are therefore
structurally identical, compare equal and hash equal.
"""

from enum import IntEnum
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from .comparator import compare, node_key
from .errors import DivisionByZero
from .functions import FunctionRegistry, default_registry
from .values import Multinomial, ValueLike, as_value

# Maps a symbol name to a value of the evaluation context's type
Resolver = Callable[[str], Any]

# Appended to a function name that the registry does not know
FUNCTION_MARKER = "_"


class NodeType(IntEnum):
    LEAF = 0
    SUM = 1
    PRODUCT = 2
    FRACTION = 3
    UNARY = 4
    BINARY = 5
    NARY = 6


# ============================================================
# Node kinds
# ============================================================

class Node:
    """Base class of all node kinds. Nodes are never mutated."""

    __slots__ = ('_hash',)

    kind: NodeType
    name = ""
    is_leaf = False
    children: Tuple['Node', ...] = ()

    def __init__(self):
        self._hash = None

    def attached_value(self) -> Optional[Multinomial]:
        return None

    def evaluate(self, resolve: Resolver, context: Any) -> Any:
        raise NotImplementedError

    def walk(self) -> Iterator['Node']:
        """Pre-order traversal."""
        yield self
        for child in self.children:
            yield from child.walk()

    def symbols(self) -> Set[str]:
        found: Set[str] = set()
        for node in self.walk():
            value = node.value if node.is_leaf else node.attached_value()
            if value is not None:
                found |= value.symbols()
        return found

    def function_names(self) -> Set[str]:
        return {node.name for node in self.walk() if node.name}

    def size(self) -> int:
        return sum(1 for _ in self.walk())

    def __eq__(self, other):
        if not isinstance(other, Node):
            return NotImplemented
        return compare(self, other) == 0

    def __lt__(self, other: 'Node') -> bool:
        return compare(self, other) < 0

    def __hash__(self):
        if self._hash is None:
            if self.is_leaf:
                self._hash = hash((self.kind, self.value))
            else:
                self._hash = hash((self.kind, self.name, self.attached_value(), self.children))
        return self._hash

    def __str__(self) -> str:
        return render(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}('{render(self)}')"


class Leaf(Node):
    __slots__ = ('value',)

    kind = NodeType.LEAF
    is_leaf = True

    def __init__(self, value: Multinomial):
        super().__init__()
        self.value = value

    def is_zero(self) -> bool:
        return self.value.is_zero()

    def is_one(self) -> bool:
        return self.value.is_one()

    def evaluate(self, resolve: Resolver, context: Any) -> Any:
        return self.value.evaluate(resolve, context)


class Sum(Node):
    __slots__ = ('children', 'offset')

    kind = NodeType.SUM

    def __init__(self, children: Sequence[Node], offset: Optional[Multinomial] = None):
        super().__init__()
        self.children = tuple(children)
        self.offset = None if offset is None or offset.is_zero() else offset

    def attached_value(self) -> Multinomial:
        return Multinomial.ZERO if self.offset is None else self.offset

    def evaluate(self, resolve: Resolver, context: Any) -> Any:
        total = self.attached_value().evaluate(resolve, context)
        for child in self.children:
            total = context.add(total, child.evaluate(resolve, context))
        return total


class Product(Node):
    __slots__ = ('children', 'coefficient')

    kind = NodeType.PRODUCT

    def __init__(self, children: Sequence[Node], coefficient: Optional[Multinomial] = None):
        super().__init__()
        self.children = tuple(children)
        self.coefficient = None if coefficient is None or coefficient.is_one() else coefficient

    def attached_value(self) -> Multinomial:
        return Multinomial.ONE if self.coefficient is None else self.coefficient

    def evaluate(self, resolve: Resolver, context: Any) -> Any:
        total = self.attached_value().evaluate(resolve, context)
        for child in self.children:
            total = context.multiply(total, child.evaluate(resolve, context))
        return total


class Fraction(Node):
    __slots__ = ('children',)

    kind = NodeType.FRACTION

    def __init__(self, numerator: Node, denominator: Node):
        super().__init__()
        self.children = (numerator, denominator)

    @property
    def numerator(self) -> Node:
        return self.children[0]

    @property
    def denominator(self) -> Node:
        return self.children[1]

    def evaluate(self, resolve: Resolver, context: Any) -> Any:
        return context.divide(self.numerator.evaluate(resolve, context),
                              self.denominator.evaluate(resolve, context))


class FunctionNode(Node):
    """A named function applied to its children."""

    __slots__ = ('name', 'children')

    def __init__(self, name: str, children: Sequence[Node]):
        super().__init__()
        self.name = name
        self.children = tuple(children)

    def evaluate(self, resolve: Resolver, context: Any) -> Any:
        return context.apply(self.name, [c.evaluate(resolve, context) for c in self.children])


class UnaryFunction(FunctionNode):
    __slots__ = ()
    kind = NodeType.UNARY

    @property
    def child(self) -> Node:
        return self.children[0]


class BinaryFunction(FunctionNode):
    __slots__ = ()
    kind = NodeType.BINARY


class NAryFunction(FunctionNode):
    __slots__ = ()
    kind = NodeType.NARY


# ============================================================
# Combinators
# ============================================================

def make_leaf(value: ValueLike) -> Leaf:
    return Leaf(as_value(value))


def make_symbol(name: str) -> Leaf:
    return Leaf(Multinomial.symbol(name))


def split_coefficient(node: Node) -> Tuple[Multinomial, Node]:
    """``2*sin(x)`` -> (2, sin(x)); anything else -> (1, node)."""
    if node.kind is NodeType.PRODUCT and node.coefficient is not None:
        if len(node.children) == 1:
            return node.coefficient, node.children[0]
        return node.coefficient, Product(node.children)
    return Multinomial.ONE, node


def _scale(core: Node, coefficient: Multinomial) -> Node:
    if coefficient.is_one():
        return core
    if core.kind is NodeType.PRODUCT:
        return Product(core.children, coefficient)
    return Product((core,), coefficient)


def split_power(node: Node) -> Tuple[Node, Multinomial]:
    """``exp(x, 2)`` -> (x, 2); anything else -> (node, 1)."""
    if node.kind is NodeType.BINARY and node.name == "exp" and node.children[1].is_leaf:
        return node.children[0], node.children[1].value
    return node, Multinomial.ONE


def raise_power(base: Node, exponent: Multinomial) -> Node:
    if exponent.is_one():
        return base
    return BinaryFunction("exp", (base, Leaf(exponent)))


def make_sum(children: Iterable[Node], offset: Optional[ValueLike] = None) -> Node:
    """Canonical sum of ``children`` and ``offset``."""
    total = Multinomial.ZERO if offset is None else as_value(offset)
    terms: List[Tuple[Multinomial, Node]] = []
    pending = list(children)
    while pending:
        child = pending.pop()
        if child.is_leaf:
            total = total.add(child.value)
        elif child.kind is NodeType.SUM:
            total = total.add(child.attached_value())
            pending.extend(child.children)
        else:
            terms.append(split_coefficient(child))

    terms.sort(key=lambda term: node_key(term[1]))
    merged: List[Tuple[Multinomial, Node]] = []
    for coefficient, core in terms:
        if merged and compare(merged[-1][1], core) == 0:
            merged[-1] = (merged[-1][0].add(coefficient), core)
        else:
            merged.append((coefficient, core))

    survivors = sorted((_scale(core, c) for c, core in merged if not c.is_zero()), key=node_key)
    if not survivors:
        return Leaf(total)
    if len(survivors) == 1 and total.is_zero():
        return survivors[0]
    return Sum(survivors, total)


def make_product(children: Iterable[Node], coefficient: Optional[ValueLike] = None) -> Node:
    """Canonical product of ``children`` and ``coefficient``."""
    total = Multinomial.ONE if coefficient is None else as_value(coefficient)
    factors: List[Tuple[Node, Multinomial]] = []
    pending = list(children)
    while pending:
        child = pending.pop()
        if child.is_leaf:
            total = total.multiply(child.value)
        elif child.kind is NodeType.PRODUCT:
            total = total.multiply(child.attached_value())
            pending.extend(child.children)
        else:
            factors.append(split_power(child))
    if total.is_zero():
        return Leaf(Multinomial.ZERO)

    factors.sort(key=lambda factor: node_key(factor[0]))
    merged: List[Tuple[Node, Multinomial]] = []
    for base, exponent in factors:
        if merged and compare(merged[-1][0], base) == 0:
            merged[-1] = (base, merged[-1][1].add(exponent))
        else:
            merged.append((base, exponent))

    survivors: List[Node] = []
    spilled: List[Node] = []
    for base, exponent in merged:
        if exponent.is_zero():
            continue
        factor = raise_power(base, exponent)
        if factor.is_leaf or factor.kind is NodeType.PRODUCT:
            spilled.append(factor)
        else:
            survivors.append(factor)
    if spilled:
        # exp(x*y, 1/2)^2 gives back x*y, which still has to be flattened
        return make_product(survivors + spilled, total)

    survivors.sort(key=node_key)
    if not survivors:
        return Leaf(total)
    if len(survivors) == 1 and total.is_one():
        return survivors[0]
    return Product(survivors, total)


def make_fraction(numerator: Node, denominator: Node) -> Fraction:
    if denominator.is_leaf and denominator.value.is_zero():
        raise DivisionByZero(f"{render(numerator)}/0 has a zero denominator")
    return Fraction(numerator, denominator)


def make_unary(name: str, child: Node) -> UnaryFunction:
    return UnaryFunction(name, (child,))


def make_binary(name: str, first: Node, second: Node,
                registry: Optional[FunctionRegistry] = None) -> BinaryFunction:
    """Arguments of an order-insensitive function are stored sorted."""
    registry = registry or default_registry()
    if not registry.is_order_sensitive(name, 2) and compare(second, first) < 0:
        first, second = second, first
    return BinaryFunction(name, (first, second))


def make_nary(name: str, children: Sequence[Node],
              registry: Optional[FunctionRegistry] = None) -> NAryFunction:
    if len(children) < 3:
        raise ValueError(f"an n-ary call to '{name}' needs at least 3 arguments, got {len(children)}")
    registry = registry or default_registry()
    if not registry.is_order_sensitive(name, len(children)):
        children = sorted(children, key=node_key)
    return NAryFunction(name, children)


def make_function(name: str, args: Sequence[Node],
                  registry: Optional[FunctionRegistry] = None) -> Node:
    """Dispatch on argument count to the unary, binary or n-ary combinator."""
    if not args:
        raise ValueError(f"function '{name}' needs at least one argument")
    if len(args) == 1:
        return make_unary(name, args[0])
    if len(args) == 2:
        return make_binary(name, args[0], args[1], registry)
    return make_nary(name, args, registry)


def make_power(base: Node, exponent: Node,
               registry: Optional[FunctionRegistry] = None) -> BinaryFunction:
    return make_binary("exp", base, exponent, registry)


def negate(node: Node) -> Node:
    if node.is_leaf:
        return Leaf(node.value.negate())
    if node.kind is NodeType.SUM:
        return make_sum([negate(c) for c in node.children], node.attached_value().negate())
    if node.kind is NodeType.PRODUCT:
        return make_product(node.children, node.attached_value().negate())
    return make_product([node], Multinomial.ONE.negate())


def rebuild(node: Node, children: Sequence[Node],
            registry: Optional[FunctionRegistry] = None) -> Node:
    """Rebuild ``node`` around new children through the canonical combinators."""
    kind = node.kind
    if kind is NodeType.LEAF:
        return node
    if kind is NodeType.SUM:
        return make_sum(children, node.attached_value())
    if kind is NodeType.PRODUCT:
        return make_product(children, node.attached_value())
    if kind is NodeType.FRACTION:
        return make_fraction(children[0], children[1])
    if kind is NodeType.UNARY:
        return make_unary(node.name, children[0])
    if kind is NodeType.BINARY:
        return make_binary(node.name, children[0], children[1], registry)
    return make_nary(node.name, children, registry)


def transform(node: Node, leaf_fn: Callable[[Leaf], Node],
              registry: Optional[FunctionRegistry] = None) -> Node:
    """
    Replace every Leaf by ``leaf_fn(leaf)`` and rebuild canonically.

    The offset of a Sum and the coefficient of a Product are passed
    through ``leaf_fn`` as well.
    """
    if node.is_leaf:
        return leaf_fn(node)
    children = [transform(c, leaf_fn, registry) for c in node.children]
    if node.kind is NodeType.SUM:
        return make_sum(children + [leaf_fn(Leaf(node.attached_value()))])
    if node.kind is NodeType.PRODUCT:
        return make_product(children + [leaf_fn(Leaf(node.attached_value()))])
    return rebuild(node, children, registry)


# ============================================================
# Rendering
# ============================================================

# Positions an operand can be rendered in
_TOP, _NUMERATOR, _DENOMINATOR, _FACTOR = range(4)


def render(node: Node, registry: Optional[FunctionRegistry] = None) -> str:
    """
    Render a tree as text that parses back to the same tree.

    Functions unknown to the registry get the ``_`` marker so the parser
    reads them as calls: ``f_(x)``.
    """
    return _render(node, _TOP, registry or default_registry())


def _render(node: Node, position: int, registry: FunctionRegistry) -> str:
    kind = node.kind
    if kind is NodeType.LEAF:
        return _render_leaf(node.value, position)
    if kind is NodeType.SUM:
        text = _render_sum(node, registry)
        return text if position == _TOP else f"({text})"
    if kind is NodeType.PRODUCT:
        text = _render_product(node, registry)
        return f"({text})" if position in (_DENOMINATOR, _FACTOR) else text
    if kind is NodeType.FRACTION:
        text = (_render(node.numerator, _NUMERATOR, registry) + "/"
                + _render(node.denominator, _DENOMINATOR, registry))
        return text if position == _TOP else f"({text})"

    marker = "" if registry.is_function_name(node.name) else FUNCTION_MARKER
    args = ",".join(_render(child, _TOP, registry) for child in node.children)
    return f"{node.name}{marker}({args})"


def _render_leaf(value: Multinomial, position: int) -> str:
    text = value.to_text()
    if position == _TOP:
        return text
    if len(value.terms) > 1 or "/" in text:
        return f"({text})"
    if position != _NUMERATOR and text.startswith("-"):
        return f"({text})"
    return text


def _render_sum(node: Sum, registry: FunctionRegistry) -> str:
    parts: List[str] = []
    for child in node.children:
        text = _render(child, _TOP, registry)
        if not parts:
            parts.append(text)
        elif not text.startswith("-"):
            parts.append("+" + text)
        elif child.kind in (NodeType.PRODUCT, NodeType.FRACTION):
            # "a-2*b" and "a-b/c" re-parse as a plus the negated term
            parts.append(text)
        else:
            parts.append(f"+({text})")
    if node.offset is not None:
        text = node.offset.to_text()
        parts.append(text if text.startswith("-") else "+" + text)
    return "".join(parts)


def _render_product(node: Product, registry: FunctionRegistry) -> str:
    factors = "*".join(_render(child, _FACTOR, registry) for child in node.children)
    coefficient = node.coefficient
    if coefficient is None:
        return factors
    if coefficient.negate().is_one():
        return "-" + factors
    text = coefficient.to_text()
    if len(coefficient.terms) > 1:
        text = f"({text})"
    return f"{text}*{factors}"
