"""
Simplification of expression trees.

ExprCalculator rewrites a tree in repeated bottom-up passes. At every
node a pass

    1. simplifies the children and rebuilds the node through the
       canonical combinators (folding, flattening, sorting),
    2. tries the function registry's fast path, and the core fraction
       rules (``0/x``, ``x/1``, ``x/x``, Leaf/Leaf reduction),
    3. otherwise applies the first active strategy that changes it.

Passes repeat until one leaves the tree unchanged or ``max_passes`` is
reached; running out of passes is not an error, the last tree is
returned.

Strategies are grouped by tag (``algebra``, ``primary``,
``trigonometric``) and some are gated by flags:

    merge_fraction   a/b + c/d -> (a*d + c*b)/(b*d)
    expand           a*(b+c) -> a*b + a*c
    fraction_to_exp  a/b -> a*exp(b, -1)

Example:
    >>> calc = ExprCalculator(flags={"merge_fraction": True})
    >>> str(calc.parse("a/(a+b) + b/(a+b)"))
    '1'
    >>> result, trace = calc.simplify(parse("x/x + 1"), trace=True)
    >>> trace.format("rules")
    'fraction'
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from .comparator import compare
from .errors import DivisionByZero
from .expression import Expression, ValueMap
from .functions import FunctionRegistry, default_registry
from .nodes import (
    Fraction, Leaf, Node, NodeType, make_fraction, make_function, make_leaf,
    make_power, make_product, make_sum, make_unary, negate, raise_power, rebuild, render,
    split_coefficient, split_power, transform,
)
from .numeric import FLOAT_CONTEXT, NumberContext
from .parser import parse
from .values import Multinomial, Term

logger = logging.getLogger(__name__)

FLAGS = ("merge_fraction", "expand", "fraction_to_exp")
TAGS = ("algebra", "primary", "trigonometric")

DEFAULT_MAX_PASSES = 100

FUNCTION_KINDS = frozenset({NodeType.UNARY, NodeType.BINARY, NodeType.NARY})

ExprLike = Union[Expression, Node]
RewriteFunc = Callable[['ExprCalculator', Node], Optional[Node]]


# ============================================================
# Strategies
# ============================================================

class Strategy:
    """A named rewrite with the node kinds it applies to and its gating."""

    def __init__(self, name: str, rewrite: RewriteFunc, kinds: Iterable[NodeType],
                 tag: str, description: str = "", requires: Optional[str] = None,
                 excludes: Optional[str] = None, functions: Iterable[str] = ()):
        self.name = name
        self.rewrite = rewrite
        self.kinds: FrozenSet[NodeType] = frozenset(kinds)
        self.tag = tag
        self.description = description
        self.requires = requires
        self.excludes = excludes
        self.functions: FrozenSet[str] = frozenset(functions)

    def applies_to(self, node: Node) -> bool:
        if node.kind not in self.kinds:
            return False
        return not self.functions or node.name in self.functions

    def __repr__(self) -> str:
        gate = ""
        if self.requires:
            gate = f" (needs {self.requires})"
        elif self.excludes:
            gate = f" (off with {self.excludes})"
        return f"{self.name} [{self.tag}]{gate}"


# Priority is registration order
BUILTIN_STRATEGIES: List[Strategy] = []


def strategy(name: str, kinds: Iterable[NodeType], tag: str, description: str = "",
             requires: Optional[str] = None, excludes: Optional[str] = None,
             functions: Iterable[str] = ()):
    """Register the decorated function as a built-in strategy."""
    def decorator(fn: RewriteFunc) -> RewriteFunc:
        BUILTIN_STRATEGIES.append(
            Strategy(name, fn, kinds, tag, description, requires, excludes, functions))
        return fn
    return decorator


def _factors(node: Node) -> Tuple[Multinomial, List[Tuple[Node, Multinomial]]]:
    """Split into a value coefficient and (base, exponent) factors."""
    if node.is_leaf:
        return node.value, []
    if node.kind is NodeType.PRODUCT:
        return node.attached_value(), [split_power(c) for c in node.children]
    return Multinomial.ONE, [split_power(node)]


def _from_factors(coefficient: Multinomial, factors: List[Tuple[Node, Multinomial]]) -> Node:
    return make_product([raise_power(base, e) for base, e in factors], coefficient)


def _addends(node: Node) -> List[Node]:
    if node.kind is NodeType.SUM:
        parts = list(node.children)
        if node.offset is not None:
            parts.append(Leaf(node.offset))
        return parts
    return [node]


def _distribute(a: Node, b: Node) -> Node:
    return make_sum([make_product([x, y]) for x in _addends(a) for y in _addends(b)])


def _is_fraction(node: Node) -> bool:
    return node.kind is NodeType.FRACTION


# ------------------------------------------------------------
# algebra
# ------------------------------------------------------------

@strategy("nested-fraction", [NodeType.FRACTION], "algebra", "(a/b)/c -> a/(b*c), a/(b/c) -> a*c/b")
def _nested_fraction(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    num, den = node.numerator, node.denominator
    if _is_fraction(num) and _is_fraction(den):
        return make_fraction(make_product([num.numerator, den.denominator]),
                             make_product([num.denominator, den.numerator]))
    if _is_fraction(num):
        return make_fraction(num.numerator, make_product([num.denominator, den]))
    if _is_fraction(den):
        return make_fraction(make_product([num, den.denominator]), den.numerator)
    return None


@strategy("cancel-factors", [NodeType.FRACTION], "algebra",
          "cancel factors and powers common to numerator and denominator")
def _cancel_factors(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    num_coefficient, num_factors = _factors(node.numerator)
    den_coefficient, den_factors = _factors(node.denominator)

    changed = False
    kept: List[Tuple[Node, Multinomial]] = []
    for base, exponent in num_factors:
        for index, (other, other_exponent) in enumerate(den_factors):
            if compare(base, other) == 0:
                changed = True
                del den_factors[index]
                net = exponent.subtract(other_exponent)
                q = net.as_rational()
                if q is not None and q < 0:
                    den_factors.append((base, net.negate()))
                elif not net.is_zero():
                    kept.append((base, net))
                break
        else:
            kept.append((base, exponent))

    n, d = Multinomial.simplify_fraction(num_coefficient, den_coefficient)
    if not changed and n == num_coefficient and d == den_coefficient:
        return None
    numerator = _from_factors(n, kept)
    denominator = _from_factors(d, den_factors)
    if denominator.is_leaf and denominator.value.is_one():
        return numerator
    return make_fraction(numerator, denominator)


@strategy("fraction-to-exp", [NodeType.FRACTION], "algebra", "a/b -> a*exp(b, -1)",
          requires="fraction_to_exp")
def _fraction_to_exp(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    coefficient, factors = _factors(node.denominator)
    if not coefficient.is_invertible_constant():
        return make_product([node.numerator, make_power(node.denominator, make_leaf(-1))])
    inverted = [raise_power(base, e.negate()) for base, e in factors]
    return make_product([node.numerator] + inverted, coefficient.reciprocal())


@strategy("reciprocal-pairs", [NodeType.PRODUCT], "algebra", "(a/b)*(b/a) -> 1")
def _reciprocal_pairs(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    children = list(node.children)
    for i, first in enumerate(children):
        if not _is_fraction(first):
            continue
        for j in range(i + 1, len(children)):
            second = children[j]
            if _is_fraction(second) and first.numerator == second.denominator \
                    and first.denominator == second.numerator:
                rest = children[:i] + children[i + 1:j] + children[j + 1:]
                return make_product(rest, node.attached_value())
    return None


@strategy("product-fractions", [NodeType.PRODUCT], "algebra", "a*(b/c) -> (a*b)/c")
def _product_fractions(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    if not any(_is_fraction(c) for c in node.children):
        return None
    numerators, denominators = [], []
    for child in node.children:
        if _is_fraction(child):
            numerators.append(child.numerator)
            denominators.append(child.denominator)
        else:
            numerators.append(child)
    return make_fraction(make_product(numerators, node.attached_value()),
                         make_product(denominators))


@strategy("expand", [NodeType.PRODUCT], "algebra", "a*(b+c) -> a*b + a*c", requires="expand")
def _expand(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    coefficient = node.attached_value()
    for index, child in enumerate(node.children):
        if child.kind is NodeType.SUM:
            rest = node.children[:index] + node.children[index + 1:]
            return _distribute(child, make_product(rest, coefficient))
    return None


@strategy("expand-power", [NodeType.BINARY], "algebra", "(a+b)^2 -> a^2 + 2*a*b + b^2",
          requires="expand", functions=["exp"])
def _expand_power(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    base, exponent = node.children
    if base.kind is not NodeType.SUM or not exponent.is_leaf:
        return None
    n = exponent.value.as_integer()
    if n is None or n < 2 or n > calc.max_expanded_power:
        return None
    result = base
    for _ in range(n - 1):
        result = _distribute(result, base)
    return result


@strategy("same-denominator", [NodeType.SUM], "algebra", "a/c + b/c -> (a+b)/c")
def _same_denominator(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    groups: Dict[Node, List[Node]] = {}
    others: List[Node] = []
    for child in node.children:
        if _is_fraction(child):
            groups.setdefault(child.denominator, []).append(child.numerator)
        else:
            others.append(child)
    if all(len(numerators) < 2 for numerators in groups.values()):
        return None
    for denominator, numerators in groups.items():
        others.append(make_fraction(make_sum(numerators), denominator))
    return make_sum(others, node.attached_value())


@strategy("merge-fractions", [NodeType.SUM], "algebra", "a/b + c/d -> (a*d + c*b)/(b*d)",
          requires="merge_fraction")
def _merge_fractions(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    fractions = [c for c in node.children if _is_fraction(c)]
    if not fractions:
        return None
    others = [c for c in node.children if not _is_fraction(c)]
    if node.offset is not None:
        others.append(Leaf(node.offset))

    denominator = make_product([f.denominator for f in fractions])
    numerators = []
    for i, f in enumerate(fractions):
        cofactors = [g.denominator for j, g in enumerate(fractions) if j != i]
        numerators.append(make_product([f.numerator] + cofactors))
    for other in others:
        numerators.append(make_product([other, denominator]))
    return make_fraction(make_sum(numerators), denominator)


@strategy("collect-factors", [NodeType.SUM], "algebra", "a*b + a*c -> a*(b+c)", excludes="expand")
def _collect_factors(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    if node.offset is not None or len(node.children) < 2:
        return None
    parts = []
    for child in node.children:
        if child.kind is NodeType.PRODUCT:
            parts.append((child.attached_value(), list(child.children)))
        else:
            parts.append((Multinomial.ONE, [child]))

    for candidate in parts[0][1]:
        if all(any(compare(candidate, f) == 0 for f in factors) for _, factors in parts[1:]):
            break
    else:
        return None

    remainders = []
    for coefficient, factors in parts:
        index = next(i for i, f in enumerate(factors) if compare(candidate, f) == 0)
        remainders.append(make_product(factors[:index] + factors[index + 1:], coefficient))
    return make_product([candidate, make_sum(remainders)])


@strategy("negate-function", [NodeType.UNARY], "algebra", "negate(x) -> -x", functions=["negate"])
def _negate_function(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    return negate(node.child)


@strategy("reciprocal-function", [NodeType.UNARY], "algebra", "reciprocal(x) -> 1/x",
          functions=["reciprocal"])
def _reciprocal_function(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    if calc.flag("fraction_to_exp"):
        return make_power(node.child, make_leaf(-1), calc.registry)
    return make_fraction(make_leaf(1), node.child)


@strategy("sqr-to-power", [NodeType.UNARY], "algebra", "sqr(x) -> exp(x, 1/2)", functions=["sqr"])
def _sqr_to_power(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    if node.child.is_leaf:
        return None
    return make_power(node.child, make_leaf(Multinomial.parse("1/2")), calc.registry)


# ------------------------------------------------------------
# primary
# ------------------------------------------------------------

@strategy("exp-ln", [NodeType.UNARY], "primary", "exp(ln(x)) -> x, exp(k*ln(x)) -> exp(x, k)",
          functions=["exp"])
def _exp_ln(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    child = node.child
    if child.kind is NodeType.UNARY and child.name == "ln":
        return child.child
    if child.kind is NodeType.PRODUCT and len(child.children) == 1:
        inner = child.children[0]
        if inner.kind is NodeType.UNARY and inner.name == "ln":
            return make_power(inner.child, Leaf(child.attached_value()), calc.registry)
    return None


@strategy("ln-exp", [NodeType.UNARY], "primary", "ln(exp(x)) -> x, ln(exp(x, y)) -> y*ln(x)",
          functions=["ln"])
def _ln_exp(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    child = node.child
    if child.name != "exp":
        return None
    if child.kind is NodeType.UNARY:
        return child.child
    if child.kind is NodeType.BINARY:
        base, exponent = child.children
        return make_product([exponent, make_unary("ln", base)])
    return None


@strategy("exp-power", [NodeType.BINARY], "primary",
          "exp(e, x) -> exp(x), exp(x, 0) -> 1, exp(x, 1) -> x, exp(exp(x, p), q) -> exp(x, p*q)",
          functions=["exp"])
def _exp_power(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    base, exponent = node.children
    if base.is_leaf and base.value == Multinomial.symbol("e"):
        return make_unary("exp", exponent)
    if exponent.is_leaf:
        if exponent.value.is_zero() and not (base.is_leaf and base.value.is_zero()):
            return make_leaf(1)
        if exponent.value.is_one():
            return base
    if base.kind is NodeType.BINARY and base.name == "exp":
        inner_base, inner_exponent = base.children
        return make_power(inner_base, make_product([inner_exponent, exponent]), calc.registry)
    return None


@strategy("exp-log", [NodeType.BINARY], "primary",
          "exp(b, log(b, y)) -> y, log(b, exp(b, y)) -> y", functions=["exp", "log"])
def _exp_log(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    base, inner = node.children
    other = "log" if node.name == "exp" else "exp"
    if inner.kind is NodeType.BINARY and inner.name == other and compare(inner.children[0], base) == 0:
        return inner.children[1]
    return None


@strategy("collect-powers", [NodeType.PRODUCT], "primary", "x*exp(x, y) -> exp(x, 1+y)")
def _collect_powers(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    parts = []
    for child in node.children:
        if child.kind is NodeType.BINARY and child.name == "exp":
            parts.append((child.children[0], child.children[1]))
        else:
            parts.append((child, make_leaf(1)))
    for i, (base, exponent) in enumerate(parts):
        for j in range(i + 1, len(parts)):
            other, other_exponent = parts[j]
            if compare(base, other) == 0:
                merged = make_power(base, make_sum([exponent, other_exponent]), calc.registry)
                rest = [c for k, c in enumerate(node.children) if k not in (i, j)]
                return make_product(rest + [merged], node.attached_value())
    return None


# ------------------------------------------------------------
# trigonometric
# ------------------------------------------------------------

@strategy("pythagorean", [NodeType.SUM], "trigonometric",
          "a*sin(x)^2 + b*cos(x)^2 -> b + (a-b)*sin(x)^2")
def _pythagorean(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    squares: Dict[str, Dict[Node, Tuple[int, Multinomial]]] = {"sin": {}, "cos": {}}
    for index, child in enumerate(node.children):
        coefficient, core = split_coefficient(child)
        base, exponent = split_power(core)
        if exponent == 2 and base.kind is NodeType.UNARY and base.name in squares:
            squares[base.name][base.child] = (index, coefficient)

    for argument, (sin_index, a) in squares["sin"].items():
        if argument not in squares["cos"]:
            continue
        cos_index, b = squares["cos"][argument]
        rest = [c for k, c in enumerate(node.children) if k not in (sin_index, cos_index)]
        sine_squared = raise_power(make_unary("sin", argument), Multinomial.of(2))
        rest.append(make_product([sine_squared], a.subtract(b)))
        return make_sum(rest, node.attached_value().add(b))
    return None


@strategy("tan-cot", [NodeType.PRODUCT], "trigonometric", "tan(x)*cot(x) -> 1")
def _tan_cot(calc: 'ExprCalculator', node: Node) -> Optional[Node]:
    powers: Dict[str, Dict[Node, Tuple[int, Multinomial]]] = {"tan": {}, "cot": {}}
    for index, child in enumerate(node.children):
        base, exponent = split_power(child)
        if base.kind is NodeType.UNARY and base.name in powers and exponent.as_rational() is not None:
            powers[base.name][base.child] = (index, exponent)

    for argument, (tan_index, p) in powers["tan"].items():
        if argument not in powers["cot"]:
            continue
        cot_index, q = powers["cot"][argument]
        common = min(p.as_rational(), q.as_rational())
        rest = [c for k, c in enumerate(node.children) if k not in (tan_index, cot_index)]
        rest.append(raise_power(make_unary("tan", argument), p.subtract(Multinomial.of(common))))
        rest.append(raise_power(make_unary("cot", argument), q.subtract(Multinomial.of(common))))
        return make_product([r for r in rest if not _is_unit_power(r)], node.attached_value())
    return None


def _is_unit_power(node: Node) -> bool:
    """exp(x, 0), left behind by cancelling equal powers."""
    _, exponent = split_power(node)
    return exponent.is_zero()


# ============================================================
# Core folding
# ============================================================

def _fold_fraction(node: Node) -> Optional[Node]:
    num, den = node.numerator, node.denominator
    if num.is_leaf and num.value.is_zero():
        return make_leaf(0)
    if den.is_leaf and den.value.is_one():
        return num
    if num == den:
        return make_leaf(1)
    if num.is_leaf and den.is_leaf:
        n, d = Multinomial.simplify_fraction(num.value, den.value)
        if d.is_one():
            return Leaf(n)
        if n != num.value or d != den.value:
            return Fraction(Leaf(n), Leaf(d))
        return None
    if den.is_leaf and den.value.is_invertible_constant():
        return make_product([num], den.value.reciprocal())
    return None


# ============================================================
# Trace
# ============================================================

class SimplificationStep:
    """One rewrite applied at one node."""

    def __init__(self, strategy: str, before: Node, after: Node, pass_number: int,
                 description: str = ""):
        self.strategy = strategy
        self.before = before
        self.after = after
        self.pass_number = pass_number
        self.description = description

    def __repr__(self) -> str:
        return f"{self.strategy}: {render(self.before)} -> {render(self.after)}"

    def to_dict(self) -> Dict:
        return {
            "strategy": self.strategy,
            "description": self.description,
            "pass": self.pass_number,
            "before": render(self.before),
            "after": render(self.after),
        }


class SimplificationTrace:
    """
    A trace of all rewrites applied during one simplification.

    Provides multiple formatting options:
        - format("verbose"): full details with before/after (default)
        - format("compact"): single line showing the strategy chain
        - format("rules"): just the strategy names applied
        - format("chain"): the node rewrites as a chain
        - to_dict(): JSON-serializable dictionary
    """

    def __init__(self):
        self.steps: List[SimplificationStep] = []
        self.initial: Optional[Node] = None
        self.final: Optional[Node] = None
        self.passes = 0
        self.converged = False

    def add_step(self, step: SimplificationStep):
        self.steps.append(step)

    def format(self, style: str = "verbose") -> str:
        """
        Format the trace.

        Args:
            style: One of "verbose", "compact", "rules", "chain"
        """
        if style == "compact":
            names = ", ".join(self.strategies_applied())
            return f"{render(self.initial)} --[{names}]--> {render(self.final)}"
        elif style == "rules":
            names = self.strategies_applied()
            return " -> ".join(names) if names else "(no rules applied)"
        elif style == "chain":
            if not self.steps:
                return render(self.initial)
            parts = [render(self.initial)]
            for step in self.steps:
                parts.append(f"  --({step.strategy})-->")
                parts.append(render(step.after))
            return "\n".join(parts)
        elif style == "verbose":
            return repr(self)
        raise ValueError(f"unknown trace style {style!r}")

    def __repr__(self) -> str:
        lines = [f"Initial: {render(self.initial)}"]
        for i, step in enumerate(self.steps, 1):
            if step.description:
                lines.append(f"  {i}. {step} ({step.description})")
            else:
                lines.append(f"  {i}. {step}")
        lines.append(f"Final: {render(self.final)}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __bool__(self) -> bool:
        """True if any rewriting was done."""
        return len(self.steps) > 0

    def to_dict(self) -> Dict:
        return {
            "initial": render(self.initial),
            "final": render(self.final),
            "steps": [step.to_dict() for step in self.steps],
            "step_count": len(self.steps),
            "passes": self.passes,
            "converged": self.converged,
        }

    def strategy_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for step in self.steps:
            counts[step.strategy] = counts.get(step.strategy, 0) + 1
        return counts

    def strategies_applied(self) -> List[str]:
        return [step.strategy for step in self.steps]

    def summary(self) -> str:
        if not self.steps:
            return "No rewriting performed"
        counts = self.strategy_counts()
        most_used = max(counts.items(), key=lambda x: x[1])
        return (f"{len(self.steps)} steps using {len(counts)} unique strategies "
                f"in {self.passes} passes. Most used: {most_used[0]} ({most_used[1]}x)")


# ============================================================
# Calculator
# ============================================================

class ExprCalculator:
    """
    Simplifier and arithmetic over expressions.

    Example:
        >>> calc = ExprCalculator().set_flag("expand", True)
        >>> str(calc.parse("sin(x)*(sin(x)+1)"))
        'sin(x)+exp(sin(x),2)'
    """

    max_expanded_power = 16

    def __init__(self, registry: Optional[FunctionRegistry] = None,
                 flags: Optional[Dict[str, bool]] = None,
                 tags: Optional[Iterable[str]] = None,
                 max_passes: int = DEFAULT_MAX_PASSES,
                 strategies: Optional[List[Strategy]] = None):
        self.registry = registry or default_registry()
        self._flags: Dict[str, bool] = dict.fromkeys(FLAGS, False)
        for name, value in (flags or {}).items():
            self.set_flag(name, value)
        self._tags = set()
        for tag in (TAGS if tags is None else tags):
            self.enable_tag(tag)
        if max_passes < 1:
            raise ValueError(f"max_passes must be at least 1, got {max_passes}")
        self.max_passes = max_passes
        self.strategies: List[Strategy] = list(BUILTIN_STRATEGIES if strategies is None else strategies)

    # ------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------

    def flag(self, name: str) -> bool:
        if name not in self._flags:
            raise ValueError(f"Unknown flag: {name}. Options: {', '.join(FLAGS)}")
        return self._flags[name]

    def set_flag(self, name: str, value: bool = True) -> 'ExprCalculator':
        if name not in self._flags:
            raise ValueError(f"Unknown flag: {name}. Options: {', '.join(FLAGS)}")
        self._flags[name] = bool(value)
        return self

    @property
    def flags(self) -> Dict[str, bool]:
        return dict(self._flags)

    def enable_tag(self, tag: str) -> 'ExprCalculator':
        if tag not in TAGS:
            raise ValueError(f"Unknown tag: {tag}. Options: {', '.join(TAGS)}")
        self._tags.add(tag)
        return self

    def disable_tag(self, tag: str) -> 'ExprCalculator':
        if tag not in TAGS:
            raise ValueError(f"Unknown tag: {tag}. Options: {', '.join(TAGS)}")
        self._tags.discard(tag)
        return self

    @property
    def tags(self) -> List[str]:
        return [t for t in TAGS if t in self._tags]

    def is_active(self, strategy: Strategy) -> bool:
        if strategy.tag not in self._tags:
            return False
        if strategy.requires and not self._flags.get(strategy.requires, False):
            return False
        if strategy.excludes and self._flags.get(strategy.excludes, False):
            return False
        return True

    def list_strategies(self) -> List[str]:
        """Describe every strategy, marking the inactive ones."""
        lines = []
        for s in self.strategies:
            mark = "+" if self.is_active(s) else "-"
            lines.append(f"{mark} {s!r}: {s.description}")
        return lines

    def to_dict(self) -> Dict:
        return {"flags": self.flags, "tags": self.tags, "max_passes": self.max_passes}

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict, registry: Optional[FunctionRegistry] = None) -> 'ExprCalculator':
        """
        Build a calculator from ``{"flags": {...}, "tags": [...], "max_passes": n}``.

        Every key is optional. Unknown flags or tags raise ValueError.
        """
        if not isinstance(data, dict):
            raise ValueError("configuration must be a JSON object")
        unknown = set(data) - {"flags", "tags", "max_passes"}
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        return cls(registry=registry, flags=data.get("flags"), tags=data.get("tags"),
                   max_passes=data.get("max_passes", DEFAULT_MAX_PASSES))

    @classmethod
    def from_json(cls, text: str, registry: Optional[FunctionRegistry] = None) -> 'ExprCalculator':
        return cls.from_dict(json.loads(text), registry)

    @classmethod
    def from_file(cls, path: Union[str, Path],
                  registry: Optional[FunctionRegistry] = None) -> 'ExprCalculator':
        return cls.from_json(Path(path).read_text(), registry)

    @classmethod
    def regularized(cls, registry: Optional[FunctionRegistry] = None) -> 'ExprCalculator':
        """A calculator bringing expressions to a regular form: merged and expanded."""
        return cls(registry=registry, flags={"merge_fraction": True, "expand": True})

    def copy(self) -> 'ExprCalculator':
        return ExprCalculator(self.registry, self._flags, self._tags,
                              self.max_passes, self.strategies)

    # ------------------------------------------------------------
    # Simplification
    # ------------------------------------------------------------

    def simplify(self, expr: ExprLike, trace: bool = False):
        """
        Simplify a Node or an Expression.

        Returns:
            The same kind as ``expr``; with ``trace=True`` a tuple
            ``(result, SimplificationTrace)``.
        """
        node = expr.root if isinstance(expr, Expression) else expr
        if not isinstance(node, Node):
            raise TypeError(f"cannot simplify {type(expr).__name__}")

        recorder = SimplificationTrace() if trace else None
        result = self._run(node, recorder)
        if isinstance(expr, Expression):
            result = expr if result is node else Expression(result)
        if trace:
            return result, recorder
        return result

    def _run(self, node: Node, recorder: Optional[SimplificationTrace]) -> Node:
        if recorder is not None:
            recorder.initial = node
        current = node
        converged = False
        passes = 0
        for passes in range(1, self.max_passes + 1):
            result = self._pass(current, passes, recorder)
            if result == current:
                converged = True
                break
            current = result
        if not converged:
            logger.info("stopped after %d passes without converging: %s",
                        self.max_passes, render(current, self.registry))
        if recorder is not None:
            recorder.final = current
            recorder.passes = passes
            recorder.converged = converged
        return current

    def _pass(self, node: Node, number: int, recorder: Optional[SimplificationTrace]) -> Node:
        if node.is_leaf:
            return node
        children = [self._pass(c, number, recorder) for c in node.children]
        try:
            node = rebuild(node, children, self.registry)
        except DivisionByZero as e:
            logger.debug("keeping %s: %s", render(node, self.registry), e)
            return node
        return self._rewrite(node, number, recorder)

    def _rewrite(self, node: Node, number: int, recorder: Optional[SimplificationTrace]) -> Node:
        if node.kind in FUNCTION_KINDS:
            value = self.registry.try_fast_path(node.name, node.children)
            if value is not None:
                return self._record(recorder, number, "fast-path", node, Leaf(value),
                                    f"{node.name}/{len(node.children)}")
        elif node.kind is NodeType.FRACTION:
            folded = _fold_fraction(node)
            if folded is not None:
                return self._record(recorder, number, "fraction", node, folded)

        for s in self.strategies:
            if not s.applies_to(node) or not self.is_active(s):
                continue
            try:
                result = s.rewrite(self, node)
            except DivisionByZero as e:
                logger.debug("%s skipped at %s: %s", s.name, render(node, self.registry), e)
                continue
            if result is not None and result != node:
                return self._record(recorder, number, s.name, node, result, s.description)
        return node

    def _record(self, recorder: Optional[SimplificationTrace], number: int, name: str,
                before: Node, after: Node, description: str = "") -> Node:
        logger.debug("pass %d %s: %s -> %s", number, name,
                     render(before, self.registry), render(after, self.registry))
        if recorder is not None:
            recorder.add_step(SimplificationStep(name, before, after, number, description))
        return after

    # ------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------

    def _node(self, value: Any) -> Node:
        if isinstance(value, Expression):
            return value.root
        if isinstance(value, Node):
            return value
        if isinstance(value, str):
            return parse(value, self.registry)
        return make_leaf(value)

    def _result(self, node: Node) -> Expression:
        return Expression(self._run(node, None))

    def parse(self, text: str) -> Expression:
        """Parse and simplify."""
        return self._result(parse(text, self.registry))

    def add(self, a, b) -> Expression:
        return self._result(make_sum([self._node(a), self._node(b)]))

    def subtract(self, a, b) -> Expression:
        return self._result(make_sum([self._node(a), negate(self._node(b))]))

    def multiply(self, a, b) -> Expression:
        return self._result(make_product([self._node(a), self._node(b)]))

    def divide(self, a, b) -> Expression:
        return self._result(make_fraction(self._node(a), self._node(b)))

    def negate(self, a) -> Expression:
        return self._result(negate(self._node(a)))

    def reciprocal(self, a) -> Expression:
        return self._result(make_fraction(make_leaf(1), self._node(a)))

    def power(self, base, exponent) -> Expression:
        return self._result(make_power(self._node(base), self._node(exponent), self.registry))

    def sqrt(self, a) -> Expression:
        return self._result(make_unary("sqr", self._node(a)))

    def nroot(self, a, n) -> Expression:
        """The n-th root, as ``exp(a, 1/n)``."""
        exponent = make_fraction(make_leaf(1), self._node(n))
        return self._result(make_power(self._node(a), exponent, self.registry))

    def log(self, base, a) -> Expression:
        return self._result(make_function("log", [self._node(base), self._node(a)], self.registry))

    def apply(self, name: str, *args) -> Expression:
        return self._result(make_function(name, [self._node(a) for a in args], self.registry))

    def substitute(self, expr, name: str, replacement) -> Expression:
        """Replace symbol ``name`` by ``replacement`` everywhere, then simplify."""
        replacement = self._node(replacement)

        def replace(leaf: Leaf) -> Node:
            value = leaf.value
            if not value.contains(name):
                return leaf
            if replacement.is_leaf:
                return Leaf(value.substitute(name, replacement.value))
            parts = []
            for term in value.terms:
                power = term.power_of(name)
                rest = Leaf(Multinomial([Term(term.coefficient, term.radical,
                                              [(n, p) for n, p in term.chars if n != name])]))
                if power:
                    parts.append(make_product([rest, raise_power(replacement, Multinomial.of(power))]))
                else:
                    parts.append(rest)
            return make_sum(parts)

        return self._result(transform(self._node(expr), replace, self.registry))

    def is_equal(self, a, b) -> bool:
        """True when the difference simplifies to zero or both sides simplify alike."""
        a, b = self._node(a), self._node(b)
        difference = self._run(make_sum([a, negate(b)]), None)
        if difference.is_leaf and difference.value.is_zero():
            return True
        return self._run(a, None) == self._run(b, None)

    def evaluate(self, expr, value_map: Optional[ValueMap] = None,
                 context: NumberContext = FLOAT_CONTEXT) -> Any:
        return Expression(self._node(expr)).evaluate(value_map, context)

    def __call__(self, expr: ExprLike, **kwargs):
        return self.simplify(expr, **kwargs)

    def __repr__(self) -> str:
        on = [name for name, value in self._flags.items() if value]
        return (f"ExprCalculator(flags=[{', '.join(on)}], tags=[{', '.join(self.tags)}], "
                f"max_passes={self.max_passes})")


def simplify(expr: ExprLike, trace: bool = False, **flags):
    """Simplify with a calculator configured by keyword flags."""
    return ExprCalculator(flags=flags).simplify(expr, trace=trace)
