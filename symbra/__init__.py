"""
Symbra - symbolic algebra over exact values

Parses algebraic text into expression trees, keeps the trees in a
canonical form so that equal expressions compare and hash alike, and
simplifies them with a configurable set of rewrite strategies.

Quick Start:
    from symbra import Expression, ExprCalculator

    calc = ExprCalculator(flags={"merge_fraction": True})
    calc.parse("a/(a+b) + b/(a+b)")          # => Expression('1')

    expr = Expression.from_string("(a+b)*(a-b)")
    expr.evaluate({"a": 5, "b": 3})          # => 16.0

Syntax:
    2x^2y - 3/4       Literals: numbers, single-letter symbols, pi, e, i
    sin(x)/cos(x)     Built-in functions: abs, arccos, arcsin, arctan,
                      cos, cot, exp, ln, log, negate, reciprocal, sin, sqr, tan
    exp(x, 2)         exp also takes (base, exponent)
    log(2, 8)         log takes (base, x)
    f_(x, y)          Calls to unregistered functions carry the '_' marker
    2(x+1)            Implicit multiplication

Strategy flags:
    merge_fraction    a/b + c/d -> (a*d + c*b)/(b*d)
    expand            a*(b+c) -> a*b + a*c
    fraction_to_exp   a/b -> a*exp(b, -1)
"""

__version__ = "0.1.0"
__author__ = "spinoza"

# Errors
from .errors import (
    SymbraError,
    ExpressionSyntaxError,
    LiteralError,
    UnboundSymbol,
    DomainError,
    DivisionByZero,
    UnsupportedCalculation,
)

# Exact values
from .values import Term, Multinomial

# Numeric contexts
from .numeric import (
    NumberContext,
    unary_only,
    binary_only,
    first_of,
    FLOAT_CONTEXT,
    COMPLEX_CONTEXT,
    EXACT_CONTEXT,
    CONTEXTS,
)

# Function registry
from .functions import FunctionSpec, FunctionRegistry, default_registry

# Trees
from .comparator import compare, node_key
from .nodes import (
    NodeType,
    Node,
    Leaf,
    Sum,
    Product,
    Fraction,
    UnaryFunction,
    BinaryFunction,
    NAryFunction,
    make_leaf,
    make_symbol,
    make_sum,
    make_product,
    make_fraction,
    make_unary,
    make_binary,
    make_nary,
    make_function,
    make_power,
    negate,
    render,
)
from .parser import ExprParser, parse

# Facade
from .expression import Expression, ZERO, ONE, PI, E, I

# Simplification
from .simplifier import (
    ExprCalculator,
    Strategy,
    SimplificationStep,
    SimplificationTrace,
    BUILTIN_STRATEGIES,
    FLAGS,
    TAGS,
    simplify,
)

# Public API
__all__ = [
    # Version
    "__version__",
    # Errors
    "SymbraError",
    "ExpressionSyntaxError",
    "LiteralError",
    "UnboundSymbol",
    "DomainError",
    "DivisionByZero",
    "UnsupportedCalculation",
    # Exact values
    "Term",
    "Multinomial",
    # Numeric contexts
    "NumberContext",
    "unary_only",
    "binary_only",
    "first_of",
    "FLOAT_CONTEXT",
    "COMPLEX_CONTEXT",
    "EXACT_CONTEXT",
    "CONTEXTS",
    # Function registry
    "FunctionSpec",
    "FunctionRegistry",
    "default_registry",
    # Comparator
    "compare",
    "node_key",
    # Nodes
    "NodeType",
    "Node",
    "Leaf",
    "Sum",
    "Product",
    "Fraction",
    "UnaryFunction",
    "BinaryFunction",
    "NAryFunction",
    # Combinators
    "make_leaf",
    "make_symbol",
    "make_sum",
    "make_product",
    "make_fraction",
    "make_unary",
    "make_binary",
    "make_nary",
    "make_function",
    "make_power",
    "negate",
    "render",
    # Parser
    "ExprParser",
    "parse",
    # Facade
    "Expression",
    "ZERO",
    "ONE",
    "PI",
    "E",
    "I",
    # Simplification
    "ExprCalculator",
    "Strategy",
    "SimplificationStep",
    "SimplificationTrace",
    "BUILTIN_STRATEGIES",
    "FLAGS",
    "TAGS",
    "simplify",
]
