"""
Example custom functions for Symbra.

This file demonstrates how to teach symbra new functions: register
them with a FunctionRegistry so the parser recognises the names, and
extend a NumberContext so trees that call them can be evaluated.

Usage:
    python examples/custom_functions.py
"""

import math

from symbra import (
    ExprCalculator, FLOAT_CONTEXT, Multinomial,
    binary_only, default_registry, unary_only,
)


def _sinh_zero(args):
    # sinh(0) -> 0
    if args[0].is_zero():
        return Multinomial.ZERO
    return None


REGISTRY = (default_registry().copy()
    .register("sinh", 1, evaluator=_sinh_zero, description="hyperbolic sine")
    .register("cosh", 1, description="hyperbolic cosine")
    .register("hypot", 2, order_sensitive=False, description="Euclidean norm")
    .register("gcd", 2, order_sensitive=False, description="greatest common divisor"))

CONTEXT = FLOAT_CONTEXT.extend({
    "sinh": unary_only(math.sinh),
    "cosh": unary_only(math.cosh),
    "hypot": binary_only(math.hypot),
    "gcd": binary_only(lambda a, b: float(math.gcd(int(a), int(b)))),
})


def main():
    calc = ExprCalculator(registry=REGISTRY)

    for text in ["sinh(0)", "sinh(x)/sinh(x)", "hypot(y, x)", "2cosh(x) + cosh(x)"]:
        print(f"{text:20} => {calc.parse(text)}")

    expr = calc.parse("hypot(x, y) + gcd(a, b)")
    print(f"\n{expr} at x=3, y=4, a=12, b=8:")
    print(f"  {expr.evaluate({'x': 3, 'y': 4, 'a': 12, 'b': 8}, CONTEXT)}")


if __name__ == "__main__":
    main()
