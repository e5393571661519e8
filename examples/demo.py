#!/usr/bin/env python3
"""
Symbra Feature Demonstration

This script demonstrates the major features of the symbra library.
"""

from symbra import (
    ExprCalculator, Expression,
    COMPLEX_CONTEXT, EXACT_CONTEXT,
)


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def demo_canonical_form():
    """Demonstrate that equal expressions share one tree."""
    section("Canonical Form")

    pairs = [
        ("a+b", "b+a"),
        ("sin(x)*cos(y)", "cos(y)*sin(x)"),
        ("(a+b)*(a-b)", "a^2 - b^2"),
        ("2(x+1)", "2x + 2"),
    ]

    for left, right in pairs:
        a = Expression.from_string(left)
        b = Expression.from_string(right)
        print(f"  {left:16} => {a}")
        print(f"  {right:16} => {b}   equal: {a == b}")


def demo_simplify():
    """Demonstrate the default strategies."""
    section("Simplification")

    calc = ExprCalculator()
    examples = [
        "x/x + 1",
        "sin(x)/cos(x)*cos(x)/sin(x)",
        "a/(a+b) + b/(a+b)",
        "3sin(x)sin(x) + 2cos(x)cos(x)",
        "exp(ln(x))",
        "sin(pi/6)",
    ]

    for text in examples:
        print(f"  {text:32} => {calc.parse(text)}")


def demo_flags():
    """Demonstrate strategy flags."""
    section("Strategy Flags")

    text = "1/x + 1/y"
    print(f"  Expression: {text}")
    print(f"  default:        {ExprCalculator().parse(text)}")
    print(f"  merge_fraction: {ExprCalculator(flags={'merge_fraction': True}).parse(text)}")

    text = "(sin(x)+1)*(cos(x)+1)"
    print(f"\n  Expression: {text}")
    print(f"  expand:         {ExprCalculator(flags={'expand': True}).parse(text)}")


def demo_tags():
    """Demonstrate enabling and disabling strategy tags."""
    section("Strategy Tags")

    calc = ExprCalculator()
    text = "sin(x)sin(x) + cos(x)cos(x)"
    print(f"  All tags:          {calc.parse(text)}")
    calc.disable_tag("trigonometric")
    print(f"  No trigonometric:  {calc.parse(text)}")


def demo_tracing():
    """Demonstrate trace formatting."""
    section("Tracing")

    calc = ExprCalculator(flags={"merge_fraction": True})
    result, trace = calc.simplify("1/x + 1/y", trace=True)

    print("  Verbose format (default):")
    for line in str(trace).split('\n'):
        print(f"    {line}")

    print(f"\n  Compact: {trace.format('compact')}")
    print(f"  Rules: {trace.format('rules')}")
    print(f"  Summary: {trace.summary()}")


def demo_evaluate():
    """Demonstrate numeric evaluation in different contexts."""
    section("Evaluation")

    expr = Expression.from_string("x/2 + 1/3")
    print(f"  {expr} at x=1")
    print(f"    float:   {expr.evaluate({'x': 1})}")
    print(f"    exact:   {expr.evaluate({'x': 1}, EXACT_CONTEXT)}")

    root = Expression.from_string("sqr(x)")
    print(f"  {root} at x=-4")
    print(f"    complex: {root.evaluate({'x': -4}, COMPLEX_CONTEXT)}")


def demo_calculator():
    """Demonstrate the calculator operations."""
    section("Calculator Operations")

    calc = ExprCalculator()
    a = calc.parse("sin(x)")
    b = calc.parse("cos(x)")

    print(f"  add:        {calc.add(a, b)}")
    print(f"  divide:     {calc.divide(a, b)}")
    print(f"  power:      {calc.power(a, 2)}")
    print(f"  nroot:      {calc.nroot(8, 3)}  {calc.nroot('x', 3)}")
    print(f"  log:        {calc.log(2, 1024)}  {calc.log('x', 'x^3')}")
    print(f"  substitute: {calc.substitute('x^2 + sin(x)', 'x', 'pi')}")
    print(f"  is_equal:   {calc.is_equal('a/(a+b) + b/(a+b)', 1)}")


def main():
    """Run all demonstrations."""
    print("Symbra - symbolic algebra over exact values")
    print("Feature Demonstration")

    demo_canonical_form()
    demo_simplify()
    demo_flags()
    demo_tags()
    demo_tracing()
    demo_evaluate()
    demo_calculator()

    print("\n" + "="*60)
    print(" Demo complete!")
    print("="*60)


if __name__ == "__main__":
    main()
