"""Tests for node kinds, canonical combinators and rendering."""

from fractions import Fraction

import pytest
from symbra.errors import DivisionByZero
from symbra.functions import default_registry
from symbra.numeric import FLOAT_CONTEXT
from symbra.nodes import (
    NodeType,
    make_binary,
    make_fraction,
    make_function,
    make_leaf,
    make_nary,
    make_power,
    make_product,
    make_sum,
    make_symbol,
    make_unary,
    negate,
    rebuild,
    render,
    transform,
)
from symbra.parser import parse
from symbra.values import Multinomial


def sin(arg="x"):
    return make_unary("sin", make_symbol(arg))


def cos(arg="x"):
    return make_unary("cos", make_symbol(arg))


class TestMakeSum:
    """Tests for the canonical sum."""

    def test_flattens_nested_sums(self):
        tan = make_unary("tan", make_symbol("x"))
        nested = make_sum([make_sum([sin(), cos()]), tan])
        flat = make_sum([sin(), cos(), tan])
        assert nested == flat
        assert nested.kind is NodeType.SUM
        assert len(nested.children) == 3

    def test_constant_folding(self):
        result = make_sum([make_leaf(2), make_leaf(3)])
        assert result.is_leaf
        assert result.value == 5

    def test_leaves_fold_into_offset(self):
        result = make_sum([sin(), make_leaf(2)])
        assert result.kind is NodeType.SUM
        assert result.offset == 2
        assert result.children == (sin(),)

    def test_duplicates_merge(self):
        result = make_sum([sin(), sin()])
        assert result.kind is NodeType.PRODUCT
        assert result.coefficient == 2
        assert render(result) == "2*sin(x)"

    def test_cancellation(self):
        result = make_sum([sin(), negate(sin())])
        assert result.is_leaf
        assert result.is_zero()

    def test_single_child_degenerates(self):
        assert make_sum([sin()]) == sin()
        assert make_sum([sin()]).kind is NodeType.UNARY

    def test_empty_sum_is_zero(self):
        assert make_sum([]).is_zero()

    def test_does_not_mutate_arguments(self):
        original = parse("sin(x)+1")
        before = render(original)
        children = original.children
        make_sum([original, cos()])
        assert render(original) == before
        assert original.children is children


class TestMakeProduct:
    """Tests for the canonical product."""

    def test_leaves_multiply(self):
        result = make_product([make_symbol("x"), make_symbol("y")])
        assert result.is_leaf
        assert result.value == Multinomial.parse("xy")

    def test_equal_bases_become_power(self):
        result = make_product([sin(), sin()])
        assert result.kind is NodeType.BINARY
        assert result.name == "exp"
        assert result.children[1].value == 2

    def test_powers_cancel(self):
        result = make_product([make_power(sin(), make_leaf(2)), make_power(sin(), make_leaf(-2))])
        assert result.is_leaf
        assert result.is_one()

    def test_zero_absorbs(self):
        assert make_product([sin(), make_leaf(0)]).is_zero()

    def test_one_is_neutral(self):
        assert make_product([make_leaf(1), sin()]) == sin()

    def test_coefficient(self):
        result = make_product([sin()], 3)
        assert result.coefficient == 3

    def test_children_sorted(self):
        a = make_product([sin(), cos()])
        b = make_product([cos(), sin()])
        assert a == b
        assert [c.name for c in a.children] == ["cos", "sin"]

    def test_flattens_nested_products(self):
        inner = make_product([sin()], 2)
        result = make_product([inner, cos()], 3)
        assert result.coefficient == 6
        assert len(result.children) == 2


class TestOtherCombinators:
    """Tests for fractions and function calls."""

    def test_zero_denominator(self):
        with pytest.raises(DivisionByZero):
            make_fraction(sin(), make_leaf(0))
        with pytest.raises(ZeroDivisionError):
            make_fraction(sin(), make_leaf(0))

    def test_fraction_is_not_simplified(self):
        assert make_fraction(sin(), sin()).kind is NodeType.FRACTION

    def test_nary_needs_three_arguments(self):
        with pytest.raises(ValueError):
            make_nary("f", [sin(), cos()])

    def test_order_insensitive_arguments_sorted(self):
        registry = default_registry().copy()
        registry.register("g", 2, order_sensitive=False)
        x, y = make_symbol("x"), make_symbol("y")
        assert make_binary("g", y, x, registry).children == (x, y)
        assert make_binary("exp", y, x).children == (y, x)

    def test_make_function_dispatch(self):
        x = make_symbol("x")
        assert make_function("f", [x]).kind is NodeType.UNARY
        assert make_function("f", [x, x]).kind is NodeType.BINARY
        assert make_function("f", [x, x, x]).kind is NodeType.NARY
        with pytest.raises(ValueError):
            make_function("f", [])


class TestNegate:
    """Tests for negation."""

    def test_leaf(self):
        assert negate(make_leaf(2)).value == -2

    def test_sum(self):
        assert render(negate(parse("sin(x)+1"))) == "-sin(x)-1"

    def test_double_negation(self):
        assert negate(negate(sin())) == sin()


class TestTreeQueries:
    """Tests for traversal, symbols, hashing and evaluation."""

    def test_symbols_include_attached_values(self):
        assert parse("sin(x)+y*cos(z)").symbols() == {"x", "y", "z"}
        assert parse("pi*sin(x)").symbols() == {"x"}

    def test_function_names(self):
        assert parse("sin(x)+exp(cos(y), 2)").function_names() == {"sin", "cos", "exp"}

    def test_size(self):
        assert parse("sin(x)").size() == 2

    def test_hash_consistent_with_equality(self):
        assert len({parse("sin(x)+cos(x)"), parse("cos(x)+sin(x)")}) == 1

    def test_evaluate(self):
        assert parse("sin(x)+1").evaluate(lambda name: 0.0, FLOAT_CONTEXT) == 1.0
        assert parse("2*cos(x)").evaluate(lambda name: 0.0, FLOAT_CONTEXT) == 2.0

    def test_rebuild_is_canonical(self):
        assert rebuild(parse("sin(x)+1"), [make_leaf(2)]).value == 3

    def test_transform_reaches_offsets(self):
        x = Multinomial.symbol("x")

        def zero_x(leaf):
            if not leaf.value.contains("x"):
                return leaf
            return make_leaf(leaf.value.substitute("x", Multinomial.ZERO))

        assert parse("sin(x)+x").offset == x
        assert render(transform(parse("sin(x)+x"), zero_x)) == "sin(0)"


class TestRender:
    """Tests for the text form of trees."""

    def test_products(self):
        assert render(parse("2*sin(x)")) == "2*sin(x)"
        assert render(parse("-sin(x)")) == "-sin(x)"
        assert render(parse("(x+1)*sin(y)")) == "(x+1)*sin(y)"

    def test_sums(self):
        assert render(parse("x - 2*sin(y)")) == "-2*sin(y)+x"
        assert render(parse("cos(x) - sin(x)")) == "-sin(x)+cos(x)"

    def test_negated_quotients(self):
        assert render(parse("x - b/c")) == "-b/c+x"
        for text in ["a/b - c/d", "sin(x) - b/c", "x - (a+b)/c"]:
            rendered = render(parse(text))
            assert "+(-" not in rendered
            assert parse(rendered) == parse(text)

    def test_fractions(self):
        assert render(parse("1/(x+1)")) == "1/(x+1)"
        assert render(parse("sin(x)/(2*cos(x))")) == "sin(x)/(2*cos(x))"
        assert render(parse("(a/b)/c")) == "(a/b)/c"

    def test_leaf_in_denominator(self):
        node = make_fraction(make_leaf(1), make_leaf(Multinomial.parse("2x")))
        assert render(node) == "1/2x"
        node = make_fraction(sin(), make_leaf(Multinomial.parse("-x")))
        assert render(node) == "sin(x)/(-x)"

    def test_unknown_function_marker(self):
        assert render(parse("f_(x, y)")) == "f_(x,y)"

    def test_rational_coefficient(self):
        node = make_product([sin()], Fraction(1, 2))
        assert render(node) == "1/2*sin(x)"
        assert parse(render(node)) == node
