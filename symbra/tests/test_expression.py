"""Tests for the Expression facade."""

import threading
from fractions import Fraction

import pytest
from symbra.errors import DivisionByZero, DomainError, UnboundSymbol
from symbra.expression import E, I, ONE, PI, ZERO, Expression
from symbra.numeric import COMPLEX_CONTEXT, EXACT_CONTEXT
from symbra.nodes import make_symbol


class TestConstruction:
    """Tests for the ways to build an Expression."""

    def test_from_value(self):
        assert Expression.from_value(3).is_leaf()
        assert Expression.of(Fraction(1, 2)).to_text() == "1/2"

    def test_from_symbol(self):
        assert Expression.from_symbol("x").symbols() == {"x"}

    def test_from_string(self):
        assert str(Expression.from_string("sin(x)")) == "sin(x)"

    def test_from_node(self):
        node = make_symbol("x")
        assert Expression.from_node(node).root is node

    def test_rejects_non_nodes(self):
        with pytest.raises(TypeError):
            Expression("x")

    def test_constants(self):
        assert str(ZERO) == "0"
        assert str(ONE) == "1"
        assert str(PI) == "pi"
        assert str(E) == "e"
        assert I.evaluate(context=COMPLEX_CONTEXT) == 1j


class TestEvaluate:
    """Tests for numeric evaluation."""

    def test_equal_expressions_evaluate_alike(self):
        values = {"a": 5, "b": 3}
        left = Expression.from_string("(a+b)*(a-b)")
        right = Expression.from_string("a*a - b*b")
        assert left.evaluate(values) == right.evaluate(values) == 16.0
        assert left.evaluate(values, EXACT_CONTEXT) == Fraction(16)

    def test_unbound_symbol(self):
        with pytest.raises(UnboundSymbol) as info:
            Expression.from_string("x+1").evaluate({})
        assert info.value.name == "x"
        with pytest.raises(KeyError):
            Expression.from_string("x+1").evaluate()

    def test_named_constants(self):
        assert Expression.from_string("sin(pi/2)").evaluate() == pytest.approx(1.0)
        assert Expression.from_string("pi").evaluate({"pi": 3}) == 3.0

    def test_callable_value_map(self):
        assert Expression.from_string("x*y").evaluate(lambda name: 2) == 4.0

    def test_domain_error(self):
        with pytest.raises(DomainError):
            Expression.from_string("ln(x)").evaluate({"x": -1})
        with pytest.raises(DomainError):
            Expression.from_string("sqr(x)").evaluate({"x": -4})

    def test_complex_context(self):
        value = Expression.from_string("sqr(x)").evaluate({"x": -4}, COMPLEX_CONTEXT)
        assert value == pytest.approx(2j)

    def test_exact_context(self):
        value = Expression.from_string("x/2 + 1/3").evaluate({"x": 1}, EXACT_CONTEXT)
        assert value == Fraction(5, 6)
        with pytest.raises(DomainError):
            Expression.from_string("i").evaluate(context=EXACT_CONTEXT)

    def test_division_by_zero(self):
        with pytest.raises(DivisionByZero):
            Expression.from_string("1/x").evaluate({"x": 0})


class TestOperators:
    """Tests for building trees with Python operators."""

    def setup_method(self):
        self.x = Expression.from_symbol("x")
        self.sin = Expression.from_string("sin(x)")

    def test_add(self):
        assert (self.x + 1).to_text() == "x+1"
        assert (1 + self.x) == (self.x + 1)

    def test_subtract(self):
        assert (1 - self.sin).to_text() == "-sin(x)+1"
        assert (self.sin - self.sin) == ZERO

    def test_multiply(self):
        assert (self.sin * 2).to_text() == "2*sin(x)"
        assert (2 * self.sin) == (self.sin * 2)

    def test_divide(self):
        cos = Expression.from_string("cos(x)")
        assert (self.sin / cos).to_text() == "sin(x)/cos(x)"
        assert (1 / self.sin).to_text() == "1/sin(x)"
        with pytest.raises(DivisionByZero):
            self.x / 0

    def test_negate(self):
        assert -Expression.of(2) == Expression.of(-2)

    def test_strings_are_parsed(self):
        assert (self.x + "y").to_text() == "x+y"

    def test_unsupported_operand(self):
        with pytest.raises(TypeError):
            self.x + 1.5


class TestEqualityAndDisplay:
    """Tests for equality, hashing and rendering."""

    def test_equal(self):
        a = Expression.from_string("a+b")
        b = Expression.from_string("b+a")
        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_repr(self):
        assert repr(Expression.from_string("x+1")) == "Expression('x+1')"

    def test_text_is_cached(self):
        expr = Expression.from_string("sin(x)+1")
        assert expr._text is None
        first = expr.to_text()
        assert expr.to_text() is first

    def test_concurrent_rendering(self):
        expr = Expression.from_string("sin(x)*cos(y)+tan(z)")
        results = []
        threads = [threading.Thread(target=lambda: results.append(expr.to_text()))
                   for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(results) == 8
        assert set(results) == {"cos(y)*sin(x)+tan(z)"}
