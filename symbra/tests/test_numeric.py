"""Tests for numeric contexts."""

import math
from fractions import Fraction

import pytest
from symbra.errors import DivisionByZero, DomainError
from symbra.numeric import (
    COMPLEX_CONTEXT,
    CONTEXTS,
    EXACT_CONTEXT,
    FLOAT_CONTEXT,
    binary_only,
    exact_power,
    exact_sqrt,
    first_of,
    unary_only,
)


class TestHandlerBuilders:
    """Tests for arity-checking handler builders."""

    def test_unary_only(self):
        handler = unary_only(abs)
        assert handler([-2]) == 2
        assert handler([1, 2]) is None

    def test_binary_only(self):
        handler = binary_only(pow)
        assert handler([2, 3]) == 8
        assert handler([2]) is None

    def test_first_of(self):
        handler = first_of(unary_only(math.exp), binary_only(math.pow))
        assert handler([0.0]) == 1.0
        assert handler([2.0, 3.0]) == 8.0
        assert handler([1.0, 2.0, 3.0]) is None


class TestFloatContext:
    """Tests for the float context."""

    def test_apply(self):
        assert FLOAT_CONTEXT.apply("sin", [0.0]) == 0.0
        assert FLOAT_CONTEXT.apply("exp", [2.0, 10.0]) == 1024.0

    def test_domain_error(self):
        with pytest.raises(DomainError) as info:
            FLOAT_CONTEXT.apply("ln", [-1.0])
        assert info.value.function == "ln"

    def test_log_to_base(self):
        assert FLOAT_CONTEXT.apply("log", [2.0, 8.0]) == pytest.approx(3.0)
        with pytest.raises(DomainError):
            FLOAT_CONTEXT.apply("log", [1.0, 5.0])
        with pytest.raises(DomainError):
            FLOAT_CONTEXT.apply("log", [2.0, -8.0])

    def test_wrong_arity(self):
        with pytest.raises(DomainError):
            FLOAT_CONTEXT.apply("exp", [1.0, 2.0, 3.0])

    def test_unknown_function(self):
        with pytest.raises(DomainError):
            FLOAT_CONTEXT.apply("sinh", [1.0])

    def test_division_by_zero(self):
        with pytest.raises(DivisionByZero):
            FLOAT_CONTEXT.divide(1.0, 0.0)

    def test_zero_to_negative_power(self):
        with pytest.raises(DivisionByZero):
            FLOAT_CONTEXT.power(0.0, -1)

    def test_overflow(self):
        with pytest.raises(DomainError):
            FLOAT_CONTEXT.power(10.0, 1000)

    def test_constants(self):
        assert FLOAT_CONTEXT.constant("pi") == math.pi
        with pytest.raises(DomainError):
            FLOAT_CONTEXT.constant("i")

    def test_parse(self):
        assert FLOAT_CONTEXT.parse("1/2") == 0.5


class TestComplexContext:
    """Tests for the complex context."""

    def test_log_of_negative(self):
        assert COMPLEX_CONTEXT.apply("ln", [-1]) == pytest.approx(math.pi * 1j)

    def test_log_to_base_of_negative(self):
        expected = complex(3, math.pi / math.log(2))
        assert COMPLEX_CONTEXT.apply("log", [2, -8]) == pytest.approx(expected)

    def test_sqrt_of_negative(self):
        assert COMPLEX_CONTEXT.sqrt(complex(-4)) == pytest.approx(2j)

    def test_imaginary_constant(self):
        assert COMPLEX_CONTEXT.constant("i") == 1j

    def test_parse(self):
        assert COMPLEX_CONTEXT.parse("2+3i") == complex(2, 3)


class TestExactContext:
    """Tests for the exact rational context."""

    def test_accept(self):
        assert EXACT_CONTEXT.accept(5) == Fraction(5)
        assert isinstance(EXACT_CONTEXT.accept(5), Fraction)
        assert EXACT_CONTEXT.accept("1/2") == Fraction(1, 2)

    def test_sqrt(self):
        assert EXACT_CONTEXT.apply("sqr", [Fraction(9, 4)]) == Fraction(3, 2)
        with pytest.raises(DomainError):
            EXACT_CONTEXT.apply("sqr", [Fraction(2)])

    def test_no_transcendental_functions(self):
        with pytest.raises(DomainError):
            EXACT_CONTEXT.apply("sin", [Fraction(0)])

    def test_exact_power(self):
        assert exact_power(4, Fraction(1, 2)) == 2
        assert exact_power(Fraction(1, 2), 3) == Fraction(1, 8)
        with pytest.raises(ValueError):
            exact_power(2, Fraction(1, 3))

    def test_exact_sqrt_negative(self):
        with pytest.raises(ValueError):
            exact_sqrt(-4)


class TestExtend:
    """Tests for adding handlers to a context."""

    def test_extend_returns_copy(self):
        ctx = FLOAT_CONTEXT.extend({"double": unary_only(lambda x: 2 * x)})
        assert ctx.apply("double", [2.0]) == 4.0
        assert ctx.supports("double")
        assert not FLOAT_CONTEXT.supports("double")

    def test_extend_keeps_constants(self):
        ctx = FLOAT_CONTEXT.extend({})
        assert ctx.constant("e") == math.e

    def test_registered_contexts(self):
        assert set(CONTEXTS) == {"float", "complex", "exact"}
