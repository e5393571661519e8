"""Tests for the canonical node order."""

import itertools

from symbra.comparator import compare, compare_values, sort_nodes
from symbra.nodes import NodeType, make_leaf, make_product, make_sum, make_symbol, make_unary, render
from symbra.parser import parse
from symbra.values import Multinomial


def sign(n):
    return (n > 0) - (n < 0)


SAMPLES = [
    "5", "x+1", "2x", "sin(x)", "sin(y)", "cos(x)", "sin(x)+1", "sin(x)+2",
    "sin(x)+cos(x)", "cos(x)+sin(x)", "sin(x)+cos(x)+tan(x)", "2sin(x)",
    "3sin(x)", "sin(x)*cos(x)", "1/x", "sin(x)/cos(x)", "exp(x, 2)",
    "exp(sin(x), 2)", "f_(x, y)", "f_(x, y, z)", "g_(x, y, z)",
]


class TestKindOrder:
    """Tests for ordering by node kind."""

    def test_kind_priority(self):
        nodes = {
            NodeType.LEAF: parse("5"),
            NodeType.SUM: parse("sin(x)+1"),
            NodeType.PRODUCT: parse("2sin(x)"),
            NodeType.FRACTION: parse("1/x"),
            NodeType.UNARY: parse("sin(x)"),
            NodeType.BINARY: parse("f_(x, y)"),
            NodeType.NARY: parse("f_(x, y, z)"),
        }
        for kind, node in nodes.items():
            assert node.kind is kind
        shuffled = [nodes[k] for k in reversed(list(NodeType))]
        assert [n.kind for n in sort_nodes(shuffled)] == list(NodeType)


class TestTieBreakers:
    """Tests for ordering within one kind."""

    def test_child_count(self):
        assert compare(parse("sin(x)+cos(x)"), parse("sin(x)+cos(x)+tan(x)")) < 0

    def test_attached_value(self):
        assert compare(parse("sin(x)+1"), parse("sin(x)+2")) < 0
        assert compare(parse("2sin(x)"), parse("3sin(x)")) < 0

    def test_missing_value_sorts_first(self):
        assert compare_values(None, Multinomial.ONE) < 0
        assert compare_values(Multinomial.ONE, None) > 0
        assert compare_values(None, None) == 0

    def test_name(self):
        assert compare(parse("cos(x)"), parse("sin(x)")) < 0

    def test_children(self):
        assert compare(parse("sin(x)"), parse("sin(y)")) < 0

    def test_leaf_values(self):
        assert compare(make_leaf(1), make_leaf(2)) < 0
        assert compare(make_leaf(2), make_leaf(2)) == 0


class TestOrderProperties:
    """Totality and consistency over a sample of trees."""

    def setup_method(self):
        self.nodes = [parse(s) for s in SAMPLES]

    def test_antisymmetric(self):
        for a, b in itertools.product(self.nodes, repeat=2):
            assert sign(compare(a, b)) == -sign(compare(b, a))

    def test_transitive(self):
        for a, b, c in itertools.product(self.nodes, repeat=3):
            if compare(a, b) <= 0 and compare(b, c) <= 0:
                assert compare(a, c) <= 0

    def test_equal_iff_same_rendering(self):
        for a, b in itertools.product(self.nodes, repeat=2):
            assert (compare(a, b) == 0) == (render(a) == render(b))

    def test_equal_nodes_hash_alike(self):
        built = make_sum([make_unary("sin", make_symbol("x")), make_unary("cos", make_symbol("x"))])
        parsed = parse("cos(x)+sin(x)")
        assert compare(built, parsed) == 0
        assert built == parsed
        assert hash(built) == hash(parsed)

    def test_product_children_sorted(self):
        a = make_product([make_unary("sin", make_symbol("x")), make_unary("cos", make_symbol("x"))])
        assert [c.name for c in a.children] == ["cos", "sin"]
