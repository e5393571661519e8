"""
Canonical ordering of expression trees.

``compare(a, b)`` is a total order over nodes:

    1. node kind: Leaf < Sum < Product < Fraction < Unary < Binary < NAry
    2. Leaf: the value's own order
    3. otherwise: child count, then the attached value (Sum offset,
       Product coefficient), then function name, then the children
       pairwise in their stored order

Two nodes compare equal exactly when they are structurally identical,
which makes this the basis of node equality, hashing, the sorting of
Sum/Product children and the merging of duplicate terms.
"""

from functools import cmp_to_key
from typing import Iterable, List


def _sign(a, b) -> int:
    return (a > b) - (a < b)


def compare_values(a, b) -> int:
    """Compare optional attached values; a missing value sorts first."""
    if a is None or b is None:
        return _sign(a is not None, b is not None)
    return a.compare(b)


def compare(a, b) -> int:
    """Return a negative number, zero or a positive number as a <, ==, > b."""
    if a is b:
        return 0
    c = _sign(a.kind, b.kind)
    if c:
        return c
    if a.is_leaf:
        return a.value.compare(b.value)

    c = _sign(len(a.children), len(b.children))
    if c:
        return c
    c = compare_values(a.attached_value(), b.attached_value())
    if c:
        return c
    c = _sign(a.name, b.name)
    if c:
        return c
    for x, y in zip(a.children, b.children):
        c = compare(x, y)
        if c:
            return c
    return 0


node_key = cmp_to_key(compare)


def sort_nodes(nodes: Iterable) -> List:
    return sorted(nodes, key=node_key)

