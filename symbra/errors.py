"""
Exception types raised by symbra.

Every error derives from SymbraError and from the closest built-in
exception, so callers may catch either ``SymbraError`` or the familiar
``SyntaxError`` / ``ValueError`` / ``KeyError`` / ``ZeroDivisionError``.
"""

from typing import Optional


class SymbraError(Exception):
    """Base class for all errors raised by symbra."""


class ExpressionSyntaxError(SymbraError, SyntaxError):
    """
    Malformed expression text.

    Attributes:
        msg: Human-readable description of the problem
        position: 0-based offset of the offending character in ``text``
        text: The full source text being parsed
    """

    def __init__(self, message: str, position: int, text: str = ""):
        SyntaxError.__init__(self, message, ("<expression>", 1, position + 1, text))
        self.position = position

    def pointer(self) -> str:
        """Render the source text with a caret under the offending offset."""
        return f"{self.text}\n{' ' * self.position}^"

    def __str__(self) -> str:
        return f"{self.msg} (at offset {self.position})"


class LiteralError(SymbraError, ValueError):
    """A numeric/symbolic literal could not be parsed into a value."""

    def __init__(self, message: str, position: int = 0):
        super().__init__(message)
        self.msg = message
        self.position = position

    def __str__(self) -> str:
        return f"{self.msg} (at offset {self.position})"


class UnboundSymbol(SymbraError, KeyError):
    """A symbol in the tree has no entry in the supplied value map."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"unbound symbol '{self.name}'"


class DomainError(SymbraError, ValueError):
    """An argument lies outside what the chosen numeric representation can express."""

    def __init__(self, message: str, function: Optional[str] = None):
        super().__init__(message)
        self.function = function


class DivisionByZero(SymbraError, ZeroDivisionError):
    """A denominator is known to be zero."""


class UnsupportedCalculation(SymbraError, ArithmeticError):
    """The exact-value substrate cannot represent the result of an operation."""
