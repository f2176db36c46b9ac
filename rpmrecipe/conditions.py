"""
Parse and evaluate the guards of conditional blocks
"""

from typing import NamedTuple, Union

from .exc import ParseError, UnresolvedConditionError
from .macros import MacroExpander

COMPARISON_OPS = ("==", "!=", "<", "<=", ">", ">=")
TWO_CHAR_OPS = ("&&", "||", "==", "!=", "<=", ">=")
WORD_TERMINATORS = set(" \t()<>=!&|\"")


class Term(NamedTuple):
    """A word or quoted string, possibly containing macro references."""

    text: str
    quoted: bool = False

    def __str__(self) -> str:
        return f'"{self.text}"' if self.quoted else self.text


class Unary(NamedTuple):
    op: str
    operand: "Expr"

    def __str__(self) -> str:
        return f"{self.op}({self.operand})"


class Binary(NamedTuple):
    op: str
    left: "Expr"
    right: "Expr"

    def __str__(self) -> str:
        return f"{self.left} {self.op} {self.right}"


class ArchTest(NamedTuple):
    """Guard of %ifarch/%ifnarch."""

    op: str
    arches: tuple[str, ...]

    def __str__(self) -> str:
        return " ".join(self.arches)


Expr = Union[Term, Unary, Binary, ArchTest]


def tokenize(text: str, lineno: int = None) -> list[tuple[str, str]]:
    """Split a guard expression into (kind, value) tokens."""
    tokens = []
    pos = 0
    length = len(text)
    while pos < length:
        char = text[pos]
        if char in " \t":
            pos += 1
        elif text[pos : pos + 2] in TWO_CHAR_OPS:
            tokens.append(("op", text[pos : pos + 2]))
            pos += 2
        elif char in "()<>!":
            tokens.append(("op", char))
            pos += 1
        elif char == '"':
            end = text.find('"', pos + 1)
            if end < 0:
                raise ParseError(f"Unterminated string in expression: {text}", lineno=lineno)
            tokens.append(("string", text[pos + 1 : end]))
            pos = end + 1
        elif char in "=&|":
            raise ParseError(f"Bad operator in expression: {text}", lineno=lineno)
        else:
            start = pos
            depth = 0
            while pos < length:
                char = text[pos]
                if char == "%" and pos + 1 < length:
                    if text[pos + 1] == "{":
                        depth += 1
                        pos += 2
                        continue
                    pos += 2
                    continue
                if depth:
                    if char == "{":
                        depth += 1
                    elif char == "}":
                        depth -= 1
                    pos += 1
                    continue
                if char in WORD_TERMINATORS:
                    break
                pos += 1
            if depth:
                raise ParseError(f"Unterminated macro in expression: {text}", lineno=lineno)
            tokens.append(("word", text[start:pos]))
    return tokens


class _ExpressionParser:
    def __init__(self, text: str, lineno: int = None):
        self.text = text
        self.lineno = lineno
        self.tokens = tokenize(text, lineno)
        self.pos = 0

    def error(self, msg: str) -> ParseError:
        return ParseError(f"{msg} in expression: {self.text}", lineno=self.lineno)

    def peek(self) -> tuple[str, str]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return ("end", "")

    def take(self) -> tuple[str, str]:
        token = self.peek()
        self.pos += 1
        return token

    def parse(self) -> Expr:
        if not self.tokens:
            raise self.error("Empty condition")
        expr = self.parse_or()
        if self.peek()[0] != "end":
            raise self.error(f"Unexpected {self.peek()[1]!r}")
        return expr

    def parse_or(self) -> Expr:
        expr = self.parse_and()
        while self.peek() == ("op", "||"):
            self.take()
            expr = Binary("||", expr, self.parse_and())
        return expr

    def parse_and(self) -> Expr:
        expr = self.parse_comparison()
        while self.peek() == ("op", "&&"):
            self.take()
            expr = Binary("&&", expr, self.parse_comparison())
        return expr

    def parse_comparison(self) -> Expr:
        expr = self.parse_unary()
        kind, value = self.peek()
        if kind == "op" and value in COMPARISON_OPS:
            self.take()
            expr = Binary(value, expr, self.parse_unary())
        return expr

    def parse_unary(self) -> Expr:
        if self.peek() == ("op", "!"):
            self.take()
            return Unary("!", self.parse_unary())
        return self.parse_primary()

    def parse_primary(self) -> Expr:
        kind, value = self.take()
        if (kind, value) == ("op", "("):
            expr = self.parse_or()
            if self.take() != ("op", ")"):
                raise self.error("Missing ')'")
            return expr
        if kind == "word":
            return Term(value)
        if kind == "string":
            return Term(value, quoted=True)
        raise self.error("Missing operand" if kind == "end" else f"Unexpected {value!r}")


def parse_expression(text: str, lineno: int = None) -> Expr:
    return _ExpressionParser(text.strip(), lineno).parse()


def parse_arch_test(keyword: str, text: str, lineno: int = None) -> ArchTest:
    arches = tuple(arch for arch in text.replace(",", " ").split() if arch)
    if not arches:
        raise ParseError(f"%{keyword} needs at least one architecture", lineno=lineno)
    return ArchTest(keyword, arches)


def is_negation(first: Expr, second: Expr) -> bool:
    """Check whether one guard is the structural negation of the other."""
    if isinstance(first, ArchTest) and isinstance(second, ArchTest):
        return first.op != second.op and set(first.arches) == set(second.arches)
    if isinstance(first, Unary) and first.op == "!" and first.operand == second:
        return True
    if isinstance(second, Unary) and second.op == "!" and second.operand == first:
        return True
    return False


def _value(expr: Expr, expander: MacroExpander) -> Union[int, str]:
    if isinstance(expr, Term):
        expanded = expander.expand(expr.text)
        if expr.quoted:
            return expanded
        expanded = expanded.strip()
        if not expanded:
            return 0
        try:
            return int(expanded)
        except ValueError:
            return expanded

    if isinstance(expr, Unary):
        return int(not _value(expr.operand, expander))

    if isinstance(expr, ArchTest):
        arches = set(expander.expand(" ".join(expr.arches)).split())
        matches = expander.expand("%{?_arch}") in arches
        return int(matches if expr.op == "ifarch" else not matches)

    if expr.op == "&&":
        return int(bool(_value(expr.left, expander)) and bool(_value(expr.right, expander)))
    if expr.op == "||":
        return int(bool(_value(expr.left, expander)) or bool(_value(expr.right, expander)))

    left = _value(expr.left, expander)
    right = _value(expr.right, expander)
    if type(left) is not type(right):
        raise UnresolvedConditionError(
            f"Types must match in comparison: {expr}", code="type-mismatch"
        )
    return int(
        {
            "==": left == right,
            "!=": left != right,
            "<": left < right,
            "<=": left <= right,
            ">": left > right,
            ">=": left >= right,
        }[expr.op]
    )


def evaluate(expr: Expr, expander: MacroExpander) -> bool:
    """Evaluate a guard against the macros of a build context."""
    return bool(_value(expr, expander))
