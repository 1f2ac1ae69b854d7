"""Condition expression parser.

Conditions are small boolean expressions over installation facts::

    file("Foo.esp") and not active("Bar.esp")
    version("../SKSE/skse_loader.exe", "2.0.7", >=) or many("Patch.*\\.esp")

The parser produces an immutable AST that the evaluator walks. Parsing never
touches the filesystem, so it is also used to validate conditions when a
metadata file is loaded.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from pathlib import PurePosixPath
from typing import List, Union

from loadsort.exceptions import ConditionSyntaxError


class Comparator(StrEnum):
    EQUAL = "=="
    NOT_EQUAL = "!="
    LESS_THAN = "<"
    GREATER_THAN = ">"
    LESS_THAN_OR_EQUAL = "<="
    GREATER_THAN_OR_EQUAL = ">="


# Number of arguments and their kinds for each known function.
FUNCTION_SIGNATURES: dict[str, tuple[str, ...]] = {
    "file": ("path",),
    "readable": ("path",),
    "active": ("path",),
    "many": ("path",),
    "many_active": ("path",),
    "is_master": ("path",),
    "checksum": ("path", "crc"),
    "version": ("path", "string", "comparator"),
    "product_version": ("path", "string", "comparator"),
}

REGEX_CHARS = set(":\\*?|()[]+^$")


@dataclass(frozen=True)
class FunctionCall:
    name: str
    path: str
    crc: int | None = None
    version: str | None = None
    comparator: Comparator | None = None

    @property
    def is_regex(self) -> bool:
        """True if the final path component is a regular expression."""
        return is_regex_path(self.path)


@dataclass(frozen=True)
class Not:
    operand: "Expression"


@dataclass(frozen=True)
class And:
    operands: tuple["Expression", ...]


@dataclass(frozen=True)
class Or:
    operands: tuple["Expression", ...]


@dataclass(frozen=True)
class Constant:
    value: bool


Expression = Union[FunctionCall, Not, And, Or, Constant]


def is_regex_path(path: str) -> bool:
    filename = path.rsplit("/", 1)[-1]
    return any(c in REGEX_CHARS for c in filename)


def split_regex_path(path: str) -> tuple[str, str]:
    """Split a path into its literal parent directory and final component."""
    if "/" in path:
        parent, filename = path.rsplit("/", 1)
        return parent, filename
    return "", path


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>"(?:[^"\\]|\\.)*")
  | (?P<comparator>==|!=|<=|>=|<|>)
  | (?P<punct>[(),])
  | (?P<word>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<number>[0-9A-Fa-f]+)
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    position: int


def _tokenize(condition: str) -> List[_Token]:
    tokens: List[_Token] = []
    position = 0
    while position < len(condition):
        match = _TOKEN_RE.match(condition, position)
        if match is None:
            raise ConditionSyntaxError(
                condition, f"unexpected character {condition[position]!r} at position {position}"
            )
        kind = match.lastgroup or ""
        if kind != "ws":
            tokens.append(_Token(kind, match.group(), position))
        position = match.end()
    return tokens


def _unquote(text: str) -> str:
    # Only \" and \\ are escapes; other backslashes belong to regexes.
    body = text[1:-1]
    return re.sub(r'\\(["\\])', r"\1", body)


class _Parser:
    def __init__(self, condition: str):
        self.condition = condition
        self.tokens = _tokenize(condition)
        self.index = 0

    def error(self, message: str) -> ConditionSyntaxError:
        return ConditionSyntaxError(self.condition, message)

    def peek(self) -> _Token | None:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def next(self) -> _Token:
        token = self.peek()
        if token is None:
            raise self.error("unexpected end of condition")
        self.index += 1
        return token

    def expect(self, text: str) -> None:
        token = self.next()
        if token.text != text:
            raise self.error(f"expected {text!r} at position {token.position}, found {token.text!r}")

    def at_keyword(self, keyword: str) -> bool:
        token = self.peek()
        return token is not None and token.kind == "word" and token.text == keyword

    def parse(self) -> Expression:
        expression = self.parse_or()
        token = self.peek()
        if token is not None:
            raise self.error(f"unexpected {token.text!r} at position {token.position}")
        return expression

    def parse_or(self) -> Expression:
        operands = [self.parse_and()]
        while self.at_keyword("or"):
            self.next()
            operands.append(self.parse_and())
        return operands[0] if len(operands) == 1 else Or(tuple(operands))

    def parse_and(self) -> Expression:
        operands = [self.parse_unary()]
        while self.at_keyword("and"):
            self.next()
            operands.append(self.parse_unary())
        return operands[0] if len(operands) == 1 else And(tuple(operands))

    def parse_unary(self) -> Expression:
        if self.at_keyword("not"):
            self.next()
            return Not(self.parse_unary())
        token = self.peek()
        if token is not None and token.text == "(":
            self.next()
            expression = self.parse_or()
            self.expect(")")
            return expression
        return self.parse_call()

    def parse_call(self) -> FunctionCall:
        token = self.next()
        if token.kind != "word" or token.text not in FUNCTION_SIGNATURES:
            raise self.error(f"unknown function {token.text!r} at position {token.position}")
        name = token.text
        self.expect("(")

        args: list[object] = []
        for i, kind in enumerate(FUNCTION_SIGNATURES[name]):
            if i > 0:
                self.expect(",")
            args.append(self.parse_argument(kind))
        self.expect(")")

        path = str(args[0])
        self.check_path(path)
        if name == "checksum":
            return FunctionCall(name, path, crc=int(args[1]))  # type: ignore[call-overload]
        if name in ("version", "product_version"):
            return FunctionCall(name, path, version=str(args[1]), comparator=args[2])  # type: ignore[arg-type]
        if is_regex_path(path):
            self.check_regex(path)
        return FunctionCall(name, path)

    def parse_argument(self, kind: str) -> object:
        token = self.next()
        if kind in ("path", "string"):
            if token.kind != "string":
                raise self.error(f"expected a quoted string at position {token.position}")
            return _unquote(token.text)
        if kind == "crc":
            if token.kind not in ("number", "word"):
                raise self.error(f"expected a hexadecimal checksum at position {token.position}")
            try:
                return int(token.text, 16)
            except ValueError:
                raise self.error(f"invalid checksum {token.text!r}") from None
        if token.kind != "comparator":
            raise self.error(f"expected a comparison operator at position {token.position}")
        return Comparator(token.text)

    def check_path(self, path: str) -> None:
        if not path:
            raise self.error("empty path")
        if path.startswith("/") or re.match(r"^[A-Za-z]:", path):
            raise self.error(f"absolute path {path!r} is not allowed")
        # Paths are relative to the data directory; one level up reaches
        # the game directory and nothing beyond it is permitted.
        depth = 0
        parent, _ = split_regex_path(path) if is_regex_path(path) else (path, "")
        for part in PurePosixPath(parent).parts:
            if part == "..":
                depth -= 1
            elif part != ".":
                depth += 1
            if depth < -1:
                raise self.error(f"path {path!r} is outside the game directory")

    def check_regex(self, path: str) -> None:
        _, pattern = split_regex_path(path)
        try:
            re.compile(pattern)
        except re.error as exc:
            raise self.error(f"invalid regular expression {pattern!r}: {exc}") from None


def parse_condition(condition: str) -> Expression:
    """Parse a condition string into an expression tree.

    The empty (or all-whitespace) condition always holds.

    Raises:
        ConditionSyntaxError: If the condition cannot be parsed.
    """
    if not condition.strip():
        return Constant(True)
    return _Parser(condition).parse()
