"""Parse modifier expressions into expression trees.

An attribute value in the format file is written as a small expression::

    lowercase(combine(file("givenname.txt"), ".", file("sn.txt")))

which parses to::

    Lowercase(Combine([FileRef(givenname.txt), Literal("."), FileRef(sn.txt)]))

Grammar::

    expr          := string | modifier_call
    modifier_call := name "(" expr ("," expr)* ")"
    name          := "file" | "combine" | "lowercase" | "uppercase"
    string        := '"' chars '"'        (JSON escapes)

String literals are always literal text, including inside ``combine``; only
``file(...)`` reads from a source file.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass

from ldapfill.exceptions import ParseError
from ldapfill.models import (
    MODIFIER_NAMES,
    Combine,
    Expression,
    FileRef,
    Literal,
    Lowercase,
    Uppercase,
)
from ldapfill.sources import SourcePool

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>"(?:[^"\\]|\\.)*")
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<lparen>\()
  | (?P<rparen>\))
  | (?P<comma>,)
    """,
    re.VERBOSE | re.DOTALL,
)

_STRING_DECODER = json.JSONDecoder(strict=False)
_SURROGATE_RE = re.compile("[\ud800-\udfff]")


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    position: int


def tokenize(text: str) -> list[Token]:
    """Split *text* into tokens, dropping whitespace."""
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            if text[pos] == '"':
                raise ParseError("Unterminated string", text, pos)
            raise ParseError(f"Unexpected character {text[pos]!r}", text, pos)
        kind = match.lastgroup
        if kind != "ws":
            tokens.append(Token(kind=kind, value=match.group(), position=pos))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, text: str, sources: SourcePool) -> None:
        self.text = text
        self.sources = sources
        self.tokens = tokenize(text)
        self.index = 0

    def error(self, message: str, token: Token | None = None) -> ParseError:
        position = token.position if token is not None else len(self.text)
        return ParseError(message, self.text, position)

    def peek(self) -> Token | None:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def expect(self, kind: str, what: str) -> Token:
        token = self.peek()
        if token is None:
            raise self.error(f"Expected {what} but reached end of input")
        if token.kind != kind:
            raise self.error(f"Expected {what} but found {token.value!r}", token)
        self.index += 1
        return token

    def parse(self) -> Expression:
        if not self.tokens:
            raise self.error("Expression must not be empty")
        expr = self.expression()
        trailing = self.peek()
        if trailing is not None:
            raise self.error(f"Unexpected {trailing.value!r} after expression", trailing)
        return expr

    def expression(self) -> Expression:
        token = self.peek()
        if token is None:
            raise self.error("Expected a string or modifier but reached end of input")
        if token.kind == "string":
            self.index += 1
            return Literal(self.decode_string(token))
        if token.kind == "name":
            return self.modifier_call()
        raise self.error(f"Expected a string or modifier but found {token.value!r}", token)

    def decode_string(self, token: Token) -> str:
        try:
            value = _STRING_DECODER.decode(token.value)
        except json.JSONDecodeError as exc:
            raise ParseError(
                f"Invalid escape in string literal: {exc.msg}",
                self.text,
                token.position + exc.pos,
            ) from exc

        # paired \uXXXX escapes decode to one character; what is left cannot be encoded
        lone = _SURROGATE_RE.search(value)
        if lone is not None:
            escape = f"\\u{ord(lone.group()):04x}"
            offset = token.value.lower().find(escape)
            raise ParseError(
                f"Unpaired surrogate {escape} in string literal",
                self.text,
                token.position + max(offset, 0),
            )
        return value

    def modifier_call(self) -> Expression:
        name = self.expect("name", "modifier name")
        if name.value not in MODIFIER_NAMES:
            raise self.error(
                f"Unknown modifier {name.value!r}; expected one of {', '.join(MODIFIER_NAMES)}",
                name,
            )
        self.expect("lparen", f"'(' after {name.value}")

        args: list[tuple[Token, Expression]] = []
        while True:
            start = self.peek()
            if start is not None and start.kind == "rparen":
                if args:
                    raise self.error("Trailing comma in argument list", start)
                raise self.error(f"{name.value}() requires at least one argument", start)
            args.append((start, self.expression()))
            token = self.peek()
            if token is not None and token.kind == "comma":
                self.index += 1
                continue
            self.expect("rparen", f"',' or ')' to close {name.value}(")
            break

        return self.build(name, args)

    def build(self, name: Token, args: list[tuple[Token, Expression]]) -> Expression:
        if name.value == "combine":
            return Combine(tuple(expr for _, expr in args))

        if len(args) != 1:
            raise self.error(
                f"{name.value}() takes exactly one argument, got {len(args)}", name
            )
        arg_token, arg = args[0]

        if name.value == "lowercase":
            return Lowercase(arg)
        if name.value == "uppercase":
            return Uppercase(arg)

        if not isinstance(arg, Literal):
            raise self.error("file() argument must be a string literal", arg_token)
        try:
            source = self.sources.resolve(arg.text)
        except KeyError:
            raise self.error(f"Unknown source file {arg.text!r}", arg_token) from None
        return FileRef(source)


def parse_expression(text: str, sources: SourcePool) -> Expression:
    """Parse *text* into an :class:`~ldapfill.models.Expression`.

    ``file(...)`` arguments are resolved through *sources*, so every file is
    loaded (and validated) while parsing.

    Raises:
        ParseError: If *text* is not a valid expression or names an unknown file.
        FileError: If a referenced file cannot be loaded.
    """
    return _Parser(text, sources).parse()
