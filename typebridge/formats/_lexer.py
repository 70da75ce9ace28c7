"""Small tokenizer shared by the TypeScript and SureType readers.

Only the lexical subset those readers understand is supported: identifiers,
string/number/regex literals, punctuation and comments. JSDoc blocks are kept
as tokens (so declarations can pick up their documentation); other comments
are dropped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from typebridge.core.errors import MalformedTypeError

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<jsdoc>/\*\*(?!/).*?\*/)
  | (?P<block>/\*.*?\*/)
  | (?P<line>//[^\n]*)
  | (?P<string>"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*'|`(?:[^`\\]|\\.)*`)
  | (?P<number>(?:0[xX][0-9a-fA-F_]+|(?:\d[\d_]*)?\.?\d[\d_]*(?:[eE][+-]?\d+)?))
  | (?P<ident>[A-Za-z_$][\w$]*)
  | (?P<punct>\.\.\.|=>|\?\.|[{}()\[\]<>;:,.?|&=*!+\-/@#%^~])
    """,
    re.VERBOSE | re.DOTALL,
)

_REGEX_RE = re.compile(r"/(?:[^/\\\n\[]|\\.|\[(?:[^\]\\\n]|\\.)*\])+/[a-z]*")

# A "/" directly after one of these starts a regex literal rather than a division.
_REGEX_PRECEDERS = {"(", ",", "=", ":", "[", "!", "&", "|", "?", "{", "}", ";"}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    start: int
    end: int


def tokenize(source: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    while pos < len(source):
        if source[pos] == "/" and not source.startswith(("/*", "//"), pos) and _regex_allowed(tokens):
            match = _REGEX_RE.match(source, pos)
            if match:
                tokens.append(Token("regex", match.group(), pos, match.end()))
                pos = match.end()
                continue

        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise MalformedTypeError(
                f"Unexpected character {source[pos]!r}", loc={"start": pos, "end": pos + 1}
            )
        kind = match.lastgroup
        if kind not in ("ws", "block", "line"):
            tokens.append(Token(kind, match.group(), pos, match.end()))
        pos = match.end()
    return tokens


def _regex_allowed(tokens: list[Token]) -> bool:
    if not tokens:
        return True
    last = tokens[-1]
    return last.kind == "punct" and last.value in _REGEX_PRECEDERS


def unquote(literal: str) -> str:
    """Decode a JS string literal (single, double or template quoted)."""
    body = literal[1:-1]
    out: list[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 == len(body):
            out.append(ch)
            i += 1
            continue
        nxt = body[i + 1]
        if nxt == "u" and body[i + 2:i + 3] == "{":
            close = body.index("}", i)
            out.append(chr(int(body[i + 3:close], 16)))
            i = close + 1
        elif nxt == "u":
            out.append(chr(int(body[i + 2:i + 6], 16)))
            i += 6
        elif nxt == "x":
            out.append(chr(int(body[i + 2:i + 4], 16)))
            i += 4
        else:
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
    return "".join(out)


def parse_number(literal: str) -> int | float:
    text = literal.replace("_", "")
    if text.lower().startswith("0x"):
        return int(text, 16)
    value = float(text)
    return int(value) if value.is_integer() and "." not in text and "e" not in text.lower() else value


def parse_jsdoc(comment: str) -> dict[str, object]:
    """Extract description and tags (@see, @default, @example, @title) from a JSDoc block."""
    body = comment[3:-2]
    lines = [re.sub(r"^\s*\*? ?", "", line).rstrip() for line in body.splitlines()]

    description: list[str] = []
    tags: list[tuple[str, list[str]]] = []
    for line in lines:
        tag = re.match(r"@(\w+)\s*(.*)", line)
        if tag:
            tags.append((tag.group(1), [tag.group(2)] if tag.group(2) else []))
        elif tags:
            tags[-1][1].append(line)
        else:
            description.append(line)

    out: dict[str, object] = {}
    text = "\n".join(description).strip()
    if text:
        out["description"] = text
    for name, value_lines in tags:
        value = "\n".join(value_lines).strip()
        if name == "see":
            out["see"] = [*out.get("see", []), value]  # type: ignore[misc]
        elif name == "example":
            out["examples"] = [*out.get("examples", []), value]  # type: ignore[misc]
        elif name == "default":
            out["default"] = value
        elif name == "title":
            out["title"] = value
    return out


class TokenStream:
    """Cursor over a token list with the usual peek/expect helpers."""

    def __init__(self, source: str, tokens: list[Token] | None = None) -> None:
        self.source = source
        self.tokens = tokenize(source) if tokens is None else tokens
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def peek(self, offset: int = 0) -> Token | None:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def next(self) -> Token:
        token = self.peek()
        if token is None:
            raise MalformedTypeError("Unexpected end of input", loc={"start": len(self.source)})
        self.pos += 1
        return token

    def is_(self, value: str, offset: int = 0) -> bool:
        token = self.peek(offset)
        return token is not None and token.kind in ("punct", "ident") and token.value == value

    def accept(self, value: str) -> bool:
        if self.is_(value):
            self.pos += 1
            return True
        return False

    def expect(self, value: str) -> Token:
        token = self.next()
        if token.value != value or token.kind not in ("punct", "ident"):
            raise self.error(f"Expected {value!r}, got {token.value!r}", token)
        return token

    def expect_kind(self, kind: str) -> Token:
        token = self.next()
        if token.kind != kind:
            raise self.error(f"Expected {kind}, got {token.value!r}", token)
        return token

    def take_jsdoc(self) -> Token | None:
        """Consume consecutive JSDoc tokens, returning the last one."""
        doc = None
        while (token := self.peek()) is not None and token.kind == "jsdoc":
            doc = token
            self.pos += 1
        return doc

    def error(self, message: str, token: Token | None = None) -> MalformedTypeError:
        token = token or self.peek()
        loc = {"start": token.start, "end": token.end} if token else {"start": len(self.source)}
        return MalformedTypeError(message, loc=loc)

    def skip_statement(self, statement_starts: set[str]) -> None:
        """Skip to the end of the current top-level statement.

        A statement ends at a ``;`` outside brackets, or right before a
        statement keyword that begins a new line.
        """
        depth = 0
        first = True
        while (token := self.peek()) is not None:
            if token.kind == "punct":
                if token.value in ("{", "(", "["):
                    depth += 1
                elif token.value in ("}", ")", "]"):
                    depth -= 1
                elif token.value == ";" and depth <= 0:
                    self.pos += 1
                    return
            elif (
                not first
                and depth <= 0
                and token.kind == "ident"
                and token.value in statement_starts
                and self._at_line_start(token)
            ):
                return
            self.pos += 1
            first = False

    def _at_line_start(self, token: Token) -> bool:
        line_start = self.source.rfind("\n", 0, token.start) + 1
        return self.source[line_start:token.start].strip() == ""
