"""TypeScript (ts) reader and writer.

The reader understands the declaration subset that describes data shapes:
``interface`` (with ``extends``), ``type`` aliases and ``enum`` declarations
built from primitives, literals, unions, intersections, arrays, tuples,
object literals and references. Generics, functions and classes are outside
that subset and are reported as not converted.
"""

from __future__ import annotations

import json
import os
import re
from collections.abc import Mapping
from typing import Any

from typebridge.core.errors import UnsupportedError
from typebridge.core.models import ConversionResult, NamedType, NodeDocument, annotations_of
from typebridge.formats._lexer import Token, TokenStream, parse_jsdoc, parse_number, unquote
from typebridge.interfaces.reader import Reader, ReaderOptions
from typebridge.interfaces.types import FormatId
from typebridge.interfaces.writer import Writer, WriterOptions

_KEYWORD_TYPES = {
    "string": {"type": "string"},
    "number": {"type": "number"},
    "boolean": {"type": "boolean"},
    "null": {"type": "null"},
    "any": {"type": "any"},
    "unknown": {"type": "any"},
    "object": {"type": "object", "properties": {}, "additionalProperties": True},
}
_UNSUPPORTED_KEYWORDS = {"never", "void", "bigint", "symbol", "undefined", "this"}
_STATEMENT_STARTS = {
    "export", "import", "interface", "type", "declare", "const", "let", "var",
    "function", "class", "enum", "namespace", "module", "abstract",
}
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


class _TypeScriptParser:
    def __init__(self, source: str) -> None:
        self.stream = TokenStream(source)

    def parse(self, opts: ReaderOptions) -> ConversionResult[NodeDocument]:
        stream = self.stream
        types: list[NamedType] = []
        not_converted: list[str] = []

        while not stream.at_end():
            doc = stream.take_jsdoc()
            if stream.at_end():
                break
            start = stream.pos
            stream.accept("export")
            stream.accept("declare")

            if stream.is_("interface") or stream.is_("type") or stream.is_("enum"):
                keyword = stream.next().value
                name_token = stream.expect_kind("ident")
                try:
                    node = self._declaration(keyword, name_token)
                except UnsupportedError as e:
                    opts.warn(e.message, {"loc": e.loc, "blob": name_token.value})
                    not_converted.append(name_token.value)
                    stream.pos = start
                    stream.skip_statement(_STATEMENT_STARTS)
                    continue
                if doc is not None:
                    node = {**node, **parse_jsdoc(doc.value)}
                node["title"] = node.get("title", name_token.value)
                types.append({"name": name_token.value, **node})
            else:
                stream.pos = start
                stream.skip_statement(_STATEMENT_STARTS)

        return ConversionResult(
            data=NodeDocument(types=types),
            converted_types=[t["name"] for t in types],
            not_converted_types=not_converted,
        )

    # -- declarations -------------------------------------------------------

    def _declaration(self, keyword: str, name: Token) -> dict[str, Any]:
        stream = self.stream
        if stream.is_("<"):
            raise UnsupportedError(
                f"Generic type {name.value!r} is not supported",
                loc={"start": name.start, "end": name.end},
            )

        if keyword == "interface":
            bases: list[dict[str, Any]] = []
            if stream.accept("extends"):
                bases.append(self._reference())
                while stream.accept(","):
                    bases.append(self._reference())
            stream.expect("{")
            body = self._object_body()
            return {"type": "and", "and": [*bases, body]} if bases else body

        if keyword == "enum":
            return self._enum_body()

        stream.expect("=")
        node = self._type()
        stream.accept(";")
        return node

    def _enum_body(self) -> dict[str, Any]:
        stream = self.stream
        stream.expect("{")
        values: list[Any] = []
        counter = 0
        while not stream.accept("}"):
            stream.take_jsdoc()
            member = stream.next()
            if member.kind not in ("ident", "string"):
                raise stream.error(f"Invalid enum member {member.value!r}", member)
            if stream.accept("="):
                value = self._literal_value()
                if isinstance(value, (int, float)):
                    counter = int(value) + 1
                values.append(value)
            else:
                values.append(counter)
                counter += 1
            stream.accept(",")

        kinds = {type(v) for v in values}
        if kinds == {str}:
            return {"type": "string", "enum": values}
        if kinds <= {int, float}:
            return {"type": "number", "enum": values}
        return {
            "type": "or",
            "or": [
                {"type": "string" if isinstance(v, str) else "number", "const": v}
                for v in values
            ],
        }

    def _literal_value(self) -> Any:
        stream = self.stream
        negative = stream.accept("-")
        token = stream.next()
        if token.kind == "string":
            return unquote(token.value)
        if token.kind == "number":
            value = parse_number(token.value)
            return -value if negative else value
        raise UnsupportedError(
            f"Computed enum value {token.value!r} is not supported",
            loc={"start": token.start, "end": token.end},
        )

    # -- type expressions ---------------------------------------------------

    def _type(self) -> dict[str, Any]:
        stream = self.stream
        stream.accept("|")
        members = [self._intersection()]
        while stream.accept("|"):
            members.append(self._intersection())
        return members[0] if len(members) == 1 else {"type": "or", "or": members}

    def _intersection(self) -> dict[str, Any]:
        stream = self.stream
        stream.accept("&")
        members = [self._postfix()]
        while stream.accept("&"):
            members.append(self._postfix())
        return members[0] if len(members) == 1 else {"type": "and", "and": members}

    def _postfix(self) -> dict[str, Any]:
        stream = self.stream
        node = self._primary()
        while stream.is_("[") and stream.is_("]", 1):
            stream.next()
            stream.next()
            node = {"type": "array", "elementType": node}
        return node

    def _primary(self) -> dict[str, Any]:
        stream = self.stream
        token = stream.peek()
        if token is None:
            raise stream.error("Unexpected end of input")

        if token.kind == "string":
            stream.next()
            return {"type": "string", "const": unquote(token.value)}
        if token.kind == "number" or (token.value == "-" and token.kind == "punct"):
            return {"type": "number", "const": self._literal_value()}
        if token.value == "(":
            stream.next()
            node = self._type()
            stream.expect(")")
            return node
        if token.value == "[":
            stream.next()
            return self._tuple()
        if token.value == "{":
            stream.next()
            return self._object_body()

        if token.kind != "ident":
            raise stream.error(f"Unexpected token {token.value!r}", token)

        if token.value in ("true", "false"):
            stream.next()
            return {"type": "boolean", "const": token.value == "true"}
        if token.value in _KEYWORD_TYPES:
            stream.next()
            return dict(_KEYWORD_TYPES[token.value])
        if token.value in _UNSUPPORTED_KEYWORDS or token.value in ("typeof", "keyof", "infer"):
            raise UnsupportedError(
                f"TypeScript type {token.value!r} is not supported",
                loc={"start": token.start, "end": token.end},
            )
        if token.value == "readonly":
            stream.next()
            return self._postfix()
        return self._reference()

    def _reference(self) -> dict[str, Any]:
        stream = self.stream
        first = stream.expect_kind("ident")
        name = first.value
        while stream.accept("."):
            name += "." + stream.expect_kind("ident").value

        if not stream.accept("<"):
            return {"type": "ref", "ref": name}

        args = [self._type()]
        while stream.accept(","):
            args.append(self._type())
        stream.expect(">")

        if name in ("Array", "ReadonlyArray") and len(args) == 1:
            return {"type": "array", "elementType": args[0]}
        if name == "Record" and len(args) == 2 and args[0].get("type") == "string":
            return {"type": "object", "properties": {}, "additionalProperties": args[1]}
        raise UnsupportedError(
            f"Generic type reference {name!r} is not supported",
            loc={"start": first.start, "end": first.end},
        )

    def _tuple(self) -> dict[str, Any]:
        stream = self.stream
        elements: list[dict[str, Any]] = []
        additional: Any = False
        while not stream.accept("]"):
            if stream.accept("..."):
                rest = self._tuple_member()
                additional = rest["elementType"] if rest.get("type") == "array" else {"type": "any"}
            else:
                elements.append(self._tuple_member())
            if not stream.accept(","):
                stream.expect("]")
                break
        return {"type": "tuple", "elementTypes": elements, "additionalItems": additional}

    def _tuple_member(self) -> dict[str, Any]:
        stream = self.stream
        # Named member: `name: T` or `name?: T`
        if stream.peek() and stream.peek().kind == "ident" and (
            stream.is_(":", 1) or (stream.is_("?", 1) and stream.is_(":", 2))
        ):
            stream.next()
            stream.accept("?")
            stream.expect(":")
        node = self._type()
        stream.accept("?")
        return node

    def _object_body(self) -> dict[str, Any]:
        stream = self.stream
        properties: dict[str, dict[str, Any]] = {}
        additional: Any = False

        while not stream.accept("}"):
            doc = stream.take_jsdoc()
            if stream.accept("}"):
                break
            stream.accept("readonly")

            if stream.is_("["):
                additional = self._index_signature()
            else:
                key = stream.next()
                if key.kind == "string":
                    name = unquote(key.value)
                elif key.kind in ("ident", "number"):
                    name = key.value
                else:
                    raise stream.error(f"Invalid property name {key.value!r}", key)

                optional = stream.accept("?")
                if stream.is_("(") or stream.is_("<"):
                    raise UnsupportedError(
                        f"Method signature {name!r} is not supported",
                        loc={"start": key.start, "end": key.end},
                    )
                stream.expect(":")
                node, maybe_undefined = self._property_type()
                if doc is not None:
                    node = {**node, **parse_jsdoc(doc.value)}
                properties[name] = {"node": node, "required": not (optional or maybe_undefined)}

            # Members may also be newline separated.
            stream.accept(";") or stream.accept(",")

        return {"type": "object", "properties": properties, "additionalProperties": additional}

    def _property_type(self) -> tuple[dict[str, Any], bool]:
        """Parse a member type; a ``| undefined`` member makes the property optional."""
        stream = self.stream
        stream.accept("|")
        members: list[dict[str, Any]] = []
        has_undefined = False
        while True:
            if stream.is_("undefined") and not stream.is_("[", 1):
                stream.next()
                has_undefined = True
            else:
                members.append(self._intersection())
            if not stream.accept("|"):
                break

        if not members:
            return {"type": "any"}, True
        node = members[0] if len(members) == 1 else {"type": "or", "or": members}
        return node, has_undefined

    def _index_signature(self) -> dict[str, Any]:
        stream = self.stream
        stream.expect("[")
        stream.expect_kind("ident")
        stream.expect(":")
        key_type = self._type()
        stream.expect("]")
        stream.expect(":")
        value = self._type()
        if key_type.get("type") not in ("string", "number"):
            raise stream.error("Index signature keys must be string or number")
        return value


class TypeScriptReader(Reader):
    kind = FormatId.ts

    def read(self, data: str, opts: ReaderOptions) -> ConversionResult[NodeDocument]:
        return _TypeScriptParser(data).parse(opts)


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------


class TypeScriptWriter(Writer):
    kind = FormatId.ts

    def __init__(
        self,
        declaration: bool = False,
        use_unknown: bool = False,
        disable_lint_header: bool = False,
        descriptive_header: bool = True,
        indent: str = "    ",
    ) -> None:
        self.declaration = declaration
        self.use_unknown = use_unknown
        self.disable_lint_header = disable_lint_header
        self.descriptive_header = descriptive_header
        self.indent = indent

    def write(self, doc: NodeDocument, opts: WriterOptions) -> ConversionResult[str]:
        blocks = [self.declare(named) for named in doc.types]
        header = self.header(opts)
        body = "\n\n".join(blocks)
        return ConversionResult(
            data=(header + body + "\n") if body else header,
            converted_types=doc.type_names(),
        )

    def header(self, opts: WriterOptions) -> str:
        parts: list[str] = []
        if not self.disable_lint_header:
            parts.append("/* eslint-disable */\n")
        if self.descriptive_header:
            origin = (
                f" converted from {os.path.basename(opts.source_filename)}"
                if opts.source_filename
                else " generated"
            )
            parts.append(
                "/**\n"
                f" * The types in this file were{origin} by typebridge.\n"
                " * Do not edit by hand.\n"
                " */\n"
            )
        return "".join(parts) + ("\n" if parts else "")

    def declare(self, named: Mapping[str, Any]) -> str:
        name = named["name"]
        export = "export declare" if self.declaration else "export"
        doc = self._jsdoc(named, "")
        if named["type"] == "object" and named.get("additionalProperties") in (False, None):
            body = self._object(named, "")
            return f"{doc}{export} interface {name} {body}"
        return f"{doc}{export} type {name} = {self.render(named, '')};"

    def render(self, node: Mapping[str, Any], indent: str) -> str:
        kind = node["type"]
        if kind == "any":
            return "unknown" if self.use_unknown else "any"
        if kind in ("null", "boolean", "string", "number", "integer"):
            if "const" in node:
                return _literal(node["const"])
            if "enum" in node:
                return " | ".join(_literal(v) for v in node["enum"])
            return "number" if kind == "integer" else kind
        if kind == "ref":
            return node["ref"]
        if kind == "or":
            return " | ".join(self._wrap(n, indent, ("or",)) for n in node["or"])
        if kind == "and":
            return " & ".join(self._wrap(n, indent, ("or",)) for n in node["and"])
        if kind == "array":
            element = node["elementType"]
            inner = self.render(element, indent)
            if "\n" in inner:
                return f"Array<{inner}>"
            if element["type"] in ("or", "and") or len(element.get("enum", ())) > 1:
                return f"({inner})[]"
            return f"{inner}[]"
        if kind == "tuple":
            members = [self.render(n, indent) for n in node.get("elementTypes", [])]
            extra = node.get("additionalItems", False)
            if extra is True:
                members.append(f"...{'unknown' if self.use_unknown else 'any'}[]")
            elif isinstance(extra, Mapping):
                members.append(f"...{self._wrap(extra, indent, ('or', 'and'))}[]")
            return f"[{', '.join(members)}]"
        if kind == "object":
            return self._object(node, indent)
        raise UnsupportedError(f"Unknown core-types node type {kind!r}")

    def _wrap(self, node: Mapping[str, Any], indent: str, kinds: tuple[str, ...]) -> str:
        text = self.render(node, indent)
        return f"({text})" if node["type"] in kinds else text

    def _object(self, node: Mapping[str, Any], indent: str) -> str:
        inner = indent + self.indent
        lines: list[str] = []
        for name, prop in node.get("properties", {}).items():
            key = name if _IDENTIFIER_RE.match(name) else json.dumps(name)
            optional = "" if prop.get("required") else "?"
            lines.append(
                f"{self._jsdoc(prop['node'], inner)}{inner}{key}{optional}: "
                f"{self.render(prop['node'], inner)};"
            )
        extra = node.get("additionalProperties", False)
        if extra is True:
            lines.append(f"{inner}[key: string]: {'unknown' if self.use_unknown else 'any'};")
        elif isinstance(extra, Mapping):
            lines.append(f"{inner}[key: string]: {self.render(extra, inner)};")
        if not lines:
            return "{}"
        return "{\n" + "\n".join(lines) + f"\n{indent}}}"

    @staticmethod
    def _jsdoc(node: Mapping[str, Any], indent: str) -> str:
        notes = annotations_of(dict(node))
        lines: list[str] = []
        if notes.get("description"):
            lines.extend(str(notes["description"]).splitlines())
        if "default" in notes:
            lines.append(f"@default {_format_tag_value(notes['default'])}")
        for example in notes.get("examples", []) or []:
            lines.append(f"@example {_format_tag_value(example)}")
        see = notes.get("see")
        for ref in [see] if isinstance(see, str) else (see or []):
            lines.append(f"@see {ref}")
        if not lines:
            return ""
        if len(lines) == 1:
            return f"{indent}/** {lines[0]} */\n"
        body = "".join(f"{indent} * {line}".rstrip() + "\n" for line in lines)
        return f"{indent}/**\n{body}{indent} */\n"


def _literal(value: Any) -> str:
    return json.dumps(value)


def _format_tag_value(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


