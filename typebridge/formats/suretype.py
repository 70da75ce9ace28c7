"""SureType (st) validator modules.

The writer generates a TypeScript module of SureType validators from JSON
Schema. The reader is *managed*: it gets the path of a validator module and
parses its exported ``v.*`` / ``suretype(...)`` declarations back into JSON
Schema, without executing any code.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from typebridge.core.errors import (
    MalformedTypeError,
    MissingReferenceError,
    TypeBridgeError,
    UnsupportedError,
    decorate_error,
)
from typebridge.core.models import ConversionResult, NodeDocument
from typebridge.formats._lexer import Token, TokenStream, parse_number, unquote
from typebridge.formats.json_schema import (
    core_types_to_json_schema,
    json_schema_to_core_types,
    parse_json,
    schema_to_node,
    stringify,
)
from typebridge.formats.openapi_schema import JSON_SCHEMA_DRAFT, definitions_of
from typebridge.formats.typescript import TypeScriptWriter
from typebridge.interfaces.reader import Reader, ReaderOptions, ShortcutReadFunction
from typebridge.interfaces.types import FormatId
from typebridge.interfaces.writer import ShortcutWriteFunction, Writer, WriterOptions

logger = logging.getLogger(__name__)

RefMethod = Literal["no-refs", "provided", "ref-all"]

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")
_REF_RE = re.compile(r"^#/(?:definitions|\$defs)/(.+)$")
_STATEMENT_STARTS = {"export", "import", "const", "let", "var", "function", "class", "type", "interface"}


# ---------------------------------------------------------------------------
# Writer: JSON Schema -> SureType module
# ---------------------------------------------------------------------------


class SureTypeWriter(Writer):
    kind = FormatId.st

    def __init__(
        self,
        ref_method: RefMethod = "provided",
        export_type: bool = True,
        export_validator: bool = True,
        export_ensurer: bool = True,
        export_type_guard: bool = True,
        use_unknown: bool = False,
        inline_types: bool = False,
    ) -> None:
        self.ref_method = ref_method
        self.export_type = export_type
        self.export_validator = export_validator
        self.export_ensurer = export_ensurer
        self.export_type_guard = export_type_guard
        self.use_unknown = use_unknown
        self.inline_types = inline_types

    @property
    def shortcuts(self) -> Mapping[FormatId, ShortcutWriteFunction]:
        return {FormatId.jsc: self._from_json_schema}

    def write(self, doc: NodeDocument, opts: WriterOptions) -> ConversionResult[str]:
        return self.generate(core_types_to_json_schema(doc).data, opts)

    def _from_json_schema(
        self, data: str, read_opts: ReaderOptions, write_opts: WriterOptions
    ) -> ConversionResult[str]:
        return self.generate(parse_json(data, "JSON Schema"), write_opts)

    def generate(self, schema: Mapping[str, Any], opts: WriterOptions) -> ConversionResult[str]:
        definitions = dict(definitions_of(schema))
        blocks: list[str] = []
        converted: list[str] = []
        not_converted: list[str] = []

        for name in self._ordered(definitions, opts, not_converted):
            try:
                blocks.append(self._declare(name, definitions[name], definitions))
            except MalformedTypeError:
                raise
            except TypeBridgeError as e:
                opts.warn(f"Type {name!r} not converted: {e.message}", {"blob": definitions[name]})
                not_converted.append(name)
                continue
            converted.append(name)

        imports = ["suretype", "v"]
        if self.export_validator or self.export_ensurer or self.export_type_guard:
            imports.append("compile")
        if self.export_type and not self.inline_types:
            imports.append("TypeOf")

        header = self._header(opts)
        body = "\n\n".join(blocks)
        data = f'{header}import {{ {", ".join(imports)} }} from "suretype"\n\n{body}\n' if blocks else header
        return ConversionResult(data=data, converted_types=converted, not_converted_types=not_converted)

    @staticmethod
    def _header(opts: WriterOptions) -> str:
        origin = (
            f" converted from {Path(opts.source_filename).name}" if opts.source_filename else " generated"
        )
        return f"/* eslint-disable */\n/**\n * The validators in this file were{origin} by typebridge.\n */\n\n"

    def _ordered(
        self, definitions: Mapping[str, Any], opts: WriterOptions, rejected: list[str]
    ) -> list[str]:
        """Order definitions so referenced validators are declared first."""
        if self.ref_method == "no-refs":
            return list(definitions)

        order: list[str] = []
        state: dict[str, str] = {}

        def visit(name: str, trail: list[str]) -> bool:
            if state.get(name) == "done":
                return True
            if state.get(name) == "visiting":
                cycle = trail[trail.index(name):]
                for member in cycle:
                    state[member] = "cyclic"
                return False
            if state.get(name) == "cyclic":
                return False
            state[name] = "visiting"
            ok = True
            for dep in sorted(_references(definitions[name]) - {name}):
                if dep in definitions and not visit(dep, [*trail, name]):
                    ok = False
            if state[name] == "cyclic" or not ok:
                state[name] = "cyclic"
                return False
            state[name] = "done"
            order.append(name)
            return True

        for name in definitions:
            visit(name, [])

        for name in definitions:
            if state.get(name) == "cyclic":
                opts.warn(
                    f"Type {name!r} not converted: cyclic references are only supported for self references",
                    {"blob": definitions[name]},
                )
                rejected.append(name)
        return order

    def _declare(self, name: str, schema: Mapping[str, Any], definitions: Mapping[str, Any]) -> str:
        if not _IDENTIFIER_RE.match(name):
            raise UnsupportedError(f"{name!r} is not a valid identifier")

        builder = _ValidatorBuilder(name, definitions, self.ref_method, self.use_unknown)
        expression = builder.build(schema, "    ")

        meta = {"name": name}
        for key in ("title", "description", "examples"):
            if isinstance(schema, Mapping) and key in schema:
                meta[key] = schema[key]
        meta_text = ", ".join(f"{k}: {json.dumps(v)}" for k, v in meta.items())

        lines = [f"export const schema{name} = suretype(\n    {{ {meta_text} }},\n    {expression}\n);"]
        if self.export_type:
            lines.append(self._type_declaration(name, schema))
        if self.export_validator:
            lines.append(f"export const validate{name} = compile( schema{name} );")
        if self.export_ensurer:
            lines.append(
                f"export const ensure{name} = compile( schema{name}, {{ ensure: true }} );"
            )
        if self.export_type_guard:
            lines.append(f"export const is{name} = compile( schema{name}, {{ simple: true }} );")
        return "\n".join(lines)

    def _type_declaration(self, name: str, schema: Mapping[str, Any]) -> str:
        if not self.inline_types:
            return f"export type {name} = TypeOf< typeof schema{name} >;"
        writer = TypeScriptWriter(use_unknown=self.use_unknown)
        return writer.declare({**schema_to_node(schema), "name": name})


def _references(schema: Any) -> set[str]:
    found: set[str] = set()
    if isinstance(schema, Mapping):
        ref = schema.get("$ref")
        if isinstance(ref, str) and (match := _REF_RE.match(ref)):
            found.add(match.group(1))
        for value in schema.values():
            found |= _references(value)
    elif isinstance(schema, list):
        for value in schema:
            found |= _references(value)
    return found


@dataclass
class _ValidatorBuilder:
    name: str
    definitions: Mapping[str, Any]
    ref_method: RefMethod
    use_unknown: bool
    inlining: list[str] = field(default_factory=list)

    def build(self, schema: Any, indent: str) -> str:
        if schema is True or schema == {}:
            return "v.unknown( )" if self.use_unknown else "v.any( )"
        if schema is False:
            raise UnsupportedError("'false' schemas are not supported")
        if not isinstance(schema, Mapping):
            raise MalformedTypeError(f"Invalid JSON Schema node: {schema!r}", blob=schema)

        if "$ref" in schema:
            return self._ref(schema["$ref"], indent)
        if "anyOf" in schema or "oneOf" in schema:
            members = schema.get("anyOf", schema.get("oneOf"))
            return f"v.anyOf( [ {', '.join(self.build(m, indent) for m in members)} ] )"
        if "allOf" in schema:
            return f"v.allOf( [ {', '.join(self.build(m, indent) for m in schema['allOf'])} ] )"

        kind = schema.get("type")
        if isinstance(kind, list):
            members = [self.build({**schema, "type": k}, indent) for k in kind]
            return members[0] if len(members) == 1 else f"v.anyOf( [ {', '.join(members)} ] )"
        if kind is None:
            if "const" in schema or "enum" in schema:
                values = [schema["const"]] if "const" in schema else schema["enum"]
                kinds = {_json_type(v) for v in values}
                if len(kinds) == 1:
                    return self.build({**schema, "type": kinds.pop()}, indent)
            return "v.unknown( )" if self.use_unknown else "v.any( )"

        if kind == "null":
            return "v.null( )"
        if kind == "boolean":
            if schema.get("const") is True or schema.get("enum") == [True]:
                return "v.boolean( ).true( )"
            if schema.get("const") is False or schema.get("enum") == [False]:
                return "v.boolean( ).false( )"
            return "v.boolean( )"
        if kind == "string":
            return "v.string( )" + _string_chain(schema)
        if kind in ("number", "integer"):
            return "v.number( )" + (".integer( )" if kind == "integer" else "") + _number_chain(schema)
        if kind == "array":
            return self._array(schema, indent)
        if kind == "object":
            return self._object(schema, indent)
        raise UnsupportedError(f"JSON Schema type {kind!r} is not supported")

    def _ref(self, ref: str, indent: str) -> str:
        match = _REF_RE.match(ref)
        if not match:
            raise UnsupportedError(f"Unsupported reference {ref!r}")
        target = match.group(1)
        if target == self.name and not self.inlining:
            return "v.recursive( )"
        if self.ref_method == "no-refs":
            if target not in self.definitions:
                raise MissingReferenceError(f"Reference to unknown type {target!r}")
            if target in self.inlining or target == self.name:
                raise UnsupportedError(f"Cannot inline recursive type {target!r}")
            self.inlining.append(target)
            try:
                return self.build(self.definitions[target], indent)
            finally:
                self.inlining.pop()
        if target not in self.definitions and self.ref_method == "provided":
            raise MissingReferenceError(f"Reference to unknown type {target!r}")
        return f"schema{target}"

    def _array(self, schema: Mapping[str, Any], indent: str) -> str:
        items = schema.get("prefixItems", schema.get("items"))
        if isinstance(items, list):
            expr = f"v.array( [ {', '.join(self.build(i, indent) for i in items)} ] )"
            extra = schema.get("additionalItems")
            if extra is False:
                expr += ".additional( false )"
            elif isinstance(extra, Mapping):
                expr += f".additional( {self.build(extra, indent)} )"
        elif items is None:
            expr = "v.array( )"
        else:
            expr = f"v.array( {self.build(items, indent)} )"
        if "minItems" in schema and not isinstance(items, list):
            expr += f".minItems( {schema['minItems']} )"
        if "maxItems" in schema and not isinstance(items, list):
            expr += f".maxItems( {schema['maxItems']} )"
        return expr

    def _object(self, schema: Mapping[str, Any], indent: str) -> str:
        properties = schema.get("properties") or {}
        if not isinstance(properties, Mapping):
            raise MalformedTypeError("JSON Schema 'properties' must be an object", blob=properties)
        required = set(schema.get("required", []))
        inner = indent + "    "
        lines = []
        for name, prop in properties.items():
            key = name if _IDENTIFIER_RE.match(name) else json.dumps(name)
            expr = self.build(prop, inner)
            if name in required:
                expr += ".required( )"
            lines.append(f"{inner}{key}: {expr},")
        body = "{ }" if not lines else "{\n" + "\n".join(lines) + f"\n{indent}}}"
        expr = f"v.object( {body} )"

        extra = schema.get("additionalProperties")
        if extra is True:
            expr += ".additional( true )"
        elif isinstance(extra, Mapping):
            expr += f".additional( {self.build(extra, indent)} )"
        return expr


def _string_chain(schema: Mapping[str, Any]) -> str:
    chain = ""
    if "const" in schema:
        chain += f".const( {json.dumps(schema['const'])} )"
    elif "enum" in schema:
        chain += f".enum( {', '.join(json.dumps(v) for v in schema['enum'])} )"
    if "minLength" in schema:
        chain += f".minLength( {schema['minLength']} )"
    if "maxLength" in schema:
        chain += f".maxLength( {schema['maxLength']} )"
    if "pattern" in schema:
        chain += f".matches( /{schema['pattern'].replace('/', chr(92) + '/')}/ )"
    if "format" in schema:
        chain += f".format( {json.dumps(schema['format'])} )"
    return chain


def _number_chain(schema: Mapping[str, Any]) -> str:
    chain = ""
    if "const" in schema:
        chain += f".const( {json.dumps(schema['const'])} )"
    elif "enum" in schema:
        chain += f".enum( {', '.join(json.dumps(v) for v in schema['enum'])} )"
    for key, method in (
        ("exclusiveMinimum", "gt"),
        ("minimum", "gte"),
        ("exclusiveMaximum", "lt"),
        ("maximum", "lte"),
    ):
        if key in schema and not isinstance(schema[key], bool):
            chain += f".{method}( {schema[key]} )"
    return chain


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    return "string"


# ---------------------------------------------------------------------------
# Reader: SureType module -> JSON Schema
# ---------------------------------------------------------------------------


@dataclass
class _Call:
    """A member-access/call chain such as ``v.number( ).gt( 5 )``."""

    base: str
    start: int
    end: int
    # (member name, call arguments or None when not called)
    members: list[tuple[str, list[Any] | None]] = field(default_factory=list)


@dataclass
class _Regex:
    source: str


@dataclass
class _Declaration:
    name: str
    exported: bool
    value: _Call


class _SureTypeParser:
    def __init__(self, source: str) -> None:
        self.stream = TokenStream(source)

    def declarations(self) -> list[_Declaration]:
        stream = self.stream
        found: list[_Declaration] = []
        while not stream.at_end():
            stream.take_jsdoc()
            if stream.at_end():
                break
            start = stream.pos
            exported = stream.accept("export")
            if stream.accept("const") or stream.accept("let") or stream.accept("var"):
                name = stream.peek()
                if (
                    name is not None
                    and name.kind == "ident"
                    and stream.is_("=", 1)
                    and (stream.is_("v", 2) or stream.is_("suretype", 2))
                ):
                    stream.pos += 2
                    value = self._value()
                    if isinstance(value, _Call):
                        found.append(_Declaration(name.value, exported, value))
                    stream.accept(";")
                    continue
            stream.pos = start
            stream.skip_statement(_STATEMENT_STARTS)
        return found

    def _value(self) -> Any:
        stream = self.stream
        token = stream.next()
        if token.kind == "string":
            return unquote(token.value)
        if token.kind == "number":
            return parse_number(token.value)
        if token.kind == "regex":
            return _Regex(token.value[1:token.value.rindex("/")])
        if token.value == "-" and token.kind == "punct":
            return -parse_number(stream.expect_kind("number").value)
        if token.value == "{":
            return self._object_literal()
        if token.value == "[":
            items = []
            while not stream.accept("]"):
                items.append(self._value())
                if not stream.accept(","):
                    stream.expect("]")
                    break
            return items
        if token.kind == "ident":
            if token.value in ("true", "false"):
                return token.value == "true"
            if token.value in ("null", "undefined"):
                return None
            return self._chain(token)
        raise stream.error(f"Unexpected token {token.value!r}", token)

    def _object_literal(self) -> dict[str, Any]:
        stream = self.stream
        out: dict[str, Any] = {}
        while not stream.accept("}"):
            stream.take_jsdoc()
            key = stream.next()
            if key.kind == "string":
                name = unquote(key.value)
            elif key.kind in ("ident", "number"):
                name = key.value
            else:
                raise stream.error(f"Invalid property name {key.value!r}", key)
            stream.expect(":")
            out[name] = self._value()
            if not stream.accept(","):
                stream.expect("}")
                break
        return out

    def _chain(self, first: Token) -> _Call:
        stream = self.stream
        call = _Call(first.value, first.start, first.end)
        if stream.is_("("):
            call.members.append(("", self._arguments()))
        while stream.accept("."):
            member = stream.expect_kind("ident")
            args = self._arguments() if stream.is_("(") else None
            call.members.append((member.value, args))
            call.end = member.end
        return call

    def _arguments(self) -> list[Any]:
        stream = self.stream
        stream.expect("(")
        args = []
        while not stream.accept(")"):
            args.append(self._value())
            if not stream.accept(","):
                stream.expect(")")
                break
        return args


class _SchemaBuilder:
    """Interprets parsed validator chains as JSON Schema."""

    def __init__(self, declarations: list[_Declaration]) -> None:
        self.by_variable = {d.name: d for d in declarations}
        self.type_names = {d.name: _type_name(d) for d in declarations if d.exported}

    def schema(self, decl: _Declaration) -> dict[str, Any]:
        return self._validator(decl.value, self_name=self.type_names.get(decl.name, decl.name))

    def _validator(self, call: Any, self_name: str) -> dict[str, Any]:
        schema, _ = self._with_required(call, self_name)
        return schema

    def _with_required(self, call: Any, self_name: str) -> tuple[dict[str, Any], bool]:
        if not isinstance(call, _Call):
            raise UnsupportedError(f"Expected a validator, got {call!r}")

        if call.base == "suretype":
            args = call.members[0][1] if call.members and call.members[0][0] == "" else None
            if not args or len(args) != 2 or not isinstance(args[0], dict):
                raise UnsupportedError("suretype( ) expects an options object and a validator")
            schema, required = self._with_required(args[1], self_name)
            meta = args[0]
            return {**{k: meta[k] for k in ("title", "description", "examples") if k in meta}, **schema}, required

        if call.base != "v":
            return self._variable_ref(call, self_name)

        if not call.members or call.members[0][1] is None:
            raise UnsupportedError("Incomplete validator expression")
        kind, args = call.members[0]
        schema = self._base(kind, args, self_name)
        required = False
        for method, method_args in call.members[1:]:
            if method_args is None:
                raise UnsupportedError(f"Unsupported validator property {method!r}")
            if method == "required":
                required = True
            else:
                self._modifier(schema, method, method_args, self_name)
        return schema, required

    def _variable_ref(self, call: _Call, self_name: str) -> tuple[dict[str, Any], bool]:
        decl = self.by_variable.get(call.base)
        if decl is None:
            raise MissingReferenceError(f"Reference to unknown validator {call.base!r}")
        required = False
        for method, args in call.members:
            if method == "required" and args is not None:
                required = True
            else:
                raise UnsupportedError(f"Unsupported use of validator {call.base!r}")
        if call.base in self.type_names:
            return {"$ref": f"#/definitions/{self.type_names[call.base]}"}, required
        return self._validator(decl.value, self_name), required

    def _base(self, kind: str, args: list[Any], self_name: str) -> dict[str, Any]:
        if kind in ("any", "unknown"):
            return {}
        if kind in ("string", "number", "boolean", "null"):
            return {"type": kind}
        if kind == "recursive":
            return {"$ref": f"#/definitions/{self_name}"}
        if kind == "object":
            properties: dict[str, Any] = {}
            required: list[str] = []
            for name, value in (args[0] if args else {}).items():
                prop, is_required = self._with_required(value, self_name)
                properties[name] = prop
                if is_required:
                    required.append(name)
            schema: dict[str, Any] = {"type": "object", "properties": properties}
            if required:
                schema["required"] = required
            return schema
        if kind == "array":
            if not args:
                return {"type": "array"}
            if isinstance(args[0], list):
                items = [self._validator(a, self_name) for a in args[0]]
                return {"type": "array", "items": items, "minItems": len(items)}
            return {"type": "array", "items": self._validator(args[0], self_name)}
        if kind in ("anyOf", "allOf"):
            if not args or not isinstance(args[0], list):
                raise UnsupportedError(f"v.{kind}( ) expects a list of validators")
            return {kind: [self._validator(a, self_name) for a in args[0]]}
        raise UnsupportedError(f"Unsupported validator v.{kind}( )")

    def _modifier(self, schema: dict[str, Any], method: str, args: list[Any], self_name: str) -> None:
        arg = args[0] if args else None
        simple = {
            "gt": "exclusiveMinimum",
            "gte": "minimum",
            "lt": "exclusiveMaximum",
            "lte": "maximum",
            "minLength": "minLength",
            "maxLength": "maxLength",
            "minItems": "minItems",
            "maxItems": "maxItems",
            "format": "format",
            "default": "default",
            "const": "const",
        }
        if method in simple:
            schema[simple[method]] = arg
        elif method == "enum":
            schema["enum"] = list(args)
        elif method == "integer":
            schema["type"] = "integer"
        elif method in ("true", "false"):
            schema["const"] = method == "true"
        elif method == "matches":
            schema["pattern"] = arg.source if isinstance(arg, _Regex) else str(arg)
        elif method == "additional":
            key = "additionalItems" if schema.get("type") == "array" else "additionalProperties"
            schema[key] = arg if isinstance(arg, bool) else self._validator(arg, self_name)
        elif method == "annotate" and isinstance(arg, dict):
            for key in ("title", "description", "examples"):
                if key in arg:
                    schema[key] = arg[key]
        else:
            raise UnsupportedError(f"Unsupported validator method .{method}( )")


def _type_name(decl: _Declaration) -> str:
    call = decl.value
    if call.base == "suretype" and call.members and call.members[0][1]:
        options = call.members[0][1][0]
        if isinstance(options, dict) and isinstance(options.get("name"), str):
            return options["name"]
    return decl.name


def suretype_to_json_schema(source: str, opts: ReaderOptions) -> ConversionResult[dict[str, Any]]:
    declarations = _SureTypeParser(source).declarations()
    builder = _SchemaBuilder(declarations)

    definitions: dict[str, Any] = {}
    not_converted: list[str] = []
    for decl in declarations:
        if not decl.exported:
            continue
        name = builder.type_names[decl.name]
        try:
            definitions[name] = builder.schema(decl)
        except (UnsupportedError, MissingReferenceError) as e:
            opts.warn(e.message, {"loc": {"start": decl.value.start, "end": decl.value.end}})
            not_converted.append(name)

    return ConversionResult(
        data={"$schema": JSON_SCHEMA_DRAFT, "definitions": definitions},
        converted_types=list(definitions),
        not_converted_types=not_converted,
    )


class SureTypeReader(Reader):
    kind = FormatId.st
    managed_read = True

    @property
    def shortcuts(self) -> Mapping[FormatId, ShortcutReadFunction]:
        return {FormatId.jsc: self._to_json_schema}

    def read(self, filename: str, opts: ReaderOptions) -> ConversionResult[NodeDocument]:
        result = self._load(filename, opts)
        converted = json_schema_to_core_types(result.data, opts.warn)
        return ConversionResult(
            data=converted.data,
            converted_types=converted.converted_types,
            not_converted_types=[*result.not_converted_types, *converted.not_converted_types],
        )

    def _to_json_schema(self, filename: str, opts: ReaderOptions) -> ConversionResult[str]:
        result = self._load(filename, opts)
        return ConversionResult(
            data=stringify(result.data),
            converted_types=result.converted_types,
            not_converted_types=result.not_converted_types,
        )

    @staticmethod
    def _load(filename: str, opts: ReaderOptions) -> ConversionResult[dict[str, Any]]:
        source = Path(filename).read_text(encoding="utf-8")
        logger.debug("parsing suretype validators in %s", filename)
        try:
            return suretype_to_json_schema(source, opts)
        except MalformedTypeError as err:
            decorate_error(err, source=source, filename=filename)
            raise
