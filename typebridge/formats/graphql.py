"""GraphQL SDL (gql) reader and writer.

The reader parses SDL with graphql-core. The writer builds a graphql-core
document AST and prints it; nested inline objects, enums and unions are
lifted into their own named types (``<Parent>_<property>``).
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from typing import Any, Literal

from graphql import GraphQLError, parse, print_ast
from graphql.language import ast

from typebridge.core.errors import MalformedTypeError, UnsupportedError
from typebridge.core.models import ConversionResult, NamedType, NodeDocument
from typebridge.interfaces.reader import Reader, ReaderOptions
from typebridge.interfaces.types import FormatId
from typebridge.interfaces.writer import Writer, WriterOptions

UnsupportedPolicy = Literal["ignore", "warn", "error"]

_SCALARS_IN = {
    "String": {"type": "string"},
    "ID": {"type": "string"},
    "Int": {"type": "integer"},
    "Float": {"type": "number"},
    "Boolean": {"type": "boolean"},
}
_SCALARS_OUT = {"string": "String", "integer": "Int", "number": "Float", "boolean": "Boolean"}
_NAME_RE = re.compile(r"^[_A-Za-z][_0-9A-Za-z]*$")


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


def _loc(node: ast.Node) -> dict[str, int] | None:
    if node.loc is None:
        return None
    return {"start": node.loc.start, "end": node.loc.end}


def _loc_of(node: ast.Node) -> dict[str, Any]:
    loc = _loc(node)
    return {"loc": loc} if loc is not None else {}


def _describe(node: Any) -> dict[str, Any]:
    description = getattr(node, "description", None)
    return {"description": description.value} if description is not None else {}


class GraphQLReader(Reader):
    kind = FormatId.gql

    def __init__(self, unsupported: UnsupportedPolicy = "ignore") -> None:
        self.unsupported = unsupported

    def read(self, data: str, opts: ReaderOptions) -> ConversionResult[NodeDocument]:
        try:
            document = parse(data)
        except GraphQLError as e:
            loc = None
            if e.locations:
                location = e.locations[0]
                loc = {"start": {"line": location.line, "column": location.column}}
            raise MalformedTypeError(f"Invalid GraphQL: {e.message}", loc=loc) from e

        types: list[NamedType] = []
        not_converted: list[str] = []
        for definition in document.definitions:
            named = self._definition(definition)
            if named is not None:
                types.append(named)
                continue

            name = getattr(getattr(definition, "name", None), "value", None)
            if name is not None:
                not_converted.append(name)
            self._handle_unsupported(definition, name, opts)

        return ConversionResult(
            data=NodeDocument(types=types),
            converted_types=[t["name"] for t in types],
            not_converted_types=not_converted,
        )

    def _handle_unsupported(self, definition: ast.Node, name: str | None, opts: ReaderOptions) -> None:
        what = definition.kind.replace("_", " ")
        message = f"GraphQL {what}" + (f" {name!r}" if name else "") + " is not supported"
        if self.unsupported == "error":
            raise UnsupportedError(message, loc=_loc(definition))
        if self.unsupported == "warn":
            opts.warn(message, {"loc": _loc(definition)})

    def _definition(self, definition: ast.Node) -> NamedType | None:
        if isinstance(
            definition,
            (
                ast.ObjectTypeDefinitionNode,
                ast.InputObjectTypeDefinitionNode,
                ast.InterfaceTypeDefinitionNode,
            ),
        ):
            return self._object(definition)

        if isinstance(definition, ast.EnumTypeDefinitionNode):
            name = definition.name.value
            return {
                "name": name,
                "title": name,
                **_describe(definition),
                "type": "string",
                "enum": [value.name.value for value in definition.values or []],
                **_loc_of(definition),
            }

        if isinstance(definition, ast.UnionTypeDefinitionNode):
            name = definition.name.value
            return {
                "name": name,
                "title": name,
                **_describe(definition),
                "type": "or",
                "or": [{"type": "ref", "ref": t.name.value} for t in definition.types or []],
                **_loc_of(definition),
            }

        if isinstance(definition, ast.ScalarTypeDefinitionNode):
            name = definition.name.value
            return {
                "name": name,
                "title": name,
                **_describe(definition),
                "type": "any",
                **_loc_of(definition),
            }

        return None

    def _object(self, definition: Any) -> NamedType:
        name = definition.name.value
        properties: dict[str, Any] = {}
        for field in definition.fields or []:
            node, required = self._field_type(field.type)
            properties[field.name.value] = {
                "node": {
                    **node,
                    "title": f"{name}.{field.name.value}",
                    **_describe(field),
                    **_loc_of(field),
                },
                "required": required,
            }
        return {
            "name": name,
            "title": name,
            **_describe(definition),
            "type": "object",
            **_loc_of(definition),
            "properties": properties,
            "additionalProperties": False,
        }

    def _field_type(self, type_node: ast.TypeNode) -> tuple[dict[str, Any], bool]:
        if isinstance(type_node, ast.NonNullTypeNode):
            node, _ = self._field_type(type_node.type)
            return node, True
        if isinstance(type_node, ast.ListTypeNode):
            element, element_required = self._field_type(type_node.type)
            if not element_required:
                element = {"type": "or", "or": [element, {"type": "null"}]}
            return {"type": "array", "elementType": element}, False
        name = type_node.name.value
        if name in _SCALARS_IN:
            return dict(_SCALARS_IN[name]), False
        return {"type": "ref", "ref": name}, False


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------


class GraphQLWriter(Writer):
    kind = FormatId.gql

    def __init__(
        self,
        unsupported: UnsupportedPolicy = "ignore",
        null_type_name: str | None = None,
        include_comment: bool = True,
    ) -> None:
        self.unsupported = unsupported
        self.null_type_name = null_type_name
        self.include_comment = include_comment

    def write(self, doc: NodeDocument, opts: WriterOptions) -> ConversionResult[str]:
        definitions: list[ast.TypeDefinitionNode] = []
        converted: list[str] = []
        not_converted: list[str] = []
        uses_null_scalar = False

        for named in doc.types:
            emitter = _SdlEmitter(self.null_type_name)
            try:
                definitions.extend(emitter.declare(named["name"], named))
            except UnsupportedError as e:
                if self.unsupported == "error":
                    raise
                opts.warn(f"Type {named['name']!r} not converted: {e.message}", {"blob": named})
                not_converted.append(named["name"])
                continue
            converted.append(named["name"])
            uses_null_scalar = uses_null_scalar or emitter.uses_null_scalar

        if uses_null_scalar:
            definitions.append(ast.ScalarTypeDefinitionNode(name=_name(self.null_type_name), directives=()))

        header = self._header(opts) if self.include_comment else ""
        body = ""
        if definitions:
            body = print_ast(ast.DocumentNode(definitions=tuple(definitions))).rstrip("\n") + "\n"
        return ConversionResult(
            data=header + body,
            converted_types=converted,
            not_converted_types=not_converted,
        )

    @staticmethod
    def _header(opts: WriterOptions) -> str:
        origin = (
            f"converted from {os.path.basename(opts.source_filename)}"
            if opts.source_filename
            else "generated"
        )
        return f"# The types in this file were {origin} by typebridge.\n# Do not edit by hand.\n\n"


class _SdlEmitter:
    """Builds the definition of one named type, plus the types lifted out of it."""

    def __init__(self, null_type_name: str | None) -> None:
        self.null_type_name = null_type_name
        self.uses_null_scalar = False
        self.lifted: list[ast.TypeDefinitionNode] = []

    def declare(self, name: str, node: Mapping[str, Any]) -> list[ast.TypeDefinitionNode]:
        main = self._declaration(name, node)
        return [main, *self.lifted]

    def _declaration(self, name: str, node: Mapping[str, Any]) -> ast.TypeDefinitionNode:
        kind = node["type"]
        description = _description(node)

        if kind == "object":
            return self._object(name, node, description)
        if kind == "and":
            return self._object(name, _merge_objects(node), description)
        if kind in _SCALARS_OUT and ("enum" in node or "const" in node):
            return _enum(name, node, description)
        if kind in _SCALARS_OUT:
            return ast.ScalarTypeDefinitionNode(
                description=description, name=_name(name), directives=()
            )
        if kind == "or":
            members = [m for m in node["or"] if m["type"] != "null"]
            if len(members) == 1:
                return self._declaration(name, {**members[0], **_notes(node)})
            if members and all(m["type"] == "ref" for m in members):
                return ast.UnionTypeDefinitionNode(
                    description=description,
                    name=_name(name),
                    directives=(),
                    types=tuple(_named_type(m["ref"]) for m in members),
                )
            if _string_literals(members):
                return _enum(name, {"enum": [m["const"] for m in members]}, description)
            raise UnsupportedError("unions of non-object types are not supported")
        if kind == "null":
            raise UnsupportedError("null types are not supported")
        raise UnsupportedError(f"{kind} types are not supported")

    def _object(
        self, name: str, node: Mapping[str, Any], description: ast.StringValueNode | None
    ) -> ast.ObjectTypeDefinitionNode:
        fields = []
        for prop_name, prop in node.get("properties", {}).items():
            field_type = self._field(f"{name}_{prop_name}", prop["node"], prop.get("required", False))
            fields.append(
                ast.FieldDefinitionNode(
                    description=_description(prop["node"]),
                    name=_name(prop_name),
                    arguments=(),
                    type=field_type,
                    directives=(),
                )
            )
        return ast.ObjectTypeDefinitionNode(
            description=description,
            name=_name(name),
            interfaces=(),
            directives=(),
            fields=tuple(fields),
        )

    def _field(self, lift_name: str, node: Mapping[str, Any], required: bool) -> ast.TypeNode:
        nullable = False
        if node["type"] == "or":
            members = [m for m in node["or"] if m["type"] != "null"]
            nullable = len(members) != len(node["or"])
            if len(members) == 1:
                node = members[0]
        field_type = self._field_type(lift_name, node)
        if required and not nullable:
            return ast.NonNullTypeNode(type=field_type)
        return field_type

    def _field_type(self, lift_name: str, node: Mapping[str, Any]) -> ast.NamedTypeNode | ast.ListTypeNode:
        kind = node["type"]
        if kind in _SCALARS_OUT:
            if kind == "string" and ("enum" in node or "const" in node):
                return self._lift(lift_name, node)
            return _named_type(_SCALARS_OUT[kind])
        if kind == "ref":
            return _named_type(node["ref"])
        if kind == "array":
            return ast.ListTypeNode(type=self._field(lift_name, node["elementType"], True))
        if kind in ("object", "and"):
            return self._lift(lift_name, node)
        if kind == "or":
            members = [m for m in node["or"] if m["type"] != "null"]
            if members and all(m["type"] == "ref" for m in members):
                return self._lift(lift_name, node)
            if _string_literals(members):
                return self._lift(lift_name, {"type": "string", "enum": [m["const"] for m in members]})
            scalars = {_SCALARS_OUT.get(m["type"]) for m in members}
            if len(scalars) == 1 and None not in scalars:
                return _named_type(scalars.pop())
            raise UnsupportedError("unions of non-object types are not supported")
        if kind == "null":
            if self.null_type_name is None:
                raise UnsupportedError("null types are not supported")
            self.uses_null_scalar = True
            return _named_type(self.null_type_name)
        raise UnsupportedError(f"{kind} types are not supported")

    def _lift(self, name: str, node: Mapping[str, Any]) -> ast.NamedTypeNode:
        self.lifted.append(self._declaration(name, node))
        return _named_type(name)


def _name(value: str) -> ast.NameNode:
    if not _NAME_RE.match(value):
        raise UnsupportedError(f"{value!r} is not a valid GraphQL name")
    return ast.NameNode(value=value)


def _named_type(name: str) -> ast.NamedTypeNode:
    return ast.NamedTypeNode(name=_name(name))


def _string_literals(members: list[Mapping[str, Any]]) -> bool:
    return bool(members) and all(m["type"] == "string" and "const" in m for m in members)


def _enum(
    name: str, node: Mapping[str, Any], description: ast.StringValueNode | None
) -> ast.EnumTypeDefinitionNode:
    values = node["enum"] if "enum" in node else [node["const"]]
    for value in values:
        if not isinstance(value, str) or not _NAME_RE.match(value):
            raise UnsupportedError(f"enum value {value!r} is not a valid GraphQL name")
    return ast.EnumTypeDefinitionNode(
        description=description,
        name=_name(name),
        directives=(),
        values=tuple(ast.EnumValueDefinitionNode(name=_name(v), directives=()) for v in values),
    )


def _merge_objects(node: Mapping[str, Any]) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    for member in node["and"]:
        if member["type"] != "object":
            raise UnsupportedError("intersections of non-object types are not supported")
        properties.update(member.get("properties", {}))
    return {"type": "object", "properties": properties}


def _notes(node: Mapping[str, Any]) -> dict[str, Any]:
    return {k: node[k] for k in ("description",) if k in node}


def _description(node: Mapping[str, Any]) -> ast.StringValueNode | None:
    description = node.get("description")
    if not description:
        return None
    return ast.StringValueNode(value=description, block="\n" in description)
