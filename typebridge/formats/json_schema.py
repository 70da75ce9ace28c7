"""JSON Schema (jsc) reader and writer.

Named types live under ``definitions`` (``$defs`` is accepted on read).
References between them use ``#/definitions/<Name>``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from typebridge.core.errors import MalformedTypeError, UnsupportedError
from typebridge.core.models import ConversionResult, NamedType, NodeDocument
from typebridge.formats.openapi_schema import (
    JSON_SCHEMA_DRAFT,
    definition_names,
    definitions_of,
    open_api_to_json_schema,
)
from typebridge.interfaces.reader import Reader, ReaderOptions, ShortcutReadFunction, WarnFunction
from typebridge.interfaces.types import FormatId
from typebridge.interfaces.writer import ShortcutWriteFunction, Writer, WriterOptions

logger = logging.getLogger(__name__)

_PRIMITIVE_TYPES = ("null", "boolean", "string", "number", "integer")
_REF_PREFIXES = ("#/definitions/", "#/$defs/", "#/components/schemas/")


# ---------------------------------------------------------------------------
# JSON Schema -> core-types
# ---------------------------------------------------------------------------


def json_schema_to_core_types(
    schema: Mapping[str, Any], warn: WarnFunction
) -> ConversionResult[NodeDocument]:
    definitions = definitions_of(schema)

    types: list[NamedType] = []
    not_converted: list[str] = []
    for name, definition in definitions.items():
        try:
            node = schema_to_node(definition)
        except UnsupportedError as e:
            warn(e.message, {"blob": definition})
            not_converted.append(name)
            continue
        types.append({**node, "name": name})

    return ConversionResult(
        data=NodeDocument(types=types),
        converted_types=[t["name"] for t in types],
        not_converted_types=not_converted,
    )


def schema_to_node(schema: Any) -> dict[str, Any]:
    if schema is True:
        return {"type": "any"}
    if schema is False:
        raise UnsupportedError("JSON Schema 'false' (never) is not supported")
    if not isinstance(schema, Mapping):
        raise MalformedTypeError(f"Invalid JSON Schema node: {schema!r}")

    node = _convert_schema(schema)
    return {**node, **_annotations(schema)}


def _annotations(schema: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in ("title", "description", "examples", "default"):
        if key in schema:
            out[key] = schema[key]
    if "$comment" in schema:
        out["comment"] = schema["$comment"]
    return out


def _convert_schema(schema: Mapping[str, Any]) -> dict[str, Any]:
    if "$ref" in schema:
        return {"type": "ref", "ref": _ref_name(schema["$ref"])}

    if "const" in schema:
        return {"type": _value_type(schema["const"]), "const": schema["const"]}

    if "enum" in schema:
        return _enum_node(list(schema["enum"]))

    for key, kind in (("anyOf", "or"), ("oneOf", "or"), ("allOf", "and")):
        if key in schema:
            members = [schema_to_node(s) for s in schema[key]]
            rest = {k: v for k, v in schema.items() if k != key}
            if "type" in rest or "properties" in rest:
                members.insert(0, _convert_schema(rest))
            return {"type": kind, kind: members}

    kind = schema.get("type")
    if isinstance(kind, list):
        return {
            "type": "or",
            "or": [_convert_typed({**schema, "type": k}, k) for k in kind],
        }
    if kind is None:
        if "properties" in schema or "additionalProperties" in schema:
            kind = "object"
        elif "items" in schema:
            kind = "array"
        else:
            return {"type": "any"}
    return _convert_typed(schema, kind)


def _convert_typed(schema: Mapping[str, Any], kind: str) -> dict[str, Any]:
    if kind in _PRIMITIVE_TYPES:
        return {"type": kind}
    if kind == "object":
        return _object_node(schema)
    if kind == "array":
        return _array_node(schema)
    raise UnsupportedError(f"JSON Schema type {kind!r} is not supported")


def _object_node(schema: Mapping[str, Any]) -> dict[str, Any]:
    raw_properties = schema.get("properties") or {}
    if not isinstance(raw_properties, Mapping):
        raise MalformedTypeError("JSON Schema 'properties' must be an object", blob=raw_properties)
    required = set(schema.get("required", []))
    properties = {
        name: {"node": schema_to_node(prop), "required": name in required}
        for name, prop in raw_properties.items()
    }
    additional = schema.get("additionalProperties", False)
    if isinstance(additional, Mapping):
        additional = schema_to_node(additional)
    return {"type": "object", "properties": properties, "additionalProperties": additional}


def _array_node(schema: Mapping[str, Any]) -> dict[str, Any]:
    items = schema.get("prefixItems", schema.get("items"))
    if isinstance(items, list):
        extra = schema.get("additionalItems", schema.get("items") if "prefixItems" in schema else False)
        if isinstance(extra, Mapping):
            extra = schema_to_node(extra)
        elif extra is None:
            extra = False
        return {
            "type": "tuple",
            "elementTypes": [schema_to_node(s) for s in items],
            "additionalItems": extra,
        }
    element = schema_to_node(items) if items is not None else {"type": "any"}
    return {"type": "array", "elementType": element}


def _enum_node(values: list[Any]) -> dict[str, Any]:
    kinds = {_value_type(v) for v in values}
    if len(kinds) == 1:
        return {"type": kinds.pop(), "enum": values}
    return {"type": "or", "or": [{"type": _value_type(v), "const": v} for v in values]}


def _value_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    raise UnsupportedError(f"Unsupported constant value {value!r}")


def _ref_name(ref: str) -> str:
    for prefix in _REF_PREFIXES:
        if ref.startswith(prefix):
            return ref[len(prefix):]
    raise UnsupportedError(f"Unsupported reference {ref!r}: only local definitions can be referenced")


# ---------------------------------------------------------------------------
# core-types -> JSON Schema
# ---------------------------------------------------------------------------


def core_types_to_json_schema(doc: NodeDocument) -> ConversionResult[dict[str, Any]]:
    definitions = {}
    for named in doc.types:
        node = {k: v for k, v in named.items() if k != "name"}
        definitions[named["name"]] = node_to_schema(node)
    schema = {"$schema": JSON_SCHEMA_DRAFT, "definitions": definitions}
    return ConversionResult(data=schema, converted_types=list(definitions))


def node_to_schema(node: Mapping[str, Any]) -> dict[str, Any]:
    schema = _node_body(node)
    for key in ("title", "description", "examples", "default"):
        if key in node:
            schema[key] = node[key]
    if "comment" in node:
        schema["$comment"] = node["comment"]
    return schema


def _node_body(node: Mapping[str, Any]) -> dict[str, Any]:
    kind = node["type"]
    if kind == "any":
        return {}
    if kind in _PRIMITIVE_TYPES:
        schema: dict[str, Any] = {"type": kind}
        if "const" in node:
            schema["const"] = node["const"]
        elif "enum" in node:
            schema["enum"] = list(node["enum"])
        return schema
    if kind == "ref":
        return {"$ref": f"#/definitions/{node['ref']}"}
    if kind == "or":
        return {"anyOf": [node_to_schema(n) for n in node["or"]]}
    if kind == "and":
        return {"allOf": [node_to_schema(n) for n in node["and"]]}
    if kind == "array":
        return {"type": "array", "items": node_to_schema(node["elementType"])}
    if kind == "tuple":
        elements = node.get("elementTypes", [])
        extra = node.get("additionalItems", False)
        schema = {
            "type": "array",
            "items": [node_to_schema(n) for n in elements],
            "minItems": len(elements),
            "additionalItems": node_to_schema(extra) if isinstance(extra, Mapping) else extra,
        }
        if extra is False:
            schema["maxItems"] = len(elements)
        return schema
    if kind == "object":
        properties = node.get("properties", {})
        schema = {
            "type": "object",
            "properties": {name: node_to_schema(p["node"]) for name, p in properties.items()},
        }
        required = [name for name, p in properties.items() if p.get("required")]
        if required:
            schema["required"] = required
        extra = node.get("additionalProperties", False)
        schema["additionalProperties"] = (
            node_to_schema(extra) if isinstance(extra, Mapping) else extra
        )
        return schema
    raise UnsupportedError(f"Unknown core-types node type {kind!r}")


# ---------------------------------------------------------------------------
# Reader / writer
# ---------------------------------------------------------------------------


def parse_json(data: str, what: str) -> Any:
    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise MalformedTypeError(f"Invalid {what}: {e.msg}", loc={"start": e.pos}) from e


def stringify(value: Any) -> str:
    return json.dumps(value, indent=2)


class JsonSchemaReader(Reader):
    kind = FormatId.jsc

    @property
    def shortcuts(self) -> Mapping[FormatId, ShortcutReadFunction]:
        return {FormatId.jsc: self._passthrough}

    def read(self, data: str, opts: ReaderOptions) -> ConversionResult[NodeDocument]:
        schema = parse_json(data, "JSON Schema")
        return json_schema_to_core_types(schema, opts.warn)

    def _passthrough(self, data: str, opts: ReaderOptions) -> ConversionResult[str]:
        schema = parse_json(data, "JSON Schema")
        return ConversionResult(data=data, converted_types=definition_names(schema))


class JsonSchemaWriter(Writer):
    kind = FormatId.jsc

    @property
    def shortcuts(self) -> Mapping[FormatId, ShortcutWriteFunction]:
        return {FormatId.jsc: self._from_json_schema, FormatId.oapi: self._from_open_api}

    def write(self, doc: NodeDocument, opts: WriterOptions) -> ConversionResult[str]:
        result = core_types_to_json_schema(doc)
        return ConversionResult(
            data=stringify(result.data),
            converted_types=result.converted_types,
            not_converted_types=result.not_converted_types,
        )

    def _from_json_schema(
        self, data: str, read_opts: ReaderOptions, write_opts: WriterOptions
    ) -> ConversionResult[str]:
        schema = parse_json(data, "JSON Schema")
        return ConversionResult(data=stringify(schema), converted_types=definition_names(schema))

    def _from_open_api(
        self, data: str, read_opts: ReaderOptions, write_opts: WriterOptions
    ) -> ConversionResult[str]:
        from typebridge.formats.open_api import load_open_api

        schema = open_api_to_json_schema(load_open_api(data, read_opts))
        return ConversionResult(data=stringify(schema), converted_types=definition_names(schema))
