"""Lossless-ish mapping between JSON Schema documents and Open API 3 documents.

Both sides describe types with (nearly) the same schema vocabulary, so the
JSON Schema <-> Open API shortcuts use these functions directly instead of
going through core-types.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from typebridge.core.errors import MalformedTypeError

JSON_SCHEMA_DRAFT = "http://json-schema.org/draft-07/schema#"
DEFAULT_OPENAPI_VERSION = "3.0.0"

_JSC_REF_PREFIXES = ("#/definitions/", "#/$defs/")
_OAPI_REF_PREFIX = "#/components/schemas/"
_OAPI_ONLY_KEYS = {"discriminator", "xml", "externalDocs"}


def open_api_to_json_schema(document: dict[str, Any]) -> dict[str, Any]:
    """Extract ``components.schemas`` as a JSON Schema with ``definitions``."""
    _require_object(document, "Open API document")
    components = _require_object(document.get("components") or {}, "Open API 'components'")
    schemas = _require_object(components.get("schemas") or {}, "Open API 'components.schemas'")
    _check_definitions(schemas, "Open API schema")
    definitions = {name: _oapi_node_to_jsc(schema) for name, schema in schemas.items()}
    return {"$schema": JSON_SCHEMA_DRAFT, "definitions": definitions}


def json_schema_to_open_api(
    schema: dict[str, Any],
    *,
    title: str,
    version: str,
    schema_version: str = DEFAULT_OPENAPI_VERSION,
) -> dict[str, Any]:
    """Wrap a JSON Schema's definitions into an Open API document."""
    definitions = definitions_of(schema)
    return {
        "openapi": schema_version,
        "info": {"title": title, "version": version},
        "paths": {},
        "components": {
            "schemas": {name: _jsc_node_to_oapi(node) for name, node in definitions.items()},
        },
    }


def definitions_of(schema: Any) -> Mapping[str, Any]:
    """The named definitions of a JSON Schema document.

    Raises MalformedTypeError unless the document and its definitions are
    objects and every definition is a schema (an object or a boolean).
    """
    _require_object(schema, "JSON Schema document")
    definitions = _require_object(
        schema.get("definitions") or schema.get("$defs") or {}, "JSON Schema 'definitions'"
    )
    _check_definitions(definitions, "JSON Schema definition")
    return definitions


def definition_names(schema: Any) -> list[str]:
    return list(definitions_of(schema))


def _require_object(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise MalformedTypeError(
            f"{what} must be an object, got {type(value).__name__}", loc={"start": 0}, blob=value
        )
    return value


def _check_definitions(definitions: Mapping[str, Any], what: str) -> None:
    for name, definition in definitions.items():
        if not isinstance(definition, (Mapping, bool)):
            raise MalformedTypeError(
                f"{what} {name!r} must be an object, got {type(definition).__name__}",
                blob=definition,
            )


def _oapi_node_to_jsc(node: Any) -> Any:
    if isinstance(node, list):
        return [_oapi_node_to_jsc(n) for n in node]
    if not isinstance(node, dict):
        return node

    out: dict[str, Any] = {}
    for key, value in node.items():
        if key in _OAPI_ONLY_KEYS or key == "nullable":
            continue
        if key == "$ref" and isinstance(value, str) and value.startswith(_OAPI_REF_PREFIX):
            out[key] = "#/definitions/" + value[len(_OAPI_REF_PREFIX):]
        elif key == "example":
            out["examples"] = [copy.deepcopy(value)]
        elif key == "properties" and isinstance(value, dict):
            out[key] = {name: _oapi_node_to_jsc(prop) for name, prop in value.items()}
        else:
            out[key] = _oapi_node_to_jsc(value)

    if node.get("nullable") is True:
        out = _make_nullable(out)
    return out


def _make_nullable(node: dict[str, Any]) -> dict[str, Any]:
    kind = node.get("type")
    if isinstance(kind, str):
        node["type"] = [kind, "null"]
        if "enum" in node and None not in node["enum"]:
            node["enum"] = [*node["enum"], None]
        return node
    if isinstance(kind, list):
        if "null" not in kind:
            node["type"] = [*kind, "null"]
        return node
    return {"anyOf": [node, {"type": "null"}]}


def _jsc_node_to_oapi(node: Any) -> Any:
    if isinstance(node, list):
        return [_jsc_node_to_oapi(n) for n in node]
    if not isinstance(node, dict):
        return node

    out: dict[str, Any] = {}
    for key, value in node.items():
        if key in ("$schema", "$comment", "$id"):
            continue
        if key == "$ref" and isinstance(value, str):
            out[key] = _rewrite_jsc_ref(value)
        elif key == "const":
            out["enum"] = [copy.deepcopy(value)]
        elif key == "examples" and isinstance(value, list):
            if value:
                out["example"] = copy.deepcopy(value[0])
        elif key == "properties" and isinstance(value, dict):
            out[key] = {name: _jsc_node_to_oapi(prop) for name, prop in value.items()}
        elif key == "items" and isinstance(value, list):
            # Open API 3.0 has no tuples; accept any of the positional types.
            out[key] = {"anyOf": _jsc_node_to_oapi(value)} if value else {}
            out.setdefault("minItems", len(value))
        elif key == "type" and isinstance(value, list):
            continue
        else:
            out[key] = _jsc_node_to_oapi(value)

    kind = node.get("type")
    if isinstance(kind, list):
        non_null = [t for t in kind if t != "null"]
        if len(non_null) == 1:
            out["type"] = non_null[0]
        elif non_null:
            out["anyOf"] = [*out.get("anyOf", []), *({"type": t} for t in non_null)]
        if "null" in kind:
            out["nullable"] = True
    return out


def _rewrite_jsc_ref(ref: str) -> str:
    for prefix in _JSC_REF_PREFIXES:
        if ref.startswith(prefix):
            return _OAPI_REF_PREFIX + ref[len(prefix):]
    return ref
