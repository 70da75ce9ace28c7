"""Normalization of core-types documents before they are handed to a writer."""

from __future__ import annotations

import copy
import json
from typing import Any

from typebridge.core.models import ANNOTATION_KEYS, NodeDocument

_PRIMITIVES = {"null", "boolean", "string", "number", "integer"}


def simplify(doc: NodeDocument, *, merge_objects: bool = False) -> NodeDocument:
    """Return a compressed copy of doc. The input document is not modified."""
    types = []
    for named in doc.types:
        node = simplify_node(copy.deepcopy(named), merge_objects=merge_objects)
        node["name"] = named["name"]
        types.append(node)
    return NodeDocument(version=doc.version, types=types)


def simplify_node(node: dict[str, Any], *, merge_objects: bool = False) -> dict[str, Any]:
    kind = node.get("type")

    if kind == "object":
        for prop in node.get("properties", {}).values():
            prop["node"] = simplify_node(prop["node"], merge_objects=merge_objects)
        if isinstance(node.get("additionalProperties"), dict):
            node["additionalProperties"] = simplify_node(
                node["additionalProperties"], merge_objects=merge_objects
            )
        return node

    if kind == "array":
        node["elementType"] = simplify_node(node["elementType"], merge_objects=merge_objects)
        return node

    if kind == "tuple":
        node["elementTypes"] = [
            simplify_node(n, merge_objects=merge_objects) for n in node.get("elementTypes", [])
        ]
        if isinstance(node.get("additionalItems"), dict):
            node["additionalItems"] = simplify_node(
                node["additionalItems"], merge_objects=merge_objects
            )
        return node

    if kind in ("or", "and"):
        return _simplify_combination(node, kind, merge_objects=merge_objects)

    return node


def _simplify_combination(node: dict[str, Any], kind: str, *, merge_objects: bool) -> dict[str, Any]:
    members: list[dict[str, Any]] = []
    for member in node.get(kind, []):
        member = simplify_node(member, merge_objects=merge_objects)
        if member.get("type") == kind and not _has_annotations(member):
            members.extend(member[kind])
        else:
            members.append(member)

    members = _dedupe(members)

    if kind == "or":
        if any(m.get("type") == "any" for m in members):
            return _with_annotations({"type": "any"}, node)
        members = _merge_enums(members)
    elif merge_objects and members and all(m.get("type") == "object" for m in members):
        return _with_annotations(_merge_object_nodes(members), node)

    if len(members) == 1:
        return _with_annotations(members[0], node)

    result = {k: v for k, v in node.items() if k != kind}
    result[kind] = members
    return result


def _has_annotations(node: dict[str, Any]) -> bool:
    return any(k in node for k in ANNOTATION_KEYS)


def _with_annotations(target: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    for key in ANNOTATION_KEYS:
        if key in source and key not in target:
            target[key] = source[key]
    return target


def _dedupe(nodes: list[dict[str, Any]]) -> list[dict[str, Any]]:
    seen: set[str] = set()
    result = []
    for node in nodes:
        key = json.dumps(node, sort_keys=True, default=str)
        if key not in seen:
            seen.add(key)
            result.append(node)
    return result


def _merge_enums(members: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Fold const/enum primitives of the same type into a single enum node."""
    result: list[dict[str, Any]] = []
    by_type: dict[str, dict[str, Any]] = {}
    for member in members:
        kind = member.get("type")
        values = _enum_values(member)
        if kind not in _PRIMITIVES or values is None or _has_annotations(member):
            result.append(member)
            continue
        if kind in by_type:
            existing = by_type[kind]["enum"]
            existing.extend(v for v in values if v not in existing)
        else:
            merged = {"type": kind, "enum": list(values)}
            by_type[kind] = merged
            result.append(merged)
    return result


def _enum_values(node: dict[str, Any]) -> list[Any] | None:
    if "const" in node:
        return [node["const"]]
    if "enum" in node:
        return list(node["enum"])
    return None


def _merge_object_nodes(nodes: list[dict[str, Any]]) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    additional: Any = False
    for node in nodes:
        for name, prop in node.get("properties", {}).items():
            if name in properties:
                properties[name]["required"] = properties[name]["required"] or prop["required"]
            else:
                properties[name] = prop
        extra = node.get("additionalProperties", False)
        if extra is True or isinstance(extra, dict):
            additional = extra
    return {"type": "object", "properties": properties, "additionalProperties": additional}


def strip_annotations(node: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a named type (or node) without any annotations, recursively."""
    stripped = {k: v for k, v in node.items() if k not in ANNOTATION_KEYS}
    kind = stripped.get("type")
    if kind == "object":
        stripped["properties"] = {
            name: {**prop, "node": strip_annotations(prop["node"])}
            for name, prop in stripped.get("properties", {}).items()
        }
        if isinstance(stripped.get("additionalProperties"), dict):
            stripped["additionalProperties"] = strip_annotations(stripped["additionalProperties"])
    elif kind == "array":
        stripped["elementType"] = strip_annotations(stripped["elementType"])
    elif kind == "tuple":
        stripped["elementTypes"] = [strip_annotations(n) for n in stripped.get("elementTypes", [])]
        if isinstance(stripped.get("additionalItems"), dict):
            stripped["additionalItems"] = strip_annotations(stripped["additionalItems"])
    elif kind in ("or", "and"):
        stripped[kind] = [strip_annotations(n) for n in stripped[kind]]
    return stripped
