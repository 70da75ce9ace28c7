"""Tests for the GraphQL SDL reader and writer."""

from unittest.mock import MagicMock

import pytest
from graphql import parse

from typebridge.core.errors import MalformedTypeError, UnsupportedError
from typebridge.core.models import NodeDocument
from typebridge.formats import GraphQLReader, GraphQLWriter
from typebridge.interfaces.reader import ReaderOptions
from typebridge.interfaces.writer import WriterOptions

SDL = '''\
"""A user"""
type User {
  id: ID!
  name: String
  friends: [User!]!
  tags: [String]
  role: Role
}

enum Role {
  ADMIN
  GUEST
}

union Thing = User | Post

type Post {
  title: String!
}

scalar Date

directive @cached on FIELD_DEFINITION

schema {
  query: User
}
'''


def _object(name, properties, **extra):
    return {
        "name": name,
        "type": "object",
        "properties": properties,
        "additionalProperties": False,
        **extra,
    }


def _prop(node, required=False):
    return {"node": node, "required": required}


# ── Reader ────────────────────────────────────────────────────────────


class TestGraphQLReader:
    def _read(self, data=SDL, **kwargs):
        warn = MagicMock()
        result = GraphQLReader(**kwargs).read(data, ReaderOptions(warn=warn))
        return result, warn

    def test_converted_and_not_converted(self):
        result, _ = self._read()
        assert result.converted_types == ["User", "Role", "Thing", "Post", "Date"]
        assert result.not_converted_types == ["cached"]

    def test_object_fields(self):
        result, _ = self._read()
        user = result.data.types[0]
        props = user["properties"]

        assert user["description"] == "A user"
        assert user["title"] == "User"
        assert user["additionalProperties"] is False
        assert props["id"]["required"] is True
        assert props["id"]["node"]["type"] == "string"
        assert props["id"]["node"]["title"] == "User.id"
        assert props["name"]["required"] is False
        assert props["friends"]["required"] is True
        assert props["friends"]["node"]["elementType"] == {"type": "ref", "ref": "User"}
        assert props["tags"]["node"]["elementType"] == {
            "type": "or",
            "or": [{"type": "string"}, {"type": "null"}],
        }
        assert props["role"]["node"]["ref"] == "Role"

    def test_enum_union_scalar(self):
        result, _ = self._read()
        by_name = {t["name"]: t for t in result.data.types}
        assert by_name["Role"]["enum"] == ["ADMIN", "GUEST"]
        assert by_name["Thing"]["or"] == [{"type": "ref", "ref": "User"}, {"type": "ref", "ref": "Post"}]
        assert by_name["Date"]["type"] == "any"

    def test_locations_recorded(self):
        result, _ = self._read()
        loc = result.data.types[0]["loc"]
        assert SDL[loc["start"]:loc["end"]].startswith('"""A user"""')

    def test_ignore_policy_is_silent(self):
        _, warn = self._read()
        warn.assert_not_called()

    def test_warn_policy(self):
        _, warn = self._read(unsupported="warn")
        messages = [c.args[0] for c in warn.call_args_list]
        assert any("'cached'" in m for m in messages)
        assert any("schema definition" in m for m in messages)

    def test_error_policy(self):
        with pytest.raises(UnsupportedError, match="cached"):
            self._read(unsupported="error")

    def test_syntax_error(self):
        with pytest.raises(MalformedTypeError) as exc:
            self._read("type {")
        assert exc.value.loc["start"] == {"line": 1, "column": 6}


# ── Writer ────────────────────────────────────────────────────────────


class TestGraphQLWriter:
    def _write(self, *types, **kwargs):
        warn = MagicMock()
        kwargs.setdefault("include_comment", False)
        result = GraphQLWriter(**kwargs).write(NodeDocument(types=list(types)), WriterOptions(warn=warn))
        return result, warn

    def test_object_type(self):
        foo = _object(
            "Foo",
            {
                "bar": _prop({"type": "string"}, required=True),
                "num": _prop({"type": "number"}),
                "int": _prop({"type": "integer"}),
            },
            description="Foo type",
        )
        result, _ = self._write(foo)
        assert result.data == (
            '"Foo type"\n'
            "type Foo {\n"
            "  bar: String!\n"
            "  num: Float\n"
            "  int: Int\n"
            "}\n"
        )
        assert result.converted_types == ["Foo"]

    def test_header_comment(self):
        foo = _object("Foo", {"a": _prop({"type": "boolean"})})
        result = GraphQLWriter().write(
            NodeDocument(types=[foo]), WriterOptions(source_filename="src/foo.ts")
        )
        assert result.data.startswith("# The types in this file were converted from foo.ts by typebridge.")

    def test_enum_and_union(self):
        role = {"name": "Role", "type": "string", "enum": ["ADMIN", "GUEST"]}
        thing = {"name": "Thing", "type": "or", "or": [{"type": "ref", "ref": "A"}, {"type": "ref", "ref": "B"}]}
        result, _ = self._write(role, thing)
        assert "enum Role {\n  ADMIN\n  GUEST\n}\n" in result.data
        assert "union Thing = A | B\n" in result.data

    def test_nullable_field_drops_bang(self):
        foo = _object("Foo", {"a": _prop({"type": "or", "or": [{"type": "string"}, {"type": "null"}]}, True)})
        result, _ = self._write(foo)
        assert "  a: String\n" in result.data

    def test_list_field(self):
        foo = _object("Foo", {"a": _prop({"type": "array", "elementType": {"type": "integer"}}, True)})
        result, _ = self._write(foo)
        assert "  a: [Int!]!\n" in result.data

    def test_inline_object_is_lifted(self):
        inner = {"type": "object", "properties": {"x": _prop({"type": "string"}, True)}}
        result, _ = self._write(_object("Foo", {"inner": _prop(inner, True)}))
        assert "  inner: Foo_inner!\n" in result.data
        assert "type Foo_inner {\n  x: String!\n}\n" in result.data
        assert result.data.index("type Foo {") < result.data.index("type Foo_inner {")

    def test_null_type_rejected_once(self):
        result, warn = self._write({"name": "Nothing", "type": "null"}, _object("Ok", {}))
        warn.assert_called_once()
        assert "Nothing" in warn.call_args.args[0]
        assert result.not_converted_types == ["Nothing"]
        assert result.converted_types == ["Ok"]

    def test_null_field_uses_null_type_name(self):
        foo = _object("Foo", {"a": _prop({"type": "null"})})
        result, warn = self._write(foo, null_type_name="Null")
        warn.assert_not_called()
        assert "  a: Null\n" in result.data
        assert result.data.endswith("scalar Null\n")

    def test_null_field_without_null_type_name(self):
        result, warn = self._write(_object("Foo", {"a": _prop({"type": "null"})}))
        warn.assert_called_once()
        assert result.not_converted_types == ["Foo"]

    def test_tuple_unsupported(self):
        pair = {"name": "Pair", "type": "tuple", "elementTypes": [{"type": "string"}], "additionalItems": False}
        result, warn = self._write(pair)
        assert result.not_converted_types == ["Pair"]
        warn.assert_called_once()

    def test_error_policy_raises(self):
        with pytest.raises(UnsupportedError):
            self._write({"name": "Nothing", "type": "null"}, unsupported="error")

    def test_invalid_name_rejected(self):
        result, _ = self._write(_object("Foo", {"bad-name": _prop({"type": "string"})}))
        assert result.not_converted_types == ["Foo"]

    def test_multiline_description(self):
        foo = _object("Foo", {"a": _prop({"type": "string", "description": "line one\nline two"})})
        result, _ = self._write(foo)
        assert '  """\n  line one\n  line two\n  """\n  a: String\n' in result.data

    def test_output_parses_as_sdl(self):
        foo = _object(
            "Foo",
            {
                "a": _prop({"type": "string", "description": 'say "hi"'}, True),
                "tags": _prop({"type": "array", "elementType": {"type": "string", "enum": ["A", "B"]}}),
            },
            description='The "Foo" type',
        )
        result, _ = self._write(foo)

        document = parse(result.data)
        assert [d.name.value for d in document.definitions] == ["Foo", "Foo_tags"]
        assert document.definitions[0].description.value == 'The "Foo" type'
        assert document.definitions[0].fields[0].description.value == 'say "hi"'
        assert "  tags: [Foo_tags!]\n" in result.data

    def test_round_trip_through_reader(self):
        role = {"name": "Role", "type": "string", "enum": ["ADMIN", "GUEST"]}
        user = _object("User", {"role": _prop({"type": "ref", "ref": "Role"}, True)}, description="A user")
        written, _ = self._write(user, role)

        read = GraphQLReader().read(written.data, ReaderOptions())

        assert read.converted_types == ["User", "Role"]
        assert read.data.types[0]["description"] == "A user"
