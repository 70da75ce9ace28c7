"""Tests for the converter subsystem: path execution, pipeline and targets."""

import json
import os
import threading
from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeReader, FakeWriter
from typebridge.converter import (
    ConvertOptions,
    Converter,
    SourceFile,
    SourceString,
    Target,
    make_converter,
)
from typebridge.converter.files import write_file
from typebridge.core.errors import MalformedTypeError, NoConversionPathError
from typebridge.formats import (
    CoreTypesReader,
    GraphQLWriter,
    TypeScriptReader,
    TypeScriptWriter,
    create_default_graph,
)
from typebridge.graph import FormatGraph, make_path_key
from typebridge.interfaces.types import FormatId


def _converter(reader, writer, graph=None, **options):
    return Converter(reader, writer, ConvertOptions(**options), graph=graph or FormatGraph())


@pytest.fixture
def shortcut_chain_graph():
    """ts -{jsc}-> jsc -{gql}-> gql, with every hop rejecting something."""
    graph = FormatGraph()
    graph.register_reader(FakeReader(FormatId.jsc, [FormatId.gql], rejected=["Y", "X"]))
    graph.register_writer(FakeWriter(FormatId.jsc, [FormatId.jsc], rejected=["W"]))
    return graph


# ── Construction ──────────────────────────────────────────────────────


class TestConstruction:
    def test_resolves_path_up_front(self):
        conv = _converter(FakeReader(FormatId.ts), FakeWriter(FormatId.gql))
        assert make_path_key(conv.path) == "ts->{ct}->gql"
        assert conv.is_simple

    def test_no_path_is_configuration_error(self):
        with patch.object(FormatGraph, "find_best_path", return_value=()):
            with pytest.raises(NoConversionPathError) as exc:
                _converter(FakeReader(FormatId.ts), FakeWriter(FormatId.gql))
        assert exc.value.from_format == "ts"
        assert exc.value.to_format == "gql"
        assert "'ts'" in str(exc.value) and "'gql'" in str(exc.value)

    def test_default_graph_used_when_none_given(self):
        conv = Converter(TypeScriptReader(), TypeScriptWriter())
        assert make_path_key(conv.path) == "ts->{ct}->ts"

    def test_cwd_defaults_to_process_cwd(self):
        conv = _converter(FakeReader(FormatId.ts), FakeWriter(FormatId.gql))
        assert conv.cwd == os.getcwd()

    def test_make_converter(self):
        conv = make_converter(FakeReader(FormatId.ts), FakeWriter(FormatId.gql), graph=FormatGraph())
        assert isinstance(conv, Converter)
        assert conv.from_format == FormatId.ts


# ── Default (core-types) pipeline ─────────────────────────────────────


class TestDefaultPipeline:
    async def test_returns_data_without_target(self):
        conv = _converter(FakeReader(FormatId.ts), FakeWriter(FormatId.gql))
        result = await conv.convert(SourceString(data="A,B"))
        assert result.data == "A,B"
        assert result.in_.converted_types == ["A", "B"]
        assert result.out.converted_types == ["A", "B"]

    async def test_map_filter_transform_order(self):
        calls = []

        def map_fn(named, index, types):
            calls.append(("map", named["name"], index))
            return named

        def filter_fn(named, index, types):
            calls.append(("filter", named["name"], index))
            return named["name"] != "B"

        def transform(doc):
            calls.append(("transform", doc.type_names()))
            return doc

        conv = _converter(
            FakeReader(FormatId.ts),
            FakeWriter(FormatId.gql),
            map=map_fn,
            filter=filter_fn,
            transform=transform,
        )
        result = await conv.convert(SourceString(data="A,B"))

        assert calls == [
            ("map", "A", 0),
            ("map", "B", 1),
            ("filter", "A", 0),
            ("filter", "B", 1),
            ("transform", ["A"]),
        ]
        assert result.data == "A"

    async def test_map_sees_simplified_types(self):
        seen = []
        doc = {"version": 1, "types": [{"name": "A", "type": "or", "or": [{"type": "string"}]}]}

        def map_fn(named, index, types):
            seen.append(named)
            return named

        conv = _converter(CoreTypesReader(), FakeWriter(FormatId.gql), map=map_fn)
        await conv.convert(SourceString(data=json.dumps(doc)))
        assert seen == [{"name": "A", "type": "string"}]

    async def test_simplify_can_be_disabled(self):
        seen = []
        doc = {"version": 1, "types": [{"name": "A", "type": "or", "or": [{"type": "string"}]}]}

        conv = _converter(
            CoreTypesReader(),
            FakeWriter(FormatId.gql),
            simplify=False,
            map=lambda named, i, types: seen.append(named) or named,
        )
        await conv.convert(SourceString(data=json.dumps(doc)))
        assert seen[0]["type"] == "or"

    async def test_pipeline_skipped_on_shortcut_route(self, shortcut_chain_graph):
        map_fn = MagicMock(side_effect=lambda named, i, types: named)
        conv = _converter(
            FakeReader(FormatId.ts, [FormatId.jsc]),
            FakeWriter(FormatId.gql, [FormatId.gql]),
            graph=shortcut_chain_graph,
            map=map_fn,
        )
        assert not conv.is_simple
        await conv.convert(SourceString(data="A"))
        map_fn.assert_not_called()


# ── Multi-hop execution ───────────────────────────────────────────────


class TestPathExecution:
    async def test_hops_run_in_order(self, shortcut_chain_graph):
        conv = _converter(
            FakeReader(FormatId.ts, [FormatId.jsc], rejected=["X"]),
            FakeWriter(FormatId.gql, [FormatId.gql]),
            graph=shortcut_chain_graph,
        )
        assert make_path_key(conv.path) == "ts->{jsc}->jsc  jsc->{gql}->gql"

        result = await conv.convert(SourceString(data="A,B"))
        assert result.data == "A,B [ts>jsc] [jsc>jsc] [jsc>gql] [gql>gql]"

    async def test_rejections_accumulate_across_hops(self, shortcut_chain_graph):
        conv = _converter(
            FakeReader(FormatId.ts, [FormatId.jsc], rejected=["X"]),
            FakeWriter(FormatId.gql, [FormatId.gql]),
            graph=shortcut_chain_graph,
        )
        result = await conv.convert(SourceString(data="A,B"))

        assert result.in_.converted_types == ["A"]
        assert result.in_.not_converted_types == ["X", "Y"]
        assert result.out.not_converted_types == ["W"]

    async def test_error_in_later_hop_aborts(self, shortcut_chain_graph, tmp_path):
        reader = FakeReader(FormatId.ts, [FormatId.jsc])
        writer = FakeWriter(FormatId.gql, [FormatId.gql])
        conv = _converter(reader, writer, graph=shortcut_chain_graph)
        conv.path[1].reader.fail = True

        out = tmp_path / "out.graphql"
        with pytest.raises(MalformedTypeError, match="jsc hop failed") as exc:
            await conv.convert(SourceString(data="A"), Target(filename=str(out)))
        assert exc.value.source == "A"
        assert not out.exists()


# ── Sources and targets ───────────────────────────────────────────────


class TestSourcesAndTargets:
    async def test_reads_file_source(self, tmp_path):
        (tmp_path / "in.txt").write_text("A,B")
        conv = _converter(FakeReader(FormatId.ts), FakeWriter(FormatId.gql), cwd=str(tmp_path))
        result = await conv.convert(SourceFile(filename="in.txt"))
        assert result.data == "A,B"

    async def test_writes_target_without_data(self, tmp_path):
        out = tmp_path / "out.txt"
        conv = _converter(FakeReader(FormatId.ts), FakeWriter(FormatId.gql))
        result = await conv.convert(SourceString(data="A,B"), Target(filename=str(out)))
        assert result.data is None
        assert out.read_text() == "A,B"
        assert "data" not in result.summary()

    async def test_creates_missing_directories(self, tmp_path):
        out = tmp_path / "a" / "b" / "out.txt"
        conv = _converter(FakeReader(FormatId.ts), FakeWriter(FormatId.gql))
        await conv.convert(SourceString(data="A"), Target(filename=str(out)))
        assert out.read_text() == "A"

    async def test_no_file_when_nothing_converted(self, tmp_path):
        out = tmp_path / "out.txt"
        conv = _converter(FakeReader(FormatId.ts), FakeWriter(FormatId.gql))
        result = await conv.convert(SourceString(data=""), Target(filename=str(out)))
        assert not out.exists()
        assert result.out.converted_types == []

    async def test_managed_reader_rejects_string_source(self):
        conv = _converter(FakeReader(FormatId.st, managed_read=True), FakeWriter(FormatId.gql))
        with pytest.raises(ValueError, match="expected filename"):
            await conv.convert(SourceString(data="A"))

    async def test_managed_reader_gets_absolute_filename(self, tmp_path):
        reader = FakeReader(FormatId.st, managed_read=True)
        conv = _converter(reader, FakeWriter(FormatId.gql), cwd=str(tmp_path))
        await conv.convert(SourceFile(filename="sub/types.st.ts"))
        assert reader.seen == [str(tmp_path / "sub" / "types.st.ts")]

    async def test_managed_reader_runs_off_event_loop(self, tmp_path):
        threads = []

        class ThreadRecordingReader(FakeReader):
            def read(self, data, opts):
                threads.append(threading.get_ident())
                return super().read("A", opts)

        conv = _converter(
            ThreadRecordingReader(FormatId.st, managed_read=True), FakeWriter(FormatId.gql), cwd=str(tmp_path)
        )
        result = await conv.convert(SourceFile(filename="types.st.ts"))

        assert result.data == "A"
        assert threads and threads[0] != threading.get_ident()

    async def test_managed_reader_errors_propagate_from_thread(self, tmp_path):
        class FailingReader(FakeReader):
            def read(self, data, opts):
                return super().read("!", opts)

        conv = _converter(
            FailingReader(FormatId.st, managed_read=True), FakeWriter(FormatId.gql), cwd=str(tmp_path)
        )
        with pytest.raises(MalformedTypeError) as exc:
            await conv.convert(SourceFile(filename="types.st.ts"))
        assert exc.value.filename == str(tmp_path / "types.st.ts")

    async def test_summary_uses_in_alias(self):
        conv = _converter(FakeReader(FormatId.ts), FakeWriter(FormatId.gql))
        result = await conv.convert(SourceString(data="A"))
        summary = result.summary()
        assert summary["in"] == {"converted_types": ["A"], "not_converted_types": []}


class TestWriteFile:
    def test_writes(self, tmp_path):
        write_file(str(tmp_path / "f.txt"), "x")
        assert (tmp_path / "f.txt").read_text() == "x"

    def test_retries_once_after_creating_parents(self, tmp_path):
        target = tmp_path / "deep" / "f.txt"
        write_file(str(target), "y")
        assert target.read_text() == "y"

    def test_other_os_errors_propagate(self, tmp_path):
        (tmp_path / "dir").mkdir()
        with pytest.raises(IsADirectoryError):
            write_file(str(tmp_path / "dir"), "z")


# ── Errors and warnings ───────────────────────────────────────────────


class TestErrorsAndWarnings:
    async def test_error_decorated_with_source(self):
        conv = _converter(FakeReader(FormatId.ts), FakeWriter(FormatId.gql))
        with pytest.raises(MalformedTypeError) as exc:
            await conv.convert(SourceString(data="!oops"))
        assert exc.value.source == "!oops"
        assert exc.value.loc == {"start": 0, "end": 1}

    async def test_error_decorated_with_filename(self, tmp_path):
        (tmp_path / "bad.txt").write_text("!bad")
        conv = _converter(FakeReader(FormatId.ts), FakeWriter(FormatId.gql), cwd=str(tmp_path))
        with pytest.raises(MalformedTypeError) as exc:
            await conv.convert(SourceFile(filename="bad.txt"))
        assert exc.value.filename == str(tmp_path / "bad.txt")

    async def test_existing_metadata_kept(self):
        reader = FakeReader(FormatId.ts)
        err = MalformedTypeError("kept", source="original", filename="orig.ts")
        reader.read = MagicMock(side_effect=err)
        conv = _converter(reader, FakeWriter(FormatId.gql))
        with pytest.raises(MalformedTypeError) as exc:
            await conv.convert(SourceString(data="A"))
        assert exc.value is err
        assert exc.value.source == "original"
        assert exc.value.filename == "orig.ts"

    async def test_unsupported_type_warns_once(self):
        warn = MagicMock()
        doc = {
            "version": 1,
            "types": [
                {"name": "Nothing", "type": "null"},
                {
                    "name": "Bar",
                    "type": "object",
                    "properties": {"a": {"node": {"type": "string"}, "required": True}},
                    "additionalProperties": False,
                },
            ],
        }
        conv = Converter(
            CoreTypesReader(),
            GraphQLWriter(),
            ConvertOptions(warn=warn),
            graph=create_default_graph(),
        )
        result = await conv.convert(SourceString(data=json.dumps(doc)))

        warn.assert_called_once()
        assert "Nothing" in warn.call_args.args[0]
        assert result.out.not_converted_types == ["Nothing"]
        assert result.out.converted_types == ["Bar"]
        assert "type Bar" in result.data

    async def test_default_warn_logs(self, caplog):
        doc = {"version": 1, "types": [{"name": "Nothing", "type": "null"}]}
        conv = Converter(CoreTypesReader(), GraphQLWriter(), graph=create_default_graph())
        with caplog.at_level("WARNING", logger="typebridge"):
            await conv.convert(SourceString(data=json.dumps(doc)))
        assert any("Nothing" in r.getMessage() for r in caplog.records)


# ── Round trip ────────────────────────────────────────────────────────


class TestRoundTrip:
    async def test_typescript_round_trip_keeps_type_names(self, types1_ts):
        conv = Converter(
            TypeScriptReader(),
            TypeScriptWriter(),
            ConvertOptions(shortcut=False),
            graph=create_default_graph(),
        )
        result = await conv.convert(SourceString(data=types1_ts))
        assert result.in_.converted_types == ["Foo", "Foo2"]
        assert result.out.converted_types == result.in_.converted_types
