"""Shared test fixtures for typebridge."""

from __future__ import annotations

import logging
from functools import partial
from pathlib import Path

import pytest

from typebridge.config.models import TypeBridgeConfig
from typebridge.core.errors import MalformedTypeError
from typebridge.core.models import ConversionResult, NodeDocument
from typebridge.graph.format_graph import FormatGraph
from typebridge.interfaces.reader import Reader
from typebridge.interfaces.writer import Writer

FIXTURES = Path(__file__).parent / "fixtures"


# ── Fake readers / writers ────────────────────────────────────────────


class FakeReader(Reader):
    """Reads "A,B" into string types named A and B.

    Shortcuts append ``[<kind>><format>]`` to the text so tests can see which
    hops ran. Input starting with "!" (or any shortcut call when ``fail`` is
    set) raises MalformedTypeError.
    """

    def __init__(self, kind, shortcuts=(), *, managed_read=False, rejected=(), fail=False):
        self.kind = kind
        self.managed_read = managed_read
        self.shortcut_formats = list(shortcuts)
        self.rejected = list(rejected)
        self.fail = fail
        self.seen: list[str] = []

    @property
    def shortcuts(self):
        return {fmt: partial(self._shortcut, fmt) for fmt in self.shortcut_formats}

    def read(self, data, opts):
        self.seen.append(data)
        if data.startswith("!"):
            raise MalformedTypeError("bad input", loc={"start": 0, "end": 1})
        names = [n for n in data.split(",") if n]
        return ConversionResult(
            data=NodeDocument(types=[{"name": n, "type": "string"} for n in names]),
            converted_types=names,
            not_converted_types=self.rejected,
        )

    def _shortcut(self, fmt, data, opts):
        self.seen.append(data)
        if self.fail:
            raise MalformedTypeError(f"{self.kind.value} hop failed")
        return ConversionResult(
            data=f"{data} [{self.kind.value}>{fmt.value}]",
            converted_types=["A"],
            not_converted_types=self.rejected,
        )


class FakeWriter(Writer):
    """Writes the comma-joined type names; shortcuts tag the text like FakeReader."""

    def __init__(self, kind, shortcuts=(), *, rejected=()):
        self.kind = kind
        self.shortcut_formats = list(shortcuts)
        self.rejected = list(rejected)

    @property
    def shortcuts(self):
        return {fmt: partial(self._shortcut, fmt) for fmt in self.shortcut_formats}

    def write(self, doc, opts):
        return ConversionResult(
            data=",".join(doc.type_names()),
            converted_types=doc.type_names(),
            not_converted_types=self.rejected,
        )

    def _shortcut(self, fmt, data, read_opts, write_opts):
        return ConversionResult(
            data=f"{data} [{fmt.value}>{self.kind.value}]",
            converted_types=["A"],
            not_converted_types=self.rejected,
        )


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _reset_logging():
    """The CLI detaches the typebridge logger from the root; undo that between tests."""
    yield
    logger = logging.getLogger("typebridge")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def empty_graph():
    return FormatGraph()


@pytest.fixture
def sample_config():
    return TypeBridgeConfig()


@pytest.fixture
def sample_document():
    """A small neutral document: an object type, a string enum and a union."""
    return NodeDocument(
        types=[
            {
                "name": "User",
                "title": "User",
                "description": "A user of the system",
                "type": "object",
                "properties": {
                    "id": {"node": {"type": "integer"}, "required": True},
                    "name": {"node": {"type": "string"}, "required": False},
                    "role": {"node": {"type": "ref", "ref": "Role"}, "required": True},
                },
                "additionalProperties": False,
            },
            {"name": "Role", "type": "string", "enum": ["ADMIN", "GUEST"]},
            {
                "name": "Id",
                "type": "or",
                "or": [{"type": "string"}, {"type": "integer"}],
            },
        ]
    )


@pytest.fixture
def types1_ts():
    return (FIXTURES / "types1.ts").read_text()


@pytest.fixture
def suretype_fixture():
    return FIXTURES / "validator.st.ts"
