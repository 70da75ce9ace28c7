"""File helpers: reading sources, writing targets, globbing and re-rooting."""

from __future__ import annotations

import asyncio
import glob
import logging
import os
from pathlib import Path

import pathspec
from pydantic import BaseModel

from typebridge.converter.models import Source, SourceFile, SourceString

logger = logging.getLogger(__name__)


class SourceData(BaseModel):
    data: str
    filename: str | None = None


class RootedFile(BaseModel):
    """An input file, its output location and its path relative to the root."""

    source: str
    out: str
    rel: str


class ReRootResult(BaseModel):
    root: str
    new_root: str
    files: list[RootedFile]


async def get_source(source: Source, cwd: str) -> SourceData:
    """Resolve a source into text (and filename, for file sources)."""
    if isinstance(source, SourceString):
        return SourceData(data=source.data)
    if isinstance(source, SourceFile):
        filename = ensure_absolute(source.filename, source.cwd or cwd)
        data = await asyncio.to_thread(Path(filename).read_text, encoding="utf-8")
        return SourceData(data=data, filename=filename)
    raise ValueError(f"Invalid source: {source!r}")


def write_file(filename: str, data: str) -> None:
    """Write data, creating missing parent directories (one retry)."""
    path = Path(filename)
    try:
        path.write_text(data, encoding="utf-8")
    except FileNotFoundError:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(data, encoding="utf-8")
    logger.debug("wrote %s (%d bytes)", path, len(data))


def rel_file(cwd: str | None, filename: str) -> str:
    if cwd is None:
        return filename
    return os.path.relpath(filename, cwd)


def ensure_absolute(filename: str, cwd: str) -> str:
    if os.path.isabs(filename):
        return filename
    return os.path.normpath(os.path.join(cwd, filename))


def get_root_folder_of_files(files: list[str], cwd: str) -> str:
    """Deepest directory containing all files."""
    if not files:
        return cwd
    dirs = [os.path.dirname(ensure_absolute(f, cwd)) for f in files]
    return os.path.commonpath(dirs)


def re_root_files(files: list[str], cwd: str, new_root: str | None = None) -> ReRootResult:
    """Map files to their location under new_root, keeping their relative layout."""
    root = get_root_folder_of_files(files, cwd)
    abs_new_root = root if new_root is None else ensure_absolute(new_root, cwd)

    rooted = []
    for filename in files:
        source = ensure_absolute(filename, cwd)
        rel = os.path.relpath(source, root)
        rooted.append(RootedFile(source=source, out=ensure_absolute(rel, abs_new_root), rel=rel))
    return ReRootResult(root=root, new_root=abs_new_root, files=rooted)


def change_extension(filename: str, extension: str) -> str:
    extension = extension if extension.startswith(".") else f".{extension}"
    return str(Path(filename).with_suffix(extension))


def glob_files(patterns: list[str], cwd: str, hidden: bool = True) -> list[str]:
    """Expand glob patterns relative to cwd.

    With hidden=False, dot-files and files matched by cwd's .gitignore are
    skipped. The .git directory is never included.
    """
    ignore = None if hidden else _load_gitignore(cwd)
    seen: dict[str, None] = {}

    for pattern in patterns:
        if os.path.isabs(pattern):
            matches = glob.glob(pattern, recursive=True, include_hidden=hidden)
        else:
            matches = glob.glob(pattern, root_dir=cwd, recursive=True, include_hidden=hidden)
        for match in matches:
            absolute = ensure_absolute(match, cwd)
            if not os.path.isfile(absolute):
                continue
            if ".git" in Path(absolute).parts:
                continue
            if ignore is not None and _is_ignored(ignore, absolute, cwd):
                continue
            seen.setdefault(match, None)

    return list(seen)


def _load_gitignore(cwd: str) -> pathspec.GitIgnoreSpec | None:
    gitignore = Path(cwd) / ".gitignore"
    if not gitignore.is_file():
        return None
    lines = gitignore.read_text(encoding="utf-8").splitlines()
    return pathspec.GitIgnoreSpec.from_lines(lines)


def _is_ignored(spec: pathspec.GitIgnoreSpec, filename: str, cwd: str) -> bool:
    rel = os.path.relpath(filename, cwd)
    if rel.startswith(".."):
        return False
    return spec.match_file(Path(rel).as_posix())
