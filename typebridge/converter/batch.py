"""Batch conversion of many files with bounded concurrency."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Callable

from pydantic import BaseModel, Field

from typebridge.converter.converter import Converter
from typebridge.converter.files import change_extension, glob_files, re_root_files
from typebridge.converter.models import ConversionOutcome, SourceFile, Target

logger = logging.getLogger(__name__)

STDOUT_EXTENSION = "-"


class BatchConvertOptions(BaseModel):
    output_extension: str
    output_directory: str | None = None
    verbose: bool = False
    dry_run: bool = False
    # I/O concurrency, so files are always read/written while others convert.
    # Use 1 for deterministic ordering.
    concurrency: int = Field(default=16, gt=0)


class BatchConvertGlobOptions(BatchConvertOptions):
    hidden: bool = True
    files_transform: Callable[[list[str]], list[str]] | None = None


class FileConversion(BaseModel):
    """Per-file summary of a batch run."""

    source: str
    output: str
    converted: int
    total: int
    rejected: int


class BatchConvertResult(BaseModel):
    files: int
    types: int
    results: list[FileConversion] = Field(default_factory=list)


async def batch_convert(
    converter: Converter,
    filenames: list[str],
    options: BatchConvertOptions,
) -> BatchConvertResult:
    """Convert every file in filenames, at most ``options.concurrency`` at a time."""
    to_stdout = options.output_extension == STDOUT_EXTENSION
    rooted = re_root_files(filenames, converter.cwd, options.output_directory)

    if options.verbose:
        logger.info("Converting files relative to %s", rooted.root)
        if rooted.new_root != rooted.root:
            logger.info("Storing files in %s", rooted.new_root)

    if not to_stdout:
        for file in rooted.files:
            if file.source == change_extension(file.out, options.output_extension):
                raise ValueError(
                    "Won't convert - would overwrite source file with target file: "
                    f"{file.source}"
                )

    semaphore = asyncio.Semaphore(options.concurrency)
    results: list[FileConversion] = []

    async def _convert_one(source: str, out: str, rel: str) -> None:
        async with semaphore:
            target = None
            if not options.dry_run and not to_stdout:
                target = Target(
                    filename=change_extension(out, options.output_extension),
                    rel_filename=change_extension(rel, options.output_extension),
                )

            outcome = await converter.convert(SourceFile(filename=source, cwd=converter.cwd), target)
            output_name = "stdout" if to_stdout else change_extension(rel, options.output_extension)
            summary = _summarize(rel, output_name, outcome)
            results.append(summary)

            if options.verbose:
                _log_summary(summary)

            if to_stdout and not options.dry_run and outcome.data is not None:
                sys.stdout.write(outcome.data.rstrip("\n") + "\n")

    await asyncio.gather(*(_convert_one(f.source, f.out, f.rel) for f in rooted.files))

    return BatchConvertResult(
        files=len(rooted.files),
        types=sum(r.converted for r in results),
        results=results,
    )


async def batch_convert_glob(
    converter: Converter,
    globs: list[str],
    options: BatchConvertGlobOptions,
) -> BatchConvertResult:
    """Expand globs relative to the converter's cwd, then batch convert."""
    files = await asyncio.to_thread(glob_files, globs, converter.cwd, options.hidden)
    if options.files_transform is not None:
        files = options.files_transform(files)
    return await batch_convert(converter, files, options)


def _summarize(source: str, output: str, outcome: ConversionOutcome) -> FileConversion:
    total = len(outcome.in_.converted_types) + len(outcome.in_.not_converted_types)
    rejected = len(outcome.in_.not_converted_types) + len(outcome.out.not_converted_types)
    return FileConversion(
        source=source,
        output=output,
        converted=len(outcome.out.converted_types),
        total=total,
        rejected=rejected,
    )


def _log_summary(summary: FileConversion) -> None:
    percent = "no" if summary.total == 0 else f"{round(summary.converted * 100 / summary.total)}%"
    message = (
        f"{summary.source} -> {summary.output}, {percent} types converted "
        f"({summary.converted}/{summary.total})"
    )
    if summary.rejected:
        message += f", {summary.rejected} rejected"
    logger.info(message)
