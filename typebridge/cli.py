"""CLI entry point for typebridge."""

from __future__ import annotations

import asyncio
import os
import time
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from typebridge.config import DEFAULT_CONFIG_TEMPLATE, PROJECT_CONFIG, TypeBridgeConfig, load_config
from typebridge.converter import (
    BatchConvertGlobOptions,
    ConvertOptions,
    batch_convert_glob,
    make_converter,
)
from typebridge.converter.batch import STDOUT_EXTENSION
from typebridge.core.errors import TypeBridgeError
from typebridge.core.models import NodeDocument
from typebridge.core.simplify import strip_annotations
from typebridge.errors import format_typebridge_error
from typebridge.formats import create_default_graph, create_reader, create_writer
from typebridge.graph import ConversionContext, make_path_key
from typebridge.interfaces.types import FORMAT_NAMES, FormatId, parse_format
from typebridge.log import configure_logging

app = typer.Typer(
    name="typebridge",
    help="Convert type definitions between TypeScript, JSON Schema, Open API, GraphQL and SureType.",
)

config_app = typer.Typer(help="Manage typebridge configuration.")
app.add_typer(config_app, name="config")

err_console = Console(stderr=True)

# Global state
_config: TypeBridgeConfig | None = None


def _get_config() -> TypeBridgeConfig:
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    config: Annotated[
        str | None,
        typer.Option("--config", "-c", help="Path to typebridge.yaml (else $TYPEBRIDGE_CONFIG)"),
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    configure_logging(_config.log_level, _config.log_format)


def _parse_format_or_exit(value: str) -> FormatId:
    try:
        return parse_format(value)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def default_extension(fmt: FormatId, cfg: TypeBridgeConfig) -> str:
    if fmt == FormatId.oapi:
        return f".{cfg.open_api.format}"
    return {
        FormatId.ts: ".ts",
        FormatId.jsc: ".json",
        FormatId.gql: ".graphql",
        FormatId.st: ".ts",
        FormatId.ct: ".json",
    }[fmt]


def _strip_document(doc: NodeDocument) -> NodeDocument:
    return doc.model_copy(update={"types": [strip_annotations(t) for t in doc.types]})


def _apply_overrides(cfg: TypeBridgeConfig, **overrides: object) -> TypeBridgeConfig:
    """Return cfg with the non-None CLI flags folded into their config sections."""
    sections: dict[str, dict[str, object]] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        section, field_name = key.split("__")
        sections.setdefault(section, {})[field_name] = value
    update = {
        section: getattr(cfg, section).model_copy(update=values)
        for section, values in sections.items()
    }
    return cfg.model_copy(update=update)


@app.command()
def convert(
    globs: Annotated[list[str], typer.Argument(help="Files or glob patterns to convert")],
    from_type: Annotated[str, typer.Option("--from-type", "-f", help="Type system to convert from")],
    to_type: Annotated[str, typer.Option("--to-type", "-t", help="Type system to convert to")],
    shortcut: Annotated[
        bool | None,
        typer.Option("--shortcut/--no-shortcut", help="Allow direct format-to-format shortcuts"),
    ] = None,
    output_directory: Annotated[
        str | None, typer.Option("--output-directory", "-o", help="Output directory")
    ] = None,
    output_extension: Annotated[
        str | None,
        typer.Option("--output-extension", "-O", help="Output file extension, or '-' for stdout"),
    ] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Convert without writing files")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log per-file summaries")] = False,
    hidden: Annotated[
        bool | None,
        typer.Option("--hidden/--no-hidden", help="Include dot-files and git-ignored files"),
    ] = None,
    strip: Annotated[
        bool | None, typer.Option("--strip-annotations", help="Remove titles, descriptions, etc.")
    ] = None,
    merge_objects: Annotated[
        bool | None, typer.Option("--merge-objects", help="Merge intersections of objects")
    ] = None,
    concurrency: Annotated[
        int | None, typer.Option("--concurrency", help="Files converted at the same time")
    ] = None,
    ts_declaration: Annotated[
        bool | None,
        typer.Option("--ts-declaration/--no-ts-declaration", help="TypeScript: emit declarations"),
    ] = None,
    gql_unsupported: Annotated[
        str | None, typer.Option("--gql-unsupported", help="GraphQL: ignore | warn | error")
    ] = None,
    gql_null_typename: Annotated[
        str | None, typer.Option("--gql-null-typename", help="GraphQL: scalar name for null")
    ] = None,
    oapi_format: Annotated[
        str | None, typer.Option("--oapi-format", help="Open API: json | yaml | yml")
    ] = None,
    oapi_title: Annotated[str | None, typer.Option("--oapi-title", help="Open API: info.title")] = None,
    oapi_version: Annotated[
        str | None, typer.Option("--oapi-version", help="Open API: info.version")
    ] = None,
    st_ref_method: Annotated[
        str | None, typer.Option("--st-ref-method", help="SureType: no-refs | provided | ref-all")
    ] = None,
) -> None:
    """Convert files from one type system to another."""
    from_format = _parse_format_or_exit(from_type)
    to_format = _parse_format_or_exit(to_type)

    try:
        cfg = _apply_overrides(
            _get_config(),
            conversion__shortcut=shortcut,
            conversion__strip_annotations=strip,
            conversion__merge_objects=merge_objects,
            batch__output_directory=output_directory,
            batch__hidden=hidden,
            batch__concurrency=concurrency,
            typescript__declaration=ts_declaration,
            graphql__unsupported=gql_unsupported,
            graphql__null_type_name=gql_null_typename,
            open_api__format=oapi_format,
            open_api__title=oapi_title,
            open_api__version=oapi_version,
            suretype__ref_method=st_ref_method,
        )
        # model_copy skips validation; round-trip to reject bad flag values.
        cfg = TypeBridgeConfig.model_validate(cfg.model_dump())
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if verbose and cfg.log_level in ("warn", "error"):
        configure_logging("info", cfg.log_format)

    conversion = cfg.conversion
    options = ConvertOptions(
        cwd=os.getcwd(),
        simplify=conversion.simplify,
        merge_objects=conversion.merge_objects,
        # Annotations can only be stripped on the core-types route.
        shortcut=conversion.shortcut and not conversion.strip_annotations,
        transform=_strip_document if conversion.strip_annotations else None,
    )

    extension = output_extension or default_extension(to_format, cfg)
    to_stdout = extension == STDOUT_EXTENSION
    out = err_console if to_stdout else Console()

    start = time.perf_counter()
    try:
        converter = make_converter(
            create_reader(from_format, cfg),
            create_writer(to_format, cfg),
            options,
            graph=create_default_graph(cfg),
        )
        result = asyncio.run(
            batch_convert_glob(
                converter,
                globs,
                BatchConvertGlobOptions(
                    output_extension=extension,
                    output_directory=cfg.batch.output_directory,
                    verbose=verbose,
                    dry_run=dry_run,
                    concurrency=cfg.batch.concurrency,
                    hidden=cfg.batch.hidden,
                ),
            )
        )
    except TypeBridgeError as e:
        err_console.print(format_typebridge_error(e), markup=False, highlight=False)
        raise typer.Exit(1)
    except (ValueError, OSError) as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    elapsed = time.perf_counter() - start
    dry = " [yellow](dry run)[/yellow]" if dry_run else ""
    out.print(
        f"Converted {result.types} types in {result.files} files, in {elapsed:.1f}s{dry}",
        highlight=False,
    )


@app.command()
def formats() -> None:
    """List supported type systems and their capabilities."""
    graph = create_default_graph(_get_config())
    table = Table(title="Type systems")
    table.add_column("Id", style="cyan")
    table.add_column("Name")
    table.add_column("Reader", style="green")
    table.add_column("Writer", style="green")

    for fmt in FormatId:
        reader = graph.get_reader(fmt)
        writer = graph.get_writer(fmt)
        reader_info = "-"
        if reader is not None:
            reader_info = "managed" if reader.managed_read else "yes"
            if reader.shortcuts:
                reader_info += f" (shortcuts to {', '.join(f.value for f in reader.shortcuts)})"
        writer_info = "-"
        if writer is not None:
            writer_info = "yes"
            if writer.shortcuts:
                writer_info += f" (shortcuts from {', '.join(f.value for f in writer.shortcuts)})"
        table.add_row(fmt.value, FORMAT_NAMES[fmt], reader_info, writer_info)
    rprint(table)


@app.command()
def path(
    from_type: Annotated[str, typer.Argument(help="Type system to convert from")],
    to_type: Annotated[str, typer.Argument(help="Type system to convert to")],
    shortcut: Annotated[
        bool, typer.Option("--shortcut/--no-shortcut", help="Allow shortcuts")
    ] = True,
) -> None:
    """Show the conversion path between two type systems."""
    from_format = _parse_format_or_exit(from_type)
    to_format = _parse_format_or_exit(to_type)
    cfg = _get_config()
    graph = create_default_graph(cfg)

    context = ConversionContext(
        create_reader(from_format, cfg),
        create_writer(to_format, cfg),
        graph,
        shortcut=shortcut,
    )
    found = context.get_path()
    if not found:
        rprint(f"[red]No conversion path[/red] from {from_format.value} to {to_format.value}")
        raise typer.Exit(1)
    typer.echo(make_path_key(found))


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(), default_flow_style=False, sort_keys=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default typebridge.yaml in current directory."""
    target = PROJECT_CONFIG
    if target.exists() and not force:
        rprint("[yellow]typebridge.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")


if __name__ == "__main__":
    app()
