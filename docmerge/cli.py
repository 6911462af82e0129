"""Typer based command line entry points for DocMerge."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer

from docmerge.core.errors import DocMergeError
from docmerge.core.logger import get_logger
from docmerge.core.pipeline import Pipeline
from docmerge.core.settings import Settings, ensure_work_dirs, load_settings
from docmerge.services.delivery.base import delivery_from_config
from docmerge.services.sources.base import source_from_config
from docmerge.services.storage.base import store_from_config
from docmerge_io.mapping import dump_mapping_set, load_mapping_set
from docmerge_persist.stores.config_store import XLSXConfigStore

app = typer.Typer(help="Generate PDF documents from spreadsheet rows.")
configs_app = typer.Typer(name="configs", help="Manage saved mapping configurations.")
sources_app = typer.Typer(name="sources", help="Inspect tabular data sources.")
templates_app = typer.Typer(name="templates", help="Inspect PDF templates.")
folders_app = typer.Typer(name="folders", help="Manage output folders.")
app.add_typer(configs_app, name="configs")
app.add_typer(sources_app, name="sources")
app.add_typer(templates_app, name="templates")
app.add_typer(folders_app, name="folders")

EXIT_RECORD_FAILURES = 1
EXIT_FATAL = 2


@app.callback()
def main_callback(
    ctx: typer.Context,
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        help="Set global logging level (e.g. DEBUG/INFO/WARNING).",
    ),
    settings_file: Optional[Path] = typer.Option(
        None,
        "--settings",
        help="Settings YAML file (defaults to the packaged settings.yaml).",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
) -> None:
    """Configure global CLI behaviour before executing commands."""

    logger = get_logger()

    level_value = getattr(logging, log_level.upper(), None)
    if not isinstance(level_value, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}")

    logging.getLogger().setLevel(level_value)
    logger.setLevel(level_value)
    ctx.obj = {"settings_file": settings_file}


def _settings(ctx: typer.Context) -> Settings:
    try:
        settings = load_settings((ctx.obj or {}).get("settings_file"))
    except DocMergeError as exc:
        typer.secho(f"Unable to load settings: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=EXIT_FATAL) from exc
    ensure_work_dirs(settings.home)
    return settings


def _config_store(settings: Settings) -> XLSXConfigStore:
    return XLSXConfigStore(settings.home)


def _fail(message: str, exc: Exception) -> None:
    typer.secho(f"{message}: {exc}", fg=typer.colors.RED)
    raise typer.Exit(code=EXIT_FATAL) from exc


@configs_app.command("list")
def configs_list(ctx: typer.Context) -> None:
    """List saved configurations."""

    settings = _settings(ctx)
    summaries = _config_store(settings).list()
    if not summaries:
        typer.echo("No configurations saved.")
        return
    for item in summaries:
        stamp = item.last_modified.isoformat() if item.last_modified else "-"
        typer.echo(f"{item.name}\t{item.field_count} fields\t{stamp}")


@configs_app.command("show")
def configs_show(ctx: typer.Context, name: str = typer.Argument(..., help="Configuration name")) -> None:
    """Print a saved configuration as JSON."""

    settings = _settings(ctx)
    try:
        mapping_set = _config_store(settings).load(name)
    except DocMergeError as exc:
        _fail("Unable to load configuration", exc)
    typer.echo(json.dumps(mapping_set.to_payload(), ensure_ascii=False, indent=2))


@configs_app.command("import")
def configs_import(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, resolve_path=True),
    name: Optional[str] = typer.Option(None, "--name", help="Save under this name instead of the file's name"),
) -> None:
    """Validate a YAML/JSON mapping file and save it."""

    settings = _settings(ctx)
    try:
        mapping_set = load_mapping_set(path)
        saved = _config_store(settings).save(name or mapping_set.name, mapping_set)
    except DocMergeError as exc:
        _fail("Import failed", exc)
    typer.echo(f"Saved configuration {saved.name} ({saved.field_count} fields)")


@configs_app.command("export")
def configs_export(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Configuration name"),
    output: Path = typer.Option(..., "--output", "-o", help="Target .yaml/.yml/.json file", resolve_path=True),
) -> None:
    """Write a saved configuration to a file."""

    settings = _settings(ctx)
    try:
        mapping_set = _config_store(settings).load(name)
        target = dump_mapping_set(mapping_set, output)
    except DocMergeError as exc:
        _fail("Export failed", exc)
    typer.echo(f"Exported {name} to {target}")


@configs_app.command("delete")
def configs_delete(ctx: typer.Context, name: str = typer.Argument(..., help="Configuration name")) -> None:
    """Delete a configuration; deleting an unknown name is not an error."""

    settings = _settings(ctx)
    _config_store(settings).delete(name)
    typer.echo(f"Deleted {name}")


@sources_app.command("list")
def sources_list(ctx: typer.Context) -> None:
    """List workbooks available under the sources directory."""

    settings = _settings(ctx)
    for info in source_from_config(None, settings.sources_dir).list_sources():
        typer.echo(f"{info.id}\t{info.name}")


@sources_app.command("describe")
def sources_describe(ctx: typer.Context, source_id: str = typer.Argument(..., help="Source file name")) -> None:
    """Show sheets, headers and row counts of a source."""

    settings = _settings(ctx)
    try:
        description = source_from_config(None, settings.sources_dir).describe(source_id)
    except DocMergeError as exc:
        _fail("Unable to describe source", exc)
    typer.echo(description.name)
    for sheet in description.sheets:
        typer.echo(f"  {sheet.name} ({sheet.row_count} rows)")
        typer.echo(f"    headers: {', '.join(sheet.headers)}")


@templates_app.command("list")
def templates_list(ctx: typer.Context) -> None:
    """List PDF templates."""

    settings = _settings(ctx)
    for info in store_from_config(None, settings.home).list_templates():
        typer.echo(f"{info.id}\t{info.size} bytes")


@folders_app.command("list")
def folders_list(ctx: typer.Context) -> None:
    """List output folders."""

    settings = _settings(ctx)
    for folder in store_from_config(None, settings.home).list_folders():
        typer.echo(folder.id)


@folders_app.command("create")
def folders_create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Folder name"),
    parent: Optional[str] = typer.Option(None, "--parent", help="Parent folder id"),
) -> None:
    """Create an output folder."""

    settings = _settings(ctx)
    try:
        folder = store_from_config(None, settings.home).create_folder(name, parent)
    except DocMergeError as exc:
        _fail("Unable to create folder", exc)
    typer.echo(folder.id)


def _parse_rows(values: List[str]) -> list[int] | None:
    """Accept ``3``, ``1,4`` or ``2-5`` style selectors."""

    if not values:
        return None
    selected: list[int] = []
    for value in values:
        for part in value.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                if "-" in part:
                    start, end = (int(x) for x in part.split("-", 1))
                    selected.extend(range(start, end + 1))
                else:
                    selected.append(int(part))
            except ValueError as exc:
                raise typer.BadParameter(f"Invalid row selector: {value}") from exc
    if any(n < 1 for n in selected):
        raise typer.BadParameter("Row numbers start at 1")
    return sorted(set(selected))


@app.command("generate")
def cli_generate(
    ctx: typer.Context,
    config: str = typer.Option(..., "--config", "-c", help="Saved configuration name"),
    source: str = typer.Option(..., "--source", "-s", help="Source file name under the sources directory"),
    sheet: str = typer.Option(..., "--sheet", help="Sheet name (the file stem for CSV sources)"),
    rows: List[str] = typer.Option([], "--rows", help="1-based data rows, e.g. 1,3 or 2-5 (repeatable)"),
    document_number_field: Optional[str] = typer.Option(
        None, "--number-field", help="Column holding the document number"
    ),
    deliver: bool = typer.Option(True, "--deliver/--no-deliver", help="Send documents by e-mail when configured"),
    report_dir: Optional[Path] = typer.Option(None, "--report-dir", help="Directory for the run report", resolve_path=True),
) -> None:
    """Generate one PDF per record and write a run report."""

    logger = get_logger()
    settings = _settings(ctx)
    document_store = store_from_config(None, settings.home)
    pipeline = Pipeline(
        config_store=_config_store(settings),
        document_store=document_store,
        data_source=source_from_config(None, settings.sources_dir),
        delivery=delivery_from_config(None, settings=settings, store=document_store) if deliver else None,
        settings=settings,
    )

    try:
        result = pipeline.run(
            config,
            source,
            sheet,
            rows=_parse_rows(rows),
            document_number_field=document_number_field,
            deliver=deliver,
            report_dir=report_dir,
        )
    except DocMergeError as exc:
        _fail("Generation did not start", exc)

    report = result.report
    typer.echo("Generation finished")
    typer.echo(f"Processed records: {report.total_processed}")
    typer.echo(f"Generated documents: {report.succeeded}")
    typer.echo(f"Failed records: {report.failed}")
    if report.delivery_failures:
        typer.echo(f"Delivery errors: {len(report.delivery_failures)}")
    if result.report_path is None:
        typer.echo("Report: not written (see log)")
    else:
        typer.echo(f"Report: {result.report_path}")
        typer.echo(f"Results CSV: {result.results_csv_path}")
    logger.info("CLI generation completed: config=%s failed=%d", config, report.failed)
    if result.has_failures:
        raise typer.Exit(code=EXIT_RECORD_FAILURES)


if __name__ == "__main__":
    app()
