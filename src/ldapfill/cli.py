"""CLI entry point for ldapfill."""

from __future__ import annotations

import json
import logging
import random
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from ldapfill import __version__
from ldapfill.config import LOG_LEVELS, Config, Format, load_config, load_format
from ldapfill.exceptions import LdapfillError
from ldapfill.exporters import CsvExporter, write_ldif
from ldapfill.formatters import render_hierarchy, render_template, render_tree
from ldapfill.models import Entry
from ldapfill.queries import generate_queries
from ldapfill.tree import build_tree, total_entries, walk

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger("ldapfill")


def _abort(msg: str) -> NoReturn:
    err_console.print(f"[bold red]Error:[/] {escape(msg)}", highlight=False, soft_wrap=True)
    sys.exit(1)


def _setup_logging(level: int) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_time=False, show_path=False)],
        force=True,
    )


@dataclass
class Settings:
    """Configuration file values merged with command-line overrides."""

    config: Config
    format_file: Path | None
    data_dir: Path | None
    base: str
    seed: int | None

    def rng(self) -> random.Random:
        return random.Random(self.seed)


def _load_format(settings: Settings) -> Format:
    if settings.format_file is None:
        _abort(
            "A format file must be given with --format-file or as "
            "defaults.format-file in the configuration."
        )
    logger.info("Loading format file %s", settings.format_file)
    try:
        return load_format(settings.format_file, data_dir=settings.data_dir)
    except LdapfillError as exc:
        _abort(str(exc))


def _generate(fmt: Format, settings: Settings, show_progress: bool = True) -> list[Entry]:
    total = total_entries(fmt.hierarchy)
    logger.info("Generating %d entries under %r", total, settings.base)

    try:
        if not show_progress:
            return build_tree(fmt.hierarchy, suffix=settings.base, rng=settings.rng())

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=err_console,
            transient=True,
        ) as progress:
            task = progress.add_task("Generating entries…", total=total)
            return build_tree(
                fmt.hierarchy,
                suffix=settings.base,
                rng=settings.rng(),
                on_entry=lambda _entry: progress.advance(task),
            )
    except LdapfillError as exc:
        _abort(str(exc))


@click.group()
@click.option(
    "--config-file",
    "-c",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file (default: /etc/ldapfill.toml if present).",
)
@click.option(
    "--format-file",
    "-f",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Format file describing object classes and hierarchy.",
)
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory that file(...) paths are relative to (default: the format file's).",
)
@click.option("--base", "-b", default=None, help="Base DN the generated tree is placed under.")
@click.option("--seed", type=int, default=None, help="Random seed for reproducible output.")
@click.option(
    "--log-level",
    type=click.Choice(list(LOG_LEVELS), case_sensitive=False),
    default=None,
    help="Log level (overrides the configuration).",
)
@click.version_option(__version__, "--version", "-V")
@click.pass_context
def main(
    ctx: click.Context,
    config_file: Path | None,
    format_file: Path | None,
    data_dir: Path | None,
    base: str | None,
    seed: int | None,
    log_level: str | None,
) -> None:
    """Fill LDAP directories with generated test data.

    \b
    Examples:
      ldapfill -f format.toml check
      ldapfill -f format.toml -b dc=example,dc=org show --show-values
      ldapfill -f format.toml -b dc=example,dc=org export users.ldif --csv-dir csv/
      ldapfill -f format.toml --seed 7 queries queries.jsonl --count 500
    """
    try:
        config = load_config(config_file, required=config_file is not None)
    except LdapfillError as exc:
        _abort(str(exc))
        return

    _setup_logging(LOG_LEVELS[log_level.lower()] if log_level else config.log_level)

    ctx.obj = Settings(
        config=config,
        format_file=format_file or config.format_file,
        data_dir=data_dir,
        base=base if base is not None else config.base,
        seed=seed if seed is not None else config.seed,
    )


@main.command("check")
@click.pass_obj
def check_cmd(settings: Settings) -> None:
    """Validate the format file and show what would be generated."""
    fmt = _load_format(settings)

    for template in fmt.templates.values():
        console.print(render_template(template))
    console.print(render_hierarchy(fmt.hierarchy))
    if fmt.queries:
        console.print(f"{len(fmt.queries)} query template(s) defined.")
    console.print("[bold green]Format file is valid.[/]")


@main.command("show")
@click.option(
    "--show-values/--hide-values",
    default=False,
    help="Show or hide attribute values (default: hide).",
)
@click.option(
    "--max-children",
    type=click.IntRange(min=1),
    default=5,
    show_default=True,
    help="Entries shown per parent.",
)
@click.pass_obj
def show_cmd(settings: Settings, show_values: bool, max_children: int) -> None:
    """Generate the tree and print it without writing anything.

    \b
    Examples:
      ldapfill -f format.toml show
      ldapfill -f format.toml show --show-values --max-children 2
    """
    fmt = _load_format(settings)
    roots = _generate(fmt, settings, show_progress=False)
    console.print(
        render_tree(roots, suffix=settings.base, show_values=show_values, max_children=max_children)
    )


@main.command("export")
@click.argument("ldif_file", type=click.Path(dir_okay=False, allow_dash=True))
@click.option(
    "--csv-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Also write one CSV file per object class into this directory.",
)
@click.pass_obj
def export_cmd(settings: Settings, ldif_file: str, csv_dir: Path | None) -> None:
    """Generate entries and write them to LDIF_FILE ('-' for stdout).

    \b
    Examples:
      ldapfill -f format.toml -b dc=example,dc=org export users.ldif
      ldapfill -f format.toml export - --csv-dir out/
    """
    fmt = _load_format(settings)
    roots = _generate(fmt, settings)
    csv_dir = csv_dir or settings.config.csv_dir

    try:
        if ldif_file == "-":
            written = write_ldif(walk(roots), sys.stdout)
        else:
            with open(ldif_file, "w", encoding="utf-8") as fh:
                written = write_ldif(walk(roots), fh)

        if csv_dir is not None:
            with CsvExporter(csv_dir) as exporter:
                exporter.write_all(walk(roots))
            err_console.print(
                f"Wrote {exporter.written} CSV row(s) to {len(exporter.paths)} file(s) in {csv_dir}"
            )
    except OSError as exc:
        _abort(f"Failed to write output: {exc}")
        return

    err_console.print(f"[bold green]Exported {written} entries[/] to {ldif_file}")


@main.command("queries")
@click.argument("output", type=click.Path(dir_okay=False, allow_dash=True))
@click.option(
    "--count",
    "-n",
    type=click.IntRange(min=1),
    default=100,
    show_default=True,
    help="Number of queries to generate.",
)
@click.pass_obj
def queries_cmd(settings: Settings, output: str, count: int) -> None:
    """Generate the tree and write search queries against it as JSON lines.

    Each line holds the search base, the filter and whether the filter is
    expected to match. Query templates come from [[queries]] in the format file.
    """
    fmt = _load_format(settings)
    if not fmt.queries:
        _abort("The format file defines no [[queries]].")
        return

    roots = _generate(fmt, settings)
    rng = settings.rng()
    queries = generate_queries(roots, fmt.queries, count, suffix=settings.base, rng=rng)
    lines = "".join(json.dumps(q.as_dict()) + "\n" for q in queries)

    try:
        if output == "-":
            click.echo(lines, nl=False)
        else:
            Path(output).write_text(lines, encoding="utf-8")
    except OSError as exc:
        _abort(f"Failed to write output: {exc}")
        return

    hits = sum(q.expect_results for q in queries)
    err_console.print(f"Wrote {len(queries)} queries ({hits} expected to match) to {output}")
