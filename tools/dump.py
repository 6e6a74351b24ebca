#!/usr/bin/env python3
from pathlib import Path

import click

from dtsrollup.lang.typescript import TypeScriptProgram
from dtsrollup.logger import setup_logging
from dtsrollup.rollup import RollupGenerator
from dtsrollup.span import Span


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument(
    "entry_point",
    type=click.Path(exists=True, dir_okay=False, readable=True, path_type=Path),
)
@click.option("--spans/--no-spans", default=False, help="Print the span tree of the file.")
@click.option(
    "--debug/--no-debug",
    default=False,
    help="Enable debug logging of symbol discovery.",
)
def main(entry_point: Path, spans: bool, debug: bool) -> None:
    """
    Print the rollup entries discovered from ENTRY_POINT, and optionally the
    span tree the emitter rewrites.
    """
    setup_logging(debug)

    entry = entry_point.resolve()
    program = TypeScriptProgram(entry.parent)
    source_file = program.get_source_file(entry)

    if spans:
        assert source_file.root is not None
        click.echo(Span(source_file.root).get_dump())

    generator = RollupGenerator(program, source_file)
    generator.analyze()

    click.echo(f"{len(generator.entries)} entries")
    for rollup_entry in generator.entries:
        origin = ""
        if rollup_entry.symbol.import_info is not None:
            origin = f" <- {rollup_entry.symbol.import_info.key}"
        marker = "export " if rollup_entry.exported else ""
        click.echo(
            f"  {marker}{rollup_entry.name_for_emit} [{rollup_entry.visibility_tier.value}]"
            f" declarations={len(rollup_entry.symbol.declarations)}{origin}"
        )
    for name in generator.type_reference_directives:
        click.echo(f'  /// <reference types="{name}" />')
    for name in generator.lib_reference_directives:
        click.echo(f'  /// <reference lib="{name}" />')


if __name__ == "__main__":
    main()
