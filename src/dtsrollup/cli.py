from pathlib import Path
from typing import Optional

import click
from pydantic_settings import SettingsConfigDict

from dtsrollup.errors import RollupInputError
from dtsrollup.extractor import run_rollup
from dtsrollup.logger import setup_logging
from dtsrollup.models import NewlineKind
from dtsrollup.settings import RollupSettings


def load_settings(
    cli: bool = False,
    env_prefix: Optional[str] = None,
    env_file: Optional[str] = None,
    toml_file: Optional[str] = None,
    json_file: Optional[str] = None,
    **kwargs,
) -> RollupSettings:
    config_dict = SettingsConfigDict(
        cli_parse_args=cli,
        env_prefix=env_prefix or "",
        env_file=env_file,
        toml_file=toml_file,
        json_file=json_file,
    )

    class Settings(RollupSettings):
        model_config = config_dict

    return Settings(**kwargs)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("entry_point", required=False)
@click.option(
    "--project-folder",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Folder that relative paths are resolved against (default: current folder).",
)
@click.option("--untrimmed", type=str, default=None, help="Output path of the internal rollup.")
@click.option("--beta", type=str, default=None, help="Output path of the preview rollup.")
@click.option("--public", type=str, default=None, help="Output path of the public rollup.")
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False, readable=True, path_type=Path),
    default=None,
    help="TOML file with rollup settings.",
)
@click.option(
    "--newline",
    type=click.Choice([k.value for k in NewlineKind]),
    default=None,
    help="Line endings of the written files.",
)
@click.option(
    "--omit-trimming-comments",
    is_flag=True,
    default=None,
    help="Do not leave a comment where a declaration was trimmed.",
)
@click.option(
    "--debug/--no-debug",
    default=False,
    help="Enable debug logging of symbol discovery.",
)
def main(
    entry_point: Optional[str],
    project_folder: Optional[Path],
    untrimmed: Optional[str],
    beta: Optional[str],
    public: Optional[str],
    config: Optional[Path],
    newline: Optional[str],
    omit_trimming_comments: Optional[bool],
    debug: bool,
) -> None:
    """
    Roll up the declarations reachable from ENTRY_POINT into single .d.ts files.

    Settings can also come from DTSROLLUP_* environment variables or --config.
    """
    setup_logging(debug)

    overrides = {
        "entry_point": entry_point,
        "project_folder": str(project_folder) if project_folder else None,
        "untrimmed_file_path": untrimmed,
        "beta_trimmed_file_path": beta,
        "public_trimmed_file_path": public,
        "newline_kind": newline,
        "omit_trimming_comments": omit_trimming_comments,
    }
    try:
        settings = load_settings(
            env_prefix="DTSROLLUP_",
            toml_file=str(config) if config else None,
            **{k: v for k, v in overrides.items() if v is not None},
        )
    except ValueError as ex:
        raise click.UsageError(str(ex)) from ex

    try:
        result = run_rollup(settings)
    except RollupInputError as ex:
        raise click.ClickException(str(ex)) from ex

    click.echo(f"Analyzed {result.entry_point}: {result.entry_count} declarations")
    for kind, path in result.files.items():
        click.echo(f"  {kind.value}: {path}")


if __name__ == "__main__":
    main()
