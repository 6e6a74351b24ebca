from pathlib import Path

from dtsrollup.lang.typescript import TypeScriptProgram
from dtsrollup.logger import logger
from dtsrollup.models import RollupResult
from dtsrollup.rollup import RollupGenerator
from dtsrollup.settings import RollupSettings


def run_rollup(settings: RollupSettings) -> RollupResult:
    """
    Analyze ``settings.entry_point`` and write one rollup file per configured
    output path. Relative paths are resolved against ``settings.project_folder``.
    """
    project_folder = Path(settings.project_folder).resolve()
    program = TypeScriptProgram(project_folder)
    entry_file = program.get_source_file(settings.entry_point)

    generator = RollupGenerator(
        program,
        entry_file,
        omit_trimming_comments=settings.omit_trimming_comments,
    )
    generator.analyze()

    result = RollupResult(
        entry_point=str(entry_file.path),
        entry_count=len(generator.entries),
        package_documentation=generator.package_documentation,
    )
    for kind, path in settings.get_output_paths().items():
        target = Path(path)
        if not target.is_absolute():
            target = project_folder / target
        written = generator.write_typings_file(target, kind, settings.newline_kind)
        result.files[kind] = str(written)

    if not result.files:
        logger.warning("No output paths configured, nothing was written")
    return result
