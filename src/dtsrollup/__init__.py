from dtsrollup.errors import InternalError, RollupInputError
from dtsrollup.extractor import run_rollup
from dtsrollup.models import NewlineKind, ReleaseTag, RollupKind, RollupResult
from dtsrollup.rollup import RollupEntry, RollupGenerator
from dtsrollup.settings import RollupSettings

__all__ = [
    "InternalError",
    "NewlineKind",
    "ReleaseTag",
    "RollupEntry",
    "RollupGenerator",
    "RollupInputError",
    "RollupKind",
    "RollupResult",
    "RollupSettings",
    "run_rollup",
]
