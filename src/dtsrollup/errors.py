class InternalError(RuntimeError):
    """Raised when an invariant of the rollup engine is broken (a program bug)."""


class RollupInputError(ValueError):
    """Raised when the input declarations use a shape the rollup cannot express."""
