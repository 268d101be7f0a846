"""
Exception hierarchy for crossdeploy.

All errors raised while building a pipeline inherit from ``CrossDeployError``
so callers can catch the whole family with one ``except`` clause.

Hierarchy::

    CrossDeployError
      ├── ValidationError            ── bad stage or configuration input
      ├── ReferenceResolutionError   ── cannot build a fully-qualified reference
      ├── DependencyOrderingError    ── graph or lifecycle ordering violated
      ├── CompilationError           ── sealed pipeline cannot be compiled
      └── ExecutionFailure           ── reported by the external executor
"""


class CrossDeployError(Exception):
    """Base exception for all crossdeploy errors."""

    pass


class ValidationError(CrossDeployError):
    """Raised when a stage descriptor or configuration value is invalid."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class ReferenceResolutionError(CrossDeployError):
    """Raised when an external reference cannot be fully qualified."""

    def __init__(self, message: str, missing: list[str] | None = None):
        self.missing = missing or []
        super().__init__(message)


class DependencyOrderingError(CrossDeployError):
    """
    Raised when construction order is violated.

    Covers both graph-level problems (a step depending on a step that is not
    in the graph, a cycle, a missing artifact edge) and lifecycle problems
    (computing trust grants before the pipeline has been finalized, adding a
    stage after it has been sealed).
    """

    pass


class CompilationError(CrossDeployError):
    """Raised when a sealed pipeline cannot be compiled to a manifest."""

    pass


class ExecutionFailure(CrossDeployError):
    """
    A step's command sequence exited non-zero.

    Never raised while building a pipeline. Execution belongs to the external
    pipeline service; this type exists so tooling that reads the service's
    reports can surface failures in the same hierarchy.
    """

    def __init__(self, step_id: str, exit_code: int, message: str | None = None):
        self.step_id = step_id
        self.exit_code = exit_code
        super().__init__(message or f"Step '{step_id}' exited with code {exit_code}")
