"""
Steps: the nodes of a stage's step graph.

A StepNode is declarative. It names the commands the external executor will
run, the artifacts it reads and writes, and the steps it must follow. It
never runs anything itself.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any


class StepKind(str, Enum):
    SYNTH = "synth"
    BUILD = "build"
    CONFIGURE = "configure"
    DEPLOY = "deploy"


class Placement(str, Enum):
    """Where a step runs relative to the stage's own deployment."""

    PRE = "pre"
    POST = "post"


@dataclass(frozen=True)
class ArtifactInput:
    """An artifact consumed by a step, mounted at ``directory``."""

    key: str
    directory: str = "."


@dataclass(frozen=True)
class StepNode:
    """
    A single step in a stage's graph.

    ``dependencies`` holds only explicitly declared upstream step ids.
    Ordering implied by artifact consumption is derived by the graph from
    ``inputs`` and the producers' ``output``.

    ``env`` and ``metadata`` are copied into read-only mappings and are left
    out of the hash.
    """

    id: str
    kind: StepKind
    commands: tuple[str, ...] = ()
    inputs: tuple[ArtifactInput, ...] = ()
    output: str | None = None
    output_directory: str | None = None
    dependencies: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict, hash=False)
    placement: Placement = Placement.POST
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def input_keys(self) -> tuple[str, ...]:
        return tuple(artifact.key for artifact in self.inputs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "placement": self.placement.value,
            "commands": list(self.commands),
            "inputs": [
                {"key": artifact.key, "directory": artifact.directory}
                for artifact in self.inputs
            ],
            "output": self.output,
            "output_directory": self.output_directory,
            "dependencies": list(self.dependencies),
            "env": dict(self.env),
            "metadata": _plain(self.metadata),
        }

    def __repr__(self):
        return f"StepNode({self.id}, kind={self.kind.value})"


def _plain(value: Any) -> Any:
    """Convert metadata values to JSON-friendly structures."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    return value
