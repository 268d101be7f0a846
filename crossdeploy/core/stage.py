"""
Stages: the deployment targets a pipeline releases into, in order.

A StageDescriptor names one environment and how to cut traffic over in it.
The StageCatalog keeps descriptors in deployment order and rejects
duplicates, so every later component can key on the stage name.
"""

from dataclasses import dataclass, field
from typing import Iterator

import structlog

from crossdeploy.core.environment import Environment
from crossdeploy.core.policy import (
    BlueGreenTiming,
    CANARY_10PERCENT_5MINUTES,
    DeploymentPolicy,
)
from crossdeploy.errors import ValidationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StageDescriptor:
    """
    One deployment target.

    Example:
        uat = StageDescriptor(
            name="UAT",
            environment=Environment(account="222222222222", region="ap-northeast-1"),
            policy=CANARY_10PERCENT_5MINUTES,
        )
    """

    name: str
    environment: Environment
    policy: DeploymentPolicy = CANARY_10PERCENT_5MINUTES
    timing: BlueGreenTiming = field(default_factory=BlueGreenTiming)

    @property
    def account(self) -> str | None:
        return self.environment.account

    @property
    def region(self) -> str | None:
        return self.environment.region

    def validate(self) -> None:
        """Raise ValidationError if the descriptor cannot be registered."""
        if not self.name or not self.name.strip():
            raise ValidationError("Stage name cannot be empty", field="name")
        missing = self.environment.missing_fields()
        if missing:
            raise ValidationError(
                f"Stage '{self.name}' is missing {', '.join(missing)}",
                field=missing[0],
            )


class StageCatalog:
    """
    Ordered, name-unique collection of stage descriptors.

    Insertion order is deployment order. A failed add leaves the catalog
    untouched.
    """

    def __init__(self, stages: list[StageDescriptor] | None = None):
        self._stages: dict[str, StageDescriptor] = {}
        for descriptor in stages or []:
            self.add_stage(descriptor)

    def add_stage(self, descriptor: StageDescriptor) -> StageDescriptor:
        """
        Register a stage.

        Raises:
            ValidationError: If the name is already registered, or the
                environment has no account or region
        """
        self.check(descriptor)
        self._stages[descriptor.name] = descriptor
        logger.debug(
            "stage_registered",
            stage=descriptor.name,
            account=descriptor.account,
            region=descriptor.region,
        )
        return descriptor

    def check(self, descriptor: StageDescriptor) -> None:
        """Run add_stage validation without registering anything."""
        descriptor.validate()
        if descriptor.name in self._stages:
            raise ValidationError(
                f"Stage '{descriptor.name}' is already registered", field="name"
            )

    def stages(self) -> tuple[StageDescriptor, ...]:
        return tuple(self._stages.values())

    def get(self, name: str) -> StageDescriptor | None:
        return self._stages.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._stages

    def __iter__(self) -> Iterator[StageDescriptor]:
        return iter(self.stages())

    def __len__(self) -> int:
        return len(self._stages)

    def __repr__(self):
        return f"StageCatalog(stages={list(self._stages)})"
