"""
Deployment policies for progressive (blue/green) cutover.

A DeploymentPolicy describes how traffic moves from the old task set to the
new one. The predefined policies mirror the CodeDeploy ECS deployment
configurations; custom policies are validated on construction.
"""

from dataclasses import dataclass
from enum import Enum

from crossdeploy.errors import ValidationError


class TrafficShift(str, Enum):
    CANARY = "canary"
    LINEAR = "linear"
    ALL_AT_ONCE = "all_at_once"


@dataclass(frozen=True)
class DeploymentPolicy:
    """
    How traffic shifts during a blue/green deployment.

    Canary: shift ``percentage`` of traffic, wait ``interval_minutes``,
    then shift the rest.
    Linear: shift ``percentage`` every ``interval_minutes`` until done.
    All-at-once: shift everything immediately.
    """

    name: str
    shift: TrafficShift
    percentage: int = 100
    interval_minutes: int = 0

    def __post_init__(self):
        if not self.name:
            raise ValidationError("Deployment policy requires a name", field="name")
        if not 1 <= self.percentage <= 100:
            raise ValidationError(
                f"Deployment policy '{self.name}' percentage must be within 1..100, "
                f"got {self.percentage}",
                field="percentage",
            )
        if self.shift is not TrafficShift.ALL_AT_ONCE and self.interval_minutes < 1:
            raise ValidationError(
                f"Deployment policy '{self.name}' needs an interval of at least 1 minute",
                field="interval_minutes",
            )

    @property
    def is_immediate(self) -> bool:
        return self.shift is TrafficShift.ALL_AT_ONCE

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "shift": self.shift.value,
            "percentage": self.percentage,
            "interval_minutes": self.interval_minutes,
        }


@dataclass(frozen=True)
class BlueGreenTiming:
    """
    Wait windows recorded on the deploy step.

    Both values are passed through to the executor unchanged; nothing in
    crossdeploy enforces them.
    """

    approval_wait_minutes: int = 30
    """How long to wait before rerouting production traffic to green"""

    termination_wait_minutes: int = 10
    """How long to keep the blue task set after cutover"""

    def __post_init__(self):
        if self.approval_wait_minutes < 0 or self.termination_wait_minutes < 0:
            raise ValidationError("Blue/green wait windows cannot be negative")

    def to_dict(self) -> dict[str, int]:
        return {
            "approval_wait_minutes": self.approval_wait_minutes,
            "termination_wait_minutes": self.termination_wait_minutes,
        }


CANARY_10PERCENT_5MINUTES = DeploymentPolicy(
    "CodeDeployDefault.ECSCanary10Percent5Minutes", TrafficShift.CANARY, 10, 5
)
CANARY_10PERCENT_15MINUTES = DeploymentPolicy(
    "CodeDeployDefault.ECSCanary10Percent15Minutes", TrafficShift.CANARY, 10, 15
)
LINEAR_10PERCENT_EVERY_1MINUTES = DeploymentPolicy(
    "CodeDeployDefault.ECSLinear10PercentEvery1Minutes", TrafficShift.LINEAR, 10, 1
)
LINEAR_10PERCENT_EVERY_3MINUTES = DeploymentPolicy(
    "CodeDeployDefault.ECSLinear10PercentEvery3Minutes", TrafficShift.LINEAR, 10, 3
)
ALL_AT_ONCE = DeploymentPolicy("CodeDeployDefault.ECSAllAtOnce", TrafficShift.ALL_AT_ONCE)

PREDEFINED_POLICIES: dict[str, DeploymentPolicy] = {
    "CANARY_10PERCENT_5MINUTES": CANARY_10PERCENT_5MINUTES,
    "CANARY_10PERCENT_15MINUTES": CANARY_10PERCENT_15MINUTES,
    "LINEAR_10PERCENT_EVERY_1MINUTES": LINEAR_10PERCENT_EVERY_1MINUTES,
    "LINEAR_10PERCENT_EVERY_3MINUTES": LINEAR_10PERCENT_EVERY_3MINUTES,
    "ALL_AT_ONCE": ALL_AT_ONCE,
}


def get_policy(name: str) -> DeploymentPolicy:
    """
    Look up a predefined policy by short name or CodeDeploy name.

    Example:
        get_policy("CANARY_10PERCENT_5MINUTES")
        get_policy("CodeDeployDefault.ECSCanary10Percent5Minutes")
    """
    if name in PREDEFINED_POLICIES:
        return PREDEFINED_POLICIES[name]
    for policy in PREDEFINED_POLICIES.values():
        if policy.name == name:
            return policy
    known = ", ".join(PREDEFINED_POLICIES)
    raise ValidationError(
        f"Unknown deployment config '{name}'. Known configs: {known}",
        field="deployment_config",
    )
