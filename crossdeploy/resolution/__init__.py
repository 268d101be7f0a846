"""Resolution of references to resources owned by target environments."""

from crossdeploy.resolution.deployment_group import (
    DeploymentGroupRef,
    DeploymentGroupResolver,
    format_arn,
)

__all__ = [
    "DeploymentGroupRef",
    "DeploymentGroupResolver",
    "format_arn",
]
