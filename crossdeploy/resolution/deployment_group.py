"""
Deployment group references.

The CodeDeploy application and deployment group for each stage are created
in the target account by that account's own service stack. The pipeline only
needs to point at them, so this module formats a fully-qualified reference
and never creates anything.
"""

from dataclasses import dataclass
from typing import Any

import structlog

from crossdeploy.core.environment import Environment
from crossdeploy.core.policy import CANARY_10PERCENT_5MINUTES, DeploymentPolicy
from crossdeploy.errors import ReferenceResolutionError

logger = structlog.get_logger(__name__)

CODEDEPLOY_SERVICE = "codedeploy"
APPLICATION_RESOURCE = "application"


def format_arn(
    partition: str,
    service: str,
    region: str,
    account: str,
    resource: str,
    resource_name: str,
) -> str:
    """
    Format an ARN whose resource name is separated by a colon.

    Example:
        format_arn("aws", "codedeploy", "ap-northeast-1", "123456789012",
                   "application", "myApp")
        # 'arn:aws:codedeploy:ap-northeast-1:123456789012:application:myApp'
    """
    return f"arn:{partition}:{service}:{region}:{account}:{resource}:{resource_name}"


@dataclass(frozen=True)
class DeploymentGroupRef:
    """Reference to an existing ECS deployment group in a target account."""

    application_name: str
    deployment_group_name: str
    application_arn: str
    policy: DeploymentPolicy
    environment: Environment
    partition: str = "aws"

    @property
    def deployment_group_arn(self) -> str:
        return format_arn(
            self.partition,
            CODEDEPLOY_SERVICE,
            self.environment.region,
            self.environment.account,
            "deploymentgroup",
            f"{self.application_name}/{self.deployment_group_name}",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "application_name": self.application_name,
            "deployment_group_name": self.deployment_group_name,
            "application_arn": self.application_arn,
            "deployment_group_arn": self.deployment_group_arn,
            "deployment_config": self.policy.name,
            "environment": self.environment.to_dict(),
        }


class DeploymentGroupResolver:
    """
    Builds references to deployment groups that already exist.

    Example:
        resolver = DeploymentGroupResolver()
        ref = resolver.resolve(
            Environment(account="123456789012", region="ap-northeast-1"),
            "myApp",
        )
        ref.application_arn
        # 'arn:aws:codedeploy:ap-northeast-1:123456789012:application:myApp'
    """

    def __init__(self, partition: str = "aws"):
        self.partition = partition

    def resolve(
        self,
        env: Environment,
        application_name: str,
        deployment_group_name: str | None = None,
        policy: DeploymentPolicy = CANARY_10PERCENT_5MINUTES,
    ) -> DeploymentGroupRef:
        """
        Resolve a reference to an application's deployment group.

        Args:
            env: Target environment; account and region must be set
            application_name: CodeDeploy application name
            deployment_group_name: Defaults to the application name
            policy: Deployment policy to run the group with

        Raises:
            ReferenceResolutionError: If account, region or application
                name is empty
        """
        missing = env.missing_fields()
        if not application_name:
            missing.append("application_name")
        if missing:
            raise ReferenceResolutionError(
                f"Cannot resolve deployment group for '{application_name}': "
                f"missing {', '.join(missing)}",
                missing=missing,
            )

        arn = format_arn(
            partition=self.partition,
            service=CODEDEPLOY_SERVICE,
            region=env.region,
            account=env.account,
            resource=APPLICATION_RESOURCE,
            resource_name=application_name,
        )
        ref = DeploymentGroupRef(
            application_name=application_name,
            deployment_group_name=deployment_group_name or application_name,
            application_arn=arn,
            policy=policy,
            environment=env,
            partition=self.partition,
        )
        logger.debug("deployment_group_resolved", arn=arn, deployment_config=policy.name)
        return ref
