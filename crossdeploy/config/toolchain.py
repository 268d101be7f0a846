"""
Toolchain configuration.

The pipeline, its source and its stages are described in a YAML file and
validated with pydantic before any graph is built.

Example ``toolchain.yaml``:
    app_name: EcsBlueGreen
    pipeline:
      account: "111111111111"
      region: ap-northeast-1
    source:
      repository: ecs-tutorial-repo
      branch: main
    stages:
      - name: UAT
        account: "222222222222"
        region: ap-northeast-1
        deployment_config: CANARY_10PERCENT_5MINUTES
"""

from pathlib import Path
from typing import Any

import pydantic
import yaml
from pydantic import BaseModel, Field, field_validator

from crossdeploy.core.environment import Environment
from crossdeploy.core.policy import BlueGreenTiming, get_policy
from crossdeploy.core.stage import StageDescriptor
from crossdeploy.errors import ValidationError


def _require_quoted_account(value: Any) -> Any:
    # YAML reads unquoted account IDs as integers, and as octal when every
    # digit is 0-7, so the original digits cannot be recovered
    if value is not None and not isinstance(value, str):
        raise ValueError("account IDs must be quoted strings")
    return value


class EnvironmentConfig(BaseModel):
    """Account and region of the pipeline itself."""

    account: str = Field(..., description="Account that hosts the pipeline")
    region: str = Field(..., description="Region that hosts the pipeline")

    @field_validator("account", mode="before")
    @classmethod
    def check_account(cls, value: Any) -> Any:
        return _require_quoted_account(value)

    def to_environment(self) -> Environment:
        return Environment(account=self.account, region=self.region)

    class Config:
        extra = "forbid"


class SourceConfig(BaseModel):
    """Source repository the pipeline watches."""

    repository: str = Field(..., description="Source repository name")
    branch: str = Field(default="main", description="Branch that triggers the pipeline")

    class Config:
        extra = "forbid"


class ServiceConfig(BaseModel):
    """
    Names shared between the pipeline and the service stacks in each target
    account. These must match what the target accounts actually provision.
    """

    application_name: str = Field(
        default="crossAccountEcsBGDeployApp",
        description="CodeDeploy application and deployment group name",
    )
    task_execution_role: str = Field(
        default="tutorialEcsExecutionRole",
        description="Explicitly named ECS task execution role",
    )
    task_definition_family: str = Field(
        default="crossAccountEcsBGDeployDef", description="Fargate task definition family"
    )
    ecr_repository: str = Field(
        default="ecs-tutorial", description="Container registry repository in the pipeline account"
    )
    build_region: str = Field(
        default="ap-northeast-1", description="Region the image is pushed to"
    )
    build_image: str = Field(
        default="aws/codebuild/standard:5.0", description="CodeBuild image for docker builds"
    )
    privileged: bool = Field(default=True, description="Docker-in-docker for the build step")

    class Config:
        extra = "forbid"


class StageConfig(BaseModel):
    """One deployment target."""

    name: str
    account: str = ""
    region: str = ""
    deployment_config: str = Field(
        default="CANARY_10PERCENT_5MINUTES",
        description="Predefined deployment config, short or CodeDeploy name",
    )
    approval_wait_minutes: int = Field(default=30, ge=0)
    termination_wait_minutes: int = Field(default=10, ge=0)

    @field_validator("account", mode="before")
    @classmethod
    def check_account(cls, value: Any) -> Any:
        return _require_quoted_account(value)

    def to_descriptor(self) -> StageDescriptor:
        return StageDescriptor(
            name=self.name,
            environment=Environment(account=self.account, region=self.region),
            policy=get_policy(self.deployment_config),
            timing=BlueGreenTiming(
                approval_wait_minutes=self.approval_wait_minutes,
                termination_wait_minutes=self.termination_wait_minutes,
            ),
        )

    class Config:
        extra = "forbid"


class ToolchainConfig(BaseModel):
    """Top-level configuration for one delivery pipeline."""

    app_name: str = Field(default="EcsBlueGreen", description="Prefix for pipeline resources")
    pipeline: EnvironmentConfig
    source: SourceConfig
    partition: str = Field(default="aws", description="ARN partition")
    service: ServiceConfig = Field(default_factory=ServiceConfig)
    stages: list[StageConfig] = Field(default_factory=list)

    def stage_descriptors(self) -> list[StageDescriptor]:
        return [stage.to_descriptor() for stage in self.stages]

    class Config:
        extra = "forbid"


def load_config(path: str | Path) -> ToolchainConfig:
    """
    Load and validate a toolchain YAML file.

    Raises:
        ValidationError: If the file is unreadable, not a mapping, or fails
            schema validation
    """
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise ValidationError(f"Cannot read configuration '{path}': {e}") from e

    if not isinstance(data, dict):
        raise ValidationError(f"Configuration '{path}' must be a mapping")

    return parse_config(data)


def parse_config(data: dict[str, Any]) -> ToolchainConfig:
    """Validate an already-loaded configuration mapping."""
    try:
        return ToolchainConfig.model_validate(data)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationError(
            f"Invalid configuration at '{location}': {first['msg']}", field=location
        ) from e
