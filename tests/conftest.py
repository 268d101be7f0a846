"""
Shared fixtures for crossdeploy tests.
"""

import pytest

from crossdeploy.core.environment import Environment
from crossdeploy.core.orchestrator import PipelineOutput, StageOrchestrator
from crossdeploy.core.pipeline import PipelineBuilder
from crossdeploy.core.policy import CANARY_10PERCENT_5MINUTES
from crossdeploy.core.stage import StageDescriptor

PIPELINE_ACCOUNT = "111111111111"
FOREIGN_ACCOUNT = "222222222222"
REGION = "ap-northeast-1"


def make_stage(name: str, account: str = FOREIGN_ACCOUNT, region: str = REGION, policy=None):
    return StageDescriptor(
        name=name,
        environment=Environment(account=account, region=region),
        policy=policy or CANARY_10PERCENT_5MINUTES,
    )


@pytest.fixture
def pipeline_env():
    return Environment(account=PIPELINE_ACCOUNT, region=REGION)


@pytest.fixture
def builder(pipeline_env):
    return PipelineBuilder.create(
        source_location="ecs-tutorial-repo",
        branch="main",
        environment=pipeline_env,
    )


@pytest.fixture
def orchestrator():
    return StageOrchestrator()


@pytest.fixture
def pipeline_output():
    return PipelineOutput()


@pytest.fixture
def toolchain_yaml(tmp_path):
    path = tmp_path / "toolchain.yaml"
    path.write_text(
        f"""
app_name: EcsBlueGreen
pipeline:
  account: "{PIPELINE_ACCOUNT}"
  region: {REGION}
source:
  repository: ecs-tutorial-repo
  branch: main
stages:
  - name: UAT
    account: "{FOREIGN_ACCOUNT}"
    region: {REGION}
    deployment_config: CANARY_10PERCENT_5MINUTES
  - name: Prod
    account: "{FOREIGN_ACCOUNT}"
    region: us-east-1
    deployment_config: LINEAR_10PERCENT_EVERY_3MINUTES
  - name: Dev
    account: "{PIPELINE_ACCOUNT}"
    region: {REGION}
    deployment_config: ALL_AT_ONCE
"""
    )
    return path
