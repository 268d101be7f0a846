"""
Simple example: one pipeline account, two stages in a foreign account.

Run:
    python examples/simple_pipeline.py
"""

from crossdeploy import (
    Environment,
    ManifestCompiler,
    PipelineBuilder,
    StageDescriptor,
    policies,
)
from crossdeploy.logging import configure_logging

TOOLCHAIN_ACCOUNT = "111111111111"
SERVICE_ACCOUNT = "222222222222"
REGION = "ap-northeast-1"


def main():
    configure_logging(level="INFO")

    builder = PipelineBuilder.create(
        source_location="ecs-tutorial-repo",
        branch="main",
        environment=Environment(account=TOOLCHAIN_ACCOUNT, region=REGION),
    )
    builder.add_stage(
        StageDescriptor(
            name="UAT",
            environment=Environment(account=SERVICE_ACCOUNT, region=REGION),
            policy=policies.CANARY_10PERCENT_5MINUTES,
        )
    ).add_stage(
        StageDescriptor(
            name="Prod",
            environment=Environment(account=SERVICE_ACCOUNT, region="us-east-1"),
            policy=policies.LINEAR_10PERCENT_EVERY_3MINUTES,
        )
    )

    sealed = builder.finalize()
    for grant in sealed.compute_grants():
        print(f"{grant.account}: {', '.join(grant.stages)}")

    compiled = ManifestCompiler().compile(sealed)
    print(compiled.to_yaml())


if __name__ == "__main__":
    main()
