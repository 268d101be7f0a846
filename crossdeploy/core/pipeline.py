"""
PipelineBuilder: accumulates stages and seals them into a pipeline.

The builder owns an ordered, append-only list of stage results. Calling
``finalize()`` materializes the pipeline's own execution identities and
returns a SealedPipeline. Only a SealedPipeline can compute cross-account
trust, so grants can never be derived from a pipeline that may still grow.

Example:
    builder = PipelineBuilder.create(
        source_location="ecs-tutorial-repo",
        branch="main",
        environment=Environment(account="111111111111", region="ap-northeast-1"),
    )
    builder.add_stage(uat)
    sealed = builder.finalize()
    grants = sealed.compute_grants()
"""

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

import structlog

from crossdeploy.config.toolchain import ServiceConfig, ToolchainConfig
from crossdeploy.core.environment import Environment
from crossdeploy.core.orchestrator import PipelineOutput, StageOrchestrator, StageResult
from crossdeploy.core.stage import StageCatalog, StageDescriptor
from crossdeploy.core.step import ArtifactInput, StepKind, StepNode
from crossdeploy.errors import DependencyOrderingError, ValidationError
from crossdeploy.resolution.deployment_group import DeploymentGroupResolver

if TYPE_CHECKING:
    from crossdeploy.security.trust import CrossAccountTrustManager, TrustGrant

logger = structlog.get_logger(__name__)

CODEBUILD_PRINCIPAL = "codebuild.amazonaws.com"
CODEPIPELINE_PRINCIPAL = "codepipeline.amazonaws.com"


@dataclass(frozen=True)
class PipelineSource:
    """Source repository and branch that trigger the pipeline."""

    location: str
    branch: str = "main"

    @property
    def artifact(self) -> str:
        return "Source.output"

    def to_dict(self) -> dict[str, str]:
        return {"location": self.location, "branch": self.branch}


@dataclass(frozen=True)
class PipelineOptions:
    """
    Pipeline-wide switches handed to the execution service.

    The defaults are the only combination crossdeploy is meant to run with:
    the pipeline updates itself, assets are published one at a time, and
    artifact buckets use keys that foreign accounts can be granted.
    """

    self_mutation: bool = True
    docker_enabled_for_self_mutation: bool = True
    publish_assets_in_parallel: bool = False
    cross_account_keys: bool = True

    def to_dict(self) -> dict[str, bool]:
        return {
            "self_mutation": self.self_mutation,
            "docker_enabled_for_self_mutation": self.docker_enabled_for_self_mutation,
            "publish_assets_in_parallel": self.publish_assets_in_parallel,
            "cross_account_keys": self.cross_account_keys,
        }


@dataclass(frozen=True)
class ExecutionIdentity:
    """A role the pipeline runs something as."""

    name: str
    role_name: str
    assumed_by: str
    statements: tuple[dict, ...] = ()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "role_name": self.role_name,
            "assumed_by": self.assumed_by,
            "statements": list(self.statements),
        }


def synth_step(app_name: str, source: PipelineSource, output: PipelineOutput) -> StepNode:
    """The pipeline-level step that synthesizes templates and copies step scripts."""
    return StepNode(
        id=f"{app_name}-synth",
        kind=StepKind.SYNTH,
        inputs=(ArtifactInput(source.artifact),),
        commands=(
            "npm install",
            "npm run build",
            "npx cdk synth",
            "cp -r lib/codebuild cdk.out/",
            "cp -r lib/codedeploy cdk.out/",
        ),
        output=output.primary,
        output_directory="cdk.out",
        metadata={"install_commands": ["npm install"], "cloud_assembly": output.cloud_assembly},
    )


class SealedPipeline:
    """
    A finalized pipeline.

    Stages can no longer be added. Execution identities are materialized and
    trust grants can be computed and attached.
    """

    def __init__(
        self,
        name: str,
        source: PipelineSource,
        environment: Environment,
        options: PipelineOptions,
        synth: StepNode,
        stages: tuple[StageResult, ...],
        identities: dict[str, ExecutionIdentity],
    ):
        self.name = name
        self.source = source
        self.environment = environment
        self.options = options
        self.synth = synth
        self.stages = stages
        self.identities = dict(identities)
        self._trust_grants: tuple["TrustGrant", ...] | None = None

    @property
    def account(self) -> str | None:
        return self.environment.account

    @property
    def self_mutation_role(self) -> ExecutionIdentity:
        return self.identities["SelfMutation"]

    @property
    def trust_grants(self) -> tuple["TrustGrant", ...] | None:
        """Grants attached to the self-mutation role, or None if not yet computed."""
        return self._trust_grants

    def foreign_stages(self) -> list[StageResult]:
        return [stage for stage in self.stages if stage.descriptor.account != self.account]

    def get_stage(self, name: str) -> StageResult | None:
        return next((stage for stage in self.stages if stage.name == name), None)

    def compute_grants(
        self, manager: "CrossAccountTrustManager | None" = None
    ) -> tuple["TrustGrant", ...]:
        """
        Compute trust grants for this pipeline and attach them to the
        self-mutation role, replacing any earlier set.
        """
        # Import here to avoid circular dependency
        from crossdeploy.security.trust import CrossAccountTrustManager

        manager = manager or CrossAccountTrustManager()
        return manager.attach(self)

    def _attach_grants(self, grants: tuple["TrustGrant", ...]) -> None:
        self._trust_grants = grants
        self.identities["SelfMutation"] = replace(
            self.self_mutation_role,
            statements=tuple(grant.to_policy_statement() for grant in grants),
        )

    def __repr__(self):
        return f"SealedPipeline({self.name}, stages={len(self.stages)}, account={self.account})"


class PipelineBuilder:
    """
    Ordered accumulator of stage results.

    ``add_stage`` returns the builder so calls can be chained.
    ``finalize`` returns a SealedPipeline; calling it again returns the same
    object. Adding a stage after finalizing is an ordering error.
    """

    def __init__(
        self,
        name: str,
        source: PipelineSource,
        environment: Environment,
        options: PipelineOptions | None = None,
        orchestrator: StageOrchestrator | None = None,
        pipeline_output: PipelineOutput | None = None,
    ):
        self.name = name
        self.source = source
        self.environment = environment
        self.options = options or PipelineOptions()
        self.orchestrator = orchestrator or StageOrchestrator()
        self.pipeline_output = pipeline_output or PipelineOutput()
        self.synth = synth_step(name, source, self.pipeline_output)
        self._catalog = StageCatalog()
        self._results: list[StageResult] = []
        self._sealed: SealedPipeline | None = None

    @classmethod
    def create(
        cls,
        source_location: str,
        branch: str,
        environment: Environment,
        app_name: str = "EcsBlueGreen",
        service: ServiceConfig | None = None,
        partition: str = "aws",
    ) -> "PipelineBuilder":
        """
        Start a self-mutating pipeline watching ``branch`` of ``source_location``.

        Raises:
            ValidationError: If the source location or branch is empty
        """
        if not source_location or not branch:
            raise ValidationError("Pipeline source location and branch are required", field="source")
        orchestrator = StageOrchestrator(service, DeploymentGroupResolver(partition))
        builder = cls(
            name=f"Pipeline-{app_name}",
            source=PipelineSource(source_location, branch),
            environment=environment,
            orchestrator=orchestrator,
        )
        logger.info(
            "pipeline_created",
            pipeline=builder.name,
            source=source_location,
            branch=branch,
            account=environment.account,
            region=environment.region,
        )
        return builder

    @classmethod
    def from_config(cls, config: ToolchainConfig) -> "PipelineBuilder":
        """Create a builder and add every configured stage, in order."""
        builder = cls.create(
            source_location=config.source.repository,
            branch=config.source.branch,
            environment=config.pipeline.to_environment(),
            app_name=config.app_name,
            service=config.service,
            partition=config.partition,
        )
        for descriptor in config.stage_descriptors():
            builder.add_stage(descriptor)
        return builder

    @property
    def stages(self) -> tuple[StageResult, ...]:
        return tuple(self._results)

    @property
    def catalog(self) -> StageCatalog:
        return self._catalog

    @property
    def is_finalized(self) -> bool:
        return self._sealed is not None

    def add_stage(self, descriptor: StageDescriptor) -> "PipelineBuilder":
        """
        Orchestrate a stage and append it in deployment order.

        Nothing is recorded if validation or orchestration fails.

        Raises:
            DependencyOrderingError: If the pipeline is already finalized
            ValidationError: If the name is taken or account/region missing
            ReferenceResolutionError: If the deployment group cannot be resolved
        """
        if self._sealed is not None:
            raise DependencyOrderingError(
                f"Cannot add stage '{descriptor.name}': pipeline '{self.name}' is finalized"
            )
        self._catalog.check(descriptor)
        result = self.orchestrator.build_stage(descriptor, self.pipeline_output)
        self._catalog.add_stage(descriptor)
        self._results.append(result)
        logger.info("stage_added", pipeline=self.name, stage=descriptor.name, position=len(self._results))
        return self

    def finalize(self) -> SealedPipeline:
        """
        Seal the pipeline and materialize its execution identities.

        Raises:
            ValidationError: If the pipeline environment is incomplete, or a
                stage targets a foreign account without cross-account keys
        """
        if self._sealed is not None:
            return self._sealed

        missing = self.environment.missing_fields()
        if missing:
            raise ValidationError(
                f"Pipeline '{self.name}' is missing {', '.join(missing)}", field=missing[0]
            )

        foreign = [r.name for r in self._results if r.descriptor.account != self.environment.account]
        if foreign and not self.options.cross_account_keys:
            raise ValidationError(
                f"Stages {', '.join(foreign)} deploy to other accounts; "
                "cross-account keys must be enabled",
                field="cross_account_keys",
            )

        self._sealed = SealedPipeline(
            name=self.name,
            source=self.source,
            environment=self.environment,
            options=self.options,
            synth=self.synth,
            stages=tuple(self._results),
            identities=self._materialize_identities(),
        )
        logger.info(
            "pipeline_finalized",
            pipeline=self.name,
            stages=len(self._results),
            foreign_stages=len(foreign),
        )
        return self._sealed

    def _materialize_identities(self) -> dict[str, ExecutionIdentity]:
        identities = {
            "Pipeline": ExecutionIdentity(
                name="Pipeline",
                role_name=f"{self.name}-PipelineRole",
                assumed_by=CODEPIPELINE_PRINCIPAL,
            ),
            "SelfMutation": ExecutionIdentity(
                name="SelfMutation",
                role_name=f"{self.name}-SelfMutationRole",
                assumed_by=CODEBUILD_PRINCIPAL,
            ),
            "FileAsset": ExecutionIdentity(
                name="FileAsset",
                role_name=f"{self.name}-FileAssetRole",
                assumed_by=CODEBUILD_PRINCIPAL,
            ),
        }
        for result in self._results:
            build = result.build
            statements = tuple(
                {
                    "Effect": "Allow",
                    "Action": [
                        "ecr:BatchCheckLayerAvailability",
                        "ecr:GetDownloadUrlForLayer",
                        "ecr:BatchGetImage",
                        "ecr:PutImage",
                        "ecr:InitiateLayerUpload",
                        "ecr:UploadLayerPart",
                        "ecr:CompleteLayerUpload",
                    ],
                    "Resource": (
                        f"arn:*:ecr:{self.environment.region}:{self.environment.account}:"
                        f"repository/{grant['repository']}"
                    ),
                }
                for grant in build.metadata.get("role_grants", [])
            )
            name = f"{result.name}.BuildRole"
            identities[name] = ExecutionIdentity(
                name=name,
                role_name=f"{self.name}-{result.name}-BuildRole",
                assumed_by=CODEBUILD_PRINCIPAL,
                statements=statements,
            )
        return identities

    def __repr__(self):
        state = "finalized" if self.is_finalized else "open"
        return f"PipelineBuilder({self.name}, stages={len(self._results)}, {state})"
