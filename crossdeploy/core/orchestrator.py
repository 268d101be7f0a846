"""
StageOrchestrator: builds the Build → Configure → Deploy graph for a stage.

Per stage:
1. Build runs the docker build in the stage's pre slot and writes
   ``imageDetail.json`` (registry URI plus tag/digest) to its output
2. Configure copies ``imageDetail.json`` next to the CodeDeploy templates and
   renders the task definition and appspec
3. Deploy hands the rendered descriptors to the target account's
   deployment group

Configure is ordered after Build because it consumes Build's output. Deploy
declares an explicit dependency on Configure. Both orderings are verified
before the stage is returned.
"""

from dataclasses import dataclass

import structlog

from crossdeploy.config.toolchain import ServiceConfig
from crossdeploy.core.dag import StepGraph
from crossdeploy.core.stage import StageDescriptor
from crossdeploy.core.step import ArtifactInput, Placement, StepKind, StepNode
from crossdeploy.errors import DependencyOrderingError
from crossdeploy.resolution.deployment_group import (
    DeploymentGroupRef,
    DeploymentGroupResolver,
)

logger = structlog.get_logger(__name__)

IMAGE_DETAIL_FILE = "imageDetail.json"
IMAGE_DETAIL_FIELDS = ("ImageURI", "ImageTag")
DOCKER_OUTPUT_DIRECTORY = "dockerOutput"


@dataclass(frozen=True)
class PipelineOutput:
    """Artifacts the pipeline's synth step makes available to every stage."""

    primary: str = "Synth.output"
    cloud_assembly: str = "Synth.cloudAssembly"

    def keys(self) -> list[str]:
        return [self.primary, self.cloud_assembly]


@dataclass(frozen=True)
class StageResult:
    """Everything orchestration produced for one stage."""

    descriptor: StageDescriptor
    graph: StepGraph
    deployment_group: DeploymentGroupRef

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def build(self) -> StepNode:
        return self._node_of(StepKind.BUILD)

    @property
    def configure(self) -> StepNode:
        return self._node_of(StepKind.CONFIGURE)

    @property
    def deploy(self) -> StepNode:
        return self._node_of(StepKind.DEPLOY)

    def _node_of(self, kind: StepKind) -> StepNode:
        return next(node for node in self.graph.nodes.values() if node.kind is kind)


class StageOrchestrator:
    """
    Builds the per-stage step graph.

    Example:
        orchestrator = StageOrchestrator(ServiceConfig(), DeploymentGroupResolver())
        result = orchestrator.build_stage(uat, PipelineOutput())
        result.graph.topological_sort()
        # ['UAT.DockerBuild', 'UAT.ConfigureBlueGreenDeploy', 'UAT.CodeDeploy']
    """

    def __init__(
        self,
        service: ServiceConfig | None = None,
        resolver: DeploymentGroupResolver | None = None,
    ):
        self.service = service or ServiceConfig()
        self.resolver = resolver or DeploymentGroupResolver()

    def build_stage(
        self, descriptor: StageDescriptor, pipeline_output: PipelineOutput
    ) -> StageResult:
        """
        Build the three-step graph for a stage and bind its deployment group.

        Raises:
            ReferenceResolutionError: If the stage environment is incomplete
            DependencyOrderingError: If the resulting graph breaks ordering
        """
        deployment_group = self.resolver.resolve(
            descriptor.environment,
            self.service.application_name,
            policy=descriptor.policy,
        )

        graph = StepGraph(descriptor.name, external_artifacts=pipeline_output.keys())
        build = graph.add_node(self._build_step(descriptor, pipeline_output))
        configure = graph.add_node(self._configure_step(descriptor, pipeline_output, build))
        deploy = graph.add_node(self._deploy_step(descriptor, configure, deployment_group))

        self._verify_ordering(graph, build, configure, deploy)
        graph.seal()
        logger.info(
            "stage_graph_built",
            stage=descriptor.name,
            steps=len(graph),
            edges=len(graph.edges),
            deployment_config=descriptor.policy.name,
        )
        return StageResult(descriptor=descriptor, graph=graph, deployment_group=deployment_group)

    def _build_step(self, descriptor: StageDescriptor, output: PipelineOutput) -> StepNode:
        step_id = f"{descriptor.name}.DockerBuild"
        return StepNode(
            id=step_id,
            kind=StepKind.BUILD,
            placement=Placement.PRE,
            inputs=(ArtifactInput(output.primary),),
            commands=(
                "cd codebuild",
                "chmod +x build.sh",
                "./build.sh",
            ),
            output=f"{step_id}.output",
            output_directory="codebuild/",
            env={
                "AWS_REGION_NAME": self.service.build_region,
                "ECR_REPOSITORY_NAME": self.service.ecr_repository,
            },
            metadata={
                "build_environment": {
                    "image": self.service.build_image,
                    "privileged": self.service.privileged,
                },
                "produces": {"file": IMAGE_DETAIL_FILE, "fields": list(IMAGE_DETAIL_FIELDS)},
                "role_grants": [
                    {"repository": self.service.ecr_repository, "access": "pull_push"}
                ],
            },
        )

    def _configure_step(
        self, descriptor: StageDescriptor, output: PipelineOutput, build: StepNode
    ) -> StepNode:
        return StepNode(
            id=f"{descriptor.name}.ConfigureBlueGreenDeploy",
            kind=StepKind.CONFIGURE,
            inputs=(
                ArtifactInput(output.cloud_assembly),
                ArtifactInput(build.output, directory=DOCKER_OUTPUT_DIRECTORY),
            ),
            commands=(
                f"cp {DOCKER_OUTPUT_DIRECTORY}/{IMAGE_DETAIL_FILE} codedeploy/",
                "cd codedeploy",
                "chmod a+x codedeploy_configuration.sh",
                "./codedeploy_configuration.sh",
            ),
            output=f"{descriptor.name}.ConfigureBlueGreenDeploy.output",
            output_directory="codedeploy",
            env={
                "TASK_EXEC_ROLE": self.service.task_execution_role,
                "APPLICATION": self.service.application_name,
                "FARGATE_TASK_DEFINITION": self.service.task_definition_family,
            },
        )

    def _deploy_step(
        self,
        descriptor: StageDescriptor,
        configure: StepNode,
        deployment_group: DeploymentGroupRef,
    ) -> StepNode:
        return StepNode(
            id=f"{descriptor.name}.CodeDeploy",
            kind=StepKind.DEPLOY,
            inputs=(ArtifactInput(configure.output),),
            dependencies=(configure.id,),
            metadata={
                "deployment_group": deployment_group,
                "deployment_policy": descriptor.policy,
                "timing": descriptor.timing,
                "task_definition_template": "taskdef.json",
                "appspec_template": "appspec.yaml",
                "image_placeholder": "IMAGE1_NAME",
            },
        )

    def _verify_ordering(
        self, graph: StepGraph, build: StepNode, configure: StepNode, deploy: StepNode
    ) -> None:
        if build.output not in configure.input_keys:
            raise DependencyOrderingError(
                f"'{configure.id}' does not consume the output of '{build.id}'"
            )
        if configure.id not in deploy.dependencies:
            raise DependencyOrderingError(f"'{deploy.id}' does not depend on '{configure.id}'")
        if graph.producer_of(build.output) != build.id:
            raise DependencyOrderingError(f"'{build.output}' is not produced by '{build.id}'")
        if graph.get_dependencies(build.id):
            raise DependencyOrderingError(f"'{build.id}' must not depend on other stage steps")

        cycle = graph.detect_cycles()
        if cycle:
            raise DependencyOrderingError(
                f"Stage '{graph.name}' contains a cycle: {' -> '.join(cycle)}"
            )
        order = graph.topological_sort()
        if not order.index(build.id) < order.index(configure.id) < order.index(deploy.id):
            raise DependencyOrderingError(
                f"Stage '{graph.name}' steps are out of order: {' -> '.join(order)}"
            )
