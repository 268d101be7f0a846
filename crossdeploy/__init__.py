"""
crossdeploy: release pipelines that deploy one containerised service into
many isolated accounts with blue/green cutover.

Core concepts:
- StageDescriptor: one target environment and its deployment policy
- PipelineBuilder: accumulates stages, each a Build → Configure → Deploy graph
- SealedPipeline: the finalized pipeline; the only thing trust is computed for
- CrossAccountTrustManager: minimal assume-role grants for foreign accounts
- ManifestCompiler: the manifest handed to the pipeline-execution service

Example:
    from crossdeploy import (
        Environment, ManifestCompiler, PipelineBuilder, StageDescriptor, policies,
    )

    builder = PipelineBuilder.create(
        source_location="ecs-tutorial-repo",
        branch="main",
        environment=Environment(account="111111111111", region="ap-northeast-1"),
    )
    builder.add_stage(
        StageDescriptor(
            name="UAT",
            environment=Environment(account="222222222222", region="ap-northeast-1"),
            policy=policies.CANARY_10PERCENT_5MINUTES,
        )
    )
    sealed = builder.finalize()
    sealed.compute_grants()

    manifest = ManifestCompiler().compile(sealed)
"""

from crossdeploy.core import (
    BlueGreenTiming,
    DeploymentPolicy,
    Environment,
    StageCatalog,
    StageDescriptor,
    StepGraph,
    StepNode,
)
import crossdeploy.core.policy as policies
from crossdeploy.core.orchestrator import PipelineOutput, StageOrchestrator, StageResult
from crossdeploy.core.pipeline import PipelineBuilder, SealedPipeline
from crossdeploy.resolution import DeploymentGroupRef, DeploymentGroupResolver
from crossdeploy.security import CrossAccountTrustManager, TrustGrant
from crossdeploy.compilation import CompiledPipeline, ManifestCompiler
from crossdeploy.errors import (
    CompilationError,
    CrossDeployError,
    DependencyOrderingError,
    ExecutionFailure,
    ReferenceResolutionError,
    ValidationError,
)

__version__ = "0.1.0"
__all__ = [
    "BlueGreenTiming",
    "DeploymentPolicy",
    "Environment",
    "StageCatalog",
    "StageDescriptor",
    "StepGraph",
    "StepNode",
    "policies",
    "PipelineOutput",
    "StageOrchestrator",
    "StageResult",
    "PipelineBuilder",
    "SealedPipeline",
    "DeploymentGroupRef",
    "DeploymentGroupResolver",
    "CrossAccountTrustManager",
    "TrustGrant",
    "CompiledPipeline",
    "ManifestCompiler",
    # Errors
    "CompilationError",
    "CrossDeployError",
    "DependencyOrderingError",
    "ExecutionFailure",
    "ReferenceResolutionError",
    "ValidationError",
]
