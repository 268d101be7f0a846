"""
Compiler: turns a sealed pipeline into the manifest handed to the
pipeline-execution service.

The manifest carries the synth step, every stage's step graph and
dependency edges, the bound deployment groups, the pipeline's execution
identities and the trust grants attached to the self-mutation role.
Executing it is entirely the service's job.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypedDict

import structlog
import yaml

from crossdeploy.core.orchestrator import StageResult
from crossdeploy.core.pipeline import SealedPipeline
from crossdeploy.core.step import Placement
from crossdeploy.errors import CompilationError, CrossDeployError
from crossdeploy.security.trust import CrossAccountTrustManager

logger = structlog.get_logger(__name__)

MANIFEST_VERSION = "1"


class PipelineMetadata(TypedDict, total=False):
    """Metadata about pipeline compilation."""
    stage_count: int
    step_count: int
    foreign_account_count: int
    account: str
    region: str


@dataclass
class CompiledPipeline:
    """A compiled pipeline manifest."""

    pipeline_name: str
    manifest: dict[str, Any]
    metadata: PipelineMetadata = field(default_factory=dict)

    def get_stage(self, name: str) -> dict[str, Any] | None:
        return next((s for s in self.manifest["stages"] if s["name"] == name), None)

    def to_json(self) -> str:
        return json.dumps(self.manifest, indent=2)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.manifest, sort_keys=False)

    def export_json(self, output_dir: str | Path) -> Path:
        return self._export(output_dir, "json", self.to_json())

    def export_yaml(self, output_dir: str | Path) -> Path:
        return self._export(output_dir, "yaml", self.to_yaml())

    def _export(self, output_dir: str | Path, suffix: str, text: str) -> Path:
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)
        path = output_path / f"{self.pipeline_name}.{suffix}"
        path.write_text(text)
        logger.info("manifest_exported", path=str(path))
        return path


class Compiler(ABC):
    """
    Abstract compiler interface.

    Implementations translate a SealedPipeline into whatever the target
    execution service consumes.
    """

    @abstractmethod
    def compile(self, pipeline: SealedPipeline) -> CompiledPipeline:
        """
        Compile a sealed pipeline.

        Raises:
            CompilationError: If compilation fails
        """
        pass


class ManifestCompiler(Compiler):
    """
    Compiles a sealed pipeline into a JSON/YAML-serializable manifest.

    Trust grants are computed if they have not been attached yet.
    """

    def __init__(self, trust_manager: CrossAccountTrustManager | None = None):
        self.trust_manager = trust_manager or CrossAccountTrustManager()

    def compile(self, pipeline: SealedPipeline) -> CompiledPipeline:
        if not isinstance(pipeline, SealedPipeline):
            raise CompilationError(
                "Only a finalized pipeline can be compiled; call PipelineBuilder.finalize() first"
            )
        try:
            grants = pipeline.trust_grants
            if grants is None:
                grants = self.trust_manager.attach(pipeline)

            stages = [self._compile_stage(stage) for stage in pipeline.stages]
            manifest = {
                "version": MANIFEST_VERSION,
                "pipeline": pipeline.name,
                "source": pipeline.source.to_dict(),
                "environment": pipeline.environment.to_dict(),
                "options": pipeline.options.to_dict(),
                "synth": pipeline.synth.to_dict(),
                "stages": stages,
                "identities": {
                    name: identity.to_dict() for name, identity in pipeline.identities.items()
                },
                "trust_grants": [
                    {"role": pipeline.self_mutation_role.role_name, **grant.to_dict()}
                    for grant in grants
                ],
            }
        except CrossDeployError as e:
            raise CompilationError(f"Failed to compile pipeline '{pipeline.name}': {e}") from e

        compiled = CompiledPipeline(
            pipeline_name=pipeline.name,
            manifest=manifest,
            metadata={
                "stage_count": len(stages),
                "step_count": sum(len(stage.graph) for stage in pipeline.stages),
                "foreign_account_count": len(grants),
                "account": pipeline.account,
                "region": pipeline.environment.region,
            },
        )
        logger.info("pipeline_compiled", pipeline=pipeline.name, **compiled.metadata)
        return compiled

    def _compile_stage(self, stage: StageResult) -> dict[str, Any]:
        graph = stage.graph.to_dict()
        return {
            "name": stage.name,
            "environment": stage.descriptor.environment.to_dict(),
            "deployment_policy": stage.descriptor.policy.to_dict(),
            "timing": stage.descriptor.timing.to_dict(),
            "deployment_group": stage.deployment_group.to_dict(),
            "pre": [n.id for n in stage.graph.nodes.values() if n.placement is Placement.PRE],
            "post": [n.id for n in stage.graph.nodes.values() if n.placement is Placement.POST],
            "steps": graph["steps"],
            "edges": graph["edges"],
            "execution_order": graph["execution_order"],
        }
