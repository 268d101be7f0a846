"""
Core crossdeploy functionality.

- Environment: account/region pair a stage or the pipeline lives in
- StageDescriptor / StageCatalog: ordered, name-unique deployment targets
- StepNode / StepGraph: per-stage step graph with artifact and explicit edges
- DeploymentPolicy: how traffic shifts during blue/green cutover

The orchestrator and pipeline builder live in ``crossdeploy.core.orchestrator``
and ``crossdeploy.core.pipeline``.
"""

from crossdeploy.core.environment import Environment
from crossdeploy.core.policy import BlueGreenTiming, DeploymentPolicy, TrafficShift, get_policy
from crossdeploy.core.stage import StageCatalog, StageDescriptor
from crossdeploy.core.step import ArtifactInput, Placement, StepKind, StepNode
from crossdeploy.core.dag import StepEdge, StepGraph

__all__ = [
    "Environment",
    "BlueGreenTiming",
    "DeploymentPolicy",
    "TrafficShift",
    "get_policy",
    "StageCatalog",
    "StageDescriptor",
    "ArtifactInput",
    "Placement",
    "StepKind",
    "StepNode",
    "StepEdge",
    "StepGraph",
]
