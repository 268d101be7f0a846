"""
StepGraph: directed acyclic graph of the steps inside one stage.

Edges come from two places:
1. Explicit dependencies declared on a step
2. Artifact consumption: a step that reads an artifact is ordered after the
   step that produces it

Steps must be added upstream-first. A step that names an unknown dependency
or consumes an artifact nobody produces is rejected immediately, so the
graph is acyclic by construction. Once sealed, a graph accepts no more
steps.
"""

from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any

from crossdeploy.core.step import StepNode
from crossdeploy.errors import DependencyOrderingError


@dataclass(frozen=True)
class StepEdge:
    """``to_step`` runs after ``from_step``."""

    from_step: str
    to_step: str
    kind: str
    """'explicit' for a declared dependency, 'artifact' for an implied one"""

    artifact: str | None = None


class StepGraph:
    """
    Step graph for a single stage.

    Provides:
    1. Dependency and artifact edge resolution
    2. Topological sorting
    3. Cycle detection
    4. Serialization
    """

    def __init__(self, name: str, external_artifacts: list[str] | None = None):
        """
        Args:
            name: Graph name, usually the stage name
            external_artifacts: Artifact keys produced outside this graph
                (the pipeline's synth outputs) that steps may consume
        """
        self.name = name
        self.nodes: dict[str, StepNode] = {}
        self.edges: list[StepEdge] = []
        self._external_artifacts = set(external_artifacts or [])
        self._producers: dict[str, str] = {}
        self._adjacency_list: dict[str, list[str]] = defaultdict(list)
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> "StepGraph":
        """Stop accepting steps. Returns the graph."""
        self._sealed = True
        return self

    def add_node(self, node: StepNode) -> StepNode:
        """
        Add a step and derive its incoming edges.

        Raises:
            DependencyOrderingError: If the graph is sealed, the id is taken,
                a declared dependency is not in the graph, or an input
                artifact has no producer
        """
        if self._sealed:
            raise DependencyOrderingError(
                f"Step graph '{self.name}' is sealed; cannot add '{node.id}'"
            )
        if node.id in self.nodes:
            raise DependencyOrderingError(f"Step '{node.id}' already exists in '{self.name}'")

        missing = [dep for dep in node.dependencies if dep not in self.nodes]
        if missing:
            raise DependencyOrderingError(
                f"Step '{node.id}' depends on steps not in '{self.name}': {', '.join(missing)}"
            )

        incoming: dict[str, StepEdge] = {}
        for artifact in node.inputs:
            producer = self._producers.get(artifact.key)
            if producer is None:
                if artifact.key in self._external_artifacts:
                    continue
                raise DependencyOrderingError(
                    f"Step '{node.id}' consumes artifact '{artifact.key}' "
                    f"which no step in '{self.name}' produces"
                )
            incoming.setdefault(
                producer, StepEdge(producer, node.id, "artifact", artifact.key)
            )

        # An explicit dependency wins over an implied one for the same pair
        for dep in node.dependencies:
            implied = incoming.get(dep)
            incoming[dep] = StepEdge(dep, node.id, "explicit", implied.artifact if implied else None)

        if node.output is not None:
            if node.output in self._producers or node.output in self._external_artifacts:
                raise DependencyOrderingError(
                    f"Artifact '{node.output}' is produced more than once in '{self.name}'"
                )
            self._producers[node.output] = node.id

        self.nodes[node.id] = node
        for edge in incoming.values():
            self.edges.append(edge)
            self._adjacency_list[edge.from_step].append(edge.to_step)
        return node

    def get_dependencies(self, node_id: str) -> list[str]:
        """All steps this step runs after, explicit or implied."""
        return [edge.from_step for edge in self.edges if edge.to_step == node_id]

    def producer_of(self, artifact_key: str) -> str | None:
        return self._producers.get(artifact_key)

    def topological_sort(self) -> list[str]:
        """
        Return the steps in an order that respects every edge.

        Raises:
            DependencyOrderingError: If the graph contains a cycle
        """
        in_degree = {node: 0 for node in self.nodes}
        for edge in self.edges:
            in_degree[edge.to_step] += 1

        queue = deque([node for node, degree in in_degree.items() if degree == 0])
        result = []

        while queue:
            node = queue.popleft()
            result.append(node)
            for dependent in self._adjacency_list[node]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(result) != len(self.nodes):
            raise DependencyOrderingError(f"Step graph '{self.name}' contains a cycle")

        return result

    def detect_cycles(self) -> list[str] | None:
        """
        Return a cycle path if one exists, None otherwise.
        """
        visited = set()
        rec_stack = set()
        path = []

        def dfs(node: str) -> list[str] | None:
            visited.add(node)
            rec_stack.add(node)
            path.append(node)

            for neighbor in self._adjacency_list[node]:
                if neighbor not in visited:
                    cycle = dfs(neighbor)
                    if cycle:
                        return cycle
                elif neighbor in rec_stack:
                    cycle_start = path.index(neighbor)
                    return path[cycle_start:] + [neighbor]

            path.pop()
            rec_stack.remove(node)
            return None

        for node in self.nodes:
            if node not in visited:
                cycle = dfs(node)
                if cycle:
                    return cycle

        return None

    def signature(self) -> tuple:
        """
        Structural fingerprint: ids, artifact keys and edges.

        Two graphs built from the same input have equal signatures.
        """
        return (
            tuple(
                (node.id, node.kind.value, node.input_keys, node.output, node.dependencies)
                for node in self.nodes.values()
            ),
            tuple((e.from_step, e.to_step, e.kind, e.artifact) for e in self.edges),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "steps": [node.to_dict() for node in self.nodes.values()],
            "edges": [
                {"from": e.from_step, "to": e.to_step, "kind": e.kind, "artifact": e.artifact}
                for e in self.edges
            ],
            "execution_order": self.topological_sort(),
        }

    def __len__(self) -> int:
        return len(self.nodes)

    def __repr__(self) -> str:
        return f"StepGraph({self.name}, steps={len(self.nodes)}, edges={len(self.edges)})"
