"""
Tests for StepGraph (per-stage directed acyclic graph).
"""

import pytest

from crossdeploy.core.dag import StepGraph
from crossdeploy.core.step import ArtifactInput, StepKind, StepNode
from crossdeploy.errors import DependencyOrderingError


def step(step_id, inputs=(), output=None, dependencies=()):
    return StepNode(
        id=step_id,
        kind=StepKind.BUILD,
        inputs=tuple(ArtifactInput(key) for key in inputs),
        output=output,
        dependencies=tuple(dependencies),
    )


class TestStepGraph:
    """Tests for StepGraph class."""

    def test_empty_graph(self):
        """Test empty graph."""
        graph = StepGraph("empty")

        assert len(graph) == 0
        assert graph.topological_sort() == []

    def test_add_node(self):
        """Test adding nodes to a graph."""
        graph = StepGraph("stage")
        node = graph.add_node(step("a"))

        assert graph.nodes["a"] is node
        assert graph.edges == []

    def test_artifact_consumption_implies_edge(self):
        """Test artifact consumption implies edge."""
        graph = StepGraph("stage")
        graph.add_node(step("a", output="a.out"))
        graph.add_node(step("b", inputs=["a.out"]))

        assert len(graph.edges) == 1
        edge = graph.edges[0]
        assert (edge.from_step, edge.to_step, edge.kind, edge.artifact) == (
            "a",
            "b",
            "artifact",
            "a.out",
        )
        assert graph.get_dependencies("b") == ["a"]

    def test_explicit_dependency_wins_over_artifact_edge(self):
        """Test explicit dependency wins over artifact edge."""
        graph = StepGraph("stage")
        graph.add_node(step("a", output="a.out"))
        graph.add_node(step("b", inputs=["a.out"], dependencies=["a"]))

        assert len(graph.edges) == 1
        assert graph.edges[0].kind == "explicit"
        assert graph.edges[0].artifact == "a.out"

    def test_external_artifacts_add_no_edges(self):
        """Test external artifacts add no edges."""
        graph = StepGraph("stage", external_artifacts=["Synth.output"])
        graph.add_node(step("a", inputs=["Synth.output"]))

        assert graph.edges == []

    def test_unknown_dependency_rejected(self):
        """Test unknown dependency rejected."""
        graph = StepGraph("stage")

        with pytest.raises(DependencyOrderingError, match="not in 'stage'"):
            graph.add_node(step("b", dependencies=["a"]))

        assert "b" not in graph.nodes

    def test_unproduced_artifact_rejected(self):
        """Test unproduced artifact rejected."""
        graph = StepGraph("stage")

        with pytest.raises(DependencyOrderingError, match="no step"):
            graph.add_node(step("b", inputs=["missing.out"]))

    def test_duplicate_step_rejected(self):
        """Test duplicate step rejected."""
        graph = StepGraph("stage")
        graph.add_node(step("a"))

        with pytest.raises(DependencyOrderingError, match="already exists"):
            graph.add_node(step("a"))

    def test_artifact_produced_twice_rejected(self):
        """Test artifact produced twice rejected."""
        graph = StepGraph("stage")
        graph.add_node(step("a", output="out"))

        with pytest.raises(DependencyOrderingError, match="more than once"):
            graph.add_node(step("b", output="out"))

        assert graph.producer_of("out") == "a"
        assert "b" not in graph.nodes

    def test_topological_sort_diamond(self):
        """Test topological sort diamond."""
        #     a
        #    / \
        #   b   c
        #    \ /
        #     d
        graph = StepGraph("stage")
        graph.add_node(step("a", output="a.out"))
        graph.add_node(step("b", inputs=["a.out"], output="b.out"))
        graph.add_node(step("c", inputs=["a.out"], output="c.out"))
        graph.add_node(step("d", inputs=["b.out", "c.out"]))

        order = graph.topological_sort()

        assert order[0] == "a"
        assert order[-1] == "d"
        assert set(graph.get_dependencies("d")) == {"b", "c"}

    def test_no_cycles_by_construction(self):
        """Test no cycles by construction."""
        graph = StepGraph("stage")
        graph.add_node(step("a", output="a.out"))
        graph.add_node(step("b", inputs=["a.out"], dependencies=["a"]))

        assert graph.detect_cycles() is None

    def test_signature_equal_for_identical_graphs(self):
        """Test signature equal for identical graphs."""
        def build():
            graph = StepGraph("stage")
            graph.add_node(step("a", output="a.out"))
            graph.add_node(step("b", inputs=["a.out"]))
            return graph

        assert build().signature() == build().signature()

    def test_to_dict(self):
        """Test graph serialization."""
        graph = StepGraph("stage")
        graph.add_node(step("a", output="a.out"))
        graph.add_node(step("b", inputs=["a.out"]))

        data = graph.to_dict()

        assert data["name"] == "stage"
        assert len(data["steps"]) == 2
        assert data["edges"] == [
            {"from": "a", "to": "b", "kind": "artifact", "artifact": "a.out"}
        ]
        assert data["execution_order"] == ["a", "b"]

    def test_sealed_graph_rejects_steps(self):
        """Test sealed graph rejects steps."""
        graph = StepGraph("stage")
        graph.add_node(step("a", output="a.out"))

        assert graph.seal() is graph
        assert graph.sealed

        with pytest.raises(DependencyOrderingError, match="sealed"):
            graph.add_node(step("b", inputs=["a.out"]))
        assert list(graph.nodes) == ["a"]


class TestStepNode:
    """Tests for StepNode immutability."""

    def test_hashable_with_env_and_metadata(self):
        """Test that steps with env and metadata are hashable."""
        node = StepNode(
            id="a",
            kind=StepKind.BUILD,
            env={"REGION": "ap-northeast-1"},
            metadata={"produces": {"file": "imageDetail.json"}},
        )

        assert {node: 1}[node] == 1

    def test_env_and_metadata_read_only(self):
        """Test that env and metadata cannot be mutated."""
        node = StepNode(id="a", kind=StepKind.BUILD, env={"REGION": "ap-northeast-1"})

        with pytest.raises(TypeError):
            node.env["REGION"] = "us-east-1"
        with pytest.raises(TypeError):
            node.metadata["extra"] = True

    def test_caller_dict_not_shared(self):
        """Test that a step copies the caller's env dict."""
        env = {"REGION": "ap-northeast-1"}
        node = StepNode(id="a", kind=StepKind.BUILD, env=env)

        env["REGION"] = "us-east-1"

        assert node.env == {"REGION": "ap-northeast-1"}
        assert node.to_dict()["env"] == {"REGION": "ap-northeast-1"}
