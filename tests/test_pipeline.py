"""
Tests for PipelineBuilder and SealedPipeline.
"""

import pytest

from crossdeploy.core.environment import Environment
from crossdeploy.core.pipeline import PipelineBuilder, PipelineOptions, PipelineSource, SealedPipeline
from crossdeploy.core.step import StepKind
from crossdeploy.errors import DependencyOrderingError, ValidationError

from conftest import FOREIGN_ACCOUNT, PIPELINE_ACCOUNT, REGION, make_stage


class TestPipelineBuilder:
    """Tests for building a pipeline."""

    def test_create_pipeline(self, builder):
        """Test creating a pipeline."""
        assert builder.name == "Pipeline-EcsBlueGreen"
        assert builder.source == PipelineSource("ecs-tutorial-repo", "main")
        assert builder.options.self_mutation is True
        assert builder.options.publish_assets_in_parallel is False
        assert builder.options.cross_account_keys is True
        assert builder.options.docker_enabled_for_self_mutation is True
        assert not builder.is_finalized

    def test_synth_step(self, builder):
        """Test the synth step commands and outputs."""
        synth = builder.synth

        assert synth.kind is StepKind.SYNTH
        assert synth.output == builder.pipeline_output.primary
        assert "npx cdk synth" in synth.commands
        assert "cp -r lib/codedeploy cdk.out/" in synth.commands

    def test_create_requires_source(self, pipeline_env):
        """Test create requires source."""
        with pytest.raises(ValidationError):
            PipelineBuilder.create("", "main", pipeline_env)

    def test_add_stage_is_chainable_and_ordered(self, builder):
        """Test add stage is chainable and ordered."""
        result = builder.add_stage(make_stage("UAT")).add_stage(make_stage("Prod"))

        assert result is builder
        assert [s.name for s in builder.stages] == ["UAT", "Prod"]
        assert [s.name for s in builder.catalog] == ["UAT", "Prod"]

    def test_duplicate_stage_leaves_pipeline_unchanged(self, builder):
        """Test duplicate stage leaves pipeline unchanged."""
        builder.add_stage(make_stage("UAT"))

        with pytest.raises(ValidationError):
            builder.add_stage(make_stage("UAT"))

        assert len(builder.stages) == 1
        assert len(builder.catalog) == 1

    def test_invalid_stage_leaves_pipeline_unchanged(self, builder):
        """Test invalid stage leaves pipeline unchanged."""
        with pytest.raises(ValidationError):
            builder.add_stage(make_stage("UAT", account=""))

        assert builder.stages == ()
        assert "UAT" not in builder.catalog

    def test_finalize_returns_sealed_pipeline(self, builder):
        """Test finalize returns sealed pipeline."""
        sealed = builder.add_stage(make_stage("UAT")).finalize()

        assert isinstance(sealed, SealedPipeline)
        assert builder.is_finalized
        assert [s.name for s in sealed.stages] == ["UAT"]
        assert sealed.trust_grants is None

    def test_finalize_materializes_identities(self, builder):
        """Test finalize materializes identities."""
        sealed = builder.add_stage(make_stage("UAT")).finalize()

        assert sealed.self_mutation_role.role_name == "Pipeline-EcsBlueGreen-SelfMutationRole"
        assert sealed.self_mutation_role.assumed_by == "codebuild.amazonaws.com"
        assert "Pipeline" in sealed.identities
        assert "FileAsset" in sealed.identities

        build_role = sealed.identities["UAT.BuildRole"]
        assert build_role.statements[0]["Resource"] == (
            f"arn:*:ecr:{REGION}:{PIPELINE_ACCOUNT}:repository/ecs-tutorial"
        )
        assert "ecr:PutImage" in build_role.statements[0]["Action"]

    def test_finalize_twice_is_noop(self, builder):
        """Test that a second finalize returns the same pipeline."""
        builder.add_stage(make_stage("UAT"))

        assert builder.finalize() is builder.finalize()

    def test_add_stage_after_finalize_rejected(self, builder):
        """Test add stage after finalize rejected."""
        builder.add_stage(make_stage("UAT"))
        sealed = builder.finalize()

        with pytest.raises(DependencyOrderingError, match="finalized"):
            builder.add_stage(make_stage("Prod"))

        assert len(sealed.stages) == 1

    def test_finalize_requires_pipeline_environment(self):
        """Test finalize requires pipeline environment."""
        builder = PipelineBuilder.create("repo", "main", Environment(region=REGION))

        with pytest.raises(ValidationError):
            builder.finalize()

    def test_foreign_stage_requires_cross_account_keys(self, pipeline_env):
        """Test foreign stage requires cross account keys."""
        builder = PipelineBuilder(
            name="Pipeline-NoKeys",
            source=PipelineSource("repo"),
            environment=pipeline_env,
            options=PipelineOptions(cross_account_keys=False),
        )
        builder.add_stage(make_stage("UAT"))

        with pytest.raises(ValidationError, match="cross-account keys"):
            builder.finalize()

    def test_local_stage_without_cross_account_keys(self, pipeline_env):
        """Test local stage without cross account keys."""
        builder = PipelineBuilder(
            name="Pipeline-NoKeys",
            source=PipelineSource("repo"),
            environment=pipeline_env,
            options=PipelineOptions(cross_account_keys=False),
        )
        builder.add_stage(make_stage("Dev", account=PIPELINE_ACCOUNT))

        assert builder.finalize().foreign_stages() == []

    def test_rebuilding_gives_identical_graphs(self, pipeline_env):
        """Test rebuilding gives identical graphs."""
        def build():
            builder = PipelineBuilder.create("repo", "main", pipeline_env)
            builder.add_stage(make_stage("UAT")).add_stage(make_stage("Prod"))
            return builder.finalize()

        first, second = build(), build()

        assert [s.graph.signature() for s in first.stages] == [
            s.graph.signature() for s in second.stages
        ]


class TestSealedPipeline:
    """Tests for SealedPipeline helpers."""

    def test_foreign_stages(self, builder):
        """Test selecting foreign stages."""
        builder.add_stage(make_stage("Dev", account=PIPELINE_ACCOUNT))
        builder.add_stage(make_stage("UAT", account=FOREIGN_ACCOUNT))
        sealed = builder.finalize()

        assert [s.name for s in sealed.foreign_stages()] == ["UAT"]
        assert sealed.get_stage("Dev").descriptor.account == PIPELINE_ACCOUNT
        assert sealed.get_stage("missing") is None

    def test_compute_grants_attaches(self, builder):
        """Test that computing grants attaches them."""
        sealed = builder.add_stage(make_stage("UAT")).finalize()

        grants = sealed.compute_grants()

        assert sealed.trust_grants == grants
        assert [g.account for g in grants] == [FOREIGN_ACCOUNT]


class TestEndToEnd:
    """Pipeline account A deploying UAT into account B."""

    def test_single_foreign_stage(self):
        """Test grants for a single foreign stage."""
        builder = PipelineBuilder.create(
            "ecs-tutorial-repo", "main", Environment(account="A", region=REGION)
        )
        builder.add_stage(make_stage("UAT", account="B"))
        sealed = builder.finalize()
        grants = sealed.compute_grants()

        assert {g.account for g in grants} == {"B"}

        uat = sealed.get_stage("UAT")
        assert uat.graph.topological_sort() == [
            "UAT.DockerBuild",
            "UAT.ConfigureBlueGreenDeploy",
            "UAT.CodeDeploy",
        ]
        assert len(uat.graph.edges) == 2
        assert uat.deploy.metadata["deployment_group"] is uat.deployment_group
        assert uat.deployment_group.policy.name == "CodeDeployDefault.ECSCanary10Percent5Minutes"
