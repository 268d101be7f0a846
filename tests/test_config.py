"""
Tests for YAML toolchain configuration.
"""

import pytest

from crossdeploy.config import ToolchainConfig, load_config, parse_config
from crossdeploy.core.pipeline import PipelineBuilder
from crossdeploy.core.policy import ALL_AT_ONCE, LINEAR_10PERCENT_EVERY_3MINUTES
from crossdeploy.errors import ValidationError

from conftest import FOREIGN_ACCOUNT, PIPELINE_ACCOUNT


class TestLoadConfig:
    """Tests for loading configuration files."""

    def test_load(self, toolchain_yaml):
        """Test loading a YAML config."""
        config = load_config(toolchain_yaml)

        assert isinstance(config, ToolchainConfig)
        assert config.pipeline.account == PIPELINE_ACCOUNT
        assert config.source.branch == "main"
        assert [s.name for s in config.stages] == ["UAT", "Prod", "Dev"]
        assert config.service.application_name == "crossAccountEcsBGDeployApp"

    def test_stage_descriptors(self, toolchain_yaml):
        """Test building stage descriptors from config."""
        descriptors = load_config(toolchain_yaml).stage_descriptors()

        assert descriptors[1].policy is LINEAR_10PERCENT_EVERY_3MINUTES
        assert descriptors[2].policy is ALL_AT_ONCE
        assert descriptors[0].environment.account == FOREIGN_ACCOUNT
        assert descriptors[0].timing.approval_wait_minutes == 30

    def test_unquoted_pipeline_account_rejected(self):
        """Test that an unquoted pipeline account is rejected."""
        with pytest.raises(ValidationError, match="quoted") as exc_info:
            parse_config(
                {
                    "pipeline": {"account": 111111111111, "region": "us-east-1"},
                    "source": {"repository": "repo"},
                }
            )

        assert exc_info.value.field == "pipeline.account"

    def test_unquoted_octal_looking_stage_account_rejected(self, tmp_path):
        """Test that an unquoted octal-looking stage account is rejected."""
        path = tmp_path / "octal.yaml"
        path.write_text(
            """
pipeline: {account: "111111111111", region: ap-northeast-1}
source: {repository: repo}
stages:
  - {name: UAT, account: 012345670123, region: ap-northeast-1}
"""
        )

        with pytest.raises(ValidationError, match="account IDs must be quoted strings") as exc_info:
            load_config(path)

        assert exc_info.value.field == "stages.0.account"

    def test_quoted_account_kept_verbatim(self, tmp_path):
        """Test that a quoted account keeps its leading zero."""
        path = tmp_path / "quoted.yaml"
        path.write_text(
            """
pipeline: {account: "111111111111", region: ap-northeast-1}
source: {repository: repo}
stages:
  - {name: UAT, account: "012345670123", region: ap-northeast-1}
"""
        )

        sealed = PipelineBuilder.from_config(load_config(path)).finalize()

        assert sealed.stages[0].descriptor.account == "012345670123"
        assert [g.account for g in sealed.compute_grants()] == ["012345670123"]

    def test_missing_section(self):
        """Test that a missing section is rejected."""
        with pytest.raises(ValidationError, match="source"):
            parse_config({"pipeline": {"account": "1", "region": "us-east-1"}})

    def test_unknown_key_rejected(self):
        """Test unknown key rejected."""
        with pytest.raises(ValidationError):
            parse_config(
                {
                    "pipeline": {"account": "1", "region": "us-east-1"},
                    "source": {"repository": "repo"},
                    "stagez": [],
                }
            )

    def test_not_a_mapping(self, tmp_path):
        """Test that a non-mapping document is rejected."""
        path = tmp_path / "bad.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValidationError, match="mapping"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        """Test loading a file that does not exist."""
        with pytest.raises(ValidationError, match="Cannot read"):
            load_config(tmp_path / "missing.yaml")

    def test_unknown_deployment_config(self):
        """Test that an unknown deployment config is rejected."""
        config = parse_config(
            {
                "pipeline": {"account": "1", "region": "us-east-1"},
                "source": {"repository": "repo"},
                "stages": [{"name": "UAT", "account": "2", "region": "us-east-1",
                            "deployment_config": "BOGUS"}],
            }
        )

        with pytest.raises(ValidationError, match="Unknown deployment config"):
            config.stage_descriptors()


class TestBuilderFromConfig:
    """Tests for building a pipeline straight from configuration."""

    def test_from_config(self, toolchain_yaml):
        """Test building a pipeline from config."""
        sealed = PipelineBuilder.from_config(load_config(toolchain_yaml)).finalize()

        assert sealed.name == "Pipeline-EcsBlueGreen"
        assert [s.name for s in sealed.stages] == ["UAT", "Prod", "Dev"]
        assert [g.account for g in sealed.compute_grants()] == [FOREIGN_ACCOUNT]

    def test_partition_flows_to_references(self, toolchain_yaml):
        """Test that the partition flows into deployment group references."""
        config = load_config(toolchain_yaml)
        config = config.model_copy(update={"partition": "aws-us-gov"})

        sealed = PipelineBuilder.from_config(config).finalize()

        assert sealed.stages[0].deployment_group.application_arn.startswith("arn:aws-us-gov:")
