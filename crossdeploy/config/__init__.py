"""
Configuration models for crossdeploy.

Pipelines are described in YAML and validated with pydantic.
"""

from crossdeploy.config.toolchain import (
    EnvironmentConfig,
    ServiceConfig,
    SourceConfig,
    StageConfig,
    ToolchainConfig,
    load_config,
    parse_config,
)

__all__ = [
    "EnvironmentConfig",
    "ServiceConfig",
    "SourceConfig",
    "StageConfig",
    "ToolchainConfig",
    "load_config",
    "parse_config",
]
