"""Compilation of sealed pipelines into execution-service manifests."""

from crossdeploy.compilation.compiler import (
    CompiledPipeline,
    Compiler,
    ManifestCompiler,
)
from crossdeploy.errors import CompilationError

__all__ = [
    "Compiler",
    "CompiledPipeline",
    "CompilationError",
    "ManifestCompiler",
]
