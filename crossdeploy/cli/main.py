"""
crossdeploy CLI - build and inspect cross-account blue/green pipelines.
"""

import json
import sys

import click

from crossdeploy.compilation import ManifestCompiler
from crossdeploy.config import load_config
from crossdeploy.core.pipeline import PipelineBuilder, SealedPipeline
from crossdeploy.errors import CrossDeployError
from crossdeploy.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level (defaults to CROSSDEPLOY_LOG_LEVEL or WARNING)",
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"]),
    default=None,
    help="Log format (defaults to CROSSDEPLOY_LOG_FORMAT or console)",
)
def cli(log_level: str | None, log_format: str | None):
    """
    crossdeploy - release pipelines that deploy one service into many accounts.

    Describe the pipeline and its stages in YAML; crossdeploy builds the
    step graphs, binds deployment groups and computes cross-account trust.
    """
    configure_logging(
        level=log_level.upper() if log_level else None,
        format=log_format,
        force=bool(log_level or log_format),
    )


@cli.command()
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output",
    "-o",
    default=None,
    help="Directory to write the manifest to (prints to stdout if omitted)",
)
@click.option("--format", type=click.Choice(["json", "yaml"]), default="json")
def synth(config_file: str, output: str | None, format: str):
    """
    Build the pipeline and emit its manifest.

    Example:
        crossdeploy synth toolchain.yaml
        crossdeploy synth toolchain.yaml -o ./cdk.out --format yaml
    """
    sealed = _build(config_file)

    try:
        compiled = ManifestCompiler().compile(sealed)
    except CrossDeployError as e:
        _fail(f"Synth failed: {e}")

    if output is None:
        click.echo(compiled.to_json() if format == "json" else compiled.to_yaml())
        return

    path = compiled.export_json(output) if format == "json" else compiled.export_yaml(output)
    click.echo(f"✓ Pipeline '{compiled.pipeline_name}' synthesized")
    click.echo(f"  Manifest: {path}")
    click.echo(f"  Stages: {compiled.metadata['stage_count']}")
    click.echo(f"  Steps: {compiled.metadata['step_count']}")
    click.echo(f"  Foreign accounts: {compiled.metadata['foreign_account_count']}")


@cli.command()
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--format", type=click.Choice(["text", "json", "mermaid"]), default="text")
def analyze(config_file: str, format: str):
    """
    Show stages, step order and dependency edges without emitting a manifest.

    Example:
        crossdeploy analyze toolchain.yaml
        crossdeploy analyze toolchain.yaml --format mermaid
    """
    sealed = _build(config_file)

    if format == "json":
        output = {
            "pipeline": sealed.name,
            "environment": sealed.environment.to_dict(),
            "stages": [
                {
                    "name": stage.name,
                    "environment": stage.descriptor.environment.to_dict(),
                    "execution_order": stage.graph.topological_sort(),
                    "deployment_group": stage.deployment_group.application_arn,
                }
                for stage in sealed.stages
            ],
        }
        click.echo(json.dumps(output, indent=2))

    elif format == "mermaid":
        click.echo("```mermaid")
        click.echo("graph TD")
        for stage in sealed.stages:
            click.echo(f"  subgraph {stage.name}")
            for edge in stage.graph.edges:
                arrow = "-->" if edge.kind == "explicit" else "-.->"
                click.echo(f"    {_mermaid_id(edge.from_step)} {arrow} {_mermaid_id(edge.to_step)}")
            click.echo("  end")
        click.echo("```")

    else:
        click.echo(f"\n Pipeline: {sealed.name}")
        click.echo(f"{'=' * 50}")
        click.echo(f" Source: {sealed.source.location}@{sealed.source.branch}")
        click.echo(f" Environment: {sealed.environment}")

        click.echo(f"\n Stages: {len(sealed.stages)}")
        for stage in sealed.stages:
            click.echo(f"\n  {stage.name} ({stage.descriptor.environment})")
            click.echo(f"    deployment config: {stage.descriptor.policy.name}")
            click.echo(f"    deployment group: {stage.deployment_group.application_arn}")
            for i, step_id in enumerate(stage.graph.topological_sort(), 1):
                click.echo(f"    {i}. {step_id}")


@cli.command()
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
def validate(config_file: str):
    """
    Validate a pipeline configuration without emitting anything.

    Example:
        crossdeploy validate toolchain.yaml
    """
    sealed = _build(config_file)
    click.echo(f"✓ Pipeline '{sealed.name}' is valid ({len(sealed.stages)} stages)")


@cli.command()
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
def grants(config_file: str):
    """
    List the cross-account trust granted to the self-mutation role.

    Example:
        crossdeploy grants toolchain.yaml
    """
    sealed = _build(config_file)
    computed = sealed.compute_grants()

    if not computed:
        click.echo("No cross-account trust needed: every stage is in the pipeline account")
        return

    click.echo(f"Role: {sealed.self_mutation_role.role_name}")
    for grant in computed:
        click.echo(f"\n  {grant.account} (stages: {', '.join(grant.stages)})")
        click.echo(json.dumps(grant.to_policy_statement(), indent=2))


def _build(config_file: str) -> SealedPipeline:
    try:
        config = load_config(config_file)
        return PipelineBuilder.from_config(config).finalize()
    except CrossDeployError as e:
        _fail(f"Invalid pipeline: {e}")


def _fail(message: str) -> None:
    click.echo(f"✗ {message}", err=True)
    sys.exit(1)


def _mermaid_id(step_id: str) -> str:
    return step_id.replace(".", "_").replace("-", "_")


if __name__ == "__main__":
    cli()
