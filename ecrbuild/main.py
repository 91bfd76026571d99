"""ecrbuild CLI entry point.

This is the only place that turns errors into an exit status.
"""

import asyncio
from typing import NoReturn

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from ecrbuild.errors import BuildFailureError, BuildToolError
from ecrbuild.packages.buildkit import ProgressDisplay
from ecrbuild.packages.registry import resolve_registry
from ecrbuild.services.workflow_service import run_workflow
from ecrbuild.utils.logging import setup_logger
from ecrbuild.utils.prompts import BuildInputs, PromptCancelled, ask_inputs
from ecrbuild.utils.sentry import init_sentry, report_error

console = Console()

app = typer.Typer(
    name="ecrbuild",
    help="Build a git repository with BuildKit and push the image to Amazon ECR",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    setup_logger("DEBUG" if verbose else None)
    init_sentry()


def _fail(message: str) -> NoReturn:
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
    raise typer.Exit(1)


@app.command("resolve")
def resolve_cmd(
    address: str = typer.Argument(..., help="Registry address, e.g. public.ecr.aws/r123/app"),
):
    """Validate a registry address and show the resolved registry."""
    try:
        registry = resolve_registry(address)
    except BuildToolError as e:
        _fail(str(e))

    console.print(f"Endpoint: {registry.endpoint}", markup=False)
    console.print(f"Host:     {registry.host}", markup=False)
    console.print(f"Path:     {registry.path}", markup=False)


@app.command("build")
def build_cmd(
    repo: str = typer.Option(None, "--repo", help="Git repository to clone"),
    registry: str = typer.Option(None, "--registry", help="ECR repository to push to"),
    region: str = typer.Option(None, "--region", help="AWS region of the registry"),
    arch: str = typer.Option(None, "--arch", help="Image architecture (amd64 or arm64)"),
    dockerfile: str = typer.Option(None, "--dockerfile", help="Dockerfile path in the repository"),
    builder: str = typer.Option(
        None, "--builder", help="Remote buildkitd address (tcp://... or ssh://...)"
    ),
    no_input: bool = typer.Option(False, "--no-input", help="Never prompt for missing values"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Hide build progress"),
):
    """Clone a repository, build its image and push it to ECR."""
    given = {
        "repo": repo,
        "registry_url": registry,
        "region": region,
        "arch": arch,
        "dockerfile_path": dockerfile,
        "remote_builder_address": builder,
    }

    try:
        if no_input:
            inputs = BuildInputs(**{key: value for key, value in given.items() if value})
        else:
            inputs = ask_inputs(**given)
    except PromptCancelled:
        console.print("\nBuild cancelled")
        raise typer.Exit(1)
    except ValidationError as e:
        _fail(f"invalid build inputs:\n{e}")

    console.print(f"\nRepository URL: {inputs.repo}", markup=False)
    console.print(f"ECR Registry: {inputs.registry_url}", markup=False)
    console.print(f"Region: {inputs.region}", markup=False)
    console.print(f"Architecture: {inputs.arch}\n", markup=False)

    display = ProgressDisplay(console=console, mode="quiet" if quiet else "plain")

    try:
        result = asyncio.run(run_workflow(inputs, display))
    except BuildFailureError as e:
        report_error(e, registry=inputs.registry_url, pushed=e.pushed)
        if e.pushed:
            console.print(
                "[yellow]The image was exported and may already be live in the registry.[/yellow]"
            )
        _fail(str(e))
    except BuildToolError as e:
        report_error(e, registry=inputs.registry_url)
        _fail(str(e))
    except KeyboardInterrupt:
        console.print("\nBuild cancelled")
        raise typer.Exit(130)

    console.print(f"\n[green]Image build complete[/green] {result.descriptor.digest}")
    console.print(f"Pushed {result.tag}", markup=False)


if __name__ == "__main__":
    app()
