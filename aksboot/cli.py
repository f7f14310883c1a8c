"""
CLI: ``aksboot`` - install, uninstall and auth provider update.

Every verb loads the ``.env`` configuration first; a missing or invalid key stops the
run before anything external is called.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console

from aksboot.any.exceptions import AKSBootError
from aksboot.any.log import configure_logging
from aksboot.config.loaders import load_environment_config
from aksboot.container import create_container
from aksboot.provision.orchestrator import Orchestrator

app = typer.Typer(
    name="aksboot",
    help="Provision Gitpod on Azure Kubernetes Service.",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)

CONFIRM_PROMPT = "Are you sure you want to delete: Gitpod (y/n)?"


@contextmanager
def cli_errors() -> Iterator[None]:
    """Print aksboot errors in red and exit 1."""
    try:
        yield
    except AKSBootError as e:
        err_console.print(f"Error: {e}", style="red", markup=False, highlight=False, soft_wrap=True)
        raise typer.Exit(1) from e


def build_orchestrator(env_file: Path) -> Orchestrator:
    config = load_environment_config(env_file)
    configure_logging(config.log_level, config.log_format)
    return create_container(config).orchestrator()


@app.callback()
def main(
    ctx: typer.Context,
    env_file: Path = typer.Option(Path(".env"), "--env-file", "-e", help="Configuration file (KEY=value lines)"),
) -> None:
    """Provision Gitpod on Azure Kubernetes Service."""
    ctx.obj = {"env_file": env_file}


@app.command()
def install(ctx: typer.Context) -> None:
    """Create or reuse every Azure resource and deploy Gitpod."""
    with cli_errors():
        discovered = build_orchestrator(ctx.obj["env_file"]).install()

    if discovered.created:
        console.print(f"Created: {', '.join(kind.value for kind in discovered.created)}", soft_wrap=True)
    if discovered.updated:
        console.print(f"Updated: {', '.join(kind.value for kind in discovered.updated)}", soft_wrap=True)
    console.print("Done")


@app.command()
def uninstall(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Delete Gitpod and the Kubernetes cluster (data resources are kept)."""
    with cli_errors():
        orchestrator = build_orchestrator(ctx.obj["env_file"])
        answer = "y" if yes else typer.prompt(CONFIRM_PROMPT, default="n", show_default=False)
        if not orchestrator.uninstall(answer):
            console.print("Nothing deleted")

    console.print("Done")


@app.command()
def auth(
    ctx: typer.Context,
    patch_file: Path = typer.Argument(Path("auth-providers-patch.yaml"), help="Auth providers ConfigMap patch"),
) -> None:
    """Merge-patch the auth providers configuration and restart the server."""
    with cli_errors():
        build_orchestrator(ctx.obj["env_file"]).update_auth(patch_file)

    console.print("Done")


if __name__ == "__main__":
    app()
