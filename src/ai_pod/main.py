#!/usr/bin/env python3
"""ai-pod - CLI entry point."""

import functools
import logging
import os
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import click
import sentry_sdk
import structlog
from sentry_sdk.integrations.httpx import HttpxIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from . import __version__
from .config import AiPodConfig, load_config
from .container import ContainerLifecycle
from .credentials import scan_workspace
from .daemon import SERVE_COMMAND, DaemonState, NotificationDaemon
from .errors import AiPodError, WorkspaceError
from .identity import derive_identity
from .image import DOCKERFILE_NAME, ensure_image, image_name, init_project
from .runtime import RuntimeClient
from .update import check_for_update

F = TypeVar("F", bound=Callable[..., Any])


def _init_sentry() -> bool:
    """Initialize Sentry for error tracking."""
    dsn = os.environ.get("SENTRY_DSN")
    if not dsn:
        return False

    environment = os.environ.get("ENVIRONMENT", "production")

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=f"ai-pod@{__version__}",
        traces_sample_rate=1.0 if environment == "development" else 0.2,
        integrations=[
            HttpxIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        send_default_pii=False,
        attach_stacktrace=True,
        max_breadcrumbs=50,
        server_name="ai-pod",
        ignore_errors=[
            "ConnectionRefusedError",
            "KeyboardInterrupt",
            "SystemExit",
        ],
    )

    sentry_sdk.set_tag("service", "ai-pod")
    return True


# Initialize Sentry at module load time
_sentry_enabled = _init_sentry()


def configure_logging(level: str = "INFO") -> None:
    """Structured console logs. The daemon's stdout is its log file."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


configure_logging()

logger = structlog.get_logger()


@dataclass
class CliState:
    config: AiPodConfig
    workdir: Path | None
    rebuild: bool
    no_credential_check: bool
    config_file: Path | None = None


def _print_error(error: AiPodError) -> None:
    click.echo(click.style("Error: ", fg="red", bold=True) + str(error), err=True)
    if error.hint:
        click.echo(error.hint, err=True)


def _exit_on_error(func: F) -> F:
    """Turn AiPodError into one error line and exit status 1."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except AiPodError as e:
            if _sentry_enabled:
                sentry_sdk.capture_exception(e)
            _print_error(e)
            sys.exit(1)

    return wrapper  # type: ignore[return-value]


def _resolve_workspace(workdir: Path | None) -> Path:
    if workdir is None:
        return Path.cwd().resolve()
    try:
        return workdir.expanduser().resolve(strict=True)
    except FileNotFoundError as e:
        raise WorkspaceError(f"Invalid workspace path: {workdir}") from e


def _require_dockerfile(workspace: Path) -> Path:
    dockerfile = workspace / DOCKERFILE_NAME
    if not dockerfile.exists():
        raise WorkspaceError(
            f"No {DOCKERFILE_NAME} found in {workspace}.",
            hint="Run `ai-pod init` to create one.",
        )
    return dockerfile


def _credentials_approved(workspace: Path) -> bool:
    found = scan_workspace(workspace)
    if not found:
        return True

    click.echo()
    click.echo(
        click.style("Potential credential files found in workspace:", fg="yellow", bold=True)
    )
    for path in found:
        click.echo(f"  {click.style('*', fg='yellow')} {path.relative_to(workspace)}")
    click.echo()
    click.echo(click.style("These files will be accessible inside the container.", fg="yellow"))
    return click.confirm("Continue anyway?", default=False)


def _prepare(state: CliState) -> tuple[Path, str, RuntimeClient] | None:
    """Shared setup for launch and run. Returns None if the operator aborted."""
    config = state.config
    config.ensure_dirs()

    workspace = _resolve_workspace(state.workdir)
    click.echo(click.style("Workspace: ", fg="blue") + str(workspace))
    dockerfile = _require_dockerfile(workspace)

    if not state.no_credential_check and not _credentials_approved(workspace):
        click.echo(click.style("Aborted.", fg="red"))
        return None

    runtime = RuntimeClient(config.runtime)
    image = image_name(workspace)
    if ensure_image(runtime, dockerfile, image, config.state_dir, force=state.rebuild):
        click.echo(click.style("Image built successfully.", fg="green", bold=True))
    else:
        click.echo(click.style("Container image is up to date.", fg="green"))

    _ensure_daemon(state)
    return workspace, image, runtime


def _ensure_daemon(state: CliState) -> None:
    config = state.config
    daemon = NotificationDaemon(
        config.pid_file,
        config.log_file,
        config.notify_port,
        config_file=state.config_file.resolve() if state.config_file else None,
    )
    try:
        daemon.ensure()
    except OSError as e:
        # Sessions still work without desktop notifications
        logger.warning("Could not start notification daemon", error=str(e))
        click.echo(
            click.style("Warning: ", fg="yellow", bold=True)
            + f"notification daemon not started ({e}). See {config.log_file}"
        )


def _launch(state: CliState) -> int:
    prepared = _prepare(state)
    if prepared is None:
        return 0
    workspace, image, runtime = prepared

    identity = derive_identity(workspace, state.config.container_prefix)
    click.echo(click.style("Container: ", fg="blue") + identity.container_name)
    ContainerLifecycle(runtime, state.config).ensure_launched(
        identity, workspace, image, rebuild=state.rebuild
    )
    # Detach and interrupt end the session normally
    return 0


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="ai-pod")
@click.option("--no-credential-check", is_flag=True, help="Skip credential file scanning")
@click.option("--rebuild", is_flag=True, help="Force image rebuild and container recreation")
@click.option(
    "--workdir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Workspace directory (default: cwd)",
)
@click.option(
    "--notify-port",
    type=click.IntRange(1024, 65535),
    default=None,
    help="Notification server port (default: 9876)",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to config file (default: ~/.ai-pod/config.toml)",
)
@click.pass_context
@_exit_on_error
def cli(
    ctx: click.Context,
    no_credential_check: bool,
    rebuild: bool,
    workdir: Path | None,
    notify_port: int | None,
    config_file: Path | None,
) -> None:
    """ai-pod - Run Claude Code inside per-workspace Podman containers.

    With no command, builds the workspace image if needed, makes sure the
    notification daemon is running and attaches to the workspace container.
    """
    config = load_config(config_file)
    if notify_port:
        config = config.model_copy(update={"notify_port": notify_port})
    configure_logging(config.log_level)

    ctx.obj = CliState(
        config=config,
        workdir=workdir,
        rebuild=rebuild,
        no_credential_check=no_credential_check,
        config_file=config_file,
    )

    if config.update_check and ctx.invoked_subcommand != SERVE_COMMAND:
        check_for_update()

    if ctx.invoked_subcommand is None:
        ctx.exit(_launch(ctx.obj))


@cli.command()
@click.pass_obj
@_exit_on_error
def build(state: CliState) -> None:
    """Build the container image only."""
    state.config.ensure_dirs()
    workspace = _resolve_workspace(state.workdir)
    dockerfile = _require_dockerfile(workspace)
    runtime = RuntimeClient(state.config.runtime)
    image = image_name(workspace)

    if ensure_image(runtime, dockerfile, image, state.config.state_dir, force=state.rebuild):
        click.echo(click.style("Image built successfully: ", fg="green", bold=True) + image)
    else:
        click.echo(click.style("Container image is up to date: ", fg="green") + image)


@cli.command()
@click.option(
    "--workdir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Workspace path (default: cwd)",
)
@click.pass_obj
@_exit_on_error
def init(state: CliState, workdir: Path | None) -> None:
    """Create ai-pod.Dockerfile in the workspace for editing."""
    workspace = _resolve_workspace(workdir or state.workdir)
    dockerfile, created = init_project(workspace)
    if not created:
        click.echo(click.style("Already exists: ", fg="yellow") + str(dockerfile))
        return

    click.echo(click.style("Created: ", fg="green", bold=True) + str(dockerfile))
    click.echo("Edit this file to customise your Claude container, then run `ai-pod` to launch.")


@cli.command(context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False})
@click.argument("command")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_obj
@_exit_on_error
def run(state: CliState, command: str, args: tuple[str, ...]) -> None:
    """Run COMMAND once in a throwaway container for the workspace.

    Exits with the command's exit status.
    """
    prepared = _prepare(state)
    if prepared is None:
        return
    workspace, image, runtime = prepared

    identity = derive_identity(workspace, state.config.container_prefix)
    status = ContainerLifecycle(runtime, state.config).run_one_off(
        identity, workspace, image, command, args, rebuild=state.rebuild
    )
    sys.exit(status)


@cli.command("list")
@click.pass_obj
@_exit_on_error
def list_containers(state: CliState) -> None:
    """List all claude containers."""
    runtime = RuntimeClient(state.config.runtime)
    rows = ContainerLifecycle(runtime, state.config).list_containers()

    if not rows:
        click.echo(click.style("No claude containers found.", fg="yellow"))
        return

    click.echo(click.style("Claude containers:", fg="blue", bold=True))
    click.echo(f"{'NAME':<24} {'STATUS':<30} CREATED")
    click.echo("-" * 80)
    for row in rows:
        click.echo(f"{row.name:<24} {row.status:<30} {row.created}")


@cli.command()
@click.option(
    "--workdir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Workspace path (default: cwd)",
)
@click.pass_obj
@_exit_on_error
def clean(state: CliState, workdir: Path | None) -> None:
    """Remove the container and home volume for the workspace."""
    workspace = _resolve_workspace(workdir or state.workdir)
    identity = derive_identity(workspace, state.config.container_prefix)
    runtime = RuntimeClient(state.config.runtime)

    report = ContainerLifecycle(runtime, state.config).clean(identity)

    if not report.container_found and not report.volume_found:
        click.echo(click.style("Nothing to clean for: ", fg="yellow") + identity.container_name)
        return
    if report.container_found:
        ok = report.container_removed is not None and report.container_removed.ok
        click.echo(
            click.style(
                "Removed container: " if ok else "Could not remove container: ",
                fg="red" if ok else "yellow",
            )
            + identity.container_name
        )
    if report.volume_found:
        ok = report.volume_removed is not None and report.volume_removed.ok
        click.echo(
            click.style(
                "Removed volume: " if ok else "Could not remove volume: ",
                fg="red" if ok else "yellow",
            )
            + identity.volume_name
        )


@cli.command(SERVE_COMMAND)
@click.pass_obj
def serve_notifications(state: CliState) -> None:
    """Run the notification server (internal use)."""
    from .notify_server import run_server

    run_server(state.config.notify_port, host=state.config.notify_host)


@cli.command("stop-server")
@click.pass_obj
def stop_server(state: CliState) -> None:
    """Stop the notification daemon."""
    config = state.config
    previous = NotificationDaemon(config.pid_file, config.log_file, config.notify_port).stop()

    if previous.state is DaemonState.RUNNING:
        click.echo(
            click.style("Stopped notification daemon ", fg="green") + f"(pid {previous.pid})"
        )
    elif previous.state is DaemonState.STALE:
        click.echo(
            click.style("Removed stale pid file ", fg="yellow")
            + f"(process {previous.pid} not found)"
        )
    else:
        click.echo("Notification daemon is not running.")


@cli.command("server-status")
@click.pass_obj
def server_status(state: CliState) -> None:
    """Show notification daemon status."""
    config = state.config
    status = NotificationDaemon(config.pid_file, config.log_file, config.notify_port).status()
    click.echo(status.describe())


if __name__ == "__main__":
    cli()
