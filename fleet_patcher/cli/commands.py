"""CLI command implementation for Fleet Patcher."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import NoReturn

import click

from fleet_patcher import __version__
from fleet_patcher.cli.terminal import TerminalSink
from fleet_patcher.models.config import AppConfig
from fleet_patcher.services.artifacts import LogFileSink, RunArtifacts
from fleet_patcher.services.batch_orchestrator import (
    BatchOrchestrator,
    HostNotFoundError,
    select_targets,
)
from fleet_patcher.services.config_loader import ConfigError, load_config
from fleet_patcher.services.event_recorder import EventRecorder
from fleet_patcher.services.remote_executor import (
    create_executor,
    ssh_available,
    sshpass_available,
)
from fleet_patcher.services.report_generator import EXIT_FAILURE, ReportGenerator
from fleet_patcher.utils.logger import configure_logging


def _get_config() -> AppConfig:
    """Load process settings from the environment and .env file."""
    return AppConfig()


def _fail(ctx: click.Context, message: str) -> NoReturn:
    """Report a fatal setup error and exit before any host is processed."""
    click.secho(f"[ERROR] {message}", fg="red", err=True)
    ctx.exit(EXIT_FAILURE)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "-c",
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file (default: servers.json)",
)
@click.option("-s", "--server", default=None, type=str, help="Process only the named server")
@click.option("-d", "--dry-run", is_flag=True, help="Show what would be done without executing")
@click.option("--skip-snapshots", is_flag=True, help="Skip snapshot operations")
@click.option("--skip-updates", is_flag=True, help="Skip update commands")
@click.option(
    "--output-format",
    default="text",
    type=click.Choice(["text", "json"]),
    help="Summary format printed at the end of the run",
)
@click.version_option(__version__, "-v", "--version", prog_name="fleet-patcher")
@click.pass_context
def patch(
    ctx: click.Context,
    config_path: Path | None,
    server: str | None,
    dry_run: bool,
    skip_snapshots: bool,
    skip_updates: bool,
    output_format: str,
) -> None:
    """Snapshot and patch Proxmox VMs listed in the configuration file.

    For each enabled server: replace its pre-patch snapshot on the Proxmox
    host, then run its update commands over SSH. Exits 1 when any server
    failed and needs manual intervention.
    """
    app_config = _get_config()
    configure_logging(app_config.log_level)

    path = config_path or Path(app_config.config_path)
    try:
        document = load_config(path)
        select_targets(document.targets, server)
    except (ConfigError, HostNotFoundError) as exc:
        _fail(ctx, str(exc))

    if not dry_run and not ssh_available():
        _fail(ctx, "Missing required dependency: ssh")

    settings = document.settings.with_flags(
        host_filter=server,
        dry_run=dry_run,
        skip_snapshots=skip_snapshots,
        skip_updates=skip_updates,
    )
    log_dir = (
        Path(app_config.log_dir)
        if app_config.log_dir
        else settings.resolve_log_dir(path.resolve().parent)
    )
    try:
        artifacts = RunArtifacts.create(log_dir, datetime.now().astimezone())
    except OSError as exc:
        _fail(ctx, f"Cannot create log directory {log_dir}: {exc}")

    recorder = EventRecorder(
        [
            TerminalSink(settings.output_limits, err=output_format == "json"),
            LogFileSink(artifacts.log_path),
        ]
    )
    recorder.info(f"Logging to: {artifacts.log_path}")
    recorder.info(f"Configuration: {path}")
    if not dry_run and document.uses_password_auth() and not sshpass_available():
        recorder.warning("sshpass not found but password authentication is configured")
        recorder.info("Password authentication will fail without sshpass")

    generator = ReportGenerator()
    orchestrator = BatchOrchestrator(
        create_executor(settings, recorder),
        recorder,
        document.hypervisors,
        artifacts=artifacts,
        report_generator=generator,
    )
    report = orchestrator.run(document.targets, settings)

    recorder.header("PATCHING SUMMARY")
    summary = generator.render(report)
    artifacts.write_summary(summary)
    if output_format == "json":
        click.echo(generator.render_json(report))
    else:
        click.echo(summary, nl=False)

    ctx.exit(generator.exit_code(report))
