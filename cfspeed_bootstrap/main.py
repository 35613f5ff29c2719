"""
cfspeed-install — CLI entrypoint.

Usage:
    cfspeed-install install
    cfspeed-install install --release v0.1.0 --install-dir ~/bin
    cfspeed-install plan --json
    python -m cfspeed_bootstrap.main --help

Runs unattended: no prompts. Progress and results go to stdout,
diagnostics and errors to stderr.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from cfspeed_bootstrap import __version__
from cfspeed_bootstrap.core.models.installer_config import InstallerConfig
from cfspeed_bootstrap.core.observability.logging_config import resolve_level, setup_logging
from cfspeed_bootstrap.core.use_cases.install import InstallResult

# Exit codes
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_SIGINT = 130


@click.group()
@click.version_option(version=__version__, prog_name="cfspeed-install")
@click.option("--verbose", "-v", is_flag=True, help="Timestamp each progress line with its logger.")
@click.option("--quiet", "-q", is_flag=True, help="Hide progress; only print problems and the final result.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Path to cfspeed-install.yml (default: ./cfspeed-install.yml if present).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Install the cloudflare-speed-cli release binary for this machine."""
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(debug=debug, quiet=quiet, env=os.environ),
        log_file=os.environ.get("CFSPEED_LOG_FILE"),
        log_file_level=os.environ.get("CFSPEED_LOG_FILE_LEVEL"),
        detailed=verbose,
    )


def _load(ctx: click.Context, **overrides: str | None) -> InstallerConfig:
    """Load config or exit 2 with the reason on stderr."""
    from cfspeed_bootstrap.core.config.loader import ConfigError, load_config

    try:
        return load_config(ctx.obj.get("config_path"), overrides=overrides)
    except ConfigError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(EXIT_CONFIG)


def _report_failure(result: InstallResult) -> None:
    err = result.error
    assert err is not None
    click.secho(f"Error: {err.render()}", fg="red", err=True)


def _echo_plan(result: InstallResult) -> None:
    assert result.platform is not None and result.artifact is not None
    click.echo(f"Platform: {result.platform.target}")
    click.echo(f"Version:  {result.version}")
    click.echo(f"Archive:  {result.artifact.archive_file_name}")
    click.echo(f"Download: {result.artifact.archive_url}")
    click.echo(f"SHA256:   {result.artifact.digest_url}")


@cli.command()
@click.option("--release", "-r", default=None, help="Release tag to install (default: latest).")
@click.option(
    "--install-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Destination directory (default: ~/.local/bin).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    release: str | None,
    install_dir: str | None,
    as_json: bool,
) -> None:
    """Download, verify and install the binary.

    Examples:

        cfspeed-install install

        VERSION=v0.1.0 cfspeed-install install

        cfspeed-install install --install-dir /opt/tools/bin
    """
    from cfspeed_bootstrap.core.use_cases.install import run_install

    config = _load(ctx, version=release, install_dir=install_dir)
    quiet = ctx.obj.get("quiet", False)

    try:
        result = run_install(config)
    except KeyboardInterrupt:
        click.secho("Interrupted", fg="yellow", err=True)
        sys.exit(EXIT_SIGINT)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if not result.ok:
            _report_failure(result)
            sys.exit(EXIT_FAILED)
        return

    if not result.ok:
        _report_failure(result)
        sys.exit(EXIT_FAILED)

    installed = result.installed
    assert installed is not None
    if not quiet:
        _echo_plan(result)
    click.secho(
        f"Installed {config.binary_name} {installed.version} to {installed.path.parent}",
        fg="green",
    )
    if not installed.on_path:
        click.echo(f"Make sure {installed.path.parent} is in your PATH")


@cli.command()
@click.option("--release", "-r", default=None, help="Release tag to plan for (default: latest).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(ctx: click.Context, release: str | None, as_json: bool) -> None:
    """Show what would be downloaded, without downloading it."""
    from cfspeed_bootstrap.core.use_cases.install import plan_install

    config = _load(ctx, version=release)
    result = plan_install(config)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if not result.ok:
            _report_failure(result)
            sys.exit(EXIT_FAILED)
        return

    if not result.ok:
        _report_failure(result)
        sys.exit(EXIT_FAILED)

    _echo_plan(result)


if __name__ == "__main__":
    cli()
