#!/usr/bin/env python3
"""Reconcile DigitalOcean droplets against gitdrops.yaml.

Prerequisites: doctl CLI installed, DIGITALOCEAN_TOKEN set (or doctl auth init).

Usage: uv run gitdrops <command> [options]

Examples:
    uv run gitdrops validate
    uv run gitdrops plan --file infra/gitdrops.yaml
    uv run gitdrops reconcile --region-drift recreate
"""

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import cyclopts
from rich import print

from .config import GitDropsConfig, load_config, load_env
from .diff import DropletDiff
from .errors import GitDropsError
from .providers import DigitalOceanGateway
from .reconcile import plan, reconcile
from .types import RegionDriftPolicy
from .utils import error, log, setup_logging, warn

app = cyclopts.App(
    name="gitdrops", help="Reconcile DigitalOcean droplets against gitdrops.yaml", sort_key=None
)


def _load(file: Path | None, verbose: bool) -> tuple[GitDropsConfig, str | None]:
    setup_logging(logging.DEBUG if verbose else logging.INFO)
    token, default_file = load_env()
    spec_file = file or default_file
    try:
        config = load_config(spec_file)
    except GitDropsError as e:
        error(str(e))
    log(f"Loaded {len(config.droplets)} droplet(s) from '{spec_file}'")
    return config, token


@contextmanager
def cancel_on_interrupt() -> Iterator[threading.Event]:
    """Turn Ctrl-C into a cancel signal checked before each provider call."""
    cancel = threading.Event()

    def handle(signum, frame):
        warn("Interrupted, stopping after the current operation")
        cancel.set()

    previous = signal.signal(signal.SIGINT, handle)
    try:
        yield cancel
    finally:
        signal.signal(signal.SIGINT, previous)


def _print_diff(diff: DropletDiff) -> None:
    if diff.is_empty():
        print("[green]Droplets are in sync, nothing to do[/green]")
    for droplet_id in diff.to_delete:
        print(f"  [red]- delete[/red]  droplet {droplet_id}")
    for droplet in diff.to_create:
        print(f"  [green]+ create[/green]  '{droplet.name}' ({droplet.region}, {droplet.size}, {droplet.image})")
    for droplet_id, actions in diff.to_update.items():
        for action in actions:
            print(f"  [yellow]~ {action.type}[/yellow]  droplet {droplet_id} -> '{action.value}'")
    for drift in diff.region_drift:
        print(
            f"  [dim]! region[/dim]  '{drift.name}' is in '{drift.active_region}', "
            f"gitdrops.yaml says '{drift.desired_region}'"
        )


@app.command(name="validate")
def validate_command(*, file: Path | None = None, verbose: bool = False):
    """Load and validate gitdrops.yaml without contacting DigitalOcean.

    :param file: Desired-state file (default: GITDROPS_FILE or gitdrops.yaml)
    :param verbose: Enable debug logging
    """
    config, _ = _load(file, verbose)
    p = config.privileges
    print(f"[green]OK[/green]: {len(config.droplets)} droplet(s)")
    print(f"  Privileges: create={p.create} update={p.update} delete={p.delete}")
    print(f"  Region drift: {config.region_drift}")


@app.command(name="plan")
def plan_command(
    *,
    file: Path | None = None,
    region_drift: RegionDriftPolicy | None = None,
    verbose: bool = False,
):
    """Show what reconcile would change, without changing anything.

    :param file: Desired-state file (default: GITDROPS_FILE or gitdrops.yaml)
    :param region_drift: Override regionDrift from the file (ignore or recreate)
    :param verbose: Enable debug logging
    """
    config, token = _load(file, verbose)
    gateway = DigitalOceanGateway(token)
    try:
        diff, _ = plan(
            gateway, config.droplets, region_drift=region_drift or config.region_drift
        )
    except GitDropsError as e:
        error(str(e))
    _print_diff(diff)


@app.command(name="reconcile")
def reconcile_command(
    *,
    file: Path | None = None,
    region_drift: RegionDriftPolicy | None = None,
    verbose: bool = False,
):
    """Delete, create and update droplets so DigitalOcean matches gitdrops.yaml.

    Only the phases granted under 'privileges' in the file are run.
    Ctrl-C stops before the next provider call; a call already running finishes.

    :param file: Desired-state file (default: GITDROPS_FILE or gitdrops.yaml)
    :param region_drift: Override regionDrift from the file (ignore or recreate)
    :param verbose: Enable debug logging
    """
    config, token = _load(file, verbose)
    gateway = DigitalOceanGateway(token)
    try:
        gateway.validate_auth()
        diff, volume_index = plan(
            gateway, config.droplets, region_drift=region_drift or config.region_drift
        )
        _print_diff(diff)
        with cancel_on_interrupt() as cancel:
            report = reconcile(
                diff, config.privileges, gateway, volume_index=volume_index, cancel=cancel
            )
    except GitDropsError as e:
        error(str(e))

    log(
        f"Deleted {len(report.deleted)}, created {len(report.created)}, "
        f"applied {len(report.applied)} action(s)"
    )
    if not report.ok:
        print("[red]Failed actions:[/red]")
        for failure in report.failures:
            print(f"  {failure}")
        error(f"{len(report.failures)} update action(s) failed")
    log("Done!")


if __name__ == "__main__":
    app()
