"""Apply a DropletDiff against the provider.

Phases always run in the order delete, create, update: deleting first frees quota
and volume attachments for the creates, and updates may need the volumes and
droplets the earlier phases settled. Every provider call is issued one at a time.
"""

import threading
from dataclasses import dataclass, field

from .actions import translate_create_request
from .diff import DropletDiff, compute_diff, volume_index_from
from .errors import ProviderError, ReconcileCancelled, ValidationError
from .providers import Gateway
from .types import Action, DesiredDroplet, Privileges, RegionDriftPolicy
from .utils import log, logger, warn


@dataclass(frozen=True)
class ActionFailure:
    droplet_id: int
    action: Action
    error: ProviderError

    def __str__(self) -> str:
        return f"droplet {self.droplet_id}: {self.action.type} '{self.action.value}' failed: {self.error}"


@dataclass
class ReconcileReport:
    deleted: list[int] = field(default_factory=list)
    created: list[str] = field(default_factory=list)
    applied: list[Action] = field(default_factory=list)
    failures: list[ActionFailure] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def plan(
    gateway: Gateway,
    desired: list[DesiredDroplet],
    *,
    region_drift: RegionDriftPolicy = "ignore",
) -> tuple[DropletDiff, dict[str, str]]:
    """List the provider state and diff it against the desired droplets.

    :return: (diff, volume name to ID index)
    :raises ProviderError: If listing droplets or volumes fails
    """
    active = gateway.list_droplets()
    volume_index = volume_index_from(gateway.list_volumes())
    log(f"Active droplets: {len(active)}, volumes: {len(volume_index)}")

    diff = compute_diff(desired, active, volume_index, region_drift=region_drift)
    log(f"Plan: {diff.summary()}")
    logger.debug(f"Droplets to delete: {diff.to_delete}")
    logger.debug(f"Droplets to update: {diff.to_update}")
    logger.debug(f"Droplets to create: {[d.name for d in diff.to_create]}")
    return diff, volume_index


def _check_cancel(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise ReconcileCancelled("Reconciliation cancelled")


def delete_droplets(
    diff: DropletDiff,
    gateway: Gateway,
    report: ReconcileReport,
    cancel: threading.Event | None = None,
    *,
    keep: set[int] | None = None,
) -> None:
    """Delete stale droplets, stopping at the first failure.

    IDs in `keep` are left in place.
    """
    keep = keep or set()
    for droplet_id in diff.to_delete:
        if droplet_id in keep:
            continue
        _check_cancel(cancel)
        try:
            gateway.delete_droplet(droplet_id)
        except ProviderError as e:
            logger.error(f"Error deleting droplet {droplet_id}: {e}")
            raise
        report.deleted.append(droplet_id)


def create_droplets(
    diff: DropletDiff,
    gateway: Gateway,
    volume_index: dict[str, str],
    report: ReconcileReport,
    cancel: threading.Event | None = None,
) -> None:
    """Create missing droplets in order, stopping at the first invalid spec or failure.

    Each request is validated just before its API call, so droplets earlier in
    the list are created even when a later one is invalid.
    """
    # a droplet being recreated in a new region must not coexist with its old self
    not_deleted = {
        drift.name
        for drift in diff.region_drift
        if drift.droplet_id in diff.to_delete and drift.droplet_id not in report.deleted
    }
    for droplet in diff.to_create:
        if droplet.name in not_deleted:
            warn(f"Not recreating '{droplet.name}': its old droplet was not deleted")
            report.skipped.append(f"create {droplet.name}")
            continue
        _check_cancel(cancel)
        try:
            request = translate_create_request(droplet, volume_index)
        except ValidationError as e:
            logger.error(f"Invalid droplet '{droplet.name or '<unnamed>'}': {e}")
            raise
        try:
            gateway.create_droplet(request)
        except ProviderError as e:
            logger.error(f"Error creating droplet '{droplet.name}': {e}")
            raise
        report.created.append(droplet.name)


def update_droplets(
    diff: DropletDiff,
    gateway: Gateway,
    report: ReconcileReport,
    cancel: threading.Event | None = None,
) -> None:
    """Apply every action, recording failures instead of stopping at them."""
    for droplet_id, actions in diff.to_update.items():
        for action in actions:
            _check_cancel(cancel)
            try:
                gateway.apply_action(action)
            except ProviderError as e:
                failure = ActionFailure(droplet_id, action, e)
                logger.error(f"Error updating {failure}")
                report.failures.append(failure)
                continue
            report.applied.append(action)


def reconcile(
    diff: DropletDiff,
    privileges: Privileges,
    gateway: Gateway,
    *,
    volume_index: dict[str, str] | None = None,
    cancel: threading.Event | None = None,
) -> ReconcileReport:
    """Converge the provider onto the desired droplets.

    :param diff: Result of compute_diff() or plan()
    :param privileges: Phases disabled here are skipped and listed in report.skipped
    :param gateway: Provider gateway issuing the calls
    :param volume_index: Volume name to ID, needed to create droplets with volumes
    :param cancel: When set, stops before the next provider call
    :return: Report of what was done, including every failed update action
    :raises ProviderError: If a delete or create call fails
    :raises ValidationError: If a droplet to create is invalid
    :raises ReconcileCancelled: If cancel was set before an operation started
    """
    report = ReconcileReport()
    volume_index = volume_index or {}

    if privileges.delete:
        keep = set()
        if not privileges.create:
            # a drifted droplet is only deleted when it can be created again
            for drift in diff.region_drift:
                if drift.droplet_id in diff.to_delete:
                    warn(
                        f"Not recreating '{drift.name}' in '{drift.desired_region}': "
                        "no create privileges"
                    )
                    report.skipped.append(f"recreate {drift.name}")
                    keep.add(drift.droplet_id)
        delete_droplets(diff, gateway, report, cancel, keep=keep)
    else:
        log("gitdrops.yaml does not have delete privileges, skipping deletes")
        report.skipped.append("delete")

    if privileges.create:
        create_droplets(diff, gateway, volume_index, report, cancel)
    else:
        log("gitdrops.yaml does not have create privileges, skipping creates")
        report.skipped.append("create")

    if privileges.update:
        update_droplets(diff, gateway, report, cancel)
    else:
        log("gitdrops.yaml does not have update privileges, skipping updates")
        report.skipped.append("update")

    if report.failures:
        warn(f"{len(report.failures)} update action(s) failed")
    return report
