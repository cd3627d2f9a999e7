"""Compare desired droplets against the droplets active on the provider."""

from dataclasses import dataclass, field

from .actions import actions_for
from .config import check_unique_names
from .types import Action, ActiveDroplet, ActiveVolume, DesiredDroplet, RegionDriftPolicy
from .utils import log, warn


@dataclass(frozen=True)
class RegionDrift:
    """A droplet whose region differs from gitdrops.yaml."""

    name: str
    droplet_id: int
    active_region: str
    desired_region: str


@dataclass
class DropletDiff:
    to_create: list[DesiredDroplet] = field(default_factory=list)
    to_update: dict[int, list[Action]] = field(default_factory=dict)
    to_delete: list[int] = field(default_factory=list)
    region_drift: list[RegionDrift] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.to_create or self.to_update or self.to_delete)

    def summary(self) -> str:
        n_actions = sum(len(actions) for actions in self.to_update.values())
        return (
            f"{len(self.to_create)} to create, "
            f"{len(self.to_update)} to update ({n_actions} actions), "
            f"{len(self.to_delete)} to delete"
        )


def volume_index_from(volumes: list[ActiveVolume]) -> dict[str, str]:
    """Map volume names to provider volume IDs."""
    return {volume.name: volume.id for volume in volumes}


def index_by_name(active: list[ActiveDroplet]) -> dict[str, ActiveDroplet]:
    """Index active droplets by name. On duplicate names the first one wins."""
    by_name = {}
    for droplet in active:
        if droplet.name in by_name:
            warn(
                f"Multiple active droplets named '{droplet.name}', "
                f"matching ID {by_name[droplet.name].id} and ignoring ID {droplet.id}"
            )
            continue
        by_name[droplet.name] = droplet
    return by_name


def compute_diff(
    desired: list[DesiredDroplet],
    active: list[ActiveDroplet],
    volume_index: dict[str, str],
    *,
    region_drift: RegionDriftPolicy = "ignore",
) -> DropletDiff:
    """Classify every droplet as create, update or delete.

    Droplets are matched by name. A matched droplet gets an update entry only when
    it has actions; a droplet that is already in sync gets nothing.

    With ``region_drift="ignore"`` a region change is only reported in
    ``region_drift``. With ``"recreate"`` the active droplet is deleted and the
    desired one created again, since a droplet cannot move region in place.

    :param desired: Droplets declared in gitdrops.yaml
    :param active: Droplets reported by the provider
    :param volume_index: Volume name to volume ID
    :param region_drift: How to handle droplets whose region changed
    :return: The diff to hand to reconcile()
    :raises ConfigError: If desired droplet names are not unique
    :raises UnknownVolumeError: If a matched droplet references a missing volume
    """
    check_unique_names(desired)
    active_by_name = index_by_name(active)
    diff = DropletDiff()

    for droplet in desired:
        match = active_by_name.get(droplet.name)
        if match is None:
            log(f"Droplet '{droplet.name}' not active, will create")
            diff.to_create.append(droplet)
            continue

        if match.region is not None and match.region != droplet.region:
            drift = RegionDrift(droplet.name, match.id, match.region, droplet.region)
            diff.region_drift.append(drift)
            shared = sum(1 for d in active if d.name == droplet.name)
            if region_drift == "recreate" and shared > 1:
                warn(
                    f"Droplet '{droplet.name}' region changed but {shared} active droplets "
                    f"share the name, not recreating"
                )
            elif region_drift == "recreate":
                warn(
                    f"Droplet '{droplet.name}' ({match.id}) region changed "
                    f"'{match.region}' -> '{droplet.region}', will recreate"
                )
                diff.to_delete.append(match.id)
                diff.to_create.append(droplet)
                continue
            else:
                warn(
                    f"Droplet '{droplet.name}' ({match.id}) region changed "
                    f"'{match.region}' -> '{droplet.region}', ignored (cannot move in place)"
                )

        actions = actions_for(droplet, match, volume_index)
        if actions:
            diff.to_update[match.id] = actions

    # unmatched duplicates of a desired name are left alone, not deleted
    desired_names = {droplet.name for droplet in desired}
    diff.to_delete.extend(d.id for d in active if d.name not in desired_names)

    return diff
