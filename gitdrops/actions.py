"""Translate desired droplets into provider requests and in-place actions."""

from .errors import UnknownVolumeError, ValidationError
from .types import Action, ActiveDroplet, CreateRequest, DesiredDroplet
from .utils import log


def actions_for(
    desired: DesiredDroplet, active: ActiveDroplet, volume_index: dict[str, str]
) -> list[Action]:
    """Compute the actions that bring an active droplet in line with its spec.

    Region drift is never returned here: droplets cannot change region in place.

    :param desired: Droplet as declared in gitdrops.yaml
    :param active: The droplet with the same name on the provider
    :param volume_index: Volume name to volume ID
    :return: Resize/rebuild actions, then detaches, then attaches
    :raises UnknownVolumeError: If a desired volume name does not exist
    """
    actions = []
    if active.size is not None and active.size != desired.size:
        log(
            f"Droplet '{active.name}' ({active.id}) size changed: "
            f"'{active.size}' -> '{desired.size}'"
        )
        actions.append(Action.resize(active.id, desired.size))

    if active.image is not None and active.image != desired.image:
        log(
            f"Droplet '{active.name}' ({active.id}) image changed: "
            f"'{active.image}' -> '{desired.image}'"
        )
        actions.append(Action.rebuild(active.id, desired.image))

    wanted_ids = resolve_volumes(desired, volume_index)
    actions.extend(volumes_to_detach(active, wanted_ids))
    actions.extend(volumes_to_attach(active, wanted_ids))
    return actions


def resolve_volumes(desired: DesiredDroplet, volume_index: dict[str, str]) -> list[str]:
    """Map the desired volume names to provider volume IDs, keeping order.

    A volume listed twice is resolved once.
    """
    volume_ids = []
    for volume_name in dict.fromkeys(desired.volumes):
        volume_id = volume_index.get(volume_name)
        if not volume_id:
            raise UnknownVolumeError(volume_name, desired.name)
        volume_ids.append(volume_id)
    return volume_ids


def volumes_to_detach(active: ActiveDroplet, wanted_ids: list[str]) -> list[Action]:
    return [
        Action.detach(active.id, volume_id)
        for volume_id in active.volume_ids
        if volume_id not in wanted_ids
    ]


def volumes_to_attach(active: ActiveDroplet, wanted_ids: list[str]) -> list[Action]:
    actions = []
    for volume_id in wanted_ids:
        if volume_id in active.volume_ids:
            continue
        log(f"Volume '{volume_id}' not attached to droplet '{active.name}'")
        actions.append(Action.attach(active.id, volume_id))
    return actions


def translate_create_request(
    desired: DesiredDroplet, volume_index: dict[str, str]
) -> CreateRequest:
    """Build the provider create payload for a droplet.

    :raises ValidationError: If name, region, size or image is empty
    :raises UnknownVolumeError: If a desired volume name does not exist
    """
    for field in ("name", "region", "size", "image"):
        if not getattr(desired, field):
            raise ValidationError(f"droplet {field} not specified")

    request: CreateRequest = {
        "name": desired.name,
        "region": desired.region,
        "size": desired.size,
        "image": desired.image,
    }
    if desired.ssh_key_fingerprint:
        request["ssh_keys"] = [desired.ssh_key_fingerprint]
    if desired.vpc_uuid:
        request["vpc_uuid"] = desired.vpc_uuid
    if desired.volumes:
        request["volumes"] = resolve_volumes(desired, volume_index)
    if desired.tags:
        request["tags"] = list(desired.tags)
    if desired.user_data:
        request["user_data"] = desired.user_data
    return request
