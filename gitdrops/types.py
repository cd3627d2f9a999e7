"""Type definitions for gitdrops."""

from dataclasses import dataclass
from typing import Literal, TypedDict

ActionType = Literal["resize", "rebuild", "attach", "detach"]
RegionDriftPolicy = Literal["ignore", "recreate"]
REGION_DRIFT_POLICIES: tuple[RegionDriftPolicy, ...] = ("ignore", "recreate")


@dataclass(frozen=True)
class DesiredDroplet:
    """A droplet as declared in gitdrops.yaml."""

    name: str
    region: str
    size: str
    image: str
    ssh_key_fingerprint: str = ""
    vpc_uuid: str = ""
    volumes: tuple[str, ...] = ()  # volume names, resolved to IDs at translation
    tags: tuple[str, ...] = ()
    user_data: str = ""


@dataclass(frozen=True)
class ActiveDroplet:
    """A droplet as reported by the provider.

    Fields the provider did not report are None and never count as drift.
    """

    id: int
    name: str
    region: str | None = None
    size: str | None = None
    image: str | None = None
    volume_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class ActiveVolume:
    id: str
    name: str


@dataclass(frozen=True)
class Action:
    """A single in-place mutation addressed to one droplet."""

    type: ActionType
    value: str
    droplet_id: int

    @classmethod
    def resize(cls, droplet_id: int, size: str) -> "Action":
        return cls("resize", size, droplet_id)

    @classmethod
    def rebuild(cls, droplet_id: int, image: str) -> "Action":
        return cls("rebuild", image, droplet_id)

    @classmethod
    def attach(cls, droplet_id: int, volume_id: str) -> "Action":
        return cls("attach", volume_id, droplet_id)

    @classmethod
    def detach(cls, droplet_id: int, volume_id: str) -> "Action":
        return cls("detach", volume_id, droplet_id)

    def __str__(self) -> str:
        return f"{self.type} '{self.value}' on droplet {self.droplet_id}"


@dataclass(frozen=True)
class Privileges:
    """Which reconciliation phases may run. Everything is denied by default."""

    create: bool = False
    update: bool = False
    delete: bool = False


class CreateRequest(TypedDict, total=False):
    """Provider-facing droplet create payload."""

    name: str
    region: str
    size: str
    image: str
    ssh_keys: list[str]
    vpc_uuid: str
    volumes: list[str]  # volume IDs
    tags: list[str]
    user_data: str
