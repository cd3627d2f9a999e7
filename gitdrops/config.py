"""Load the desired state from gitdrops.yaml.

Example file::

    privileges:
      create: true
      update: true
      delete: false
    regionDrift: ignore
    droplets:
      - name: web-1
        region: nyc3
        size: s-1vcpu-1gb
        image: ubuntu-22-04-x64
        volumes: [web-data]
        tags: [web]
        userData:
          path: cloud-init.yaml
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

from .errors import ConfigError
from .types import REGION_DRIFT_POLICIES, DesiredDroplet, Privileges, RegionDriftPolicy

DEFAULT_SPEC_FILE = "gitdrops.yaml"
TOKEN_ENV = "DIGITALOCEAN_TOKEN"
SPEC_FILE_ENV = "GITDROPS_FILE"

REQUIRED_FIELDS = ("name", "region", "size", "image")

# yaml key -> DesiredDroplet field
DROPLET_KEYS = {
    "name": "name",
    "region": "region",
    "size": "size",
    "image": "image",
    "sshKeyFingerprint": "ssh_key_fingerprint",
    "vpcUUID": "vpc_uuid",
    "volumes": "volumes",
    "tags": "tags",
    "userData": "user_data",
}


@dataclass(frozen=True)
class GitDropsConfig:
    droplets: list[DesiredDroplet] = field(default_factory=list)
    privileges: Privileges = field(default_factory=Privileges)
    region_drift: RegionDriftPolicy = "ignore"


def load_env() -> tuple[str | None, Path]:
    """Read the API token and spec file location from the environment (and .env).

    :return: (token or None, path to the desired-state file)
    """
    load_dotenv()
    token = os.getenv(TOKEN_ENV) or None
    spec_file = Path(os.getenv(SPEC_FILE_ENV, DEFAULT_SPEC_FILE))
    return token, spec_file


def load_config(path: str | Path) -> GitDropsConfig:
    """Parse and validate a gitdrops.yaml file.

    :param path: Path to the desired-state file
    :return: The validated configuration
    :raises ConfigError: If the file is missing, malformed or incomplete
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Desired-state file not found: '{path}'")
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed YAML in '{path}': {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"'{path}' must contain a mapping at the top level")

    raw_droplets = data.get("droplets") or []
    if not isinstance(raw_droplets, list):
        raise ConfigError("'droplets' must be a list")

    droplets = [
        parse_droplet(raw, index, base_dir=path.parent)
        for index, raw in enumerate(raw_droplets)
    ]
    check_unique_names(droplets)

    return GitDropsConfig(
        droplets=droplets,
        privileges=parse_privileges(data.get("privileges")),
        region_drift=parse_region_drift(data.get("regionDrift")),
    )


def load_desired_droplets(path: str | Path) -> list[DesiredDroplet]:
    return load_config(path).droplets


def load_privileges(path: str | Path) -> Privileges:
    return load_config(path).privileges


def parse_droplet(raw: object, index: int, base_dir: Path = Path(".")) -> DesiredDroplet:
    """Build a DesiredDroplet from one entry of the 'droplets' list."""
    if not isinstance(raw, dict):
        raise ConfigError(f"droplets[{index}] must be a mapping")

    unknown = set(raw) - set(DROPLET_KEYS)
    if unknown:
        raise ConfigError(
            f"droplets[{index}] has unknown keys: {', '.join(sorted(unknown))}"
        )

    label = raw.get("name") or f"droplets[{index}]"
    for key in REQUIRED_FIELDS:
        value = raw.get(key)
        if value is None or str(value).strip() == "":
            raise ConfigError(f"droplet '{label}' is missing required field '{key}'")

    kwargs = {}
    for key, attr in DROPLET_KEYS.items():
        if key not in raw or raw[key] is None:
            continue
        value = raw[key]
        if key in ("volumes", "tags"):
            kwargs[attr] = _string_list(value, key, label)
        elif key == "userData":
            kwargs[attr] = _user_data(value, label, base_dir)
        else:
            kwargs[attr] = str(value)

    volumes = kwargs.get("volumes", ())
    for i, volume_name in enumerate(volumes):
        if volume_name in volumes[:i]:
            raise ConfigError(f"droplet '{label}': duplicate volume '{volume_name}'")

    if "tags" in kwargs:
        # tags are a set; keep first-seen order for stable output
        kwargs["tags"] = tuple(dict.fromkeys(kwargs["tags"]))

    return DesiredDroplet(**kwargs)


def parse_privileges(raw: object) -> Privileges:
    """Parse the 'privileges' section. Missing flags are denied."""
    if raw is None:
        return Privileges()
    if not isinstance(raw, dict):
        raise ConfigError("'privileges' must be a mapping")

    unknown = set(raw) - {"create", "update", "delete"}
    if unknown:
        raise ConfigError(f"Unknown privileges: {', '.join(sorted(unknown))}")
    for key, value in raw.items():
        if not isinstance(value, bool):
            raise ConfigError(f"privilege '{key}' must be true or false, got '{value}'")

    return Privileges(
        create=raw.get("create", False),
        update=raw.get("update", False),
        delete=raw.get("delete", False),
    )


def parse_region_drift(raw: object) -> RegionDriftPolicy:
    if raw is None:
        return "ignore"
    if raw not in REGION_DRIFT_POLICIES:
        raise ConfigError(
            f"Invalid regionDrift '{raw}'. Valid values: {', '.join(REGION_DRIFT_POLICIES)}"
        )
    return raw


def check_unique_names(droplets: list[DesiredDroplet]) -> None:
    """Droplets are matched by name, so names must be unique.

    :raises ConfigError: If a name appears more than once
    """
    seen = set()
    duplicates = []
    for droplet in droplets:
        if droplet.name in seen and droplet.name not in duplicates:
            duplicates.append(droplet.name)
        seen.add(droplet.name)
    if duplicates:
        raise ConfigError(f"Duplicate droplet names: {', '.join(duplicates)}")


def _string_list(value: object, key: str, label: str) -> tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, list):
        raise ConfigError(f"droplet '{label}': '{key}' must be a list")
    return tuple(str(v) for v in value)


def _user_data(value: object, label: str, base_dir: Path) -> str:
    """userData may be inline text, {data: ...} or {path: ...} relative to the spec file."""
    if isinstance(value, str):
        return value
    if not isinstance(value, dict):
        raise ConfigError(f"droplet '{label}': 'userData' must be a string or mapping")
    if "data" in value:
        return str(value["data"])
    if "path" in value:
        user_data_path = base_dir / str(value["path"])
        try:
            return user_data_path.read_text()
        except OSError as e:
            raise ConfigError(
                f"droplet '{label}': cannot read userData file '{user_data_path}': {e}"
            ) from e
    raise ConfigError(f"droplet '{label}': 'userData' needs a 'data' or 'path' key")
