"""gitdrops - GitOps reconciliation of DigitalOcean droplets."""

from .actions import actions_for, translate_create_request
from .config import GitDropsConfig, load_config, load_desired_droplets, load_privileges
from .diff import DropletDiff, RegionDrift, compute_diff, volume_index_from
from .errors import (
    ConfigError,
    GitDropsError,
    ProviderError,
    ReconcileCancelled,
    TransientProviderError,
    UnknownVolumeError,
    ValidationError,
)
from .providers import DigitalOceanGateway, Gateway
from .reconcile import ActionFailure, ReconcileReport, plan, reconcile
from .types import (
    Action,
    ActionType,
    ActiveDroplet,
    ActiveVolume,
    CreateRequest,
    DesiredDroplet,
    Privileges,
    RegionDriftPolicy,
)

__all__ = [
    "Action",
    "ActionFailure",
    "ActionType",
    "ActiveDroplet",
    "ActiveVolume",
    "ConfigError",
    "CreateRequest",
    "DesiredDroplet",
    "DigitalOceanGateway",
    "DropletDiff",
    "Gateway",
    "GitDropsConfig",
    "GitDropsError",
    "Privileges",
    "ProviderError",
    "ReconcileCancelled",
    "ReconcileReport",
    "RegionDrift",
    "RegionDriftPolicy",
    "TransientProviderError",
    "UnknownVolumeError",
    "ValidationError",
    "actions_for",
    "compute_diff",
    "load_config",
    "load_desired_droplets",
    "load_privileges",
    "plan",
    "reconcile",
    "translate_create_request",
    "volume_index_from",
]
