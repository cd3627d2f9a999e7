"""Exceptions raised by gitdrops."""


class GitDropsError(Exception):
    """Base class for all gitdrops errors."""


class ConfigError(GitDropsError):
    """The desired-state file is missing, malformed or incomplete."""


class ValidationError(GitDropsError):
    """A desired droplet cannot be turned into a provider request."""


class UnknownVolumeError(ValidationError):
    """A desired droplet references a volume the provider does not have."""

    def __init__(self, volume_name: str, droplet_name: str):
        super().__init__(
            f"unknown volume '{volume_name}' for droplet '{droplet_name}'"
        )
        self.volume_name = volume_name
        self.droplet_name = droplet_name


class ProviderError(GitDropsError):
    """A call against the cloud provider failed."""

    def __init__(
        self,
        message: str,
        *,
        command: tuple[str, ...] | None = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = command
        self.stderr = stderr


class TransientProviderError(ProviderError):
    """Rate limiting or a server-side failure; safe to retry."""


class ReconcileCancelled(GitDropsError):
    """The cancel signal was set before the next operation started."""
