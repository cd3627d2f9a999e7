"""Provider gateway for DigitalOcean, driven through the doctl CLI."""

from typing import Protocol

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from .errors import ProviderError, TransientProviderError
from .types import Action, ActiveDroplet, ActiveVolume, CreateRequest
from .utils import log, run_cmd, run_cmd_json, warn

MAX_ATTEMPTS = 4


class Gateway(Protocol):
    def list_droplets(self) -> list[ActiveDroplet]: ...

    def list_volumes(self) -> list[ActiveVolume]: ...

    def create_droplet(self, request: CreateRequest) -> None: ...

    def delete_droplet(self, droplet_id: int) -> None: ...

    def apply_action(self, action: Action) -> None: ...


def _warn_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    warn(
        f"Transient provider error on attempt {retry_state.attempt_number}, retrying: {exc}"
    )


def parse_droplet(d: dict) -> ActiveDroplet:
    """Convert one entry of `doctl compute droplet list -o json`."""
    region = (d.get("region") or {}).get("slug")
    size = d.get("size_slug") or (d.get("size") or {}).get("slug")
    image_data = d.get("image")
    image = None
    if image_data:
        # custom images and snapshots have no slug; doctl accepts the ID instead
        image = image_data.get("slug") or str(image_data.get("id", "")) or None
    return ActiveDroplet(
        id=int(d["id"]),
        name=d["name"],
        region=region,
        size=size,
        image=image,
        volume_ids=tuple(d.get("volume_ids") or ()),
    )


class DigitalOceanGateway:
    """List and mutate droplets and volumes with doctl.

    The token is passed explicitly on every call; when it is None doctl falls back
    to its own configured context (``doctl auth init``).
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        wait: wait_base | None = None,
    ):
        self.token = token
        self.max_attempts = max_attempts
        self.wait = wait or wait_exponential(multiplier=1, min=2, max=30)

    def _doctl(self, *args: str, json_output: bool = False) -> str | dict | list:
        cmd = ["doctl", *args]
        if self.token:
            cmd += ["--access-token", self.token]
        runner = run_cmd_json if json_output else run_cmd
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait,
            retry=retry_if_exception_type(TransientProviderError),
            before_sleep=_warn_retry,
            reraise=True,
        )
        return retrying(runner, *cmd)

    def validate_auth(self) -> None:
        """Check that doctl can reach the account.

        :raises ProviderError: If doctl is missing or not authenticated
        """
        try:
            self._doctl("account", "get")
        except ProviderError as e:
            raise ProviderError(
                f"doctl not authenticated. Set DIGITALOCEAN_TOKEN or run: doctl auth init\n  {e}",
                command=e.command,
                stderr=e.stderr,
            ) from e

    def list_droplets(self) -> list[ActiveDroplet]:
        droplets = self._doctl("compute", "droplet", "list", json_output=True)
        return [parse_droplet(d) for d in droplets]

    def list_volumes(self) -> list[ActiveVolume]:
        volumes = self._doctl("compute", "volume", "list", json_output=True)
        return [ActiveVolume(id=v["id"], name=v["name"]) for v in volumes]

    def create_droplet(self, request: CreateRequest) -> None:
        """Create a droplet from a translated request.

        :param request: Payload from translate_create_request()
        :raises ProviderError: If doctl rejects the request
        """
        args = [
            "compute",
            "droplet",
            "create",
            request["name"],
            "--region",
            request["region"],
            "--size",
            request["size"],
            "--image",
            request["image"],
        ]
        if request.get("ssh_keys"):
            args += ["--ssh-keys", ",".join(request["ssh_keys"])]
        if request.get("vpc_uuid"):
            args += ["--vpc-uuid", request["vpc_uuid"]]
        if request.get("volumes"):
            args += ["--volumes", ",".join(request["volumes"])]
        if request.get("tags"):
            args += ["--tag-names", ",".join(request["tags"])]
        if request.get("user_data"):
            args += ["--user-data", request["user_data"]]
        self._doctl(*args)
        log(f"Created droplet '{request['name']}'")

    def delete_droplet(self, droplet_id: int) -> None:
        self._doctl("compute", "droplet", "delete", str(droplet_id), "--force")
        log(f"Deleted droplet {droplet_id}")

    def apply_action(self, action: Action) -> None:
        """Run one action and wait for it to finish."""
        droplet_id = str(action.droplet_id)
        if action.type == "resize":
            args = ["compute", "droplet-action", "resize", droplet_id, "--size", action.value]
        elif action.type == "rebuild":
            args = ["compute", "droplet-action", "rebuild", droplet_id, "--image", action.value]
        elif action.type == "attach":
            args = ["compute", "volume-action", "attach", action.value, droplet_id]
        elif action.type == "detach":
            args = ["compute", "volume-action", "detach", action.value, droplet_id]
        else:
            raise ValueError(f"Unknown action type: {action.type}")
        self._doctl(*args, "--wait")
        log(f"Applied {action}")
