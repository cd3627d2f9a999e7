"""Shared fixtures: an in-memory gateway that records every provider call."""

import pytest

from gitdrops.errors import ProviderError
from gitdrops.types import Action, ActiveDroplet, ActiveVolume, CreateRequest, DesiredDroplet


def pytest_addoption(parser):
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run tests against a real DigitalOcean account",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-integration"):
        return
    skip = pytest.mark.skip(reason="needs --run-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


class FakeGateway:
    """Gateway double. `fail` maps a call key to the error it should raise."""

    def __init__(self, droplets=None, volumes=None, fail=None):
        self.droplets = list(droplets or [])
        self.volumes = list(volumes or [])
        self.fail = dict(fail or {})
        self.calls = []

    def _record(self, key):
        self.calls.append(key)
        if key in self.fail:
            raise self.fail[key]

    def list_droplets(self) -> list[ActiveDroplet]:
        self._record(("list_droplets",))
        return self.droplets

    def list_volumes(self) -> list[ActiveVolume]:
        self._record(("list_volumes",))
        return self.volumes

    def create_droplet(self, request: CreateRequest) -> None:
        self._record(("create", request["name"]))

    def delete_droplet(self, droplet_id: int) -> None:
        self._record(("delete", droplet_id))

    def apply_action(self, action: Action) -> None:
        self._record((action.type, action.droplet_id, action.value))


def desired(name, region="nyc3", size="s-1vcpu-1gb", image="ubuntu-22-04-x64", **kwargs):
    return DesiredDroplet(name=name, region=region, size=size, image=image, **kwargs)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def provider_error():
    return ProviderError("Command failed: 422 unprocessable entity")
