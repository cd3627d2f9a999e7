"""Loading gitdrops.yaml."""

from textwrap import dedent

import pytest

from gitdrops.config import load_config, load_desired_droplets, load_env, load_privileges
from gitdrops.errors import ConfigError
from gitdrops.types import DesiredDroplet, Privileges

FULL = """
privileges:
  create: true
  update: true
  delete: false
regionDrift: recreate
droplets:
  - name: web-1
    region: nyc3
    size: s-1vcpu-1gb
    image: ubuntu-22-04-x64
    sshKeyFingerprint: "aa:bb:cc"
    vpcUUID: vpc-123
    volumes: [web-data, web-logs]
    tags: [web, prod, web]
    userData:
      path: cloud-init.yaml
  - name: db-1
    region: nyc3
    size: s-2vcpu-4gb
    image: ubuntu-22-04-x64
    userData: "#!/bin/sh\\necho hi\\n"
"""


def write(tmp_path, text, name="gitdrops.yaml"):
    path = tmp_path / name
    path.write_text(dedent(text))
    return path


def test_load_full_file(tmp_path):
    (tmp_path / "cloud-init.yaml").write_text("#cloud-config\n")
    config = load_config(write(tmp_path, FULL))

    assert config.privileges == Privileges(create=True, update=True, delete=False)
    assert config.region_drift == "recreate"
    assert config.droplets[0] == DesiredDroplet(
        name="web-1",
        region="nyc3",
        size="s-1vcpu-1gb",
        image="ubuntu-22-04-x64",
        ssh_key_fingerprint="aa:bb:cc",
        vpc_uuid="vpc-123",
        volumes=("web-data", "web-logs"),
        tags=("web", "prod"),
        user_data="#cloud-config\n",
    )
    assert config.droplets[1].user_data == "#!/bin/sh\necho hi\n"


def test_privileges_default_to_deny(tmp_path):
    path = write(
        tmp_path,
        """
        droplets:
          - {name: a, region: nyc3, size: s-1vcpu-1gb, image: debian-12-x64}
        """,
    )
    assert load_privileges(path) == Privileges()
    assert load_config(path).region_drift == "ignore"
    assert [d.name for d in load_desired_droplets(path)] == ["a"]


def test_empty_file_is_empty_config(tmp_path):
    config = load_config(write(tmp_path, ""))
    assert config.droplets == []
    assert config.privileges == Privileges()


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "nope.yaml")


def test_malformed_yaml(tmp_path):
    with pytest.raises(ConfigError, match="Malformed YAML"):
        load_config(write(tmp_path, "droplets: [\n  - name: a\n"))


@pytest.mark.parametrize("field", ["name", "region", "size", "image"])
def test_missing_required_field(tmp_path, field):
    droplet = {"name": "a", "region": "nyc3", "size": "s-1vcpu-1gb", "image": "debian-12-x64"}
    del droplet[field]
    body = "\n".join(f"    {k}: {v}" for k, v in droplet.items())
    path = write(tmp_path, "droplets:\n  -\n" + body + "\n")

    with pytest.raises(ConfigError, match=f"missing required field '{field}'"):
        load_config(path)


def test_duplicate_names_rejected(tmp_path):
    path = write(
        tmp_path,
        """
        droplets:
          - {name: a, region: nyc3, size: s, image: i}
          - {name: a, region: sfo3, size: s, image: i}
        """,
    )
    with pytest.raises(ConfigError, match="Duplicate droplet names: a"):
        load_config(path)


@pytest.mark.parametrize(
    "text,message",
    [
        ("- a\n- b\n", "mapping at the top level"),
        ("droplets: {name: a}\n", "'droplets' must be a list"),
        ("droplets: [web]\n", r"droplets\[0\] must be a mapping"),
        ("droplets:\n  - {name: a, region: r, size: s, image: i, colour: blue}\n", "unknown keys: colour"),
        ("droplets:\n  - {name: a, region: r, size: s, image: i, volumes: data}\n", "'volumes' must be a list"),
        ("privileges: {create: yes please}\n", "must be true or false"),
        ("privileges: {rebuild: true}\n", "Unknown privileges: rebuild"),
        ("privileges: [create]\n", "'privileges' must be a mapping"),
        ("regionDrift: migrate\n", "Invalid regionDrift 'migrate'"),
        ("droplets:\n  - {name: a, region: r, size: s, image: i, userData: {url: x}}\n", "needs a 'data' or 'path'"),
    ],
)
def test_invalid_files(tmp_path, text, message):
    with pytest.raises(ConfigError, match=message):
        load_config(write(tmp_path, text))


def test_unreadable_user_data_file(tmp_path):
    path = write(
        tmp_path,
        "droplets:\n  - {name: a, region: r, size: s, image: i, userData: {path: missing.sh}}\n",
    )
    with pytest.raises(ConfigError, match="cannot read userData file"):
        load_config(path)


def test_load_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DIGITALOCEAN_TOKEN", "secret")
    monkeypatch.setenv("GITDROPS_FILE", "infra/drops.yaml")

    token, spec_file = load_env()

    assert token == "secret"
    assert str(spec_file) == "infra/drops.yaml"


def test_load_env_defaults(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DIGITALOCEAN_TOKEN", raising=False)
    monkeypatch.delenv("GITDROPS_FILE", raising=False)

    token, spec_file = load_env()

    assert token is None
    assert str(spec_file) == "gitdrops.yaml"


def test_duplicate_volume_rejected(tmp_path):
    path = write(
        tmp_path,
        "droplets:\n  - {name: web, region: r, size: s, image: i, volumes: [data, logs, data]}\n",
    )
    with pytest.raises(ConfigError, match="droplet 'web': duplicate volume 'data'"):
        load_config(path)
