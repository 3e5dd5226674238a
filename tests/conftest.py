"""
Pytest configuration and fixtures for DockStation tests.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from docker.errors import APIError, NotFound

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

pytest_plugins = ["dockstation.pytest_plugin"]


class FakeHostEnvironment:
    """HostEnvironment with fixed answers."""

    def __init__(self, os_name="Linux", machine="x86_64", on_path=None, existing=()):
        self.os_name = os_name
        self.machine = machine
        self._on_path = set(on_path or ())
        self._existing = set(existing)

    def which(self, command):
        return f"/usr/local/bin/{command}" if command in self._on_path else None

    def path_exists(self, path):
        return path in self._existing


class FakeEngine:
    """
    In-memory engine with the semantics the lifecycle manager relies on.

    Containers are created with auto-remove, so stopping one deletes it;
    unknown ids raise docker's NotFound.
    """

    def __init__(self, images=None):
        self.images = [{"RepoTags": list(tags)} for tags in (images or [])]
        self.containers = {}
        self.pulled = []
        self.created = []
        self.stopped = []
        self.removed = []
        self.start_error = None
        self.closed = False
        self._next_id = 1

    def add_container(self, name, container_id=None):
        container_id = container_id or f"{self._next_id:064x}"
        self._next_id += 1
        self.containers[container_id] = {"Id": container_id, "name": name, "ports": {}}
        return container_id

    async def list_images(self):
        return list(self.images)

    async def pull_image(self, repository, tag="latest"):
        self.pulled.append((repository, tag))
        if ":" in tag:
            self.images.append({"RepoTags": [], "RepoDigests": [f"{repository}@{tag}"]})
        else:
            self.images.append({"RepoTags": [f"{repository}:{tag}"]})

    async def list_containers(self):
        return [{"Id": c["Id"], "Names": [f"/{c['name']}"]} for c in self.containers.values()]

    async def create_container(
        self, image, name, command, port_bindings, publish_all_ports=True, auto_remove=True
    ):
        if any(c["name"] == name for c in self.containers.values()):
            raise APIError("Conflict", response=MagicMock(status_code=409))
        container_id = self.add_container(name)
        self.containers[container_id]["ports"] = dict(port_bindings)
        self.created.append(
            {
                "image": image,
                "name": name,
                "command": command,
                "port_bindings": dict(port_bindings),
                "publish_all_ports": publish_all_ports,
                "auto_remove": auto_remove,
            }
        )
        return container_id

    async def start_container(self, container_id):
        if self.start_error is not None:
            # the container stays behind in the "created" state
            raise self.start_error
        self._get(container_id)

    async def stop_container(self, container_id):
        self._get(container_id)
        self.stopped.append(container_id)
        del self.containers[container_id]

    async def remove_container(self, container_id):
        self._get(container_id)
        self.removed.append(container_id)
        del self.containers[container_id]

    async def inspect_container(self, container_id):
        container = self._get(container_id)
        ports = {
            f"{port}/tcp": [{"HostIp": host_ip, "HostPort": str(host_port)}]
            for port, (host_ip, host_port) in container["ports"].items()
        }
        return {
            "Id": container_id,
            "Name": f"/{container['name']}",
            "NetworkSettings": {"Ports": ports},
        }

    def close(self):
        self.closed = True

    def _get(self, container_id):
        try:
            return self.containers[container_id]
        except KeyError:
            raise NotFound(f"No such container: {container_id}") from None


@pytest.fixture
def fake_engine():
    """Engine that already has the http-echo image."""
    return FakeEngine(images=[["hashicorp/http-echo:latest"]])


@pytest.fixture
def linux_host():
    """Linux x86_64 host without docker-machine on PATH."""
    return FakeHostEnvironment()


@pytest.fixture
def cert_dir(tmp_path):
    """Directory with a matching self-signed client cert.pem / key.pem pair."""
    from datetime import datetime, timedelta, timezone

    from cryptography import x509
    from cryptography.hazmat.primitives import hashes, serialization
    from cryptography.hazmat.primitives.asymmetric import ec
    from cryptography.x509.oid import NameOID

    key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "dockstation-test")])
    now = datetime.now(timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(key, hashes.SHA256())
    )

    directory = tmp_path / "certs"
    directory.mkdir()
    (directory / "cert.pem").write_bytes(certificate.public_bytes(serialization.Encoding.PEM))
    (directory / "key.pem").write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return directory
