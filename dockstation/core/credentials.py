# Copyright 2026 Pramod Kumar Voola
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# -----------------------------------------------------------------------------
# CREDENTIAL BUNDLER - PEM TO PKCS#12
# -----------------------------------------------------------------------------
# Responsibility: Combine the client certificate and private key that
# docker-machine generates (cert.pem + key.pem) into one PKCS#12 bundle
# (key.pfx) next to them, for mutual-TLS connections to the engine.
#
# Crypto is isolated behind CredentialBackend so the encoding can be swapped
# without touching the bundling flow. The bundle file is written atomically:
# a failed build never leaves a corrupt key.pfx.
# -----------------------------------------------------------------------------

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12
from rich.console import Console

from dockstation.core.errors import CredentialBuildFailure
from dockstation.domain.models import CredentialBundle

console = Console()

CERT_FILENAME = "cert.pem"
KEY_FILENAME = "key.pem"
CA_FILENAME = "ca.pem"
BUNDLE_FILENAME = "key.pfx"
BUNDLE_FRIENDLY_NAME = b"dockerHostKey"


@dataclass(frozen=True)
class KeyPair:
    """A client certificate and the private key that signs for it."""

    certificate: x509.Certificate
    private_key: Any


class CredentialBackend(Protocol):
    """Capability interface for the crypto behind bundling."""

    def decode(self, cert_pem: bytes, key_pem: bytes) -> KeyPair: ...

    def encode(self, pair: KeyPair) -> bytes: ...

    def decode_bundle(self, data: bytes) -> KeyPair: ...


class CryptographyBackend:
    """CredentialBackend using the `cryptography` package."""

    def decode(self, cert_pem: bytes, key_pem: bytes) -> KeyPair:
        """
        Load a PEM certificate and its unencrypted PEM private key.

        Raises:
            ValueError: Unparseable PEM, or the key does not match the certificate.
        """
        certificate = x509.load_pem_x509_certificate(cert_pem)
        private_key = serialization.load_pem_private_key(key_pem, password=None)

        if _public_bytes(certificate.public_key()) != _public_bytes(private_key.public_key()):
            raise ValueError("Private key does not match the certificate's public key")

        return KeyPair(certificate=certificate, private_key=private_key)

    def encode(self, pair: KeyPair) -> bytes:
        """Serialize the pair as an unencrypted PKCS#12 bundle."""
        return pkcs12.serialize_key_and_certificates(
            name=BUNDLE_FRIENDLY_NAME,
            key=pair.private_key,
            cert=pair.certificate,
            cas=None,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def decode_bundle(self, data: bytes) -> KeyPair:
        """Load a bundle produced by encode()."""
        private_key, certificate, _ = pkcs12.load_key_and_certificates(data, password=None)
        if private_key is None or certificate is None:
            raise ValueError("PKCS#12 bundle does not contain both a key and a certificate")
        return KeyPair(certificate=certificate, private_key=private_key)


def _public_bytes(public_key: Any) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


class CredentialBundler:
    """
    Builds the mutual-TLS credential bundle for an engine.

    The resolver pairs this bundle with server-certificate verification
    turned off: docker-machine VMs present a self-signed server certificate.
    """

    def __init__(self, backend: CredentialBackend | None = None) -> None:
        self._backend = backend or CryptographyBackend()

    def build(self, cert_dir: Path | str, rebuild: bool = False) -> CredentialBundle:
        """
        Produce `<cert_dir>/key.pfx` from `<cert_dir>/cert.pem` and `key.pem`.

        An existing bundle newer than both PEM files is reused unless
        `rebuild` is set.

        Args:
            cert_dir: Directory holding the PEM files (DOCKER_CERT_PATH).
            rebuild: Overwrite an existing bundle unconditionally.

        Returns:
            CredentialBundle describing the inputs and the persisted bundle.

        Raises:
            CredentialBuildFailure: Missing/invalid PEM material or write failure.
        """
        cert_dir = Path(cert_dir)
        cert_path = cert_dir / CERT_FILENAME
        key_path = cert_dir / KEY_FILENAME
        bundle_path = cert_dir / BUNDLE_FILENAME
        ca_path = cert_dir / CA_FILENAME

        bundle = CredentialBundle(
            certificate=cert_path,
            private_key=key_path,
            bundle_handle=bundle_path,
            ca_certificate=ca_path if ca_path.is_file() else None,
        )

        try:
            cert_pem = cert_path.read_bytes()
            key_pem = key_path.read_bytes()
        except OSError as e:
            raise CredentialBuildFailure(
                f"Could not read TLS material from {cert_dir}: {e}", cert_dir=str(cert_dir)
            ) from e

        if not rebuild and self._is_current(bundle_path, cert_path, key_path):
            console.print(f"[green][CREDENTIALS] Reusing bundle: {bundle_path}[/green]")
            return bundle

        try:
            pair = self._backend.decode(cert_pem, key_pem)
            data = self._backend.encode(pair)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            console.print(f"[red][CREDENTIALS] Invalid PEM material in {cert_dir}[/red]")
            raise CredentialBuildFailure(
                f"Could not convert PEM certificate/key in {cert_dir}: {e}", cert_dir=str(cert_dir)
            ) from e

        try:
            _atomic_write(bundle_path, data)
        except OSError as e:
            raise CredentialBuildFailure(
                f"Could not write credential bundle {bundle_path}: {e}", cert_dir=str(cert_dir)
            ) from e

        console.print(f"[green][CREDENTIALS] Bundle written: {bundle_path}[/green]")
        return bundle

    def load(self, bundle: CredentialBundle) -> KeyPair:
        """
        Read back the key pair stored in a bundle.

        Raises:
            CredentialBuildFailure: The bundle is missing or unreadable.
        """
        try:
            return self._backend.decode_bundle(bundle.bundle_handle.read_bytes())
        except (OSError, ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise CredentialBuildFailure(
                f"Could not load credential bundle {bundle.bundle_handle}: {e}",
                cert_dir=str(bundle.bundle_handle.parent),
            ) from e

    @staticmethod
    def _is_current(bundle_path: Path, *sources: Path) -> bool:
        if not bundle_path.is_file():
            return False
        built_at = bundle_path.stat().st_mtime
        return all(built_at >= source.stat().st_mtime for source in sources)


def _atomic_write(target: Path, data: bytes) -> None:
    fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}-tmp-")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, target)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise
