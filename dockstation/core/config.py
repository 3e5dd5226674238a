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
# CONFIGURATION
# -----------------------------------------------------------------------------
# Responsibility: Read the handful of environment knobs that steer endpoint
# resolution. Values may come from the process environment or a `.env` file
# in the working directory; the process environment wins.
#
# Variables:
# - DOCKER_HOST: explicit engine address (skips all discovery)
# - DOCKER_TLS_VERIFY / DOCKER_CERT_PATH: TLS for an explicit DOCKER_HOST
# - DOCKER_MACHINE_DRIVER: driver for a newly created machine
# - HYPERV_SWITCH_NAME: virtual switch for the hyperv driver
# - DOCKSTATION_MACHINE_NAME: name of the managed machine
# -----------------------------------------------------------------------------

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_MACHINE_NAME = "DockStationVM"
DEFAULT_HYPERV_SWITCH_NAME = "DockStationSwitch"


class HostSettings(BaseModel):
    """Environment-derived settings for one resolution."""

    docker_host: str | None = Field(None, description="Explicit engine URL (DOCKER_HOST)")
    tls_verify: bool = Field(False, description="DOCKER_TLS_VERIFY for an explicit host")
    cert_path: Path | None = Field(None, description="DOCKER_CERT_PATH for an explicit host")
    machine_driver: str | None = Field(None, description="DOCKER_MACHINE_DRIVER override")
    hyperv_switch_name: str | None = Field(None, description="HYPERV_SWITCH_NAME override")
    machine_name: str = Field(DEFAULT_MACHINE_NAME, min_length=1)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "HostSettings":
        """
        Build settings from an environment mapping.

        Args:
            environ: Mapping to read; defaults to os.environ.

        Returns:
            HostSettings with empty strings treated as unset.
        """
        env = os.environ if environ is None else environ

        def _get(key: str) -> str | None:
            value = env.get(key, "").strip()
            return value or None

        cert_path = _get("DOCKER_CERT_PATH")
        return cls(
            docker_host=_get("DOCKER_HOST"),
            tls_verify=is_truthy(env.get("DOCKER_TLS_VERIFY")),
            cert_path=Path(cert_path) if cert_path else None,
            machine_driver=_get("DOCKER_MACHINE_DRIVER"),
            hyperv_switch_name=_get("HYPERV_SWITCH_NAME"),
            machine_name=_get("DOCKSTATION_MACHINE_NAME") or DEFAULT_MACHINE_NAME,
        )


def is_truthy(value: str | None) -> bool:
    """docker's convention: any non-empty value other than 0/false enables a flag."""
    if value is None:
        return False
    return value.strip().lower() not in ("", "0", "false", "no")


def load_settings(dotenv_path: Path | None = None) -> HostSettings:
    """
    Load `.env` (without overriding the real environment) and read settings.

    Args:
        dotenv_path: Explicit .env file; defaults to ./.env.
    """
    load_dotenv(dotenv_path or Path.cwd() / ".env", override=False)
    return HostSettings.from_env()
