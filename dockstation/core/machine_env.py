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
# MACHINE ENV PARSER
# -----------------------------------------------------------------------------
# Responsibility: Turn the output of `docker-machine env <name>` into a
# mapping. The tool emits shell assignments for whatever shell it detects:
#
#   export DOCKER_HOST="tcp://192.168.99.100:2376"      (sh/bash)
#   SET DOCKER_HOST=tcp://192.168.99.100:2376           (cmd)
#   $Env:DOCKER_HOST = "tcp://192.168.99.100:2376"      (powershell)
#
# This is a pure text transform with an explicit list of prefixes; it never
# runs a shell.
# -----------------------------------------------------------------------------

from pathlib import Path

from pydantic import BaseModel

from dockstation.core.config import is_truthy
from dockstation.core.errors import MalformedEnvironment

# Matched case-sensitively except SET, which cmd prints in either case
ASSIGNMENT_PREFIXES = ("$Env:", "export ")
CMD_SET_PREFIX = "set "
COMMENT_PREFIXES = ("#", "REM ", "rem ")

HOST_KEY = "DOCKER_HOST"
MACHINE_NAME_KEY = "DOCKER_MACHINE_NAME"
TLS_VERIFY_KEY = "DOCKER_TLS_VERIFY"
CERT_PATH_KEY = "DOCKER_CERT_PATH"

REQUIRED_KEYS = (HOST_KEY, MACHINE_NAME_KEY)


def _strip_prefix(line: str) -> str:
    for prefix in ASSIGNMENT_PREFIXES:
        if line.startswith(prefix):
            return line[len(prefix):]
    if line[: len(CMD_SET_PREFIX)].lower() == CMD_SET_PREFIX:
        return line[len(CMD_SET_PREFIX):]
    return line


def _unquote(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1].strip()
    return text


def parse_assignments(raw_text: str) -> dict[str, str]:
    """
    Collect every `KEY=value` assignment in `raw_text`.

    Later duplicates overwrite earlier ones. Lines without `=` and comment
    lines are ignored.
    """
    values: dict[str, str] = {}
    for raw_line in raw_text.splitlines():
        line = raw_line.strip()
        if "=" not in line or line.startswith(COMMENT_PREFIXES):
            continue
        key, _, value = _strip_prefix(line).partition("=")
        key = _unquote(key)
        if not key:
            continue
        values[key] = _unquote(value)
    return values


def parse_machine_env(raw_text: str) -> dict[str, str]:
    """
    Parse `docker-machine env` output and check the keys we depend on.

    Args:
        raw_text: Captured stdout of the env subcommand.

    Returns:
        All parsed assignments.

    Raises:
        MalformedEnvironment: DOCKER_HOST or DOCKER_MACHINE_NAME is missing.
    """
    values = parse_assignments(raw_text)
    for key in REQUIRED_KEYS:
        if not values.get(key):
            raise MalformedEnvironment(
                f"docker-machine env output is missing required key '{key}'", key=key
            )
    return values


class MachineEnvironment(BaseModel):
    """Typed view of the machine environment."""

    host: str
    machine_name: str
    tls_verify: bool = False
    cert_path: Path | None = None

    @classmethod
    def from_output(cls, raw_text: str) -> "MachineEnvironment":
        """
        Parse env output into a MachineEnvironment.

        Raises:
            MalformedEnvironment: A required key is missing, or TLS is on
                without a certificate directory.
        """
        values = parse_machine_env(raw_text)
        tls_verify = is_truthy(values.get(TLS_VERIFY_KEY))
        cert_path = values.get(CERT_PATH_KEY) or None

        if tls_verify and cert_path is None:
            raise MalformedEnvironment(
                f"{TLS_VERIFY_KEY} is set but '{CERT_PATH_KEY}' is missing", key=CERT_PATH_KEY
            )

        return cls(
            host=values[HOST_KEY],
            machine_name=values[MACHINE_NAME_KEY],
            tls_verify=tls_verify,
            cert_path=Path(cert_path) if cert_path else None,
        )
