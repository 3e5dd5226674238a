# -----------------------------------------------------------------------------
# DOWNLOADER - BYTE TRANSFER
# -----------------------------------------------------------------------------
# Responsibility: Fetch a URL to a file. Used once, to fetch the
# docker-machine executable when it is not installed.
#
# Writes go to a temp file in the destination directory and are renamed into
# place, so a failed or interrupted download never leaves a partial binary
# that a later run would mistake for a good one.
# -----------------------------------------------------------------------------

import os
import tempfile
from pathlib import Path
from typing import Protocol

import requests
from rich.console import Console

console = Console()

DOWNLOAD_TIMEOUT_SECONDS = 120
CHUNK_SIZE = 64 * 1024


class DownloadClient(Protocol):
    """Anything that can put the bytes at `url` into `destination`."""

    def download(self, url: str, destination: str) -> None: ...


class RequestsDownloadClient:
    """
    DownloadClient over `requests`, streaming to disk.

    Raises:
        requests.RequestException: On connection errors and non-2xx replies.
        OSError: If the destination cannot be written.
    """

    def __init__(self, timeout: int = DOWNLOAD_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout

    def download(self, url: str, destination: str) -> None:
        target = Path(destination).resolve()
        target.parent.mkdir(parents=True, exist_ok=True)

        console.print(f"[cyan][DOWNLOAD] {url}[/cyan]")
        fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}-tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                with requests.get(
                    url, stream=True, timeout=self._timeout, allow_redirects=True
                ) as response:
                    response.raise_for_status()
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
            os.replace(tmp_path, target)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

        console.print(f"[green][DOWNLOAD] Saved: {target}[/green]")
