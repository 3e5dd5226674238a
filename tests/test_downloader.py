"""
Tests for the streaming download client.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from dockstation.infra.downloader import RequestsDownloadClient


def _response(chunks, status_error=None):
    response = MagicMock()
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    response.iter_content.return_value = iter(chunks)
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    return response


class TestRequestsDownloadClient:
    """Tests for RequestsDownloadClient."""

    @patch("dockstation.infra.downloader.requests.get")
    def test_writes_file(self, mock_get, tmp_path):
        """Test that streamed chunks end up in the destination file."""
        mock_get.return_value = _response([b"abc", b"", b"def"])
        target = tmp_path / "docker-machine"

        RequestsDownloadClient().download("https://example.com/tool", str(target))

        assert target.read_bytes() == b"abcdef"
        assert mock_get.call_args.kwargs["stream"] is True

    @patch("dockstation.infra.downloader.requests.get")
    def test_http_error_leaves_nothing(self, mock_get, tmp_path):
        """Test that a failed download leaves no partial file behind."""
        mock_get.return_value = _response([], status_error=requests.HTTPError("404"))
        target = tmp_path / "docker-machine"

        with pytest.raises(requests.HTTPError):
            RequestsDownloadClient().download("https://example.com/tool", str(target))

        assert list(tmp_path.iterdir()) == []

    @patch("dockstation.infra.downloader.requests.get")
    def test_interrupted_stream_keeps_old_file(self, mock_get, tmp_path):
        """Test that an interrupted transfer does not clobber an existing file."""

        def _chunks():
            yield b"partial"
            raise requests.ConnectionError("reset")

        response = _response([])
        response.iter_content.return_value = _chunks()
        mock_get.return_value = response
        target = tmp_path / "docker-machine"
        target.write_bytes(b"old")

        with pytest.raises(requests.ConnectionError):
            RequestsDownloadClient().download("https://example.com/tool", str(target))

        assert target.read_bytes() == b"old"
        assert [p.name for p in tmp_path.iterdir()] == ["docker-machine"]
