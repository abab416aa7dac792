import os
import socket

import httpx
import pytest

from core.config import EmitterConfig

REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


@pytest.fixture
def error_log(tmp_path):
    return str(tmp_path / 'data' / 'hook_errors.log')


@pytest.fixture
def config(error_log):
    return EmitterConfig(
        server_url='http://localhost:3333/api/events',
        timeout=5.0,
        error_log_path=error_log,
    )


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it receives."""

    def __init__(self, status_code=201, exc=None):
        self.requests = []

        def handler(request):
            self.requests.append(request)
            if exc is not None:
                raise exc
            return httpx.Response(status_code, json={'ok': status_code < 400})

        super().__init__(handler)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def unused_port():
    """A localhost port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]
