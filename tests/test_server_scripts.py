"""Tests for the background server start/stop scripts."""

import subprocess
import sys
import threading

import httpx
import pytest
from werkzeug.serving import make_server

from scripts import start_server as start_script
from scripts import stop_server as stop_script
from server.app import create_app


class FakeProcess:
    def __init__(self, pid=4242, returncode=None):
        self.pid = pid
        self.returncode = returncode

    def poll(self):
        return self.returncode


def health_transport(status_code=200, body=None, failures=0):
    """MockTransport answering /api/health after the given number of refused connections."""
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) <= failures:
            raise httpx.ConnectError('connection refused')
        return httpx.Response(status_code, json=body if body is not None else {'status': 'ok', 'uptime': 3, 'eventCount': 7})

    transport = httpx.MockTransport(handler)
    transport.calls = calls
    return transport


@pytest.fixture
def pid_file(tmp_path):
    return str(tmp_path / 'data' / 'server.pid')


@pytest.fixture(autouse=True)
def fast_polling(monkeypatch):
    monkeypatch.setattr(start_script, 'POLL_INTERVAL', 0.01)


class TestDefaultPort:

    @pytest.mark.parametrize('environ, expected', [
        ({}, 3333),
        ({'VISUALIZER_PORT': '4000'}, 4000),
        ({'VISUALIZER_PORT': 'abc'}, 3333),
        ({'VISUALIZER_PORT': '70000'}, 3333),
        ({'VISUALIZER_PORT': ''}, 3333),
    ])
    def test_resolution(self, environ, expected):
        assert start_script.default_port(environ) == expected


class TestServerState:

    def test_missing_file(self, pid_file):
        assert start_script.read_server_state(pid_file) is None

    def test_round_trip(self, pid_file):
        start_script.write_server_state(123, 4000, pid_file)
        assert start_script.read_server_state(pid_file) == (123, 4000)

    @pytest.mark.parametrize('content', ['', 'garbage', '123', '123 abc', '-5 3333', '123 0', '1 2 3'])
    def test_unreadable_content(self, pid_file, content):
        start_script.write_server_state(1, 1, pid_file)
        with open(pid_file, 'w') as f:
            f.write(content)
        assert start_script.read_server_state(pid_file) is None


class TestHealth:

    def test_healthy(self):
        assert start_script.check_health(3333, transport=health_transport())['eventCount'] == 7

    @pytest.mark.parametrize('transport', [
        health_transport(status_code=500),
        health_transport(body={'status': 'starting'}),
        health_transport(body=['ok']),
        health_transport(failures=1),
        httpx.MockTransport(lambda request: httpx.Response(200, text='not json')),
    ])
    def test_not_healthy(self, transport):
        assert start_script.check_health(3333, transport=transport) is None

    def test_real_server(self, tmp_path):
        server = make_server('127.0.0.1', 0, create_app(str(tmp_path / 'visualizer.db')), threaded=True)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        try:
            health = start_script.check_health(server.server_port)
        finally:
            server.shutdown()
            thread.join(timeout=5)
        assert health['status'] == 'ok'
        assert health['eventCount'] == 0

    def test_wait_retries_until_healthy(self):
        transport = health_transport(failures=3)
        assert start_script.wait_for_health(3333, timeout=5, transport=transport) is not None
        assert len(transport.calls) == 4

    def test_wait_gives_up_after_timeout(self):
        transport = health_transport(failures=10 ** 6)
        assert start_script.wait_for_health(3333, timeout=0.1, transport=transport) is None

    def test_wait_stops_when_process_exits(self):
        transport = health_transport(failures=10 ** 6)
        proc = FakeProcess(returncode=1)
        assert start_script.wait_for_health(3333, timeout=60, transport=transport, proc=proc) is None
        assert len(transport.calls) == 1


class TestStatus:

    def test_not_running(self, pid_file, capsys):
        assert start_script.show_status(pid_file) == 1
        assert 'not running' in capsys.readouterr().out

    def test_unreadable_pid_file_is_removed(self, pid_file):
        start_script.write_server_state(1, 1, pid_file)
        with open(pid_file, 'w') as f:
            f.write('garbage')
        assert start_script.show_status(pid_file) == 1
        assert start_script.read_server_state(pid_file) is None

    def test_stale_pid_file_is_removed(self, pid_file, monkeypatch):
        monkeypatch.setattr(start_script, 'is_process_alive', lambda pid: False)
        start_script.write_server_state(123, 4000, pid_file)
        assert start_script.show_status(pid_file) == 1
        assert start_script.read_server_state(pid_file) is None

    def test_running_and_healthy(self, pid_file, monkeypatch, capsys):
        monkeypatch.setattr(start_script, 'is_process_alive', lambda pid: True)
        start_script.write_server_state(123, 4000, pid_file)
        assert start_script.show_status(pid_file, transport=health_transport()) == 0
        out = capsys.readouterr().out
        assert 'port 4000' in out
        assert '7 events' in out

    def test_running_but_not_answering(self, pid_file, monkeypatch, capsys):
        monkeypatch.setattr(start_script, 'is_process_alive', lambda pid: True)
        start_script.write_server_state(123, 4000, pid_file)
        assert start_script.show_status(pid_file, transport=health_transport(failures=1)) == 1
        assert 'not answering' in capsys.readouterr().out
        assert start_script.read_server_state(pid_file) == (123, 4000)


class TestStart:

    def test_started_once_healthy(self, pid_file, monkeypatch):
        monkeypatch.setattr(start_script, 'launch', lambda port, db_path=None: FakeProcess(pid=4242))
        transport = health_transport(failures=2)
        assert start_script.start_server(4000, pid_file=pid_file, timeout=5, transport=transport) == 0
        assert start_script.read_server_state(pid_file) == (4242, 4000)
        assert str(transport.calls[-1].url) == 'http://127.0.0.1:4000/api/health'

    def test_server_that_exits_is_reported(self, pid_file, monkeypatch, capsys):
        monkeypatch.setattr(start_script, 'launch', lambda port, db_path=None: FakeProcess(returncode=2))
        transport = health_transport(failures=10 ** 6)
        assert start_script.start_server(4000, pid_file=pid_file, timeout=5, transport=transport) == 1
        assert 'exited with code 2' in capsys.readouterr().out
        assert start_script.read_server_state(pid_file) is None

    def test_server_that_never_answers_is_reported(self, pid_file, monkeypatch, capsys):
        monkeypatch.setattr(start_script, 'launch', lambda port, db_path=None: FakeProcess(pid=4242))
        transport = health_transport(failures=10 ** 6)
        assert start_script.start_server(4000, pid_file=pid_file, timeout=0.1, transport=transport) == 1
        assert 'did not answer' in capsys.readouterr().out

    def test_already_running(self, pid_file, monkeypatch):
        def no_launch(port, db_path=None):
            raise AssertionError('server should not be launched twice')
        monkeypatch.setattr(start_script, 'launch', no_launch)
        monkeypatch.setattr(start_script, 'is_process_alive', lambda pid: True)
        start_script.write_server_state(123, 4000, pid_file)
        assert start_script.start_server(5000, pid_file=pid_file) == 0
        assert start_script.read_server_state(pid_file) == (123, 4000)


class TestStop:

    def test_nothing_to_stop(self, pid_file):
        assert stop_script.stop_server(pid_file) == 0

    @pytest.mark.skipif(sys.platform == 'win32', reason='uses SIGTERM')
    def test_stops_running_process(self, pid_file, unused_port):
        proc = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(60)'])
        # Reap the child so it does not linger as a zombie after SIGTERM
        reaper = threading.Thread(target=proc.wait, daemon=True)
        reaper.start()
        start_script.write_server_state(proc.pid, unused_port, pid_file)

        try:
            assert stop_script.stop_server(pid_file, timeout=10) == 0
        finally:
            if proc.poll() is None:
                proc.kill()
        reaper.join(timeout=5)
        assert proc.returncode is not None
        assert start_script.read_server_state(pid_file) is None
