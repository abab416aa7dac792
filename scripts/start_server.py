"""Start the agent-visualizer ingestion server in the background.

The server is launched detached, its PID and port are recorded in
data/server.pid, and the script only reports success once /api/health
answers on that port.
"""

import argparse
import os
import subprocess
import sys
import time

import httpx

PLUGIN_ROOT = os.environ.get('CLAUDE_PLUGIN_ROOT') or os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PLUGIN_ROOT)

from core.config import DEFAULT_PORT, parse_port  # noqa: E402

PID_FILE = os.path.join(PLUGIN_ROOT, 'data', 'server.pid')
STARTUP_TIMEOUT = 10.0
POLL_INTERVAL = 0.2


def default_port(environ=None):
    """VISUALIZER_PORT when it is a valid port, else DEFAULT_PORT."""
    env = os.environ if environ is None else environ
    return parse_port(env.get('VISUALIZER_PORT')) or DEFAULT_PORT


def health_url(port):
    return f'http://127.0.0.1:{port}/api/health'


def check_health(port, timeout=1.0, transport=None):
    """Return the /api/health body, or None if the server is not answering."""
    try:
        with httpx.Client(transport=transport, timeout=timeout) as client:
            response = client.get(health_url(port))
            response.raise_for_status()
            body = response.json()
    except (httpx.HTTPError, ValueError):
        return None
    if not isinstance(body, dict) or body.get('status') != 'ok':
        return None
    return body


def wait_for_health(port, timeout=STARTUP_TIMEOUT, transport=None, proc=None):
    """Poll /api/health until it answers or timeout passes.

    Stops early if proc has already exited.
    """
    deadline = time.monotonic() + timeout
    while True:
        health = check_health(port, transport=transport)
        if health is not None:
            return health
        if proc is not None and proc.poll() is not None:
            return None
        if time.monotonic() >= deadline:
            return None
        time.sleep(POLL_INTERVAL)


def is_process_alive(pid):
    """Check if a process with the given PID is still running."""
    if sys.platform == 'win32':
        result = subprocess.run(['tasklist', '/FI', f'PID eq {pid}', '/NH'], capture_output=True, text=True)
        return str(pid) in result.stdout
    try:
        os.kill(pid, 0)
    except OSError:
        return False
    return True


def read_server_state(pid_file=PID_FILE):
    """Return (pid, port) from the PID file, or None if it is missing or unreadable."""
    try:
        with open(pid_file, 'r') as f:
            fields = f.read().split()
    except OSError:
        return None
    if len(fields) != 2 or not fields[0].isdigit():
        return None
    port = parse_port(fields[1])
    if port is None:
        return None
    return int(fields[0]), port


def write_server_state(pid, port, pid_file=PID_FILE):
    os.makedirs(os.path.dirname(pid_file), exist_ok=True)
    with open(pid_file, 'w') as f:
        f.write(f'{pid} {port}\n')


def remove_server_state(pid_file=PID_FILE):
    try:
        os.remove(pid_file)
    except FileNotFoundError:
        pass


def show_status(pid_file=PID_FILE, transport=None):
    """Print whether the server is running and healthy. Returns an exit code."""
    state = read_server_state(pid_file)
    if state is None:
        if os.path.exists(pid_file):
            print('Agent visualizer server is not running (unreadable PID file removed).')
            remove_server_state(pid_file)
        else:
            print('Agent visualizer server is not running.')
        return 1

    pid, port = state
    if not is_process_alive(pid):
        print('Agent visualizer server is not running (stale PID file removed).')
        remove_server_state(pid_file)
        return 1

    health = check_health(port, transport=transport)
    if health is None:
        print(f'Agent visualizer server process {pid} is running but {health_url(port)} is not answering.')
        return 1
    print(f'Agent visualizer server is running on port {port} (PID {pid}, '
          f'{health.get("eventCount", 0)} events, up {health.get("uptime", 0):.0f}s).')
    return 0


def launch(port, db_path=None):
    """Launch server/app.py as a detached background process."""
    cmd = [sys.executable, os.path.join(PLUGIN_ROOT, 'server', 'app.py'), '--port', str(port)]
    if db_path:
        cmd += ['--db', db_path]

    kwargs = {
        'stdout': subprocess.DEVNULL,
        'stderr': subprocess.DEVNULL,
        'stdin': subprocess.DEVNULL,
    }
    if sys.platform == 'win32':
        kwargs['creationflags'] = subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.DETACHED_PROCESS
    else:
        kwargs['start_new_session'] = True
    return subprocess.Popen(cmd, **kwargs)


def start_server(port, db_path=None, pid_file=PID_FILE, timeout=STARTUP_TIMEOUT, transport=None):
    """Start the server unless one is already running. Returns an exit code."""
    state = read_server_state(pid_file)
    if state is not None and is_process_alive(state[0]):
        print(f'Agent visualizer server is already running on port {state[1]} (PID {state[0]}).')
        return 0

    proc = launch(port, db_path)
    write_server_state(proc.pid, port, pid_file)

    if wait_for_health(port, timeout=timeout, transport=transport, proc=proc) is not None:
        print(f'Agent visualizer server started on http://localhost:{port}')
        return 0

    returncode = proc.poll()
    if returncode is not None:
        print(f'Error: server exited with code {returncode} before answering {health_url(port)}')
        remove_server_state(pid_file)
    else:
        print(f'Error: server (PID {proc.pid}) did not answer {health_url(port)} within {timeout:.0f}s')
    return 1


def main(argv=None):
    parser = argparse.ArgumentParser(description='Start the agent-visualizer ingestion server')
    parser.add_argument('--port', type=int, default=default_port(), help='Port to run the server on')
    parser.add_argument('--db', default=None, help='SQLite database path')
    parser.add_argument('--timeout', type=float, default=STARTUP_TIMEOUT,
                        help='Seconds to wait for /api/health after starting')
    parser.add_argument('--status', action='store_true', help='Show server status instead of starting')
    args = parser.parse_args(argv)

    if args.status:
        return show_status()
    return start_server(args.port, args.db, timeout=args.timeout)


if __name__ == '__main__':
    sys.exit(main())
