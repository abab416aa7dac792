"""Stop the agent-visualizer ingestion server started by start_server.py."""

import argparse
import os
import signal
import subprocess
import sys
import time

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from start_server import (  # noqa: E402
    PID_FILE,
    POLL_INTERVAL,
    check_health,
    is_process_alive,
    read_server_state,
    remove_server_state,
)

STOP_TIMEOUT = 5.0


def wait_until_stopped(pid, port, timeout=STOP_TIMEOUT, transport=None):
    """Return True once the process has exited and the port no longer answers."""
    deadline = time.monotonic() + timeout
    while True:
        if not is_process_alive(pid) and check_health(port, transport=transport) is None:
            return True
        if time.monotonic() >= deadline:
            return False
        time.sleep(POLL_INTERVAL)


def stop_server(pid_file=PID_FILE, timeout=STOP_TIMEOUT, transport=None):
    """Stop the running server by PID. Returns an exit code."""
    state = read_server_state(pid_file)
    if state is None:
        print('Agent visualizer server is not running.')
        remove_server_state(pid_file)
        return 0

    pid, port = state
    try:
        if sys.platform == 'win32':
            subprocess.run(['taskkill', '/F', '/PID', str(pid)], capture_output=True)
        else:
            os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        print('Agent visualizer server was not running (process already exited).')
        remove_server_state(pid_file)
        return 0

    if not wait_until_stopped(pid, port, timeout=timeout, transport=transport):
        print(f'Error: server (PID {pid}) is still running after {timeout:.0f}s.')
        return 1

    remove_server_state(pid_file)
    print('Agent visualizer server stopped.')
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description='Stop the agent-visualizer ingestion server')
    parser.add_argument('--timeout', type=float, default=STOP_TIMEOUT,
                        help='Seconds to wait for the server to exit')
    args = parser.parse_args(argv)
    return stop_server(timeout=args.timeout)


if __name__ == '__main__':
    sys.exit(main())
