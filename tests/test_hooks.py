"""
Tests for the hook scripts, run as real subprocesses.

Every hook must print {} and exit 0 whatever it is fed.
"""

import os
import subprocess
import sys

import pytest

from conftest import REPO_ROOT

HOOKS = ['subagentstart_hook.py', 'subagentstop_hook.py', 'stop_hook.py']


def run_hook(script, stdin, plugin_root, port):
    env = dict(os.environ)
    env.pop('CLAUDE_VISUALIZER_URL', None)
    env['CLAUDE_PLUGIN_ROOT'] = plugin_root
    env['VISUALIZER_PORT'] = str(port)
    env['PYTHONPATH'] = REPO_ROOT
    return subprocess.run(
        [sys.executable, os.path.join(REPO_ROOT, 'hooks', script)],
        input=stdin,
        capture_output=True,
        text=True,
        env=env,
        timeout=30,
    )


@pytest.mark.parametrize('script', HOOKS)
def test_malformed_input_is_a_silent_no_op(script, tmp_path, unused_port):
    result = run_hook(script, 'not json', str(tmp_path), unused_port)
    assert result.returncode == 0
    assert result.stdout.strip() == '{}'
    assert result.stderr == ''
    assert not (tmp_path / 'data' / 'hook_errors.log').exists()


@pytest.mark.parametrize('script', HOOKS)
def test_unreachable_server_is_logged_not_raised(script, tmp_path, unused_port):
    result = run_hook(script, '{"session_id": "s1"}', str(tmp_path), unused_port)
    assert result.returncode == 0
    assert result.stdout.strip() == '{}'
    log = (tmp_path / 'data' / 'hook_errors.log').read_text(encoding='utf-8')
    assert 'not delivered' in log
    assert f'127.0.0.1:{unused_port}' in log or f'localhost:{unused_port}' in log
