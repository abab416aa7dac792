"""Emitter configuration for agent-visualizer hooks.

Resolved once when a hook starts and passed into the emitter.
Server URL resolution order:
1. CLAUDE_VISUALIZER_URL env var (full base URL, loopback hosts only)
2. VISUALIZER_PORT env var (port only, constructs localhost URL)
3. Default: http://localhost:3333/api/events
"""

import os
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

DEFAULT_PORT = 3333
DEFAULT_TIMEOUT = 5.0
EVENTS_PATH = '/api/events'

LOOPBACK_HOSTS = {'localhost', '127.0.0.1', '::1'}

_PORT_RE = re.compile(r'[0-9]+')


@dataclass(frozen=True)
class EmitterConfig:
    server_url: str
    timeout: float = DEFAULT_TIMEOUT
    error_log_path: Optional[str] = None


def default_plugin_root():
    """Return the plugin root: CLAUDE_PLUGIN_ROOT or the repo directory."""
    return os.environ.get('CLAUDE_PLUGIN_ROOT') or os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def default_server_url():
    return f'http://localhost:{DEFAULT_PORT}{EVENTS_PATH}'


def parse_port(value):
    """Return value as a port number, or None if it is not a plain 1-65535 integer."""
    if not value or not _PORT_RE.fullmatch(value):
        return None
    port = int(value)
    if 1 <= port <= 65535:
        return port
    return None


def _is_loopback_url(url):
    # Control characters and whitespace are never valid in a URL
    if not url.isprintable() or any(ch.isspace() for ch in url):
        return False
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        return False
    return parts.scheme in ('http', 'https') and hostname in LOOPBACK_HOSTS


def resolve_server_url(environ=None):
    """Build the ingestion endpoint URL from the environment."""
    env = os.environ if environ is None else environ

    base = env.get('CLAUDE_VISUALIZER_URL')
    if base:
        base = base.rstrip('/')
        # A rejected URL does not fall through to VISUALIZER_PORT
        if not _is_loopback_url(base):
            return default_server_url()
        return base + EVENTS_PATH

    port = parse_port(env.get('VISUALIZER_PORT'))
    if port is None:
        return default_server_url()
    return f'http://localhost:{port}{EVENTS_PATH}'


def load_config(environ=None, plugin_root=None):
    """Resolve the emitter configuration once, at hook startup."""
    env = os.environ if environ is None else environ
    root = plugin_root or env.get('CLAUDE_PLUGIN_ROOT') or default_plugin_root()
    return EmitterConfig(
        server_url=resolve_server_url(env),
        timeout=DEFAULT_TIMEOUT,
        error_log_path=os.path.join(root, 'data', 'hook_errors.log'),
    )
