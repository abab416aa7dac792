"""SubagentStart hook for agent-visualizer.

Reports an AgentSpawned event to the visualizer server when a subagent
is spawned, so the dashboard shows agents appearing in real time.

Always prints {} to stdout and exits 0.
"""

import sys
import os

HOOK_NAME = 'subagentstart_hook'

try:
    PLUGIN_ROOT = os.environ.get('CLAUDE_PLUGIN_ROOT') or os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    os.environ['CLAUDE_PLUGIN_ROOT'] = PLUGIN_ROOT
    sys.path.insert(0, PLUGIN_ROOT)

    from core.config import load_config
    from core.emitter import emit
    from core.events import build_agent_spawned

    emit(sys.stdin, load_config(plugin_root=PLUGIN_ROOT), build_agent_spawned)

except Exception:
    try:
        from core.hook_log import append_error
        append_error(os.path.join(PLUGIN_ROOT, 'data', 'hook_errors.log'), HOOK_NAME)
    except Exception:
        pass

print("{}")
sys.exit(0)
