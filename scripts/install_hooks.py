"""Register agent-visualizer hooks in ~/.claude/settings.json.

Resolves the plugin path and writes one command hook per lifecycle event
into the user's Claude Code settings. Run this once after installing.
"""

import json
import os
import sys

PLUGIN_ROOT = os.environ.get('CLAUDE_PLUGIN_ROOT') or os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
SETTINGS_PATH = os.path.join(os.path.expanduser('~'), '.claude', 'settings.json')

# Marker so uninstall can find our hooks
MARKER = 'agent-visualizer-plugin'

# Claude Code hook event -> script under hooks/
HOOK_SCRIPTS = {
    'SubagentStart': 'subagentstart_hook.py',
    'SubagentStop': 'subagentstop_hook.py',
    'Stop': 'stop_hook.py',
}


def get_python_cmd():
    """Return the platform-appropriate python command."""
    if sys.platform == 'win32':
        return 'python'
    return 'python3'


def build_hook_command(script_name):
    """Build a hook command string with the resolved plugin path."""
    script_path = os.path.join(PLUGIN_ROOT, 'hooks', script_name)
    script_path = script_path.replace('\\', '/')
    return f'{get_python_cmd()} "{script_path}"'


def build_hooks_config():
    """Build the hooks dict for every agent-visualizer event."""
    return {
        event_name: [
            {
                '_plugin': MARKER,
                'hooks': [{'type': 'command', 'command': build_hook_command(script)}],
            }
        ]
        for event_name, script in HOOK_SCRIPTS.items()
    }


def load_settings(path=SETTINGS_PATH):
    """Load existing settings or return empty dict."""
    if os.path.exists(path):
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    return {}


def save_settings(settings, path=SETTINGS_PATH):
    """Write settings back to disk."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(settings, f, indent=2)
        f.write('\n')


def remove_existing_hooks(settings):
    """Drop agent-visualizer hook entries from settings. Returns how many were removed."""
    hooks = settings.get('hooks', {})
    removed = 0
    for event_name in list(hooks.keys()):
        entries = hooks[event_name]
        if isinstance(entries, list):
            kept = [
                e for e in entries
                if not (isinstance(e, dict) and e.get('_plugin') == MARKER)
            ]
            removed += len(entries) - len(kept)
            hooks[event_name] = kept
            if not kept:
                del hooks[event_name]
    if not hooks:
        settings.pop('hooks', None)
    return removed


def merge_hooks(settings):
    """Replace any previous agent-visualizer hooks in settings with the current set."""
    remove_existing_hooks(settings)
    hooks = settings.setdefault('hooks', {})
    for event_name, entries in build_hooks_config().items():
        hooks.setdefault(event_name, []).extend(entries)
    return settings


def install(path=SETTINGS_PATH):
    """Install agent-visualizer hooks into the settings file."""
    settings = merge_hooks(load_settings(path))
    save_settings(settings, path)

    print('Agent visualizer hooks installed successfully.')
    print(f'Plugin path: {PLUGIN_ROOT}')
    print(f'Python command: {get_python_cmd()}')
    print(f'Settings file: {path}')
    print('')
    print('Restart Claude Code for hooks to take effect.')


if __name__ == '__main__':
    install()
