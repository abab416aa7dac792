"""Remove agent-visualizer hooks from ~/.claude/settings.json.

Only entries carrying the agent-visualizer marker are removed; all other
hooks are left untouched.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from install_hooks import SETTINGS_PATH, load_settings, remove_existing_hooks, save_settings  # noqa: E402


def uninstall(path=SETTINGS_PATH):
    """Remove agent-visualizer hooks from the settings file."""
    if not os.path.exists(path):
        print('No settings file found. Nothing to uninstall.')
        return

    settings = load_settings(path)
    removed = remove_existing_hooks(settings)
    save_settings(settings, path)

    if removed > 0:
        print(f'Removed {removed} agent-visualizer hook(s) from {path}')
        print('Restart Claude Code for changes to take effect.')
    else:
        print('No agent-visualizer hooks found. Nothing to remove.')


if __name__ == '__main__':
    uninstall()
