"""Error log for hook scripts.

Hooks must never write to stdout/stderr beyond their JSON reply, so problems
are appended to data/hook_errors.log under the plugin root instead.
"""

import os
import traceback


def append_error(log_path, hook_name, message=None):
    """Append a section for hook_name to the error log.

    Writes message if given, otherwise the traceback of the exception being
    handled. Never raises.
    """
    if not log_path:
        return
    try:
        os.makedirs(os.path.dirname(log_path), exist_ok=True)
        with open(log_path, 'a', encoding='utf-8') as f:
            f.write(f"=== {hook_name} ===\n")
            f.write(f"PLUGIN_ROOT={os.environ.get('CLAUDE_PLUGIN_ROOT', 'NOT SET')}\n")
            if message is not None:
                f.write(f"{message}\n")
            else:
                traceback.print_exc(file=f)
            f.write("\n")
    except OSError:
        pass
