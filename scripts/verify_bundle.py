"""Build the hook bundle and verify the artifact is safe to ship.

Runs the build command, then reports each artifact check on its own line.
Exit codes: 0 all checks passed, 1 an artifact check failed,
2 the build itself failed.

Usage:
    python scripts/verify_bundle.py
    python scripts/verify_bundle.py --artifact dist/hook.js -- npm run build
"""

import argparse
import os
import sys

PLUGIN_ROOT = os.environ.get('CLAUDE_PLUGIN_ROOT') or os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PLUGIN_ROOT)

from core.bundle_check import (  # noqa: E402
    ARTIFACT_PATH,
    BUILD_COMMAND,
    BUILD_TIMEOUT,
    BuildFailedError,
    BundleTarget,
    verify_bundle,
)


def print_report(report):
    """Print one PASS/FAIL line per check."""
    print(f'Artifact: {report.artifact}')
    for check in report.checks:
        status = 'PASS' if check.passed else 'FAIL'
        line = f'  {status} {check.name}'
        if check.detail:
            line += f' ({check.detail})'
        print(line)


def main(argv=None):
    parser = argparse.ArgumentParser(description='Build the hook bundle and verify its integrity')
    parser.add_argument('--artifact', default=ARTIFACT_PATH, help='Path of the built artifact')
    parser.add_argument('--cwd', default=PLUGIN_ROOT, help='Directory to run the build in')
    parser.add_argument('--timeout', type=float, default=BUILD_TIMEOUT, help='Build timeout in seconds')
    parser.add_argument('command', nargs=argparse.REMAINDER, help='Build command (after --)')
    args = parser.parse_args(argv)

    command = args.command
    if command and command[0] == '--':
        command = command[1:]

    target = BundleTarget(
        command=tuple(command) or BUILD_COMMAND,
        artifact=args.artifact,
        cwd=args.cwd,
        timeout=args.timeout,
    )

    try:
        report = verify_bundle(target)
    except BuildFailedError as exc:
        print(f'FAIL build: {exc}')
        return 2

    print_report(report)
    if report.ok:
        print('All checks passed.')
        return 0
    print(f"Failed checks: {', '.join(report.failed)}")
    return 1


if __name__ == '__main__':
    sys.exit(main())
