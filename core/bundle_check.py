"""Integrity checks for a built hook bundle.

verify_bundle() runs the build command, then checks the produced artifact:

    exists              the file is at the expected path
    non_empty           it has at least one byte
    no_unresolved_refs  no @shared alias survived bundling as an import/require
    parses              the content is syntactically valid

A failing build is fatal and raises BuildFailedError; the four checks are
reported individually so a broken build, a loose reference and a corrupt
output can be told apart.

The unresolved-reference check is a plain substring match. A bundler that
rewrites quoting or whitespace around the alias would slip past it.
"""

import ast
import os
import subprocess
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import tree_sitter_javascript as ts_js
from tree_sitter import Language, Parser

BUILD_COMMAND = ('bun', 'run', 'scripts/build-hooks.ts')
ARTIFACT_PATH = os.path.join('hooks', 'dist', 'subagent-start.js')
BUILD_TIMEOUT = 60

FORBIDDEN_SUBSTRINGS = (
    'from "@shared',
    "from '@shared",
    'require("@shared',
    "require('@shared",
)

CHECK_NAMES = ('exists', 'non_empty', 'no_unresolved_refs', 'parses')

JS_SUFFIXES = {'.js', '.mjs', '.cjs'}


@dataclass(frozen=True)
class BuildResult:
    returncode: Optional[int]
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self):
        return not self.timed_out and self.returncode == 0


class BuildFailedError(Exception):
    """The build command exited non-zero or did not finish in time."""

    def __init__(self, command, result):
        self.command = list(command)
        self.result = result
        if result.timed_out:
            status = 'timed out'
        elif result.returncode is None:
            status = 'could not be started'
        else:
            status = f'failed with exit code {result.returncode}'
        super().__init__(
            f"build {' '.join(self.command)} {status}\n"
            f"stdout: {result.stdout}\n"
            f"stderr: {result.stderr}"
        )


@dataclass(frozen=True)
class CheckResult:
    name: str
    passed: bool
    detail: str = ''


@dataclass
class VerificationReport:
    artifact: str
    build: BuildResult
    checks: List[CheckResult] = field(default_factory=list)

    @property
    def ok(self):
        return all(check.passed for check in self.checks)

    @property
    def failed(self):
        return [check.name for check in self.checks if not check.passed]

    def get(self, name):
        for check in self.checks:
            if check.name == name:
                return check
        raise KeyError(name)


@dataclass(frozen=True)
class BundleTarget:
    command: Sequence[str] = BUILD_COMMAND
    artifact: str = ARTIFACT_PATH
    cwd: Optional[str] = None
    timeout: float = BUILD_TIMEOUT
    forbidden: Sequence[str] = FORBIDDEN_SUBSTRINGS

    def artifact_path(self):
        if self.cwd and not os.path.isabs(self.artifact):
            return os.path.join(self.cwd, self.artifact)
        return self.artifact


def _as_text(output):
    if output is None:
        return ''
    if isinstance(output, bytes):
        return output.decode('utf-8', errors='replace')
    return output


def run_build(command, cwd=None, timeout=BUILD_TIMEOUT):
    """Run the build command and capture its exit code and output.

    Raises BuildFailedError on a non-zero exit or a timeout.
    """
    try:
        proc = subprocess.run(
            list(command),
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        result = BuildResult(None, _as_text(exc.stdout), _as_text(exc.stderr), timed_out=True)
        raise BuildFailedError(command, result) from exc
    except OSError as exc:
        result = BuildResult(None, '', str(exc))
        raise BuildFailedError(command, result) from exc

    result = BuildResult(proc.returncode, proc.stdout, proc.stderr)
    if not result.ok:
        raise BuildFailedError(command, result)
    return result


def check_exists(path):
    if os.path.isfile(path):
        return CheckResult('exists', True)
    return CheckResult('exists', False, f'{path} was not produced by the build')


def check_non_empty(data, path):
    if data is None:
        return CheckResult('non_empty', False, f'{path} could not be read')
    size = len(data)
    if size > 0:
        return CheckResult('non_empty', True, f'{size} bytes')
    return CheckResult('non_empty', False, f'{path} is empty')


def _line_col(content, offset):
    line = content.count('\n', 0, offset) + 1
    col = offset - (content.rfind('\n', 0, offset) + 1) + 1
    return line, col


def find_unresolved_refs(content, forbidden=FORBIDDEN_SUBSTRINGS):
    """Return (substring, line, column) for every forbidden substring occurrence."""
    hits = []
    for needle in forbidden:
        start = content.find(needle)
        while start != -1:
            line, col = _line_col(content, start)
            hits.append((needle, line, col))
            start = content.find(needle, start + 1)
    hits.sort(key=lambda hit: (hit[1], hit[2]))
    return hits


def check_no_unresolved_refs(content, forbidden=FORBIDDEN_SUBSTRINGS):
    if content is None:
        return CheckResult('no_unresolved_refs', False, 'artifact could not be read')
    hits = find_unresolved_refs(content, forbidden)
    if not hits:
        return CheckResult('no_unresolved_refs', True)
    detail = ', '.join(f'{needle} at {line}:{col}' for needle, line, col in hits)
    return CheckResult('no_unresolved_refs', False, f'unresolved references: {detail}')


_js_parser = None


def _javascript_parser():
    global _js_parser
    if _js_parser is None:
        parser = Parser()
        parser.language = Language(ts_js.language())
        _js_parser = parser
    return _js_parser


def _first_error_node(node):
    if node.type == 'ERROR' or node.is_missing:
        return node
    for child in node.children:
        if child.has_error:
            found = _first_error_node(child)
            if found is not None:
                return found
    return None


def parse_error(content, suffix):
    """Return a description of the first syntax error, or None if content parses."""
    if suffix in JS_SUFFIXES:
        tree = _javascript_parser().parse(content.encode('utf-8'))
        if not tree.root_node.has_error:
            return None
        node = _first_error_node(tree.root_node) or tree.root_node
        row, column = node.start_point
        return f'syntax error at {row + 1}:{column + 1}'
    if suffix == '.py':
        try:
            ast.parse(content)
        except SyntaxError as exc:
            return f'syntax error at {exc.lineno}:{exc.offset}: {exc.msg}'
        return None
    return f'no parser for {suffix or "files without a suffix"}'


def check_parses(content, path):
    if content is None:
        return CheckResult('parses', False, 'artifact could not be read')
    error = parse_error(content, os.path.splitext(path)[1].lower())
    if error is None:
        return CheckResult('parses', True)
    return CheckResult('parses', False, error)


def _read_artifact(path):
    try:
        with open(path, 'rb') as f:
            return f.read()
    except OSError:
        return None


def _decode(data):
    if data is None:
        return None
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        return None


def check_artifact(path, forbidden=FORBIDDEN_SUBSTRINGS):
    """Run the four post-build checks against one snapshot of path."""
    data = _read_artifact(path)
    content = _decode(data)
    return [
        check_exists(path),
        check_non_empty(data, path),
        check_no_unresolved_refs(content, forbidden),
        check_parses(content, path),
    ]


def verify_bundle(target=None):
    """Build target and check its artifact.

    Raises BuildFailedError when the build precondition fails; none of the
    artifact checks run in that case.
    """
    target = target or BundleTarget()
    build = run_build(target.command, cwd=target.cwd, timeout=target.timeout)
    path = target.artifact_path()
    return VerificationReport(
        artifact=path,
        build=build,
        checks=check_artifact(path, target.forbidden),
    )
