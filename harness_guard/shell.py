"""Subprocess and filesystem helpers shared by the gates and the audit.

Nothing in here raises into decision logic: subprocess failures come back as
a CommandResult with a non-zero exit code, best-effort calls come back as a
BestEffort carrying either a value or the reason they failed.
"""

import json
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

DEFAULT_TIMEOUT = 30  # seconds, generic shell invocations
FAST_TIMEOUT = 5  # seconds, latency-sensitive lookups (PRD resolver, command -v)

# Exit code reported when a command times out, matching coreutils `timeout`.
TIMEOUT_EXIT = 124

_SAFE_COMMAND_NAME = re.compile(r"^[a-zA-Z0-9._/-]+$")


@dataclass(frozen=True)
class CommandResult:
    exit_code: int
    stdout: str
    stderr: str


@dataclass(frozen=True)
class BestEffort:
    """Outcome of a side effect whose failure must not change a decision.

    Callers decide per call site whether ``error`` degrades output or is ignored.
    """

    value: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_command(
    cmd: str,
    *,
    cwd: str | os.PathLike | None = None,
    stdin: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> CommandResult:
    """Run *cmd* through ``sh -c`` and capture stdout/stderr. Never raises."""
    try:
        proc = subprocess.run(  # noqa: S603, S607
            ["sh", "-c", cmd],
            cwd=cwd,
            input=stdin,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        return CommandResult(
            TIMEOUT_EXIT,
            _as_text(exc.stdout),
            _as_text(exc.stderr) or f"timed out after {timeout}s",
        )
    except OSError as exc:
        return CommandResult(1, "", str(exc))
    return CommandResult(proc.returncode, proc.stdout or "", proc.stderr or "")


def _as_text(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def run_best_effort(argv: list[str], *, cwd=None, timeout: float = FAST_TIMEOUT) -> BestEffort:
    """Run *argv* without a shell; stdout on success, failure reason otherwise."""
    try:
        proc = subprocess.run(  # noqa: S603
            argv, cwd=cwd, capture_output=True, text=True, timeout=timeout
        )
    except subprocess.TimeoutExpired:
        return BestEffort(error=f"timed out after {timeout}s")
    except OSError as exc:
        return BestEffort(error=str(exc))
    if proc.returncode != 0:
        detail = (proc.stderr or "").strip()
        return BestEffort(error=f"exit {proc.returncode}" + (f": {detail}" if detail else ""))
    return BestEffort(value=(proc.stdout or "").strip())


def command_exists(name: str) -> bool:
    """Check whether *name* is on PATH. Names with shell metacharacters are rejected."""
    if not _SAFE_COMMAND_NAME.match(name):
        return False
    result = run_command(f'command -v "{name}"', timeout=FAST_TIMEOUT)
    return result.exit_code == 0


def is_executable(path: str | os.PathLike) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def read_json_file(path: str | os.PathLike):
    """Parse a JSON file. Returns None when missing, unreadable or invalid."""
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return None


def read_text(path: str | os.PathLike) -> str | None:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def list_files(directory: str | os.PathLike, pattern: re.Pattern | None = None) -> list[Path]:
    """Regular files directly under *directory*, optionally filtered by *pattern*."""
    try:
        entries = sorted(Path(directory).iterdir())
    except OSError:
        return []
    files = [p for p in entries if p.is_file()]
    if pattern is not None:
        files = [p for p in files if pattern.search(str(p))]
    return files
