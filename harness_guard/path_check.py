"""``path check``: protected-path decision for a single file, plus layer hints.

Usable directly (``harness-cli path check src/service/x.ts``) or as an
Edit/Write PreToolUse hook, in which case the path comes from the payload.
"""

import json
import os
import sys

from harness_guard.context import EvaluationContext, load_context
from harness_guard.errors import EXIT_BLOCK, EXIT_OK, PathBlockedError
from harness_guard.paths import compute_relative_path, is_protected_path, layer_guidance

_MAX_INPUT = 10 * 1024 * 1024  # 10 MB
_PREFIX = "[arch-check]"


class PayloadError(Exception):
    """Hook payload on stdin could not be read or parsed."""


def path_from_payload(raw):
    """``tool_input.file_path`` (or ``tool_input.path``) from an edit-hook payload.

    None means there is nothing to check. Raises PayloadError on bad input.
    """
    if isinstance(raw, bytes):
        if len(raw) > _MAX_INPUT:
            raise PayloadError("input exceeds 10 MB")
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PayloadError("input is not UTF-8") from exc
    if not raw.strip():
        return None
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, ValueError) as exc:
        raise PayloadError("input is not valid JSON") from exc
    tool_input = data.get("tool_input") if isinstance(data, dict) else None
    if not isinstance(tool_input, dict):
        return None
    path = tool_input.get("file_path") or tool_input.get("path")
    return path if isinstance(path, str) and path else None


def check(file_path, ctx: EvaluationContext) -> int:
    repo_root = str(ctx.repo_root.absolute())
    absolute = file_path if file_path.startswith("/") else os.path.join(repo_root, file_path)
    rel_path = compute_relative_path(absolute, repo_root)

    decision = is_protected_path(rel_path, ctx.rules, ctx.project_root)
    if decision.blocked:
        err = PathBlockedError(rel_path, decision.matched_prefix)
        print(f"{_PREFIX} {err.message}", file=sys.stderr)
        if decision.matched_prefix:
            print(f"{_PREFIX} Matched: {decision.matched_prefix}", file=sys.stderr)
        print(
            f"{_PREFIX} To allow edits, a human must add this path to "
            "'exceptions.allowed_core_edits' in architecture/rules.json",
            file=sys.stderr,
        )
        return EXIT_BLOCK

    for line in layer_guidance(rel_path):
        print(f"{_PREFIX} {line}")
    return EXIT_OK


def run(file_path=None, ctx: EvaluationContext | None = None) -> int:
    if not file_path:
        try:
            file_path = path_from_payload(sys.stdin.buffer.read(_MAX_INPUT + 1))
        except (OSError, ValueError, AttributeError, PayloadError) as exc:
            print(f"{_PREFIX} ERROR: Could not read hook input ({exc}). Blocking for safety.", file=sys.stderr)
            return EXIT_BLOCK
        if file_path is None:
            return EXIT_OK
    return check(file_path, ctx or load_context())
