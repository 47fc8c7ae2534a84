"""Bash command safety guard -- PreToolUse hook for the Bash tool.

Reads the hook payload on stdin and inspects ``tool_input.command``:

  1. curl/wget piped into a shell or sudo is blocked outright.
  2. Package installs and downloads are noted, never blocked.
  3. Write targets (redirects, tee, cp/mv, rm, sed -i, chmod/chown, ...) are
     extracted and checked against the protected paths.

Exit 2 blocks the command and feeds stderr back to the agent. Unreadable,
malformed or oversized input also exits 2.
"""

import json
import os
import re
import sys
from pathlib import Path

from harness_guard.context import EvaluationContext, load_context
from harness_guard.errors import EXIT_BLOCK, EXIT_OK
from harness_guard.paths import compute_relative_path, is_protected_path, normalize_path

_MAX_INPUT = 10 * 1024 * 1024  # 10 MB
_CMD_PREVIEW = 120

EXTRA_RULES_ENV_VAR = "BASH_GUARD_EXTRA_RULES"

BLOCK = "block"
WARN = "warn"

# Each rule: (label, pattern, action)
NETWORK_RULES = [
    # ── Remote code execution: always blocked ──
    ("curl pipe to shell", re.compile(r"\bcurl\b.*\|\s*(?:bash|sh|zsh)\b"), BLOCK),
    ("wget pipe to shell", re.compile(r"\bwget\b.*\|\s*(?:bash|sh|zsh)\b"), BLOCK),
    ("curl pipe to sudo", re.compile(r"\bcurl\b.*\|\s*sudo\b"), BLOCK),
    ("wget pipe to sudo", re.compile(r"\bwget\b.*\|\s*sudo\b"), BLOCK),
    # ── Downloads and package installs: noted only ──
    ("curl download to file", re.compile(r"\bcurl\s+-[^\s]*[oO]\b"), WARN),
    ("wget download", re.compile(r"\bwget\s"), WARN),
    ("npm install", re.compile(r"\bnpm\s+(install|i|ci|add)\b"), WARN),
    ("yarn add/install", re.compile(r"\byarn\s+(add|install)\b"), WARN),
    ("pnpm add/install", re.compile(r"\bpnpm\s+(add|install|i)\b"), WARN),
    ("pip install", re.compile(r"\bpip3?\s+install\b"), WARN),
    ("gem install", re.compile(r"\bgem\s+install\b"), WARN),
    ("cargo install", re.compile(r"\bcargo\s+install\b"), WARN),
    ("go install", re.compile(r"\bgo\s+install\b"), WARN),
    ("apt install", re.compile(r"\bapt(?:-get)?\s+install\b"), WARN),
    ("brew install", re.compile(r"\bbrew\s+install\b"), WARN),
]

# Redirect operator: >, >> or the noclobber override >|.
_REDIRECT = r">[>|]?\s*"

# Target: double-quoted, single-quoted or bare token. First non-empty group wins.
_TARGET = r"""(?:"([^"]+)"|'([^']+)'|(\S+))"""

WRITE_PATTERNS = [
    re.compile(_REDIRECT + _TARGET),  # redirect
    re.compile(r"\btee\s+(?:-a\s+)?" + _TARGET),
    re.compile(r"\b(?:cp|mv)\s+.*?\s+" + _TARGET + r"\s*$", re.MULTILINE),  # destination
    re.compile(r"\brm\s+(?:-[rf]+\s+)*" + _TARGET),
    re.compile(r"\bsed\s+(?:-[^i]*)?-i[^-]*?\s+.*?\s+" + _TARGET),
    re.compile(r"\b(?:chmod|chown)\s+\S+\s+" + _TARGET),
    re.compile(r"\b(?:echo|printf)\s+.*?" + _REDIRECT + _TARGET),
    re.compile(r"\bcat\s+.*?" + _REDIRECT + _TARGET),  # heredoc
]

_SHELL_VARIABLE = re.compile(r"\$[{a-zA-Z_]")
# A pipe alone is not a write.
_WRITE_HINT = re.compile(r">|tee|cp\s|mv\s|rm\s|sed\s+-i|chmod|chown")


def load_extra_rules():
    """Additional rules from the JSON file named by BASH_GUARD_EXTRA_RULES.

    The file holds an array of objects with keys: name, pattern, and
    optionally action ("block" or "warn", default "block") and message.

    Example JSON:
    [
        {
            "name": "docker-privileged",
            "pattern": "\\\\bdocker\\\\s+run\\\\b.*--privileged",
            "message": "privileged containers are not allowed"
        }
    ]
    """
    rules_path = os.environ.get(EXTRA_RULES_ENV_VAR)
    if not rules_path:
        return []
    try:
        with open(rules_path) as f:
            raw = json.load(f)
        extra = []
        for entry in raw:
            action = entry.get("action", BLOCK)
            if action not in (BLOCK, WARN):
                action = BLOCK
            label = entry["name"]
            if entry.get("message"):
                label = f"{label}: {entry['message']}"
            extra.append((label, re.compile(entry["pattern"]), action))
        return extra
    except (OSError, json.JSONDecodeError, KeyError, TypeError, AttributeError, re.error):
        return []  # bad config must not disable the built-in table


def check_network_command(command, rules=None):
    """(action, label) of the first matching rule; block rules take precedence."""
    rules = NETWORK_RULES if rules is None else rules
    for wanted in (BLOCK, WARN):
        for label, pattern, action in rules:
            if action == wanted and pattern.search(command):
                return action, label
    return None


# ── Command splitting ──


def _split_respecting_quotes(text, is_delimiter):
    """Split text on unquoted delimiters while respecting single/double quotes.

    is_delimiter(text, i, current) -> int or None:
        The number of chars to skip (the delimiter width) if position i is a
        delimiter, or None if it is not. ``current`` holds the characters of
        the segment being built.
    """
    parts = []
    current = []
    in_single = False
    in_double = False
    i = 0
    while i < len(text):
        c = text[i]
        if c == "'" and not in_double:
            in_single = not in_single
            current.append(c)
        elif c == '"' and not in_single:
            in_double = not in_double
            current.append(c)
        elif not in_single and not in_double:
            skip = is_delimiter(text, i, current)
            if skip is not None:
                parts.append("".join(current).strip())
                current = []
                i += skip
                continue
            current.append(c)
        else:
            current.append(c)
        i += 1
    if current:
        parts.append("".join(current).strip())
    return [p for p in parts if p]


def _is_segment_delimiter(text, i, current):
    if text[i : i + 2] in ("&&", "||", "|&"):
        return 2
    c = text[i]
    if c in ";\n":
        return 1
    # `>|` is the noclobber redirect, not a pipe
    if c == "|" and not (current and current[-1] == ">"):
        return 1
    return None


def split_segments(command):
    """Simple commands of a chain or pipeline, split on &&, ||, ;, | and newlines.

    Each write pattern then sees one command at a time, so a trailing
    ``&& echo done`` cannot stand in for a cp/mv destination.
    """
    return _split_respecting_quotes(command, _is_segment_delimiter)


def extract_target_paths(command):
    paths = []
    for segment in split_segments(command):
        for pattern in WRITE_PATTERNS:
            for match in pattern.finditer(segment):
                target = next((g for g in match.groups() if g), None)
                if target:
                    paths.append(target)
    return paths


def _repo_relative(target, ctx):
    """Absolute targets inside the project (or repo) become root-relative."""
    normalized = normalize_path(target)
    if not normalized.startswith("/"):
        return normalized
    for root in (ctx.project_root, ctx.repo_root):
        canonical_root = normalize_path(str(Path(root).absolute()))
        if normalized.startswith(canonical_root + "/"):
            return compute_relative_path(normalized, canonical_root)
    return normalized


def evaluate(raw, ctx: EvaluationContext) -> int:
    """Decide on one hook payload. Returns 0 (allow) or 2 (block)."""
    if isinstance(raw, bytes):
        if len(raw) > _MAX_INPUT:
            print("[bash-guard] ERROR: Input exceeds 10 MB. Blocking for safety.", file=sys.stderr)
            return EXIT_BLOCK
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            print("[bash-guard] ERROR: Could not read stdin. Blocking for safety.", file=sys.stderr)
            return EXIT_BLOCK
    elif len(raw) > _MAX_INPUT:
        print("[bash-guard] ERROR: Input exceeds 10 MB. Blocking for safety.", file=sys.stderr)
        return EXIT_BLOCK

    if not raw.strip():
        return EXIT_OK
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        print("[bash-guard] ERROR: Could not parse stdin JSON. Blocking for safety.", file=sys.stderr)
        return EXIT_BLOCK

    tool_input = data.get("tool_input") if isinstance(data, dict) else None
    command = tool_input.get("command") if isinstance(tool_input, dict) else None
    if not isinstance(command, str) or not command:
        return EXIT_OK
    preview = command[:_CMD_PREVIEW]

    # ── Network and install rules ──
    verdict = check_network_command(command, NETWORK_RULES + load_extra_rules())
    if verdict and verdict[0] == BLOCK:
        label = verdict[1]
        print(
            "\n[bash-guard] BLOCKED: Dangerous network command detected.\n"
            f"  Type: {label}\n"
            f"  Command: {preview}\n\n"
            "  Downloading and executing arbitrary code is blocked by default.\n"
            "  If this command is safe, approve it via Claude Code's permission prompt.\n",
            file=sys.stderr,
        )
        return EXIT_BLOCK
    if verdict:
        print(
            f"[bash-guard] NOTE: Package install detected ({verdict[1]}).\n  Command: {preview}",
            file=sys.stderr,
        )

    # ── Write targets vs protected paths ──
    targets = extract_target_paths(command)
    if not targets and _WRITE_HINT.search(command):
        print(
            "[bash-guard] WARN: Write-like command detected but no targets extracted.\n"
            f"  Command: {preview}",
            file=sys.stderr,
        )

    for target in targets:
        if _SHELL_VARIABLE.search(target):
            print(
                "[bash-guard] WARN: Write target contains shell variable "
                "(cannot verify statically).\n"
                f"  Target: {target}\n"
                f"  Command: {preview}",
                file=sys.stderr,
            )
            continue
        decision = is_protected_path(_repo_relative(target, ctx), ctx.rules, ctx.project_root)
        if decision.blocked:
            print(
                "\n[bash-guard] BLOCKED: Command writes to protected path.\n"
                f"  Path: {target}\n"
                f"  Matched: {decision.matched_prefix}\n"
                f"  Command: {preview}\n\n"
                "  Protected paths cannot be modified by agents.\n"
                "  If this edit is needed, a human must update architecture/rules.json.\n",
                file=sys.stderr,
            )
            return EXIT_BLOCK

    return EXIT_OK


def read_stdin():
    """Raw hook payload, at most one byte over the size cap. None if unreadable."""
    try:
        return sys.stdin.buffer.read(_MAX_INPUT + 1)
    except (OSError, ValueError, AttributeError):
        return None


def run(ctx: EvaluationContext | None = None) -> int:
    raw = read_stdin()
    if raw is None:
        print("[bash-guard] ERROR: Could not read stdin. Blocking for safety.", file=sys.stderr)
        return EXIT_BLOCK
    return evaluate(raw, ctx or load_context())


def main():
    sys.exit(run())


if __name__ == "__main__":
    main()
