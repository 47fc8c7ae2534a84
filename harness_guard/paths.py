"""Path canonicalization and protected-path resolution.

normalize_path is pure string manipulation so it works for files that do not
exist yet (an edit that creates a file must be judged before it happens).
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path

from harness_guard.rules import ArchRules, get_allowed_edits, get_protected_paths

# Layer order, lowest first. A layer may import only from layers before it.
LAYERS = ("types", "config", "repo", "service", "runtime", "ui")

_SRC_LAYER = re.compile(r"^(?:.*/)?src/([^/]+)/")


@dataclass(frozen=True)
class PathDecision:
    blocked: bool
    matched_prefix: str | None
    is_allowed: bool


def normalize_path(path: str) -> str:
    """Collapse ``.``, ``..`` and repeated slashes. Keeps a leading ``/``.

    ``..`` past the root is absorbed rather than rejected:
      '/a/../..' -> '/'
      '../x'     -> 'x'
    """
    is_absolute = path.startswith("/")
    stack: list[str] = []
    for part in path.split("/"):
        if not part or part == ".":
            continue
        if part == "..":
            if stack:
                stack.pop()
        else:
            stack.append(part)
    result = "/".join(stack)
    return f"/{result}" if is_absolute else result


def resolve_symlinks(file_path: str) -> str:
    """Real path when *file_path* is a symlink; otherwise unchanged.

    Missing files (pre-edit check for a new file) are not an error.
    """
    try:
        if os.path.islink(file_path):
            return os.path.realpath(file_path)
    except OSError:
        pass
    return file_path


def compute_relative_path(file_path: str, root: str | Path) -> str:
    canonical_file = normalize_path(resolve_symlinks(str(file_path)))
    canonical_root = normalize_path(str(root))
    if canonical_file.startswith(canonical_root + "/"):
        return canonical_file[len(canonical_root) + 1 :]
    try:
        return os.path.relpath(canonical_file, canonical_root)
    except ValueError:
        return canonical_file


def is_protected_path(
    rel_path: str,
    rules: ArchRules | None,
    project_root: str | Path | None = None,
) -> PathDecision:
    """First matching protected prefix wins; allowed exceptions can open it up."""
    allowed_edits = get_allowed_edits(rules)
    for prefix in get_protected_paths(rules, project_root):
        if rel_path.startswith(prefix) or rel_path == prefix.removesuffix("/"):
            for allowed in allowed_edits:
                if rel_path.startswith(allowed) or rel_path == allowed:
                    return PathDecision(blocked=False, matched_prefix=prefix, is_allowed=True)
            return PathDecision(blocked=True, matched_prefix=prefix, is_allowed=False)
    return PathDecision(blocked=False, matched_prefix=None, is_allowed=False)


def layer_guidance(rel_path: str) -> list[str]:
    """Informational import-direction hints for files under src/<layer>/."""
    m = _SRC_LAYER.match(rel_path)
    if not m or m.group(1) not in LAYERS:
        return []
    layer = m.group(1)
    index = LAYERS.index(layer)
    can_import = ", ".join(LAYERS[:index]) or "(none)"
    forbidden = ", ".join(LAYERS[index + 1 :]) or "(none)"
    return [
        f"Editing file in layer '{layer}' (level {index}).",
        f"This layer can only import from: {can_import}",
        f"Forbidden imports from: {forbidden}",
    ]
