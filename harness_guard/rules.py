"""Architecture rules loader (architecture/rules.json).

Missing or malformed rules never fail an evaluation: the loader returns None
and the resolver falls back to the built-in protected zones.
"""

import json
import sys
from dataclasses import dataclass, field
from pathlib import Path

RULES_REL_PATH = "architecture/rules.json"
PROTECTED_TXT_REL_PATH = "architecture/protected-paths.txt"

# Always protected when no configuration says otherwise.
INLINE_PROTECTED = ("harness/", "hooks/", "architecture/", ".claude/", "CLAUDE.md")


@dataclass(frozen=True)
class Layers:
    order: tuple[str, ...] = ()
    direction: str = ""


@dataclass(frozen=True)
class ProtectedPaths:
    paths: tuple[str, ...] = ()
    enforcement: str = ""
    message: str = ""


@dataclass(frozen=True)
class Exceptions:
    allowed_core_edits: tuple[str, ...] = ()
    allowed_cross_layer: tuple[str, ...] = ()
    # Unrecognized exception keys are carried through untouched.
    extra: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ArchRules:
    layers: Layers = field(default_factory=Layers)
    protected_paths: ProtectedPaths = field(default_factory=ProtectedPaths)
    exceptions: Exceptions = field(default_factory=Exceptions)

    @classmethod
    def from_dict(cls, data: dict) -> "ArchRules":
        layers = _section(data, "layers")
        protected = _section(data, "protected_paths")
        exceptions = _section(data, "exceptions")
        return cls(
            layers=Layers(
                order=_str_tuple(layers.get("order")),
                direction=_str(layers.get("direction")),
            ),
            protected_paths=ProtectedPaths(
                paths=_str_tuple(protected.get("paths")),
                enforcement=_str(protected.get("enforcement")),
                message=_str(protected.get("message")),
            ),
            exceptions=Exceptions(
                allowed_core_edits=_str_tuple(exceptions.get("allowed_core_edits")),
                allowed_cross_layer=_str_tuple(exceptions.get("allowed_cross_layer")),
                extra={
                    k: v
                    for k, v in exceptions.items()
                    if k not in ("allowed_core_edits", "allowed_cross_layer")
                },
            ),
        )


def _section(data: dict, key: str) -> dict:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _str(value) -> str:
    return value if isinstance(value, str) else ""


def _str_tuple(value) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(v for v in value if isinstance(v, str) and v)


def load_rules(project_root: str | Path) -> ArchRules | None:
    """Load architecture/rules.json. None when absent or not valid JSON."""
    rules_path = Path(project_root) / RULES_REL_PATH
    try:
        raw = rules_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        print(f"[rules] Warning: cannot read {rules_path} ({exc}); using defaults.", file=sys.stderr)
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        print(f"[rules] Warning: {rules_path} is not valid JSON; using defaults.", file=sys.stderr)
        return None
    if not isinstance(data, dict):
        print(f"[rules] Warning: {rules_path} is not a JSON object; using defaults.", file=sys.stderr)
        return None
    return ArchRules.from_dict(data)


def _load_protected_txt(project_root: str | Path) -> tuple[str, ...]:
    txt_path = Path(project_root) / PROTECTED_TXT_REL_PATH
    try:
        lines = txt_path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError):
        return INLINE_PROTECTED
    paths = tuple(
        line.strip() for line in lines if line.strip() and not line.strip().startswith("#")
    )
    return paths or INLINE_PROTECTED


def get_protected_paths(rules: ArchRules | None, project_root: str | Path | None = None):
    """Ordered protected prefixes. Order is precedence (first match wins)."""
    if rules is not None and rules.protected_paths.paths:
        return rules.protected_paths.paths
    if project_root is not None:
        return _load_protected_txt(project_root)
    return INLINE_PROTECTED


def get_allowed_edits(rules: ArchRules | None) -> tuple[str, ...]:
    if rules is None:
        return ()
    return rules.exceptions.allowed_core_edits
