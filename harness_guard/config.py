"""harness.config.json: loading, validation and the typed view used by the gates.

Validation separates hard errors (missing or mistyped required keys) from
warnings (unknown keys and values). Unknown input never crashes the loader.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path

from harness_guard.errors import ConfigError

CONFIG_FILENAME = "harness.config.json"

REQUIRED_TOP_KEYS = ("version", "safeMode", "restrictions")
REQUIRED_RESTRICTION_KEYS = ("maxParallelAgents", "autoFixRetries", "requireConfirmation")
KNOWN_TOP_KEYS = ("version", "safeMode", "restrictions", "_protectedPathsSource")
KNOWN_RESTRICTION_KEYS = REQUIRED_RESTRICTION_KEYS
KNOWN_RC_VALUES = (
    "deploy",
    "deploy:preview",
    "deploy:promote",
    "db",
    "db:migrate",
    "db:seed",
    "db:reset",
    "secure",
)

# (key, lowest, highest) -- inclusive integer bounds
_RESTRICTION_BOUNDS = (
    ("maxParallelAgents", 1, 100),
    ("autoFixRetries", 0, 20),
)


@dataclass(frozen=True)
class Restrictions:
    max_parallel_agents: int = 1
    auto_fix_retries: int = 0
    require_confirmation: tuple[str, ...] = ()


@dataclass(frozen=True)
class HarnessConfig:
    version: str = ""
    safe_mode: bool = True
    restrictions: Restrictions = field(default_factory=Restrictions)

    @classmethod
    def from_dict(cls, data) -> "HarnessConfig":
        """Typed view of a parsed config. Mistyped fields fall back to defaults."""
        if not isinstance(data, dict):
            return cls()
        raw = data.get("restrictions")
        raw = raw if isinstance(raw, dict) else {}
        rc = raw.get("requireConfirmation")
        defaults = Restrictions()
        return cls(
            version=data["version"] if isinstance(data.get("version"), str) else "",
            safe_mode=data["safeMode"] if isinstance(data.get("safeMode"), bool) else True,
            restrictions=Restrictions(
                max_parallel_agents=_int_or(raw.get("maxParallelAgents"), defaults.max_parallel_agents),
                auto_fix_retries=_int_or(raw.get("autoFixRetries"), defaults.auto_fix_retries),
                require_confirmation=tuple(v for v in rc if isinstance(v, str))
                if isinstance(rc, list)
                else (),
            ),
        )


@dataclass
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _is_int(value) -> bool:
    # bool is an int subclass; true/false are not counts
    return isinstance(value, int) and not isinstance(value, bool)


def _int_or(value, default: int) -> int:
    return value if _is_int(value) else default


def _type_name(value) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def load_config(project_root: str | Path, custom_path: str | Path | None = None):
    """Parse the config file. None when missing; ConfigError when not valid JSON."""
    config_path = Path(custom_path) if custom_path else Path(project_root) / CONFIG_FILENAME
    try:
        raw = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(
            f"{config_path} could not be read: {exc}",
            "Check the file permissions and encoding (UTF-8).",
        ) from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(
            f"{config_path} is not valid JSON.",
            "Check for trailing commas, missing quotes, or unmatched braces.",
        ) from exc


def validate_config(config) -> ValidationReport:
    report = ValidationReport()
    errors, warnings = report.errors, report.warnings
    if not isinstance(config, dict):
        errors.append("Config must be a JSON object")
        return report

    for key in REQUIRED_TOP_KEYS:
        if config.get(key) is None:
            errors.append(f"Missing required key: '{key}'")

    if "version" in config and config["version"] is not None and not isinstance(config["version"], str):
        errors.append(f"'version' must be a string (got {_type_name(config['version'])})")
    if "safeMode" in config and config["safeMode"] is not None and not isinstance(config["safeMode"], bool):
        errors.append(f"'safeMode' must be a boolean (got {_type_name(config['safeMode'])})")

    restrictions = config.get("restrictions")
    if restrictions is not None and not isinstance(restrictions, dict):
        errors.append(f"'restrictions' must be an object (got {_type_name(restrictions)})")
    elif isinstance(restrictions, dict):
        _validate_restrictions(restrictions, report)

    for key in config:
        if key not in KNOWN_TOP_KEYS:
            warnings.append(
                f"Unknown top-level key: '{key}' (typo? known: {', '.join(KNOWN_TOP_KEYS)})"
            )
    return report


def _validate_restrictions(restrictions: dict, report: ValidationReport) -> None:
    errors, warnings = report.errors, report.warnings
    for key in REQUIRED_RESTRICTION_KEYS:
        if restrictions.get(key) is None:
            errors.append(f"Missing required key: 'restrictions.{key}'")

    for key, lowest, highest in _RESTRICTION_BOUNDS:
        value = restrictions.get(key)
        if value is None:
            continue
        if not _is_int(value):
            errors.append(f"'restrictions.{key}' must be an integer (got {_type_name(value)})")
        elif not lowest <= value <= highest:
            errors.append(
                f"'restrictions.{key}' must be between {lowest} and {highest} (got {value})"
            )

    rc = restrictions.get("requireConfirmation")
    if rc is not None:
        if not isinstance(rc, list):
            errors.append(f"'restrictions.requireConfirmation' must be an array (got {_type_name(rc)})")
        else:
            if not rc:
                warnings.append(
                    "'restrictions.requireConfirmation' is empty: no dangerous keywords will be blocked."
                )
            for value in rc:
                if not isinstance(value, str):
                    errors.append(
                        "'restrictions.requireConfirmation' elements must be strings "
                        f"(got {_type_name(value)})"
                    )
                elif value not in KNOWN_RC_VALUES:
                    warnings.append(
                        f"Unknown requireConfirmation value: '{value}' "
                        f"(known: {', '.join(KNOWN_RC_VALUES)})"
                    )

    for key in restrictions:
        if key not in KNOWN_RESTRICTION_KEYS:
            warnings.append(
                f"Unknown restriction key: '{key}' (typo? known: {', '.join(KNOWN_RESTRICTION_KEYS)})"
            )


def requires_confirmation(keyword: str, config: HarnessConfig | None) -> bool:
    """True when *keyword* (e.g. 'deploy:') is gated by requireConfirmation.

    'deploy' gates 'deploy:'; so does a scoped entry such as 'deploy:promote'.
    """
    if config is None:
        return False
    base = keyword.removesuffix(":")
    return any(
        entry == base or entry.startswith(base + ":")
        for entry in config.restrictions.require_confirmation
    )
