"""harness-cli -- deterministic entry point for hooks, CI and humans.

Exit codes follow the hook contract: 0 allow/pass, 1 hard failure,
2 blocked (or config valid with warnings).
"""

import sys

from harness_guard import __version__, bash_guard, path_check, skill_gate
from harness_guard.audit.checks import audit_run
from harness_guard.config import load_config, validate_config
from harness_guard.context import find_project_root
from harness_guard.errors import EXIT_BLOCK, EXIT_HARD_FAIL, EXIT_OK, ConfigError, HarnessError

HELP = f"""
harness-cli {__version__} -- deterministic policy gate for agent harnesses

Commands:
  audit run                Run the audit checklist (S0-S7)
  config validate [path]   Validate harness.config.json
  path check [file]        Check if a file path is protected
                           (no file: read the edit-hook JSON from stdin)
  bash-guard               Check a Bash hook payload from stdin
  skill detect [prompt]    Detect magic keywords and suggest skills
                           (no prompt: read {{"prompt": ...}} or text from stdin)

Exit codes:
  0  pass / allowed
  1  failure
  2  blocked (config validate: passed with warnings)

Environment:
  HARNESS_ROOT             Project root (default: nearest dir with CLAUDE.md
                           and harness.config.json)
  BASH_GUARD_EXTRA_RULES   JSON file with additional bash-guard rules
"""


def config_validate(config_path=None) -> int:
    try:
        config = load_config(find_project_root(), config_path)
    except ConfigError as exc:
        config = None
        detail = exc.message
    else:
        detail = None
    if config is None:
        message = "[config] ERROR: Config file not found or invalid JSON."
        if detail:
            message += f" ({detail})"
        raise ConfigError(message, "Run ./harness/project-init.sh --detect . to generate one.")

    report = validate_config(config)
    for error in report.errors:
        print(f"[config] ERROR: {error}")
    for warning in report.warnings:
        print(f"[config] WARNING: {warning}")
    print()
    if report.errors:
        print(f"[config] FAILED: {len(report.errors)} error(s), {len(report.warnings)} warning(s)")
        return EXIT_HARD_FAIL
    if report.warnings:
        print(f"[config] PASSED with {len(report.warnings)} warning(s)")
        return EXIT_BLOCK
    print("[config] PASSED: Config is valid")
    return EXIT_OK


def _audit(args):
    if args[:1] != ["run"]:
        return _unknown_subcommand("audit", args)
    return audit_run(find_project_root())


def _config(args):
    if args[:1] != ["validate"]:
        return _unknown_subcommand("config", args)
    return config_validate(args[1] if len(args) > 1 else None)


def _path(args):
    if args[:1] != ["check"]:
        return _unknown_subcommand("path", args)
    return path_check.run(args[1] if len(args) > 1 else None)


def _skill(args):
    if args[:1] != ["detect"]:
        return _unknown_subcommand("skill", args)
    return skill_gate.run(" ".join(args[1:]) or None)


def _bash_guard(args):
    return bash_guard.run()


def _unknown_subcommand(command, args):
    print(f"Unknown {command} subcommand: {args[0] if args else '(none)'}", file=sys.stderr)
    return EXIT_HARD_FAIL


_DISPATCH = {
    "audit": _audit,
    "config": _config,
    "path": _path,
    "skill": _skill,
    "bash-guard": _bash_guard,
}


def main(argv=None) -> None:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args or args[0] in ("--help", "-h", "help"):
        print(HELP)
        sys.exit(EXIT_OK)
    if args[0] == "--version":
        print(__version__)
        sys.exit(EXIT_OK)

    handler = _DISPATCH.get(args[0])
    if handler is None:
        print(f"Unknown command: {args[0]}", file=sys.stderr)
        print(HELP, file=sys.stderr)
        sys.exit(EXIT_HARD_FAIL)

    try:
        sys.exit(handler(args[1:]))
    except HarnessError as exc:
        print(exc.render(), file=sys.stderr)
        sys.exit(exc.exit_code)


if __name__ == "__main__":
    main()
