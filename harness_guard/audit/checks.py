"""Check groups S0-S7 of the default audit checklist.

Each group takes the project root and returns a list of CheckResult. Hooks
and scripts are treated as opaque executables: groups S1, S2, S6 and S7 run
them and look only at exit codes, stdout and files left behind.
"""

import os
import re
import shlex
import sys
from pathlib import Path

from harness_guard.audit.runner import CheckResult, run_audit
from harness_guard.config import load_config, validate_config
from harness_guard.context import ROOT_ENV_VAR, find_repo_root
from harness_guard.errors import ConfigError
from harness_guard.shell import command_exists, is_executable, list_files, read_json_file, read_text, run_command
from harness_guard.skills import SKILLS_REL_PATH, validate_skills

CRITICAL_HOOKS = (
    "hooks/session-start.sh",
    "hooks/pre-edit-arch-check.sh",
    "hooks/pre-edit-security-check.sh",
    "hooks/skill-activation-prompt.sh",
)

SKILL_HOOK = "hooks/skill-activation-prompt.sh"
ARCH_HOOK = "hooks/pre-edit-arch-check.sh"
DANGEROUS_KEYWORDS = ("deploy:", "db:", "secure:")

_SH_FILE = re.compile(r"\.sh$")


def _result(check_id, description, ok, fail_detail=None):
    return CheckResult(check_id, description, bool(ok), detail=None if ok else fail_detail)


def _pipe_prompt(prompt, hook, cwd):
    return run_command(f"echo {shlex.quote(prompt)} | {shlex.quote(str(hook))}", cwd=cwd)


# ── S0: bootstrap ──


def check_bootstrap(project_root):
    root = Path(project_root)
    results = []
    for check_id, description, name, hint in (
        ("S0-01", "jq installed", "jq", "brew install jq"),
        ("S0-02", "git installed", "git", "brew install git"),
        ("S0-03", "claude CLI installed", "claude", "https://claude.ai/download"),
        ("S0-04", "tmux installed", "tmux", "brew install tmux"),
    ):
        results.append(_result(check_id, description, command_exists(name), hint))
    has_timeout = command_exists("timeout") or command_exists("gtimeout")
    results.append(_result("S0-05", "timeout/gtimeout installed", has_timeout, "brew install coreutils"))

    hook_files = list_files(root / "hooks", _SH_FILE)
    non_exec = [f for f in hook_files if not is_executable(f)]
    if not hook_files:
        detail = "No hooks/*.sh found"
    else:
        detail = f"{len(non_exec)} hook(s) not executable"
    results.append(_result("S0-06", "All hooks/*.sh are executable", hook_files and not non_exec, detail))

    repo_root = find_repo_root(root)
    settings_paths = [
        repo_root / ".claude/settings.json",
        repo_root / ".claude/settings.local.json",
        root / ".claude/settings.json",
        root / ".claude/settings.local.json",
    ]
    missing = list(CRITICAL_HOOKS)
    for settings_path in settings_paths:
        raw = read_text(settings_path)
        if raw is None:
            continue
        still_missing = [h for h in CRITICAL_HOOKS if h not in raw]
        if len(still_missing) < len(missing):
            missing = still_missing
    results.append(
        _result(
            "S0-07",
            "Critical hooks wired in .claude/settings.json",
            not missing,
            f"Missing: {', '.join(missing)}",
        )
    )

    description = "harness.config.json passes validation"
    try:
        config = load_config(root)
    except ConfigError as exc:
        results.append(_result("S0-08", description, False, exc.message))
    else:
        if config is None:
            results.append(_result("S0-08", description, False, "Config file not found"))
        else:
            errors = validate_config(config).errors
            results.append(_result("S0-08", description, not errors, errors[0] if errors else None))
    return results


# ── S1: magic keyword & skill activation ──


def check_magic_keyword(project_root):
    root = Path(project_root)
    hook = root / SKILL_HOOK
    rules = read_json_file(root / SKILLS_REL_PATH)
    if rules is None:
        return [_result("S1-01", "skill-rules.json loadable", False, "File not found or invalid JSON")]

    errors, warnings = validate_skills(rules)
    results = [
        CheckResult(
            "S1-00",
            "skill-rules.json passes validation",
            not errors,
            detail=errors[0] if errors else (f"{len(warnings)} warning(s)" if warnings else None),
        )
    ]
    if errors:
        return results

    missing_files = [
        f"{name}: {skill.get('file')}"
        for name, skill in rules["skills"].items()
        if isinstance(skill, dict)
        and skill.get("magicKeyword")
        and not (root / str(skill.get("file", ""))).exists()
    ]
    results.append(
        _result(
            "S1-01",
            "All magic keywords map to existing skill files",
            not missing_files,
            f"Missing: {', '.join(missing_files)}",
        )
    )

    hook_ok = is_executable(hook)

    # S1-02: PRD injection
    description = "Magic keyword triggers PRD injection"
    if not hook_ok:
        results.append(_result("S1-02", description, False, f"{hook.name} not found or not executable"))
    else:
        resolver = root / "harness/prd-resolver.sh"
        has_resolver = is_executable(resolver)
        stdout = _pipe_prompt("build: test feature", hook, root).stdout
        has_prd = "SOURCE OF TRUTH" in stdout or "PRD" in stdout
        if not has_prd and has_resolver:
            # Resolver present but no active PRD: the injection code path must exist.
            source = read_text(hook) or ""
            has_code = "prd-resolver" in source or "PRD" in source
            results.append(
                CheckResult(
                    "S1-02",
                    description,
                    has_code,
                    detail="PRD injection code present (no active PRD file)"
                    if has_code
                    else "PRD injection code missing",
                )
            )
        else:
            results.append(
                CheckResult(
                    "S1-02",
                    description,
                    True,
                    detail=None if has_prd else "No prd-resolver.sh (PRD system not configured)",
                )
            )

    # S1-03: BINDING directive
    description = "Agent binding output contains BINDING"
    if not hook_ok:
        results.append(_result("S1-03", description, False, "Hook not executable"))
    else:
        stdout = _pipe_prompt("build: test", hook, root).stdout
        results.append(_result("S1-03", description, "BINDING" in stdout, "BINDING not found in hook output"))

    # S1-04: the CLI detects keywords natively
    cli = f"{ROOT_ENV_VAR}={shlex.quote(str(root))} {shlex.quote(sys.executable)} -m harness_guard skill detect"
    detect = run_command(f"echo 'build: test' | {cli}", cwd=root)
    works = detect.exit_code == 0 and "MAGIC KEYWORD" in detect.stdout
    results.append(
        _result(
            "S1-04",
            "Skill detection works via harness-cli",
            works,
            f"exit {detect.exit_code}, no MAGIC KEYWORD in output",
        )
    )

    # S1-05: dangerous keywords blocked
    not_blocked = []
    if not hook_ok:
        not_blocked.append("hook not executable")
    else:
        for keyword in DANGEROUS_KEYWORDS:
            exit_code = _pipe_prompt(f"{keyword} test", hook, root).exit_code
            if exit_code != 2:
                not_blocked.append(f"{keyword} → exit {exit_code}")
    results.append(
        _result("S1-05", "deploy/db/secure keywords → exit 2 (blocked)", not not_blocked, "; ".join(not_blocked))
    )

    # S1-06: activation log
    description = "Skill activation log is recorded"
    if not hook_ok:
        results.append(CheckResult("S1-06", description, False, skip=True, detail="Hook not executable"))
    else:
        _pipe_prompt("build: log test", hook, root)
        exists = (root / ".worktree-logs/skill-activations.log").exists()
        results.append(_result("S1-06", description, exists, "skill-activations.log not created after activation"))
    return results


# ── S2: protected path enforcement ──

# (id, description, path, expected exit, relative to repo root)
PROTECTED_PATH_CASES = (
    ("S2-01", "harness/ edit blocked (exit 2)", "auto-fix-loop.sh", 2, False),
    ("S2-02", "hooks/ edit blocked (exit 2)", "hooks/session-start.sh", 2, False),
    ("S2-03", "architecture/ edit blocked (exit 2)", "architecture/rules.json", 2, False),
    ("S2-04", ".claude/ edit blocked (exit 2)", ".claude/settings.json", 2, True),
    ("S2-05", "CLAUDE.md edit blocked (exit 2)", "CLAUDE.md", 2, True),
    ("S2-06", "Path traversal (../) blocked", "app/../.harness/auto-fix-loop.sh", 2, True),
    ("S2-07", "Deep traversal (../../) blocked", "app/src/../../.harness/hooks/hook.sh", 2, True),
    ("S2-08", "Non-protected path allowed (exit 0)", "app/src/service/foo.ts", 0, True),
)


def check_protected_paths(project_root):
    root = Path(project_root)
    hook = root / ARCH_HOOK
    if not is_executable(hook):
        return [_result("S2-00", "pre-edit-arch-check.sh is executable", False, "Hook not found or not executable")]

    repo_root = find_repo_root(root)
    results = []
    for check_id, description, rel_path, expected, at_repo_root in PROTECTED_PATH_CASES:
        # Traversal segments are passed through untouched; the hook must resolve them.
        full_path = os.path.join(str(repo_root if at_repo_root else root), rel_path)
        exit_code = run_command(f"{shlex.quote(str(hook))} {shlex.quote(full_path)}", cwd=root).exit_code
        results.append(
            _result(check_id, description, exit_code == expected, f"exit {exit_code}, expected {expected}")
        )
    return results


# ── S3-S5: source checks on the orchestration scripts ──


def _any(*needles):
    return lambda src: any(n in src for n in needles)


def _all(*needles):
    return lambda src: all(n in src for n in needles)


AUTO_FIX_CHECKS = (
    ("S3-01", "Guard tests run after successful command",
     _all("guard", "tests after success"), "No guard-after-success logic found in source"),
    ("S3-02", "Guard tests run after each fix attempt",
     _any("guard tests after fix", "Guard Tests: check harness integrity after fix"),
     "No guard-after-fix logic found in source"),
    ("S3-03", "P0 guard failure stops loop immediately (exit 1)",
     lambda src: "exit 1" in src and ("CRITICAL" in src or "P0" in src), "No P0 hard-fail exit found in source"),
    ("S3-04", "Timeout (exit 124) treated as failure",
     _all("124", "timed out"), "No timeout (124) handling found in source"),
    ("S3-05", "safeMode limits retries from config",
     lambda src: ("safeMode" in src or "safe-mode" in src) and "autoFixRetries" in src,
     "safeMode/autoFixRetries logic not found in source"),
)

ORCHESTRATOR_CHECKS = (
    ("S4-01", "tasks.json schema validated before launch",
     _any("jq empty", "not valid JSON"), "No JSON validation found in source"),
    ("S4-02", "safeMode limits parallel agent count",
     _all("safeMode", "maxParallelAgents"), "safeMode/maxParallelAgents logic not found"),
    ("S4-03", "Guard tests run after agents complete",
     _any("guard tests", "Phase 3b"), "No guard test phase found in source"),
    ("S4-04", "P0 guard failure blocks auto-PR",
     lambda src: "AUTO_PR=false" in src and ("GUARD_P0_FAIL" in src or "CRITICAL" in src),
     "AUTO_PR blocking on guard failure not found"),
    ("S4-05", "PRD injection into agent prompts",
     _any("prd-resolver", "PRD"), "No PRD injection found in orchestrator"),
    ("S4-06", "Agent execution has timeout enforcement",
     lambda src: "AGENT_TIMEOUT" in src and ("timeout" in src or "_timeout_cmd" in src),
     "No agent timeout logic found"),
)

# Predicates take (outer, inner) sources.
AUTOPILOT_CHECKS = (
    ("S5-01", "PRD injection in autopilot-inner.sh",
     lambda outer, inner: "prd-resolver" in inner or "PRD" in inner, "No PRD resolver invocation found"),
    ("S5-02", "Guard tests run before autopilot completion",
     lambda outer, inner: "guard" in inner and "run-tests.sh" in inner,
     "No guard test invocation found in autopilot-inner.sh"),
    ("S5-03", "safeMode limits autopilot retries",
     lambda outer, inner: "safeMode" in outer or "safe-mode" in outer, "No safeMode logic found in autopilot.sh"),
    ("S5-04", "P0 guard failure stops autopilot (exit 1)",
     lambda outer, inner: "P0" in inner and "exit 1" in inner, "No P0 hard-fail exit found in autopilot-inner.sh"),
    ("S5-05", "Rate limit detection with exponential backoff",
     lambda outer, inner: "rate" in inner and ("backoff" in inner or "BACKOFF" in inner),
     "No rate limit/backoff logic found"),
)


def _source_checks(project_root, script, missing_id, table):
    source = read_text(Path(project_root) / script)
    if source is None:
        return [_result(missing_id, f"{script} exists", False, "File not found")]
    return [_result(cid, desc, pred(source), detail) for cid, desc, pred, detail in table]


def check_auto_fix_loop(project_root):
    return _source_checks(project_root, "auto-fix-loop.sh", "S3-00", AUTO_FIX_CHECKS)


def check_orchestrator(project_root):
    return _source_checks(project_root, "orchestrator.sh", "S4-00", ORCHESTRATOR_CHECKS)


def check_autopilot(project_root):
    root = Path(project_root)
    outer = read_text(root / "scripts/autopilot.sh")
    inner = read_text(root / "scripts/autopilot-inner.sh")
    if outer is None or inner is None:
        missing = [name for name, src in (("autopilot.sh", outer), ("autopilot-inner.sh", inner)) if src is None]
        return [_result("S5-00", "autopilot.sh and autopilot-inner.sh exist", False, f"Missing: {', '.join(missing)}")]
    return [_result(cid, desc, pred(outer, inner), detail) for cid, desc, pred, detail in AUTOPILOT_CHECKS]


# ── S6: dangerous operation blocking ──

DANGEROUS_PROMPTS = (
    ("S6-01", "deploy: push to production", "deploy: keyword blocked (exit 2)"),
    ("S6-02", "db: reset database", "db: keyword blocked (exit 2)"),
    ("S6-03", "secure: audit secrets", "secure: keyword blocked (exit 2)"),
)


def check_dangerous_ops(project_root):
    root = Path(project_root)
    hook = root / SKILL_HOOK
    if not is_executable(hook):
        return [_result("S6-00", "skill-activation-prompt.sh is executable", False, "Hook not found or not executable")]

    results = []
    for check_id, prompt, description in DANGEROUS_PROMPTS:
        exit_code = _pipe_prompt(prompt, hook, root).exit_code
        results.append(_result(check_id, description, exit_code == 2, f"exit {exit_code}, expected 2"))

    description = "requireConfirmation includes deploy/db/secure"
    config = read_json_file(root / "harness.config.json")
    if not isinstance(config, dict):
        results.append(_result("S6-04", description, False, "harness.config.json not found or invalid"))
        return results
    restrictions = config.get("restrictions")
    required = restrictions.get("requireConfirmation") if isinstance(restrictions, dict) else None
    required = [k for k in required if isinstance(k, str)] if isinstance(required, list) else []
    missing = [kw for kw in ("deploy", "db", "secure") if not any(kw in k for k in required)]
    results.append(_result("S6-04", description, not missing, f"Missing: {', '.join(missing)}"))
    return results


# ── S7: learning loop ──


def check_learning_loop(project_root):
    root = Path(project_root)
    results = []
    hooks = (
        ("S7-01", "S7-03", "hooks/on-stop-summary.sh", "memory/PROGRESS.md"),
        ("S7-02", "S7-04", "hooks/auto-reflect.sh", "memory/PATTERNS.md"),
    )
    for exec_id, _, hook_rel, _ in hooks:
        name = Path(hook_rel).name
        results.append(
            _result(exec_id, f"{name} is executable", is_executable(root / hook_rel), "Hook not found or not executable")
        )
    for _, run_id, hook_rel, output_rel in hooks:
        hook = root / hook_rel
        description = f"{hook.name} writes {Path(output_rel).name}"
        if not is_executable(hook):
            results.append(CheckResult(run_id, description, False, skip=True, detail="Hook not executable"))
            continue
        exit_code = run_command(shlex.quote(str(hook)), cwd=root).exit_code
        written = (root / output_rel).exists()
        if exit_code != 0:
            detail = f"Hook exit code: {exit_code}"
        else:
            detail = f"{Path(output_rel).name} not found after hook execution"
        results.append(_result(run_id, description, exit_code == 0 and written, detail))
    return results


AUDIT_CHECKS = (
    ("S0: Bootstrap & Prerequisites", check_bootstrap),
    ("S1: Magic Keyword & Skill Activation", check_magic_keyword),
    ("S2: Protected Path Enforcement", check_protected_paths),
    ("S3: Auto-Fix Loop Integrity", check_auto_fix_loop),
    ("S4: Orchestrator Guard Integration", check_orchestrator),
    ("S5: Autopilot Safety", check_autopilot),
    ("S6: Dangerous Operation Blocking", check_dangerous_ops),
    ("S7: Learning Loop / Memory", check_learning_loop),
)


def audit_run(project_root) -> int:
    return run_audit(project_root, AUDIT_CHECKS)
