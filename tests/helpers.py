"""Test data and assertion helpers shared across the suite."""

import json
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent

SKILL_RULES = {
    "version": "1.0",
    "skills": {
        "feature-builder": {
            "type": "agent",
            "enforcement": "require",
            "priority": "high",
            "file": "agents/feature-builder.md",
            "magicKeyword": "build:",
            "promptTriggers": {"keywords": ["feature", "implement", "create", "add", "build"]},
        },
        "bug-fixer": {
            "type": "agent",
            "enforcement": "suggest",
            "priority": "high",
            "file": "agents/bug-fixer.md",
            "magicKeyword": "fix:",
            "promptTriggers": {"keywords": ["fix", "bug", "error", "crash", "broken"]},
        },
        "orchestrator": {
            "type": "mode",
            "enforcement": "suggest",
            "priority": "medium",
            "file": "modes/orchestrate.md",
            "magicKeyword": "arch:",
        },
        "deploy-manager": {
            "type": "skill",
            "enforcement": "require",
            "priority": "high",
            "file": "skills/deploy.md",
            "magicKeyword": "deploy:",
            "promptTriggers": {"keywords": ["deploy", "release", "production", "staging"]},
        },
        "db-manager": {
            "type": "skill",
            "enforcement": "require",
            "priority": "high",
            "file": "skills/db.md",
            "magicKeyword": "db:",
        },
        "security-auditor": {
            "type": "agent",
            "enforcement": "require",
            "priority": "high",
            "file": "agents/security.md",
            "magicKeyword": "secure:",
        },
    },
}

VALID_CONFIG = {
    "version": "1.0",
    "safeMode": True,
    "restrictions": {
        "maxParallelAgents": 3,
        "autoFixRetries": 3,
        "requireConfirmation": ["deploy", "db:migrate", "db:reset", "secure"],
    },
}


def write_json(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    return path


def write_script(path: Path, body: str, executable: bool = True) -> Path:
    """Write a /bin/sh script; the hooks under test are opaque executables."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(0o755 if executable else 0o644)
    return path


def assert_exit(result, expected_exit, expected_msg=None, test_id=""):
    """Common assertion helper."""
    assert result.returncode == expected_exit, (
        f"[{test_id}] Expected exit {expected_exit}, got {result.returncode}. "
        f"stdout: {result.stdout.strip()!r} stderr: {result.stderr.strip()!r}"
    )
    if expected_msg:
        output = result.stderr + result.stdout
        assert expected_msg in output, (
            f"[{test_id}] Expected '{expected_msg}' in output. stderr: {result.stderr.strip()!r}"
        )
