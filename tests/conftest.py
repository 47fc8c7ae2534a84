"""Shared fixtures: throwaway harness projects and a CLI runner."""

import os
import subprocess
import sys

import pytest
from helpers import REPO_ROOT, SKILL_RULES, VALID_CONFIG, write_json


@pytest.fixture
def harness_project(tmp_path):
    """A minimal harness project: CLAUDE.md, config, skill catalog and skill files."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "CLAUDE.md").write_text("# Project rules\n")
    write_json(root / "harness.config.json", VALID_CONFIG)
    write_json(root / "skills" / "skill-rules.json", SKILL_RULES)
    for skill in SKILL_RULES["skills"].values():
        skill_file = root / skill["file"]
        skill_file.parent.mkdir(parents=True, exist_ok=True)
        skill_file.write_text(f"# {skill['file']}\n")
    return root


@pytest.fixture
def cli_env(harness_project):
    env = os.environ.copy()
    env["PYTHONPATH"] = str(REPO_ROOT) + os.pathsep + env.get("PYTHONPATH", "")
    env["HARNESS_ROOT"] = str(harness_project)
    env.pop("BASH_GUARD_EXTRA_RULES", None)
    return env


@pytest.fixture
def run_cli(harness_project, cli_env):
    """Invoke ``python -m harness_guard`` against the fixture project."""

    def _run(*args, stdin="", env=None) -> subprocess.CompletedProcess:
        return subprocess.run(
            [sys.executable, "-m", "harness_guard", *args],
            input=stdin,
            capture_output=True,
            text=True,
            cwd=harness_project,
            env={**cli_env, **(env or {})},
            timeout=60,
        )

    return _run


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """In-process tests must not pick up the developer's harness settings."""
    for var in ("HARNESS_ROOT", "BASH_GUARD_EXTRA_RULES"):
        monkeypatch.delenv(var, raising=False)
