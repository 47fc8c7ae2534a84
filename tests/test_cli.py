"""Tests for harness-cli dispatch and the config/path/skill/audit commands."""

import copy
import json

import pytest
from helpers import VALID_CONFIG, assert_exit, write_json

from harness_guard import __version__
from harness_guard.cli import main


def _edit_payload(**tool_input):
    return json.dumps({"tool_name": "Edit", "tool_input": tool_input})


# ═══════════════════════════════════════════════════════════════════════════════
# Dispatch
# ═══════════════════════════════════════════════════════════════════════════════


class TestDispatch:
    @pytest.mark.parametrize("args", [(), ("--help",), ("-h",), ("help",)], ids=["none", "long", "short", "word"])
    def test_help(self, run_cli, args):
        result = run_cli(*args)
        assert_exit(result, 0)
        assert "Commands:" in result.stdout
        assert "bash-guard" in result.stdout

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert capsys.readouterr().out.strip() == __version__

    def test_unknown_command(self, run_cli):
        result = run_cli("frobnicate")
        assert_exit(result, 1, "Unknown command: frobnicate")
        assert "Commands:" in result.stderr

    @pytest.mark.parametrize(
        "args, expected_msg",
        [
            (("audit",), "Unknown audit subcommand: (none)"),
            (("config", "check"), "Unknown config subcommand: check"),
            (("path", "resolve", "x"), "Unknown path subcommand: resolve"),
            (("skill", "list"), "Unknown skill subcommand: list"),
        ],
        ids=["audit-none", "config", "path", "skill"],
    )
    def test_unknown_subcommand(self, run_cli, args, expected_msg):
        assert_exit(run_cli(*args), 1, expected_msg)


# ═══════════════════════════════════════════════════════════════════════════════
# config validate
# ═══════════════════════════════════════════════════════════════════════════════


class TestConfigValidate:
    def test_valid(self, run_cli):
        result = run_cli("config", "validate")
        assert_exit(result, 0, "[config] PASSED: Config is valid")

    def test_warnings_exit_2(self, run_cli, harness_project):
        config = copy.deepcopy(VALID_CONFIG)
        config["restrictions"]["requireConfirmation"] = []
        write_json(harness_project / "harness.config.json", config)
        result = run_cli("config", "validate")
        assert_exit(result, 2, "[config] PASSED with 1 warning(s)")
        assert "[config] WARNING: 'restrictions.requireConfirmation' is empty" in result.stdout

    def test_errors_exit_1(self, run_cli, harness_project):
        config = copy.deepcopy(VALID_CONFIG)
        config["restrictions"]["maxParallelAgents"] = 0
        config["safemode"] = False
        write_json(harness_project / "harness.config.json", config)
        result = run_cli("config", "validate")
        assert_exit(result, 1, "[config] FAILED: 1 error(s), 1 warning(s)")
        assert "[config] ERROR: 'restrictions.maxParallelAgents' must be between 1 and 100 (got 0)" in result.stdout

    def test_missing_file(self, run_cli, harness_project):
        (harness_project / "harness.config.json").unlink()
        result = run_cli("config", "validate")
        assert_exit(result, 1, "[config] ERROR: Config file not found or invalid JSON.")
        assert "What to do: Run ./harness/project-init.sh --detect . to generate one." in result.stderr

    def test_malformed_file(self, run_cli, harness_project):
        (harness_project / "harness.config.json").write_text('{"version": }')
        result = run_cli("config", "validate")
        assert_exit(result, 1, "is not valid JSON.")

    def test_custom_path(self, run_cli, harness_project):
        write_json(harness_project / "alt.json", {"version": "1.0"})
        result = run_cli("config", "validate", "alt.json")
        assert_exit(result, 1, "Missing required key: 'safeMode'")

    def test_in_process_error_rendering(self, harness_project, monkeypatch, capsys):
        (harness_project / "harness.config.json").unlink()
        monkeypatch.setenv("HARNESS_ROOT", str(harness_project))
        with pytest.raises(SystemExit) as exc_info:
            main(["config", "validate"])
        assert exc_info.value.code == 1
        assert "What to do:" in capsys.readouterr().err


# ═══════════════════════════════════════════════════════════════════════════════
# path check
# ═══════════════════════════════════════════════════════════════════════════════


class TestPathCheck:
    @pytest.mark.parametrize(
        "path, matched",
        [
            ("harness/core.sh", "harness/"),
            ("hooks/session-start.sh", "hooks/"),
            ("CLAUDE.md", "CLAUDE.md"),
            ("src/../architecture/rules.json", "architecture/"),
        ],
        ids=["harness", "hooks", "claude-md", "traversal"],
    )
    def test_protected(self, run_cli, path, matched):
        result = run_cli("path", "check", path)
        assert_exit(result, 2, "is a protected harness path.")
        assert f"[arch-check] Matched: {matched}" in result.stderr
        assert "exceptions.allowed_core_edits" in result.stderr
        assert result.stdout == ""

    def test_absolute_path_under_project(self, run_cli, harness_project):
        result = run_cli("path", "check", str(harness_project / "hooks" / "x.sh"))
        assert_exit(result, 2, "[arch-check] BLOCKED: 'hooks/x.sh' is a protected harness path.")

    def test_allowed_with_layer_guidance(self, run_cli):
        result = run_cli("path", "check", "app/src/service/foo.ts")
        assert_exit(result, 0)
        assert "[arch-check] Editing file in layer 'service' (level 3)." in result.stdout
        assert "[arch-check] Forbidden imports from: runtime, ui" in result.stdout

    def test_allowed_outside_layers_is_silent(self, run_cli):
        result = run_cli("path", "check", "docs/readme.md")
        assert_exit(result, 0)
        assert result.stdout == ""

    def test_exception_opens_protected_path(self, run_cli, harness_project):
        write_json(
            harness_project / "architecture" / "rules.json",
            {"exceptions": {"allowed_core_edits": ["harness/custom.sh"]}},
        )
        assert_exit(run_cli("path", "check", "harness/custom.sh"), 0)

    @pytest.mark.parametrize(
        "stdin, expected_exit, expected_msg",
        [
            (_edit_payload(file_path="harness/core.sh"), 2, "Matched: harness/"),
            (_edit_payload(path="CLAUDE.md"), 2, "Matched: CLAUDE.md"),
            (_edit_payload(file_path="src/ui/button.tsx"), 0, "layer 'ui'"),
            (_edit_payload(content="no path here"), 0, None),
            ("", 0, None),
            ("{oops", 2, "Could not read hook input (input is not valid JSON). Blocking for safety."),
        ],
        ids=["file-path", "path-fallback", "allowed", "no-path", "empty", "malformed"],
    )
    def test_hook_payload(self, run_cli, stdin, expected_exit, expected_msg):
        assert_exit(run_cli("path", "check", stdin=stdin), expected_exit, expected_msg)


# ═══════════════════════════════════════════════════════════════════════════════
# skill detect
# ═══════════════════════════════════════════════════════════════════════════════


class TestSkillDetect:
    def test_prompt_argument(self, run_cli):
        result = run_cli("skill", "detect", "build:", "add", "a", "page")
        assert_exit(result, 0, "MAGIC KEYWORD: build: → feature-builder")

    def test_confirmation_required(self, run_cli):
        result = run_cli("skill", "detect", "deploy: ship it")
        assert_exit(result, 2, "CONFIRMATION REQUIRED: 'deploy:'")

    @pytest.mark.parametrize(
        "stdin",
        [json.dumps({"session_id": "s1", "prompt": "fix: login crash"}), "fix: login crash"],
        ids=["json", "raw"],
    )
    def test_stdin(self, run_cli, stdin):
        assert_exit(run_cli("skill", "detect", stdin=stdin), 0, "MAGIC KEYWORD: fix: → bug-fixer")

    def test_no_keyword(self, run_cli):
        result = run_cli("skill", "detect", "good morning")
        assert_exit(result, 0)
        assert result.stdout == ""


# ═══════════════════════════════════════════════════════════════════════════════
# audit run
# ═══════════════════════════════════════════════════════════════════════════════


class TestAuditRun:
    def test_bare_project_fails(self, run_cli):
        result = run_cli("audit", "run")
        assert_exit(result, 1, "RESULT:")
        assert "=== S0: Bootstrap & Prerequisites ===" in result.stdout
        assert "S2-00" in result.stdout
