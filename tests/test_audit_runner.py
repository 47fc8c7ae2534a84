"""Tests for the audit checklist runner (aggregation and report format)."""

import io

from harness_guard.audit import CheckResult, run_audit


def _group(*results):
    return lambda project_root: list(results)


def _run(*checks):
    out = io.StringIO()
    code = run_audit("/nonexistent", list(checks), stream=out)
    return code, out.getvalue()


class TestAggregation:
    def test_all_pass(self):
        code, out = _run(("S9: Demo", _group(CheckResult("S9-01", "first", True), CheckResult("S9-02", "second", True))))
        assert code == 0
        assert "RESULT: 2/2 PASS, 0 FAIL" in out
        assert "All checks passed." in out

    def test_any_failure_fails_the_audit(self):
        code, out = _run(
            ("S9: Demo", _group(CheckResult("S9-01", "first", True), CheckResult("S9-02", "second", False)))
        )
        assert code == 1
        assert "RESULT: 1/2 PASS, 1 FAIL" in out
        assert "1 check(s) failed. Fix before proceeding." in out

    def test_skips_do_not_fail(self):
        code, out = _run(
            (
                "S9: Demo",
                _group(
                    CheckResult("S9-01", "first", True),
                    CheckResult("S9-02", "second", False, skip=True, detail="not wired"),
                ),
            )
        )
        assert code == 0
        assert "RESULT: 1/2 PASS, 0 FAIL, 1 SKIP" in out

    def test_no_checks(self):
        code, out = _run()
        assert code == 0
        assert "RESULT: 0/0 PASS, 0 FAIL" in out

    def test_sections_run_in_order(self):
        _, out = _run(
            ("S8: First", _group(CheckResult("S8-01", "a", True))),
            ("S9: Second", _group(CheckResult("S9-01", "b", True))),
        )
        assert out.index("=== S8: First ===") < out.index("=== S9: Second ===")


class TestReportFormat:
    def test_result_lines(self):
        _, out = _run(
            (
                "S9: Demo",
                _group(
                    CheckResult("S9-01", "passes", True),
                    CheckResult("S9-02", "fails", False, detail="exit 0, expected 2"),
                    CheckResult("S9-03", "skipped", False, skip=True, detail="Hook not executable"),
                ),
            )
        )
        assert "  S9-01  " + "passes".ljust(45) + "PASS\n" in out
        assert "  S9-02  " + "fails".ljust(45) + "FAIL  exit 0, expected 2\n" in out
        assert "  S9-03  " + "skipped".ljust(45) + "SKIP  (Hook not executable)\n" in out

    def test_no_color_when_not_a_tty(self):
        _, out = _run(("S9: Demo", _group(CheckResult("S9-01", "x", True))))
        assert "\033[" not in out


class TestCrashingCheck:
    def test_exception_becomes_failure(self):
        def boom(project_root):
            raise RuntimeError("disk on fire")

        code, out = _run(("S9: Demo", boom), ("S8: After", _group(CheckResult("S8-01", "still runs", True))))
        assert code == 1
        assert "S9  check group completed" in out
        assert "RuntimeError: disk on fire" in out
        assert "still runs" in out
