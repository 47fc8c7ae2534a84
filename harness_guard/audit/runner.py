"""Checklist runner: prints PASS/FAIL/SKIP per result and aggregates an exit code.

Some checks execute hooks and inspect their output, so they depend on the
hook implementations and on filesystem state. They are still repeatable for
the same project state.
"""

import sys
from dataclasses import dataclass

from harness_guard.errors import EXIT_HARD_FAIL, EXIT_OK

_RED = "\033[0;31m"
_GREEN = "\033[0;32m"
_YELLOW = "\033[1;33m"
_CYAN = "\033[0;36m"
_RESET = "\033[0m"

_DESC_WIDTH = 45


@dataclass(frozen=True)
class CheckResult:
    id: str
    description: str
    passed: bool
    skip: bool = False
    detail: str | None = None


def _paint(text, color, stream):
    if getattr(stream, "isatty", lambda: False)():
        return f"{color}{text}{_RESET}"
    return text


def _print_result(result: CheckResult, stream):
    line = f"  {result.id}  {result.description.ljust(_DESC_WIDTH)}"
    if result.skip:
        reason = f"  ({result.detail})" if result.detail else ""
        print(line + _paint("SKIP", _YELLOW, stream) + reason, file=stream)
    elif result.passed:
        print(line + _paint("PASS", _GREEN, stream), file=stream)
    else:
        detail = f"  {result.detail}" if result.detail else ""
        print(line + _paint("FAIL", _RED, stream) + detail, file=stream)


def run_audit(project_root, checks, stream=None) -> int:
    """Run ``(section, check_fn)`` pairs in order. 1 when any check failed, else 0.

    Skipped results count toward neither pass nor fail.
    """
    if stream is None:
        stream = sys.stdout
    passed = failed = skipped = 0

    for section, check_fn in checks:
        print(file=stream)
        print(_paint(f"=== {section} ===", _CYAN, stream), file=stream)
        try:
            results = check_fn(project_root)
        except Exception as exc:  # noqa: BLE001 -- a crashing check is a failed check
            results = [
                CheckResult(
                    id=section.split(":", 1)[0],
                    description="check group completed",
                    passed=False,
                    detail=f"{type(exc).__name__}: {exc}",
                )
            ]
        for result in results:
            _print_result(result, stream)
            if result.skip:
                skipped += 1
            elif result.passed:
                passed += 1
            else:
                failed += 1

    total = passed + failed + skipped
    print(file=stream)
    print("─" * 50, file=stream)
    summary = f"  RESULT: {passed}/{total} PASS, {failed} FAIL"
    if skipped:
        summary += f", {skipped} SKIP"
    print(summary, file=stream)
    if failed == 0:
        print("  " + _paint("All checks passed.", _GREEN, stream), file=stream)
    else:
        print("  " + _paint(f"{failed} check(s) failed. Fix before proceeding.", _RED, stream), file=stream)
    return EXIT_HARD_FAIL if failed else EXIT_OK
