"""Deterministic audit checklist: are the hooks wired and enforcing?"""

from harness_guard.audit.runner import CheckResult, run_audit

__all__ = ["CheckResult", "run_audit"]
