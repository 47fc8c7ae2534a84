"""Exit-code contract and error types.

Exit codes MUST match Claude Code hook semantics: 2 from a PreToolUse or
UserPromptSubmit hook rejects the action and feeds stderr back to the agent.
"""

EXIT_OK = 0
EXIT_HARD_FAIL = 1  # P0: stops auto-fix, blocks merge
EXIT_BLOCK = 2


class HarnessError(Exception):
    """Base error. Carries the process exit code and a remediation hint."""

    def __init__(self, message: str, exit_code: int, what_to_do: str | None = None):
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code
        self.what_to_do = what_to_do

    def render(self) -> str:
        if self.what_to_do:
            return f"{self.message}\n  What to do: {self.what_to_do}"
        return self.message


class ConfigError(HarnessError):
    def __init__(self, message: str, what_to_do: str | None = None):
        super().__init__(message, EXIT_HARD_FAIL, what_to_do)


class PathBlockedError(HarnessError):
    def __init__(self, path: str, protected_prefix: str | None):
        super().__init__(
            f"BLOCKED: '{path}' is a protected harness path.",
            EXIT_BLOCK,
            f"Protected paths: {protected_prefix}. To allow edits, a human must add this "
            "path to 'exceptions.allowed_core_edits' in architecture/rules.json",
        )
        self.path = path
        self.protected_prefix = protected_prefix


class ConfirmationRequiredError(HarnessError):
    def __init__(self, keyword: str):
        super().__init__(
            f"CONFIRMATION REQUIRED: '{keyword}' can cause irreversible changes.",
            EXIT_BLOCK,
            "Explain to the user what will happen, ask for confirmation, then retry.",
        )
        self.keyword = keyword
