"""Harness Guard -- deterministic policy gates for an autonomous coding agent.

Hooks for Claude Code that decide, fail-closed, whether an agent-initiated
action is allowed: shell commands (bash guard), file edits (protected paths),
and prompts (magic-keyword confirmation gate). A checklist audit verifies the
whole harness is wired up and behaving.
"""

__version__ = "0.4.0"
