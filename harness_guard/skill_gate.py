"""Magic-keyword gate -- UserPromptSubmit hook.

A prompt such as ``fix: login crash`` binds the agent to the skill that owns
the ``fix:`` keyword. Keywords listed under restrictions.requireConfirmation
block the prompt (exit 2) until a human confirms. Everything printed on stdout
is re-injected into the agent's context.
"""

import datetime
import json
import logging
import re
import sys
from pathlib import Path

from harness_guard.config import requires_confirmation
from harness_guard.context import EvaluationContext, load_context
from harness_guard.errors import EXIT_BLOCK, EXIT_OK, ConfirmationRequiredError
from harness_guard.shell import BestEffort, run_best_effort
from harness_guard.skills import find_magic_keyword, match_keywords

SEPARATOR = "━" * 39

PRD_RESOLVER_REL_PATH = "harness/prd-resolver.sh"
LOG_DIR = ".worktree-logs"
ACTIVATION_LOG_NAME = "skill-activations.log"
ACTIVATION_LOGGER = "harness.skill-activations"

MEMORY_DIR = "memory"
MEMORY_TAIL_LINES = 30
_SNIPPET_LEN = 80

# keyword base -> (memory file, header)
_MISTAKES = ("MISTAKES.md", "KNOWN BUG PATTERNS")
_DECISIONS = ("DECISIONS.md", "ARCHITECTURE DECISIONS")
KEYWORD_MEMORY = {
    "fix": _MISTAKES,
    "test": _MISTAKES,
    "arch": _DECISIONS,
    "refactor": _DECISIONS,
}

# Prompts without a magic keyword still get memory when they read like these.
_BUG_WORDS = re.compile(r"\b(bug|fix|error|fail|broken)\b", re.IGNORECASE)
_DECISION_WORDS = re.compile(r"\b(decide|choice|approach|which|how to)\b", re.IGNORECASE)


def read_prompt(argument=None, stream=None):
    """Prompt text from the argument, else stdin as {"prompt": ...} JSON or raw text.

    Raises OSError/UnicodeDecodeError when stdin cannot be read.
    """
    if argument:
        return argument
    stream = stream if stream is not None else sys.stdin
    text = stream.read()
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return text
    if isinstance(parsed, dict) and isinstance(parsed.get("prompt"), str):
        return parsed["prompt"]
    return text


def inject_memory(project_root, filename, header):
    """Print the last lines of memory/<filename>; silent when missing or empty."""
    path = Path(project_root) / MEMORY_DIR / filename
    try:
        content = path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError):
        return
    if not content:
        return
    tail = "\n".join(content.split("\n")[-MEMORY_TAIL_LINES:])
    print()
    print(f"{header} (from {MEMORY_DIR}/{filename}):")
    print("---")
    print(tail)
    print("---")


class _StrictFileHandler(logging.FileHandler):
    """FileHandler that lets write errors reach the caller instead of stderr."""

    def handleError(self, record):
        raise


def _close_handlers(logger):
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def _activation_logger(project_root):
    logger = logging.getLogger(ACTIVATION_LOGGER)
    _close_handlers(logger)
    log_dir = Path(project_root) / LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = _StrictFileHandler(log_dir / ACTIVATION_LOG_NAME)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


def log_activation(project_root, skill_name, keyword, prompt) -> BestEffort:
    """Append ``timestamp|skill|keyword|snippet`` to the activation log.

    Appends are not locked; concurrent sessions may interleave lines.
    """
    timestamp = datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    snippet = prompt[:_SNIPPET_LEN].replace("\n", " ")
    line = f"{timestamp}|{skill_name}|{keyword}|{snippet}"
    logger = logging.getLogger(ACTIVATION_LOGGER)
    try:
        _activation_logger(project_root).info("%s", line)
    except (OSError, ValueError) as exc:
        return BestEffort(error=str(exc))
    finally:
        _close_handlers(logger)
    return BestEffort(value=line)


def _print_confirmation_block(exc: ConfirmationRequiredError):
    print()
    print(f"⛔ {exc.message}")
    print()
    print("This prompt is BLOCKED until the user explicitly confirms.")
    print("You MUST:")
    print("  1. Explain to the user what will happen")
    print("  2. Ask the user to confirm")
    print("  3. Only after the user says yes, resubmit the prompt")
    print()
    print("Do NOT proceed without explicit user confirmation.")
    print(SEPARATOR)


def _inject_prd(project_root):
    resolver = Path(project_root) / PRD_RESOLVER_REL_PATH
    if not resolver.exists():
        return
    result = run_best_effort([str(resolver), "--inject"], cwd=project_root)
    print()
    if result.ok:
        if result.value:
            print(f"SOURCE OF TRUTH: Read CLAUDE.md first. {result.value}")
    else:
        print("WARNING: PRD injection failed.")


def _print_action(project_root, skill):
    if not skill.file or not (Path(project_root) / skill.file).exists():
        print()
        print(f"WARNING: Skill file not found: {skill.file}")
    elif skill.type == "agent":
        print(f"ACTION: Load agent instructions from {skill.file}")
    elif skill.type == "mode":
        print(f"ACTION: Follow orchestration mode in {skill.file}")
    else:
        print(f"ACTION: Reference {skill.file}")


def evaluate(prompt, ctx: EvaluationContext) -> int:
    """Gate one prompt. Returns 0 (proceed) or 2 (blocked)."""
    if not prompt or not prompt.strip() or ctx.skills is None:
        return EXIT_OK
    root = ctx.project_root

    match = find_magic_keyword(prompt, ctx.skills)
    if match is None:
        _suggest(prompt, ctx)
        return EXIT_OK

    skill = match.skill
    print(SEPARATOR)
    print(f"MAGIC KEYWORD: {match.keyword} → {skill.name}")
    print(SEPARATOR)

    # Confirmation policy unknown: do not let a dangerous keyword through.
    if ctx.config_error is not None:
        print(ctx.config_error.render(), file=sys.stderr)
        return EXIT_BLOCK

    if requires_confirmation(match.keyword, ctx.config):
        exc = ConfirmationRequiredError(match.keyword)
        _print_confirmation_block(exc)
        print(exc.render(), file=sys.stderr)
        return EXIT_BLOCK

    _inject_prd(root)
    _print_action(root, skill)
    if skill.enforcement == "require":
        print()
        print(f"BINDING: You MUST use {skill.name} ({skill.file}). This is a hard requirement.")
        print("Do NOT choose a different agent or skip these instructions.")

    memory = KEYWORD_MEMORY.get(match.keyword.removesuffix(":").lower())
    if memory:
        inject_memory(root, *memory)

    logged = log_activation(root, skill.name, match.keyword, prompt)
    if not logged.ok:
        print(f"[skill-gate] WARNING: activation not logged ({logged.error})", file=sys.stderr)
    print(SEPARATOR)
    return EXIT_OK


def _suggest(prompt, ctx):
    matches = match_keywords(prompt, ctx.skills)
    if matches:
        print(SEPARATOR)
        print("SKILL SUGGESTIONS:")
        for m in matches:
            print(f"  → {m.skill_name}({m.priority})")
        print()
        print("TIP: Use magic keywords for instant activation (e.g., fix: test: build:)")
        print(SEPARATOR)
    if _BUG_WORDS.search(prompt):
        inject_memory(ctx.project_root, *_MISTAKES)
    if _DECISION_WORDS.search(prompt):
        inject_memory(ctx.project_root, *_DECISIONS)


def run(argument=None, ctx: EvaluationContext | None = None) -> int:
    try:
        prompt = read_prompt(argument)
    except (OSError, UnicodeDecodeError, ValueError):
        print("[skill-gate] ERROR: Could not read stdin. Blocking for safety.", file=sys.stderr)
        return EXIT_BLOCK
    return evaluate(prompt, ctx or load_context())


def main():
    sys.exit(run(sys.argv[1] if len(sys.argv) > 1 else None))


if __name__ == "__main__":
    main()
