"""Project discovery and the per-invocation evaluation context.

Every command builds one EvaluationContext up front and hands it to the
evaluator. Nothing is cached between invocations: the files on disk are the
source of truth for each decision.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from harness_guard.config import CONFIG_FILENAME, HarnessConfig, load_config
from harness_guard.errors import ConfigError
from harness_guard.rules import ArchRules, load_rules
from harness_guard.skills import SkillCatalog, load_skills

ROOT_ENV_VAR = "HARNESS_ROOT"
_MAX_WALK_UP = 20


def find_project_root(start_dir: str | Path | None = None) -> Path:
    """HARNESS_ROOT, else the nearest ancestor holding CLAUDE.md and the config, else cwd."""
    env_root = os.environ.get(ROOT_ENV_VAR)
    if env_root:
        return Path(env_root)
    cwd = Path.cwd()
    directory = Path(start_dir) if start_dir else cwd
    directory = directory.absolute()
    for _ in range(_MAX_WALK_UP):
        if (directory / "CLAUDE.md").exists() and (directory / CONFIG_FILENAME).exists():
            return directory
        if directory.parent == directory:
            break
        directory = directory.parent
    return cwd


def find_repo_root(project_root: str | Path) -> Path:
    """Parent directory when the harness lives nested under <repo>/.harness/."""
    project_root = Path(project_root)
    parent = project_root.absolute().parent
    if (parent / ".harness").exists() and (parent / "CLAUDE.md").exists():
        return parent
    return project_root


@dataclass(frozen=True)
class EvaluationContext:
    project_root: Path
    repo_root: Path
    config: HarnessConfig | None = None
    rules: ArchRules | None = None
    skills: SkillCatalog | None = None
    # Set when harness.config.json exists but cannot be parsed.
    config_error: ConfigError | None = None


def load_context(project_root: str | Path | None = None) -> EvaluationContext:
    root = Path(project_root) if project_root else find_project_root()
    config = None
    config_error = None
    try:
        raw = load_config(root)
    except ConfigError as exc:
        config_error = exc
    else:
        if raw is not None:
            config = HarnessConfig.from_dict(raw)
    return EvaluationContext(
        project_root=root,
        repo_root=find_repo_root(root),
        config=config,
        rules=load_rules(root),
        skills=load_skills(root),
        config_error=config_error,
    )
