"""Skill catalog (skills/skill-rules.json) and prompt keyword matching."""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path

SKILLS_REL_PATH = "skills/skill-rules.json"

SKILL_TYPES = ("agent", "mode", "skill")
ENFORCEMENTS = ("require", "suggest")
PRIORITIES = ("high", "medium", "low")

# A trigger-keyword suggestion needs at least this many distinct hits.
MIN_KEYWORD_MATCHES = 2


@dataclass(frozen=True)
class Skill:
    name: str
    file: str
    type: str = "skill"
    enforcement: str = "suggest"
    priority: str = "medium"
    magic_keyword: str | None = None
    trigger_keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class SkillCatalog:
    # Insertion order is the file order; the first magic keyword match wins.
    skills: dict[str, Skill] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data) -> "SkillCatalog":
        raw_skills = data.get("skills") if isinstance(data, dict) else None
        if not isinstance(raw_skills, dict):
            return cls()
        skills = {}
        for name, raw in raw_skills.items():
            if not isinstance(raw, dict):
                continue
            triggers = raw.get("promptTriggers")
            keywords = triggers.get("keywords") if isinstance(triggers, dict) else None
            magic = raw.get("magicKeyword")
            skills[name] = Skill(
                name=name,
                file=raw.get("file") if isinstance(raw.get("file"), str) else "",
                type=str(raw.get("type", "skill")),
                enforcement=str(raw.get("enforcement", "suggest")),
                priority=str(raw.get("priority", "medium")),
                magic_keyword=magic if isinstance(magic, str) and magic else None,
                trigger_keywords=tuple(k for k in keywords if isinstance(k, str) and k)
                if isinstance(keywords, list)
                else (),
            )
        return cls(skills=skills)


@dataclass(frozen=True)
class MagicMatch:
    keyword: str
    skill: Skill


@dataclass(frozen=True)
class KeywordMatch:
    skill_name: str
    priority: str
    match_count: int


def load_skills(project_root: str | Path) -> SkillCatalog | None:
    """None when the catalog is missing, unreadable or not valid JSON."""
    try:
        raw = (Path(project_root) / SKILLS_REL_PATH).read_text(encoding="utf-8")
        data = json.loads(raw)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return None
    return SkillCatalog.from_dict(data)


def validate_skills(data) -> tuple[list[str], list[str]]:
    """(errors, warnings) for a parsed skill-rules.json document."""
    errors: list[str] = []
    warnings: list[str] = []
    skills = data.get("skills") if isinstance(data, dict) else None
    if not isinstance(skills, dict):
        errors.append("Missing required key: 'skills' (must be an object)")
        return errors, warnings

    for name, raw in skills.items():
        if not isinstance(raw, dict):
            errors.append(f"Skill '{name}' must be an object")
            continue
        if not isinstance(raw.get("file"), str) or not raw["file"]:
            errors.append(f"Skill '{name}' is missing required key: 'file'")
        for key, known in (("type", SKILL_TYPES), ("enforcement", ENFORCEMENTS), ("priority", PRIORITIES)):
            if key in raw and raw[key] not in known:
                warnings.append(
                    f"Skill '{name}' has unknown {key}: '{raw[key]}' (known: {', '.join(known)})"
                )
    return errors, warnings


def find_magic_keyword(prompt: str, catalog: SkillCatalog) -> MagicMatch | None:
    """Keyword at prompt start or after whitespace, followed by whitespace.

    'build: x' and 'please build: x' match; 'builder' and 'build the' do not.
    """
    for skill in catalog.skills.values():
        if not skill.magic_keyword:
            continue
        pattern = r"(^|\s)" + re.escape(skill.magic_keyword) + r"\s"
        if re.search(pattern, prompt, re.IGNORECASE):
            return MagicMatch(keyword=skill.magic_keyword, skill=skill)
    return None


def match_keywords(prompt: str, catalog: SkillCatalog) -> list[KeywordMatch]:
    matches = []
    for skill in catalog.skills.values():
        count = sum(
            1
            for kw in dict.fromkeys(k.lower() for k in skill.trigger_keywords)
            if re.search(r"\b" + re.escape(kw) + r"\b", prompt, re.IGNORECASE)
        )
        if count >= MIN_KEYWORD_MATCHES:
            matches.append(KeywordMatch(skill.name, skill.priority, count))
    # sorted() is stable: ties keep catalog order
    return sorted(matches, key=lambda m: m.match_count, reverse=True)
