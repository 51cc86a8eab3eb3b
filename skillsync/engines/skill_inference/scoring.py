"""Skill level and confidence derived purely from contribution metrics."""

from __future__ import annotations

from datetime import datetime

from skillsync.engines.skill_inference.models import (
    CATEGORY_FRAMEWORK,
    CATEGORY_LANGUAGE,
    RepoContribution,
    SkillAggregate,
)

# bytes per line, a rough proxy
BYTES_PER_LINE = 50

LEVEL_BEGINNER = "beginner"
LEVEL_INTERMEDIATE = "intermediate"
LEVEL_ADVANCED = "advanced"
LEVEL_EXPERT = "expert"

# (level, lines_of_code must exceed, repositories must exceed), highest first
_LEVEL_THRESHOLDS = (
    (LEVEL_EXPERT, 10_000, 10),
    (LEVEL_ADVANCED, 5_000, 5),
    (LEVEL_INTERMEDIATE, 1_000, 2),
)


def compute_level(lines_of_code: int, repositories: int) -> str:
    """First satisfied threshold wins; both gates must pass."""
    for level, min_lines, min_repos in _LEVEL_THRESHOLDS:
        if lines_of_code > min_lines and repositories > min_repos:
            return level
    return LEVEL_BEGINNER


def compute_confidence(lines_of_code: int, repositories: int, commits: int) -> float:
    """Weighted activity score clamped to [0, 1].

    Terms are not capped individually, so one dominant factor can saturate
    the result on its own.
    """
    score = (
        0.4 * (lines_of_code / 10_000)
        + 0.3 * (repositories / 10)
        + 0.3 * (commits / 100)
    )
    return max(0.0, min(1.0, score))


def _later(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


def aggregate(contributions: list[RepoContribution]) -> dict[str, SkillAggregate]:
    """Fold per-repository contributions into per-skill totals.

    Language bytes are attributed by contribution ratio; frameworks receive
    the repository's total attributed bytes. Keys are lowercased skill names.
    """
    skills: dict[str, SkillAggregate] = {}

    def _add(name: str, category, lines: int, contrib: RepoContribution) -> None:
        key = name.lower()
        agg = skills.get(key)
        if agg is None:
            agg = skills[key] = SkillAggregate(name=name, category=category)
        agg.lines_of_code += lines
        agg.commits += contrib.employee_commits
        agg.repositories += 1
        agg.last_used_at = _later(agg.last_used_at, contrib.last_activity_at)

    for contrib in contributions:
        if contrib.employee_commits <= 0:
            continue
        ratio = contrib.ratio
        attributed_total = 0.0
        for language, size in contrib.languages.items():
            attributed = size * ratio
            attributed_total += attributed
            _add(language, CATEGORY_LANGUAGE, round(attributed / BYTES_PER_LINE), contrib)
        for framework in dict.fromkeys(contrib.frameworks):
            _add(framework, CATEGORY_FRAMEWORK, round(attributed_total / BYTES_PER_LINE), contrib)

    return skills
