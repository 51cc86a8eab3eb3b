"""Skill inference engine — levels and confidence from aggregated contributions."""

from skillsync.engines.skill_inference.engine import INFERENCE_SOURCE, SkillInferenceEngine
from skillsync.engines.skill_inference.models import (
    InferenceResult,
    InferredSkill,
    RepoContribution,
    SkillAggregate,
)
from skillsync.engines.skill_inference.queue import InferenceQueue
from skillsync.engines.skill_inference.runner import InferenceRunner
from skillsync.engines.skill_inference.scoring import (
    aggregate,
    compute_confidence,
    compute_level,
)

__all__ = [
    "INFERENCE_SOURCE",
    "InferenceQueue",
    "InferenceResult",
    "InferenceRunner",
    "InferredSkill",
    "RepoContribution",
    "SkillAggregate",
    "SkillInferenceEngine",
    "aggregate",
    "compute_confidence",
    "compute_level",
]
