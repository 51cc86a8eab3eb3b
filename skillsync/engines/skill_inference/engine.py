"""SkillInferenceEngine — recompute an employee's skill records from stored activity."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.engines.skill_inference.models import (
    InferenceResult,
    InferredSkill,
    RepoContribution,
)
from skillsync.engines.skill_inference.scoring import (
    aggregate,
    compute_confidence,
    compute_level,
)
from skillsync.services.identity_service import IdentityService
from skillsync.services.repository_service import RepositoryService
from skillsync.services.skill_service import SkillService

log = structlog.get_logger("skillsync.engine")

INFERENCE_SOURCE = "github_inference"


class SkillInferenceEngine:
    def __init__(
        self,
        identity_service: IdentityService,
        repository_service: RepositoryService,
        skill_service: SkillService,
    ) -> None:
        self._identity_service = identity_service
        self._repository_service = repository_service
        self._skill_service = skill_service

    async def collect_contributions(
        self,
        session: AsyncSession,
        employee_id: uuid.UUID,
        company_id: uuid.UUID | None = None,
    ) -> list[RepoContribution]:
        """Read each associated repository with the employee's commit share."""
        employee = await self._identity_service.get_employee(session, employee_id)
        repos = await self._repository_service.list_for_employee(session, employee_id, company_id)

        contributions = []
        for repo in repos:
            own, last_commit_at = await self._repository_service.author_stats(
                session, repo.id, login=employee.github_username, email=employee.email
            )
            if own == 0:
                continue
            total = await self._repository_service.count_commits(session, repo.id)
            contributions.append(
                RepoContribution(
                    full_name=repo.full_name,
                    languages=dict(repo.languages or {}),
                    frameworks=list(repo.frameworks or []),
                    employee_commits=own,
                    total_commits=max(total, own),
                    last_activity_at=last_commit_at or repo.last_activity_at,
                )
            )
        return contributions

    async def infer_skills(
        self,
        session: AsyncSession,
        employee_id: uuid.UUID,
        company_id: uuid.UUID | None = None,
    ) -> InferenceResult:
        """Fully recompute the employee's auto-detected skill records.

        Manual records are left untouched; auto-detected records for skills
        that are no longer observed are removed.
        Raises :class:`NotFoundError` if the employee does not exist.
        """
        result = InferenceResult(employee_id=employee_id)
        contributions = await self.collect_contributions(session, employee_id, company_id)
        totals = aggregate(contributions)

        keep: list[uuid.UUID] = []
        for agg in totals.values():
            inferred = InferredSkill(
                name=agg.name,
                category=agg.category,
                level=compute_level(agg.lines_of_code, agg.repositories),
                confidence=compute_confidence(agg.lines_of_code, agg.repositories, agg.commits),
                lines_of_code=agg.lines_of_code,
                commits=agg.commits,
                repositories=agg.repositories,
                last_used_at=agg.last_used_at,
            )
            result.skills.append(inferred)

            skill = await self._skill_service.ensure_skill(session, agg.name, agg.category)
            keep.append(skill.id)
            written = await self._skill_service.upsert_auto_record(
                session,
                employee_id,
                skill.id,
                level=inferred.level,
                confidence=inferred.confidence,
                lines_of_code=inferred.lines_of_code,
                commit_count=inferred.commits,
                projects_used=inferred.repositories,
                last_used_at=inferred.last_used_at,
                source=INFERENCE_SOURCE,
            )
            if written:
                result.written += 1
            else:
                result.skipped_manual += 1

        result.pruned = await self._skill_service.prune_auto_records(session, employee_id, keep)
        log.info(
            "inference.done",
            employee_id=str(employee_id),
            repositories=len(contributions),
            skills=len(result.skills),
            written=result.written,
            skipped_manual=result.skipped_manual,
            pruned=result.pruned,
        )
        return result
