"""Skills router — an employee's skill profile."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.api.deps import (
    get_current_actor,
    get_identity_service,
    get_session,
    get_skill_service,
)
from skillsync.api.schemas.skill import SkillRecordItem
from skillsync.services import NotFoundError
from skillsync.services.auth_service import Actor
from skillsync.services.identity_service import IdentityService
from skillsync.services.skill_service import SkillService

router = APIRouter()


@router.get("/{employee_id}/skills", response_model=list[SkillRecordItem])
async def list_employee_skills(
    employee_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
    identities: IdentityService = Depends(get_identity_service),
    svc: SkillService = Depends(get_skill_service),
) -> list[SkillRecordItem]:
    employee = await identities.get_employee(session, employee_id)
    if employee.company_id != actor.company_id:
        raise NotFoundError("employee not found")
    return [SkillRecordItem(**row) for row in await svc.list_for_employee(session, employee_id)]
