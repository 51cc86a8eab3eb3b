"""SQLAlchemy ORM models — one file per table."""

from skillsync.models.commit import Commit
from skillsync.models.company import Company
from skillsync.models.employee import Employee
from skillsync.models.employee_repository import EmployeeRepository
from skillsync.models.github_connection import GitHubConnection
from skillsync.models.github_installation import GitHubInstallation
from skillsync.models.organization_member import OrganizationMember
from skillsync.models.pull_request import PullRequest
from skillsync.models.repository import Repository
from skillsync.models.skill import Skill
from skillsync.models.skill_record import SkillRecord
from skillsync.models.sync_lock import SyncLock
from skillsync.models.webhook_event import WebhookEvent

__all__ = [
    "Company",
    "Employee",
    "GitHubInstallation",
    "GitHubConnection",
    "Repository",
    "EmployeeRepository",
    "Commit",
    "PullRequest",
    "OrganizationMember",
    "Skill",
    "SkillRecord",
    "WebhookEvent",
    "SyncLock",
]
