"""Tests for per-event webhook handlers (no DB)."""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from skillsync.engines.identity.models import METHOD_EMAIL, UNMATCHED, MatchResult
from skillsync.engines.webhook import WebhookHandlers
from skillsync.engines.webhook.payloads import (
    InstallationEvent,
    InstallationRepositoriesEvent,
    MemberEvent,
    OrganizationEvent,
    PullRequestEvent,
    PushEvent,
    RepositoryEvent,
)
from skillsync.services import RateLimitError

COMPANY_ID = uuid.uuid4()

REPO = {
    "id": 10,
    "name": "api",
    "full_name": "acme/api",
    "owner": {"id": 900, "login": "acme"},
    "pushed_at": "2026-03-01T12:00:00Z",
}


def _installation():
    return SimpleNamespace(installation_id=77, company_id=COMPANY_ID)


def _employee(**kw):
    defaults = {"id": uuid.uuid4(), "github_username": "alice-gh", "email": "alice@acme.test"}
    defaults.update(kw)
    return SimpleNamespace(**defaults)


def _make(*, employee=None, client_factory=None, match=UNMATCHED):
    stored = SimpleNamespace(id=uuid.uuid4(), full_name="acme/api")

    installations = AsyncMock()
    repositories = AsyncMock()
    repositories.upsert_repository = AsyncMock(return_value=stored)
    repositories.recount_commits = AsyncMock(return_value=2)
    repositories.author_stats = AsyncMock(return_value=(2, None))
    repositories.delete_repository = AsyncMock(return_value=False)
    repositories.set_archived = AsyncMock(return_value=True)
    identities = AsyncMock()
    identities.find_employee_by_username = AsyncMock(return_value=employee)
    identities.deactivate_member = AsyncMock(return_value=True)
    matcher = AsyncMock()
    matcher.match_identity = AsyncMock(return_value=match)

    handlers = WebhookHandlers(
        installations, repositories, identities, matcher, client_factory=client_factory
    )
    return SimpleNamespace(
        handlers=handlers,
        stored=stored,
        installations=installations,
        repositories=repositories,
        identities=identities,
        matcher=matcher,
    )


def _push(**overrides) -> PushEvent:
    payload = {
        "ref": "refs/heads/main",
        "installation": {"id": 77},
        "sender": {"id": 1, "login": "alice-gh"},
        "repository": REPO,
        "commits": [
            {
                "id": "aaa",
                "message": "add endpoint",
                "timestamp": "2026-03-01T11:00:00Z",
                "author": {"name": "Alice", "email": "alice@acme.test", "username": "alice-gh"},
                "added": ["app.py"],
                "modified": ["app.py", "README.md"],
            },
            {"id": "bbb", "message": "tests"},
        ],
    }
    payload.update(overrides)
    return PushEvent.model_validate(payload)


# ── installation lifecycle ────────────────────────────────────────────────


class TestInstallation:
    @pytest.mark.asyncio
    async def test_deleted_deactivates(self):
        h = _make()
        event = InstallationEvent.model_validate({"action": "deleted", "installation": {"id": 77}})
        await h.handlers.installation(AsyncMock(), _installation(), event)
        h.installations.deactivate.assert_awaited_once()
        assert h.installations.deactivate.await_args.kwargs == {"suspended": False}

    @pytest.mark.asyncio
    async def test_suspend_marks_suspended(self):
        h = _make()
        event = InstallationEvent.model_validate({"action": "suspend", "installation": {"id": 77}})
        await h.handlers.installation(AsyncMock(), _installation(), event)
        assert h.installations.deactivate.await_args.kwargs == {"suspended": True}

    @pytest.mark.asyncio
    async def test_unsuspend_activates(self):
        h = _make()
        event = InstallationEvent.model_validate(
            {"action": "unsuspend", "installation": {"id": 77}}
        )
        await h.handlers.installation(AsyncMock(), _installation(), event)
        h.installations.activate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unclaimed_installation_is_ignored(self):
        h = _make()
        event = InstallationEvent.model_validate({"action": "created", "installation": {"id": 5}})
        await h.handlers.installation(AsyncMock(), None, event)
        h.installations.activate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_repositories_added_and_removed(self):
        h = _make()
        event = InstallationRepositoriesEvent.model_validate(
            {
                "action": "added",
                "installation": {"id": 77},
                "repositories_added": [
                    {"id": 11, "name": "web", "full_name": "acme/web", "private": True}
                ],
                "repositories_removed": [{"id": 12, "name": "old", "full_name": "acme/old"}],
            }
        )
        await h.handlers.installation_repositories(AsyncMock(), _installation(), event)

        values = h.repositories.upsert_repository.await_args.args[1]
        assert values["github_repo_id"] == 11
        assert values["owner_login"] == "acme"
        assert values["visibility"] == "private"
        assert values["company_id"] == COMPANY_ID
        h.repositories.delete_repository.assert_awaited_once()


class TestRepository:
    @pytest.mark.asyncio
    async def test_deleted_unknown_repository_is_a_no_op(self):
        h = _make()
        event = RepositoryEvent.model_validate({"action": "deleted", "repository": REPO})
        await h.handlers.repository(AsyncMock(), _installation(), event)
        h.repositories.delete_repository.assert_awaited_once()
        h.repositories.upsert_repository.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_archived(self):
        h = _make()
        event = RepositoryEvent.model_validate({"action": "archived", "repository": REPO})
        await h.handlers.repository(AsyncMock(), _installation(), event)
        assert h.repositories.set_archived.await_args.args[1:] == (10, True)

    @pytest.mark.asyncio
    async def test_renamed_upserts(self):
        h = _make()
        event = RepositoryEvent.model_validate({"action": "renamed", "repository": REPO})
        await h.handlers.repository(AsyncMock(), _installation(), event)
        values = h.repositories.upsert_repository.await_args.args[1]
        assert values["full_name"] == "acme/api"
        assert values["company_id"] == COMPANY_ID


# ── contributions ─────────────────────────────────────────────────────────


class TestPush:
    @pytest.mark.asyncio
    async def test_upserts_commits_and_links_pusher(self):
        alice = _employee()
        h = _make(employee=alice)

        touched = await h.handlers.push(AsyncMock(), _installation(), _push())

        assert h.repositories.upsert_commit.await_count == 2
        first = h.repositories.upsert_commit.await_args_list[0]
        assert first.args[1:] == (h.stored.id, "aaa")
        assert first.kwargs["author_login"] == "alice-gh"
        assert first.kwargs["files_changed"] == 2
        h.repositories.recount_commits.assert_awaited_once()
        h.repositories.link_employee.assert_awaited_once()
        assert h.repositories.link_employee.await_args.kwargs["commit_count"] == 2
        assert touched == {alice.id}

    @pytest.mark.asyncio
    async def test_unknown_pusher_only_stores_commits(self):
        h = _make(employee=None)

        touched = await h.handlers.push(AsyncMock(), _installation(), _push())

        assert h.repositories.upsert_commit.await_count == 2
        h.repositories.link_employee.assert_not_awaited()
        assert touched == set()

    @pytest.mark.asyncio
    async def test_pusher_falls_back_to_pusher_name(self):
        h = _make(employee=_employee())
        event = _push(sender=None, pusher={"name": "alice-gh"})

        await h.handlers.push(AsyncMock(), _installation(), event)

        assert h.identities.find_employee_by_username.await_args.args[1:] == (
            COMPANY_ID,
            "alice-gh",
        )

    @pytest.mark.asyncio
    async def test_without_installation_nothing_is_written(self):
        h = _make(employee=_employee())
        assert await h.handlers.push(AsyncMock(), None, _push()) == set()
        h.repositories.upsert_repository.assert_not_awaited()
        h.repositories.upsert_commit.assert_not_awaited()


class TestPullRequest:
    def _event(self, action: str, merged: bool) -> PullRequestEvent:
        return PullRequestEvent.model_validate(
            {
                "action": action,
                "number": 5,
                "installation": {"id": 77},
                "repository": REPO,
                "pull_request": {
                    "id": 555,
                    "number": 5,
                    "title": "Add endpoint",
                    "state": "closed" if action == "closed" else "open",
                    "merged": merged,
                    "user": {"id": 1, "login": "alice-gh"},
                    "additions": 40,
                },
            }
        )

    @pytest.mark.asyncio
    async def test_merged_links_author(self):
        alice = _employee()
        h = _make(employee=alice)

        touched = await h.handlers.pull_request(
            AsyncMock(), _installation(), self._event("closed", True)
        )

        call = h.repositories.upsert_pull_request.await_args
        assert call.args[1:] == (h.stored.id, 5)
        assert call.kwargs["merged"] is True
        assert call.kwargs["additions"] == 40
        assert touched == {alice.id}

    @pytest.mark.asyncio
    async def test_opened_only_stores(self):
        h = _make(employee=_employee())
        touched = await h.handlers.pull_request(
            AsyncMock(), _installation(), self._event("opened", False)
        )
        h.repositories.upsert_pull_request.assert_awaited_once()
        assert touched == set()
        h.repositories.link_employee.assert_not_awaited()


# ── membership ────────────────────────────────────────────────────────────


class TestMembership:
    @pytest.mark.asyncio
    async def test_member_added_matches_with_profile(self):
        client = AsyncMock()
        client.get = AsyncMock(
            return_value={"id": 1, "login": "alice-gh", "name": "Alice Smith", "email": None}
        )
        factory = AsyncMock(return_value=client)
        h = _make(client_factory=factory)
        event = MemberEvent.model_validate(
            {
                "action": "added",
                "installation": {"id": 77},
                "member": {"id": 1, "login": "alice-gh"},
            }
        )

        await h.handlers.member(AsyncMock(), _installation(), event)

        factory.assert_awaited_once_with(77)
        client.get.assert_awaited_once_with("/users/alice-gh")
        session, company_id, identity, passed_client = h.matcher.match_identity.await_args.args
        assert company_id == COMPANY_ID
        assert identity.github_user_id == 1
        assert identity.name == "Alice Smith"
        assert passed_client is client
        client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_profile_failure_still_matches_with_payload(self):
        client = AsyncMock()
        client.get = AsyncMock(side_effect=RuntimeError("boom"))
        h = _make(client_factory=AsyncMock(return_value=client))
        event = MemberEvent.model_validate(
            {"action": "added", "member": {"id": 1, "login": "alice-gh"}}
        )

        await h.handlers.member(AsyncMock(), _installation(), event)

        identity = h.matcher.match_identity.await_args.args[2]
        assert identity.login == "alice-gh"
        client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rate_limit_propagates(self):
        client = AsyncMock()
        client.get = AsyncMock(side_effect=RateLimitError(30))
        h = _make(client_factory=AsyncMock(return_value=client))
        event = MemberEvent.model_validate(
            {"action": "added", "member": {"id": 1, "login": "alice-gh"}}
        )

        with pytest.raises(RateLimitError):
            await h.handlers.member(AsyncMock(), _installation(), event)
        client.close.assert_awaited_once()
        h.matcher.match_identity.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_member_removed_is_ignored(self):
        h = _make()
        event = MemberEvent.model_validate(
            {"action": "removed", "member": {"id": 1, "login": "alice-gh"}}
        )
        await h.handlers.member(AsyncMock(), _installation(), event)
        h.matcher.match_identity.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_organization_member_removed_deactivates(self):
        h = _make()
        event = OrganizationEvent.model_validate(
            {
                "action": "member_removed",
                "installation": {"id": 77},
                "membership": {"user": {"id": 1, "login": "alice-gh"}, "role": "member"},
            }
        )
        await h.handlers.organization(AsyncMock(), _installation(), event)
        assert h.identities.deactivate_member.await_args.args[1:] == (COMPANY_ID, 1)

    @pytest.mark.asyncio
    async def test_organization_member_added_keeps_role(self):
        h = _make()
        event = OrganizationEvent.model_validate(
            {
                "action": "member_added",
                "membership": {"user": {"id": 2, "login": "bob"}, "role": "admin"},
            }
        )
        await h.handlers.organization(AsyncMock(), _installation(), event)
        identity = h.matcher.match_identity.await_args.args[2]
        assert identity.org_role == "admin"
        assert h.matcher.match_identity.await_args.args[3] is None

    @pytest.mark.asyncio
    async def test_new_link_is_returned_for_inference(self):
        employee_id = uuid.uuid4()
        h = _make(match=MatchResult(employee_id, 0.95, METHOD_EMAIL, linked=True))
        event = MemberEvent.model_validate(
            {"action": "added", "member": {"id": 1, "login": "alice-gh"}}
        )

        assert await h.handlers.member(AsyncMock(), _installation(), event) == {employee_id}

    @pytest.mark.asyncio
    async def test_kept_link_is_not_returned(self):
        h = _make(match=MatchResult(uuid.uuid4(), 0.95, METHOD_EMAIL))
        event = OrganizationEvent.model_validate(
            {
                "action": "member_added",
                "membership": {"user": {"id": 2, "login": "bob"}, "role": "member"},
            }
        )

        assert await h.handlers.organization(AsyncMock(), _installation(), event) == set()
