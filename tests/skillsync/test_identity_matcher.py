"""Tests for identity resolution strategies and the matcher (no DB)."""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest

from skillsync.engines.github.client import GitHubClient
from skillsync.engines.identity import (
    CommitEmailStrategy,
    EmailStrategy,
    ExternalIdentity,
    IdentityMatcher,
    MatchContext,
    MatchStrategy,
    NameStrategy,
    identity_from_profile,
)
from skillsync.engines.identity.strategies import split_display_name
from skillsync.engines.skill_inference.queue import InferenceQueue
from skillsync.services import NotFoundError, RateLimitError

COMPANY_ID = uuid.uuid4()


def _employee(**overrides) -> SimpleNamespace:
    defaults = {
        "id": uuid.uuid4(),
        "company_id": COMPANY_ID,
        "email": "alice@acme.test",
        "first_name": "Alice",
        "last_name": "Liddell",
        "github_username": None,
        "github_user_id": None,
    }
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def _member(**overrides) -> SimpleNamespace:
    defaults = {
        "id": uuid.uuid4(),
        "github_user_id": 42,
        "github_username": "alice-gh",
        "employee_id": None,
        "match_confidence": 0.0,
        "match_method": None,
    }
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def _identity(**overrides) -> ExternalIdentity:
    defaults = {
        "github_user_id": 42,
        "login": "alice-gh",
        "email": "alice@acme.test",
        "name": "Alice Liddell",
    }
    defaults.update(overrides)
    return ExternalIdentity(**defaults)


def _identity_service(member=None, *, by_email=None, by_name=None) -> AsyncMock:
    svc = AsyncMock()
    svc.upsert_member = AsyncMock(return_value=member or _member())
    svc.find_employee_by_email = AsyncMock(return_value=by_email)
    svc.find_employee_by_name = AsyncMock(return_value=by_name)
    return svc


class _Fixed(MatchStrategy):
    def __init__(self, method: str, confidence: float, result=None, error=None) -> None:
        self.method = method
        self.confidence = confidence
        self._result = result
        self._error = error
        self.calls = 0

    async def attempt(self, session, ctx):
        self.calls += 1
        if self._error is not None:
            raise self._error
        return self._result


def _matcher(identity_service, strategies=None, queue=None, engine=None) -> IdentityMatcher:
    return IdentityMatcher(
        identity_service,
        AsyncMock(),
        queue if queue is not None else InferenceQueue(),
        engine or AsyncMock(),
        strategies=strategies,
    )


# ── helpers ───────────────────────────────────────────────────────────────


class TestHelpers:
    def test_split_display_name(self):
        assert split_display_name("Alice Pleasance Liddell") == ("Alice", "Liddell")
        assert split_display_name("  Alice   Liddell ") == ("Alice", "Liddell")
        assert split_display_name("Alice") is None
        assert split_display_name(None) is None

    def test_identity_from_profile(self):
        identity = identity_from_profile(
            {"id": "7", "login": "bob", "email": None, "name": "Bob B"}, org_role="admin"
        )
        assert identity.github_user_id == 7
        assert identity.login == "bob"
        assert identity.email is None
        assert identity.org_role == "admin"


# ── strategies ────────────────────────────────────────────────────────────


class TestStrategies:
    @pytest.mark.asyncio
    async def test_email_strategy_skips_blank_email(self):
        svc = _identity_service()
        ctx = MatchContext(COMPANY_ID, _identity(email="  "))
        assert await EmailStrategy(svc).attempt(AsyncMock(), ctx) is None
        svc.find_employee_by_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_name_strategy_uses_first_and_last_tokens(self):
        employee = _employee()
        svc = _identity_service(by_name=employee)
        ctx = MatchContext(COMPANY_ID, _identity(name="Alice P. Liddell"))
        assert await NameStrategy(svc).attempt(AsyncMock(), ctx) is employee
        svc.find_employee_by_name.assert_awaited_once()
        assert svc.find_employee_by_name.await_args.args[2:] == ("Alice", "Liddell")

    @pytest.mark.asyncio
    async def test_commit_email_skips_inaccessible_repository(self):
        employee = _employee(email="alice@work.test")
        svc = AsyncMock()
        svc.find_employee_by_email = AsyncMock(
            side_effect=lambda session, company_id, email: (
                employee if email == "alice@work.test" else None
            )
        )
        repos = AsyncMock()
        repos.sample_full_names = AsyncMock(return_value=["acme/private", "acme/api"])

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/repos/acme/private/commits":
                return httpx.Response(404, json={"message": "Not Found"})
            assert request.url.params["author"] == "alice-gh"
            return httpx.Response(
                200,
                json=[
                    {"commit": {"author": {"email": "ALICE@work.test"}}},
                    {"commit": {"author": {"email": "alice@work.test"}}},
                ],
            )

        client = GitHubClient(
            "tok", base_url="https://api.test", transport=httpx.MockTransport(handler)
        )
        async with client:
            ctx = MatchContext(COMPANY_ID, _identity(email=None), client)
            strategy = CommitEmailStrategy(svc, repos)
            assert await strategy.collect_emails(AsyncMock(), ctx) == ["alice@work.test"]
            assert await strategy.attempt(AsyncMock(), ctx) is employee

    @pytest.mark.asyncio
    async def test_commit_email_without_client_finds_nothing(self):
        strategy = CommitEmailStrategy(_identity_service(), AsyncMock())
        ctx = MatchContext(COMPANY_ID, _identity())
        assert await strategy.attempt(AsyncMock(), ctx) is None


# ── matcher ───────────────────────────────────────────────────────────────


class TestMatchIdentity:
    @pytest.mark.asyncio
    async def test_email_takes_precedence_over_name(self, fake_session_factory):
        by_email = _employee()
        by_name = _employee(email="other@acme.test")
        svc = _identity_service(by_email=by_email, by_name=by_name)
        queue = InferenceQueue()
        matcher = _matcher(svc, [EmailStrategy(svc), NameStrategy(svc)], queue=queue)

        result = await matcher.match_identity(fake_session_factory(), COMPANY_ID, _identity())

        assert result.employee_id == by_email.id
        assert result.method == "email"
        assert result.confidence == 0.95
        svc.find_employee_by_name.assert_not_awaited()
        kwargs = svc.record_match.await_args.kwargs
        assert kwargs == {"confidence": 0.95, "method": "email"}
        assert result.linked is True
        # queued by the caller once its transaction commits
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_falls_through_to_name(self, fake_session_factory):
        employee = _employee()
        svc = _identity_service(by_email=None, by_name=employee)
        matcher = _matcher(svc, [EmailStrategy(svc), NameStrategy(svc)])

        result = await matcher.match_identity(fake_session_factory(), COMPANY_ID, _identity())

        assert (result.employee_id, result.method, result.confidence) == (
            employee.id,
            "name",
            0.75,
        )

    @pytest.mark.asyncio
    async def test_manual_link_is_never_downgraded(self, fake_session_factory):
        linked = uuid.uuid4()
        member = _member(employee_id=linked, match_confidence=1.0, match_method="manual")
        svc = _identity_service(member)
        strategy = _Fixed("email", 0.95, result=_employee())
        matcher = _matcher(svc, [strategy])

        result = await matcher.match_identity(fake_session_factory(), COMPANY_ID, _identity())

        assert (result.employee_id, result.confidence, result.method) == (linked, 1.0, "manual")
        assert strategy.calls == 0
        svc.record_match.assert_not_awaited()
        svc.upsert_member.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_strategy_failure_degrades_to_next(self, fake_session_factory):
        employee = _employee()
        svc = _identity_service()
        broken = _Fixed("email", 0.95, error=RuntimeError("db hiccup"))
        working = _Fixed("commit_email", 0.60, result=employee)
        matcher = _matcher(svc, [broken, working])
        session = fake_session_factory()

        result = await matcher.match_identity(session, COMPANY_ID, _identity())

        assert result.method == "commit_email"
        assert result.employee_id == employee.id
        # the failed lookup is rolled back to its savepoint; the next one commits
        assert (session.rollbacks, session.commits) == (1, 1)
        svc.record_match.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_candidate_linked_to_other_account_is_skipped(self, fake_session_factory):
        taken = _employee(github_user_id=999)
        svc = _identity_service()
        matcher = _matcher(svc, [_Fixed("email", 0.95, result=taken)])

        result = await matcher.match_identity(fake_session_factory(), COMPANY_ID, _identity())

        assert result.matched is False
        svc.record_match.assert_not_awaited()
        svc.record_unmatched.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unmatched_keeps_existing_automatic_link(self, fake_session_factory):
        linked = uuid.uuid4()
        member = _member(employee_id=linked, match_confidence=0.75, match_method="name")
        svc = _identity_service(member)
        matcher = _matcher(svc, [_Fixed("email", 0.95)])

        result = await matcher.match_identity(fake_session_factory(), COMPANY_ID, _identity())

        assert (result.employee_id, result.method) == (linked, "name")
        assert result.linked is False
        svc.record_unmatched.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_match_records_unmatched(self, fake_session_factory):
        svc = _identity_service()
        queue = InferenceQueue()
        matcher = _matcher(svc, [_Fixed("email", 0.95)], queue=queue)

        result = await matcher.match_identity(fake_session_factory(), COMPANY_ID, _identity())

        assert result.matched is False
        assert result.confidence == 0.0
        svc.record_unmatched.assert_awaited_once()
        assert len(queue) == 0


class TestManualLink:
    @pytest.mark.asyncio
    async def test_links_and_infers_immediately(self):
        employee = _employee()
        member = _member()
        svc = _identity_service(member)
        svc.get_member = AsyncMock(return_value=member)
        svc.get_employee = AsyncMock(return_value=employee)
        engine = AsyncMock()
        queue = InferenceQueue()
        matcher = _matcher(svc, queue=queue, engine=engine)

        result = await matcher.manual_link(AsyncMock(), COMPANY_ID, 42, employee.id)

        assert (result.employee_id, result.confidence, result.method) == (
            employee.id,
            1.0,
            "manual",
        )
        assert svc.record_match.await_args.kwargs == {"confidence": 1.0, "method": "manual"}
        engine.infer_skills.assert_awaited_once()
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_unknown_member(self):
        svc = _identity_service()
        svc.get_member = AsyncMock(return_value=None)
        matcher = _matcher(svc)
        with pytest.raises(NotFoundError):
            await matcher.manual_link(AsyncMock(), COMPANY_ID, 42, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_employee_from_another_company(self):
        svc = _identity_service()
        svc.get_member = AsyncMock(return_value=_member())
        svc.get_employee = AsyncMock(return_value=_employee(company_id=uuid.uuid4()))
        matcher = _matcher(svc)
        with pytest.raises(NotFoundError):
            await matcher.manual_link(AsyncMock(), COMPANY_ID, 42, uuid.uuid4())
        svc.record_match.assert_not_awaited()


# ── discovery ─────────────────────────────────────────────────────────────


class TestDiscoverMembers:
    @pytest.mark.asyncio
    async def test_scans_every_member(self, fake_session_factory):
        alice = _employee()
        svc = _identity_service()
        svc.upsert_member = AsyncMock(
            side_effect=lambda session, **kw: _member(
                github_user_id=kw["github_user_id"], github_username=kw["github_username"]
            )
        )
        svc.find_employee_by_email = AsyncMock(
            side_effect=lambda session, company_id, email: (
                alice if email == "alice@acme.test" else None
            )
        )
        queue = InferenceQueue()
        matcher = _matcher(svc, [EmailStrategy(svc)], queue=queue)

        profiles = {
            "alice-gh": {"id": 1, "login": "alice-gh", "email": "alice@acme.test"},
            "bob-gh": {"id": 2, "login": "bob-gh", "email": None},
        }

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/orgs/acme/members":
                members = [{"login": "alice-gh"}, {"login": "bob-gh"}, {"login": "gone"}]
                return httpx.Response(200, json=members)
            login = request.url.path.rsplit("/", 1)[-1]
            if login in profiles:
                return httpx.Response(200, json=profiles[login])
            return httpx.Response(404, json={"message": "Not Found"})

        client = GitHubClient(
            "tok", base_url="https://api.test", transport=httpx.MockTransport(handler)
        )
        async with client:
            result = await matcher.discover_members(
                fake_session_factory, COMPANY_ID, "acme", client
            )

        assert result.discovered == 3
        assert result.matched == 1
        assert result.unmatched == 1
        assert len(result.errors) == 1
        assert result.errors[0].startswith("gone:")
        assert queue.drain() == [alice.id]
        assert all(s.rollbacks == 0 for s in fake_session_factory.sessions)

    @pytest.mark.asyncio
    async def test_rate_limit_aborts_scan(self, fake_session_factory):
        matcher = _matcher(_identity_service(), [])

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/orgs/acme/members":
                return httpx.Response(200, json=[{"login": "alice-gh"}])
            return httpx.Response(429, headers={"Retry-After": "30"})

        client = GitHubClient(
            "tok", base_url="https://api.test", transport=httpx.MockTransport(handler)
        )
        async with client:
            with pytest.raises(RateLimitError):
                await matcher.discover_members(fake_session_factory, COMPANY_ID, "acme", client)

    @pytest.mark.asyncio
    async def test_member_failure_queues_nothing(self, fake_session_factory):
        svc = _identity_service(by_email=_employee())
        svc.record_match = AsyncMock(side_effect=RuntimeError("deadlock detected"))
        queue = InferenceQueue()
        matcher = _matcher(svc, [EmailStrategy(svc)], queue=queue)

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/orgs/acme/members":
                return httpx.Response(200, json=[{"login": "alice-gh"}])
            return httpx.Response(200, json={"id": 1, "login": "alice-gh", "email": "a@acme.test"})

        client = GitHubClient(
            "tok", base_url="https://api.test", transport=httpx.MockTransport(handler)
        )
        async with client:
            result = await matcher.discover_members(
                fake_session_factory, COMPANY_ID, "acme", client
            )

        assert result.errors == ["alice-gh: deadlock detected"]
        assert len(queue) == 0
        assert fake_session_factory.sessions[0].rollbacks >= 1
