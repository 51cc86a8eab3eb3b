"""CLI entry point: skillsync.

Subcommands:
    skillsync install 123456 <company-id> acme          # Register an App installation
    skillsync sync <company-id> --mode full              # Organization sync
    skillsync sync <company-id> --employee <employee-id> # Individual sync
    skillsync discover <company-id>                      # Organization member scan
    skillsync infer <employee-id>                        # Recompute one skill profile
    skillsync serve --port 8000                          # Run the API server
"""

from __future__ import annotations

import asyncio
import json
import uuid

import click
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skillsync.core.logging import setup_logging


def _session_factory() -> async_sessionmaker[AsyncSession]:
    from skillsync.api.deps import init_session_factory

    return init_session_factory()


async def _dispose() -> None:
    from skillsync.api.deps import dispose_engine

    await dispose_engine()


def _echo_json(data: dict) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log at DEBUG level.")
def main(verbose: bool) -> None:
    """SkillSync: contribution sync, identity resolution and skill inference."""
    setup_logging(level="DEBUG" if verbose else None)


# ── install ───────────────────────────────────────────────────────────────


async def _install(
    installation_id: int, company_id: uuid.UUID, account_login: str, account_type: str
) -> None:
    from skillsync.api.deps import get_installation_service

    factory = _session_factory()
    try:
        async with factory() as session:
            async with session.begin():
                installation = await get_installation_service().register(
                    session,
                    installation_id=installation_id,
                    company_id=company_id,
                    account_login=account_login,
                    account_type=account_type,
                )
        click.echo(f"Registered installation {installation.installation_id} for {account_login}")
    finally:
        await _dispose()


@main.command("install")
@click.argument("installation_id", type=int)
@click.argument("company_id", type=click.UUID)
@click.argument("account_login")
@click.option("--account-type", default="Organization", show_default=True)
def install(
    installation_id: int, company_id: uuid.UUID, account_login: str, account_type: str
) -> None:
    """Claim an App installation for a company."""
    asyncio.run(_install(installation_id, company_id, account_login, account_type))


# ── sync ──────────────────────────────────────────────────────────────────


async def _sync(company_id: uuid.UUID, employee_id: uuid.UUID | None, mode: str) -> dict:
    from skillsync.api.deps import (
        get_credential_broker,
        get_inference_runner,
        get_installation_service,
        get_sync_orchestrator,
    )
    from skillsync.engines.github.credentials import SCOPE_INDIVIDUAL, SCOPE_ORGANIZATION
    from skillsync.engines.sync.models import SyncScope

    factory = _session_factory()
    installations = get_installation_service()
    broker = get_credential_broker()
    try:
        async with factory() as session:
            async with session.begin():
                if employee_id is None:
                    installation = await installations.require_for_company(session, company_id)
                    scope = SyncScope(
                        SCOPE_ORGANIZATION, company_id, company_id, installation.account_login
                    )
                else:
                    connection = await installations.get_connection(session, employee_id)
                    login = connection.github_username if connection else None
                    scope = SyncScope(SCOPE_INDIVIDUAL, employee_id, company_id, login)
                client = await broker.get_scoped_client(session, scope.scope_id, scope.scope_type)
        async with client:
            result = await get_sync_orchestrator().run_sync(factory, scope, mode, client)
        # the API process normally drains this queue; a one-shot run drains it here
        await get_inference_runner().drain(factory)
        return result.summary()
    finally:
        await _dispose()


@main.command("sync")
@click.argument("company_id", type=click.UUID)
@click.option(
    "--employee",
    "employee_id",
    type=click.UUID,
    default=None,
    help="Sync one employee's connected account instead of the organization",
)
@click.option("--mode", type=click.Choice(["quick", "full"]), default="quick", show_default=True)
def sync(company_id: uuid.UUID, employee_id: uuid.UUID | None, mode: str) -> None:
    """Run a contribution sync and infer skills for touched employees."""
    _echo_json(asyncio.run(_sync(company_id, employee_id, mode)))


# ── discover ──────────────────────────────────────────────────────────────


async def _discover(company_id: uuid.UUID) -> dict:
    from skillsync.api.deps import (
        get_credential_broker,
        get_identity_matcher,
        get_inference_runner,
        get_installation_service,
    )
    from skillsync.engines.github.credentials import SCOPE_ORGANIZATION

    factory = _session_factory()
    broker = get_credential_broker()
    try:
        async with factory() as session:
            async with session.begin():
                installation = await get_installation_service().require_for_company(
                    session, company_id
                )
                client = await broker.get_scoped_client(session, company_id, SCOPE_ORGANIZATION)
        async with client:
            result = await get_identity_matcher().discover_members(
                factory, company_id, installation.account_login, client
            )
        await get_inference_runner().drain(factory)
        return {
            "discovered": result.discovered,
            "matched": result.matched,
            "unmatched": result.unmatched,
            "errors": result.errors,
        }
    finally:
        await _dispose()


@main.command("discover")
@click.argument("company_id", type=click.UUID)
def discover(company_id: uuid.UUID) -> None:
    """Scan organization members and resolve them to employees."""
    _echo_json(asyncio.run(_discover(company_id)))


# ── infer ─────────────────────────────────────────────────────────────────


async def _infer(employee_id: uuid.UUID) -> dict:
    from skillsync.api.deps import get_inference_engine

    factory = _session_factory()
    try:
        async with factory() as session:
            async with session.begin():
                result = await get_inference_engine().infer_skills(session, employee_id)
        return {
            "employee_id": str(result.employee_id),
            "skills": [
                {"name": s.name, "level": s.level, "confidence": round(s.confidence, 3)}
                for s in result.skills
            ],
            "skipped_manual": result.skipped_manual,
        }
    finally:
        await _dispose()


@main.command("infer")
@click.argument("employee_id", type=click.UUID)
def infer(employee_id: uuid.UUID) -> None:
    """Recompute one employee's inferred skills."""
    _echo_json(asyncio.run(_infer(employee_id)))


# ── serve ─────────────────────────────────────────────────────────────────


@main.command("serve")
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=8000, type=int, show_default=True)
def serve(host: str, port: int) -> None:
    """Run the HTTP API with its background loops."""
    import uvicorn

    from skillsync.api import create_app

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    main()
