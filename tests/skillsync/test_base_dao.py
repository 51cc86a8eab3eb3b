"""Tests for BaseDAO: cursor codec, CRUD guards and keyset pagination."""

import base64
import json
import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from skillsync.dao.base import InvalidCursorError, _sign, decode_cursor, encode_cursor
from skillsync.dao.company_dao import CompanyDAO
from skillsync.models.company import Company


def _forge_cursor(payload: str) -> str:
    return base64.urlsafe_b64encode(f"{payload}|{_sign(payload)}".encode()).decode()


@pytest.fixture
def dao():
    return CompanyDAO()


# ── cursor codec ──────────────────────────────────────────────────────────


class TestCursorCodec:
    def test_naive_key_gets_utc(self):
        uid = uuid.uuid4()
        decoded = decode_cursor(encode_cursor(datetime(2026, 1, 15, 10, 30), uid))
        assert decoded.key == datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert decoded.id == uid

    @pytest.mark.parametrize("cursor", ["", "garbage", base64.urlsafe_b64encode(b"x").decode()])
    def test_garbage_rejected(self, cursor):
        with pytest.raises(InvalidCursorError):
            decode_cursor(cursor)

    def test_signed_but_malformed_payload(self):
        with pytest.raises(InvalidCursorError, match="invalid cursor"):
            decode_cursor(_forge_cursor(json.dumps({"x": 1})))

    def test_tampered_payload_rejected(self):
        encoded = encode_cursor(datetime(2026, 1, 15, tzinfo=timezone.utc), uuid.uuid4())
        payload, sig = base64.urlsafe_b64decode(encoded).decode().rsplit("|", 1)
        tampered = payload.replace("2026", "2025")
        forged = base64.urlsafe_b64encode(f"{tampered}|{sig}".encode()).decode()
        with pytest.raises(InvalidCursorError, match="signature"):
            decode_cursor(forged)

    def test_secret_is_read_at_call_time(self, monkeypatch):
        encoded = encode_cursor(datetime(2026, 1, 15, tzinfo=timezone.utc), uuid.uuid4())
        monkeypatch.setenv("SKILLSYNC_CURSOR_SECRET", "rotated")
        with pytest.raises(InvalidCursorError):
            decode_cursor(encoded)


# ── CRUD guards ───────────────────────────────────────────────────────────


class TestCrud:
    async def test_update_rejects_immutable_and_unknown(self, dao, session):
        company = await dao.create(session, name="Acme")
        with pytest.raises(AttributeError, match="immutable"):
            await dao.update(session, company.id, id=uuid.uuid4())
        with pytest.raises(AttributeError, match="no column"):
            await dao.update(session, company.id, nickname="ac")

        updated = await dao.update(session, company.id, domain="acme.test")
        assert updated.domain == "acme.test"
        assert await dao.update(session, uuid.uuid4(), name="Ghost") is None

    async def test_field_lookups_require_filters(self, dao, session):
        with pytest.raises(ValueError):
            await dao.get_by_field(session)
        with pytest.raises(ValueError):
            await dao.list_by_field(session)

    async def test_delete(self, dao, session):
        company = await dao.create(session, name="Acme")
        assert await dao.delete(session, company.id) is True
        assert await dao.delete(session, company.id) is False
        with pytest.raises(ValueError):
            await dao.delete(session, None)


# ── pagination ────────────────────────────────────────────────────────────


class TestPaginate:
    async def test_walks_every_row_once(self, dao, session):
        for i in range(5):
            await dao.create(session, name=f"c{i}", domain="paged.test")
        query = select(Company).where(Company.domain == "paged.test")

        seen: list[uuid.UUID] = []
        cursor = None
        pages = 0
        while True:
            page = await dao.paginate(session, query, cursor, page_size=2)
            seen.extend(c.id for c in page.data)
            pages += 1
            if not page.has_more:
                assert page.next_cursor is None
                break
            cursor = page.next_cursor

        assert pages == 3
        assert len(seen) == len(set(seen)) == 5
        assert await dao.count(session, query) == 5

    async def test_page_size_is_clamped(self, dao, session):
        await dao.create(session, name="solo", domain="clamp.test")
        query = select(Company).where(Company.domain == "clamp.test")
        page = await dao.paginate(session, query, page_size=0)
        assert len(page.data) == 1
        assert page.as_dict()["has_more"] is False
