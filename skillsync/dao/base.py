"""Generic base DAO: ORM CRUD, PostgreSQL upserts and keyset pagination."""

import base64
import hashlib
import hmac
import json
import os
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select, tuple_
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.core.database import Base

ModelT = TypeVar("ModelT", bound=Base)

PAGE_SIZE_MIN = 1
PAGE_SIZE_MAX = 100
PAGE_SIZE_DEFAULT = 20


def _cursor_secret() -> bytes:
    return os.environ.get("SKILLSYNC_CURSOR_SECRET", "changeme-cursor-secret").encode()


class InvalidCursorError(ValueError):
    """Cursor is malformed or its signature does not match."""


@dataclass
class Cursor:
    """Decoded keyset position: the sort key of the last row plus its id."""

    key: datetime
    id: uuid.UUID


@dataclass
class Page(Generic[ModelT]):
    data: list[ModelT]
    next_cursor: str | None
    has_more: bool

    def as_dict(self) -> dict[str, Any]:
        return {"data": self.data, "next_cursor": self.next_cursor, "has_more": self.has_more}


def _sign(payload: str) -> str:
    return hmac.new(_cursor_secret(), payload.encode(), hashlib.sha256).hexdigest()[:16]


def encode_cursor(key: datetime, row_id: uuid.UUID) -> str:
    """Encode a keyset position into a signed, URL-safe string."""
    if key.tzinfo is None:
        key = key.replace(tzinfo=timezone.utc)
    payload = json.dumps({"k": key.isoformat(), "i": str(row_id)})
    return base64.urlsafe_b64encode(f"{payload}|{_sign(payload)}".encode()).decode()


def decode_cursor(cursor: str) -> Cursor:
    """Raises ``InvalidCursorError`` for malformed or tampered cursors."""
    try:
        raw = base64.urlsafe_b64decode(cursor.encode()).decode()
        payload, sig = raw.rsplit("|", 1)
        if not hmac.compare_digest(sig, _sign(payload)):
            raise InvalidCursorError("cursor signature mismatch")
        data = json.loads(payload)
        return Cursor(key=datetime.fromisoformat(data["k"]), id=uuid.UUID(data["i"]))
    except InvalidCursorError:
        raise
    except (json.JSONDecodeError, KeyError, TypeError, ValueError, UnicodeDecodeError) as exc:
        raise InvalidCursorError(f"invalid cursor: {cursor!r}") from exc


def _clamp_page_size(page_size: int) -> int:
    return max(PAGE_SIZE_MIN, min(page_size, PAGE_SIZE_MAX))


class BaseDAO(Generic[ModelT]):
    """Base data-access object. Subclasses set ``model``.

    ``sort_column`` names the timestamp column used for keyset pagination
    (newest first, ties broken by id). ``immutable_columns`` may be widened
    by subclasses whose natural key must never change through ``update``.
    """

    model: type[ModelT]
    sort_column: str = "created_at"
    immutable_columns: frozenset[str] = frozenset({"id", "created_at", "updated_at"})

    @staticmethod
    def _require_pk(pk: uuid.UUID | None) -> None:
        if pk is None:
            raise ValueError("pk must not be None")

    # ── ORM ───────────────────────────────────────────────────────────────

    async def get_by_id(self, session: AsyncSession, pk: uuid.UUID) -> ModelT | None:
        self._require_pk(pk)
        return await session.get(self.model, pk)

    async def create(self, session: AsyncSession, **values: Any) -> ModelT:
        obj = self.model(**values)
        session.add(obj)
        await session.flush()
        await session.refresh(obj)
        return obj

    async def update(self, session: AsyncSession, pk: uuid.UUID, **values: Any) -> ModelT | None:
        self._require_pk(pk)
        columns = set(self.model.__mapper__.column_attrs.keys())
        for key in values:
            if key in self.immutable_columns:
                raise AttributeError(f"'{key}' is immutable and cannot be updated")
            if key not in columns:
                raise AttributeError(f"{self.model.__name__} has no column '{key}'")
        obj = await session.get(self.model, pk)
        if obj is None:
            return None
        for key, val in values.items():
            setattr(obj, key, val)
        await session.flush()
        await session.refresh(obj)
        return obj

    async def delete(self, session: AsyncSession, pk: uuid.UUID) -> bool:
        self._require_pk(pk)
        obj = await session.get(self.model, pk)
        if obj is None:
            return False
        await session.delete(obj)
        await session.flush()
        return True

    def _filtered(self, filters: dict[str, Any], caller: str) -> Select:
        if not filters:
            raise ValueError(f"{caller}() requires at least one filter")
        stmt = select(self.model)
        for key, val in filters.items():
            stmt = stmt.where(getattr(self.model, key) == val)
        return stmt

    async def get_by_field(self, session: AsyncSession, **filters: Any) -> ModelT | None:
        """First row matching all *filters*, e.g. ``get_by_field(s, scope_key=...)``."""
        result = await session.execute(self._filtered(filters, "get_by_field"))
        return result.scalars().first()

    async def list_by_field(self, session: AsyncSession, **filters: Any) -> list[ModelT]:
        result = await session.execute(self._filtered(filters, "list_by_field"))
        return list(result.scalars().all())

    # ── upsert ────────────────────────────────────────────────────────────

    async def _upsert(
        self,
        session: AsyncSession,
        values: dict[str, Any],
        *,
        refresh: Iterable[str],
        index_elements: list[str] | None = None,
        constraint: str | None = None,
    ) -> ModelT:
        """``INSERT ... ON CONFLICT DO UPDATE`` returning the stored row.

        Only columns named in *refresh* that are also present in *values*
        are overwritten on conflict; everything else keeps its stored value.
        """
        set_ = {key: values[key] for key in refresh if key in values}
        if "updated_at" in self.model.__table__.c:
            set_["updated_at"] = func.now()
        stmt = (
            insert(self.model)
            .values(**values)
            .on_conflict_do_update(
                index_elements=index_elements, constraint=constraint, set_=set_
            )
            .returning(self.model)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalars().one()

    # ── pagination ────────────────────────────────────────────────────────

    async def paginate(
        self,
        session: AsyncSession,
        query: Select,
        cursor: str | None = None,
        page_size: int = PAGE_SIZE_DEFAULT,
    ) -> Page[ModelT]:
        """Keyset-paginate *query*; callers must not add ORDER BY or LIMIT."""
        page_size = _clamp_page_size(page_size)
        table = self.model.__table__
        sort_key = table.c[self.sort_column]

        if cursor:
            pos = decode_cursor(cursor)
            query = query.where(tuple_(sort_key, table.c.id) < (pos.key, pos.id))

        query = query.order_by(sort_key.desc(), table.c.id.desc()).limit(page_size + 1)
        rows = list((await session.execute(query)).scalars().all())

        has_more = len(rows) > page_size
        data = rows[:page_size]
        next_cursor = None
        if has_more:
            last = data[-1]
            next_cursor = encode_cursor(getattr(last, self.sort_column), last.id)
        return Page(data=data, next_cursor=next_cursor, has_more=has_more)

    async def count(self, session: AsyncSession, query: Select | None = None) -> int:
        if query is None:
            query = select(func.count()).select_from(self.model.__table__)
        else:
            query = select(func.count()).select_from(query.subquery())
        return (await session.execute(query)).scalar_one()
