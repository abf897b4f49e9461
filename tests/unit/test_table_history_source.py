from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import pytest
from sqlalchemy.exc import OperationalError

from rental_chat.application.exceptions import HistoryUnavailableError
from rental_chat.infrastructure.db.history_source import TableHistorySource
from rental_chat.infrastructure.db.models.message import MessageModel
from tests.conftest import T0


@dataclass
class _Scalars:
    rows: list[MessageModel]

    def all(self) -> list[MessageModel]:
        return self.rows


@dataclass
class _Result:
    rows: list[MessageModel]

    def scalars(self) -> _Scalars:
        return _Scalars(self.rows)


@dataclass
class FakeSession:
    rows: list[MessageModel] = field(default_factory=list)
    error: Exception | None = None
    statements: list[Any] = field(default_factory=list)

    async def execute(self, stmt: Any) -> _Result:
        self.statements.append(stmt)
        if self.error is not None:
            raise self.error
        return _Result(self.rows)

    async def __aenter__(self) -> FakeSession:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


def _row(row_id: int, content: str, created_at: datetime) -> MessageModel:
    return MessageModel(
        id=row_id,
        listing_id=42,
        sender_id="u-7",
        content=content,
        attachment_url=None,
        created_at=created_at,
    )


@pytest.mark.asyncio
async def test_reads_rows_for_listing(user_principal):
    session = FakeSession(rows=[_row(1, "hi", T0.replace(tzinfo=None))])
    source = TableHistorySource(lambda: session)

    messages = await source.fetch("42", user_principal)

    assert [(m.id, m.conversation_id, m.content) for m in messages] == [("1", "42", "hi")]
    assert messages[0].created_at == T0
    compiled = str(session.statements[0])
    assert "messages.listing_id" in compiled
    assert "ORDER BY messages.created_at ASC" in compiled


@pytest.mark.asyncio
async def test_missing_table_is_unavailable(user_principal):
    session = FakeSession(error=OperationalError("SELECT", {}, Exception("no such table: messages")))
    source = TableHistorySource(lambda: session)

    with pytest.raises(HistoryUnavailableError):
        await source.fetch("42", user_principal)


@pytest.mark.asyncio
async def test_non_numeric_listing_is_unavailable(user_principal):
    source = TableHistorySource(lambda: FakeSession())

    with pytest.raises(HistoryUnavailableError):
        await source.fetch("abc", user_principal)
