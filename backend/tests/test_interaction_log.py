"""Tests for the interaction log and its PostgreSQL store."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import psycopg
import pytest

from receptionist_rag_backend.core.errors import (
    FeedbackAlreadySubmittedError,
    InteractionNotFoundError,
    StorageError,
)
from receptionist_rag_backend.interactions import InteractionLogger, PostgresInteractionStore
from receptionist_rag_backend.models import (
    InteractionFeedback,
    InteractionRecord,
    ResponseStrategy,
)


def _record(**kwargs):
    defaults = dict(
        session_id="session-1",
        user_message="Do you service furnaces?",
        bot_response="Yes, we service all furnace brands.",
        language="en",
        confidence_score=0.6,
        strategy=ResponseStrategy.SEARCH_FALLBACK,
    )
    defaults.update(kwargs)
    return InteractionRecord(**defaults)


def _row(record_id, **kwargs):
    row = {
        "id": record_id,
        "session_id": "session-1",
        "user_message": "Do you service furnaces?",
        "bot_response": "Yes.",
        "language": "en",
        "confidence_score": 0.6,
        "strategy": "search_fallback",
        "examples_used": [],
        "metadata": {"category": "hvac"},
        "timestamp": datetime.now(timezone.utc),
        "feedback_rating": None,
        "feedback_helpful": None,
        "feedback_comment": None,
    }
    row.update(kwargs)
    return row


@pytest.fixture
def cursor_mock():
    cursor = AsyncMock()
    cursor.execute = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=None)
    cursor.fetchall = AsyncMock(return_value=[])
    return cursor


@pytest.fixture
def pool_mock(cursor_mock):
    cursor_cm = AsyncMock()
    cursor_cm.__aenter__ = AsyncMock(return_value=cursor_mock)
    cursor_cm.__aexit__ = AsyncMock(return_value=None)

    conn = MagicMock()
    conn.cursor = MagicMock(return_value=cursor_cm)
    conn.commit = AsyncMock()

    conn_cm = AsyncMock()
    conn_cm.__aenter__ = AsyncMock(return_value=conn)
    conn_cm.__aexit__ = AsyncMock(return_value=None)

    pool = MagicMock()
    pool.connection = MagicMock(return_value=conn_cm)
    pool._conn = conn
    return pool


class TestInteractionLogger:
    @pytest.mark.asyncio
    async def test_record_appends(self, interaction_store):
        logger = InteractionLogger(interaction_store)
        record = _record()

        assert await logger.record(record) is True
        assert (await interaction_store.get(record.id)) is not None

    @pytest.mark.asyncio
    async def test_record_swallows_store_failure(self):
        store = MagicMock()
        store.append = AsyncMock(side_effect=StorageError("append_interaction", "disk full"))
        logger = InteractionLogger(store)

        assert await logger.record(_record()) is False


class TestPostgresInteractionStore:
    @pytest.mark.asyncio
    async def test_append_inserts_and_commits(self, pool_mock, cursor_mock):
        store = PostgresInteractionStore(pool=pool_mock)
        record = _record()

        await store.append(record)

        sql, params = cursor_mock.execute.call_args.args
        assert "insert into chat_logs" in sql
        assert params[1] == "session-1"
        assert params[6] == "search_fallback"
        pool_mock._conn.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_append_wraps_database_errors(self, pool_mock, cursor_mock):
        cursor_mock.execute.side_effect = psycopg.OperationalError("server closed")
        store = PostgresInteractionStore(pool=pool_mock)

        with pytest.raises(StorageError):
            await store.append(_record())

    @pytest.mark.asyncio
    async def test_set_feedback_returns_updated_record(self, pool_mock, cursor_mock):
        record_id = uuid4()
        cursor_mock.fetchone.return_value = _row(
            record_id, feedback_rating=5, feedback_helpful=True
        )
        store = PostgresInteractionStore(pool=pool_mock)

        record = await store.set_feedback(
            str(record_id), InteractionFeedback(rating=5, helpful=True)
        )

        assert record.feedback.rating == 5
        assert "feedback_at is null" in cursor_mock.execute.call_args.args[0]

    @pytest.mark.asyncio
    async def test_set_feedback_twice_is_rejected(self, pool_mock, cursor_mock):
        cursor_mock.fetchone.side_effect = [None, (1,)]
        store = PostgresInteractionStore(pool=pool_mock)

        with pytest.raises(FeedbackAlreadySubmittedError):
            await store.set_feedback(str(uuid4()), InteractionFeedback(helpful=True))

    @pytest.mark.asyncio
    async def test_set_feedback_unknown_interaction(self, pool_mock, cursor_mock):
        cursor_mock.fetchone.side_effect = [None, None]
        store = PostgresInteractionStore(pool=pool_mock)

        with pytest.raises(InteractionNotFoundError):
            await store.set_feedback(str(uuid4()), InteractionFeedback(helpful=True))

    @pytest.mark.asyncio
    async def test_history_maps_rows(self, pool_mock, cursor_mock):
        ids = [uuid4(), uuid4()]
        cursor_mock.fetchall.return_value = [_row(ids[0]), _row(ids[1], feedback_helpful=False)]
        store = PostgresInteractionStore(pool=pool_mock)

        history = await store.history("session-1", limit=10)

        assert [r.id for r in history] == [str(i) for i in ids]
        assert history[1].feedback.helpful is False
        assert cursor_mock.execute.call_args.args[1] == ("session-1", 10)
