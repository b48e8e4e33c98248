from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool
import structlog

from receptionist_rag_backend.core.errors import (
    FeedbackAlreadySubmittedError,
    InteractionNotFoundError,
    StorageError,
)
from receptionist_rag_backend.db.base import InteractionStore
from receptionist_rag_backend.models import (
    InteractionFeedback,
    InteractionRecord,
    ResponseStrategy,
)
from receptionist_rag_backend.observability.metrics import record_interaction_log_failure

logger = structlog.get_logger(__name__)

_SELECT_COLUMNS = """
    id, session_id, user_message, bot_response, language, confidence_score,
    strategy, examples_used, metadata, timestamp,
    feedback_rating, feedback_helpful, feedback_comment
"""


def create_pool(database_url: str, min_size: int, max_size: int) -> AsyncConnectionPool:
    """Create an async connection pool for the interaction log."""
    try:
        return AsyncConnectionPool(
            conninfo=database_url,
            min_size=min_size,
            max_size=max_size,
            open=False,
        )
    except psycopg.OperationalError as exc:
        raise RuntimeError("Database connection failed during pool initialization.") from exc
    except psycopg.Error as exc:
        raise RuntimeError("Database error during pool initialization.") from exc


async def close_pool(pool: AsyncConnectionPool) -> None:
    """Close a connection pool."""
    await pool.close()


def _as_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _row_to_record(row: dict[str, Any]) -> InteractionRecord:
    feedback = None
    if (
        row["feedback_rating"] is not None
        or row["feedback_helpful"] is not None
        or row["feedback_comment"]
    ):
        feedback = InteractionFeedback(
            rating=row["feedback_rating"],
            helpful=row["feedback_helpful"],
            comment=row["feedback_comment"],
        )
    return InteractionRecord(
        id=str(row["id"]),
        session_id=row["session_id"],
        user_message=row["user_message"],
        bot_response=row["bot_response"],
        language=row["language"],
        confidence_score=float(row["confidence_score"]),
        strategy=ResponseStrategy(row["strategy"]),
        examples_used=[str(example_id) for example_id in row["examples_used"] or []],
        created_at=row["timestamp"],
        metadata=row["metadata"] or {},
        feedback=feedback,
    )


@dataclass
class PostgresInteractionStore:
    """Interaction log stored in the ``chat_logs`` table."""

    pool: AsyncConnectionPool

    async def append(self, record: InteractionRecord) -> None:
        """Insert one interaction row within its own transaction."""
        try:
            async with self.pool.connection() as conn:
                async with conn.cursor() as cursor:
                    await cursor.execute(
                        """
                        insert into chat_logs (
                            id, session_id, user_message, bot_response, language,
                            confidence_score, strategy, examples_used, metadata, timestamp
                        )
                        values (%s, %s, %s, %s, %s, %s, %s, %s::uuid[], %s, %s)
                        """,
                        (
                            UUID(record.id),
                            record.session_id,
                            record.user_message,
                            record.bot_response,
                            record.language,
                            record.confidence_score,
                            record.strategy.value,
                            record.examples_used,
                            Jsonb(record.metadata),
                            record.created_at,
                        ),
                    )
                await conn.commit()
        except psycopg.Error as exc:
            raise StorageError("append_interaction", str(exc)) from exc

    async def get(self, interaction_id: str) -> Optional[InteractionRecord]:
        uuid = _as_uuid(interaction_id)
        if uuid is None:
            return None
        try:
            async with self.pool.connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cursor:
                    await cursor.execute(
                        f"select {_SELECT_COLUMNS} from chat_logs where id = %s",
                        (uuid,),
                    )
                    row = await cursor.fetchone()
        except psycopg.Error as exc:
            raise StorageError("get_interaction", str(exc)) from exc
        return _row_to_record(row) if row else None

    async def set_feedback(
        self,
        interaction_id: str,
        feedback: InteractionFeedback,
    ) -> InteractionRecord:
        """Write the feedback columns once; a second write is rejected."""
        uuid = _as_uuid(interaction_id)
        if uuid is None:
            raise InteractionNotFoundError(interaction_id)
        try:
            async with self.pool.connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cursor:
                    await cursor.execute(
                        f"""
                        update chat_logs
                        set feedback_rating = %s,
                            feedback_helpful = %s,
                            feedback_comment = %s,
                            feedback_at = now()
                        where id = %s and feedback_at is null
                        returning {_SELECT_COLUMNS}
                        """,
                        (feedback.rating, feedback.helpful, feedback.comment, uuid),
                    )
                    row = await cursor.fetchone()
                    if row is None:
                        await cursor.execute(
                            "select 1 from chat_logs where id = %s",
                            (uuid,),
                        )
                        exists = await cursor.fetchone()
                await conn.commit()
        except psycopg.Error as exc:
            raise StorageError("set_feedback", str(exc)) from exc
        if row is None:
            if exists:
                raise FeedbackAlreadySubmittedError(interaction_id)
            raise InteractionNotFoundError(interaction_id)
        return _row_to_record(row)

    async def history(self, session_id: str, limit: int = 50) -> list[InteractionRecord]:
        try:
            async with self.pool.connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cursor:
                    await cursor.execute(
                        f"""
                        select * from (
                            select {_SELECT_COLUMNS} from chat_logs
                            where session_id = %s
                            order by timestamp desc
                            limit %s
                        ) recent
                        order by timestamp asc
                        """,
                        (session_id, limit),
                    )
                    rows = await cursor.fetchall()
        except psycopg.Error as exc:
            raise StorageError("session_history", str(exc)) from exc
        return [_row_to_record(row) for row in rows]


@dataclass
class InteractionLogger:
    """Append-only recorder for processed messages.

    A failed write is logged and counted but never raised: the reply has
    already been computed and must still reach the user.
    """

    store: InteractionStore

    async def record(self, record: InteractionRecord) -> bool:
        """Persist one interaction; returns False when the write failed."""
        try:
            await self.store.append(record)
        except Exception as exc:
            logger.error(
                "interaction_log_failed",
                interaction_id=record.id,
                session_id=record.session_id,
                strategy=record.strategy.value,
                error=str(exc),
            )
            record_interaction_log_failure()
            return False
        logger.debug(
            "interaction_logged",
            interaction_id=record.id,
            strategy=record.strategy.value,
        )
        return True
