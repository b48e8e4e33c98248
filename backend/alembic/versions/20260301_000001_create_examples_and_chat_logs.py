"""create examples and chat_logs tables

Revision ID: 20260301_000001
Revises:
Create Date: 2026-03-01 00:00:00
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20260301_000001"
down_revision = None
branch_labels = None
depends_on = None

EMBEDDING_DIMENSION = 1536


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "examples",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            nullable=False,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("answer", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("language", sa.String(10), nullable=False),
        sa.Column("source", sa.String(20), nullable=False, server_default=sa.text("'manual'")),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "success_rate",
            sa.Float(),
            nullable=False,
            server_default=sa.text("0.5"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint("usage_count >= 0", name="ck_examples_usage_count"),
        sa.CheckConstraint(
            "success_rate >= 0 AND success_rate <= 1",
            name="ck_examples_success_rate",
        ),
    )
    # pgvector column type has no SQLAlchemy core equivalent
    op.execute(f"ALTER TABLE examples ADD COLUMN embedding vector({EMBEDDING_DIMENSION})")
    op.create_index("idx_examples_language", "examples", ["language"])
    op.create_index("idx_examples_category", "examples", ["category"])

    op.create_table(
        "chat_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("session_id", sa.Text(), nullable=False),
        sa.Column("user_message", sa.Text(), nullable=False),
        sa.Column("bot_response", sa.Text(), nullable=False),
        sa.Column("language", sa.String(10), nullable=False),
        sa.Column("confidence_score", sa.Float(), nullable=False),
        sa.Column("strategy", sa.String(20), nullable=False),
        sa.Column(
            "examples_used",
            postgresql.ARRAY(postgresql.UUID(as_uuid=True)),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column(
            "metadata",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("feedback_rating", sa.SmallInteger(), nullable=True),
        sa.Column("feedback_helpful", sa.Boolean(), nullable=True),
        sa.Column("feedback_comment", sa.Text(), nullable=True),
        sa.Column("feedback_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "feedback_rating BETWEEN 1 AND 5",
            name="ck_chat_logs_feedback_rating",
        ),
    )
    op.create_index("idx_chat_logs_session_id", "chat_logs", ["session_id", "timestamp"])

    op.execute(
        f"""
        CREATE OR REPLACE FUNCTION match_examples(
            query_embedding vector({EMBEDDING_DIMENSION}),
            match_threshold DOUBLE PRECISION,
            match_count INTEGER,
            filter_language TEXT
        )
        RETURNS TABLE (
            id UUID,
            question TEXT,
            answer TEXT,
            category VARCHAR,
            language VARCHAR,
            source VARCHAR,
            usage_count INTEGER,
            success_rate DOUBLE PRECISION,
            created_at TIMESTAMPTZ,
            updated_at TIMESTAMPTZ,
            similarity DOUBLE PRECISION
        )
        LANGUAGE sql STABLE
        AS $$
            SELECT e.id, e.question, e.answer, e.category, e.language,
                   e.source, e.usage_count, e.success_rate,
                   e.created_at, e.updated_at,
                   GREATEST(0, LEAST(1, 1 - (e.embedding <=> query_embedding))) AS similarity
            FROM examples e
            WHERE e.language = filter_language
              AND e.embedding IS NOT NULL
              AND 1 - (e.embedding <=> query_embedding) >= match_threshold
            ORDER BY similarity DESC, e.usage_count DESC, e.updated_at DESC
            LIMIT match_count
        $$
        """
    )
    op.execute(
        """
        CREATE OR REPLACE FUNCTION increment_example_usage(example_id UUID)
        RETURNS INTEGER
        LANGUAGE sql
        AS $$
            UPDATE examples
            SET usage_count = usage_count + 1, updated_at = NOW()
            WHERE id = example_id
            RETURNING usage_count
        $$
        """
    )
    op.execute(
        """
        CREATE OR REPLACE FUNCTION update_example_success_rate(
            example_id UUID,
            was_successful BOOLEAN
        )
        RETURNS DOUBLE PRECISION
        LANGUAGE sql
        AS $$
            UPDATE examples
            SET success_rate = CASE
                    WHEN usage_count = 0 THEN
                        CASE WHEN was_successful THEN 1.0 ELSE 0.0 END
                    WHEN was_successful THEN LEAST(1.0, GREATEST(
                        success_rate,
                        (ROUND((success_rate * usage_count)::numeric) + 1)::float8
                            / usage_count))
                    ELSE GREATEST(0.0, LEAST(
                        success_rate,
                        ROUND((success_rate * usage_count)::numeric)::float8
                            / usage_count))
                END,
                updated_at = NOW()
            WHERE id = example_id
            RETURNING success_rate
        $$
        """
    )


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS update_example_success_rate(UUID, BOOLEAN)")
    op.execute("DROP FUNCTION IF EXISTS increment_example_usage(UUID)")
    op.execute(
        f"DROP FUNCTION IF EXISTS match_examples(vector({EMBEDDING_DIMENSION}), "
        "DOUBLE PRECISION, INTEGER, TEXT)"
    )
    op.drop_index("idx_chat_logs_session_id", table_name="chat_logs")
    op.drop_table("chat_logs")
    op.drop_index("idx_examples_category", table_name="examples")
    op.drop_index("idx_examples_language", table_name="examples")
    op.drop_table("examples")
