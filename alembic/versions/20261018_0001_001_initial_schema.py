"""Create cache tier and deferred request tables

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "cached_responses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tier", sa.String(128), nullable=False),
        sa.Column("key_hash", sa.String(32), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("method", sa.String(16), nullable=False),
        sa.Column("status", sa.Integer(), nullable=False),
        sa.Column("status_text", sa.String(64), nullable=False),
        sa.Column("headers", sa.JSON(), nullable=False),
        sa.Column("body", sa.LargeBinary(), nullable=False),
        sa.Column("response_type", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("tier", "key_hash", name="uq_cached_responses_tier_key"),
    )
    op.create_index("ix_cached_responses_tier", "cached_responses", ["tier"])
    op.create_index("ix_cached_responses_key_hash", "cached_responses", ["key_hash"])

    op.create_table(
        "deferred_requests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("queue", sa.String(64), nullable=False),
        sa.Column("request_hash", sa.String(32), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("method", sa.String(16), nullable=False),
        sa.Column("headers", sa.JSON(), nullable=False),
        sa.Column("body", sa.LargeBinary(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "queue", "request_hash", name="uq_deferred_requests_queue_hash"
        ),
    )
    op.create_index("ix_deferred_requests_queue", "deferred_requests", ["queue"])


def downgrade() -> None:
    op.drop_index("ix_deferred_requests_queue", table_name="deferred_requests")
    op.drop_table("deferred_requests")
    op.drop_index("ix_cached_responses_key_hash", table_name="cached_responses")
    op.drop_index("ix_cached_responses_tier", table_name="cached_responses")
    op.drop_table("cached_responses")
