"""Create meeting, tag and audio reference tables.

Revision ID: 001_meeting_tables
Revises:
Create Date: 2026-10-19

Creates three tables:
- meetings: Recorded rep/doctor conversations with transcript and key points
- meeting_tags: Searchable labels, many per meeting
- meeting_audio: Public URLs of stored recordings

meeting_tags and meeting_audio reference meetings with ON DELETE CASCADE.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_meeting_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── meetings table ───────────────────────────────────────────────────

    op.create_table(
        "meetings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("doctor_name", sa.String(300), nullable=False),
        sa.Column("rep_name", sa.String(300), nullable=False),
        sa.Column("drugs_discussed", sa.Text(), nullable=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("transcript", sa.Text(), nullable=False),
        sa.Column("key_points", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_meetings_created_at", "meetings", ["created_at"])

    # ── meeting_tags table ───────────────────────────────────────────────

    op.create_table(
        "meeting_tags",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "meeting_id",
            sa.String(36),
            sa.ForeignKey("meetings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("tag_name", sa.String(200), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_meeting_tags_meeting_id", "meeting_tags", ["meeting_id"])

    # ── meeting_audio table ──────────────────────────────────────────────

    op.create_table(
        "meeting_audio",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "meeting_id",
            sa.String(36),
            sa.ForeignKey("meetings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("audio_url", sa.String(1000), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_meeting_audio_meeting_id", "meeting_audio", ["meeting_id"])


def downgrade() -> None:
    op.drop_index("ix_meeting_audio_meeting_id", table_name="meeting_audio")
    op.drop_table("meeting_audio")
    op.drop_index("ix_meeting_tags_meeting_id", table_name="meeting_tags")
    op.drop_table("meeting_tags")
    op.drop_index("ix_meetings_created_at", table_name="meetings")
    op.drop_table("meetings")
