"""Create notes table

Revision ID: 001
Revises: None
Create Date: 2026-01-15 00:00:00.000000+00:00

What:  Creates the `notes` table holding structured notes extracted from photos.
How:   Generic SQLAlchemy types, so the same migration runs on PostgreSQL and
       SQLite. Ids and created_at are supplied by the application.

Rollback: downgrade() drops the table entirely (all notes are lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Column documentation lives in studysnap/models/note.py."""
    op.create_table(
        "notes",
        sa.Column(
            "id",
            sa.Uuid(as_uuid=True),
            nullable=False,
            comment="Unique identifier assigned at insert time",
        ),
        sa.Column(
            "title",
            sa.String(255),
            nullable=False,
            comment="Note title read from the photo (never empty)",
        ),
        sa.Column(
            "subject",
            sa.String(120),
            nullable=False,
            comment="School subject, e.g. Math, Physics",
        ),
        sa.Column(
            "preview",
            sa.Text(),
            nullable=False,
            server_default=sa.text("''"),
            comment="Short summary of the note content (max 500 chars)",
        ),
        sa.Column(
            "tags",
            sa.JSON(),
            nullable=False,
            comment="Ordered tag list; type:/grade:/term:/exam: prefixes carry item metadata",
        ),
        sa.Column(
            "date",
            sa.Date(),
            nullable=False,
            comment="Ingestion date (UTC calendar date)",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="Insert timestamp (UTC); tie-break for notes sharing a date",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Matches the list query: ORDER BY date DESC, created_at DESC
    op.create_index(
        "idx_notes_date_created_at",
        "notes",
        [sa.text("date DESC"), sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_notes_date_created_at", table_name="notes")
    op.drop_table("notes")
