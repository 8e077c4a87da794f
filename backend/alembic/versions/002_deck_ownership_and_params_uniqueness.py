"""Deck ownership and FSRS parameter uniqueness

Adds creator_id and is_public to vocabulary_decks so jobs can check who may
use or change a deck.

Makes FSRS parameter versions unique per (student, review_type) and allows
at most one active parameter set per (student, review_type) through a
partial unique index. Existing duplicates must be resolved before upgrading.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "vocabulary_decks",
        sa.Column(
            "creator_id",
            sa.Uuid(),
            sa.ForeignKey("teachers.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.add_column(
        "vocabulary_decks",
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_vocabulary_decks_creator_id", "vocabulary_decks", ["creator_id"])

    op.drop_index("ix_fsrs_params_active", table_name="student_fsrs_params")
    op.create_unique_constraint(
        "uq_fsrs_params_version",
        "student_fsrs_params",
        ["student_id", "review_type", "version"],
    )
    op.create_index(
        "uq_fsrs_params_one_active",
        "student_fsrs_params",
        ["student_id", "review_type"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )


def downgrade() -> None:
    op.drop_index("uq_fsrs_params_one_active", table_name="student_fsrs_params")
    op.drop_constraint("uq_fsrs_params_version", "student_fsrs_params", type_="unique")
    op.create_index(
        "ix_fsrs_params_active",
        "student_fsrs_params",
        ["student_id", "review_type", "is_active"],
    )

    op.drop_index("ix_vocabulary_decks_creator_id", table_name="vocabulary_decks")
    op.drop_column("vocabulary_decks", "is_public")
    op.drop_column("vocabulary_decks", "creator_id")
