"""Initial schema

Creates the tables for teachers, students and content (decks, cards, exercise
payloads, units), live teaching sessions, the card state cache, the review
ledger, fitted FSRS weights, fill-in-the-blank completion and the job queue.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _json() -> sa.types.TypeEngine:
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamp(name: str, nullable: bool = False, **kwargs) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable, **kwargs)


def upgrade() -> None:
    # ===========================================
    # People
    # ===========================================
    op.create_table(
        "teachers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(320), nullable=True, unique=True),
        _timestamp("created_at", server_default=sa.func.now()),
    )

    op.create_table(
        "students",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "teacher_id",
            sa.Uuid(),
            sa.ForeignKey("teachers.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at", server_default=sa.func.now()),
    )

    # ===========================================
    # Vocabulary and exercise payloads
    # ===========================================
    op.create_table(
        "vocabulary_decks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp("created_at", server_default=sa.func.now()),
    )

    op.create_table(
        "vocabulary_cards",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "deck_id",
            sa.Uuid(),
            sa.ForeignKey("vocabulary_decks.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("english_word", sa.String(500), nullable=False),
        sa.Column("chinese_translation", sa.String(500), nullable=False),
        sa.Column("pinyin", sa.String(500), nullable=True),
        sa.Column("ipa_pronunciation", sa.String(500), nullable=True),
        sa.Column("example_sentences", _json(), nullable=True),
        sa.Column("audio_url", sa.String(2000), nullable=True),
        _timestamp("created_at", server_default=sa.func.now()),
    )

    op.create_table(
        "grammar_exercises",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", _json(), nullable=True),
    )

    for table in ("listening_exercises", "fill_in_blank_exercises"):
        op.create_table(
            table,
            sa.Column("id", sa.Uuid(), primary_key=True),
            sa.Column("title", sa.String(200), nullable=False),
            sa.Column(
                "deck_id",
                sa.Uuid(),
                sa.ForeignKey("vocabulary_decks.id", ondelete="CASCADE"),
                nullable=False,
            ),
        )

    # ===========================================
    # Units
    # ===========================================
    op.create_table(
        "units",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp("created_at", server_default=sa.func.now()),
    )

    op.create_table(
        "unit_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "unit_id",
            sa.Uuid(),
            sa.ForeignKey("units.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("exercise_config", _json(), nullable=True),
        sa.Column("vocabulary_deck_id", sa.Uuid(), sa.ForeignKey("vocabulary_decks.id")),
        sa.Column("grammar_exercise_id", sa.Uuid(), sa.ForeignKey("grammar_exercises.id")),
        sa.Column(
            "listening_exercise_id", sa.Uuid(), sa.ForeignKey("listening_exercises.id")
        ),
        sa.Column(
            "fill_in_blank_exercise_id",
            sa.Uuid(),
            sa.ForeignKey("fill_in_blank_exercises.id"),
        ),
        sa.UniqueConstraint("unit_id", "order", name="uq_unit_items_unit_order"),
        sa.CheckConstraint(
            "(CASE WHEN vocabulary_deck_id IS NOT NULL THEN 1 ELSE 0 END)"
            " + (CASE WHEN grammar_exercise_id IS NOT NULL THEN 1 ELSE 0 END)"
            " + (CASE WHEN listening_exercise_id IS NOT NULL THEN 1 ELSE 0 END)"
            " + (CASE WHEN fill_in_blank_exercise_id IS NOT NULL THEN 1 ELSE 0 END) = 1",
            name="ck_unit_items_one_payload",
        ),
    )

    # ===========================================
    # Teaching sessions
    # ===========================================
    op.create_table(
        "teaching_sessions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "teacher_id",
            sa.Uuid(),
            sa.ForeignKey("teachers.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "student_id",
            sa.Uuid(),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("unit_id", sa.Uuid(), sa.ForeignKey("units.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="IN_PROGRESS"),
        sa.Column("current_unit_item_id", sa.Uuid(), sa.ForeignKey("unit_items.id")),
        sa.Column("progress", _json(), nullable=True),
        _timestamp("start_time", server_default=sa.func.now()),
        _timestamp("end_time", nullable=True),
        _timestamp("updated_at", server_default=sa.func.now()),
    )

    # ===========================================
    # Card state cache
    # ===========================================
    op.create_table(
        "student_card_states",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "student_id",
            sa.Uuid(),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "card_id",
            sa.Uuid(),
            sa.ForeignKey("vocabulary_cards.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("review_type", sa.String(20), nullable=False, server_default="VOCABULARY"),
        sa.Column("state", sa.String(20), nullable=False, server_default="NEW"),
        sa.Column("learning_step", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stability", sa.Float(), nullable=True),
        sa.Column("difficulty", sa.Float(), nullable=True),
        _timestamp("due", server_default=sa.func.now()),
        _timestamp("last_review", nullable=True),
        sa.Column("reps", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lapses", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at", server_default=sa.func.now()),
        _timestamp("updated_at", server_default=sa.func.now()),
        sa.UniqueConstraint(
            "student_id", "card_id", "review_type", name="uq_card_state_triple"
        ),
    )
    op.create_index(
        "ix_card_states_student_due",
        "student_card_states",
        ["student_id", "review_type", "due"],
    )

    # ===========================================
    # Review ledger (append-only)
    # ===========================================
    op.create_table(
        "review_events",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "student_id",
            sa.Uuid(),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "card_id",
            sa.Uuid(),
            sa.ForeignKey("vocabulary_cards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("review_type", sa.String(20), nullable=False),
        sa.Column(
            "session_id",
            sa.Uuid(),
            sa.ForeignKey("teaching_sessions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("rating", sa.Integer(), nullable=False),
        _timestamp("reviewed_at", server_default=sa.func.now()),
        sa.Column("is_learning_step", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("learning_steps", _json(), nullable=False),
        # Pre-review snapshot
        sa.Column("previous_state", sa.String(20), nullable=False),
        sa.Column("previous_step", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("previous_stability", sa.Float(), nullable=True),
        sa.Column("previous_difficulty", sa.Float(), nullable=True),
        _timestamp("previous_due", nullable=True),
        _timestamp("previous_last_review", nullable=True),
        sa.Column("previous_reps", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("previous_lapses", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index(
        "ix_review_events_replay",
        "review_events",
        ["student_id", "card_id", "review_type", "reviewed_at"],
    )

    # ===========================================
    # FSRS weights
    # ===========================================
    op.create_table(
        "student_fsrs_params",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "student_id",
            sa.Uuid(),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("review_type", sa.String(20), nullable=False, server_default="VOCABULARY"),
        sa.Column("weights", _json(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("optimization_score", sa.Float(), nullable=True),
        sa.Column("training_data_size", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("last_optimized", server_default=sa.func.now()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index(
        "ix_fsrs_params_active",
        "student_fsrs_params",
        ["student_id", "review_type", "is_active"],
    )

    # ===========================================
    # Fill-in-the-blank completion
    # ===========================================
    op.create_table(
        "fill_in_blank_card_states",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "student_id",
            sa.Uuid(),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "card_id",
            sa.Uuid(),
            sa.ForeignKey("vocabulary_cards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("is_seen", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_result", sa.String(20), nullable=True),
        _timestamp("completed_at", nullable=True),
        sa.UniqueConstraint("student_id", "card_id", name="uq_fill_in_blank_student_card"),
    )

    # ===========================================
    # Job queue
    # ===========================================
    op.create_table(
        "jobs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "owner_id",
            sa.Uuid(),
            sa.ForeignKey("teachers.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("payload", _json(), nullable=True),
        sa.Column("result", _json(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("claim_token", sa.Uuid(), nullable=True, index=True),
        sa.Column("claimed_by", sa.String(200), nullable=True),
        _timestamp("claimed_at", nullable=True),
        _timestamp("finished_at", nullable=True),
        _timestamp("created_at", server_default=sa.func.now()),
        _timestamp("updated_at", server_default=sa.func.now()),
    )
    op.create_index("ix_jobs_status_created", "jobs", ["status", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_jobs_status_created")
    op.drop_table("jobs")
    op.drop_table("fill_in_blank_card_states")
    op.drop_index("ix_fsrs_params_active")
    op.drop_table("student_fsrs_params")
    op.drop_index("ix_review_events_replay")
    op.drop_table("review_events")
    op.drop_index("ix_card_states_student_due")
    op.drop_table("student_card_states")
    op.drop_table("teaching_sessions")
    op.drop_table("unit_items")
    op.drop_table("units")
    op.drop_table("fill_in_blank_exercises")
    op.drop_table("listening_exercises")
    op.drop_table("grammar_exercises")
    op.drop_table("vocabulary_cards")
    op.drop_table("vocabulary_decks")
    op.drop_table("students")
    op.drop_table("teachers")
