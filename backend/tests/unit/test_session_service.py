"""
Unit tests for SessionService.

Drives whole teaching sessions against SQLite. A failing call rolls back the
test's database session, which expires every loaded row, so ids are read
before any call that is expected to fail.
"""

import uuid
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from app.db.models import Student, Teacher, Unit
from app.db.models_learning import ReviewEvent, StudentCardState, TeachingSession
from app.enums.learning import (
    CardState,
    ExerciseType,
    SessionStatus,
    StudentStatus,
    VocabularyStage,
)
from app.middleware.error_handling import (
    AuthorizationError,
    EmptyUnitError,
    InvalidActionError,
    NotFoundError,
    SessionNotActiveError,
    SessionNotFoundError,
    UnsupportedExerciseTypeError,
)
from app.services.learning import CardStateService
from app.services.learning.session_service import SessionService


async def count(db, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


@pytest.fixture
async def initialized(db, student, deck, cards):
    await CardStateService(db).initialize_card_states(student.id, deck.id)
    await db.commit()
    return cards


@pytest.fixture
def ids(teacher, student):
    return {"teacher": teacher.id, "student": student.id}


class TestStartSession:
    """Tests for SessionService.start_session."""

    async def test_start_on_vocabulary_deck(self, db, ids, initialized, make_unit):
        unit = await make_unit(ExerciseType.VOCABULARY_DECK, ExerciseType.FILL_IN_BLANK_EXERCISE)

        state = await SessionService(db).start_session(ids["teacher"], ids["student"], unit.id)

        assert state.status == SessionStatus.IN_PROGRESS
        assert state.current_item.order == 1
        assert state.current_item.type == ExerciseType.VOCABULARY_DECK
        assert [item.order for item in state.items] == [1, 2]
        assert state.progress.type == "VOCABULARY_DECK"
        assert state.progress.stage == VocabularyStage.PRESENTING_CARD
        assert len(state.progress.payload.queue) == 3
        assert state.end_time is None

        row = await db.get(TeachingSession, state.id)
        assert row.status == SessionStatus.IN_PROGRESS.value

    async def test_other_teachers_student(self, db, ids, initialized, make_unit):
        unit = await make_unit(ExerciseType.VOCABULARY_DECK)
        unit_id = unit.id
        other = Teacher(name="Mr. Wu", email="wu@example.com")
        db.add(other)
        await db.commit()
        other_id = other.id

        with pytest.raises(AuthorizationError):
            await SessionService(db).start_session(other_id, ids["student"], unit_id)

        assert await count(db, TeachingSession) == 0

    async def test_unknown_student(self, db, ids, make_unit):
        unit = await make_unit(ExerciseType.VOCABULARY_DECK)
        unit_id = unit.id

        with pytest.raises(AuthorizationError):
            await SessionService(db).start_session(ids["teacher"], uuid.uuid4(), unit_id)

    @pytest.mark.parametrize(
        "changes",
        [{"status": StudentStatus.PAUSED.value}, {"is_archived": True}],
    )
    async def test_inactive_student(self, db, ids, initialized, make_unit, changes):
        unit = await make_unit(ExerciseType.VOCABULARY_DECK)
        unit_id = unit.id
        row = await db.get(Student, ids["student"])
        for name, value in changes.items():
            setattr(row, name, value)
        await db.commit()

        with pytest.raises(AuthorizationError):
            await SessionService(db).start_session(ids["teacher"], ids["student"], unit_id)

    async def test_missing_unit(self, db, ids):
        with pytest.raises(NotFoundError):
            await SessionService(db).start_session(ids["teacher"], ids["student"], uuid.uuid4())

    async def test_empty_unit(self, db, ids):
        unit = Unit(name="Nothing here")
        db.add(unit)
        await db.commit()
        unit_id = unit.id

        with pytest.raises(EmptyUnitError):
            await SessionService(db).start_session(ids["teacher"], ids["student"], unit_id)

        assert await count(db, TeachingSession) == 0

    async def test_unsupported_first_exercise(self, db, ids, make_unit):
        unit = await make_unit(ExerciseType.GRAMMAR_EXERCISE, ExerciseType.VOCABULARY_DECK)
        unit_id = unit.id

        with pytest.raises(UnsupportedExerciseTypeError):
            await SessionService(db).start_session(ids["teacher"], ids["student"], unit_id)

        assert await count(db, TeachingSession) == 0

    async def test_nothing_to_practice_completes_at_start(self, db, ids, cards, make_unit):
        # No card states: the deck has nothing for this student yet
        unit = await make_unit(ExerciseType.VOCABULARY_DECK)

        state = await SessionService(db).start_session(ids["teacher"], ids["student"], unit.id)

        assert state.status == SessionStatus.COMPLETED
        assert state.current_item is None
        assert state.progress is None
        assert state.end_time is not None

    async def test_empty_first_exercise_is_skipped(self, db, ids, cards, make_unit):
        unit = await make_unit(ExerciseType.VOCABULARY_DECK, ExerciseType.FILL_IN_BLANK_EXERCISE)

        state = await SessionService(db).start_session(ids["teacher"], ids["student"], unit.id)

        assert state.status == SessionStatus.IN_PROGRESS
        assert state.current_item.order == 2
        assert state.progress.type == "FILL_IN_BLANK_EXERCISE"


class TestSubmitAnswer:
    """Tests for SessionService.submit_answer."""

    async def rate_head(self, service, state, teacher_id, rating):
        await service.submit_answer(state.id, teacher_id, "REVEAL_ANSWER")
        return await service.submit_answer(
            state.id, teacher_id, "SUBMIT_RATING", {"rating": rating}
        )

    async def test_finishing_exercise_moves_to_next(self, db, ids, initialized, make_unit):
        unit = await make_unit(
            ExerciseType.VOCABULARY_DECK,
            ExerciseType.FILL_IN_BLANK_EXERCISE,
            configs={0: {"new_cards": 1}},
        )
        service = SessionService(db)
        state = await service.start_session(ids["teacher"], ids["student"], unit.id)

        response = await self.rate_head(service, state, ids["teacher"], 3)

        assert response.result.card_state.state == CardState.LEARNING
        assert response.state.status == SessionStatus.IN_PROGRESS
        assert response.state.current_item.order == 2
        assert response.state.progress.type == "FILL_IN_BLANK_EXERCISE"

    async def test_finishing_last_exercise_completes(self, db, ids, initialized, make_unit):
        unit = await make_unit(ExerciseType.VOCABULARY_DECK, configs={0: {"new_cards": 1}})
        service = SessionService(db)
        state = await service.start_session(ids["teacher"], ids["student"], unit.id)

        response = await self.rate_head(service, state, ids["teacher"], 4)

        assert response.state.status == SessionStatus.COMPLETED
        assert response.state.current_item is None
        # EASY on a new card takes one learning step, it does not graduate
        assert response.result.card_state.state == CardState.LEARNING
        assert response.result.card_state.learning_step == 1

    async def test_again_keeps_card_in_session(self, db, ids, initialized, make_unit):
        unit = await make_unit(ExerciseType.VOCABULARY_DECK, configs={0: {"new_cards": 1}})
        service = SessionService(db)
        state = await service.start_session(ids["teacher"], ids["student"], unit.id)

        response = await self.rate_head(service, state, ids["teacher"], 1)

        assert response.state.status == SessionStatus.IN_PROGRESS
        queue = response.state.progress.payload.queue
        assert [entry.card_id for entry in queue] == [initialized[0].id]

    async def test_rating_writes_ledger_and_cache(self, db, ids, initialized, make_unit):
        unit = await make_unit(ExerciseType.VOCABULARY_DECK)
        service = SessionService(db)
        state = await service.start_session(ids["teacher"], ids["student"], unit.id)

        await self.rate_head(service, state, ids["teacher"], 3)

        event = (await db.execute(select(ReviewEvent))).scalar_one()
        assert event.session_id == state.id
        card_state = (
            await db.execute(
                select(StudentCardState).where(StudentCardState.card_id == event.card_id)
            )
        ).scalar_one()
        assert card_state.reps == 1

    async def test_completed_session_rejects_actions(self, db, ids, initialized, make_unit):
        unit = await make_unit(ExerciseType.VOCABULARY_DECK)
        service = SessionService(db)
        state = await service.start_session(ids["teacher"], ids["student"], unit.id)
        await service.end_session(state.id, ids["teacher"])

        with pytest.raises(SessionNotActiveError):
            await service.submit_answer(state.id, ids["teacher"], "REVEAL_ANSWER")

    async def test_invalid_action_changes_nothing(self, db, ids, initialized, make_unit):
        unit = await make_unit(ExerciseType.VOCABULARY_DECK)
        service = SessionService(db)
        state = await service.start_session(ids["teacher"], ids["student"], unit.id)

        # Rating before the answer is revealed
        with pytest.raises(InvalidActionError):
            await service.submit_answer(state.id, ids["teacher"], "SUBMIT_RATING", {"rating": 3})

        assert await count(db, ReviewEvent) == 0
        current = await service.get_full_state(state.id, ids["teacher"])
        assert current.progress.stage == VocabularyStage.PRESENTING_CARD

    async def test_failure_after_review_rolls_back_everything(
        self, db, ids, initialized, make_unit
    ):
        unit = await make_unit(ExerciseType.VOCABULARY_DECK)
        service = SessionService(db)
        state = await service.start_session(ids["teacher"], ids["student"], unit.id)
        await service.submit_answer(state.id, ids["teacher"], "REVEAL_ANSWER")

        with patch(
            "app.services.exercises.operators.review.load_card_data",
            side_effect=RuntimeError("card store unavailable"),
        ):
            with pytest.raises(RuntimeError):
                await service.submit_answer(
                    state.id, ids["teacher"], "SUBMIT_RATING", {"rating": 3}
                )

        assert await count(db, ReviewEvent) == 0
        states = (await db.execute(select(StudentCardState))).scalars().all()
        assert all(row.state == CardState.NEW.value and row.reps == 0 for row in states)
        current = await service.get_full_state(state.id, ids["teacher"])
        assert current.progress.stage == VocabularyStage.AWAITING_RATING

    async def test_other_teacher_cannot_act(self, db, ids, initialized, make_unit):
        unit = await make_unit(ExerciseType.VOCABULARY_DECK)
        service = SessionService(db)
        state = await service.start_session(ids["teacher"], ids["student"], unit.id)

        with pytest.raises(AuthorizationError):
            await service.submit_answer(state.id, uuid.uuid4(), "REVEAL_ANSWER")

    async def test_unknown_session(self, db, ids):
        with pytest.raises(SessionNotFoundError):
            await SessionService(db).submit_answer(uuid.uuid4(), ids["teacher"], "REVEAL_ANSWER")


class TestEndSession:
    """Tests for SessionService.end_session and get_full_state."""

    async def test_end_is_idempotent(self, db, ids, initialized, make_unit):
        unit = await make_unit(ExerciseType.VOCABULARY_DECK)
        service = SessionService(db)
        state = await service.start_session(ids["teacher"], ids["student"], unit.id)

        first = await service.end_session(state.id, ids["teacher"])
        second = await service.end_session(state.id, ids["teacher"])

        assert first.status == SessionStatus.COMPLETED
        assert second.status == SessionStatus.COMPLETED
        assert second.end_time == first.end_time
        assert second.progress is None

    async def test_end_by_other_teacher(self, db, ids, initialized, make_unit):
        unit = await make_unit(ExerciseType.VOCABULARY_DECK)
        service = SessionService(db)
        state = await service.start_session(ids["teacher"], ids["student"], unit.id)

        with pytest.raises(AuthorizationError):
            await service.end_session(state.id, uuid.uuid4())

    async def test_full_state_matches_start(self, db, ids, initialized, make_unit):
        unit = await make_unit(ExerciseType.VOCABULARY_DECK)
        service = SessionService(db)
        started = await service.start_session(ids["teacher"], ids["student"], unit.id)

        state = await service.get_full_state(started.id, ids["teacher"])

        assert state.model_dump() == started.model_dump()

    async def test_full_state_unknown_session(self, db, ids):
        with pytest.raises(SessionNotFoundError):
            await SessionService(db).get_full_state(uuid.uuid4(), ids["teacher"])
