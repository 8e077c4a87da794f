"""
Unit tests for session progress models and exercise configs.
"""

import uuid
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from app.enums.learning import CardState, FillInBlankStage, VocabularyStage
from app.models.progress import (
    FillInBlankConfig,
    FillInBlankExerciseProgress,
    ListeningExerciseConfig,
    ListeningExerciseProgress,
    VocabularyDeckConfig,
    VocabularyDeckProgress,
    dump_progress,
    parse_progress,
)
from app.models.sessions import RatingData, StudentAnswerData, SubmitAnswerRequest

DUE = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class TestProgressUnion:
    """Tests for the type-discriminated progress union."""

    def test_parse_vocabulary_progress(self):
        card_id = uuid.uuid4()
        progress = parse_progress(
            {
                "type": "VOCABULARY_DECK",
                "stage": "AWAITING_RATING",
                "payload": {
                    "queue": [{"card_id": str(card_id), "state": "NEW", "due": DUE.isoformat()}],
                    "learning_steps": ["3m"],
                },
            }
        )

        assert isinstance(progress, VocabularyDeckProgress)
        assert progress.stage == VocabularyStage.AWAITING_RATING
        assert progress.payload.queue[0].card_id == card_id
        assert progress.payload.queue[0].state == CardState.NEW

    def test_parse_fill_in_blank_progress(self):
        progress = parse_progress({"type": "FILL_IN_BLANK_EXERCISE", "payload": {"queue": []}})

        assert isinstance(progress, FillInBlankExerciseProgress)
        assert progress.stage == FillInBlankStage.SHOWING_QUESTION

    def test_none_passes_through(self):
        assert parse_progress(None) is None
        assert dump_progress(None) is None

    def test_dump_is_json_ready(self):
        card_id = uuid.uuid4()
        progress = ListeningExerciseProgress.model_validate(
            {"payload": {"queue": [{"card_id": card_id, "state": "REVIEW", "due": DUE}]}}
        )

        data = dump_progress(progress)

        assert data["type"] == "LISTENING_EXERCISE"
        assert data["stage"] == "PLAYING_AUDIO"
        assert data["payload"]["queue"][0]["card_id"] == str(card_id)
        assert parse_progress(data) == progress

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_progress({"type": "GRAMMAR_EXERCISE", "payload": {}})

    def test_stage_of_other_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_progress({"type": "VOCABULARY_DECK", "stage": "PLAYING_AUDIO", "payload": {}})

    def test_unknown_payload_field_rejected(self):
        with pytest.raises(ValidationError):
            parse_progress({"type": "FILL_IN_BLANK_EXERCISE", "payload": {"hints": []}})


class TestExerciseConfigs:
    """Tests for exercise_config models."""

    def test_vocabulary_defaults(self):
        config = VocabularyDeckConfig.model_validate({})

        assert config.new_cards == 10
        assert config.max_due == 50
        assert config.learning_steps == ["3m", "15m", "30m"]

    def test_unknown_keys_ignored(self):
        config = VocabularyDeckConfig.model_validate({"new_cards": 3, "theme": "dark"})
        assert config.new_cards == 3

    @pytest.mark.parametrize("steps", [["3"], ["m3"], ["3 m"], ["1w"]])
    def test_invalid_learning_steps(self, steps):
        with pytest.raises(ValidationError):
            VocabularyDeckConfig.model_validate({"learning_steps": steps})

    def test_empty_learning_steps_allowed(self):
        assert VocabularyDeckConfig.model_validate({"learning_steps": []}).learning_steps == []

    def test_negative_limits_rejected(self):
        with pytest.raises(ValidationError):
            VocabularyDeckConfig.model_validate({"new_cards": -1})

    def test_listening_threshold_bounds(self):
        assert ListeningExerciseConfig.model_validate({}).vocabulary_confidence_threshold == 0.8
        with pytest.raises(ValidationError):
            ListeningExerciseConfig.model_validate({"vocabulary_confidence_threshold": 1.5})

    def test_fill_in_blank_defaults(self):
        config = FillInBlankConfig.model_validate({})

        assert config.max_cards == 20
        assert config.shuffle_cards is True


class TestActionData:
    """Tests for operator action payloads."""

    @pytest.mark.parametrize("rating", [0, 5, "good"])
    def test_invalid_rating(self, rating):
        with pytest.raises(ValidationError):
            RatingData.model_validate({"rating": rating})

    def test_answer_is_stripped(self):
        assert StudentAnswerData.model_validate({"answer": "  water "}).answer == "water"

    def test_submit_request_defaults(self):
        request = SubmitAnswerRequest.model_validate({"action": "REVEAL_ANSWER"})
        assert request.data == {}

    def test_submit_request_requires_action(self):
        with pytest.raises(ValidationError):
            SubmitAnswerRequest.model_validate({"action": ""})
