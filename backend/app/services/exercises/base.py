"""
Abstract Exercise Handler and Operator

Every exercise type plugs into a live session through one ExerciseHandler,
and every action a teacher can take within an exercise is one
ProgressOperator:

    SessionOrchestrator → ExerciseDispatcher.get_handler(item type)
                        → handler.submit_answer(ctx, action, data)
                        → operator.execute(ctx, progress, data)

Handlers own the progress variant of their exercise type: they build it in
initialize(), route actions to operators in submit_answer(), and decide
completion in is_complete(). Operators transition one progress value into the
next; they never touch the session row itself.

Usage:
    class VocabularyDeckHandler(ExerciseHandler):
        EXERCISE_TYPE = ExerciseType.VOCABULARY_DECK
        PROGRESS_MODEL = VocabularyDeckProgress

        def __init__(self):
            super().__init__([RevealAnswerOperator(), SubmitRatingOperator(...)])

        async def build_initial_progress(self, ctx):
            ...
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Iterable, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import UnitItem
from app.db.models_learning import TeachingSession
from app.db.types import utc_now
from app.enums.learning import ExerciseType
from app.middleware.error_handling import InvalidActionError, ValidationError
from app.models.progress import ExerciseConfig, SessionProgress, dump_progress, parse_progress
from app.models.sessions import ActionResult, EmptyData

logger = logging.getLogger(__name__)


@dataclass
class ExerciseContext:
    """
    Everything a handler or operator may use while serving one request.

    Attributes:
        db: The request's database session (its transaction is shared)
        session: The teaching session row being stepped
        item: The unit item the session is currently on
        now: Request time; used as the review timestamp
    """

    db: AsyncSession
    session: TeachingSession
    item: UnitItem
    now: datetime = field(default_factory=utc_now)

    @property
    def student_id(self) -> uuid.UUID:
        return self.session.student_id


class ProgressOperator(ABC):
    """
    One atomic action on an exercise's progress.

    Subclasses declare the action name, the stage the action is valid in and
    the model its data must satisfy.
    """

    ACTION: ClassVar[str]
    REQUIRED_STAGE: ClassVar[Optional[Enum]] = None
    DATA_MODEL: ClassVar[type[BaseModel]] = EmptyData

    def parse_data(self, data: Optional[dict[str, Any]]) -> BaseModel:
        """Validate the action data; InvalidActionError on failure."""
        try:
            return self.DATA_MODEL.model_validate(data or {})
        except PydanticValidationError as e:
            raise InvalidActionError(
                f"Invalid data for {self.ACTION}: {e.errors(include_url=False)}",
                details={"action": self.ACTION},
            )

    def required_stage(self) -> Optional[Enum]:
        return self.REQUIRED_STAGE

    async def execute(
        self,
        ctx: ExerciseContext,
        progress: SessionProgress,
        data: Optional[dict[str, Any]],
    ) -> tuple[ActionResult, SessionProgress]:
        """Check the stage, validate the data, and apply the transition."""
        stage = self.required_stage()
        if stage is not None and progress.stage != stage:
            raise InvalidActionError(
                f"{self.ACTION} is not allowed in stage {progress.stage.value}",
                details={"action": self.ACTION, "stage": progress.stage.value},
            )
        parsed = self.parse_data(data)
        return await self.apply(ctx, progress, parsed)

    @abstractmethod
    async def apply(
        self,
        ctx: ExerciseContext,
        progress: SessionProgress,
        data: BaseModel,
    ) -> tuple[ActionResult, SessionProgress]:
        """
        Transition progress for this action.

        Args:
            ctx: Request context
            progress: Current progress (do not mutate; return a new value)
            data: Validated action data

        Returns:
            Tuple of (action result, new progress)
        """
        pass


class ExerciseHandler(ABC):
    """Abstract base class for all exercise handlers."""

    EXERCISE_TYPE: ClassVar[ExerciseType]
    PROGRESS_MODEL: ClassVar[type[BaseModel]]
    CONFIG_MODEL: ClassVar[type[ExerciseConfig]] = ExerciseConfig

    def __init__(self, operators: Iterable[ProgressOperator]) -> None:
        self.operators: dict[str, ProgressOperator] = {}
        for operator in operators:
            if operator.ACTION in self.operators:
                raise ValueError(
                    f"Duplicate operator {operator.ACTION} for {self.EXERCISE_TYPE.value}"
                )
            self.operators[operator.ACTION] = operator
        self.logger: logging.Logger = logging.getLogger(self.__class__.__name__)

    def load_config(self, item: UnitItem) -> ExerciseConfig:
        """Validate the item's exercise_config against this handler's model."""
        try:
            return self.CONFIG_MODEL.model_validate(item.exercise_config or {})
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid exercise_config on unit item {item.id}: "
                f"{e.errors(include_url=False)}"
            )

    def get_progress(self, session: TeachingSession) -> Optional[SessionProgress]:
        """Typed progress of the session, or None if absent or of another type."""
        progress = parse_progress(session.progress)
        if not isinstance(progress, self.PROGRESS_MODEL):
            return None
        return progress

    async def initialize(self, ctx: ExerciseContext) -> TeachingSession:
        """
        Build this exercise's initial progress and store it on the session.

        Returns:
            The session with progress populated
        """
        progress = await self.build_initial_progress(ctx)
        ctx.session.progress = dump_progress(progress)
        self.logger.info(
            f"Initialized {self.EXERCISE_TYPE.value} for session {ctx.session.id} "
            f"({self.remaining(progress)} items queued)"
        )
        return ctx.session

    async def submit_answer(
        self,
        ctx: ExerciseContext,
        action: str,
        data: Optional[dict[str, Any]],
    ) -> tuple[ActionResult, SessionProgress]:
        """
        Route an action to its operator.

        Raises:
            InvalidActionError: Unknown action, or progress of another type
        """
        operator = self.operators.get(action)
        if operator is None:
            raise InvalidActionError(
                f"Action {action!r} is not supported by {self.EXERCISE_TYPE.value}",
                details={"action": action, "supported": sorted(self.operators)},
            )

        progress = self.get_progress(ctx.session)
        if progress is None:
            raise InvalidActionError(
                f"Session {ctx.session.id} has no {self.EXERCISE_TYPE.value} progress"
            )

        return await operator.execute(ctx, progress, data)

    def is_complete(self, session: TeachingSession) -> bool:
        """True when the exercise has no work left (or no progress of its type)."""
        progress = self.get_progress(session)
        if progress is None:
            return True
        return self.remaining(progress) == 0

    def remaining(self, progress: SessionProgress) -> int:
        return len(progress.payload.queue)

    @abstractmethod
    async def build_initial_progress(self, ctx: ExerciseContext) -> SessionProgress:
        """Assemble the initial progress for the current unit item."""
        pass
