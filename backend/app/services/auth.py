"""
Teacher Authorization

Checks that a teacher may run sessions and jobs for a student, and may use
or change a vocabulary deck. Identity itself comes from the caller (the
X-Teacher-Id header at the HTTP layer); this service only decides whether
that teacher may act on the student or deck.
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Student, VocabularyDeck
from app.middleware.error_handling import AuthorizationError, NotFoundError

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def authorize_owner(self, teacher_id: uuid.UUID, student_id: uuid.UUID) -> Student:
        """
        Allow the teacher to act on a student they own, whatever its status.

        Raises:
            AuthorizationError: The student does not exist or belongs to
                another teacher
        """
        student = await self.db.get(Student, student_id)
        if student is None or student.teacher_id != teacher_id:
            logger.warning(f"Teacher {teacher_id} denied access to student {student_id}")
            raise AuthorizationError(
                "Student not found for this teacher",
                details={"student_id": str(student_id)},
            )
        return student

    async def authorize(self, teacher_id: uuid.UUID, student_id: uuid.UUID) -> Student:
        """
        Allow the teacher to act on the student.

        The student must exist, belong to the teacher, be ACTIVE and not be
        archived.

        Returns:
            The student

        Raises:
            AuthorizationError: Any of the conditions above does not hold
        """
        student = await self.authorize_owner(teacher_id, student_id)
        if not student.is_active:
            raise AuthorizationError(
                f"Student {student_id} is not active",
                details={
                    "student_id": str(student_id),
                    "status": student.status,
                    "is_archived": student.is_archived,
                },
            )
        return student

    async def authorize_deck(
        self,
        teacher_id: uuid.UUID,
        deck_id: uuid.UUID,
        write: bool = False,
    ) -> VocabularyDeck:
        """
        Allow the teacher to use a deck, or to add cards to it.

        Any teacher may read a public deck; only its creator may write to it.

        Raises:
            NotFoundError: No such deck
            AuthorizationError: The teacher may not use or change the deck
        """
        deck = await self.db.get(VocabularyDeck, deck_id)
        if deck is None:
            raise NotFoundError(f"Vocabulary deck {deck_id} not found")

        is_creator = deck.creator_id == teacher_id
        if is_creator or (deck.is_public and not write):
            return deck

        logger.warning(
            f"Teacher {teacher_id} denied {'write' if write else 'read'} access to deck {deck_id}"
        )
        raise AuthorizationError(
            "You do not have permission to change this deck"
            if write
            else "You do not have permission to use this deck",
            details={"deck_id": str(deck_id)},
        )
