from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import InvalidStateError, PersistenceFailureError
from ..models.quiz_attempt import QuizAttempt, AttemptStatus

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = {"status", "submitted_at", "duration_seconds", "score"}


class QuizAttemptRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, attempt_id: str) -> Optional[QuizAttempt]:
        return self.session.query(QuizAttempt).filter(QuizAttempt.id == attempt_id).first()

    def list_attempts(self, quiz_id: str, student_id: str) -> List[QuizAttempt]:
        """All attempts of a student on a quiz, most recent first"""
        return (
            self.session.query(QuizAttempt)
            .filter(QuizAttempt.quiz_id == quiz_id, QuizAttempt.student_id == student_id)
            .order_by(desc(QuizAttempt.started_at))
            .all()
        )

    def list_for_quiz(self, quiz_id: str) -> List[QuizAttempt]:
        return (
            self.session.query(QuizAttempt)
            .filter(QuizAttempt.quiz_id == quiz_id)
            .order_by(desc(QuizAttempt.started_at))
            .all()
        )

    def create_attempt(self, quiz_id: str, student_id: str, started_at: datetime) -> QuizAttempt:
        """
        Create an in-progress attempt.

        Fails with InvalidStateError when the student already has one in progress
        for this quiz (enforced by a partial unique index).
        """
        attempt = QuizAttempt(
            quiz_id=quiz_id,
            student_id=student_id,
            status=AttemptStatus.IN_PROGRESS.value,
            started_at=started_at,
        )
        try:
            self.session.add(attempt)
            self.session.commit()
            self.session.refresh(attempt)
            return attempt
        except IntegrityError:
            self.session.rollback()
            raise InvalidStateError("An attempt is already in progress for this quiz")
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Failed to create attempt", quiz_id=quiz_id, student_id=student_id, error=str(e))
            raise PersistenceFailureError(f"Failed to create attempt: {str(e)}")

    def update_attempt(
        self,
        attempt_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[str] = None
    ) -> bool:
        """
        Update attempt columns in a single statement.

        When expected_status is given the row is only touched if it still has that
        status; returns False when nothing was updated.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update attempt fields: {sorted(unknown)}")

        query = self.session.query(QuizAttempt).filter(QuizAttempt.id == attempt_id)
        if expected_status is not None:
            query = query.filter(QuizAttempt.status == expected_status)

        try:
            updated = query.update(fields, synchronize_session="fetch")
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Failed to update attempt", attempt_id=attempt_id, fields=sorted(fields), error=str(e))
            raise PersistenceFailureError(f"Failed to update attempt {attempt_id}: {str(e)}")

        return updated == 1
