from typing import Any, Dict, Iterable, List

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import PersistenceFailureError
from ..models.quiz_answer import QuizAnswer

logger = structlog.get_logger(__name__)


class QuizAnswerRepository:
    def __init__(self, session: Session):
        self.session = session

    def list_for_attempt(self, attempt_id: str) -> List[QuizAnswer]:
        return self.session.query(QuizAnswer).filter(QuizAnswer.attempt_id == attempt_id).all()

    def payloads_by_question(self, attempt_id: str) -> Dict[str, Any]:
        return {answer.question_id: answer.answer_payload for answer in self.list_for_attempt(attempt_id)}

    def upsert_answer(self, attempt_id: str, question_id: str, payload: Dict[str, Any]) -> QuizAnswer:
        """Insert or replace the answer for (attempt, question). Last write wins."""
        try:
            answer = self._get(attempt_id, question_id)
            if answer:
                answer.answer_payload = payload
            else:
                answer = QuizAnswer(attempt_id=attempt_id, question_id=question_id, answer_payload=payload)
                self.session.add(answer)
            self.session.commit()
        except IntegrityError:
            # Another request inserted the row first
            self.session.rollback()
            answer = self._get(attempt_id, question_id)
            if answer is None:
                logger.error("Answer row missing after insert conflict", attempt_id=attempt_id, question_id=question_id)
                raise PersistenceFailureError(f"Failed to save answer for question {question_id}")
            answer.answer_payload = payload
            self._commit(f"Failed to save answer for question {question_id}")
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Failed to save answer", attempt_id=attempt_id, question_id=question_id, error=str(e))
            raise PersistenceFailureError(f"Failed to save answer for question {question_id}: {str(e)}")

        self.session.refresh(answer)
        return answer

    def apply_grades(self, grades: Iterable) -> int:
        """Write is_correct/points_awarded for graded answers in one commit"""
        grades = list(grades)
        if not grades:
            return 0

        answers = {
            answer.id: answer
            for answer in self.session.query(QuizAnswer).filter(
                QuizAnswer.id.in_([grade.answer_id for grade in grades])
            )
        }
        for grade in grades:
            answer = answers.get(grade.answer_id)
            if answer is None:
                continue
            answer.is_correct = grade.is_correct
            answer.points_awarded = grade.points_awarded

        self._commit("Failed to store grades")
        return len(answers)

    def _get(self, attempt_id: str, question_id: str):
        return (
            self.session.query(QuizAnswer)
            .filter(QuizAnswer.attempt_id == attempt_id, QuizAnswer.question_id == question_id)
            .first()
        )

    def _commit(self, message: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(message, error=str(e))
            raise PersistenceFailureError(f"{message}: {str(e)}")
