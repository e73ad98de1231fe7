from typing import Optional, Sequence

import structlog

from ..exceptions import AttemptNotFoundError, InvalidStateError
from ..models.quiz import AUTO_GRADED_TYPES, QuizQuestion
from ..models.quiz_answer import QuizAnswer
from ..models.quiz_attempt import AttemptStatus
from ..repositories.quiz_answer_repository import QuizAnswerRepository
from ..repositories.quiz_attempt_repository import QuizAttemptRepository

logger = structlog.get_logger(__name__)


def awaits_manual_grading(question_type: Optional[str], answer: QuizAnswer) -> bool:
    """True for a non-blank answer to a manually graded question that has no points yet"""
    if question_type is None or question_type in AUTO_GRADED_TYPES:
        return False
    if answer.points_awarded is not None or not isinstance(answer.answer_payload, dict):
        return False
    text = answer.answer_payload.get("text")
    return not isinstance(text, str) or bool(text.strip())


class ScoreAggregator:

    def __init__(self, attempt_repo: QuizAttemptRepository, answer_repo: QuizAnswerRepository):
        self.attempt_repo = attempt_repo
        self.answer_repo = answer_repo

    def finalize_score(self, attempt_id: str, questions: Sequence[QuizQuestion]) -> float:
        """
        Sum points_awarded over the attempt's answers and store it as the score.

        Ungraded answers count as 0. The attempt becomes graded unless one of its
        answers is still waiting for a teacher, in which case it stays submitted.
        """
        attempt = self.attempt_repo.get_by_id(attempt_id)
        if not attempt:
            raise AttemptNotFoundError(attempt_id)
        if attempt.is_in_progress:
            raise InvalidStateError("Cannot score an attempt that is still in progress", attempt_id, attempt.status)

        question_types = {q.id: q.type for q in questions}
        answers = self.answer_repo.list_for_attempt(attempt_id)

        total = sum(answer.points_awarded or 0 for answer in answers)
        awaiting_manual = sum(
            1 for answer in answers
            if awaits_manual_grading(question_types.get(answer.question_id), answer)
        )

        status = AttemptStatus.SUBMITTED.value if awaiting_manual else AttemptStatus.GRADED.value
        self.attempt_repo.update_attempt(attempt_id, {"score": total, "status": status})

        logger.info(
            "Attempt score finalized",
            attempt_id=attempt_id,
            score=total,
            status=status,
            awaiting_manual_grading=awaiting_manual
        )
        return total
