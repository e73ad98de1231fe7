import statistics
from typing import Any, Dict

from ..models.quiz_attempt import AttemptStatus
from ..repositories.quiz_attempt_repository import QuizAttemptRepository

FINISHED_STATUSES = {AttemptStatus.SUBMITTED.value, AttemptStatus.GRADED.value}


class QuizStatsService:

    def __init__(self, attempt_repo: QuizAttemptRepository):
        self.attempt_repo = attempt_repo

    def get_quiz_stats(self, quiz_id: str) -> Dict[str, Any]:
        """Score distribution and completion over every learner's attempts"""
        attempts = self.attempt_repo.list_for_quiz(quiz_id)
        finished = [a for a in attempts if a.status in FINISHED_STATUSES]
        scores = sorted(float(a.score or 0) for a in finished)

        total_attempts = len(attempts)
        completed = len(finished)

        return {
            "quiz_id": quiz_id,
            "total_attempts": total_attempts,
            "completed_attempts": completed,
            "completion_rate": round(completed / total_attempts * 100) if total_attempts > 0 else 0,
            "average_score": statistics.fmean(scores) if scores else 0.0,
            "median_score": statistics.median(scores) if scores else 0.0,
            "score_std_deviation": statistics.pstdev(scores) if scores else 0.0,
            "highest_score": scores[-1] if scores else 0.0,
            "lowest_score": scores[0] if scores else 0.0,
        }
