from datetime import datetime

from ..models.quiz import Quiz, ShowResultsPolicy
from ..utils.time_utils import ensure_utc


def can_show_results(quiz: Quiz, now: datetime) -> bool:
    """Whether a learner may see their score for this quiz at `now`"""
    policy = quiz.show_results_policy
    if policy == ShowResultsPolicy.IMMEDIATE.value:
        return True
    if policy == ShowResultsPolicy.AFTER_CLOSE.value:
        end_at = ensure_utc(quiz.end_at)
        return end_at is not None and end_at < now
    return False
