from .user import User, UserRole
from .quiz import Quiz, QuizQuestion, QuizOption, QuestionType, ShowResultsPolicy
from .quiz_attempt import QuizAttempt, AttemptStatus
from .quiz_answer import QuizAnswer

__all__ = [
    "User",
    "UserRole",
    "Quiz",
    "QuizQuestion",
    "QuizOption",
    "QuestionType",
    "ShowResultsPolicy",
    "QuizAttempt",
    "AttemptStatus",
    "QuizAnswer",
]
