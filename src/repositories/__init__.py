from .quiz_repository import QuizRepository, QuizBundle
from .quiz_attempt_repository import QuizAttemptRepository
from .quiz_answer_repository import QuizAnswerRepository

__all__ = ["QuizRepository", "QuizBundle", "QuizAttemptRepository", "QuizAnswerRepository"]
