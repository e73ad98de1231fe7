from typing import Optional, Dict, Any


class QuizEngineError(Exception):
    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


class QuizNotFoundError(QuizEngineError):
    def __init__(self, quiz_id: str):
        super().__init__(
            message=f"Quiz {quiz_id} not found",
            error_code="QUIZ_NOT_FOUND",
            details={"quiz_id": quiz_id}
        )


class AttemptNotFoundError(QuizEngineError):
    def __init__(self, attempt_id: str):
        super().__init__(
            message=f"Attempt {attempt_id} not found",
            error_code="ATTEMPT_NOT_FOUND",
            details={"attempt_id": attempt_id}
        )


class QuestionNotFoundError(QuizEngineError):
    def __init__(self, question_id: str, quiz_id: str):
        super().__init__(
            message=f"Question {question_id} does not belong to quiz {quiz_id}",
            error_code="QUESTION_NOT_FOUND",
            details={"question_id": question_id, "quiz_id": quiz_id}
        )


class QuotaExceededError(QuizEngineError):
    def __init__(self, quiz_id: str, attempts_allowed: int, latest_attempt_id: Optional[str] = None):
        super().__init__(
            message="No attempts remaining",
            error_code="QUOTA_EXCEEDED",
            details={
                "quiz_id": quiz_id,
                "attempts_allowed": attempts_allowed,
                "latest_attempt_id": latest_attempt_id,
            }
        )


class OutOfWindowError(QuizEngineError):
    def __init__(self, quiz_id: str):
        super().__init__(
            message="Quiz not currently available",
            error_code="OUT_OF_WINDOW",
            details={"quiz_id": quiz_id}
        )


class InvalidStateError(QuizEngineError):
    def __init__(self, message: str, attempt_id: Optional[str] = None, status: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="INVALID_STATE",
            details={"attempt_id": attempt_id, "status": status}
        )


class InvalidAnswerPayloadError(QuizEngineError):
    pass


class InvalidQuizDefinitionError(QuizEngineError):
    pass


class ResultsHiddenError(QuizEngineError):
    pass


class PersistenceFailureError(QuizEngineError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, error_code="PERSISTENCE_FAILURE", details=details)


class GradingItemFailure(QuizEngineError):
    pass
