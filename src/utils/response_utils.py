from fastapi import HTTPException

from ..exceptions import (
    QuizEngineError,
    QuizNotFoundError,
    AttemptNotFoundError,
    QuestionNotFoundError,
    QuotaExceededError,
    OutOfWindowError,
    InvalidStateError,
    InvalidAnswerPayloadError,
    InvalidQuizDefinitionError,
    ResultsHiddenError,
    PersistenceFailureError,
)

ERROR_STATUS_CODES = {
    QuizNotFoundError: 404,
    AttemptNotFoundError: 404,
    QuestionNotFoundError: 404,
    QuotaExceededError: 409,
    InvalidStateError: 409,
    OutOfWindowError: 403,
    ResultsHiddenError: 403,
    InvalidAnswerPayloadError: 422,
    InvalidQuizDefinitionError: 422,
    PersistenceFailureError: 503,
}


def to_http_exception(error: QuizEngineError) -> HTTPException:
    status_code = 500
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_type):
            status_code = code
            break

    detail = error.to_dict()
    if isinstance(error, PersistenceFailureError):
        # Driver messages stay in the logs
        detail = {"error_code": "PERSISTENCE_FAILURE", "message": "Storage is unavailable, please retry", "details": {}}

    return HTTPException(status_code=status_code, detail=detail)
