import structlog
from fastapi import APIRouter, Depends, HTTPException

from ...dependencies import (
    get_current_user_conditional,
    get_grading_engine,
    get_quiz_answer_repository,
    get_quiz_attempt_service,
    get_quiz_repository,
)
from ..mappers.quiz_response_mapper import QuizResponseMapper
from ..schemas import (
    AnswerSaveRequest,
    AnswerSaveResponse,
    AttemptResultResponse,
    AutosaveRequest,
    AutosaveResponse,
    SubmitRequest,
    SubmitResponse,
)
from ....exceptions import QuizEngineError, QuizNotFoundError, ResultsHiddenError, InvalidStateError
from ....models.user import User
from ....repositories.quiz_answer_repository import QuizAnswerRepository
from ....repositories.quiz_repository import QuizRepository
from ....services.grading_engine import GradingEngine
from ....services.quiz_attempt_service import QuizAttemptService
from ....services.results_policy import can_show_results
from ....utils.response_utils import to_http_exception

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.put("/{attempt_id}/answers/{question_id}", response_model=AnswerSaveResponse)
async def save_answer(
    attempt_id: str,
    question_id: str,
    request: AnswerSaveRequest,
    current_user: User = Depends(get_current_user_conditional),
    service: QuizAttemptService = Depends(get_quiz_attempt_service)
) -> AnswerSaveResponse:
    try:
        answer = service.record_answer(attempt_id, current_user.user_id, question_id, request.payload)
        return AnswerSaveResponse(
            attempt_id=attempt_id,
            question_id=question_id,
            answer_payload=answer.answer_payload,
            saved_at=answer.updated_at,
        )
    except QuizEngineError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Save answer failed", attempt_id=attempt_id, question_id=question_id, error=str(e), exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to save answer")


@router.put("/{attempt_id}/answers", response_model=AutosaveResponse)
async def autosave_answers(
    attempt_id: str,
    request: AutosaveRequest,
    current_user: User = Depends(get_current_user_conditional),
    service: QuizAttemptService = Depends(get_quiz_attempt_service)
) -> AutosaveResponse:
    """
    Periodic best-effort save of the learner's current answers.

    Individual answers that fail to save are listed in `failed` instead of failing
    the request.
    """
    try:
        result = service.autosave_answers(attempt_id, current_user.user_id, request.answers)
        return AutosaveResponse(saved=result.saved, failed=result.failed)
    except QuizEngineError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Autosave failed", attempt_id=attempt_id, error=str(e), exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to autosave answers")


@router.post("/{attempt_id}/submit", response_model=SubmitResponse)
async def submit_attempt(
    attempt_id: str,
    request: SubmitRequest = SubmitRequest(),
    current_user: User = Depends(get_current_user_conditional),
    service: QuizAttemptService = Depends(get_quiz_attempt_service),
    grading_engine: GradingEngine = Depends(get_grading_engine)
) -> SubmitResponse:
    try:
        result = service.submit(
            attempt_id,
            current_user.user_id,
            elapsed_seconds=request.elapsed_seconds,
            auto=request.auto
        )
        show_results = can_show_results(result.bundle.quiz, service.clock())

        logger.info(
            "Quiz submitted successfully",
            attempt_id=attempt_id,
            score=result.score,
            graded_answers=len(result.grades)
        )

        return SubmitResponse(
            attempt=QuizResponseMapper.map_attempt(result.attempt, show_score=show_results),
            show_results=show_results,
            score=result.score if show_results else None,
            max_score=QuizResponseMapper.max_score(result.bundle, grading_engine) if show_results else None,
        )
    except QuizEngineError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Submit attempt failed", attempt_id=attempt_id, error=str(e), exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to submit quiz attempt")


@router.get("/{attempt_id}/result", response_model=AttemptResultResponse)
async def get_attempt_result(
    attempt_id: str,
    current_user: User = Depends(get_current_user_conditional),
    service: QuizAttemptService = Depends(get_quiz_attempt_service),
    quiz_repo: QuizRepository = Depends(get_quiz_repository),
    answer_repo: QuizAnswerRepository = Depends(get_quiz_answer_repository),
    grading_engine: GradingEngine = Depends(get_grading_engine)
) -> AttemptResultResponse:
    try:
        owner = None if current_user.is_staff else current_user.user_id
        attempt = service.get_attempt(attempt_id, owner)
        if attempt.is_in_progress:
            raise InvalidStateError("This attempt has not been submitted yet", attempt.id, attempt.status)

        bundle = quiz_repo.fetch_quiz_bundle(attempt.quiz_id)
        if not bundle:
            raise QuizNotFoundError(attempt.quiz_id)

        if not current_user.is_staff and not can_show_results(bundle.quiz, service.clock()):
            raise ResultsHiddenError(
                "Results will be available later according to teacher policy",
                error_code="RESULTS_HIDDEN",
                details={"show_results_policy": bundle.quiz.show_results_policy}
            )

        return QuizResponseMapper.map_result(
            attempt,
            bundle,
            answer_repo.list_for_attempt(attempt.id),
            grading_engine
        )
    except QuizEngineError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Get results failed", attempt_id=attempt_id, error=str(e), exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to retrieve attempt results")
