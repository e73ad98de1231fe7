import structlog
from fastapi import APIRouter, Depends, HTTPException

from ...dependencies import (
    get_current_user_conditional,
    get_grading_engine,
    get_quiz_attempt_service,
    get_quiz_repository,
    get_quiz_stats_service,
    require_staff,
)
from ..mappers.quiz_response_mapper import QuizResponseMapper
from ..schemas import (
    AttemptHistoryResponse,
    QuizCreate,
    QuizResponse,
    QuizStatsResponse,
    StartAttemptResponse,
)
from ....config import get_settings
from ....exceptions import QuizEngineError, QuizNotFoundError
from ....models.quiz import Quiz, QuizQuestion, QuizOption
from ....models.user import User
from ....repositories.quiz_repository import QuizRepository
from ....services.grading_engine import GradingEngine
from ....services.quiz_attempt_service import QuizAttemptService
from ....services.quiz_stats_service import QuizStatsService
from ....services.results_policy import can_show_results
from ....utils.response_utils import to_http_exception
from ....utils.validation_utils import validate_quiz_questions

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("", response_model=QuizResponse, status_code=201)
async def create_quiz(
    payload: QuizCreate,
    current_user: User = Depends(require_staff),
    quiz_repo: QuizRepository = Depends(get_quiz_repository),
    grading_engine: GradingEngine = Depends(get_grading_engine)
) -> QuizResponse:
    try:
        validate_quiz_questions([q.model_dump(mode="json") for q in payload.questions])

        quiz = Quiz(
            subject_id=payload.subject_id,
            created_by=current_user.user_id,
            title=payload.title,
            description=payload.description,
            time_limit_minutes=payload.time_limit_minutes,
            attempts_allowed=payload.attempts_allowed,
            start_at=payload.start_at,
            end_at=payload.end_at,
            show_results_policy=payload.show_results_policy.value,
            questions=[
                QuizQuestion(
                    type=q.type.value,
                    text=q.text,
                    points=q.points,
                    media_url=q.media_url,
                    tolerance=q.tolerance,
                    order_index=position,
                    options=[
                        QuizOption(text=o.text, is_correct=o.is_correct, order_index=option_position)
                        for option_position, o in enumerate(q.options)
                    ]
                )
                for position, q in enumerate(payload.questions)
            ]
        )
        quiz = quiz_repo.create_quiz(quiz)
        logger.info("Quiz created", quiz_id=quiz.id, questions=len(payload.questions), created_by=current_user.user_id)

        bundle = quiz_repo.fetch_quiz_bundle(quiz.id)
        return QuizResponseMapper.map_quiz(bundle, grading_engine, include_answers=True)

    except QuizEngineError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to create quiz", error=str(e), exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to create quiz")


@router.get("/{quiz_id}", response_model=QuizResponse)
async def get_quiz(
    quiz_id: str,
    current_user: User = Depends(get_current_user_conditional),
    quiz_repo: QuizRepository = Depends(get_quiz_repository),
    grading_engine: GradingEngine = Depends(get_grading_engine)
) -> QuizResponse:
    bundle = quiz_repo.fetch_quiz_bundle(quiz_id)
    if not bundle:
        raise to_http_exception(QuizNotFoundError(quiz_id))
    return QuizResponseMapper.map_quiz(bundle, grading_engine, include_answers=current_user.is_staff)


@router.post("/{quiz_id}/attempts", response_model=StartAttemptResponse)
async def start_or_resume_attempt(
    quiz_id: str,
    current_user: User = Depends(get_current_user_conditional),
    service: QuizAttemptService = Depends(get_quiz_attempt_service),
    grading_engine: GradingEngine = Depends(get_grading_engine)
) -> StartAttemptResponse:
    """
    Resume the learner's in-progress attempt or start a new one.

    Fails with 409 QUOTA_EXCEEDED when no attempts remain (details carry the latest
    attempt id for a read-only view) and 403 OUT_OF_WINDOW outside the quiz window.
    """
    try:
        session = service.start_or_resume(quiz_id, current_user.user_id)
        return StartAttemptResponse(
            attempt=QuizResponseMapper.map_attempt(session.attempt, show_score=False),
            quiz=QuizResponseMapper.map_quiz(session.bundle, grading_engine),
            answers=session.answers,
            resumed=session.resumed,
            attempts_used=session.attempts_used,
            attempts_allowed=session.attempts_allowed,
            expires_at=session.expires_at,
            autosave_interval_seconds=get_settings().autosave_interval_seconds,
        )
    except QuizEngineError as e:
        logger.info("Attempt not started", quiz_id=quiz_id, user=current_user.user_id, reason=e.error_code)
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Start attempt failed", quiz_id=quiz_id, user=current_user.user_id, error=str(e), exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to start quiz attempt")


@router.get("/{quiz_id}/attempts", response_model=AttemptHistoryResponse)
async def list_my_attempts(
    quiz_id: str,
    current_user: User = Depends(get_current_user_conditional),
    service: QuizAttemptService = Depends(get_quiz_attempt_service)
) -> AttemptHistoryResponse:
    try:
        history = service.list_attempts(quiz_id, current_user.user_id)
    except QuizEngineError as e:
        raise to_http_exception(e)

    show_score = current_user.is_staff or can_show_results(history.quiz, service.clock())
    return AttemptHistoryResponse(
        quiz_id=quiz_id,
        attempts_used=history.attempts_used,
        attempts_allowed=history.attempts_allowed,
        attempts=[QuizResponseMapper.map_attempt(a, show_score=show_score) for a in history.attempts],
    )


@router.get("/{quiz_id}/stats", response_model=QuizStatsResponse)
async def get_quiz_stats(
    quiz_id: str,
    current_user: User = Depends(require_staff),
    quiz_repo: QuizRepository = Depends(get_quiz_repository),
    stats_service: QuizStatsService = Depends(get_quiz_stats_service)
) -> QuizStatsResponse:
    if not quiz_repo.get(quiz_id):
        raise to_http_exception(QuizNotFoundError(quiz_id))
    return QuizStatsResponse(**stats_service.get_quiz_stats(quiz_id))
