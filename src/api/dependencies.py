from typing import Optional
import logging
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from fastapi import Depends, Request, HTTPException
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.firebase import verify_firebase_token, get_or_create_user, role_from_claims
from ..repositories.quiz_repository import QuizRepository
from ..repositories.quiz_attempt_repository import QuizAttemptRepository
from ..repositories.quiz_answer_repository import QuizAnswerRepository
from ..services.grading_engine import GradingEngine
from ..services.score_aggregator import ScoreAggregator
from ..services.quiz_attempt_service import QuizAttemptService
from ..services.quiz_stats_service import QuizStatsService
from ..models.user import User, UserRole
from ..config import get_settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_quiz_repository(db: Session = Depends(get_db)) -> QuizRepository:
    return QuizRepository(db)


def get_quiz_attempt_repository(db: Session = Depends(get_db)) -> QuizAttemptRepository:
    return QuizAttemptRepository(db)


def get_quiz_answer_repository(db: Session = Depends(get_db)) -> QuizAnswerRepository:
    return QuizAnswerRepository(db)


def get_grading_engine() -> GradingEngine:
    settings = get_settings()
    return GradingEngine(default_points=settings.default_question_points)


def get_quiz_attempt_service(
    quiz_repo: QuizRepository = Depends(get_quiz_repository),
    attempt_repo: QuizAttemptRepository = Depends(get_quiz_attempt_repository),
    answer_repo: QuizAnswerRepository = Depends(get_quiz_answer_repository),
    grading_engine: GradingEngine = Depends(get_grading_engine)
) -> QuizAttemptService:
    settings = get_settings()
    return QuizAttemptService(
        quiz_repo=quiz_repo,
        attempt_repo=attempt_repo,
        answer_repo=answer_repo,
        grading_engine=grading_engine,
        score_aggregator=ScoreAggregator(attempt_repo, answer_repo),
        default_attempts_allowed=settings.default_attempts_allowed,
        grace_seconds=settings.submission_grace_seconds
    )


def get_quiz_stats_service(
    attempt_repo: QuizAttemptRepository = Depends(get_quiz_attempt_repository)
) -> QuizStatsService:
    return QuizStatsService(attempt_repo)


async def get_current_user_required(
    request: Request,
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> User:
    settings = get_settings()

    user = await get_current_user_optional(request, db, credentials)

    if not user and settings.demo_mode:
        demo_user = await get_or_create_demo_user(db, settings.demo_user_id, settings.demo_user_role)
        return demo_user

    if not user:
        raise HTTPException(
            status_code=401,
            detail="Authentication required. Please provide a valid Firebase token."
        )
    return user


async def get_or_create_demo_user(db: Session, demo_user_id: str, role: str = UserRole.STUDENT.value) -> User:
    existing_user = db.query(User).filter(User.user_id == demo_user_id).first()
    if existing_user:
        return existing_user

    demo_user = User(
        user_id=demo_user_id,
        firebase_uid=f"demo-{demo_user_id}",
        email="demo@example.com",
        full_name="Demo User",
        role=role
    )
    db.add(demo_user)
    db.commit()
    db.refresh(demo_user)
    return demo_user


async def get_current_user_optional(
    request: Request,
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[User]:
    try:
        if not credentials or not credentials.credentials:
            return None

        firebase_data = verify_firebase_token(credentials.credentials)
        if not firebase_data:
            return None

        firebase_uid = firebase_data.get("uid")
        email = firebase_data.get("email")
        name = firebase_data.get("name", firebase_data.get("email", "Unknown User"))

        if not firebase_uid or not email:
            return None

        try:
            return await get_or_create_user(
                db=db,
                firebase_uid=firebase_uid,
                email=email,
                full_name=name,
                role=role_from_claims(firebase_data)
            )
        except Exception:
            logger.exception("Failed to provision user %s", firebase_uid)
            return db.query(User).filter(User.firebase_uid == firebase_uid).first()

    except Exception:
        logger.exception("Authentication failed")
        return None


async def get_or_create_anonymous_user(db: Session) -> User:
    """Create or return an anonymous user for when authentication is disabled"""
    anonymous_user_id = "anonymous-user"

    existing_user = db.query(User).filter(User.user_id == anonymous_user_id).first()
    if existing_user:
        return existing_user

    anonymous_user = User(
        user_id=anonymous_user_id,
        firebase_uid="anonymous",
        email="anonymous@example.com",
        full_name="Anonymous User",
        role=UserRole.STUDENT.value
    )
    db.add(anonymous_user)
    db.commit()
    db.refresh(anonymous_user)
    return anonymous_user


async def get_current_user_conditional(
    request: Request,
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> User:
    """
    Conditional authentication dependency that enforces auth based on settings.
    - If authentication_enabled=True: requires valid auth (like get_current_user_required)
    - If authentication_enabled=False: returns anonymous user without requiring auth
    """
    settings = get_settings()

    if not settings.authentication_enabled:
        return await get_or_create_anonymous_user(db)

    return await get_current_user_required(request, db, credentials)


async def require_staff(current_user: User = Depends(get_current_user_conditional)) -> User:
    """Teachers, supervisors and admins only"""
    if not current_user.is_staff:
        raise HTTPException(status_code=403, detail="Only teachers can perform this action")
    return current_user
