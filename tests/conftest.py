import pytest
from datetime import datetime, timedelta, timezone


class FrozenClock:
    """Controllable replacement for the service clock"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def test_db():
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from sqlalchemy.pool import StaticPool
    from src.core.database import Base
    from src.models import user, quiz, quiz_attempt, quiz_answer  # noqa: F401

    # Use in-memory SQLite for tests
    SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def quiz_factory(test_db):
    """
    Build and persist a quiz. Each question is a dict with type, points and
    options given as (text, is_correct) tuples.
    """
    from src.models.quiz import Quiz, QuizQuestion, QuizOption

    def make_quiz(questions, **quiz_kwargs):
        quiz_kwargs.setdefault("title", "Test Quiz")
        quiz_kwargs.setdefault("attempts_allowed", 1)
        quiz_kwargs.setdefault("show_results_policy", "immediate")
        quiz = Quiz(**quiz_kwargs)
        for position, spec in enumerate(questions):
            quiz.questions.append(QuizQuestion(
                type=spec["type"],
                text=spec.get("text", f"Question {position + 1}"),
                points=spec.get("points", 1),
                tolerance=spec.get("tolerance"),
                order_index=position,
                options=[
                    QuizOption(text=text, is_correct=is_correct, order_index=i)
                    for i, (text, is_correct) in enumerate(spec.get("options", []))
                ],
            ))
        test_db.add(quiz)
        test_db.commit()
        test_db.refresh(quiz)
        return quiz

    return make_quiz


@pytest.fixture
def attempt_service(test_db, clock):
    from src.repositories import QuizRepository, QuizAttemptRepository, QuizAnswerRepository
    from src.services.grading_engine import GradingEngine
    from src.services.score_aggregator import ScoreAggregator
    from src.services.quiz_attempt_service import QuizAttemptService

    attempt_repo = QuizAttemptRepository(test_db)
    answer_repo = QuizAnswerRepository(test_db)
    return QuizAttemptService(
        quiz_repo=QuizRepository(test_db),
        attempt_repo=attempt_repo,
        answer_repo=answer_repo,
        grading_engine=GradingEngine(),
        score_aggregator=ScoreAggregator(attempt_repo, answer_repo),
        default_attempts_allowed=1,
        grace_seconds=30,
        clock=clock,
    )


@pytest.fixture
def option_id():
    def find(quiz, question_index: int, option_text: str) -> str:
        for option in quiz.questions[question_index].options:
            if option.text == option_text:
                return option.id
        raise KeyError(option_text)

    return find


@pytest.fixture
def mock_current_user(test_db):
    from src.models.user import User
    user = User(
        user_id="test_user_id",
        email="test@example.com",
        full_name="Test User",
        firebase_uid="test_firebase_uid",
        role="student"
    )
    test_db.add(user)
    test_db.commit()
    test_db.refresh(user)
    return user


@pytest.fixture
def mock_teacher(test_db):
    from src.models.user import User
    user = User(
        user_id="test_teacher_id",
        email="teacher@example.com",
        full_name="Test Teacher",
        firebase_uid="test_teacher_firebase_uid",
        role="teacher"
    )
    test_db.add(user)
    test_db.commit()
    test_db.refresh(user)
    return user


@pytest.fixture
def login():
    from src.main import app
    from src.api.dependencies import get_current_user_conditional

    def use(user):
        app.dependency_overrides[get_current_user_conditional] = lambda: user

    return use


@pytest.fixture
async def async_client(test_db, mock_current_user, login):
    from httpx import AsyncClient, ASGITransport
    from src.main import app
    from src.core.database import get_db

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    login(mock_current_user)

    # Use ASGITransport for direct app interaction
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
