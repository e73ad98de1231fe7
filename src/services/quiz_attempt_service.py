from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import structlog

from ..exceptions import (
    AttemptNotFoundError,
    InvalidAnswerPayloadError,
    InvalidStateError,
    OutOfWindowError,
    PersistenceFailureError,
    QuestionNotFoundError,
    QuizNotFoundError,
    QuotaExceededError,
)
from ..models.quiz import Quiz
from ..models.quiz_answer import QuizAnswer
from ..models.quiz_attempt import QuizAttempt, AttemptStatus
from ..repositories.quiz_answer_repository import QuizAnswerRepository
from ..repositories.quiz_attempt_repository import QuizAttemptRepository
from ..repositories.quiz_repository import QuizBundle, QuizRepository
from ..schemas.answers import dump_answer_payload, parse_answer_payload
from ..utils.time_utils import ensure_utc, utc_now
from .grading_engine import AnswerGrade, GradingEngine
from .score_aggregator import ScoreAggregator

logger = structlog.get_logger(__name__)


@dataclass
class AttemptSession:
    attempt: QuizAttempt
    bundle: QuizBundle
    answers: Dict[str, Any]
    resumed: bool
    attempts_used: int
    attempts_allowed: int
    expires_at: Optional[datetime] = None


@dataclass
class AutosaveResult:
    saved: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


@dataclass
class SubmissionResult:
    attempt: QuizAttempt
    bundle: QuizBundle
    grades: List[AnswerGrade]
    score: float


@dataclass
class AttemptHistory:
    quiz: Quiz
    attempts: List[QuizAttempt]
    attempts_allowed: int

    @property
    def attempts_used(self) -> int:
        return len(self.attempts)


class QuizAttemptService:
    """
    Lifecycle of a learner's quiz attempt: in_progress -> submitted -> graded.

    Every operation takes the learner id explicitly; ownership is checked against
    the attempt row. `clock` returns the current UTC time.
    """

    def __init__(
        self,
        quiz_repo: QuizRepository,
        attempt_repo: QuizAttemptRepository,
        answer_repo: QuizAnswerRepository,
        grading_engine: GradingEngine,
        score_aggregator: ScoreAggregator,
        default_attempts_allowed: int = 1,
        grace_seconds: int = 0,
        clock: Callable[[], datetime] = utc_now
    ):
        self.quiz_repo = quiz_repo
        self.attempt_repo = attempt_repo
        self.answer_repo = answer_repo
        self.grading_engine = grading_engine
        self.score_aggregator = score_aggregator
        self.default_attempts_allowed = default_attempts_allowed
        self.grace = timedelta(seconds=grace_seconds)
        self.clock = clock

    def start_or_resume(self, quiz_id: str, student_id: str) -> AttemptSession:
        bundle = self._get_bundle(quiz_id)
        quiz = bundle.quiz
        now = self.clock()

        attempts = self.attempt_repo.list_attempts(quiz_id, student_id)
        for unscored in (a for a in attempts if self._awaits_score(a)):
            logger.info("Grading previously submitted attempt", attempt_id=unscored.id, quiz_id=quiz_id)
            self._grade(unscored, bundle)

        in_progress = next((a for a in attempts if a.is_in_progress), None)

        if in_progress:
            if not self._has_expired(in_progress, quiz, now):
                logger.info("Resuming quiz attempt", attempt_id=in_progress.id, quiz_id=quiz_id, student_id=student_id)
                return self._session(in_progress, bundle, attempts, resumed=True)

            logger.info("Auto-submitting expired attempt", attempt_id=in_progress.id, quiz_id=quiz_id, student_id=student_id)
            self._submit(in_progress, bundle, elapsed_seconds=None, now=now)
            attempts = self.attempt_repo.list_attempts(quiz_id, student_id)

        allowed = self.attempts_allowed(quiz)

        if not self.is_within_window(quiz, now):
            raise OutOfWindowError(quiz_id)

        if len(attempts) >= allowed:
            latest = attempts[0] if attempts else None
            raise QuotaExceededError(quiz_id, allowed, latest.id if latest else None)

        try:
            attempt = self.attempt_repo.create_attempt(quiz_id, student_id, started_at=now)
        except InvalidStateError:
            # A concurrent request created the in-progress attempt first
            attempts = self.attempt_repo.list_attempts(quiz_id, student_id)
            in_progress = next((a for a in attempts if a.is_in_progress), None)
            if in_progress is None:
                raise
            return self._session(in_progress, bundle, attempts, resumed=True)

        logger.info(
            "Quiz attempt started",
            attempt_id=attempt.id,
            quiz_id=quiz_id,
            student_id=student_id,
            attempt_number=len(attempts) + 1,
            attempts_allowed=allowed
        )
        return self._session(attempt, bundle, [attempt] + attempts, resumed=False)

    def record_answer(self, attempt_id: str, student_id: str, question_id: str, payload: Dict[str, Any]) -> QuizAnswer:
        attempt = self._get_owned_attempt(attempt_id, student_id)
        bundle = self._get_bundle(attempt.quiz_id)
        self._ensure_accepting_answers(attempt, bundle.quiz)
        return self._save_answer(attempt, bundle, question_id, payload)

    def autosave_answers(self, attempt_id: str, student_id: str, answers: Dict[str, Dict[str, Any]]) -> AutosaveResult:
        """
        Best-effort save of several answers.

        State errors reject the whole batch; per-answer failures are logged and
        reported without interrupting the rest.
        """
        attempt = self._get_owned_attempt(attempt_id, student_id)
        bundle = self._get_bundle(attempt.quiz_id)
        self._ensure_accepting_answers(attempt, bundle.quiz)

        result = AutosaveResult()
        for question_id, payload in answers.items():
            try:
                self._save_answer(attempt, bundle, question_id, payload)
                result.saved.append(question_id)
            except (PersistenceFailureError, QuestionNotFoundError, InvalidAnswerPayloadError) as e:
                logger.warning(
                    "Autosave failed for answer",
                    attempt_id=attempt_id,
                    question_id=question_id,
                    error=e.message
                )
                result.failed[question_id] = e.error_code

        return result

    def submit(self, attempt_id: str, student_id: str, elapsed_seconds: Optional[float] = None, auto: bool = False) -> SubmissionResult:
        """
        Submit an in-progress attempt and grade it.

        A submitted attempt that never got its score (grading failed after the
        status change) is graded again instead of being rejected.
        """
        attempt = self._get_owned_attempt(attempt_id, student_id)
        if self._awaits_score(attempt):
            logger.info("Retrying grading of submitted attempt", attempt_id=attempt_id)
            return self._grade(attempt, self._get_bundle(attempt.quiz_id))
        if not attempt.is_in_progress:
            raise InvalidStateError("Attempt has already been submitted", attempt.id, attempt.status)

        bundle = self._get_bundle(attempt.quiz_id)
        if auto:
            logger.info("Time limit reached, submitting on behalf of learner", attempt_id=attempt_id)
        return self._submit(attempt, bundle, elapsed_seconds, self.clock())

    def list_attempts(self, quiz_id: str, student_id: str) -> AttemptHistory:
        quiz = self.quiz_repo.get(quiz_id)
        if not quiz:
            raise QuizNotFoundError(quiz_id)
        return AttemptHistory(
            quiz=quiz,
            attempts=self.attempt_repo.list_attempts(quiz_id, student_id),
            attempts_allowed=self.attempts_allowed(quiz)
        )

    def get_attempt(self, attempt_id: str, student_id: Optional[str] = None) -> QuizAttempt:
        """Fetch an attempt; when student_id is given it must own the attempt"""
        if student_id is None:
            attempt = self.attempt_repo.get_by_id(attempt_id)
            if not attempt:
                raise AttemptNotFoundError(attempt_id)
            return attempt
        return self._get_owned_attempt(attempt_id, student_id)

    def attempts_allowed(self, quiz: Quiz) -> int:
        if quiz.attempts_allowed and quiz.attempts_allowed > 0:
            return quiz.attempts_allowed
        return self.default_attempts_allowed

    def is_within_window(self, quiz: Quiz, now: datetime) -> bool:
        start_at = ensure_utc(quiz.start_at)
        end_at = ensure_utc(quiz.end_at)
        starts_ok = start_at is None or start_at <= now
        ends_ok = end_at is None or now <= end_at
        return starts_ok and ends_ok

    def deadline(self, attempt: QuizAttempt, quiz: Quiz) -> Optional[datetime]:
        """Earliest of the time-limit expiry and the quiz close time"""
        candidates = []
        if quiz.time_limit_minutes:
            candidates.append(ensure_utc(attempt.started_at) + timedelta(minutes=quiz.time_limit_minutes))
        if quiz.end_at is not None:
            candidates.append(ensure_utc(quiz.end_at))
        return min(candidates) if candidates else None

    def _submit(self, attempt: QuizAttempt, bundle: QuizBundle, elapsed_seconds: Optional[float], now: datetime) -> SubmissionResult:
        duration = self._resolve_duration(attempt, bundle.quiz, elapsed_seconds, now)

        updated = self.attempt_repo.update_attempt(
            attempt.id,
            {
                "status": AttemptStatus.SUBMITTED.value,
                "submitted_at": now,
                "duration_seconds": duration,
            },
            expected_status=AttemptStatus.IN_PROGRESS.value
        )
        if not updated:
            raise InvalidStateError("Attempt has already been submitted", attempt.id)

        logger.info("Quiz attempt submitted", attempt_id=attempt.id, quiz_id=attempt.quiz_id, duration_seconds=duration)

        return self._grade(attempt, bundle)

    def _grade(self, attempt: QuizAttempt, bundle: QuizBundle) -> SubmissionResult:
        answers = self.answer_repo.list_for_attempt(attempt.id)
        grades = self.grading_engine.grade_answers(bundle.questions, bundle.options_by_question, answers)
        self.answer_repo.apply_grades(grades)
        score = self.score_aggregator.finalize_score(attempt.id, bundle.questions)

        return SubmissionResult(
            attempt=self.attempt_repo.get_by_id(attempt.id),
            bundle=bundle,
            grades=grades,
            score=score
        )

    def _save_answer(self, attempt: QuizAttempt, bundle: QuizBundle, question_id: str, payload: Dict[str, Any]) -> QuizAnswer:
        question = bundle.get_question(question_id)
        if question is None:
            raise QuestionNotFoundError(question_id, bundle.quiz.id)

        parsed = parse_answer_payload(question.type, payload)
        return self.answer_repo.upsert_answer(attempt.id, question.id, dump_answer_payload(parsed))

    def _ensure_accepting_answers(self, attempt: QuizAttempt, quiz: Quiz) -> None:
        if not attempt.is_in_progress:
            raise InvalidStateError("Attempt is read-only", attempt.id, attempt.status)

        if self._has_expired(attempt, quiz, self.clock()):
            raise InvalidStateError("Time limit exceeded", attempt.id, attempt.status)

    def _has_expired(self, attempt: QuizAttempt, quiz: Quiz, now: datetime) -> bool:
        deadline = self.deadline(attempt, quiz)
        return deadline is not None and now > deadline + self.grace

    def _awaits_score(self, attempt: QuizAttempt) -> bool:
        return attempt.status == AttemptStatus.SUBMITTED.value and attempt.score is None

    def _resolve_duration(self, attempt: QuizAttempt, quiz: Quiz, elapsed_seconds: Optional[float], now: datetime) -> int:
        if elapsed_seconds is not None:
            duration = int(max(0, elapsed_seconds))
        else:
            duration = int(max(0, (now - ensure_utc(attempt.started_at)).total_seconds()))

        if quiz.time_limit_minutes:
            duration = min(duration, quiz.time_limit_minutes * 60)
        return duration

    def _get_bundle(self, quiz_id: str) -> QuizBundle:
        bundle = self.quiz_repo.fetch_quiz_bundle(quiz_id)
        if not bundle:
            raise QuizNotFoundError(quiz_id)
        return bundle

    def _get_owned_attempt(self, attempt_id: str, student_id: str) -> QuizAttempt:
        attempt = self.attempt_repo.get_by_id(attempt_id)
        if not attempt or attempt.student_id != student_id:
            raise AttemptNotFoundError(attempt_id)
        return attempt

    def _session(self, attempt: QuizAttempt, bundle: QuizBundle, attempts: List[QuizAttempt], resumed: bool) -> AttemptSession:
        return AttemptSession(
            attempt=attempt,
            bundle=bundle,
            answers=self.answer_repo.payloads_by_question(attempt.id),
            resumed=resumed,
            attempts_used=len(attempts),
            attempts_allowed=self.attempts_allowed(bundle.quiz),
            expires_at=self.deadline(attempt, bundle.quiz)
        )
