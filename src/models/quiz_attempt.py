from enum import Enum

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Index, text
from sqlalchemy.sql import func

from ..core.database import Base
from .user import generate_uuid


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    GRADED = "graded"


class QuizAttempt(Base):
    """
    One learner's pass at a quiz, from start until its score is written.
    """
    __tablename__ = "quiz_attempts"

    id = Column(String(36), primary_key=True, index=True, default=generate_uuid)
    quiz_id = Column(String(36), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(String, nullable=False, index=True)

    status = Column(String(20), nullable=False, default=AttemptStatus.IN_PROGRESS.value)
    score = Column(Float, nullable=True)
    duration_seconds = Column(Integer, nullable=True)

    started_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        # At most one in-progress attempt per (quiz, student)
        Index(
            "uq_quiz_attempts_one_in_progress",
            "quiz_id",
            "student_id",
            unique=True,
            sqlite_where=text("status = 'in_progress'"),
            postgresql_where=text("status = 'in_progress'"),
        ),
    )

    @property
    def is_in_progress(self) -> bool:
        return self.status == AttemptStatus.IN_PROGRESS.value

    @property
    def display_duration(self) -> str:
        """Format duration for display"""
        if not self.duration_seconds:
            return "N/A"

        hours = self.duration_seconds // 3600
        minutes = (self.duration_seconds % 3600) // 60
        seconds = self.duration_seconds % 60

        if hours > 0:
            return f"{hours}h {minutes}m {seconds}s"
        elif minutes > 0:
            return f"{minutes}m {seconds}s"
        else:
            return f"{seconds}s"

    def __repr__(self):
        return f"<QuizAttempt(id={self.id}, quiz_id={self.quiz_id}, status={self.status}, score={self.score})>"
