from enum import Enum

from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base
from .user import generate_uuid


class QuestionType(str, Enum):
    MCQ_SINGLE = "mcq_single"
    MCQ_MULTI = "mcq_multi"
    TRUE_FALSE = "true_false"
    NUMERIC = "numeric"
    SHORT_TEXT = "short_text"


AUTO_GRADED_TYPES = {
    QuestionType.MCQ_SINGLE.value,
    QuestionType.MCQ_MULTI.value,
    QuestionType.TRUE_FALSE.value,
    QuestionType.NUMERIC.value,
}


class ShowResultsPolicy(str, Enum):
    IMMEDIATE = "immediate"
    AFTER_CLOSE = "after_close"
    NEVER = "never"


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(String(36), primary_key=True, index=True, default=generate_uuid)
    subject_id = Column(String(36), nullable=True, index=True)
    created_by = Column(String, ForeignKey("users.user_id"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    time_limit_minutes = Column(Integer, nullable=True)
    attempts_allowed = Column(Integer, nullable=False, default=1)
    start_at = Column(DateTime(timezone=True), nullable=True)
    end_at = Column(DateTime(timezone=True), nullable=True)
    show_results_policy = Column(String(20), nullable=False, default=ShowResultsPolicy.IMMEDIATE.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        order_by="QuizQuestion.order_index",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Quiz(id={self.id}, title={self.title!r}, attempts_allowed={self.attempts_allowed})>"


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"

    id = Column(String(36), primary_key=True, index=True, default=generate_uuid)
    quiz_id = Column(String(36), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    text = Column(Text, nullable=False)
    points = Column(Float, nullable=False, default=1)
    order_index = Column(Integer, nullable=False, default=0)
    media_url = Column(String, nullable=True)
    # Absolute tolerance for numeric questions
    tolerance = Column(Float, nullable=True)

    quiz = relationship("Quiz", back_populates="questions")
    options = relationship(
        "QuizOption",
        back_populates="question",
        order_by="QuizOption.order_index",
        cascade="all, delete-orphan",
    )


class QuizOption(Base):
    __tablename__ = "quiz_options"

    id = Column(String(36), primary_key=True, index=True, default=generate_uuid)
    question_id = Column(String(36), ForeignKey("quiz_questions.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    order_index = Column(Integer, nullable=False, default=0)

    question = relationship("QuizQuestion", back_populates="options")
