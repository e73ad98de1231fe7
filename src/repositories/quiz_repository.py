from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..exceptions import PersistenceFailureError
from ..models.quiz import Quiz, QuizQuestion, QuizOption

logger = structlog.get_logger(__name__)


@dataclass
class QuizBundle:
    quiz: Quiz
    questions: List[QuizQuestion] = field(default_factory=list)
    options_by_question: Dict[str, List[QuizOption]] = field(default_factory=dict)

    def get_question(self, question_id: str) -> Optional[QuizQuestion]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


class QuizRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, quiz_id: str) -> Optional[Quiz]:
        return self.session.query(Quiz).filter(Quiz.id == quiz_id).first()

    def fetch_quiz_bundle(self, quiz_id: str) -> Optional[QuizBundle]:
        """Load a quiz with its questions (in order) and their options"""
        quiz = (
            self.session.query(Quiz)
            .options(selectinload(Quiz.questions).selectinload(QuizQuestion.options))
            .filter(Quiz.id == quiz_id)
            .first()
        )
        if not quiz:
            return None

        questions = list(quiz.questions)
        return QuizBundle(
            quiz=quiz,
            questions=questions,
            options_by_question={q.id: list(q.options) for q in questions},
        )

    def create_quiz(self, quiz: Quiz) -> Quiz:
        """Persist a quiz together with its nested questions and options"""
        try:
            self.session.add(quiz)
            self.session.commit()
            self.session.refresh(quiz)
            return quiz
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Failed to save quiz", title=quiz.title, error=str(e))
            raise PersistenceFailureError(f"Failed to save quiz: {str(e)}")
