import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

import structlog

from ..exceptions import GradingItemFailure, InvalidAnswerPayloadError
from ..models.quiz import QuestionType, QuizOption, QuizQuestion
from ..models.quiz_answer import QuizAnswer
from ..schemas.answers import parse_answer_payload

logger = structlog.get_logger(__name__)

TRUE_OPTION_TEXTS = {"True", "true", "T"}

# Payload key holding the learner's response, per auto-graded type
RESPONSE_KEYS = {
    QuestionType.MCQ_SINGLE.value: "selected_option_ids",
    QuestionType.MCQ_MULTI.value: "selected_option_ids",
    QuestionType.TRUE_FALSE.value: "bool",
    QuestionType.NUMERIC.value: "number",
}


@dataclass(frozen=True)
class AnswerGrade:
    answer_id: str
    question_id: str
    is_correct: bool
    points_awarded: float


class GradingEngine:
    """
    Scores objective answers of a submitted attempt.

    Grading is a pure function of (answers, questions, options): nothing is read
    from or written to the database here. short_text and unknown question types
    are left out of the result for manual grading.
    """

    def __init__(self, default_points: float = 1):
        self.default_points = default_points

    def grade_answers(
        self,
        questions: Sequence[QuizQuestion],
        options_by_question: Dict[str, List[QuizOption]],
        answers: Iterable[QuizAnswer]
    ) -> List[AnswerGrade]:
        questions_by_id = {q.id: q for q in questions}
        grades = []

        for answer in answers:
            question = questions_by_id.get(answer.question_id)
            if question is None or question.type not in RESPONSE_KEYS:
                continue
            if answer.answer_payload is None:
                continue

            try:
                is_correct = self.grade_answer(
                    question,
                    options_by_question.get(question.id, []),
                    answer.answer_payload
                )
            except GradingItemFailure as e:
                logger.warning(
                    "Answer left ungraded",
                    answer_id=answer.id,
                    question_id=question.id,
                    question_type=question.type,
                    error=e.message
                )
                continue
            except (TypeError, ValueError) as e:
                logger.warning(
                    "Answer left ungraded",
                    answer_id=answer.id,
                    question_id=question.id,
                    question_type=question.type,
                    error=str(e)
                )
                continue

            points = self.question_points(question)
            grades.append(AnswerGrade(
                answer_id=answer.id,
                question_id=question.id,
                is_correct=is_correct,
                points_awarded=points if is_correct else 0
            ))

        return grades

    def grade_answer(self, question: QuizQuestion, options: List[QuizOption], raw_payload: Any) -> bool:
        """Return whether a single answer is correct; raises GradingItemFailure if it cannot be judged"""
        if not isinstance(raw_payload, dict):
            raise GradingItemFailure("Answer payload is not an object")

        # A missing selection is a wrong answer, not a malformed one
        if raw_payload.get(RESPONSE_KEYS[question.type]) is None:
            return False

        try:
            payload = parse_answer_payload(question.type, raw_payload)
        except InvalidAnswerPayloadError as e:
            raise GradingItemFailure(e.message, details=e.details)

        if question.type == QuestionType.MCQ_SINGLE.value:
            return self._grade_single_choice(options, payload.selected_option_ids)
        if question.type == QuestionType.MCQ_MULTI.value:
            return self._grade_multi_choice(options, payload.selected_option_ids)
        if question.type == QuestionType.TRUE_FALSE.value:
            return self._grade_true_false(options, payload.value)
        return self._grade_numeric(question, options, payload.number)

    def question_points(self, question: QuizQuestion) -> float:
        points = question.points
        if isinstance(points, (int, float)) and not isinstance(points, bool) and points > 0:
            return points
        return self.default_points

    def _grade_single_choice(self, options: List[QuizOption], selected: List[str]) -> bool:
        correct_option = self._correct_option(options)
        if len(selected) != 1:
            return False
        return selected[0] == correct_option.id

    def _grade_multi_choice(self, options: List[QuizOption], selected: List[str]) -> bool:
        correct_ids = sorted(o.id for o in options if o.is_correct)
        if not correct_ids:
            raise GradingItemFailure("Question has no correct option")
        return sorted(selected) == correct_ids

    def _grade_true_false(self, options: List[QuizOption], provided: bool) -> bool:
        correct_option = self._correct_option(options)
        expected = (correct_option.text or "").strip() in TRUE_OPTION_TEXTS
        return provided == expected

    def _grade_numeric(self, question: QuizQuestion, options: List[QuizOption], provided: float) -> bool:
        correct_option = self._correct_option(options)
        correct_value = parse_number(correct_option.text)
        if correct_value is None:
            raise GradingItemFailure(f"Correct value {correct_option.text!r} is not a number")

        tolerance = parse_tolerance(question.tolerance)
        difference = abs(provided - correct_value)
        return difference <= tolerance or math.isclose(difference, tolerance, rel_tol=1e-9, abs_tol=1e-12)

    def _correct_option(self, options: List[QuizOption]) -> QuizOption:
        for option in options:
            if option.is_correct:
                return option
        raise GradingItemFailure("Question has no correct option")


def parse_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_tolerance(value: Any) -> float:
    tolerance = parse_number(value)
    if tolerance is None or tolerance < 0:
        return 0.0
    return tolerance
