from typing import Any, Dict, List

from ..exceptions import InvalidQuizDefinitionError
from ..models.quiz import QuestionType
from ..services.grading_engine import parse_number


def validate_question_options(question_type: str, options: List[Dict[str, Any]], position: int) -> None:
    correct = [o for o in options if o.get("is_correct")]

    def fail(message: str):
        raise InvalidQuizDefinitionError(
            f"Question {position + 1}: {message}",
            error_code="INVALID_QUIZ_DEFINITION",
            details={"question_index": position, "question_type": question_type}
        )

    if question_type == QuestionType.SHORT_TEXT.value:
        if correct:
            fail("short text questions are graded manually and cannot flag a correct option")
        return

    if not correct:
        fail("at least one option must be marked correct")

    if question_type in (QuestionType.MCQ_SINGLE.value, QuestionType.TRUE_FALSE.value) and len(correct) != 1:
        fail("exactly one option must be marked correct")

    if question_type == QuestionType.MCQ_MULTI.value and len(options) < 2:
        fail("multiple choice questions need at least two options")

    if question_type == QuestionType.NUMERIC.value:
        if len(correct) != 1:
            fail("numeric questions take a single correct value")
        if parse_number(correct[0].get("text")) is None:
            fail("the correct value of a numeric question must be a number")


def validate_quiz_questions(questions: List[Dict[str, Any]]) -> None:
    if not questions:
        raise InvalidQuizDefinitionError("A quiz needs at least one question", error_code="INVALID_QUIZ_DEFINITION")

    for position, question in enumerate(questions):
        validate_question_options(question["type"], question.get("options", []), position)
