"""
Answer payloads, one shape per question type.

Payloads are stored as JSON on the answer row:

- ``mcq_single`` / ``mcq_multi``: ``{"selected_option_ids": [...]}``
- ``true_false``: ``{"bool": true}``
- ``numeric``: ``{"number": 10.4}``
- ``short_text``: ``{"text": "..."}``
"""

from typing import Any, Dict, List, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError, field_validator

from ..exceptions import InvalidAnswerPayloadError
from ..models.quiz import QuestionType


class ChoiceAnswer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    selected_option_ids: List[str] = Field(default_factory=list)

    @field_validator("selected_option_ids")
    @classmethod
    def drop_duplicates(cls, value: List[str]) -> List[str]:
        seen = []
        for option_id in value:
            if option_id not in seen:
                seen.append(option_id)
        return seen


class TrueFalseAnswer(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    value: StrictBool = Field(alias="bool")


class NumericAnswer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: float = Field(allow_inf_nan=False)

    @field_validator("number", mode="before")
    @classmethod
    def reject_booleans(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("number must be numeric")
        return value


class ShortTextAnswer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str = ""


AnswerPayload = Union[ChoiceAnswer, TrueFalseAnswer, NumericAnswer, ShortTextAnswer]

PAYLOAD_MODELS = {
    QuestionType.MCQ_SINGLE.value: ChoiceAnswer,
    QuestionType.MCQ_MULTI.value: ChoiceAnswer,
    QuestionType.TRUE_FALSE.value: TrueFalseAnswer,
    QuestionType.NUMERIC.value: NumericAnswer,
    QuestionType.SHORT_TEXT.value: ShortTextAnswer,
}


def parse_answer_payload(question_type: str, raw: Dict[str, Any]) -> AnswerPayload:
    model = PAYLOAD_MODELS.get(question_type)
    if model is None:
        raise InvalidAnswerPayloadError(
            f"Unsupported question type: {question_type}",
            error_code="UNSUPPORTED_QUESTION_TYPE",
            details={"question_type": question_type},
        )
    if not isinstance(raw, dict):
        raise InvalidAnswerPayloadError(
            "Answer payload must be an object",
            error_code="INVALID_ANSWER_PAYLOAD",
            details={"question_type": question_type},
        )
    try:
        payload = model.model_validate(raw)
    except ValidationError as e:
        raise InvalidAnswerPayloadError(
            f"Invalid {question_type} answer payload",
            error_code="INVALID_ANSWER_PAYLOAD",
            details={"question_type": question_type, "errors": e.errors(include_url=False, include_context=False)},
        ) from e

    if question_type == QuestionType.MCQ_SINGLE.value and len(payload.selected_option_ids) > 1:
        raise InvalidAnswerPayloadError(
            "Single choice questions accept one option",
            error_code="INVALID_ANSWER_PAYLOAD",
            details={"question_type": question_type},
        )
    return payload


def dump_answer_payload(payload: AnswerPayload) -> Dict[str, Any]:
    return payload.model_dump(by_alias=True)
