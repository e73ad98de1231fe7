from datetime import datetime
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ...models.quiz import QuestionType, ShowResultsPolicy
from ...models.quiz_attempt import AttemptStatus


class OptionCreate(BaseModel):
    text: str = Field(..., min_length=1)
    is_correct: bool = Field(default=False)


class QuestionCreate(BaseModel):
    type: QuestionType
    text: str = Field(..., min_length=1)
    points: float = Field(default=1, gt=0)
    media_url: Optional[str] = Field(default=None)
    tolerance: Optional[float] = Field(default=None, ge=0, description="Absolute tolerance for numeric questions")
    options: List[OptionCreate] = Field(default_factory=list)


class QuizCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    subject_id: Optional[str] = Field(default=None)
    description: Optional[str] = Field(default=None)
    time_limit_minutes: Optional[int] = Field(default=None, gt=0)
    attempts_allowed: int = Field(default=1, ge=1)
    start_at: Optional[datetime] = Field(default=None)
    end_at: Optional[datetime] = Field(default=None)
    show_results_policy: ShowResultsPolicy = Field(default=ShowResultsPolicy.IMMEDIATE)
    questions: List[QuestionCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_window(self):
        if self.start_at and self.end_at and self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "title": "Fractions check-in",
            "time_limit_minutes": 15,
            "attempts_allowed": 2,
            "show_results_policy": "immediate",
            "questions": [
                {
                    "type": "mcq_single",
                    "text": "1/2 + 1/4 = ?",
                    "points": 2,
                    "options": [
                        {"text": "3/4", "is_correct": True},
                        {"text": "2/6"},
                    ]
                },
                {
                    "type": "numeric",
                    "text": "Write 3/4 as a decimal",
                    "tolerance": 0.01,
                    "options": [{"text": "0.75", "is_correct": True}]
                }
            ]
        }
    })


class OptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    text: str
    is_correct: Optional[bool] = None


class QuestionResponse(BaseModel):
    id: str
    type: str
    text: str
    points: float
    media_url: Optional[str] = None
    tolerance: Optional[float] = None
    options: List[OptionResponse] = Field(default_factory=list)


class QuizResponse(BaseModel):
    id: str
    subject_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    time_limit_minutes: Optional[int] = None
    attempts_allowed: int
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    show_results_policy: str
    total_points: float
    questions: List[QuestionResponse] = Field(default_factory=list)


class AttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    quiz_id: str
    student_id: str
    status: AttemptStatus
    started_at: datetime
    submitted_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    score: Optional[float] = Field(default=None, description="Omitted while results are hidden")


class StartAttemptResponse(BaseModel):
    attempt: AttemptResponse
    quiz: QuizResponse
    answers: Dict[str, Any] = Field(default_factory=dict, description="Saved answer payloads keyed by question id")
    resumed: bool
    attempts_used: int
    attempts_allowed: int
    expires_at: Optional[datetime] = None
    autosave_interval_seconds: int


class AnswerSaveRequest(BaseModel):
    payload: Dict[str, Any]

    model_config = ConfigDict(json_schema_extra={
        "example": {"payload": {"selected_option_ids": ["5c7d..."]}}
    })


class AnswerSaveResponse(BaseModel):
    attempt_id: str
    question_id: str
    answer_payload: Dict[str, Any]
    saved_at: Optional[datetime] = None


class AutosaveRequest(BaseModel):
    answers: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="Answer payloads keyed by question id")


class AutosaveResponse(BaseModel):
    saved: List[str]
    failed: Dict[str, str]


class SubmitRequest(BaseModel):
    elapsed_seconds: Optional[float] = Field(default=None, ge=0, description="Client measured time spent")
    auto: bool = Field(default=False, description="Submitted by the client timer on expiry")


class SubmitResponse(BaseModel):
    attempt: AttemptResponse
    show_results: bool
    score: Optional[float] = None
    max_score: Optional[float] = None


class QuestionResult(BaseModel):
    question_id: str
    type: str
    text: str
    answer_payload: Optional[Dict[str, Any]] = None
    is_correct: Optional[bool] = None
    points_awarded: Optional[float] = None
    max_points: float
    correct_option_ids: List[str] = Field(default_factory=list)
    pending_manual_grading: bool = False


class AttemptResultResponse(BaseModel):
    attempt: AttemptResponse
    score: float
    max_score: float
    percentage: float
    display_duration: str
    questions: List[QuestionResult]


class AttemptHistoryResponse(BaseModel):
    quiz_id: str
    attempts_used: int
    attempts_allowed: int
    attempts: List[AttemptResponse]


class QuizStatsResponse(BaseModel):
    quiz_id: str
    total_attempts: int
    completed_attempts: int
    completion_rate: int
    average_score: float
    median_score: float
    score_std_deviation: float
    highest_score: float
    lowest_score: float
