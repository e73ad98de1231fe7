from typing import List, Optional

from ....models.quiz import QuestionType, QuizQuestion, QuizOption
from ....models.quiz_answer import QuizAnswer
from ....models.quiz_attempt import QuizAttempt
from ....repositories.quiz_repository import QuizBundle
from ....services.grading_engine import GradingEngine
from ....services.score_aggregator import awaits_manual_grading
from ..schemas import (
    AttemptResponse,
    AttemptResultResponse,
    OptionResponse,
    QuestionResponse,
    QuestionResult,
    QuizResponse,
)


class QuizResponseMapper:
    """Maps quiz, attempt and answer rows to API response models"""

    @staticmethod
    def map_quiz(bundle: QuizBundle, grading_engine: GradingEngine, include_answers: bool = False) -> QuizResponse:
        """
        Maps a quiz bundle; correctness flags and tolerances are only included for staff
        """
        quiz = bundle.quiz
        questions = [
            QuizResponseMapper._map_question(
                q,
                bundle.options_by_question.get(q.id, []),
                grading_engine,
                include_answers
            )
            for q in bundle.questions
        ]

        return QuizResponse(
            id=quiz.id,
            subject_id=quiz.subject_id,
            title=quiz.title,
            description=quiz.description,
            time_limit_minutes=quiz.time_limit_minutes,
            attempts_allowed=quiz.attempts_allowed,
            start_at=quiz.start_at,
            end_at=quiz.end_at,
            show_results_policy=quiz.show_results_policy,
            total_points=QuizResponseMapper.max_score(bundle, grading_engine),
            questions=questions,
        )

    @staticmethod
    def map_attempt(attempt: QuizAttempt, show_score: bool) -> AttemptResponse:
        response = AttemptResponse.model_validate(attempt)
        if not show_score:
            response.score = None
        return response

    @staticmethod
    def map_result(
        attempt: QuizAttempt,
        bundle: QuizBundle,
        answers: List[QuizAnswer],
        grading_engine: GradingEngine
    ) -> AttemptResultResponse:
        answers_by_question = {a.question_id: a for a in answers}
        results = []

        for q in bundle.questions:
            answer: Optional[QuizAnswer] = answers_by_question.get(q.id)
            options = bundle.options_by_question.get(q.id, [])
            results.append(QuestionResult(
                question_id=q.id,
                type=q.type,
                text=q.text,
                answer_payload=answer.answer_payload if answer else None,
                is_correct=answer.is_correct if answer else None,
                points_awarded=answer.points_awarded if answer else None,
                max_points=grading_engine.question_points(q),
                correct_option_ids=[o.id for o in options if o.is_correct],
                pending_manual_grading=answer is not None and awaits_manual_grading(q.type, answer),
            ))

        max_score = QuizResponseMapper.max_score(bundle, grading_engine)
        score = float(attempt.score or 0)

        return AttemptResultResponse(
            attempt=QuizResponseMapper.map_attempt(attempt, show_score=True),
            score=score,
            max_score=max_score,
            percentage=round(score / max_score * 100, 2) if max_score > 0 else 0.0,
            display_duration=attempt.display_duration,
            questions=results,
        )

    @staticmethod
    def max_score(bundle: QuizBundle, grading_engine: GradingEngine) -> float:
        return sum(grading_engine.question_points(q) for q in bundle.questions)

    @staticmethod
    def _map_question(
        q: QuizQuestion,
        options: List[QuizOption],
        grading_engine: GradingEngine,
        include_answers: bool
    ) -> QuestionResponse:
        mapped_options = [
            OptionResponse(id=o.id, text=o.text, is_correct=o.is_correct if include_answers else None)
            for o in options
        ]
        # The correct value of a numeric question is its only option
        if q.type == QuestionType.NUMERIC.value and not include_answers:
            mapped_options = []

        return QuestionResponse(
            id=q.id,
            type=q.type,
            text=q.text,
            points=grading_engine.question_points(q),
            media_url=q.media_url,
            tolerance=q.tolerance if include_answers else None,
            options=mapped_options,
        )

