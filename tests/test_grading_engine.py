import pytest

from src.models.quiz import QuizQuestion, QuizOption
from src.models.quiz_answer import QuizAnswer
from src.services.grading_engine import GradingEngine, parse_tolerance


def question(qid, qtype, points=1, tolerance=None):
    return QuizQuestion(id=qid, type=qtype, text=f"{qid}?", points=points, tolerance=tolerance)


def option(oid, qid, text, is_correct=False):
    return QuizOption(id=oid, question_id=qid, text=text, is_correct=is_correct)


def answer(aid, qid, payload):
    return QuizAnswer(id=aid, attempt_id="attempt-1", question_id=qid, answer_payload=payload)


@pytest.fixture
def engine():
    return GradingEngine()


@pytest.fixture
def single_choice():
    q = question("q1", "mcq_single", points=2)
    options = [option("A", "q1", "Paris", True), option("B", "q1", "Rome"), option("C", "q1", "Oslo")]
    return q, {"q1": options}


@pytest.fixture
def multi_choice():
    q = question("q2", "mcq_multi", points=3)
    options = [
        option("A", "q2", "2", True),
        option("B", "q2", "4"),
        option("C", "q2", "3", True),
    ]
    return q, {"q2": options}


def grade_one(engine, q, options_by_question, payload):
    grades = engine.grade_answers([q], options_by_question, [answer("a1", q.id, payload)])
    assert len(grades) == 1
    return grades[0]


def test_single_choice_correct_awards_full_points(engine, single_choice):
    q, options = single_choice
    grade = grade_one(engine, q, options, {"selected_option_ids": ["A"]})
    assert grade.is_correct is True
    assert grade.points_awarded == 2


def test_single_choice_wrong_option_scores_zero(engine, single_choice):
    q, options = single_choice
    grade = grade_one(engine, q, options, {"selected_option_ids": ["B"]})
    assert grade.is_correct is False
    assert grade.points_awarded == 0


@pytest.mark.parametrize("payload", [
    {"selected_option_ids": []},
    {"selected_option_ids": None},
    {},
])
def test_missing_selection_is_incorrect(engine, single_choice, payload):
    q, options = single_choice
    grade = grade_one(engine, q, options, payload)
    assert grade.is_correct is False
    assert grade.points_awarded == 0


def test_multi_choice_exact_set_is_correct_in_any_order(engine, multi_choice):
    q, options = multi_choice
    grade = grade_one(engine, q, options, {"selected_option_ids": ["C", "A"]})
    assert grade.is_correct is True
    assert grade.points_awarded == 3


@pytest.mark.parametrize("selected", [["A"], ["C"], ["A", "B", "C"], ["B"], []])
def test_multi_choice_has_no_partial_credit(engine, multi_choice, selected):
    q, options = multi_choice
    grade = grade_one(engine, q, options, {"selected_option_ids": selected})
    assert grade.is_correct is False
    assert grade.points_awarded == 0


@pytest.mark.parametrize("correct_text,provided,expected", [
    ("True", True, True),
    ("true", True, True),
    ("T", True, True),
    ("True", False, False),
    ("False", False, True),
    ("Faux", False, True),
    ("False", True, False),
])
def test_true_false_reads_correct_option_text(engine, correct_text, provided, expected):
    q = question("q3", "true_false")
    other = "False" if correct_text != "False" else "True"
    options = {"q3": [option("T1", "q3", correct_text, True), option("F1", "q3", other)]}
    grade = grade_one(engine, q, options, {"bool": provided})
    assert grade.is_correct is expected


def test_true_false_rejects_non_boolean_payload(engine):
    q = question("q3", "true_false")
    options = {"q3": [option("T1", "q3", "True", True), option("F1", "q3", "False")]}
    grades = engine.grade_answers([q], options, [answer("a1", "q3", {"bool": "yes"})])
    assert grades == []


@pytest.mark.parametrize("provided,expected", [
    (10.4, True),
    (10.6, False),
    (10.5, True),
    (9.5, True),
    (11.5, False),
    (8.5, False),
])
def test_numeric_within_tolerance(engine, provided, expected):
    q = question("q4", "numeric", tolerance=0.5)
    options = {"q4": [option("N1", "q4", "10", True)]}
    grade = grade_one(engine, q, options, {"number": provided})
    assert grade.is_correct is expected


def test_numeric_without_tolerance_requires_exact_value(engine):
    q = question("q4", "numeric")
    options = {"q4": [option("N1", "q4", " 3.25 ", True)]}
    assert grade_one(engine, q, options, {"number": 3.25}).is_correct is True
    assert grade_one(engine, q, options, {"number": 3.26}).is_correct is False


def test_numeric_with_decimal_tolerance_boundary(engine):
    q = question("q4", "numeric", tolerance=0.1)
    options = {"q4": [option("N1", "q4", "0.3", True)]}
    assert grade_one(engine, q, options, {"number": 0.4}).is_correct is True
    assert grade_one(engine, q, options, {"number": 0.41}).is_correct is False


def test_numeric_with_unparseable_correct_value_is_left_ungraded(engine):
    q = question("q4", "numeric")
    options = {"q4": [option("N1", "q4", "ten", True)]}
    grades = engine.grade_answers([q], options, [answer("a1", "q4", {"number": 10})])
    assert grades == []


@pytest.mark.parametrize("raw,expected", [
    (None, 0.0),
    ("", 0.0),
    ("abc", 0.0),
    (-1, 0.0),
    ("0.25", 0.25),
    (2, 2.0),
])
def test_parse_tolerance(raw, expected):
    assert parse_tolerance(raw) == expected


def test_short_text_and_unknown_types_are_skipped(engine):
    questions = [question("q5", "short_text"), question("q6", "ordering")]
    answers = [
        answer("a5", "q5", {"text": "Photosynthesis"}),
        answer("a6", "q6", {"order": ["x", "y"]}),
    ]
    assert engine.grade_answers(questions, {}, answers) == []


def test_answer_without_payload_is_skipped(engine, single_choice):
    q, options = single_choice
    assert engine.grade_answers([q], options, [answer("a1", "q1", None)]) == []


def test_malformed_answer_does_not_stop_the_rest(engine, single_choice, multi_choice):
    q1, options1 = single_choice
    q2, options2 = multi_choice
    options = {**options1, **options2}
    answers = [
        answer("bad", "q1", ["A"]),
        answer("good", "q2", {"selected_option_ids": ["A", "C"]}),
    ]

    grades = engine.grade_answers([q1, q2], options, answers)

    assert [g.answer_id for g in grades] == ["good"]
    assert grades[0].is_correct is True


def test_question_without_correct_option_is_left_ungraded(engine):
    q = question("q1", "mcq_single")
    options = {"q1": [option("A", "q1", "x"), option("B", "q1", "y")]}
    grades = engine.grade_answers([q], options, [answer("a1", "q1", {"selected_option_ids": ["A"]})])
    assert grades == []


def test_answers_for_unknown_questions_are_ignored(engine, single_choice):
    q, options = single_choice
    grades = engine.grade_answers([q], options, [answer("a1", "missing", {"selected_option_ids": ["A"]})])
    assert grades == []


@pytest.mark.parametrize("points", [0, None, -2])
def test_invalid_points_fall_back_to_default(points):
    engine = GradingEngine(default_points=1)
    q = question("q1", "mcq_single", points=points)
    options = {"q1": [option("A", "q1", "x", True)]}
    grade = grade_one(engine, q, options, {"selected_option_ids": ["A"]})
    assert grade.points_awarded == 1


def test_grading_is_deterministic(engine, single_choice, multi_choice):
    q1, options1 = single_choice
    q2, options2 = multi_choice
    questions = [q1, q2]
    options = {**options1, **options2}
    answers = [
        answer("a1", "q1", {"selected_option_ids": ["A"]}),
        answer("a2", "q2", {"selected_option_ids": ["A", "B"]}),
    ]

    first = engine.grade_answers(questions, options, answers)
    second = engine.grade_answers(questions, options, answers)

    assert first == second
