import pytest


def quiz_payload(**overrides):
    payload = {
        "title": "Fractions check-in",
        "attempts_allowed": 1,
        "show_results_policy": "immediate",
        "questions": [
            {
                "type": "mcq_single",
                "text": "1/2 + 1/4 = ?",
                "points": 2,
                "options": [{"text": "3/4", "is_correct": True}, {"text": "2/6"}],
            },
            {
                "type": "numeric",
                "text": "Write 3/4 as a decimal",
                "tolerance": 0.01,
                "options": [{"text": "0.75", "is_correct": True}],
            },
            {
                "type": "short_text",
                "text": "Explain how you added the fractions",
                "points": 3,
            },
        ],
    }
    payload.update(overrides)
    return payload


async def create_quiz(client, login, teacher, student, **overrides):
    login(teacher)
    response = await client.post("/api/v1/quizzes", json=quiz_payload(**overrides))
    assert response.status_code == 201, response.text
    login(student)
    return response.json()


@pytest.mark.asyncio
async def test_quiz_attempt_flow(async_client, login, mock_teacher, mock_current_user):
    """
    Teacher creates a quiz, learner starts, saves, autosaves, resumes, submits
    and reads the result.
    """
    client = async_client
    quiz = await create_quiz(client, login, mock_teacher, mock_current_user)
    mcq, numeric, text = quiz["questions"]
    assert quiz["total_points"] == 6
    assert mcq["options"][0]["is_correct"] is True

    # Learners never see correctness flags
    response = await client.get(f"/api/v1/quizzes/{quiz['id']}")
    assert response.status_code == 200
    learner_view = response.json()
    assert all(o["is_correct"] is None for o in learner_view["questions"][0]["options"])
    assert learner_view["questions"][1]["options"] == []
    assert learner_view["questions"][1]["tolerance"] is None

    response = await client.post(f"/api/v1/quizzes/{quiz['id']}/attempts")
    assert response.status_code == 200, response.text
    started = response.json()
    attempt_id = started["attempt"]["id"]
    assert started["resumed"] is False
    assert started["attempt"]["status"] == "in_progress"
    assert started["attempts_used"] == 1
    assert started["autosave_interval_seconds"] > 0
    assert all(o["is_correct"] is None for o in started["quiz"]["questions"][0]["options"])

    correct_option = mcq["options"][0]["id"]
    response = await client.put(
        f"/api/v1/attempts/{attempt_id}/answers/{mcq['id']}",
        json={"payload": {"selected_option_ids": [correct_option]}},
    )
    assert response.status_code == 200, response.text
    assert response.json()["answer_payload"] == {"selected_option_ids": [correct_option]}

    response = await client.put(
        f"/api/v1/attempts/{attempt_id}/answers",
        json={"answers": {
            numeric["id"]: {"number": 0.755},
            text["id"]: {"text": "Turned 1/2 into 2/4 first"},
        }},
    )
    assert response.status_code == 200
    assert sorted(response.json()["saved"]) == sorted([numeric["id"], text["id"]])
    assert response.json()["failed"] == {}

    # Starting again resumes with the saved answers
    response = await client.post(f"/api/v1/quizzes/{quiz['id']}/attempts")
    resumed = response.json()
    assert resumed["resumed"] is True
    assert resumed["attempt"]["id"] == attempt_id
    assert resumed["answers"][numeric["id"]] == {"number": 0.755}

    response = await client.post(f"/api/v1/attempts/{attempt_id}/submit", json={"elapsed_seconds": 65})
    assert response.status_code == 200, response.text
    submitted = response.json()
    assert submitted["show_results"] is True
    assert submitted["score"] == 3
    assert submitted["max_score"] == 6
    assert submitted["attempt"]["duration_seconds"] == 65
    # The short text answer waits for the teacher
    assert submitted["attempt"]["status"] == "submitted"

    response = await client.get(f"/api/v1/attempts/{attempt_id}/result")
    assert response.status_code == 200, response.text
    result = response.json()
    assert result["score"] == 3
    assert result["percentage"] == 50.0
    assert result["display_duration"] == "1m 5s"
    by_question = {q["question_id"]: q for q in result["questions"]}
    assert by_question[mcq["id"]]["is_correct"] is True
    assert by_question[numeric["id"]]["points_awarded"] == 1
    assert by_question[text["id"]]["pending_manual_grading"] is True

    response = await client.post(f"/api/v1/attempts/{attempt_id}/submit")
    assert response.status_code == 409
    assert response.json()["detail"]["error_code"] == "INVALID_STATE"

    response = await client.put(
        f"/api/v1/attempts/{attempt_id}/answers/{mcq['id']}",
        json={"payload": {"selected_option_ids": []}},
    )
    assert response.status_code == 409

    response = await client.post(f"/api/v1/quizzes/{quiz['id']}/attempts")
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["error_code"] == "QUOTA_EXCEEDED"
    assert detail["details"]["latest_attempt_id"] == attempt_id

    response = await client.get(f"/api/v1/quizzes/{quiz['id']}/attempts")
    history = response.json()
    assert history["attempts_used"] == 1
    assert history["attempts"][0]["score"] == 3


@pytest.mark.asyncio
async def test_results_hidden_by_policy(async_client, login, mock_teacher, mock_current_user):
    client = async_client
    quiz = await create_quiz(client, login, mock_teacher, mock_current_user, show_results_policy="never")

    attempt_id = (await client.post(f"/api/v1/quizzes/{quiz['id']}/attempts")).json()["attempt"]["id"]
    response = await client.post(f"/api/v1/attempts/{attempt_id}/submit")
    assert response.status_code == 200
    submitted = response.json()
    assert submitted["show_results"] is False
    assert submitted["score"] is None
    assert submitted["attempt"]["score"] is None

    response = await client.get(f"/api/v1/attempts/{attempt_id}/result")
    assert response.status_code == 403
    assert response.json()["detail"]["error_code"] == "RESULTS_HIDDEN"

    login(mock_teacher)
    response = await client.get(f"/api/v1/attempts/{attempt_id}/result")
    assert response.status_code == 200
    assert response.json()["score"] == 0


@pytest.mark.asyncio
async def test_answer_payload_errors(async_client, login, mock_teacher, mock_current_user):
    client = async_client
    quiz = await create_quiz(client, login, mock_teacher, mock_current_user)
    mcq = quiz["questions"][0]
    attempt_id = (await client.post(f"/api/v1/quizzes/{quiz['id']}/attempts")).json()["attempt"]["id"]

    response = await client.put(
        f"/api/v1/attempts/{attempt_id}/answers/{mcq['id']}",
        json={"payload": {"selected_option_ids": "3/4"}},
    )
    assert response.status_code == 422
    assert response.json()["detail"]["error_code"] == "INVALID_ANSWER_PAYLOAD"

    response = await client.put(
        f"/api/v1/attempts/{attempt_id}/answers/unknown-question",
        json={"payload": {"selected_option_ids": []}},
    )
    assert response.status_code == 404

    response = await client.post("/api/v1/attempts/unknown-attempt/submit")
    assert response.status_code == 404
    assert response.json()["detail"]["error_code"] == "ATTEMPT_NOT_FOUND"


@pytest.mark.asyncio
async def test_quiz_authoring_rules(async_client, login, mock_teacher):
    client = async_client

    response = await client.post("/api/v1/quizzes", json=quiz_payload())
    assert response.status_code == 403

    login(mock_teacher)
    bad = quiz_payload(questions=[{"type": "mcq_single", "text": "Pick one", "options": [{"text": "A"}]}])
    response = await client.post("/api/v1/quizzes", json=bad)
    assert response.status_code == 422
    assert response.json()["detail"]["error_code"] == "INVALID_QUIZ_DEFINITION"

    response = await client.get("/api/v1/quizzes/missing")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_quiz_stats_for_teachers(async_client, login, mock_teacher, mock_current_user):
    client = async_client
    quiz = await create_quiz(client, login, mock_teacher, mock_current_user)

    attempt_id = (await client.post(f"/api/v1/quizzes/{quiz['id']}/attempts")).json()["attempt"]["id"]
    await client.put(
        f"/api/v1/attempts/{attempt_id}/answers/{quiz['questions'][0]['id']}",
        json={"payload": {"selected_option_ids": [quiz["questions"][0]["options"][0]["id"]]}},
    )
    await client.post(f"/api/v1/attempts/{attempt_id}/submit")

    response = await client.get(f"/api/v1/quizzes/{quiz['id']}/stats")
    assert response.status_code == 403

    login(mock_teacher)
    response = await client.get(f"/api/v1/quizzes/{quiz['id']}/stats")
    assert response.status_code == 200
    stats = response.json()
    assert stats["total_attempts"] == 1
    assert stats["completion_rate"] == 100
    assert stats["average_score"] == 2


@pytest.mark.asyncio
async def test_health(async_client):
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json()["database"] == "healthy"
    assert response.headers["X-Request-ID"]

    response = await async_client.get("/health", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"
