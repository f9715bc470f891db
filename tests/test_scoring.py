import threading
from datetime import date, timedelta

import pytest

from evaluation.errors import AlreadySubmitted, DeadlineExpired, EvaluationNotFound, ValidationError
from evaluation.models import Evaluation, get_db
from evaluation.services.assignment_service import assign_form_to_students
from evaluation.services.scoring_service import (
    compute_score, display_status, start_evaluation, submit_evaluation
)


def assign_one(school, student_id, due_date=None):
    result = assign_form_to_students(school.form_id, school.faculty_id, [student_id], due_date=due_date)
    return result["assigned"][0]["evaluation_id"]


def stored_responses(evaluation_id):
    with get_db() as conn:
        return [(r["question_id"], r["response_value"]) for r in Evaluation.list_responses(conn, [evaluation_id])]


def test_score_ignores_text_answers():
    assert compute_score([("rating_1_5", 4), ("rating_1_5", 5), ("text", "good")]) == 4.5


def test_score_is_none_when_nothing_scores():
    assert compute_score([("rating_1_5", "n/a"), ("text", "good"), ("rating_1_5", None)]) is None
    assert compute_score([]) is None


def test_score_ignores_out_of_range_ratings():
    assert compute_score([("rating_1_5", "0"), ("rating_1_5", "6"), ("rating_1_5", "3")]) == 3.0


@pytest.mark.parametrize("values, expected", [
    ([4, 4, 5], 4.33),
    ([4, 5, 5], 4.67),
    (["4", "4.01"], 4.01),
])
def test_score_rounds_half_up(values, expected):
    assert compute_score(("rating_1_5", v) for v in values) == expected


def test_display_status_marks_overdue_evaluations_expired():
    yesterday = date.today() - timedelta(days=1)

    assert display_status("pending", yesterday) == "expired"
    assert display_status("in_progress", yesterday.isoformat()) == "expired"
    assert display_status("completed", yesterday) == "completed"
    assert display_status("pending", date.today()) == "pending"
    assert display_status("pending", None) == "pending"


def test_submit_stores_responses_and_score(school, answers):
    student_id = school.students[0]
    evaluation_id = assign_one(school, student_id)

    result = submit_evaluation(evaluation_id, student_id, answers(4, 5, "good"), feedback="  Great class ")

    assert result["score"] == 4.5
    assert result["total_responses"] == 3
    evaluation = Evaluation.get(evaluation_id)
    assert evaluation["status"] == "completed"
    assert evaluation["score"] == 4.5
    assert evaluation["feedback"] == "Great class"
    assert evaluation["submitted_at"] == result["submitted_at"] == evaluation["completed_at"]


def test_submit_with_no_scorable_answers_leaves_score_unset(school, answers):
    student_id = school.students[0]
    evaluation_id = assign_one(school, student_id)

    result = submit_evaluation(evaluation_id, student_id, answers("n/a", "9", None))

    assert result["score"] is None
    assert Evaluation.get(evaluation_id)["score"] is None
    assert len(stored_responses(evaluation_id)) == 3


def test_second_submission_is_rejected_without_changes(school, answers):
    student_id = school.students[0]
    evaluation_id = assign_one(school, student_id)
    submit_evaluation(evaluation_id, student_id, answers(4, 5, "good"))
    before = stored_responses(evaluation_id)

    with pytest.raises(AlreadySubmitted):
        submit_evaluation(evaluation_id, student_id, answers(1, 1, "bad"))

    assert stored_responses(evaluation_id) == before
    assert Evaluation.get(evaluation_id)["score"] == 4.5


def test_submit_after_due_date_fails(school, answers):
    student_id = school.students[0]
    evaluation_id = assign_one(school, student_id, due_date=date.today() - timedelta(days=1))

    with pytest.raises(DeadlineExpired):
        submit_evaluation(evaluation_id, student_id, answers(4, 5))

    assert Evaluation.get(evaluation_id)["status"] == "pending"
    assert stored_responses(evaluation_id) == []


def test_submit_on_due_date_succeeds(school, answers):
    student_id = school.students[0]
    evaluation_id = assign_one(school, student_id, due_date=date.today())

    assert submit_evaluation(evaluation_id, student_id, answers(3, 4))["score"] == 3.5


def test_missing_required_answer_rolls_back(school, answers):
    student_id = school.students[0]
    evaluation_id = assign_one(school, student_id)

    with pytest.raises(ValidationError):
        submit_evaluation(evaluation_id, student_id, answers(4))

    assert stored_responses(evaluation_id) == []
    assert Evaluation.get(evaluation_id)["status"] == "pending"


def test_answers_to_foreign_questions_are_rejected(school, answers):
    student_id = school.students[0]
    evaluation_id = assign_one(school, student_id)
    responses = answers(4, 5) + [{"question_id": 99999, "value": 5}]

    with pytest.raises(ValidationError):
        submit_evaluation(evaluation_id, student_id, responses)


def test_only_the_owner_can_submit(school, answers):
    evaluation_id = assign_one(school, school.students[0])

    with pytest.raises(EvaluationNotFound):
        submit_evaluation(evaluation_id, school.students[2], answers(4, 5))


def test_start_moves_pending_to_in_progress(school, answers):
    student_id = school.students[0]
    evaluation_id = assign_one(school, student_id)

    assert start_evaluation(evaluation_id, student_id) == "in_progress"
    assert Evaluation.get(evaluation_id)["status"] == "in_progress"

    submit_evaluation(evaluation_id, student_id, answers(5, 5))
    with pytest.raises(AlreadySubmitted):
        start_evaluation(evaluation_id, student_id)


def test_concurrent_submissions_let_exactly_one_through(school, answers):
    student_id = school.students[0]
    evaluation_id = assign_one(school, student_id)
    workers = 8
    barrier = threading.Barrier(workers)
    results = []
    rejected = []
    other = []

    def submit(first, second):
        barrier.wait()
        try:
            results.append(((first, second), submit_evaluation(evaluation_id, student_id, answers(first, second))))
        except AlreadySubmitted as e:
            rejected.append(e)
        except Exception as e:  # collected and asserted below
            other.append(e)

    threads = [
        threading.Thread(target=submit, args=(1 + i % 5, 1 + i // 5))
        for i in range(workers)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert other == []
    assert len(results) == 1
    assert len(rejected) == workers - 1

    (first, second), winner = results[0]
    stored = Evaluation.get(evaluation_id)
    assert stored["status"] == "completed"
    assert stored["score"] == winner["score"]
    assert [value for _, value in stored_responses(evaluation_id)] == [str(first), str(second)]
