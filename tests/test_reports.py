import sqlite3

import pytest

from evaluation.errors import TransientStoreError
from evaluation.models import Evaluation, Form, Relationship, get_db
from evaluation.services import report_service
from evaluation.services.assignment_service import assign_form_to_students
from evaluation.services.scoring_service import submit_evaluation
from report_generator import generate_faculty_report
from report_non_submission import generate_pending_report


def assign_and_submit(school, answers, student_id, *values):
    result = assign_form_to_students(school.form_id, school.faculty_id, [student_id])
    evaluation_id = result["assigned"][0]["evaluation_id"]
    if values:
        submit_evaluation(evaluation_id, student_id, answers(*values))
    return evaluation_id


def corrupt_score(evaluation_id, score):
    with get_db() as conn:
        conn.execute("UPDATE evaluations SET score = ? WHERE id = ?", (score, evaluation_id))


def test_stale_score_is_recomputed_on_read(school, answers):
    evaluation_id = assign_and_submit(school, answers, school.students[0], 4, 5)
    corrupt_score(evaluation_id, 1.0)

    report = report_service.get_form_responses(school.form_id)

    assert report["evaluations"][0]["score"] == 4.5
    assert Evaluation.get(evaluation_id)["score"] == 4.5


def test_failed_score_correction_is_a_store_error(school, answers, monkeypatch):
    evaluation_id = assign_and_submit(school, answers, school.students[0], 4, 5)
    corrupt_score(evaluation_id, 1.0)

    def locked(conn, evaluation_id, score):
        raise sqlite3.OperationalError("database is locked")

    with monkeypatch.context() as m:
        m.setattr(Evaluation, "set_score", staticmethod(locked))
        with pytest.raises(TransientStoreError):
            report_service.get_form_responses(school.form_id)
        with pytest.raises(TransientStoreError):
            report_service.get_faculty_report(school.faculty_id)

    assert Evaluation.get(evaluation_id)["score"] == 1.0


def test_changed_responses_are_picked_up_on_read(school, answers):
    evaluation_id = assign_and_submit(school, answers, school.students[0], 4, 5)
    with get_db() as conn:
        conn.execute(
            "UPDATE evaluation_responses SET response_value = '3' WHERE evaluation_id = ? AND question_id = ?",
            (evaluation_id, school.questions[0]["id"]))

    summary = report_service.get_form_score_summary(school.form_id)

    assert summary["overallAverage"] == 4.0
    assert Evaluation.get(evaluation_id)["score"] == 4.0


def test_form_statistics(school, answers):
    assign_and_submit(school, answers, school.students[0], 4, 5, "good")
    assign_and_submit(school, answers, school.students[2], 3, 3)

    statistics = report_service.get_form_responses(school.form_id)["statistics"]

    assert statistics == {
        "overallAverage": 3.75,
        "totalEvaluations": 2,
        "completedEvaluations": 2,
        "totalResponses": 5,
        "totalStudents": 2,
    }


def test_anonymous_form_hides_students(school):
    form_id = Form.create("Anonymous survey", academic_year_id=school.year_id, semester=1, is_anonymous=True)
    assign_form_to_students(form_id, school.faculty_id, [school.students[0]])

    evaluation = report_service.get_form_responses(form_id)["evaluations"][0]

    assert evaluation["student_name"] == "Anonymous"
    assert evaluation["student_school_id"] is None
    assert evaluation["student_id"] != school.students[0]
    assert len(evaluation["student_id"]) == 32


def test_faculty_report_averages_per_question(school, answers):
    assign_and_submit(school, answers, school.students[0], 4, 5, "good")
    assign_and_submit(school, answers, school.students[2], 3, 4)

    report = report_service.get_faculty_report(school.faculty_id)

    assert report["total_evaluations"] == 2
    assert report["average_score"] == 4.0
    averages = {q["display_order"]: q["average"] for q in report["question_averages"]}
    assert averages == {1: 3.5, 2: 4.5, 3: None}


def test_department_report(school, answers):
    assign_and_submit(school, answers, school.students[0], 4, 5)
    assign_and_submit(school, answers, school.students[2])

    report = report_service.get_department_report(school.year_id)

    assert [d["department"] for d in report] == ["IT"]
    department = report[0]
    assert department["total_evaluations"] == 2
    assert department["completed_evaluations"] == 1
    assert department["average_score"] == 4.5
    assert department["faculty"][0]["name"] == "Ana Reyes"


def test_pending_students(school, answers):
    assign_and_submit(school, answers, school.students[0], 4, 5)
    assign_and_submit(school, answers, school.students[2])

    form, pending = report_service.get_pending_students(school.form_id)

    assert form["id"] == school.form_id
    assert [p["school_id"] for p in pending] == ["1003"]
    assert pending[0]["display_status"] == "pending"


def test_forms_report_lists_year_forms(school, answers):
    assign_and_submit(school, answers, school.students[0], 4, 5)

    forms = report_service.get_forms_report(school.year_id)

    assert [f["id"] for f in forms] == [school.form_id]
    assert forms[0]["statistics"]["overallAverage"] == 4.5
    assert forms[0]["formatted_class_names"] == "Not assigned"


def test_pdf_reports(school, answers, tmp_path):
    assign_and_submit(school, answers, school.students[0], 4, 5)
    assign_and_submit(school, answers, school.students[2])

    faculty_pdf = generate_faculty_report(report_service.get_faculty_report(school.faculty_id),
                                          output_dir=str(tmp_path))
    pending_pdf = generate_pending_report(*report_service.get_pending_students(school.form_id),
                                          output_dir=str(tmp_path))

    for path in (faculty_pdf, pending_pdf):
        with open(path, "rb") as f:
            assert f.read(4) == b"%PDF"


def test_relationships_listing(school):
    rows = Relationship.list_for_faculty(school.faculty_id)

    assert sorted(r["student_id"] for r in rows) == sorted([school.students[0], school.students[2]])
