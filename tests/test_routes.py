from datetime import date, timedelta

from conftest import login
from evaluation.models import AcademicYear, Evaluation


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.get_json() == {"success": True, "status": "ok"}


def test_admin_routes_require_login(client, school):
    r = client.get("/admin/forms")
    assert r.status_code == 401

    login(client, "student", "1001")
    r = client.get("/admin/forms")
    assert r.status_code == 403


def test_wrong_admin_password(client):
    r = client.post("/admin_login", json={"password": "nope"})
    assert r.status_code == 401
    assert r.get_json()["success"] is False


def test_create_and_get_form(client, school):
    login(client, "admin")

    r = client.post("/admin/forms", json={
        "title": "Final evaluation",
        "academic_year_id": school.year_id,
        "semester": "Semester 1",
        "questions": ["Clarity", {"text": "Anything else?", "type": "text", "required": False}],
    })
    assert r.status_code == 201
    form_id = r.get_json()["form_id"]

    r = client.get(f"/admin/forms/{form_id}")
    form = r.get_json()["form"]
    assert form["semester"] == 1
    assert form["created_by"] == "admin"
    assert [q["question_type"] for q in form["questions"]] == ["rating_1_5", "text"]


def test_assign_reports_skipped_students(client, school):
    login(client, "admin")

    r = client.post(f"/admin/forms/{school.form_id}/assign", json={
        "student_ids": school.students,
        "academic_year_id": school.year_id,
        "semester": 1,
        "due_date": "2099-12-31",
    })

    body = r.get_json()
    assert r.status_code == 200
    assert body["success"] is True
    assert body["counts"]["new"] == 2
    assert len(body["skipped"]) == 3
    assert body["warning"]


def test_assign_errors_map_to_status_codes(client, school):
    login(client, "admin")

    r = client.post("/admin/forms/9999/assign", json={"student_ids": school.students})
    assert r.status_code == 404
    assert r.get_json()["error_code"] == "FORM_NOT_FOUND"

    r = client.post(f"/admin/forms/{school.form_id}/assign", json={"student_ids": [school.students[1]]})
    assert r.status_code == 422
    assert r.get_json()["error_code"] == "NO_ELIGIBLE_STUDENTS"

    r = client.post(f"/admin/forms/{school.form_id}/assign", json={"student_ids": []})
    assert r.status_code == 400


def test_assign_classes_with_form_fields(client, school):
    login(client, "admin")

    r = client.post(f"/admin/forms/{school.form_id}/assign-classes",
                    data={"class_ids": [str(school.class_a)]})

    assert r.status_code == 200
    assert r.get_json()["counts"]["total_assigned"] == 2


def test_student_flow(client, school, answers):
    login(client, "admin")
    client.post(f"/admin/forms/{school.form_id}/assign", json={"student_ids": [school.students[0]]})

    r = login(client, "student", "1001")
    assert r.status_code == 200

    evaluations = client.get("/evaluations").get_json()["evaluations"]
    assert len(evaluations) == 1
    assert evaluations[0]["can_submit"] is True
    evaluation_id = evaluations[0]["id"]

    r = client.get(f"/evaluations/{evaluation_id}")
    assert len(r.get_json()["questions"]) == 3

    r = client.post(f"/evaluations/{evaluation_id}/start")
    assert r.get_json()["status"] == "in_progress"

    r = client.post(f"/evaluations/{evaluation_id}/submit", json={"responses": answers(5, 4, "ok")})
    assert r.status_code == 200
    assert r.get_json()["score"] == 4.5

    r = client.post(f"/evaluations/{evaluation_id}/submit", json={"responses": answers(1, 1)})
    assert r.status_code == 409
    assert r.get_json()["error_code"] == "ALREADY_SUBMITTED"

    evaluations = client.get("/evaluations").get_json()["evaluations"]
    assert evaluations[0]["display_status"] == "completed"
    assert evaluations[0]["can_submit"] is False


def test_expired_evaluation_is_shown_and_rejected(client, school, answers):
    login(client, "admin")
    yesterday = (date.today() - timedelta(days=1)).isoformat()
    client.post(f"/admin/forms/{school.form_id}/assign",
                json={"student_ids": [school.students[0]], "due_date": yesterday})

    login(client, "student", "1001")
    evaluation = client.get("/evaluations").get_json()["evaluations"][0]
    assert evaluation["display_status"] == "expired"

    r = client.post(f"/evaluations/{evaluation['id']}/submit", json={"responses": answers(5, 5)})
    assert r.status_code == 410
    assert Evaluation.get(evaluation["id"])["status"] == "pending"


def test_student_cannot_open_someone_elses_evaluation(client, school):
    login(client, "admin")
    r = client.post(f"/admin/forms/{school.form_id}/assign", json={"student_ids": [school.students[0]]})
    evaluation_id = r.get_json()["assigned"][0]["evaluation_id"]

    login(client, "student", "1003")
    r = client.post(f"/evaluations/{evaluation_id}/submit", json={"responses": []})
    assert r.status_code == 404


def test_non_object_json_body_is_rejected(client, school):
    login(client, "admin")
    r = client.post(f"/admin/forms/{school.form_id}/assign", json={"student_ids": [school.students[0]]})
    evaluation_id = r.get_json()["assigned"][0]["evaluation_id"]

    r = client.post("/admin/forms", json=["Mid-term evaluation"])
    assert r.status_code == 400
    assert r.get_json()["error_code"] == "VALIDATION_ERROR"

    login(client, "student", "1001")
    question_id = school.questions[0]["id"]
    for body in ([{"question_id": question_id, "value": 4}], "4", 4):
        r = client.post(f"/evaluations/{evaluation_id}/submit", json=body)
        assert r.status_code == 400
        assert r.get_json()["error_code"] == "VALIDATION_ERROR"
        assert r.get_json()["message"] == "Invalid request body"
    assert Evaluation.get(evaluation_id)["status"] == "pending"


def test_academic_year_endpoints(client, school):
    login(client, "admin")

    r = client.post("/admin/academic-years", json={
        "year_code": "2026-2027", "year_name": "Academic Year 2026-2027",
        "start_date": "2026-06-01", "end_date": "2027-05-31",
    })
    assert r.status_code == 201
    year_id = r.get_json()["academic_year_id"]

    r = client.post("/admin/academic-years", json={
        "year_code": "2026-2027", "year_name": "Duplicate",
        "start_date": "2026-06-01", "end_date": "2027-05-31",
    })
    assert r.status_code == 409

    r = client.post(f"/admin/academic-years/{year_id}/set-current")
    assert r.status_code == 200
    assert AcademicYear.get_current()["id"] == year_id

    r = client.post("/admin/academic-years/777/set-current")
    assert r.status_code == 404


def test_identity_endpoints(client):
    login(client, "admin")

    class_id = client.post("/admin/classes", json={
        "curriculum": "BSCS", "level": "1", "section": "A"}).get_json()["class_id"]
    faculty_id = client.post("/admin/faculty", json={
        "school_id": "F2001", "firstname": "Eva", "lastname": "Tan", "department": "CS"}).get_json()["faculty_id"]
    student_id = client.post("/admin/students", json={
        "school_id": "3001", "firstname": "Gio", "lastname": "Sy", "class_id": class_id}).get_json()["student_id"]

    r = client.post(f"/admin/faculty/{faculty_id}/classes", json={"class_id": class_id})
    assert r.get_json()["message"] == "Class assigned"

    r = client.post("/admin/relationships", json={"student_id": student_id, "faculty_id": faculty_id})
    assert r.status_code == 201

    r = client.get(f"/admin/faculty/{faculty_id}/relationships")
    assert r.get_json()["count"] == 1

    r = client.post("/admin/faculty", json={"school_id": "F2001", "firstname": "X", "lastname": "Y"})
    assert r.status_code == 409

    r = client.post("/admin/faculty", json={"school_id": "F2002"})
    assert r.status_code == 400


def test_hod_reports(client, school, answers):
    login(client, "admin")
    client.post(f"/admin/forms/{school.form_id}/assign", json={"student_ids": [school.students[0]]})
    login(client, "student", "1001")
    evaluation_id = client.get("/evaluations").get_json()["evaluations"][0]["id"]
    client.post(f"/evaluations/{evaluation_id}/submit", json={"responses": answers(4, 4)})

    login(client, "hod")

    r = client.get(f"/hod/reports/faculty/{school.faculty_id}")
    assert r.get_json()["average_score"] == 4.0

    r = client.get("/hod/reports/departments")
    assert r.get_json()["departments"][0]["department"] == "IT"

    r = client.get(f"/hod/reports/faculty/{school.faculty_id}/pdf?download=1")
    assert r.status_code == 200
    assert r.headers["Content-Type"] == "application/pdf"
    assert r.headers["Content-Disposition"].startswith("attachment")
    assert r.data[:4] == b"%PDF"

    r = client.get(f"/hod/reports/forms/{school.form_id}/pending/pdf")
    assert r.status_code == 200
    assert r.data[:4] == b"%PDF"

    r = client.get(f"/admin/forms/{school.form_id}/summary")
    assert r.get_json()["summary"]["overallAverage"] == 4.0

    r = client.get("/hod/reports/faculty/999")
    assert r.status_code == 404
