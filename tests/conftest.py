# tests/conftest.py
"""
Fixtures for the evaluation backend tests.

Every test gets its own SQLite database under tmp_path; config.DATABASE_PATH
is resolved on each connection, so repointing it is enough.

- school : a small seeded school (one year, two classes, two faculty
           members, six students, a faculty-bound form)
- client : Flask test client with a fresh session
"""

from datetime import date
from types import SimpleNamespace

import pytest

import config
from evaluation.models import init_db, AcademicYear, ClassRoom, Faculty, Form, Relationship, Student


@pytest.fixture(autouse=True)
def database(tmp_path, monkeypatch):
    db_path = tmp_path / "feedback.db"
    monkeypatch.setattr(config, "DATABASE_PATH", str(db_path))
    init_db()
    return db_path


@pytest.fixture
def school():
    year_id = AcademicYear.add("2025-2026", "Academic Year 2025-2026", date(2025, 6, 1), date(2026, 5, 31))
    previous_year_id = AcademicYear.add("2024-2025", "Academic Year 2024-2025", date(2024, 6, 1), date(2025, 5, 31))

    class_a = ClassRoom.add("BSIT", 2, "A", "IT")
    class_b = ClassRoom.add("BSIT", 2, "B", "IT")

    faculty_id = Faculty.add("F1001", "Ana", "Reyes", "IT")
    other_faculty_id = Faculty.add("F1002", "Ben", "Cruz", "CS")

    students = [
        Student.add(f"100{n}", f"Student{n}", "Doe", class_a)
        for n in range(1, 6)
    ]
    class_b_student = Student.add("2001", "Carla", "Lim", class_b)

    # only S1 and S3 are taught by faculty_id this period
    for student_id in (students[0], students[2]):
        Relationship.add(student_id, faculty_id, year_id, 1)
    Relationship.add(class_b_student, other_faculty_id, year_id, 1)

    form_id = Form.create(
        "Midterm faculty evaluation",
        academic_year_id=year_id,
        semester=1,
        faculty_id=faculty_id,
        questions=[
            {"text": "How is the faculty's approach?"},
            {"text": "How does the faculty communicate?"},
            {"text": "Comments", "type": "text", "required": False},
        ],
    )

    return SimpleNamespace(
        year_id=year_id,
        previous_year_id=previous_year_id,
        class_a=class_a,
        class_b=class_b,
        faculty_id=faculty_id,
        other_faculty_id=other_faculty_id,
        students=students,
        class_b_student=class_b_student,
        form_id=form_id,
        questions=Form.list_questions(form_id),
    )


@pytest.fixture
def answers(school):
    """Build a responses payload for the seeded form: answers(4, 5, 'good')."""
    def build(*values):
        return [
            {"question_id": question["id"], "value": value}
            for question, value in zip(school.questions, values)
        ]
    return build


@pytest.fixture
def client(tmp_path, monkeypatch):
    import app as app_module
    import routes.admin_routes

    monkeypatch.setattr(routes.admin_routes, "UPLOAD_FOLDER", str(tmp_path / "uploads"))
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as test_client:
        yield test_client


def login(client, role, school_id=None):
    if role == "admin":
        return client.post("/admin_login", json={"password": config.ADMIN_PASSWORD})
    if role == "hod":
        return client.post("/hod", json={"username": config.HOD_USERNAME, "password": config.HOD_PASSWORD})
    return client.post("/", json={"school_id": school_id})
