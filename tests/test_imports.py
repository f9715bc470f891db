import pandas as pd

from evaluation.models import Relationship, Student
from evaluation.services.excel_service import create_sample_excel, process_student_excel
from evaluation.services.relationship_service import (
    create_sample_relationship_excel, process_relationship_excel
)
from conftest import login


def write_excel(path, rows):
    pd.DataFrame(rows).to_excel(path, index=False)
    return str(path)


def test_student_import(school, tmp_path):
    path = write_excel(tmp_path / "students.xlsx", {
        "School_ID": ["3001", "3002", "1001", "3003"],
        "FirstName": ["Ivy", "Jon", "Dup", "Kim"],
        "LastName": ["Ong", "Po", "Licate", "Qi"],
        "Class": ["BSIT 2 A", "BSIT 2 B", "BSIT 2 A", "BSIT 9 Z"],
    })

    success, message, stats = process_student_excel(path)

    assert success is True
    assert stats["added"] == 2
    assert stats["duplicates"] == 1
    assert stats["unknown_classes"] == ["BSIT 9 Z"]
    assert Student.get_by_school_id("3002")["class_id"] == school.class_b


def test_student_import_requires_headers(tmp_path):
    path = write_excel(tmp_path / "students.xlsx", {"school_id": ["1"], "firstname": ["A"]})

    success, message, stats = process_student_excel(path)

    assert success is False
    assert "Missing required columns" in message


def test_sample_files_are_importable(tmp_path):
    students = pd.read_excel(create_sample_excel(str(tmp_path / "s.xlsx")))
    relationships = pd.read_excel(create_sample_relationship_excel(str(tmp_path / "r.xlsx")))

    assert list(students.columns) == ["school_id", "firstname", "lastname", "class"]
    assert list(relationships.columns) == ["student_school_id", "faculty_school_id", "academic_year", "semester"]


def test_relationship_import(school, tmp_path):
    path = write_excel(tmp_path / "relationships.xlsx", {
        "student_school_id": ["1002", "1004", "1001", "9999"],
        "faculty_school_id": ["F1001", "F1001", "F1001", "F1001"],
        "academic_year": ["2025-2026", None, "2025-2026", "2025-2026"],
        "semester": ["1", None, "1", "1"],
    })

    success, message, stats = process_relationship_excel(path)

    assert success is True
    assert stats["added"] == 2
    assert stats["existing"] == 1
    assert stats["skipped_rows"] == [5]
    assert Relationship.find_active(school.students[1], school.faculty_id, school.year_id, 1)
    # no period in the sheet: valid for any period
    assert Relationship.find_active(school.students[3], school.faculty_id, school.previous_year_id, 2)


def test_upload_endpoint(client, school, tmp_path):
    path = write_excel(tmp_path / "students.xlsx", {
        "school_id": ["3005"], "firstname": ["Lee"], "lastname": ["Go"], "class": ["BSIT 2 A"],
    })
    login(client, "admin")

    with open(path, "rb") as f:
        r = client.post("/admin/students/upload", data={"file": (f, "students.xlsx")},
                        content_type="multipart/form-data")

    assert r.get_json()["success"] is True
    assert Student.get_by_school_id("3005") is not None

    r = client.post("/admin/students/upload", data={}, content_type="multipart/form-data")
    assert r.status_code == 400
