"""
Assignment engine: fans an evaluation form out to the students a faculty
member actually teaches.

Only students holding an active student-faculty relationship for the
requested period receive an evaluation; everyone else is reported back
as skipped. A failing student row is reported and the rest of the
batch is kept.
"""

import logging
import sqlite3
from typing import List, Optional

from evaluation.errors import (
    AcademicYearNotFound, ClassNotFound, FacultyNotFound, FormNotActive, FormNotFound,
    NoEligibleStudents, TransientStoreError, ValidationError
)
from evaluation.models.academic_year import derive_year_status
from evaluation.models.classroom import ClassRoom
from evaluation.models.database import get_db
from evaluation.models.evaluation import Evaluation
from evaluation.models.faculty import Faculty
from evaluation.models.form import Form
from evaluation.models.relationship import Relationship
from evaluation.models.student import Student
from utils import normalize_semester, parse_date, today

logger = logging.getLogger(__name__)

SKIP_NO_RELATIONSHIP = "no faculty relationship"
SKIP_STUDENT_UNAVAILABLE = "student not found or inactive"


def _clean_ids(values, field):
    if not values or not isinstance(values, (list, tuple, set)):
        raise ValidationError(f"At least one {field} is required", field)
    cleaned = []
    for value in values:
        try:
            cleaned.append(int(value))
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid {field}: {value}", field)
    # keep first occurrence order, drop duplicates
    return list(dict.fromkeys(cleaned))


def _resolve_form_and_faculty(form_id, faculty_id):
    form = Form.get(form_id)
    if not form:
        raise FormNotFound(form_id)
    if form['status'] == 'closed':
        raise FormNotActive(form_id, form['status'])

    if faculty_id is None:
        faculty_id = form['faculty_id']
    if faculty_id is None:
        raise ValidationError("Faculty ID is required", "faculty_id")
    if form['faculty_id'] is not None and int(form['faculty_id']) != int(faculty_id):
        raise ValidationError(
            f"Form {form_id} is bound to faculty {form['faculty_id']}, not {faculty_id}", "faculty_id")

    faculty = Faculty.find_active(faculty_id)
    if not faculty:
        raise FacultyNotFound(faculty_id)
    return form, faculty


def assign_form_to_students(form_id, faculty_id, student_ids: List[int], academic_year_id=None,
                            semester=None, due_date=None, assigned_by=None, class_ids=None):
    """
    Create one evaluation per eligible student for (form, faculty).

    Returns a dict with 'assigned', 'skipped', 'failed', 'counts' and
    'warning'. Raises FormNotFound, FormNotActive, FacultyNotFound,
    ValidationError or NoEligibleStudents; nothing is written in those cases.

    All students are written in one transaction. A failing row is reported
    in 'failed' and the rest are kept; a failure that aborts the whole
    transaction, such as linking the classes, raises TransientStoreError
    and nothing is written.
    """
    student_ids = _clean_ids(student_ids, 'student_ids')
    form, faculty = _resolve_form_and_faculty(form_id, faculty_id)
    faculty_id = faculty['id']
    try:
        semester = normalize_semester(semester)
    except ValueError:
        raise ValidationError(f"Invalid semester: {semester}", "semester")
    try:
        due_date = parse_date(due_date)
    except ValueError:
        raise ValidationError(f"Invalid due date: {due_date}", "due_date")

    logger.info(f"Assigning form {form_id} for faculty {faculty_id} to {len(student_ids)} candidate student(s)")

    eligible = []
    skipped = []
    with get_db() as conn:
        students = Student.get_many(conn, student_ids)
        active_ids = [sid for sid in student_ids if sid in students and students[sid]['is_active']]
        related = Relationship.students_with_relationship(
            conn, active_ids, faculty_id, academic_year_id, semester)

    for student_id in student_ids:
        student = students.get(student_id)
        if student is None or not student['is_active']:
            skipped.append({'student_id': student_id,
                            'student_name': student['name'] if student else None,
                            'school_id': student['school_id'] if student else None,
                            'reason': SKIP_STUDENT_UNAVAILABLE})
        elif student_id not in related:
            skipped.append({'student_id': student_id,
                            'student_name': student['name'],
                            'school_id': student['school_id'],
                            'reason': SKIP_NO_RELATIONSHIP})
        else:
            eligible.append(student)

    for entry in skipped:
        logger.warning(f"Skipping student {entry['student_id']} for form {form_id}: {entry['reason']}")

    if not eligible:
        raise NoEligibleStudents(skipped)

    period_year = academic_year_id if academic_year_id is not None else form['academic_year_id']
    period_semester = semester if semester is not None else form['semester']

    assigned = []
    failed = []
    new_count = 0
    with get_db() as conn:
        for student in eligible:
            try:
                status = _upsert_evaluation(conn, form_id, faculty_id, student, period_year,
                                            period_semester, due_date, assigned_by)
            except sqlite3.Error as e:
                logger.error(f"Could not assign form {form_id} to student {student['id']}: {e}")
                failed.append({'student_id': student['id'],
                               'student_name': student['name'],
                               'school_id': student['school_id'],
                               'reason': str(e)})
                continue
            if status['status'] == 'assigned':
                new_count += 1
            assigned.append(status)

        if class_ids and assigned:
            try:
                Form.link_classes(conn, form_id, class_ids)
            except sqlite3.Error as e:
                raise TransientStoreError("link form classes", e) from e

    counts = {
        'new': new_count,
        'existing': len(assigned) - new_count,
        'skipped': len(skipped),
        'failed': len(failed),
        'total_assigned': len(assigned),
    }
    logger.info(f"Form {form_id} assigned: {counts}")

    warning = None
    if skipped or failed:
        parts = []
        if skipped:
            parts.append(f"{len(skipped)} student(s) were skipped")
        if failed:
            parts.append(f"{len(failed)} student(s) could not be assigned")
        warning = '; '.join(parts) + '.'

    return {
        'form_id': form_id,
        'faculty_id': faculty_id,
        'faculty_name': faculty['name'],
        'assigned': assigned,
        'skipped': skipped,
        'failed': failed,
        'counts': counts,
        'warning': warning,
    }


def _upsert_evaluation(conn, form_id, faculty_id, student, academic_year_id, semester, due_date,
                       assigned_by):
    """Insert the (student, form) evaluation, or refresh the due date of an existing one."""
    existing = Evaluation.find(conn, student['id'], form_id)
    if existing is None:
        evaluation_id = Evaluation.insert(conn, form_id, student['id'], faculty_id, academic_year_id,
                                          semester, due_date, assigned_by)
        if evaluation_id is not None:
            return {'student_id': student['id'], 'student_name': student['name'],
                    'school_id': student['school_id'], 'evaluation_id': evaluation_id,
                    'status': 'assigned'}
        # created concurrently between the lookup and the insert
        existing = Evaluation.find(conn, student['id'], form_id)

    if existing['status'] != 'completed':
        Evaluation.update_due_date(conn, existing['id'], due_date)
    return {'student_id': student['id'], 'student_name': student['name'],
            'school_id': student['school_id'], 'evaluation_id': existing['id'],
            'status': 'already_assigned'}


def assign_form_to_classes(form_id, class_ids: List[int], faculty_id=None, academic_year_id=None,
                           semester=None, due_date=None, assigned_by=None):
    """
    Assign a form to every active student of the given classes.

    Classes without active students are fine; the call fails only when
    the union over all classes is empty.
    """
    class_ids = _clean_ids(class_ids, 'class_ids')
    missing = ClassRoom.find_missing(class_ids)
    if missing:
        raise ClassNotFound(missing)

    students = Student.list_active_in_classes(class_ids)
    logger.info(f"Classes {class_ids} resolve to {len(students)} active student(s)")
    if not students:
        # still validate the form and faculty so callers get the precise error
        _resolve_form_and_faculty(form_id, faculty_id)
        raise NoEligibleStudents([])

    return assign_form_to_students(form_id, faculty_id, [s['id'] for s in students],
                                   academic_year_id=academic_year_id, semester=semester,
                                   due_date=due_date, assigned_by=assigned_by, class_ids=class_ids)


def set_current_academic_year(year_id, on_date=None):
    """
    Make year_id the only current academic year.

    Clears every current flag, marks year_id current and active, and
    re-derives the status of every other year from its dates, all in
    one transaction holding the database write lock.
    """
    on_date = on_date or today()
    try:
        with get_db(immediate=True) as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT id FROM academic_years WHERE id = ?', (year_id,))
            if not cursor.fetchone():
                raise AcademicYearNotFound(year_id)

            cursor.execute('UPDATE academic_years SET is_current = 0')
            cursor.execute('''
                UPDATE academic_years SET is_current = 1, status = 'active' WHERE id = ?
            ''', (year_id,))

            cursor.execute('SELECT id, start_date, end_date FROM academic_years WHERE id != ?', (year_id,))
            for row in cursor.fetchall():
                conn.execute('UPDATE academic_years SET status = ? WHERE id = ?',
                             (derive_year_status(row['start_date'], row['end_date'], on_date), row['id']))
    except sqlite3.Error as e:
        raise TransientStoreError("set current academic year", e) from e

    logger.info(f"Academic year {year_id} is now current")
