"""
Read-side reports over evaluations.

Every report that lists evaluations first reconciles their stored score
with the stored responses (see scoring_service.reconcile_scores), so
aggregates are always computed from the per-question answers.
"""

import logging
import sqlite3
from contextlib import contextmanager
from decimal import Decimal

from evaluation.errors import FacultyNotFound, FormNotFound, TransientStoreError
from evaluation.models.database import get_db
from evaluation.models.evaluation import Evaluation
from evaluation.models.faculty import Faculty
from evaluation.models.form import Form
from evaluation.services.scoring_service import compute_score, display_status, reconcile_scores
from utils import anonymize_id, round_score

logger = logging.getLogger(__name__)


@contextmanager
def _reconciling_db(operation):
    """Write-locked transaction for reads that may correct stored scores."""
    try:
        with get_db(immediate=True) as conn:
            yield conn
    except sqlite3.Error as e:
        raise TransientStoreError(operation, e) from e


def _mean(values):
    values = [v for v in values if v is not None]
    if not values:
        return None
    return round_score(sum((Decimal(str(v)) for v in values), Decimal(0)) / len(values))


def _hide_student(evaluation):
    evaluation['student_id'] = anonymize_id(evaluation['student_id'])
    evaluation['student_school_id'] = None
    evaluation['student_firstname'] = None
    evaluation['student_lastname'] = None
    evaluation['student_name'] = 'Anonymous'


def get_form_responses(form_id):
    """Evaluations and responses of a form with statistics, after reconciling scores."""
    form = Form.get(form_id)
    if not form:
        raise FormNotFound(form_id)

    with _reconciling_db("read form responses") as conn:
        evaluations = Evaluation.list_for_form(conn, form_id)
        responses = reconcile_scores(conn, evaluations)

    overall = compute_score((r['question_type'], r['response_value']) for r in responses)

    for evaluation in evaluations:
        evaluation['display_status'] = display_status(evaluation['status'], evaluation['due_date'])
        evaluation['student_name'] = f"{evaluation['student_firstname']} {evaluation['student_lastname']}"
        evaluation['faculty_name'] = f"{evaluation['faculty_firstname']} {evaluation['faculty_lastname']}"
        if form['is_anonymous']:
            _hide_student(evaluation)

    logger.info(f"Form {form_id}: {len(evaluations)} evaluations, {len(responses)} responses, "
                f"overall average {overall}")
    return {
        'form': form,
        'evaluations': evaluations,
        'statistics': {
            'overallAverage': overall,
            'totalEvaluations': len(evaluations),
            'completedEvaluations': sum(1 for e in evaluations if e['status'] == 'completed'),
            'totalResponses': len(responses),
            'totalStudents': len({e['student_id'] for e in evaluations}),
        },
    }


def get_form_score_summary(form_id):
    """overallAverage, totalResponses and totalEvaluations of one form."""
    return get_form_responses(form_id)['statistics']


def get_faculty_report(faculty_id, form_id=None):
    """Completed evaluations of one faculty member with per-question averages."""
    faculty = Faculty.get(faculty_id)
    if not faculty:
        raise FacultyNotFound(faculty_id)

    with _reconciling_db("read faculty report") as conn:
        evaluations = Evaluation.list_for_faculty(conn, faculty_id, form_id=form_id)
        responses = reconcile_scores(conn, evaluations)

    questions = {}
    for response in responses:
        key = (response['display_order'], response['question_text'])
        questions.setdefault(key, []).append((response['question_type'], response['response_value']))

    question_averages = [
        {'display_order': order, 'question_text': text, 'average': compute_score(rows),
         'responses': len(rows)}
        for (order, text), rows in sorted(questions.items())
    ]

    for evaluation in evaluations:
        evaluation['student_name'] = f"{evaluation['student_firstname']} {evaluation['student_lastname']}"
        if evaluation['is_anonymous']:
            _hide_student(evaluation)

    return {
        'faculty': faculty,
        'classes': Faculty.list_classes(faculty_id),
        'evaluations': evaluations,
        'question_averages': question_averages,
        'average_score': _mean(e['score'] for e in evaluations),
        'total_evaluations': len(evaluations),
    }


def get_department_report(academic_year_id=None):
    """Average score and evaluation counts per department and per faculty member."""
    with _reconciling_db("read department report") as conn:
        query = '''
            SELECT se.id, se.score, se.status, se.faculty_id,
                   f.firstname, f.lastname, f.department
            FROM evaluations se
            JOIN faculty f ON se.faculty_id = f.id
        '''
        params = ()
        if academic_year_id is not None:
            query += ' WHERE se.academic_year_id = ?'
            params = (academic_year_id,)
        evaluations = [dict(row) for row in conn.execute(query, params).fetchall()]
        completed = [e for e in evaluations if e['status'] == 'completed']
        reconcile_scores(conn, completed)

    departments = {}
    for evaluation in evaluations:
        name = evaluation['department'] or 'Unassigned'
        department = departments.setdefault(name, {'department': name, 'faculty': {},
                                                   'total_evaluations': 0, 'completed_evaluations': 0,
                                                   'scores': []})
        department['total_evaluations'] += 1
        member = department['faculty'].setdefault(evaluation['faculty_id'], {
            'faculty_id': evaluation['faculty_id'],
            'name': f"{evaluation['firstname']} {evaluation['lastname']}",
            'total_evaluations': 0, 'completed_evaluations': 0, 'scores': []})
        member['total_evaluations'] += 1
        if evaluation['status'] == 'completed':
            department['completed_evaluations'] += 1
            member['completed_evaluations'] += 1
            department['scores'].append(evaluation['score'])
            member['scores'].append(evaluation['score'])

    report = []
    for name in sorted(departments):
        department = departments[name]
        faculty = []
        for member in department['faculty'].values():
            member['average_score'] = _mean(member.pop('scores'))
            faculty.append(member)
        faculty.sort(key=lambda m: m['name'])
        report.append({
            'department': name,
            'average_score': _mean(department.pop('scores')),
            'total_evaluations': department['total_evaluations'],
            'completed_evaluations': department['completed_evaluations'],
            'faculty': faculty,
        })
    return report


def get_forms_report(academic_year_id):
    """Per-form counts and averages for one academic year."""
    forms = Form.list(academic_year_id=academic_year_id)
    report = []
    for form in forms:
        statistics = get_form_responses(form['id'])['statistics']
        form['statistics'] = statistics
        form['assigned_classes'] = Form.list_classes(form['id'])
        form['formatted_class_names'] = ', '.join(c['name'] for c in form['assigned_classes']) or 'Not assigned'
        report.append(form)
    return report


def get_pending_students(form_id):
    """Students of a form who have not completed their evaluation yet."""
    form = Form.get(form_id)
    if not form:
        raise FormNotFound(form_id)
    with get_db() as conn:
        evaluations = Evaluation.list_for_form(conn, form_id)
    pending = []
    for evaluation in evaluations:
        if evaluation['status'] == 'completed':
            continue
        pending.append({
            'evaluation_id': evaluation['id'],
            'school_id': evaluation['student_school_id'],
            'name': f"{evaluation['student_firstname']} {evaluation['student_lastname']}",
            'faculty': f"{evaluation['faculty_firstname']} {evaluation['faculty_lastname']}",
            'due_date': evaluation['due_date'],
            'display_status': display_status(evaluation['status'], evaluation['due_date']),
        })
    pending.sort(key=lambda p: p['school_id'])
    return form, pending
