from flask import Blueprint, request, session, jsonify
from evaluation.errors import EvaluationNotFound
from evaluation.models.database import get_db
from evaluation.models.evaluation import Evaluation
from evaluation.models.form import Form
from evaluation.services.scoring_service import (
    display_status, start_evaluation, submit_evaluation
)
from routes.auth import json_body, login_required

student_bp = Blueprint('student', __name__)


@student_bp.route('/evaluations', methods=['GET'])
@login_required('student')
def my_evaluations():
    evaluations = Evaluation.list_for_student(session['student_id'])
    for evaluation in evaluations:
        status = display_status(evaluation['status'], evaluation['due_date'])
        evaluation['display_status'] = status
        evaluation['can_submit'] = status in ('pending', 'in_progress')
        evaluation['faculty_name'] = f"{evaluation['faculty_firstname']} {evaluation['faculty_lastname']}"
    return jsonify({'success': True, 'evaluations': evaluations, 'count': len(evaluations)})


@student_bp.route('/evaluations/<int:evaluation_id>', methods=['GET'])
@login_required('student')
def get_evaluation(evaluation_id):
    with get_db() as conn:
        evaluation = Evaluation.find_for_student(conn, evaluation_id, session['student_id'])
        if not evaluation:
            raise EvaluationNotFound(evaluation_id)
        questions = Form.list_questions(evaluation['form_id'], conn=conn)
    evaluation['display_status'] = display_status(evaluation['status'], evaluation['due_date'])
    return jsonify({'success': True, 'evaluation': evaluation, 'questions': questions})


@student_bp.route('/evaluations/<int:evaluation_id>/start', methods=['POST'])
@login_required('student')
def start(evaluation_id):
    status = start_evaluation(evaluation_id, session['student_id'])
    return jsonify({'success': True, 'status': status})


@student_bp.route('/evaluations/<int:evaluation_id>/submit', methods=['POST'])
@login_required('student')
def submit(evaluation_id):
    data = json_body()
    result = submit_evaluation(evaluation_id, session['student_id'],
                               data.get('responses'), feedback=data.get('feedback'))
    return jsonify({'success': True, 'message': 'Evaluation submitted successfully. Thank you!', **result})
