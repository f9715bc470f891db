from functools import wraps
import logging
from flask import Blueprint, request, session, jsonify
from evaluation.errors import ValidationError
from evaluation.models.student import Student
from config import ADMIN_PASSWORD, HOD_USERNAME, HOD_PASSWORD

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def json_body():
    """The JSON object sent by the client; anything else is rejected."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid request body", "body")
    return data


def request_data():
    """Form fields or a JSON body, whichever the client sent."""
    if request.is_json:
        return json_body()
    return request.form


def login_required(*roles):
    """Reject requests whose session role is not one of roles."""
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            role = session.get('role')
            if role is None:
                return jsonify({'success': False, 'message': 'Login required'}), 401
            if roles and role not in roles:
                return jsonify({'success': False, 'message': 'Not allowed for this account'}), 403
            return view(*args, **kwargs)
        return wrapped
    return decorator


@auth_bp.route('/admin_login', methods=['POST'])
def admin_login():
    password = request_data().get('password')
    if password == ADMIN_PASSWORD:
        session.clear()
        session['role'] = 'admin'
        session['user'] = 'admin'
        logger.info("Admin logged in")
        return jsonify({'success': True, 'message': 'Logged in', 'role': 'admin'})
    return jsonify({'success': False, 'message': 'Incorrect password.'}), 401


@auth_bp.route('/hod', methods=['POST'])
def hod_login():
    data = request_data()
    if data.get('username') == HOD_USERNAME and data.get('password') == HOD_PASSWORD:
        session.clear()
        session['role'] = 'hod'
        session['user'] = 'hod'
        logger.info("HOD logged in")
        return jsonify({'success': True, 'message': 'Logged in', 'role': 'hod'})
    return jsonify({'success': False, 'message': 'Incorrect credentials.'}), 401


@auth_bp.route('/', methods=['POST'])
def student_login():
    school_id = (request_data().get('school_id') or '').strip()
    if not school_id:
        return jsonify({'success': False, 'message': 'Please enter your school ID.'}), 400

    student = Student.get_by_school_id(school_id)
    if not student or not student['is_active']:
        return jsonify({'success': False, 'message': 'School ID not found. Please try again.'}), 401

    session.clear()
    session['role'] = 'student'
    session['user'] = student['school_id']
    session['student_id'] = student['id']
    logger.info(f"Student {student['school_id']} logged in")
    return jsonify({'success': True, 'message': 'Logged in', 'role': 'student',
                    'student': {'id': student['id'], 'name': student['name']}})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'success': True, 'message': 'Logged out'})
