from flask import Blueprint, request, session, jsonify, send_file
from werkzeug.utils import secure_filename
import os
import logging
import sqlite3
from evaluation.errors import FormNotFound, ValidationError
from evaluation.models.academic_year import AcademicYear
from evaluation.models.classroom import ClassRoom
from evaluation.models.faculty import Faculty
from evaluation.models.form import Form
from evaluation.models.relationship import Relationship
from evaluation.models.student import Student
from evaluation.services import assignment_service, report_service
from evaluation.services.excel_service import process_student_excel, create_sample_excel
from evaluation.services.relationship_service import (
    process_relationship_excel, create_sample_relationship_excel
)
from config import UPLOAD_FOLDER, ALLOWED_EXTENSIONS, MAX_FILE_SIZE
from routes.auth import json_body, login_required, request_data
from utils import normalize_semester

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)


def allowed_file(filename):
    """Check if file has an allowed extension."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def optional_int(value, field):
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: {value}", field)


def required_text(data, field):
    value = str(data.get(field) or '').strip()
    if not value:
        raise ValidationError(f"{field} is required", field)
    return value


def id_list(data, field):
    """A list of ids from a JSON array or repeated form fields."""
    if hasattr(data, 'getlist'):
        return data.getlist(field)
    return data.get(field)


def _semester(data):
    try:
        return normalize_semester(data.get('semester'))
    except ValueError:
        raise ValidationError(f"Invalid semester: {data.get('semester')}", 'semester')


def save_upload():
    """Validate and save the uploaded Excel file. Returns (filepath, error_message)."""
    if 'file' not in request.files:
        return None, 'No file uploaded'

    file = request.files['file']
    if file.filename == '':
        return None, 'No file selected'

    if not allowed_file(file.filename):
        return None, 'Invalid file type. Please upload an Excel file (.xlsx or .xls)'

    file.seek(0, os.SEEK_END)
    file_size = file.tell()
    file.seek(0)
    if file_size > MAX_FILE_SIZE:
        return None, f'File too large. Maximum size is {MAX_FILE_SIZE / (1024*1024):.0f}MB'

    os.makedirs(UPLOAD_FOLDER, exist_ok=True)
    filepath = os.path.join(UPLOAD_FOLDER, secure_filename(file.filename))
    file.save(filepath)
    return filepath, None


def process_upload(processor):
    filepath, error = save_upload()
    if error:
        return jsonify({'success': False, 'message': error}), 400
    try:
        success, message, stats = processor(filepath)
    finally:
        try:
            os.remove(filepath)
        except OSError as e:
            logger.warning(f"Could not remove uploaded file {filepath}: {e}")
    return jsonify({'success': success, 'message': message, 'stats': stats})


# ----------------------------------------------------------------------------
# Evaluation forms
# ----------------------------------------------------------------------------

@admin_bp.route('/admin/forms', methods=['GET'])
@login_required('admin')
def list_forms():
    academic_year_id = optional_int(request.args.get('academic_year_id'), 'academic_year_id')
    forms = Form.list(academic_year_id=academic_year_id)
    return jsonify({'success': True, 'forms': forms, 'count': len(forms)})


@admin_bp.route('/admin/forms', methods=['POST'])
@login_required('admin')
def create_form():
    data = json_body()
    form_id = Form.create(
        data.get('title'),
        academic_year_id=optional_int(data.get('academic_year_id'), 'academic_year_id'),
        semester=_semester(data),
        description=data.get('description'),
        faculty_id=optional_int(data.get('faculty_id'), 'faculty_id'),
        is_anonymous=bool(data.get('is_anonymous', False)),
        questions=data.get('questions'),
        created_by=session.get('user'),
    )
    return jsonify({'success': True, 'message': 'Evaluation form created', 'form_id': form_id}), 201


@admin_bp.route('/admin/forms/<int:form_id>', methods=['GET'])
@login_required('admin')
def get_form(form_id):
    form = Form.get(form_id)
    if not form:
        raise FormNotFound(form_id)
    form['questions'] = Form.list_questions(form_id)
    form['assigned_classes'] = Form.list_classes(form_id)
    return jsonify({'success': True, 'form': form})


@admin_bp.route('/admin/forms/<int:form_id>', methods=['DELETE'])
@login_required('admin')
def delete_form(form_id):
    Form.delete(form_id)
    return jsonify({'success': True, 'message': f'Form {form_id} deleted'})


@admin_bp.route('/admin/forms/<int:form_id>/status', methods=['POST'])
@login_required('admin')
def set_form_status(form_id):
    status = required_text(request_data(), 'status')
    Form.set_status(form_id, status)
    return jsonify({'success': True, 'message': f'Form {form_id} is now {status}', 'status': status})


@admin_bp.route('/admin/forms/<int:form_id>/questions', methods=['GET'])
@login_required('admin')
def list_form_questions(form_id):
    if not Form.get(form_id):
        raise FormNotFound(form_id)
    questions = Form.list_questions(form_id)
    return jsonify({'success': True, 'questions': questions, 'count': len(questions)})


@admin_bp.route('/admin/forms/<int:form_id>/assign', methods=['POST'])
@login_required('admin')
def assign_form(form_id):
    """Assign a form to individual students of one faculty member."""
    data = request_data()
    result = assignment_service.assign_form_to_students(
        form_id,
        optional_int(data.get('faculty_id'), 'faculty_id'),
        id_list(data, 'student_ids'),
        academic_year_id=optional_int(data.get('academic_year_id'), 'academic_year_id'),
        semester=_semester(data),
        due_date=data.get('due_date') or None,
        assigned_by=session.get('user'),
    )
    counts = result['counts']
    message = f"Form assigned to {counts['total_assigned']} student(s) ({counts['new']} new)"
    return jsonify({'success': True, 'message': message, **result})


@admin_bp.route('/admin/forms/<int:form_id>/assign-classes', methods=['POST'])
@login_required('admin')
def assign_form_classes(form_id):
    """Assign a form to every active student of the given classes."""
    data = request_data()
    result = assignment_service.assign_form_to_classes(
        form_id,
        id_list(data, 'class_ids'),
        faculty_id=optional_int(data.get('faculty_id'), 'faculty_id'),
        academic_year_id=optional_int(data.get('academic_year_id'), 'academic_year_id'),
        semester=_semester(data),
        due_date=data.get('due_date') or None,
        assigned_by=session.get('user'),
    )
    counts = result['counts']
    message = f"Form assigned to {counts['total_assigned']} student(s) ({counts['new']} new)"
    return jsonify({'success': True, 'message': message, **result})


@admin_bp.route('/admin/forms/<int:form_id>/responses', methods=['GET'])
@login_required('admin', 'hod')
def form_responses(form_id):
    return jsonify({'success': True, **report_service.get_form_responses(form_id)})


@admin_bp.route('/admin/forms/<int:form_id>/summary', methods=['GET'])
@login_required('admin', 'hod')
def form_summary(form_id):
    return jsonify({'success': True, 'summary': report_service.get_form_score_summary(form_id)})


@admin_bp.route('/admin/reports/forms', methods=['GET'])
@login_required('admin', 'hod')
def forms_report():
    academic_year_id = optional_int(request.args.get('academic_year_id'), 'academic_year_id')
    if academic_year_id is None:
        current = AcademicYear.get_current()
        academic_year_id = current['id'] if current else None
    forms = report_service.get_forms_report(academic_year_id)
    return jsonify({'success': True, 'academic_year_id': academic_year_id, 'forms': forms})


# ----------------------------------------------------------------------------
# Academic years
# ----------------------------------------------------------------------------

@admin_bp.route('/admin/academic-years', methods=['GET'])
@login_required('admin', 'hod')
def list_academic_years():
    return jsonify({'success': True, 'academic_years': AcademicYear.list(),
                    'current': AcademicYear.get_current()})


@admin_bp.route('/admin/academic-years', methods=['POST'])
@login_required('admin')
def add_academic_year():
    data = request_data()
    try:
        year_id = AcademicYear.add(
            required_text(data, 'year_code'),
            required_text(data, 'year_name'),
            required_text(data, 'start_date'),
            required_text(data, 'end_date'),
        )
    except ValueError as e:
        raise ValidationError(f"Invalid date: {e}", 'start_date')
    except sqlite3.IntegrityError:
        return jsonify({'success': False, 'message': 'Academic year already exists'}), 409
    return jsonify({'success': True, 'message': 'Academic year added', 'academic_year_id': year_id}), 201


@admin_bp.route('/admin/academic-years/<int:year_id>/set-current', methods=['POST'])
@login_required('admin')
def set_current_academic_year(year_id):
    assignment_service.set_current_academic_year(year_id)
    return jsonify({'success': True, 'message': f'Academic year {year_id} is now current'})


# ----------------------------------------------------------------------------
# Faculty and classes
# ----------------------------------------------------------------------------

@admin_bp.route('/admin/faculty', methods=['GET'])
@login_required('admin', 'hod')
def list_faculty():
    faculty = Faculty.list(department=request.args.get('department') or None)
    return jsonify({'success': True, 'faculty': faculty, 'count': len(faculty)})


@admin_bp.route('/admin/faculty', methods=['POST'])
@login_required('admin')
def add_faculty():
    data = request_data()
    try:
        faculty_id = Faculty.add(
            required_text(data, 'school_id'),
            required_text(data, 'firstname'),
            required_text(data, 'lastname'),
            department=(data.get('department') or '').strip() or None,
        )
    except sqlite3.IntegrityError:
        return jsonify({'success': False, 'message': 'Faculty school ID already exists'}), 409
    return jsonify({'success': True, 'message': 'Faculty member added', 'faculty_id': faculty_id}), 201


@admin_bp.route('/admin/faculty/<int:faculty_id>/classes', methods=['POST'])
@login_required('admin')
def assign_faculty_class(faculty_id):
    class_id = optional_int(request_data().get('class_id'), 'class_id')
    if class_id is None:
        raise ValidationError("class_id is required", 'class_id')
    try:
        added = Faculty.assign_class(faculty_id, class_id)
    except sqlite3.IntegrityError:
        return jsonify({'success': False, 'message': 'Unknown faculty member or class'}), 404
    message = 'Class assigned' if added else 'Class was already assigned'
    return jsonify({'success': True, 'message': message})


@admin_bp.route('/admin/faculty/<int:faculty_id>/relationships', methods=['GET'])
@login_required('admin')
def list_faculty_relationships(faculty_id):
    relationships = Relationship.list_for_faculty(faculty_id)
    return jsonify({'success': True, 'relationships': relationships, 'count': len(relationships)})


@admin_bp.route('/admin/classes', methods=['GET'])
@login_required('admin', 'hod')
def list_classes():
    return jsonify({'success': True, 'classes': ClassRoom.list()})


@admin_bp.route('/admin/classes', methods=['POST'])
@login_required('admin')
def add_class():
    data = request_data()
    try:
        class_id = ClassRoom.add(
            required_text(data, 'curriculum'),
            required_text(data, 'level'),
            required_text(data, 'section'),
            department=(data.get('department') or '').strip() or None,
        )
    except sqlite3.IntegrityError:
        return jsonify({'success': False, 'message': 'Class already exists'}), 409
    return jsonify({'success': True, 'message': 'Class added', 'class_id': class_id}), 201


@admin_bp.route('/admin/classes/<int:class_id>/students', methods=['GET'])
@login_required('admin')
def list_class_students(class_id):
    students = Student.list_by_class(class_id)
    return jsonify({'success': True, 'students': students, 'count': len(students)})


# ----------------------------------------------------------------------------
# Students and relationships
# ----------------------------------------------------------------------------

@admin_bp.route('/admin/students', methods=['POST'])
@login_required('admin')
def add_student():
    data = request_data()
    try:
        student_id = Student.add(
            required_text(data, 'school_id'),
            required_text(data, 'firstname'),
            required_text(data, 'lastname'),
            class_id=optional_int(data.get('class_id'), 'class_id'),
        )
    except sqlite3.IntegrityError:
        return jsonify({'success': False, 'message': 'Student already exists or class is unknown'}), 409
    return jsonify({'success': True, 'message': 'Student added', 'student_id': student_id}), 201


@admin_bp.route('/admin/students/upload', methods=['POST'])
@login_required('admin')
def upload_students_excel():
    """Upload students via Excel file."""
    return process_upload(process_student_excel)


@admin_bp.route('/admin/students/<int:student_id>/deactivate', methods=['POST'])
@login_required('admin')
def deactivate_student(student_id):
    if not Student.deactivate(student_id):
        return jsonify({'success': False, 'message': 'Student not found'}), 404
    return jsonify({'success': True, 'message': f'Student {student_id} deactivated'})


@admin_bp.route('/admin/students/download-sample')
@login_required('admin')
def download_sample():
    os.makedirs(UPLOAD_FOLDER, exist_ok=True)
    sample_path = os.path.abspath(os.path.join(UPLOAD_FOLDER, 'sample_students.xlsx'))
    create_sample_excel(sample_path)
    return send_file(sample_path, as_attachment=True, download_name='sample_students.xlsx')


@admin_bp.route('/admin/relationships', methods=['POST'])
@login_required('admin')
def add_relationship():
    data = request_data()
    student_id = optional_int(data.get('student_id'), 'student_id')
    faculty_id = optional_int(data.get('faculty_id'), 'faculty_id')
    if student_id is None or faculty_id is None:
        raise ValidationError("student_id and faculty_id are required", 'student_id')
    try:
        relationship_id = Relationship.add(
            student_id, faculty_id,
            academic_year_id=optional_int(data.get('academic_year_id'), 'academic_year_id'),
            semester=_semester(data),
        )
    except sqlite3.IntegrityError:
        return jsonify({'success': False, 'message': 'Unknown student, faculty member or academic year'}), 404
    return jsonify({'success': True, 'message': 'Relationship recorded', 'relationship_id': relationship_id}), 201


@admin_bp.route('/admin/relationships/upload', methods=['POST'])
@login_required('admin')
def upload_relationships_excel():
    """Upload student-faculty relationships via Excel file."""
    return process_upload(process_relationship_excel)


@admin_bp.route('/admin/relationships/<int:relationship_id>/deactivate', methods=['POST'])
@login_required('admin')
def deactivate_relationship(relationship_id):
    if not Relationship.deactivate(relationship_id):
        return jsonify({'success': False, 'message': 'Relationship not found'}), 404
    return jsonify({'success': True, 'message': f'Relationship {relationship_id} deactivated'})


@admin_bp.route('/admin/relationships/download-sample')
@login_required('admin')
def download_relationship_sample():
    os.makedirs(UPLOAD_FOLDER, exist_ok=True)
    sample_path = os.path.abspath(os.path.join(UPLOAD_FOLDER, 'sample_relationships.xlsx'))
    create_sample_relationship_excel(sample_path)
    return send_file(sample_path, as_attachment=True, download_name='sample_relationships.xlsx')
