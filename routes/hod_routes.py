from flask import Blueprint, request, jsonify, make_response
import os
import logging
from evaluation.services import report_service
from report_generator import generate_faculty_report
from report_non_submission import generate_pending_report
from routes.admin_routes import optional_int
from routes.auth import login_required

logger = logging.getLogger(__name__)

hod_bp = Blueprint('hod', __name__)


def pdf_response(pdf_path):
    """Send a generated PDF inline (or as a download with ?download=1) and remove the file."""
    if not pdf_path or not os.path.exists(pdf_path):
        raise ValueError("PDF file was not generated properly")

    with open(pdf_path, 'rb') as f:
        pdf_content = f.read()

    try:
        os.remove(pdf_path)
    except OSError as e:
        logger.warning(f"Could not remove report {pdf_path}: {e}")

    response = make_response(pdf_content)
    response.headers['Content-Type'] = 'application/pdf'
    disposition = 'attachment' if request.args.get('download') else 'inline'
    response.headers['Content-Disposition'] = f'{disposition}; filename={os.path.basename(pdf_path)}'
    return response


@hod_bp.route('/hod/reports/faculty/<int:faculty_id>', methods=['GET'])
@login_required('hod', 'admin')
def faculty_report(faculty_id):
    form_id = optional_int(request.args.get('form_id'), 'form_id')
    return jsonify({'success': True, **report_service.get_faculty_report(faculty_id, form_id=form_id)})


@hod_bp.route('/hod/reports/faculty/<int:faculty_id>/pdf', methods=['GET'])
@login_required('hod', 'admin')
def faculty_report_pdf(faculty_id):
    form_id = optional_int(request.args.get('form_id'), 'form_id')
    report = report_service.get_faculty_report(faculty_id, form_id=form_id)
    return pdf_response(generate_faculty_report(report))


@hod_bp.route('/hod/reports/departments', methods=['GET'])
@login_required('hod', 'admin')
def department_report():
    academic_year_id = optional_int(request.args.get('academic_year_id'), 'academic_year_id')
    departments = report_service.get_department_report(academic_year_id)
    return jsonify({'success': True, 'departments': departments})


@hod_bp.route('/hod/reports/forms/<int:form_id>/pending', methods=['GET'])
@login_required('hod', 'admin')
def pending_students(form_id):
    form, pending = report_service.get_pending_students(form_id)
    return jsonify({'success': True, 'form': form, 'pending': pending, 'count': len(pending)})


@hod_bp.route('/hod/reports/forms/<int:form_id>/pending/pdf', methods=['GET'])
@login_required('hod', 'admin')
def pending_students_pdf(form_id):
    form, pending = report_service.get_pending_students(form_id)
    return pdf_response(generate_pending_report(form, pending))
