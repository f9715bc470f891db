"""
Service for handling Excel file uploads of student-faculty relationships.
"""

import pandas as pd
import logging
from typing import Tuple
from evaluation.models.academic_year import AcademicYear
from evaluation.models.database import get_db
from evaluation.models.relationship import Relationship
from utils import normalize_school_id, normalize_semester

logger = logging.getLogger(__name__)

# Required headers for relationship Excel file
RELATIONSHIP_REQUIRED_HEADERS = ['student_school_id', 'faculty_school_id']
RELATIONSHIP_OPTIONAL_HEADERS = ['academic_year', 'semester']


def validate_relationship_excel(file_path: str) -> Tuple[bool, str, pd.DataFrame]:
    """
    Validate the uploaded relationship Excel file.

    Returns:
        Tuple of (is_valid, error_message, dataframe)
    """
    try:
        df = pd.read_excel(file_path, dtype=str)

        if df.empty:
            return False, "Excel file is empty", None

        df.columns = df.columns.str.strip().str.lower()

        missing_headers = [h for h in RELATIONSHIP_REQUIRED_HEADERS if h not in df.columns]
        if missing_headers:
            return False, f"Missing required columns: {', '.join(missing_headers)}. Required: {', '.join(RELATIONSHIP_REQUIRED_HEADERS)}", None

        if df[RELATIONSHIP_REQUIRED_HEADERS].isnull().any().any():
            return False, "Excel file contains empty values in required columns", None

        for column in RELATIONSHIP_OPTIONAL_HEADERS:
            if column not in df.columns:
                df[column] = None

        df['student_school_id'] = df['student_school_id'].astype(str).str.strip()
        df['faculty_school_id'] = df['faculty_school_id'].astype(str).str.strip()

        df = df[(df['student_school_id'] != '') & (df['faculty_school_id'] != '')]

        if df.empty:
            return False, "No valid relationship records found after cleaning", None

        return True, "", df

    except Exception as e:
        logger.error(f"Error validating relationship Excel file: {e}")
        return False, f"Error reading Excel file: {str(e)}", None


def _lookup_ids(table):
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(f'SELECT id, school_id FROM {table}')
        return {row['school_id']: row['id'] for row in cursor.fetchall()}


def process_relationship_excel(file_path: str) -> Tuple[bool, str, dict]:
    """
    Process the uploaded Excel file and record student-faculty relationships.
    Rows naming an unknown student, faculty member or academic year are skipped.

    Returns:
        Tuple of (success, message, stats_dict)
    """
    is_valid, error_msg, df = validate_relationship_excel(file_path)
    if not is_valid:
        return False, error_msg, {}

    students = _lookup_ids('students')
    faculty = _lookup_ids('faculty')
    years = {year['year_code']: year['id'] for year in AcademicYear.list()}

    relationships = []
    skipped = []
    for index, row in df.iterrows():
        student_id = students.get(normalize_school_id(row['student_school_id']))
        faculty_id = faculty.get(normalize_school_id(row['faculty_school_id']))
        year_code = row['academic_year'] if pd.notna(row['academic_year']) else None
        year_id = years.get(str(year_code).strip()) if year_code else None

        if student_id is None or faculty_id is None or (year_code and year_id is None):
            skipped.append(int(index) + 2)  # spreadsheet row number, header is row 1
            continue

        try:
            semester = normalize_semester(row['semester']) if pd.notna(row['semester']) else None
        except ValueError:
            skipped.append(int(index) + 2)
            continue
        relationships.append((student_id, faculty_id, year_id, semester))

    added_count, existing_count = Relationship.bulk_add(relationships)

    stats = {
        'total': len(df),
        'added': added_count,
        'existing': existing_count,
        'skipped': len(skipped),
        'skipped_rows': skipped[:20]
    }

    if added_count > 0:
        message = f"Successfully added {added_count} relationships. "
        if existing_count > 0:
            message += f"{existing_count} already existed. "
        if skipped:
            message += f"{len(skipped)} rows referenced unknown students, faculty or years."
        return True, message.strip(), stats
    return False, f"No new relationships added. {existing_count} existing, {len(skipped)} skipped.", stats


def create_sample_relationship_excel(output_path: str = 'sample_relationships.xlsx'):
    """
    Create a sample Excel file with the correct format for relationships.
    """
    sample_data = {
        'student_school_id': ['922524243001', '922524243002', '922524243003'],
        'faculty_school_id': ['F1001', 'F1001', 'F1002'],
        'academic_year': ['2025-2026', '2025-2026', '2025-2026'],
        'semester': ['1', '1', '1']
    }

    df = pd.DataFrame(sample_data)
    df.to_excel(output_path, index=False)
    logger.info(f"Sample relationship Excel file created: {output_path}")
    return output_path
