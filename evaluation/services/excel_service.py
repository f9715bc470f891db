"""
Service for handling Excel file uploads for student roster data.
"""

import pandas as pd
import logging
from typing import Tuple
from evaluation.models.classroom import ClassRoom
from evaluation.models.student import Student

logger = logging.getLogger(__name__)

# Required headers for student Excel file
REQUIRED_HEADERS = ['school_id', 'firstname', 'lastname', 'class']


def validate_excel_file(file_path: str) -> Tuple[bool, str, pd.DataFrame]:
    """
    Validate the uploaded Excel file.

    Returns:
        Tuple of (is_valid, error_message, dataframe)
    """
    try:
        df = pd.read_excel(file_path, dtype=str)

        if df.empty:
            return False, "Excel file is empty", None

        # Convert column names to lowercase for comparison
        df.columns = df.columns.str.strip().str.lower()

        missing_headers = [h for h in REQUIRED_HEADERS if h not in df.columns]
        if missing_headers:
            return False, f"Missing required columns: {', '.join(missing_headers)}. Required: {', '.join(REQUIRED_HEADERS)}", None

        if df[REQUIRED_HEADERS].isnull().any().any():
            return False, "Excel file contains empty values in required columns", None

        for column in REQUIRED_HEADERS:
            df[column] = df[column].astype(str).str.strip()

        df = df[df['school_id'] != '']

        if df.empty:
            return False, "No valid student records found after cleaning", None

        return True, "", df

    except Exception as e:
        logger.error(f"Error validating Excel file: {e}")
        return False, f"Error reading Excel file: {str(e)}", None


def process_student_excel(file_path: str) -> Tuple[bool, str, dict]:
    """
    Process the uploaded Excel file and add students to database.
    The 'class' column holds a class display name, e.g. 'BSIT 2 A'.

    Returns:
        Tuple of (success, message, stats_dict)
    """
    is_valid, error_msg, df = validate_excel_file(file_path)
    if not is_valid:
        return False, error_msg, {}

    students_data = []
    unknown_classes = set()
    class_cache = {}
    for _, row in df.iterrows():
        name = row['class']
        if name not in class_cache:
            found = ClassRoom.find_by_name(name)
            class_cache[name] = found['id'] if found else None
        if class_cache[name] is None:
            unknown_classes.add(name)
            continue
        students_data.append((row['school_id'], row['firstname'], row['lastname'], class_cache[name]))

    added_count, duplicate_count, duplicates = Student.bulk_add(students_data)

    stats = {
        'total': len(df),
        'added': added_count,
        'duplicates': duplicate_count,
        'duplicate_list': duplicates[:20],  # Limit to first 20 for display
        'unknown_classes': sorted(unknown_classes)
    }

    if added_count > 0:
        message = f"Successfully added {added_count} students. "
        if duplicate_count > 0:
            message += f"{duplicate_count} duplicates were skipped. "
        if unknown_classes:
            message += f"{len(unknown_classes)} unknown class(es) were ignored."
        return True, message.strip(), stats
    if unknown_classes and not duplicate_count:
        return False, f"No students added. Unknown class(es): {', '.join(sorted(unknown_classes))}", stats
    return False, f"No new students added. All {duplicate_count} records were duplicates.", stats


def create_sample_excel(output_path: str = 'sample_students.xlsx'):
    """
    Create a sample Excel file with the correct format.
    """
    sample_data = {
        'school_id': ['922524243001', '922524243002', '922524243003'],
        'firstname': ['Asha', 'Ravi', 'Meena'],
        'lastname': ['Kumar', 'Shankar', 'Iyer'],
        'class': ['BSIT 2 A', 'BSIT 2 A', 'BSIT 2 B']
    }

    df = pd.DataFrame(sample_data)
    df.to_excel(output_path, index=False)
    logger.info(f"Sample Excel file created: {output_path}")
    return output_path
