import logging
import sqlite3
from .database import get_db
from utils import normalize_school_id

logger = logging.getLogger(__name__)


def _student_dict(row):
    return {
        'id': row['id'],
        'school_id': row['school_id'],
        'firstname': row['firstname'],
        'lastname': row['lastname'],
        'name': f"{row['firstname']} {row['lastname']}",
        'class_id': row['class_id'],
        'is_active': bool(row['is_active'])
    }


class Student:
    @staticmethod
    def add(school_id, firstname, lastname, class_id=None, is_active=True):
        """Add a new student to the database."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO students (school_id, firstname, lastname, class_id, is_active)
                VALUES (?, ?, ?, ?, ?)
            ''', (normalize_school_id(school_id), firstname, lastname, class_id, int(is_active)))
            return cursor.lastrowid

    @staticmethod
    def bulk_add(students):
        """Add multiple students at once.
        students: list of tuples (school_id, firstname, lastname, class_id)
        Returns: (added_count, duplicate_count, duplicates_list)
        """
        added = []
        duplicates = []

        with get_db() as conn:
            cursor = conn.cursor()

            for school_id, firstname, lastname, class_id in students:
                school_id = normalize_school_id(school_id)
                try:
                    cursor.execute('''
                        INSERT INTO students (school_id, firstname, lastname, class_id)
                        VALUES (?, ?, ?, ?)
                        ON CONFLICT(school_id) DO NOTHING
                    ''', (school_id, firstname, lastname, class_id))
                    if cursor.rowcount > 0:
                        added.append(school_id)
                    else:
                        duplicates.append(school_id)
                except sqlite3.Error as e:
                    logger.error(f"Error adding student {school_id}: {e}")
                    duplicates.append(school_id)

        return len(added), len(duplicates), duplicates

    @staticmethod
    def get(student_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM students WHERE id = ?', (student_id,))
            row = cursor.fetchone()
            return _student_dict(row) if row else None

    @staticmethod
    def get_by_school_id(school_id):
        """Get student info by school id."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT * FROM students WHERE school_id = ?
            ''', (normalize_school_id(school_id),))
            row = cursor.fetchone()
            return _student_dict(row) if row else None

    @staticmethod
    def get_many(conn, student_ids):
        """Fetch the given students on an open connection, keyed by id."""
        if not student_ids:
            return {}
        placeholders = ', '.join(['?'] * len(student_ids))
        cursor = conn.execute(f'''
            SELECT * FROM students WHERE id IN ({placeholders})
        ''', tuple(student_ids))
        return {row['id']: _student_dict(row) for row in cursor.fetchall()}

    @staticmethod
    def list_active_in_classes(class_ids):
        """All active students belonging to any of the given classes."""
        if not class_ids:
            return []
        placeholders = ', '.join(['?'] * len(class_ids))
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'''
                SELECT * FROM students
                WHERE class_id IN ({placeholders}) AND is_active = 1
                ORDER BY lastname, firstname, id
            ''', tuple(class_ids))
            return [_student_dict(row) for row in cursor.fetchall()]

    @staticmethod
    def list_by_class(class_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT * FROM students WHERE class_id = ?
                ORDER BY lastname, firstname, id
            ''', (class_id,))
            return [_student_dict(row) for row in cursor.fetchall()]

    @staticmethod
    def deactivate(student_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('UPDATE students SET is_active = 0 WHERE id = ?', (student_id,))
            return cursor.rowcount > 0

    @staticmethod
    def count():
        """Get total number of students."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT COUNT(*) FROM students')
            return cursor.fetchone()[0]
