import logging
from .database import get_db
from utils import normalize_school_id

logger = logging.getLogger(__name__)


def _faculty_dict(row):
    return {
        'id': row['id'],
        'school_id': row['school_id'],
        'firstname': row['firstname'],
        'lastname': row['lastname'],
        'name': f"{row['firstname']} {row['lastname']}",
        'department': row['department'],
        'is_active': bool(row['is_active'])
    }


class Faculty:
    @staticmethod
    def add(school_id, firstname, lastname, department=None, is_active=True):
        """Add a faculty member. The department is registered when new."""
        with get_db() as conn:
            cursor = conn.cursor()
            if department:
                cursor.execute('INSERT OR IGNORE INTO departments (name) VALUES (?)', (department,))
            cursor.execute('''
                INSERT INTO faculty (school_id, firstname, lastname, department, is_active)
                VALUES (?, ?, ?, ?, ?)
            ''', (normalize_school_id(school_id), firstname, lastname, department, int(is_active)))
            return cursor.lastrowid

    @staticmethod
    def get(faculty_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM faculty WHERE id = ?', (faculty_id,))
            row = cursor.fetchone()
            return _faculty_dict(row) if row else None

    @staticmethod
    def get_by_school_id(school_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM faculty WHERE school_id = ?',
                           (normalize_school_id(school_id),))
            row = cursor.fetchone()
            return _faculty_dict(row) if row else None

    @staticmethod
    def find_active(faculty_id):
        """Return the faculty member only when it exists and is active."""
        faculty = Faculty.get(faculty_id)
        if faculty and faculty['is_active']:
            return faculty
        return None

    @staticmethod
    def list(department=None):
        with get_db() as conn:
            cursor = conn.cursor()
            if department:
                cursor.execute('''
                    SELECT * FROM faculty WHERE department = ?
                    ORDER BY lastname, firstname
                ''', (department,))
            else:
                cursor.execute('SELECT * FROM faculty ORDER BY department, lastname, firstname')
            return [_faculty_dict(row) for row in cursor.fetchall()]

    @staticmethod
    def assign_class(faculty_id, class_id):
        """Record that a faculty member teaches a class. Returns False if already recorded."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT OR IGNORE INTO faculty_classes (faculty_id, class_id)
                VALUES (?, ?)
            ''', (faculty_id, class_id))
            return cursor.rowcount > 0

    @staticmethod
    def list_classes(faculty_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT c.id, c.curriculum, c.level, c.section, c.department
                FROM faculty_classes fc
                JOIN classes c ON fc.class_id = c.id
                WHERE fc.faculty_id = ?
                ORDER BY c.curriculum, c.level, c.section
            ''', (faculty_id,))
            return [dict(row) for row in cursor.fetchall()]
