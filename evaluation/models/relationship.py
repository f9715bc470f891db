import logging
from .database import get_db

logger = logging.getLogger(__name__)

# A relationship row without a year (or semester) applies to every period,
# and a lookup without a year (or semester) accepts rows of any period.
PERIOD_MATCH = '''
    faculty_id = ?
    AND is_active = 1
    AND (? IS NULL OR academic_year_id IS NULL OR academic_year_id = ?)
    AND (? IS NULL OR semester IS NULL OR semester = ?)
'''


class Relationship:
    @staticmethod
    def add(student_id, faculty_id, academic_year_id=None, semester=None, is_active=True):
        """Record that a student is taught by a faculty member in a period."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT id FROM student_faculty_relationships
                WHERE student_id = ? AND faculty_id = ?
                AND academic_year_id IS ? AND semester IS ?
            ''', (student_id, faculty_id, academic_year_id, semester))
            row = cursor.fetchone()
            if row:
                cursor.execute('''
                    UPDATE student_faculty_relationships SET is_active = ? WHERE id = ?
                ''', (int(is_active), row['id']))
                return row['id']
            cursor.execute('''
                INSERT INTO student_faculty_relationships
                (student_id, faculty_id, academic_year_id, semester, is_active)
                VALUES (?, ?, ?, ?, ?)
            ''', (student_id, faculty_id, academic_year_id, semester, int(is_active)))
            return cursor.lastrowid

    @staticmethod
    def bulk_add(relationships):
        """
        relationships: list of tuples (student_id, faculty_id, academic_year_id, semester)
        Returns: (added_count, existing_count)
        """
        added_count = 0
        existing_count = 0

        with get_db() as conn:
            cursor = conn.cursor()
            for student_id, faculty_id, academic_year_id, semester in relationships:
                cursor.execute('''
                    SELECT 1 FROM student_faculty_relationships
                    WHERE student_id = ? AND faculty_id = ?
                    AND academic_year_id IS ? AND semester IS ? AND is_active = 1
                ''', (student_id, faculty_id, academic_year_id, semester))
                if cursor.fetchone():
                    existing_count += 1
                    continue
                cursor.execute('''
                    INSERT INTO student_faculty_relationships
                    (student_id, faculty_id, academic_year_id, semester)
                    VALUES (?, ?, ?, ?)
                ''', (student_id, faculty_id, academic_year_id, semester))
                added_count += 1

        return added_count, existing_count

    @staticmethod
    def find_active(student_id, faculty_id, academic_year_id=None, semester=None):
        """True when an active relationship exists for the matching period."""
        with get_db() as conn:
            return student_id in Relationship.students_with_relationship(
                conn, [student_id], faculty_id, academic_year_id, semester)

    @staticmethod
    def students_with_relationship(conn, student_ids, faculty_id, academic_year_id=None, semester=None):
        """Subset of student_ids holding an active relationship with faculty_id."""
        if not student_ids:
            return set()
        placeholders = ', '.join(['?'] * len(student_ids))
        cursor = conn.execute(f'''
            SELECT DISTINCT student_id FROM student_faculty_relationships
            WHERE student_id IN ({placeholders}) AND {PERIOD_MATCH}
        ''', (*student_ids, faculty_id,
              academic_year_id, academic_year_id,
              semester, semester))
        return {row[0] for row in cursor.fetchall()}

    @staticmethod
    def deactivate(relationship_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                UPDATE student_faculty_relationships SET is_active = 0 WHERE id = ?
            ''', (relationship_id,))
            return cursor.rowcount > 0

    @staticmethod
    def list_for_faculty(faculty_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT r.id, r.student_id, r.faculty_id, r.academic_year_id,
                       r.semester, r.is_active, s.school_id, s.firstname, s.lastname
                FROM student_faculty_relationships r
                JOIN students s ON r.student_id = s.id
                WHERE r.faculty_id = ?
                ORDER BY s.lastname, s.firstname
            ''', (faculty_id,))
            return [dict(row) for row in cursor.fetchall()]
