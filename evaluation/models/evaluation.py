"""
Store for evaluations (one student's instance of a form) and their
per-question responses. Most methods take an open connection so the
engines can compose them inside a single transaction.
"""
import logging
from .database import get_db

logger = logging.getLogger(__name__)

EVALUATION_COLUMNS = '''
    se.id, se.form_id, se.student_id, se.faculty_id, se.academic_year_id,
    se.semester, se.status, se.assigned_date, se.assigned_by, se.due_date,
    se.submitted_at, se.completed_at, se.score, se.feedback
'''


class Evaluation:
    @staticmethod
    def get(evaluation_id, conn=None):
        query = f'SELECT {EVALUATION_COLUMNS} FROM evaluations se WHERE se.id = ?'
        if conn is not None:
            row = conn.execute(query, (evaluation_id,)).fetchone()
            return dict(row) if row else None
        with get_db() as conn:
            row = conn.execute(query, (evaluation_id,)).fetchone()
            return dict(row) if row else None

    @staticmethod
    def find(conn, student_id, form_id):
        row = conn.execute(f'''
            SELECT {EVALUATION_COLUMNS} FROM evaluations se
            WHERE se.student_id = ? AND se.form_id = ?
        ''', (student_id, form_id)).fetchone()
        return dict(row) if row else None

    @staticmethod
    def find_for_student(conn, evaluation_id, student_id):
        """The evaluation only if it belongs to student_id."""
        row = conn.execute(f'''
            SELECT {EVALUATION_COLUMNS} FROM evaluations se
            WHERE se.id = ? AND se.student_id = ?
        ''', (evaluation_id, student_id)).fetchone()
        return dict(row) if row else None

    @staticmethod
    def insert(conn, form_id, student_id, faculty_id, academic_year_id=None, semester=None,
               due_date=None, assigned_by=None):
        """Insert a pending evaluation. Returns None if the (student, form) pair already exists."""
        cursor = conn.execute('''
            INSERT INTO evaluations
            (form_id, student_id, faculty_id, academic_year_id, semester, due_date, status, assigned_by)
            VALUES (?, ?, ?, ?, ?, ?, 'pending', ?)
            ON CONFLICT(student_id, form_id) DO NOTHING
        ''', (form_id, student_id, faculty_id, academic_year_id, semester,
              due_date.isoformat() if due_date else None, assigned_by))
        if cursor.rowcount == 0:
            return None
        return cursor.lastrowid

    @staticmethod
    def update_due_date(conn, evaluation_id, due_date):
        conn.execute('UPDATE evaluations SET due_date = ? WHERE id = ?',
                     (due_date.isoformat() if due_date else None, evaluation_id))

    @staticmethod
    def set_status(conn, evaluation_id, status):
        conn.execute('UPDATE evaluations SET status = ? WHERE id = ?', (status, evaluation_id))

    @staticmethod
    def complete(conn, evaluation_id, score, feedback, timestamp):
        conn.execute('''
            UPDATE evaluations
            SET status = 'completed',
                submitted_at = ?,
                completed_at = ?,
                score = ?,
                feedback = ?
            WHERE id = ?
        ''', (timestamp, timestamp, score, feedback, evaluation_id))

    @staticmethod
    def set_score(conn, evaluation_id, score):
        conn.execute('UPDATE evaluations SET score = ? WHERE id = ?', (score, evaluation_id))

    @staticmethod
    def upsert_response(conn, evaluation_id, question_id, value, timestamp):
        """One response per (evaluation, question); a later write replaces the earlier one."""
        conn.execute('''
            INSERT INTO evaluation_responses (evaluation_id, question_id, response_value, submitted_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(evaluation_id, question_id) DO UPDATE SET
                response_value = excluded.response_value,
                submitted_at = excluded.submitted_at
        ''', (evaluation_id, question_id, value, timestamp))

    @staticmethod
    def list_responses(conn, evaluation_ids):
        """Responses of the given evaluations with their question, in display order."""
        if not evaluation_ids:
            return []
        placeholders = ', '.join(['?'] * len(evaluation_ids))
        cursor = conn.execute(f'''
            SELECT er.id, er.evaluation_id, er.question_id, er.response_value, er.submitted_at,
                   fq.question_text, fq.question_type, fq.display_order
            FROM evaluation_responses er
            JOIN form_questions fq ON er.question_id = fq.id
            WHERE er.evaluation_id IN ({placeholders})
            ORDER BY er.evaluation_id, fq.display_order
        ''', tuple(evaluation_ids))
        return [dict(row) for row in cursor.fetchall()]

    @staticmethod
    def list_for_form(conn, form_id):
        cursor = conn.execute(f'''
            SELECT {EVALUATION_COLUMNS},
                   s.school_id AS student_school_id, s.firstname AS student_firstname,
                   s.lastname AS student_lastname, s.class_id,
                   f.firstname AS faculty_firstname, f.lastname AS faculty_lastname
            FROM evaluations se
            JOIN students s ON se.student_id = s.id
            JOIN faculty f ON se.faculty_id = f.id
            WHERE se.form_id = ?
            ORDER BY se.submitted_at DESC, se.id
        ''', (form_id,))
        return [dict(row) for row in cursor.fetchall()]

    @staticmethod
    def list_for_faculty(conn, faculty_id, form_id=None, completed_only=True):
        query = f'''
            SELECT {EVALUATION_COLUMNS}, ef.title AS form_title, ef.is_anonymous,
                   s.school_id AS student_school_id, s.firstname AS student_firstname,
                   s.lastname AS student_lastname, s.class_id
            FROM evaluations se
            JOIN evaluation_forms ef ON se.form_id = ef.id
            JOIN students s ON se.student_id = s.id
            WHERE se.faculty_id = ?
        '''
        params = [faculty_id]
        if completed_only:
            query += " AND se.status = 'completed'"
        if form_id is not None:
            query += ' AND se.form_id = ?'
            params.append(form_id)
        query += ' ORDER BY se.submitted_at DESC, se.id'
        return [dict(row) for row in conn.execute(query, params).fetchall()]

    @staticmethod
    def list_for_student(student_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'''
                SELECT {EVALUATION_COLUMNS}, ef.title AS form_title, ef.description AS form_description,
                       f.firstname AS faculty_firstname, f.lastname AS faculty_lastname
                FROM evaluations se
                JOIN evaluation_forms ef ON se.form_id = ef.id
                JOIN faculty f ON se.faculty_id = f.id
                WHERE se.student_id = ?
                ORDER BY se.due_date IS NULL, se.due_date, se.id
            ''', (student_id,))
            return [dict(row) for row in cursor.fetchall()]

    @staticmethod
    def count_for_form(form_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT COUNT(*) FROM evaluations WHERE form_id = ?', (form_id,))
            return cursor.fetchone()[0]
