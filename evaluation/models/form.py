import logging
from .database import get_db
from .classroom import class_name
from evaluation.errors import FormNotFound, FormInUse, InvalidStateError, ValidationError
from config import QUESTION_TYPES, FORM_STATUSES, DEFAULT_FEEDBACK_QUESTIONS

logger = logging.getLogger(__name__)


def _form_dict(row):
    result = dict(row)
    result['is_anonymous'] = bool(row['is_anonymous'])
    return result


def _question_dict(row):
    result = dict(row)
    result['is_required'] = bool(row['is_required'])
    return result


def _normalize_questions(questions):
    """Turn question input (strings or dicts) into (text, type, required) tuples."""
    if questions is None:
        questions = DEFAULT_FEEDBACK_QUESTIONS
    if not questions:
        raise ValidationError("A form needs at least one question", "questions")

    normalized = []
    for position, question in enumerate(questions, start=1):
        if isinstance(question, str):
            question = {'text': question}
        text = str(question.get('text') or question.get('question_text') or '').strip()
        question_type = question.get('type') or question.get('question_type') or 'rating_1_5'
        required = question.get('required', question.get('is_required', True))
        if not text:
            raise ValidationError(f"Question {position} has no text", "questions")
        if question_type not in QUESTION_TYPES:
            raise ValidationError(
                f"Question {position} has unknown type '{question_type}'. "
                f"Allowed: {', '.join(sorted(QUESTION_TYPES))}", "questions")
        normalized.append((text, question_type, bool(required)))
    return normalized


class Form:
    @staticmethod
    def create(title, academic_year_id=None, semester=None, description=None, faculty_id=None,
               is_anonymous=False, questions=None, created_by=None):
        """Create a form and its ordered question list in one transaction."""
        title = (title or '').strip()
        if not title:
            raise ValidationError("Form title is required", "title")
        question_rows = _normalize_questions(questions)

        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO evaluation_forms
                (title, description, academic_year_id, semester, faculty_id, is_anonymous, created_by)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            ''', (title, description, academic_year_id, semester, faculty_id,
                  int(bool(is_anonymous)), created_by))
            form_id = cursor.lastrowid

            cursor.executemany('''
                INSERT INTO form_questions (form_id, question_text, question_type, is_required, display_order)
                VALUES (?, ?, ?, ?, ?)
            ''', [(form_id, text, question_type, int(required), order)
                  for order, (text, question_type, required) in enumerate(question_rows, start=1)])

        logger.info(f"Created evaluation form {form_id} '{title}' with {len(question_rows)} questions")
        return form_id

    @staticmethod
    def get(form_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT ef.*, ay.year_name, ay.year_code
                FROM evaluation_forms ef
                LEFT JOIN academic_years ay ON ef.academic_year_id = ay.id
                WHERE ef.id = ?
            ''', (form_id,))
            row = cursor.fetchone()
            return _form_dict(row) if row else None

    @staticmethod
    def list(academic_year_id=None):
        with get_db() as conn:
            cursor = conn.cursor()
            query = '''
                SELECT ef.*, ay.year_name, ay.year_code,
                       (SELECT COUNT(*) FROM form_questions fq WHERE fq.form_id = ef.id) AS questions_count,
                       (SELECT COUNT(*) FROM form_classes fc WHERE fc.form_id = ef.id) AS assigned_classes_count
                FROM evaluation_forms ef
                LEFT JOIN academic_years ay ON ef.academic_year_id = ay.id
            '''
            params = ()
            if academic_year_id is not None:
                query += ' WHERE ef.academic_year_id = ?'
                params = (academic_year_id,)
            query += ' ORDER BY ef.created_at DESC, ef.id DESC'
            cursor.execute(query, params)
            return [_form_dict(row) for row in cursor.fetchall()]

    @staticmethod
    def list_questions(form_id, conn=None):
        """Questions of a form ordered by display_order."""
        query = '''
            SELECT id, form_id, question_text, question_type, is_required, display_order
            FROM form_questions
            WHERE form_id = ?
            ORDER BY display_order
        '''
        if conn is not None:
            return [_question_dict(row) for row in conn.execute(query, (form_id,)).fetchall()]
        with get_db() as conn:
            return [_question_dict(row) for row in conn.execute(query, (form_id,)).fetchall()]

    @staticmethod
    def link_classes(conn, form_id, class_ids):
        """Record form-to-class links on an open connection. Returns the number of new links."""
        added = 0
        for class_id in class_ids:
            cursor = conn.execute('''
                INSERT OR IGNORE INTO form_classes (form_id, class_id) VALUES (?, ?)
            ''', (form_id, class_id))
            added += cursor.rowcount
        return added

    @staticmethod
    def list_classes(form_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT c.*, fc.assigned_at
                FROM form_classes fc
                JOIN classes c ON fc.class_id = c.id
                WHERE fc.form_id = ?
                ORDER BY c.curriculum, c.level, c.section
            ''', (form_id,))
            classes = []
            for row in cursor.fetchall():
                item = dict(row)
                item['name'] = class_name(row)
                classes.append(item)
            return classes

    @staticmethod
    def set_status(form_id, status):
        """Move a form forward through not_started -> starting -> closed."""
        if status not in FORM_STATUSES:
            raise ValidationError(f"Unknown form status '{status}'", "status")
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT status FROM evaluation_forms WHERE id = ?', (form_id,))
            row = cursor.fetchone()
            if not row:
                raise FormNotFound(form_id)
            current = row['status']
            if FORM_STATUSES.index(status) < FORM_STATUSES.index(current):
                raise InvalidStateError(f"Form {form_id} cannot move from {current} back to {status}",
                                        "INVALID_FORM_TRANSITION", {"from": current, "to": status})
            cursor.execute('UPDATE evaluation_forms SET status = ? WHERE id = ?', (status, form_id))
        logger.info(f"Form {form_id} status {current} -> {status}")
        return status

    @staticmethod
    def delete(form_id):
        """Delete a form with its questions and class links. Blocked once evaluations exist."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT id FROM evaluation_forms WHERE id = ?', (form_id,))
            if not cursor.fetchone():
                raise FormNotFound(form_id)
            cursor.execute('SELECT COUNT(*) FROM evaluations WHERE form_id = ?', (form_id,))
            evaluation_count = cursor.fetchone()[0]
            if evaluation_count:
                raise FormInUse(form_id, evaluation_count)
            cursor.execute('DELETE FROM evaluation_forms WHERE id = ?', (form_id,))
        logger.info(f"Deleted evaluation form {form_id}")
