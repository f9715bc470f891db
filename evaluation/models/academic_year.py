from .database import get_db
from utils import parse_date, today


def derive_year_status(start_date, end_date, on_date=None):
    """'completed' once the end date has passed, 'upcoming' before the start, else 'active'."""
    on_date = on_date or today()
    if parse_date(end_date) < on_date:
        return 'completed'
    if parse_date(start_date) > on_date:
        return 'upcoming'
    return 'active'


def _year_dict(row):
    result = dict(row)
    result['is_current'] = bool(row['is_current'])
    return result


class AcademicYear:
    @staticmethod
    def add(year_code, year_name, start_date, end_date):
        start = parse_date(start_date)
        end = parse_date(end_date)
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO academic_years (year_code, year_name, start_date, end_date, status)
                VALUES (?, ?, ?, ?, ?)
            ''', (year_code, year_name, start.isoformat(), end.isoformat(),
                  derive_year_status(start, end)))
            return cursor.lastrowid

    @staticmethod
    def get(year_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM academic_years WHERE id = ?', (year_id,))
            row = cursor.fetchone()
            return _year_dict(row) if row else None

    @staticmethod
    def get_current():
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM academic_years WHERE is_current = 1')
            row = cursor.fetchone()
            return _year_dict(row) if row else None

    @staticmethod
    def list():
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM academic_years ORDER BY start_date DESC')
            return [_year_dict(row) for row in cursor.fetchall()]

    @staticmethod
    def count_current():
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT COUNT(*) FROM academic_years WHERE is_current = 1')
            return cursor.fetchone()[0]
