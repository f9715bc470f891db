from .database import get_db


def class_name(row):
    parts = [row['curriculum'], row['level'], row['section']]
    return ' '.join(str(p) for p in parts if p)


class ClassRoom:
    @staticmethod
    def add(curriculum, level, section, department=None):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO classes (curriculum, level, section, department)
                VALUES (?, ?, ?, ?)
            ''', (curriculum, str(level), section, department))
            return cursor.lastrowid

    @staticmethod
    def get(class_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM classes WHERE id = ?', (class_id,))
            row = cursor.fetchone()
            if not row:
                return None
            result = dict(row)
            result['name'] = class_name(row)
            return result

    @staticmethod
    def find_missing(class_ids):
        """Return the ids from class_ids that have no class row."""
        if not class_ids:
            return []
        placeholders = ', '.join(['?'] * len(class_ids))
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT id FROM classes WHERE id IN ({placeholders})', tuple(class_ids))
            found = {row[0] for row in cursor.fetchall()}
        return [class_id for class_id in class_ids if class_id not in found]

    @staticmethod
    def find_by_name(name):
        """Look a class up by its display name, e.g. 'BSIT 2 A'."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT * FROM classes
                WHERE curriculum || ' ' || level || ' ' || section = ?
            ''', (str(name).strip(),))
            row = cursor.fetchone()
            return dict(row) if row else None

    @staticmethod
    def list():
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM classes ORDER BY curriculum, level, section')
            classes = []
            for row in cursor.fetchall():
                item = dict(row)
                item['name'] = class_name(row)
                classes.append(item)
            return classes
