import sqlite3
import os
from contextlib import contextmanager
import logging

import config

logger = logging.getLogger(__name__)

SCHEMA = [
    '''
    CREATE TABLE IF NOT EXISTS departments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS academic_years (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        year_code TEXT NOT NULL UNIQUE,
        year_name TEXT NOT NULL,
        start_date DATE NOT NULL,
        end_date DATE NOT NULL,
        status TEXT NOT NULL DEFAULT 'upcoming',
        is_current INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS faculty (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        school_id TEXT NOT NULL UNIQUE,
        firstname TEXT NOT NULL,
        lastname TEXT NOT NULL,
        department TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS classes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        curriculum TEXT NOT NULL,
        level TEXT NOT NULL,
        section TEXT NOT NULL,
        department TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(curriculum, level, section)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS students (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        school_id TEXT NOT NULL UNIQUE,
        firstname TEXT NOT NULL,
        lastname TEXT NOT NULL,
        class_id INTEGER REFERENCES classes(id),
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE INDEX IF NOT EXISTS idx_students_class
    ON students(class_id)
    ''',
    '''
    CREATE TABLE IF NOT EXISTS faculty_classes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        faculty_id INTEGER NOT NULL REFERENCES faculty(id),
        class_id INTEGER NOT NULL REFERENCES classes(id),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(faculty_id, class_id)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS student_faculty_relationships (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        student_id INTEGER NOT NULL REFERENCES students(id),
        faculty_id INTEGER NOT NULL REFERENCES faculty(id),
        academic_year_id INTEGER REFERENCES academic_years(id),
        semester INTEGER,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE INDEX IF NOT EXISTS idx_relationships_student_faculty
    ON student_faculty_relationships(student_id, faculty_id)
    ''',
    '''
    CREATE TABLE IF NOT EXISTS evaluation_forms (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        description TEXT,
        academic_year_id INTEGER REFERENCES academic_years(id),
        semester INTEGER,
        faculty_id INTEGER REFERENCES faculty(id),
        is_anonymous INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'not_started',
        created_by TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS form_questions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        form_id INTEGER NOT NULL REFERENCES evaluation_forms(id) ON DELETE CASCADE,
        question_text TEXT NOT NULL,
        question_type TEXT NOT NULL DEFAULT 'rating_1_5',
        is_required INTEGER NOT NULL DEFAULT 1,
        display_order INTEGER NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(form_id, display_order)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS form_classes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        form_id INTEGER NOT NULL REFERENCES evaluation_forms(id) ON DELETE CASCADE,
        class_id INTEGER NOT NULL REFERENCES classes(id),
        assigned_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(form_id, class_id)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS evaluations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        form_id INTEGER NOT NULL REFERENCES evaluation_forms(id),
        student_id INTEGER NOT NULL REFERENCES students(id),
        faculty_id INTEGER NOT NULL REFERENCES faculty(id),
        academic_year_id INTEGER REFERENCES academic_years(id),
        semester INTEGER,
        status TEXT NOT NULL DEFAULT 'pending',
        assigned_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        assigned_by TEXT,
        due_date DATE,
        submitted_at TIMESTAMP,
        completed_at TIMESTAMP,
        score REAL,
        feedback TEXT,
        UNIQUE(student_id, form_id)
    )
    ''',
    '''
    CREATE INDEX IF NOT EXISTS idx_evaluations_form
    ON evaluations(form_id)
    ''',
    '''
    CREATE INDEX IF NOT EXISTS idx_evaluations_faculty
    ON evaluations(faculty_id, status)
    ''',
    '''
    CREATE TABLE IF NOT EXISTS evaluation_responses (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        evaluation_id INTEGER NOT NULL REFERENCES evaluations(id) ON DELETE CASCADE,
        question_id INTEGER NOT NULL REFERENCES form_questions(id),
        response_value TEXT,
        submitted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(evaluation_id, question_id)
    )
    ''',
]


def get_db_path():
    """Get the database path and ensure the directory exists."""
    db_path = config.DATABASE_PATH
    db_dir = os.path.dirname(db_path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)
    return db_path


@contextmanager
def get_db(immediate=False):
    """
    Context manager for database connections.

    Commits when the block exits normally and rolls back on any error.
    With ``immediate=True`` the transaction starts with BEGIN IMMEDIATE,
    taking the database write lock up front so that read-modify-write
    sequences from concurrent requests run one after another.
    """
    conn = None
    try:
        conn = sqlite3.connect(get_db_path(), timeout=config.DB_TIMEOUT)
        conn.row_factory = sqlite3.Row
        conn.execute('PRAGMA foreign_keys = ON')
        if immediate:
            conn.execute('BEGIN IMMEDIATE')
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        if conn:
            conn.rollback()
        logger.error(f"Database error: {e}")
        raise
    except Exception:
        if conn:
            conn.rollback()
        raise
    finally:
        if conn:
            conn.close()


def init_db():
    """Initialize the database with all required tables."""
    with get_db() as conn:
        cursor = conn.cursor()
        for statement in SCHEMA:
            cursor.execute(statement)
    logger.info("Database initialized successfully")


def drop_all_tables():
    """Drop all tables - use with caution!"""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute('PRAGMA foreign_keys = OFF')
        cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'")
        tables = cursor.fetchall()
        for table in tables:
            cursor.execute(f"DROP TABLE IF EXISTS {table[0]}")
    logger.warning("All tables dropped")
