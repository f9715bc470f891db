import os

# Database configuration
DATABASE_PATH = os.environ.get('FEEDBACK_DB_PATH', os.path.join('data', 'feedback.db'))
DB_TIMEOUT = float(os.environ.get('FEEDBACK_DB_TIMEOUT', '30'))

# Session / login configuration
SECRET_KEY = os.environ.get('SECRET_KEY', 'your_secret_key_change_in_production')
ADMIN_PASSWORD = os.environ.get('FEEDBACK_ADMIN_PASSWORD', 'vsbec')
HOD_USERNAME = os.environ.get('FEEDBACK_HOD_USERNAME', 'admin')
HOD_PASSWORD = os.environ.get('FEEDBACK_HOD_PASSWORD', 'admin')

LOG_LEVEL = os.environ.get('FEEDBACK_LOG_LEVEL', 'INFO')

# Upload configuration
UPLOAD_FOLDER = 'uploads'
ALLOWED_EXTENSIONS = {'xlsx', 'xls'}
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

# Question types
RATING_QUESTION_TYPES = {'rating_1_5'}
QUESTION_TYPES = RATING_QUESTION_TYPES | {'text', 'yes_no'}
RATING_MIN = 1
RATING_MAX = 5
SCORE_PLACES = 2

# Lifecycles
FORM_STATUSES = ('not_started', 'starting', 'closed')
EVALUATION_STATUSES = ('pending', 'in_progress', 'completed')
YEAR_STATUSES = ('upcoming', 'active', 'completed')

# Default questions for a new evaluation form
DEFAULT_FEEDBACK_QUESTIONS = [
    "How is the faculty's approach?",
    "How has the faculty prepared for the classes?",
    "Does the faculty inform you about your expected competencies, course outcomes?",
    "How often does the faculty illustrate the concepts through examples and practical applications?",
    "Whether faculty covers syllabus in time?",
    "Do you agree that the faculty teaches content beyond syllabus?",
    "How does the faculty communicate?",
    "Whether faculty returns answer scripts in time and produces helpful comments?",
    "How does the faculty identify your strengths and encourage you with high level of challenges?",
    "How does the faculty counsel & encourage the students?"
]
