from .database import init_db, get_db, get_db_path
from .student import Student
from .faculty import Faculty
from .classroom import ClassRoom
from .relationship import Relationship
from .academic_year import AcademicYear
from .form import Form
from .evaluation import Evaluation

__all__ = ['init_db', 'get_db', 'get_db_path', 'Student', 'Faculty', 'ClassRoom',
           'Relationship', 'AcademicYear', 'Form', 'Evaluation']
