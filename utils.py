"""
Utils module - shared helpers for identifiers, dates and ratings.
"""
import hashlib
import base64
import logging
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from config import SECRET_KEY, RATING_MIN, RATING_MAX, SCORE_PLACES

logger = logging.getLogger(__name__)


def normalize_school_id(school_id):
    """Normalize a school id: strip whitespace, drop leading zeros of numeric ids."""
    if school_id is None:
        return None
    value = str(school_id).strip()
    if value.isdigit():
        return str(int(value))
    return value


def anonymize_id(value):
    """
    Hash an identifier with a one-way function so anonymous forms
    never reveal who answered.
    """
    if value is None or value == '':
        logger.error("Empty identifier passed to anonymize_id")
        return ""

    input_str = str(value) + SECRET_KEY
    hash_obj = hashlib.sha256(input_str.encode())
    hash_str = base64.b64encode(hash_obj.digest()).decode('utf-8')
    return hash_str[:32]


def normalize_semester(semester):
    """Normalize semester to an int, removing a 'semester' prefix if present."""
    if semester is None:
        return None
    value = str(semester).strip()
    if value.lower().startswith("semester"):
        value = value[len("semester"):].strip()
    if value == '':
        return None
    return int(value)


def today():
    return date.today()


def now_iso():
    return datetime.now().isoformat(sep=' ', timespec='seconds')


def parse_date(value):
    """Parse a date given as a date, datetime or ISO string. Empty -> None."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def parse_rating(value):
    """
    Return the numeric rating for a raw answer, or None when the value
    is not a number inside the rating scale.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        rating = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not rating.is_finite():
        return None
    if rating < RATING_MIN or rating > RATING_MAX:
        return None
    return rating


def round_score(value):
    """Round half-up to the configured number of places and return a float."""
    if value is None:
        return None
    quantum = Decimal(1).scaleb(-SCORE_PLACES)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))
