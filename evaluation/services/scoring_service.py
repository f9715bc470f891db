"""
Response & scoring engine.

Accepts a student's answers for one evaluation, stores them, derives the
evaluation score and marks the evaluation completed, all inside one
locked transaction. The same scoring formula is used by every reporting
path to reconcile stored scores with the stored responses.
"""

import logging
import sqlite3
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from config import RATING_QUESTION_TYPES
from evaluation.errors import (
    AlreadySubmitted, DeadlineExpired, EvaluationNotFound, TransientStoreError, ValidationError
)
from evaluation.models.database import get_db
from evaluation.models.evaluation import Evaluation
from evaluation.models.form import Form
from utils import now_iso, parse_date, parse_rating, round_score, today

logger = logging.getLogger(__name__)


def compute_score(rows: Iterable[Tuple[str, object]]) -> Optional[float]:
    """
    Mean of the valid rating answers, rounded half-up to two places.

    rows are (question_type, value) pairs. Only rating-scale questions
    whose value is a number inside the scale count; anything else is
    ignored. Returns None when nothing counts, never 0.
    """
    ratings = []
    for question_type, value in rows:
        if question_type not in RATING_QUESTION_TYPES:
            continue
        rating = parse_rating(value)
        if rating is not None:
            ratings.append(rating)
    if not ratings:
        return None
    return round_score(sum(ratings, Decimal(0)) / len(ratings))


def display_status(status, due_date, on_date=None):
    """'expired' for unfinished evaluations past their due date, else the stored status."""
    on_date = on_date or today()
    due = parse_date(due_date)
    if status != 'completed' and due is not None and due < on_date:
        return 'expired'
    return status


def is_past_due(due_date, on_date=None):
    due = parse_date(due_date)
    return due is not None and due < (on_date or today())


def start_evaluation(evaluation_id, student_id):
    """pending -> in_progress when the student opens the form. Other states are left alone."""
    with get_db(immediate=True) as conn:
        evaluation = Evaluation.find_for_student(conn, evaluation_id, student_id)
        if not evaluation:
            raise EvaluationNotFound(evaluation_id)
        if evaluation['status'] == 'completed':
            raise AlreadySubmitted(evaluation_id)
        if is_past_due(evaluation['due_date']):
            raise DeadlineExpired(evaluation_id, evaluation['due_date'])
        if evaluation['status'] == 'pending':
            Evaluation.set_status(conn, evaluation_id, 'in_progress')
            logger.info(f"Evaluation {evaluation_id} opened by student {student_id}")
    return 'in_progress'


def _validate_responses(responses, questions):
    """Map submitted answers onto the form's questions, rejecting malformed input."""
    if responses is None or not isinstance(responses, list):
        raise ValidationError("Invalid responses data", "responses")

    questions_by_id = {q['id']: q for q in questions}
    answers = {}
    for item in responses:
        if not isinstance(item, dict) or 'question_id' not in item:
            raise ValidationError("Each response needs a question_id", "responses")
        try:
            question_id = int(item['question_id'])
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid question_id: {item['question_id']}", "responses")
        if question_id not in questions_by_id:
            raise ValidationError(f"Question {question_id} does not belong to this form", "responses")
        value = item.get('value', item.get('response_value'))
        answers[question_id] = None if value is None else str(value).strip()

    missing = [q['display_order'] for q in questions
               if q['is_required'] and not answers.get(q['id'])]
    if missing:
        raise ValidationError(
            f"Required question(s) not answered: {', '.join(str(m) for m in missing)}", "responses")
    return answers


def submit_evaluation(evaluation_id, student_id, responses: List[dict], feedback=None):
    """
    Store the answers, score them and complete the evaluation.

    The evaluation row is read under the database write lock, so of two
    concurrent submissions for the same evaluation the second one sees
    'completed' and fails with AlreadySubmitted. Any failure rolls back
    every response and the status change together.
    """
    submitted_at = now_iso()
    try:
        with get_db(immediate=True) as conn:
            evaluation = Evaluation.find_for_student(conn, evaluation_id, student_id)
            if not evaluation:
                raise EvaluationNotFound(evaluation_id)
            if evaluation['status'] == 'completed':
                raise AlreadySubmitted(evaluation_id)
            if is_past_due(evaluation['due_date']):
                raise DeadlineExpired(evaluation_id, evaluation['due_date'])

            questions = Form.list_questions(evaluation['form_id'], conn=conn)
            answers = _validate_responses(responses, questions)

            for question_id, value in answers.items():
                Evaluation.upsert_response(conn, evaluation_id, question_id, value, submitted_at)

            stored = Evaluation.list_responses(conn, [evaluation_id])
            score = compute_score((r['question_type'], r['response_value']) for r in stored)

            feedback = feedback.strip() if isinstance(feedback, str) and feedback.strip() else None
            Evaluation.complete(conn, evaluation_id, score, feedback, submitted_at)
    except sqlite3.Error as e:
        raise TransientStoreError("submit evaluation", e) from e

    logger.info(f"Evaluation {evaluation_id} submitted by student {student_id}: "
                f"{len(answers)} responses, score {score}")
    return {
        'evaluation_id': evaluation_id,
        'submitted_at': submitted_at,
        'score': score,
        'total_responses': len(answers),
    }


def reconcile_scores(conn, evaluations: List[dict]) -> List[dict]:
    """
    Recompute each evaluation's score from its stored responses and
    overwrite the stored score where it differs.

    evaluations are dicts with at least 'id' and 'score'; they are
    updated in place and also get a 'responses' list.
    Returns the responses of all given evaluations.
    """
    ids = [e['id'] for e in evaluations]
    responses = Evaluation.list_responses(conn, ids)

    by_evaluation = {}
    for response in responses:
        by_evaluation.setdefault(response['evaluation_id'], []).append(response)

    for evaluation in evaluations:
        rows = by_evaluation.get(evaluation['id'], [])
        evaluation['responses'] = rows
        recomputed = compute_score((r['question_type'], r['response_value']) for r in rows)
        stored = evaluation['score']
        if stored is not None:
            stored = round_score(Decimal(str(stored)))
        if recomputed != stored:
            Evaluation.set_score(conn, evaluation['id'], recomputed)
            logger.info(f"Reconciled score for evaluation {evaluation['id']}: {stored} -> {recomputed}")
        evaluation['score'] = recomputed
    return responses
