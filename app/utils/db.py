import logging
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from app.extensions import db
from app.utils.text import numeric_suffix

logger = logging.getLogger(__name__)

PG_UNIQUE_VIOLATION = '23505'


class UniqueConflict(Exception):
    """Raised by an insert attempt that found its unique value already taken."""


def is_unique_violation(error, constraint_names=(), columns=()):
    """
    True when an IntegrityError comes from a unique index.

    PostgreSQL reports the SQLSTATE and constraint name; SQLite only the
    message, which lists the offending columns ("UNIQUE constraint failed:
    sources.parent_id, sources.slug"). Narrow the match with constraint_names
    and columns; NOT NULL, foreign key and check violations never match.
    """
    orig = getattr(error, 'orig', None)
    pgcode = getattr(orig, 'pgcode', None)
    if pgcode is not None:
        if pgcode != PG_UNIQUE_VIOLATION:
            return False
        name = getattr(getattr(orig, 'diag', None), 'constraint_name', None)
        return not constraint_names or name in constraint_names

    message = str(orig if orig is not None else error)
    if 'UNIQUE constraint failed' not in message:
        return False
    return not columns or any(column in message for column in columns)


def insert_with_conflict_retries(attempt, base_value, suffix_fn=numeric_suffix, max_retries=3,
                                 is_conflict=is_unique_violation):
    """
    Run attempt(value) as its own transaction, retrying on unique conflicts.

    Tries base_value first, then suffix_fn(base_value, 2), suffix_fn(base_value, 3), ...
    up to max_retries retries. A conflict is either an IntegrityError accepted
    by is_conflict or a UniqueConflict raised by the attempt's own pre-check;
    both roll the session back before the next try. Any other IntegrityError
    is re-raised unchanged.

    Returns (value, attempt result). Raises UniqueConflict when every candidate
    collided.
    """
    candidates = [base_value] + [suffix_fn(base_value, n) for n in range(2, max_retries + 2)]
    for value in candidates:
        try:
            return value, attempt(value)
        except UniqueConflict:
            db.session.rollback()
            logger.info("Unique conflict on %r (pre-check), trying next candidate", value)
        except IntegrityError as e:
            db.session.rollback()
            if not is_conflict(e):
                raise
            logger.info("Unique conflict on %r (index), trying next candidate", value)
        except Exception:
            db.session.rollback()
            raise
    raise UniqueConflict(base_value)


def safe_query(query_fn, fallback, context):
    """
    Run a read, returning fallback when the store fails.
    Read views degrade to empty results instead of erroring.
    """
    try:
        return query_fn()
    except SQLAlchemyError as e:
        logger.error("[Database Error] %s: %s", context, e)
        db.session.rollback()
        return fallback
