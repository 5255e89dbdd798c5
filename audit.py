from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from logic import ErrorKind, Outcome
from models import AuditLog


logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Something went wrong. Please try again."


class EventKind(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    USER_ACTION = "user_action"


# Categories
AUTH = "AUTH"
SEARCH = "SEARCH"
RECOMMENDATIONS = "RECOMMENDATIONS"
REVIEW = "REVIEW"
SUBMISSION = "SUBMISSION"
SETTINGS = "SETTINGS"
ADMIN = "ADMIN"
IMPORT = "IMPORT"


def to_uuid(value: Any) -> uuid.UUID | None:
    if value is None or value == "":
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (uuid.UUID, Enum)):
        return str(value.value if isinstance(value, Enum) else value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def record_event(
    db: Session,
    kind: EventKind | str,
    category: str,
    message: str,
    user_id: Any = None,
    **details: Any,
) -> None:
    """Append an audit row. Never raises: a failed audit write must not fail the caller."""
    try:
        with db.begin_nested():
            db.add(
                AuditLog(
                    kind=EventKind(kind).value,
                    category=category,
                    message=message,
                    user_id=to_uuid(user_id),
                    details_json=_jsonable(details),
                )
            )
    except Exception:
        logger.exception("audit write failed (%s/%s): %s", kind, category, message)


def guarded(
    db: Session,
    category: str,
    operation: Callable[[], Outcome],
    user_id: Any = None,
) -> Outcome:
    try:
        return operation()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("store failure in %s: %s", category, exc.__class__.__name__)
        record_event(db, EventKind.ERROR, category, "Store operation failed", user_id, error=exc.__class__.__name__)
        return Outcome.failure(ErrorKind.STORE_ERROR, GENERIC_FAILURE)
