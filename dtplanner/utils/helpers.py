"""Shared persistence helpers for the service layer.

commit_or_conflict:  commit one unit of work; lost-update races become
                     ConcurrencyConflictError instead of a silent overwrite
check_version:       reject a write the caller based on a stale read
utc_now:             timezone-aware "now" used for every stamp
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from dtplanner.core.exceptions import ConcurrencyConflictError
from dtplanner.models import db

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def check_version(record, resource: str, expected_version: int | None) -> None:
    """Raise ConcurrencyConflictError when the caller's version is out of date.

    ``expected_version`` is the version the caller read before deciding what
    to write. None skips the check; the row-level version guard on flush
    still applies.
    """
    if expected_version is None:
        return
    if record.version != expected_version:
        raise ConcurrencyConflictError(
            resource,
            record.id,
            expected_version=expected_version,
            actual_version=record.version,
        )


def commit_or_conflict(resource: str, resource_id: int | None = None) -> None:
    """Commit the current session as one atomic write.

    StaleDataError   → the versioned row changed after it was read
    IntegrityError   → a concurrent insert claimed the same unique key
    Either way the session is rolled back so nothing partial is persisted,
    and ConcurrencyConflictError tells the caller to re-read and retry.
    """
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        logger.warning("Concurrent modification of %s id=%s", resource, resource_id)
        raise ConcurrencyConflictError(resource, resource_id) from None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit of %s: %s", resource, exc.orig)
        raise ConcurrencyConflictError(resource, resource_id) from None
