"""
Transaction boundary shared by the services.

Every write operation runs inside ``unit_of_work``: it commits when the block
finishes and rolls back on any error, translating store failures into the
typed errors of ``billdesk.common.exceptions``.
"""
from contextlib import contextmanager
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from billdesk.common.exceptions import BillingError, ConflictError, PersistenceError

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(db: Session, operation: str):
    try:
        yield
        db.commit()
    except BillingError:
        db.rollback()
        raise
    except StaleDataError:
        db.rollback()
        logger.warning(f"Concurrent modification detected while {operation}")
        raise ConflictError(f"The record was modified by someone else while {operation}; reload and retry")
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Integrity error while {operation}: {e.orig}")
        raise ConflictError(f"Conflicting data while {operation}")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error while {operation}: {str(e)}", exc_info=True)
        raise PersistenceError(operation)


def paginate(query, page: int, limit: int) -> dict:
    """Apply page/limit to a query and return the listing envelope."""
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return {"items": items, "total": total, "page": page, "limit": limit}
