"""
TransactionCoordinator -- atomic units of work.

Responsibility:
    Opens a session per unit of work, commits when the block finishes and
    rolls back when anything inside it raises.  It is the only component
    that commits or rolls back; services just flush.

Architecture position:
    Kernel > Services.  Used by the operation facade (shop_kernel.api) and
    by scripts/tests that compose several service calls into one unit.

Invariants enforced:
    - All-or-nothing: no write of a failed unit is visible to later reads.
    - Kernel errors surface unchanged.  Datastore concurrency failures
      (serialization failure, deadlock, lock timeout, SQLite busy, unique
      key race) surface as ConflictError.
    - Nothing is retried here.  Retrying a ConflictError is the caller's
      decision.

Failure modes:
    - ConflictError: see above.
    - Any other exception propagates after rollback.
"""

from contextlib import contextmanager
from typing import Callable, Generator, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from shop_kernel.exceptions import ConflictError, ShopKernelError
from shop_kernel.logging_config import get_logger

logger = get_logger("services.transaction")

T = TypeVar("T")

# PostgreSQL SQLSTATEs that mean "another transaction got in the way"
_PG_CONFLICT_CODES = frozenset({
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available
    "23505",  # unique_violation
})

_SQLITE_CONFLICT_MARKERS = (
    "database is locked",
    "database table is locked",
    "unique constraint failed",
)


def is_conflict(exc: DBAPIError) -> bool:
    """True if a driver error reports a concurrency conflict."""
    orig = exc.orig
    pgcode = getattr(orig, "pgcode", None)
    if pgcode is not None:
        return pgcode in _PG_CONFLICT_CODES
    message = str(orig).lower()
    return any(marker in message for marker in _SQLITE_CONFLICT_MARKERS)


class TransactionCoordinator:
    """
    Scoped atomic execution over a session factory.

    Usage:
        coordinator = TransactionCoordinator(get_session_factory())
        with coordinator.unit_of_work("sell_accessory") as session:
            AccessorySaleRecorder(session).sell(...)
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    @contextmanager
    def unit_of_work(self, operation: str = "unit_of_work") -> Generator[Session, None, None]:
        """
        Yield a fresh session; commit on success, roll back on failure.

        Raises:
            ConflictError: The datastore reported a concurrency conflict,
                during the block or at commit.
        """
        session = self._session_factory()
        logger.debug("unit_of_work_started", extra={"unit": operation})
        try:
            yield session
            session.commit()
            logger.debug("unit_of_work_committed", extra={"unit": operation})
        except ShopKernelError as exc:
            session.rollback()
            logger.info(
                "unit_of_work_rolled_back",
                extra={"unit": operation, "error_code": exc.code},
            )
            raise
        except DBAPIError as exc:
            session.rollback()
            if is_conflict(exc):
                logger.warning(
                    "unit_of_work_conflict",
                    extra={
                        "unit": operation,
                        "integrity": isinstance(exc, IntegrityError),
                    },
                    exc_info=True,
                )
                raise ConflictError(operation, str(exc.orig)) from exc
            logger.error(
                "unit_of_work_rolled_back", extra={"unit": operation}, exc_info=True,
            )
            raise
        except Exception:
            session.rollback()
            logger.error(
                "unit_of_work_rolled_back", extra={"unit": operation}, exc_info=True,
            )
            raise
        finally:
            session.close()

    def run(self, fn: Callable[..., T], *args, operation: str | None = None, **kwargs) -> T:
        """Execute ``fn(session, *args, **kwargs)`` in one unit of work."""
        with self.unit_of_work(operation or getattr(fn, "__name__", "run")) as session:
            return fn(session, *args, **kwargs)
