"""
BaseService -- abstract base for kernel services.

Responsibility:
    Common constructor and session contract for every write service.
    Services flush inside the caller's transaction and never commit.

Architecture position:
    Kernel > Services.  The TransactionCoordinator owns commit/rollback;
    services only add, delete and flush.

Failure modes:
    - A subclass that calls ``session.commit()`` breaks the atomicity of
      multi-step operations (cart bills, repair deletion).
"""

from abc import ABC

from sqlalchemy.orm import Session

from shop_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Read-only listing queries belong in ``shop_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source. Defaults to SystemClock.
        """
        self.session = session
        self.clock = clock or SystemClock()
