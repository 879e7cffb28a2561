"""
BaseService -- abstract base for all stock kernel services.

Responsibility:
    Common constructor and session-handling contract for every write
    service.  Services receive a SQLAlchemy ``Session`` and an injected
    ``Clock`` and use ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell around the pure domain.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or roll back themselves.  The caller (``session_scope()``
    or a test harness) owns commit/rollback, which makes the ledger append,
    product update and aggregate update of a stock change atomic.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from stock_kernel.db.base import Base
from stock_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-model queries; those live in
          ``stock_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
