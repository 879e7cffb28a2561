"""
Module: stock_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/ value objects.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors never call session.add(), delete(),
      flush() or commit().
    - Selectors return frozen dataclasses, plain dicts or domain DTOs rather
      than live ORM instances.
    - Reads are not snapshot-consistent across tables; each query sees the
      committed state at the time it runs.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from stock_kernel.db.base import Base
from stock_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Base class for all selectors."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
