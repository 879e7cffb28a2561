"""
Module: stock_kernel.selectors.insight_selector
Responsibility: Read-only queries over persisted insights: lookup, filtered
    listings, priority ordering, the actionable queue and the per-owner
    summary.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Priority ordering uses PRIORITY_RANK (critical > high > medium > low),
      never the lexical order of the stored strings.
    - Only ``active`` insights that have not reached expires_at appear in
      by_priority, actionable and summary; history() includes every status.

Failure modes:
    - get() raises InsightNotFoundError for an unknown id or another
      owner's insight.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import case, func, select

from stock_kernel.exceptions import InsightNotFoundError
from stock_kernel.models.insight import (
    PRIORITY_RANK,
    Insight,
    InsightPriority,
    InsightStatus,
    InsightType,
)
from stock_kernel.selectors.base import BaseSelector

DEFAULT_INSIGHT_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class InsightInfo:
    """Immutable DTO for one insight."""

    id: UUID
    owner_id: UUID
    insight_type: InsightType
    title: str
    description: str
    confidence: float
    priority: InsightPriority
    status: InsightStatus
    actionable: bool
    product_ids: tuple[UUID, ...]
    category_ids: tuple[UUID, ...]
    supplier_ids: tuple[UUID, ...]
    payload: dict[str, Any]
    created_at: datetime
    expires_at: datetime
    accuracy: float | None = None
    impact: float | None = None
    implementation_cost: float | None = None
    implemented_at: datetime | None = None
    dismissed_at: datetime | None = None
    dismissed_by_id: UUID | None = None
    dismiss_reason: str | None = None
    feedback_helpful: bool | None = None
    feedback_rating: int | None = None
    feedback_comment: str | None = None


@dataclass(frozen=True)
class TypeSummary:
    count: int
    average_confidence: float


@dataclass(frozen=True)
class InsightSummary:
    """Counts over an owner's unexpired active insights."""

    total: int
    actionable: int
    by_type: dict[InsightType, TypeSummary] = field(default_factory=dict)
    by_priority: dict[InsightPriority, int] = field(default_factory=dict)


def to_insight_info(insight: Insight) -> InsightInfo:
    return InsightInfo(
        id=insight.id,
        owner_id=insight.owner_id,
        insight_type=InsightType(insight.insight_type),
        title=insight.title,
        description=insight.description,
        confidence=insight.confidence,
        priority=InsightPriority(insight.priority),
        status=InsightStatus(insight.status),
        actionable=insight.actionable,
        product_ids=tuple(UUID(p) for p in insight.product_ids or ()),
        category_ids=tuple(UUID(c) for c in insight.category_ids or ()),
        supplier_ids=tuple(UUID(s) for s in insight.supplier_ids or ()),
        payload=dict(insight.payload or {}),
        created_at=insight.created_at,
        expires_at=insight.expires_at,
        accuracy=insight.accuracy,
        impact=insight.impact,
        implementation_cost=insight.implementation_cost,
        implemented_at=insight.implemented_at,
        dismissed_at=insight.dismissed_at,
        dismissed_by_id=insight.dismissed_by_id,
        dismiss_reason=insight.dismiss_reason,
        feedback_helpful=insight.feedback_helpful,
        feedback_rating=insight.feedback_rating,
        feedback_comment=insight.feedback_comment,
    )


_priority_rank = case(PRIORITY_RANK, value=Insight.priority, else_=0)


class InsightSelector(BaseSelector[Insight]):
    """Insight reads.  Lifecycle transitions live in InsightService."""

    def get(self, owner_id: UUID, insight_id: UUID) -> InsightInfo:
        insight = self.session.execute(
            select(Insight).where(Insight.id == insight_id, Insight.owner_id == owner_id)
        ).scalar_one_or_none()
        if insight is None:
            raise InsightNotFoundError(str(insight_id))
        return to_insight_info(insight)

    def query(
        self,
        owner_id: UUID,
        insight_type: InsightType | str | None = None,
        status: InsightStatus | str | None = InsightStatus.ACTIVE,
        priority: InsightPriority | str | None = None,
        product_id: UUID | None = None,
    ) -> list[InsightInfo]:
        """
        Filtered listing, highest priority first, then highest confidence.

        ``status=None`` returns every status.  The product filter runs in
        Python because product_ids is a JSON column.
        """
        stmt = select(Insight).where(Insight.owner_id == owner_id)
        if insight_type is not None:
            stmt = stmt.where(Insight.insight_type == InsightType(insight_type).value)
        if status is not None:
            status = InsightStatus(status)
            stmt = stmt.where(Insight.status == status.value)
            if status is InsightStatus.ACTIVE:
                stmt = stmt.where(Insight.expires_at > self.clock.now())
        if priority is not None:
            stmt = stmt.where(Insight.priority == InsightPriority(priority).value)
        stmt = stmt.order_by(
            _priority_rank.desc(), Insight.confidence.desc(), Insight.created_at.desc()
        )

        insights = self.session.execute(stmt).scalars().all()
        if product_id is not None:
            wanted = str(product_id)
            insights = [i for i in insights if wanted in (i.product_ids or ())]
        return [to_insight_info(i) for i in insights]

    def by_priority(
        self,
        owner_id: UUID,
        priority: InsightPriority | str,
    ) -> list[InsightInfo]:
        """Active insights of one priority, most confident first."""
        return self.query(owner_id, priority=priority)

    def actionable(self, owner_id: UUID, limit: int | None = None) -> list[InsightInfo]:
        """Active, actionable insights ordered by priority rank then confidence."""
        stmt = (
            select(Insight)
            .where(
                Insight.owner_id == owner_id,
                Insight.status == InsightStatus.ACTIVE.value,
                Insight.actionable.is_(True),
                Insight.expires_at > self.clock.now(),
            )
            .order_by(_priority_rank.desc(), Insight.confidence.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [to_insight_info(i) for i in self.session.execute(stmt).scalars()]

    def history(
        self,
        owner_id: UUID,
        limit: int = DEFAULT_INSIGHT_HISTORY_LIMIT,
    ) -> list[InsightInfo]:
        """Every insight of the owner regardless of status, newest first."""
        stmt = (
            select(Insight)
            .where(Insight.owner_id == owner_id)
            .order_by(Insight.created_at.desc())
            .limit(limit)
        )
        return [to_insight_info(i) for i in self.session.execute(stmt).scalars()]

    def summary(self, owner_id: UUID) -> InsightSummary:
        active = (
            Insight.owner_id == owner_id,
            Insight.status == InsightStatus.ACTIVE.value,
            Insight.expires_at > self.clock.now(),
        )

        by_type: dict[InsightType, TypeSummary] = {}
        type_rows = self.session.execute(
            select(Insight.insight_type, func.count(Insight.id), func.avg(Insight.confidence))
            .where(*active)
            .group_by(Insight.insight_type)
        )
        for insight_type, count, avg_confidence in type_rows:
            by_type[InsightType(insight_type)] = TypeSummary(
                count=int(count),
                average_confidence=round(float(avg_confidence or 0.0), 2),
            )

        by_priority: dict[InsightPriority, int] = {}
        priority_rows = self.session.execute(
            select(Insight.priority, func.count(Insight.id))
            .where(*active)
            .group_by(Insight.priority)
        )
        for priority, count in priority_rows:
            by_priority[InsightPriority(priority)] = int(count)

        actionable = self.session.execute(
            select(func.count(Insight.id)).where(*active, Insight.actionable.is_(True))
        ).scalar_one()

        return InsightSummary(
            total=sum(s.count for s in by_type.values()),
            actionable=int(actionable),
            by_type=by_type,
            by_priority=by_priority,
        )
