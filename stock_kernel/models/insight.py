"""
Module: stock_kernel.models.insight
Responsibility: ORM persistence for advisory insight records produced by the
    statistical engines: forecasts, reorder suggestions, trend labels,
    anomaly flags and price suggestions.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - confidence in [0, 1] (CHECK constraint).
    - status only leaves ``active``: to dismissed, implemented or expired.
      InsightService owns the transition rules; an insight is never
      reactivated.
    - expires_at defaults to creation + 30 days (set by InsightService
      from configuration).
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, CheckConstraint, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UTCDateTime


class InsightType(str, Enum):
    DEMAND_FORECAST = "demand_forecast"
    REORDER_SUGGESTION = "reorder_suggestion"
    TREND_ANALYSIS = "trend_analysis"
    ANOMALY_DETECTION = "anomaly_detection"
    PRICE_OPTIMIZATION = "price_optimization"
    SUPPLIER_PERFORMANCE = "supplier_performance"
    INVENTORY_OPTIMIZATION = "inventory_optimization"


class InsightPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class InsightStatus(str, Enum):
    ACTIVE = "active"
    DISMISSED = "dismissed"
    IMPLEMENTED = "implemented"
    EXPIRED = "expired"


# Higher rank sorts first
PRIORITY_RANK: dict[str, int] = {
    InsightPriority.CRITICAL.value: 4,
    InsightPriority.HIGH.value: 3,
    InsightPriority.MEDIUM.value: 2,
    InsightPriority.LOW.value: 1,
}


class Insight(TrackedBase):
    """
    One advisory record.

    ``payload`` holds the type-specific body under a single key:
    ``forecast``, ``reorder_suggestion``, ``trend_analysis``, ``anomaly`` or
    ``price_optimization``.
    """

    __tablename__ = "insights"

    __table_args__ = (
        CheckConstraint(
            "confidence >= 0 AND confidence <= 1", name="ck_insight_confidence_range"
        ),
        Index("idx_insight_owner_type", "owner_id", "insight_type"),
        Index("idx_insight_status_priority", "status", "priority"),
        Index("idx_insight_expires", "expires_at"),
    )

    owner_id: Mapped[UUID] = mapped_column(nullable=False)
    insight_type: Mapped[str] = mapped_column(String(40), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InsightPriority.MEDIUM.value
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InsightStatus.ACTIVE.value
    )
    actionable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    product_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    category_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    supplier_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    payload: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)

    # Metrics
    accuracy: Mapped[float | None] = mapped_column(Float, nullable=True)
    impact: Mapped[float | None] = mapped_column(Float, nullable=True)
    implementation_cost: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Lifecycle
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    implemented_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    dismissed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    dismissed_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    dismiss_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Feedback
    feedback_helpful: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    feedback_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    feedback_comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    def age_in_days(self, now: datetime) -> int:
        return (now - self.created_at).days

    def days_until_expiry(self, now: datetime) -> int:
        return (self.expires_at - now).days

    def __repr__(self) -> str:
        return f"<Insight {self.insight_type} {self.priority} {self.status}>"
