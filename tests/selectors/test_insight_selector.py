"""
Tests for InsightSelector reads over persisted insights.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.exceptions import InsightNotFoundError
from stock_kernel.models.insight import InsightPriority, InsightStatus, InsightType


@pytest.fixture
def insights(create_product, stock_service, insight_service, deterministic_clock,
             test_owner_id):
    """
    Three reorder suggestions (critical, high, medium) and one stable
    trend that is not actionable.
    """
    create_product(name="Empty", quantity=0)
    create_product(name="Half", quantity=4)
    steady = create_product(name="Steady", quantity=9, price=Decimal("1"))
    reorders = insight_service.generate_reorder_suggestions(test_owner_id)

    start = deterministic_clock.now()
    for offset in (2, 1):
        deterministic_clock.set_time(start - timedelta(days=offset))
        stock_service.add_stock(test_owner_id, steady.id, 1)
        stock_service.remove_stock(test_owner_id, steady.id, 1)
    deterministic_clock.set_time(start)
    stock_service.add_stock(test_owner_id, steady.id, 1)
    stock_service.remove_stock(test_owner_id, steady.id, 1)
    (trend,) = insight_service.analyze_trends(test_owner_id, period_days=3)

    return {"reorders": reorders, "trend": trend, "steady": steady}


class TestQuery:
    def test_priority_order(self, insights, insight_selector, test_owner_id):
        results = insight_selector.query(test_owner_id)

        assert [r.priority for r in results] == [
            InsightPriority.CRITICAL,
            InsightPriority.HIGH,
            InsightPriority.MEDIUM,
            InsightPriority.MEDIUM,
        ]
        # reorder confidence 0.8 ranks above trend confidence 0.7
        assert results[2].insight_type is InsightType.REORDER_SUGGESTION
        assert results[3].insight_type is InsightType.TREND_ANALYSIS

    def test_filters(self, insights, insight_selector, test_owner_id):
        trends = insight_selector.query(test_owner_id, insight_type="trend_analysis")
        by_product = insight_selector.query(test_owner_id, product_id=insights["steady"].id)

        assert [r.id for r in trends] == [insights["trend"].id]
        assert {r.insight_type for r in by_product} == {
            InsightType.REORDER_SUGGESTION, InsightType.TREND_ANALYSIS,
        }

    def test_status_filter(self, insights, insight_service, insight_selector,
                           test_owner_id, test_actor_id):
        dismissed = insights["reorders"][0]
        insight_service.dismiss(test_owner_id, dismissed.id, test_actor_id)

        assert [r.id for r in insight_selector.query(test_owner_id, status="dismissed")] == [
            dismissed.id
        ]
        assert len(insight_selector.query(test_owner_id)) == 3
        assert len(insight_selector.query(test_owner_id, status=None)) == 4

    def test_owner_isolation(self, insights, insight_selector, other_owner_id):
        assert insight_selector.query(other_owner_id) == []
        with pytest.raises(InsightNotFoundError):
            insight_selector.get(other_owner_id, insights["trend"].id)

    def test_unknown_id(self, insight_selector, test_owner_id, db_tables):
        with pytest.raises(InsightNotFoundError):
            insight_selector.get(test_owner_id, uuid4())


class TestQueues:
    def test_by_priority(self, insights, insight_selector, test_owner_id):
        results = insight_selector.by_priority(test_owner_id, InsightPriority.MEDIUM)

        assert [r.confidence for r in results] == [0.8, 0.7]

    def test_actionable_excludes_stable_trend(self, insights, insight_selector, test_owner_id):
        results = insight_selector.actionable(test_owner_id)

        assert len(results) == 3
        assert all(r.insight_type is InsightType.REORDER_SUGGESTION for r in results)
        assert len(insight_selector.actionable(test_owner_id, limit=1)) == 1

    def test_history_includes_every_status(self, insights, insight_service, insight_selector,
                                           deterministic_clock, test_owner_id):
        deterministic_clock.advance(days=31)
        insight_service.expire_stale(test_owner_id)

        history = insight_selector.history(test_owner_id)

        assert len(history) == 4
        assert {r.status for r in history} == {InsightStatus.EXPIRED}
        assert insight_selector.actionable(test_owner_id) == []


class TestSummary:
    def test_counts(self, insights, insight_selector, test_owner_id):
        summary = insight_selector.summary(test_owner_id)

        assert summary.total == 4
        assert summary.actionable == 3
        assert summary.by_type[InsightType.REORDER_SUGGESTION].count == 3
        assert summary.by_type[InsightType.REORDER_SUGGESTION].average_confidence == 0.8
        assert summary.by_priority == {
            InsightPriority.CRITICAL: 1,
            InsightPriority.HIGH: 1,
            InsightPriority.MEDIUM: 2,
        }

    def test_expired_rows_not_counted(self, insights, insight_selector, deterministic_clock,
                                      test_owner_id):
        deterministic_clock.advance(days=30)

        summary = insight_selector.summary(test_owner_id)

        assert summary.total == 0
        assert summary.by_type == {}
