"""
stock_services.insight_service -- Insight generation and lifecycle.

Responsibility:
    Feed ledger history and product state through the statistics engines,
    persist the resulting drafts as Insight rows, and own the insight
    lifecycle: dismiss, implement, expire and feedback.

Architecture position:
    Services -- stateful orchestration over engines + kernel + config.
    Reads through MovementSelector and InsightSelector, computes with
    stock_engines, writes Insight rows.  Never changes stock.

Invariants enforced:
    - Engines stay pure: this service supplies the clock's date and the
      demand series; the engines never read either themselves.
    - expires_at = created_at + InsightConfig.expiry_days (30 by default).
    - Status only leaves ``active`` (to dismissed, implemented or
      expired).  Every other transition raises InsightStateError and
      leaves the row untouched.
    - Only flush(); the caller owns the transaction.

Failure modes:
    - InsightNotFoundError for an unknown id or another owner's insight.
    - InsightStateError for a transition out of a terminal status.
    - ValidationError for a feedback rating outside 1-5 or an unknown
      sensitivity.
    - ProductNotFoundError when explicitly requested products are missing.

Audit relevance:
    Every generated insight is logged with its type, priority and
    confidence; every transition is logged with the actor.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_config.schema import InsightConfig
from stock_engines.anomaly import detect_anomalies
from stock_engines.forecasting import (
    calculate_confidence,
    calculate_trend,
    detect_seasonality,
    forecast_demand,
    moving_average,
    period_change_percent,
)
from stock_engines.insight_builder import (
    InsightDraft,
    anomaly_draft,
    forecast_draft,
    price_draft,
    reorder_draft,
    trend_draft,
)
from stock_engines.pricing import optimize_price
from stock_engines.replenishment import (
    calculate_eoq,
    calculate_reorder_point,
    suggest_reorder,
)
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.movements import MovementType
from stock_kernel.domain.stock_state import ProductStatus
from stock_kernel.exceptions import (
    InsightNotFoundError,
    InsightStateError,
    ProductNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.catalog import Supplier
from stock_kernel.models.insight import Insight, InsightStatus, InsightType
from stock_kernel.models.product import Product
from stock_kernel.selectors.insight_selector import InsightInfo, to_insight_info
from stock_kernel.selectors.movement_selector import MovementSelector

logger = get_logger("services.insight")

# Forecast accuracy heuristic: 0.3 base plus 0.1 per 100 units sold, capped
_FORECAST_BASE_ACCURACY = 0.3
_FORECAST_ACCURACY_UNITS = 1000
_FORECAST_MAX_ACCURACY = 0.95


class InsightService:
    """
    Generates and manages advisory insights for one owner at a time.

    Contract:
        Receives Session, InsightConfig and Clock via constructor
        injection.  Each ``generate_*`` method returns the persisted
        insights as InsightInfo DTOs in creation order.
    Non-goals:
        - Does not change stock, thresholds or prices; implementing an
          insight only records that the user acted on it.
    """

    def __init__(
        self,
        session: Session,
        config: InsightConfig | None = None,
        clock: Clock | None = None,
    ):
        self.session = session
        self.config = config or InsightConfig()
        self.clock = clock or SystemClock()
        self.movements = MovementSelector(session, self.clock)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def _persist(self, owner_id: UUID, draft: InsightDraft, actor_id: UUID | None) -> InsightInfo:
        now = self.clock.now()
        insight = Insight(
            owner_id=owner_id,
            insight_type=draft.insight_type.value,
            title=draft.title,
            description=draft.description,
            confidence=draft.confidence,
            priority=draft.priority.value,
            status=InsightStatus.ACTIVE.value,
            actionable=draft.actionable,
            product_ids=[str(p) for p in draft.product_ids],
            category_ids=[str(c) for c in draft.category_ids],
            supplier_ids=[str(s) for s in draft.supplier_ids],
            payload=draft.payload,
            impact=draft.impact,
            expires_at=now + timedelta(days=self.config.expiry_days),
            created_at=now,
            updated_at=now,
            created_by_id=actor_id or owner_id,
        )
        self.session.add(insight)
        self.session.flush()

        logger.info(
            "insight_created",
            extra={
                "insight_id": str(insight.id),
                "insight_type": insight.insight_type,
                "priority": insight.priority,
                "confidence": insight.confidence,
            },
        )
        return to_insight_info(insight)

    def _lock(self, owner_id: UUID, insight_id: UUID) -> Insight:
        insight = self.session.execute(
            select(Insight)
            .where(Insight.id == insight_id, Insight.owner_id == owner_id)
            .with_for_update()
        ).scalar_one_or_none()
        if insight is None:
            raise InsightNotFoundError(str(insight_id))
        return insight

    def _requested_products(self, owner_id: UUID, product_ids: list[UUID]) -> list[Product]:
        products = self.session.execute(
            select(Product).where(Product.owner_id == owner_id, Product.id.in_(product_ids))
        ).scalars().all()
        found = {p.id for p in products}
        for product_id in product_ids:
            if product_id not in found:
                raise ProductNotFoundError(str(product_id))
        by_id = {p.id: p for p in products}
        return [by_id[pid] for pid in product_ids]

    def _reorder_candidates(self, owner_id: UUID, threshold: int | None = None) -> list[Product]:
        stmt = select(Product).where(
            Product.owner_id == owner_id,
            Product.status == ProductStatus.ACTIVE.value,
        )
        if threshold is None:
            stmt = stmt.where(Product.quantity <= Product.min_stock)
        else:
            stmt = stmt.where(Product.quantity <= threshold)
        stmt = stmt.order_by(Product.quantity, Product.name).limit(self.config.max_products_per_run)
        return list(self.session.execute(stmt).scalars())

    def _owner_products(self, owner_id: UUID) -> list[Product]:
        return list(
            self.session.execute(
                select(Product).where(Product.owner_id == owner_id).order_by(Product.name)
            ).scalars()
        )

    def _lead_time(self, product: Product) -> int:
        if product.supplier_id is not None:
            supplier = self.session.get(Supplier, product.supplier_id)
            if supplier is not None:
                return supplier.lead_time_days
        return self.config.lead_time_days

    def _reorder_draft(self, product: Product, today) -> InsightDraft:
        cfg = self.config
        lead_time = self._lead_time(product)
        suggestion = suggest_reorder(
            current_stock=product.quantity,
            min_stock=product.min_stock,
            max_stock=product.max_stock,
            total_sold=product.total_sold,
            lead_time_days=lead_time,
            history_days=cfg.history_days,
            unit_cost=product.cost,
        )
        # EOQ is undefined without a unit cost
        eoq = None
        if product.cost > 0:
            eoq = calculate_eoq(
                suggestion.daily_usage * 365,
                ordering_cost=cfg.ordering_cost,
                holding_cost_rate=cfg.holding_cost_rate,
                unit_cost=float(product.cost),
            )
        return reorder_draft(
            product.id,
            product.name,
            product.quantity,
            suggestion,
            today,
            supplier_id=product.supplier_id,
            category_id=product.category_id,
            reorder_point=calculate_reorder_point(
                suggestion.daily_usage, lead_time, service_level=cfg.service_level
            ),
            economic_order_quantity=eoq,
        )

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_demand_forecasts(
        self,
        owner_id: UUID,
        product_ids: list[UUID] | None = None,
        periods: int | None = None,
        actor_id: UUID | None = None,
    ) -> list[InsightInfo]:
        """
        Forecast daily demand for the given products, or for the owner's
        products at or below minimum stock when none are given.

        The series is units sold per day over ``history_days``.
        """
        cfg = self.config
        horizon = periods or cfg.forecast_periods
        products = (
            self._requested_products(owner_id, product_ids)
            if product_ids
            else self._reorder_candidates(owner_id)
        )
        today = self.clock.now().date()

        results = []
        for product in products:
            history = self.movements.daily_demand(product.id, cfg.history_days)
            forecast = forecast_demand(history, periods=horizon, alpha=cfg.smoothing_alpha)
            trend = calculate_trend(history, threshold=cfg.trend_threshold)
            seasonality = detect_seasonality(history, period=cfg.seasonality_period)

            days_with_sales = sum(1 for units in history if units > 0)
            confidence = calculate_confidence(
                historical_accuracy=min(
                    _FORECAST_MAX_ACCURACY,
                    _FORECAST_BASE_ACCURACY + product.total_sold / _FORECAST_ACCURACY_UNITS,
                ),
                data_quality=days_with_sales / len(history) if history else None,
            )
            draft = forecast_draft(
                product.id,
                product.name,
                forecast,
                confidence,
                trend,
                seasonality,
                today,
                recent_average=moving_average(history, window=cfg.moving_average_window),
            )
            results.append(self._persist(owner_id, draft, actor_id))

        logger.info(
            "demand_forecasts_generated",
            extra={"owner_id": str(owner_id), "count": len(results), "periods": horizon},
        )
        return results

    def generate_reorder_suggestions(
        self,
        owner_id: UUID,
        threshold: int | None = None,
        actor_id: UUID | None = None,
    ) -> list[InsightInfo]:
        """
        Suggest reorders for active products at or below minimum stock
        (or at or below ``threshold`` units when given), most urgent first.
        """
        today = self.clock.now().date()
        drafts = [
            self._reorder_draft(product, today)
            for product in self._reorder_candidates(owner_id, threshold)
        ]

        urgency_order = {"high": 0, "medium": 1, "low": 2}
        drafts.sort(key=lambda d: urgency_order[d.payload["reorder_suggestion"]["urgency"]])
        results = [self._persist(owner_id, draft, actor_id) for draft in drafts]

        logger.info(
            "reorder_suggestions_generated",
            extra={"owner_id": str(owner_id), "count": len(results)},
        )
        return results

    def analyze_trends(
        self,
        owner_id: UUID,
        period_days: int | None = None,
        actor_id: UUID | None = None,
    ) -> list[InsightInfo]:
        """Label the sales trend of every product that sold in the window."""
        cfg = self.config
        days = period_days or cfg.history_days
        results = []
        for product in self._owner_products(owner_id):
            series = self.movements.daily_demand(product.id, days)
            if not any(series):
                continue
            trend = calculate_trend(series, threshold=cfg.trend_threshold)
            seasonality = detect_seasonality(series, period=cfg.seasonality_period)
            draft = trend_draft(
                product.id,
                product.name,
                trend,
                period_change_percent(series),
                seasonality,
                days,
                category_id=product.category_id,
            )
            results.append(self._persist(owner_id, draft, actor_id))

        logger.info(
            "trends_analyzed",
            extra={"owner_id": str(owner_id), "count": len(results), "period_days": days},
        )
        return results

    def detect_anomalies(
        self,
        owner_id: UUID,
        sensitivity: str | None = None,
        actor_id: UUID | None = None,
    ) -> list[InsightInfo]:
        """
        Flag unusual movement magnitudes per product over the anomaly
        window.  Transfers are left out of the series; products with
        fewer than three remaining movements are skipped.
        """
        anomaly_cfg = self.config.anomaly
        level = sensitivity or anomaly_cfg.sensitivity
        if level not in anomaly_cfg.thresholds:
            raise ValidationError("sensitivity", f"unknown sensitivity {level!r}")
        threshold = anomaly_cfg.thresholds[level]

        now = self.clock.now()
        window = self.movements.by_date_range(
            now - timedelta(days=anomaly_cfg.window_days), now, owner_id=owner_id
        )
        by_product = defaultdict(list)
        for movement in reversed(window):
            # transfers relocate stock without changing it
            if movement.movement_type is MovementType.TRANSFER:
                continue
            by_product[movement.product_id].append(movement)

        results = []
        for product_id, movements in by_product.items():
            magnitudes = [abs(m.quantity) for m in movements]
            flagged = detect_anomalies(magnitudes, threshold=threshold)
            if not flagged:
                continue
            product = self.session.get(Product, product_id)
            name = product.name if product is not None else str(product_id)
            for anomaly in flagged:
                movement = movements[anomaly.index]
                with LogContext.bind(product_id=product_id, movement_id=movement.id):
                    draft = anomaly_draft(
                        product_id, name, anomaly, movement.movement_type.value
                    )
                    results.append(self._persist(owner_id, draft, actor_id))

        logger.info(
            "anomalies_detected",
            extra={
                "owner_id": str(owner_id),
                "count": len(results),
                "sensitivity": level,
                "threshold": threshold,
            },
        )
        return results

    def suggest_price_optimizations(
        self,
        owner_id: UUID,
        product_ids: list[UUID] | None = None,
        period_days: int = 30,
        actor_id: UUID | None = None,
    ) -> list[InsightInfo]:
        """
        Suggest a price change where the elasticity grid finds higher
        revenue than the current price.  Demand is units sold in the last
        ``period_days`` days; products without sales are skipped.
        """
        products = (
            self._requested_products(owner_id, product_ids)
            if product_ids
            else self._owner_products(owner_id)
        )
        results = []
        for product in products:
            demand = sum(self.movements.daily_demand(product.id, period_days))
            if demand == 0 or product.price <= 0:
                continue
            optimization = optimize_price(
                product.price, demand, elasticity=self.config.price_elasticity
            )
            if not optimization.is_change_recommended:
                continue
            results.append(
                self._persist(owner_id, price_draft(product.id, product.name, optimization), actor_id)
            )

        logger.info(
            "price_optimizations_suggested",
            extra={"owner_id": str(owner_id), "count": len(results)},
        )
        return results

    def refresh_product_advisories(
        self,
        owner_id: UUID,
        product_id: UUID,
        actor_id: UUID | None = None,
    ) -> list[InsightInfo]:
        """
        Keep reorder suggestions in step with one product's stock.

        A product that needs reordering and has no active suggestion gets
        one.  A product that no longer needs reordering has its active
        suggestions expired.
        """
        product = self._requested_products(owner_id, [product_id])[0]
        active = [
            i
            for i in self._active_of_type(owner_id, InsightType.REORDER_SUGGESTION)
            if str(product_id) in (i.product_ids or ())
        ]
        if product.to_stock().needs_reorder:
            if active:
                return []
            draft = self._reorder_draft(product, self.clock.now().date())
            return [self._persist(owner_id, draft, actor_id)]

        for insight in active:
            self._transition(insight, InsightStatus.EXPIRED, actor_id or owner_id)
        self.session.flush()
        return []

    def _active_of_type(self, owner_id: UUID, insight_type: InsightType) -> list[Insight]:
        return list(
            self.session.execute(
                select(Insight)
                .where(
                    Insight.owner_id == owner_id,
                    Insight.insight_type == insight_type.value,
                    Insight.status == InsightStatus.ACTIVE.value,
                )
                .with_for_update()
            ).scalars()
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _transition(self, insight: Insight, target: InsightStatus, actor_id: UUID) -> None:
        if insight.status != InsightStatus.ACTIVE.value:
            raise InsightStateError(str(insight.id), insight.status, target.value)
        insight.status = target.value
        insight.updated_by_id = actor_id
        insight.updated_at = self.clock.now()
        logger.info(
            "insight_transitioned",
            extra={
                "insight_id": str(insight.id),
                "status": target.value,
                "actor_id": str(actor_id),
            },
        )

    def dismiss(
        self,
        owner_id: UUID,
        insight_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> InsightInfo:
        """
        Raises:
            InsightNotFoundError, InsightStateError.
        """
        insight = self._lock(owner_id, insight_id)
        self._transition(insight, InsightStatus.DISMISSED, actor_id)
        insight.dismissed_at = self.clock.now()
        insight.dismissed_by_id = actor_id
        insight.dismiss_reason = reason
        self.session.flush()
        return to_insight_info(insight)

    def implement(self, owner_id: UUID, insight_id: UUID, actor_id: UUID) -> InsightInfo:
        insight = self._lock(owner_id, insight_id)
        self._transition(insight, InsightStatus.IMPLEMENTED, actor_id)
        insight.implemented_at = self.clock.now()
        self.session.flush()
        return to_insight_info(insight)

    def record_feedback(
        self,
        owner_id: UUID,
        insight_id: UUID,
        helpful: bool,
        rating: int | None = None,
        comment: str | None = None,
        actor_id: UUID | None = None,
    ) -> InsightInfo:
        """Feedback can be given in any status and replaces earlier feedback."""
        if rating is not None and (
            isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5
        ):
            raise ValidationError("rating", f"must be an integer from 1 to 5 (got {rating!r})")

        insight = self._lock(owner_id, insight_id)
        insight.feedback_helpful = helpful
        insight.feedback_rating = rating
        insight.feedback_comment = comment
        insight.updated_by_id = actor_id or owner_id
        self.session.flush()
        logger.info(
            "insight_feedback_recorded",
            extra={"insight_id": str(insight_id), "helpful": helpful, "rating": rating},
        )
        return to_insight_info(insight)

    def expire_stale(self, owner_id: UUID | None = None) -> int:
        """Move active insights past expires_at to expired.  Returns the count."""
        now = self.clock.now()
        stmt = (
            select(Insight)
            .where(
                Insight.status == InsightStatus.ACTIVE.value,
                Insight.expires_at <= now,
            )
            .with_for_update()
        )
        if owner_id is not None:
            stmt = stmt.where(Insight.owner_id == owner_id)

        stale = list(self.session.execute(stmt).scalars())
        for insight in stale:
            insight.status = InsightStatus.EXPIRED.value
            insight.updated_at = now
        self.session.flush()

        logger.info(
            "insights_expired",
            extra={"owner_id": str(owner_id) if owner_id else None, "count": len(stale)},
        )
        return len(stale)
