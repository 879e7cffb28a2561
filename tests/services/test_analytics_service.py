"""
Tests for AnalyticsService rollups.

The ``catalog`` fixture builds one owner's stock:

    Drill   price 100, cost 60, 50 received, 10 sold -> 40 left (Tools, Acme)
    Hammer  price 25,  cost 10, 90 received, 60 sold -> 30 left (Tools)
    Tape    price 25,  cost 20, 10 received          -> low stock
    Glue    price 3,   never received                -> out of stock
"""

from decimal import Decimal

import pytest

from stock_engines.classification import AbcClass
from stock_kernel.domain.inventory import AlertType
from stock_kernel.domain.movements import MovementType
from stock_kernel.domain.stock_state import StockStatus
from stock_kernel.exceptions import InventoryNotFoundError


@pytest.fixture
def catalog(create_product, catalog_service, stock_service, test_owner_id, test_actor_id):
    tools = catalog_service.create_category("Tools", test_actor_id, color="bg-red-500")
    acme = catalog_service.create_supplier("Acme", test_actor_id)

    drill = create_product(
        name="Drill", price=Decimal("100"), cost=Decimal("60"), quantity=50,
        category_id=tools.id, supplier_id=acme.id,
    )
    hammer = create_product(
        name="Hammer", price=Decimal("25"), cost=Decimal("10"), quantity=90,
        category_id=tools.id,
    )
    tape = create_product(name="Tape", price=Decimal("25"), cost=Decimal("20"), quantity=10)
    glue = create_product(name="Glue", price=Decimal("3"), cost=Decimal("1"))

    stock_service.remove_stock(test_owner_id, drill.id, 10)
    stock_service.remove_stock(test_owner_id, hammer.id, 60)

    return {
        "tools": tools, "acme": acme,
        "drill": drill, "hammer": hammer, "tape": tape, "glue": glue,
    }


class TestAbcAnalysis:
    def test_tiers_by_inventory_value(self, catalog, analytics_service, test_owner_id):
        report = analytics_service.abc_analysis(test_owner_id)

        rows = [(c.item_id, c.cumulative_percent, c.abc_class) for c in report.classifications]
        assert rows == [
            (catalog["drill"].id, Decimal("80.00"), AbcClass.A),
            (catalog["hammer"].id, Decimal("95.00"), AbcClass.B),
            (catalog["tape"].id, Decimal("100.00"), AbcClass.C),
            (catalog["glue"].id, Decimal("100.00"), AbcClass.C),
        ]
        assert report.summary.total_value == Decimal("5000")
        assert report.summary.counts == {AbcClass.A: 1, AbcClass.B: 1, AbcClass.C: 2}

    def test_category_filter(self, catalog, analytics_service, test_owner_id):
        report = analytics_service.abc_analysis(test_owner_id, category_id=catalog["tools"].id)

        assert [c.item_id for c in report.classifications] == [
            catalog["drill"].id, catalog["hammer"].id,
        ]

    def test_empty_owner(self, analytics_service, other_owner_id, db_tables):
        report = analytics_service.abc_analysis(other_owner_id)

        assert report.classifications == ()
        assert report.summary.total_value == Decimal("0")


class TestTurnover:
    def test_fast_and_slow_movers(self, catalog, analytics_service, test_owner_id):
        report = analytics_service.turnover(test_owner_id)

        # (0.25 + 2.0 + 0 + 0) / 4
        assert report.average_turnover == Decimal("0.56")
        assert report.total_products == 4
        assert report.fast_moving == 1
        assert report.slow_moving == 3

    def test_no_products(self, analytics_service, other_owner_id, db_tables):
        report = analytics_service.turnover(other_owner_id)
        assert (report.total_products, report.average_turnover) == (0, Decimal("0"))


class TestStockStatusDistribution:
    def test_every_status_present(self, catalog, analytics_service, test_owner_id):
        distribution = analytics_service.stock_status_distribution(test_owner_id)

        assert set(distribution) == set(StockStatus)
        assert distribution[StockStatus.IN_STOCK].count == 2
        assert distribution[StockStatus.IN_STOCK].value == Decimal("4750.00")
        assert distribution[StockStatus.LOW_STOCK].count == 1
        assert distribution[StockStatus.LOW_STOCK].value == Decimal("250.00")
        assert distribution[StockStatus.OUT_OF_STOCK].count == 1
        assert distribution[StockStatus.OVERSTOCK].count == 0


class TestPerformance:
    def test_categories_ranked_by_revenue(self, catalog, analytics_service, test_owner_id):
        tools, other = analytics_service.category_performance(test_owner_id)

        assert tools.category_id == catalog["tools"].id
        assert tools.color == "bg-red-500"
        assert tools.product_count == 2
        assert tools.total_value == Decimal("4750.00")
        assert tools.average_price == Decimal("62.50")
        assert tools.total_sold == 70
        assert tools.revenue == Decimal("2500.00")
        assert tools.average_revenue_per_product == Decimal("1250.00")

        assert other.category_id is None
        assert other.name == "Uncategorized"
        assert other.revenue == Decimal("0.00")
        assert other.average_price == Decimal("14.00")

    def test_suppliers_of_owned_products(self, catalog, catalog_service, analytics_service,
                                         test_owner_id, test_actor_id):
        catalog_service.create_supplier("Unused", test_actor_id)

        (row,) = analytics_service.supplier_performance(test_owner_id)

        assert row.supplier_id == catalog["acme"].id
        assert row.total_products == 1
        assert row.total_value == Decimal("4000.00")


class TestSalesAnalytics:
    def test_totals_and_daily_series(self, catalog, analytics_service, deterministic_clock,
                                     test_owner_id):
        report = analytics_service.sales_analytics(test_owner_id, period_days=7)

        assert report.total_revenue == Decimal("2500.00")
        assert report.total_sold == 70
        # 1000 - 10 * 60 plus 1500 - 60 * 10
        assert report.total_profit == Decimal("1300.00")
        assert report.average_sale_value == Decimal("35.71")
        assert report.profit_margin_percent == 52
        assert len(report.daily_sales) == 7
        assert report.daily_sales[-1].day == deterministic_clock.now().date()
        assert report.daily_sales[-1].units == 70
        assert sum(d.units for d in report.daily_sales[:-1]) == 0
        assert [p.name for p in report.top_products[:2]] == ["Hammer", "Drill"]
        assert report.top_products[0].profit == Decimal("900.00")

    def test_default_period(self, catalog, analytics_service, test_owner_id):
        report = analytics_service.sales_analytics(test_owner_id)

        assert report.period_days == 30
        assert len(report.daily_sales) == 30


class TestDashboard:
    def test_summary(self, catalog, analytics_service, test_owner_id):
        dashboard = analytics_service.dashboard(test_owner_id)

        # Glue was never received, so the aggregate holds three entries
        assert dashboard.statistics.total_products == 3
        assert dashboard.total_revenue == Decimal("2500.00")
        assert dashboard.period_units_sold == 70
        assert [s.name for s in dashboard.top_sellers][:2] == ["Hammer", "Drill"]
        (alert,) = dashboard.recent_alerts
        assert alert.alert_type is AlertType.LOW_STOCK
        assert alert.product_id == catalog["tape"].id
        shares = [(s.name, s.count, s.percentage) for s in dashboard.category_distribution]
        assert shares == [("Tools", 2, 50), ("Uncategorized", 2, 50)]

    def test_read_alerts_hidden(self, catalog, analytics_service, stock_service,
                                test_owner_id):
        stock_service.mark_alerts_read(test_owner_id)

        assert analytics_service.dashboard(test_owner_id).recent_alerts == ()

    def test_requires_aggregate(self, create_product, analytics_service, test_owner_id):
        create_product(quantity=0)

        with pytest.raises(InventoryNotFoundError):
            analytics_service.dashboard(test_owner_id)


class TestInventoryAnalytics:
    def test_combined_rollup(self, catalog, analytics_service, test_owner_id):
        result = analytics_service.inventory_analytics(test_owner_id, period_days=7)

        assert result.period_days == 7
        assert result.movements[MovementType.IN].count == 3
        assert result.movements[MovementType.IN].total_quantity == 150
        assert result.movements[MovementType.OUT].count == 2
        assert MovementType.DAMAGED not in result.movements
        assert result.turnover.fast_moving == 1
        assert result.stock_status_distribution[StockStatus.LOW_STOCK].count == 1
        assert result.abc.counts[AbcClass.A] == 1

    def test_filters_narrow_product_rollups(self, catalog, analytics_service, test_owner_id):
        result = analytics_service.inventory_analytics(
            test_owner_id, supplier_id=catalog["acme"].id
        )

        assert result.turnover.total_products == 1
        assert result.movements[MovementType.OUT].count == 2
