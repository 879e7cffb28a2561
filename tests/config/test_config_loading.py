"""
Tests for stock_config: YAML loading, validation, overrides and bridges.
"""

from decimal import Decimal

import pytest
import yaml

from stock_config import CONFIG_PATH_ENV, DATABASE_URL_ENV, get_active_config
from stock_config.bridges import build_inventory_defaults
from stock_config.loader import compute_checksum, parse_config
from stock_kernel.services.stock_service import StockService


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)


def _write(tmp_path, document) -> str:
    path = tmp_path / "stock.yaml"
    path.write_text(yaml.safe_dump(document))
    return str(path)


class TestDefaults:
    def test_packaged_document(self):
        config = get_active_config()

        assert config.config_id == "stock-default"
        assert config.version == 1
        assert config.insights.expiry_days == 30
        assert config.insights.price_elasticity == Decimal("-1.5")
        assert config.insights.anomaly.thresholds["medium"] == 2.5
        assert config.analytics.abc_a_threshold == Decimal("80")
        assert config.analytics.slow_turnover == Decimal("0.5")
        assert config.inventory.name == "Main Inventory"
        assert len(config.checksum) == 64

    def test_trace_logged(self, captured_logs):
        get_active_config()

        (trace,) = [r for r in captured_logs() if r["message"] == "STOCK_CONFIG_TRACE"]
        assert trace["config_id"] == "stock-default"
        assert trace["database_url_overridden"] is False


class TestParsing:
    def test_sections_are_optional(self):
        config = parse_config({"config_id": "bare", "version": 3})

        assert config.insights.history_days == 90
        assert config.analytics.period_days == 30

    def test_unknown_key_named(self):
        with pytest.raises(ValueError, match="insights: unknown key 'expiry_dayz'"):
            parse_config({"config_id": "x", "version": 1, "insights": {"expiry_dayz": 3}})

    def test_unknown_top_level_key(self):
        with pytest.raises(ValueError):
            parse_config({"config_id": "x", "version": 1, "ledger": {}})

    def test_identity_required(self):
        with pytest.raises(ValueError):
            parse_config({"version": 1})

    @pytest.mark.parametrize(
        "section, values",
        [
            ("analytics", {"abc_a_threshold": 96, "abc_b_threshold": 95}),
            ("analytics", {"slow_turnover": 3, "fast_turnover": 2}),
            ("insights", {"smoothing_alpha": 0}),
            ("insights", {"anomaly": {"sensitivity": "extreme"}}),
            ("inventory", {"low_stock_threshold": -1}),
        ],
    )
    def test_invalid_values(self, section, values):
        with pytest.raises(ValueError):
            parse_config({"config_id": "x", "version": 1, section: values})

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})


class TestOverrides:
    def test_path_from_environment(self, tmp_path, monkeypatch):
        path = _write(tmp_path, {"config_id": "custom", "version": 2,
                                 "insights": {"expiry_days": 7}})
        monkeypatch.setenv(CONFIG_PATH_ENV, path)

        config = get_active_config()

        assert config.config_id == "custom"
        assert config.insights.expiry_days == 7

    def test_database_url_override_keeps_checksum(self, tmp_path, monkeypatch):
        path = _write(tmp_path, {"config_id": "db", "version": 1})
        plain = get_active_config(path)

        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://localhost/stock")
        overridden = get_active_config(path)

        assert overridden.database.url == "postgresql://localhost/stock"
        assert overridden.checksum == plain.checksum

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestBridges:
    def test_inventory_defaults_applied_to_new_aggregate(self, session, deterministic_clock,
                                                         test_owner_id):
        config = parse_config({
            "config_id": "x",
            "version": 1,
            "inventory": {"name": "Back Room", "location": "Shed", "auto_reorder": True},
        })
        defaults = build_inventory_defaults(config)
        service = StockService(session, deterministic_clock, defaults=defaults)

        view = service.get_inventory(test_owner_id)

        assert (view.name, view.location) == ("Back Room", "Shed")
        assert view.snapshot.settings.auto_reorder is True
