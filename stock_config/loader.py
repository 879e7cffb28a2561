"""
Configuration Loader (``stock_config.loader``).

Responsibility
--------------
Loads a YAML document and parses it into the frozen ``stock_config.schema``
dataclasses.  Runtime callers go through ``stock_config.get_active_config()``
instead of calling this module.

Invariants enforced
-------------------
* Unknown keys raise ``ValueError`` naming the section and key, so a typo
  never silently falls back to a default.
* Decimal fields are parsed from the YAML scalar's string form, never via
  float arithmetic.
* ``compute_checksum`` is a SHA-256 over canonical JSON (sorted keys) of
  the raw document, so the same YAML always yields the same checksum.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError``.
* Malformed YAML  -> ``yaml.YAMLError``.
* Wrong shape or invalid value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import (
    AnalyticsConfig,
    AnomalyConfig,
    DatabaseConfig,
    InsightConfig,
    InventoryConfig,
    StockConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and return its top-level mapping.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"{name}: expected a mapping, got {type(value).__name__}")
    return value


def _check_keys(section: str, data: dict[str, Any], cls: type) -> None:
    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"{section}: unknown key {unknown[0]!r}")


def _decimal(section: str, key: str, value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{section}.{key}: {value!r} is not a number") from exc


def parse_database(data: dict[str, Any], url_override: str | None = None) -> DatabaseConfig:
    _check_keys("database", data, DatabaseConfig)
    values = dict(data)
    if url_override:
        values["url"] = url_override
    return DatabaseConfig(**values)


def parse_inventory(data: dict[str, Any]) -> InventoryConfig:
    _check_keys("inventory", data, InventoryConfig)
    return InventoryConfig(**data)


def parse_anomaly(data: dict[str, Any]) -> AnomalyConfig:
    _check_keys("insights.anomaly", data, AnomalyConfig)
    values = dict(data)
    if "thresholds" in values:
        values["thresholds"] = {str(k): float(v) for k, v in values["thresholds"].items()}
    return AnomalyConfig(**values)


def parse_insights(data: dict[str, Any]) -> InsightConfig:
    _check_keys("insights", data, InsightConfig)
    values = dict(data)
    if "anomaly" in values:
        values["anomaly"] = parse_anomaly(_section(values, "anomaly"))
    if "price_elasticity" in values:
        values["price_elasticity"] = _decimal("insights", "price_elasticity", values["price_elasticity"])
    return InsightConfig(**values)


def parse_analytics(data: dict[str, Any]) -> AnalyticsConfig:
    _check_keys("analytics", data, AnalyticsConfig)
    values = dict(data)
    for key in ("abc_a_threshold", "abc_b_threshold", "fast_turnover", "slow_turnover"):
        if key in values:
            values[key] = _decimal("analytics", key, values[key])
    return AnalyticsConfig(**values)


def parse_config(data: dict[str, Any], url_override: str | None = None) -> StockConfig:
    """
    Parse a whole document.

    Preconditions:
        - ``data`` has ``config_id`` and ``version``; every section is
          optional and defaults apply per field.
    """
    allowed = {"config_id", "version", "database", "inventory", "insights", "analytics"}
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"unknown top-level key {unknown[0]!r}")
    if "config_id" not in data or "version" not in data:
        raise ValueError("config_id and version are required")

    return StockConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        database=parse_database(_section(data, "database"), url_override),
        inventory=parse_inventory(_section(data, "inventory")),
        insights=parse_insights(_section(data, "insights")),
        analytics=parse_analytics(_section(data, "analytics")),
        checksum=compute_checksum(data),
    )
