"""
stock_config -- single public entrypoint for stock configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains
    configuration.  No other component reads configuration files or
    environment variables directly.

Architecture position:
    Configuration -- sits above ``stock_kernel`` and below
    ``stock_services``.  The kernel MUST NEVER import from
    ``stock_config``; ``stock_config.bridges`` translates config sections
    into kernel value objects.

Invariants enforced:
    - Single entrypoint: all runtime config flows through
      ``get_active_config()``.
    - Every value is validated into frozen dataclasses before it is
      returned.
    - The checksum is computed over the YAML document as written, before
      the environment override is applied.

Failure modes:
    - ``FileNotFoundError`` -- the configured path does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every call emits a ``STOCK_CONFIG_TRACE`` log record with the
    config_id, version, checksum and source path, so any run can be tied
    back to the configuration that governed it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from stock_config.loader import load_yaml_file, parse_config
from stock_config.schema import (
    AnalyticsConfig,
    AnomalyConfig,
    DatabaseConfig,
    InsightConfig,
    InventoryConfig,
    StockConfig,
)

_logger = logging.getLogger("stock_kernel.config")

CONFIG_PATH_ENV = "STOCK_CONFIG_PATH"
DATABASE_URL_ENV = "STOCK_DATABASE_URL"

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | str | None = None) -> StockConfig:
    """The ONLY public configuration entrypoint.

    Resolution order for the document: ``config_path``, then
    ``$STOCK_CONFIG_PATH``, then the packaged defaults.yaml.
    ``$STOCK_DATABASE_URL``, when set, replaces database.url.

    Raises:
        FileNotFoundError: The resolved path does not exist.
        ValueError: The document fails validation.
    """
    path = Path(config_path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    data = load_yaml_file(path)
    url_override = os.environ.get(DATABASE_URL_ENV) or None
    config = parse_config(data, url_override=url_override)

    _logger.info(
        "STOCK_CONFIG_TRACE",
        extra={
            "trace_type": "STOCK_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source_path": str(path),
            "database_url_overridden": url_override is not None,
        },
    )
    return config


__all__ = [
    "AnalyticsConfig",
    "AnomalyConfig",
    "DatabaseConfig",
    "InsightConfig",
    "InventoryConfig",
    "StockConfig",
    "get_active_config",
]
