"""
Commerce Configuration (``commerce_config``).

``get_active_config()`` is the single public configuration entry point.
No other component reads configuration files or environment variables.
"""

from __future__ import annotations

import logging
from pathlib import Path

from commerce_config.loader import load_config
from commerce_config.schema import CommerceConfig, NumberingDef, TaxRateDef

__all__ = [
    "CommerceConfig",
    "NumberingDef",
    "TaxRateDef",
    "get_active_config",
]

_logger = logging.getLogger("commerce_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | None = None) -> CommerceConfig:
    """
    Load the active configuration.

    Args:
        config_path: Override path to a YAML configuration file.
            Defaults to the ``defaults.yaml`` shipped with this package.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If configuration validation fails.
    """
    path = config_path or _DEFAULT_CONFIG_PATH
    config = load_config(path)

    _logger.info(
        "COMMERCE_CONFIG_TRACE",
        extra={
            "trace_type": "COMMERCE_CONFIG_TRACE",
            "config_path": str(path),
            "checksum": config.checksum,
            "base_currency": config.base_currency,
            "fiscal_stamp_enabled": config.enable_fiscal_stamp,
            "tax_rate_count": len(config.tax_rates),
        },
    )
    return config
