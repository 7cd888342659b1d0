"""
Configuration Loader (``commerce_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``commerce_config.schema`` dataclasses.  Services never call this directly;
the runtime entry point is ``commerce_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values (unknown currency, negative threshold, missing prefix)
  -> ``ValueError`` with a descriptive message.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from commerce_config.schema import CommerceConfig, NumberingDef, TaxRateDef
from commerce_kernel.domain.currency import CurrencyRegistry

# Every (domain, type) pair a document can be created for.
REQUIRED_PREFIXES: dict[str, tuple[str, ...]] = {
    "sales": ("estimate", "order", "delivery", "invoice", "issue", "return", "credit"),
    "purchase": ("pr", "rfq", "order", "delivery", "invoice", "return"),
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, name: str) -> Decimal:
    """Parse a Decimal from a YAML scalar (quoted strings preferred)."""
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{name} must be a decimal number, got {value!r}") from exc


def parse_tax_rate(data: dict[str, Any]) -> TaxRateDef:
    """Parse a TaxRateDef from a dict with ``id``, ``name``, ``rate``."""
    rate = parse_decimal(data["rate"], f"tax_rates[{data['id']}].rate")
    if rate < 0:
        raise ValueError(f"Tax rate {data['id']} must not be negative: {rate}")
    return TaxRateDef(
        id=data["id"],
        name=data["name"],
        rate=rate,
        is_default=bool(data.get("is_default", False)),
    )


def parse_numbering(data: dict[str, Any]) -> NumberingDef:
    """Parse numbering settings; every document type must have a prefix."""
    width = int(data.get("width", 3))
    if width < 1:
        raise ValueError(f"numbering.width must be at least 1, got {width}")
    prefixes = {
        domain: {str(k): str(v) for k, v in (types or {}).items()}
        for domain, types in (data.get("prefixes") or {}).items()
    }
    for domain, doc_types in REQUIRED_PREFIXES.items():
        for doc_type in doc_types:
            if doc_type not in prefixes.get(domain, {}):
                raise ValueError(f"Missing numbering prefix for {domain}.{doc_type}")
    return NumberingDef(width=width, prefixes=prefixes)


def parse_config(data: dict[str, Any]) -> CommerceConfig:
    """
    Parse a ``CommerceConfig`` from a loaded YAML dict.

    Raises:
        ValueError: if any value fails validation.
    """
    base_currency = data.get("base_currency", "USD")
    if not CurrencyRegistry.is_valid(base_currency):
        raise ValueError(f"Invalid base_currency: {base_currency!r}")

    stamp = data.get("fiscal_stamp") or {}
    stamp_value = parse_decimal(stamp.get("value", "0"), "fiscal_stamp.value")
    if stamp_value < 0:
        raise ValueError(f"fiscal_stamp.value must not be negative: {stamp_value}")

    tax_rates = tuple(parse_tax_rate(item) for item in data.get("tax_rates") or ())
    if sum(1 for rate in tax_rates if rate.is_default) > 1:
        raise ValueError("At most one tax rate may be flagged is_default")

    inventory = data.get("inventory") or {}
    threshold = parse_decimal(
        inventory.get("low_stock_threshold", "10"), "inventory.low_stock_threshold"
    )
    if threshold < 0:
        raise ValueError(f"inventory.low_stock_threshold must not be negative: {threshold}")

    return CommerceConfig(
        base_currency=CurrencyRegistry.validate(base_currency),
        enable_fiscal_stamp=bool(stamp.get("enabled", False)),
        fiscal_stamp_value=stamp_value,
        tax_rates=tax_rates,
        low_stock_threshold=threshold,
        allow_negative_stock=bool(inventory.get("allow_negative_stock", True)),
        numbering=parse_numbering(data.get("numbering") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_config(path: Path) -> CommerceConfig:
    """Load and parse a configuration file."""
    return parse_config(load_yaml_file(path))
