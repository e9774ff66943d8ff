"""
YAML loader for the close configuration.

Responsibility:
    Read a YAML file with ``yaml.safe_load`` and parse it into a frozen
    ``CloseConfig``.  Structural problems are reported as ``ValueError``
    naming the offending key.

Failure modes:
    - Missing file -> ``FileNotFoundError`` propagates.
    - Malformed YAML -> ``yaml.YAMLError`` propagates.
    - Wrong shapes or values -> ``ValueError``.

Audit relevance:
    ``compute_checksum`` hashes the parsed document canonically so two
    deployments can prove they ran with the same settings.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from close_config.schema import (
    DEFAULT_AS_OF_DAYS,
    DEFAULT_CURRENCY,
    DEFAULT_VAT_BUCKETS,
    CloseConfig,
)
from close_kernel.domain.currency import DEFAULT_CURRENCIES, CurrencyInfo, CurrencyTable
from close_kernel.utils.hashing import hash_payload


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _non_negative_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{key}: expected a non-negative integer, got {value!r}")
    return value


def parse_as_of_days(value: Any) -> tuple[int, ...]:
    if value is None:
        return DEFAULT_AS_OF_DAYS
    if not isinstance(value, list):
        raise ValueError(f"as_of_days: expected a list, got {value!r}")
    return tuple(_non_negative_int(v, "as_of_days") for v in value)


def parse_vat_buckets(value: Any) -> tuple[int | Decimal, ...]:
    if value is None:
        return DEFAULT_VAT_BUCKETS
    if not isinstance(value, list):
        raise ValueError(f"vat_buckets: expected a list, got {value!r}")
    rates: list[int | Decimal] = []
    for rate in value:
        if isinstance(rate, bool) or not isinstance(rate, (int, float)):
            raise ValueError(f"vat_buckets: expected numbers, got {rate!r}")
        if not 0 <= rate <= 100:
            raise ValueError(f"vat_buckets: rate {rate!r} outside [0, 100]")
        if isinstance(rate, float):
            rates.append(int(rate) if rate.is_integer() else Decimal(str(rate)))
        else:
            rates.append(rate)
    return tuple(rates)


def parse_currencies(value: Any) -> CurrencyTable:
    if value is None:
        return DEFAULT_CURRENCIES
    if not isinstance(value, dict) or not value:
        raise ValueError("currencies: expected a non-empty mapping of code -> settings")
    infos = []
    for code, settings in value.items():
        settings = settings or {}
        if not isinstance(code, str) or len(code) != 3 or not code.isupper():
            raise ValueError(f"currencies: invalid code {code!r}")
        infos.append(
            CurrencyInfo(
                code=code,
                decimal_places=_non_negative_int(settings.get("decimal_places", 2), f"currencies.{code}"),
                name=str(settings.get("name", code)),
            )
        )
    return CurrencyTable.of(infos)


def parse_close_config(data: dict[str, Any]) -> CloseConfig:
    """Parse a loaded YAML document into a CloseConfig."""
    currencies = parse_currencies(data.get("currencies"))
    default_currency = data.get("default_currency", DEFAULT_CURRENCY)
    if not currencies.is_supported(default_currency):
        raise ValueError(f"default_currency: {default_currency!r} is not in the currency table")

    late = data.get("late_arrival_days")
    return CloseConfig(
        config_id=str(data.get("config_id", "default")),
        version=_non_negative_int(data.get("version", 1), "version"),
        default_currency=default_currency,
        as_of_days=parse_as_of_days(data.get("as_of_days")),
        vat_buckets=parse_vat_buckets(data.get("vat_buckets")),
        late_arrival_days=None if late is None else _non_negative_int(late, "late_arrival_days"),
        currencies=currencies,
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    SHA-256 of the canonical JSON form of ``data``.

    Postconditions:
        - Identical ``data`` always produces identical checksums.
    """
    return hash_payload(data)
