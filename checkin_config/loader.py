"""
YAML loader for check-in settings.

Reads the packaged ``defaults.yaml``, overlays an optional override file
and parses the merged mapping into a frozen ``CheckinSettings``.

* Overrides are merged one level deep: a section present in the override
  replaces only the keys it names.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the merged
  mapping so every trace can be tied to the exact settings in force.
* Malformed values raise ``ConfigurationError``; malformed YAML raises
  ``yaml.YAMLError`` unchanged.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from checkin_config.schema import CheckinSettings
from checkin_kernel.exceptions import ConfigurationError
from checkin_kernel.utils.hashing import hash_payload

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def merge_settings(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    return hash_payload(data)


def _section(data: dict[str, Any], name: str, source: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(source, f"'{name}' must be a mapping")
    return value


def _parse_rate(value: Any, source: str) -> Decimal:
    try:
        rate = Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigurationError(
            source, f"tax.default_rate is not a number: {value!r}"
        ) from exc
    if not rate.is_finite() or rate < 0 or rate >= 1:
        raise ConfigurationError(
            source, f"tax.default_rate must be a fraction in [0, 1): {value!r}"
        )
    return rate


def _parse_days(value: Any, source: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigurationError(
            source, f"invoice.due_days must be a non-negative integer: {value!r}"
        )
    return value


def _parse_template(value: Any, placeholder: str, key: str, source: str) -> str:
    if not isinstance(value, str) or "{" + placeholder + "}" not in value:
        raise ConfigurationError(
            source, f"{key} must be a string containing {{{placeholder}}}"
        )
    return value


def parse_settings(data: dict[str, Any], source: str = "<memory>") -> CheckinSettings:
    """Parse a merged settings mapping into ``CheckinSettings``."""
    tax = _section(data, "tax", source)
    invoice = _section(data, "invoice", source)
    lines = _section(data, "lines", source)

    return CheckinSettings(
        config_id=str(data.get("config_id", "checkin")),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        default_tax_rate=_parse_rate(tax.get("default_rate"), source),
        invoice_due_days=_parse_days(invoice.get("due_days"), source),
        reference_template=_parse_template(
            invoice.get("reference_template"), "booking_id",
            "invoice.reference_template", source,
        ),
        aircraft_line_template=_parse_template(
            lines.get("aircraft_template"), "aircraft",
            "lines.aircraft_template", source,
        ),
        instructor_line_template=_parse_template(
            lines.get("instructor_template"), "instructor",
            "lines.instructor_template", source,
        ),
        invoice_status=str(invoice.get("status", "pending")),
        invoice_number_prefix=str(invoice.get("number_prefix", "")),
    )


def load_settings(config_path: Path | None = None) -> CheckinSettings:
    """Packaged defaults overlaid with ``config_path`` (when given)."""
    data = load_yaml_file(DEFAULTS_PATH)
    source = str(DEFAULTS_PATH)
    if config_path is not None:
        data = merge_settings(data, load_yaml_file(Path(config_path)))
        source = str(config_path)
    return parse_settings(data, source)
