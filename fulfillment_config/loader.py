"""
Configuration Loader (``fulfillment_config.loader``).

Responsibility
--------------
Reads a YAML document and parses it into a ``PipelineConfig``.  Sections
map one-to-one onto the module config dataclasses; absent sections take
the module defaults.

Failure modes
-------------
* Missing file, unreadable file or malformed YAML -> ``ConfigurationError``.
* Unknown section or key, or a value a module config rejects ->
  ``ConfigurationError`` naming the section.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from fulfillment_config.schema import SECTIONS, LoggingSettings, PipelineConfig
from fulfillment_kernel.exceptions import ConfigurationError, ValidationError
from fulfillment_kernel.logging_config import get_logger
from fulfillment_modules.invoicing.config import InvoicingConfig
from fulfillment_modules.purchasing.config import PurchasingConfig
from fulfillment_modules.sales.config import SalesConfig

logger = get_logger("config.loader")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file as a dict.  An empty file is an empty dict.

    Raises:
        ConfigurationError: if the file cannot be read, is not valid YAML,
            or its top level is not a mapping.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigurationError(f"Cannot read configuration: {exc}", source=str(path)) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML: {exc}", source=str(path)) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration must be a mapping, got {type(data).__name__}", source=str(path)
        )
    return data


def _section(data: Mapping[str, Any], name: str, source: str | None) -> dict[str, Any]:
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(
            f"Section '{name}' must be a mapping, got {type(value).__name__}", source=source
        )
    return value


def parse_config(data: Mapping[str, Any], source: str | None = None) -> PipelineConfig:
    """Build a ``PipelineConfig`` from an already parsed document."""
    unknown = sorted(set(data) - set(SECTIONS))
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration sections: {', '.join(unknown)}", source=source
        )

    parsers = {
        "purchasing": PurchasingConfig.from_dict,
        "sales": SalesConfig.from_dict,
        "invoicing": InvoicingConfig.from_dict,
        "logging": lambda section: LoggingSettings(**section),
    }
    parsed: dict[str, Any] = {}
    for name, parse in parsers.items():
        try:
            parsed[name] = parse(_section(data, name, source))
        except (TypeError, ValueError, ValidationError) as exc:
            raise ConfigurationError(f"Invalid '{name}' section: {exc}", source=source) from exc

    config = PipelineConfig(source=source, **parsed)
    logger.info(
        "pipeline_config_loaded",
        extra={"source": source, "sections": sorted(k for k in data if k in SECTIONS)},
    )
    return config


def load_config_file(path: Path) -> PipelineConfig:
    return parse_config(load_yaml_file(path), source=str(path))
