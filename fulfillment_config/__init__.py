"""
fulfillment_config -- YAML configuration for the pipeline.

Responsibility:
    Loads a YAML document into a ``PipelineConfig`` holding the purchasing,
    sales and invoicing module configs plus logging settings.
    ``get_default_config()`` reads the ``defaults.yaml`` shipped with the
    package.

Architecture position:
    Configuration -- sits above ``fulfillment_kernel`` and the module config
    dataclasses.  Kernel, engines and services never import from here;
    callers pass the parsed module configs into the services.

Failure modes:
    - ``ConfigurationError`` for a missing file, malformed YAML, an unknown
      section or key, or a value a module config rejects.
"""

from __future__ import annotations

from functools import cache
from pathlib import Path

from fulfillment_config.loader import load_config_file, load_yaml_file, parse_config
from fulfillment_config.schema import LoggingSettings, PipelineConfig
from fulfillment_kernel.logging_config import configure_logging, get_logger

logger = get_logger("config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def load_config(path: str | Path) -> PipelineConfig:
    """Load and validate the configuration at ``path``."""
    return load_config_file(Path(path))


@cache
def get_default_config() -> PipelineConfig:
    """The packaged default configuration, parsed once."""
    logger.debug("default_config_requested", extra={"path": str(DEFAULTS_PATH)})
    return load_config_file(DEFAULTS_PATH)


def apply_logging(config: PipelineConfig) -> None:
    """Configure structured logging at the configured level."""
    configure_logging(level=config.logging.level)


__all__ = [
    "DEFAULTS_PATH",
    "apply_logging",
    "LoggingSettings",
    "PipelineConfig",
    "get_default_config",
    "load_config",
    "load_yaml_file",
    "parse_config",
]
