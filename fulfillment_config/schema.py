"""
Pipeline configuration schema.

``PipelineConfig`` aggregates the per-module configs.  Each module owns its
own dataclass (``fulfillment_modules.<module>.config``); this schema only
names the YAML section each one is read from.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from fulfillment_modules.invoicing.config import InvoicingConfig
from fulfillment_modules.purchasing.config import PurchasingConfig
from fulfillment_modules.sales.config import SalesConfig

LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# YAML top-level keys
SECTIONS = ("purchasing", "sales", "invoicing", "logging")


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"

    def __post_init__(self):
        if not isinstance(self.level, str):
            raise TypeError(f"Log level must be a string, got {type(self.level).__name__}")
        if self.level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.level!r}")
        object.__setattr__(self, "level", self.level.upper())


@dataclass(frozen=True)
class PipelineConfig:
    """Complete configuration of one pipeline instance."""

    purchasing: PurchasingConfig = field(default_factory=PurchasingConfig)
    sales: SalesConfig = field(default_factory=SalesConfig)
    invoicing: InvoicingConfig = field(default_factory=InvoicingConfig)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    source: str | None = None
