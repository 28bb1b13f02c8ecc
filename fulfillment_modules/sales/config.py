"""
Sales Configuration Schema.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from fulfillment_kernel.domain.currency import CurrencyRegistry
from fulfillment_kernel.domain.values import ZERO, to_decimal
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("modules.sales.config")


@dataclass
class SalesConfig:
    """Configuration schema for the sales pipeline."""

    currency: str = "INR"

    # Document numbering
    sales_order_prefix: str = "SO"
    picklist_prefix: str = "PL"
    dispatch_prefix: str = "DSP"

    # Picking: used for order lines that name no warehouse
    default_warehouse_id: str | None = None

    # Pricing
    default_tax_percent: Decimal = ZERO

    # Completion: a delivered order also needs every non-cancelled sales
    # invoice paid (and at least one invoice) when this is set
    require_invoice_settlement: bool = True

    def __post_init__(self):
        self.currency = CurrencyRegistry.validate(self.currency)
        self.default_tax_percent = to_decimal(self.default_tax_percent, "default_tax_percent")
        logger.info(
            "sales_config_initialized",
            extra={
                "currency": self.currency,
                "default_warehouse_id": self.default_warehouse_id,
                "require_invoice_settlement": self.require_invoice_settlement,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        logger.info("sales_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        logger.info(
            "sales_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
