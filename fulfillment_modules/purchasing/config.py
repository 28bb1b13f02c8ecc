"""
Purchasing Configuration Schema.

Defines the structure and defaults for purchasing settings.  Values are
normally loaded from YAML by ``fulfillment_config``.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from fulfillment_kernel.domain.currency import CurrencyRegistry
from fulfillment_kernel.domain.values import ZERO, to_decimal
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("modules.purchasing.config")


@dataclass
class PurchasingConfig:
    """
    Configuration schema for the purchasing pipeline.

        config = PurchasingConfig(
            currency="INR",
            derive_quality_from_quantities=False,
        )
    """

    currency: str = "INR"

    # Document numbering
    requisition_prefix: str = "PR"
    purchase_order_prefix: str = "PO"
    goods_receipt_prefix: str = "GR"

    # Pricing
    carry_requisition_prices: bool = True
    default_tax_percent: Decimal = ZERO

    # Receiving: when True, a receipt line recorded without an explicit
    # quality status gets passed/failed/partial from its accepted/rejected
    # split; when False it stays pending until inspected.
    derive_quality_from_quantities: bool = True

    def __post_init__(self):
        self.currency = CurrencyRegistry.validate(self.currency)
        self.default_tax_percent = to_decimal(self.default_tax_percent, "default_tax_percent")
        logger.info(
            "purchasing_config_initialized",
            extra={
                "currency": self.currency,
                "carry_requisition_prices": self.carry_requisition_prices,
                "derive_quality_from_quantities": self.derive_quality_from_quantities,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        logger.info("purchasing_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g. a YAML section)."""
        logger.info(
            "purchasing_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
