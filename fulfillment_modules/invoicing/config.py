"""
Invoicing Configuration Schema.
"""

from dataclasses import dataclass
from typing import Self

from fulfillment_kernel.logging_config import get_logger

logger = get_logger("modules.invoicing.config")


@dataclass
class InvoicingConfig:
    """Configuration schema shared by purchase and sales invoices."""

    purchase_invoice_prefix: str = "PINV"
    sales_invoice_prefix: str = "INV"
    payment_terms_days: int = 30

    def __post_init__(self):
        if self.payment_terms_days < 0:
            raise ValueError(
                f"payment_terms_days must not be negative, got {self.payment_terms_days}"
            )
        logger.info(
            "invoicing_config_initialized",
            extra={"payment_terms_days": self.payment_terms_days},
        )

    @classmethod
    def with_defaults(cls) -> Self:
        logger.info("invoicing_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        logger.info(
            "invoicing_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
