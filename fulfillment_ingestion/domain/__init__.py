"""
fulfillment_ingestion.domain -- Pure types for DTO normalization.

ZERO I/O. Imports only from fulfillment_kernel.
"""

from fulfillment_ingestion.domain.types import FieldAlias, WireShape

__all__ = [
    "FieldAlias",
    "WireShape",
]
