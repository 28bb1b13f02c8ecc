"""Utility modules for the fulfillment kernel."""

from fulfillment_kernel.utils.hashing import canonicalize_json, hash_payload
from fulfillment_kernel.utils.idempotency import (
    generate_idempotency_key,
    parse_idempotency_key,
)

__all__ = [
    "canonicalize_json",
    "generate_idempotency_key",
    "hash_payload",
    "parse_idempotency_key",
]
