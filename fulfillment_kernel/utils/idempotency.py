"""
Idempotency key generation utilities.

A transition is identified by the document and the status it moves to, so
a caller retrying after a transient network failure sends the same key and
the backend can refuse to apply the change twice.
"""


def generate_idempotency_key(
    document_type: str,
    document_id: str,
    target_status: str,
) -> str:
    """
    Generate the idempotency key for a document transition.

    Format: document_type:document_id:target_status

    Example:
        >>> generate_idempotency_key("purchase_order", "po-1", "ordered")
        "purchase_order:po-1:ordered"
    """
    return f"{document_type}:{document_id}:{target_status}"


def parse_idempotency_key(key: str) -> tuple[str, str, str]:
    """
    Parse an idempotency key into (document_type, document_id, target_status).

    Raises:
        ValueError: If key format is invalid.
    """
    parts = key.split(":")
    if len(parts) < 3 or not all(parts):
        raise ValueError(f"Invalid idempotency key format: {key}")
    # Document ids may themselves contain colons
    return parts[0], ":".join(parts[1:-1]), parts[-1]
