"""
Delivery engine -- append-only dispatch tracking history.

Tracking events are frozen values with a ``timestamp``.  History only
grows at the end, in non-decreasing timestamp order; nothing already
recorded is edited or removed.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, TypeVar

from fulfillment_kernel.exceptions import ValidationError

E = TypeVar("E")


def append_tracking_event(history: Sequence[E], event: E) -> tuple[E, ...]:
    if history and event.timestamp < history[-1].timestamp:
        raise ValidationError(
            "Tracking event is older than the latest recorded event",
            field="timestamp",
            value=event.timestamp.isoformat(),
        )
    return (*history, event)


def verify_append_only(before: Sequence[Any], after: Sequence[Any]) -> None:
    """Raise ValidationError unless ``after`` extends ``before`` unchanged."""
    if len(after) < len(before) or tuple(after[: len(before)]) != tuple(before):
        raise ValidationError(
            "Tracking history is append-only; recorded events cannot change",
            field="tracking",
        )
