"""
Document numbers -- ``<PREFIX>-<YEAR>-<seq>``.

``PO-2024-001`` is the first purchase order of 2024.  The sequence is
zero-padded to three digits and grows past 999 without truncation.
Sequences restart every year and are independent per prefix.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from fulfillment_kernel.exceptions import ValidationError

_PATTERN = re.compile(r"^(?P<prefix>[A-Z][A-Z0-9]*)-(?P<year>\d{4})-(?P<seq>\d+)$")

SEQUENCE_WIDTH = 3


@dataclass(frozen=True)
class DocumentNumber:
    prefix: str
    year: int
    sequence: int

    def __str__(self) -> str:
        return format_document_no(self.prefix, self.year, self.sequence)


def format_document_no(prefix: str, year: int, sequence: int) -> str:
    if not re.fullmatch(r"[A-Z][A-Z0-9]*", prefix):
        raise ValidationError(f"Invalid document prefix: {prefix!r}", field="prefix", value=prefix)
    if sequence < 1:
        raise ValidationError(
            f"Document sequence must be positive, got {sequence}",
            field="sequence",
            value=sequence,
        )
    return f"{prefix}-{year:04d}-{sequence:0{SEQUENCE_WIDTH}d}"


def parse_document_no(document_no: str) -> DocumentNumber:
    match = _PATTERN.match(document_no.strip()) if isinstance(document_no, str) else None
    if match is None:
        raise ValidationError(
            f"Malformed document number: {document_no!r}",
            field="document_no",
            value=document_no,
        )
    return DocumentNumber(
        prefix=match["prefix"],
        year=int(match["year"]),
        sequence=int(match["seq"]),
    )


def next_document_no(prefix: str, year: int, existing: Iterable[str]) -> str:
    """Next number after the highest existing one with the same prefix and year.

    Numbers that do not parse (imported legacy documents) are ignored.
    """
    highest = 0
    for number in existing:
        try:
            parsed = parse_document_no(number)
        except ValidationError:
            continue
        if parsed.prefix == prefix and parsed.year == year:
            highest = max(highest, parsed.sequence)
    return format_document_no(prefix, year, highest + 1)
