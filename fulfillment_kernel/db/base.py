"""
Module: fulfillment_kernel.db.base
Responsibility: Declarative base and the single document table used by the
    SQL document repository.
Architecture position: Kernel > DB.  MUST NOT import from services or
    modules; documents arrive here already encoded as JSON primitives.

Invariants enforced:
    - (document_type, document_id) is unique: one row per staged document.
    - ``payload`` is the full encoded document; ``document_no`` and
      ``status`` are copies for querying only.
    - ``version`` starts at 1 and increments on every update.
"""

from datetime import datetime
from typing import Any, ClassVar

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all SQLAlchemy models."""

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
    }


class DocumentRecord(Base):
    """One stored staged document."""

    __tablename__ = "fulfillment_documents"
    __table_args__ = (
        UniqueConstraint("document_type", "document_no", name="uq_document_number"),
    )

    document_type: Mapped[str] = mapped_column(String(32), primary_key=True)
    document_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    document_no: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
