"""
Administrator phase grants.

A row opens one phase to every student of a grade group.
"""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class PhaseGrantRecord(Base):
    __tablename__ = "phase_authorizations"
    __table_args__ = (
        UniqueConstraint("grade_id", "phase", name="uq_phase_authorizations_grade_phase"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        server_default=func.gen_random_uuid()
    )
    grade_id: Mapped[str] = mapped_column(Text, nullable=False)
    phase: Mapped[str] = mapped_column(Text, nullable=False)
    granted_by: Mapped[str | None] = mapped_column(Text)
    granted_at: Mapped[datetime] = mapped_column(default=func.now())

    def __repr__(self) -> str:
        return f"<PhaseGrantRecord(grade={self.grade_id}, phase={self.phase})>"
