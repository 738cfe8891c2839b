"""Statistics counters table."""
from __future__ import annotations

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from psyexam.database import Base


class StatCounter(Base):
    """
    One counter of the statistics document, e.g. (``category``, ``verbal``).
    The overall total is stored under (``total``, ``questions``).
    """

    __tablename__ = "question_stats"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    dimension: Mapped[str] = mapped_column(String(32), nullable=False)
    key: Mapped[str] = mapped_column(String(64), nullable=False)
    count: Mapped[int] = mapped_column(default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("dimension", "key", name="uq_stat_dimension_key"),
    )

    def __repr__(self) -> str:
        return f"<StatCounter({self.dimension}.{self.key}={self.count})>"
