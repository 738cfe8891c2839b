"""
Question set document table.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import sqlalchemy as sa
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from psyexam.database import Base
from psyexam.taxonomy import SetStatus

# Document keys mirrored into indexed columns for filtering and sorting
METADATA_FIELDS = ("category", "subcategory", "topic", "difficulty", "status")


class QuestionSetRecord(Base):
    """
    Stored question set.
    The full document lives in ``document_json``; metadata columns are
    kept in sync with it so the store can filter and sort.
    """

    __tablename__ = "question_sets"

    # Opaque string id
    id: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)

    # Metadata
    category: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    subcategory: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    topic: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    difficulty: Mapped[str] = mapped_column(String(16), index=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=SetStatus.PENDING.value, index=True, nullable=False
    )
    author: Mapped[str | None] = mapped_column(String(255), index=True, nullable=True)

    # Timing
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    document_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")

    @property
    def document(self) -> dict[str, Any]:
        """Parse the stored document."""
        try:
            value = json.loads(self.document_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}
        return value if isinstance(value, dict) else {}

    @document.setter
    def document(self, value: dict[str, Any]) -> None:
        """Serialize the document."""
        self.document_json = json.dumps(value, ensure_ascii=False)

    def metadata_values(self) -> dict[str, str | None]:
        return {name: getattr(self, name) for name in METADATA_FIELDS}
