# eumlog/entities.py
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

Base = declarative_base()


class ConsultationResult(Base):
    __tablename__ = "consultation_result"

    id: Mapped[str] = mapped_column(
        String(32),
        primary_key=True,
        default=lambda: uuid4().hex,
    )

    # Client identity as written in the survey
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    birth: Mapped[str] = mapped_column(String(32), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32))

    # Accepted field updates, canonical keys only
    updates: Mapped[dict[str, object]] = mapped_column(JSON, nullable=False, default=dict)
    change_summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    memo: Mapped[str | None] = mapped_column(Text)
    chat_log: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_consultation_result_identity", "name", "birth"),
    )
