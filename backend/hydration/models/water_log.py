from __future__ import annotations

import enum
from datetime import datetime, timezone
from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from hydration.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IntakeType(str, enum.Enum):
    half_glass = "half-glass"
    full_glass = "full-glass"
    half_liter = "half-liter"
    liter = "liter"
    custom = "custom"
    notification = "notification"


class WaterLog(Base):
    __tablename__ = "water_logs"
    __table_args__ = (Index("ix_water_logs_user_timestamp", "user_id", "timestamp"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount_ml: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    type: Mapped[str] = mapped_column(String(32), default=IntakeType.custom.value, nullable=False)
    notes: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    user: Mapped["User"] = relationship("User", back_populates="water_logs")
