from __future__ import annotations

from datetime import datetime, timezone
from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from hydration.db.base import Base
from hydration.schemas.reminder import DEFAULT_FREQUENCY


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Reminder preferences (read-only for the scheduler)
    notifications_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notification_start_hour: Mapped[int] = mapped_column(Integer, default=5, nullable=False)  # 05:00
    notification_end_hour: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # 0 = through midnight
    notification_frequency: Mapped[str] = mapped_column(
        String(32), default=DEFAULT_FREQUENCY.value, nullable=False
    )
    timezone: Mapped[str] = mapped_column(String(64), default="Asia/Kolkata", nullable=False)

    daily_goal_ml: Mapped[int] = mapped_column(Integer, default=2000, nullable=False)
    default_water_amount_ml: Mapped[int] = mapped_column(Integer, default=250, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    push_subscriptions: Mapped[list["PushSubscription"]] = relationship(
        "PushSubscription", back_populates="user", cascade="all, delete-orphan"
    )
    water_logs: Mapped[list["WaterLog"]] = relationship(
        "WaterLog", back_populates="user", cascade="all, delete-orphan"
    )
