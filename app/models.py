from __future__ import annotations
from datetime import date, datetime
from enum import Enum
from typing import Optional
from sqlalchemy import Integer, String, Date, DateTime, Boolean, ForeignKey, UniqueConstraint, Index, JSON, func, true
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


class FastType(str, Enum):
    QADA = "qada"
    SUNNAH = "sunnah"
    KAFFARAH = "kaffarah"
    NAFL = "nafl"

class SunnahFastType(str, Enum):
    MONDAY = "monday"
    THURSDAY = "thursday"
    WHITE_DAYS = "white_days"
    ASHURA = "ashura"
    ARAFAH = "arafah"
    SHAWWAL = "shawwal"
    SHABAN = "shaban"
    OTHER = "other"

class Language(str, Enum):
    EN = "en"
    AR = "ar"
    FR = "fr"
    ES = "es"

class MissedReason(str, Enum):
    CYCLE = "cycle"
    TRAVEL = "travel"
    ILLNESS = "illness"
    PREGNANCY = "pregnancy"
    POSTPARTUM = "postpartum"
    BREASTFEEDING = "breastfeeding"
    OTHER = "other"


# ---- users ----
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)

    # bcrypt HASH; NULL for accounts created through a one-time code
    password: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # profile
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC", server_default="UTC")
    preferred_language: Mapped[str] = mapped_column(String(5), nullable=False, default=Language.EN.value, server_default=Language.EN.value)
    fast_goal_per_week: Mapped[int] = mapped_column(Integer, nullable=False, default=2, server_default="2")
    notification_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())


# ---- qada ledger ----
class YearBucket(Base):
    __tablename__ = "year_buckets"
    __table_args__ = (
        UniqueConstraint("user_id", "hijri_year", name="uq_year_bucket_user_year"),
        Index("idx_year_bucket_user_completed", "user_id", "is_completed"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(50), nullable=False)       # e.g. "Ramadan 1445"
    hijri_year: Mapped[int] = mapped_column(Integer, nullable=False)
    total_days_owed: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    # [{"reason": "illness", "count": 3}, ...]
    reason_breakdown: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())


class Fast(Base):
    __tablename__ = "fasts"
    __table_args__ = (
        UniqueConstraint("user_id", "fast_date", name="uq_fast_user_date"),
        Index("idx_fast_user_type", "user_id", "type"),
        Index("idx_fast_user_status", "user_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    fast_date: Mapped[date] = mapped_column(Date, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=FastType.SUNNAH.value)
    sunnah_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # plain column, no FK: deleting a bucket leaves the reference orphaned
    year_bucket_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    # True = observed, False = missed
    status: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())


# ---- auth ----
class Otp(Base):
    __tablename__ = "otps"
    __table_args__ = (Index("idx_otp_email_used", "email", "used"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    code_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"
    __table_args__ = (Index("idx_refresh_user_revoked", "user_id", "revoked"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    replaced_by_token: Mapped[str | None] = mapped_column(String(128), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())


class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
