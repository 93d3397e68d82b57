"""
SQLAlchemy ORM models for the PneumaFlow aggregate database.

Only the nightly aggregate (Tier 1) table lives here; raw samples are kept
in the columnar tier and referenced by ``parquet_path``.
"""

from datetime import UTC, date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Float,
    Integer,
    String,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass


def utc_now() -> datetime:
    """Return current UTC timestamp for database defaults."""
    return datetime.now(UTC)


class NightlyAggregate(Base):
    """Nightly therapy summary, one row per calendar date."""

    __tablename__ = "nightly_aggregates"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    date: Mapped[date] = mapped_column(Date, unique=True, index=True)
    session_id: Mapped[str] = mapped_column(String, index=True)
    session_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    session_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    sample_rate_hz: Mapped[float] = mapped_column(Float)
    sample_count: Mapped[int] = mapped_column(Integer, default=0)

    # Usage
    total_usage_minutes: Mapped[float] = mapped_column(Float, default=0.0)
    mask_on_minutes: Mapped[float] = mapped_column(Float, default=0.0)

    # Pressure (cmH2O)
    median_pressure: Mapped[float | None] = mapped_column(Float)
    min_pressure: Mapped[float | None] = mapped_column(Float)
    max_pressure: Mapped[float | None] = mapped_column(Float)
    pressure_95th_percentile: Mapped[float | None] = mapped_column(Float)

    # Leak (L/min)
    median_leak_rate: Mapped[float | None] = mapped_column(Float)
    min_leak_rate: Mapped[float | None] = mapped_column(Float)
    max_leak_rate: Mapped[float | None] = mapped_column(Float)
    leak_95th_percentile: Mapped[float | None] = mapped_column(Float)
    large_leak_minutes: Mapped[float] = mapped_column(Float, default=0.0)
    large_leak_percent: Mapped[float] = mapped_column(Float, default=0.0)

    # Events
    ahi: Mapped[float] = mapped_column(Float, default=0.0)
    apnea_count: Mapped[int] = mapped_column(Integer, default=0)
    hypopnea_count: Mapped[int] = mapped_column(Integer, default=0)
    total_events: Mapped[int] = mapped_column(Integer, default=0)

    # Flow limitation
    median_flow_limitation: Mapped[float | None] = mapped_column(Float)
    min_flow_limitation: Mapped[float | None] = mapped_column(Float)
    max_flow_limitation: Mapped[float | None] = mapped_column(Float)
    flow_limitation_95th_percentile: Mapped[float | None] = mapped_column(Float)

    quality_score: Mapped[int] = mapped_column(Integer)

    # Tier 3 reference (session directory of Parquet part-files)
    parquet_path: Mapped[str | None] = mapped_column(String)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("mask_on_minutes >= 0", name="chk_mask_on_non_negative"),
        CheckConstraint(
            "total_usage_minutes >= mask_on_minutes", name="chk_usage_covers_mask_on"
        ),
        CheckConstraint("ahi >= 0", name="chk_ahi_non_negative"),
        CheckConstraint(
            "quality_score >= 0 AND quality_score <= 100", name="chk_quality_range"
        ),
    )

    def __repr__(self) -> str:
        return f"<NightlyAggregate(date={self.date}, session_id={self.session_id}, ahi={self.ahi})>"
