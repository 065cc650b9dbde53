"""ORM models for tracked users, challenges and awards."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from rac.db.base import Base, utcnow


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """A tracked provider account. Never hard-deleted by the engine."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    username_normalized: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    tier: Mapped[str] = mapped_column(String(16), nullable=False, default="inactive", server_default="inactive")
    last_checked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_activity_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


class Challenge(Base):
    """One game tracked for one period. PRIMARY is the monthly game, SECONDARY the shadow game."""

    __tablename__ = "challenges"
    __table_args__ = (
        UniqueConstraint("game_id", "month", "year", name="challenges_game_period_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    game_id: Mapped[str] = mapped_column(String(32), nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    challenge_type: Mapped[str] = mapped_column(String(16), nullable=False)
    achievement_total: Mapped[int] = mapped_column(Integer, nullable=False)
    progression_achievements: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    win_achievements: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    revealed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


# ---------------------------------------------------------------------------
# Awards
# ---------------------------------------------------------------------------


class Award(Base):
    """Deduplicated scoring unit.

    Challenge awards are unique per (user, game, month, year); manual awards
    use game_id 'manual' and are additive.
    """

    __tablename__ = "awards"
    __table_args__ = (
        Index(
            "awards_challenge_key",
            "username_normalized",
            "game_id",
            "month",
            "year",
            unique=True,
            postgresql_where=text("kind = 'challenge'"),
            sqlite_where=text("kind = 'challenge'"),
        ),
        Index("awards_year_idx", "year"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username_normalized: Mapped[str] = mapped_column(String(64), nullable=False)
    game_id: Mapped[str] = mapped_column(String(32), nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, default="challenge")
    tier: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    achievement_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    achievement_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    awarded_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    award_metadata: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    awarded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
