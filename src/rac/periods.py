"""Scoring periods. A period is one calendar (month, year) in UTC."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True, order=True)
class Period:
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Invalid month: {self.month}")

    @classmethod
    def from_datetime(cls, dt: datetime) -> Period:
        """Period containing dt (naive datetimes are treated as UTC)."""
        if dt.tzinfo is not None:
            dt = dt.astimezone(timezone.utc)
        return cls(year=dt.year, month=dt.month)

    @classmethod
    def current(cls, now: datetime | None = None) -> Period:
        if now is None:
            now = datetime.now(timezone.utc)
        return cls.from_datetime(now)

    @property
    def label(self) -> str:
        """Period key e.g. '2026-03'."""
        return f"{self.year:04d}-{self.month:02d}"

    def previous(self) -> Period:
        if self.month == 1:
            return Period(year=self.year - 1, month=12)
        return Period(year=self.year, month=self.month - 1)

    def start(self) -> datetime:
        """Midnight UTC on the first day of the period."""
        return datetime(self.year, self.month, 1, tzinfo=timezone.utc)
