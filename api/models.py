"""
ORM models for the todo/event store.

The digest only reads these tables; they are owned by the application that
writes todos and events. Timestamps are stored as naive UTC.
"""
from __future__ import annotations

from datetime import date, datetime, time, timezone, tzinfo
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Select, String, Text, and_
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# Windows that still point forward; anything else on an open todo is overdue
FORWARD_PRIORITY_WINDOWS = ("today", "tomorrow", "this_week", "next_week")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True)

    projects: Mapped[list[Project]] = relationship(back_populates="user")
    todos: Mapped[list[Todo]] = relationship(back_populates="user")
    events: Mapped[list[Event]] = relationship(back_populates="user")


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    name: Mapped[str] = mapped_column(String(255))
    archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime)  # non-null = archived

    user: Mapped[User] = relationship(back_populates="projects")
    milestones: Mapped[list[Milestone]] = relationship(back_populates="project")
    events: Mapped[list[Event]] = relationship(back_populates="project")

    @property
    def archived(self) -> bool:
        return self.archived_at is not None


class Milestone(Base):
    __tablename__ = "milestones"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[Optional[int]] = mapped_column(ForeignKey("projects.id"), index=True)
    name: Mapped[str] = mapped_column(String(255))

    project: Mapped[Optional[Project]] = relationship(back_populates="milestones")
    todos: Mapped[list[Todo]] = relationship(back_populates="milestone")


class Todo(Base):
    __tablename__ = "todos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    milestone_id: Mapped[Optional[int]] = mapped_column(ForeignKey("milestones.id"), index=True)
    title: Mapped[str] = mapped_column(String(512))
    priority_window: Mapped[str] = mapped_column(String(32), default="today", index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)  # null = open
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    user: Mapped[User] = relationship(back_populates="todos")
    milestone: Mapped[Optional[Milestone]] = relationship(back_populates="todos")


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    project_id: Mapped[Optional[int]] = mapped_column(ForeignKey("projects.id"), index=True)
    title: Mapped[str] = mapped_column(String(512))
    description: Mapped[Optional[str]] = mapped_column(Text)
    starts_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    ends_at: Mapped[datetime] = mapped_column(DateTime)
    all_day: Mapped[bool] = mapped_column(Boolean, default=False)
    event_type: Mapped[str] = mapped_column(String(64), default="event")

    user: Mapped[User] = relationship(back_populates="events")
    project: Mapped[Optional[Project]] = relationship(back_populates="events")

    @classmethod
    def overlapping(cls, start: date, end: date, tz: Optional[tzinfo] = None):
        """
        Filter clause for events overlapping the calendar days [start, end].

        Day boundaries are taken in `tz` (server local time if omitted) and
        converted to the naive UTC values stored in the table.
        """
        range_start, range_end = day_range_bounds(start, end, tz)
        return and_(cls.starts_at <= range_end, cls.ends_at >= range_start)


def day_range_bounds(start: date, end: date, tz: Optional[tzinfo] = None) -> tuple[datetime, datetime]:
    """
    First and last instant of a span of calendar days, as naive UTC.

    With no `tz` the days are local to the server and each boundary gets the
    offset in force on that date. Boundaries that fall outside the datetime
    range are clamped to datetime.min / datetime.max.
    """
    first = datetime.combine(start, time.min, tzinfo=tz)
    last = datetime.combine(end, time.max, tzinfo=tz)
    return _naive_utc(first, datetime.min), _naive_utc(last, datetime.max)


def _naive_utc(value: datetime, fallback: datetime) -> datetime:
    try:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    except (OverflowError, OSError):
        return fallback


def for_date_range(stmt: Select, start: date, end: date, tz: Optional[tzinfo] = None) -> Select:
    """Restrict an event query to [start, end] in its natural order."""
    return stmt.where(Event.overlapping(start, end, tz)).order_by(Event.starts_at, Event.id)
