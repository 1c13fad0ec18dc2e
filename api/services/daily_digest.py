"""
Daily digest service.

Builds one user's digest for a date: open todos grouped by priority window,
events for the day and the rest of the week, and summary counts.
"""
import logging
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session, selectinload

from api.models import (
    FORWARD_PRIORITY_WINDOWS,
    Event,
    Milestone,
    Project,
    Todo,
    User,
    for_date_range,
)
from config.settings import settings

logger = logging.getLogger(__name__)


def _now(tz: Optional[tzinfo] = None) -> datetime:
    tz = tz if tz is not None else settings.tz
    if tz is None:
        return datetime.now().astimezone()
    return datetime.now(tz)


def today_in(tz: Optional[tzinfo] = None) -> date:
    """Current calendar date in `tz` (the configured digest zone by default)."""
    return _now(tz).date()


def generated_at(tz: Optional[tzinfo] = None) -> str:
    """Current instant as ISO-8601 with offset, to the second."""
    return _now(tz).isoformat(timespec="seconds")


def end_of_week(day: date, week_start: Optional[int] = None) -> date:
    """
    Last day of the week containing `day`.

    Args:
        day: Any date in the week
        week_start: Weekday number the week starts on (Monday is 0).
            Defaults to the configured week start.

    The last week of the calendar is cut short at date.max.
    """
    if week_start is None:
        week_start = settings.week_start_index
    last_weekday = (week_start + 6) % 7
    try:
        return day + timedelta(days=(last_weekday - day.weekday()) % 7)
    except OverflowError:
        return date.max


def iso_timestamp(value: datetime) -> str:
    """ISO-8601 for a stored timestamp, to the second; naive values are UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat(timespec="seconds")


class DailyDigestService:
    """
    Read-only digest builder for a single (user, date) pair.

    Every bucket and every summary count is its own query. The summary event
    counts deliberately skip the archived-project filter the event buckets
    apply.
    """

    def __init__(
        self,
        session: Session,
        user: User,
        target_date: Optional[date] = None,
        tz: Optional[tzinfo] = None,
        week_start: Optional[int] = None,
    ):
        self.session = session
        self.user = user
        self.tz = tz if tz is not None else settings.tz
        self.date = target_date or today_in(self.tz)
        self.week_start = settings.week_start_index if week_start is None else week_start
        self.week_end = end_of_week(self.date, self.week_start)

    def build(self) -> dict:
        """Assemble the digest dict."""
        logger.debug(f"Building daily digest for user {self.user.id} on {self.date.isoformat()}")
        return {
            "date": self.date.isoformat(),
            "todos": {
                "today": self.todays_todos(),
                "overdue": self.overdue_todos(),
                "tomorrow": self.tomorrows_todos(),
                "this_week": self.this_weeks_todos(),
            },
            "events": {
                "today": self.todays_events(),
                "this_week": self.this_weeks_events(),
            },
            "summary": self.summary(),
        }

    # Todos

    def todays_todos(self) -> list[dict]:
        return self._windowed_todos("today")

    def tomorrows_todos(self) -> list[dict]:
        return self._windowed_todos("tomorrow")

    def this_weeks_todos(self) -> list[dict]:
        return self._windowed_todos("this_week")

    def overdue_todos(self) -> list[dict]:
        stmt = (
            self._todo_query()
            .where(Todo.priority_window.not_in(FORWARD_PRIORITY_WINDOWS))
            .order_by(Todo.created_at.desc(), Todo.id.desc())
        )
        return [format_todo(todo) for todo in self.session.scalars(stmt)]

    def _windowed_todos(self, window: str) -> list[dict]:
        stmt = (
            self._todo_query()
            .where(Todo.priority_window == window)
            .order_by(Todo.position, Todo.id)
        )
        return [format_todo(todo) for todo in self.session.scalars(stmt)]

    def _todo_query(self) -> Select:
        return (
            select(Todo)
            .options(selectinload(Todo.milestone).selectinload(Milestone.project))
            .where(Todo.user_id == self.user.id, Todo.completed_at.is_(None))
        )

    # Events

    def todays_events(self) -> list[dict]:
        return self._visible_events(self.date, self.date)

    def this_weeks_events(self) -> list[dict]:
        return self._visible_events(self.date, self.week_end)

    def _visible_events(self, start: date, end: date) -> list[dict]:
        stmt = (
            select(Event)
            .outerjoin(Event.project)
            .options(selectinload(Event.project))
            .where(
                Event.user_id == self.user.id,
                or_(Event.project_id.is_(None), Project.archived_at.is_(None)),
            )
        )
        stmt = for_date_range(stmt, start, end, self.tz)
        return [format_event(event) for event in self.session.scalars(stmt)]

    # Summary

    def summary(self) -> dict:
        open_todos = select(func.count(Todo.id)).where(
            Todo.user_id == self.user.id,
            Todo.completed_at.is_(None),
        )
        events = select(func.count(Event.id)).where(Event.user_id == self.user.id)

        return {
            "todos_count": self.session.scalar(
                open_todos.where(Todo.priority_window == "today")
            ),
            "overdue_count": self.session.scalar(
                open_todos.where(Todo.priority_window.not_in(FORWARD_PRIORITY_WINDOWS))
            ),
            "events_today": self.session.scalar(
                events.where(Event.overlapping(self.date, self.date, self.tz))
            ),
            "events_this_week": self.session.scalar(
                events.where(Event.overlapping(self.date, end_of_week(self.date, self.week_start), self.tz))
            ),
        }


def format_todo(todo: Todo) -> dict:
    milestone = todo.milestone
    project = milestone.project if milestone is not None else None
    return {
        "id": todo.id,
        "title": todo.title,
        "priority_window": todo.priority_window,
        "position": todo.position,
        "created_at": iso_timestamp(todo.created_at),
        "milestone": format_milestone(milestone),
        "project": format_project(project),
    }


def format_event(event: Event) -> dict:
    return {
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "starts_at": iso_timestamp(event.starts_at),
        "ends_at": iso_timestamp(event.ends_at),
        "all_day": event.all_day,
        "event_type": event.event_type,
        "project": format_project(event.project),
    }


def format_milestone(milestone: Optional[Milestone]) -> Optional[dict]:
    if milestone is None:
        return None
    return {"id": milestone.id, "name": milestone.name}


def format_project(project: Optional[Project]) -> Optional[dict]:
    if project is None:
        return None
    return {"id": project.id, "name": project.name}


def build_daily_digest(session: Session, user: User, target_date: Optional[date] = None) -> dict:
    """Convenience wrapper around DailyDigestService."""
    return DailyDigestService(session, user, target_date).build()
