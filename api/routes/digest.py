"""
Digest API endpoints.
"""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from api.dependencies import get_current_user
from api.models import User
from api.services.daily_digest import DailyDigestService, generated_at, today_in
from api.services.database import get_db
from config.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["digest"])


class ProjectRef(BaseModel):
    id: int
    name: str


class MilestoneRef(BaseModel):
    id: int
    name: str


class TodoItem(BaseModel):
    """A todo as it appears in a digest bucket."""
    id: int
    title: str
    priority_window: str
    position: int
    created_at: str
    milestone: Optional[MilestoneRef] = None
    project: Optional[ProjectRef] = None


class EventItem(BaseModel):
    """An event as it appears in a digest bucket."""
    id: int
    title: str
    description: Optional[str] = None
    starts_at: str
    ends_at: str
    all_day: bool
    event_type: str
    project: Optional[ProjectRef] = None


class TodoBuckets(BaseModel):
    today: list[TodoItem]
    overdue: list[TodoItem]
    tomorrow: list[TodoItem]
    this_week: list[TodoItem]


class EventBuckets(BaseModel):
    today: list[EventItem]
    this_week: list[EventItem]


class DigestSummary(BaseModel):
    todos_count: int
    overdue_count: int
    events_today: int
    events_this_week: int


class DailyDigestResponse(BaseModel):
    """Response for the daily digest endpoint."""
    date: str
    todos: TodoBuckets
    events: EventBuckets
    summary: DigestSummary
    generated_at: str


class ErrorResponse(BaseModel):
    error: str


@router.get(
    "/daily_digest",
    response_model=DailyDigestResponse,
    responses={400: {"model": ErrorResponse, "description": "Malformed date"}},
)
def get_daily_digest(
    date_param: Optional[str] = Query(default=None, alias="date", description="Digest date (YYYY-MM-DD), default today"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    **Get the daily digest** for the current user.

    Open todos bucketed by priority window (today, overdue, tomorrow,
    this week), events for the day and the rest of its week, and counts.
    """
    if date_param is not None:
        try:
            target_date = date.fromisoformat(date_param)
        except ValueError:
            logger.info(f"Rejected digest date {date_param!r} for user {current_user.id}")
            return JSONResponse(status_code=400, content={"error": "Invalid date format"})
    else:
        target_date = today_in(settings.tz)

    digest = DailyDigestService(db, current_user, target_date).build()
    digest["generated_at"] = generated_at(settings.tz)
    return digest
