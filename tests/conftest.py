"""
Pytest configuration and shared fixtures for daily digest tests.

Test Categories:
- unit: Fast tests against an in-memory SQLite database
- integration: Tests requiring a running server

Run categories:
- pytest -m unit              # Fast unit tests only
- pytest -m "not integration" # Skip integration tests
- pytest                      # All tests
"""
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.models import Base, Event, Milestone, Project, Todo, User


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (server required)")


@pytest.fixture
def engine():
    """In-memory SQLite engine shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def user(session):
    user = User(name="Ada", email="ada@example.com")
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def other_user(session):
    user = User(name="Grace", email="grace@example.com")
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def make_todo(session):
    """Factory for todos; commits immediately."""
    def _make(user, title, priority_window="today", position=0, completed_at=None,
              created_at=None, milestone=None):
        todo = Todo(
            user_id=user.id,
            title=title,
            priority_window=priority_window,
            position=position,
            completed_at=completed_at,
            created_at=created_at or datetime(2024, 3, 1, 9, 0),
            milestone=milestone,
        )
        session.add(todo)
        session.commit()
        return todo
    return _make


@pytest.fixture
def make_event(session):
    """Factory for events; commits immediately."""
    def _make(user, title, starts_at, ends_at, project=None, all_day=False,
              event_type="meeting", description=None):
        event = Event(
            user_id=user.id,
            title=title,
            description=description,
            starts_at=starts_at,
            ends_at=ends_at,
            all_day=all_day,
            event_type=event_type,
            project=project,
        )
        session.add(event)
        session.commit()
        return event
    return _make


@pytest.fixture
def make_project(session):
    def _make(user, name, archived_at=None):
        project = Project(user_id=user.id, name=name, archived_at=archived_at)
        session.add(project)
        session.commit()
        return project
    return _make


@pytest.fixture
def make_milestone(session):
    def _make(name, project=None):
        milestone = Milestone(name=name, project=project)
        session.add(milestone)
        session.commit()
        return milestone
    return _make
