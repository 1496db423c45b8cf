# tests/conftest.py
"""
Pytest configuration and shared fixtures for the Llave engine tests.

Run:
    pytest tests/ -v
    pytest tests/test_weekly_recompute.py -v
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import Config
from models import Agent, Base
from llave_system.events.event_bus import eventBus
from llave_system.types import AgentRecord, CampaignRecord
from llave_system.utils.time_machine import timeMachine

# =============================================================================
# INITIALIZE CONFIG
# =============================================================================

Config.initialize_from_env()
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

# =============================================================================
# CONSTANTS
# =============================================================================

TIMEZONE = "America/Mexico_City"

# Evaluation Wednesdays (local dates); 00:00 local is 06:00 UTC
WEEK_0 = date(2024, 11, 6)
WEEK_1 = date(2024, 11, 13)
WEEK_2 = date(2024, 11, 20)
WEEK_3 = date(2024, 11, 27)

# Friday inside the week opened on 2024-12-11
NOW = datetime(2024, 12, 13, 18, 0, tzinfo=timezone.utc)


# =============================================================================
# TIME FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def virtual_time():
    """Pin the clock and evaluation timezone for every test."""
    timeMachine.setEvaluationTimezone(TIMEZONE)
    timeMachine.setTime(NOW)
    yield timeMachine
    timeMachine.resetToRealTime()
    timeMachine.setEvaluationTimezone(None)


@pytest.fixture(autouse=True)
def clean_event_bus():
    """Drop subscriptions made by a test."""
    yield eventBus
    eventBus.clear()


@pytest.fixture
def week_start():
    """UTC start of an evaluation week, naive like the store keeps it."""

    def _start(weekDate: date) -> datetime:
        start, _ = timeMachine.weekBounds(weekDate)
        return start.replace(tzinfo=None)

    return _start


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Create database session for each test."""
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def add_agents(session):
    """
    Insert agents from (agentID, parentID, sales30d[, name]) tuples.

    Returns dict agentID -> Agent.
    """

    def _add(rows):
        created = {}
        for row in rows:
            agent_id, parent_id, sales = row[:3]
            name = row[3] if len(row) > 3 else f"Agent {agent_id}"
            agent = Agent(
                agentID=agent_id,
                parentID=parent_id,
                name=name,
                sales30d=Decimal(str(sales)),
            )
            session.add(agent)
            created[agent_id] = agent
        session.flush()
        return created

    return _add


# =============================================================================
# RECORD FIXTURES
# =============================================================================

@pytest.fixture
def records():
    """Build AgentRecords from (id, parentId, sales30d) tuples."""

    def _build(rows):
        return [
            AgentRecord(agentId=agent_id, parentId=parent_id, sales30d=Decimal(str(sales)), name=str(agent_id))
            for agent_id, parent_id, sales in rows
        ]

    return _build


@pytest.fixture
def campaign_record(week_start):
    """Build a CampaignRecord created at the start of a given week."""

    def _build(campaignId="c1", weekDate=WEEK_0, chainPosition=1, parentCampaignId=None,
               childCampaignId=None, status="ACTIVE"):
        return CampaignRecord(
            campaignId=campaignId,
            ownerId="owner",
            chainPosition=chainPosition,
            createdAt=week_start(weekDate),
            parentCampaignId=parentCampaignId,
            childCampaignId=childCampaignId,
            status=status,
        )

    return _build
