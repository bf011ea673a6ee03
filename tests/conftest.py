"""
Shared fixtures for the Growth Engine test suite.

Provides temp directories, journeys, engines and reusable aiohttp mocks
so that all tests run WITHOUT any external services.
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

# Point every module-level data directory at a scratch location BEFORE any
# growth_engine module is imported.
os.environ.setdefault("GROWTH_ENGINE_DATA_DIR", tempfile.mkdtemp(prefix="growth-engine-tests-"))
os.environ["GROWTH_TRACKING_URL"] = ""

import pytest


# ---------------------------------------------------------------------------
# Directory fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_data_dir(tmp_path):
    """Create temp data directories matching the package layout."""
    for d in ["ab_testing", "psychological_triggers"]:
        (tmp_path / d).mkdir(parents=True, exist_ok=True)
    return tmp_path


# ---------------------------------------------------------------------------
# Time fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def now():
    """A fixed, timezone-aware reference instant."""
    return datetime(2026, 3, 10, 15, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Journey fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def journey(now):
    """A fresh desktop journey that started ten minutes before ``now``."""
    from growth_engine.journey import JourneyStore

    return JourneyStore(user_id="user-1", now=now - timedelta(minutes=10))


@pytest.fixture
def engaged_journey(journey):
    """
    Journey scoring 27 with an action-taker pattern.

    600s (10) + 100% scroll (3.75) + 3 sections/2 clicks (6.5)
    + 1 guide (2.4) + 3 tools (4.8) = 27.45 -> 27
    """
    for section in ("success-gap", "change-paradox", "vision-void"):
        journey.track_section_view(section)
    journey.track_cta_click("see-your-score")
    journey.track_cta_click("calculate-now")
    journey.track_content_consumption("habits-guide")
    for tool in ("potential-assessment", "success-factor-calculator", "habit-installer-21-day"):
        journey.track_tool_usage(tool)
    journey.update_scroll_depth(100)
    return journey


@pytest.fixture
def engine():
    from growth_engine.engagement import EngagementEngine

    return EngagementEngine()


# ---------------------------------------------------------------------------
# HTTP mock fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_aiohttp_response():
    """Create a mock aiohttp response factory."""

    def _make(status=200, json_data=None, text="", headers=None):
        resp = AsyncMock()
        resp.status = status
        resp.json = AsyncMock(return_value=json_data or {})
        resp.text = AsyncMock(return_value=text)
        resp.headers = headers or {"Content-Type": "application/json"}
        resp.__aenter__ = AsyncMock(return_value=resp)
        resp.__aexit__ = AsyncMock(return_value=False)
        return resp

    return _make


@pytest.fixture
def mock_aiohttp_session(mock_aiohttp_response):
    """Create a mock aiohttp ClientSession."""
    session = AsyncMock()
    default_resp = mock_aiohttp_response(200, {"ok": True})
    session.get = MagicMock(return_value=default_resp)
    session.post = MagicMock(return_value=default_resp)
    session.close = AsyncMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    return session
