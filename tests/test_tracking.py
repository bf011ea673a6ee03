"""Test tracking — Growth Engine."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

try:
    from growth_engine.tracking import EVENT_INTERACTION, TrackingSink
    HAS_MODULE = True
except ImportError:
    HAS_MODULE = False

pytestmark = pytest.mark.skipif(
    not HAS_MODULE, reason="tracking module not available"
)

ENDPOINT = "https://collector.example.com/events"


def _patch_session(session):
    return patch("growth_engine.tracking._get_session", AsyncMock(return_value=session))


# ===================================================================
# Buffer-only mode
# ===================================================================

class TestBufferOnly:

    @pytest.mark.asyncio
    async def test_no_endpoint_returns_false(self):
        sink = TrackingSink(endpoint="")
        assert await sink.track(EVENT_INTERACTION, {"cta_id": "x"}, user_id="u1") is False
        event = sink.recent()[0]
        assert event["event_type"] == EVENT_INTERACTION
        assert event["event_data"] == {"cta_id": "x"}
        assert event["user_id"] == "u1"
        assert sink.stats()["endpoint"] is None

    def test_emit_without_loop_buffers(self):
        sink = TrackingSink(endpoint=ENDPOINT)
        sink.emit("section_view", {"section": "success-gap"})
        assert sink.stats()["buffered"] == 1
        assert sink.stats()["pending"] == 0
        assert sink.sent == 0

    def test_buffer_is_bounded(self):
        sink = TrackingSink(endpoint="", max_buffer=3)
        for i in range(5):
            sink.emit("e", {"i": i})
        assert [e["event_data"]["i"] for e in sink.recent()] == [2, 3, 4]

    def test_recent_filters_by_type(self):
        sink = TrackingSink(endpoint="")
        sink.emit("a")
        sink.emit("b")
        sink.emit("a")
        assert len(sink.recent("a")) == 2
        assert len(sink.recent("a", limit=1)) == 1
        assert sink.stats()["by_type"] == {"a": 2, "b": 1}


# ===================================================================
# Delivery
# ===================================================================

class TestDelivery:

    @pytest.mark.asyncio
    async def test_success(self, mock_aiohttp_session):
        sink = TrackingSink(endpoint=ENDPOINT)
        with _patch_session(mock_aiohttp_session):
            assert await sink.track("cta_click", {"cta_id": "see-your-score"}) is True
        assert sink.sent == 1
        url = mock_aiohttp_session.post.call_args[0][0]
        payload = mock_aiohttp_session.post.call_args[1]["json"]
        assert url == ENDPOINT
        assert payload["event_data"] == {"cta_id": "see-your-score"}

    @pytest.mark.asyncio
    async def test_http_error(self, mock_aiohttp_session, mock_aiohttp_response):
        mock_aiohttp_session.post = MagicMock(return_value=mock_aiohttp_response(500))
        sink = TrackingSink(endpoint=ENDPOINT)
        with _patch_session(mock_aiohttp_session):
            assert await sink.track("cta_click") is False
        assert sink.failed == 1
        assert sink.sent == 0
        assert len(sink.recent()) == 1

    @pytest.mark.asyncio
    async def test_timeout_swallowed(self, mock_aiohttp_session):
        mock_aiohttp_session.post = MagicMock(side_effect=asyncio.TimeoutError())
        sink = TrackingSink(endpoint=ENDPOINT)
        with _patch_session(mock_aiohttp_session):
            assert await sink.track("cta_click") is False
        assert sink.failed == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_swallowed(self, mock_aiohttp_session):
        mock_aiohttp_session.post = MagicMock(side_effect=RuntimeError("boom"))
        sink = TrackingSink(endpoint=ENDPOINT)
        with _patch_session(mock_aiohttp_session):
            assert await sink.track("cta_click") is False
        assert sink.failed == 1

    @pytest.mark.asyncio
    async def test_emit_in_loop_then_flush(self, mock_aiohttp_session):
        sink = TrackingSink(endpoint=ENDPOINT)
        with _patch_session(mock_aiohttp_session):
            sink.emit("a")
            sink.emit("b")
            assert sink.stats()["pending"] == 2
            await sink.flush()
        assert sink.sent == 2
        assert sink.stats()["pending"] == 0

    @pytest.mark.asyncio
    async def test_close_cancels_pending(self):
        sink = TrackingSink(endpoint=ENDPOINT)

        async def _hang(*args, **kwargs):
            await asyncio.sleep(10)

        with patch("growth_engine.tracking._get_session", _hang):
            sink.emit("a")
            await asyncio.sleep(0)
            await sink.close()
        assert sink.stats()["pending"] == 0
        assert sink.sent == 0
