"""
Tracking Sink -- Growth Engine
==============================

Fire-and-forget analytics reporting. Every event is kept in a bounded
in-memory buffer and, when an endpoint is configured, POSTed as JSON with
aiohttp. Failures are caught and logged; nothing is retried and nothing is
ever raised to the caller.

Configuration:
    GROWTH_TRACKING_URL      -- collector endpoint (unset = buffer only)
    GROWTH_TRACKING_TIMEOUT  -- per-request timeout in seconds (default 5)

Usage:
    from growth_engine.tracking import TrackingSink

    sink = TrackingSink()
    await sink.track("cta_click", {"cta_id": "see-your-score"}, user_id="u1")
    sink.emit("section_view", {"section": "success-gap"})   # background task
    await sink.close()
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Set

logger = logging.getLogger("tracking")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

TRACKING_URL = os.getenv("GROWTH_TRACKING_URL", "")
TRACKING_TIMEOUT = float(os.getenv("GROWTH_TRACKING_TIMEOUT", "5"))
MAX_BUFFERED_EVENTS = 1000

# Event types
EVENT_INTERACTION = "interaction"
EVENT_AB_IMPRESSION = "ab_test_impression"
EVENT_AB_CLICK = "ab_test_click"
EVENT_AB_CONVERSION = "ab_test_conversion"
EVENT_AB_ASSIGNMENT = "ab_test_participation"
EVENT_BEHAVIORAL_TRIGGER = "behavioral_trigger"
EVENT_PSYCH_TRIGGER_DISPLAY = "psychological_trigger_display"
EVENT_PSYCH_TRIGGER_INTERACTION = "psychological_trigger_interaction"
EVENT_CONTENT_ENGAGEMENT = "content_engagement"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _get_session(timeout: float):
    """
    Create an aiohttp ClientSession.  Imported lazily so the module can be
    loaded even when aiohttp is not installed (e.g. buffer-only usage).
    """
    import aiohttp
    return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout))


class TrackingSink:
    """Collects journey/A-B/trigger events; delivery is best-effort."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout: float = TRACKING_TIMEOUT,
        max_buffer: int = MAX_BUFFERED_EVENTS,
    ) -> None:
        self.endpoint = TRACKING_URL if endpoint is None else endpoint
        self.timeout = timeout
        self.events: Deque[Dict[str, Any]] = deque(maxlen=max_buffer)
        self.sent = 0
        self.failed = 0
        self._tasks: Set[asyncio.Task] = set()

    def _build_event(
        self,
        event_type: str,
        data: Optional[Dict[str, Any]],
        user_id: Optional[str],
        session_id: Optional[str],
    ) -> Dict[str, Any]:
        return {
            "event_id": uuid.uuid4().hex[:16],
            "event_type": event_type,
            "event_data": dict(data or {}),
            "user_id": user_id,
            "session_id": session_id,
            "timestamp": _now_iso(),
        }

    async def track(
        self,
        event_type: str,
        data: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> bool:
        """Record an event and deliver it. Returns True only on a 2xx delivery."""
        event = self._build_event(event_type, data, user_id, session_id)
        self.events.append(event)
        if not self.endpoint:
            logger.debug("Tracked %s (buffer only)", event_type)
            return False
        return await self._deliver(event)

    async def _deliver(self, event: Dict[str, Any]) -> bool:
        import aiohttp

        try:
            session = await _get_session(self.timeout)
            async with session:
                async with session.post(self.endpoint, json=event) as resp:
                    if 200 <= resp.status < 300:
                        self.sent += 1
                        return True
                    self.failed += 1
                    logger.warning(
                        "Tracking endpoint returned HTTP %d for %s",
                        resp.status, event["event_type"],
                    )
                    return False
        except asyncio.TimeoutError:
            self.failed += 1
            logger.warning("Tracking request timed out after %.1fs", self.timeout)
        except aiohttp.ClientError as exc:
            self.failed += 1
            logger.warning("Tracking connection error: %s", exc)
        except Exception as exc:
            self.failed += 1
            logger.error("Unexpected tracking error: %s", exc)
        return False

    def emit(
        self,
        event_type: str,
        data: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> None:
        """
        Schedule :meth:`track` without awaiting it.

        Outside a running event loop the event is only buffered.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.events.append(self._build_event(event_type, data, user_id, session_id))
            return
        task = loop.create_task(self.track(event_type, data, user_id, session_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def flush(self) -> None:
        """Wait for scheduled deliveries to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel outstanding deliveries."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------

    def recent(self, event_type: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        events = [e for e in self.events if event_type is None or e["event_type"] == event_type]
        return events[-limit:]

    def stats(self) -> Dict[str, Any]:
        by_type: Dict[str, int] = {}
        for e in self.events:
            by_type[e["event_type"]] = by_type.get(e["event_type"], 0) + 1
        return {
            "endpoint": self.endpoint or None,
            "buffered": len(self.events),
            "sent": self.sent,
            "failed": self.failed,
            "pending": len(self._tasks),
            "by_type": by_type,
        }
