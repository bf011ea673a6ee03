"""
Journey Store -- Growth Engine
==============================

Process-wide visitor journey state and the derived BehaviorSnapshot view
consumed by the scorer, the selectors and the trigger monitor.

Features:
    - Write accessors for sections, tools, content, CTA clicks, scroll and time
    - Observer subscriptions: every mutation notifies subscribers synchronously
    - BehaviorSnapshot recomputed on demand (never persisted)
    - Device type from viewport width, time of day from the local hour
    - Return-visitor detection (previous visit older than 30 minutes)

Usage:
    from growth_engine.journey import JourneyStore

    store = JourneyStore(user_id="u1")
    unsubscribe = store.subscribe(lambda event, s: print(event))
    store.track_section_view("success-gap")
    store.update_scroll_depth(60)
    snapshot = store.snapshot()
    unsubscribe()
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

logger = logging.getLogger("journey")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MOBILE_MAX_WIDTH = 768
TABLET_MAX_WIDTH = 1024
DEFAULT_VIEWPORT_WIDTH = 1280
RETURN_VISIT_GAP = timedelta(minutes=30)

# Journey events passed to subscribers
EVENT_SECTION_VIEW = "section_view"
EVENT_TOOL_USAGE = "tool_usage"
EVENT_CONTENT = "content_consumption"
EVENT_CTA_CLICK = "cta_click"
EVENT_SCROLL = "scroll"
EVENT_TIME = "time_on_page"
EVENT_VIEWPORT = "viewport"
EVENT_PAGE = "page"
EVENT_SESSION = "session_start"


def _now_utc() -> datetime:
    """Return the current time in UTC, timezone-aware."""
    return datetime.now(timezone.utc)


# ===========================================================================
# Enums
# ===========================================================================


class DeviceType(str, Enum):
    """Device class derived from viewport width."""
    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"


class TimeOfDay(str, Enum):
    """Coarse time-of-day bucket from the visitor's local hour."""
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


def device_type_for_width(width: int) -> DeviceType:
    """Classify a viewport width in CSS pixels."""
    if width < MOBILE_MAX_WIDTH:
        return DeviceType.MOBILE
    if width < TABLET_MAX_WIDTH:
        return DeviceType.TABLET
    return DeviceType.DESKTOP


def time_of_day_for_hour(hour: int) -> TimeOfDay:
    """Bucket an hour (0-23): 6-11 morning, 12-16 afternoon, 17-20 evening."""
    if 6 <= hour < 12:
        return TimeOfDay.MORNING
    if 12 <= hour < 17:
        return TimeOfDay.AFTERNOON
    if 17 <= hour < 21:
        return TimeOfDay.EVENING
    return TimeOfDay.NIGHT


# ===========================================================================
# BehaviorSnapshot
# ===========================================================================


@dataclass
class BehaviorSnapshot:
    """Derived, read-only view of the current session's behavior."""
    session_duration_seconds: int = 0
    scroll_depth_percent: float = 0.0
    sections_viewed: Set[str] = field(default_factory=set)
    tools_used: Set[str] = field(default_factory=set)
    content_consumed: Set[str] = field(default_factory=set)
    ctas_clicked: List[str] = field(default_factory=list)
    device_type: DeviceType = DeviceType.DESKTOP
    time_of_day: TimeOfDay = TimeOfDay.MORNING
    return_visitor: bool = False

    def __post_init__(self) -> None:
        self.session_duration_seconds = max(0, int(self.session_duration_seconds))
        self.scroll_depth_percent = min(100.0, max(0.0, float(self.scroll_depth_percent)))
        self.sections_viewed = set(self.sections_viewed)
        self.tools_used = set(self.tools_used)
        self.content_consumed = set(self.content_consumed)
        self.ctas_clicked = list(self.ctas_clicked)
        if not isinstance(self.device_type, DeviceType):
            self.device_type = DeviceType(self.device_type)
        if not isinstance(self.time_of_day, TimeOfDay):
            self.time_of_day = TimeOfDay(self.time_of_day)

    @property
    def interaction_count(self) -> int:
        """CTA clicks plus distinct sections viewed."""
        return len(self.ctas_clicked) + len(self.sections_viewed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_duration_seconds": self.session_duration_seconds,
            "scroll_depth_percent": self.scroll_depth_percent,
            "sections_viewed": sorted(self.sections_viewed),
            "tools_used": sorted(self.tools_used),
            "content_consumed": sorted(self.content_consumed),
            "ctas_clicked": list(self.ctas_clicked),
            "device_type": self.device_type.value,
            "time_of_day": self.time_of_day.value,
            "return_visitor": self.return_visitor,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> BehaviorSnapshot:
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})


# ===========================================================================
# JourneyStore
# ===========================================================================

Subscriber = Callable[[str, "JourneyStore"], None]


class JourneyStore:
    """
    Mutable journey state for one visitor session.

    Every write accessor notifies subscribers after the state change, which
    is what drives event-driven recomputation in the CTA service and the
    scroll clock of the behavioral trigger monitor.
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        previous_visit_at: Optional[datetime] = None,
        viewport_width: int = DEFAULT_VIEWPORT_WIDTH,
        page: str = "/",
        now: Optional[datetime] = None,
    ) -> None:
        self.user_id = user_id
        self.session_id = session_id or uuid.uuid4().hex[:16]
        self.session_started_at = now or _now_utc()
        self.previous_visit_at = previous_visit_at
        self.viewport_width = viewport_width
        self.page = page
        self.sections_viewed: List[str] = []
        self.tools_used: List[str] = []
        self.tools_completed: List[str] = []
        self.content_consumed: List[str] = []
        self.ctas_clicked: List[str] = []
        self.scroll_depth: float = 0.0
        self.time_on_page: int = 0
        self._subscribers: List[Subscriber] = []

    # -------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback* for journey changes; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _notify(self, event: str) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event, self)
            except Exception as exc:
                logger.warning("Journey subscriber failed on %s: %s", event, exc)

    # -------------------------------------------------------------------
    # Write accessors
    # -------------------------------------------------------------------

    @staticmethod
    def _add_unique(items: List[str], value: str) -> bool:
        if value in items:
            return False
        items.append(value)
        return True

    def track_section_view(self, section_id: str) -> None:
        if self._add_unique(self.sections_viewed, section_id):
            self._notify(EVENT_SECTION_VIEW)

    def track_tool_usage(self, tool_id: str, completed: bool = False) -> None:
        changed = self._add_unique(self.tools_used, tool_id)
        if completed:
            changed = self._add_unique(self.tools_completed, tool_id) or changed
        if changed:
            self._notify(EVENT_TOOL_USAGE)

    def track_content_consumption(self, content_id: str) -> None:
        if self._add_unique(self.content_consumed, content_id):
            self._notify(EVENT_CONTENT)

    def track_cta_click(self, cta_id: str) -> None:
        self.ctas_clicked.append(cta_id)
        self._notify(EVENT_CTA_CLICK)

    def update_scroll_depth(self, percent: float) -> None:
        """Record scroll depth; only a deeper scroll changes state."""
        percent = min(100.0, max(0.0, float(percent)))
        if percent > self.scroll_depth:
            self.scroll_depth = percent
            self._notify(EVENT_SCROLL)

    def update_time_on_page(self, seconds: int) -> None:
        seconds = max(0, int(seconds))
        if seconds != self.time_on_page:
            self.time_on_page = seconds
            self._notify(EVENT_TIME)

    def set_viewport(self, width: int) -> None:
        if width != self.viewport_width:
            self.viewport_width = width
            self._notify(EVENT_VIEWPORT)

    def set_page(self, page: str) -> None:
        if page != self.page:
            self.page = page
            self.scroll_depth = 0.0
            self.time_on_page = 0
            self._notify(EVENT_PAGE)

    def start_session(self, now: Optional[datetime] = None) -> None:
        """Begin a new session; the previous session start becomes the last visit."""
        self.previous_visit_at = self.session_started_at
        self.session_started_at = now or _now_utc()
        self.session_id = uuid.uuid4().hex[:16]
        self.sections_viewed = []
        self.tools_used = []
        self.tools_completed = []
        self.content_consumed = []
        self.ctas_clicked = []
        self.scroll_depth = 0.0
        self.time_on_page = 0
        self._notify(EVENT_SESSION)

    # -------------------------------------------------------------------
    # Read accessors
    # -------------------------------------------------------------------

    @property
    def is_return_visitor(self) -> bool:
        if self.previous_visit_at is None:
            return False
        return self.session_started_at - self.previous_visit_at > RETURN_VISIT_GAP

    def session_duration(self, now: Optional[datetime] = None) -> int:
        """Seconds since session start, never less than the reported time on page."""
        elapsed = ((now or _now_utc()) - self.session_started_at).total_seconds()
        return max(int(elapsed), self.time_on_page, 0)

    def snapshot(self, now: Optional[datetime] = None) -> BehaviorSnapshot:
        """Recompute the BehaviorSnapshot for the current state."""
        now = now or _now_utc()
        local_hour = now.astimezone().hour
        return BehaviorSnapshot(
            session_duration_seconds=self.session_duration(now),
            scroll_depth_percent=self.scroll_depth,
            sections_viewed=set(self.sections_viewed),
            tools_used=set(self.tools_used),
            content_consumed=set(self.content_consumed),
            ctas_clicked=list(self.ctas_clicked),
            device_type=device_type_for_width(self.viewport_width),
            time_of_day=time_of_day_for_hour(local_hour),
            return_visitor=self.is_return_visitor,
        )

    def tool_completed(self, tool_ids: Optional[Iterable[str]] = None) -> bool:
        """True if any (or any of *tool_ids*) tool has been completed."""
        if tool_ids is None:
            return bool(self.tools_completed)
        return any(t in self.tools_completed for t in tool_ids)
