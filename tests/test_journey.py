"""Test journey — Growth Engine."""
from __future__ import annotations

from datetime import timedelta

import pytest

try:
    from growth_engine.journey import (
        EVENT_CTA_CLICK,
        EVENT_PAGE,
        EVENT_SCROLL,
        EVENT_SECTION_VIEW,
        EVENT_SESSION,
        BehaviorSnapshot,
        DeviceType,
        JourneyStore,
        TimeOfDay,
        device_type_for_width,
        time_of_day_for_hour,
    )
    HAS_MODULE = True
except ImportError:
    HAS_MODULE = False

pytestmark = pytest.mark.skipif(
    not HAS_MODULE, reason="journey module not available"
)


# ===================================================================
# Derivations
# ===================================================================

class TestDeviceType:
    """Viewport width buckets."""

    @pytest.mark.parametrize("width,expected", [
        (375, DeviceType.MOBILE),
        (767, DeviceType.MOBILE),
        (768, DeviceType.TABLET),
        (1023, DeviceType.TABLET),
        (1024, DeviceType.DESKTOP),
        (1920, DeviceType.DESKTOP),
    ] if HAS_MODULE else [])
    def test_width_buckets(self, width, expected):
        assert device_type_for_width(width) == expected


class TestTimeOfDay:
    """Local hour buckets."""

    @pytest.mark.parametrize("hour,expected", [
        (6, TimeOfDay.MORNING),
        (11, TimeOfDay.MORNING),
        (12, TimeOfDay.AFTERNOON),
        (16, TimeOfDay.AFTERNOON),
        (17, TimeOfDay.EVENING),
        (20, TimeOfDay.EVENING),
        (21, TimeOfDay.NIGHT),
        (3, TimeOfDay.NIGHT),
    ] if HAS_MODULE else [])
    def test_hour_buckets(self, hour, expected):
        assert time_of_day_for_hour(hour) == expected


# ===================================================================
# BehaviorSnapshot
# ===================================================================

class TestBehaviorSnapshot:
    """Snapshot normalisation and serialisation."""

    def test_defaults(self):
        s = BehaviorSnapshot()
        assert s.session_duration_seconds == 0
        assert s.device_type == DeviceType.DESKTOP
        assert s.interaction_count == 0

    def test_scroll_is_clamped(self):
        assert BehaviorSnapshot(scroll_depth_percent=140).scroll_depth_percent == 100.0
        assert BehaviorSnapshot(scroll_depth_percent=-5).scroll_depth_percent == 0.0

    def test_negative_duration_clamped(self):
        assert BehaviorSnapshot(session_duration_seconds=-30).session_duration_seconds == 0

    def test_string_enums_coerced(self):
        s = BehaviorSnapshot(device_type="mobile", time_of_day="evening")
        assert s.device_type == DeviceType.MOBILE
        assert s.time_of_day == TimeOfDay.EVENING

    def test_invalid_device_raises(self):
        with pytest.raises(ValueError):
            BehaviorSnapshot(device_type="smartwatch")

    def test_interaction_count(self):
        s = BehaviorSnapshot(sections_viewed={"a", "b"}, ctas_clicked=["x", "x", "y"])
        assert s.interaction_count == 5

    def test_to_dict_sorts_sets(self):
        s = BehaviorSnapshot(tools_used={"b", "a"})
        d = s.to_dict()
        assert d["tools_used"] == ["a", "b"]
        assert d["device_type"] == "desktop"

    def test_from_dict_ignores_unknown(self):
        s = BehaviorSnapshot.from_dict({"scroll_depth_percent": 40, "bogus": 1})
        assert s.scroll_depth_percent == 40.0


# ===================================================================
# JourneyStore
# ===================================================================

class TestJourneyStore:
    """Write accessors, subscriptions and derived reads."""

    def test_section_views_are_unique(self, journey):
        journey.track_section_view("success-gap")
        journey.track_section_view("success-gap")
        assert journey.sections_viewed == ["success-gap"]

    def test_cta_clicks_accumulate(self, journey):
        journey.track_cta_click("see-your-score")
        journey.track_cta_click("see-your-score")
        assert journey.ctas_clicked == ["see-your-score", "see-your-score"]

    def test_scroll_only_increases(self, journey):
        journey.update_scroll_depth(60)
        journey.update_scroll_depth(30)
        assert journey.scroll_depth == 60.0

    def test_tool_completion(self, journey):
        journey.track_tool_usage("potential-assessment")
        assert not journey.tool_completed()
        journey.track_tool_usage("potential-assessment", completed=True)
        assert journey.tool_completed()
        assert journey.tool_completed(["potential-assessment"])
        assert not journey.tool_completed(["other-tool"])
        assert journey.tools_used == ["potential-assessment"]

    def test_subscribers_notified(self, journey):
        events = []
        journey.subscribe(lambda event, store: events.append(event))
        journey.track_section_view("success-gap")
        journey.track_cta_click("calculate-now")
        journey.update_scroll_depth(50)
        assert events == [EVENT_SECTION_VIEW, EVENT_CTA_CLICK, EVENT_SCROLL]

    def test_no_notification_without_change(self, journey):
        events = []
        journey.subscribe(lambda event, store: events.append(event))
        journey.update_scroll_depth(0)
        journey.set_page("/")
        assert events == []

    def test_unsubscribe(self, journey):
        events = []
        unsubscribe = journey.subscribe(lambda event, store: events.append(event))
        unsubscribe()
        journey.track_section_view("success-gap")
        assert events == []

    def test_failing_subscriber_does_not_break_others(self, journey):
        events = []

        def _boom(event, store):
            raise RuntimeError("boom")

        journey.subscribe(_boom)
        journey.subscribe(lambda event, store: events.append(event))
        journey.track_section_view("success-gap")
        assert events == [EVENT_SECTION_VIEW]

    def test_set_page_resets_scroll(self, journey):
        journey.update_scroll_depth(80)
        events = []
        journey.subscribe(lambda event, store: events.append(event))
        journey.set_page("/webinar")
        assert journey.page == "/webinar"
        assert journey.scroll_depth == 0.0
        assert events == [EVENT_PAGE]

    def test_session_duration(self, journey, now):
        assert journey.session_duration(now) == 600

    def test_session_duration_respects_time_on_page(self, now):
        store = JourneyStore(now=now)
        store.update_time_on_page(90)
        assert store.session_duration(now) == 90

    def test_snapshot(self, journey, now):
        journey.track_section_view("success-gap")
        journey.track_content_consumption("habits-guide")
        journey.set_viewport(400)
        snap = journey.snapshot(now)
        assert snap.session_duration_seconds == 600
        assert snap.sections_viewed == {"success-gap"}
        assert snap.content_consumed == {"habits-guide"}
        assert snap.device_type == DeviceType.MOBILE
        assert snap.return_visitor is False


class TestReturnVisitor:
    """Previous visit more than 30 minutes before session start."""

    def test_first_visit(self, now):
        assert not JourneyStore(now=now).is_return_visitor

    def test_recent_previous_visit(self, now):
        store = JourneyStore(previous_visit_at=now - timedelta(minutes=10), now=now)
        assert not store.is_return_visitor

    def test_old_previous_visit(self, now):
        store = JourneyStore(previous_visit_at=now - timedelta(days=1), now=now)
        assert store.is_return_visitor
        assert store.snapshot(now).return_visitor is True

    def test_start_session_resets_state(self, journey, now):
        journey.track_section_view("success-gap")
        journey.update_scroll_depth(80)
        old_session = journey.session_id
        events = []
        journey.subscribe(lambda event, store: events.append(event))

        journey.start_session(now + timedelta(hours=2))

        assert journey.session_id != old_session
        assert journey.sections_viewed == []
        assert journey.scroll_depth == 0.0
        assert journey.is_return_visitor
        assert events == [EVENT_SESSION]
