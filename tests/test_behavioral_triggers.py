"""Test behavioral_triggers — Growth Engine."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

try:
    from growth_engine.behavioral_triggers import (
        ActionType,
        BehavioralTriggerMonitor,
        BehaviorTrigger,
        Presenter,
        TriggerAction,
        TriggerType,
        default_triggers,
        get_commitment_escalation,
    )
    from growth_engine.catalog import CommitmentLevel
    from growth_engine.engagement import EngagementLevel
    from growth_engine.journey import JourneyStore
    from growth_engine.tracking import EVENT_BEHAVIORAL_TRIGGER, TrackingSink
    HAS_MODULE = True
except ImportError:
    HAS_MODULE = False

pytestmark = pytest.mark.skipif(
    not HAS_MODULE, reason="behavioral_triggers module not available"
)


def _action_trigger(trigger_id, delay, cooldown=0, max_per_session=5):
    return BehaviorTrigger(
        trigger_id=trigger_id,
        name=trigger_id,
        description="",
        trigger_type=TriggerType.ACTION_BASED,
        priority=1,
        conditions=[],
        actions=[TriggerAction(ActionType.MODAL, {"modal_id": trigger_id}, delay_seconds=delay)],
        cooldown_minutes=cooldown,
        max_triggers_per_session=max_per_session,
    )


# ===================================================================
# Definitions
# ===================================================================

class TestDefaults:

    def test_eight_triggers(self):
        triggers = default_triggers()
        assert len(triggers) == 8
        assert len({t.trigger_id for t in triggers}) == 8

    def test_fresh_copies(self):
        a = default_triggers()[0]
        a.trigger_count = 5
        assert default_triggers()[0].trigger_count == 0

    def test_to_dict(self):
        d = default_triggers()[0].to_dict()
        assert d["trigger_type"] == "exit-intent"
        assert d["conditions"][2]["value"] == ["explorer", "action-taker"]
        assert d["actions"][0]["type"] == "modal"
        assert d["last_triggered_at"] is None


class TestEscalation:

    @pytest.mark.parametrize("score,current,nxt,readiness", [
        (0, "micro", "midi", 0.0),
        (10, "micro", "midi", 20.0),
        (29, "micro", "midi", 58.0),
        (30, "midi", "macro", 0.0),
        (50, "midi", "macro", 50.0),
        (69, "midi", "macro", 97.5),
        (70, "macro", "macro", 100.0),
        (95, "macro", "macro", 100.0),
    ] if HAS_MODULE else [])
    def test_ladder(self, score, current, nxt, readiness):
        esc = get_commitment_escalation(EngagementLevel(score=score))
        assert esc.current_level.value == current
        assert esc.next_level.value == nxt
        assert esc.readiness_score == pytest.approx(readiness)

    def test_recommended_actions(self):
        esc = get_commitment_escalation(EngagementLevel(score=10))
        assert esc.next_level == CommitmentLevel.MIDI
        assert "Join our free webinar" in esc.recommended_actions
        assert "deep-engagement-escalation" in esc.escalation_triggers


# ===================================================================
# Exit intent
# ===================================================================

class TestExitIntent:

    @pytest.mark.asyncio
    async def test_burst_fires_once(self, engaged_journey, now):
        monitor = BehavioralTriggerMonitor(engaged_journey)
        results = [
            await monitor.on_mouse_leave(0, now + timedelta(milliseconds=200 * i))
            for i in range(5)
        ]
        assert results == [True, False, False, False, False]
        assert monitor.session_counts["exit-intent-capture"] == 1
        assert monitor.presenter.history[0]["kind"] == "modal"
        assert monitor.presenter.history[0]["modal_id"] == "exit-intent-capture"
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_cooldown_and_session_cap(self, engaged_journey, now):
        monitor = BehavioralTriggerMonitor(engaged_journey)
        assert await monitor.on_mouse_leave(0, now)
        assert not await monitor.on_mouse_leave(0, now + timedelta(seconds=6))
        assert await monitor.on_mouse_leave(0, now + timedelta(minutes=31))
        assert not await monitor.on_mouse_leave(0, now + timedelta(minutes=62))
        assert monitor.get_trigger("exit-intent-capture").trigger_count == 2
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_pointer_inside_viewport_ignored(self, engaged_journey, now):
        monitor = BehavioralTriggerMonitor(engaged_journey)
        assert not await monitor.on_mouse_leave(15, now)
        assert monitor.history == []
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_conditions_not_met(self, journey, now):
        monitor = BehavioralTriggerMonitor(journey)
        assert not await monitor.on_mouse_leave(0, now)
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_new_session_resets_counts(self, engaged_journey, now):
        monitor = BehavioralTriggerMonitor(engaged_journey)
        await monitor.on_mouse_leave(0, now)
        engaged_journey.start_session(now + timedelta(hours=1))
        assert monitor.session_counts == {}
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_reports_to_tracker(self, engaged_journey, now):
        sink = TrackingSink(endpoint="")
        monitor = BehavioralTriggerMonitor(engaged_journey, tracker=sink)
        await monitor.on_mouse_leave(0, now)
        await sink.flush()
        event = sink.recent(EVENT_BEHAVIORAL_TRIGGER)[0]
        assert event["event_data"]["trigger_id"] == "exit-intent-capture"
        assert event["user_id"] == "user-1"
        await monitor.stop()


# ===================================================================
# Clocks
# ===================================================================

class TestClocks:

    @pytest.mark.asyncio
    async def test_return_visitor_welcome(self, now):
        store = JourneyStore(
            user_id="u1",
            previous_visit_at=now - timedelta(days=2),
            now=now - timedelta(seconds=20),
        )
        monitor = BehavioralTriggerMonitor(store)
        assert await monitor.check_time_based(now) == ["return-visitor-welcome"]
        kinds = [h["kind"] for h in monitor.presenter.history]
        assert kinds == ["notification", "content-recommend"]
        assert monitor.presenter.history[1]["items"] == ["potential-assessment"]
        assert await monitor.check_time_based(now + timedelta(seconds=10)) == []
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_first_visit_not_welcomed(self, journey, now):
        monitor = BehavioralTriggerMonitor(journey)
        assert await monitor.check_time_based(now) == []
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_scroll_depth(self, now):
        store = JourneyStore(user_id="u1", now=now - timedelta(seconds=150))
        store.update_scroll_depth(80)
        monitor = BehavioralTriggerMonitor(store)
        assert await monitor.check_scroll_based(now) == ["scroll-depth-engagement"]
        assert monitor.presenter.history[0]["config"]["action"] == "open-assessment"
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_engagement_based_quiet_for_moderate_journey(self, engaged_journey, now):
        monitor = BehavioralTriggerMonitor(engaged_journey)
        assert await monitor.check_engagement_based(now) == []
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_start_runs_clocks(self):
        real_now = datetime.now(timezone.utc)
        store = JourneyStore(
            user_id="u1",
            previous_visit_at=real_now - timedelta(days=2),
            now=real_now - timedelta(seconds=30),
        )
        monitor = BehavioralTriggerMonitor(store, time_interval=0.01, engagement_interval=0.01)
        monitor.start()
        await asyncio.sleep(0.1)
        await monitor.stop()
        assert [r.trigger_id for r in monitor.history] == ["return-visitor-welcome"]


# ===================================================================
# Actions
# ===================================================================

class TestActions:

    @pytest.mark.asyncio
    async def test_tool_completion_needs_engagement(self, engaged_journey, now):
        monitor = BehavioralTriggerMonitor(engaged_journey)
        assert await monitor.on_action("toolCompleted", now=now) == []
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_delayed_action_cancelled_by_stop(self, journey, now):
        presenter = Presenter()
        monitor = BehavioralTriggerMonitor(
            journey, presenter=presenter, triggers=[_action_trigger("slow", 30)],
        )
        assert await monitor.on_action("anything", now=now) == ["slow"]
        assert monitor.pending_actions == 1
        await monitor.stop()
        assert monitor.pending_actions == 0
        assert presenter.history == []

    @pytest.mark.asyncio
    async def test_delayed_action_runs(self, journey, now):
        monitor = BehavioralTriggerMonitor(journey, triggers=[_action_trigger("quick", 0.01)])
        await monitor.on_action("anything", now=now)
        await asyncio.sleep(0.05)
        assert monitor.presenter.history[0]["modal_id"] == "quick"
        assert monitor.pending_actions == 0
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_inactive_trigger_never_fires(self, journey, now):
        monitor = BehavioralTriggerMonitor(journey, triggers=[_action_trigger("t", 0)])
        assert monitor.set_active("t", False)
        assert not monitor.set_active("nope", False)
        assert await monitor.on_action("anything", now=now) == []
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_unknown_trigger(self, journey):
        monitor = BehavioralTriggerMonitor(journey)
        assert await monitor.check_trigger("nope") is False
        await monitor.stop()

    def test_notification_cta(self, journey):
        monitor = BehavioralTriggerMonitor(journey)
        assert monitor.handle_notification_cta("open-assessment")
        assert monitor.handle_notification_cta("resume-progress")
        assert not monitor.handle_notification_cta("bogus")
        kinds = [h["kind"] for h in monitor.presenter.history]
        assert kinds == ["modal", "resume-progress"]
        assert monitor.presenter.history[0]["modal_id"] == "potential-assessment"

    @pytest.mark.asyncio
    async def test_stats(self, engaged_journey, now):
        monitor = BehavioralTriggerMonitor(engaged_journey)
        await monitor.on_mouse_leave(0, now)
        stats = monitor.get_stats()
        assert stats["triggers"] == 8
        assert stats["active"] == 8
        assert stats["fired_total"] == 1
        assert stats["session_counts"] == {"exit-intent-capture": 1}
        await monitor.stop()
