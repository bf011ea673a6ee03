"""
Behavioral Trigger Monitor -- Growth Engine
===========================================

Watches a visitor journey and fires one-shot actions (modal, notification,
CTA swap, content recommendations, email hand-off, redirect) when a
trigger's conditions hold.

Per trigger:
    IDLE -> FIRED   conditions all hold AND cooldown elapsed AND fired fewer
                    than max_triggers_per_session times this session
    FIRED -> IDLE   re-armed once cooldown_minutes have passed

Clocks:
    scroll-based      -- every deeper scroll reported to the JourneyStore
    exit-intent       -- on_mouse_leave(client_y) with client_y <= 0, 5s debounce
    time-based        -- asyncio loop, every 10s
    engagement-based  -- asyncio loop, every 30s
    action-based      -- on_action(action, data)

Actions with a delay run as asyncio tasks owned by the monitor; stop()
cancels them along with the clocks.

Usage:
    from growth_engine.behavioral_triggers import BehavioralTriggerMonitor

    monitor = BehavioralTriggerMonitor(store, EngagementEngine())
    monitor.start()                       # inside a running event loop
    await monitor.on_mouse_leave(0)
    await monitor.on_action("toolCompleted")
    await monitor.stop()

CLI:
    python -m growth_engine.behavioral_triggers list
    python -m growth_engine.behavioral_triggers simulate --duration 400 --scroll 80 --tool a --tool b
    python -m growth_engine.behavioral_triggers escalation --score 55
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Set

from growth_engine.catalog import CONTENT_CATALOG, CommitmentLevel, ContentItem
from growth_engine.conditions import Condition, ConditionContext, evaluate_all
from growth_engine.engagement import EngagementEngine, EngagementLevel
from growth_engine.journey import EVENT_SCROLL, EVENT_SESSION, JourneyStore
from growth_engine.selector import select
from growth_engine.tracking import EVENT_BEHAVIORAL_TRIGGER, EVENT_INTERACTION, TrackingSink

logger = logging.getLogger("behavioral_triggers")

if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(_handler)
    logger.setLevel(logging.INFO)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TIME_CHECK_INTERVAL = 10.0
ENGAGEMENT_CHECK_INTERVAL = 30.0
EXIT_INTENT_DEBOUNCE = timedelta(seconds=5)
EXIT_INTENT_TRIGGER_ID = "exit-intent-capture"

MIDI_ESCALATION_SCORE = 30
MACRO_ESCALATION_SCORE = 70


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


# ===========================================================================
# Enums
# ===========================================================================


class TriggerType(str, Enum):
    TIME_BASED = "time-based"
    ACTION_BASED = "action-based"
    ENGAGEMENT_BASED = "engagement-based"
    EXIT_INTENT = "exit-intent"
    SCROLL_BASED = "scroll-based"


class ActionType(str, Enum):
    MODAL = "modal"
    NOTIFICATION = "notification"
    CTA_CHANGE = "cta-change"
    CONTENT_RECOMMEND = "content-recommend"
    EMAIL_TRIGGER = "email-trigger"
    REDIRECT = "redirect"


# ===========================================================================
# Data classes
# ===========================================================================


@dataclass
class TriggerAction:
    action_type: ActionType
    config: Dict[str, Any] = field(default_factory=dict)
    delay_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.action_type.value,
            "config": dict(self.config),
            "delay": self.delay_seconds,
        }


@dataclass
class BehaviorTrigger:
    """Trigger definition plus the runtime fields only the monitor mutates."""
    trigger_id: str
    name: str
    description: str
    trigger_type: TriggerType
    priority: int
    conditions: List[Condition]
    actions: List[TriggerAction]
    cooldown_minutes: int
    max_triggers_per_session: int
    is_active: bool = True
    last_triggered_at: Optional[datetime] = None
    trigger_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trigger_id": self.trigger_id,
            "name": self.name,
            "description": self.description,
            "trigger_type": self.trigger_type.value,
            "priority": self.priority,
            "conditions": [c.to_dict() for c in self.conditions],
            "actions": [a.to_dict() for a in self.actions],
            "cooldown_minutes": self.cooldown_minutes,
            "max_triggers_per_session": self.max_triggers_per_session,
            "is_active": self.is_active,
            "last_triggered_at": self.last_triggered_at.isoformat() if self.last_triggered_at else None,
            "trigger_count": self.trigger_count,
        }


@dataclass
class FiringRecord:
    trigger_id: str
    fired_at: datetime
    actions: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trigger_id": self.trigger_id,
            "fired_at": self.fired_at.isoformat(),
            "actions": list(self.actions),
        }


@dataclass
class CommitmentEscalation:
    current_level: CommitmentLevel
    next_level: CommitmentLevel
    readiness_score: float
    recommended_actions: List[str]
    escalation_triggers: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_level": self.current_level.value,
            "next_level": self.next_level.value,
            "readiness_score": self.readiness_score,
            "recommended_actions": list(self.recommended_actions),
            "escalation_triggers": list(self.escalation_triggers),
        }


# ===========================================================================
# Default triggers
# ===========================================================================


def _c(ctype: str, operator: str, value: Any, field_name: Optional[str] = None) -> Condition:
    return Condition(type=ctype, operator=operator, value=value, field=field_name)


def default_triggers() -> List[BehaviorTrigger]:
    """Fresh copies of the shipped triggers (runtime fields zeroed)."""
    return [
        BehaviorTrigger(
            trigger_id="exit-intent-capture",
            name="Exit Intent Lead Capture",
            description="Capture leads when they attempt to leave the page",
            trigger_type=TriggerType.EXIT_INTENT,
            priority=10,
            conditions=[
                _c("engagement", "gte", 25),
                _c("time", "gte", 60),
                _c("behavior", "includes", ("explorer", "action-taker"), "behaviorPattern"),
            ],
            actions=[
                TriggerAction(ActionType.MODAL, {
                    "modal_id": "exit-intent-capture",
                    "title": "Wait! Your Potential Assessment is Ready",
                    "message": "Don't leave without discovering what's possible for you.",
                    "cta": "Get My Assessment",
                    "offer": "potential-assessment",
                }),
            ],
            cooldown_minutes=30,
            max_triggers_per_session=2,
        ),
        BehaviorTrigger(
            trigger_id="deep-engagement-escalation",
            name="Deep Engagement Escalation",
            description="Escalate commitment for highly engaged users",
            trigger_type=TriggerType.ENGAGEMENT_BASED,
            priority=9,
            conditions=[
                _c("engagement", "gte", 60),
                _c("content", "gte", 2, "toolsUsed"),
                _c("time", "gte", 300),
            ],
            actions=[
                TriggerAction(ActionType.CTA_CHANGE, {
                    "new_cta": {
                        "text": "Get Your Complete Transformation Plan",
                        "action": "personalized-report",
                        "style": "premium",
                    },
                }),
                TriggerAction(ActionType.NOTIFICATION, {
                    "message": "Based on your engagement, you're ready for the next level!",
                    "type": "success",
                    "duration": 5000,
                }, delay_seconds=2),
            ],
            cooldown_minutes=60,
            max_triggers_per_session=1,
        ),
        BehaviorTrigger(
            trigger_id="tool-completion-follow-up",
            name="Tool Completion Follow-up",
            description="Follow up after tool completion with next steps",
            trigger_type=TriggerType.ACTION_BASED,
            priority=8,
            conditions=[
                _c("custom", "eq", True, "toolCompleted"),
                _c("engagement", "gte", 40),
            ],
            actions=[
                TriggerAction(ActionType.CONTENT_RECOMMEND, {
                    "title": "Great job! Here's what to do next:",
                    "recommendations": "related-content",
                    "max_items": 3,
                }),
                TriggerAction(ActionType.MODAL, {
                    "modal_id": "tool-completion-follow-up",
                    "title": "Congratulations on Completing Your Assessment!",
                    "message": "Ready to take the next step in your transformation?",
                    "cta": "See My Next Steps",
                    "offer": "next-level-content",
                }, delay_seconds=3),
            ],
            cooldown_minutes=15,
            max_triggers_per_session=3,
        ),
        BehaviorTrigger(
            trigger_id="scroll-depth-engagement",
            name="Scroll Depth Engagement",
            description="Engage users who scroll deeply but don't interact",
            trigger_type=TriggerType.SCROLL_BASED,
            priority=6,
            conditions=[
                _c("scroll", "gte", 75),
                _c("engagement", "lt", 30),
                _c("time", "gte", 120),
            ],
            actions=[
                TriggerAction(ActionType.NOTIFICATION, {
                    "message": "Curious about your potential? Take our 2-minute assessment!",
                    "type": "info",
                    "cta": "Quick Assessment",
                    "action": "open-assessment",
                }),
            ],
            cooldown_minutes=45,
            max_triggers_per_session=2,
        ),
        BehaviorTrigger(
            trigger_id="return-visitor-welcome",
            name="Return Visitor Welcome",
            description="Welcome back returning visitors with personalized content",
            trigger_type=TriggerType.TIME_BASED,
            priority=7,
            conditions=[
                _c("custom", "eq", True, "returnVisitor"),
                _c("time", "gte", 10),
            ],
            actions=[
                TriggerAction(ActionType.NOTIFICATION, {
                    "message": "Welcome back! Pick up where you left off.",
                    "type": "info",
                    "cta": "Continue Journey",
                    "action": "resume-progress",
                }),
                TriggerAction(ActionType.CONTENT_RECOMMEND, {
                    "title": "Recommended for you:",
                    "recommendations": "personalized",
                    "max_items": 2,
                }),
            ],
            cooldown_minutes=1440,
            max_triggers_per_session=1,
        ),
        BehaviorTrigger(
            trigger_id="mobile-optimization",
            name="Mobile User Optimization",
            description="Optimize experience for mobile users",
            trigger_type=TriggerType.TIME_BASED,
            priority=5,
            conditions=[
                _c("device", "eq", "mobile"),
                _c("time", "gte", 90),
                _c("engagement", "gte", 20),
            ],
            actions=[
                TriggerAction(ActionType.CTA_CHANGE, {
                    "new_cta": {
                        "text": "Quick Mobile Assessment",
                        "action": "mobile-assessment",
                        "style": "mobile-optimized",
                    },
                }),
            ],
            cooldown_minutes=60,
            max_triggers_per_session=1,
        ),
        BehaviorTrigger(
            trigger_id="content-consumer-nurture",
            name="Content Consumer Nurture",
            description="Nurture users who consume lots of content",
            trigger_type=TriggerType.ENGAGEMENT_BASED,
            priority=6,
            conditions=[
                _c("content", "gte", 3, "contentConsumed"),
                _c("behavior", "includes", ("researcher",), "behaviorPattern"),
                _c("engagement", "gte", 35),
            ],
            actions=[
                TriggerAction(ActionType.MODAL, {
                    "modal_id": "content-consumer-nurture",
                    "title": "You're a Knowledge Seeker!",
                    "message": "Get our complete research library and advanced tools.",
                    "cta": "Access Premium Content",
                    "offer": "premium-library",
                }),
            ],
            cooldown_minutes=90,
            max_triggers_per_session=1,
        ),
        BehaviorTrigger(
            trigger_id="skeptic-social-proof",
            name="Skeptic Social Proof",
            description="Show social proof to skeptical users",
            trigger_type=TriggerType.ENGAGEMENT_BASED,
            priority=4,
            conditions=[
                _c("behavior", "includes", ("skeptic",), "behaviorPattern"),
                _c("time", "gte", 180),
                _c("engagement", "lt", 40),
            ],
            actions=[
                TriggerAction(ActionType.NOTIFICATION, {
                    "message": "Join 10,000+ people who've discovered their potential",
                    "type": "info",
                    "cta": "See Success Stories",
                    "action": "show-testimonials",
                }),
            ],
            cooldown_minutes=120,
            max_triggers_per_session=1,
        ),
    ]


ESCALATION_ACTIONS: Dict[str, List[str]] = {
    "micro-to-midi": [
        "Complete your personalized assessment",
        "Download our comprehensive guide",
        "Join our free webinar",
        "Start the 7-day challenge",
    ],
    "midi-to-macro": [
        "Schedule a personal consultation",
        "Apply for our transformation program",
        "Book an office visit",
        "Join our premium community",
    ],
    "macro-to-macro": [
        "Upgrade to our advanced program",
        "Become a transformation partner",
        "Access our executive coaching",
        "Join our leadership circle",
    ],
}

ESCALATION_TRIGGERS = [
    "tool-completion-follow-up",
    "deep-engagement-escalation",
    "content-consumer-nurture",
]

NOTIFICATION_MODALS = {
    "open-assessment": "potential-assessment",
    "show-testimonials": "testimonials",
}


def get_commitment_escalation(engagement: EngagementLevel) -> CommitmentEscalation:
    """Where the visitor sits on the micro/midi/macro ladder (30/70 cut points)."""
    s = engagement.score
    if s < MIDI_ESCALATION_SCORE:
        current, nxt = CommitmentLevel.MICRO, CommitmentLevel.MIDI
        readiness = min(s * 2.0, 100.0)
    elif s < MACRO_ESCALATION_SCORE:
        current, nxt = CommitmentLevel.MIDI, CommitmentLevel.MACRO
        readiness = min((s - MIDI_ESCALATION_SCORE) * 2.5, 100.0)
    else:
        current, nxt = CommitmentLevel.MACRO, CommitmentLevel.MACRO
        readiness = 100.0
    return CommitmentEscalation(
        current_level=current,
        next_level=nxt,
        readiness_score=readiness,
        recommended_actions=list(ESCALATION_ACTIONS.get(f"{current.value}-to-{nxt.value}", [])),
        escalation_triggers=list(ESCALATION_TRIGGERS),
    )


# ===========================================================================
# Presenter
# ===========================================================================


class Presenter:
    """
    Presentation hand-off. The monitor decides when and what; subclasses
    decide how. The base implementation logs each call and keeps a history.
    """

    def __init__(self) -> None:
        self.history: List[Dict[str, Any]] = []

    def _record(self, kind: str, **data: Any) -> None:
        self.history.append({"kind": kind, **data})
        logger.info("Present %s: %s", kind, data)

    def show_modal(self, modal_id: str, config: Optional[Dict[str, Any]] = None) -> None:
        self._record("modal", modal_id=modal_id, config=dict(config or {}))

    def show_notification(self, config: Dict[str, Any]) -> None:
        self._record("notification", config=dict(config))

    def change_cta(self, config: Dict[str, Any]) -> None:
        self._record("cta-change", config=dict(config))

    def show_content_recommendations(self, title: str, items: Sequence[ContentItem]) -> None:
        self._record("content-recommend", title=title, items=[i.content_id for i in items])

    def trigger_email(self, config: Dict[str, Any]) -> None:
        self._record("email-trigger", config=dict(config))

    def redirect(self, url: str, new_tab: bool = False) -> None:
        self._record("redirect", url=url, new_tab=new_tab)

    def resume_progress(self) -> None:
        self._record("resume-progress")


# ===========================================================================
# BehavioralTriggerMonitor
# ===========================================================================


class BehavioralTriggerMonitor:
    """
    Evaluates triggers against one JourneyStore.

    Each monitor owns copies of its triggers, its per-session counters, its
    clock tasks and its pending delayed actions; nothing is shared between
    instances.
    """

    def __init__(
        self,
        journey: JourneyStore,
        engine: Optional[EngagementEngine] = None,
        presenter: Optional[Presenter] = None,
        tracker: Optional[TrackingSink] = None,
        triggers: Optional[Sequence[BehaviorTrigger]] = None,
        time_interval: float = TIME_CHECK_INTERVAL,
        engagement_interval: float = ENGAGEMENT_CHECK_INTERVAL,
    ) -> None:
        self.journey = journey
        self.engine = engine or EngagementEngine()
        self.presenter = presenter or Presenter()
        self.tracker = tracker
        self.time_interval = time_interval
        self.engagement_interval = engagement_interval
        source = default_triggers() if triggers is None else list(triggers)
        self.triggers: Dict[str, BehaviorTrigger] = {t.trigger_id: t for t in source}
        self.session_counts: Dict[str, int] = {}
        self.history: List[FiringRecord] = []
        self._last_exit_intent: Optional[datetime] = None
        self._clock_tasks: List[asyncio.Task] = []
        self._pending: Set[asyncio.Task] = set()
        self._unsubscribe = journey.subscribe(self._on_journey_event)
        self._running = False

    # -------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------

    def _context(self, custom_data: Optional[Dict[str, Any]], now: datetime) -> ConditionContext:
        behavior = self.journey.snapshot(now)
        engagement = self.engine.evaluate(behavior)
        custom = {"returnVisitor": behavior.return_visitor}
        custom.update(custom_data or {})
        return ConditionContext(behavior=behavior, engagement=engagement, custom=custom)

    def _armed(self, trigger: BehaviorTrigger, now: datetime) -> bool:
        if not trigger.is_active:
            return False
        if trigger.last_triggered_at is not None:
            if now - trigger.last_triggered_at < timedelta(minutes=trigger.cooldown_minutes):
                return False
        return self.session_counts.get(trigger.trigger_id, 0) < trigger.max_triggers_per_session

    async def check_trigger(
        self,
        trigger_id: str,
        custom_data: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Fire *trigger_id* if it is armed and its conditions hold. Returns True on fire."""
        trigger = self.triggers.get(trigger_id)
        if trigger is None:
            logger.debug("check_trigger: unknown trigger '%s'", trigger_id)
            return False
        now = now or _now_utc()
        if not self._armed(trigger, now):
            return False
        context = self._context(custom_data, now)
        if not evaluate_all(trigger.conditions, context):
            return False
        await self._execute(trigger, context, now)
        return True

    async def _check_type(
        self,
        trigger_type: TriggerType,
        custom_data: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> List[str]:
        fired = []
        candidates = [t for t in self.triggers.values() if t.trigger_type == trigger_type]
        candidates.sort(key=lambda t: -t.priority)
        for trigger in candidates:
            if await self.check_trigger(trigger.trigger_id, custom_data, now):
                fired.append(trigger.trigger_id)
        return fired

    async def check_scroll_based(self, now: Optional[datetime] = None) -> List[str]:
        return await self._check_type(TriggerType.SCROLL_BASED, now=now)

    async def check_time_based(self, now: Optional[datetime] = None) -> List[str]:
        return await self._check_type(TriggerType.TIME_BASED, now=now)

    async def check_engagement_based(self, now: Optional[datetime] = None) -> List[str]:
        return await self._check_type(TriggerType.ENGAGEMENT_BASED, now=now)

    async def on_action(
        self,
        action: str,
        data: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> List[str]:
        """Report a user action (e.g. "toolCompleted") to the action-based triggers."""
        custom = {action: True}
        custom.update(data or {})
        return await self._check_type(TriggerType.ACTION_BASED, custom, now)

    async def on_mouse_leave(self, client_y: float, now: Optional[datetime] = None) -> bool:
        """Exit-intent signal. Only a pointer leaving through the top counts."""
        if client_y > 0:
            return False
        now = now or _now_utc()
        if self._last_exit_intent is not None and now - self._last_exit_intent < EXIT_INTENT_DEBOUNCE:
            return False
        self._last_exit_intent = now
        return await self.check_trigger(EXIT_INTENT_TRIGGER_ID, now=now)

    async def on_scroll(self, now: Optional[datetime] = None) -> List[str]:
        return await self.check_scroll_based(now)

    def _on_journey_event(self, event: str, store: JourneyStore) -> None:
        if event == EVENT_SESSION:
            self.reset_session()
        elif event == EVENT_SCROLL:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return
            self._track_task(loop.create_task(self.check_scroll_based()))

    # -------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------

    def _track_task(self, task: asyncio.Task) -> None:
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _execute(self, trigger: BehaviorTrigger, context: ConditionContext, now: datetime) -> None:
        trigger.last_triggered_at = now
        trigger.trigger_count += 1
        self.session_counts[trigger.trigger_id] = self.session_counts.get(trigger.trigger_id, 0) + 1
        self.history.append(FiringRecord(
            trigger.trigger_id, now, [a.action_type.value for a in trigger.actions],
        ))
        logger.info("Trigger '%s' fired (%d this session)",
                    trigger.trigger_id, self.session_counts[trigger.trigger_id])

        if self.tracker is not None:
            self.tracker.emit(
                EVENT_BEHAVIORAL_TRIGGER,
                {
                    "trigger_id": trigger.trigger_id,
                    "trigger_name": trigger.name,
                    "trigger_type": trigger.trigger_type.value,
                    "actions": [a.action_type.value for a in trigger.actions],
                },
                user_id=self.journey.user_id,
                session_id=self.journey.session_id,
            )

        for action in trigger.actions:
            if action.delay_seconds > 0:
                self._track_task(asyncio.create_task(self._run_delayed(action, context)))
            else:
                self._run_action(action, context)

    async def _run_delayed(self, action: TriggerAction, context: ConditionContext) -> None:
        await asyncio.sleep(action.delay_seconds)
        self._run_action(action, context)

    def _run_action(self, action: TriggerAction, context: ConditionContext) -> None:
        config = action.config
        try:
            if action.action_type == ActionType.MODAL:
                self.presenter.show_modal(config.get("modal_id", ""), config)
            elif action.action_type == ActionType.NOTIFICATION:
                self.presenter.show_notification(config)
            elif action.action_type == ActionType.CTA_CHANGE:
                self.presenter.change_cta(config)
            elif action.action_type == ActionType.CONTENT_RECOMMEND:
                items = select(
                    CONTENT_CATALOG, context.engagement, context.behavior,
                    int(config.get("max_items", 3)),
                )
                self.presenter.show_content_recommendations(config.get("title", ""), items)
            elif action.action_type == ActionType.EMAIL_TRIGGER:
                self.presenter.trigger_email(config)
            elif action.action_type == ActionType.REDIRECT:
                self.presenter.redirect(config.get("url", ""), bool(config.get("new_tab", False)))
            else:
                logger.warning("Unknown action type: %s", action.action_type)
        except Exception as exc:
            logger.error("Action %s failed: %s", action.action_type.value, exc)

    def handle_notification_cta(self, action: str) -> bool:
        """Follow-up for a notification's CTA button."""
        if action in NOTIFICATION_MODALS:
            self.presenter.show_modal(NOTIFICATION_MODALS[action])
        elif action == "resume-progress":
            self.presenter.resume_progress()
        else:
            logger.warning("Unknown notification action: %s", action)
            return False
        if self.tracker is not None:
            self.tracker.emit(
                EVENT_INTERACTION,
                {"type": "notification_cta", "action": action},
                user_id=self.journey.user_id,
                session_id=self.journey.session_id,
            )
        return True

    def get_commitment_escalation(self, engagement: Optional[EngagementLevel] = None) -> CommitmentEscalation:
        if engagement is None:
            engagement = self.engine.evaluate(self.journey.snapshot())
        return get_commitment_escalation(engagement)

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------

    @property
    def pending_actions(self) -> int:
        return len(self._pending)

    def reset_session(self) -> None:
        """New session: per-session counts and the exit-intent debounce reset."""
        self.session_counts.clear()
        self._last_exit_intent = None

    def start(self) -> None:
        """Start the time-based and engagement-based clocks (requires a running loop)."""
        if self._running:
            return
        self._running = True

        async def _loop(interval: float, check) -> None:
            while self._running:
                await asyncio.sleep(interval)
                try:
                    await check()
                except Exception as exc:
                    logger.error("Trigger check failed: %s", exc)

        self._clock_tasks = [
            asyncio.create_task(_loop(self.time_interval, self.check_time_based)),
            asyncio.create_task(_loop(self.engagement_interval, self.check_engagement_based)),
        ]
        logger.info("Behavioral trigger clocks started (%.0fs / %.0fs)",
                    self.time_interval, self.engagement_interval)

    async def stop(self) -> None:
        """Cancel clocks and every pending delayed action; detach from the journey."""
        self._running = False
        tasks = list(self._clock_tasks) + list(self._pending)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._clock_tasks = []
        self._pending.clear()
        self._unsubscribe()

    def get_trigger(self, trigger_id: str) -> Optional[BehaviorTrigger]:
        return self.triggers.get(trigger_id)

    def set_active(self, trigger_id: str, active: bool) -> bool:
        trigger = self.triggers.get(trigger_id)
        if trigger is None:
            return False
        trigger.is_active = active
        return True

    def get_stats(self) -> Dict[str, Any]:
        return {
            "triggers": len(self.triggers),
            "active": sum(1 for t in self.triggers.values() if t.is_active),
            "fired_total": len(self.history),
            "session_counts": dict(self.session_counts),
            "pending_actions": self.pending_actions,
        }


# ===========================================================================
# CLI
# ===========================================================================


def _cmd_list(args: argparse.Namespace) -> None:
    """List the shipped triggers."""
    print(f"\n  {'TRIGGER':<28} {'TYPE':<17} {'PRI':>3} {'COOLDOWN':>9} {'MAX':>4}")
    for t in sorted(default_triggers(), key=lambda t: -t.priority):
        print(f"  {t.trigger_id:<28} {t.trigger_type.value:<17} {t.priority:>3} "
              f"{t.cooldown_minutes:>7}m {t.max_triggers_per_session:>4}")
    print()


async def _simulate(args: argparse.Namespace) -> List[str]:
    now = _now_utc()
    previous = now - timedelta(days=1) if args.return_visitor else None
    store = JourneyStore(
        user_id="cli",
        previous_visit_at=previous,
        viewport_width=args.width,
        now=now - timedelta(seconds=args.duration),
    )
    for section in args.section or []:
        store.track_section_view(section)
    for tool in args.tool or []:
        store.track_tool_usage(tool)
    for content in args.content or []:
        store.track_content_consumption(content)
    store.update_scroll_depth(args.scroll)

    monitor = BehavioralTriggerMonitor(store)
    fired: List[str] = []
    fired += await monitor.check_scroll_based(now)
    fired += await monitor.check_time_based(now)
    fired += await monitor.check_engagement_based(now)
    if args.exit_intent and await monitor.on_mouse_leave(0, now):
        fired.append(EXIT_INTENT_TRIGGER_ID)
    if args.tool_completed:
        fired += await monitor.on_action("toolCompleted", now=now)
    await monitor.stop()
    return fired


def _cmd_simulate(args: argparse.Namespace) -> None:
    """Evaluate every clock once against a synthetic journey."""
    fired = asyncio.run(_simulate(args))
    if not fired:
        print("No triggers fired.")
        return
    for trigger_id in fired:
        print(f"  fired: {trigger_id}")


def _cmd_escalation(args: argparse.Namespace) -> None:
    """Show the commitment escalation for a score."""
    esc = get_commitment_escalation(EngagementLevel(score=args.score))
    print(f"\n  {esc.current_level.value} -> {esc.next_level.value}  readiness {esc.readiness_score:.1f}")
    for action in esc.recommended_actions:
        print(f"    - {action}")
    print()


def main() -> None:
    """CLI entry point for the behavioral trigger monitor."""
    parser = argparse.ArgumentParser(
        prog="behavioral_triggers",
        description="Behavioral trigger definitions and simulation",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    p_list = subparsers.add_parser("list", help="List triggers")
    p_list.set_defaults(func=_cmd_list)

    p_sim = subparsers.add_parser("simulate", help="Simulate a journey")
    p_sim.add_argument("--duration", type=int, default=0, help="Seconds since session start")
    p_sim.add_argument("--scroll", type=float, default=0.0, help="Scroll depth percent")
    p_sim.add_argument("--width", type=int, default=1280, help="Viewport width")
    p_sim.add_argument("--section", action="append", help="Section viewed (repeat)")
    p_sim.add_argument("--tool", action="append", help="Tool used (repeat)")
    p_sim.add_argument("--content", action="append", help="Content consumed (repeat)")
    p_sim.add_argument("--return-visitor", action="store_true", help="Previous visit yesterday")
    p_sim.add_argument("--exit-intent", action="store_true", help="Send one exit-intent signal")
    p_sim.add_argument("--tool-completed", action="store_true", help="Report a tool completion")
    p_sim.set_defaults(func=_cmd_simulate)

    p_esc = subparsers.add_parser("escalation", help="Commitment escalation for a score")
    p_esc.add_argument("--score", type=int, required=True, help="Engagement score 0-100")
    p_esc.set_defaults(func=_cmd_escalation)

    args = parser.parse_args()

    if args.verbose:
        logger.setLevel(logging.DEBUG)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    args.func(args)


if __name__ == "__main__":
    main()
