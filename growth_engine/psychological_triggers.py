"""
Psychological Trigger Selector -- Growth Engine
===============================================

Chooses persuasive message bundles for the current page and visitor.

Seven categories, each with an independent gate and a tiered message set:
    social-proof   -- community size, success rate, notable clients
    scarcity       -- limited spots on offer pages
    authority      -- credentials and research
    reciprocity    -- free gifts
    commitment     -- small first steps, then a pledge
    liking         -- "built for people like you", personal journey
    consensus      -- what similar visitors do

Selection (pure, see ``select_triggers``):
    1. Gate: page fragment, minimum time on site, minimum prior interactions
    2. Pick the highest-intensity entry of the category whose extra
       conditions hold; the low-intensity entry only needs the gate
    3. At most one result per category, ordered by intensity (high first),
       then category order

PsychologicalTriggerService adds display-frequency limits over a persisted
history (once / session (30 min) / daily / always), display and interaction
tracking, content personalization and analytics.

All history persisted to: data/psychological_triggers/

Usage:
    from growth_engine.psychological_triggers import TriggerContext, select_triggers

    context = TriggerContext(page="/webinar", time_on_site=240, prior_interactions=3,
                             engagement_score=62, tier="engaged")
    for result in select_triggers(context):
        print(result.category, result.intensity, result.content.text)

CLI:
    python -m growth_engine.psychological_triggers list
    python -m growth_engine.psychological_triggers select --page /webinar --time 240 --interactions 3 --score 62 --tier engaged
    python -m growth_engine.psychological_triggers analytics
"""

from __future__ import annotations

import argparse
import copy
import json
import logging
import math
import os
import re
import sys
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from growth_engine.engagement import EngagementEngine, EngagementLevel
from growth_engine.journey import BehaviorSnapshot, JourneyStore
from growth_engine.tracking import (
    EVENT_PSYCH_TRIGGER_DISPLAY,
    EVENT_PSYCH_TRIGGER_INTERACTION,
    TrackingSink,
)

logger = logging.getLogger("psychological_triggers")

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
# Paths
# ---------------------------------------------------------------------------

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_ROOT = Path(os.getenv("GROWTH_ENGINE_DATA_DIR", str(BASE_DIR / "data")))
DATA_DIR = DATA_ROOT / "psychological_triggers"
HISTORY_FILE = "history.json"

DATA_DIR.mkdir(parents=True, exist_ok=True)

# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

SOCIAL_PROOF_USERS = 15_420
SOCIAL_PROOF_SUCCESS_RATE = 94
SESSION_WINDOW = timedelta(minutes=30)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _parse_iso(s: str) -> datetime:
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _load_json(path: Path, default: Any = None) -> Any:
    """Load JSON from *path*, returning *default* when missing or corrupt."""
    if default is None:
        default = {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except FileNotFoundError:
        return copy.deepcopy(default)
    except json.JSONDecodeError as exc:
        logger.warning("Corrupt history file %s treated as empty: %s", path, exc)
        return copy.deepcopy(default)


def _save_json(path: Path, data: Any) -> None:
    """Atomically write *data* as JSON to *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, default=str)
        tmp.replace(path)
    except Exception:
        try:
            tmp.unlink(missing_ok=True)
        except OSError:
            pass
        raise


# ===========================================================================
# Enums
# ===========================================================================


class TriggerCategory(str, Enum):
    SOCIAL_PROOF = "social-proof"
    SCARCITY = "scarcity"
    AUTHORITY = "authority"
    RECIPROCITY = "reciprocity"
    COMMITMENT = "commitment"
    LIKING = "liking"
    CONSENSUS = "consensus"


class Intensity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 1, "medium": 2, "high": 3}[self.value]


class Frequency(str, Enum):
    ONCE = "once"
    SESSION = "session"
    DAILY = "daily"
    ALWAYS = "always"


# ===========================================================================
# Data classes
# ===========================================================================


@dataclass(frozen=True)
class TriggerContent:
    text: str
    subtext: str = ""
    icon: str = ""
    color: str = ""
    animation: str = ""


@dataclass(frozen=True)
class EntryConditions:
    """Extra conditions on top of the category gate; None = unconstrained."""
    tiers: Optional[Tuple[str, ...]] = None
    min_score: Optional[int] = None
    max_score: Optional[int] = None
    behavior_patterns: Optional[Tuple[str, ...]] = None
    sections_viewed: Optional[Tuple[str, ...]] = None
    tools_used: Optional[Tuple[str, ...]] = None
    device_types: Optional[Tuple[str, ...]] = None
    returning_user: Optional[bool] = None


@dataclass(frozen=True)
class TriggerEntry:
    category: TriggerCategory
    intensity: Intensity
    context: Tuple[str, ...]
    content: TriggerContent
    frequency: Frequency = Frequency.ALWAYS
    conditions: EntryConditions = EntryConditions()

    @property
    def key(self) -> str:
        """History key: category-intensity-context tags."""
        return "-".join((self.category.value, self.intensity.value) + self.context)


@dataclass(frozen=True)
class CategoryGate:
    """Applicability of a whole category."""
    pages: Optional[Tuple[str, ...]] = None
    min_time_on_site: int = 0
    min_interactions: int = 0


@dataclass(frozen=True)
class TriggerCategoryConfig:
    category: TriggerCategory
    gate: CategoryGate
    entries: Tuple[TriggerEntry, ...]


@dataclass
class TriggerContext:
    """What the selector may look at."""
    page: str = "/"
    time_on_site: int = 0
    prior_interactions: int = 0
    engagement_score: int = 0
    tier: str = "browser"
    behavior_pattern: str = "explorer"
    sections_viewed: List[str] = field(default_factory=list)
    tools_used: List[str] = field(default_factory=list)
    device_type: str = "desktop"
    returning_user: bool = False

    @classmethod
    def from_journey(
        cls,
        journey: JourneyStore,
        engine: Optional[EngagementEngine] = None,
        now: Optional[datetime] = None,
    ) -> TriggerContext:
        behavior = journey.snapshot(now)
        level = (engine or EngagementEngine()).evaluate(behavior)
        return cls.from_snapshot(journey.page, behavior, level)

    @classmethod
    def from_snapshot(
        cls,
        page: str,
        behavior: BehaviorSnapshot,
        level: EngagementLevel,
    ) -> TriggerContext:
        return cls(
            page=page,
            time_on_site=behavior.session_duration_seconds,
            prior_interactions=behavior.interaction_count,
            engagement_score=level.score,
            tier=level.tier.value,
            behavior_pattern=level.behavior_pattern.value,
            sections_viewed=sorted(behavior.sections_viewed),
            tools_used=sorted(behavior.tools_used),
            device_type=behavior.device_type.value,
            returning_user=behavior.return_visitor,
        )


@dataclass
class TriggerResult:
    category: TriggerCategory
    intensity: Intensity
    key: str
    content: TriggerContent
    frequency: Frequency
    context: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "intensity": self.intensity.value,
            "key": self.key,
            "content": asdict(self.content),
            "frequency": self.frequency.value,
            "context": list(self.context),
        }


# ===========================================================================
# Catalog
# ===========================================================================

_S, _M, _H = Intensity.LOW, Intensity.MEDIUM, Intensity.HIGH


def _entry(category, intensity, context, text, subtext, icon, color, animation,
           frequency=Frequency.ALWAYS, **conditions) -> TriggerEntry:
    return TriggerEntry(
        category=category,
        intensity=intensity,
        context=tuple(context),
        content=TriggerContent(text, subtext, icon, color, animation),
        frequency=frequency,
        conditions=EntryConditions(**conditions),
    )


TRIGGER_CATALOG: Tuple[TriggerCategoryConfig, ...] = (
    TriggerCategoryConfig(
        TriggerCategory.SOCIAL_PROOF,
        CategoryGate(min_time_on_site=15),
        (
            _entry(TriggerCategory.SOCIAL_PROOF, _S, ("community", "numbers"),
                   "15,420 people have taken this assessment", "Join the community of achievers",
                   "👥", "green", "fade-in"),
            _entry(TriggerCategory.SOCIAL_PROOF, _M, ("testimonials", "success"),
                   "94% See Results in 30 Days", "Real people, real transformations",
                   "📈", "blue", "slide-up", Frequency.SESSION,
                   min_score=25, sections_viewed=("success-gap",)),
            _entry(TriggerCategory.SOCIAL_PROOF, _H, ("authority", "expertise"),
                   "Trusted by Fortune 500 Leaders", "The same system used by top performers",
                   "🏆", "gold", "glow", Frequency.ONCE,
                   min_score=50, tiers=("engaged", "soft-member")),
        ),
    ),
    TriggerCategoryConfig(
        TriggerCategory.SCARCITY,
        CategoryGate(pages=("webinar", "program", "decision-door", "consultation"),
                     min_time_on_site=180, min_interactions=1),
        (
            _entry(TriggerCategory.SCARCITY, _S, ("availability", "spots"),
                   "Limited Spots Available", "Only a few spaces left",
                   "🎫", "orange", "pulse", Frequency.SESSION),
            _entry(TriggerCategory.SCARCITY, _M, ("exclusive", "access"),
                   "Exclusive Access Ending Soon", "Don't miss this opportunity",
                   "🔒", "red", "shake", Frequency.ONCE,
                   min_score=55, sections_viewed=("decision-door",)),
            _entry(TriggerCategory.SCARCITY, _H, ("final-chance", "closing"),
                   "Final Chance - Closing Tonight", "This won't be available again",
                   "🚨", "red", "flash", Frequency.ONCE,
                   min_score=70, tiers=("soft-member",)),
        ),
    ),
    TriggerCategoryConfig(
        TriggerCategory.AUTHORITY,
        CategoryGate(min_time_on_site=30),
        (
            _entry(TriggerCategory.AUTHORITY, _S, ("credentials", "experience"),
                   "15+ Years of Expertise", "Proven track record of success",
                   "🎓", "blue", "fade-in"),
            _entry(TriggerCategory.AUTHORITY, _M, ("research", "science"),
                   "Research-Backed Methods", "Based on proven psychological principles",
                   "🔬", "green", "slide-up", Frequency.SESSION,
                   min_score=35, sections_viewed=("change-paradox",)),
        ),
    ),
    TriggerCategoryConfig(
        TriggerCategory.RECIPROCITY,
        CategoryGate(min_time_on_site=60),
        (
            _entry(TriggerCategory.RECIPROCITY, _S, ("free", "gift"),
                   "Free Assessment Gift", "Our gift to help you get started",
                   "🎁", "green", "bounce", Frequency.SESSION),
            _entry(TriggerCategory.RECIPROCITY, _M, ("free", "report"),
                   "Your Free Personalized Report", "Because you completed the assessment",
                   "📄", "purple", "pulse", Frequency.ONCE,
                   tools_used=("potential-assessment",)),
        ),
    ),
    TriggerCategoryConfig(
        TriggerCategory.COMMITMENT,
        CategoryGate(min_time_on_site=120, min_interactions=2),
        (
            _entry(TriggerCategory.COMMITMENT, _S, ("first-step",),
                   "Take the First Small Step", "Start with a 2-minute assessment",
                   "👣", "blue", "none", Frequency.SESSION),
            _entry(TriggerCategory.COMMITMENT, _M, ("promise", "pledge"),
                   "Make a Commitment to Yourself", "Your future self will thank you",
                   "🤝", "purple", "glow", Frequency.ONCE,
                   min_score=50, sections_viewed=("vision-void",)),
        ),
    ),
    TriggerCategoryConfig(
        TriggerCategory.LIKING,
        CategoryGate(min_interactions=1),
        (
            _entry(TriggerCategory.LIKING, _S, ("name", "location"),
                   "Built for People Like You", "Customized just for you",
                   "👤", "purple", "none"),
            _entry(TriggerCategory.LIKING, _M, ("behavior", "preferences"),
                   "Based on Your Interests", "Tailored recommendations for you",
                   "🎯", "blue", "pulse", Frequency.SESSION,
                   min_score=30, tools_used=("potential-assessment",)),
            _entry(TriggerCategory.LIKING, _H, ("journey", "progress"),
                   "Your Transformation Journey", "Designed specifically for your goals",
                   "🌟", "gradient", "glow", Frequency.ONCE,
                   min_score=60, sections_viewed=("vision-void", "leadership-lever")),
        ),
    ),
    TriggerCategoryConfig(
        TriggerCategory.CONSENSUS,
        CategoryGate(min_time_on_site=45, min_interactions=1),
        (
            _entry(TriggerCategory.CONSENSUS, _S, ("peers", "first-step"),
                   "Most Visitors Like You Start With the Potential Assessment",
                   "It takes about 2 minutes",
                   "🧭", "blue", "fade-in"),
            _entry(TriggerCategory.CONSENSUS, _M, ("peers", "recommend"),
                   "3 Out of 4 Members Recommend Us to a Friend", "Ask anyone who has tried it",
                   "💬", "green", "slide-up", Frequency.SESSION,
                   min_score=40),
        ),
    ),
)


def all_entries() -> List[TriggerEntry]:
    return [e for cfg in TRIGGER_CATALOG for e in cfg.entries]


# ===========================================================================
# Selection
# ===========================================================================


def gate_passes(gate: CategoryGate, context: TriggerContext) -> bool:
    if gate.pages is not None and not any(p in context.page for p in gate.pages):
        return False
    if context.time_on_site < gate.min_time_on_site:
        return False
    return context.prior_interactions >= gate.min_interactions


def entry_conditions_hold(conditions: EntryConditions, context: TriggerContext) -> bool:
    c = conditions
    if c.tiers is not None and context.tier not in c.tiers:
        return False
    if c.min_score is not None and context.engagement_score < c.min_score:
        return False
    if c.max_score is not None and context.engagement_score > c.max_score:
        return False
    if c.behavior_patterns is not None and context.behavior_pattern not in c.behavior_patterns:
        return False
    if c.sections_viewed is not None and not set(c.sections_viewed) & set(context.sections_viewed):
        return False
    if c.tools_used is not None and not set(c.tools_used) & set(context.tools_used):
        return False
    if c.device_types is not None and context.device_type not in c.device_types:
        return False
    if c.returning_user is not None and c.returning_user != context.returning_user:
        return False
    return True


def select_triggers(
    context: TriggerContext,
    catalog: Sequence[TriggerCategoryConfig] = TRIGGER_CATALOG,
    allowed: Optional[Callable[[TriggerEntry], bool]] = None,
) -> List[TriggerResult]:
    """
    Applicable triggers for *context*, at most one per category.

    *allowed* lets a caller veto individual entries (frequency limits); a
    vetoed entry falls through to the next lower intensity.
    """
    results: List[TriggerResult] = []
    for cfg in catalog:
        if not gate_passes(cfg.gate, context):
            continue
        for entry in sorted(cfg.entries, key=lambda e: -e.intensity.rank):
            if not entry_conditions_hold(entry.conditions, context):
                continue
            if allowed is not None and not allowed(entry):
                continue
            results.append(TriggerResult(
                category=entry.category,
                intensity=entry.intensity,
                key=entry.key,
                content=entry.content,
                frequency=entry.frequency,
                context=entry.context,
            ))
            break
    results.sort(key=lambda r: -r.intensity.rank)
    return results


def hours_left_today(now: datetime) -> int:
    end_of_day = now.replace(hour=23, minute=59, second=59, microsecond=999999)
    return max(1, math.ceil((end_of_day - now).total_seconds() / 3600))


_GROUPED_NUMBER = re.compile(r"\d{1,3}(?:,\d{3})+")
_PERCENT = re.compile(r"\d+%")


def personalize(
    result: TriggerResult,
    name: Optional[str] = None,
    city: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TriggerContent:
    """Visitor-specific copy: names and cities, live numbers, hours left."""
    content = result.content
    if result.category == TriggerCategory.LIKING:
        if name:
            content = replace(content, text=content.text.replace("Your", f"{name}'s"))
        if city:
            content = replace(content, subtext=f"{content.subtext} in {city}")
    elif result.category == TriggerCategory.SOCIAL_PROOF:
        content = replace(
            content,
            text=_PERCENT.sub(
                f"{SOCIAL_PROOF_SUCCESS_RATE}%",
                _GROUPED_NUMBER.sub(f"{SOCIAL_PROOF_USERS:,}", content.text),
            ),
            subtext=_GROUPED_NUMBER.sub(f"{SOCIAL_PROOF_USERS:,}", content.subtext),
        )
    elif result.category == TriggerCategory.SCARCITY:
        hours = hours_left_today(now or _now_utc())
        content = replace(content, subtext=f"{content.subtext} - {hours} hours left")
    return content


# ===========================================================================
# PsychologicalTriggerService
# ===========================================================================


class PsychologicalTriggerService:
    """Selection plus frequency limits over a persisted display history."""

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        tracker: Optional[TrackingSink] = None,
        catalog: Sequence[TriggerCategoryConfig] = TRIGGER_CATALOG,
    ) -> None:
        self.data_dir = Path(data_dir) if data_dir is not None else DATA_DIR
        self.tracker = tracker
        self.catalog = tuple(catalog)
        self.displays: Dict[str, List[str]] = {}
        self.interactions: Dict[str, int] = {}
        self._load()

    @property
    def history_file(self) -> Path:
        return self.data_dir / HISTORY_FILE

    def _load(self) -> None:
        raw = _load_json(self.history_file, {})
        if not isinstance(raw, dict):
            raw = {}
        displays = raw.get("displays", {})
        self.displays = {
            k: [str(ts) for ts in v] for k, v in displays.items() if isinstance(v, list)
        } if isinstance(displays, dict) else {}
        interactions = raw.get("interactions", {})
        self.interactions = {
            k: int(v) for k, v in interactions.items()
        } if isinstance(interactions, dict) else {}

    def _save(self) -> None:
        _save_json(self.history_file, {"displays": self.displays, "interactions": self.interactions})

    # -------------------------------------------------------------------
    # Frequency limits
    # -------------------------------------------------------------------

    def frequency_allows(self, entry: TriggerEntry, now: Optional[datetime] = None) -> bool:
        now = now or _now_utc()
        shown = []
        for ts in self.displays.get(entry.key, []):
            try:
                shown.append(_parse_iso(ts))
            except ValueError:
                logger.debug("Skipping bad timestamp %r for %s", ts, entry.key)
        if entry.frequency == Frequency.ONCE:
            return not shown
        if entry.frequency == Frequency.SESSION:
            return not any(t > now - SESSION_WINDOW for t in shown)
        if entry.frequency == Frequency.DAILY:
            midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
            return not any(t >= midnight for t in shown)
        return True

    def get_triggers(self, context: TriggerContext, now: Optional[datetime] = None) -> List[TriggerResult]:
        return select_triggers(
            context, self.catalog, allowed=lambda e: self.frequency_allows(e, now),
        )

    # -------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------

    def track_display(
        self,
        result: TriggerResult,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        self.displays.setdefault(result.key, []).append((now or _now_utc()).isoformat())
        self._save()
        if self.tracker is not None and user_id:
            self.tracker.emit(
                EVENT_PSYCH_TRIGGER_DISPLAY,
                {
                    "trigger_type": result.category.value,
                    "intensity": result.intensity.value,
                    "context": list(result.context),
                    "content": result.content.text,
                },
                user_id=user_id,
            )

    def track_interaction(self, result: TriggerResult, action: str, user_id: Optional[str] = None) -> None:
        self.interactions[result.key] = self.interactions.get(result.key, 0) + 1
        self._save()
        if self.tracker is not None and user_id:
            self.tracker.emit(
                EVENT_PSYCH_TRIGGER_INTERACTION,
                {
                    "trigger_type": result.category.value,
                    "action": action,
                    "intensity": result.intensity.value,
                    "content": result.content.text,
                },
                user_id=user_id,
            )

    def personalize(self, result: TriggerResult, **kwargs: Any) -> TriggerContent:
        return personalize(result, **kwargs)

    def get_analytics(self) -> Dict[str, Dict[str, Any]]:
        """Displays, interactions and click rate per category."""
        analytics: Dict[str, Dict[str, Any]] = {}
        for cfg in self.catalog:
            shown = sum(len(self.displays.get(e.key, [])) for e in cfg.entries)
            clicked = sum(self.interactions.get(e.key, 0) for e in cfg.entries)
            analytics[cfg.category.value] = {
                "total_shown": shown,
                "total_clicked": clicked,
                "click_rate": clicked / shown if shown else 0.0,
            }
        return analytics

    def clear_history(self) -> None:
        self.displays = {}
        self.interactions = {}
        self._save()


# ===========================================================================
# CLI
# ===========================================================================


def _cmd_list(args: argparse.Namespace) -> None:
    """List catalog entries."""
    for cfg in TRIGGER_CATALOG:
        gate = cfg.gate
        pages = ",".join(gate.pages) if gate.pages else "any"
        print(f"\n  {cfg.category.value}  (pages={pages} time>={gate.min_time_on_site}s "
              f"interactions>={gate.min_interactions})")
        for e in cfg.entries:
            print(f"    {e.intensity.value:<7} {e.frequency.value:<8} {e.content.text}")
    print()


def _cmd_select(args: argparse.Namespace) -> None:
    """Select triggers for a synthetic context."""
    context = TriggerContext(
        page=args.page,
        time_on_site=args.time,
        prior_interactions=args.interactions,
        engagement_score=args.score,
        tier=args.tier,
        sections_viewed=list(args.section or []),
        tools_used=list(args.tool or []),
    )
    results = select_triggers(context)
    if not results:
        print("No triggers apply.")
        return
    for r in results:
        content = personalize(r)
        print(f"  [{r.intensity.value:<6}] {r.category.value:<13} {content.text} -- {content.subtext}")


def _cmd_analytics(args: argparse.Namespace) -> None:
    """Show display/interaction counts."""
    service = PsychologicalTriggerService()
    print(json.dumps(service.get_analytics(), indent=2))


def main() -> None:
    """CLI entry point for the psychological trigger selector."""
    parser = argparse.ArgumentParser(
        prog="psychological_triggers",
        description="Psychological trigger selection",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    p_list = subparsers.add_parser("list", help="List the trigger catalog")
    p_list.set_defaults(func=_cmd_list)

    p_sel = subparsers.add_parser("select", help="Select triggers for a context")
    p_sel.add_argument("--page", default="/", help="Current page path")
    p_sel.add_argument("--time", type=int, default=0, help="Time on site in seconds")
    p_sel.add_argument("--interactions", type=int, default=0, help="Prior interactions")
    p_sel.add_argument("--score", type=int, default=0, help="Engagement score")
    p_sel.add_argument("--tier", default="browser", help="browser, engaged or soft-member")
    p_sel.add_argument("--section", action="append", help="Section viewed (repeat)")
    p_sel.add_argument("--tool", action="append", help="Tool used (repeat)")
    p_sel.set_defaults(func=_cmd_select)

    p_an = subparsers.add_parser("analytics", help="Display and interaction analytics")
    p_an.set_defaults(func=_cmd_analytics)

    args = parser.parse_args()

    if args.verbose:
        logger.setLevel(logging.DEBUG)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    args.func(args)


if __name__ == "__main__":
    main()
