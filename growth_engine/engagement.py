"""
Engagement Engine -- Growth Engine
==================================

Turns a BehaviorSnapshot into a 0-100 engagement score and classifies the
visitor into a level, a tier and a behavior pattern.

Scoring (weighted sub-scores, summed, rounded half-up, clamped to 0-100):
    TIME         -- step function at 30s/60s/2m/5m/10m          weight 0.20
    SCROLL       -- step function at 25/50/75/90/100 percent    weight 0.15
    INTERACTIONS -- 2/section + 5/CTA click + 2/interaction     weight 0.25
    CONTENT      -- blog 8, guide 12, anything else 10          weight 0.20
    TOOLS        -- 8 per tool used                             weight 0.20

Classification:
    Tier and level come from a ThresholdTable (default 25/50/80 cut points).
    Behavior pattern is a first-match ladder over tool/content/CTA/section
    ratios: action-taker, researcher, skeptic, explorer.

Usage:
    from growth_engine.engagement import EngagementEngine

    engine = EngagementEngine()
    level = engine.evaluate(snapshot)
    print(level.score, level.tier.value, level.behavior_pattern.value)
    print(engine.insights(snapshot)["next_best_action"])

CLI:
    python -m growth_engine.engagement score --duration 320 --scroll 80 --section success-gap --tool potential-assessment
    python -m growth_engine.engagement thresholds
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from growth_engine.journey import BehaviorSnapshot, TimeOfDay

logger = logging.getLogger("engagement")

# ---------------------------------------------------------------------------
# Scoring constants
# ---------------------------------------------------------------------------

# (minimum seconds, points), checked from the top
TIME_THRESHOLDS: List[Tuple[int, int]] = [
    (600, 50),
    (300, 35),
    (120, 20),
    (60, 10),
    (30, 5),
]

# (minimum percent, points)
SCROLL_THRESHOLDS: List[Tuple[float, int]] = [
    (100, 25),
    (90, 20),
    (75, 15),
    (50, 10),
    (25, 5),
]

SECTION_VIEW_POINTS = 2
CTA_CLICK_POINTS = 5
INTERACTION_POINTS = 2

BLOG_POINTS = 8
GUIDE_POINTS = 12
RESOURCE_POINTS = 10

TOOL_POINTS = 8

WEIGHTS: Dict[str, float] = {
    "time": 0.20,
    "scroll": 0.15,
    "interactions": 0.25,
    "content": 0.20,
    "tools": 0.20,
}

MAX_SCORE = 100


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ===========================================================================
# Enums
# ===========================================================================


class EngagementTier(str, Enum):
    """Membership tier, monotonic in score."""
    BROWSER = "browser"
    ENGAGED = "engaged"
    SOFT_MEMBER = "soft-member"


class EngagementBand(str, Enum):
    """Qualitative engagement level, monotonic in score."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very-high"


class BehaviorPattern(str, Enum):
    """How the visitor tends to move through the site."""
    EXPLORER = "explorer"
    RESEARCHER = "researcher"
    ACTION_TAKER = "action-taker"
    SKEPTIC = "skeptic"


# ===========================================================================
# Threshold tables
# ===========================================================================


@dataclass(frozen=True)
class ThresholdRow:
    min_score: int
    level: EngagementBand
    tier: EngagementTier
    readiness: int


@dataclass(frozen=True)
class ThresholdTable:
    """
    Ordered score cut points mapping a score to level, tier and readiness.

    Rows must be sorted by descending ``min_score`` and the last row must
    start at 0 so every score maps to exactly one row.
    """
    rows: Tuple[ThresholdRow, ...]

    def __post_init__(self) -> None:
        if not self.rows:
            raise ValueError("ThresholdTable needs at least one row")
        mins = [r.min_score for r in self.rows]
        if mins != sorted(mins, reverse=True) or len(set(mins)) != len(mins):
            raise ValueError("ThresholdTable rows must have strictly descending min_score")
        if mins[-1] != 0:
            raise ValueError("Last ThresholdTable row must start at 0")

    def lookup(self, score: int) -> ThresholdRow:
        for row in self.rows:
            if score >= row.min_score:
                return row
        return self.rows[-1]


DEFAULT_THRESHOLDS = ThresholdTable(rows=(
    ThresholdRow(80, EngagementBand.VERY_HIGH, EngagementTier.SOFT_MEMBER, 90),
    ThresholdRow(50, EngagementBand.HIGH, EngagementTier.ENGAGED, 70),
    ThresholdRow(25, EngagementBand.MEDIUM, EngagementTier.ENGAGED, 50),
    ThresholdRow(0, EngagementBand.LOW, EngagementTier.BROWSER, 20),
))


# ===========================================================================
# EngagementLevel
# ===========================================================================


@dataclass
class EngagementLevel:
    """Classification result for one scoring call."""
    score: int = 0
    level: EngagementBand = EngagementBand.LOW
    tier: EngagementTier = EngagementTier.BROWSER
    behavior_pattern: BehaviorPattern = BehaviorPattern.EXPLORER
    readiness_indicator: int = 20

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "level": self.level.value,
            "tier": self.tier.value,
            "behavior_pattern": self.behavior_pattern.value,
            "readiness_indicator": self.readiness_indicator,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> EngagementLevel:
        return cls(
            score=int(d.get("score", 0)),
            level=EngagementBand(d.get("level", EngagementBand.LOW.value)),
            tier=EngagementTier(d.get("tier", EngagementTier.BROWSER.value)),
            behavior_pattern=BehaviorPattern(
                d.get("behavior_pattern", BehaviorPattern.EXPLORER.value)
            ),
            readiness_indicator=int(d.get("readiness_indicator", 20)),
        )


# ===========================================================================
# Sub-scores
# ===========================================================================


def _step(value: float, thresholds: Sequence[Tuple[float, int]]) -> int:
    for minimum, points in thresholds:
        if value >= minimum:
            return points
    return 0


def time_score(seconds: int) -> int:
    return _step(seconds, TIME_THRESHOLDS)


def scroll_score(percent: float) -> int:
    return _step(percent, SCROLL_THRESHOLDS)


def interaction_score(behavior: BehaviorSnapshot) -> int:
    return (
        SECTION_VIEW_POINTS * len(behavior.sections_viewed)
        + CTA_CLICK_POINTS * len(behavior.ctas_clicked)
        + INTERACTION_POINTS * behavior.interaction_count
    )


def content_score(content_ids: Iterable[str]) -> int:
    total = 0
    for content_id in content_ids:
        if "blog" in content_id:
            total += BLOG_POINTS
        elif "guide" in content_id:
            total += GUIDE_POINTS
        else:
            total += RESOURCE_POINTS
    return total


def tool_score(tool_ids: Iterable[str]) -> int:
    return TOOL_POINTS * len(list(tool_ids))


def score(behavior: BehaviorSnapshot) -> int:
    """Weighted engagement score in [0, 100]. Pure function of *behavior*."""
    raw = (
        time_score(behavior.session_duration_seconds) * WEIGHTS["time"]
        + scroll_score(behavior.scroll_depth_percent) * WEIGHTS["scroll"]
        + interaction_score(behavior) * WEIGHTS["interactions"]
        + content_score(behavior.content_consumed) * WEIGHTS["content"]
        + tool_score(behavior.tools_used) * WEIGHTS["tools"]
    )
    return max(0, min(_round_half_up(raw), MAX_SCORE))


def score_breakdown(behavior: BehaviorSnapshot) -> Dict[str, float]:
    """Unweighted and weighted sub-scores, for dashboards and the CLI."""
    parts = {
        "time": time_score(behavior.session_duration_seconds),
        "scroll": scroll_score(behavior.scroll_depth_percent),
        "interactions": interaction_score(behavior),
        "content": content_score(behavior.content_consumed),
        "tools": tool_score(behavior.tools_used),
    }
    out: Dict[str, float] = {}
    for name, points in parts.items():
        out[name] = points
        out[f"{name}_weighted"] = round(points * WEIGHTS[name], 2)
    out["total"] = score(behavior)
    return out


# ===========================================================================
# Classification
# ===========================================================================


def behavior_pattern(behavior: BehaviorSnapshot, engagement_score: int) -> BehaviorPattern:
    """First-match ladder; every input maps to exactly one pattern."""
    tools = len(behavior.tools_used)
    content = len(behavior.content_consumed)
    ctas = len(behavior.ctas_clicked)
    sections = len(behavior.sections_viewed)

    tool_to_content = tools / max(content, 1)
    cta_to_section = ctas / max(sections, 1)

    if tool_to_content > 1.5 and cta_to_section > 0.5:
        return BehaviorPattern.ACTION_TAKER
    if content > 3 and tool_to_content < 0.5:
        return BehaviorPattern.RESEARCHER
    if sections > 4 and engagement_score < 30:
        return BehaviorPattern.SKEPTIC
    return BehaviorPattern.EXPLORER


def classify(
    engagement_score: int,
    behavior: BehaviorSnapshot,
    thresholds: ThresholdTable = DEFAULT_THRESHOLDS,
) -> EngagementLevel:
    """Map a score and behavior to an EngagementLevel."""
    clamped = max(0, min(int(engagement_score), MAX_SCORE))
    row = thresholds.lookup(clamped)
    return EngagementLevel(
        score=clamped,
        level=row.level,
        tier=row.tier,
        behavior_pattern=behavior_pattern(behavior, clamped),
        readiness_indicator=row.readiness,
    )


# ===========================================================================
# Insights
# ===========================================================================

DEFAULT_INTEREST = "Personal Development"

SECTION_INTERESTS: Dict[str, str] = {
    "success-gap": "Achievement & Success",
    "change-paradox": "Habit Formation",
    "vision-void": "Goal Setting & Vision",
    "leadership-lever": "Leadership Development",
    "decision-door": "Decision Making",
}

RECOMMENDED_CONTENT: Dict[str, Dict[str, List[str]]] = {
    "action-taker": {
        "Achievement & Success": ["Success Factor Calculator", "Goal Achievement Predictor", "90-Day Action Plan"],
        "Habit Formation": ["21-Day Habit Installer", "Habit Strength Analyzer", "Routine Optimizer"],
        "Goal Setting & Vision": ["Dream Clarity Generator", "Life Wheel Diagnostic", "Vision Board Creator"],
        "Leadership Development": ["Leadership Style Profiler", "Team Builder Simulator", "Influence Calculator"],
        "Decision Making": ["Cost of Inaction Calculator", "Decision Framework Tool", "Priority Matrix"],
    },
    "researcher": {
        "Achievement & Success": ["Success Research Library", "Achievement Psychology Guide", "Success Stories Collection"],
        "Habit Formation": ["Neuroscience of Habits", "Behavior Change Research", "Habit Formation Guide"],
        "Goal Setting & Vision": ["Vision Psychology Research", "Goal Setting Science", "Future Self Studies"],
        "Leadership Development": ["Leadership Research Hub", "Management Psychology", "Influence Studies"],
        "Decision Making": ["Decision Science Library", "Cognitive Bias Guide", "Choice Architecture"],
    },
    "explorer": {
        "Achievement & Success": ["Potential Assessment", "Success Gap Analysis", "Achievement Readiness"],
        "Habit Formation": ["Habit Discovery Tool", "Change Readiness Quiz", "Behavior Pattern Analysis"],
        "Goal Setting & Vision": ["Vision Clarity Assessment", "Life Balance Wheel", "Future Self Visualizer"],
        "Leadership Development": ["Leadership Style Quiz", "Influence Assessment", "Team Dynamics Tool"],
        "Decision Making": ["Decision Style Assessment", "Choice Clarity Tool", "Priority Discovery"],
    },
    "skeptic": {
        "Achievement & Success": ["Success Myth Busters", "Evidence-Based Achievement", "Research-Backed Methods"],
        "Habit Formation": ["Habit Science Facts", "Debunked Change Myths", "Evidence-Based Habits"],
        "Goal Setting & Vision": ["Goal Setting Research", "Vision Science Facts", "Evidence-Based Planning"],
        "Leadership Development": ["Leadership Research", "Management Science", "Evidence-Based Leadership"],
        "Decision Making": ["Decision Science", "Choice Research", "Evidence-Based Decisions"],
    },
}

NEXT_BEST_ACTIONS: Dict[EngagementBand, str] = {
    EngagementBand.VERY_HIGH: "Schedule a personal consultation to accelerate your transformation",
    EngagementBand.HIGH: "Complete your personalized action plan with our advanced tools",
    EngagementBand.MEDIUM: "Take our comprehensive potential assessment to unlock deeper insights",
    EngagementBand.LOW: "Explore our interactive tools to discover your hidden potential",
}

PATTERN_MESSAGES: Dict[BehaviorPattern, str] = {
    BehaviorPattern.ACTION_TAKER: "You're ready to take action! Let's turn your insights into results.",
    BehaviorPattern.RESEARCHER: "You love to learn! Here are some research-backed resources for you.",
    BehaviorPattern.EXPLORER: "You're curious about your potential! Let's explore what's possible.",
    BehaviorPattern.SKEPTIC: "You want proof! Here's the evidence-based approach to transformation.",
}

TIME_MESSAGES: Dict[TimeOfDay, str] = {
    TimeOfDay.MORNING: "Great way to start your day with personal development!",
    TimeOfDay.AFTERNOON: "Perfect time for a growth break!",
    TimeOfDay.EVENING: "Ending your day with self-improvement - excellent choice!",
    TimeOfDay.NIGHT: "Late night learning? Your dedication is impressive!",
}


def primary_interest(sections_viewed: Iterable[str]) -> str:
    """Most frequent interest across viewed sections; ties resolve alphabetically."""
    counts: Dict[str, int] = {}
    for section in sections_viewed:
        interest = SECTION_INTERESTS.get(section, DEFAULT_INTEREST)
        counts[interest] = counts.get(interest, 0) + 1
    if not counts:
        return DEFAULT_INTEREST
    return max(sorted(counts), key=lambda k: counts[k])


def recommended_content(pattern: BehaviorPattern, interest: str) -> List[str]:
    by_pattern = RECOMMENDED_CONTENT.get(pattern.value, {})
    if interest in by_pattern:
        return list(by_pattern[interest])
    return list(RECOMMENDED_CONTENT["explorer"].get(interest, []))


# ===========================================================================
# EngagementEngine
# ===========================================================================


class EngagementEngine:
    """
    Scorer + classifier bound to one threshold table.

    Stateless apart from its configuration, so any number of engines can
    coexist (e.g. one per consumer that needs a different table).
    """

    def __init__(self, thresholds: ThresholdTable = DEFAULT_THRESHOLDS) -> None:
        self.thresholds = thresholds

    def score(self, behavior: BehaviorSnapshot) -> int:
        return score(behavior)

    def classify(self, engagement_score: int, behavior: BehaviorSnapshot) -> EngagementLevel:
        return classify(engagement_score, behavior, self.thresholds)

    def evaluate(self, behavior: BehaviorSnapshot) -> EngagementLevel:
        """Score and classify in one call."""
        return self.classify(self.score(behavior), behavior)

    def insights(self, behavior: BehaviorSnapshot) -> Dict[str, Any]:
        """Primary interest, recommended content, next best action and a message."""
        engagement = self.evaluate(behavior)
        interest = primary_interest(behavior.sections_viewed)
        message = (
            f"{PATTERN_MESSAGES[engagement.behavior_pattern]} "
            f"{TIME_MESSAGES[behavior.time_of_day]}"
        )
        return {
            "engagement": engagement.to_dict(),
            "primary_interest": interest,
            "recommended_content": recommended_content(engagement.behavior_pattern, interest),
            "next_best_action": NEXT_BEST_ACTIONS[engagement.level],
            "personalized_message": message,
        }


# ===========================================================================
# CLI
# ===========================================================================


def _snapshot_from_args(args: argparse.Namespace) -> BehaviorSnapshot:
    if args.snapshot:
        with open(args.snapshot, "r", encoding="utf-8") as fh:
            return BehaviorSnapshot.from_dict(json.load(fh))
    return BehaviorSnapshot(
        session_duration_seconds=args.duration,
        scroll_depth_percent=args.scroll,
        sections_viewed=set(args.section or []),
        tools_used=set(args.tool or []),
        content_consumed=set(args.content or []),
        ctas_clicked=list(args.cta or []),
        device_type=args.device,
        time_of_day=args.time_of_day,
        return_visitor=args.return_visitor,
    )


def _cmd_score(args: argparse.Namespace) -> None:
    """Score a snapshot built from flags or a JSON file."""
    try:
        behavior = _snapshot_from_args(args)
    except (OSError, ValueError, TypeError) as exc:
        print(f"Invalid behavior input: {exc}")
        sys.exit(1)

    engine = EngagementEngine()
    level = engine.evaluate(behavior)
    breakdown = score_breakdown(behavior)

    print(f"\n  Engagement score: {level.score}/100")
    print(f"  Level: {level.level.value}   Tier: {level.tier.value}   "
          f"Pattern: {level.behavior_pattern.value}   Readiness: {level.readiness_indicator}")
    print("\n  Sub-scores (raw -> weighted):")
    for name in WEIGHTS:
        print(f"    {name:<13} {breakdown[name]:>5} -> {breakdown[name + '_weighted']:>6.2f}")
    if args.insights:
        data = engine.insights(behavior)
        print(f"\n  Primary interest: {data['primary_interest']}")
        print(f"  Next best action: {data['next_best_action']}")
        print(f"  Message: {data['personalized_message']}")
        for item in data["recommended_content"]:
            print(f"    - {item}")
    print()


def _cmd_thresholds(args: argparse.Namespace) -> None:
    """Print the default threshold table."""
    print("\n  min_score  level       tier         readiness")
    for row in DEFAULT_THRESHOLDS.rows:
        print(f"  {row.min_score:>9}  {row.level.value:<10}  {row.tier.value:<11}  {row.readiness:>9}")
    print()


def main() -> None:
    """CLI entry point for the engagement engine."""
    parser = argparse.ArgumentParser(
        prog="engagement",
        description="Engagement scoring and classification",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    p_score = subparsers.add_parser("score", help="Score a behavior snapshot")
    p_score.add_argument("--snapshot", default=None, help="Read the snapshot from a JSON file")
    p_score.add_argument("--duration", type=int, default=0, help="Session duration in seconds")
    p_score.add_argument("--scroll", type=float, default=0.0, help="Scroll depth percent")
    p_score.add_argument("--section", action="append", help="Section viewed (repeat)")
    p_score.add_argument("--tool", action="append", help="Tool used (repeat)")
    p_score.add_argument("--content", action="append", help="Content consumed (repeat)")
    p_score.add_argument("--cta", action="append", help="CTA clicked (repeat)")
    p_score.add_argument("--device", default="desktop", help="mobile, tablet or desktop")
    p_score.add_argument("--time-of-day", default="morning", help="morning, afternoon, evening, night")
    p_score.add_argument("--return-visitor", action="store_true", help="Mark as a returning visitor")
    p_score.add_argument("--insights", action="store_true", help="Also print insights")
    p_score.set_defaults(func=_cmd_score)

    p_thr = subparsers.add_parser("thresholds", help="Show the tier/level threshold table")
    p_thr.set_defaults(func=_cmd_thresholds)

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    args.func(args)


if __name__ == "__main__":
    main()
