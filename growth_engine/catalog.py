"""
Static CTA and content catalogs.

Catalog entries are immutable build-time data: an id, a priority (higher
wins), a SelectionConditions record (every field optional, an absent field
imposes no constraint) and variant bodies keyed by variant id. Presentation
lives only in the ``styling`` mappings, so selection can be tested without
any rendering.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


class CommitmentLevel(str, Enum):
    """How much a CTA asks of the visitor."""
    MICRO = "micro"
    MIDI = "midi"
    MACRO = "macro"


class ContentType(str, Enum):
    TOOL = "tool"
    ASSESSMENT = "assessment"
    GUIDE = "guide"
    RESEARCH = "research"
    WEBINAR = "webinar"


@dataclass(frozen=True)
class SelectionConditions:
    """Predicate record; ``None`` means "no constraint on this dimension"."""
    min_engagement_score: Optional[int] = None
    max_engagement_score: Optional[int] = None
    required_behavior_pattern: Optional[Tuple[str, ...]] = None
    required_tier: Optional[Tuple[str, ...]] = None
    min_time_on_page: Optional[int] = None
    required_sections: Optional[Tuple[str, ...]] = None
    exclude_if_completed: Optional[Tuple[str, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            k: (list(v) if isinstance(v, tuple) else v)
            for k, v in self.__dict__.items()
            if v is not None
        }


@dataclass(frozen=True)
class VariantBody:
    """Overrides applied when a visitor is in a given A/B variant."""
    text: Optional[str] = None
    description: Optional[str] = None
    styling: Mapping[str, str] = field(default_factory=dict)


def _frozen(d: Dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(d))


@dataclass(frozen=True)
class CTAConfig:
    cta_id: str
    text: str
    description: str
    commitment_level: CommitmentLevel
    action: str
    priority: int
    conditions: SelectionConditions = SelectionConditions()
    ab_test_id: Optional[str] = None
    psychological_triggers: Tuple[str, ...] = ()
    styling: Mapping[str, str] = field(default_factory=dict)
    variants: Mapping[str, VariantBody] = field(default_factory=dict)

    @property
    def item_id(self) -> str:
        return self.cta_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cta_id": self.cta_id,
            "text": self.text,
            "description": self.description,
            "commitment_level": self.commitment_level.value,
            "action": self.action,
            "priority": self.priority,
            "conditions": self.conditions.to_dict(),
            "ab_test_id": self.ab_test_id,
            "psychological_triggers": list(self.psychological_triggers),
            "styling": dict(self.styling),
            "variants": sorted(self.variants),
        }


@dataclass(frozen=True)
class ContentItem:
    content_id: str
    title: str
    content_type: ContentType
    interest: str
    priority: int
    description: str = ""
    conditions: SelectionConditions = SelectionConditions()
    variants: Mapping[str, VariantBody] = field(default_factory=dict)

    @property
    def item_id(self) -> str:
        return self.content_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content_id": self.content_id,
            "title": self.title,
            "content_type": self.content_type.value,
            "interest": self.interest,
            "priority": self.priority,
            "description": self.description,
            "conditions": self.conditions.to_dict(),
        }


# ===========================================================================
# CTA catalog
# ===========================================================================

CTA_CATALOG: Tuple[CTAConfig, ...] = (
    # Micro
    CTAConfig(
        cta_id="see-your-score",
        text="See Your Score",
        description="Quick 2-minute assessment",
        commitment_level=CommitmentLevel.MICRO,
        action="open-assessment",
        priority=10,
        ab_test_id="cta-copy-test",
        psychological_triggers=("curiosity",),
        conditions=SelectionConditions(max_engagement_score=30, min_time_on_page=30),
        styling=_frozen({"variant": "outline", "size": "sm"}),
        variants=_frozen({
            "control": VariantBody("See Your Score", "Quick 2-minute assessment"),
            "curiosity": VariantBody(
                "Discover Your Hidden Potential",
                "What if you're only using 10% of your abilities?",
            ),
            "urgency": VariantBody("Get Your Score Now", "Limited time - see your results instantly"),
            "social-proof": VariantBody(
                "Join 10,000+ Who Discovered Their Score",
                "See why thousands trust our assessment",
            ),
        }),
    ),
    CTAConfig(
        cta_id="get-the-answer",
        text="Get the Answer",
        description="Discover what's holding you back",
        commitment_level=CommitmentLevel.MICRO,
        action="reveal-insight",
        priority=9,
        ab_test_id="cta-color-test",
        psychological_triggers=("curiosity", "loss-aversion"),
        conditions=SelectionConditions(
            max_engagement_score=25,
            required_sections=("success-gap", "change-paradox"),
        ),
        styling=_frozen({"variant": "ghost", "size": "sm", "color": "purple"}),
        variants=_frozen({
            "control": VariantBody(styling=_frozen({"color": "blue"})),
            "variant-a": VariantBody(styling=_frozen({"color": "orange"})),
            "variant-b": VariantBody(styling=_frozen({"color": "green"})),
        }),
    ),
    CTAConfig(
        cta_id="calculate-now",
        text="Calculate Now",
        description="Free instant results",
        commitment_level=CommitmentLevel.MICRO,
        action="open-calculator",
        priority=8,
        ab_test_id="cta-timing-test",
        psychological_triggers=("urgency", "curiosity"),
        conditions=SelectionConditions(
            max_engagement_score=35,
            required_behavior_pattern=("explorer", "action-taker"),
        ),
        styling=_frozen({"variant": "secondary", "size": "default"}),
    ),
    CTAConfig(
        cta_id="save-for-later",
        text="Save for Later",
        description="Bookmark this assessment",
        commitment_level=CommitmentLevel.MICRO,
        action="save-progress",
        priority=5,
        psychological_triggers=("reciprocity", "commitment"),
        conditions=SelectionConditions(
            min_time_on_page=120,
            required_behavior_pattern=("researcher", "skeptic"),
        ),
        styling=_frozen({"variant": "ghost", "size": "sm"}),
    ),
    # Midi
    CTAConfig(
        cta_id="get-personalized-report",
        text="Get Your Personalized Report",
        description="Detailed insights + action plan",
        commitment_level=CommitmentLevel.MIDI,
        action="generate-report",
        priority=15,
        ab_test_id="cta-placement-test",
        psychological_triggers=("personalization", "authority"),
        conditions=SelectionConditions(
            min_engagement_score=30,
            max_engagement_score=70,
            required_behavior_pattern=("researcher", "action-taker"),
        ),
        styling=_frozen({"variant": "default", "size": "default"}),
    ),
    CTAConfig(
        cta_id="join-free-webinar",
        text="Join Free Webinar",
        description="90-min live training + Q&A",
        commitment_level=CommitmentLevel.MIDI,
        action="register-webinar",
        priority=14,
        psychological_triggers=("social-proof", "scarcity", "reciprocity"),
        conditions=SelectionConditions(
            min_engagement_score=25,
            max_engagement_score=65,
            min_time_on_page=180,
        ),
        styling=_frozen({"variant": "default", "size": "lg"}),
    ),
    CTAConfig(
        cta_id="download-guide",
        text="Download the Guide",
        description="Complete transformation roadmap",
        commitment_level=CommitmentLevel.MIDI,
        action="download-resource",
        priority=12,
        psychological_triggers=("reciprocity", "authority"),
        conditions=SelectionConditions(
            min_engagement_score=35,
            required_behavior_pattern=("researcher",),
            required_sections=("vision-void", "leadership-lever"),
        ),
        styling=_frozen({"variant": "outline", "size": "default"}),
    ),
    CTAConfig(
        cta_id="start-7-day-challenge",
        text="Start Your 7-Day Challenge",
        description="Daily actions for transformation results",
        commitment_level=CommitmentLevel.MIDI,
        action="join-challenge",
        priority=13,
        psychological_triggers=("commitment", "social-proof"),
        conditions=SelectionConditions(
            min_engagement_score=40,
            required_behavior_pattern=("action-taker", "explorer"),
        ),
        styling=_frozen({"variant": "default", "size": "lg"}),
    ),
    # Macro
    CTAConfig(
        cta_id="book-transformation-session",
        text="Book Your Transformation Session",
        description="Personal 1-on-1 consultation",
        commitment_level=CommitmentLevel.MACRO,
        action="schedule-consultation",
        priority=20,
        psychological_triggers=("scarcity", "authority", "personalization"),
        conditions=SelectionConditions(
            min_engagement_score=70,
            required_tier=("soft-member",),
            required_behavior_pattern=("action-taker",),
        ),
        styling=_frozen({"variant": "default", "size": "lg"}),
    ),
    CTAConfig(
        cta_id="visit-our-office",
        text="Visit Our Office",
        description="In-person consultation in Addis Ababa",
        commitment_level=CommitmentLevel.MACRO,
        action="schedule-office-visit",
        priority=18,
        psychological_triggers=("authority", "social-proof"),
        conditions=SelectionConditions(
            min_engagement_score=60,
            required_tier=("engaged", "soft-member"),
        ),
        styling=_frozen({"variant": "outline", "size": "lg"}),
    ),
    CTAConfig(
        cta_id="apply-for-program",
        text="Apply for the Program",
        description="Exclusive transformation program",
        commitment_level=CommitmentLevel.MACRO,
        action="apply-program",
        priority=19,
        psychological_triggers=("scarcity", "authority", "social-proof"),
        conditions=SelectionConditions(
            min_engagement_score=80,
            required_tier=("soft-member",),
            min_time_on_page=600,
        ),
        styling=_frozen({"variant": "default", "size": "lg"}),
    ),
    CTAConfig(
        cta_id="transform-your-life",
        text="Transform Your Life",
        description="Complete life transformation system",
        commitment_level=CommitmentLevel.MACRO,
        action="full-transformation",
        priority=17,
        psychological_triggers=("loss-aversion", "commitment", "personalization"),
        conditions=SelectionConditions(
            min_engagement_score=75,
            required_behavior_pattern=("action-taker",),
            required_sections=("decision-door",),
        ),
        styling=_frozen({"variant": "default", "size": "lg"}),
    ),
)


# ===========================================================================
# Content catalog
# ===========================================================================

CONTENT_CATALOG: Tuple[ContentItem, ...] = (
    ContentItem(
        content_id="potential-assessment",
        title="Potential Assessment",
        content_type=ContentType.ASSESSMENT,
        interest="Achievement & Success",
        priority=10,
        description="Find out how much of your potential you are using",
        conditions=SelectionConditions(
            max_engagement_score=49,
            exclude_if_completed=("potential-assessment",),
        ),
    ),
    ContentItem(
        content_id="success-factor-calculator",
        title="Success Factor Calculator",
        content_type=ContentType.TOOL,
        interest="Achievement & Success",
        priority=9,
        conditions=SelectionConditions(
            required_behavior_pattern=("action-taker", "explorer"),
            required_sections=("success-gap",),
        ),
    ),
    ContentItem(
        content_id="habit-installer-21-day",
        title="21-Day Habit Installer",
        content_type=ContentType.TOOL,
        interest="Habit Formation",
        priority=8,
        conditions=SelectionConditions(
            required_behavior_pattern=("action-taker",),
            required_sections=("change-paradox",),
        ),
    ),
    ContentItem(
        content_id="neuroscience-of-habits-guide",
        title="Neuroscience of Habits",
        content_type=ContentType.GUIDE,
        interest="Habit Formation",
        priority=7,
        conditions=SelectionConditions(
            required_behavior_pattern=("researcher", "skeptic"),
            required_sections=("change-paradox",),
        ),
    ),
    ContentItem(
        content_id="vision-clarity-assessment",
        title="Vision Clarity Assessment",
        content_type=ContentType.ASSESSMENT,
        interest="Goal Setting & Vision",
        priority=8,
        conditions=SelectionConditions(
            required_sections=("vision-void",),
            exclude_if_completed=("vision-clarity-assessment",),
        ),
    ),
    ContentItem(
        content_id="goal-setting-science",
        title="Goal Setting Science",
        content_type=ContentType.RESEARCH,
        interest="Goal Setting & Vision",
        priority=6,
        conditions=SelectionConditions(
            required_behavior_pattern=("researcher", "skeptic"),
            required_sections=("vision-void",),
        ),
    ),
    ContentItem(
        content_id="leadership-style-profiler",
        title="Leadership Style Profiler",
        content_type=ContentType.TOOL,
        interest="Leadership Development",
        priority=8,
        conditions=SelectionConditions(
            min_engagement_score=25,
            required_sections=("leadership-lever",),
        ),
    ),
    ContentItem(
        content_id="cost-of-inaction-calculator",
        title="Cost of Inaction Calculator",
        content_type=ContentType.TOOL,
        interest="Decision Making",
        priority=9,
        conditions=SelectionConditions(
            min_engagement_score=30,
            required_sections=("decision-door",),
        ),
    ),
    ContentItem(
        content_id="decision-science-library",
        title="Decision Science Library",
        content_type=ContentType.RESEARCH,
        interest="Decision Making",
        priority=5,
        conditions=SelectionConditions(
            required_behavior_pattern=("researcher", "skeptic"),
        ),
    ),
    ContentItem(
        content_id="success-myth-busters",
        title="Success Myth Busters",
        content_type=ContentType.RESEARCH,
        interest="Achievement & Success",
        priority=6,
        conditions=SelectionConditions(required_behavior_pattern=("skeptic",)),
    ),
    ContentItem(
        content_id="transformation-roadmap-guide",
        title="Transformation Roadmap",
        content_type=ContentType.GUIDE,
        interest="Personal Development",
        priority=4,
        conditions=SelectionConditions(min_engagement_score=35),
    ),
    ContentItem(
        content_id="live-masterclass-webinar",
        title="Live Transformation Masterclass",
        content_type=ContentType.WEBINAR,
        interest="Personal Development",
        priority=11,
        conditions=SelectionConditions(
            min_engagement_score=50,
            required_tier=("engaged", "soft-member"),
            min_time_on_page=180,
        ),
    ),
)


def get_cta(cta_id: str) -> Optional[CTAConfig]:
    for cta in CTA_CATALOG:
        if cta.cta_id == cta_id:
            return cta
    return None


def get_content(content_id: str) -> Optional[ContentItem]:
    for item in CONTENT_CATALOG:
        if item.content_id == content_id:
            return item
    return None
