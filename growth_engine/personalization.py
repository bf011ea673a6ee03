"""
Personalization Engine -- Growth Engine
=======================================

Context-driven hero content plus per-user behavior/engagement profiles and
the recommendations derived from them.

Rules are evaluated highest priority first; the first active rule whose
conditions all hold supplies the PersonalizedContent bundle. With no match
the default "Welcome" bundle is returned.

Default rules:
    engagement-based  (3)  -- engagement score >= 25
    device-based      (2)  -- mobile device
    time-based        (1)  -- morning or evening

Usage:
    from growth_engine.personalization import PersonalizationEngine

    engine = PersonalizationEngine()
    content = engine.get_personalized_content(context)
    engine.update_engagement_data("u1", score=72, interests=["Leadership Development"])
    print(engine.generate_recommendations("u1"))
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from growth_engine.catalog import CONTENT_CATALOG, ContentItem
from growth_engine.conditions import Condition, ConditionContext, evaluate_all
from growth_engine.journey import TimeOfDay
from growth_engine.selector import select

logger = logging.getLogger("personalization")

HIGH_ENGAGEMENT_SCORE = 70
MEDIUM_ENGAGEMENT_SCORE = 40
EVENING_TIME_ON_SITE = 300
DESKTOP_PAGE_VIEWS = 10


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ===========================================================================
# Data classes
# ===========================================================================


@dataclass
class PersonalizedContent:
    title: str
    description: str
    cta_text: str = "Get Started"
    cta_style: str = "primary"
    image_url: str = "/images/default.jpg"
    priority: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PersonalizationRule:
    """Condition list plus a builder for the content it produces."""
    rule_id: str
    conditions: List[Condition]
    build: Callable[[ConditionContext], PersonalizedContent]
    priority: int = 0
    active: bool = True


@dataclass
class UserBehavior:
    page_views: int = 0
    time_on_site: int = 0
    interactions: int = 0
    last_visit: str = field(default_factory=_now_iso)
    preferences: List[str] = field(default_factory=list)


@dataclass
class EngagementData:
    score: int = 0
    level: str = "low"
    interests: List[str] = field(default_factory=list)
    engagement_history: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class UserPreferences:
    language: str = "en"
    theme: str = "auto"
    notifications: bool = True
    content_type: List[str] = field(default_factory=list)


@dataclass
class Recommendation:
    rec_type: str
    title: str
    description: str
    confidence: float
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULT_CONTENT = PersonalizedContent(
    title="Welcome to Galaxy Dream Team",
    description="Discover tools and resources to unlock your potential",
)


# ===========================================================================
# Default rules
# ===========================================================================


def _time_based(context: ConditionContext) -> PersonalizedContent:
    morning = context.behavior.time_of_day == TimeOfDay.MORNING
    return PersonalizedContent(
        title="Start Your Day Right" if morning else "End Your Day Strong",
        description=(
            "Discover tools to boost your morning productivity"
            if morning else "Reflect on your achievements and plan tomorrow"
        ),
        image_url="/images/morning.jpg" if morning else "/images/evening.jpg",
        priority=1,
    )


def _device_based(context: ConditionContext) -> PersonalizedContent:
    return PersonalizedContent(
        title="Optimized for Mobile",
        description="Get the most out of your mobile experience with our streamlined tools",
        cta_text="Explore Mobile Tools",
        cta_style="secondary",
        image_url="/images/mobile-optimized.jpg",
        priority=2,
    )


def _engagement_based(context: ConditionContext) -> PersonalizedContent:
    return PersonalizedContent(
        title="Based on Your Interests",
        description="We've curated content specifically for your learning style",
        cta_text="View Recommendations",
        cta_style="outline",
        image_url="/images/personalized.jpg",
        priority=3,
    )


def default_rules() -> List[PersonalizationRule]:
    return [
        PersonalizationRule(
            rule_id="time-based",
            conditions=[Condition("time_of_day", "includes", ("morning", "evening"))],
            build=_time_based,
            priority=1,
        ),
        PersonalizationRule(
            rule_id="device-based",
            conditions=[Condition("device", "eq", "mobile")],
            build=_device_based,
            priority=2,
        ),
        PersonalizationRule(
            rule_id="engagement-based",
            conditions=[Condition("engagement", "gte", 25)],
            build=_engagement_based,
            priority=3,
        ),
    ]


# ===========================================================================
# PersonalizationEngine
# ===========================================================================


class PersonalizationEngine:
    """Rule table plus in-memory per-user profiles."""

    def __init__(self, rules: Optional[Sequence[PersonalizationRule]] = None) -> None:
        self.rules: List[PersonalizationRule] = []
        self.user_profiles: Dict[str, UserBehavior] = {}
        self.engagement_data: Dict[str, EngagementData] = {}
        self.user_preferences: Dict[str, UserPreferences] = {}
        for rule in (default_rules() if rules is None else rules):
            self.add_rule(rule)

    # -------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------

    def add_rule(self, rule: PersonalizationRule) -> None:
        self.rules.append(rule)
        self.rules.sort(key=lambda r: -r.priority)

    def remove_rule(self, rule_id: str) -> bool:
        before = len(self.rules)
        self.rules = [r for r in self.rules if r.rule_id != rule_id]
        return len(self.rules) < before

    def get_personalized_content(self, context: ConditionContext) -> PersonalizedContent:
        for rule in self.rules:
            if rule.active and evaluate_all(rule.conditions, context):
                logger.debug("Personalization rule '%s' matched", rule.rule_id)
                return rule.build(context)
        return PersonalizedContent(**DEFAULT_CONTENT.to_dict())

    # -------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------

    @staticmethod
    def _merge(obj: Any, updates: Dict[str, Any]) -> None:
        for key, value in updates.items():
            if hasattr(obj, key):
                setattr(obj, key, value)
            else:
                logger.debug("Ignoring unknown profile field %r", key)

    def update_user_behavior(self, user_id: str, **updates: Any) -> UserBehavior:
        profile = self.user_profiles.setdefault(user_id, UserBehavior())
        self._merge(profile, updates)
        return profile

    def update_engagement_data(self, user_id: str, **updates: Any) -> EngagementData:
        data = self.engagement_data.setdefault(user_id, EngagementData())
        self._merge(data, updates)
        return data

    def update_user_preferences(self, user_id: str, **updates: Any) -> UserPreferences:
        prefs = self.user_preferences.setdefault(user_id, UserPreferences())
        self._merge(prefs, updates)
        return prefs

    def get_user_behavior(self, user_id: str) -> Optional[UserBehavior]:
        return self.user_profiles.get(user_id)

    def get_engagement_data(self, user_id: str) -> Optional[EngagementData]:
        return self.engagement_data.get(user_id)

    def get_user_preferences(self, user_id: str) -> Optional[UserPreferences]:
        return self.user_preferences.get(user_id)

    # -------------------------------------------------------------------
    # Analysis
    # -------------------------------------------------------------------

    def analyze_behavior_patterns(self, user_id: str) -> Dict[str, Any]:
        behavior = self.get_user_behavior(user_id)
        engagement = self.get_engagement_data(user_id)
        if behavior is None or engagement is None:
            return {
                "engagement_level": "low",
                "preferred_content": [],
                "optimal_time": "morning",
                "device_preference": "desktop",
            }

        if engagement.score > HIGH_ENGAGEMENT_SCORE:
            level = "high"
        elif engagement.score > MEDIUM_ENGAGEMENT_SCORE:
            level = "medium"
        else:
            level = "low"

        return {
            "engagement_level": level,
            "preferred_content": list(engagement.interests[:3]),
            "optimal_time": "evening" if behavior.time_on_site > EVENING_TIME_ON_SITE else "morning",
            "device_preference": "desktop" if behavior.page_views > DESKTOP_PAGE_VIEWS else "mobile",
        }

    def generate_recommendations(self, user_id: str) -> List[Recommendation]:
        """Recommendations sorted by confidence, highest first."""
        patterns = self.analyze_behavior_patterns(user_id)
        recs: List[Recommendation] = []

        if patterns["engagement_level"] == "high":
            recs.append(Recommendation(
                "tool",
                "Advanced Analytics Dashboard",
                "Deep dive into your performance metrics",
                0.9,
                "High engagement level indicates readiness for advanced features",
            ))

        # Interests are free text ("Leadership Development", "leadership")
        if any("leadership" in i.lower() for i in patterns["preferred_content"]):
            recs.append(Recommendation(
                "webinar",
                "Leadership Mastery Workshop",
                "Advanced leadership techniques for experienced professionals",
                0.8,
                "Based on your leadership interest patterns",
            ))

        if patterns["engagement_level"] == "low":
            recs.append(Recommendation(
                "assessment",
                "Personal Development Assessment",
                "Discover your strengths and growth areas",
                0.7,
                "New users benefit from self-assessment tools",
            ))

        recs.sort(key=lambda r: -r.confidence)
        return recs

    def recommend_content(self, context: ConditionContext, max_items: int = 3) -> List[ContentItem]:
        """Content catalog entries eligible for this context."""
        return select(CONTENT_CATALOG, context.engagement, context.behavior, max_items)

    def get_statistics(self) -> Dict[str, Any]:
        scores = [d.score for d in self.engagement_data.values()]
        active = [r for r in self.rules if r.active]
        return {
            "total_users": len(self.user_profiles),
            "active_rules": len(active),
            "average_engagement": sum(scores) / len(scores) if scores else 0.0,
            "top_performing_rule": active[0].rule_id if active else "none",
        }
