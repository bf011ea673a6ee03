"""Test selector — Growth Engine."""
from __future__ import annotations

import asyncio
import random

import pytest

try:
    from growth_engine.ab_testing import ABTestEngine
    from growth_engine.catalog import (
        CONTENT_CATALOG,
        CTA_CATALOG,
        CommitmentLevel,
        CTAConfig,
        SelectionConditions,
        get_content,
        get_cta,
    )
    from growth_engine.engagement import (
        BehaviorPattern,
        EngagementBand,
        EngagementLevel,
        EngagementTier,
        classify,
    )
    from growth_engine.journey import BehaviorSnapshot, JourneyStore
    from growth_engine.selector import (
        CTAService,
        apply_variant,
        conditions_satisfied,
        select,
    )
    from growth_engine.tracking import EVENT_INTERACTION, TrackingSink
    HAS_MODULE = True
except ImportError:
    HAS_MODULE = False

pytestmark = pytest.mark.skipif(
    not HAS_MODULE, reason="selector module not available"
)


def _level(score_value, pattern="explorer", tier=None):
    tier_value = tier or classify(score_value, BehaviorSnapshot()).tier.value
    return EngagementLevel(
        score=score_value,
        level=EngagementBand.LOW,
        tier=EngagementTier(tier_value),
        behavior_pattern=BehaviorPattern(pattern),
    )


def _store():
    """Journey started at the wall clock with one minute on page."""
    store = JourneyStore(user_id="u1")
    store.update_time_on_page(60)
    return store


def _cta(cta_id, priority, **conditions):
    return CTAConfig(
        cta_id=cta_id,
        text=cta_id,
        description="",
        commitment_level=CommitmentLevel.MICRO,
        action="noop",
        priority=priority,
        conditions=SelectionConditions(**conditions),
    )


# ===================================================================
# Catalog
# ===================================================================

class TestCatalog:

    def test_catalog_sizes(self):
        assert len(CTA_CATALOG) == 12
        assert len(CONTENT_CATALOG) == 12

    def test_unique_ids(self):
        assert len({c.cta_id for c in CTA_CATALOG}) == len(CTA_CATALOG)
        assert len({c.content_id for c in CONTENT_CATALOG}) == len(CONTENT_CATALOG)

    def test_lookup(self):
        assert get_cta("see-your-score").ab_test_id == "cta-copy-test"
        assert get_cta("nope") is None
        assert get_content("live-masterclass-webinar").priority == 11
        assert get_content("nope") is None

    def test_to_dict_serialisable(self):
        d = get_cta("see-your-score").to_dict()
        assert d["commitment_level"] == "micro"
        assert d["conditions"] == {"max_engagement_score": 30, "min_time_on_page": 30}
        assert "curiosity" in d["variants"]


# ===================================================================
# conditions_satisfied
# ===================================================================

class TestConditionsSatisfied:

    def test_empty_conditions_always_hold(self):
        assert conditions_satisfied(SelectionConditions(), _level(0), BehaviorSnapshot())

    def test_score_bounds(self):
        c = SelectionConditions(min_engagement_score=30, max_engagement_score=70)
        b = BehaviorSnapshot()
        assert not conditions_satisfied(c, _level(29), b)
        assert conditions_satisfied(c, _level(30), b)
        assert conditions_satisfied(c, _level(70), b)
        assert not conditions_satisfied(c, _level(71), b)

    def test_pattern_any_of(self):
        c = SelectionConditions(required_behavior_pattern=("researcher", "skeptic"))
        assert conditions_satisfied(c, _level(10, "skeptic"), BehaviorSnapshot())
        assert not conditions_satisfied(c, _level(10, "explorer"), BehaviorSnapshot())

    def test_sections_any_of(self):
        c = SelectionConditions(required_sections=("success-gap", "change-paradox"))
        assert conditions_satisfied(c, _level(10), BehaviorSnapshot(sections_viewed={"change-paradox"}))
        assert not conditions_satisfied(c, _level(10), BehaviorSnapshot(sections_viewed={"vision-void"}))

    def test_time_on_page(self):
        c = SelectionConditions(min_time_on_page=180)
        assert not conditions_satisfied(c, _level(10), BehaviorSnapshot(session_duration_seconds=179))
        assert conditions_satisfied(c, _level(10), BehaviorSnapshot(session_duration_seconds=180))

    def test_exclude_if_completed(self):
        c = SelectionConditions(exclude_if_completed=("potential-assessment",))
        assert conditions_satisfied(c, _level(10), BehaviorSnapshot())
        assert not conditions_satisfied(
            c, _level(10), BehaviorSnapshot(tools_used={"potential-assessment"}),
        )


# ===================================================================
# select
# ===================================================================

class TestSelect:

    def test_every_result_is_eligible(self):
        rng = random.Random(7)
        for _ in range(200):
            b = BehaviorSnapshot(
                session_duration_seconds=rng.randint(0, 900),
                sections_viewed=set(rng.sample(
                    ["success-gap", "change-paradox", "vision-void", "leadership-lever", "decision-door"],
                    rng.randint(0, 3),
                )),
            )
            level = _level(
                rng.randint(0, 100),
                rng.choice(["explorer", "researcher", "skeptic", "action-taker"]),
            )
            n = rng.randint(0, 5)
            result = select(CTA_CATALOG, level, b, n)
            assert len(result) <= n
            for cta in result:
                assert conditions_satisfied(cta.conditions, level, b)
            priorities = [c.priority for c in result]
            assert priorities == sorted(priorities, reverse=True)

    def test_zero_max_items(self):
        assert select(CTA_CATALOG, _level(10), BehaviorSnapshot(session_duration_seconds=60), 0) == []

    def test_no_padding(self):
        catalog = (_cta("only", 1, min_engagement_score=90),)
        assert select(catalog, _level(10), BehaviorSnapshot(), 3) == []

    def test_stable_on_priority_ties(self):
        catalog = (_cta("first", 5), _cta("second", 5), _cta("top", 9))
        ids = [c.cta_id for c in select(catalog, _level(10), BehaviorSnapshot(), 3)]
        assert ids == ["top", "first", "second"]

    def test_low_engagement_micro_ctas(self):
        b = BehaviorSnapshot(session_duration_seconds=60)
        ids = [c.cta_id for c in select(CTA_CATALOG, _level(10), b, 3)]
        assert ids == ["see-your-score", "calculate-now"]

    def test_soft_member_macro_ctas(self):
        b = BehaviorSnapshot(session_duration_seconds=700, sections_viewed={"decision-door"})
        level = _level(85, "action-taker", "soft-member")
        ids = [c.cta_id for c in select(CTA_CATALOG, level, b, 3)]
        assert ids == ["book-transformation-session", "apply-for-program", "visit-our-office"]

    def test_content_completed_assessment_excluded(self):
        b = BehaviorSnapshot(tools_used={"potential-assessment"})
        ids = [c.content_id for c in select(CONTENT_CATALOG, _level(10), b, 5)]
        assert "potential-assessment" not in ids

    def test_content_webinar_for_engaged(self):
        b = BehaviorSnapshot(session_duration_seconds=200)
        items = select(CONTENT_CATALOG, _level(55, tier="engaged"), b, 1)
        assert items[0].content_id == "live-masterclass-webinar"


# ===================================================================
# apply_variant
# ===================================================================

class TestApplyVariant:

    def test_copy_variant(self):
        cta = apply_variant(get_cta("see-your-score"), "curiosity")
        assert cta.text == "Discover Your Hidden Potential"
        assert cta.cta_id == "see-your-score"

    def test_styling_variant_merges(self):
        cta = apply_variant(get_cta("get-the-answer"), "variant-a")
        assert cta.styling["color"] == "orange"
        assert cta.styling["variant"] == "ghost"
        assert cta.text == "Get the Answer"

    def test_unknown_variant_unchanged(self):
        original = get_cta("see-your-score")
        assert apply_variant(original, "nope") is original
        assert apply_variant(original, None) is original

    def test_catalog_not_mutated(self):
        apply_variant(get_cta("see-your-score"), "urgency")
        assert get_cta("see-your-score").text == "See Your Score"


# ===================================================================
# CTAService
# ===================================================================

class TestCTAService:

    def test_refresh_is_lazy(self, engine):
        store = _store()
        service = CTAService(engine, store)
        service.current()
        assert service.recomputations == 1
        service.current()
        assert service.recomputations == 1
        store.track_section_view("success-gap")
        service.current()
        assert service.recomputations == 2

    def test_listeners_receive_changes(self, engine):
        store = _store()
        service = CTAService(engine, store)
        seen = []
        service.on_change(lambda ctas: seen.append([c.cta_id for c in ctas]))
        service.refresh()
        store.track_section_view("success-gap")
        assert seen
        assert "get-the-answer" in seen[-1]

    @pytest.mark.asyncio
    async def test_stop_detaches(self, engine):
        store = _store()
        service = CTAService(engine, store, refresh_interval=0.01)
        service.start_polling()
        await asyncio.sleep(0.05)
        assert service.recomputations >= 1
        await service.stop()
        count = service.recomputations
        store.track_section_view("success-gap")
        await asyncio.sleep(0.03)
        assert service.recomputations == count
        assert service._dirty is False

    @pytest.mark.asyncio
    async def test_present_and_click_track_ab(self, engine, tmp_path):
        ab = ABTestEngine(data_dir=tmp_path, rng=random.Random(1))
        ab.get_test("cta-copy-test").traffic_allocation = 1.0
        store = _store()
        tracker = TrackingSink(endpoint="")
        service = CTAService(engine, store, ab_engine=ab, tracker=tracker)

        presented = await service.present()
        top = next(p for p in presented if p.cta.cta_id == "see-your-score")
        assert top.variant_id is not None
        variant = ab.get_test("cta-copy-test").get_variant(top.variant_id)
        assert variant.impressions == 1

        clicked = await service.handle_click("see-your-score")
        await tracker.flush()
        assert clicked.cta_id == "see-your-score"
        assert variant.clicks == 1
        assert variant.conversions == 1
        assert store.ctas_clicked == ["see-your-score"]
        assert tracker.recent(EVENT_INTERACTION)[-1]["event_data"]["cta_id"] == "see-your-score"

    @pytest.mark.asyncio
    async def test_click_without_presentation_never_assigns(self, engine, tmp_path):
        ab = ABTestEngine(data_dir=tmp_path, rng=random.Random(1))
        test = ab.get_test("cta-copy-test")
        test.traffic_allocation = 1.0
        store = _store()
        service = CTAService(engine, store, ab_engine=ab)

        clicked = await service.handle_click("see-your-score")
        assert clicked.cta_id == "see-your-score"
        assert store.ctas_clicked == ["see-your-score"]
        assert ab.get_assignment(store.user_id, "cta-copy-test") is None
        assert not ab.is_excluded(store.user_id, "cta-copy-test")
        assert sum(v.clicks for v in test.variants) == 0

    @pytest.mark.asyncio
    async def test_unknown_click_ignored(self, engine):
        store = _store()
        service = CTAService(engine, store)
        assert await service.handle_click("nope") is None
        assert store.ctas_clicked == []
