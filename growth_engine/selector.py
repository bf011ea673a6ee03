"""
Rule-Based Selector -- Growth Engine
====================================

Filters a static catalog (CTAs or content) by each item's declarative
SelectionConditions, ranks the survivors by priority and truncates.

Selection:
    FILTER    -- every populated condition must hold (AND across fields,
                 OR within list-valued fields)
    RANK      -- stable sort by descending priority; ties keep catalog order
    TRUNCATE  -- at most max_items, no padding

CTAService wires the selector to a JourneyStore: every journey mutation marks
the current selection stale (event-driven), and an optional asyncio polling
loop recomputes on a fixed interval as a fallback.

Usage:
    from growth_engine.selector import CTAService, select
    from growth_engine.catalog import CTA_CATALOG

    ctas = select(CTA_CATALOG, engagement, behavior, max_items=3)

    service = CTAService(EngagementEngine(), store, ab_engine=ABTestEngine())
    for entry in await service.present("user-123"):
        print(entry.cta.text, entry.variant_id)

CLI:
    python -m growth_engine.selector ctas --score 45 --pattern researcher --duration 200
    python -m growth_engine.selector content --score 60 --tier engaged --section decision-door
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar, Union

from growth_engine.catalog import (
    CONTENT_CATALOG,
    CTA_CATALOG,
    ContentItem,
    CTAConfig,
    SelectionConditions,
    get_cta,
)
from growth_engine.engagement import (
    BehaviorPattern,
    EngagementEngine,
    EngagementLevel,
    EngagementTier,
    classify,
)
from growth_engine.journey import BehaviorSnapshot, JourneyStore
from growth_engine.tracking import EVENT_INTERACTION, TrackingSink

logger = logging.getLogger("selector")

CTA_REFRESH_SECONDS = float(os.getenv("GROWTH_CTA_REFRESH_SECONDS", "30"))
DEFAULT_MAX_CTAS = 3

CatalogItem = Union[CTAConfig, ContentItem]
T = TypeVar("T", CTAConfig, ContentItem)


# ===========================================================================
# Selection
# ===========================================================================


def conditions_satisfied(
    conditions: SelectionConditions,
    engagement: EngagementLevel,
    behavior: BehaviorSnapshot,
) -> bool:
    """True when every populated field of *conditions* holds."""
    c = conditions
    if c.min_engagement_score is not None and engagement.score < c.min_engagement_score:
        return False
    if c.max_engagement_score is not None and engagement.score > c.max_engagement_score:
        return False
    if (
        c.required_behavior_pattern is not None
        and engagement.behavior_pattern.value not in c.required_behavior_pattern
    ):
        return False
    if c.required_tier is not None and engagement.tier.value not in c.required_tier:
        return False
    if (
        c.min_time_on_page is not None
        and behavior.session_duration_seconds < c.min_time_on_page
    ):
        return False
    if c.required_sections is not None and not (
        set(c.required_sections) & behavior.sections_viewed
    ):
        return False
    if c.exclude_if_completed is not None and (
        set(c.exclude_if_completed) & behavior.tools_used
    ):
        return False
    return True


def select(
    catalog: Sequence[T],
    engagement: EngagementLevel,
    behavior: BehaviorSnapshot,
    max_items: int,
) -> List[T]:
    """Filter by conditions, stable-sort by priority descending, truncate."""
    if max_items <= 0:
        return []
    eligible = [
        item for item in catalog
        if conditions_satisfied(item.conditions, engagement, behavior)
    ]
    eligible.sort(key=lambda item: -item.priority)
    return eligible[:max_items]


def apply_variant(item: T, variant_id: Optional[str]) -> T:
    """Return *item* with the variant's text/description/styling overrides merged in."""
    if not variant_id:
        return item
    body = item.variants.get(variant_id)
    if body is None:
        return item

    if isinstance(item, CTAConfig):
        styling = dict(item.styling)
        styling.update(body.styling)
        return replace(
            item,
            text=body.text or item.text,
            description=body.description or item.description,
            styling=styling,
        )
    return replace(
        item,
        title=body.text or item.title,
        description=body.description or item.description,
    )


# ===========================================================================
# CTAService
# ===========================================================================


@dataclass
class PresentedCTA:
    """A selected CTA with its A/B variant already applied."""
    cta: CTAConfig
    variant_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = self.cta.to_dict()
        d["variant_id"] = self.variant_id
        return d


class CTAService:
    """
    Keeps the CTA selection for one journey current.

    Journey mutations only mark the cached selection stale; the next call to
    :meth:`current` (or the polling loop) recomputes it. ``on_change``
    callbacks receive the new selection whenever it differs.
    """

    def __init__(
        self,
        engine: EngagementEngine,
        journey: JourneyStore,
        ab_engine=None,
        tracker: Optional[TrackingSink] = None,
        catalog: Sequence[CTAConfig] = CTA_CATALOG,
        max_ctas: int = DEFAULT_MAX_CTAS,
        refresh_interval: float = CTA_REFRESH_SECONDS,
    ) -> None:
        self.engine = engine
        self.journey = journey
        self.ab_engine = ab_engine
        self.tracker = tracker
        self.catalog = tuple(catalog)
        self.max_ctas = max_ctas
        self.refresh_interval = refresh_interval
        self.recomputations = 0
        self._dirty = True
        self._selection: List[CTAConfig] = []
        self._listeners: List[Callable[[List[CTAConfig]], None]] = []
        self._poll_task: Optional[asyncio.Task] = None
        self._unsubscribe = journey.subscribe(self._on_journey_change)

    # -------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------

    def _on_journey_change(self, event: str, store: JourneyStore) -> None:
        self._dirty = True
        if self._listeners:
            self.refresh()

    def on_change(self, callback: Callable[[List[CTAConfig]], None]) -> None:
        self._listeners.append(callback)

    def refresh(self) -> List[CTAConfig]:
        """Recompute the selection now."""
        behavior = self.journey.snapshot()
        engagement = self.engine.evaluate(behavior)
        selection = select(self.catalog, engagement, behavior, self.max_ctas)
        self.recomputations += 1
        self._dirty = False
        changed = [c.cta_id for c in selection] != [c.cta_id for c in self._selection]
        self._selection = selection
        if changed:
            logger.debug(
                "CTA selection now %s (score %d)",
                [c.cta_id for c in selection], engagement.score,
            )
            for callback in list(self._listeners):
                try:
                    callback(list(selection))
                except Exception as exc:
                    logger.warning("CTA listener failed: %s", exc)
        return list(selection)

    def current(self) -> List[CTAConfig]:
        if self._dirty:
            return self.refresh()
        return list(self._selection)

    # -------------------------------------------------------------------
    # Polling fallback
    # -------------------------------------------------------------------

    def start_polling(self) -> None:
        """Start the fallback refresh loop (requires a running event loop)."""
        if self._poll_task is not None and not self._poll_task.done():
            return

        async def _loop() -> None:
            while True:
                await asyncio.sleep(self.refresh_interval)
                try:
                    self.refresh()
                except Exception as exc:
                    logger.error("CTA refresh failed: %s", exc)

        self._poll_task = asyncio.create_task(_loop())
        logger.debug("CTA polling every %.0fs", self.refresh_interval)

    async def stop(self) -> None:
        """Cancel polling and detach from the journey store."""
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None
        self._unsubscribe()

    # -------------------------------------------------------------------
    # Presentation and clicks
    # -------------------------------------------------------------------

    def _variant_for(self, cta: CTAConfig, user_id: Optional[str]) -> Optional[str]:
        if self.ab_engine is None or not cta.ab_test_id or not user_id:
            return None
        return self.ab_engine.get_variant(user_id, cta.ab_test_id)

    async def present(self, user_id: Optional[str] = None) -> List[PresentedCTA]:
        """Current CTAs with variants applied; records an A/B impression for each."""
        user_id = user_id or self.journey.user_id
        presented: List[PresentedCTA] = []
        for cta in self.current():
            variant_id = self._variant_for(cta, user_id)
            if variant_id is not None:
                await self.ab_engine.track_impression(user_id, cta.ab_test_id, variant_id)
            presented.append(PresentedCTA(apply_variant(cta, variant_id), variant_id))
        return presented

    async def handle_click(self, cta_id: str, user_id: Optional[str] = None) -> Optional[CTAConfig]:
        """Record a CTA click in the journey, the A/B tracker and the tracking sink."""
        cta = next((c for c in self.catalog if c.cta_id == cta_id), None)
        if cta is None:
            logger.debug("Click on unknown CTA '%s' ignored", cta_id)
            return None
        user_id = user_id or self.journey.user_id
        variant_id = None
        if self.ab_engine is not None and cta.ab_test_id and user_id:
            # Only users already shown a variant count toward the test
            variant_id = self.ab_engine.get_assignment(user_id, cta.ab_test_id)
        if variant_id is not None:
            await self.ab_engine.track_click(user_id, cta.ab_test_id, variant_id)
            await self.ab_engine.track_conversion(user_id, cta.ab_test_id, variant_id)
        self.journey.track_cta_click(cta_id)
        if self.tracker is not None:
            self.tracker.emit(
                EVENT_INTERACTION,
                {
                    "type": "cta_click",
                    "cta_id": cta_id,
                    "commitment_level": cta.commitment_level.value,
                    "variant_id": variant_id,
                },
                user_id=user_id,
                session_id=self.journey.session_id,
            )
        return cta


# ===========================================================================
# CLI
# ===========================================================================


def _engagement_from_args(args: argparse.Namespace) -> EngagementLevel:
    behavior = _behavior_from_args(args)
    level = classify(args.score, behavior)
    if args.pattern:
        level.behavior_pattern = BehaviorPattern(args.pattern)
    if args.tier:
        level.tier = EngagementTier(args.tier)
    return level


def _behavior_from_args(args: argparse.Namespace) -> BehaviorSnapshot:
    return BehaviorSnapshot(
        session_duration_seconds=args.duration,
        sections_viewed=set(args.section or []),
        tools_used=set(args.tool or []),
    )


def _print_items(items: Sequence[CatalogItem]) -> None:
    if not items:
        print("  (nothing eligible)")
        return
    for item in items:
        label = item.text if isinstance(item, CTAConfig) else item.title
        print(f"  [{item.priority:>2}] {item.item_id:<30} {label}")


def _cmd_ctas(args: argparse.Namespace) -> None:
    """Select CTAs for the given engagement."""
    try:
        engagement = _engagement_from_args(args)
    except ValueError as exc:
        print(f"Invalid input: {exc}")
        sys.exit(1)
    print(f"\n  score={engagement.score} tier={engagement.tier.value} "
          f"pattern={engagement.behavior_pattern.value}\n")
    _print_items(select(CTA_CATALOG, engagement, _behavior_from_args(args), args.max))
    print()


def _cmd_content(args: argparse.Namespace) -> None:
    """Select content items for the given engagement."""
    try:
        engagement = _engagement_from_args(args)
    except ValueError as exc:
        print(f"Invalid input: {exc}")
        sys.exit(1)
    print()
    _print_items(select(CONTENT_CATALOG, engagement, _behavior_from_args(args), args.max))
    print()


def _cmd_show(args: argparse.Namespace) -> None:
    """Show a CTA with an optional variant applied."""
    cta = get_cta(args.cta_id)
    if cta is None:
        print(f"Unknown CTA: {args.cta_id}")
        sys.exit(1)
    shown = apply_variant(cta, args.variant)
    for key, value in shown.to_dict().items():
        print(f"  {key:<24} {value}")


def main() -> None:
    """CLI entry point for the selector."""
    parser = argparse.ArgumentParser(
        prog="selector",
        description="Rule-based CTA and content selection",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for name, handler, default_max in (("ctas", _cmd_ctas, DEFAULT_MAX_CTAS), ("content", _cmd_content, 5)):
        p = subparsers.add_parser(name, help=f"Select {name}")
        p.add_argument("--score", type=int, required=True, help="Engagement score 0-100")
        p.add_argument("--pattern", default=None, help="Override behavior pattern")
        p.add_argument("--tier", default=None, help="Override tier")
        p.add_argument("--duration", type=int, default=0, help="Time on page in seconds")
        p.add_argument("--section", action="append", help="Section viewed (repeat)")
        p.add_argument("--tool", action="append", help="Tool used (repeat)")
        p.add_argument("--max", type=int, default=default_max, help="Maximum items")
        p.set_defaults(func=handler)

    p_show = subparsers.add_parser("show", help="Show a CTA")
    p_show.add_argument("cta_id", help="CTA ID")
    p_show.add_argument("--variant", default=None, help="Variant ID to apply")
    p_show.set_defaults(func=_cmd_show)

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    args.func(args)


if __name__ == "__main__":
    main()
