"""
Growth Engine

Engagement scoring, CTA/content selection, A/B assignment, behavioral and
psychological triggers for the Galaxy Dream Team visitor journey.

Usage:
    from growth_engine.journey import JourneyStore
    from growth_engine.engagement import EngagementEngine

    store = JourneyStore()
    store.track_section_view("success-gap")
    level = EngagementEngine().evaluate(store.snapshot())
"""

__version__ = "1.0.0"
