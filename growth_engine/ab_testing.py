"""
A/B Testing Engine -- Growth Engine
===================================

CTA color, copy, placement and timing experiments with sticky per-user
variant assignment, impression/click/conversion counters and a quick
confidence indicator per variant.

Assignment (per user, per test):
    UNASSIGNED -> ASSIGNED   first eligible call rolls traffic allocation,
                             then walks cumulative variant weights
    UNASSIGNED -> EXCLUDED   the allocation roll failed; never re-rolled
    Inactive tests (draft/paused/completed) record nothing, so a test that
    becomes active later assigns on the next call. Once a pair is assigned
    or excluded the stored answer is returned unconditionally.

Metrics (recomputed on every tracked event):
    CONVERSION RATE      -- conversions / impressions (0 with no impressions)
    CONFIDENCE INTERVAL  -- p +/- 1.96 * sqrt(p(1-p)/n), clipped to [0, 1]
    SIGNIFICANCE         -- min(0.99, 1 - margin/p) once impressions > 30;
                            a product indicator, not a hypothesis test
    Z-TEST vs CONTROL    -- two-proportion z-test reported in results
                            alongside the indicator (informational)

All data persisted to: data/ab_testing/

Usage:
    from growth_engine.ab_testing import ABTestEngine

    engine = ABTestEngine()
    variant_id = engine.get_variant("user-123", "cta-copy-test")
    if variant_id:
        await engine.track_impression("user-123", "cta-copy-test", variant_id)
        await engine.track_conversion("user-123", "cta-copy-test", variant_id)
    print(engine.export_results("cta-copy-test"))

    # Synchronous
    engine.track_click_sync("user-123", "cta-copy-test", variant_id)

CLI:
    python -m growth_engine.ab_testing list [--status active]
    python -m growth_engine.ab_testing show TEST_ID
    python -m growth_engine.ab_testing assign --user USER_ID --test TEST_ID
    python -m growth_engine.ab_testing record --user USER_ID --test TEST_ID --variant VARIANT_ID --event impression
    python -m growth_engine.ab_testing results TEST_ID
    python -m growth_engine.ab_testing start|pause|resume|complete TEST_ID
    python -m growth_engine.ab_testing export TEST_ID [--output results.json]
"""

from __future__ import annotations

import argparse
import asyncio
import concurrent.futures
import copy
import json
import logging
import math
import os
import random
import sys
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from growth_engine.conditions import Condition, ConditionContext, evaluate_all
from growth_engine.tracking import (
    EVENT_AB_ASSIGNMENT,
    EVENT_AB_CLICK,
    EVENT_AB_CONVERSION,
    EVENT_AB_IMPRESSION,
    TrackingSink,
)

logger = logging.getLogger("ab_testing")

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
DATA_DIR = DATA_ROOT / "ab_testing"
TESTS_FILE = "tests.json"
ASSIGNMENTS_FILE = "assignments.json"
EVENTS_FILE = "events.json"

# Ensure data directory exists on import
DATA_DIR.mkdir(parents=True, exist_ok=True)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_EVENTS_PER_TEST = 50_000
Z_95 = 1.96
SIGNIFICANCE_MIN_IMPRESSIONS = 30
MAX_SIGNIFICANCE = 0.99
WINNER_SIGNIFICANCE = 0.95
DEFAULT_CONFIDENCE_LEVEL = 0.95
DEFAULT_MIN_SAMPLE_SIZE = 1000

# Persisted marker for a (user, test) pair that lost the allocation roll
EXCLUDED = "__excluded__"

# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


def _now_utc() -> datetime:
    """Return the current time in UTC, timezone-aware."""
    return datetime.now(timezone.utc)


def _now_iso() -> str:
    """Return current UTC time as an ISO-8601 string."""
    return _now_utc().isoformat()


# ---------------------------------------------------------------------------
# JSON persistence helpers (atomic writes)
# ---------------------------------------------------------------------------


def _load_json(path: Path, default: Any = None) -> Any:
    """Load JSON from *path*, returning *default* when the file is missing or corrupt."""
    if default is None:
        default = {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except FileNotFoundError:
        return copy.deepcopy(default)
    except json.JSONDecodeError as exc:
        logger.warning("Corrupt state file %s treated as empty: %s", path, exc)
        return copy.deepcopy(default)


def _save_json(path: Path, data: Any) -> None:
    """Atomically write *data* as pretty-printed JSON to *path*."""
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


# ---------------------------------------------------------------------------
# Async/sync helper
# ---------------------------------------------------------------------------


def _run_sync(coro):
    """Run an async coroutine from synchronous code."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None
    if loop and loop.is_running():
        with concurrent.futures.ThreadPoolExecutor(1) as pool:
            return pool.submit(asyncio.run, coro).result()
    return asyncio.run(coro)


# ===========================================================================
# Enums
# ===========================================================================


class TestStatus(str, Enum):
    """Manual lifecycle; nothing transitions automatically."""
    __test__ = False

    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class EventType(str, Enum):
    IMPRESSION = "impression"
    CLICK = "click"
    CONVERSION = "conversion"


# ===========================================================================
# Dataclasses
# ===========================================================================


@dataclass
class Variant:
    """One arm of a test with its running counters."""
    variant_id: str = ""
    name: str = ""
    weight: float = 0.0
    config: Dict[str, Any] = field(default_factory=dict)
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    conversion_rate: float = 0.0
    confidence_interval: Tuple[float, float] = (0.0, 0.0)
    statistical_significance: float = 0.0

    @property
    def click_rate(self) -> float:
        if self.impressions == 0:
            return 0.0
        return self.clicks / self.impressions

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["confidence_interval"] = list(self.confidence_interval)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> Variant:
        d = dict(d)
        if isinstance(d.get("confidence_interval"), list):
            d["confidence_interval"] = tuple(d["confidence_interval"])
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})


@dataclass
class ABTest:
    """Test definition, lifecycle state and variants."""
    __test__ = False

    test_id: str = ""
    name: str = ""
    description: str = ""
    status: TestStatus = TestStatus.DRAFT
    traffic_allocation: float = 1.0
    variants: List[Variant] = field(default_factory=list)
    target_metric: str = "conversion_rate"
    minimum_sample_size: int = DEFAULT_MIN_SAMPLE_SIZE
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL
    targeting_rules: List[Dict[str, Any]] = field(default_factory=list)
    created_at: str = field(default_factory=_now_iso)
    started_at: Optional[str] = None
    paused_at: Optional[str] = None
    completed_at: Optional[str] = None
    updated_at: str = field(default_factory=_now_iso)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status == TestStatus.ACTIVE

    @property
    def control(self) -> Optional[Variant]:
        """The first variant is the control."""
        return self.variants[0] if self.variants else None

    @property
    def total_impressions(self) -> int:
        return sum(v.impressions for v in self.variants)

    @property
    def total_conversions(self) -> int:
        return sum(v.conversions for v in self.variants)

    def get_variant(self, variant_id: str) -> Optional[Variant]:
        for v in self.variants:
            if v.variant_id == variant_id:
                return v
        return None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        d["variants"] = [v.to_dict() for v in self.variants]
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> ABTest:
        d = dict(d)
        if "status" in d and isinstance(d["status"], str):
            try:
                d["status"] = TestStatus(d["status"])
            except ValueError:
                d["status"] = TestStatus.DRAFT
        raw_variants = d.pop("variants", [])
        d["variants"] = [
            Variant.from_dict(rv) if isinstance(rv, dict) else rv
            for rv in raw_variants
            if isinstance(rv, (dict, Variant))
        ]
        known = set(cls.__dataclass_fields__.keys())
        return cls(**{k: v for k, v in d.items() if k in known})


@dataclass
class TestEvent:
    """A single recorded impression, click or conversion."""
    __test__ = False

    event_id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    test_id: str = ""
    variant_id: str = ""
    user_id: str = ""
    event_type: str = EventType.IMPRESSION.value
    timestamp: str = field(default_factory=_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class VariantResult:
    """Per-variant figures for a results export."""
    variant_id: str = ""
    name: str = ""
    weight: float = 0.0
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    conversion_rate: float = 0.0
    confidence_interval: Tuple[float, float] = (0.0, 0.0)
    statistical_significance: float = 0.0
    lift_vs_control: Optional[float] = None
    z_score: float = 0.0
    p_value: float = 1.0
    is_winner: bool = False

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["confidence_interval"] = list(self.confidence_interval)
        return d


@dataclass
class TestResult:
    """Aggregated results for one test."""
    __test__ = False

    test_id: str = ""
    name: str = ""
    status: str = ""
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    total_impressions: int = 0
    total_conversions: int = 0
    minimum_sample_size: int = 0
    has_minimum_sample: bool = False
    winner: Optional[str] = None
    variant_results: List[VariantResult] = field(default_factory=list)
    calculated_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["variant_results"] = [vr.to_dict() for vr in self.variant_results]
        return d


# ===========================================================================
# Statistics
# ===========================================================================


def _normal_cdf(x: float) -> float:
    """
    Cumulative distribution function for the standard normal distribution.

    Abramowitz & Stegun approximation (formula 26.2.17), accurate to ~1.5e-7.
    """
    if x < -8.0:
        return 0.0
    if x > 8.0:
        return 1.0

    sign = 1.0
    if x < 0:
        sign = -1.0
        x = -x

    b1 = 0.319381530
    b2 = -0.356563782
    b3 = 1.781477937
    b4 = -1.821255978
    b5 = 1.330274429
    p = 0.2316419

    t = 1.0 / (1.0 + p * x)
    poly = t * (b1 + t * (b2 + t * (b3 + t * (b4 + t * b5))))
    pdf = math.exp(-0.5 * x * x) / math.sqrt(2.0 * math.pi)
    cdf = 1.0 - pdf * poly

    if sign < 0:
        cdf = 1.0 - cdf
    return cdf


def _z_test_proportions(
    p1: float, n1: int, p2: float, n2: int
) -> Tuple[float, float]:
    """
    Two-proportion Z-test of variant (p2, n2) against control (p1, n1).

    Returns:
        Tuple of (z_score, two-tailed p_value).
    """
    if n1 == 0 or n2 == 0:
        return 0.0, 1.0

    pooled = (p1 * n1 + p2 * n2) / (n1 + n2)
    if pooled == 0.0 or pooled == 1.0:
        return 0.0, 1.0

    se = math.sqrt(pooled * (1.0 - pooled) * (1.0 / n1 + 1.0 / n2))
    if se == 0.0:
        return 0.0, 1.0

    z = (p2 - p1) / se
    return z, 2.0 * (1.0 - _normal_cdf(abs(z)))


def _calculate_lift(control_rate: float, variant_rate: float) -> Optional[float]:
    """Percentage lift of variant over control; None when control is 0."""
    if control_rate == 0.0:
        return 0.0 if variant_rate == 0.0 else None
    return ((variant_rate - control_rate) / control_rate) * 100.0


def update_variant_metrics(variant: Variant) -> None:
    """
    Recompute derived metrics from the counters.

    The significance figure is the historical dashboard indicator
    ``min(0.99, 1 - margin / rate)``; it is left untouched until more than
    30 impressions exist and is 0 while the rate is 0.
    """
    n = variant.impressions
    p = variant.conversions / n if n > 0 else 0.0
    variant.conversion_rate = p

    margin = Z_95 * math.sqrt(p * (1.0 - p) / n) if n > 0 else 0.0
    variant.confidence_interval = (max(0.0, p - margin), min(1.0, p + margin))

    if n > SIGNIFICANCE_MIN_IMPRESSIONS:
        variant.statistical_significance = (
            min(MAX_SIGNIFICANCE, 1.0 - margin / p) if p > 0 else 0.0
        )


# ===========================================================================
# Assignment
# ===========================================================================


def _pick_variant(sample: float, variants: List[Variant]) -> Variant:
    """
    First variant whose cumulative weight reaches *sample*.

    Falls back to the first variant when weights sum below the sample.
    """
    if not variants:
        raise ValueError("No variants to assign")
    cumulative = 0.0
    for variant in variants:
        cumulative += variant.weight
        if sample <= cumulative:
            return variant
    return variants[0]


class AssignmentStore:
    """user_id -> test_id -> variant_id (or the EXCLUDED marker)."""

    def __init__(self, data: Optional[Dict[str, Dict[str, str]]] = None) -> None:
        self._data: Dict[str, Dict[str, str]] = {}
        for user_id, tests in (data or {}).items():
            if isinstance(tests, dict):
                self._data[str(user_id)] = {str(k): str(v) for k, v in tests.items()}

    def __len__(self) -> int:
        return sum(len(t) for t in self._data.values())

    def has(self, user_id: str, test_id: str) -> bool:
        return test_id in self._data.get(user_id, {})

    def get(self, user_id: str, test_id: str) -> Optional[str]:
        """Stored variant id, or None when unassigned or excluded."""
        value = self._data.get(user_id, {}).get(test_id)
        if value is None or value == EXCLUDED:
            return None
        return value

    def is_excluded(self, user_id: str, test_id: str) -> bool:
        return self._data.get(user_id, {}).get(test_id) == EXCLUDED

    def assign(self, user_id: str, test_id: str, variant_id: str) -> None:
        self._data.setdefault(user_id, {})[test_id] = variant_id

    def exclude(self, user_id: str, test_id: str) -> None:
        self._data.setdefault(user_id, {})[test_id] = EXCLUDED

    def for_user(self, user_id: str) -> Dict[str, str]:
        return dict(self._data.get(user_id, {}))

    def for_test(self, test_id: str) -> Dict[str, str]:
        return {
            user_id: tests[test_id]
            for user_id, tests in self._data.items()
            if test_id in tests
        }

    def drop_test(self, test_id: str) -> None:
        for tests in self._data.values():
            tests.pop(test_id, None)

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {user_id: dict(tests) for user_id, tests in self._data.items()}

    @classmethod
    def from_dict(cls, d: Dict[str, Dict[str, str]]) -> AssignmentStore:
        return cls(d)


# ===========================================================================
# Default tests
# ===========================================================================


def _variant(variant_id: str, name: str, weight: float, **config: Any) -> Variant:
    return Variant(variant_id=variant_id, name=name, weight=weight, config=config)


def default_tests() -> List[ABTest]:
    """The CTA experiments that ship active on first run."""
    return [
        ABTest(
            test_id="cta-color-test",
            name="CTA Button Color Test",
            description="Testing different CTA button colors for conversion optimization",
            status=TestStatus.ACTIVE,
            traffic_allocation=0.5,
            target_metric="click_rate",
            minimum_sample_size=1000,
            variants=[
                _variant("control", "Blue (Control)", 0.33, color="blue"),
                _variant("variant-a", "Orange", 0.33, color="orange"),
                _variant("variant-b", "Green", 0.34, color="green"),
            ],
        ),
        ABTest(
            test_id="cta-copy-test",
            name="CTA Copy Psychology Test",
            description="Testing psychological triggers in CTA copy",
            status=TestStatus.ACTIVE,
            traffic_allocation=0.4,
            target_metric="conversion_rate",
            minimum_sample_size=800,
            variants=[
                _variant("control", "Standard", 0.25, text="Get Started"),
                _variant("curiosity", "Curiosity", 0.25, text="Discover Your Hidden Potential"),
                _variant("urgency", "Urgency", 0.25, text="Start Now - Limited Time"),
                _variant("social-proof", "Social Proof", 0.25, text="Join 10,000+ Achievers"),
            ],
        ),
        ABTest(
            test_id="cta-placement-test",
            name="CTA Placement Test",
            description="Testing inline, floating and exit-intent CTA placement",
            status=TestStatus.ACTIVE,
            traffic_allocation=0.3,
            target_metric="engagement_rate",
            minimum_sample_size=1200,
            variants=[
                _variant("control", "Inline (Control)", 0.33, placement="inline"),
                _variant("floating", "Floating", 0.33, placement="floating"),
                _variant("exit-intent", "Exit Intent", 0.34, placement="exit-intent"),
            ],
        ),
        ABTest(
            test_id="cta-timing-test",
            name="CTA Timing Test",
            description="Testing when the CTA first appears",
            status=TestStatus.ACTIVE,
            traffic_allocation=0.35,
            target_metric="time-to-conversion",
            minimum_sample_size=1000,
            variants=[
                _variant("immediate", "Immediate", 0.25, trigger="immediate", delay=0),
                _variant("delayed-30s", "Delayed 30s", 0.25, trigger="time", delay=30),
                _variant("scroll-50", "Scroll 50%", 0.25, trigger="scroll", percent=50),
                _variant("engagement-based", "Engagement Based", 0.25, trigger="time", delay=60),
            ],
        ),
    ]


# ===========================================================================
# ABTestEngine
# ===========================================================================


class ABTestEngine:
    """
    A/B assignment and metrics tracker.

    Owns its tests, assignments and event log; each instance persists to its
    own data directory so isolated instances can coexist (one per test run).
    Unknown test or variant ids never raise: lookups return None and
    tracking calls are no-ops.
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        rng: Optional[random.Random] = None,
        tracker: Optional[TrackingSink] = None,
        seed_defaults: bool = True,
    ) -> None:
        self.data_dir = Path(data_dir) if data_dir is not None else DATA_DIR
        self._rng = rng or random.Random()
        self._tracker = tracker
        self._tests: Dict[str, ABTest] = {}
        self._assignments = AssignmentStore()
        self._events: Dict[str, List[Dict[str, Any]]] = {}
        self._load()
        if seed_defaults and not self._tests:
            for test in default_tests():
                self._tests[test.test_id] = test
            self._save_tests()

    # -------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------

    @property
    def tests_file(self) -> Path:
        return self.data_dir / TESTS_FILE

    @property
    def assignments_file(self) -> Path:
        return self.data_dir / ASSIGNMENTS_FILE

    @property
    def events_file(self) -> Path:
        return self.data_dir / EVENTS_FILE

    def _load(self) -> None:
        """Load all state from disk; unreadable parts become empty state."""
        raw_tests = _load_json(self.tests_file, {})
        self._tests = {}
        if isinstance(raw_tests, dict):
            for tid, tdata in raw_tests.items():
                try:
                    self._tests[tid] = ABTest.from_dict(tdata)
                except Exception as exc:
                    logger.warning("Failed to load test %s: %s", tid, exc)

        raw_assignments = _load_json(self.assignments_file, {})
        self._assignments = AssignmentStore(
            raw_assignments if isinstance(raw_assignments, dict) else {}
        )

        raw_events = _load_json(self.events_file, {})
        self._events = raw_events if isinstance(raw_events, dict) else {}

        logger.debug(
            "Loaded %d tests, %d assignments, %d event streams",
            len(self._tests), len(self._assignments), len(self._events),
        )

    def _save_tests(self) -> None:
        _save_json(self.tests_file, {tid: t.to_dict() for tid, t in self._tests.items()})

    def _save_assignments(self) -> None:
        _save_json(self.assignments_file, self._assignments.to_dict())

    def _save_events(self) -> None:
        _save_json(self.events_file, self._events)

    # -------------------------------------------------------------------
    # Test management
    # -------------------------------------------------------------------

    def create_test(
        self,
        test_id: str,
        name: str,
        variants: List[Dict[str, Any]],
        traffic_allocation: float = 1.0,
        description: str = "",
        status: TestStatus = TestStatus.DRAFT,
        minimum_sample_size: int = DEFAULT_MIN_SAMPLE_SIZE,
        confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
        target_metric: str = "conversion_rate",
        targeting_rules: Optional[List[Dict[str, Any]]] = None,
    ) -> ABTest:
        """
        Register a new test.

        Each variant dict needs ``variant_id`` and ``weight``; ``name`` and
        ``config`` are optional. Weights are not normalised.

        Raises:
            ValueError: duplicate id, no variants, or allocation outside [0, 1].
        """
        if test_id in self._tests:
            raise ValueError(f"Test '{test_id}' already exists.")
        if not variants:
            raise ValueError("A test needs at least one variant.")
        if not 0.0 <= traffic_allocation <= 1.0:
            raise ValueError("traffic_allocation must be within [0, 1].")

        built: List[Variant] = []
        seen = set()
        for vdef in variants:
            vid = str(vdef.get("variant_id") or vdef.get("id") or "")
            if not vid or vid in seen:
                raise ValueError(f"Invalid or duplicate variant id {vid!r}.")
            seen.add(vid)
            built.append(Variant(
                variant_id=vid,
                name=vdef.get("name", vid),
                weight=float(vdef.get("weight", 0.0)),
                config=dict(vdef.get("config", {})),
            ))

        test = ABTest(
            test_id=test_id,
            name=name,
            description=description,
            status=TestStatus(status),
            traffic_allocation=traffic_allocation,
            variants=built,
            target_metric=target_metric,
            minimum_sample_size=minimum_sample_size,
            confidence_level=confidence_level,
            targeting_rules=list(targeting_rules or []),
        )
        if test.status == TestStatus.ACTIVE:
            test.started_at = _now_iso()
        self._tests[test_id] = test
        self._save_tests()
        logger.info("Created test '%s' with %d variants", test_id, len(built))
        return test

    def _set_status(self, test_id: str, status: TestStatus) -> Optional[ABTest]:
        test = self._tests.get(test_id)
        if test is None:
            logger.warning("Status change for unknown test '%s' ignored", test_id)
            return None
        now = _now_iso()
        test.status = status
        if status == TestStatus.ACTIVE and test.started_at is None:
            test.started_at = now
        elif status == TestStatus.PAUSED:
            test.paused_at = now
        elif status == TestStatus.COMPLETED:
            test.completed_at = now
        test.updated_at = now
        self._save_tests()
        logger.info("Test '%s' is now %s", test_id, status.value)
        return test

    def start_test(self, test_id: str) -> Optional[ABTest]:
        return self._set_status(test_id, TestStatus.ACTIVE)

    def pause_test(self, test_id: str) -> Optional[ABTest]:
        return self._set_status(test_id, TestStatus.PAUSED)

    def resume_test(self, test_id: str) -> Optional[ABTest]:
        return self._set_status(test_id, TestStatus.ACTIVE)

    def complete_test(self, test_id: str) -> Optional[ABTest]:
        return self._set_status(test_id, TestStatus.COMPLETED)

    def delete_test(self, test_id: str) -> bool:
        if self._tests.pop(test_id, None) is None:
            return False
        self._assignments.drop_test(test_id)
        self._events.pop(test_id, None)
        self._save_tests()
        self._save_assignments()
        self._save_events()
        return True

    def get_test(self, test_id: str) -> Optional[ABTest]:
        return self._tests.get(test_id)

    def list_tests(self, status: Optional[TestStatus] = None) -> List[ABTest]:
        tests = list(self._tests.values())
        if status is not None:
            tests = [t for t in tests if t.status == TestStatus(status)]
        return tests

    def get_active_tests(self) -> List[ABTest]:
        return self.list_tests(TestStatus.ACTIVE)

    # -------------------------------------------------------------------
    # Assignment
    # -------------------------------------------------------------------

    def get_variant(
        self,
        user_id: str,
        test_id: str,
        context: Optional[ConditionContext] = None,
    ) -> Optional[str]:
        """
        Return the user's variant id for *test_id*, assigning on first eligible call.

        Returns None for unknown tests, inactive tests (nothing recorded),
        users failing the test's targeting rules (nothing recorded) and
        users excluded by the traffic-allocation roll (recorded, permanent).
        """
        test = self._tests.get(test_id)
        if test is None:
            logger.debug("get_variant: unknown test '%s'", test_id)
            return None

        if self._assignments.has(user_id, test_id):
            return self._assignments.get(user_id, test_id)

        if test.status != TestStatus.ACTIVE or not test.variants:
            return None

        if test.targeting_rules:
            rules = [Condition.from_dict(r) for r in test.targeting_rules]
            if context is None or not evaluate_all(rules, context):
                return None

        if self._rng.random() > test.traffic_allocation:
            self._assignments.exclude(user_id, test_id)
            self._save_assignments()
            logger.debug("User %s excluded from '%s' by allocation", user_id, test_id)
            return None

        variant = _pick_variant(self._rng.random(), test.variants)
        self._assignments.assign(user_id, test_id, variant.variant_id)
        self._save_assignments()
        if self._tracker is not None:
            self._tracker.emit(
                EVENT_AB_ASSIGNMENT,
                {"test_id": test_id, "variant_id": variant.variant_id, "test_name": test.name},
                user_id=user_id,
            )
        return variant.variant_id

    def get_assignment(self, user_id: str, test_id: str) -> Optional[str]:
        """Existing variant id for the user, never assigning."""
        return self._assignments.get(user_id, test_id)

    def is_excluded(self, user_id: str, test_id: str) -> bool:
        return self._assignments.is_excluded(user_id, test_id)

    def get_variant_config(self, test_id: str, variant_id: str) -> Optional[Dict[str, Any]]:
        test = self._tests.get(test_id)
        if test is None:
            return None
        variant = test.get_variant(variant_id)
        return dict(variant.config) if variant else None

    def get_user_config(
        self, user_id: str, test_id: str, context: Optional[ConditionContext] = None
    ) -> Optional[Dict[str, Any]]:
        """Config of the user's variant, assigning if needed."""
        variant_id = self.get_variant(user_id, test_id, context)
        if variant_id is None:
            return None
        return self.get_variant_config(test_id, variant_id)

    def export_assignments(self) -> Dict[str, Dict[str, str]]:
        return self._assignments.to_dict()

    def import_assignments(self, data: Dict[str, Dict[str, str]]) -> None:
        self._assignments = AssignmentStore.from_dict(data)
        self._save_assignments()

    # -------------------------------------------------------------------
    # Event tracking
    # -------------------------------------------------------------------

    def _record(self, user_id: str, test_id: str, variant_id: str, event: EventType) -> Optional[Variant]:
        test = self._tests.get(test_id)
        if test is None:
            logger.debug("Ignoring %s for unknown test '%s'", event.value, test_id)
            return None
        variant = test.get_variant(variant_id)
        if variant is None:
            logger.debug("Ignoring %s for unknown variant '%s/%s'", event.value, test_id, variant_id)
            return None

        if event == EventType.IMPRESSION:
            variant.impressions += 1
        elif event == EventType.CLICK:
            variant.clicks += 1
        else:
            variant.conversions += 1
        update_variant_metrics(variant)
        test.updated_at = _now_iso()

        stream = self._events.setdefault(test_id, [])
        stream.append(TestEvent(
            test_id=test_id, variant_id=variant_id, user_id=user_id, event_type=event.value,
        ).to_dict())
        if len(stream) > MAX_EVENTS_PER_TEST:
            self._events[test_id] = stream[-MAX_EVENTS_PER_TEST:]

        self._save_tests()
        self._save_events()
        return variant

    def _report(self, event_type: str, user_id: str, test_id: str, variant_id: str) -> None:
        if self._tracker is None:
            return
        self._tracker.emit(
            event_type, {"test_id": test_id, "variant_id": variant_id}, user_id=user_id,
        )

    async def track_impression(self, user_id: str, test_id: str, variant_id: str) -> Optional[Variant]:
        """Count an impression; returns the updated variant or None."""
        variant = self._record(user_id, test_id, variant_id, EventType.IMPRESSION)
        if variant is not None:
            self._report(EVENT_AB_IMPRESSION, user_id, test_id, variant_id)
        return variant

    async def track_click(self, user_id: str, test_id: str, variant_id: str) -> Optional[Variant]:
        """Count a click; returns the updated variant or None."""
        variant = self._record(user_id, test_id, variant_id, EventType.CLICK)
        if variant is not None:
            self._report(EVENT_AB_CLICK, user_id, test_id, variant_id)
        return variant

    async def track_conversion(self, user_id: str, test_id: str, variant_id: str) -> Optional[Variant]:
        """Count a conversion; returns the updated variant or None."""
        variant = self._record(user_id, test_id, variant_id, EventType.CONVERSION)
        if variant is not None:
            self._report(EVENT_AB_CONVERSION, user_id, test_id, variant_id)
        return variant

    def track_impression_sync(self, user_id: str, test_id: str, variant_id: str) -> Optional[Variant]:
        """Synchronous wrapper for track_impression."""
        return _run_sync(self.track_impression(user_id, test_id, variant_id))

    def track_click_sync(self, user_id: str, test_id: str, variant_id: str) -> Optional[Variant]:
        """Synchronous wrapper for track_click."""
        return _run_sync(self.track_click(user_id, test_id, variant_id))

    def track_conversion_sync(self, user_id: str, test_id: str, variant_id: str) -> Optional[Variant]:
        """Synchronous wrapper for track_conversion."""
        return _run_sync(self.track_conversion(user_id, test_id, variant_id))

    # -------------------------------------------------------------------
    # Results
    # -------------------------------------------------------------------

    def _is_winner(self, test: ABTest, variant: Variant) -> bool:
        if not test.variants:
            return False
        best = max(v.conversion_rate for v in test.variants)
        return (
            variant.conversion_rate == best
            and variant.statistical_significance > WINNER_SIGNIFICANCE
        )

    def get_results(self, test_id: str) -> Optional[TestResult]:
        """Per-variant metrics, the heuristic winner and a z-test vs control."""
        test = self._tests.get(test_id)
        if test is None:
            return None

        control = test.control
        results: List[VariantResult] = []
        winner: Optional[str] = None
        for variant in test.variants:
            vr = VariantResult(
                variant_id=variant.variant_id,
                name=variant.name,
                weight=variant.weight,
                impressions=variant.impressions,
                clicks=variant.clicks,
                conversions=variant.conversions,
                conversion_rate=variant.conversion_rate,
                confidence_interval=variant.confidence_interval,
                statistical_significance=variant.statistical_significance,
                is_winner=self._is_winner(test, variant),
            )
            if control is not None and variant is not control:
                vr.lift_vs_control = _calculate_lift(control.conversion_rate, variant.conversion_rate)
                vr.z_score, vr.p_value = _z_test_proportions(
                    control.conversion_rate, control.impressions,
                    variant.conversion_rate, variant.impressions,
                )
            if vr.is_winner and winner is None:
                winner = variant.variant_id
            results.append(vr)

        return TestResult(
            test_id=test.test_id,
            name=test.name,
            status=test.status.value,
            started_at=test.started_at,
            completed_at=test.completed_at,
            total_impressions=test.total_impressions,
            total_conversions=test.total_conversions,
            minimum_sample_size=test.minimum_sample_size,
            has_minimum_sample=all(
                v.impressions >= test.minimum_sample_size for v in test.variants
            ) if test.variants else False,
            winner=winner,
            variant_results=results,
        )

    def export_results(self, test_id: str) -> Optional[Dict[str, Any]]:
        result = self.get_results(test_id)
        if result is None:
            return None
        data = result.to_dict()
        data["assignments"] = len(self._assignments.for_test(test_id))
        data["events"] = len(self._events.get(test_id, []))
        return data

    def get_events(self, test_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        return list(self._events.get(test_id, [])[-limit:])


# ===========================================================================
# Singleton
# ===========================================================================

_engine: Optional[ABTestEngine] = None


def get_engine() -> ABTestEngine:
    """Return the shared ABTestEngine used by the CLI, creating it on first call."""
    global _engine
    if _engine is None:
        _engine = ABTestEngine()
    return _engine


# ===========================================================================
# CLI Command Handlers
# ===========================================================================


def _require_test(engine: ABTestEngine, test_id: str) -> ABTest:
    test = engine.get_test(test_id)
    if test is None:
        print(f"Unknown test: {test_id}")
        sys.exit(1)
    return test


def _cmd_list(args: argparse.Namespace) -> None:
    """List tests."""
    engine = get_engine()
    status = None
    if args.status:
        try:
            status = TestStatus(args.status)
        except ValueError:
            print(f"Invalid status: {args.status}")
            print(f"Valid: {', '.join(s.value for s in TestStatus)}")
            sys.exit(1)
    tests = engine.list_tests(status)
    if not tests:
        print("No tests found.")
        return
    print(f"\n  {'TEST ID':<22} {'STATUS':<10} {'ALLOC':>6} {'VARIANTS':>9} {'IMPR':>8} {'CONV':>6}")
    print(f"  {'-' * 22} {'-' * 10} {'-' * 6} {'-' * 9} {'-' * 8} {'-' * 6}")
    for t in tests:
        print(
            f"  {t.test_id:<22} {t.status.value:<10} {t.traffic_allocation:>6.2f} "
            f"{len(t.variants):>9} {t.total_impressions:>8} {t.total_conversions:>6}"
        )
    print()


def _cmd_show(args: argparse.Namespace) -> None:
    """Show a test definition."""
    test = _require_test(get_engine(), args.test_id)
    print(json.dumps(test.to_dict(), indent=2))


def _cmd_assign(args: argparse.Namespace) -> None:
    """Assign (or look up) a user's variant."""
    engine = get_engine()
    _require_test(engine, args.test)
    variant_id = engine.get_variant(args.user, args.test)
    if variant_id is None:
        reason = "excluded by allocation" if engine.is_excluded(args.user, args.test) else "not eligible"
        print(f"{args.user} -> (none: {reason})")
    else:
        print(f"{args.user} -> {variant_id}")


def _cmd_record(args: argparse.Namespace) -> None:
    """Record an impression, click or conversion."""
    engine = get_engine()
    handlers = {
        "impression": engine.track_impression_sync,
        "click": engine.track_click_sync,
        "conversion": engine.track_conversion_sync,
    }
    handler = handlers.get(args.event)
    if handler is None:
        print(f"Invalid event: {args.event} (impression, click, conversion)")
        sys.exit(1)
    variant = handler(args.user, args.test, args.variant)
    if variant is None:
        print("Nothing recorded: unknown test or variant.")
        sys.exit(1)
    print(
        f"Recorded {args.event} for {args.test}/{args.variant}: "
        f"{variant.impressions} impr, {variant.clicks} clicks, {variant.conversions} conv, "
        f"rate {variant.conversion_rate:.2%}"
    )


def _cmd_results(args: argparse.Namespace) -> None:
    """Print results for a test."""
    engine = get_engine()
    _require_test(engine, args.test_id)
    result = engine.get_results(args.test_id)
    print(f"\n  {result.name} ({result.test_id}) -- {result.status}")
    print(f"  Impressions: {result.total_impressions}   Conversions: {result.total_conversions}   "
          f"Min sample reached: {'yes' if result.has_minimum_sample else 'no'}")
    print(f"\n  {'VARIANT':<18} {'IMPR':>7} {'CONV':>6} {'RATE':>8} {'CI':>17} {'SIG':>6} {'P':>7}")
    for vr in result.variant_results:
        ci = f"[{vr.confidence_interval[0]:.3f}, {vr.confidence_interval[1]:.3f}]"
        mark = " *" if vr.is_winner else ""
        print(
            f"  {vr.variant_id:<18} {vr.impressions:>7} {vr.conversions:>6} "
            f"{vr.conversion_rate:>8.2%} {ci:>17} {vr.statistical_significance:>6.2f} "
            f"{vr.p_value:>7.4f}{mark}"
        )
    print(f"\n  Winner: {result.winner or 'none yet'}\n")


def _status_command(action: str):
    def _handler(args: argparse.Namespace) -> None:
        engine = get_engine()
        test = getattr(engine, f"{action}_test")(args.test_id)
        if test is None:
            print(f"Unknown test: {args.test_id}")
            sys.exit(1)
        print(f"{test.test_id}: {test.status.value}")
    _handler.__doc__ = f"{action.capitalize()} a test."
    return _handler


def _cmd_export(args: argparse.Namespace) -> None:
    """Export results as JSON."""
    engine = get_engine()
    data = engine.export_results(args.test_id)
    if data is None:
        print(f"Unknown test: {args.test_id}")
        sys.exit(1)
    text = json.dumps(data, indent=2, default=str)
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"Exported to {args.output}")
    else:
        print(text)


# ===========================================================================
# Main / CLI Entry Point
# ===========================================================================


def main() -> None:
    """CLI entry point for the A/B testing engine."""
    parser = argparse.ArgumentParser(
        prog="ab_testing",
        description="A/B assignment and metrics for Growth Engine CTAs",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    p_list = subparsers.add_parser("list", help="List tests")
    p_list.add_argument("--status", default=None, help="Filter by status")
    p_list.set_defaults(func=_cmd_list)

    p_show = subparsers.add_parser("show", help="Show a test definition")
    p_show.add_argument("test_id", help="Test ID")
    p_show.set_defaults(func=_cmd_show)

    p_assign = subparsers.add_parser("assign", help="Get or assign a user's variant")
    p_assign.add_argument("--user", required=True, help="User ID")
    p_assign.add_argument("--test", required=True, help="Test ID")
    p_assign.set_defaults(func=_cmd_assign)

    p_record = subparsers.add_parser("record", help="Record an event")
    p_record.add_argument("--user", required=True, help="User ID")
    p_record.add_argument("--test", required=True, help="Test ID")
    p_record.add_argument("--variant", required=True, help="Variant ID")
    p_record.add_argument("--event", required=True, help="impression, click or conversion")
    p_record.set_defaults(func=_cmd_record)

    p_results = subparsers.add_parser("results", help="Show test results")
    p_results.add_argument("test_id", help="Test ID")
    p_results.set_defaults(func=_cmd_results)

    for action in ("start", "pause", "resume", "complete"):
        p_status = subparsers.add_parser(action, help=f"{action.capitalize()} a test")
        p_status.add_argument("test_id", help="Test ID")
        p_status.set_defaults(func=_status_command(action))

    p_export = subparsers.add_parser("export", help="Export results as JSON")
    p_export.add_argument("test_id", help="Test ID")
    p_export.add_argument("--output", "-o", default=None, help="Output file path")
    p_export.set_defaults(func=_cmd_export)

    args = parser.parse_args()

    if args.verbose:
        logger.setLevel(logging.DEBUG)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    args.func(args)


if __name__ == "__main__":
    main()
