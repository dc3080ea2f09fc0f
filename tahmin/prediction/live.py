"""
Live Signal Scanner
===================

Turns in-play snapshots into urgency-tiered opportunities:

1. Run every detector on the tick (momentum compares against the oldest
   retained tick inside the momentum window)
2. Merge signals: the strongest one wins, each other signal backing the
   same market and pick adds a bonus
3. Tier by urgency and drop anything under the minimum confidence
4. Suppress repeats of the same fixture + signal type + score within
   the cooldown window

Ticks of one fixture are processed one at a time and in minute order;
older ticks are rejected. Different fixtures scan concurrently.

Usage:
    scanner = LiveSignalScanner()
    opportunity = scanner.scan(snapshot)
"""

import logging
import threading
import time
from collections import defaultdict, deque
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional

from tahmin.config import LiveThresholds, get_config
from tahmin.data.schemas import (
    DetectorSignal, FixtureStatus, LiveOpportunity, LiveSnapshot, Urgency,
)
from tahmin.data.processors.validate import validate_snapshot
from .detectors import PRESSURE_SIGNALS, run_detectors

logger = logging.getLogger(__name__)


def classify_urgency(confidence: float, minute: int, signal_type, thresholds: LiveThresholds) -> Urgency:
    if confidence >= thresholds.critical_confidence:
        return Urgency.CRITICAL
    if minute >= thresholds.late_game_minute and signal_type in PRESSURE_SIGNALS:
        return Urgency.CRITICAL
    if confidence >= thresholds.high_confidence:
        return Urgency.HIGH
    return Urgency.MEDIUM


def merge_signals(
    snapshot: LiveSnapshot,
    signals: List[DetectorSignal],
    thresholds: LiveThresholds,
    now: datetime,
) -> Optional[LiveOpportunity]:
    """
    Combine one tick's signals into a single opportunity.

    Returns:
        The merged opportunity, or None when nothing clears min_confidence
    """
    if not signals:
        return None

    primary = max(signals, key=lambda s: s.confidence)
    backing = [
        s for s in signals
        if s is not primary and s.market == primary.market and s.pick == primary.pick
    ]
    confidence = min(
        thresholds.max_confidence,
        primary.confidence + thresholds.merge_bonus * len(backing),
    )
    if confidence < thresholds.min_confidence:
        return None

    reasoning = "; ".join([primary.reasoning] + [s.reasoning for s in backing])
    return LiveOpportunity(
        fixture_id=snapshot.fixture_id,
        minute=snapshot.minute,
        score=snapshot.score,
        type=primary.type,
        market=primary.market,
        pick=primary.pick,
        estimated_odds=primary.estimated_odds,
        confidence=confidence,
        urgency=classify_urgency(confidence, snapshot.minute, primary.type, thresholds),
        reasoning=reasoning,
        signals=[primary.type] + [s.type for s in backing],
        detected_at=now,
        expires_at=now + timedelta(minutes=thresholds.opportunity_ttl_minutes),
    )


@dataclass
class FixtureState:
    """Scanner bookkeeping for one fixture, mutated only under its lock."""
    lock: threading.Lock = field(default_factory=threading.Lock)
    history: Deque[LiveSnapshot] = field(default_factory=deque)
    last_minute: Optional[int] = None
    last_seen: Optional[datetime] = None
    emitted: Dict[str, datetime] = field(default_factory=dict)


class LiveSignalScanner:
    """
    Stateful wrapper around the detectors: keeps per-fixture history,
    the last tick minute and the last-emitted fingerprints.

    Each fixture owns its state; the shared table of fixtures is only
    touched under a guard lock, so fixtures can be scanned (and reset)
    from different threads.
    """

    def __init__(
        self,
        thresholds: Optional[LiveThresholds] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.thresholds = thresholds or get_config().live
        self.clock = clock

        self._states: Dict[int, FixtureState] = {}
        self._guard = threading.Lock()

    @property
    def cooldown(self) -> timedelta:
        return timedelta(minutes=self.thresholds.cooldown_minutes)

    def _state_for(self, fixture_id: int) -> FixtureState:
        with self._guard:
            state = self._states.get(fixture_id)
            if state is None:
                state = self._states[fixture_id] = FixtureState()
            return state

    def tracked_fixtures(self) -> List[int]:
        with self._guard:
            return list(self._states)

    def _window_start(self, state: FixtureState, snapshot: LiveSnapshot) -> Optional[LiveSnapshot]:
        """Oldest retained tick inside the momentum window; trims older ticks."""
        history = state.history
        window = self.thresholds.momentum.window_minutes
        while history and snapshot.minute - history[0].minute > window:
            history.popleft()
        return history[0] if history else None

    def is_suppressed(self, fixture_id: int, fingerprint: str, now: datetime) -> bool:
        with self._guard:
            state = self._states.get(fixture_id)
        if state is None:
            return False
        last = state.emitted.get(fingerprint)
        return last is not None and now - last < self.cooldown

    def scan(self, snapshot: Any, now: Optional[datetime] = None) -> Optional[LiveOpportunity]:
        """
        Process one tick.

        Returns:
            A new opportunity, or None (nothing triggered, suppressed by
            cooldown, stale tick or finished fixture)
        """
        snapshot = validate_snapshot(snapshot)
        now = now or snapshot.observed_at or self.clock()
        fixture_id = snapshot.fixture_id

        if snapshot.status == FixtureStatus.FINISHED:
            self.reset(fixture_id)
            return None

        state = self._state_for(fixture_id)
        with state.lock:
            if state.last_minute is not None and snapshot.minute < state.last_minute:
                logger.warning(
                    f"Fixture {fixture_id}: out-of-order tick at minute {snapshot.minute} "
                    f"(already at {state.last_minute}), ignored"
                )
                return None

            state.last_minute = snapshot.minute
            state.last_seen = now
            previous = self._window_start(state, snapshot)
            state.history.append(snapshot)

            # expired fingerprints
            for key in [k for k, t in state.emitted.items() if now - t >= self.cooldown]:
                del state.emitted[key]

            signals = run_detectors(snapshot, self.thresholds, previous)
            opportunity = merge_signals(snapshot, signals, self.thresholds, now)
            if opportunity is None:
                return None

            fingerprint = opportunity.fingerprint
            if fingerprint in state.emitted:
                logger.debug(f"Suppressed repeat {fingerprint} at minute {snapshot.minute}")
                return None
            state.emitted[fingerprint] = now

        logger.info(
            f"Live opportunity {fingerprint}: {opportunity.market} {opportunity.pick} "
            f"conf={opportunity.confidence:.1f} urgency={opportunity.urgency.value}"
        )
        return opportunity

    def scan_many(self, snapshots: Iterable[Any], max_workers: int = 5) -> List[LiveOpportunity]:
        """
        Scan a batch of ticks: fixtures in parallel, each fixture's ticks
        sequentially in arrival order. Results sorted by confidence.
        """
        by_fixture: Dict[int, List[LiveSnapshot]] = defaultdict(list)
        for raw in snapshots:
            snap = validate_snapshot(raw)
            by_fixture[snap.fixture_id].append(snap)

        if not by_fixture:
            return []

        opportunities: List[LiveOpportunity] = []
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = {
                pool.submit(self._scan_sequence, ticks): fixture_id
                for fixture_id, ticks in by_fixture.items()
            }
            for future in as_completed(futures):
                opportunities.extend(future.result())

        opportunities.sort(key=lambda o: -o.confidence)
        return opportunities

    def _scan_sequence(self, ticks: List[LiveSnapshot]) -> List[LiveOpportunity]:
        found = []
        for tick in ticks:
            opp = self.scan(tick)
            if opp is not None:
                found.append(opp)
        return found

    def reset(self, fixture_id: int) -> None:
        """Forget history, fingerprints and the lock of a fixture."""
        with self._guard:
            self._states.pop(fixture_id, None)

    def prune(self, now: Optional[datetime] = None) -> List[int]:
        """
        Drop fixtures that have sent no tick for a full cooldown.

        `now` defaults to the newest tick time seen by the scanner, so
        replayed ticks and live ticks are pruned on their own clock.

        Returns:
            The fixture ids that were dropped
        """
        with self._guard:
            if now is None:
                seen = [s.last_seen for s in self._states.values() if s.last_seen is not None]
                if not seen:
                    return []
                now = max(seen)
            stale = [
                fixture_id for fixture_id, s in self._states.items()
                if s.last_seen is not None and now - s.last_seen >= self.cooldown
            ]
            for fixture_id in stale:
                del self._states[fixture_id]

        if stale:
            logger.debug(f"Pruned idle fixtures {stale}")
        return stale


class LivePoller:
    """
    Polls a snapshot source on a fixed cadence and feeds the scanner.

    Finished fixtures are dropped from polling for the rest of the run.

    Usage:
        poller = LivePoller(scanner, fetch=client.live_snapshots)
        poller.run(max_ticks=90)
    """

    def __init__(
        self,
        scanner: LiveSignalScanner,
        fetch: Callable[[], Iterable[Any]],
        interval: Optional[float] = None,
        on_opportunity: Optional[Callable[[LiveOpportunity], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_workers: int = 5,
    ):
        self.scanner = scanner
        self.fetch = fetch
        self.interval = interval if interval is not None else scanner.thresholds.poll_interval_seconds
        self.on_opportunity = on_opportunity
        self.sleep = sleep
        self.max_workers = max_workers

        self.finished: set = set()
        self.tick_count = 0
        self.error_count = 0
        self._stop = threading.Event()

    def poll_once(self) -> List[LiveOpportunity]:
        snapshots = []
        for raw in self.fetch():
            snap = validate_snapshot(raw)
            if snap.fixture_id in self.finished:
                continue
            if snap.status == FixtureStatus.FINISHED:
                self.finished.add(snap.fixture_id)
                self.scanner.reset(snap.fixture_id)
                logger.info(f"Fixture {snap.fixture_id} finished, polling stopped")
                continue
            snapshots.append(snap)

        opportunities = self.scanner.scan_many(snapshots, max_workers=self.max_workers)
        self.scanner.prune()
        if self.on_opportunity:
            for opp in opportunities:
                self.on_opportunity(opp)
        self.tick_count += 1
        return opportunities

    def run(self, max_ticks: Optional[int] = None) -> List[LiveOpportunity]:
        """Poll until stopped (or max_ticks reached); returns everything emitted."""
        emitted: List[LiveOpportunity] = []
        self._stop.clear()
        logger.info(f"Live polling started (every {self.interval:.0f}s)")

        while not self._stop.is_set():
            try:
                emitted.extend(self.poll_once())
            except Exception as e:
                self.error_count += 1
                self.tick_count += 1
                logger.error(f"Live poll failed: {e}")

            if max_ticks is not None and self.tick_count >= max_ticks:
                break
            if self._stop.is_set():
                break
            self.sleep(self.interval)

        logger.info(f"Live polling stopped after {self.tick_count} ticks, {len(emitted)} opportunities")
        return emitted

    def stop(self) -> None:
        self._stop.set()
