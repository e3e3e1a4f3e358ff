"""
DEMON Blade-Rate Lock

Hysteretic state machine that decides whether a stable blade-pass frequency
(BPF) is present for an analysis target.

Lock Lifecycle:
    SEARCHING -> TENTATIVE -> LOCKED -> LOST -> TENTATIVE | SEARCHING

Each update:
    1. Candidate BPFs: prior estimate, rpm/blade hint, peak-spacing median
       (plus caller-supplied candidates), restricted to [2, max_freq / 2]
    2. Best candidate by harmonic comb score; estimate blended 74 / 26
    3. evidence = 0.78 · comb + 0.22 · signal quality
    4. confidence follows evidence with attack / release time constants
       (fast release while signal energy is low)
    5. State transition on confidence thresholds and harmonic hits

Locks not updated for the stale timeout are pruned.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Sequence

import numpy as np

from sonarsim.utils.numeric import clamp

from .harmonics import CombScore, estimate_bpf_from_peaks, score_comb

logger = logging.getLogger(__name__)

MIN_CANDIDATE_HZ = 2.0
ESTIMATE_KEEP = 0.74
COMB_EVIDENCE_WEIGHT = 0.78
QUALITY_EVIDENCE_WEIGHT = 0.22


class LockState(Enum):
    """Blade-rate lock states."""

    SEARCHING = "SEARCHING"  # No credible periodicity
    TENTATIVE = "TENTATIVE"  # Evidence building
    LOCKED = "LOCKED"  # Stable BPF with ≥2 harmonics
    LOST = "LOST"  # Lock dropped, may recover


@dataclass
class DemonLockConfig:
    """
    Lock state machine tunables.

    Attributes:
        comb_tolerance_hz: Base harmonic search half-width [Hz]
        max_harmonics: Harmonics scored per candidate
        lock_on: Confidence to enter LOCKED
        lock_off: Confidence below which LOCKED drops to LOST
        tentative_on: Confidence to enter TENTATIVE
        tentative_off: Confidence below which TENTATIVE/LOST fall to SEARCHING
        attack: Confidence rise rate
        release: Confidence fall rate
        low_energy_fast_release: Fall rate while signal quality is low
        low_energy_threshold: Signal quality considered low
        stale_timeout_sec: Seconds without update before a lock is pruned
    """

    comb_tolerance_hz: float = 1.3
    max_harmonics: int = 8
    lock_on: float = 0.68
    lock_off: float = 0.42
    tentative_on: float = 0.36
    tentative_off: float = 0.2
    attack: float = 0.24
    release: float = 0.12
    low_energy_fast_release: float = 0.34
    low_energy_threshold: float = 0.18
    stale_timeout_sec: float = 45.0

    def apply_responsiveness(self, responsiveness: float) -> None:
        """Map a 0-1 responsiveness onto time constants and thresholds."""
        r = clamp(responsiveness)
        self.attack = 0.14 + 0.22 * r
        self.release = 0.08 + 0.18 * r
        self.low_energy_fast_release = 0.22 + 0.23 * r
        self.lock_on = 0.74 - 0.12 * r
        self.lock_off = 0.5 - 0.16 * r


@dataclass
class DemonLock:
    """
    Lock state for one analysis target.

    Attributes:
        target_id: Analysis target (None for the auto-analysis lock)
        bpf_estimate_hz: Smoothed BPF estimate
        confidence: Lock confidence [0, 1]
        harmonic_hits: Hits of the best candidate
        harmonic_count: Harmonics evaluated for the best candidate
        comb_score: Best candidate comb score this update
        state: Lock state
        last_update_time: Time of the last update [s]
    """

    target_id: Optional[str]
    bpf_estimate_hz: Optional[float] = None
    confidence: float = 0.0
    harmonic_hits: int = 0
    harmonic_count: int = 0
    comb_score: float = 0.0
    state: LockState = LockState.SEARCHING
    last_update_time: float = 0.0


def candidate_bpfs(
    prior: Optional[float],
    hint: Optional[float],
    peaks: Sequence[float],
    max_freq_hz: float,
    extra: Iterable[float] = (),
) -> list:
    """Deduplicated candidate BPFs (2-decimal rounding) within [2, max_freq / 2]."""
    raw = [prior, hint, estimate_bpf_from_peaks(peaks, max_freq_hz), *extra]
    upper = max_freq_hz * 0.5
    seen = []
    for value in raw:
        if value is None or not math.isfinite(value):
            continue
        value = round(float(value), 2)
        if MIN_CANDIDATE_HZ <= value <= upper and value not in seen:
            seen.append(value)
    return seen


class DemonLockTracker:
    """
    Per-target blade-rate locks.

    Example:
        >>> tracker = DemonLockTracker()
        >>> lock = tracker.update("target-01", spectrum, [18, 54], 0.9, bpf_hint=18.0,
        ...                       max_freq_hz=80, now=1.0)
        >>> lock.state
    """

    def __init__(self, config: Optional[DemonLockConfig] = None) -> None:
        self.config = config or DemonLockConfig()
        self.locks: Dict[Optional[str], DemonLock] = {}

    def get(self, target_id: Optional[str]) -> Optional[DemonLock]:
        return self.locks.get(target_id)

    def reset(self) -> None:
        self.locks.clear()

    def prune_stale(self, now: float) -> None:
        timeout = self.config.stale_timeout_sec
        for key in [k for k, lock in self.locks.items() if now - lock.last_update_time > timeout]:
            logger.debug("DEMON lock for %s pruned (stale)", key)
            del self.locks[key]

    def update(
        self,
        target_id: Optional[str],
        spectrum: Optional[np.ndarray],
        peaks: Sequence[float],
        signal_quality: float,
        bpf_hint: Optional[float],
        max_freq_hz: float,
        now: float,
        extra_candidates: Iterable[float] = (),
    ) -> DemonLock:
        """
        Advance the lock for one target.

        Args:
            target_id: Analysis target (None = auto analysis)
            spectrum: Smoothed whitened spectrum (None before the first analysis)
            peaks: Stable peak frequencies
            signal_quality: Integrated signal quality [0, 1]
            bpf_hint: BPF implied by known rpm / blade count
            max_freq_hz: Analysis band upper edge
            now: Current time [s]
            extra_candidates: Additional candidate BPFs

        Returns:
            Updated lock
        """
        cfg = self.config
        self.prune_stale(now)

        lock = self.locks.get(target_id)
        if lock is None:
            lock = DemonLock(target_id=target_id, last_update_time=now)
            self.locks[target_id] = lock

        best_hz = None
        best = CombScore()
        if spectrum is not None:
            for candidate in candidate_bpfs(
                lock.bpf_estimate_hz, bpf_hint, peaks, max_freq_hz, extra_candidates
            ):
                result = score_comb(
                    spectrum, candidate, max_freq_hz, cfg.comb_tolerance_hz, cfg.max_harmonics
                )
                if best_hz is None or result.score > best.score:
                    best_hz = candidate
                    best = result

        if best_hz is not None:
            if lock.bpf_estimate_hz is None:
                lock.bpf_estimate_hz = best_hz
            else:
                lock.bpf_estimate_hz = lock.bpf_estimate_hz * ESTIMATE_KEEP + best_hz * (1.0 - ESTIMATE_KEEP)

        lock.harmonic_hits = best.hits
        lock.harmonic_count = best.harmonic_count
        lock.comb_score = best.score

        quality = clamp(signal_quality if math.isfinite(signal_quality) else 0.0)
        evidence = clamp(COMB_EVIDENCE_WEIGHT * best.score + QUALITY_EVIDENCE_WEIGHT * quality)
        if evidence >= lock.confidence:
            tau = cfg.attack
        elif quality < cfg.low_energy_threshold:
            tau = cfg.low_energy_fast_release
        else:
            tau = cfg.release
        lock.confidence = clamp(lock.confidence + (evidence - lock.confidence) * tau)

        previous = lock.state
        lock.state = self._next_state(lock)
        if lock.state != previous:
            logger.debug(
                "DEMON lock %s: %s -> %s (confidence %.2f, BPF %s)",
                target_id, previous.value, lock.state.value, lock.confidence, lock.bpf_estimate_hz,
            )

        lock.last_update_time = now
        return lock

    def _next_state(self, lock: DemonLock) -> LockState:
        cfg = self.config
        conf = lock.confidence
        hits = lock.harmonic_hits

        if lock.state == LockState.LOCKED:
            if conf < cfg.lock_off or hits < 2:
                return LockState.LOST
            return LockState.LOCKED

        if lock.state == LockState.LOST:
            if conf >= cfg.tentative_on and hits >= 1:
                return LockState.TENTATIVE
            if conf < cfg.tentative_off:
                return LockState.SEARCHING
            return LockState.LOST

        if lock.state == LockState.TENTATIVE:
            if conf >= cfg.lock_on and hits >= 2:
                return LockState.LOCKED
            if conf < cfg.tentative_off:
                return LockState.SEARCHING
            return LockState.TENTATIVE

        if conf >= cfg.tentative_on and hits >= 1:
            return LockState.TENTATIVE
        return LockState.SEARCHING
