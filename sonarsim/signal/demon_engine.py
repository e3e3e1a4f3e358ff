"""
DEMON Spectral Engine

Frame-driven DEMON analyzer: buffers raw bus samples, periodically
computes the whitened envelope spectrum, tracks spectral lines and keeps a
blade-rate lock for the selected contact (or an automatic lock on the
composite bus when nothing is selected).

Features:
    - 131072-sample history; analysis every third frame
    - COMPOSITE / SELECTED analysis sources
    - Own-ship self-noise notching on the composite bus
    - Ping-transient suppression on the composite bus
    - Per-target snapshot / restore of spectra, peak tracks and locks
    - Responsiveness and focus-width operator controls

Example:
    >>> engine = DemonEngine()
    >>> readout = engine.update(frame, 44100.0, selected_target=DemonTarget("target-01", 120, 3))
    >>> readout.lock_state, readout.bpf_estimate_hz
"""

import copy
import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import numpy as np

from sonarsim.utils.numeric import clamp, finite_or

from .demon import (
    DEFAULT_MAX_FREQ_HZ,
    QUALITY_RATE,
    apply_self_noise_mask,
    compute_envelope_spectrum,
    instantaneous_quality,
    select_window_length,
    smooth_spectrum,
    whiten_spectrum,
)
from .lock import DemonLock, DemonLockConfig, DemonLockTracker, LockState
from .peaks import PeakTrack, PeakTracker
from .ring_buffer import DEFAULT_CAPACITY, SampleRingBuffer

logger = logging.getLogger(__name__)

DEFAULT_BLADE_COUNT = 5
MIN_FOCUS_WIDTH_HZ = 0.6
MAX_FOCUS_WIDTH_HZ = 3.0
DISPLAY_SCORE_RATE = 0.12

PING_SPECTRUM_DECAY = 0.92
PING_QUALITY_DECAY = 0.84


class SourceMode(Enum):
    """Audio bus feeding the analyzer."""

    COMPOSITE = "COMPOSITE"  # Everything the array hears, own-ship included
    SELECTED = "SELECTED"  # Beamformed contact-only bus


@dataclass
class DemonConfig:
    """
    DEMON engine configuration.

    Attributes:
        buffer_length: Sample history [samples]
        max_freq_hz: Spectrum upper edge [Hz]
        analysis_interval: Frames between spectrum analyses
        responsiveness: Smoothing / lock agility [0, 1]
        focus_width_hz: Peak match window and comb tolerance [Hz]
        self_noise_suppression: Notch own-ship BPF harmonics
        cache_min_seconds: Minimum lifetime of a cached target analysis [s]
        lock: Lock state machine tunables
    """

    buffer_length: int = DEFAULT_CAPACITY
    max_freq_hz: int = DEFAULT_MAX_FREQ_HZ
    analysis_interval: int = 3
    responsiveness: float = 0.55
    focus_width_hz: float = 1.3
    self_noise_suppression: bool = True
    cache_min_seconds: float = 20.0
    lock: DemonLockConfig = field(default_factory=DemonLockConfig)


@dataclass
class DemonTarget:
    """Contact selected for analysis, with optional machinery hints."""

    target_id: str
    rpm: Optional[float] = None
    blade_count: Optional[int] = None

    @property
    def bpf_hint_hz(self) -> Optional[float]:
        rpm = finite_or(self.rpm, 0.0)
        if rpm <= 0:
            return None
        blades = self.blade_count if self.blade_count is not None else DEFAULT_BLADE_COUNT
        return rpm / 60.0 * max(1, blades)


@dataclass
class OwnShipSignature:
    """Own-ship machinery used for self-noise notching."""

    rpm: float = 0.0
    blade_count: int = 0
    bpf_hz: Optional[float] = None

    @property
    def blade_rate_hz(self) -> float:
        if self.bpf_hz is not None and math.isfinite(self.bpf_hz):
            return self.bpf_hz
        if self.rpm > 0 and self.blade_count > 0:
            return self.rpm / 60.0 * self.blade_count
        return 0.0


@dataclass
class DemonReadout:
    """
    Presentation snapshot of the analyzer.

    Attributes:
        target_id: Analysis target (None in auto mode)
        source_mode: Bus analysed
        spectrum: Smoothed whitened spectrum, index = Hz (None before the first analysis)
        peaks: Stable peak frequencies [Hz]
        lock_state: Lock state of the active lock
        bpf_estimate_hz: Blade-pass frequency estimate
        confidence: Lock confidence
        harmonic_hits: Hits of the best comb candidate
        display_harmonic_score: Smoothed harmonic score for display
        signal_quality: Integrated signal quality
        analysis_max_freq_hz: Band used for the lock
    """

    target_id: Optional[str]
    source_mode: SourceMode
    spectrum: Optional[np.ndarray]
    peaks: List[int]
    lock_state: LockState
    bpf_estimate_hz: Optional[float]
    confidence: float
    harmonic_hits: int
    display_harmonic_score: float
    signal_quality: float
    analysis_max_freq_hz: float


@dataclass
class _AnalysisSnapshot:
    raw_spectrum: Optional[np.ndarray]
    enhanced_spectrum: Optional[np.ndarray]
    smoothed_spectrum: Optional[np.ndarray]
    tracks: List[PeakTrack]
    stable_peaks: List[int]
    harmonic_score: float
    display_harmonic_score: float
    signal_quality: float
    last_seen_at: float


def analysis_band_hz(bpf_hint_hz: Optional[float]) -> float:
    """
    Lock analysis band: about six harmonics of the hint, 40-100 Hz.

    80 Hz without a hint.
    """
    if bpf_hint_hz is None or not math.isfinite(bpf_hint_hz) or bpf_hint_hz <= 0:
        return 80.0
    return clamp(math.ceil(bpf_hint_hz * 6.0 / 10.0) * 10.0, 40.0, 100.0)


class DemonEngine:
    """DEMON analyzer with per-target memory."""

    def __init__(self, config: Optional[DemonConfig] = None) -> None:
        self.config = config or DemonConfig()
        self.buffer = SampleRingBuffer(self.config.buffer_length)
        self.peak_tracker = PeakTracker()
        self.locks = DemonLockTracker(self.config.lock)
        self.set_focus_width(self.config.focus_width_hz)

        self.selected_target_id: Optional[str] = None
        self._cache: Dict[str, _AnalysisSnapshot] = {}
        self._clear_working_state()

    def _clear_working_state(self) -> None:
        self.raw_spectrum: Optional[np.ndarray] = None
        self.enhanced_spectrum: Optional[np.ndarray] = None
        self.smoothed_spectrum: Optional[np.ndarray] = None
        self.peak_tracker.reset()
        self.harmonic_score = 0.0
        self.display_harmonic_score = 0.0
        self.signal_quality = 0.0
        self._frame_counter = 0

    # ═══ Operator controls ═══

    def set_responsiveness(self, responsiveness: float) -> float:
        """Set smoothing / lock agility in [0, 1]; returns the applied value."""
        r = clamp(finite_or(responsiveness, self.config.responsiveness))
        self.config.responsiveness = r
        self.config.lock.apply_responsiveness(r)
        return r

    def set_focus_width(self, width_hz: float) -> float:
        """Set peak match / comb tolerance width in [0.6, 3.0] Hz."""
        width = clamp(finite_or(width_hz, self.config.focus_width_hz), MIN_FOCUS_WIDTH_HZ, MAX_FOCUS_WIDTH_HZ)
        self.config.focus_width_hz = width
        self.config.lock.comb_tolerance_hz = width
        return width

    def set_self_noise_suppression(self, enabled: bool) -> None:
        self.config.self_noise_suppression = bool(enabled)

    # ═══ Target switching ═══

    def select_target(self, target: Optional[DemonTarget], now: Optional[float] = None) -> None:
        """
        Switch the analysis target.

        The outgoing target's analysis is cached, the sample history is
        cleared, and the incoming target's cached analysis is restored
        (or the working state reset).
        """
        new_id = target.target_id if target is not None else None
        if new_id == self.selected_target_id:
            return
        now = time.time() if now is None else now

        if self.selected_target_id is not None:
            self._cache[self.selected_target_id] = self._snapshot(now)

        expiry = max(self.config.cache_min_seconds, self.config.lock.stale_timeout_sec)
        for key in [k for k, snap in self._cache.items() if now - snap.last_seen_at > expiry]:
            del self._cache[key]

        self.buffer.reset()
        cached = self._cache.pop(new_id, None) if new_id is not None else None
        if cached is not None:
            self._restore(cached)
        else:
            self._clear_working_state()

        logger.debug("DEMON analysis target %s -> %s", self.selected_target_id, new_id)
        self.selected_target_id = new_id

    def _snapshot(self, now: float) -> _AnalysisSnapshot:
        return _AnalysisSnapshot(
            raw_spectrum=None if self.raw_spectrum is None else self.raw_spectrum.copy(),
            enhanced_spectrum=None if self.enhanced_spectrum is None else self.enhanced_spectrum.copy(),
            smoothed_spectrum=None if self.smoothed_spectrum is None else self.smoothed_spectrum.copy(),
            tracks=copy.deepcopy(self.peak_tracker.tracks),
            stable_peaks=list(self.peak_tracker.stable_peaks),
            harmonic_score=self.harmonic_score,
            display_harmonic_score=self.display_harmonic_score,
            signal_quality=self.signal_quality,
            last_seen_at=now,
        )

    def _restore(self, snap: _AnalysisSnapshot) -> None:
        self.raw_spectrum = snap.raw_spectrum
        self.enhanced_spectrum = snap.enhanced_spectrum
        self.smoothed_spectrum = snap.smoothed_spectrum
        self.peak_tracker.tracks = snap.tracks
        self.peak_tracker.stable_peaks = snap.stable_peaks
        self.harmonic_score = snap.harmonic_score
        self.display_harmonic_score = snap.display_harmonic_score
        self.signal_quality = snap.signal_quality
        self._frame_counter = 0

    @property
    def cached_target_ids(self) -> List[str]:
        return list(self._cache)

    # ═══ Frame update ═══

    def update(
        self,
        samples: Optional[np.ndarray],
        sample_rate: float,
        selected_target: Optional[DemonTarget] = None,
        source_mode: SourceMode = SourceMode.COMPOSITE,
        ping_transient=None,
        own_ship: Optional[OwnShipSignature] = None,
        now: Optional[float] = None,
    ) -> DemonReadout:
        """
        Process one presentation frame.

        Args:
            samples: New bus samples since the last frame (None for none)
            sample_rate: Bus sample rate [Hz]
            selected_target: Contact under analysis (None = auto analysis)
            source_mode: Bus the samples come from
            ping_transient: Object with `active` / `recent` flags (e.g. PingTransient)
            own_ship: Own-ship machinery for self-noise notching
            now: Current time [s] (wall clock when omitted)

        Returns:
            DemonReadout
        """
        now = time.time() if now is None else now
        self.select_target(selected_target, now)

        if samples is not None:
            self.buffer.push(samples)

        self._update_spectrum(sample_rate, source_mode, ping_transient, own_ship)

        hint = selected_target.bpf_hint_hz if selected_target is not None else None
        max_freq = analysis_band_hz(hint)
        if selected_target is not None:
            lock = self.locks.update(
                selected_target.target_id,
                self.smoothed_spectrum,
                self.peak_tracker.stable_peaks,
                self.signal_quality,
                hint,
                max_freq,
                now,
            )
        else:
            lock = self._update_auto_lock(max_freq, now)

        self.harmonic_score = lock.confidence
        self.display_harmonic_score += (self.harmonic_score - self.display_harmonic_score) * DISPLAY_SCORE_RATE

        return DemonReadout(
            target_id=self.selected_target_id,
            source_mode=source_mode,
            spectrum=None if self.smoothed_spectrum is None else self.smoothed_spectrum.copy(),
            peaks=list(self.peak_tracker.stable_peaks),
            lock_state=lock.state,
            bpf_estimate_hz=lock.bpf_estimate_hz,
            confidence=lock.confidence,
            harmonic_hits=lock.harmonic_hits,
            display_harmonic_score=self.display_harmonic_score,
            signal_quality=self.signal_quality,
            analysis_max_freq_hz=max_freq,
        )

    def _update_auto_lock(self, max_freq: float, now: float) -> DemonLock:
        """Blade-rate lock on the composite bus, seeded from stable peaks."""
        peaks = self.peak_tracker.stable_peaks
        return self.locks.update(
            None,
            self.smoothed_spectrum,
            peaks,
            self.signal_quality,
            None,
            max_freq,
            now,
            extra_candidates=[p for p in peaks if p <= max_freq * 0.5],
        )

    @property
    def auto_bpf_hz(self) -> Optional[float]:
        lock = self.locks.get(None)
        return None if lock is None else lock.bpf_estimate_hz

    def _ping_suppressed(self, source_mode: SourceMode, ping_transient) -> bool:
        if source_mode != SourceMode.COMPOSITE or ping_transient is None:
            return False
        return bool(getattr(ping_transient, "active", False) or getattr(ping_transient, "recent", False))

    def _update_spectrum(self, sample_rate: float, source_mode: SourceMode, ping_transient, own_ship) -> None:
        if self._ping_suppressed(source_mode, ping_transient):
            if self.smoothed_spectrum is not None:
                self.smoothed_spectrum[1:] *= PING_SPECTRUM_DECAY
            self.peak_tracker.suppress()
            self.signal_quality *= PING_QUALITY_DECAY
            return

        frame = self._frame_counter
        self._frame_counter += 1
        if frame % self.config.analysis_interval != 0:
            return

        window = select_window_length(self.buffer.sample_count)
        if window is None:
            return
        samples = self.buffer.latest(window)
        if samples is None:
            return

        raw = compute_envelope_spectrum(samples, sample_rate, self.config.max_freq_hz)

        contact_only = source_mode == SourceMode.SELECTED or self.selected_target_id is not None
        if self.config.self_noise_suppression and not contact_only and own_ship is not None:
            apply_self_noise_mask(raw, own_ship.blade_rate_hz)

        self.raw_spectrum = raw
        quality = instantaneous_quality(raw)
        self.signal_quality += (quality - self.signal_quality) * QUALITY_RATE

        self.enhanced_spectrum = whiten_spectrum(raw)
        self.smoothed_spectrum = smooth_spectrum(
            self.smoothed_spectrum, self.enhanced_spectrum, self.config.responsiveness
        )
        self.peak_tracker.update(self.smoothed_spectrum, self.config.focus_width_hz)


# =============================================================================
# VALIDATION
# =============================================================================


def synthesize_blade_signal(
    frames: int,
    sample_rate: float = 4096.0,
    frame_size: int = 1024,
    carrier_hz: float = 420.0,
    bpf_hz: float = 18.0,
) -> List[np.ndarray]:
    """
    Synthetic cavitation signal: a two-tone carrier gated on/off at the BPF.

    Returns:
        List of frames
    """
    t = np.arange(frames * frame_size) / sample_rate
    carrier_phase = 2.0 * np.pi * carrier_hz * t
    gate = np.where(np.sin(2.0 * np.pi * bpf_hz * t) >= 0.0, 1.6, 0.05)
    signal = gate * (np.sin(carrier_phase) + 0.35 * np.sin(1.57 * carrier_phase))
    signal += 0.002 * np.sin(0.23 * carrier_phase)
    return [signal[i * frame_size : (i + 1) * frame_size] for i in range(frames)]


def validate_demon_lock(frames: int = 120, rpm: float = 216.0, blade_count: int = 5) -> dict:
    """
    Validate blade-rate extraction against a synthetic propeller signal.

    A 420 Hz carrier gated at 18 Hz (216 rpm, 5 blades) is analysed with
    the target selected; the lock must reach LOCKED with the BPF estimate
    within 10 % of truth.

    Returns:
        Dict containing parameters, computed values and validation status
    """
    sample_rate = 4096.0
    frame_size = 1024
    true_bpf = rpm / 60.0 * blade_count

    engine = DemonEngine()
    engine.set_responsiveness(1.0)
    engine.set_focus_width(1.0)
    target = DemonTarget("validation", rpm=rpm, blade_count=blade_count)

    readout = None
    for i, frame in enumerate(synthesize_blade_signal(frames, sample_rate, frame_size, bpf_hz=true_bpf)):
        readout = engine.update(
            frame, sample_rate, selected_target=target, source_mode=SourceMode.SELECTED,
            now=i * frame_size / sample_rate,
        )

    estimate = readout.bpf_estimate_hz
    error = abs(estimate - true_bpf) / true_bpf if estimate is not None else math.inf

    return {
        "parameters": {
            "sample_rate_Hz": sample_rate,
            "frame_size": frame_size,
            "frames": frames,
            "true_bpf_Hz": true_bpf,
        },
        "computed_values": {
            "bpf_estimate_Hz": estimate,
            "confidence": readout.confidence,
            "lock_state": readout.lock_state.value,
            "peaks_Hz": readout.peaks,
        },
        "validation": {
            "is_valid": readout.lock_state == LockState.LOCKED and error <= 0.1,
            "relative_error": error,
        },
    }
