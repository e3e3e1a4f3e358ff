"""
Spectral Peak Tracking

Finds prominent local maxima in the whitened, smoothed DEMON spectrum and
follows them across frames so that transient noise spikes do not reach the
harmonic scorer.

Track Lifecycle:
    candidate -> track (strength 0.62·v) -> matched / aged -> pruned

A track is reported as a stable peak once its strength reaches 0.24 and it
was matched this frame or is at most 3 frames old.
"""

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

MAX_PEAKS = 6
MAX_TRACKS = 12

FLAT_MAX_LEVEL = 0.22
FLAT_MIN_RANGE = 0.08

CANDIDATE_MIN_LEVEL = 0.2
CANDIDATE_MIN_PROMINENCE = 0.03

MATCH_WINDOW_MIN_HZ = 1.4
MATCH_WINDOW_FOCUS_FACTOR = 1.8
POSITION_KEEP = 0.72
STRENGTH_KEEP = 0.55
STRENGTH_GAIN = 0.9
NEW_TRACK_STRENGTH = 0.62

AGING_DECAY = 0.86
MAX_TRACK_AGE = 14
MIN_TRACK_STRENGTH = 0.12

STABLE_MIN_STRENGTH = 0.24
STABLE_MAX_AGE = 3


@dataclass
class PeakTrack:
    """Spectral line followed across frames."""

    hz: float
    strength: float  # [0, 1]
    prominence: float = 0.0
    age: int = 0  # Frames since last match
    seen: bool = True  # Matched this frame


def find_peak_candidates(spectrum: np.ndarray) -> List[Tuple[int, float, float]]:
    """
    Local maxima as (hz, value, prominence), best score first.

    score = 0.75·value + 0.25·prominence, where prominence is measured
    against the larger of the immediate neighbours and the ±2 average.
    """
    candidates = []
    n = spectrum.shape[0]
    for hz in range(2, n - 2):
        v = spectrum[hz]
        if v < CANDIDATE_MIN_LEVEL:
            continue
        if not (v > spectrum[hz - 1] and v >= spectrum[hz + 1]):
            continue
        base = max(spectrum[hz - 1], spectrum[hz + 1], (spectrum[hz - 2] + spectrum[hz + 2]) * 0.5)
        prominence = v - base
        if prominence < CANDIDATE_MIN_PROMINENCE:
            continue
        candidates.append((hz, float(v), float(prominence)))

    candidates.sort(key=lambda c: 0.75 * c[1] + 0.25 * c[2], reverse=True)
    return candidates


class PeakTracker:
    """
    Frame-to-frame spectral line tracker.

    Example:
        >>> tracker = PeakTracker()
        >>> stable = tracker.update(smoothed_spectrum, focus_width_hz=1.3)
    """

    def __init__(self) -> None:
        self.tracks: List[PeakTrack] = []
        self.stable_peaks: List[int] = []

    def reset(self) -> None:
        self.tracks = []
        self.stable_peaks = []

    def update(self, spectrum: np.ndarray, focus_width_hz: float = 1.3) -> List[int]:
        """
        Advance tracks with a new spectrum frame.

        Returns:
            Stable peak frequencies [Hz], sorted ascending
        """
        body = spectrum[1:]
        max_v = float(np.max(body)) if body.size else 0.0
        mean_v = float(np.mean(body)) if body.size else 0.0

        if max_v < FLAT_MAX_LEVEL or (max_v - mean_v) < FLAT_MIN_RANGE:
            self.stable_peaks = self._coast_flat()
            return self.stable_peaks

        for track in self.tracks:
            track.strength *= AGING_DECAY
            track.age += 1
            track.seen = False

        window = max(MATCH_WINDOW_MIN_HZ, focus_width_hz * MATCH_WINDOW_FOCUS_FACTOR)
        for hz, v, prominence in find_peak_candidates(spectrum)[: MAX_PEAKS * 3]:
            best = None
            best_dist = window
            for track in self.tracks:
                dist = abs(track.hz - hz)
                if dist <= best_dist:
                    best = track
                    best_dist = dist

            if best is not None:
                best.hz = best.hz * POSITION_KEEP + hz * (1.0 - POSITION_KEEP)
                best.strength = min(1.0, best.strength * STRENGTH_KEEP + v * STRENGTH_GAIN)
                best.prominence = prominence
                best.age = 0
                best.seen = True
            else:
                self.tracks.append(PeakTrack(hz=float(hz), strength=v * NEW_TRACK_STRENGTH, prominence=prominence))

        # Single prune sweep, strongest and freshest first
        survivors = [t for t in self.tracks if t.age <= MAX_TRACK_AGE and t.strength >= MIN_TRACK_STRENGTH]
        survivors.sort(key=lambda t: t.strength + (0.08 if t.seen else 0.0) - 0.01 * t.age, reverse=True)
        self.tracks = survivors[:MAX_TRACKS]

        stable = []
        for track in self.tracks:
            if track.strength >= STABLE_MIN_STRENGTH and (track.seen or track.age <= STABLE_MAX_AGE):
                stable.append(int(round(track.hz)))
                if len(stable) >= MAX_PEAKS:
                    break
        self.stable_peaks = sorted(set(stable))
        return self.stable_peaks

    def _coast_flat(self) -> List[int]:
        """Decay tracks through a featureless frame."""
        for track in self.tracks:
            track.strength *= 0.8
            track.age += 1
            track.seen = False
        self.tracks = [t for t in self.tracks if t.age <= 8 and t.strength >= 0.14]
        coasting = [int(round(t.hz)) for t in self.tracks if t.strength >= 0.26][:MAX_PEAKS]
        return sorted(coasting)

    def suppress(self) -> None:
        """Ping-transient decay: weaken and age every track, report no peaks."""
        for track in self.tracks:
            track.strength *= 0.78
            track.age += 1
            track.seen = False
        self.tracks = [t for t in self.tracks if t.age <= 6 and t.strength >= 0.12]
        self.stable_peaks = []
