"""
Harmonic Comb Scoring

Scores how well a candidate blade-pass frequency explains the spectrum by
checking each harmonic k·BPF for a prominent line.

    tol_k      = max(1, round(tolerance + 0.05k))          [bins]
    noise_k    = mean of bins ±2, ±3 around the best bin
    weight_k   = 1 / sqrt(k)
    hit_k      = prominence ≥ 0.04 and level ≥ 0.16
    score      = 0.7 · Σ hit weight·strength / Σ weight
               + 0.3 · min(1, hits / max(2, 0.7·harmonics))
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from sonarsim.utils.numeric import clamp

DEFAULT_MAX_HARMONICS = 8
MIN_HIT_PROMINENCE = 0.04
MIN_HIT_LEVEL = 0.16
MIN_SPACING_HZ = 2.0


@dataclass
class CombScore:
    """
    Harmonic comb result.

    Attributes:
        score: Overall fit [0, 1]
        hits: Harmonics with a prominent line
        harmonic_count: Harmonics evaluated inside the band
    """

    score: float = 0.0
    hits: int = 0
    harmonic_count: int = 0


def score_comb(
    spectrum: np.ndarray,
    bpf_hz: float,
    max_freq_hz: float,
    tolerance_hz: float = 1.3,
    max_harmonics: int = DEFAULT_MAX_HARMONICS,
) -> CombScore:
    """
    Score a candidate BPF against a whitened spectrum.

    Args:
        spectrum: Whitened spectrum, index = Hz
        bpf_hz: Candidate blade-pass frequency
        max_freq_hz: Highest harmonic frequency considered
        tolerance_hz: Base search half-width per harmonic
        max_harmonics: Harmonics evaluated

    Returns:
        CombScore (zero score for invalid candidates)
    """
    if not (math.isfinite(bpf_hz) and bpf_hz > 0):
        return CombScore()

    n = spectrum.shape[0]
    total_weight = 0.0
    weighted = 0.0
    hits = 0
    count = 0

    for k in range(1, max_harmonics + 1):
        f = bpf_hz * k
        if f > max_freq_hz:
            break
        center = int(round(f))
        if center <= 3 or center >= n - 4:
            continue
        count += 1

        tol = max(1, int(round(tolerance_hz + 0.05 * k)))
        max_v = -1.0
        max_idx = center
        for b in range(center - tol, center + tol + 1):
            if b <= 1 or b >= n - 1:
                continue
            if spectrum[b] > max_v:
                max_v = float(spectrum[b])
                max_idx = b

        noise = sum(
            float(spectrum[i]) if 0 <= i < n else 0.0
            for i in (max_idx - 2, max_idx + 2, max_idx - 3, max_idx + 3)
        ) / 4.0
        prominence = max(0.0, max_v - noise)
        weight = 1.0 / math.sqrt(k)
        total_weight += weight

        if prominence >= MIN_HIT_PROMINENCE and max_v >= MIN_HIT_LEVEL:
            hits += 1
            weighted += weight * clamp(0.7 * max_v + 2.1 * prominence)

    if count == 0 or total_weight <= 0:
        return CombScore(harmonic_count=count)

    coverage = min(1.0, hits / max(2.0, 0.7 * count))
    score = clamp(0.7 * (weighted / total_weight) + 0.3 * coverage)
    return CombScore(score=score, hits=hits, harmonic_count=count)


def estimate_bpf_from_peaks(peaks: Sequence[float], max_freq_hz: float) -> Optional[float]:
    """
    Median spacing between adjacent stable peaks.

    Spacings outside [2, max(20, 0.35·max_freq)] Hz are ignored.

    Returns:
        BPF estimate [Hz], or None with fewer than one valid spacing
    """
    if len(peaks) < 2:
        return None
    ordered = sorted(peaks)
    upper = max(20.0, max_freq_hz * 0.35)
    spacings = [
        b - a for a, b in zip(ordered, ordered[1:]) if MIN_SPACING_HZ <= (b - a) <= upper
    ]
    if not spacings:
        return None
    # Upper median, so the estimate is always an observed spacing
    return float(sorted(spacings)[len(spacings) // 2])
