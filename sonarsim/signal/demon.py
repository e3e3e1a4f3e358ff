"""
DEMON Envelope Spectrum with Numba JIT Optimization

Detection of Envelope Modulation On Noise: cavitation noise from a propeller
is amplitude-modulated at the blade-pass frequency (BPF = rpm/60 · blades).
Band-limiting, rectifying and low-pass decimating the broadband signal
recovers that modulation envelope; its low-frequency spectrum shows the
BPF and its harmonics.

Processing chain:
    1. Zero-mean, one-pole high-pass (20 Hz) and low-pass (1800 Hz)
    2. Full-wave rectification
    3. Block-average decimation by max(1, floor(fs / 500))
    4. One-pole high-pass (1 Hz) on the decimated envelope
    5. Hann-windowed direct DFT magnitude at integer Hz 1..max_freq

Post-processing helpers: own-ship harmonic notching, signal quality,
spectral whitening and asymmetric temporal smoothing.

References:
    - Lourens, J.G., "Passive sonar detection of ships with spectrograms",
      IEEE COMSIG, 1990
    - Nielsen, R.O., "Sonar Signal Processing", Artech House, 1991, Chapter 2
"""

import math
from typing import Optional

import numba
import numpy as np

from sonarsim.utils.numeric import clamp

# =============================================================================
# CONSTANTS
# =============================================================================

BAND_HIGHPASS_HZ = 20.0
BAND_LOWPASS_HZ = 1800.0
ENVELOPE_HIGHPASS_HZ = 1.0
DECIMATED_RATE_TARGET = 500.0
MIN_RAW_SAMPLES = 64
MIN_DECIMATED_SAMPLES = 8
DEFAULT_MAX_FREQ_HZ = 120

WINDOW_LENGTHS = (65536, 16384, 8192)
"""Analysis window lengths, longest first, chosen by available history"""

SELF_NOISE_HARMONICS = 10
SELF_NOISE_FLOOR = 0.38
SELF_NOISE_SHARPNESS = 3.2

WHITENING_RADIUS = 3
WHITENING_FACTOR = 0.92

QUALITY_NOISE_FLOOR = 0.0015
QUALITY_FULL_SCALE = 0.01
QUALITY_RATE = 0.18


# =============================================================================
# JIT KERNELS
# =============================================================================


@numba.jit(nopython=True, cache=True)
def _envelope_decimate_jit(samples: np.ndarray, sample_rate: float, decimation: int) -> np.ndarray:
    """
    JIT-compiled band-limit / rectify / decimate / envelope high-pass chain.

    Args:
        samples: Raw samples (float64)
        sample_rate: Raw sample rate [Hz]
        decimation: Block-average factor

    Returns:
        Decimated, DC-blocked envelope of length len(samples) // decimation
    """
    n = samples.shape[0]
    n_decim = n // decimation
    out = np.zeros(n_decim)

    mean = 0.0
    for i in range(n):
        mean += samples[i]
    mean /= n

    dt = 1.0 / sample_rate
    hp_rc = 1.0 / (2.0 * np.pi * BAND_HIGHPASS_HZ)
    lp_rc = 1.0 / (2.0 * np.pi * BAND_LOWPASS_HZ)
    hp_alpha = hp_rc / (hp_rc + dt)
    lp_alpha = dt / (lp_rc + dt)

    hp_y = 0.0
    prev_x = 0.0
    lp_y = 0.0
    accum = 0.0
    count = 0
    k = 0
    for i in range(n):
        x = samples[i] - mean
        hp_y = hp_alpha * (hp_y + x - prev_x)
        prev_x = x
        lp_y += lp_alpha * (hp_y - lp_y)
        accum += abs(lp_y)
        count += 1
        if count == decimation:
            if k < n_decim:
                out[k] = accum / decimation
                k += 1
            accum = 0.0
            count = 0

    # Remove slow envelope drift
    env_rc = 1.0 / (2.0 * np.pi * ENVELOPE_HIGHPASS_HZ)
    env_dt = decimation / sample_rate
    env_alpha = env_rc / (env_rc + env_dt)
    y = 0.0
    prev = out[0]
    for i in range(n_decim):
        x = out[i]
        y = env_alpha * (y + x - prev)
        prev = x
        out[i] = y

    return out


@numba.jit(nopython=True, cache=True)
def _whiten_jit(spectrum: np.ndarray, radius: int, factor: float) -> np.ndarray:
    """
    JIT-compiled local-mean whitening.

    Each bin i >= 1 loses `factor` times the mean of its neighbours within
    `radius` (bins [1, len-1], centre excluded), floored at 0, and the
    result is normalised to a peak of 1.
    """
    n = spectrum.shape[0]
    out = np.zeros(n)
    peak = 1e-6
    for i in range(1, n):
        total = 0.0
        count = 0
        for j in range(i - radius, i + radius + 1):
            if j == i or j < 1 or j > n - 1:
                continue
            total += spectrum[j]
            count += 1
        local_mean = total / count if count > 0 else 0.0
        w = spectrum[i] - factor * local_mean
        if w < 0.0:
            w = 0.0
        out[i] = w
        if w > peak:
            peak = w
    for i in range(1, n):
        out[i] /= peak
    return out


# =============================================================================
# SPECTRUM
# =============================================================================


def select_window_length(sample_count: int) -> Optional[int]:
    """Longest analysis window the history supports, or None."""
    for length in WINDOW_LENGTHS:
        if sample_count >= length:
            return length
    return None


def compute_envelope_spectrum(
    samples: np.ndarray, sample_rate: float, max_freq: int = DEFAULT_MAX_FREQ_HZ
) -> np.ndarray:
    """
    DEMON envelope magnitude spectrum.

    Args:
        samples: Raw samples
        sample_rate: Sample rate [Hz]
        max_freq: Highest integer frequency bin [Hz]

    Returns:
        Array of length max_freq + 1; index = frequency in Hz, bin 0 unused.
        All zeros when the input is too short or invalid.
    """
    spectrum = np.zeros(max_freq + 1)
    samples = np.asarray(samples, dtype=np.float64).ravel()
    n = samples.size
    if n < MIN_RAW_SAMPLES or not math.isfinite(sample_rate) or sample_rate <= 0:
        return spectrum
    samples = np.where(np.isfinite(samples), samples, 0.0)

    decimation = max(1, int(math.floor(sample_rate / DECIMATED_RATE_TARGET)))
    decimated_rate = sample_rate / decimation
    n_decim = n // decimation
    if n_decim < MIN_DECIMATED_SAMPLES:
        return spectrum

    envelope = _envelope_decimate_jit(samples, float(sample_rate), decimation)

    # np.hanning matches 0.5 * (1 - cos(2πi / (N - 1)))
    weighted = envelope * np.hanning(n_decim)
    freqs = np.arange(1, max_freq + 1, dtype=np.float64)
    phase = (2.0 * np.pi / decimated_rate) * np.outer(freqs, np.arange(n_decim, dtype=np.float64))
    re = np.cos(phase) @ weighted
    im = np.sin(phase) @ weighted
    spectrum[1:] = np.hypot(re, im) / n_decim
    return spectrum


def apply_self_noise_mask(spectrum: np.ndarray, own_bpf_hz: float) -> np.ndarray:
    """
    Notch own-ship BPF harmonics in place.

    Harmonic k (1..10) at round(k·bpf) is attenuated with a Gaussian notch
    of radius max(1, round(0.9 + 0.12k)): gain 1 - 0.62·exp(-3.2·d²).
    """
    if not (math.isfinite(own_bpf_hz) and own_bpf_hz > 0):
        return spectrum

    n = spectrum.shape[0]
    for k in range(1, SELF_NOISE_HARMONICS + 1):
        center = int(round(own_bpf_hz * k))
        if center <= 1 or center >= n:
            break
        radius = max(1, int(round(0.9 + 0.12 * k)))
        for b in range(center - radius, center + radius + 1):
            if b <= 1 or b >= n:
                continue
            dist = abs(b - center) / radius
            falloff = math.exp(-SELF_NOISE_SHARPNESS * dist * dist)
            spectrum[b] *= 1.0 - (1.0 - SELF_NOISE_FLOOR) * falloff
    return spectrum


def instantaneous_quality(spectrum: np.ndarray) -> float:
    """
    Frame signal quality in [0, 1].

    0.6 · absolute level term + 0.4 · peak-to-mean contrast term.
    """
    body = spectrum[1:]
    if body.size == 0:
        return 0.0
    max_raw = float(np.max(body))
    mean_raw = float(np.mean(body))
    if not (math.isfinite(max_raw) and math.isfinite(mean_raw)):
        return 0.0

    absolute = clamp((max_raw - QUALITY_NOISE_FLOOR) / QUALITY_FULL_SCALE)
    contrast = clamp((max_raw / max(1e-6, mean_raw) - 1.5) / 2.5)
    return 0.6 * absolute + 0.4 * contrast


def whiten_spectrum(spectrum: np.ndarray) -> np.ndarray:
    """Local-mean whitened spectrum normalised to peak 1."""
    return _whiten_jit(np.asarray(spectrum, dtype=np.float64), WHITENING_RADIUS, WHITENING_FACTOR)


def smoothing_rates(responsiveness: float):
    """(rise, fall) smoothing rates for a responsiveness in [0, 1]."""
    r = clamp(responsiveness)
    return 0.1 + r * 0.3, 0.04 + r * 0.18


def smooth_spectrum(previous: Optional[np.ndarray], current: np.ndarray, responsiveness: float) -> np.ndarray:
    """
    Asymmetric exponential smoothing: faster rise than fall.

    Returns a new array; `previous` of a different length is discarded.
    """
    if previous is None or previous.shape != current.shape:
        previous = np.zeros_like(current)
    rise, fall = smoothing_rates(responsiveness)
    alpha = np.where(current >= previous, rise, fall)
    return previous + (current - previous) * alpha
