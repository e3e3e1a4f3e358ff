"""
Signals Package

DEMON (envelope modulation) analysis for propeller blade-rate extraction:
envelope spectrum, spectral line tracking, harmonic comb scoring and the
blade-rate lock state machine.

References:
    - Lourens, IEEE COMSIG, 1990
    - Nielsen, "Sonar Signal Processing", 1991
"""

from .demon import compute_envelope_spectrum
from .demon_engine import DemonConfig, DemonEngine, DemonReadout, DemonTarget, OwnShipSignature, SourceMode
from .harmonics import CombScore, estimate_bpf_from_peaks, score_comb
from .lock import DemonLock, DemonLockConfig, DemonLockTracker, LockState
from .peaks import PeakTrack, PeakTracker
from .ring_buffer import SampleRingBuffer

__all__ = [
    "DemonEngine",
    "DemonConfig",
    "DemonReadout",
    "DemonTarget",
    "OwnShipSignature",
    "SourceMode",
    "compute_envelope_spectrum",
    "score_comb",
    "estimate_bpf_from_peaks",
    "CombScore",
    "DemonLock",
    "DemonLockConfig",
    "DemonLockTracker",
    "LockState",
    "PeakTrack",
    "PeakTracker",
    "SampleRingBuffer",
]
