"""
Contact Scoring

Threat ranking and manual target-motion-analysis (TMA) solution scoring.

    threat = snr + clamp((3000 - range) / 30, 0, 100) + status bonus + pin bonus

    confidence = round(100 · mean(1 - clamp(err_i / scale_i, 0, 1)))
        over bearing (circular, 180°), range (3000 m),
        course (circular, 180°) and speed (40 kn)
"""

import math
from dataclasses import dataclass
from typing import Optional

from sonarsim.utils.numeric import circular_difference, clamp, is_finite, normalize_degrees

THREAT_RANGE_REFERENCE = 3000.0
THREAT_RANGE_DIVISOR = 30.0
THREAT_RANGE_CAP = 100.0
AMBIGUOUS_THREAT_BONUS = 15.0
TRACKED_THREAT_BONUS = 10.0
PINNED_THREAT_BONUS = 25.0

BEARING_ERROR_SCALE = 180.0
RANGE_ERROR_SCALE = 3000.0
COURSE_ERROR_SCALE = 180.0
SPEED_ERROR_SCALE = 40.0


@dataclass
class ManualSolution:
    """Operator TMA estimate: bearing/course [deg], range [m], speed [kn]."""

    bearing: float
    range: float
    course: float
    speed: float

    def is_finite(self) -> bool:
        return all(is_finite(v) for v in (self.bearing, self.range, self.course, self.speed))


@dataclass
class TrueSolution:
    """Ground truth in the same units as ManualSolution."""

    bearing: float
    range: float
    course: float
    speed: float


def threat_score(snr: float, range_m: float, status: str, pinned: bool = False) -> float:
    """
    Threat ranking score (higher = more threatening).

    Args:
        snr: Latest SNR [dB] (non-finite counts as 0)
        range_m: Contact range [m]
        status: Contact status name (TRACKED / AMBIGUOUS / LOST)
        pinned: Operator pin
    """
    score = snr if is_finite(snr) else 0.0
    if is_finite(range_m):
        score += clamp((THREAT_RANGE_REFERENCE - range_m) / THREAT_RANGE_DIVISOR, 0.0, THREAT_RANGE_CAP)

    if status == "AMBIGUOUS":
        score += AMBIGUOUS_THREAT_BONUS
    elif status == "TRACKED":
        score += TRACKED_THREAT_BONUS

    if pinned:
        score += PINNED_THREAT_BONUS
    return score


def solution_confidence(solution: ManualSolution, truth: TrueSolution) -> Optional[int]:
    """
    Agreement between a manual solution and ground truth, 0-100.

    Returns:
        None when any field of either side is non-finite
    """
    values = (
        solution.bearing, solution.range, solution.course, solution.speed,
        truth.bearing, truth.range, truth.course, truth.speed,
    )
    if not all(is_finite(v) for v in values):
        return None

    bearing_term = 1.0 - clamp(circular_difference(solution.bearing, truth.bearing) / BEARING_ERROR_SCALE)
    range_term = 1.0 - clamp(abs(solution.range - truth.range) / RANGE_ERROR_SCALE)
    course_term = 1.0 - clamp(circular_difference(solution.course, truth.course) / COURSE_ERROR_SCALE)
    speed_term = 1.0 - clamp(abs(solution.speed - truth.speed) / SPEED_ERROR_SCALE)

    mean = (bearing_term + range_term + course_term + speed_term) / 4.0
    return int(round(mean * 100.0))


def true_solution_from_target(
    bearing_deg: float,
    distance: float,
    course_rad: float,
    speed: float,
    range_scale: float,
    speed_scale: float,
) -> TrueSolution:
    """Convert sim-unit target state into TMA units."""
    return TrueSolution(
        bearing=normalize_degrees(bearing_deg),
        range=distance * range_scale,
        course=normalize_degrees(math.degrees(course_rad)),
        speed=abs(speed * speed_scale),
    )
