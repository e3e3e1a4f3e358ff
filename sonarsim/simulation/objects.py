"""
Simulation Objects

Acoustic platforms seen by the sonar core: contacts (Target) and the
sensor platform (OwnShip).

Positions live on the X/Z world plane in sim units. Course is in radians
(0 = +Z, clockwise positive), speed in sim units per second. Position
integration belongs to the external kinematics engine; these objects only
carry state and the reactive behaviour triggered by active pings.

Features:
    - Platform types with per-type shaft-rate / blade-count defaults
    - Reactive behaviour (EVADE / INTERCEPT) on being pinged
    - Track and classification state enums shared with the detection engine
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from sonarsim.physics.sonar_equation import TargetType
from sonarsim.utils.numeric import clamp, finite_or

MAX_RPM = 2000.0
MAX_BLADE_COUNT = 12

ACOUSTIC_DEFAULTS: Dict[TargetType, Tuple[float, int]] = {
    TargetType.SHIP: (120.0, 3),
    TargetType.SUBMARINE: (90.0, 7),
    TargetType.TORPEDO: (600.0, 4),
    TargetType.BIOLOGICAL: (0.0, 0),
    TargetType.STATIC: (0.0, 0),
}
"""Default (rpm, blade count) per platform type"""

EVADE_ALERT_SECONDS = 30.0


class TrackState(Enum):
    """Detection / classification state of a target."""

    UNDETECTED = "UNDETECTED"
    AMBIGUOUS = "AMBIGUOUS"  # Classification started, identity unclear
    CLASSIFIED = "CLASSIFIED"  # Class identified
    CONFIRMED = "CONFIRMED"  # Class confirmed
    TRACKED = "TRACKED"  # Currently held
    LOST = "LOST"  # Held previously, timed out


class BehaviorState(Enum):
    """Reactive behaviour mode."""

    NORMAL = "NORMAL"
    EVADE = "EVADE"
    INTERCEPT = "INTERCEPT"


def coerce_target_type(value: Union[str, TargetType]) -> TargetType:
    """
    Convert a string (case-insensitive) to TargetType.

    Raises:
        ValueError: If the type is unknown
    """
    if isinstance(value, TargetType):
        return value
    try:
        return TargetType[str(value).strip().upper()]
    except KeyError:
        raise ValueError(f"Unknown target type: {value!r}") from None


class Target:
    """
    Acoustic contact with kinematic and machinery state.

    Attributes:
        target_id: Unique identifier
        target_type: Platform category
        x, z: World position [sim units]
        course: Heading [rad]
        speed: Speed [sim units/s]
        rpm: Shaft rate, clamped to [0, 2000]
        blade_count: Propeller blades, clamped to [0, 12]
        class_id: Class name revealed by classification
        behavior: Reactive behaviour mode
        alert_timer: Seconds remaining in the current behaviour
        snr, bearing, distance, track_state: Last detection view (copied
            from the detection engine's results)
        classification_state, identified_class: Last classification view
    """

    def __init__(
        self,
        target_id: str,
        target_type: Union[str, TargetType] = TargetType.SHIP,
        x: float = 0.0,
        z: float = 0.0,
        course: float = 0.0,
        speed: float = 0.0,
        rpm: Optional[float] = None,
        blade_count: Optional[int] = None,
        class_id: Optional[str] = None,
    ):
        self.target_id = str(target_id)
        self.target_type = coerce_target_type(target_type)
        self.x = finite_or(x, 0.0)
        self.z = finite_or(z, 0.0)
        self.course = finite_or(course, 0.0)
        self.speed = finite_or(speed, 0.0)

        default_rpm, default_blades = ACOUSTIC_DEFAULTS[self.target_type]
        self.rpm = clamp(finite_or(rpm, default_rpm), 0.0, MAX_RPM)
        blades = finite_or(blade_count, default_blades)
        self.blade_count = int(round(clamp(blades, 0, MAX_BLADE_COUNT)))

        if class_id is None:
            class_id = "triumph-class" if self.target_type == TargetType.SUBMARINE else "cargo-vessel"
        self.class_id = class_id

        self.behavior = BehaviorState.NORMAL
        self.alert_timer = 0.0

        # Detection view, written back by DetectionEngine.apply_results()
        self.snr = -math.inf
        self.bearing = 0.0
        self.distance = 0.0
        self.track_state = TrackState.UNDETECTED
        self.classification_state = TrackState.UNDETECTED
        self.identified_class: Optional[str] = None

    @property
    def position(self) -> Tuple[float, float]:
        """Current (x, z) position [sim units]."""
        return (self.x, self.z)

    @property
    def blade_rate_hz(self) -> float:
        """Blade-pass frequency rpm/60 · blades [Hz]."""
        return self.rpm / 60.0 * self.blade_count

    def distance_to(self, x: float, z: float) -> float:
        return math.hypot(self.x - x, self.z - z)

    def react_to_ping(self) -> None:
        """
        Respond to being illuminated by an active ping.

        Ships and submarines turn away; torpedoes home on the source.
        """
        if self.target_type in (TargetType.SUBMARINE, TargetType.SHIP):
            self.behavior = BehaviorState.EVADE
            self.alert_timer = EVADE_ALERT_SECONDS
        elif self.target_type == TargetType.TORPEDO:
            self.behavior = BehaviorState.INTERCEPT
            self.alert_timer = 0.0

    def update_behavior(self, dt: float) -> None:
        """Count down an EVADE alert and return to NORMAL when it expires."""
        if self.behavior != BehaviorState.EVADE:
            return
        self.alert_timer = max(0.0, self.alert_timer - dt)
        if self.alert_timer <= 0.0:
            self.behavior = BehaviorState.NORMAL

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "target_id": self.target_id,
            "target_type": self.target_type.value,
            "x": self.x,
            "z": self.z,
            "course": self.course,
            "speed": self.speed,
            "rpm": self.rpm,
            "blade_count": self.blade_count,
            "class_id": self.class_id,
            "behavior": self.behavior.value,
            "snr_db": self.snr,
            "track_state": self.track_state.value,
            "classification": self.classification_state.value,
        }


@dataclass
class OwnShip:
    """
    Sensor platform pose and machinery.

    Attributes:
        x, z: World position [sim units]
        course: Heading [rad]
        speed: Speed [sim units/s]
        rpm: Own shaft rate (for self-noise suppression)
        blade_count: Own propeller blades
    """

    x: float = 0.0
    z: float = 0.0
    course: float = 0.0
    speed: float = 0.0
    rpm: float = 0.0
    blade_count: int = 5

    @property
    def blade_rate_hz(self) -> float:
        if self.rpm <= 0 or self.blade_count <= 0:
            return 0.0
        return self.rpm / 60.0 * self.blade_count
