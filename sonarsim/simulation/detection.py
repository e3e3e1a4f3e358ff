"""
Sonar Detection Engine

Per-tick passive detection, classification and active-ping scanning for a
set of targets seen from own-ship.

Features:
    - Passive sonar equation with duct / convergence-zone modifiers,
      thermocline shadowing, multipath ripple and terrain occlusion
    - Detection state machine: TRACKED on SNR > threshold, LOST after a
      hold-down timeout
    - Progressive classification (AMBIGUOUS -> CLASSIFIED -> CONFIRMED)
    - Expanding active-ping wavefront with per-pulse hit deduplication
    - Echo queue with two-way travel time, drained by the caller
    - Ping-transient state for downstream spectral suppression

Detection results are owned by the engine and keyed by target id; targets
are only read (apart from the reactive hook fired by an active ping).

Reference: Urick, "Principles of Underwater Sound", 3rd Ed., Chapters 2, 11
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from sonarsim.physics.constants import NOMINAL_SOUND_SPEED, SIM_UNITS_TO_METERS
from sonarsim.physics.environment import AcousticModifiers, EnvironmentModel, NEUTRAL_MODIFIERS
from sonarsim.physics.sonar_equation import PassiveDetectionParameters, passive_snr, source_level
from sonarsim.physics.terrain import TerrainOracle, check_line_of_sight, sensor_depths
from sonarsim.tracking.contacts import TargetSnapshot
from sonarsim.utils.numeric import bearing_deg_from_delta, is_finite

from .objects import OwnShip, Target, TrackState

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass
class DetectionConfig:
    """
    Detection engine tunables.

    Attributes:
        detection_threshold: Passive detection threshold [dB]
        lost_track_timeout: Seconds without detection before TRACKED -> LOST
        los_sample_count: Terrain samples along the sight line
        passive_occlusion_attenuation: Loss when terrain blocks the path [dB]
        shadow_zone_attenuation: Loss across the thermocline [dB]
        multipath_strength: Multipath ripple amplitude [dB]
        multipath_frequency: Multipath ripple rate per sim unit [rad]
        scan_speed: Ping wavefront growth per tick [sim units]
        max_scan_radius: Wavefront radius that ends a scan [sim units]
        ping_intensity_decay: Per-tick decay of the ping transient
        ping_active_threshold: Ping intensity above which the transient is active
        ping_recent_window: Seconds after a ping still considered recent
        classification_rate: Progress per second for unselected targets
        selected_classification_rate: Progress per second for the selected target
        classification_decay: Progress lost per second when SNR is marginal
        echo_reference_range: Range at which echo intensity reaches its floor [sim units]
    """

    detection_threshold: float = 6.0
    lost_track_timeout: float = 10.0
    los_sample_count: int = 10
    passive_occlusion_attenuation: float = 25.0
    shadow_zone_attenuation: float = 15.0
    multipath_strength: float = 3.0
    multipath_frequency: float = 0.5
    scan_speed: float = 15.0
    max_scan_radius: float = 150.0
    ping_intensity_decay: float = 0.85
    ping_active_threshold: float = 0.06
    ping_recent_window: float = 2.5
    classification_rate: float = 0.015
    selected_classification_rate: float = 0.06
    classification_decay: float = 0.01
    echo_reference_range: float = 200.0

    def equation_parameters(self) -> PassiveDetectionParameters:
        return PassiveDetectionParameters(
            detection_threshold_db=self.detection_threshold,
            shadow_zone_attenuation_db=self.shadow_zone_attenuation,
            passive_occlusion_attenuation_db=self.passive_occlusion_attenuation,
            multipath_strength_db=self.multipath_strength,
            multipath_frequency=self.multipath_frequency,
        )


# =============================================================================
# RESULT TYPES
# =============================================================================


@dataclass
class Classification:
    """Classification progress for one target."""

    state: TrackState = TrackState.UNDETECTED
    progress: float = 0.0  # [0, 1]
    identified_class: Optional[str] = None
    confirmed: bool = False


@dataclass
class DetectionResult:
    """
    Detection state of a single target.

    Attributes:
        target_id: Target this result belongs to
        snr: Last passive SNR [dB]
        bearing: True bearing from own-ship [deg]
        distance: Range from own-ship [sim units]
        range_m: Range for the sonar equation [m]
        track_state: Detection state
        last_detected_time: Engine time of the last detection
        last_pulse_id: Last active pulse that hit this target
        line_of_sight: Terrain leaves a clear path
        classification: Classification progress
        modifiers: Propagation modifiers applied this tick
    """

    target_id: str
    snr: float = -math.inf
    bearing: float = 0.0
    distance: float = 0.0
    range_m: float = 1.0
    track_state: TrackState = TrackState.UNDETECTED
    last_detected_time: Optional[float] = None
    last_pulse_id: int = -1
    line_of_sight: bool = True
    classification: Classification = field(default_factory=Classification)
    modifiers: AcousticModifiers = NEUTRAL_MODIFIERS

    @property
    def is_detected(self) -> bool:
        return self.track_state == TrackState.TRACKED

    def to_dict(self) -> Dict:
        """Convert to dictionary for export."""
        return {
            "target_id": self.target_id,
            "snr_db": self.snr,
            "bearing_deg": self.bearing,
            "distance": self.distance,
            "range_m": self.range_m,
            "track_state": self.track_state.value,
            "last_detected_time": self.last_detected_time,
            "line_of_sight": self.line_of_sight,
            "classification": self.classification.state.value,
            "classification_progress": self.classification.progress,
            "identified_class": self.classification.identified_class,
            "modifiers": self.modifiers.to_dict(),
        }


@dataclass
class EchoEvent:
    """Active-ping echo awaiting its arrival time."""

    target_id: str
    bearing: float
    intensity: float
    arrival_time: float
    range_m: float


@dataclass
class PingTransient:
    """
    Ping transient flags for downstream spectral suppression.

    Attributes:
        active: Scan in progress or ping energy still ringing
        recent: Last ping within the recent window
        since_last_ping: Seconds since the last ping (None if never pinged)
    """

    active: bool = False
    recent: bool = False
    since_last_ping: Optional[float] = None


@dataclass
class AcousticContext:
    """Propagation context for one target, for presentation."""

    own_ship_depth: float
    target_depth: float
    range_m: float
    modifiers: AcousticModifiers


@dataclass
class _Geometry:
    distance: float
    bearing: float
    range_m: float
    own_depth: float
    target_depth: float
    line_of_sight: bool
    modifiers: AcousticModifiers


# =============================================================================
# DETECTION ENGINE
# =============================================================================


class DetectionEngine:
    """
    Passive/active detection for all targets around own-ship.

    Example:
        >>> engine = DetectionEngine()
        >>> engine.update([Target("target-01", "SHIP", x=20.0)], dt=0.1)
        >>> engine.get_result("target-01").track_state
        <TrackState.TRACKED: 'TRACKED'>
    """

    def __init__(
        self,
        environment: Optional[EnvironmentModel] = None,
        terrain: Optional[TerrainOracle] = None,
        config: Optional[DetectionConfig] = None,
        own_ship: Optional[OwnShip] = None,
    ) -> None:
        """
        Args:
            environment: Ocean model (DEEP_OCEAN when omitted)
            terrain: Optional seabed oracle for occlusion and sensor depths
            config: Detection tunables
            own_ship: Sensor platform pose
        """
        self.environment = environment or EnvironmentModel()
        self.terrain = terrain
        self.config = config or DetectionConfig()
        self.own_ship = own_ship or OwnShip()
        self._equation = self.config.equation_parameters()

        self.selected_target_id: Optional[str] = None

        # Optional observers
        self.on_target_update: Optional[Callable[[Dict[str, DetectionResult]], None]] = None
        self.on_scan_update: Optional[Callable[[bool, float], None]] = None
        self.on_scan_complete: Optional[Callable[[], None]] = None
        self.on_ping_echo: Optional[Callable[[float, float], None]] = None
        self.on_sonar_contact: Optional[Callable[[DetectionResult], None]] = None

        self.reset()

    def reset(self) -> None:
        """Clear all detection, scan and echo state."""
        self.time = 0.0
        self._results: Dict[str, DetectionResult] = {}
        self._pending_echoes: List[EchoEvent] = []

        self.is_scanning = False
        self.scan_radius = 0.0
        self.current_pulse_id = 0
        self.ping_intensity = 0.0
        self.last_ping_time: Optional[float] = None

    # ═══ Accessors ═══

    @property
    def results(self) -> Dict[str, DetectionResult]:
        return self._results

    def get_result(self, target_id: str) -> Optional[DetectionResult]:
        return self._results.get(target_id)

    def set_selected_target(self, target_id: Optional[str]) -> None:
        """Selected target classifies at the faster rate."""
        self.selected_target_id = target_id

    def set_own_ship_pose(self, x: float, z: float, course: Optional[float] = None) -> None:
        if is_finite(x) and is_finite(z):
            self.own_ship.x = float(x)
            self.own_ship.z = float(z)
        if course is not None and is_finite(course):
            self.own_ship.course = float(course)

    # ═══ Tick ═══

    def update(self, targets: Iterable[Target], dt: float) -> Dict[str, DetectionResult]:
        """
        Advance detection by one tick.

        Args:
            targets: Live targets
            dt: Tick duration [s]

        Returns:
            Detection results keyed by target id
        """
        dt = dt if is_finite(dt) and dt > 0 else 0.0
        self.time += dt
        now = self.time

        targets = list(targets)
        live_ids = {t.target_id for t in targets}
        for stale_id in [tid for tid in self._results if tid not in live_ids]:
            del self._results[stale_id]

        geometry: Dict[str, _Geometry] = {}
        for target in targets:
            geo = self._compute_geometry(target)
            geometry[target.target_id] = geo
            result = self._results.setdefault(target.target_id, DetectionResult(target.target_id))
            self._passive_detection(target, result, geo, now)
            self._update_classification(target, result, dt)

        if self.is_scanning:
            self._advance_scan(targets, geometry, now)

        self.ping_intensity *= self.config.ping_intensity_decay

        if self.on_target_update is not None:
            self.on_target_update(self._results)

        return self._results

    def _compute_geometry(self, target: Target) -> _Geometry:
        own = self.own_ship
        dx = target.x - own.x
        dz = target.z - own.z
        distance = math.hypot(dx, dz)
        if not math.isfinite(distance):
            distance = math.inf
        range_m = max(1.0, distance * SIM_UNITS_TO_METERS) if math.isfinite(distance) else math.inf

        own_depth, target_depth = sensor_depths(self.terrain, own.x, own.z, target.x, target.z)
        los = check_line_of_sight(
            self.terrain, own.x, own.z, target.x, target.z, self.config.los_sample_count
        )
        modifiers = self.environment.get_acoustic_modifiers(own_depth, target_depth, range_m)

        bearing = bearing_deg_from_delta(dx, dz) if math.isfinite(distance) else 0.0
        return _Geometry(distance, bearing, range_m, own_depth, target_depth, los, modifiers)

    def _passive_detection(
        self, target: Target, result: DetectionResult, geo: _Geometry, now: float
    ) -> None:
        result.distance = geo.distance
        result.bearing = geo.bearing
        result.range_m = geo.range_m
        result.line_of_sight = geo.line_of_sight
        result.modifiers = geo.modifiers

        snr = -math.inf
        if math.isfinite(geo.distance):
            snr = passive_snr(
                source_level(target.target_type, target.speed, target.rpm),
                geo.range_m,
                self.environment.ambient_noise(geo.target_depth),
                geo.distance,
                modifier_db=geo.modifiers.snr_modifier_db,
                thermocline_crossed=self.environment.is_thermocline_between(
                    geo.own_depth, geo.target_depth
                ),
                line_of_sight=geo.line_of_sight,
                params=self._equation,
            )
        result.snr = snr if math.isfinite(snr) else -math.inf

        if result.snr > self.config.detection_threshold:
            self._mark_detected(target, result, now)
        elif (
            result.track_state == TrackState.TRACKED
            and result.last_detected_time is not None
            and now - result.last_detected_time > self.config.lost_track_timeout
        ):
            result.track_state = TrackState.LOST
            logger.debug("Target %s LOST (%.1f s without detection)", target.target_id,
                         now - result.last_detected_time)

    def _mark_detected(self, target: Target, result: DetectionResult, now: float) -> None:
        was_tracked = result.track_state == TrackState.TRACKED
        result.track_state = TrackState.TRACKED
        result.last_detected_time = now
        if not was_tracked:
            logger.debug("Target %s TRACKED (SNR %.1f dB)", target.target_id, result.snr)
            if self.on_sonar_contact is not None:
                self.on_sonar_contact(result)

    def _update_classification(self, target: Target, result: DetectionResult, dt: float) -> None:
        """
        Progress classification for held targets.

        UNDETECTED and LOST targets are left as they are.
        """
        if result.track_state in (TrackState.UNDETECTED, TrackState.LOST):
            return

        cfg = self.config
        cls = result.classification

        if result.snr > cfg.detection_threshold + 2.0:
            rate = (
                cfg.selected_classification_rate
                if target.target_id == self.selected_target_id
                else cfg.classification_rate
            )
            cls.progress = min(1.0, cls.progress + rate * dt)

            if 0.2 < cls.progress < 0.6:
                cls.state = TrackState.AMBIGUOUS
            elif 0.6 <= cls.progress < 0.95:
                cls.state = TrackState.CLASSIFIED
                cls.identified_class = target.class_id
            elif cls.progress >= 0.95:
                if not cls.confirmed:
                    logger.debug("Target %s classification CONFIRMED as %s",
                                 target.target_id, target.class_id)
                cls.state = TrackState.CONFIRMED
                cls.identified_class = target.class_id
                cls.confirmed = True
        else:
            cls.progress = max(0.0, cls.progress - cfg.classification_decay * dt)
            if cls.progress < 0.1:
                cls.state = TrackState.UNDETECTED

    # ═══ Active sonar ═══

    def trigger_ping(self) -> bool:
        """
        Start an active ping.

        Returns:
            False if a scan is already in progress
        """
        if self.is_scanning:
            return False

        self.is_scanning = True
        self.scan_radius = 0.0
        self.current_pulse_id += 1
        self.last_ping_time = self.time
        self.ping_intensity = 1.0
        logger.info("Active ping %d transmitted at t=%.1f s", self.current_pulse_id, self.time)
        return True

    def _advance_scan(self, targets: List[Target], geometry: Dict[str, _Geometry], now: float) -> None:
        cfg = self.config
        self.scan_radius += cfg.scan_speed

        for target in targets:
            geo = geometry[target.target_id]
            result = self._results[target.target_id]

            if self.scan_radius < geo.distance or result.last_pulse_id == self.current_pulse_id:
                continue
            result.last_pulse_id = self.current_pulse_id

            if not geo.line_of_sight:
                continue

            self._mark_detected(target, result, now)
            target.react_to_ping()

            echo_gain = geo.modifiers.echo_gain
            falloff = 1.0 - geo.distance / cfg.echo_reference_range
            if self.on_ping_echo is not None:
                self.on_ping_echo(0.6 * falloff * echo_gain, geo.distance)

            self._pending_echoes.append(
                EchoEvent(
                    target_id=target.target_id,
                    bearing=geo.bearing,
                    intensity=max(0.25, falloff) * echo_gain,
                    arrival_time=now + 2.0 * geo.range_m / NOMINAL_SOUND_SPEED,
                    range_m=geo.range_m,
                )
            )

        if self.scan_radius > cfg.max_scan_radius:
            self.is_scanning = False
            self.ping_intensity = 0.0
            logger.info("Active ping %d complete", self.current_pulse_id)
            if self.on_scan_update is not None:
                self.on_scan_update(False, self.scan_radius)
            if self.on_scan_complete is not None:
                self.on_scan_complete()
        elif self.on_scan_update is not None:
            self.on_scan_update(True, self.scan_radius)

    def get_ping_transient_state(self, window: Optional[float] = None) -> PingTransient:
        """
        Ping transient flags at the current engine time.

        Args:
            window: Recent-ping window [s] (config default when None)
        """
        window = self.config.ping_recent_window if window is None else window
        since = None if self.last_ping_time is None else self.time - self.last_ping_time
        return PingTransient(
            active=self.is_scanning or self.ping_intensity > self.config.ping_active_threshold,
            recent=since is not None and 0.0 <= since <= window,
            since_last_ping=since,
        )

    def flush_arrived_echoes(self, now: Optional[float] = None) -> List[EchoEvent]:
        """Remove and return echoes whose arrival time has passed."""
        now = self.time if now is None else now
        arrived = [e for e in self._pending_echoes if now >= e.arrival_time]
        self._pending_echoes = [e for e in self._pending_echoes if now < e.arrival_time]
        return arrived

    @property
    def pending_echo_count(self) -> int:
        return len(self._pending_echoes)

    # ═══ Views ═══

    def get_acoustic_context(self, target: Target) -> AcousticContext:
        """Depths, range and propagation modifiers for one target."""
        geo = self._compute_geometry(target)
        return AcousticContext(
            own_ship_depth=geo.own_depth,
            target_depth=geo.target_depth,
            range_m=geo.range_m,
            modifiers=geo.modifiers,
        )

    def apply_results(self, targets: Iterable[Target]) -> None:
        """Copy each target's detection result onto the target object."""
        for target in targets:
            result = self._results.get(target.target_id)
            if result is None:
                continue
            target.snr = result.snr
            target.bearing = result.bearing
            target.distance = result.distance
            target.track_state = result.track_state
            target.classification_state = result.classification.state
            target.identified_class = result.classification.identified_class

    def snapshots(self, targets: Iterable[Target]) -> List[TargetSnapshot]:
        """Merge targets with their detection results for the contact registry."""
        merged = []
        for target in targets:
            result = self._results.get(target.target_id)
            if result is None:
                continue
            merged.append(
                TargetSnapshot(
                    target_id=target.target_id,
                    target_type=target.target_type.value,
                    track_state=result.track_state.value,
                    distance=result.distance,
                    bearing=result.bearing,
                    snr=result.snr,
                    course=target.course,
                    speed=target.speed,
                )
            )
        return merged
