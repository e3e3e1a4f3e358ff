"""
Contact Registry

Maintains the operator-facing list of sonar contacts derived from detection
results: stable labels, aliases, pins, lost-contact handling, ambiguity
merging of closely spaced contacts, threat ranking and manual TMA scoring.

Contact Lifecycle:
    (first TRACKED detection) -> TRACKED <-> AMBIGUOUS
                                     |            |
                                     +--> LOST <--+
                                           |
                          clear_lost_contacts() removes

Labels are assigned "S1", "S2", ... in creation order and are never reused
while the contact exists.

Reference: Blackman, S. "Multiple-Target Tracking with Radar Applications", 1986
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from sonarsim.physics.constants import CONTACT_RANGE_SCALE, CONTACT_SPEED_SCALE
from sonarsim.utils.numeric import circular_difference, finite_or, normalize_degrees

from .scoring import ManualSolution, solution_confidence, threat_score, true_solution_from_target

logger = logging.getLogger(__name__)

MAX_ALIAS_LENGTH = 12


class ContactStatus(Enum):
    """Contact lifecycle states."""

    TRACKED = "TRACKED"  # Held, unambiguous
    AMBIGUOUS = "AMBIGUOUS"  # Merged with nearby contacts
    LOST = "LOST"  # Not detected within the lost timeout


class FilterMode(Enum):
    ALL = "ALL"
    TRACKED = "TRACKED"
    AMBIGUOUS = "AMBIGUOUS"
    LOST = "LOST"
    PINNED = "PINNED"


class SortMode(Enum):
    THREAT = "THREAT"
    RANGE = "RANGE"
    LABEL = "LABEL"
    CONFIDENCE = "CONFIDENCE"


@dataclass
class TargetSnapshot:
    """
    Read-only view of a target merged with its detection result.

    Attributes:
        target_id: Target identifier
        target_type: Platform type name
        track_state: Detection state name (TRACKED counts as detected)
        distance: Range from own-ship [sim units]
        bearing: True bearing [deg]
        snr: Passive SNR [dB]
        course: Target heading [rad]
        speed: Target speed [sim units/s]
    """

    target_id: str
    target_type: str
    track_state: str
    distance: float
    bearing: float
    snr: float
    course: float
    speed: float

    @property
    def is_detected(self) -> bool:
        return self.track_state == "TRACKED"


@dataclass
class RelabelResult:
    """Outcome of a relabel request; reason is set when ok is False."""

    ok: bool
    reason: Optional[str] = None  # not-found | empty | too-long | duplicate


@dataclass
class ContactRegistryConfig:
    """
    Contact registry tunables.

    Attributes:
        lost_timeout: Seconds unseen before TRACKED/AMBIGUOUS -> LOST
        merge_bearing_deg: Bearing gate for ambiguity merging [deg]
        merge_range_m: Range gate for ambiguity merging [m]
        range_scale: Sim units to contact range [m]
        speed_scale: Sim speed to contact speed [kn]
    """

    lost_timeout: float = 10.0
    merge_bearing_deg: float = 8.0
    merge_range_m: float = 250.0
    range_scale: float = CONTACT_RANGE_SCALE
    speed_scale: float = CONTACT_SPEED_SCALE


@dataclass
class Contact:
    """
    Operator-facing sonar contact.

    Attributes:
        target_id: Backing target (1:1 while alive)
        label: Stable registry label (S1, S2, ...)
        alias: Operator alias (uppercase, unique)
        pinned: Operator pin
        status: Lifecycle status
        last_seen_at: Registry time of the last detection [s]
        range_meters: Range [m]
        bearing: Bearing [deg]
        snr: Latest SNR [dB]
        type: Target type name
        merged_group_id: Ambiguity group (M1, M2, ...) or None
        reacquire_count: Times reacquired after being LOST
        manual_solution: Operator TMA estimate
        manual_confidence: Agreement of the manual solution with truth, 0-100
        threat_score: Ranking score
    """

    target_id: str
    label: str
    alias: Optional[str] = None
    pinned: bool = False
    status: ContactStatus = ContactStatus.TRACKED
    last_seen_at: float = 0.0
    range_meters: float = 0.0
    bearing: float = 0.0
    snr: float = 0.0
    type: str = "SHIP"
    merged_group_id: Optional[str] = None
    reacquire_count: int = 0
    manual_solution: Optional[ManualSolution] = None
    manual_confidence: Optional[int] = None
    threat_score: float = 0.0

    @property
    def display_name(self) -> str:
        return self.alias or self.label

    def to_dict(self) -> Dict:
        return {
            "target_id": self.target_id,
            "label": self.label,
            "alias": self.alias,
            "pinned": self.pinned,
            "status": self.status.value,
            "range_m": self.range_meters,
            "bearing_deg": self.bearing,
            "snr_db": self.snr,
            "type": self.type,
            "merged_group_id": self.merged_group_id,
            "reacquire_count": self.reacquire_count,
            "manual_confidence": self.manual_confidence,
            "threat_score": self.threat_score,
        }


class ContactRegistry:
    """
    Registry of sonar contacts keyed by target id.

    Example:
        >>> registry = ContactRegistry()
        >>> registry.update(engine.snapshots(targets), elapsed=12.0)
        >>> [c.label for c in registry.get_contacts(sort_mode=SortMode.THREAT)]
        ['S2', 'S1']
    """

    def __init__(self, config: Optional[ContactRegistryConfig] = None) -> None:
        self.config = config or ContactRegistryConfig()
        self.reset()

    def reset(self) -> None:
        """Drop every contact and restart label/group numbering."""
        self._contacts: Dict[str, Contact] = {}
        self._targets: Dict[str, TargetSnapshot] = {}
        self._next_label_number = 1
        self._next_group_number = 1
        self.selected_target_id: Optional[str] = None

    def __len__(self) -> int:
        return len(self._contacts)

    def get_contact(self, target_id: str) -> Optional[Contact]:
        return self._contacts.get(target_id)

    # ═══ Update ═══

    def update(self, targets: Iterable[TargetSnapshot], elapsed: float) -> List[Contact]:
        """
        Refresh contacts from the latest detection snapshots.

        Args:
            targets: Targets merged with their detection results
            elapsed: Simulation time [s]

        Returns:
            All contacts
        """
        self._targets = {t.target_id: t for t in targets}
        scale = self.config.range_scale

        for target in self._targets.values():
            detected = target.is_detected
            contact = self._contacts.get(target.target_id)

            if contact is None:
                if not detected:
                    continue
                contact = Contact(
                    target_id=target.target_id,
                    label=f"S{self._next_label_number}",
                    last_seen_at=elapsed,
                )
                self._next_label_number += 1
                self._contacts[target.target_id] = contact
                logger.debug("Contact %s created for %s", contact.label, target.target_id)

            contact.type = target.target_type
            contact.range_meters = finite_or(target.distance * scale, contact.range_meters)
            contact.bearing = finite_or(target.bearing, contact.bearing)
            contact.snr = finite_or(target.snr, contact.snr)

            if detected:
                if contact.status == ContactStatus.LOST:
                    contact.reacquire_count += 1
                    logger.debug("Contact %s reacquired", contact.label)
                contact.status = ContactStatus.TRACKED
                contact.last_seen_at = elapsed

            if contact.manual_solution is not None:
                contact.manual_confidence = self._confidence_for(contact.manual_solution, target)

        self._promote_lost(elapsed)
        self._merge_ambiguous()

        for contact in self._contacts.values():
            contact.threat_score = threat_score(
                contact.snr, contact.range_meters, contact.status.value, contact.pinned
            )

        return list(self._contacts.values())

    def _promote_lost(self, elapsed: float) -> None:
        for contact in self._contacts.values():
            if contact.status == ContactStatus.LOST:
                continue
            if elapsed - contact.last_seen_at > self.config.lost_timeout:
                contact.status = ContactStatus.LOST
                contact.merged_group_id = None
                logger.debug("Contact %s LOST", contact.label)

    def _merge_ambiguous(self) -> None:
        """
        Group held contacts closer than the bearing and range gates.

        Pairs within both gates are linked; each connected group of more
        than one contact shares a merged group id and becomes AMBIGUOUS.
        """
        cfg = self.config
        previous_groups: Dict[str, Optional[str]] = {}
        held = []
        for contact in self._contacts.values():
            # Contacts without a live target keep their last status and group
            if contact.status == ContactStatus.LOST or contact.target_id not in self._targets:
                continue
            previous_groups[contact.target_id] = contact.merged_group_id
            contact.status = ContactStatus.TRACKED
            contact.merged_group_id = None
            held.append(contact)

        # Union-find over the held contacts
        parent = list(range(len(held)))

        def find(i: int) -> int:
            while parent[i] != i:
                parent[i] = parent[parent[i]]
                i = parent[i]
            return i

        for i in range(len(held)):
            for j in range(i + 1, len(held)):
                a, b = held[i], held[j]
                if (
                    circular_difference(a.bearing, b.bearing) <= cfg.merge_bearing_deg
                    and abs(a.range_meters - b.range_meters) <= cfg.merge_range_m
                ):
                    parent[find(j)] = find(i)

        groups: Dict[int, List[Contact]] = {}
        for i, contact in enumerate(held):
            groups.setdefault(find(i), []).append(contact)

        used_ids = set()
        for members in groups.values():
            if len(members) < 2:
                continue
            # Keep a group id stable across ticks while its members stay merged
            reusable = sorted(
                {previous_groups[c.target_id] for c in members} - {None} - used_ids,
                key=lambda gid: int(gid[1:]),
            )
            if reusable:
                group_id = reusable[0]
            else:
                group_id = f"M{self._next_group_number}"
                self._next_group_number += 1
            used_ids.add(group_id)
            for contact in members:
                contact.status = ContactStatus.AMBIGUOUS
                contact.merged_group_id = group_id

    def _confidence_for(self, solution: ManualSolution, target: TargetSnapshot) -> Optional[int]:
        truth = true_solution_from_target(
            target.bearing,
            target.distance,
            target.course,
            target.speed,
            self.config.range_scale,
            self.config.speed_scale,
        )
        return solution_confidence(solution, truth)

    # ═══ Operator actions ═══

    def relabel(self, target_id: str, alias: str) -> RelabelResult:
        """
        Set an operator alias (stored uppercase).

        Fails with reason not-found, empty, too-long or duplicate.
        """
        contact = self._contacts.get(target_id)
        if contact is None:
            return RelabelResult(False, "not-found")

        alias = (alias or "").strip().upper()
        if not alias:
            return RelabelResult(False, "empty")
        if len(alias) > MAX_ALIAS_LENGTH:
            return RelabelResult(False, "too-long")
        for other in self._contacts.values():
            if other is not contact and other.alias == alias:
                return RelabelResult(False, "duplicate")

        contact.alias = alias
        return RelabelResult(True)

    def toggle_pin(self, target_id: str) -> bool:
        """Flip the pin flag; returns the new value (False if unknown)."""
        contact = self._contacts.get(target_id)
        if contact is None:
            return False
        contact.pinned = not contact.pinned
        contact.threat_score = threat_score(
            contact.snr, contact.range_meters, contact.status.value, contact.pinned
        )
        return contact.pinned

    def set_selected_target(self, target_id: Optional[str]) -> None:
        self.selected_target_id = target_id

    def get_selected_contact(self) -> Optional[Contact]:
        if self.selected_target_id is None:
            return None
        return self._contacts.get(self.selected_target_id)

    def set_manual_solution(self, target_id: str, solution: ManualSolution) -> Optional[int]:
        """
        Store an operator TMA solution and score it.

        The whole write is rejected when the contact is unknown or any field
        is non-finite. With no live target to score against the confidence
        is 0.

        Returns:
            Confidence 0-100, or None when rejected
        """
        contact = self._contacts.get(target_id)
        if contact is None or not solution.is_finite():
            return None

        stored = ManualSolution(
            bearing=normalize_degrees(solution.bearing),
            range=float(solution.range),
            course=normalize_degrees(solution.course),
            speed=float(solution.speed),
        )
        contact.manual_solution = stored

        target = self._targets.get(target_id)
        contact.manual_confidence = 0 if target is None else self._confidence_for(stored, target)
        return contact.manual_confidence

    def clear_lost_contacts(self) -> List[str]:
        """Remove LOST contacts; returns their target ids."""
        removed = [tid for tid, c in self._contacts.items() if c.status == ContactStatus.LOST]
        for tid in removed:
            del self._contacts[tid]
        if self.selected_target_id in removed:
            self.selected_target_id = None
        return removed

    # ═══ Queries ═══

    def get_contacts(
        self,
        filter_mode: FilterMode = FilterMode.ALL,
        sort_mode: SortMode = SortMode.THREAT,
    ) -> List[Contact]:
        """Filtered and sorted contact list."""
        contacts = list(self._contacts.values())

        if filter_mode == FilterMode.PINNED:
            contacts = [c for c in contacts if c.pinned]
        elif filter_mode != FilterMode.ALL:
            contacts = [c for c in contacts if c.status.value == filter_mode.value]

        if sort_mode == SortMode.RANGE:
            contacts.sort(key=lambda c: (c.range_meters, _label_key(c)))
        elif sort_mode == SortMode.LABEL:
            contacts.sort(key=_label_key)
        elif sort_mode == SortMode.CONFIDENCE:
            contacts.sort(
                key=lambda c: (-(c.manual_confidence if c.manual_confidence is not None else -1), _label_key(c))
            )
        else:
            contacts.sort(key=lambda c: (-c.threat_score, _label_key(c)))

        return contacts


def _label_key(contact: Contact):
    """Natural sort: S2 before S10."""
    digits = contact.label[1:]
    return (contact.label[:1], int(digits) if digits.isdigit() else 0, contact.label)
