"""
SonarSim Contact Registry Test Suite

Tests for contact labelling, lifecycle, ambiguity merging, operator actions,
threat ranking and manual TMA scoring.

Test ID | Description                    | Reference               | Tolerance
--------|--------------------------------|-------------------------|------------
1       | Stable S-labels                | Creation order          | exact
2       | LOST after timeout / reacquire | 10 s timeout            | exact
3       | Operator alias rules           | Uppercase, unique, ≤12  | exact
4       | Ambiguity merging              | 8° / 250 m gates        | exact
5       | Threat score                   | SNR + range + status    | ±1e-6
6       | Manual solution confidence     | Mean of four terms      | exact int

Reference: Blackman, S. "Multiple-Target Tracking with Radar Applications", 1986
"""

import math
import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sonarsim.tracking.contacts import (
    ContactRegistry,
    ContactRegistryConfig,
    ContactStatus,
    FilterMode,
    SortMode,
    TargetSnapshot,
)
from sonarsim.tracking.scoring import ManualSolution, TrueSolution, solution_confidence, threat_score


def snap(target_id, bearing=90.0, distance=20.0, detected=True, snr=20.0, course=math.pi / 2, speed=0.5):
    """Target snapshot; distance in sim units (×50 = meters)."""
    return TargetSnapshot(
        target_id=target_id,
        target_type="SHIP",
        track_state="TRACKED" if detected else "UNDETECTED",
        distance=distance,
        bearing=bearing,
        snr=snr,
        course=course,
        speed=speed,
    )


@pytest.fixture
def registry():
    return ContactRegistry()


# =============================================================================
# TEST 1: Labels
# =============================================================================


class TestLabels:
    """Labels are assigned once, in creation order."""

    def test_labels_in_creation_order(self, registry):
        registry.update([snap("a"), snap("b", bearing=200.0)], 0.0)

        assert registry.get_contact("a").label == "S1"
        assert registry.get_contact("b").label == "S2"

    def test_undetected_target_creates_no_contact(self, registry):
        registry.update([snap("a", detected=False)], 0.0)

        assert len(registry) == 0
        assert registry.get_contact("a") is None

    def test_labels_not_reused_after_clear(self, registry):
        registry.update([snap("a")], 0.0)
        registry.update([snap("a", detected=False)], 11.0)
        registry.clear_lost_contacts()
        registry.update([snap("b")], 12.0)

        assert registry.get_contact("b").label == "S2"

    def test_range_conversion(self, registry):
        registry.update([snap("a", distance=20.0)], 0.0)

        assert registry.get_contact("a").range_meters == pytest.approx(1000.0)


# =============================================================================
# TEST 2: Lifecycle
# =============================================================================


class TestLifecycle:
    """TRACKED -> LOST -> TRACKED and clearing."""

    def test_lost_after_timeout(self, registry):
        registry.update([snap("a")], 0.0)
        registry.update([snap("a", detected=False)], 10.0)
        assert registry.get_contact("a").status == ContactStatus.TRACKED

        registry.update([snap("a", detected=False)], 10.5)
        assert registry.get_contact("a").status == ContactStatus.LOST

    def test_reacquire_counts(self, registry):
        registry.update([snap("a")], 0.0)
        registry.update([snap("a", detected=False)], 11.0)
        registry.update([snap("a")], 12.0)
        contact = registry.get_contact("a")

        assert contact.status == ContactStatus.TRACKED
        assert contact.reacquire_count == 1
        assert contact.last_seen_at == 12.0

    def test_clear_lost_contacts(self, registry):
        registry.update([snap("a"), snap("b", bearing=200.0)], 0.0)
        registry.set_selected_target("a")
        registry.update([snap("a", detected=False), snap("b", bearing=200.0)], 11.0)

        assert registry.clear_lost_contacts() == ["a"]
        assert registry.get_contact("a") is None
        assert registry.get_selected_contact() is None
        assert len(registry) == 1

    def test_non_finite_snr_keeps_previous(self, registry):
        registry.update([snap("a", snr=20.0)], 0.0)
        registry.update([snap("a", snr=float("nan"))], 0.1)

        assert registry.get_contact("a").snr == 20.0

    def test_reset_restarts_labels(self, registry):
        registry.update([snap("a")], 0.0)
        registry.reset()
        registry.update([snap("b")], 0.0)

        assert registry.get_contact("b").label == "S1"


# =============================================================================
# TEST 3: Operator Actions
# =============================================================================


class TestOperatorActions:
    """Alias, pin and selection."""

    def test_relabel_uppercases(self, registry):
        registry.update([snap("a")], 0.0)
        result = registry.relabel("a", "  alpha ")

        assert result.ok
        assert registry.get_contact("a").alias == "ALPHA"
        assert registry.get_contact("a").display_name == "ALPHA"

    def test_relabel_failures(self, registry):
        registry.update([snap("a"), snap("b", bearing=200.0)], 0.0)
        registry.relabel("a", "alpha")

        assert registry.relabel("b", "Alpha").reason == "duplicate"
        assert registry.relabel("b", "   ").reason == "empty"
        assert registry.relabel("b", "X" * 13).reason == "too-long"
        assert registry.relabel("zzz", "bravo").reason == "not-found"
        assert registry.get_contact("b").alias is None

    def test_relabel_same_contact_again(self, registry):
        registry.update([snap("a")], 0.0)
        registry.relabel("a", "alpha")

        assert registry.relabel("a", "ALPHA").ok

    def test_toggle_pin(self, registry):
        registry.update([snap("a")], 0.0)
        before = registry.get_contact("a").threat_score

        assert registry.toggle_pin("a") is True
        assert registry.get_contact("a").threat_score == pytest.approx(before + 25.0)
        assert registry.toggle_pin("a") is False
        assert registry.toggle_pin("unknown") is False


# =============================================================================
# TEST 4: Ambiguity Merging
# =============================================================================


class TestAmbiguity:
    """Contacts inside both gates share a merged group."""

    def test_close_contacts_merge(self, registry):
        registry.update([snap("a", 90.0, 20.0), snap("b", 93.0, 22.0), snap("c", 200.0, 20.0)], 0.0)
        a, b, c = (registry.get_contact(t) for t in "abc")

        assert a.status == ContactStatus.AMBIGUOUS
        assert b.status == ContactStatus.AMBIGUOUS
        assert a.merged_group_id == b.merged_group_id == "M1"
        assert c.status == ContactStatus.TRACKED
        assert c.merged_group_id is None

    def test_group_id_stable_across_ticks(self, registry):
        targets = [snap("a", 90.0, 20.0), snap("b", 93.0, 22.0)]
        registry.update(targets, 0.0)
        registry.update(targets, 0.1)

        assert registry.get_contact("a").merged_group_id == "M1"

    def test_separation_clears_group(self, registry):
        registry.update([snap("a", 90.0, 20.0), snap("b", 93.0, 22.0)], 0.0)
        registry.update([snap("a", 90.0, 20.0), snap("b", 120.0, 22.0)], 0.1)

        for tid in "ab":
            assert registry.get_contact(tid).status == ContactStatus.TRACKED
            assert registry.get_contact(tid).merged_group_id is None

    def test_range_gate(self, registry):
        # 300 m apart in range
        registry.update([snap("a", 90.0, 20.0), snap("b", 91.0, 26.0)], 0.0)

        assert registry.get_contact("a").status == ContactStatus.TRACKED

    def test_chained_contacts_form_one_group(self, registry):
        registry.update([snap("a", 90.0), snap("b", 96.0), snap("c", 102.0)], 0.0)
        groups = {registry.get_contact(t).merged_group_id for t in "abc"}

        assert groups == {"M1"}

    def test_bearing_wraps_north(self, registry):
        registry.update([snap("a", 358.0), snap("b", 3.0)], 0.0)

        assert registry.get_contact("a").status == ContactStatus.AMBIGUOUS

    def test_lost_contacts_never_merge(self):
        registry = ContactRegistry(ContactRegistryConfig(lost_timeout=1.0))
        registry.update([snap("a", 90.0), snap("b", 200.0)], 0.0)
        registry.update([snap("a", 90.0, detected=False), snap("b", 200.0)], 2.0)
        registry.update([snap("a", 90.0, detected=False), snap("b", 91.0)], 2.1)

        assert registry.get_contact("a").status == ContactStatus.LOST
        assert registry.get_contact("b").status == ContactStatus.TRACKED

    def test_contact_without_target_keeps_group(self, registry):
        registry.update([snap("a", 90.0, 20.0), snap("b", 93.0, 22.0)], 0.0)
        registry.update([snap("a", 90.0, 20.0)], 0.1)
        a, b = registry.get_contact("a"), registry.get_contact("b")

        assert a.status == ContactStatus.TRACKED
        assert a.merged_group_id is None
        assert b.status == ContactStatus.AMBIGUOUS
        assert b.merged_group_id == "M1"

        registry.update([snap("a", 90.0, 20.0)], 10.5)
        assert b.status == ContactStatus.LOST
        assert b.merged_group_id is None


# =============================================================================
# TEST 5: Threat Score and Queries
# =============================================================================


class TestThreatAndQueries:
    """Threat ranking, filters and sorts."""

    def test_threat_score_terms(self):
        assert threat_score(20.0, 1000.0, "TRACKED") == pytest.approx(20.0 + 2000.0 / 30.0 + 10.0)
        assert threat_score(20.0, 1000.0, "AMBIGUOUS") == pytest.approx(20.0 + 2000.0 / 30.0 + 15.0)
        assert threat_score(20.0, 5000.0, "LOST", pinned=True) == pytest.approx(45.0)

    def test_threat_score_non_finite(self):
        assert threat_score(float("nan"), float("inf"), "LOST") == 0.0

    def test_range_term_capped(self):
        assert threat_score(0.0, 0.0, "LOST") == pytest.approx(100.0)

    def test_sort_by_threat(self, registry):
        registry.update([snap("far", 90.0, 50.0), snap("near", 200.0, 10.0)], 0.0)
        labels = [c.target_id for c in registry.get_contacts()]

        assert labels == ["near", "far"]

    def test_sort_by_range_and_label(self, registry):
        registry.update([snap("far", 90.0, 50.0), snap("near", 200.0, 10.0)], 0.0)

        assert [c.target_id for c in registry.get_contacts(sort_mode=SortMode.RANGE)] == ["near", "far"]
        assert [c.label for c in registry.get_contacts(sort_mode=SortMode.LABEL)] == ["S1", "S2"]

    def test_label_sort_is_natural(self, registry):
        registry.update([snap(f"t{i}", bearing=i * 30.0) for i in range(11)], 0.0)
        labels = [c.label for c in registry.get_contacts(sort_mode=SortMode.LABEL)]

        assert labels[:3] == ["S1", "S2", "S3"]
        assert labels[-2:] == ["S10", "S11"]

    def test_filters(self, registry):
        registry.update([snap("a", 90.0), snap("b", 93.0), snap("c", 200.0)], 0.0)
        registry.toggle_pin("c")

        assert {c.target_id for c in registry.get_contacts(FilterMode.AMBIGUOUS)} == {"a", "b"}
        assert {c.target_id for c in registry.get_contacts(FilterMode.TRACKED)} == {"c"}
        assert {c.target_id for c in registry.get_contacts(FilterMode.PINNED)} == {"c"}
        assert registry.get_contacts(FilterMode.LOST) == []


# =============================================================================
# TEST 6: Manual Solution
# =============================================================================


class TestManualSolution:
    """Operator TMA scoring against ground truth."""

    def test_perfect_solution(self, registry):
        registry.update([snap("a")], 0.0)
        confidence = registry.set_manual_solution("a", ManualSolution(90.0, 1000.0, 90.0, 10.0))

        assert confidence == 100
        assert registry.get_contact("a").manual_confidence == 100

    def test_half_wrong_solution(self, registry):
        registry.update([snap("a")], 0.0)

        assert registry.set_manual_solution("a", ManualSolution(180.0, 2500.0, 0.0, 30.0)) == 50

    def test_angles_normalized(self, registry):
        registry.update([snap("a")], 0.0)
        registry.set_manual_solution("a", ManualSolution(450.0, 1000.0, -270.0, 10.0))
        stored = registry.get_contact("a").manual_solution

        assert stored.bearing == pytest.approx(90.0)
        assert stored.course == pytest.approx(90.0)
        assert registry.get_contact("a").manual_confidence == 100

    def test_non_finite_solution_rejected(self, registry):
        registry.update([snap("a")], 0.0)

        assert registry.set_manual_solution("a", ManualSolution(float("nan"), 1000.0, 90.0, 10.0)) is None
        assert registry.get_contact("a").manual_solution is None

    def test_unknown_contact_rejected(self, registry):
        assert registry.set_manual_solution("zzz", ManualSolution(90.0, 1000.0, 90.0, 10.0)) is None

    def test_solution_without_live_target_scores_zero(self, registry):
        registry.update([snap("a")], 0.0)
        registry.update([], 0.1)

        assert registry.set_manual_solution("a", ManualSolution(90.0, 1000.0, 90.0, 10.0)) == 0
        assert registry.get_contact("a").manual_confidence == 0
        assert registry.get_contact("a").manual_solution is not None

    def test_confidence_recomputed_on_update(self, registry):
        registry.update([snap("a")], 0.0)
        registry.set_manual_solution("a", ManualSolution(90.0, 1000.0, 90.0, 10.0))
        # Target moved 1500 m further out
        registry.update([snap("a", distance=50.0)], 0.1)

        assert registry.get_contact("a").manual_confidence == 88

    def test_sort_by_confidence(self, registry):
        registry.update([snap("a"), snap("b", bearing=200.0), snap("c", bearing=300.0)], 0.0)
        registry.set_manual_solution("b", ManualSolution(200.0, 1000.0, 90.0, 10.0))
        registry.set_manual_solution("c", ManualSolution(120.0, 1000.0, 90.0, 10.0))
        order = [c.target_id for c in registry.get_contacts(sort_mode=SortMode.CONFIDENCE)]

        assert order == ["b", "c", "a"]

    def test_solution_confidence_rejects_non_finite_truth(self):
        truth = TrueSolution(90.0, float("inf"), 90.0, 10.0)

        assert solution_confidence(ManualSolution(90.0, 1000.0, 90.0, 10.0), truth) is None
