"""
Tracking Module

Operator contact management for the sonar simulation.

Components:
    - ContactRegistry: Labels, aliases, pins, lost handling and ambiguity merging
    - Contact: Individual contact record
    - scoring: Threat ranking and manual TMA solution confidence

Example:
    >>> from sonarsim.tracking import ContactRegistry
    >>> registry = ContactRegistry()
    >>> registry.update(snapshots, elapsed=1.0)
"""

from .contacts import (
    Contact,
    ContactRegistry,
    ContactRegistryConfig,
    ContactStatus,
    FilterMode,
    RelabelResult,
    SortMode,
    TargetSnapshot,
)
from .scoring import ManualSolution, solution_confidence, threat_score

__all__ = [
    "Contact",
    "ContactRegistry",
    "ContactRegistryConfig",
    "ContactStatus",
    "FilterMode",
    "SortMode",
    "RelabelResult",
    "TargetSnapshot",
    "ManualSolution",
    "solution_confidence",
    "threat_score",
]
