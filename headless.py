#!/usr/bin/env python3
"""
Headless Simulation CLI

Run a sonar scenario without a display and print the contact picture.

Usage:
    python headless.py                                  # Default scenario
    python headless.py --config scenarios/default.yaml  # From file
    python headless.py --ping 5 --ping 20               # Active pings at t=5 s and t=20 s

Examples:
    # Quick passive run
    python headless.py --duration 15

    # Coastal water, sorted by range
    python headless.py --profile coastal --sort RANGE

    # DEMON blade-rate self-check on a synthetic propeller signal
    python headless.py --demon-check
"""

import argparse
import logging
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sonarsim.io.scenario_loader import ScenarioLoader
from sonarsim.signal.demon_engine import validate_demon_lock
from sonarsim.tracking.contacts import FilterMode, SortMode

DEFAULT_SCENARIO = os.path.join(os.path.dirname(os.path.abspath(__file__)), "scenarios", "default.yaml")


def run_scenario(args) -> int:
    loader = ScenarioLoader(args.config)
    if args.profile:
        loader.set_environment_profile(args.profile)
    config = loader.get_config()
    engine = loader.create_simulation_engine()

    duration = args.duration if args.duration is not None else config.duration_s
    ping_ticks = {int(round(t / engine.tick_seconds)) for t in args.ping}
    n_steps = int(round(duration / engine.tick_seconds))

    echoes = []
    for tick in range(n_steps):
        if tick in ping_ticks:
            engine.trigger_ping()
        engine.step()
        echoes.extend(engine.detection.flush_arrived_echoes())

    contacts = engine.registry.get_contacts(FilterMode[args.filter], SortMode[args.sort])

    if args.quiet:
        print(len(contacts))
        return 0

    print("=" * 72)
    print(f"SonarSim Headless Mode: {config.name}")
    print("=" * 72)
    print(f"Profile: {engine.detection.environment.profile.name}")
    print(f"Duration: {duration:.1f} s ({n_steps} ticks)")
    print(f"Targets: {len(engine.targets)}")
    print(f"Echoes received: {len(echoes)}")
    print("-" * 72)
    print(f"{'LABEL':<8}{'TARGET':<12}{'TYPE':<12}{'STATUS':<11}{'BRG':>7}{'RANGE m':>10}{'SNR':>8}{'THREAT':>9}")
    for c in contacts:
        print(
            f"{c.display_name:<8}{c.target_id:<12}{c.type:<12}{c.status.value:<11}"
            f"{c.bearing:7.1f}{c.range_meters:10.0f}{c.snr:8.1f}{c.threat_score:9.1f}"
        )
    print("=" * 72)
    return 0


def run_demon_check(quiet: bool) -> int:
    result = validate_demon_lock()
    computed = result["computed_values"]
    if quiet:
        print("PASS" if result["validation"]["is_valid"] else "FAIL")
    else:
        print("=" * 60)
        print("DEMON Blade-Rate Check")
        print("=" * 60)
        print(f"True BPF: {result['parameters']['true_bpf_Hz']:.2f} Hz")
        print(f"Estimate: {computed['bpf_estimate_Hz']}")
        print(f"Confidence: {computed['confidence']:.2f}")
        print(f"Lock: {computed['lock_state']}")
        print(f"Peaks: {computed['peaks_Hz']}")
        print(f"Valid: {result['validation']['is_valid']}")
        print("=" * 60)
    return 0 if result["validation"]["is_valid"] else 1


def main():
    parser = argparse.ArgumentParser(description="Run headless sonar simulation")

    parser.add_argument("--config", type=str, default=DEFAULT_SCENARIO, help="YAML scenario file")
    parser.add_argument("--duration", type=float, default=None, help="Override duration in seconds")
    parser.add_argument("--profile", choices=["deep_ocean", "coastal"], default=None,
                        help="Override ocean profile")
    parser.add_argument("--ping", type=float, action="append", default=[],
                        help="Trigger an active ping at this time in seconds (repeatable)")
    parser.add_argument("--filter", choices=[m.value for m in FilterMode], default="ALL")
    parser.add_argument("--sort", choices=[m.value for m in SortMode], default="THREAT")
    parser.add_argument("--demon-check", action="store_true",
                        help="Run the DEMON synthetic blade-rate check instead of a scenario")

    parser.add_argument("--quiet", action="store_true", help="Machine-readable output")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    if args.demon_check:
        return run_demon_check(args.quiet)

    if not os.path.exists(args.config):
        print(f"Error: Scenario file not found: {args.config}")
        return 1

    return run_scenario(args)


if __name__ == "__main__":
    sys.exit(main())
