#!/usr/bin/env python3
"""
Record-and-replay demonstration script.

This script records a short heart-rate sensor session, validates it, saves it
under demo_scenarios/ and replays it in real time, printing each event as the
player emits it.

Usage:
    python examples/record_and_replay.py
"""

from pathlib import Path

from blereplay.config_models import SystemConfig
from blereplay.formatters import TextFormatter
from blereplay.logging_config import setup_logging
from blereplay.scenario.player import EventPlayer
from blereplay.scenario.recorder import ScenarioRecorder
from blereplay.scenario.validator import EventValidator


def record_session(recorder: ScenarioRecorder):
    """Record a heart-rate sensor session with explicit timestamps."""
    print("\n" + "=" * 60)
    print("RECORDING")
    print("=" * 60)

    session = recorder.start_recording("Demo Heart Rate")
    session.add_device("hr-1", "polar-h10")

    session.record_advertising("hr-1", at=0)
    session.record_connect("hr-1", at=300)
    session.record_mtu_exchange("hr-1", requested=247, negotiated=185, at=350, latency_ms=20)
    session.record_read("hr-1", "180F", "2A19", "64", at=420, latency_ms=15)
    session.record_write("hr-1", "180D", "2A39", "01", at=500, latency_ms=10)
    for i in range(3):
        session.record_notify("hr-1", "180D", "2A37", f"00{60 + i:02X}", at=600 + i * 250)
    session.record_disconnect("hr-1", reason="remote_user_terminated", at=1500)

    scenario = recorder.stop_recording()
    print(f"Recorded {len(scenario.events)} events over {scenario.duration_seconds:.2f}s")
    print(f"Validity: {scenario.metadata.validity}")
    return scenario


def replay(scenario) -> None:
    """Validate and replay a scenario against wall-clock time."""
    print("\n" + "=" * 60)
    print("REPLAY")
    print("=" * 60)

    result = EventValidator.validate_with_result(scenario.events)
    print(f"Validation: {'passed' if result.is_valid else 'failed'} "
          f"({len(result.errors)} errors, {len(result.warnings)} warnings)")

    formatter = TextFormatter()
    player = EventPlayer(scenario.events)
    player.subscribe(lambda event: print(formatter.format_event(event, event.t)))

    player.start()
    player.wait_until_complete(timeout=player.duration_seconds + 1.0)
    print(f"Progress: {player.progress:.0%}")


def main():
    """Run the record-and-replay demonstration."""
    setup_logging(SystemConfig())

    recorder = ScenarioRecorder(Path("demo_scenarios"))
    scenario = record_session(recorder)
    replay(scenario)

    print(f"\nSaved scenarios: {[entry['file_path'] for entry in recorder.list_scenarios()]}")


if __name__ == "__main__":
    main()
