"""
Profile in-process stepping throughput and energy drift for every preset at a
few speed multipliers. Results are printed and appended to profiling_runs.csv.

Run from repo root:
    python profile_integrator.py
"""

from __future__ import annotations

import csv
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List

from threebody.physics import SUB_STEPS, multi_step, total_energy
from threebody.presets import PRESETS

SPEED_MULTIPLIERS = [0.1, 1.0, 10.0]
TICKS_PER_RUN = 600  # ten seconds of display time at 60 Hz


@dataclass
class Scenario:
    preset_id: str
    speed: float


CSV_FIELDS = [
    "timestamp",
    "preset",
    "speed",
    "ticks",
    "sub_steps",
    "tick_p50_ms",
    "tick_p95_ms",
    "tick_max_ms",
    "relative_energy_drift",
]


def _percentile(values: List[float], pct: float) -> float:
    if not values:
        return 0.0
    values_sorted = sorted(values)
    k = (len(values_sorted) - 1) * pct / 100.0
    lower = int(k)
    upper = min(lower + 1, len(values_sorted) - 1)
    if lower == upper:
        return values_sorted[lower]
    fraction = k - lower
    return values_sorted[lower] + (values_sorted[upper] - values_sorted[lower]) * fraction


def run_scenario(scenario: Scenario, ticks: int = TICKS_PER_RUN) -> Dict[str, float]:
    bodies = PRESETS[scenario.preset_id].bodies
    energy_start = total_energy(bodies)
    tick_ms: List[float] = []

    for _ in range(ticks):
        start = time.perf_counter()
        bodies = multi_step(bodies, scenario.speed)
        tick_ms.append((time.perf_counter() - start) * 1000.0)

    drift = abs(total_energy(bodies) - energy_start)
    if energy_start != 0:
        drift /= abs(energy_start)
    return {
        "tick_p50_ms": _percentile(tick_ms, 50),
        "tick_p95_ms": _percentile(tick_ms, 95),
        "tick_max_ms": max(tick_ms),
        "relative_energy_drift": drift,
    }


def _write_trace(rows: List[Dict[str, object]]) -> None:
    with open("profiling_runs.csv", "a", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        if f.tell() == 0:
            writer.writeheader()
        for row in rows:
            writer.writerow(row)


def main() -> None:
    run_timestamp = datetime.now(timezone.utc).isoformat()
    rows: List[Dict[str, object]] = []

    for preset_id in PRESETS:
        print(f"\nPreset: {preset_id}")
        for speed in SPEED_MULTIPLIERS:
            result = run_scenario(Scenario(preset_id=preset_id, speed=speed))
            rows.append(
                {
                    "timestamp": run_timestamp,
                    "preset": preset_id,
                    "speed": speed,
                    "ticks": TICKS_PER_RUN,
                    "sub_steps": SUB_STEPS,
                    **result,
                }
            )
            print(
                f"- speed {speed:>5}x: "
                f"p50={result['tick_p50_ms']:.3f} ms "
                f"p95={result['tick_p95_ms']:.3f} ms "
                f"max={result['tick_max_ms']:.3f} ms "
                f"energy drift={result['relative_energy_drift']:.2e}"
            )

    _write_trace(rows)
    print("\nPer-run traces appended to profiling_runs.csv")


if __name__ == "__main__":
    main()
