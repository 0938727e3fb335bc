"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from sitecheck.models.scenario_result import RunResult


def generate_json_report(run_result: RunResult, output_path: Path) -> None:
    """Write a machine-readable JSON report."""
    report = run_result.model_dump()
    report["leaks"] = [
        {"scenario": r.name, "resource": leak}
        for r in run_result.scenario_results
        for leak in r.leaks
    ]

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
