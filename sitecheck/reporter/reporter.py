"""Report generation."""

from __future__ import annotations

import logging
from pathlib import Path

from sitecheck.models.scenario_result import RunResult

from .json_report import generate_json_report

logger = logging.getLogger(__name__)


class Reporter:
    """Writes run reports and builds a plain-text summary."""

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir

    def generate_reports(self, run_result: RunResult) -> dict[str, str]:
        """Write all report formats. Returns format -> file path."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / f"report_{run_result.run_id}.json"
        generate_json_report(run_result, path)
        logger.info("JSON report: %s", path)
        return {"json": str(path)}

    @staticmethod
    def summary(run_result: RunResult) -> str:
        parts = [
            f"Checked {run_result.base_url}: {run_result.total} scenarios in {run_result.duration_seconds:.1f}s.",
            f"Results: {run_result.passed} passed, {run_result.failed} failed, "
            f"{run_result.timed_out} timed out, {run_result.errors} errors.",
        ]
        failures = [r for r in run_result.scenario_results if r.outcome != "pass"]
        if failures:
            parts.append(f"Not passing: {', '.join(f.name for f in failures[:5])}")
        leaks = [leak for r in run_result.scenario_results for leak in r.leaks]
        if leaks:
            parts.append(f"Leaked remote resources: {len(leaks)}")
        return " ".join(parts)
