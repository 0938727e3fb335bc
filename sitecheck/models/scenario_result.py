"""Scenario result data structures handed to the reporter."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class CheckResult(BaseModel):
    """Result of evaluating one check inside a scenario."""
    check_type: str  # content, visual, load_time, readiness, workflow_step
    description: str = ""
    passed: bool = False
    informational: bool = False  # recorded but never fails the scenario
    message: str = ""


class ScenarioResult(BaseModel):
    name: str
    kind: str  # page, visual, api
    outcome: str  # pass, fail, timeout, error
    details: str = ""
    duration_seconds: float = 0.0
    checks: list[CheckResult] = Field(default_factory=list)
    artifacts: list[str] = Field(default_factory=list)  # file paths
    console_errors: list[str] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)
    leaks: list[str] = Field(default_factory=list)
    failure_reason: Optional[str] = None


class RunResult(BaseModel):
    run_id: str
    started_at: str
    completed_at: str
    base_url: str
    total: int = 0
    passed: int = 0
    failed: int = 0
    timed_out: int = 0
    errors: int = 0
    duration_seconds: float = 0.0
    scenario_results: list[ScenarioResult] = Field(default_factory=list)
