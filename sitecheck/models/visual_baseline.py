"""Visual baseline registry data structures."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class BaselineEntry(BaseModel):
    scenario: str
    region: str
    image_path: str  # relative path from baselines_dir to the PNG
    tolerance: float  # max differing-pixel ratio still considered a pass
    width: int = 0
    height: int = 0
    version: int = 1  # bumped on every explicit rebase
    captured_at: str  # ISO timestamp
    run_id: str = ""
    image_hash: str  # SHA-256 hex digest


class VisualBaselineRegistry(BaseModel):
    base_url: str
    last_updated: str = ""
    baselines: dict[str, BaselineEntry] = Field(default_factory=dict)
    # key format: "{scenario}__{region}"


class DiffResult(BaseModel):
    """Outcome of comparing a fresh capture to its baseline."""
    scenario: str
    region: str
    status: Literal["pass", "fail", "baseline_created", "rebased"]
    diff_ratio: float = 0.0
    tolerance: float = 0.0
    differing_pixels: int = 0
    total_pixels: int = 0
    baseline_path: Optional[str] = None
    current_path: Optional[str] = None
    diff_image_path: Optional[str] = None  # only set when status == "fail"
    baseline_version: int = 0

    @property
    def passed(self) -> bool:
        return self.status != "fail"
