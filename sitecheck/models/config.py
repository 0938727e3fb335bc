"""Configuration models for the verification harness."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ViewportConfig(BaseModel):
    width: int = 1920
    height: int = 1080
    name: str = "desktop"


class HarnessConfig(BaseModel):
    # Target
    base_url: str = "https://www.mercedes-benz.de"

    # Browser
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    mobile_viewport: ViewportConfig = Field(
        default_factory=lambda: ViewportConfig(width=375, height=667, name="mobile")
    )
    locale: str = "de-DE"
    user_agent: Optional[str] = None
    headless: bool = True

    # Timeouts
    action_timeout_ms: int = 15000
    navigation_timeout_ms: int = 30000
    scenario_timeout_seconds: float = 60

    # Cookie consent overlay
    consent_selectors: list[str] = Field(
        default_factory=lambda: [
            'button:has-text("Alle akzeptieren")',
            'button:has-text("Accept All")',
            '[data-test="handle-accept-all-button"]',
        ]
    )
    consent_budget_ms: int = 3000

    # Visual testing
    visual_tolerance: float = 0.10
    pixel_threshold: int = 40
    baselines_dir: str = "./baselines"

    # Output
    artifacts_dir: str = "./sitecheck-artifacts"
    report_output_dir: str = "./sitecheck-reports"

    # API credentials, name -> token. "env:NAME" reads the token from the environment.
    credentials: dict[str, str] = Field(
        default_factory=lambda: {"gorest": "env:GOREST_TOKEN"}
    )

    def resolved_credentials(self) -> dict[str, str]:
        """Credential values with ``env:`` references read from the environment.

        Unset variables are left out; workflows needing them fail with a
        clear message instead of sending an empty token.
        """
        resolved: dict[str, str] = {}
        for name, value in self.credentials.items():
            if value.startswith("env:"):
                env_value = os.environ.get(value[4:])
                if env_value is None:
                    continue
                resolved[name] = env_value
            else:
                resolved[name] = value
        return resolved

    @field_validator("visual_tolerance")
    @classmethod
    def check_tolerance(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("visual_tolerance must be between 0 and 1")
        return v

    @classmethod
    def load(cls, path: str | Path) -> "HarnessConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file.

        Literal credential values are never written; they are replaced by an
        ``env:`` reference so the file can be committed.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump()
        data["credentials"] = {
            name: value if value.startswith("env:") else f"env:{name.upper()}_TOKEN"
            for name, value in self.credentials.items()
        }
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
