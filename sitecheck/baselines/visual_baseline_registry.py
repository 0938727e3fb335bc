"""Baseline image store and JSON registry for visual regression checks."""

from __future__ import annotations

import hashlib
import logging
import shutil
import time
from pathlib import Path

from pydantic import ValidationError

from sitecheck.models.visual_baseline import BaselineEntry, VisualBaselineRegistry

logger = logging.getLogger(__name__)


class VisualBaselineRegistryManager:
    """Manages visual baseline images and their JSON registry.

    Baselines are written on first capture and on explicit rebase only.
    """

    def __init__(self, registry_path: Path, baselines_dir: Path, base_url: str):
        self.registry_path = registry_path
        self.baselines_dir = baselines_dir
        self.base_url = base_url

    def load(self) -> VisualBaselineRegistry:
        """Read the registry file; a missing or unreadable file yields an empty registry."""
        if not self.registry_path.exists():
            return VisualBaselineRegistry(base_url=self.base_url)
        try:
            return VisualBaselineRegistry.model_validate_json(self.registry_path.read_text())
        except (OSError, ValidationError) as e:
            logger.warning("Ignoring unreadable baseline registry %s: %s", self.registry_path, e)
            return VisualBaselineRegistry(base_url=self.base_url)

    def save(self, registry: VisualBaselineRegistry) -> None:
        self.registry_path.parent.mkdir(parents=True, exist_ok=True)
        registry.last_updated = time.strftime("%Y-%m-%dT%H:%M:%SZ")
        self.registry_path.write_text(registry.model_dump_json(indent=2))
        logger.debug("Baseline registry written (%d entries)", len(registry.baselines))

    @staticmethod
    def baseline_key(scenario: str, region: str) -> str:
        return f"{scenario}__{region}"

    def _image_path(self, scenario: str, region: str) -> Path:
        return self.baselines_dir / "images" / scenario / f"{region}.png"

    def get_baseline(self, registry: VisualBaselineRegistry, scenario: str, region: str) -> BaselineEntry | None:
        """Look up an existing baseline for a scenario+region combination."""
        key = self.baseline_key(scenario, region)
        entry = registry.baselines.get(key)
        if entry is None:
            return None
        abs_path = self.baselines_dir / entry.image_path
        if not abs_path.exists():
            logger.warning("Baseline image missing for %s: %s", key, abs_path)
            return None
        actual_hash = hashlib.sha256(abs_path.read_bytes()).hexdigest()
        if actual_hash != entry.image_hash:
            logger.warning("Baseline image for %s changed outside of a rebase (hash mismatch)", key)
        return entry

    def get_baseline_image_path(self, entry: BaselineEntry) -> Path:
        """Return the absolute path to a baseline image."""
        return self.baselines_dir / entry.image_path

    def store_baseline(
        self,
        registry: VisualBaselineRegistry,
        scenario: str,
        region: str,
        source_image_path: Path,
        tolerance: float,
        width: int = 0,
        height: int = 0,
        run_id: str = "",
    ) -> BaselineEntry:
        """Copy a capture into the baselines directory and register it.

        Replacing an existing entry bumps its version.
        """
        key = self.baseline_key(scenario, region)
        previous = registry.baselines.get(key)

        dest = self._image_path(scenario, region)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source_image_path, dest)

        image_hash = hashlib.sha256(dest.read_bytes()).hexdigest()
        rel_path = str(dest.relative_to(self.baselines_dir))

        entry = BaselineEntry(
            scenario=scenario,
            region=region,
            image_path=rel_path,
            tolerance=tolerance,
            width=width,
            height=height,
            version=previous.version + 1 if previous else 1,
            captured_at=time.strftime("%Y-%m-%dT%H:%M:%SZ"),
            run_id=run_id,
            image_hash=image_hash,
        )
        registry.baselines[key] = entry
        logger.info("Stored baseline %s v%d (%dx%d, tolerance %.2f%%)",
                    key, entry.version, width, height, tolerance * 100)
        return entry
