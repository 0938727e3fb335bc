"""Visual diff engine — captures a region and compares it to its stored baseline."""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image
from playwright.async_api import Page

from sitecheck.baselines.visual_baseline_registry import VisualBaselineRegistryManager
from sitecheck.models.scenario import VisualCheck
from sitecheck.models.visual_baseline import DiffResult, VisualBaselineRegistry

from .image_diff import DEFAULT_PIXEL_THRESHOLD, compare_images, render_diff, within_tolerance

logger = logging.getLogger(__name__)


class VisualDiffEngine:
    """Compares fresh captures against persisted, per-region baselines.

    A missing baseline is created from the capture and reported as
    ``baseline_created``. Existing baselines are only replaced when the
    engine is constructed with ``rebase=True``.
    """

    def __init__(
        self,
        registry_manager: VisualBaselineRegistryManager,
        registry: VisualBaselineRegistry,
        artifacts_dir: Path,
        default_tolerance: float = 0.10,
        pixel_threshold: int = DEFAULT_PIXEL_THRESHOLD,
        run_id: str = "",
        rebase: bool = False,
    ):
        self.registry_manager = registry_manager
        self.registry = registry
        self.artifacts_dir = artifacts_dir
        self.default_tolerance = default_tolerance
        self.pixel_threshold = pixel_threshold
        self.run_id = run_id
        self.rebase = rebase

    async def capture(self, page: Page, check: VisualCheck, output_path: Path) -> Path:
        """Rasterize the requested region to ``output_path``."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        kwargs: dict = {"path": str(output_path), "animations": "disabled"}
        if check.mask:
            kwargs["mask"] = [page.locator(s) for s in check.mask]
        if check.selector:
            logger.debug("Capturing region '%s' (%s)", check.region, check.selector)
            await page.locator(check.selector).first.screenshot(**kwargs)
        else:
            logger.debug("Capturing %s", "full page" if check.full_page else "viewport")
            await page.screenshot(full_page=check.full_page, **kwargs)
        return output_path

    async def check(self, page: Page, scenario: str, check: VisualCheck) -> DiffResult:
        current_path = self.artifacts_dir / scenario / f"{check.region}_current.png"
        await self.capture(page, check, current_path)
        return self.compare_capture(scenario, check, current_path)

    def compare_capture(self, scenario: str, check: VisualCheck, current_path: Path) -> DiffResult:
        """Compare an existing capture file against the baseline for scenario+region."""
        entry = self.registry_manager.get_baseline(self.registry, scenario, check.region)

        if entry is None or self.rebase:
            tolerance = check.tolerance if check.tolerance is not None else (
                entry.tolerance if entry else self.default_tolerance
            )
            with Image.open(current_path) as img:
                width, height = img.size
            new_entry = self.registry_manager.store_baseline(
                self.registry, scenario, check.region, current_path,
                tolerance=tolerance, width=width, height=height, run_id=self.run_id,
            )
            return DiffResult(
                scenario=scenario,
                region=check.region,
                status="rebased" if entry else "baseline_created",
                tolerance=tolerance,
                baseline_path=str(self.registry_manager.get_baseline_image_path(new_entry)),
                current_path=str(current_path),
                baseline_version=new_entry.version,
            )

        tolerance = check.tolerance if check.tolerance is not None else entry.tolerance
        baseline_path = self.registry_manager.get_baseline_image_path(entry)
        with Image.open(baseline_path) as baseline, Image.open(current_path) as current:
            comparison = compare_images(baseline, current, self.pixel_threshold)
            passed = within_tolerance(comparison.ratio, tolerance)
            diff_path = None
            if not passed:
                diff_path = render_diff(
                    baseline, current, comparison,
                    self.artifacts_dir / scenario / f"{check.region}_diff.png",
                )

        logger.info("Visual %s__%s: %.2f%% differing (tolerance %.2f%%) -> %s",
                    scenario, check.region, comparison.ratio * 100, tolerance * 100,
                    "pass" if passed else "FAIL")
        return DiffResult(
            scenario=scenario,
            region=check.region,
            status="pass" if passed else "fail",
            diff_ratio=comparison.ratio,
            tolerance=tolerance,
            differing_pixels=comparison.differing,
            total_pixels=comparison.total,
            baseline_path=str(baseline_path),
            current_path=str(current_path),
            diff_image_path=str(diff_path) if diff_path else None,
            baseline_version=entry.version,
        )
