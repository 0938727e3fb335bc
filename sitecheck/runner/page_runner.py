"""Page scenario execution — navigate, clear overlays, wait, snapshot, assert."""

from __future__ import annotations

import logging
import time

from playwright.async_api import Page

from sitecheck.engine.content import capture_snapshot, evaluate
from sitecheck.engine.readiness import scroll_to_bottom, settle, wait_until_ready
from sitecheck.engine.transient import dismiss_consent
from sitecheck.engine.visual import VisualDiffEngine
from sitecheck.errors import AssertionFailed
from sitecheck.models.config import HarnessConfig
from sitecheck.models.scenario import PageScenario
from sitecheck.models.scenario_result import CheckResult, ScenarioResult

from .evidence_collector import EvidenceCollector

logger = logging.getLogger(__name__)


async def run_page_checks(
    page: Page,
    scenario: PageScenario,
    config: HarnessConfig,
    result: ScenarioResult,
    collector: EvidenceCollector,
    visual_engine: VisualDiffEngine | None = None,
) -> None:
    """Drive one page scenario, appending check results to ``result``.

    Raises ``AssertionFailed`` once all checks ran if any non-informational
    check failed, so a scenario still reports every check it evaluated.
    """
    if scenario.mobile:
        vp = config.mobile_viewport
        logger.debug("  Setting %s viewport %dx%d", vp.name, vp.width, vp.height)
        await page.set_viewport_size({"width": vp.width, "height": vp.height})

    url = f"{config.base_url.rstrip('/')}{scenario.path}"
    logger.debug("  Navigating to %s", url)
    nav_start = time.monotonic()
    await page.goto(url, wait_until="domcontentloaded", timeout=config.navigation_timeout_ms)
    load_ms = int((time.monotonic() - nav_start) * 1000)
    result.data["load_ms"] = load_ms

    if scenario.max_load_ms is not None:
        passed = load_ms < scenario.max_load_ms
        result.checks.append(CheckResult(
            check_type="load_time",
            description=f"DOM content loaded within {scenario.max_load_ms}ms",
            passed=passed,
            message=f"Loaded in {load_ms}ms",
        ))

    if scenario.dismiss_consent:
        outcome = await dismiss_consent(
            page, config.consent_selectors,
            budget_ms=scenario.consent_budget_ms or config.consent_budget_ms,
        )
        result.data["consent"] = outcome.status

    if scenario.readiness:
        reached = await wait_until_ready(
            page, scenario.readiness, timeout_ms=config.navigation_timeout_ms,
            tolerate_timeout=scenario.tolerate_readiness_timeout,
        )
        if not reached:
            result.checks.append(CheckResult(
                check_type="readiness",
                description=f"Page reached '{scenario.readiness}'",
                passed=False,
                informational=True,
                message="Timed out; continuing with the page as is",
            ))

    if scenario.scroll_to_bottom:
        await scroll_to_bottom(page)
    await settle(page, scenario.settle_ms)

    snapshot = await capture_snapshot(page, scenario.count_selectors, scenario.visible_selectors)
    result.data["url"] = snapshot.url
    result.data["title"] = snapshot.title
    result.data.update({f"count:{k}": v for k, v in snapshot.element_counts.items()})
    result.data.update({f"visible:{k}": v for k, v in snapshot.visible_counts.items()})

    for predicate in scenario.predicates:
        verdict = evaluate(snapshot, predicate)
        result.checks.append(CheckResult(
            check_type="content",
            description=predicate.description,
            passed=verdict.passed,
            informational=predicate.informational,
            message=verdict.explanation,
        ))

    if scenario.visual_checks:
        if visual_engine is None:
            raise RuntimeError(f"Scenario {scenario.name} has visual checks but no visual engine")
        for check in scenario.visual_checks:
            diff = await visual_engine.check(page, scenario.name, check)
            if diff.status == "fail":
                message = (f"{diff.diff_ratio:.2%} of pixels differ "
                           f"(tolerance {diff.tolerance:.2%})")
            elif diff.status == "pass":
                message = f"{diff.diff_ratio:.2%} differ, within {diff.tolerance:.2%}"
            else:
                message = f"Baseline {diff.status.replace('_', ' ')} (v{diff.baseline_version})"
            result.checks.append(CheckResult(
                check_type="visual",
                description=f"Region '{check.region}' matches baseline",
                passed=diff.passed,
                message=message,
            ))
            for path in (diff.current_path, diff.diff_image_path):
                if path:
                    result.artifacts.append(path)

    result.console_errors = collector.console_errors
    if scenario.fail_on_console_errors or result.console_errors:
        result.checks.append(CheckResult(
            check_type="console",
            description="No console errors",
            passed=not result.console_errors,
            informational=not scenario.fail_on_console_errors,
            message=f"{len(result.console_errors)} console error(s)",
        ))

    failures = [c for c in result.checks if not c.passed and not c.informational]
    if failures:
        raise AssertionFailed("; ".join(f"{c.description}: {c.message}" for c in failures))
