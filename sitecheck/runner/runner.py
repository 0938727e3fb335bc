"""Scenario runner — executes page scenarios and API workflows one at a time."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from pathlib import Path

from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sitecheck.baselines.visual_baseline_registry import VisualBaselineRegistryManager
from sitecheck.engine.visual import VisualDiffEngine
from sitecheck.engine.workflow import WorkflowSequencer
from sitecheck.errors import ResourceLeak, SitecheckError, TimeoutExceeded
from sitecheck.models.config import HarnessConfig
from sitecheck.models.scenario import PageScenario
from sitecheck.models.scenario_result import CheckResult, RunResult, ScenarioResult
from sitecheck.models.workflow import Workflow, WorkflowResult
from sitecheck.utils.browser import create_context, launch_browser

from .evidence_collector import EvidenceCollector
from .page_runner import run_page_checks

logger = logging.getLogger(__name__)

API_USER_AGENT = "sitecheck/1.0"


class ScenarioRunner:
    """Runs scenarios sequentially, each in its own browser or request context."""

    def __init__(self, config: HarnessConfig, rebase: bool = False):
        self.config = config
        self.run_id = f"run_{uuid.uuid4().hex[:8]}"
        self.run_dir = Path(config.artifacts_dir) / self.run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.rebase = rebase
        baselines_dir = Path(config.baselines_dir)
        self.baseline_manager = VisualBaselineRegistryManager(
            registry_path=baselines_dir / "registry.json",
            baselines_dir=baselines_dir,
            base_url=config.base_url,
        )

    async def run(self, pages: list[PageScenario], workflows: list[Workflow]) -> RunResult:
        started_at = time.strftime("%Y-%m-%dT%H:%M:%SZ")
        start_time = time.time()
        total = len(pages) + len(workflows)
        logger.info("Starting run %s (%d page scenarios, %d API workflows)",
                    self.run_id, len(pages), len(workflows))

        registry = self.baseline_manager.load()
        visual_engine = VisualDiffEngine(
            self.baseline_manager, registry, self.run_dir / "visual",
            default_tolerance=self.config.visual_tolerance,
            pixel_threshold=self.config.pixel_threshold,
            run_id=self.run_id,
            rebase=self.rebase,
        )

        results: list[ScenarioResult] = []
        async with async_playwright() as p:
            if pages:
                browser = await launch_browser(p, headless=self.config.headless)
                try:
                    for scenario in pages:
                        logger.info("Running scenario [%d/%d]: %s", len(results) + 1, total, scenario.name)
                        results.append(await self._run_page(browser, scenario, visual_engine))
                finally:
                    await browser.close()
                self.baseline_manager.save(registry)

            for workflow in workflows:
                logger.info("Running workflow [%d/%d]: %s", len(results) + 1, total, workflow.name)
                results.append(await self._run_workflow(p, workflow))

        duration = time.time() - start_time
        run_result = RunResult(
            run_id=self.run_id,
            started_at=started_at,
            completed_at=time.strftime("%Y-%m-%dT%H:%M:%SZ"),
            base_url=self.config.base_url,
            total=len(results),
            passed=sum(1 for r in results if r.outcome == "pass"),
            failed=sum(1 for r in results if r.outcome == "fail"),
            timed_out=sum(1 for r in results if r.outcome == "timeout"),
            errors=sum(1 for r in results if r.outcome == "error"),
            duration_seconds=round(duration, 2),
            scenario_results=results,
        )
        logger.info(
            "Run complete: %d passed, %d failed, %d timed out, %d errors (%.1fs)",
            run_result.passed, run_result.failed, run_result.timed_out, run_result.errors, duration,
        )
        return run_result

    async def _run_page(
        self, browser: Browser, scenario: PageScenario, visual_engine: VisualDiffEngine,
    ) -> ScenarioResult:
        """Run a page scenario in a fresh context under the scenario timeout."""
        result = ScenarioResult(name=scenario.name, kind=scenario.kind, outcome="pass")
        collector = EvidenceCollector(self.run_dir / "evidence" / _slug(scenario.name))
        timeout = scenario.timeout_seconds or self.config.scenario_timeout_seconds
        vp = self.config.viewport
        start = time.time()
        context = None
        page = None

        try:
            context = await create_context(
                browser,
                viewport={"width": vp.width, "height": vp.height},
                locale=self.config.locale,
                user_agent=self.config.user_agent,
                action_timeout_ms=self.config.action_timeout_ms,
                navigation_timeout_ms=self.config.navigation_timeout_ms,
            )
            page = await context.new_page()
            collector.setup_listeners(page)
            await asyncio.wait_for(
                run_page_checks(page, scenario, self.config, result, collector, visual_engine),
                timeout=timeout,
            )
            result.details = "; ".join(c.message for c in result.checks) or "ok"
        except asyncio.TimeoutError:
            _apply_failure(result, TimeoutExceeded(f"scenario {scenario.name}", timeout * 1000))
        except (SitecheckError, PlaywrightError) as e:
            _apply_failure(result, e)
        except Exception as e:
            logger.error("Scenario %s crashed: %s", scenario.name, e)
            _apply_failure(result, e)
        finally:
            if page is not None and result.outcome != "pass":
                await collector.take_screenshot(page, "failure")
            collector.save_logs()
            result.artifacts.extend(collector.artifacts)
            result.duration_seconds = round(time.time() - start, 2)
            if context is not None:
                await _close_quietly(context.close(), scenario.name)

        logger.info("[%s] %s (%.1fs)", result.outcome.upper(), scenario.name, result.duration_seconds)
        return result

    async def _run_workflow(self, playwright: Playwright, workflow: Workflow) -> ScenarioResult:
        """Run an API workflow in its own request context."""
        start = time.time()
        try:
            request = await playwright.request.new_context(
                extra_http_headers={"User-Agent": API_USER_AGENT},
            )
            try:
                sequencer = WorkflowSequencer(request, credentials=self.config.resolved_credentials())
                wf_result = await sequencer.run(workflow)
            finally:
                await _close_quietly(request.dispose(), workflow.name)
            result = workflow_to_scenario_result(wf_result)
        except Exception as e:
            logger.error("Workflow %s crashed: %s", workflow.name, e)
            result = ScenarioResult(name=workflow.name, kind="api", outcome="pass")
            _apply_failure(result, e)

        result.duration_seconds = round(time.time() - start, 2)
        logger.info("[%s] %s (%.1fs)", result.outcome.upper(), workflow.name, result.duration_seconds)
        return result


def workflow_to_scenario_result(wf: WorkflowResult) -> ScenarioResult:
    """Map a workflow's terminal state onto exactly one scenario outcome."""
    checks = [
        CheckResult(
            check_type="workflow_step",
            description=f"[{s.phase}] {s.name}: {s.method} {s.url} expects {s.expected}",
            passed=s.passed,
            message=s.message,
        )
        for s in wf.step_results
    ]
    result = ScenarioResult(
        name=wf.name, kind="api", outcome="pass", checks=checks,
        data=wf.variables, leaks=list(wf.leaks),
    )
    if wf.state == "completed" and not wf.leaks:
        result.details = f"{len(wf.step_results)} request(s) ok"
        return result

    if wf.state == "failed":
        match wf.error_kind:
            case "timeout":
                result.outcome = "timeout"
            case "assertion":
                result.outcome = "fail"
            case _:
                result.outcome = "error"
        result.failure_reason = wf.error_message
        result.details = f"Failed at step {wf.failed_step}: {wf.error_message}"
    else:
        result.outcome = "fail"
        result.details = "Workflow steps passed but cleanup left resources behind"

    if wf.leaks:
        leak = ResourceLeak(wf.leaks)
        result.details += f" [{leak}]"
        result.failure_reason = result.failure_reason or str(leak)
    return result


def _apply_failure(result: ScenarioResult, error: Exception) -> None:
    if isinstance(error, (TimeoutExceeded, PlaywrightTimeoutError)):
        result.outcome = "timeout"
    elif isinstance(error, SitecheckError) and error.kind == "assertion":
        result.outcome = "fail"
    else:
        result.outcome = "error"
    result.failure_reason = str(error).splitlines()[0] if str(error) else type(error).__name__
    result.details = result.failure_reason
    logger.debug("Scenario %s ended with %s: %s", result.name, result.outcome, result.failure_reason)


def _slug(name: str) -> str:
    return "".join(c if c.isalnum() else "_" for c in name.lower()).strip("_")


async def _close_quietly(closing, name: str) -> None:
    try:
        await closing
    except Exception as e:
        logger.warning("Could not release context for %s: %s", name, e)
