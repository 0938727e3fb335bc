"""API workflow sequencer — ordered remote calls with bound variables and guaranteed cleanup."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any

from playwright.async_api import APIRequestContext
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sitecheck.errors import (
    AssertionFailed,
    ConfigurationError,
    RemoteCallFailed,
    SitecheckError,
    TimeoutExceeded,
)
from sitecheck.models.workflow import (
    RemoteResource,
    ResponseCheck,
    Workflow,
    WorkflowResult,
    WorkflowStep,
    WorkflowStepResult,
)

logger = logging.getLogger(__name__)

# {{name}} reads a bound variable, {{$name}} a dynamic one (e.g. {{$timestamp}}).
_VAR_RE = re.compile(r"\{\{(\$?\w+)\}\}")
_MISSING = object()


def _build_dynamic_vars() -> dict[str, str]:
    """Build a snapshot of dynamic variable values (fixed for one workflow run)."""
    return {
        "$timestamp": str(int(time.time() * 1000)),
    }


class WorkflowContext:
    """Variables flowing between the steps of a single workflow run."""

    def __init__(self, variables: dict[str, Any] | None = None):
        self.variables: dict[str, Any] = _build_dynamic_vars()
        self.variables.update(variables or {})
        self.current_step: int | None = None

    def render(self, value: Any) -> Any:
        """Replace ``{{var}}`` tokens in strings, dicts and lists."""
        if isinstance(value, str):
            return _VAR_RE.sub(self._replace, value)
        if isinstance(value, dict):
            return {k: self.render(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self.render(v) for v in value]
        return value

    def _replace(self, match: re.Match) -> str:
        name = match.group(1)
        if name in self.variables:
            return str(self.variables[name])
        logger.warning("Unknown workflow variable: {{%s}}", name)
        return match.group(0)


def resolve_path(data: Any, path: str) -> Any:
    """Walk a dotted path through JSON data.

    Numeric segments index lists; ``*`` maps the rest of the path over
    every list element. Returns ``_MISSING`` when a segment is absent.
    """
    if path in ("", "$"):
        return data
    head, _, rest = path.partition(".")
    if head == "*":
        if not isinstance(data, list):
            return _MISSING
        values = [resolve_path(item, rest) if rest else item for item in data]
        return [v for v in values if v is not _MISSING]
    if isinstance(data, dict):
        if head not in data:
            return _MISSING
        child = data[head]
    elif isinstance(data, list) and head.lstrip("-").isdigit():
        index = int(head)
        if not -len(data) <= index < len(data):
            return _MISSING
        child = data[index]
    else:
        return _MISSING
    return resolve_path(child, rest) if rest else child


def status_matches(status: int, expect: str) -> bool:
    """``expect`` is a class ("2xx", "4xx") or an exact code ("401")."""
    if expect.endswith("xx"):
        return str(status)[:1] == expect[0]
    return status == int(expect)


def check_response(data: Any, check: ResponseCheck) -> tuple[bool, str]:
    """Evaluate one shape check against a decoded JSON body."""
    actual = resolve_path(data, check.path)
    label = check.description or f"{check.path} {check.op} {check.value!r}"
    if actual is _MISSING:
        return False, f"{label}: '{check.path}' not present"

    match check.op:
        case "exists":
            return actual is not None, f"{label}: {'present' if actual is not None else 'null'}"
        case "equals":
            return actual == check.value, f"{label}: got {actual!r}"
        case "contains":
            if isinstance(actual, str):
                ok = str(check.value) in actual
            else:
                ok = isinstance(actual, list) and check.value in actual
            return ok, f"{label}: got {_short(actual)}"
        case "icontains":
            ok = isinstance(actual, str) and str(check.value).lower() in actual.lower()
            return ok, f"{label}: got {_short(actual)}"
        case "any_contains":
            needles = check.value if isinstance(check.value, list) else [check.value]
            items = actual if isinstance(actual, list) else [actual]
            hits = [
                item for item in items
                if isinstance(item, str) and any(str(n) in item for n in needles)
            ]
            return bool(hits), f"{label}: {len(hits)} of {len(items)} matched"
        case "min_length":
            try:
                minimum = int(check.value)
            except (TypeError, ValueError):
                raise ConfigurationError(f"min_length needs an integer value, got {check.value!r}")
            ok = hasattr(actual, "__len__") and len(actual) >= minimum
            size = len(actual) if hasattr(actual, "__len__") else "n/a"
            return ok, f"{label}: length {size}"
        case "greater_than":
            try:
                ok = float(actual) > float(check.value)
            except (TypeError, ValueError):
                return False, f"{label}: {actual!r} is not numeric"
            return ok, f"{label}: got {actual}"
        case _:
            raise ConfigurationError(f"Unknown response check op: {check.op}")


def _short(value: Any, limit: int = 80) -> str:
    text = repr(value)
    return text if len(text) <= limit else text[:limit] + "..."


class WorkflowSequencer:
    """Runs workflow steps strictly in order against a Playwright request context.

    State machine: pending -> executing(i) -> completed | failed(i). The
    cleanup phase runs on every exit from executing, including timeouts.
    """

    def __init__(self, request: APIRequestContext, credentials: dict[str, str] | None = None):
        self.request = request
        self.credentials = credentials or {}

    async def run(self, workflow: Workflow, variables: dict[str, Any] | None = None) -> WorkflowResult:
        result = WorkflowResult(name=workflow.name)
        context = WorkflowContext(variables)

        logger.info("Workflow %s: %d step(s), %d cleanup step(s)",
                    workflow.name, len(workflow.steps), len(workflow.cleanup))
        result.state = "executing"
        try:
            await asyncio.wait_for(
                self._execute_steps(workflow, context, result),
                timeout=workflow.timeout_seconds,
            )
            result.state = "completed"
        except SitecheckError as e:
            self._mark_failed(result, context, e.kind, str(e))
        except asyncio.TimeoutError:
            self._mark_failed(
                result, context, "timeout",
                f"Workflow exceeded {workflow.timeout_seconds}s",
            )
            self._flag_in_flight_create(workflow, context, result)
        except Exception as e:
            logger.error("Workflow %s crashed: %s", workflow.name, e)
            self._mark_failed(result, context, "error", f"{type(e).__name__}: {e}")
        finally:
            await self._cleanup(workflow, context, result)
            result.variables = {k: v for k, v in context.variables.items() if not k.startswith("$")}

        logger.info("Workflow %s finished: %s%s", workflow.name, result.state,
                    f" at step {result.failed_step}" if result.failed_step is not None else "")
        return result

    @staticmethod
    def _mark_failed(result: WorkflowResult, context: WorkflowContext, kind: str, message: str) -> None:
        result.state = "failed"
        result.failed_step = context.current_step
        result.error_kind = kind
        result.error_message = message
        logger.warning("Workflow %s failed at step %s (%s): %s",
                       result.name, context.current_step, kind, message)

    @staticmethod
    def _flag_in_flight_create(workflow: Workflow, context: WorkflowContext, result: WorkflowResult) -> None:
        """Record a leak for a creating step cut off before its id was read."""
        index = context.current_step
        if index is None:
            return
        step = workflow.steps[index]
        if not step.creates or any(r.created_by_step == index for r in result.resources):
            return
        leak = f"{step.creates} possibly created by step {index} (aborted in flight)"
        result.leaks.append(leak)
        logger.error("Resource leak in workflow %s: %s", workflow.name, leak)

    async def _execute_steps(self, workflow: Workflow, context: WorkflowContext, result: WorkflowResult) -> None:
        for index, step in enumerate(workflow.steps):
            context.current_step = index
            logger.debug("  Step %d/%d: %s %s", index + 1, len(workflow.steps), step.method, step.endpoint)
            await self._run_step(workflow, step, index, context, result, phase="step")

    async def _run_step(
        self,
        workflow: Workflow,
        step: WorkflowStep,
        index: int,
        context: WorkflowContext,
        result: WorkflowResult,
        phase: str,
    ) -> Any:
        """Send one request, validate it and apply its bindings. Returns the decoded body."""
        url = self._url(workflow.base_url, context.render(step.endpoint))
        step_result = WorkflowStepResult(
            step_index=index, name=step.name, method=step.method,
            url=url, expected=step.expect, phase=phase,
        )
        result.step_results.append(step_result)
        started = time.monotonic()

        try:
            status, data = await self._send(step, url, context, index)
        finally:
            step_result.duration_ms = int((time.monotonic() - started) * 1000)
        step_result.status = status

        if not status_matches(status, step.expect):
            step_result.message = f"expected {step.expect}, got {status}"
            raise AssertionFailed(
                f"{step.name}: expected status {step.expect}, got {status}",
                step_index=index, expected=step.expect, actual=status,
            )

        for check in step.checks:
            check = check.model_copy(update={"value": context.render(check.value)})
            ok, message = check_response(data, check)
            if not ok:
                step_result.message = message
                raise AssertionFailed(f"{step.name}: {message}", step_index=index,
                                      expected=check.value, actual=_short(resolve_path(data, check.path)))

        for var, path in step.bind.items():
            value = resolve_path(data, path)
            if value is _MISSING:
                step_result.message = f"cannot bind {var}: '{path}' not in response"
                raise AssertionFailed(f"{step.name}: {step_result.message}", step_index=index)
            context.variables[var] = value

        if step.creates:
            resource_id = resolve_path(data, step.id_field)
            if resource_id is _MISSING or resource_id is None:
                step_result.message = f"no '{step.id_field}' in creation response"
                raise AssertionFailed(f"{step.name}: {step_result.message}", step_index=index)
            result.resources.append(RemoteResource(
                kind=step.creates, resource_id=str(resource_id), created_by_step=index,
            ))
            context.variables[f"{step.creates}_id"] = resource_id
            logger.info("  Created %s id=%s", step.creates, resource_id)

        if step.releases and phase == "step":
            resource = next(
                (r for r in result.resources if r.kind == step.releases and not r.deleted), None
            )
            if resource is not None:
                resource.deleted = True
                resource.verified = (
                    await self._verify_gone(workflow, step, context) if step.verify_gone else True
                )

        step_result.passed = True
        step_result.message = step_result.message or f"{status}"
        return data

    async def _send(self, step: WorkflowStep, url: str, context: WorkflowContext, index: int) -> tuple[int, Any]:
        headers = {k: context.render(v) for k, v in step.headers.items()}
        if step.credential:
            token = self.credentials.get(step.credential)
            if not token:
                raise ConfigurationError(f"Credential '{step.credential}' is not configured")
            headers["Authorization"] = f"Bearer {token}"

        kwargs: dict[str, Any] = {"method": step.method, "headers": headers, "timeout": step.timeout_ms}
        if step.body is not None:
            kwargs["data"] = context.render(step.body)

        try:
            response = await self.request.fetch(url, **kwargs)
        except PlaywrightTimeoutError:
            raise TimeoutExceeded(f"{step.method} {url}", step.timeout_ms)
        except PlaywrightError as e:
            raise RemoteCallFailed(step.method, url, str(e).splitlines()[0], step_index=index)

        data: Any = None
        if step.checks or step.bind or step.creates:
            try:
                data = await response.json()
            except Exception as e:
                raise AssertionFailed(
                    f"{step.name}: response body is not JSON ({e})",
                    step_index=index, expected="json", actual=response.status,
                )
        return response.status, data

    async def _cleanup(self, workflow: Workflow, context: WorkflowContext, result: WorkflowResult) -> None:
        """Delete every resource created so far; record whatever could not be deleted."""
        outstanding = [r for r in result.resources if not r.deleted]
        if outstanding:
            logger.debug("Cleanup: %d resource(s) outstanding", len(outstanding))

        for offset, step in enumerate(workflow.cleanup):
            for resource in [r for r in outstanding if r.kind == step.releases and not r.deleted]:
                index = len(workflow.steps) + offset
                context.variables[f"{resource.kind}_id"] = resource.resource_id
                try:
                    await self._run_step(workflow, step, index, context, result, phase="cleanup")
                    resource.deleted = True
                    if step.verify_gone:
                        resource.verified = await self._verify_gone(workflow, step, context)
                    else:
                        resource.verified = True
                except Exception as e:
                    logger.error("Cleanup of %s id=%s failed: %s", resource.kind, resource.resource_id, e)

        for resource in result.resources:
            if not resource.deleted:
                leak = f"{resource.kind} id={resource.resource_id} was not deleted"
            elif not resource.verified:
                leak = f"{resource.kind} id={resource.resource_id} deletion could not be verified"
            else:
                continue
            result.leaks.append(leak)
            logger.error("Resource leak in workflow %s: %s", workflow.name, leak)

    async def _verify_gone(self, workflow: Workflow, step: WorkflowStep, context: WorkflowContext) -> bool:
        url = self._url(workflow.base_url, context.render(step.endpoint))
        headers = {}
        if step.credential and self.credentials.get(step.credential):
            headers["Authorization"] = f"Bearer {self.credentials[step.credential]}"
        try:
            response = await self.request.fetch(url, method="GET", headers=headers, timeout=step.timeout_ms)
        except PlaywrightError as e:
            logger.warning("Could not verify deletion at %s: %s", url, e)
            return False
        if response.status != 404:
            logger.warning("Resource still reachable at %s (status %d)", url, response.status)
            return False
        return True

    @staticmethod
    def _url(base_url: str, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")) or not base_url:
            return endpoint
        return f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"
