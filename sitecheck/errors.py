"""Error taxonomy shared by the verification engine and the scenario runner."""

from __future__ import annotations

from typing import Any


class SitecheckError(Exception):
    """Base class for every error raised by the engine."""

    kind = "error"


class TimeoutExceeded(SitecheckError):
    """Raised when a bounded wait or a whole scenario runs out of time."""

    kind = "timeout"

    def __init__(self, what: str, timeout_ms: int | float | None = None) -> None:
        self.what = what
        self.timeout_ms = timeout_ms
        suffix = f" after {timeout_ms:.0f}ms" if timeout_ms is not None else ""
        super().__init__(f"Timed out waiting for {what}{suffix}")


class AssertionFailed(SitecheckError):
    """Raised when expected content, status or visual condition is not met."""

    kind = "assertion"

    def __init__(
        self,
        message: str,
        step_index: int | None = None,
        expected: Any = None,
        actual: Any = None,
    ) -> None:
        self.step_index = step_index
        self.expected = expected
        self.actual = actual
        location = f"step {step_index}: " if step_index is not None else ""
        super().__init__(f"{location}{message}")


class RemoteCallFailed(SitecheckError):
    """Raised on transport-level failures (DNS, connection reset, TLS).

    A non-matching status code is not a remote call failure; it is an
    ``AssertionFailed``.
    """

    kind = "remote"

    def __init__(self, method: str, url: str, reason: str, step_index: int | None = None) -> None:
        self.method = method
        self.url = url
        self.reason = reason
        self.step_index = step_index
        super().__init__(f"{method} {url} failed: {reason}")


class ResourceLeak(SitecheckError):
    """Raised when a created remote resource could not be removed or verified gone."""

    kind = "leak"

    def __init__(self, leaks: list[str]) -> None:
        self.leaks = leaks
        super().__init__(f"{len(leaks)} remote resource(s) leaked: " + "; ".join(leaks))


class ConfigurationError(SitecheckError):
    """Raised for malformed checks: an empty marker set, an unset credential."""

    kind = "configuration"
