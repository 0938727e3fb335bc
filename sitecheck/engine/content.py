"""Content assertion engine — evaluates marker predicates against a page snapshot."""

from __future__ import annotations

import logging
import re
import time

from playwright.async_api import Page

from sitecheck.errors import ConfigurationError
from sitecheck.models.scenario import ContentPredicate, Marker
from sitecheck.models.snapshot import PageSnapshot

logger = logging.getLogger(__name__)


class ContentVerdict:
    def __init__(self, passed: bool, matched: list[str], unmatched: list[str], explanation: str):
        self.passed = passed
        self.matched = matched
        self.unmatched = unmatched
        self.explanation = explanation


async def capture_snapshot(
    page: Page,
    count_selectors: list[str] | None = None,
    visible_selectors: list[str] | None = None,
) -> PageSnapshot:
    """Materialize the page into an immutable snapshot."""
    counts: dict[str, int] = {}
    for selector in count_selectors or []:
        counts[selector] = await page.locator(selector).count()
    visible: dict[str, int] = {}
    for selector in visible_selectors or []:
        visible[selector] = await page.locator(visible_selector(selector)).count()
    return PageSnapshot(
        url=page.url,
        title=await page.title(),
        content=await page.content(),
        element_counts=counts,
        visible_counts=visible,
        captured_at=time.strftime("%Y-%m-%dT%H:%M:%SZ"),
    )


def visible_selector(selector: str) -> str:
    """Narrow a selector to elements that are rendered with a non-empty box."""
    return f"{selector} >> visible=true"


def evaluate(snapshot: PageSnapshot, predicate: ContentPredicate) -> ContentVerdict:
    """Evaluate an any/all predicate and explain which markers matched.

    Markers are compared verbatim; callers supply them in the site's
    language. An empty marker set is a configuration error, not a miss.
    """
    if not predicate.markers:
        raise ConfigurationError(
            f"Predicate '{predicate.description or predicate.mode}' has no markers"
        )
    if predicate.mode not in ("any", "all"):
        raise ConfigurationError(f"Unknown predicate mode: {predicate.mode}")

    matched: list[str] = []
    unmatched: list[str] = []
    for marker in predicate.markers:
        label = describe_marker(marker)
        if _marker_matches(snapshot, marker):
            matched.append(label)
        else:
            unmatched.append(label)

    if predicate.mode == "any":
        passed = bool(matched)
    else:
        passed = not unmatched

    if passed and predicate.mode == "any":
        explanation = f"Matched {', '.join(matched)}"
    elif passed:
        explanation = f"All {len(matched)} markers matched: {', '.join(matched)}"
    elif predicate.mode == "any":
        explanation = f"None of {len(unmatched)} markers matched: {', '.join(unmatched)}"
    else:
        explanation = f"Missing {', '.join(unmatched)}"
        if matched:
            explanation += f" (matched {', '.join(matched)})"

    logger.debug("Predicate %s [%s]: %s", predicate.description or "", predicate.mode, explanation)
    return ContentVerdict(passed, matched, unmatched, explanation)


def describe_marker(marker: Marker) -> str:
    match marker.kind:
        case "text":
            return f"'{marker.value}'"
        case "title":
            return f"title~'{marker.value}'"
        case "url":
            return f"url~/{marker.value}/"
        case "element_count":
            return f"count({marker.selector})>={marker.min_count}"
        case "visible_count":
            return f"visible({marker.selector})>={marker.min_count}"
        case _:
            return f"{marker.kind}:{marker.value}"


def _marker_matches(snapshot: PageSnapshot, marker: Marker) -> bool:
    match marker.kind:
        case "text":
            _require_value(marker)
            if marker.case_sensitive:
                return marker.value in snapshot.content
            return marker.value.lower() in snapshot.content.lower()
        case "title":
            _require_value(marker)
            # Titles are always compared case-insensitively
            return marker.value.lower() in snapshot.title.lower()
        case "url":
            _require_value(marker)
            return re.search(marker.value, snapshot.url) is not None
        case "element_count":
            if not marker.selector:
                raise ConfigurationError("element_count marker requires a selector")
            if marker.selector not in snapshot.element_counts:
                raise ConfigurationError(
                    f"Selector '{marker.selector}' was not counted when the snapshot was taken"
                )
            return snapshot.element_counts[marker.selector] >= marker.min_count
        case "visible_count":
            if not marker.selector:
                raise ConfigurationError("visible_count marker requires a selector")
            if marker.selector not in snapshot.visible_counts:
                raise ConfigurationError(
                    f"Selector '{marker.selector}' was not checked for visibility when the snapshot was taken"
                )
            return snapshot.visible_counts[marker.selector] >= marker.min_count
        case _:
            raise ConfigurationError(f"Unknown marker kind: {marker.kind}")


def _require_value(marker: Marker) -> None:
    if not marker.value:
        raise ConfigurationError(f"{marker.kind} marker requires a value")
