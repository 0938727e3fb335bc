"""Scenario definitions: page checks, content predicates and visual checks."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class Marker(BaseModel):
    kind: str  # text, title, url, element_count, visible_count
    value: Optional[str] = None  # text fragment or URL regex
    selector: Optional[str] = None  # element_count and visible_count only
    min_count: int = 1
    case_sensitive: bool = True


class ContentPredicate(BaseModel):
    mode: str = "any"  # any, all
    markers: list[Marker] = Field(default_factory=list)
    description: str = ""
    informational: bool = False  # evaluate and report, never fail


class VisualCheck(BaseModel):
    region: str  # "page", "header", "footer", ...
    selector: Optional[str] = None  # None captures the viewport / full page
    full_page: bool = False
    tolerance: Optional[float] = None  # overrides the baseline's stored tolerance
    mask: list[str] = Field(default_factory=list)  # selectors painted over before capture


class PageScenario(BaseModel):
    name: str
    kind: str = "page"  # page, visual
    description: str = ""
    path: str = "/"
    mobile: bool = False
    dismiss_consent: bool = True
    consent_budget_ms: Optional[int] = None
    readiness: Optional[str] = None  # domcontentloaded, load, networkidle
    tolerate_readiness_timeout: bool = True
    scroll_to_bottom: bool = False
    settle_ms: int = 0
    count_selectors: list[str] = Field(default_factory=list)
    visible_selectors: list[str] = Field(default_factory=list)
    predicates: list[ContentPredicate] = Field(default_factory=list)
    visual_checks: list[VisualCheck] = Field(default_factory=list)
    max_load_ms: Optional[int] = None  # measured to the readiness state
    fail_on_console_errors: bool = False
    timeout_seconds: Optional[float] = None
