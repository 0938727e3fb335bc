"""Visual regression scenarios (full page, header, footer)."""

from __future__ import annotations

from sitecheck.models.scenario import PageScenario, VisualCheck


def visual_scenarios() -> list[PageScenario]:
    # Hero content rotates, so the full page gets a wide budget; chrome regions do not.
    return [
        PageScenario(
            name="Homepage visual appearance",
            kind="visual",
            consent_budget_ms=5000,
            readiness="networkidle",
            settle_ms=2000,
            visual_checks=[VisualCheck(region="homepage", full_page=True, tolerance=0.10)],
        ),
        PageScenario(
            name="Navigation bar visual check",
            kind="visual",
            consent_budget_ms=5000,
            readiness="networkidle",
            visual_checks=[VisualCheck(region="header", selector="header", tolerance=0.01)],
        ),
        PageScenario(
            name="Footer visual check",
            kind="visual",
            consent_budget_ms=5000,
            scroll_to_bottom=True,
            settle_ms=2000,
            visual_checks=[VisualCheck(region="footer", selector="footer", tolerance=0.01)],
        ),
    ]
