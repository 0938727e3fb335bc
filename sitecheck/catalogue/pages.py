"""Page scenarios for the manufacturer homepage."""

from __future__ import annotations

from sitecheck.models.scenario import ContentPredicate, Marker, PageScenario

NAVIGATION_SELECTOR = 'nav, [role="navigation"], header'
IMAGE_SELECTOR = "img[src]"


def _text(*values: str, case_sensitive: bool = True) -> list[Marker]:
    return [Marker(kind="text", value=v, case_sensitive=case_sensitive) for v in values]


def page_scenarios() -> list[PageScenario]:
    return [
        PageScenario(
            name="Homepage loads successfully",
            consent_budget_ms=5000,
            predicates=[
                ContentPredicate(
                    mode="all",
                    description="Brand URL and title",
                    markers=[
                        Marker(kind="url", value="mercedes-benz"),
                        Marker(kind="title", value="mercedes"),
                    ],
                ),
            ],
        ),
        PageScenario(
            name="Main navigation is visible",
            visible_selectors=[NAVIGATION_SELECTOR],
            predicates=[
                ContentPredicate(
                    description="Navigation landmark visible",
                    markers=[Marker(kind="visible_count", selector=NAVIGATION_SELECTOR, min_count=1)],
                ),
            ],
        ),
        PageScenario(
            name="Vehicle models section exists",
            readiness="networkidle",
            predicates=[
                ContentPredicate(
                    description="Vehicle content",
                    markers=_text("Fahrzeuge", "Modelle", "PKW", "Mercedes-AMG", "EQ"),
                ),
            ],
        ),
        PageScenario(
            name="Search functionality exists",
            readiness="networkidle",
            predicates=[
                ContentPredicate(
                    description="Search affordance",
                    informational=True,
                    markers=_text("search", "suche", case_sensitive=False),
                ),
            ],
        ),
        PageScenario(
            name="Footer is present",
            scroll_to_bottom=True,
            settle_ms=2000,
            predicates=[
                ContentPredicate(
                    description="Legal footer links",
                    markers=_text("Impressum", "Datenschutz", "Kontakt", "© Mercedes"),
                ),
            ],
        ),
        PageScenario(
            name="Page is responsive - Mobile view",
            mobile=True,
            readiness="networkidle",
            predicates=[
                ContentPredicate(
                    description="Mobile page stays on brand domain",
                    markers=[Marker(kind="url", value="mercedes-benz")],
                ),
            ],
        ),
        PageScenario(
            name="Page performance - loads within acceptable time",
            dismiss_consent=False,
            max_load_ms=15000,
        ),
        PageScenario(
            name="No critical console errors",
            readiness="networkidle",
        ),
        PageScenario(
            name="Images load correctly",
            readiness="networkidle",
            count_selectors=[IMAGE_SELECTOR],
            predicates=[
                ContentPredicate(
                    description="At least one image",
                    markers=[Marker(kind="element_count", selector=IMAGE_SELECTOR, min_count=1)],
                ),
            ],
        ),
        PageScenario(
            name="HTTPS is used",
            dismiss_consent=False,
            predicates=[
                ContentPredicate(
                    description="Served over HTTPS",
                    markers=[Marker(kind="url", value=r"^https://")],
                ),
            ],
        ),
        PageScenario(
            name="Mercedes branding is present",
            predicates=[
                ContentPredicate(
                    description="Brand name in markup",
                    markers=_text("Mercedes-Benz", "mercedes-benz"),
                ),
            ],
        ),
    ]
