"""Per-page selector probing against the taxonomy."""

from __future__ import annotations

from collections.abc import Iterable

from bs4 import BeautifulSoup

from ..domain.models import PageProbeResults, ProbeResult
from .content_verifier import verify_elements
from .dom import select_safe
from .taxonomy import ECOMMERCE_TAXONOMY


def probe_page(soup: BeautifulSoup, intents: Iterable[str]) -> PageProbeResults:
    """Probe every candidate of every intent on one snapshot.

    An intent appears in the result only when at least one candidate matched.
    The consensus engine still divides by every probed page, so a missing
    intent counts against its selectors.
    """
    results: PageProbeResults = {}
    for name in intents:
        intent = ECOMMERCE_TAXONOMY.get(name)
        if intent is None:
            continue

        probes: list[ProbeResult] = []
        for candidate in intent.candidates:
            matches = select_safe(soup, candidate)
            if not matches:
                probes.append(ProbeResult(selector=candidate, matched=False, verified=False))
                continue
            verdict = verify_elements(matches, intent.verify_as)
            probes.append(
                ProbeResult(
                    selector=candidate,
                    matched=True,
                    verified=verdict.valid,
                    example_value=verdict.example_value,
                )
            )

        if any(p.matched for p in probes):
            results[name] = probes
    return results
