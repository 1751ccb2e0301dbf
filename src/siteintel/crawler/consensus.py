"""Cross-sample selector consensus.

Each sampled page contributes, per intent, one ProbeResult per candidate
selector. Selectors are ranked by how many samples verified real content, tie
broken by how durable the selector looks, and the survivors become the ordered
fallback chain of a SelectorEntry.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Optional

from ..domain.models import PageProbeResults, VerifyMode
from ..models.site_config import CoverageReport, SelectorEntry
from .taxonomy import TAXONOMY_GROUPS

DEFAULT_CONTENT_THRESHOLD = 1 / 3
DEFAULT_MAX_FALLBACKS = 5
DEFAULT_COVERAGE_THRESHOLD = 50

_KEBAB = r"[a-z][a-z0-9]*(?:-[a-z][a-z0-9]+)+"
_CAMEL = r"[a-z]+[A-Z][a-zA-Z]*"
_CLASS_ATTR = r"\[class[~|^$*]?=\"?"

# First matching rule wins; order runs from most to least durable.
STABILITY_RULES: tuple[tuple[re.Pattern[str], float], ...] = (
    (re.compile(r"data-testid|data-test-id|data-test="), 1.0),
    (re.compile(r"^#[a-z][a-z0-9-]+|\[id[~|^$*]?="), 0.95),
    (re.compile(r"aria-label|\[role[~|^$*]?="), 0.85),
    (re.compile(r"itemprop|itemtype"), 0.80),
    (re.compile(r"\[name[~|^$*]?="), 0.75),
    (re.compile(rf"\.{_KEBAB}|{_CLASS_ATTR}{_KEBAB}\"?\]"), 0.70),
    (re.compile(r"^(button|input|select|textarea|a)\["), 0.65),
    (re.compile(rf"\.{_CAMEL}|{_CLASS_ATTR}{_CAMEL}\"?\]"), 0.55),
    (re.compile(r"\.[a-zA-Z0-9_-]{12,}"), 0.20),
)
DEFAULT_STABILITY = 0.50


def stability_score(selector: str) -> float:
    """Heuristic 0.2-1.0 weight for how likely ``selector`` survives a site redeploy."""
    for pattern, score in STABILITY_RULES:
        if pattern.search(selector):
            return score
    return DEFAULT_STABILITY


def _round_half_up(x: float) -> int:
    return int(x + 0.5) if x >= 0 else -int(-x + 0.5)


@dataclass
class _Tally:
    selector: str
    matched: int = 0
    verified: int = 0
    example_value: Optional[str] = None

    def ratio(self, samples: int) -> float:
        return self.verified / samples if samples else 0.0


def _ordered_intents(pages: Sequence[PageProbeResults], modes: Mapping[str, VerifyMode]) -> list[str]:
    seen: dict[str, None] = {}
    for page in pages:
        for intent in page:
            if intent in modes:
                seen.setdefault(intent, None)
    return list(seen)


def score_intent(
    pages: Sequence[PageProbeResults],
    intent: str,
    *,
    threshold: float = DEFAULT_CONTENT_THRESHOLD,
    max_fallbacks: int = DEFAULT_MAX_FALLBACKS,
) -> SelectorEntry | None:
    # ratios are over every sampled page; sample_count only over pages where the intent showed up
    samples = len(pages)
    tallies: dict[str, _Tally] = {}
    present = 0
    for page in pages:
        probes = page.get(intent) or []
        if any(p.matched for p in probes):
            present += 1
        for probe in probes:
            tally = tallies.setdefault(probe.selector, _Tally(selector=probe.selector))
            if probe.matched:
                tally.matched += 1
            if probe.verified:
                tally.verified += 1
                if tally.example_value is None and probe.example_value:
                    tally.example_value = probe.example_value

    if present == 0:
        return None

    survivors = [t for t in tallies.values() if t.verified > 0 and t.ratio(samples) >= threshold]
    if not survivors:
        return None

    # stable sort keeps taxonomy candidate order for full ties
    survivors.sort(key=lambda t: (-t.verified, -stability_score(t.selector)))
    chain = survivors[:max_fallbacks]
    best = chain[0]

    confidence = _round_half_up(best.ratio(samples) * 100 * stability_score(best.selector))
    example = best.example_value or next((t.example_value for t in chain if t.example_value), None)
    return SelectorEntry(
        selectors=[t.selector for t in chain],
        confidence=max(0, min(100, confidence)),
        sample_count=present,
        example_value=example,
    )


def score_consensus(
    all_page_results: Sequence[PageProbeResults],
    modes: Mapping[str, VerifyMode],
    *,
    threshold: float = DEFAULT_CONTENT_THRESHOLD,
    max_fallbacks: int = DEFAULT_MAX_FALLBACKS,
) -> dict[str, SelectorEntry]:
    """Aggregate per-page probes into one ranked SelectorEntry per intent.

    Intents unknown to ``modes`` are ignored; intents with no qualifying
    selector are absent from the result rather than present with confidence 0.
    """
    elements: dict[str, SelectorEntry] = {}
    for intent in _ordered_intents(all_page_results, modes):
        entry = score_intent(all_page_results, intent, threshold=threshold, max_fallbacks=max_fallbacks)
        if entry is not None:
            elements[intent] = entry
    return elements


def calculate_coverage(
    elements: Mapping[str, SelectorEntry],
    *,
    threshold: int = DEFAULT_COVERAGE_THRESHOLD,
) -> CoverageReport:
    def covered(names: list[str]) -> int:
        return sum(1 for n in names if n in elements and elements[n].confidence >= threshold)

    pdp, plp, glob = TAXONOMY_GROUPS["pdp"], TAXONOMY_GROUPS["plp"], TAXONOMY_GROUPS["global"]
    uncovered = [
        name
        for group in ("pdp", "plp", "global", "cart")
        for name in TAXONOMY_GROUPS[group]
        if not (name in elements and elements[name].confidence >= threshold)
    ]

    total = len(pdp) + len(plp) + len(glob)
    covered_total = covered(pdp) + covered(plp) + covered(glob)
    return CoverageReport(
        pdp_intents_covered=covered(pdp),
        pdp_intents_total=len(pdp),
        plp_intents_covered=covered(plp),
        plp_intents_total=len(plp),
        global_intents_covered=covered(glob),
        global_intents_total=len(glob),
        uncovered=uncovered,
        overall_pct=_round_half_up(100 * covered_total / total) if total else 0,
    )
