"""Incremental scrolling to trigger lazy-loaded and infinite-scroll content."""

from __future__ import annotations

from collections.abc import Callable

from ..domain.errors import CrawlerDomainError
from .driver import PageSession

STEP_IDLE_TIMEOUT_MS = 2000


async def scroll_to_reveal(
    page: PageSession,
    log: Callable[[str], None],
    *,
    max_steps: int = 20,
    step_delay_ms: int = 400,
    return_to_top: bool = True,
) -> int:
    """Scroll down one viewport at a time until the bottom or ``max_steps``.

    Returns the number of steps taken. A failing page only produces a warning
    line; lazy content is a nice-to-have for every caller.
    """
    steps = 0
    try:
        step_px = await page.viewport_height() or 800
        prev_height = 0
        log(f"starting scroll (stepPx={step_px}, maxSteps={max_steps})")

        while steps < max_steps:
            state = await page.scroll_by(step_px)
            await page.wait_ms(step_delay_ms)
            await page.wait_for_idle(STEP_IDLE_TIMEOUT_MS)
            steps += 1

            if state.scroll_height > prev_height:
                log(f"step {steps}: height grew {prev_height} -> {state.scroll_height}")
                prev_height = state.scroll_height
            if state.at_bottom:
                log(f"reached bottom at step {steps}")
                break
        else:
            log(f"reached maxSteps ({max_steps}), stopping scroll")

        if return_to_top:
            await page.scroll_to_top()
            await page.wait_ms(200)
    except CrawlerDomainError as e:
        log(f"warning: scroll failed: {e}")
    return steps
