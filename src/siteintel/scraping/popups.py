"""Overlay dismissal: cookie banners, newsletter and promo modals, location gates."""

from __future__ import annotations

from collections.abc import Callable

from .driver import PageSession

# Accept/close controls, tried in order; every visible one is clicked.
ACCEPT_SELECTORS: tuple[str, ...] = (
    # OneTrust
    "#onetrust-accept-btn-handler",
    ".onetrust-accept-btn-handler",
    "#accept-recommended-btn-handler",
    # Cookiebot
    "#CybotCookiebotDialogBodyLevelButtonLevelOptinAllowAll",
    "#CybotCookiebotDialogBodyButtonAccept",
    # generic cookie banners
    'button[class*="cookie"][class*="accept" i]',
    'button[class*="cookie"][class*="allow" i]',
    'button[class*="cookie"][class*="agree" i]',
    'button[class*="consent"][class*="accept" i]',
    'button[id*="accept-cookie" i]',
    'button[id*="cookie-accept" i]',
    'a[class*="cookie-accept" i]',
    # modal close buttons
    'button[aria-label="Close"]',
    'button[aria-label="close"]',
    'button[aria-label="Dismiss"]',
    '[class*="modal"] button[class*="close"]',
    '[class*="modal"] [class*="close-btn"]',
    '[class*="popup"] button[class*="close"]',
    '[class*="overlay"] button[class*="close"]',
    '[class*="dialog"] button[class*="close"]',
    # newsletter
    'button[class*="no-thanks" i]',
    'button[class*="nothanks" i]',
    'button[class*="no_thanks" i]',
    'a[class*="no-thanks" i]',
    '[class*="newsletter"] button[class*="close"]',
    # promotions
    '[class*="promo"] button[class*="close"]',
    '[class*="offer"] button[class*="close"]',
    # app install banners
    '[class*="app-banner"] button[class*="close"]',
    '[class*="smart-banner"] button[class*="close"]',
    "#smartbanner .sb-close",
    # location / store selector
    'button[class*="skip"][class*="location" i]',
    'button[class*="continue" i][class*="without" i]',
    # x buttons
    '[class*="modal-close"]',
    '[class*="modal__close"]',
    '[data-dismiss="modal"]',
    '[data-testid*="close"]',
    '[data-testid*="modal-close"]',
)

# Wrappers that mean a blocking overlay is still showing.
OVERLAY_SELECTORS: tuple[str, ...] = (
    "#onetrust-banner-sdk",
    ".onetrust-banner-sdk",
    '[id*="cookie-banner"]',
    '[class*="cookie-banner"]',
    '[class*="gdpr-banner"]',
    '[class*="consent-banner"]',
    '[class*="cookie-consent"]',
    "#CookieBanner",
    "#CybotCookiebotDialog",
    '[class*="newsletter-popup"]',
    '[class*="email-popup"]',
    '[class*="promo-popup"]',
    '[class*="discount-popup"]',
    '[class*="offer-popup"]',
    '[class*="age-gate"]',
    '[class*="age-verification"]',
    '[class*="location-modal"]',
    '[class*="country-selector"]',
    '[id*="country-modal"]',
)

CLOSE_PHRASES: tuple[str, ...] = (
    "accept",
    "accept all",
    "allow all",
    "agree",
    "ok",
    "got it",
    "continue",
    "no thanks",
    "close",
    "×",
    "✕",
)


async def dismiss_popups(page: PageSession, log: Callable[[str], None]) -> int:
    """Dismiss blocking overlays and return how many were closed. Safe to call repeatedly."""
    dismissed = 0
    await page.wait_ms(800)

    for selector in ACCEPT_SELECTORS:
        if await page.click_if_visible(selector):
            dismissed += 1
            log(f"dismissed overlay via: {selector}")
            await page.wait_ms(300)

    for selector in OVERLAY_SELECTORS:
        if await page.any_visible(selector):
            await page.press_escape()
            await page.wait_ms(300)
            dismissed += 1
            log("dismissed overlay via Escape key")
            break

    if dismissed == 0:
        phrase = await page.click_button_named(CLOSE_PHRASES)
        if phrase is not None:
            dismissed += 1
            log(f"dismissed overlay via '{phrase}' button")

    if dismissed:
        await page.wait_ms(500)
        log(f"total overlays dismissed: {dismissed}")
    else:
        log("no overlays detected")
    return dismissed
