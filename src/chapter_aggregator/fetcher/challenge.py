"""Recognise anti-bot challenge and rate-limit responses."""

from bs4 import BeautifulSoup

from chapter_aggregator.fetcher.base import FetchResult

CHALLENGE_STATUS_CODES = frozenset({403, 429, 503})

# Lower-cased fragments of the <title> of interstitial pages. Only the title is
# matched; chapter prose may quote the same phrases.
CHALLENGE_TITLE_MARKERS = (
    "just a moment",
    "checking your browser",
    "attention required! | cloudflare",
    "ddos protection by",
    "ddos-guard",
    "please complete the security check",
    "verify you are human",
)

# Elements only interstitial pages carry.
CHALLENGE_SELECTORS = (
    "#cf-wrapper",
    "#challenge-form",
    "#challenge-running",
    "#cf-challenge-running",
    "#cf-browser-verification",
    ".cf-browser-verification",
    "#turnstile-wrapper",
)

# Transport error messages that point at a challenge rather than a dead host.
CHALLENGE_ERROR_HINTS = (
    "http 403",
    "http 429",
    "http 503",
    "forbidden",
    "too many requests",
    "cloudflare",
    "captcha",
)


def body_has_challenge_marker(html: str) -> bool:
    """Check page markup for a challenge interstitial title or element."""
    if not html:
        return False
    soup = BeautifulSoup(html, "lxml")
    if soup.title is not None:
        title = soup.title.get_text(" ", strip=True).lower()
        if any(marker in title for marker in CHALLENGE_TITLE_MARKERS):
            return True
    return soup.select_one(", ".join(CHALLENGE_SELECTORS)) is not None


def is_challenge_error(message: str | None) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return any(hint in lowered for hint in CHALLENGE_ERROR_HINTS)


def is_challenge(result: FetchResult) -> bool:
    """Classify a fetch result as an anti-bot challenge.

    A challenge is a challenge-indicative status code, an interstitial page
    (even with a 200 status), or a transport error whose message names one
    of those conditions.
    """
    if result.status_code in CHALLENGE_STATUS_CODES:
        return True
    if result.html and body_has_challenge_marker(result.html):
        return True
    if result.status_code == 0 and is_challenge_error(result.error):
        return True
    return False
