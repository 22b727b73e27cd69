"""
Fetch the raw certificate page for a lot number.

Each strategy is a plain function ``strategy(query, session, settings) -> str``
that either returns the page markup or raises a FetchError. The chain runs the
strategies in order until one succeeds.
"""

import re
import time
from typing import Callable, List, Optional, Sequence

import requests
import structlog
from bs4 import BeautifulSoup

from .config import Settings
from .errors import (
    CertificateNotFound,
    FetchError,
    UpstreamBlocked,
    UpstreamStatusError,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from .models import LotQuery

logger = structlog.get_logger(__name__)

Strategy = Callable[[LotQuery, requests.Session, Settings], str]

BLOCK_SIGNATURES = (
    "captcha",
    "access denied",
    "cf-browser-verification",
    "checking your browser",
    "attention required! | cloudflare",
)

META_CHARSET = re.compile(rb"""<meta[^>]+charset\s*=\s*["']?\s*([A-Za-z0-9_\-]+)""", re.I)


def browser_headers(settings: Settings):
    return {
        "User-Agent": settings.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7",
    }


# ================= DECODING =================
def decode_body(response: requests.Response) -> str:
    """Decode a response body, preferring declared charsets over detection."""
    content = response.content or b""
    if not content:
        return ""

    content_type = response.headers.get("content-type", "")
    encoding = None
    if "charset=" in content_type.lower():
        encoding = content_type.lower().split("charset=")[1].split(";")[0].strip(" \"'")

    if not encoding:
        match = META_CHARSET.search(content[:2048])
        if match:
            encoding = match.group(1).decode("ascii").lower()

    if not encoding:
        encoding = response.apparent_encoding or "utf-8"

    # EUC-KR pages routinely carry CP949-only characters
    if encoding.replace("_", "-") in ("euc-kr", "ks-c-5601-1987"):
        encoding = "cp949"

    try:
        return content.decode(encoding)
    except (LookupError, UnicodeDecodeError):
        return content.decode("utf-8", errors="replace")


def looks_blocked(html: str) -> bool:
    """A page is blocked when it is empty, or has no table and shows a challenge.

    Signatures are matched against visible text and element ids/classes, so a
    certificate page that merely loads a captcha script is not blocked.
    """
    if not html.strip():
        return True

    soup = BeautifulSoup(html, "html.parser")
    if soup.find("table"):
        return False

    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()

    markers = [soup.get_text(" ")]
    for tag in soup.find_all(True):
        markers.append(tag.get("id") or "")
        markers.append(" ".join(tag.get("class") or []))
    lowered = " ".join(markers).lower()
    return any(signature in lowered for signature in BLOCK_SIGNATURES)


def _check(response: requests.Response, query: LotQuery, url: str) -> str:
    if response.status_code == 404:
        raise CertificateNotFound(f"No certificate found for lot {query}")
    if not 200 <= response.status_code < 300:
        raise UpstreamStatusError(
            f"Upstream returned HTTP {response.status_code} for {url}",
            response.status_code,
        )

    html = decode_body(response)
    if looks_blocked(html):
        raise UpstreamBlocked(f"Request for lot {query} was blocked by {url}")
    return html


def _send(session, method, url, query, settings, attempts=None, **kwargs) -> str:
    """Issue one request with a fixed, small retry budget for transient errors."""
    if attempts is None:
        attempts = settings.retries + 1

    last_error: Optional[FetchError] = None
    for attempt in range(1, attempts + 1):
        logger.debug("fetch_attempt", method=method, url=url, attempt=attempt)
        try:
            response = session.request(
                method,
                url,
                headers=browser_headers(settings),
                timeout=settings.timeout,
                **kwargs,
            )
            return _check(response, query, url)
        except requests.Timeout:
            last_error = UpstreamTimeout(
                f"Timeout after {settings.timeout}s fetching lot {query}"
            )
        except requests.ConnectionError as e:
            last_error = UpstreamUnavailable(f"Connection error: {e}")
        except requests.RequestException as e:
            # redirect loops, broken bodies, bad URLs: not worth retrying
            raise FetchError(f"Request to {url} failed: {e}") from e

        logger.warning("fetch_retryable_error", url=url, attempt=attempt, error=last_error.message)
        if attempt < attempts and settings.retry_backoff > 0:
            time.sleep(settings.retry_backoff)

    raise last_error


# ================= STRATEGIES =================
def form_post(query: LotQuery, session: requests.Session, settings: Settings) -> str:
    """Submit the vendor's COA search form."""
    return _send(
        session, "POST", settings.search_url, query, settings,
        data={"lot_no": query.value},
    )


def direct_get(query: LotQuery, session: requests.Session, settings: Settings) -> str:
    """GET the per-lot certificate page."""
    url = settings.page_url_template.format(lot_no=query.value)
    return _send(session, "GET", url, query, settings)


def proxy_get(query: LotQuery, session: requests.Session, settings: Settings) -> str:
    """Let a CORS proxy fetch the certificate page server-side. Tried once."""
    target = settings.page_url_template.format(lot_no=query.value)
    return _send(
        session, "GET", settings.proxy_url, query, settings,
        attempts=1, params={"url": target},
    )


def default_strategies(settings: Settings) -> List[Strategy]:
    strategies: List[Strategy] = [form_post, direct_get]
    if settings.proxy_enabled:
        strategies.append(proxy_get)
    return strategies


def fetch_certificate(
    query: LotQuery,
    session: requests.Session,
    settings: Settings,
    strategies: Optional[Sequence[Strategy]] = None,
) -> str:
    """Run the strategy chain and return the first page that comes back.

    A 404 from the vendor ends the chain; any other FetchError moves on to the
    next strategy. The last error is raised when every strategy fails.
    """
    if strategies is None:
        strategies = default_strategies(settings)
    if not strategies:
        raise ValueError("at least one fetch strategy is required")

    last_error: Optional[FetchError] = None
    for strategy in strategies:
        start_time = time.time()
        try:
            html = strategy(query, session, settings)
        except CertificateNotFound:
            logger.info("certificate_not_found", lot_no=query.value, strategy=strategy.__name__)
            raise
        except FetchError as e:
            logger.warning(
                "strategy_failed",
                lot_no=query.value,
                strategy=strategy.__name__,
                status_code=e.status_code,
                error=e.message,
            )
            last_error = e
            continue

        logger.info(
            "fetch_complete",
            lot_no=query.value,
            strategy=strategy.__name__,
            size=len(html),
            fetch_time=round(time.time() - start_time, 3),
        )
        return html

    raise last_error
