from typing import Mapping, Optional

import requests
import structlog

from . import responder
from .config import Settings, load_settings
from .errors import NoTestDataFound, ScrapeError
from .extractor import extract
from .fetcher import fetch_certificate
from .models import ExtractionResult, LotQuery

logger = structlog.get_logger(__name__)


def scrape_lot(
    raw_lot: str,
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
    strategies=None,
) -> ExtractionResult:
    """Validate, fetch and extract the certificate for one lot number.

    The lot number is validated before any network call. A session passed in
    by the caller is left open; otherwise one is created for this call and
    closed before returning.
    """
    settings = settings or load_settings()
    query = LotQuery.parse(raw_lot, settings.lot_pattern, settings.lot_max_length)

    if session is None:
        with requests.Session() as own_session:
            html = fetch_certificate(query, own_session, settings, strategies)
    else:
        html = fetch_certificate(query, session, settings, strategies)

    result = extract(html, query, settings)
    if result.count == 0:
        raise NoTestDataFound(f"No test data found for lot {query}")
    return result


def handle_request(
    method: str,
    params: Optional[Mapping[str, str]],
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
) -> responder.Response:
    """Single entrypoint for every HTTP surface."""
    settings = settings or load_settings()
    method = (method or "GET").upper()

    if method == "OPTIONS":
        return responder.preflight()
    # Flask answers HEAD through the GET view and drops the body
    if method not in ("GET", "HEAD"):
        return responder.method_not_allowed(method)

    lot_no = (params or {}).get("lot_no")
    try:
        result = scrape_lot(lot_no, settings, session=session)
    except ScrapeError as e:
        logger.warning("request_failed", lot_no=lot_no, status_code=e.status_code, error=e.message)
        return responder.from_error(e)
    except Exception as e:
        logger.error("request_crashed", lot_no=lot_no, error=str(e), exc_info=True)
        return responder.internal_error(e, settings)

    logger.info("request_complete", lot_no=lot_no, count=result.count, source=result.source)
    return responder.success(result, settings)
