"""
Error hierarchy for the COA scraper.

Each error carries the HTTP status the responder should answer with, so the
orchestrator maps failures to responses in one place.
"""


class ScrapeError(Exception):
    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidLotNumber(ScrapeError):
    status_code = 400


class NoTestDataFound(ScrapeError):
    status_code = 404


# ================= UPSTREAM =================
class FetchError(ScrapeError):
    status_code = 502


class UpstreamTimeout(FetchError):
    status_code = 408


class UpstreamUnavailable(FetchError):
    status_code = 503


class UpstreamBlocked(FetchError):
    status_code = 503


class CertificateNotFound(FetchError):
    status_code = 404


class UpstreamStatusError(FetchError):
    """Non-2xx answer other than 404. 4xx passes through, 5xx becomes 502."""

    def __init__(self, message, upstream_status):
        status = upstream_status if 400 <= upstream_status < 500 else 502
        super().__init__(message, status)
        self.upstream_status = upstream_status
