import sys
from pathlib import Path

import pytest
import requests

# Ensure project root is on sys.path so `import coa_scraper`, `app` and `api.*` work
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from coa_scraper.config import Settings  # noqa: E402

FIXTURES = ROOT / "tests" / "fixtures"


class FakeSession:
    """Stands in for requests.Session, replaying responses or raising errors in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if not self.outcomes:
            raise AssertionError(f"unexpected request: {method} {url}")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def build_response(status=200, body="", headers=None):
    response = requests.Response()
    response.status_code = status
    response._content = body.encode("utf-8") if isinstance(body, str) else body
    response.headers.update(headers or {"Content-Type": "text/html; charset=utf-8"})
    response.url = "https://www.duksan.co.kr/product/coa_result.php"
    return response


@pytest.fixture
def settings():
    return Settings(retry_backoff=0, retries=1, environment="production")


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def load_fixture():
    def _load(name):
        return (FIXTURES / name).read_text(encoding="utf-8")

    return _load


@pytest.fixture
def patch_session(monkeypatch):
    """Make requests.Session() hand out the given FakeSession."""

    def _patch(session):
        monkeypatch.setattr(requests, "Session", lambda: session)
        return session

    return _patch
