import pytest
import requests

from coa_scraper.config import Settings
from coa_scraper.errors import (
    CertificateNotFound,
    FetchError,
    UpstreamBlocked,
    UpstreamStatusError,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from coa_scraper.fetcher import (
    decode_body,
    default_strategies,
    direct_get,
    fetch_certificate,
    form_post,
    looks_blocked,
    proxy_get,
)
from coa_scraper.models import LotQuery

PAGE = "<html><body><table><tr><td>Assay</td></tr></table></body></html>"
LOT = LotQuery("A1234B")


def test_form_post_submits_lot(settings, fake_session, make_response):
    session = fake_session(make_response(200, PAGE))

    assert form_post(LOT, session, settings) == PAGE

    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == settings.search_url
    assert kwargs["data"] == {"lot_no": "A1234B"}
    assert kwargs["timeout"] == settings.timeout
    assert "Mozilla" in kwargs["headers"]["User-Agent"]
    assert "Accept" in kwargs["headers"]


def test_direct_get_fills_url_template(settings, fake_session, make_response):
    session = fake_session(make_response(200, PAGE))

    direct_get(LOT, session, settings)

    method, url, _ = session.calls[0]
    assert method == "GET"
    assert url == "https://www.duksan.com/coa/A1234B"


def test_not_found_names_the_lot(settings, fake_session, make_response):
    session = fake_session(make_response(404, "missing"))

    with pytest.raises(CertificateNotFound, match="A1234B") as exc:
        direct_get(LOT, session, settings)
    assert exc.value.status_code == 404


@pytest.mark.parametrize("upstream, expected", [(500, 502), (503, 502), (403, 403), (410, 410)])
def test_other_statuses(settings, fake_session, make_response, upstream, expected):
    session = fake_session(make_response(upstream, "error"))

    with pytest.raises(UpstreamStatusError) as exc:
        direct_get(LOT, session, settings)
    assert exc.value.status_code == expected
    assert exc.value.upstream_status == upstream
    # status errors are not retried
    assert len(session.calls) == 1


def test_timeout_retried_then_raised(settings, fake_session):
    session = fake_session(requests.Timeout("slow"), requests.Timeout("slow"))

    with pytest.raises(UpstreamTimeout) as exc:
        direct_get(LOT, session, settings)
    assert exc.value.status_code == 408
    assert len(session.calls) == settings.retries + 1


def test_timeout_then_success(settings, fake_session, make_response):
    session = fake_session(requests.Timeout("slow"), make_response(200, PAGE))

    assert direct_get(LOT, session, settings) == PAGE
    assert len(session.calls) == 2


def test_connection_error_is_unavailable(settings, fake_session):
    session = fake_session(requests.ConnectionError("dns"), requests.ConnectionError("dns"))

    with pytest.raises(UpstreamUnavailable) as exc:
        direct_get(LOT, session, settings)
    assert exc.value.status_code == 503


def test_blocked_page(settings, fake_session, make_response):
    session = fake_session(make_response(200, "<html>Please solve the CAPTCHA</html>"))

    with pytest.raises(UpstreamBlocked):
        direct_get(LOT, session, settings)


@pytest.mark.parametrize("html, blocked", [
    ("", True),
    ("   \n", True),
    ("<title>Access Denied</title>", True),
    ("<div id='cf-browser-verification'></div>", True),
    (PAGE, False),
])
def test_looks_blocked(html, blocked):
    assert looks_blocked(html) is blocked


def test_chain_moves_to_next_strategy(settings, fake_session, make_response):
    session = fake_session(make_response(200, ""), make_response(200, PAGE))

    assert fetch_certificate(LOT, session, settings) == PAGE
    assert [call[0] for call in session.calls] == ["POST", "GET"]


def test_chain_stops_on_not_found(settings, fake_session, make_response):
    session = fake_session(make_response(404, ""))

    with pytest.raises(CertificateNotFound):
        fetch_certificate(LOT, session, settings)
    assert len(session.calls) == 1


def test_chain_raises_last_error(settings, fake_session, make_response):
    session = fake_session(
        make_response(500, "boom"),
        requests.Timeout("slow"),
        requests.Timeout("slow"),
    )

    with pytest.raises(UpstreamTimeout):
        fetch_certificate(LOT, session, settings)


def test_custom_strategy_order(settings, fake_session, make_response):
    session = fake_session(make_response(200, PAGE))

    fetch_certificate(LOT, session, settings, strategies=[direct_get])

    assert session.calls[0][0] == "GET"


def test_empty_strategy_list(settings, fake_session):
    with pytest.raises(ValueError):
        fetch_certificate(LOT, fake_session(), settings, strategies=[])


def test_proxy_only_when_enabled():
    assert default_strategies(Settings()) == [form_post, direct_get]
    assert default_strategies(Settings(proxy_enabled=True)) == [form_post, direct_get, proxy_get]


def test_proxy_is_tried_once(settings, fake_session):
    session = fake_session(requests.Timeout("slow"))

    with pytest.raises(UpstreamTimeout):
        proxy_get(LOT, session, settings)

    method, url, kwargs = session.calls[0]
    assert len(session.calls) == 1
    assert url == settings.proxy_url
    assert kwargs["params"] == {"url": "https://www.duksan.com/coa/A1234B"}


def test_decode_uses_header_charset(make_response):
    body = "<p>메탄올</p>".encode("cp949")
    response = make_response(200, body, {"Content-Type": "text/html; charset=euc-kr"})

    assert decode_body(response) == "<p>메탄올</p>"


def test_decode_uses_meta_charset(make_response):
    body = b'<html><head><meta http-equiv="Content-Type" content="text/html; charset=euc-kr"></head>' \
        + "<body>시험결과</body></html>".encode("cp949")
    response = make_response(200, body, {"Content-Type": "text/html"})

    assert "시험결과" in decode_body(response)


def test_decode_empty_body(make_response):
    assert decode_body(make_response(200, b"")) == ""


def test_redirect_loop_moves_to_next_strategy(settings, fake_session, make_response):
    session = fake_session(requests.TooManyRedirects("loop"), make_response(200, PAGE))

    assert fetch_certificate(LOT, session, settings) == PAGE
    assert [call[0] for call in session.calls] == ["POST", "GET"]


@pytest.mark.parametrize("error", [
    requests.TooManyRedirects("loop"),
    requests.exceptions.ChunkedEncodingError("truncated"),
    requests.exceptions.ContentDecodingError("bad gzip"),
    requests.exceptions.InvalidURL("no host"),
])
def test_other_request_errors_are_bad_gateway(settings, fake_session, error):
    session = fake_session(error)

    with pytest.raises(FetchError) as exc:
        direct_get(LOT, session, settings)
    assert exc.value.status_code == 502
    # not retried
    assert len(session.calls) == 1


def test_page_loading_captcha_script_is_not_blocked(settings, fake_session, make_response, load_fixture):
    html = load_fixture("coa_table.html").replace(
        "</body>",
        '<script src="https://www.google.com/recaptcha/api.js" async defer></script>\n</body>',
    )
    session = fake_session(make_response(200, html))

    assert direct_get(LOT, session, settings) == html


@pytest.mark.parametrize("html, blocked", [
    ('<html><body><script src="/recaptcha/api.js"></script><p>No data</p></body></html>', False),
    ('<html><body><div class="g-recaptcha"></div><p>Verify you are human</p></body></html>', True),
    ("<html><body><table><tr><td>Access denied</td></tr></table></body></html>", False),
])
def test_block_signatures_ignore_scripts_and_tables(html, blocked):
    assert looks_blocked(html) is blocked
