from requests.structures import CaseInsensitiveDict

from roogle.config import DefaultConfig
from roogle.headers import CORS_HEADERS, SECURITY_HEADERS, build_upstream_headers, sanitize_response_headers

INBOUND = {
    "Host": "gw.test",
    "X-Forwarded-For": "203.0.113.9",
    "X-Real-IP": "203.0.113.9",
    "User-Agent": "curl/8.0",
    "Accept-Language": "de-DE",
    "Accept-Encoding": "br, zstd",
    "Accept": "text/html",
    "Cookie": "a=1",
}


def build(inbound=None, method="GET", codec=None):
    return build_upstream_headers(
        inbound or INBOUND, method, DefaultConfig.USER_AGENTS, DefaultConfig.ACCEPT_LANGUAGES, codec,
    )


def test_strips_identity_headers():
    headers = build()
    for name in ("Host", "X-Forwarded-For", "X-Real-IP", "Accept-Encoding"):
        assert name not in headers
    assert headers["Accept"] == "text/html"
    assert headers["Cookie"] == "a=1"


def test_rotates_fingerprint_headers():
    headers = build()
    assert headers["User-Agent"] in DefaultConfig.USER_AGENTS
    assert headers["Accept-Language"] in DefaultConfig.ACCEPT_LANGUAGES


def test_post_is_form_encoded():
    headers = build(dict(INBOUND, **{"Content-Type": "text/plain"}), method="POST")
    assert headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert "Content-Type" not in build()


def test_proxied_referer_is_translated(codec):
    inbound = dict(INBOUND, Referer=codec.encode("https://example.com/from"))
    assert build(inbound, codec=codec)["Referer"] == "https://example.com/from"

    inbound = dict(INBOUND, Referer="https://elsewhere.test/")
    assert build(inbound, codec=codec)["Referer"] == "https://elsewhere.test/"


def test_sanitize_response_headers():
    upstream = CaseInsensitiveDict({
        "Content-Type": "text/html",
        "Content-Security-Policy": "default-src 'self'",
        "Content-Security-Policy-Report-Only": "default-src 'self'",
        "X-Frame-Options": "DENY",
        "Cross-Origin-Opener-Policy": "same-origin",
        "Content-Encoding": "gzip",
        "Content-Length": "123",
        "Access-Control-Allow-Origin": "https://example.com",
        "Set-Cookie": "sid=1",
    })
    headers = sanitize_response_headers(upstream, "Roogle Proxy")
    names = [k.lower() for k, _ in headers]

    assert not SECURITY_HEADERS & set(names)
    assert "content-encoding" not in names
    assert "content-length" not in names
    assert ("Set-Cookie", "sid=1") in headers
    assert ("X-Proxied-By", "Roogle Proxy") in headers
    for item in CORS_HEADERS.items():
        assert item in headers
    assert names.count("access-control-allow-origin") == 1
