import json
import re

import pytest

from roogle.config import INTERCEPT_POINTS


def settings(script, name):
    match = re.search(rf"var {name} = (.*?);\n", script)
    return json.loads(match.group(1))


def test_served_with_canonical_base(client):
    resp = client.get("/api/inject.js")
    assert resp.status_code == 200
    assert resp.mimetype == "application/javascript"
    script = resp.data.decode("utf-8")
    assert settings(script, "PROXY_BASE") == "https://gw.test/proxy"
    assert settings(script, "INTERCEPT") == {point: True for point in INTERCEPT_POINTS}


def test_base_follows_request_host_without_public_url(transport):
    from roogle.main import create_app

    client = create_app({"PUBLIC_URL": ""}, fetch=transport).test_client()
    script = client.get("/api/inject.js", base_url="http://proxy.local:8080").data.decode("utf-8")
    assert settings(script, "PROXY_BASE") == "http://proxy.local:8080/proxy"


@pytest.mark.parametrize("config", [{"PUBLIC_URL": "https://gw.test", "INTERCEPT": ["click", "observer"]}])
def test_interception_points_toggle(client):
    script = client.get("/api/inject.js").data.decode("utf-8")
    assert settings(script, "INTERCEPT") == {
        "click": True,
        "submit": False,
        "history": False,
        "location": False,
        "observer": True,
    }


def test_unknown_interception_point_is_rejected(transport):
    from roogle.main import create_app

    with pytest.raises(ValueError):
        create_app({"INTERCEPT": ["click", "eval"]}, fetch=transport)


def test_script_is_referenced_from_rewritten_pages(client, transport):
    transport.queue(200, {"Content-Type": "text/html"}, b"<html><head></head><body></body></html>")
    page = client.get("/proxy", query_string={"url": "https://example.com/"}).data.decode("utf-8")
    assert '<script src="https://gw.test/api/inject.js"></script>' in page
