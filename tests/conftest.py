import io

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from roogle.links import ProxyLinkCodec
from roogle.main import create_app

GATEWAY = "https://gw.test"
PROXY_BASE = GATEWAY + "/proxy"
CHALLENGE = "https://challenge.test"


def make_response(status=200, headers=None, body=b""):
    """A real requests.Response backed by an in-memory stream."""
    resp = requests.Response()
    resp.status_code = status
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.raw = io.BytesIO(body)
    return resp


class FakeTransport:
    """Stands in for ``requests.request``; records every call."""

    def __init__(self):
        self.calls = []
        self.responses = []

    def queue(self, status=200, headers=None, body=b""):
        self.responses.append(make_response(status, headers, body))

    def fail_with(self, exc):
        self.responses.append(exc)

    def __call__(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    @property
    def last(self):
        return self.calls[-1]


@pytest.fixture
def codec():
    return ProxyLinkCodec(PROXY_BASE)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def config():
    return {
        "TESTING": True,
        "PUBLIC_URL": GATEWAY,
        "CHALLENGE_URL": CHALLENGE,
    }


@pytest.fixture
def app(config, transport):
    return create_app(config, fetch=transport)


@pytest.fixture
def client(app):
    return app.test_client()
