"""Header handling for both directions of the gateway."""

import random

from requests.structures import CaseInsensitiveDict

from .links import InvalidTarget

# Never forwarded upstream: identity-leaking, hop-by-hop, or recomputed
# by the transport.
EXCLUDED_REQUEST_HEADERS = {
    'host', 'x-forwarded-for', 'x-real-ip', 'x-forwarded-host', 'x-forwarded-proto',
    'connection', 'keep-alive', 'proxy-authenticate', 'proxy-authorization',
    'te', 'trailers', 'transfer-encoding', 'upgrade',
    'accept-encoding', 'content-length',
}

# Never copied back to the browser. The body is re-emitted decoded, so the
# upstream encoding and length no longer apply.
EXCLUDED_RESPONSE_HEADERS = {
    'connection', 'keep-alive', 'proxy-authenticate', 'proxy-authorization',
    'te', 'trailers', 'transfer-encoding', 'upgrade',
    'content-encoding', 'content-length',
}

# Embedding protections of the target site. Removing them lets the page run
# framed under the gateway's origin.
SECURITY_HEADERS = {
    'content-security-policy',
    'content-security-policy-report-only',
    'x-frame-options',
    'frame-options',
    'cross-origin-embedder-policy',
    'cross-origin-opener-policy',
    'cross-origin-resource-policy',
}

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET,POST,OPTIONS',
    'Access-Control-Allow-Headers': '*',
}


def build_upstream_headers(inbound, method, user_agents, accept_languages, codec=None):
    """
    Copies the inbound headers, rotates the fingerprintable ones and strips
    everything that would leak the caller or the gateway.
    """
    headers = CaseInsensitiveDict()
    for key, value in inbound.items():
        if key.lower() not in EXCLUDED_REQUEST_HEADERS:
            headers[key] = value

    headers['User-Agent'] = random.choice(user_agents)
    headers['Accept-Language'] = random.choice(accept_languages)

    referer = headers.get('Referer')
    if referer and codec is not None and codec.is_proxy_link(referer):
        try:
            headers['Referer'] = codec.decode(referer)
        except InvalidTarget:
            del headers['Referer']

    if method == 'POST':
        headers['Content-Type'] = 'application/x-www-form-urlencoded'
    return headers


def sanitize_response_headers(upstream_headers, marker):
    """Returns the outbound header list for a proxied response."""
    excluded = EXCLUDED_RESPONSE_HEADERS | SECURITY_HEADERS | {h.lower() for h in CORS_HEADERS}
    headers = [
        (key, value) for key, value in upstream_headers.items()
        if key.lower() not in excluded
    ]
    headers.extend(CORS_HEADERS.items())
    headers.append(('X-Proxied-By', marker))
    return headers
