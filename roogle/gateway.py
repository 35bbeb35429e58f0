"""
The forwarding gateway.

One ``Gateway`` is built per inbound request. It replays the request
upstream without following redirects, classifies the answer and either
redirects (re-proxied location or challenge fallback) or returns the body,
rewritten when it is HTML.
"""

import codecs
import logging
import re
from urllib.parse import quote_plus, urlencode, urlparse

import chardet
from flask import Response, redirect

from .challenge import ChallengeClassifier, ChallengeSignal, challenge_redirect_url
from .headers import CORS_HEADERS, build_upstream_headers, sanitize_response_headers
from .links import InvalidTarget, is_absolute_http, resolve
from .rewriter import RewriteContext, get_rewriter

logger = logging.getLogger(__name__)

CHARSET_RE = re.compile(r'charset\s*=\s*["\']?([\w.:-]+)', re.IGNORECASE)
USAGE_MESSAGE = "Missing or invalid ?url= parameter."
CHUNK_SIZE = 8192


def looks_like_host(value):
    return '.' in value and ' ' not in value and '://' not in value


def merge_query(url, extra):
    """Appends ``extra`` (a list of pairs) to the query string of ``url``."""
    if not extra:
        return url
    parsed = urlparse(url)
    added = urlencode(extra)
    query = f"{parsed.query}&{added}" if parsed.query else added
    return parsed._replace(query=query).geturl()


def resolve_target(args, method, search_url):
    """
    Derives the target URL from the query arguments of an inbound request.

    ``url`` wins; on GET any other arguments are merged into its query, which
    is how submitted GET forms arrive. Without ``url`` a GET ``q`` is expanded
    into a search. Raises ``InvalidTarget`` otherwise.
    """
    url = (args.get('url') or '').strip()
    if url:
        if not is_absolute_http(url) and looks_like_host(url):
            url = f"https://{url}"
        if not is_absolute_http(url):
            raise InvalidTarget(USAGE_MESSAGE)
        if method == 'GET':
            extra = [(k, v) for k, v in args.items(multi=True) if k != 'url']
            url = merge_query(url, extra)
        return url

    query = (args.get('q') or '').strip()
    if query and method == 'GET':
        return search_url.format(query=quote_plus(query))
    raise InvalidTarget(USAGE_MESSAGE)


def is_textual(content_type):
    content_type = content_type.lower()
    return 'text' in content_type or 'json' in content_type


def decode_body(raw, content_type):
    match = CHARSET_RE.search(content_type)
    encoding = match.group(1) if match else None
    if encoding:
        try:
            codecs.lookup(encoding)
        except LookupError:
            encoding = None
    if not encoding:
        encoding = chardet.detect(raw)['encoding'] or 'utf-8'
    return raw.decode(encoding, errors='ignore')


def text_response(message, status):
    return Response(message, status=status, mimetype='text/plain', headers=list(CORS_HEADERS.items()))


def with_cors(response):
    for key, value in CORS_HEADERS.items():
        response.headers[key] = value
    return response


def stream_body(upstream):
    try:
        for chunk in upstream.iter_content(chunk_size=CHUNK_SIZE):
            if chunk:
                yield chunk
    finally:
        upstream.close()


class Gateway:
    def __init__(self, fetch, codec, inject_src, config):
        self.fetch = fetch
        self.codec = codec
        self.inject_src = inject_src
        self.challenge_url = config['CHALLENGE_URL']
        self.marker = config['PROXY_MARKER']
        self.timeout = config['UPSTREAM_TIMEOUT']
        self.user_agents = config['USER_AGENTS']
        self.accept_languages = config['ACCEPT_LANGUAGES']
        self.classifier = ChallengeClassifier.from_markers(config['CHALLENGE_MARKERS'])
        self.rewriter = get_rewriter(config['REWRITER'])

    def handle(self, method, target, inbound_headers, body=None):
        """Forwards one request. Never raises; failures become a 502."""
        try:
            return self.forward(method, target, inbound_headers, body)
        except Exception as e:
            logger.exception("Proxy failed for %s", target)
            return text_response(f"Proxy failed: {e}", 502)

    def forward(self, method, target, inbound_headers, body=None):
        logger.info("Proxying %s request for: %s", method, target)
        headers = build_upstream_headers(
            inbound_headers, method, self.user_agents, self.accept_languages, self.codec,
        )
        upstream = self.fetch(
            method,
            target,
            headers=dict(headers),
            data=body if method == 'POST' else None,
            allow_redirects=False,
            stream=True,
            timeout=self.timeout,
        )
        status = upstream.status_code

        location = upstream.headers.get('Location')
        if 300 <= status < 400 and location:
            upstream.close()
            proxied = self.codec.encode(resolve(location, target))
            logger.info("Upstream redirect %s -> %s", status, proxied)
            return with_cors(redirect(proxied, 302))

        content_type = upstream.headers.get('Content-Type', '')
        raw = None
        body_text = None
        signal = self.classifier.classify(status)
        if signal is ChallengeSignal.NONE and is_textual(content_type):
            raw = upstream.content
            body_text = decode_body(raw, content_type)
            signal = self.classifier.classify(status, body_text)
        if signal is not ChallengeSignal.NONE:
            upstream.close()
            return with_cors(redirect(challenge_redirect_url(self.challenge_url, target), 302))

        out_headers = sanitize_response_headers(upstream.headers, self.marker)

        if body_text is not None and 'text/html' in content_type.lower():
            ctx = RewriteContext(target, self.codec, self.inject_src, content_type)
            ctx.headers = [(k, v) for k, v in out_headers if k.lower() != 'content-type']
            ctx.headers.append(('Content-Type', 'text/html; charset=utf-8'))
            rewritten = self.rewriter.rewrite(body_text, ctx)
            return Response(rewritten.encode('utf-8'), status=status, headers=ctx.headers)

        if raw is not None:
            return Response(raw, status=status, headers=out_headers)

        return Response(stream_body(upstream), status=status, headers=out_headers, direct_passthrough=True)
