"""
ProxyLink encoding.

A ProxyLink is ``<canonical base>?url=<percent-encoded absolute URL>``. The
canonical base is built once per request from configuration and handed to
every code path that emits links, so redirects and rewritten pages always
share the same prefix.
"""

from urllib.parse import quote, urljoin, urlparse, parse_qs

# Characters encodeURIComponent leaves alone; the client script must agree.
URI_COMPONENT_SAFE = "-_.!~*'()"


class InvalidTarget(ValueError):
    """Raised when a target parameter is not an absolute http(s) URL."""


def is_absolute_http(url):
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def origin_of(url):
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def resolve(href, base):
    """Resolves ``href`` against ``base``; an empty href resolves to ``base``."""
    href = (href or "").strip()
    if not href:
        return base
    return urljoin(base, href)


class ProxyLinkCodec:
    def __init__(self, base: str):
        self.base = base
        self.prefix = f"{self.base}?url="

    def is_proxy_link(self, href: str) -> bool:
        # Only the absolute form is emitted. A relative "/proxy?url=" belongs to the target site.
        return bool(href) and href.startswith(self.prefix)

    def encode(self, url: str) -> str:
        if self.is_proxy_link(url):
            return url
        return self.prefix + quote(url, safe=URI_COMPONENT_SAFE)

    def decode(self, link: str) -> str:
        if not self.is_proxy_link(link):
            raise InvalidTarget(f"Not a proxy link: {link}")
        values = parse_qs(urlparse(link).query, keep_blank_values=True).get("url")
        if not values or not values[0]:
            raise InvalidTarget(f"Proxy link carries no url: {link}")
        return values[0]

    def proxify(self, href: str, base: str) -> str:
        """Resolves ``href`` against ``base`` and encodes it.

        Fragments, ``javascript:`` URLs and existing ProxyLinks are returned
        unchanged.
        """
        if not href or self.is_proxy_link(href):
            return href
        stripped = href.strip()
        if stripped.startswith("#") or stripped.lower().startswith("javascript:"):
            return href
        return self.encode(resolve(stripped, base))


def without_query(url):
    """What a GET form submission keeps of its action URL."""
    return urlparse(url)._replace(query="", fragment="").geturl()
