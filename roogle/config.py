"""
Default settings for the Roogle gateway.

Every value here can be overridden with a ``ROOGLE_``-prefixed environment
variable (JSON values are parsed, so lists work) or with the mapping passed
to ``create_app``.
"""


class DefaultConfig:
    # Public origin of the gateway, e.g. "https://roogle.example.app".
    # Empty means the host URL of the inbound request is used.
    PUBLIC_URL = ""
    PROXY_PATH = "/proxy"
    PROXY_ROUTE_ALIASES = ["/api/proxy"]
    INJECT_PATH = "/api/inject.js"

    CHALLENGE_URL = "https://recaptcha.uraverageopdoge.workers.dev"
    SEARCH_URL = "https://www.google.com/search?q={query}"

    PROXY_MARKER = "Roogle Proxy"
    REWRITER = "pattern"
    INTERCEPT = ["click", "submit", "history", "location", "observer"]

    # None leaves the timeout to the transport.
    UPSTREAM_TIMEOUT = None
    LOG_LEVEL = "INFO"

    CHALLENGE_MARKERS = [
        "recaptcha/api.js",
        "unusual traffic",
        "type the characters you see",
    ]

    USER_AGENTS = [
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_5_0) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.4 Safari/605.1.15",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/117.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:118.0) Gecko/20100101 Firefox/118.0",
    ]

    ACCEPT_LANGUAGES = [
        "en-US,en;q=0.9",
        "en-GB,en;q=0.8",
        "en;q=0.7",
        "en-US,en-CA;q=0.8",
    ]


INTERCEPT_POINTS = ("click", "submit", "history", "location", "observer")
REWRITER_NAMES = ("pattern", "soup")
