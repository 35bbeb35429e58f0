"""
Anti-automation detection.

The classifier is an ordered list of predicates over ``(status, body)``. The
first predicate that fires decides the signal; new signals are added by
appending a rule.
"""

import enum
import logging
from urllib.parse import quote

from .links import URI_COMPONENT_SAFE

logger = logging.getLogger(__name__)


class ChallengeSignal(enum.Enum):
    NONE = "none"
    RATE_LIMITED = "rate-limited"
    BLOCKED = "blocked"
    CAPTCHA_DETECTED = "captcha-detected"


def rate_limited(status, body):
    return status == 429


def blocked(status, body):
    return status == 403


def marker_rule(markers):
    lowered = [m.lower() for m in markers]

    def captcha_detected(status, body):
        if not body:
            return False
        text = body.lower()
        return any(m in text for m in lowered)

    return captcha_detected


class ChallengeClassifier:
    def __init__(self, rules):
        self.rules = list(rules)

    @classmethod
    def from_markers(cls, markers):
        return cls([
            (ChallengeSignal.RATE_LIMITED, rate_limited),
            (ChallengeSignal.BLOCKED, blocked),
            (ChallengeSignal.CAPTCHA_DETECTED, marker_rule(markers)),
        ])

    def add_rule(self, signal, predicate):
        self.rules.append((signal, predicate))

    def classify(self, status, body=None):
        """Returns the first matching signal, or ``ChallengeSignal.NONE``.

        ``body`` is the decoded text of the upstream response, or None when
        the body is binary or has not been read.
        """
        for signal, predicate in self.rules:
            if predicate(status, body):
                logger.info("Upstream challenge detected: %s", signal.value)
                return signal
        return ChallengeSignal.NONE


def challenge_redirect_url(challenge_url, target):
    """Builds the fallback URL, parameterized by the original target."""
    return f"{challenge_url.rstrip('/')}/?url={quote(target, safe=URI_COMPONENT_SAFE)}"
