import pytest

from roogle.challenge import ChallengeClassifier, ChallengeSignal, challenge_redirect_url
from roogle.config import DefaultConfig


@pytest.fixture
def classifier():
    return ChallengeClassifier.from_markers(DefaultConfig.CHALLENGE_MARKERS)


def test_status_signals(classifier):
    assert classifier.classify(429) is ChallengeSignal.RATE_LIMITED
    assert classifier.classify(403) is ChallengeSignal.BLOCKED
    assert classifier.classify(200) is ChallengeSignal.NONE
    assert classifier.classify(404, "not found") is ChallengeSignal.NONE


def test_status_wins_over_body(classifier):
    assert classifier.classify(429, "recaptcha/api.js") is ChallengeSignal.RATE_LIMITED


@pytest.mark.parametrize("body", [
    '<script src="https://www.google.com/recaptcha/api.js" async defer></script>',
    "Our systems have detected Unusual Traffic from your computer network.",
    "To continue, please type the characters you see below:",
])
def test_body_markers(classifier, body):
    assert classifier.classify(200, body) is ChallengeSignal.CAPTCHA_DETECTED


def test_ordinary_pages_pass(classifier):
    assert classifier.classify(200, "<html><body>Traffic report for today</body></html>") is ChallengeSignal.NONE
    assert classifier.classify(200, None) is ChallengeSignal.NONE


def test_rules_are_pluggable(classifier):
    classifier.add_rule(ChallengeSignal.BLOCKED, lambda status, body: body is not None and "cf-chl" in body)
    assert classifier.classify(200, '<div id="cf-chl-widget"></div>') is ChallengeSignal.BLOCKED


def test_redirect_url_carries_original_target():
    url = challenge_redirect_url("https://challenge.test/", "https://example.com/search?q=a b")
    assert url == "https://challenge.test/?url=https%3A%2F%2Fexample.com%2Fsearch%3Fq%3Da%20b"
