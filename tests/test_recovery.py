from webpilot.core.errors import ElementResolutionError, NavigationError, VisibilityError
from webpilot.core.recovery import Remedy, classify_error


def test_missing_element_scrolls():
    verdict = classify_error(str(ElementResolutionError("Login")))
    assert verdict.remedy is Remedy.SCROLL
    assert verdict.recoverable


def test_hidden_element_scrolls():
    assert classify_error(str(VisibilityError("Menu"))).remedy is Remedy.SCROLL


def test_navigation_failure_waits():
    verdict = classify_error(str(NavigationError("https://x.test", "net::ERR_TIMED_OUT")))
    assert verdict.remedy is Remedy.WAIT


def test_match_is_case_insensitive():
    assert classify_error("Element Not Found somewhere").remedy is Remedy.SCROLL


def test_anything_else_is_fatal():
    verdict = classify_error("Target page, context or browser has been closed")
    assert verdict.remedy is Remedy.NONE
    assert not verdict.recoverable
    assert verdict.rule is None
