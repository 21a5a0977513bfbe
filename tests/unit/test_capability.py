import httpx

from core.capability import CAPABILITY_NOTICE, CapabilityBreaker, is_capability_refusal
from core.models import TurnSource
from tests.conftest import REFUSAL


def test_refusal_detection_is_case_insensitive():
    assert is_capability_refusal(REFUSAL.upper())
    assert is_capability_refusal(RuntimeError(REFUSAL))
    assert not is_capability_refusal("rate limit exceeded")
    assert not is_capability_refusal(None)


def test_refusal_inside_http_error_body():
    request = httpx.Request("POST", "https://api.example.test/v1/chat/completions")
    response = httpx.Response(400, json={"error": {"message": REFUSAL}}, request=request)
    error = httpx.HTTPStatusError("400", request=request, response=response)

    assert is_capability_refusal(error)


def test_breaker_trips_once_and_posts_notice_once():
    trips, notices = [], []
    breaker = CapabilityBreaker(on_trip=trips.append, on_notice=notices.append)

    assert breaker.is_enabled()
    assert breaker.guard(REFUSAL, TurnSource.LINGER)
    assert breaker.guard(REFUSAL, TurnSource.CHAT)

    assert not breaker.is_enabled()
    assert trips == [TurnSource.LINGER]
    assert notices == [CAPABILITY_NOTICE]


def test_other_errors_leave_breaker_enabled():
    breaker = CapabilityBreaker()

    assert not breaker.guard(RuntimeError("boom"))
    assert not breaker.guard("HTTP 500: upstream")
    assert breaker.is_enabled()
