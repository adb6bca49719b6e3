import pytest

from trivia_scraper.errors import (
    FetchConnectionError,
    FetchTimeout,
    HttpStatusError,
    ImageError,
    MalformedResponse,
    MissingRequiredField,
    ParseError,
    UpsertError,
    error_payload,
)
from trivia_scraper.services.retry import Outcome, RetryPolicy


@pytest.mark.parametrize(
    "exc, outcome",
    [
        (FetchTimeout("slow"), Outcome.RETRYABLE),
        (FetchConnectionError("refused"), Outcome.RETRYABLE),
        (HttpStatusError(503), Outcome.RETRYABLE),
        (HttpStatusError(429), Outcome.RETRYABLE),
        (HttpStatusError(404), Outcome.TERMINAL),
        (MalformedResponse("bad json"), Outcome.TERMINAL),
        (MissingRequiredField("address"), Outcome.TERMINAL),
        (ParseError("broken"), Outcome.TERMINAL),
        (UpsertError("constraint"), Outcome.TERMINAL),
        (ImageError("no image"), Outcome.TERMINAL),
        (ValueError("unexpected"), Outcome.TERMINAL),
    ],
)
def test_classification(exc, outcome):
    assert RetryPolicy().classify(exc) is outcome


def test_backoff_is_exponential_and_capped():
    policy = RetryPolicy(base_delay=30, max_delay=900)
    assert [policy.delay_for(n) for n in range(6)] == [30, 60, 120, 240, 480, 900]


def test_should_retry_respects_max_attempts():
    policy = RetryPolicy(max_attempts=3)
    error = HttpStatusError(502)
    assert policy.should_retry(error, attempt=0)
    assert policy.should_retry(error, attempt=1)
    assert not policy.should_retry(error, attempt=2)
    assert not policy.should_retry(HttpStatusError(404), attempt=0)


def test_error_payloads():
    assert error_payload(HttpStatusError(500, url="https://x")) == {
        "kind": "http_status",
        "message": "HTTP 500",
        "url": "https://x",
        "status_code": 500,
    }
    assert error_payload(MissingRequiredField("address"))["field"] == "address"
    assert error_payload(KeyError("x"))["kind"] == "KeyError"
