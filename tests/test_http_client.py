import httpx
import pytest

from trivia_scraper.errors import FetchConnectionError, FetchTimeout, HttpStatusError, MalformedResponse


def test_fetch_text_sends_user_agent(mock_client):
    seen = {}

    def handler(request):
        seen["ua"] = request.headers["user-agent"]
        return httpx.Response(200, text="<html>ok</html>")

    client = mock_client(handler)
    assert client.fetch_text("https://example.com/") == "<html>ok</html>"
    assert seen["ua"] == client.user_agent


@pytest.mark.parametrize("status, retryable", [(404, False), (500, True), (503, True), (429, True)])
def test_error_status_raises(mock_client, status, retryable):
    client = mock_client(lambda request: httpx.Response(status))
    with pytest.raises(HttpStatusError) as exc_info:
        client.fetch("https://example.com/venue")
    assert exc_info.value.status_code == status
    assert exc_info.value.retryable is retryable
    assert exc_info.value.url == "https://example.com/venue"


def test_timeout_is_classified(mock_client):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(FetchTimeout):
        mock_client(handler).fetch("https://example.com/")


def test_connection_error_is_classified(mock_client):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(FetchConnectionError):
        mock_client(handler).fetch("https://example.com/")


def test_invalid_json_is_malformed(mock_client):
    client = mock_client(lambda request: httpx.Response(200, text="not json"))
    with pytest.raises(MalformedResponse):
        client.fetch_json("https://example.com/api")


def test_fetch_json_and_bytes(mock_client):
    def handler(request):
        if request.url.path == "/api":
            assert request.url.params["page"] == "2"
            return httpx.Response(200, json={"ok": True})
        return httpx.Response(200, content=b"\xff\xd8", headers={"content-type": "image/jpeg"})

    client = mock_client(handler)
    assert client.fetch_json("https://example.com/api", params={"page": 2}) == {"ok": True}
    assert client.fetch_bytes("https://example.com/img.jpg") == (b"\xff\xd8", "image/jpeg")
