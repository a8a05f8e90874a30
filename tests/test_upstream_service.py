import httpx
import pytest

from simdesk.services.cache_service import (
    EMPTY_VALIDATORS, UpstreamTimeout, UpstreamUnavailable, Validators,
)
from simdesk.services.upstream_service import UpstreamClient


def make_client(handler):
    return UpstreamClient("http://upstream.test/v1/", transport=httpx.MockTransport(handler))


async def test_fresh_response_carries_validators():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(
            200,
            json={"usd": 1.0},
            headers={"ETag": '"abc"', "Last-Modified": "Mon, 01 Jan 2024 00:00:00 GMT"},
        )

    response = await make_client(handler).fetch("/rates", EMPTY_VALIDATORS, params={"base": "eur"})

    assert not response.not_modified
    assert response.body == {"usd": 1.0}
    assert response.validators == Validators('"abc"', "Mon, 01 Jan 2024 00:00:00 GMT")
    assert str(seen[0].url) == "http://upstream.test/v1/rates?base=eur"
    assert "if-none-match" not in seen[0].headers


async def test_conditional_headers_and_not_modified():
    def handler(request):
        assert request.headers["if-none-match"] == '"abc"'
        assert request.headers["if-modified-since"] == "ts"
        return httpx.Response(304)

    response = await make_client(handler).fetch("rates", Validators('"abc"', "ts"))
    assert response.not_modified
    assert response.body is None


async def test_non_json_body_is_returned_as_text():
    response = await make_client(lambda request: httpx.Response(200, text="plain")).fetch("x", EMPTY_VALIDATORS)
    assert response.body == "plain"
    assert response.etag is None


async def test_server_error_is_unavailable():
    with pytest.raises(UpstreamUnavailable):
        await make_client(lambda request: httpx.Response(503)).fetch("x", EMPTY_VALIDATORS)


async def test_connection_error_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamUnavailable) as exc:
        await make_client(handler).fetch("x", EMPTY_VALIDATORS)
    assert not isinstance(exc.value, UpstreamTimeout)


async def test_read_timeout_is_timeout():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(UpstreamTimeout):
        await make_client(handler).fetch("x", EMPTY_VALIDATORS)


def test_configured():
    assert UpstreamClient("http://upstream.test").configured
    assert not UpstreamClient("").configured
