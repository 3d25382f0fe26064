import json

import httpx
import pytest

from call_transcriber.errors import ResolutionError
from call_transcriber.telephony.knowlarity import KnowlarityClient, extract_secured_url
from call_transcriber.telephony.tree import find_value, scan_serialized

SECURED = "https://secure.knowlarity.example/rec/abc.mp3?sig=1"


def test_find_value_top_level():
    assert find_value({"secured_recording_url": SECURED}, "secured_recording_url") == SECURED


def test_find_value_nested_in_lists():
    doc = {"objects": [{"meta": {}}, {"call": {"secured_recording_url": SECURED}}]}
    assert find_value(doc, "secured_recording_url") == SECURED


def test_find_value_decodes_json_strings():
    doc = {"data": json.dumps({"objects": [{"secured_recording_url": SECURED}]})}
    assert find_value(doc, "secured_recording_url") == SECURED


def test_find_value_skips_empty_matches():
    doc = {"secured_recording_url": "", "inner": {"secured_recording_url": SECURED}}
    assert find_value(doc, "secured_recording_url") == SECURED


def test_find_value_respects_depth_bound():
    doc = {"a": {"b": {"c": {"d": {"e": {"f": {"secured_recording_url": SECURED}}}}}}}
    assert find_value(doc, "secured_recording_url", max_depth=5) is None
    assert find_value(doc, "secured_recording_url", max_depth=6) == SECURED


def test_scan_serialized_handles_escaped_json():
    text = '{"payload": "{\\"secured_recording_url\\":\\"https:\\/\\/secure.example\\/a.mp3\\"}"}'
    assert scan_serialized(text, "secured_recording_url") == "https://secure.example/a.mp3"


def test_extract_uses_regex_when_tree_walk_fails():
    broken = '{"objects": [{"secured_recording_url": "https://secure.example/b.wav", oops'
    assert extract_secured_url(broken) == "https://secure.example/b.wav"


def _client(knowlarity_settings, handler):
    return KnowlarityClient(knowlarity_settings, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_secured_url_sends_credentials(knowlarity_settings):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, json={"objects": [{"secured_recording_url": SECURED}]})

    url = await _client(knowlarity_settings, handler).fetch_secured_url("11aff2d5-39e7-4a0b-b7cd-461fde93f44c")

    assert url == SECURED
    request = seen["request"]
    assert request.url.path == "/Basic/v1/account/call/get-detailed-call-log"
    assert request.url.params["uuid"] == "11aff2d5-39e7-4a0b-b7cd-461fde93f44c"
    assert request.headers["x-api-key"] == "kn-key"
    assert request.headers["authorization"] == "kn-token"
    assert request.headers["channel"] == "Basic"


@pytest.mark.asyncio
async def test_missing_credentials(knowlarity_settings, mocker):
    from dataclasses import replace

    handler = mocker.Mock()
    client = _client(replace(knowlarity_settings, api_key=None), handler)
    with pytest.raises(ResolutionError, match="not configured"):
        await client.fetch_secured_url("id")
    handler.assert_not_called()


@pytest.mark.asyncio
async def test_response_without_url(knowlarity_settings):
    client = _client(knowlarity_settings, lambda request: httpx.Response(200, json={"objects": []}))
    with pytest.raises(ResolutionError, match="secured_recording_url not found"):
        await client.fetch_secured_url("id")


@pytest.mark.asyncio
async def test_http_error_is_attributed_to_knowlarity(knowlarity_settings):
    client = _client(knowlarity_settings, lambda request: httpx.Response(403, text="forbidden"))
    with pytest.raises(ResolutionError) as excinfo:
        await client.fetch_secured_url("id")
    error = excinfo.value.annotate()
    assert error.provider == "Knowlarity"
    assert error.status_code == 403
    assert "forbidden" in error.message


@pytest.mark.asyncio
async def test_malformed_base_url_is_a_resolution_error(knowlarity_settings, mocker):
    from dataclasses import replace

    handler = mocker.Mock()
    client = _client(replace(knowlarity_settings, base_url="http://[::1"), handler)
    with pytest.raises(ResolutionError, match="invalid Knowlarity URL") as excinfo:
        await client.fetch_secured_url("id")
    assert excinfo.value.provider == "Knowlarity"
    handler.assert_not_called()
