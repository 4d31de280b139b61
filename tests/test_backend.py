import httpx
import orjson
import pytest
import pytest_asyncio
from pytest_httpx import HTTPXMock

from nanobanana.models import ClassifiedResult, ImageSize
from nanobanana.services import (
    BackendError,
    BackendInvoker,
    BackendTimeoutError,
    MissingApiKey,
    ResultCache,
    user_message,
)
from nanobanana.utils.config import DEFAULT_MODEL, BackendConfig
from tests.conftest import BACKEND_URL, backend_reply

IMAGE_REPLY = {"images": [{"image_url": {"url": "data:image/png;base64,BBB="}}]}


@pytest_asyncio.fixture
async def http_client():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def settings() -> BackendConfig:
    return BackendConfig(api_base_url=BACKEND_URL)


def messages():
    return [user_message("draw a cat", ["data:image/png;base64,AAA="])]


def sent_payload(httpx_mock: HTTPXMock) -> dict:
    return orjson.loads(httpx_mock.get_request().content)


@pytest.mark.asyncio
async def test_invoke_sends_openai_payload(http_client, settings, httpx_mock: HTTPXMock):
    httpx_mock.add_response(**backend_reply(IMAGE_REPLY))
    invoker = BackendInvoker(http_client, settings)

    result = await invoker.invoke(messages(), "sk-test")

    assert result == ClassifiedResult(kind="image", content="data:image/png;base64,BBB=")
    request = httpx_mock.get_request()
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert request.headers["X-Title"] == "Nano Banana"
    payload = sent_payload(httpx_mock)
    assert payload == {
        "model": DEFAULT_MODEL,
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "draw a cat"},
                    {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAA="}},
                ],
            }
        ],
        "temperature": 0.3,
        "max_tokens": 1024,
        "stream": False,
        "top_p": 0.8,
        "frequency_penalty": 0,
        "presence_penalty": 0,
    }


@pytest.mark.asyncio
async def test_size_hint_is_sent_through_all_channels(
    http_client, settings, httpx_mock: HTTPXMock
):
    httpx_mock.add_response(**backend_reply(IMAGE_REPLY))
    invoker = BackendInvoker(http_client, settings)
    original = messages()

    await invoker.invoke(original, "sk-test", size=ImageSize(width=640, height=480), model="m")

    payload = sent_payload(httpx_mock)
    assert payload["model"] == "m"
    assert payload["image_options"] == {"width": 640, "height": 480}
    assert payload["parameters"] == {"width": 640, "height": 480}
    text = payload["messages"][-1]["content"][0]["text"]
    assert text == "draw a cat\n\nPlease make sure the output image is 640 × 480 pixels."
    # The caller's messages are left untouched.
    assert original[0].content[0].text == "draw a cat"


@pytest.mark.asyncio
async def test_size_hint_channels_are_configurable(http_client, httpx_mock: HTTPXMock):
    httpx_mock.add_response(**backend_reply(IMAGE_REPLY))
    settings = BackendConfig(api_base_url=BACKEND_URL, size_hint_channels=["image_options"])
    invoker = BackendInvoker(http_client, settings)

    await invoker.invoke(messages(), "sk-test", size=ImageSize(width=64, height=32))

    payload = sent_payload(httpx_mock)
    assert payload["image_options"] == {"width": 64, "height": 32}
    assert "parameters" not in payload
    assert payload["messages"][-1]["content"][0]["text"] == "draw a cat"


@pytest.mark.asyncio
async def test_base_url_override(http_client, settings, httpx_mock: HTTPXMock):
    other = "https://other.test/v1/chat/completions"
    httpx_mock.add_response(url=other, method="POST", json={"choices": [{"message": IMAGE_REPLY}]})
    invoker = BackendInvoker(http_client, settings)

    await invoker.invoke(messages(), "sk-test", base_url=f"  {other} ")

    assert str(httpx_mock.get_request().url) == other


@pytest.mark.asyncio
async def test_missing_api_key(http_client, settings):
    with pytest.raises(MissingApiKey):
        await BackendInvoker(http_client, settings).invoke(messages(), "")


@pytest.mark.asyncio
async def test_non_success_status_raises_backend_error(
    http_client, settings, httpx_mock: HTTPXMock
):
    httpx_mock.add_response(url=BACKEND_URL, method="POST", status_code=429, text="slow down")

    with pytest.raises(BackendError) as exc_info:
        await BackendInvoker(http_client, settings).invoke(messages(), "sk-test")

    assert exc_info.value.upstream_status == 429
    assert exc_info.value.body == "slow down"
    assert exc_info.value.message == "Backend API error: 429 - slow down"
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_timeout_raises_timeout_error(http_client, settings, httpx_mock: HTTPXMock):
    httpx_mock.add_exception(httpx.ReadTimeout("timed out"))

    with pytest.raises(BackendTimeoutError, match="timed out after 60 seconds"):
        await BackendInvoker(http_client, settings).invoke(messages(), "sk-test")


@pytest.mark.asyncio
async def test_connection_failure_raises_backend_error(
    http_client, settings, httpx_mock: HTTPXMock
):
    httpx_mock.add_exception(httpx.ConnectError("refused"))

    with pytest.raises(BackendError) as exc_info:
        await BackendInvoker(http_client, settings).invoke(messages(), "sk-test")

    assert exc_info.value.upstream_status is None
    assert "refused" in exc_info.value.message


@pytest.mark.asyncio
async def test_missing_choices_yields_placeholder_text(
    http_client, settings, httpx_mock: HTTPXMock
):
    httpx_mock.add_response(url=BACKEND_URL, method="POST", json={"choices": []})

    result = await BackendInvoker(http_client, settings).invoke(messages(), "sk-test")

    assert result.kind == "text"


@pytest.mark.asyncio
async def test_identical_request_is_served_from_cache(
    http_client, settings, httpx_mock: HTTPXMock
):
    httpx_mock.add_response(**backend_reply(IMAGE_REPLY))
    cache = ResultCache()
    invoker = BackendInvoker(http_client, settings, cache=cache)

    first = await invoker.invoke(messages(), "sk-test")
    second = await invoker.invoke(messages(), "sk-test")

    assert first == second
    assert len(httpx_mock.get_requests()) == 1
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_size_hint_changes_the_cache_key(http_client, settings, httpx_mock: HTTPXMock):
    httpx_mock.add_response(**backend_reply(IMAGE_REPLY))
    httpx_mock.add_response(**backend_reply(IMAGE_REPLY))
    invoker = BackendInvoker(http_client, settings, cache=ResultCache())

    await invoker.invoke(messages(), "sk-test", size=ImageSize(width=10, height=10))
    await invoker.invoke(messages(), "sk-test", size=ImageSize(width=20, height=20))

    assert len(httpx_mock.get_requests()) == 2


@pytest.mark.asyncio
async def test_cache_key_can_ignore_size(http_client, settings, httpx_mock: HTTPXMock):
    httpx_mock.add_response(**backend_reply(IMAGE_REPLY))
    invoker = BackendInvoker(
        http_client, settings, cache=ResultCache(), cache_key_includes_size=False
    )

    await invoker.invoke(messages(), "sk-test", size=ImageSize(width=10, height=10))
    await invoker.invoke(messages(), "sk-test", size=ImageSize(width=20, height=20))

    assert len(httpx_mock.get_requests()) == 1


@pytest.mark.asyncio
async def test_failed_call_is_not_cached(http_client, settings, httpx_mock: HTTPXMock):
    httpx_mock.add_response(url=BACKEND_URL, method="POST", status_code=500, text="boom")
    cache = ResultCache()

    with pytest.raises(BackendError):
        await BackendInvoker(http_client, settings, cache=cache).invoke(messages(), "sk-test")

    assert len(cache) == 0
