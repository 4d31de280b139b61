import reprlib
from collections.abc import Sequence
from typing import Any

import httpx
import orjson
from loguru import logger

from nanobanana.models import ClassifiedResult, ImageSize, Message, TextPart
from nanobanana.utils.config import BackendConfig

from .cache import ResultCache, make_cache_key
from .classifier import OutputClassifier
from .errors import BackendError, BackendTimeoutError, MissingApiKey

SIZE_HINT_TEMPLATE = "\n\nPlease make sure the output image is {width} × {height} pixels."


def _append_size_sentence(messages: list[Message], size: ImageSize) -> list[Message]:
    """Return a copy of messages whose last user text part ends with the size sentence."""
    if not messages or messages[-1].role != "user":
        return messages

    last = messages[-1]
    for idx in range(len(last.content) - 1, -1, -1):
        part = last.content[idx]
        if isinstance(part, TextPart) and part.text:
            sentence = SIZE_HINT_TEMPLATE.format(width=size.width, height=size.height)
            content = list(last.content)
            content[idx] = part.model_copy(update={"text": part.text + sentence})
            return [*messages[:-1], last.model_copy(update={"content": content})]
    return messages


class BackendInvoker:
    """Send normalized messages to the chat-completion backend and classify the answer."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: BackendConfig,
        cache: ResultCache | None = None,
        classifier: OutputClassifier | None = None,
        cache_key_includes_size: bool = True,
    ) -> None:
        self.client = client
        self.settings = settings
        self.cache = cache
        self.classifier = classifier or OutputClassifier()
        self.cache_key_includes_size = cache_key_includes_size

    def build_payload(
        self,
        messages: Sequence[Message],
        model: str,
        size: ImageSize | None = None,
    ) -> dict[str, Any]:
        prepared = list(messages)
        channels = set(self.settings.size_hint_channels) if size else set()

        if "prompt" in channels:
            prepared = _append_size_sentence(prepared, size)

        payload: dict[str, Any] = {
            "model": model,
            "messages": [msg.model_dump(mode="json") for msg in prepared],
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
            "stream": False,
            "top_p": self.settings.top_p,
            "frequency_penalty": 0,
            "presence_penalty": 0,
        }
        if "image_options" in channels:
            payload["image_options"] = {"width": size.width, "height": size.height}
        if "parameters" in channels:
            payload["parameters"] = {"width": size.width, "height": size.height}
        return payload

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.settings.referer,
            "X-Title": self.settings.title,
        }

    def _cache_key(self, messages: Sequence[Message], model: str, size: ImageSize | None) -> str:
        return make_cache_key(messages, model, size if self.cache_key_includes_size else None)

    async def invoke(
        self,
        messages: Sequence[Message],
        api_key: str | None,
        base_url: str | None = None,
        size: ImageSize | None = None,
        model: str | None = None,
    ) -> ClassifiedResult:
        if not api_key:
            raise MissingApiKey("API key is missing.")

        model_name = model or self.settings.default_model
        url = self.settings.resolve_base_url(base_url)

        cache_key = None
        if self.cache is not None and self.cache.enabled:
            cache_key = self._cache_key(messages, model_name, size)
            if (cached := self.cache.get(cache_key)) is not None:
                logger.info(f"Result cache hit for model {model_name}, skipping backend call.")
                return cached

        payload = self.build_payload(messages, model_name, size)
        if size:
            logger.debug(
                f"Requesting output size {size.width}x{size.height} via "
                f"{', '.join(self.settings.size_hint_channels)}"
            )
        logger.debug(f"Sending payload to {url}: {reprlib.repr(payload)}")

        try:
            response = await self.client.post(
                url,
                content=orjson.dumps(payload),
                headers=self._headers(api_key),
                timeout=self.settings.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Backend call to {url} timed out after {self.settings.timeout:g}s")
            raise BackendTimeoutError(self.settings.timeout) from e
        except httpx.RequestError as e:
            logger.warning(f"Backend call to {url} failed: {e!r}")
            raise BackendError(None, str(e) or type(e).__name__) from e

        if not response.is_success:
            logger.warning(
                f"Backend returned {response.status_code}: {reprlib.repr(response.text)}"
            )
            raise BackendError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise BackendError(response.status_code, f"Malformed JSON body: {e}") from e

        logger.debug(f"Backend response: {reprlib.repr(data)}")
        message = None
        choices = data.get("choices") if isinstance(data, dict) else None
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")

        result = self.classifier.classify(message)
        if cache_key is not None:
            self.cache.put(cache_key, result)
        return result
