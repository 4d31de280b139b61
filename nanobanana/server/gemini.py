import asyncio
import reprlib
from collections.abc import AsyncGenerator
from typing import Any

import orjson
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from loguru import logger

from nanobanana.models import ClassifiedResult, GenerateContentRequest, Message, TextPart
from nanobanana.services import (
    BackendInvoker,
    InvalidRequest,
    MissingApiKey,
    ProxyError,
    turns_to_messages,
    window_history,
)
from nanobanana.utils import Config
from nanobanana.utils.helper import estimate_tokens, parse_data_url

from .middleware import get_config, get_invoker

IMAGE_READY_TEXT = "Here is the generated image:"
IMAGE_FAILED_TEXT = "[Image generation failed]"

router = APIRouter()


# --- Helper Functions ---


def _extract_api_key(request: Request) -> str:
    """Bearer token first, then the x-goog-api-key header, then the ?key= query parameter."""
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        token = auth.removeprefix("Bearer ").strip()
        if token:
            return token
    return (
        request.headers.get("x-goog-api-key", "").strip()
        or request.query_params.get("key", "").strip()
    )


def _prepare_messages(request: Request, body: GenerateContentRequest) -> tuple[str, list[Message]]:
    api_key = _extract_api_key(request)
    if not api_key:
        raise MissingApiKey("API key is missing.")
    if not body.contents:
        raise InvalidRequest("Invalid request: 'contents' array is missing.")

    window = window_history(body.contents)
    return api_key, turns_to_messages(window)


def _image_parts(url: str) -> list[dict[str, Any]]:
    """Gemini parts for an image result: inline data when possible, else a Markdown link."""
    if parsed := parse_data_url(url):
        mime_type, data = parsed
        return [{"inlineData": {"mimeType": mime_type, "data": data}}]
    if url.startswith("http"):
        return [{"text": f"![image]({url})"}]
    return []


def _result_parts(result: ClassifiedResult) -> list[dict[str, Any]]:
    if not result.is_image:
        return [{"text": result.content}]
    image_parts = _image_parts(result.content)
    if not image_parts:
        return [{"text": IMAGE_FAILED_TEXT}]
    return [{"text": IMAGE_READY_TEXT}, *image_parts]


def _usage_metadata(messages: list[Message], result: ClassifiedResult) -> dict[str, int]:
    prompt_text = "\n".join(
        part.text for msg in messages for part in msg.content if isinstance(part, TextPart)
    )
    prompt_tokens = estimate_tokens(prompt_text)
    output_tokens = estimate_tokens(IMAGE_READY_TEXT if result.is_image else result.content)
    return {
        "promptTokenCount": prompt_tokens,
        "candidatesTokenCount": output_tokens,
        "totalTokenCount": prompt_tokens + output_tokens,
    }


def _sse(data: dict[str, Any]) -> str:
    return f"data: {orjson.dumps(data).decode('utf-8')}\n\n"


def _content_chunk(parts: list[dict[str, Any]]) -> dict[str, Any]:
    return {"candidates": [{"content": {"role": "model", "parts": parts}}]}


def _create_streaming_response(
    invoker: BackendInvoker,
    messages: list[Message],
    api_key: str,
    model: str | None,
    char_delay: float,
) -> StreamingResponse:
    """
    Stream a backend result in Gemini SSE format.

    The backend call itself is not streamed; its result is replayed one character per
    chunk with a short pause so chat clients render it progressively.
    """

    async def generate_stream() -> AsyncGenerator[str]:
        try:
            result = await invoker.invoke(messages, api_key, model=model)

            text_to_stream = IMAGE_READY_TEXT if result.is_image else result.content
            for char in text_to_stream:
                yield _sse(_content_chunk([{"text": char}]))
                if char_delay:
                    await asyncio.sleep(char_delay)

            if result.is_image:
                if image_parts := _image_parts(result.content):
                    yield _sse(_content_chunk(image_parts))
                else:
                    logger.warning(f"Unusable image URL in result: {reprlib.repr(result.content)}")

            final = {
                "candidates": [
                    {"finishReason": "STOP", "content": {"role": "model", "parts": []}}
                ],
                "usageMetadata": _usage_metadata(messages, result),
            }
            yield _sse(final)
            yield "data: [DONE]\n\n"
        except ProxyError as e:
            logger.error(f"Error during Gemini streaming: {e.message}")
            yield _sse({"error": {"message": e.message, "code": e.status_code}})
        except Exception as e:
            logger.exception(f"Unexpected error during Gemini streaming: {e}")
            yield _sse({"error": {"message": str(e), "code": 500}})

    return StreamingResponse(
        generate_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


# --- Route Handlers ---


@router.post("/{model_path:path}:streamGenerateContent", tags=["Gemini"])
async def stream_generate_content(
    model_path: str,
    body: GenerateContentRequest,
    request: Request,
    config: Config = Depends(get_config),
    invoker: BackendInvoker = Depends(get_invoker),
):
    api_key, messages = _prepare_messages(request, body)
    logger.debug(f"Streaming request for {model_path} with {len(messages)} windowed messages.")
    return _create_streaming_response(
        invoker, messages, api_key, body.model, config.stream.char_delay
    )


@router.post("/{model_path:path}:generateContent", tags=["Gemini"])
async def generate_content(
    model_path: str,
    body: GenerateContentRequest,
    request: Request,
    invoker: BackendInvoker = Depends(get_invoker),
):
    api_key, messages = _prepare_messages(request, body)
    logger.debug(f"Generate request for {model_path} with {len(messages)} windowed messages.")

    result = await invoker.invoke(messages, api_key, model=body.model)
    return {
        "candidates": [
            {
                "content": {"role": "model", "parts": _result_parts(result)},
                "finishReason": "STOP",
                "index": 0,
            }
        ],
        "usageMetadata": _usage_metadata(messages, result),
    }
