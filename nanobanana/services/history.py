from collections.abc import Iterable, Sequence

from loguru import logger

from nanobanana.models import (
    ConversationTurn,
    GeminiPart,
    ImagePart,
    ImageUrl,
    Message,
    Part,
    TextPart,
)
from nanobanana.utils.helper import build_data_url

from .errors import InvalidRequest


def _last_index(turns: Sequence[ConversationTurn], role: str, before: int) -> int:
    for idx in range(before - 1, -1, -1):
        if turns[idx].role == role:
            return idx
    return -1


def window_history(turns: Sequence[ConversationTurn]) -> list[ConversationTurn]:
    """
    Keep only the latest exchange of a resent conversation.

    Returns the turns from the last model turn preceding the final user turn through
    that user turn, or just the final user turn when no model turn precedes it.
    """
    last_user = _last_index(turns, "user", len(turns))
    if last_user == -1:
        raise InvalidRequest("No user message found.")

    last_model = _last_index(turns, "model", last_user)
    start = last_model if last_model != -1 else last_user
    window = list(turns[start : last_user + 1])
    logger.debug(f"Windowed {len(turns)} turns down to {len(window)} (start index {start}).")
    return window


def _convert_part(part: GeminiPart) -> Part | None:
    if part.text is not None:
        return TextPart(text=part.text)
    if part.inline_data is not None:
        url = build_data_url(part.inline_data.mime_type, part.inline_data.data)
        return ImagePart(image_url=ImageUrl(url=url))
    if part.file_data is not None:
        return ImagePart(image_url=ImageUrl(url=part.file_data.file_uri))
    return None


def turn_to_message(turn: ConversationTurn) -> Message:
    content: list[Part] = []
    for part in turn.parts:
        converted = _convert_part(part)
        if converted is None:
            logger.debug("Dropping conversation part with no text or image.")
            continue
        content.append(converted)
    return Message(role="assistant" if turn.role == "model" else "user", content=content)


def turns_to_messages(turns: Iterable[ConversationTurn]) -> list[Message]:
    return [turn_to_message(turn) for turn in turns]


def user_message(prompt: str, image_urls: Iterable[str]) -> Message:
    """Single user message holding a prompt followed by its images."""
    content: list[Part] = [TextPart(text=prompt)]
    content.extend(ImagePart(image_url=ImageUrl(url=url)) for url in image_urls)
    return Message(role="user", content=content)
