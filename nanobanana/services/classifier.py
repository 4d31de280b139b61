import re
import reprlib
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from loguru import logger

from nanobanana.models import ClassifiedResult

NO_CONTENT_PLACEHOLDER = "[The model returned no usable content]"

DATA_IMAGE_PREFIX = "data:image/"
DATA_IMAGE_RE = re.compile(r"data:image/[^;\s\"']+;base64,[A-Za-z0-9+/=]+")
MARKDOWN_IMAGE_RE = re.compile(r"!\[.*?\]\((https?://[^)]+)\)")
MARKDOWN_IMAGE_LOOSE_RE = re.compile(r"!\[.*?\]\((.*?)\)")
BARE_IMAGE_URL_RE = re.compile(r"(https?://[^\s]+\.(?:png|jpg|jpeg|gif|webp))", re.IGNORECASE)

Extractor = Callable[[dict[str, Any]], str | None]


@dataclass(frozen=True)
class ClassificationRule:
    """A named detector: returns the image URL when it matches, otherwise None."""

    name: str
    extract: Extractor


def _text_content(message: dict[str, Any]) -> str | None:
    content = message.get("content")
    return content if isinstance(content, str) else None


def _from_images_field(message: dict[str, Any]) -> str | None:
    images = message.get("images")
    if not isinstance(images, list) or not images:
        return None
    first = images[0]
    if not isinstance(first, dict):
        return None
    image_url = first.get("image_url")
    if not isinstance(image_url, dict):
        return None
    url = image_url.get("url")
    return url if isinstance(url, str) and url else None


def _from_data_url_content(message: dict[str, Any]) -> str | None:
    content = _text_content(message)
    if content is not None and content.startswith(DATA_IMAGE_PREFIX):
        return content
    return None


def _from_embedded_data_url(message: dict[str, Any]) -> str | None:
    content = _text_content(message)
    if content is None or DATA_IMAGE_PREFIX not in content:
        return None
    match = DATA_IMAGE_RE.search(content)
    return match.group(0) if match else None


def _from_markdown_link(message: dict[str, Any]) -> str | None:
    content = _text_content(message)
    if content is None:
        return None
    if match := MARKDOWN_IMAGE_RE.search(content):
        return match.group(1)
    loose = MARKDOWN_IMAGE_LOOSE_RE.search(content)
    if loose and loose.group(1).startswith("http"):
        return loose.group(1)
    return None


def _from_bare_url(message: dict[str, Any]) -> str | None:
    content = _text_content(message)
    if content is None:
        return None
    match = BARE_IMAGE_URL_RE.search(content)
    return match.group(1) if match else None


# Evaluated top to bottom, first match wins.
DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule("images_field", _from_images_field),
    ClassificationRule("data_url_content", _from_data_url_content),
    ClassificationRule("embedded_data_url", _from_embedded_data_url),
    ClassificationRule("markdown_image_link", _from_markdown_link),
    ClassificationRule("bare_image_url", _from_bare_url),
)


class OutputClassifier:
    """Decide whether a backend message carries an image or plain text."""

    def __init__(self, rules: Sequence[ClassificationRule] = DEFAULT_RULES) -> None:
        self.rules = tuple(rules)

    def classify(self, message: dict[str, Any] | None) -> ClassifiedResult:
        if not isinstance(message, dict):
            logger.warning(f"Backend returned no message object: {reprlib.repr(message)}")
            return ClassifiedResult(kind="text", content=NO_CONTENT_PLACEHOLDER)

        for rule in self.rules:
            url = rule.extract(message)
            if url:
                logger.debug(f"Classified backend output as image via rule '{rule.name}'.")
                return ClassifiedResult(kind="image", content=url)

        content = _text_content(message)
        if content is not None and content.strip():
            logger.debug(f"Classified backend output as text: {reprlib.repr(content)}")
            return ClassifiedResult(kind="text", content=content)

        logger.warning("Backend message carried neither an image nor text.")
        return ClassifiedResult(kind="text", content=NO_CONTENT_PLACEHOLDER)
