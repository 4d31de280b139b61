from __future__ import annotations

from typing import Annotated, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PositiveInt
from pydantic.alias_generators import to_camel

# --- Backend (OpenAI-style) schema ---


class ImageUrl(BaseModel):
    """URL wrapper for an image part, either a data URL or an http(s) URL."""

    model_config = ConfigDict(frozen=True)

    url: str


class TextPart(BaseModel):
    """Text fragment of a backend message."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    """Image fragment of a backend message."""

    model_config = ConfigDict(frozen=True)

    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl


Part = Annotated[TextPart | ImagePart, Field(discriminator="type")]


class Message(BaseModel):
    """Message sent to the backend."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: list[Part] = Field(default_factory=list)


class ImageSize(BaseModel):
    """Requested output image size."""

    model_config = ConfigDict(frozen=True)

    width: PositiveInt
    height: PositiveInt


class ClassifiedResult(BaseModel):
    """Backend output reduced to either an image URL or plain text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["image", "text"]
    content: str

    @property
    def is_image(self) -> bool:
        return self.kind == "image"


# --- Gemini-style schema ---


class InlineData(BaseModel):
    """Base64 encoded inline blob."""

    mime_type: str = Field(validation_alias=AliasChoices("mimeType", "mime_type"))
    data: str


class FileData(BaseModel):
    """Reference to an image by URI."""

    mime_type: str | None = Field(
        default=None, validation_alias=AliasChoices("mimeType", "mime_type")
    )
    file_uri: str = Field(validation_alias=AliasChoices("fileUri", "file_uri"))


class GeminiPart(BaseModel):
    """A single part of a conversation turn."""

    text: str | None = Field(default=None)
    inline_data: InlineData | None = Field(
        default=None, validation_alias=AliasChoices("inlineData", "inline_data")
    )
    file_data: FileData | None = Field(
        default=None, validation_alias=AliasChoices("fileData", "file_data")
    )


class ConversationTurn(BaseModel):
    """One turn of a Gemini-style conversation."""

    role: str = Field(default="user")
    parts: list[GeminiPart] = Field(default_factory=list)


class GenerateContentRequest(BaseModel):
    """Gemini generateContent / streamGenerateContent request body."""

    contents: list[ConversationTurn] = Field(default_factory=list)
    model: str | None = Field(default=None)


# --- Web UI schema ---


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateRequest(CamelModel):
    """Body of POST /generate."""

    prompt: str | None = Field(default=None)
    images: list[str] | None = Field(default=None)
    apikey: str | None = Field(default=None)
    model: str | None = Field(default=None)


class EditImageRequest(CamelModel):
    """Body of POST /edit-image."""

    images: list[str] | None = Field(default=None)
    prompt: str | None = Field(default=None)
    original_width: float | None = Field(default=None)
    original_height: float | None = Field(default=None)
    apikey: str | None = Field(default=None)
    api_base_url: str | None = Field(default=None)
    model: str | None = Field(default=None)


class ResizeImageRequest(CamelModel):
    """Body of POST /resize-image."""

    image_url: str | None = Field(default=None)
    target_width: float | None = Field(default=None)
    target_height: float | None = Field(default=None)


class Dimensions(CamelModel):
    width: int
    height: int


class GenerateResponse(CamelModel):
    image_url: str


class EditImageResponse(CamelModel):
    image_url: str
    original_dimensions: Dimensions
    processed_at: str
    needs_resize: bool = Field(default=False)
    target_dimensions: Dimensions
    backend_resized: bool = Field(default=False)
    ai_generated_correct_size: bool = Field(default=True)


class ResizeImageResponse(CamelModel):
    original_url: str
    resized_url: str
    target_dimensions: Dimensions
    processed_at: str
    success: bool = Field(default=True)
