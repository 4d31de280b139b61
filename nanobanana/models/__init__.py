from .models import (
    ClassifiedResult,
    ConversationTurn,
    Dimensions,
    EditImageRequest,
    EditImageResponse,
    FileData,
    GeminiPart,
    GenerateContentRequest,
    GenerateRequest,
    GenerateResponse,
    ImagePart,
    ImageSize,
    ImageUrl,
    InlineData,
    Message,
    Part,
    ResizeImageRequest,
    ResizeImageResponse,
    TextPart,
)

__all__ = [
    "ClassifiedResult",
    "ConversationTurn",
    "Dimensions",
    "EditImageRequest",
    "EditImageResponse",
    "FileData",
    "GeminiPart",
    "GenerateContentRequest",
    "GenerateRequest",
    "GenerateResponse",
    "ImagePart",
    "ImageSize",
    "ImageUrl",
    "InlineData",
    "Message",
    "Part",
    "ResizeImageRequest",
    "ResizeImageResponse",
    "TextPart",
]
