from fastapi import APIRouter, Depends
from loguru import logger

from nanobanana.models import (
    Dimensions,
    EditImageRequest,
    EditImageResponse,
    GenerateRequest,
    GenerateResponse,
    ImageSize,
    ResizeImageRequest,
    ResizeImageResponse,
)
from nanobanana.services import (
    BackendInvoker,
    ImageResizer,
    InvalidRequest,
    MissingApiKey,
    UnexpectedOutputKind,
    user_message,
)
from nanobanana.utils import Config
from nanobanana.utils.helper import iso_timestamp

from .middleware import get_config, get_invoker, get_resizer

EDIT_PROMPT_TEMPLATE = """Edit the image: {prompt}

Requirements:
- Only change what the instruction explicitly asks for
- Keep the original size of {width} x {height}
- Keep everything else identical to the original image
- Return only the image, no text"""

router = APIRouter(tags=["Web UI"])


def _dimensions(*values: float | None) -> tuple[int, ...] | None:
    """Whole positive pixel counts, or None when any value is missing or invalid."""
    if all(value is not None and value > 0 and float(value).is_integer() for value in values):
        return tuple(int(value) for value in values)
    return None


def build_edit_prompt(prompt: str, width: int, height: int) -> str:
    return EDIT_PROMPT_TEMPLATE.format(prompt=prompt, width=width, height=height)


@router.post("/generate", response_model=GenerateResponse)
async def generate(
    body: GenerateRequest,
    config: Config = Depends(get_config),
    invoker: BackendInvoker = Depends(get_invoker),
):
    api_key = body.apikey or config.backend.api_key
    if not api_key:
        raise MissingApiKey("API key is not set.")
    if not body.prompt or not body.images:
        raise InvalidRequest("Prompt and images are required.")

    messages = [user_message(body.prompt, body.images)]
    result = await invoker.invoke(messages, api_key, model=body.model)
    if not result.is_image:
        raise UnexpectedOutputKind(result.content)

    return GenerateResponse(image_url=result.content)


@router.post("/edit-image", response_model=EditImageResponse)
async def edit_image(
    body: EditImageRequest,
    config: Config = Depends(get_config),
    invoker: BackendInvoker = Depends(get_invoker),
):
    api_key = body.apikey or config.backend.api_key
    if not api_key:
        raise MissingApiKey("API key is required.")
    if not body.images:
        raise InvalidRequest("At least one image is required.")
    if not body.prompt or not body.prompt.strip():
        raise InvalidRequest("Edit prompt is required.")
    dimensions = _dimensions(body.original_width, body.original_height)
    if dimensions is None:
        raise InvalidRequest("Valid original dimensions are required.")

    width, height = dimensions
    logger.info(f"Processing image edit with {len(body.images)} image(s) at {width}x{height}")

    prompt = build_edit_prompt(body.prompt, width, height)
    result = await invoker.invoke(
        [user_message(prompt, body.images)],
        api_key,
        base_url=body.api_base_url,
        size=ImageSize(width=width, height=height),
        model=body.model,
    )
    if not result.is_image:
        raise UnexpectedOutputKind(result.content)

    size = Dimensions(width=width, height=height)
    return EditImageResponse(
        image_url=result.content,
        original_dimensions=size,
        processed_at=iso_timestamp(),
        needs_resize=False,
        target_dimensions=size,
        backend_resized=False,
        ai_generated_correct_size=True,
    )


@router.post("/resize-image", response_model=ResizeImageResponse)
async def resize_image(
    body: ResizeImageRequest,
    resizer: ImageResizer = Depends(get_resizer),
):
    if not body.image_url:
        raise InvalidRequest("Image URL is required.")
    dimensions = _dimensions(body.target_width, body.target_height)
    if dimensions is None:
        raise InvalidRequest("Valid target dimensions are required.")

    width, height = dimensions
    resized_url = await resizer.resize(body.image_url, width, height)
    return ResizeImageResponse(
        original_url=body.image_url,
        resized_url=resized_url,
        target_dimensions=Dimensions(width=width, height=height),
        processed_at=iso_timestamp(),
        success=True,
    )
