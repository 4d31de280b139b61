import base64

import httpx
from loguru import logger

from nanobanana.utils.config import ResizeConfig
from nanobanana.utils.helper import build_data_url, is_http_url


class ImageResizer:
    """
    Best-effort image resizing.

    Every failure degrades to returning the input unchanged. No resize service is
    wired in, so a data URL passes through untouched and remote images are only
    downloaded and inlined.
    """

    def __init__(self, client: httpx.AsyncClient, settings: ResizeConfig) -> None:
        self.client = client
        self.settings = settings

    async def resize(self, image_url: str, width: int, height: int) -> str:
        logger.info(f"Resizing image to {width}x{height}")
        try:
            return await self._resize(image_url)
        except Exception as e:
            logger.warning(f"Resize of {image_url[:80]} failed, returning original image: {e!r}")
            return image_url

    async def _resize(self, image_url: str) -> str:
        if image_url.startswith("data:image/"):
            logger.info("No resize service available, returning image unchanged.")
            return image_url

        if is_http_url(image_url):
            return await self._download(image_url)

        logger.info("Unsupported image URL scheme, returning original image.")
        return image_url

    async def _download(self, image_url: str) -> str:
        response = await self.client.get(
            image_url,
            headers={"User-Agent": self.settings.user_agent},
            timeout=self.settings.download_timeout,
            follow_redirects=True,
        )
        if not response.is_success:
            raise ValueError(f"download failed: {response.status_code} {response.reason_phrase}")

        content_type = response.headers.get("content-type", "image/png").split(";")[0].strip()
        encoded = base64.b64encode(response.content).decode("ascii")
        logger.debug(f"Downloaded {len(response.content)} bytes of {content_type}")
        return build_data_url(content_type or "image/png", encoded)
