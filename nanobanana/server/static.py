from pathlib import Path

from fastapi import APIRouter, Depends, FastAPI, HTTPException
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger

from nanobanana.utils import Config

from .middleware import get_config

router = APIRouter()


@router.get("/", tags=["Static"], include_in_schema=False)
async def index(config: Config = Depends(get_config)):
    file_path = Path(config.static.root) / "index.html"
    if not file_path.is_file():
        raise HTTPException(status_code=404, detail="index.html not found")
    return FileResponse(file_path, media_type="text/html; charset=utf-8")


def mount_static(app: FastAPI, config: Config) -> None:
    """Serve the web UI directory; must be mounted after every API route."""
    root = Path(config.static.root)
    if not root.is_dir():
        logger.warning(f"Static root {root} does not exist, web UI files will not be served.")
        return
    app.mount("/", StaticFiles(directory=root), name="static")
