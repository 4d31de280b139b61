from .gemini import router as gemini_router
from .static import router as static_router
from .webui import router as webui_router

__all__ = ["gemini_router", "static_router", "webui_router"]
