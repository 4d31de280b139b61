from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI
from loguru import logger

from nanobanana.server import gemini_router, static_router, webui_router
from nanobanana.server.middleware import add_cors_middleware, add_exception_handler
from nanobanana.server.static import mount_static
from nanobanana.services import BackendInvoker, ImageResizer, ResultCache
from nanobanana.utils import Config, g_config, setup_logging


def create_app(config: Config | None = None) -> FastAPI:
    """Build the application; the cache, HTTP client and invoker live for the app's lifespan."""
    config = config or g_config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = httpx.AsyncClient(timeout=config.backend.timeout)
        cache = ResultCache(
            ttl=config.cache.ttl,
            max_entries=config.cache.max_entries,
            sweep_interval=config.cache.sweep_interval,
            enabled=config.cache.enabled,
        )
        app.state.cache = cache
        app.state.invoker = BackendInvoker(
            client,
            config.backend,
            cache=cache,
            cache_key_includes_size=config.cache.key_includes_size,
        )
        app.state.resizer = ImageResizer(client, config.resize)

        cache.start()
        logger.info(f"Backend: {config.backend.resolve_base_url()}")
        try:
            yield
        finally:
            await cache.stop()
            await client.aclose()
            logger.info("Shutdown complete.")

    app = FastAPI(
        title="Nano Banana Proxy",
        description="Gemini-style API and image editing UI on top of a chat-completion backend",
        lifespan=lifespan,
    )
    app.state.config = config

    add_cors_middleware(app, config)
    add_exception_handler(app)

    app.include_router(gemini_router)
    app.include_router(webui_router)
    app.include_router(static_router)
    mount_static(app, config)
    return app


def run() -> None:
    setup_logging(g_config.logging.level)

    server = g_config.server
    ssl_kwargs = {}
    if server.https.enabled:
        ssl_kwargs = {
            "ssl_keyfile": server.https.key_file,
            "ssl_certfile": server.https.cert_file,
        }
        logger.info("HTTPS enabled.")

    uvicorn.run(
        create_app(),
        host=server.host,
        port=server.port,
        log_config=None,
        **ssl_kwargs,
    )


if __name__ == "__main__":
    run()
