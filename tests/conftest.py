from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from nanobanana.main import create_app
from nanobanana.utils.config import (
    BackendConfig,
    CacheConfig,
    Config,
    StaticConfig,
    StreamConfig,
)

BACKEND_URL = "https://backend.test/v1/chat/completions"


def backend_reply(message: dict, status_code: int = 200) -> dict:
    """Keyword arguments for httpx_mock.add_response answering with one choice."""
    return {
        "url": BACKEND_URL,
        "method": "POST",
        "status_code": status_code,
        "json": {"choices": [{"index": 0, "message": message}]},
    }


@pytest.fixture
def config(tmp_path) -> Config:
    (tmp_path / "index.html").write_text("<h1>hello</h1>", encoding="utf-8")
    return Config(
        backend=BackendConfig(api_base_url=BACKEND_URL, api_key=None),
        cache=CacheConfig(enabled=False),
        stream=StreamConfig(char_delay=0),
        static=StaticConfig(root=str(tmp_path)),
    )


@pytest.fixture
def client(config: Config) -> Iterator[TestClient]:
    with TestClient(create_app(config)) as test_client:
        yield test_client
