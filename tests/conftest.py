from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio
from aiohttp import test_utils

from kittenclicker.app import create_app
from kittenclicker.config import ServerConfig


@pytest.fixture
def public_dir(tmp_path: Path) -> Path:
    public = tmp_path / "public"
    public.mkdir()
    (public / "main.html").write_text("<html><body>kittens</body></html>", encoding="utf-8")
    (public / "fangdootle.html").write_text("<html><body>fangdootle</body></html>", encoding="utf-8")
    (public / "style.css").write_text("body { color: black; }", encoding="utf-8")
    return public


@pytest.fixture
def config(tmp_path: Path, public_dir: Path) -> ServerConfig:
    return ServerConfig(
        data_dir=str(tmp_path / "data"),
        public_dir=str(public_dir),
        stream_interval_sec=0.05,
    )


@pytest_asyncio.fixture
async def client(config: ServerConfig):
    c = test_utils.TestClient(test_utils.TestServer(create_app(config)))
    await c.start_server()
    try:
        yield c
    finally:
        await c.close()
