"""HTTP entrypoint: count submissions, aggregate polling + stream, game pages."""

from __future__ import annotations

import logging
import os
import time

from aiohttp import web

from kittenclicker import protocol
from kittenclicker.config import ServerConfig
from kittenclicker.net.stream import CountStreamHub
from kittenclicker.storage.json_store import UserStore

_logger = logging.getLogger(__name__)


class ClickerService:
    def __init__(self, config: ServerConfig):
        self.config = config
        self.start_time = time.time()

        self.store = UserStore(self.config.data_path)
        self.streams = CountStreamHub(self)

    async def start(self) -> None:
        self.store.ensure_dir()
        self.store.load()

    async def stop(self) -> None:
        await self.streams.close_all()

    def health_payload(self) -> dict:
        return {
            "ok": True,
            "uptimeSec": time.time() - self.start_time,
            "users": len(self.store),
            "streams": len(self.streams),
            "serverVersion": self.config.server_version,
        }


CONFIG_KEY = web.AppKey("config", ServerConfig)
SVC_KEY = web.AppKey("svc", ClickerService)


def _cors_headers(config: ServerConfig, origin: str | None) -> dict[str, str]:
    if not origin:
        return {}
    if config.cors_allow_all or origin in config.cors_allowed_origins:
        return {"Access-Control-Allow-Origin": origin, "Vary": "Origin"}
    return {}


@web.middleware
async def cors_middleware(request: web.Request, handler):
    if request.method == "OPTIONS":
        origin = request.headers.get("Origin")
        headers = {
            **_cors_headers(request.app[CONFIG_KEY], origin),
            "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type",
            "Access-Control-Max-Age": "86400",
        }
        return web.Response(status=204, headers=headers)

    resp = await handler(request)

    # The event stream has already sent its headers by the time it returns.
    if resp.prepared:
        return resp

    origin = request.headers.get("Origin")
    for k, v in _cors_headers(request.app[CONFIG_KEY], origin).items():
        resp.headers[k] = v
    return resp


def create_app(config: ServerConfig) -> web.Application:
    app = web.Application(middlewares=[cors_middleware])
    svc = ClickerService(config)

    app[CONFIG_KEY] = config
    app[SVC_KEY] = svc

    async def on_startup(_: web.Application):
        await svc.start()
        _logger.info("Serving %d users from %s", len(svc.store), svc.store.path)

    async def on_shutdown(_: web.Application):
        await svc.stop()

    app.on_startup.append(on_startup)
    app.on_shutdown.append(on_shutdown)

    async def userlist(request: web.Request):
        try:
            body = protocol.loads_body(await request.read()) if request.can_read_body else {}
            sub = protocol.Submission.parse(body)
            svc.store.submit(sub.userId, sub.playerCount, sub.extra)
        except protocol.InvalidSubmission as e:
            return web.json_response({"error": str(e)}, status=400)
        except Exception:
            _logger.exception("Error saving user data")
            return web.json_response({"error": "Failed to save data"}, status=500)
        return web.json_response({"success": True, "message": "Data saved successfully"})

    async def player_count(_: web.Request):
        return web.json_response(svc.store.aggregate())

    async def player_count_stream(request: web.Request):
        return await svc.streams.handle(request)

    async def health(_: web.Request):
        return web.json_response(svc.health_payload())

    def page(name: str):
        async def handler(_: web.Request):
            path = os.path.join(config.public_dir, name)
            if not os.path.isfile(path):
                raise web.HTTPNotFound(text=f"{name} not found")
            return web.FileResponse(path)

        return handler

    app.router.add_post("/userlist", userlist)
    app.router.add_get("/player-count", player_count)
    app.router.add_get("/player-count-stream", player_count_stream)
    app.router.add_get("/health", health)
    app.router.add_get("/fangdootle", page("fangdootle.html"))
    app.router.add_get("/", page("main.html"))
    if os.path.isdir(config.public_dir):
        # Remaining assets (scripts, styles, images) by path.
        app.router.add_static("/", config.public_dir)
    else:
        _logger.warning("Public directory %s does not exist; static assets disabled", config.public_dir)

    return app


def main() -> None:
    config = ServerConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(config)
    web.run_app(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
