import asyncio
import logging
import uuid
from typing import Optional

from databases import Database
from fastapi import WebSocket
from pydantic_settings import BaseSettings, SettingsConfigDict

from .ports import ExtractionPort, Surface


# https://fastapi.tiangolo.com/advanced/settings/
class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="excalisave_")

    app_name: str = "ExcaliSave"
    db_url: str = "sqlite+aiosqlite:///excalisave.db"
    debug: bool = False
    auto_save_interval: float = 20.0
    # no timeout unless configured, a hung surface then blocks that one command
    extraction_timeout: Optional[float] = None
    target_origin: str = "https://excalidraw.com"
    max_backups: int = 5


settings = Settings()

database = Database(
    settings.db_url,
)


class WebSocketSurface(Surface):
    def __init__(self, websocket: WebSocket, url: str, timeout: Optional[float] = None):
        super().__init__()
        self.websocket = websocket
        self.url = url
        self.timeout = timeout
        self.pending = {}

    async def request(self, message: dict) -> dict:
        request_id = uuid.uuid4().hex
        future = asyncio.get_running_loop().create_future()
        self.pending[request_id] = future
        try:
            await self.websocket.send_json({**message, "requestId": request_id})
            return await future
        finally:
            self.pending.pop(request_id, None)

    async def send(self, message: dict):
        await self.websocket.send_json(message)

    def receive(self, reply: dict):
        future = self.pending.get(reply.get("requestId"))
        if future is None or future.done():
            return False
        future.set_result(reply)
        return True

    def close(self):
        for future in self.pending.values():
            if not future.done():
                future.set_exception(ConnectionError(f"Surface {self.url} disconnected"))
        self.pending.clear()


class SurfaceManager(ExtractionPort):
    """Page surfaces connected over websockets; the newest matching one is active."""

    def __init__(self, target_origin: str = "", timeout: Optional[float] = None):
        self.target_origin = target_origin
        self.timeout = timeout
        self.surfaces = []

    async def connect(self, websocket: WebSocket, url: str):
        await websocket.accept()
        surface = WebSocketSurface(websocket, url, timeout=self.timeout)
        self.surfaces.append(surface)
        logging.info(f"Surface connected: {url}")
        return surface

    def disconnect(self, surface: WebSocketSurface):
        if surface in self.surfaces:
            self.surfaces.remove(surface)
        surface.close()
        logging.info(f"Surface disconnected: {surface.url}")

    async def active_target(self) -> Optional[WebSocketSurface]:
        for surface in reversed(self.surfaces):
            if surface.url.startswith(self.target_origin):
                return surface
        return None


surfaces = SurfaceManager(settings.target_origin, timeout=settings.extraction_timeout)
