import json
import logging
from urllib.parse import quote

from fastapi import FastAPI, HTTPException, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from ..export import export_excalidraw, export_png
from . import data
from .coordinator import Coordinator
from .deps import *

# logging.basicConfig()
# logging.getLogger("databases").setLevel(logging.DEBUG)

app = FastAPI(title=settings.app_name, debug=settings.debug)

# the picker and the page script both live on other origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def database_connect():
    await database.connect()
    await data.setup_database(database)


@app.on_event("startup")
async def start_coordinator():
    app.repository = data.Repository(database, max_backups=settings.max_backups)
    app.coordinator = Coordinator(
        app.repository, surfaces, auto_save_interval=settings.auto_save_interval
    )
    await app.coordinator.start()


@app.on_event("shutdown")
async def stop_coordinator():
    await app.coordinator.stop()


@app.on_event("shutdown")
async def database_disconnect():
    await database.disconnect()


@app.get("/health")
async def health():
    return {"status": "ok", "surfaces": len(surfaces.surfaces)}


@app.post("/api/message")
async def message(request: Request):
    try:
        payload = await request.json()
    except json.JSONDecodeError:
        return {"success": False, "error": "Message is not valid JSON"}
    return await app.coordinator.handle_message(payload)


@app.post("/api/commands/{command}")
async def keyboard_command(command: str):
    return await app.coordinator.keyboard_command(command)


def attachment(filename):
    return {"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"}


@app.get("/api/drawings/{drawing_id}/export")
async def export_drawing(drawing_id: str, format: str = "excalidraw"):
    drawing = await app.repository.get_drawing(drawing_id)
    if drawing is None:
        raise HTTPException(status_code=404, detail="Drawing not found")
    if format == "excalidraw":
        try:
            filename, content = export_excalidraw(drawing)
        except ValueError:
            # stored blobs are never validated, only the file format needs JSON
            raise HTTPException(status_code=422, detail="Drawing content is not valid scene JSON")
        return Response(content, media_type="application/json", headers=attachment(filename))
    if format == "png":
        try:
            exported = export_png(drawing)
        except ValueError:
            raise HTTPException(status_code=422, detail="Drawing preview is not a data URL")
        if exported is None:
            raise HTTPException(status_code=404, detail="No preview available")
        filename, content = exported
        return Response(content, media_type="image/png", headers=attachment(filename))
    raise HTTPException(status_code=400, detail=f"Unknown export format: {format}")


@app.websocket("/ws/surface")
async def surface_socket(websocket: WebSocket, url: str = ""):
    surface = await surfaces.connect(websocket, url)
    try:
        while True:
            text = await websocket.receive_text()
            try:
                reply = json.loads(text)
            except ValueError:
                logging.warning(f"Ignoring non-JSON frame from {url}: {text!r:.80}")
                continue
            if not isinstance(reply, dict) or not surface.receive(reply):
                logging.debug(f"Unsolicited message from {url}: {reply!r:.80}")
    except WebSocketDisconnect:
        pass
    finally:
        surfaces.disconnect(surface)
