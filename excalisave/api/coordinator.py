import asyncio
import logging
from functools import singledispatchmethod

from pydantic import ValidationError

from .data import Repository
from .models import (
    COMMANDS,
    KEYBOARD_COMMANDS,
    MESSAGE_TYPES,
    DeleteDrawing,
    GetAllDrawings,
    GetBackups,
    GetCurrentId,
    GetDrawing,
    LoadDrawing,
    NewDrawing,
    RestoreBackup,
    SaveNew,
    UpdateDrawing,
    command_adapter,
)
from .ports import ExtractionPort, ExtractionTimeout

AUTO_SAVE_INTERVAL = 20.0


class Declined(Exception):
    """The command has nothing to act on (no surface, no content, no drawing)."""


def failure(error):
    return {"success": False, "error": error}


class Coordinator:
    """Runs surface commands against the repository and owns the auto-save timer.

    Front-end commands come in as messages (see ``models.COMMANDS``) and always
    resolve to a ``{"success": ...}`` dict. The extraction surface is looked up
    through ``port`` once per command. Auto-save runs as an asyncio task between
    :meth:`start` and :meth:`stop` and never reports errors to anyone but the
    log.
    """

    def __init__(
        self,
        repository: Repository,
        port: ExtractionPort,
        auto_save_interval: float = AUTO_SAVE_INTERVAL,
    ):
        self.repository = repository
        self.port = port
        self.auto_save_interval = auto_save_interval
        self._auto_save_task = None

    async def start(self):
        if self._auto_save_task is None:
            self._auto_save_task = asyncio.create_task(self._auto_save_loop())

    async def stop(self):
        task, self._auto_save_task = self._auto_save_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def running(self):
        return self._auto_save_task is not None and not self._auto_save_task.done()

    async def _auto_save_loop(self):
        while True:
            await asyncio.sleep(self.auto_save_interval)
            await self.auto_save()

    async def auto_save(self):
        try:
            target = await self.port.active_target()
            if target is None:
                return None
            current_id = await self.repository.get_current_id()
            if not current_id:
                return None
            extracted = await target.extract()
            if extracted is None:
                return None
            drawing = await self.repository.update_drawing(
                current_id, extracted.data.model_dump(), extracted.preview
            )
            if drawing is None:
                logging.info(f"Auto-save skipped, current drawing {current_id} is gone")
                return None
            target.notify({"type": "AUTO_SAVE_COMPLETE"})
            logging.info(f"Auto-saved: {current_id}")
            return drawing
        except Exception:
            logging.exception("Auto-save failed")
            return None

    async def keyboard_command(self, command: str):
        if command not in KEYBOARD_COMMANDS:
            return failure(f"Unknown command: {command}")
        if command == "save":
            current_id = await self.repository.get_current_id()
            if current_id:
                return await self.dispatch(UpdateDrawing(id=current_id))
        # naming is the front-end's job
        return {"success": True, "action": "PROMPT_SAVE_AS"}

    async def handle_message(self, message):
        if not isinstance(message, dict) or message.get("type") not in MESSAGE_TYPES:
            return failure("Unknown message type")
        try:
            command = command_adapter.validate_python(message)
        except ValidationError as e:
            return failure(f"Invalid {message['type']} message: {e}")
        return await self.dispatch(command)

    async def dispatch(self, command):
        try:
            return await self.handle(command)
        except Declined as e:
            logging.info(f"{command.type} declined: {e}")
            return failure(str(e))
        except Exception as e:
            logging.exception(f"{command.type} failed")
            return failure(str(e))

    async def _target(self):
        target = await self.port.active_target()
        if target is None:
            raise Declined("No active tab")
        return target

    async def _extract(self):
        target = await self._target()
        try:
            extracted = await target.extract()
        except ExtractionTimeout:
            raise Declined("Extraction timed out")
        if extracted is None:
            raise Declined("No data to save")
        return target, extracted

    @singledispatchmethod
    async def handle(self, command):
        raise TypeError(f"No handler for {type(command).__name__}")

    @handle.register
    async def _(self, command: GetAllDrawings):
        drawings = await self.repository.list_drawings(command.search)
        return {"success": True, "drawings": [d.to_dict() for d in drawings]}

    @handle.register
    async def _(self, command: GetDrawing):
        drawing = await self.repository.get_drawing(command.id)
        return {"success": True, "drawing": drawing.to_dict() if drawing else None}

    @handle.register
    async def _(self, command: SaveNew):
        target, extracted = await self._extract()
        drawing = await self.repository.create_drawing(
            command.name, extracted.data.model_dump(), extracted.preview
        )
        try:
            await target.push({"type": "SET_CURRENT_ID", "id": drawing.id})
        except Exception:
            # stored already, the page learns its id on the next load
            logging.exception(f"Could not tell surface about new drawing {drawing.id}")
        return {"success": True, "drawing": drawing.to_dict()}

    @handle.register
    async def _(self, command: UpdateDrawing):
        drawing_id = command.id or await self.repository.get_current_id()
        if not drawing_id:
            raise Declined("No current drawing")
        _, extracted = await self._extract()
        drawing = await self.repository.update_drawing(
            drawing_id, extracted.data.model_dump(), extracted.preview
        )
        if drawing is None:
            raise Declined("Drawing not found")
        return {"success": True, "drawing": drawing.to_dict()}

    @handle.register
    async def _(self, command: LoadDrawing):
        drawing = await self.repository.get_drawing(command.id)
        if drawing is None:
            raise Declined("Drawing not found")
        target = await self._target()
        await target.push({"type": "LOAD_DATA", "data": drawing.data, "id": drawing.id})
        await self.repository.set_current_id(drawing.id)
        return {"success": True}

    @handle.register
    async def _(self, command: DeleteDrawing):
        await self.repository.delete_drawing(command.id)
        return {"success": True}

    @handle.register
    async def _(self, command: GetCurrentId):
        return {"success": True, "id": await self.repository.get_current_id()}

    @handle.register
    async def _(self, command: NewDrawing):
        target = await self.port.active_target()
        if target is not None:
            await target.push({"type": "NEW_DRAWING"})
        await self.repository.set_current_id(None)
        return {"success": True}

    @handle.register
    async def _(self, command: GetBackups):
        backups = await self.repository.list_backups(command.drawingId)
        return {"success": True, "backups": [b.to_dict() for b in backups]}

    @handle.register
    async def _(self, command: RestoreBackup):
        drawing = await self.repository.restore_from_backup(command.backupId)
        return {
            "success": drawing is not None,
            "drawing": drawing.to_dict() if drawing else None,
        }


def unhandled_commands():
    registry = Coordinator.__dict__["handle"].dispatcher.registry
    return [cls for cls in COMMANDS if cls not in registry]


assert not unhandled_commands(), f"Commands without a handler: {unhandled_commands()}"
