from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

# These API models are specifically a layer for:
# 1. Defining the message contract between the surfaces and the coordinator
# 2. Validating the data that comes in from a surface
# 3. Converting the data to the correct type in python (json -> python)

# Stored entities live in ..core, handlers convert with Drawing.to_dict()


class DrawingData(BaseModel):
    # serialized blobs, stored verbatim and never parsed
    elements: str
    appState: str


class ExtractResult(BaseModel):
    data: Optional[DrawingData] = None
    preview: Optional[str] = None
    currentId: Optional[str] = None


class Message(BaseModel):
    # pages may send numeric ids, lookups then simply miss
    model_config = ConfigDict(coerce_numbers_to_str=True)


class GetAllDrawings(Message):
    type: Literal["GET_ALL_DRAWINGS"] = "GET_ALL_DRAWINGS"
    search: Optional[str] = None


class GetDrawing(Message):
    type: Literal["GET_DRAWING"] = "GET_DRAWING"
    id: str


class SaveNew(Message):
    type: Literal["SAVE_NEW"] = "SAVE_NEW"
    name: str


class UpdateDrawing(Message):
    type: Literal["UPDATE_DRAWING"] = "UPDATE_DRAWING"
    # falls back to the current drawing when omitted
    id: Optional[str] = None


class LoadDrawing(Message):
    type: Literal["LOAD_DRAWING"] = "LOAD_DRAWING"
    id: str


class DeleteDrawing(Message):
    type: Literal["DELETE_DRAWING"] = "DELETE_DRAWING"
    id: str


class GetCurrentId(Message):
    type: Literal["GET_CURRENT_ID"] = "GET_CURRENT_ID"


class NewDrawing(Message):
    type: Literal["NEW_DRAWING"] = "NEW_DRAWING"


class GetBackups(Message):
    type: Literal["GET_BACKUPS"] = "GET_BACKUPS"
    drawingId: str


class RestoreBackup(Message):
    type: Literal["RESTORE_BACKUP"] = "RESTORE_BACKUP"
    backupId: str


COMMANDS = (
    GetAllDrawings,
    GetDrawing,
    SaveNew,
    UpdateDrawing,
    LoadDrawing,
    DeleteDrawing,
    GetCurrentId,
    NewDrawing,
    GetBackups,
    RestoreBackup,
)

Command = Annotated[Union[COMMANDS], Field(discriminator="type")]

command_adapter = TypeAdapter(Command)

MESSAGE_TYPES = {cls.model_fields["type"].default for cls in COMMANDS}

KEYBOARD_COMMANDS = ("save", "save-as")
