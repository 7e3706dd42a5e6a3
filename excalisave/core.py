import datetime
import random
import string
import time
import uuid

MAX_BACKUPS = 5

# These object models are the storage shape, the pydantic models in
# api/models.py are the wire shape for incoming messages. Both use the same
# camelCase keys so a stored drawing can be sent back as-is.


def now_iso():
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def _millis():
    return int(time.time() * 1000)


def generate_id():
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"drawing_{_millis()}_{suffix}"


def generate_backup_id():
    # millisecond stamp alone collides when two saves land in the same tick
    return f"backup_{_millis()}_{uuid.uuid4().hex[:8]}"


def copy_data(data):
    """Shallow copy of a content payload, {"elements": str, "appState": str}."""
    return {"elements": data["elements"], "appState": data["appState"]}


class Drawing:
    def __init__(self, id, name, created_at, updated_at, data, preview=None):
        self.id = id
        self.name = name
        self.created_at = created_at
        self.updated_at = updated_at
        self.preview = preview
        self.data = data

    @classmethod
    def new(cls, name, data, preview=None):
        now = now_iso()
        return cls(generate_id(), name, now, now, copy_data(data), preview)

    def to_dict(self):
        result = {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "data": copy_data(self.data),
        }
        if self.preview is not None:
            result["preview"] = self.preview
        return result

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data["id"],
            name=data["name"],
            created_at=data["createdAt"],
            updated_at=data["updatedAt"],
            data=copy_data(data["data"]),
            preview=data.get("preview"),
        )

    def __eq__(self, other):
        if not isinstance(other, Drawing):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"Drawing(id={self.id!r}, name={self.name!r}, updated_at={self.updated_at!r})"


class Backup:
    def __init__(self, id, drawing_id, timestamp, data):
        self.id = id
        self.drawing_id = drawing_id
        self.timestamp = timestamp
        self.data = data

    @classmethod
    def snapshot(cls, drawing_id, data):
        return cls(generate_backup_id(), drawing_id, now_iso(), copy_data(data))

    def to_dict(self):
        return {
            "id": self.id,
            "drawingId": self.drawing_id,
            "timestamp": self.timestamp,
            "data": copy_data(self.data),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data["id"],
            drawing_id=data["drawingId"],
            timestamp=data["timestamp"],
            data=copy_data(data["data"]),
        )

    def __eq__(self, other):
        if not isinstance(other, Backup):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"Backup(id={self.id!r}, drawing_id={self.drawing_id!r})"


def rotate_backups(backups, backup, keep=MAX_BACKUPS):
    """Append ``backup`` to its drawing's history, keeping only the last ``keep``.

    Backups belonging to other drawings are returned untouched, ahead of the
    rotated partition.
    """
    own = [b for b in backups if b.drawing_id == backup.drawing_id]
    others = [b for b in backups if b.drawing_id != backup.drawing_id]
    return others + (own + [backup])[-keep:]
