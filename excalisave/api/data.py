import asyncio
import json
import logging

from databases import Database

from ..core import Backup, Drawing, copy_data, now_iso, rotate_backups

# https://www.encode.io/databases/database_queries/
# database = Database("sqlite+aiosqlite:///excalisave.db")

MIGRATION_VERSION_TABLE = "mochaver"

DRAWINGS_KEY = "excalisave:drawings"
CURRENT_KEY = "excalisave:current"
BACKUPS_KEY = "excalisave:backups"


async def table_exists(db: Database, table_name: str):
    query = "SELECT name FROM sqlite_master WHERE type='table' AND name=:table_name;"
    result = await db.fetch_one(query, values={"table_name": table_name})
    return result is not None


async def get_migration_version(db: Database):
    if await table_exists(db, MIGRATION_VERSION_TABLE):
        version_query = f"SELECT version FROM {MIGRATION_VERSION_TABLE};"
        row = await db.fetch_one(version_query)
        return row["version"]
    return None


async def set_version(db: Database, version: int):
    query = f"UPDATE {MIGRATION_VERSION_TABLE} SET version = :version;"
    await db.execute(query, values={"version": version})


MIGRATIONS = {}


async def setup_database(db: Database):
    async with db.transaction():
        migration_version = await get_migration_version(db)
        for _, migration in sorted(MIGRATIONS.items(), key=lambda x: x[0]):
            await migration(db, migration_version)


def migration(version: int):
    def decorator(func):
        async def run_migration(db: Database, db_version: int):
            if db_version is None or db_version < version:
                logging.info(f"Running migration {version}")
                await func(db)
                await set_version(db, version)

        MIGRATIONS[version] = run_migration
        return run_migration

    return decorator


@migration(0)
async def migration_0(db: Database):
    create_migration_table = f"""
        CREATE TABLE {MIGRATION_VERSION_TABLE} (
            version INTEGER NOT NULL PRIMARY KEY
        ) WITHOUT ROWID;
    """
    await db.execute(create_migration_table)
    await db.execute(f"INSERT INTO {MIGRATION_VERSION_TABLE} (version) VALUES (0);")


@migration(1)
async def migration_1(db: Database):
    # one row per top-level entry, each value a JSON document
    query = """
        CREATE TABLE kv (
            key TEXT NOT NULL PRIMARY KEY,
            value TEXT NOT NULL
        ) WITHOUT ROWID;
    """
    await db.execute(query)


async def get_value(db: Database, key: str, default=None):
    query = """
        SELECT
            value
        FROM kv
        WHERE
            (key = :key)
    """
    row = await db.fetch_one(query, values={"key": key})
    if row is None:
        return default
    return json.loads(row["value"])


async def set_value(db: Database, key: str, value):
    query = """
        INSERT OR REPLACE INTO kv (key, value)
        VALUES (:key, :value);
    """
    await db.execute(query, values={"key": key, "value": json.dumps(value)})


async def remove_value(db: Database, key: str):
    query = """
        DELETE FROM kv
        WHERE
            (key = :key)
    """
    await db.execute(query, values={"key": key})


class Repository:
    """Drawings, the current-drawing pointer and per-drawing backups.

    Every public method is one unit of work: collections are read, modified and
    written back whole inside a single transaction, and the lock keeps two
    coroutines of this process from interleaving their read-modify-write
    cycles. Nothing here knows about surfaces or messages.

    Not-found is never an exception: lookups return ``None`` and deleting an
    unknown drawing does nothing.
    """

    def __init__(self, db: Database, max_backups: int = 5):
        self.db = db
        self.max_backups = max_backups
        self._lock = asyncio.Lock()

    async def _load_drawings(self):
        return [Drawing.from_dict(d) for d in await get_value(self.db, DRAWINGS_KEY, [])]

    async def _store_drawings(self, drawings):
        await set_value(self.db, DRAWINGS_KEY, [d.to_dict() for d in drawings])

    async def _load_backups(self):
        return [Backup.from_dict(b) for b in await get_value(self.db, BACKUPS_KEY, [])]

    async def _store_backups(self, backups):
        await set_value(self.db, BACKUPS_KEY, [b.to_dict() for b in backups])

    async def _add_backup(self, drawing_id, data):
        backups = await self._load_backups()
        backup = Backup.snapshot(drawing_id, data)
        await self._store_backups(rotate_backups(backups, backup, self.max_backups))
        return backup

    async def _set_current_id(self, drawing_id):
        if drawing_id:
            await set_value(self.db, CURRENT_KEY, drawing_id)
        else:
            await remove_value(self.db, CURRENT_KEY)

    async def list_drawings(self, search: str = None):
        async with self._lock:
            drawings = await self._load_drawings()
        if search:
            drawings = [d for d in drawings if search.lower() in d.name.lower()]
        return drawings

    async def get_drawing(self, drawing_id):
        async with self._lock:
            drawings = await self._load_drawings()
        for drawing in drawings:
            if drawing.id == drawing_id:
                return drawing
        return None

    async def create_drawing(self, name: str, data, preview: str = None):
        drawing = Drawing.new(name, data, preview)
        async with self._lock, self.db.transaction():
            drawings = await self._load_drawings()
            drawings.append(drawing)
            await self._store_drawings(drawings)
            await self._set_current_id(drawing.id)
            await self._add_backup(drawing.id, drawing.data)
        return drawing

    async def update_drawing(self, drawing_id, data, preview: str = None):
        async with self._lock, self.db.transaction():
            drawings = await self._load_drawings()
            for drawing in drawings:
                if drawing.id == drawing_id:
                    break
            else:
                return None
            drawing.updated_at = now_iso()
            drawing.data = copy_data(data)
            # a headless save carries no thumbnail, keep the previous one
            if preview:
                drawing.preview = preview
            await self._store_drawings(drawings)
            await self._add_backup(drawing.id, drawing.data)
        return drawing

    async def delete_drawing(self, drawing_id):
        async with self._lock, self.db.transaction():
            drawings = await self._load_drawings()
            await self._store_drawings([d for d in drawings if d.id != drawing_id])
            if await get_value(self.db, CURRENT_KEY) == drawing_id:
                await self._set_current_id(None)
            backups = await self._load_backups()
            await self._store_backups([b for b in backups if b.drawing_id != drawing_id])

    async def get_current_id(self):
        async with self._lock:
            return await get_value(self.db, CURRENT_KEY) or None

    async def set_current_id(self, drawing_id):
        async with self._lock:
            await self._set_current_id(drawing_id)

    async def list_backups(self, drawing_id):
        async with self._lock:
            backups = await self._load_backups()
        return [b for b in backups if b.drawing_id == drawing_id]

    async def restore_from_backup(self, backup_id):
        async with self._lock:
            backups = await self._load_backups()
        for backup in backups:
            if backup.id == backup_id:
                # the restored state is itself backed up, history only grows
                return await self.update_drawing(backup.drawing_id, backup.data)
        return None
