import datetime
import itertools
import json

import pytest
import pytest_asyncio
from databases import Database

from excalisave.api import data
from excalisave.api.ports import ExtractionPort, Surface


def scene(n):
    return {
        "elements": json.dumps([{"id": f"rect-{n}", "type": "rectangle", "x": n}]),
        "appState": json.dumps({"viewBackgroundColor": "#ffffff", "zoom": {"value": n}}),
    }


class FakeSurface(Surface):
    def __init__(self, content=None, preview=None):
        super().__init__()
        self.content = content
        self.preview = preview
        self.requests = []
        self.sent = []

    async def request(self, message):
        self.requests.append(message)
        if message["type"] == "EXTRACT_DATA":
            return {"data": self.content, "preview": self.preview}
        if message["type"] == "LOAD_DATA":
            self.content = message["data"]
        elif message["type"] == "NEW_DRAWING":
            self.content = None
        return {"success": True}

    async def send(self, message):
        self.sent.append(message)

    def request_types(self):
        return [m["type"] for m in self.requests]


class FakePort(ExtractionPort):
    def __init__(self, surface=None):
        self.surface = surface

    async def active_target(self):
        return self.surface


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'excalisave.db'}"


@pytest_asyncio.fixture
async def database(db_url):
    db = Database(db_url)
    await db.connect()
    await data.setup_database(db)
    yield db
    await db.disconnect()


@pytest_asyncio.fixture
async def repository(database):
    return data.Repository(database)


@pytest.fixture
def clock(mocker):
    """Deterministic, strictly increasing timestamps."""
    start = datetime.datetime(2024, 3, 1, tzinfo=datetime.timezone.utc)
    ticks = (
        (start + datetime.timedelta(seconds=n)).isoformat() for n in itertools.count()
    )

    def fake_now():
        return next(ticks)

    mocker.patch("excalisave.core.now_iso", side_effect=fake_now)
    mocker.patch("excalisave.api.data.now_iso", side_effect=fake_now)
