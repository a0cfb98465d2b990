# tests/conftest.py
# PURPOSE: temp SQLite per test, a TestClient with get_db overridden, fake channels, seed helpers.

# Ensure project root is on sys.path so `import todo_alert` works when running pytest.
import sys, os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from datetime import date

import pytest
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from todo_alert.api.deps import get_channels
from todo_alert.db import Base, make_engine
from todo_alert.db_models import SubtaskDB, TaskDB, UserDB
from todo_alert.main import app
from todo_alert.rate_limit import reset_limits
from todo_alert.store_db import get_db


class FakeChannel:
    """Records every send; can be told to report failure or to raise."""

    def __init__(self, name: str, fail: bool = False, explode: bool = False):
        self.name = name
        self.fail = fail
        self.explode = explode
        self.enabled = True
        self.sent = []  # (task_id, is_reminder)
        self.texts = []  # (destination, text)

    def is_enabled_for(self, owner):
        return self.enabled

    def send(self, task, owner, is_reminder=False):
        if self.explode:
            raise RuntimeError(f"{self.name} is down")
        if not self.enabled:
            return False
        self.sent.append((task.id, is_reminder))
        return not self.fail

    def send_text(self, destination, text):
        self.texts.append((destination, text))
        return not self.fail

    def close(self):
        pass


@pytest.fixture()
def session_factory(tmp_path):
    # 1) Temporary SQLite file so data is isolated per test
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    # 2) Create tables
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    # 3) Cleanup
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def channels():
    return [FakeChannel("whatsapp"), FakeChannel("telegram"), FakeChannel("sms")]


@pytest.fixture()
def client(session_factory, channels):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_channels] = lambda: channels
    reset_limits()

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


PHONE = "+15550000001"
PASSWORD = "secret-123"


@pytest.fixture()
def auth_client(client):
    """Client carrying a bearer token for a freshly registered user."""
    r = client.post("/auth/register", json={"phone_number": PHONE, "name": "Tester", "password": PASSWORD})
    assert r.status_code == 201
    r = client.post("/auth/login", data={"username": PHONE, "password": PASSWORD})
    assert r.status_code == 200
    client.headers.update({"Authorization": f"Bearer {r.json()['access_token']}"})
    return client


@pytest.fixture()
def make_user(session_factory):
    def _make(phone="+15550001000", **prefs):
        values = dict(
            whatsapp_enabled=True,
            whatsapp_number="+15550001000",
            telegram_enabled=True,
            telegram_chat_id="4242",
            sms_enabled=True,
            sms_number="+15550001000",
        )
        values.update(prefs)
        with session_factory() as db:
            user = UserDB(phone_number=phone, name="Owner", **values)
            db.add(user)
            db.commit()
            return user.id

    return _make


@pytest.fixture()
def make_task(session_factory):
    def _make(user_id, *, subtasks=(), **fields):
        values = dict(
            title="Task",
            due_date=date(2024, 6, 1),
            due_time="10:00",
            recurring="none",
            priority="medium",
            category="general",
            reminder_minutes=0,
        )
        values.update(fields)
        with session_factory() as db:
            row = TaskDB(user_id=user_id, **values)
            for text, completed in subtasks:
                row.subtasks.append(SubtaskDB(text=text, completed=completed))
            db.add(row)
            db.commit()
            return row.id

    return _make


@pytest.fixture()
def load_task(session_factory):
    def _load(task_id):
        with session_factory() as db:
            row = db.get(TaskDB, task_id)
            if row is not None:
                row.subtasks  # load before the session closes
                db.expunge(row)
            return row

    return _load
