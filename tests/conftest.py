import os
import sys

import pytest

# Ensure repository root importable early
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from dungeon_engine import build_store, create_app, db  # noqa: E402


@pytest.fixture()
def test_app():
    app = create_app({"SQLALCHEMY_DATABASE_URI": "sqlite://", "TESTING": True})
    ctx = app.app_context()
    ctx.push()
    try:
        yield app
    finally:
        db.session.remove()
        db.drop_all()
        ctx.pop()


@pytest.fixture()
def store(test_app):
    return build_store()


@pytest.fixture(autouse=True)
def _quiet_logs(monkeypatch):
    # Keep info lines out of captured stdout unless a test opts in
    monkeypatch.setenv("DUNGEON_LOG_LEVEL", "error")
    monkeypatch.delenv("DUNGEON_LOG_JSON", raising=False)
    monkeypatch.delenv("DUNGEON_EVENT_CONFIG", raising=False)
    monkeypatch.delenv("DUNGEON_CATALOG_DIR", raising=False)
