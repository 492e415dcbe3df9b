"""
project: Dungeon Engine
module: __init__.py

Application factory and core extension setup.

This module owns the Flask-SQLAlchemy handle and wires the engine pieces
together. Configuration is sourced from environment variables (a local
``.env`` is loaded when present) with defaults suited to development:

    DATABASE_URL            SQLAlchemy URL (default: sqlite file in ./instance)
    DUNGEON_EVENT_CONFIG    path to an event config JSON
    DUNGEON_CATALOG_DIR     directory holding monsters/drops/items JSON
    DUNGEON_BATCH_*         batch runner limits (see config.BatchConfig)
    DUNGEON_LOG_LEVEL       debug|info|warn|error
    DUNGEON_LOG_JSON        1 for JSON log lines
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask
from flask_sqlalchemy import SQLAlchemy

load_dotenv()

db = SQLAlchemy(session_options={"expire_on_commit": False})

__version__ = "0.1.0"


def _database_url(app: Flask) -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    os.makedirs(app.instance_path, exist_ok=True)
    # Use POSIX path for SQLAlchemy URI compatibility across OS
    return f"sqlite:///{(Path(app.instance_path) / 'dungeon.db').as_posix()}"


def create_app(overrides=None) -> Flask:
    """Build the Flask app, bind the database and create missing tables.

    ``overrides`` is applied on top of the environment-derived config, which
    is how tests point the app at an in-memory database.
    """
    app = Flask(__name__, instance_relative_config=True)
    overrides = dict(overrides or {})
    app.config.update(
        SQLALCHEMY_DATABASE_URI=overrides.get("SQLALCHEMY_DATABASE_URI") or _database_url(app),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        DUNGEON_EVENT_CONFIG=os.getenv("DUNGEON_EVENT_CONFIG"),
        DUNGEON_CATALOG_DIR=os.getenv("DUNGEON_CATALOG_DIR"),
    )
    app.config.update(overrides)

    engine_opts = {}
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
        # busy timeout (seconds) for sqlite; allow use across threads in the test harness
        engine_opts["connect_args"] = {"timeout": 10, "check_same_thread": False}
        if app.config["SQLALCHEMY_DATABASE_URI"] in ("sqlite://", "sqlite:///:memory:"):
            from sqlalchemy.pool import StaticPool

            engine_opts["poolclass"] = StaticPool
    app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", engine_opts)

    db.init_app(app)

    from . import models  # noqa: F401
    from .models import records  # noqa: F401  (register tables)

    with app.app_context():
        db.create_all()
    return app


def build_store():
    """Return the SQL store bound to the current app's session."""
    from .services.store import SQLAlchemyDungeonStore

    return SQLAlchemyDungeonStore(db.session)


def build_engine(app: Flask = None, rng_factory=None):
    """Load configuration and catalogs and return a ready ``DungeonEventEngine``."""
    from .catalog import load_catalog
    from .config import load_event_config
    from .services.event_service import DungeonEventEngine

    config_path = app.config.get("DUNGEON_EVENT_CONFIG") if app is not None else None
    catalog_dir = app.config.get("DUNGEON_CATALOG_DIR") if app is not None else None
    return DungeonEventEngine(
        load_catalog(catalog_dir),
        load_event_config(config_path),
        rng_factory=rng_factory,
    )


__all__ = ["db", "create_app", "build_engine", "build_store", "__version__"]
