from __future__ import annotations

import importlib
import logging
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .batches.controller import register as register_batches
from .common.web import register_error_handlers
from .container import Container, build_container
from .core.constants import DEFAULT_AUTO_LOCK_HOURS, DEFAULT_PAGE_LIMIT
from .daily_updates.controller import register as register_daily_updates
from .database.bootstrap import apply_schema, ensure_admin_user, list_tables

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parents[3] / "database" / "schema.sql"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(container: Container | None = None) -> Flask:
    """App factory.

    ``container`` lets tests hand in services wired over in-memory
    repositories; otherwise a MySQL-backed one is built from settings.
    """

    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )

        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config, schema_path=SCHEMA_PATH)
            admin_email = getattr(settings, "ADMIN_EMAIL", None)
            if admin_email:
                ensure_admin_user(db_config, email=admin_email)
            logger.info("schema ready (tables=%s)", len(list_tables(db_config)))

        container = build_container(
            db_config=db_config,
            auto_lock_hours=int(getattr(settings, "AUTO_LOCK_HOURS", DEFAULT_AUTO_LOCK_HOURS)),
            page_limit=int(getattr(settings, "DEFAULT_PAGE_LIMIT", DEFAULT_PAGE_LIMIT)),
        )

    register_error_handlers(app)
    register_attendance(app, container)
    register_daily_updates(app, container)
    register_batches(app, container)

    @app.route("/api/health", methods=["GET"], endpoint="health")
    def health():
        return {"success": True, "status": "ok"}

    return app
