from __future__ import annotations

import argparse
import importlib
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.batch_attendance.batch_attendance.database.bootstrap import apply_schema, ensure_admin_user, list_tables

logger = logging.getLogger("init_db")


def main() -> None:
    parser = argparse.ArgumentParser(description="Apply database/schema.sql and create the first admin user.")
    parser.add_argument("--admin-email", help="Email of the ADMIN account to create (defaults to ADMIN_EMAIL)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)

    apply_schema(db_config, schema_path=REPO_ROOT / "database" / "schema.sql")

    admin_email = args.admin_email or getattr(settings, "ADMIN_EMAIL", None)
    if admin_email:
        admin_id = ensure_admin_user(db_config, email=admin_email)
        logger.info("Admin user %s has id %s", admin_email, admin_id)

    tables = list_tables(db_config)
    logger.info(
        "OK: Applied schema.sql -> %s@%s:%s/%s (tables=%s)",
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
        len(tables),
    )


if __name__ == "__main__":
    main()
