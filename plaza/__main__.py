"""
plaza.__main__ — Entry point for ``python -m plaza``
=====================================================

Wiring:
1. Load .env (secrets, DATABASE_URL).
2. Load config.yaml (soft settings) — fail fast if missing.
3. Create the SQLAlchemy engine and ensure tables exist.
4. Serve the FastAPI + Socket.IO app with uvicorn.
"""

from __future__ import annotations

import logging
import os

import uvicorn
from dotenv import load_dotenv

from plaza.config import load_config
from plaza.database.engine import create_db_engine, init_db

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("plaza")


def main() -> None:
    """Bootstrap and run the Plaza server."""
    load_dotenv()

    cfg = load_config(os.getenv("PLAZA_CONFIG", "config.yaml"))
    logger.info("Config loaded — Site: %s", cfg.site_name)

    init_db(create_db_engine())

    port = int(os.getenv("PORT", "3000"))
    logger.info("Starting Plaza on port %d…", port)
    uvicorn.run("plaza.api.main:asgi_app", host="0.0.0.0", port=port, log_config=None)


if __name__ == "__main__":
    main()
