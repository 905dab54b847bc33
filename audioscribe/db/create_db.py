#!/usr/bin/env python3
"""
Simple database creation script.
Creates every table from the ORM metadata using DATABASE_URL from the environment.
"""

import logging
import sys

from audioscribe.core.config import Settings
from audioscribe.db.connection import create_db_engine, init_db

logger = logging.getLogger(__name__)


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s")
    settings = Settings()
    engine = create_db_engine(settings.DATABASE_URL)
    try:
        init_db(engine)
    except Exception as e:
        logger.error(f"Database creation failed: {e}", exc_info=True)
        sys.exit(1)
    finally:
        engine.dispose()
    logger.info("Database created successfully")


if __name__ == "__main__":
    main()
