import asyncio
import logging
import sys

from backend.app.core.config import get_settings
from backend.app.core.logging import configure_logging
from backend.app.db.session import Database

logger = logging.getLogger(__name__)


async def init_models():
    database = Database(get_settings())
    try:
        await database.create_all()
        logger.info("event=tables_created")
    except Exception:
        logger.exception("event=tables_create_failed")
        raise
    finally:
        await database.dispose()


if __name__ == "__main__":
    configure_logging()
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(init_models())
