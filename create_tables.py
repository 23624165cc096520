import asyncio
import logging

from app.db.session import init_models

logger = logging.getLogger(__name__)


async def create_all():
    await init_models()
    logger.info("All tables have been created")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(create_all())
