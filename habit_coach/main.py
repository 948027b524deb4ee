import asyncio
import logging

import uvicorn

from habit_coach.config import settings
from habit_coach.core.database import init_models
from habit_coach.core.scheduler import insight_scheduler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def main(host: str = "0.0.0.0", port: int = 8000):
    logger.info("Starting habit coach...")

    await init_models()
    insight_scheduler.start()

    server = uvicorn.Server(
        uvicorn.Config("habit_coach.api.app:app", host=host, port=port, log_level=settings.LOG_LEVEL.lower())
    )
    try:
        await server.serve()
    finally:
        insight_scheduler.shutdown()
        if insight_scheduler.ai_service is not None:
            await insight_scheduler.ai_service.aclose()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
