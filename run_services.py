import asyncio
import logging
import uvicorn

logger = logging.getLogger(__name__)


async def start_servers():
    config = uvicorn.Config(
        "billing_service.app.main:app",
        host="0.0.0.0",
        port=8003,
        # single process, the generation guard is process-local
        reload=False,
    )
    server = uvicorn.Server(config)
    await server.serve()

if __name__ == "__main__":
    try:
        asyncio.run(start_servers())
    except KeyboardInterrupt:
        logger.info("Shutting down billing service...")
