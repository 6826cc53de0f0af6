from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging
from forge.config import settings
from forge.drivers import initialize_driver, close_driver
from forge.routes import health

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting Forge container service...")

    try:
        driver = await initialize_driver(settings.container_driver, app)
        app.state.container_driver = driver
        logger.info("Container driver initialized: %s", settings.container_driver)
    except Exception as e:
        logger.error("Failed to start service: %s", e)
        raise

    yield

    logger.info("Shutting down Forge container service...")

    try:
        await close_driver()
        app.state.container_driver = None
    except Exception as e:
        logger.error("Error closing container driver: %s", e)


def create_app() -> FastAPI:
    """Create FastAPI application"""
    app = FastAPI(
        title="Forge Containers",
        description="Container driver host for Forge Projects",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(health.router, tags=["health"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "forge.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info",
    )
