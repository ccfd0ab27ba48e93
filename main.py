"""FastAPI application: entry point for the run watch service."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from db import create_tables
from orchestrator import RunOrchestrator
from routes import router, set_orchestrator

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

orchestrator = RunOrchestrator()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Run watch starting, remote API %s", settings.api_base_url)
    logger.info(
        "Poll intervals: research %.1fs, operator %.1fs",
        settings.research_poll_interval, settings.operator_poll_interval,
    )

    logger.info("Creating database tables...")
    await create_tables()

    set_orchestrator(orchestrator)
    await orchestrator.start()

    logger.info("Run watch is running on http://localhost:%d", settings.port)
    yield

    logger.info("Stopping orchestrator...")
    await orchestrator.stop()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Run Watch",
    description="Tracks long-running feature research and decision runs",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=settings.port, reload=True)
