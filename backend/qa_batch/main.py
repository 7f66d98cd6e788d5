"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from qa_batch.config import settings
from qa_batch.database import engine, get_db
from qa_batch.models import Base

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup, recover interrupted jobs, wire the manager."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    from qa_batch.services.batch.manager import create_batch_manager
    manager = create_batch_manager()
    await manager.startup()
    await manager.recover_interrupted_jobs()
    app.state.batch_manager = manager

    yield

    # Cleanup
    await manager.shutdown()
    await engine.dispose()


app = FastAPI(
    title="QA Batch Assessment API",
    version="1.0.0",
    description="Background batch scoring of conversation transcripts against QA frameworks.",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health_check():
    """Verify API and database connectivity."""
    try:
        async for db in get_db():
            await db.execute(text("SELECT 1"))
            return {"status": "ok", "database": "connected"}
    except Exception as e:
        return {"status": "error", "database": str(e)}


# Register routers
from qa_batch.routes.batch_jobs import router as batch_jobs_router
app.include_router(batch_jobs_router)
