import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from database import init_db
from logging_config import configure_logging
from api.chat import router as chat_router
from api.quotes import router as quotes_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_db()
    logger.info("%s started (mock registry: %s)", settings.app_name, settings.use_mock_registry)
    yield


app = FastAPI(
    title=settings.app_name,
    description="Conversational asset finance application and quote API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat_router)
app.include_router(quotes_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
