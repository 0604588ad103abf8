"""Ensure .env is loaded before anything else."""
import os
from pathlib import Path
from dotenv import load_dotenv

_env_file = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=str(_env_file), override=True)

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mission_coach.core.config import settings
from mission_coach.core.errors import PersistenceError
from mission_coach.db.init_db import init_db
from mission_coach.api.routes.conversations import router as conversations_router
from mission_coach.api.routes.coach import router as coach_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)


@app.on_event('startup')
def on_startup():
    init_db()
    # ---- AI Coach startup diagnostics ----
    logger.info("=" * 50)
    logger.info("Mission Coach Startup Diagnostics")
    logger.info("  .env path searched: %s", _env_file)
    logger.info("  COACH_PROVIDER: %s", settings.COACH_PROVIDER)
    logger.info("  GROQ_API_KEY present: %s", bool(settings.GROQ_API_KEY))
    logger.info("  GROQ_MODEL: %s", settings.GROQ_MODEL)
    logger.info("  Rate limit: %d tokens / %d ms", settings.RATE_LIMIT_CAPACITY, settings.RATE_LIMIT_REFILL_MS)
    logger.info("  CWD: %s", os.getcwd())
    logger.info("  PID: %d", os.getpid())
    from mission_coach.services.ai_coach.factory import get_coach_provider
    provider = get_coach_provider()
    logger.info("  Selected provider: %s", provider.__class__.__name__)
    logger.info("=" * 50)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("Persistence failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={'error': 'Internal Server Error'})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={'error': 'Internal Server Error'})


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(conversations_router)
app.include_router(coach_router)
