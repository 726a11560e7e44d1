"""FastAPI application entry point.

This module wires together the API routers, configures logging and
middleware, builds the training engine and registers the exception
handlers that turn engine errors into JSON responses.
"""

import os
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.routes import (
    auth,
    users,
    staff,
    roles,
    questions,
    quizzes,
    attempts,
    notifications,
    settings,
)
from app.database import create_db_and_tables, async_session
from app.crud import ensure_permissions_exist, get_settings
from app.acl import ALL_PERMISSIONS
from app.engine import TrainingEngine
from app.errors import InternalError, TrainingError
from app.question_source import BankQuestionSource

# Basic logging configuration.  The log level can be controlled with an
# environment variable so deployments can adjust verbosity without code
# changes.
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, LOG_LEVEL))
logger = logging.getLogger(__name__)

app = FastAPI(title="Staff Training API")

# Built once for the process; tests swap it through ``get_engine``.
app.state.training_engine = TrainingEngine(question_source=BankQuestionSource())

# CORS setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup():
    """Create tables and make sure every permission row exists."""

    await create_db_and_tables()
    async with async_session() as session:
        await ensure_permissions_exist(session, ALL_PERMISSIONS)


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(staff.router)
app.include_router(roles.router)
app.include_router(questions.router)
app.include_router(quizzes.router)
app.include_router(attempts.router)
app.include_router(notifications.router)
app.include_router(settings.router)


@app.get("/")
async def read_root():
    async with async_session() as session:
        s = await get_settings(session)
        name = s.site_name
    return {"message": f"Welcome to {name} API"}


@app.exception_handler(TrainingError)
async def training_error_handler(request: Request, exc: TrainingError):
    """Render engine errors with the same body shape as the global handler."""
    if not isinstance(exc, InternalError) and exc.status_code < 500:
        logger.info(
            "Request %s rejected: %s (%s)", request.url.path, exc.message, exc.code
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler that logs the stack trace once."""
    logger.exception("Unhandled error during request %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "code": "internal_server_error",
            "message": "An unexpected error occurred",
        },
    )
