from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.db_init import init_db
from backend.routes import calendar, finances, habits, media, oauth, preferences, sync, tracking, webhooks, youtube


def create_app() -> FastAPI:
    logging.basicConfig(
        level=os.getenv("BACKEND_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    app = FastAPI(title="Life HQ API", version="0.1.0")

    app.include_router(media.router)
    app.include_router(habits.router)
    app.include_router(tracking.router)
    app.include_router(finances.router)
    app.include_router(youtube.router)
    app.include_router(calendar.router)
    app.include_router(oauth.router)
    app.include_router(preferences.router)
    app.include_router(sync.router)
    app.include_router(webhooks.router)

    @app.on_event("startup")
    async def _startup():
        await init_db()

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        return JSONResponse(status_code=400, content={"error": f"{location}: {message}" if location else message})

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logging.getLogger("backend").exception("Unhandled exception: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Internal error"})

    @app.get("/health")
    async def health():
        return {"ok": True}

    return app


app = create_app()
