"""
LokSeva - Application Entry Point
==================================
FastAPI application factory.  Registers the API router, CORS, the
``{"error": ...}`` error envelope, and lifespan hooks (MongoDB index
creation on startup, client shutdown on exit).

Run:
    python -m lokseva.src.main
    uvicorn lokseva.src.main:app --port 3000
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lokseva.config.settings import settings
from lokseva.src.api.routes import router
from lokseva.src.database.mongo_store import ConversationRepository, ProfileRepository, close_mongo_client, get_mongo_database
from lokseva.src.utils.logger import get_logger, quiet_third_party

logger = get_logger(__name__)

APP_VERSION = "2.3.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("LokSeva backend v%s starting (env=%s, db=%s, index=%s).", APP_VERSION, settings.ENV, settings.MONGO_DB_NAME, settings.LANCEDB_TABLE_NAME)
    try:
        database = get_mongo_database()
        await ProfileRepository(database).ensure_indexes()
        await ConversationRepository(database).ensure_indexes()
        logger.info("MongoDB indexes ensured.")
    except Exception:
        # Requests will fail individually with a 500 until MongoDB is reachable.
        logger.exception("Could not ensure MongoDB indexes at startup.")

    yield

    close_mongo_client()
    logger.info("LokSeva backend stopped.")


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=getattr(exc, "headers", None))


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"] if part not in ("body", "query", "path"))
        problems.append(f"{field}: {err['msg']}" if field else err["msg"])
    details = "; ".join(problems)
    return JSONResponse(status_code=422, content={"error": details or "Invalid request"})


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s.", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


def create_app() -> FastAPI:
    quiet_third_party()
    app = FastAPI(title="LokSeva Backend", version=APP_VERSION, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unhandled_error)
    app.include_router(router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()


def main() -> None:
    uvicorn.run("lokseva.src.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
