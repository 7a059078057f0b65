"""FastAPI application entrypoint for the BRPF back end."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from brpf.api import (
    auth,
    avocats,
    badges,
    bap,
    budget,
    conventions,
    dashboard,
    decisions,
    demandes,
    diligences,
    documents,
    dossiers,
    exports,
    grades,
    logs,
    paiements,
    pce,
    rgpd,
    sgami,
    statistiques,
    templates,
    users,
    visas,
)
from brpf.config import configure_logging, get_settings
from brpf.errors import BRPFError, error_payload
from brpf.models import init_db

logger = logging.getLogger(__name__)

ROUTERS = (
    auth,
    users,
    logs,
    pce,
    grades,
    visas,
    sgami,
    bap,
    badges,
    diligences,
    avocats,
    demandes,
    dossiers,
    decisions,
    conventions,
    paiements,
    budget,
    templates,
    documents,
    exports,
    rgpd,
    statistiques,
    dashboard,
)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    init_db()
    logger.info("BRPF API ready")
    yield


def validation_message(errors: list) -> str:
    """First message raised by a model validator, or a generic one for schema errors."""

    for error in errors:
        if error.get("type") == "value_error":
            return str(error.get("msg", "")).removeprefix("Value error, ")
    return "Données invalides"


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()
    app = FastAPI(title="BRPF API", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BRPFError)
    async def brpf_error_handler(_: Request, exc: BRPFError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=error_payload(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        details = [
            {"champ": ".".join(str(part) for part in error.get("loc", ()) if part != "body"), "message": error.get("msg")}
            for error in errors
        ]
        return JSONResponse(status_code=400, content={"error": validation_message(errors), "details": details})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"error": "Route not found"})
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Erreur serveur"})

    for module in ROUTERS:
        app.include_router(module.router)

    @app.get("/api/health")
    def health() -> dict:
        return {"status": "OK", "timestamp": datetime.now().isoformat()}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("brpf.main:app", host="0.0.0.0", port=8000, reload=False, log_level="info")
