from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fleet_ledger.api.router import router as api_router
from fleet_ledger.bootstrap import bootstrap
from fleet_ledger.core.config import settings
from fleet_ledger.core.logging import RequestContextMiddleware, configure_logging


@asynccontextmanager
async def _lifespan(_: FastAPI):
    bootstrap()
    yield


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Fleet Ledger", version="0.1.0", lifespan=_lifespan)
    # Added last so it wraps CORS and tags every response with x-request-id
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["x-request-id"],
    )
    app.add_middleware(RequestContextMiddleware)
    app.include_router(api_router)
    return app


app = create_app()
