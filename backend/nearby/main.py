"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nearby.api import discovery, ops, signals
from nearby.api.errors import install_error_handlers
from nearby.domain.discovery.container import configure_backends
from nearby.infra import postgres
from nearby.obs import init as obs_init
from nearby.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	await postgres.init_pool()
	configure_backends()
	logger.info("nearby discovery started", extra={"signal_store_backend": settings.signal_store_backend})
	try:
		yield
	finally:
		await postgres.close_pool()


app = FastAPI(title="Nearby Discovery", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True. Replace '*' with explicit origins.
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

obs_init(app)

app.include_router(signals.router, tags=["signals"])
app.include_router(discovery.router, tags=["discovery"])
app.include_router(ops.router, tags=["ops"])
