"""Operational endpoints: probes, Prometheus scrape and account activity sync."""

from __future__ import annotations

import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from nearby.domain.discovery.container import get_signal_ingestion
from nearby.domain.discovery.ingestion import SignalIngestion
from nearby.domain.discovery.schemas import DiscoverabilityView
from nearby.obs import health
from nearby.settings import settings

router = APIRouter(tags=["ops"])


class ActiveFlagPayload(BaseModel):
	active: bool


def _presented_token(x_admin_token: Optional[str], authorization: Optional[str]) -> str:
	if x_admin_token:
		return x_admin_token
	scheme, _, credentials = (authorization or "").partition(" ")
	return credentials.strip() if scheme.lower() == "bearer" else ""


async def require_admin(
	x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
	authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> None:
	"""Admin calls are refused outright when no token is configured."""
	expected = settings.obs_admin_token
	if not expected:
		raise HTTPException(status.HTTP_403_FORBIDDEN, detail="admin_token_not_configured")
	presented = _presented_token(x_admin_token, authorization)
	if not secrets.compare_digest(presented.encode(), expected.encode()):
		raise HTTPException(status.HTTP_403_FORBIDDEN, detail="forbidden")


async def require_metrics_access(
	x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
	authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> None:
	if not settings.obs_metrics_public:
		await require_admin(x_admin_token=x_admin_token, authorization=authorization)


@router.get("/health/live")
async def health_live() -> dict[str, str]:
	return await health.liveness()


@router.get("/health/ready")
async def health_ready() -> Response:
	code, body = await health.readiness()
	return JSONResponse(content=body, status_code=code)


@router.get("/metrics", dependencies=[Depends(require_metrics_access)])
async def prometheus_metrics() -> Response:
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.post(
	"/ops/users/{user_id}/active",
	response_model=DiscoverabilityView,
	dependencies=[Depends(require_admin)],
)
async def set_user_active(
	user_id: str,
	payload: ActiveFlagPayload,
	ingestion: SignalIngestion = Depends(get_signal_ingestion),
) -> DiscoverabilityView:
	"""Mirror account deactivation into the Signal Store."""
	return await ingestion.set_active(user_id, payload.active)
