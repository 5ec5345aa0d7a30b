"""REST API surface for proximity discovery.

One route serves every channel; the channel path segment is resolved by the
discovery service, so an unknown channel is a validation error rather than a 404.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from fastapi import APIRouter, Depends, Query, Request

from nearby.api.body import read_json_object
from nearby.domain.discovery.container import get_discovery_service
from nearby.domain.discovery.schemas import DiscoveryResult
from nearby.domain.discovery.service import DiscoveryService
from nearby.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["discovery"])


async def _read_body(request: Request) -> Optional[Mapping[str, Any]]:
	if request.method != "POST":
		return None
	return await read_json_object(request)


@router.api_route(
	"/discover/{channel}",
	methods=["GET", "POST"],
	response_model=DiscoveryResult,
	response_model_exclude_none=True,
)
async def discover(
	channel: str,
	request: Request,
	radius: Optional[str] = Query(default=None, description="GPS search radius in meters"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: DiscoveryService = Depends(get_discovery_service),
) -> DiscoveryResult:
	body = await _read_body(request)
	return await service.discover_channel(auth_user.id, channel, radius=radius, body=body)
