"""REST API surface for signal ingestion and discoverability settings."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from nearby.api.body import read_json_object
from nearby.domain.discovery.container import get_signal_ingestion
from nearby.domain.discovery.ingestion import SignalIngestion
from nearby.domain.discovery.schemas import DiscoverabilityView, SignalAck, SignalStatus
from nearby.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["signals"])


@router.put("/signal/{channel}", response_model=SignalAck)
async def put_signal(
    channel: str,
    request: Request,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    ingestion: SignalIngestion = Depends(get_signal_ingestion),
) -> SignalAck:
    payload = await read_json_object(request)
    return await ingestion.update_signal(auth_user.id, channel, payload)


@router.get("/signal", response_model=SignalStatus)
async def get_signal(
    auth_user: AuthenticatedUser = Depends(get_current_user),
    ingestion: SignalIngestion = Depends(get_signal_ingestion),
) -> SignalStatus:
    return await ingestion.get_status(auth_user.id)


@router.patch("/discoverability", response_model=DiscoverabilityView)
async def patch_discoverability(
    request: Request,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    ingestion: SignalIngestion = Depends(get_signal_ingestion),
) -> DiscoverabilityView:
    payload = await read_json_object(request)
    return await ingestion.update_discoverability(auth_user.id, payload)
