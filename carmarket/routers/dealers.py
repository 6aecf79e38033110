import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, status

from carmarket.auth.rbac import DEALER_OR_ADMIN, require_roles
from carmarket.models.user import User
from carmarket.routers.dependencies import get_dealer_service
from carmarket.schemas.dealer import (
    DealerRegisterRequest,
    DealerResponse,
    DealerStatistics,
    DealerUpdateRequest,
)
from carmarket.services.dealer_service import DealerService

router = APIRouter(prefix="/api/dealers", tags=["dealers"])

dealer_or_admin = require_roles(*DEALER_OR_ADMIN)


@router.post("/register", response_model=DealerResponse, status_code=status.HTTP_201_CREATED)
async def register_dealer(payload: DealerRegisterRequest, dealers: DealerService = Depends(get_dealer_service)):
    return await dealers.register_dealer(payload)


@router.get("/profile", response_model=DealerResponse)
async def get_profile(user: User = Depends(dealer_or_admin), dealers: DealerService = Depends(get_dealer_service)):
    return await dealers.get_dealer_profile(user.id)


@router.put("/profile", response_model=DealerResponse)
async def update_profile(
    payload: DealerUpdateRequest,
    user: User = Depends(dealer_or_admin),
    dealers: DealerService = Depends(get_dealer_service),
):
    return await dealers.update_dealer_profile(user.id, payload)


@router.get("/statistics", response_model=DealerStatistics)
async def get_own_statistics(user: User = Depends(dealer_or_admin), dealers: DealerService = Depends(get_dealer_service)):
    dealer = await dealers.get_dealer_for_user(user.id)
    return await dealers.get_dealer_statistics(dealer.id)


@router.get("/statistics/{dealer_id}", response_model=DealerStatistics)
async def get_statistics(
    dealer_id: uuid.UUID,
    user: User = Depends(dealer_or_admin),
    dealers: DealerService = Depends(get_dealer_service),
):
    return await dealers.get_dealer_statistics(dealer_id)


@router.get("/search", response_model=List[DealerResponse])
async def search_dealers(
    name: str = Query(..., min_length=1, max_length=255),
    user: User = Depends(dealer_or_admin),
    dealers: DealerService = Depends(get_dealer_service),
):
    return await dealers.search_dealers_by_name(name)


@router.get("/recent", response_model=List[DealerResponse])
async def get_recent_dealers(
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(dealer_or_admin),
    dealers: DealerService = Depends(get_dealer_service),
):
    return await dealers.get_recent_dealers(limit)
