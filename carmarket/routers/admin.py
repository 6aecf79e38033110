import uuid
from typing import List

from fastapi import APIRouter, Depends, Query

from carmarket.auth.rbac import ADMIN_ONLY, require_roles
from carmarket.core.cache import CACHE_TTLS, CacheService, get_cache
from carmarket.models.user import User, UserRole
from carmarket.routers.dependencies import get_admin_service
from carmarket.schemas.admin import AdminStats, CacheEvictResponse
from carmarket.schemas.car import SortDirection
from carmarket.schemas.common import MessageResponse, Page
from carmarket.schemas.user import UserResponse, UserStatusUpdate
from carmarket.services.admin_service import AdminService, UserSortField
from carmarket.services.exceptions import NotFoundError

admin_only = require_roles(*ADMIN_ONLY)

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(admin_only)],
)


@router.get("/users", response_model=Page[UserResponse])
async def list_users(
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=100),
    sort_by: UserSortField = "created_at",
    sort_direction: SortDirection = "desc",
    admin: AdminService = Depends(get_admin_service),
):
    return await admin.list_users(page, size, sort_by, sort_direction)


@router.get("/users/search", response_model=List[UserResponse])
async def search_users(
    email: str = Query(..., min_length=1, max_length=255),
    admin: AdminService = Depends(get_admin_service),
):
    return await admin.search_users_by_email(email)


@router.get("/users/role/{role}", response_model=List[UserResponse])
async def users_by_role(role: UserRole, admin: AdminService = Depends(get_admin_service)):
    return await admin.get_users_by_role(role)


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(user_id: uuid.UUID, admin: AdminService = Depends(get_admin_service)):
    return await admin.get_user(user_id)


@router.patch("/users/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: uuid.UUID,
    payload: UserStatusUpdate,
    actor: User = Depends(admin_only),
    admin: AdminService = Depends(get_admin_service),
):
    return await admin.update_user_status(user_id, payload.is_active, actor)


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: uuid.UUID,
    actor: User = Depends(admin_only),
    admin: AdminService = Depends(get_admin_service),
):
    await admin.delete_user(user_id, actor)
    return MessageResponse(message="User deactivated successfully")


@router.get("/stats", response_model=AdminStats)
async def get_stats(admin: AdminService = Depends(get_admin_service)):
    return await admin.get_stats()


@router.get("/cache/stats")
async def get_cache_stats(cache: CacheService = Depends(get_cache)):
    """Key counts and TTLs of every cache."""
    return await cache.get_statistics()


@router.post("/cache/{cache_name}/evict", response_model=CacheEvictResponse)
async def evict_cache(cache_name: str, cache: CacheService = Depends(get_cache)):
    """Manually clear one cache (e.g. after a bulk import)."""
    if cache_name not in CACHE_TTLS:
        raise NotFoundError(f"Unknown cache: {cache_name}", "CACHE_NOT_FOUND")
    return CacheEvictResponse(cache_name=cache_name, evicted=await cache.evict_all(cache_name))
