import uuid
from typing import Dict, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse

from carmarket.auth.auth_bearer import get_current_user
from carmarket.auth.rbac import DEALER_OR_ADMIN, require_roles
from carmarket.core.cache import CacheService, get_cache
from carmarket.models.user import User
from carmarket.routers.dependencies import get_image_service
from carmarket.schemas.common import MessageResponse
from carmarket.schemas.image import EntityType, ImageExistsResponse, ImageMetadata, ImageUploadResponse
from carmarket.services.image_service import MAX_FILE_SIZE, ImageService

router = APIRouter(prefix="/api/images", tags=["images"])


@router.post("/upload", response_model=ImageUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_image(
    file: UploadFile = File(...),
    entity_type: EntityType = Form(...),
    entity_id: uuid.UUID = Form(...),
    alt_text: Optional[str] = Form(None),
    is_primary: bool = Form(False),
    user: User = Depends(get_current_user),
    images: ImageService = Depends(get_image_service),
    cache: CacheService = Depends(get_cache),
):
    car = None
    if entity_type == "CAR":
        # Ownership is checked before anything touches the disk
        car = await images.get_owned_car(entity_id, user)

    # One byte over the limit is enough to reject the upload
    data = await file.read(MAX_FILE_SIZE + 1)
    urls = await images.upload_image(file.filename, data, entity_type, str(entity_id))

    if car is not None:
        await images.attach_car_image(car, urls["original"], alt_text, is_primary)
        await cache.invalidate_car_caches(str(car.id))

    return ImageUploadResponse(entity_type=entity_type, entity_id=str(entity_id), urls=urls)


@router.get("/serve/{path:path}")
async def serve_image(path: str, images: ImageService = Depends(get_image_service)):
    return FileResponse(
        images.get_image_file(path),
        headers={"Cache-Control": "public, max-age=3600"},
    )


@router.get("/metadata/{path:path}", response_model=ImageMetadata)
async def image_metadata(path: str, images: ImageService = Depends(get_image_service)):
    return images.get_image_metadata(path)


@router.get("/exists/{path:path}", response_model=ImageExistsResponse)
async def image_exists(path: str, images: ImageService = Depends(get_image_service)):
    return ImageExistsResponse(path=path, exists=images.image_exists(path))


@router.get("/responsive/{path:path}", response_model=Dict[str, str])
async def responsive_urls(path: str, images: ImageService = Depends(get_image_service)):
    return images.generate_responsive_image_urls(path)


@router.delete("/{path:path}", response_model=MessageResponse)
async def delete_image(
    path: str,
    user: User = Depends(require_roles(*DEALER_OR_ADMIN)),
    images: ImageService = Depends(get_image_service),
    cache: CacheService = Depends(get_cache),
):
    # Car images may only be removed by the car's dealer or an admin
    car = await images.get_owned_car_for_path(path, user)

    removed = await images.delete_image(path)

    if car is not None:
        await images.detach_car_image(car, path)
        await cache.invalidate_car_caches(str(car.id))

    return MessageResponse(message=f"Image deleted ({removed} files)")
