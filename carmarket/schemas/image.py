from typing import Dict, Literal

from pydantic import BaseModel

EntityType = Literal["CAR", "DEALER", "USER"]


class ImageUploadResponse(BaseModel):
    entity_type: str
    entity_id: str
    urls: Dict[str, str]


class ImageMetadata(BaseModel):
    path: str
    width: int
    height: int
    format: str
    size_bytes: int
    content_type: str


class ImageExistsResponse(BaseModel):
    path: str
    exists: bool
