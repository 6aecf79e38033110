import io
import logging
import uuid
from pathlib import Path
from typing import Dict, Optional

from PIL import Image, UnidentifiedImageError
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.metrics import track_performance
from carmarket.models.car import Car, CarImage
from carmarket.models.user import User
from carmarket.schemas.image import ImageMetadata
from carmarket.services.exceptions import ImageValidationError, NotFoundError
from carmarket.services.validators import BusinessRules

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "webp"}
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
MAX_DIMENSION = 4000

ORIGINAL = "original"
# Longest edge in pixels for each generated variant
VARIANT_SIZES = {
    "thumbnail": 150,
    "small": 400,
    "medium": 800,
    "large": 1200,
}
VARIANTS = (*VARIANT_SIZES, ORIGINAL)

PIL_FORMATS = {"jpg": "JPEG", "jpeg": "JPEG", "png": "PNG", "webp": "WEBP"}


class ImageService:
    """
    Stores uploaded images on local disk together with resized variants.

    Layout: ``<root>/<entity-type>/<entity-id>/<variant>/<uuid>.<ext>``. Every public
    method takes paths relative to the storage root and refuses paths that
    resolve outside of it.
    """

    def __init__(self, db: Optional[AsyncSession], storage_dir: str, base_url: str):
        self.db = db
        self.root = Path(storage_dir).resolve()
        self.base_url = base_url.rstrip("/")

    # ---------------------------------------------------------------- paths

    def resolve_path(self, relative_path: str) -> Path:
        path = (self.root / relative_path).resolve()
        if path != self.root and self.root not in path.parents:
            logger.warning(f"Rejected image path outside storage root: {relative_path}")
            raise ImageValidationError("Invalid image path", "INVALID_PATH")
        return path

    def url_for(self, relative_path: str) -> str:
        return f"{self.base_url}/{relative_path}"

    def _split(self, relative_path: str):
        parts = Path(relative_path).parts
        if len(parts) != 4 or parts[2] not in VARIANTS:
            raise ImageValidationError("Image path must be <entity>/<id>/<variant>/<file>", "INVALID_PATH")
        self.resolve_path(relative_path)
        return parts

    def variant_paths(self, relative_path: str) -> Dict[str, str]:
        entity, entity_id, _, filename = self._split(relative_path)
        return {variant: f"{entity}/{entity_id}/{variant}/{filename}" for variant in VARIANTS}

    # ---------------------------------------------------------------- upload

    @staticmethod
    def _extension(filename: Optional[str]) -> str:
        if not filename or "." not in filename:
            raise ImageValidationError("File has no extension", "INVALID_EXTENSION")
        ext = filename.rsplit(".", 1)[1].lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ImageValidationError(
                f"Unsupported file type '.{ext}'. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
                "INVALID_EXTENSION",
            )
        return ext

    def validate_image(self, filename: Optional[str], data: bytes) -> str:
        """Checks extension, size, decodability and dimensions. Returns the extension."""
        ext = self._extension(filename)

        if not data:
            raise ImageValidationError("File is empty", "EMPTY_FILE")
        if len(data) > MAX_FILE_SIZE:
            raise ImageValidationError("File exceeds the 10 MB limit", "FILE_TOO_LARGE")

        try:
            with Image.open(io.BytesIO(data)) as im:
                im.verify()
            with Image.open(io.BytesIO(data)) as im:
                width, height = im.size
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise ImageValidationError(f"File is not a valid image: {e}", "INVALID_IMAGE")

        if width > MAX_DIMENSION or height > MAX_DIMENSION:
            raise ImageValidationError(
                f"Image dimensions {width}x{height} exceed {MAX_DIMENSION}x{MAX_DIMENSION}",
                "IMAGE_TOO_LARGE",
            )
        return ext

    @staticmethod
    def _resized(im: Image.Image, max_edge: int, pil_format: str) -> Image.Image:
        variant = im.copy()
        # thumbnail() keeps the aspect ratio and never enlarges
        variant.thumbnail((max_edge, max_edge), Image.Resampling.LANCZOS)
        if pil_format == "JPEG" and variant.mode not in ("RGB", "L"):
            variant = variant.convert("RGB")
        return variant

    @track_performance(service_name="ImageService")
    async def upload_image(self, filename: Optional[str], data: bytes, entity_type: str, entity_id: str) -> Dict[str, str]:
        ext = self.validate_image(filename, data)
        pil_format = PIL_FORMATS[ext]
        stored_name = f"{uuid.uuid4()}.{ext}"
        prefix = f"{entity_type.lower()}/{entity_id}"

        urls = {}
        original_path = f"{prefix}/{ORIGINAL}/{stored_name}"
        target = self.resolve_path(original_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        urls[ORIGINAL] = self.url_for(original_path)

        with Image.open(io.BytesIO(data)) as im:
            im.load()
            for variant, max_edge in VARIANT_SIZES.items():
                relative = f"{prefix}/{variant}/{stored_name}"
                target = self.resolve_path(relative)
                target.parent.mkdir(parents=True, exist_ok=True)
                self._resized(im, max_edge, pil_format).save(target, format=pil_format)
                urls[variant] = self.url_for(relative)

        logger.info(f"Image stored for {entity_type} {entity_id}: {original_path}")
        return urls

    async def get_owned_car(self, car_id: uuid.UUID, actor: User) -> Car:
        stmt = select(Car).where(Car.id == car_id).execution_options(populate_existing=True)
        car = (await self.db.execute(stmt)).scalar_one_or_none()
        if not car:
            raise NotFoundError(f"Car not found with id: {car_id}", "CAR_NOT_FOUND")
        BusinessRules.ensure_can_modify_car(car, actor)
        return car

    async def get_owned_car_for_path(self, relative_path: str, actor: User) -> Optional[Car]:
        """The car an image path belongs to, checked for ownership. None for non-car images."""
        entity, entity_id, _, _ = self._split(relative_path)
        if entity != "car":
            return None
        try:
            car_id = uuid.UUID(entity_id)
        except ValueError:
            raise ImageValidationError(f"Invalid car id in image path: {entity_id}", "INVALID_PATH")
        return await self.get_owned_car(car_id, actor)

    @track_performance(service_name="ImageService")
    async def attach_car_image(self, car: Car, image_url: str, alt_text: Optional[str] = None,
                               is_primary: bool = False) -> CarImage:
        """Record an uploaded image on a car. A primary image goes first and pushes the others down."""
        if is_primary:
            await self.db.execute(
                update(CarImage)
                .where(CarImage.car_id == car.id)
                .values(display_order=CarImage.display_order + 1)
                .execution_options(synchronize_session=False)
            )
            display_order = 0
        else:
            display_order = max((image.display_order for image in car.images), default=-1) + 1

        image = CarImage(car_id=car.id, image_url=image_url, alt_text=alt_text, display_order=display_order)
        self.db.add(image)
        await self.db.commit()
        logger.info(f"Image attached to car {car.id} at position {display_order}")
        return image

    # ---------------------------------------------------------------- lookup

    def image_exists(self, relative_path: str) -> bool:
        return self.resolve_path(relative_path).is_file()

    def get_image_file(self, relative_path: str) -> Path:
        path = self.resolve_path(relative_path)
        if not path.is_file():
            raise NotFoundError(f"Image not found: {relative_path}", "IMAGE_NOT_FOUND")
        return path

    def get_image_metadata(self, relative_path: str) -> ImageMetadata:
        path = self.get_image_file(relative_path)
        with Image.open(path) as im:
            width, height = im.size
            image_format = im.format or "UNKNOWN"

        return ImageMetadata(
            path=relative_path,
            width=width,
            height=height,
            format=image_format,
            size_bytes=path.stat().st_size,
            content_type=Image.MIME.get(image_format, "application/octet-stream"),
        )

    def generate_responsive_image_urls(self, relative_path: str) -> Dict[str, str]:
        return {
            variant: self.url_for(path)
            for variant, path in self.variant_paths(relative_path).items()
        }

    @track_performance(service_name="ImageService")
    async def delete_image(self, relative_path: str) -> int:
        """Remove every variant of an image. Returns the number of files deleted."""
        removed = 0
        for path in self.variant_paths(relative_path).values():
            target = self.resolve_path(path)
            if target.is_file():
                target.unlink()
                removed += 1

        if not removed:
            raise NotFoundError(f"Image not found: {relative_path}", "IMAGE_NOT_FOUND")

        logger.info(f"Image deleted: {relative_path} ({removed} files)")
        return removed

    async def detach_car_image(self, car: Car, relative_path: str) -> int:
        """Drop the CarImage rows pointing at any variant of an image. Returns the rows removed."""
        urls = list(self.generate_responsive_image_urls(relative_path).values())
        result = await self.db.execute(
            delete(CarImage)
            .where(CarImage.car_id == car.id, CarImage.image_url.in_(urls))
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info(f"Image detached from car {car.id}: {relative_path} ({result.rowcount} rows)")
        return result.rowcount
