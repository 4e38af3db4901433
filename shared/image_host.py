"""
Image host clients.

Catalog images and avatars are stored on a third-party image host. The
marketplace only needs two calls: upload a buffer into a folder, resized to a
fixed width, and delete by identifier.

- CloudinaryImageHost uses the cloudinary SDK
- MockImageHost logs uploads and keeps them in memory for tests
"""

import io
import logging
from dataclasses import dataclass
from typing import Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from shared.errors import GatewayError, ValidationError
from shared.models import ImageRef

logger = logging.getLogger("image_host")


ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/jpg"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024
MAX_IMAGES_PER_ITEM = 10

CATALOG_IMAGE_WIDTH = 500
AVATAR_IMAGE_WIDTH = 150
AVATAR_FOLDER = "avatars"


@dataclass
class ImageUpload:
    """An uploaded image buffer, as received from the client."""
    content: bytes
    filename: str = "upload"
    content_type: str = "image/jpeg"


def validate_uploads(uploads: list[ImageUpload], max_files: int = MAX_IMAGES_PER_ITEM) -> None:
    """
    Reject uploads the image host should never see.

    Raises:
        ValidationError: On too many files, an unsupported type or an oversized file
    """
    if len(uploads) > max_files:
        raise ValidationError(f"At most {max_files} images can be uploaded at once.")
    for upload in uploads:
        if upload.content_type not in ALLOWED_IMAGE_TYPES:
            raise ValidationError(f"Unsupported file type: {upload.content_type}")
        if len(upload.content) > MAX_IMAGE_BYTES:
            raise ValidationError(f"Image {upload.filename} exceeds the 5 MB limit.")
        if not upload.content:
            raise ValidationError(f"Image {upload.filename} is empty.")


class ImageHost:
    """Interface shared by every image host implementation."""

    def upload(self, upload: ImageUpload, folder: str, width: int) -> ImageRef:
        raise NotImplementedError

    def destroy(self, public_id: str) -> None:
        raise NotImplementedError

    def upload_many(self, uploads: list[ImageUpload], folder: str, width: int) -> list[ImageRef]:
        return [self.upload(upload, folder, width) for upload in uploads]

    def discard(self, public_ids: list[str]) -> list[str]:
        """
        Delete images that are no longer referenced.

        A failed delete is logged and skipped, never raised.

        Returns:
            The ids that could not be deleted
        """
        failed = []
        for public_id in public_ids:
            try:
                self.destroy(public_id)
            except GatewayError as e:
                logger.warning(f"Leaving orphaned image {public_id}: {e}")
                failed.append(public_id)
        return failed


class CloudinaryImageHost(ImageHost):
    """Image host backed by Cloudinary."""

    def __init__(self, cloud_name: Optional[str], api_key: Optional[str], api_secret: Optional[str]):
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )

    def upload(self, upload: ImageUpload, folder: str, width: int) -> ImageRef:
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(upload.content),
                folder=folder,
                width=width,
                crop="scale",
            )
        except cloudinary.exceptions.Error as e:
            logger.error(f"Cloudinary upload failed for {upload.filename}: {e}")
            raise GatewayError(f"Error uploading image: {e}", service="cloudinary") from e

        logger.info(f"Uploaded {upload.filename} to {folder} as {result['public_id']}")
        return ImageRef(public_id=result["public_id"], url=result["secure_url"])

    def destroy(self, public_id: str) -> None:
        try:
            cloudinary.uploader.destroy(public_id)
        except cloudinary.exceptions.Error as e:
            logger.error(f"Cloudinary delete failed for {public_id}: {e}")
            raise GatewayError(f"Error deleting image: {e}", service="cloudinary") from e
        logger.info(f"Deleted image {public_id}")


class MockImageHost(ImageHost):
    """
    Mock image host.

    Stores nothing but identifiers. `fail=True` makes uploads raise
    GatewayError and `fail_destroy=True` does the same for deletes.
    """

    def __init__(self, fail: bool = False, fail_destroy: bool = False):
        self.fail = fail
        self.fail_destroy = fail_destroy
        self.uploaded: dict[str, ImageRef] = {}
        self.destroyed: list[str] = []

    def upload(self, upload: ImageUpload, folder: str, width: int) -> ImageRef:
        if self.fail:
            logger.error(f"[IMAGE FAILED] {upload.filename}: simulated failure")
            raise GatewayError("Simulated image host failure", service="mock")

        public_id = f"{folder}/img-{len(self.uploaded) + 1:04d}"
        image = ImageRef(public_id=public_id, url=f"https://images.example.com/w_{width}/{public_id}.jpg")
        self.uploaded[public_id] = image
        logger.info(f"[IMAGE] {upload.filename} -> {public_id}")
        return image

    def destroy(self, public_id: str) -> None:
        if self.fail_destroy:
            logger.error(f"[IMAGE FAILED] delete {public_id}: simulated failure")
            raise GatewayError("Simulated image host failure", service="mock")
        self.uploaded.pop(public_id, None)
        self.destroyed.append(public_id)
        logger.info(f"[IMAGE] deleted {public_id}")


def create_image_host(
    kind: str = "mock",
    cloud_name: Optional[str] = None,
    api_key: Optional[str] = None,
    api_secret: Optional[str] = None,
) -> ImageHost:
    """Build the configured image host implementation."""
    if kind == "cloudinary":
        return CloudinaryImageHost(cloud_name, api_key, api_secret)
    if kind == "mock":
        return MockImageHost()
    raise ValueError(f"Unknown image host: {kind}")
