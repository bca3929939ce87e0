"""
Media Store client.

Posters, cast portraits, snack images and trailer videos live in Cloudinary.
The rest of the app only sees ``{"public_id": ..., "url": ...}`` references
and the two operations below.
"""
import logging
from typing import Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from fastapi import Request, UploadFile

logger = logging.getLogger(__name__)


class MediaStoreError(Exception):
    """Raised when the media host rejects or fails an upload or delete."""


class MediaStore:
    def __init__(self, cloud_name: Optional[str], api_key: Optional[str], api_secret: Optional[str]):
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )

    def upload(self, upload: UploadFile, folder: str, resource_type: str = "image") -> dict:
        try:
            result = cloudinary.uploader.upload(upload.file, folder=folder, resource_type=resource_type)
        except cloudinary.exceptions.Error as exc:
            raise MediaStoreError(f"Upload to {folder} failed: {exc}") from exc
        if not result or result.get("error"):
            raise MediaStoreError(f"Upload to {folder} failed: {(result or {}).get('error', 'unknown')}")
        logger.info("Uploaded %s %s", resource_type, result["public_id"])
        return {"public_id": result["public_id"], "url": result["secure_url"]}

    def delete(self, public_id: str, resource_type: str = "image") -> None:
        try:
            result = cloudinary.uploader.destroy(public_id, resource_type=resource_type)
        except cloudinary.exceptions.Error as exc:
            raise MediaStoreError(f"Delete of {public_id} failed: {exc}") from exc
        if result.get("result") != "ok":
            raise MediaStoreError(f"Delete of {public_id} failed: {result.get('result')}")
        logger.info("Deleted %s %s", resource_type, public_id)


def is_image(upload: UploadFile) -> bool:
    return bool(upload.content_type) and upload.content_type.startswith("image/")


def is_video(upload: UploadFile) -> bool:
    return bool(upload.content_type) and upload.content_type.startswith("video/")


def get_media_store(request: Request) -> MediaStore:
    return request.app.state.media_store
