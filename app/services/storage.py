# app/services/storage.py
# Public URL resolution for profile images held by the storage collaborator
#
# Rows store either a full URL (uploaded through the hosted uploader) or a
# bucket-relative path ("student_images/abc_123.png"). Views need something
# an <img> tag can load, so every reference goes through resolve_image_url().

from typing import Optional
from urllib.parse import quote

from app.core.config import settings


def public_url(path: str, bucket: Optional[str] = None) -> str:
    """Public object URL for a path inside a bucket."""
    bucket = bucket or settings.student_images_bucket
    path = path.lstrip("/")
    base = settings.storage_public_base_url.rstrip("/")
    return f"{base}/{bucket}/{quote(path)}"


def resolve_image_url(reference: Optional[str], bucket: Optional[str] = None) -> str:
    """
    Displayable URL for a stored image reference.
    Full URLs pass through, paths are made public, blanks get the placeholder.
    """
    if not reference or not reference.strip():
        return settings.placeholder_image_url
    reference = reference.strip()
    if reference.startswith(("http://", "https://")):
        return reference
    return public_url(reference, bucket)
