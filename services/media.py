"""
Media library backed by Cloudinary.

Images are uploaded to Cloudinary over its REST upload API; the media
collection keeps the metadata, the delivery URLs for each size variant
and a usage counter.
"""

import hashlib
import logging
import os
import re
import time
import uuid
from typing import Any, BinaryIO, Dict, List, Optional

import httpx

from config import CloudinaryConfig, settings
from database import create_document, get_collection, paginate, to_object_id, utcnow
from errors import ExternalServiceError, FileUploadError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

COLLECTION = "media"

ALLOWED_TYPES = {
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
    "image/webp": (".webp",),
    "image/gif": (".gif",),
}

VARIANTS = {
    "thumbnail": {"width": 150, "height": 150, "crop": "fill"},
    "medium": {"width": 400, "height": 400, "crop": "fill"},
    "large": {"width": 800, "height": 800, "crop": "fill"},
    "extra_large": {"width": 1200, "crop": "scale"},
}


class CloudinaryClient:
    """
    Minimal Cloudinary REST client: signed upload, destroy and URL building.
    """

    API_URL = "https://api.cloudinary.com/v1_1"
    DELIVERY_URL = "https://res.cloudinary.com"

    def __init__(self, config: CloudinaryConfig, transport: Optional[httpx.BaseTransport] = None,
                 timeout: float = 30.0):
        self.config = config
        self.transport = transport
        self.timeout = timeout

    def _ensure_configured(self) -> None:
        if not self.config.configured:
            raise ExternalServiceError("Cloudinary is not configured", service="cloudinary")

    def sign(self, params: Dict[str, Any]) -> str:
        """sha1 of the sorted k=v pairs joined with & followed by the API secret."""
        to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
        return hashlib.sha1(f"{to_sign}{self.config.api_secret}".encode("utf-8")).hexdigest()

    def _post(self, action: str, params: Dict[str, Any], files: Optional[dict] = None) -> dict:
        self._ensure_configured()
        params = {**params, "timestamp": int(time.time())}
        data = {**params, "signature": self.sign(params), "api_key": self.config.api_key}
        url = f"{self.API_URL}/{self.config.cloud_name}/image/{action}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(url, data=data, files=files)
        except httpx.HTTPError as e:
            logger.error(f"Cloudinary {action} failed: {e}")
            raise ExternalServiceError(f"Cloudinary {action} failed", service="cloudinary")

        if response.status_code >= 400:
            logger.error(f"Cloudinary {action} returned {response.status_code}: {response.text}")
            raise ExternalServiceError(
                f"Cloudinary {action} failed",
                service="cloudinary",
                details={"status_code": response.status_code},
            )
        return response.json()

    def upload(self, content: bytes, filename: str, folder: Optional[str] = None,
               tags: Optional[List[str]] = None) -> dict:
        params = {
            "folder": folder or self.config.folder,
            "public_id": f"{os.path.splitext(filename)[0]}-{uuid.uuid4().hex[:8]}",
        }
        if tags:
            params["tags"] = ",".join(tags)
        return self._post("upload", params, files={"file": (filename, content)})

    def destroy(self, public_id: str) -> dict:
        return self._post("destroy", {"public_id": public_id})

    def url(self, public_id: str, width: Optional[int] = None, height: Optional[int] = None,
            crop: Optional[str] = None, quality: str = "auto") -> str:
        transforms = ["f_auto", f"q_{quality}"]
        if width:
            transforms.append(f"w_{width}")
        if height:
            transforms.append(f"h_{height}")
        if crop:
            transforms.append(f"c_{crop}")
        return f"{self.DELIVERY_URL}/{self.config.cloud_name}/image/upload/{','.join(transforms)}/{public_id}"


client = CloudinaryClient(settings.cloudinary)


def validate_upload(filename: str, content_type: str, size: int) -> None:
    """
    Raises:
        FileUploadError: wrong type, mismatched extension, empty or too large
    """
    extensions = ALLOWED_TYPES.get(content_type)
    if not extensions:
        raise FileUploadError(
            f"Unsupported file type: {content_type}",
            code="INVALID_FILE_TYPE",
            details={"allowed": list(ALLOWED_TYPES)},
        )
    if os.path.splitext(filename or "")[1].lower() not in extensions:
        raise FileUploadError("File extension does not match its type", code="INVALID_FILE_EXTENSION")
    if size <= 0:
        raise FileUploadError("File is empty", code="EMPTY_FILE")
    if size > max_upload_bytes():
        _too_large(size)


def max_upload_bytes() -> int:
    return settings.cloudinary.max_upload_mb * 1024 * 1024


def _too_large(size: int) -> None:
    raise FileUploadError(
        f"File exceeds {settings.cloudinary.max_upload_mb}MB",
        code="FILE_TOO_LARGE",
        details={"size": size, "max_size": max_upload_bytes()},
    )


def read_upload(stream: BinaryIO, size: Optional[int] = None) -> bytes:
    """Read an upload without buffering more than one byte past the size limit."""
    limit = max_upload_bytes()
    if size is not None and size > limit:
        _too_large(size)
    content = stream.read(limit + 1)
    if len(content) > limit:
        _too_large(size if size is not None else len(content))
    return content


def variant_urls(public_id: str) -> Dict[str, str]:
    return {name: client.url(public_id, **spec) for name, spec in VARIANTS.items()}


def upload_media(content: bytes, filename: str, content_type: str, user: dict,
                 alt: Optional[Dict[str, str]] = None, tags: Optional[List[str]] = None) -> dict:
    validate_upload(filename, content_type, len(content))
    result = client.upload(content, filename, tags=tags)
    public_id = result["public_id"]
    doc = {
        "filename": public_id.rsplit("/", 1)[-1],
        "original_name": filename,
        "cloudinary_url": result.get("secure_url") or result.get("url"),
        "cloudinary_id": public_id,
        "size": result.get("bytes", len(content)),
        "mimetype": content_type,
        "width": result.get("width"),
        "height": result.get("height"),
        "alt": {"en": (alt or {}).get("en", ""), "ar": (alt or {}).get("ar", "")},
        "tags": tags or [],
        "usage_count": 0,
        "variants": variant_urls(public_id),
        "uploaded_by": str(user["_id"]),
        "uploaded_at": utcnow(),
        "is_active": True,
        "is_public": True,
    }
    media_id = create_document(COLLECTION, doc)
    logger.info(f"Media uploaded: {public_id} ({doc['size']} bytes)")
    return get_media(media_id)


def get_media(media_id: str) -> dict:
    media = get_collection(COLLECTION).find_one({"_id": to_object_id(media_id), "is_active": True})
    if not media:
        raise NotFoundError("Media not found", code="MEDIA_NOT_FOUND")
    return media


def list_media(page: int = 1, limit: int = 20, search: Optional[str] = None,
               tag: Optional[str] = None, mimetype: Optional[str] = None):
    query: Dict[str, Any] = {"is_active": True}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [
            {"original_name": pattern},
            {"filename": pattern},
            {"alt.en": pattern},
            {"alt.ar": pattern},
            {"tags": pattern},
        ]
    if tag:
        query["tags"] = tag
    if mimetype:
        query["mimetype"] = mimetype
    return paginate(COLLECTION, query, page, limit, [("uploaded_at", -1)])


def update_media(media_id: str, alt: Optional[Dict[str, str]] = None,
                 tags: Optional[List[str]] = None) -> dict:
    media = get_media(media_id)
    changes: Dict[str, Any] = {"updated_at": utcnow()}
    if alt is not None:
        for lang in ("en", "ar"):
            if alt.get(lang) is not None:
                changes[f"alt.{lang}"] = alt[lang]
    if tags is not None:
        changes["tags"] = [t.strip() for t in tags if t.strip()]
    get_collection(COLLECTION).update_one({"_id": media["_id"]}, {"$set": changes})
    return get_media(media_id)


def delete_media(media_id: str) -> None:
    media = get_media(media_id)
    get_collection(COLLECTION).update_one(
        {"_id": media["_id"]}, {"$set": {"is_active": False, "updated_at": utcnow()}}
    )
    try:
        client.destroy(media["cloudinary_id"])
    except ExternalServiceError as e:
        # remote asset is left orphaned
        logger.warning(f"Could not delete {media['cloudinary_id']} from Cloudinary: {e.message}")
    logger.info(f"Media deleted: {media['cloudinary_id']}")


def optimized_url(media_id: str, size: str = "medium") -> Dict[str, str]:
    if size not in VARIANTS:
        raise ValidationError(f"Unknown size {size}", details={"sizes": list(VARIANTS)})
    media = get_media(media_id)
    return {"size": size, "url": client.url(media["cloudinary_id"], **VARIANTS[size])}


def increment_usage(media_id: str) -> dict:
    media = get_media(media_id)
    get_collection(COLLECTION).update_one(
        {"_id": media["_id"]}, {"$inc": {"usage_count": 1}, "$set": {"updated_at": utcnow()}}
    )
    return get_media(media_id)
