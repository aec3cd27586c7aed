from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from routers.common import ok, out
from schemas import MediaUpdate
from security import require_admin
from services import media

router = APIRouter(prefix="/api/media", tags=["media"])


@router.post("/upload", status_code=201)
def upload(
    file: UploadFile = File(...),
    alt_en: str = Form(""),
    alt_ar: str = Form(""),
    tags: str = Form("", description="Comma separated"),
    admin: dict = Depends(require_admin),
):
    content = media.read_upload(file.file, file.size)
    doc = media.upload_media(
        content,
        file.filename,
        file.content_type,
        admin,
        alt={"en": alt_en, "ar": alt_ar},
        tags=[t.strip() for t in tags.split(",") if t.strip()],
    )
    return ok(out(doc), message="File uploaded")


@router.get("")
def list_media(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    tag: Optional[str] = None,
    mimetype: Optional[str] = None,
    admin: dict = Depends(require_admin),
):
    docs, pagination = media.list_media(page, limit, search, tag, mimetype)
    return ok({"media": out(docs), "pagination": pagination})


@router.get("/{media_id}")
def get_media(media_id: str, admin: dict = Depends(require_admin)):
    return ok(out(media.get_media(media_id)))


@router.get("/{media_id}/url")
def optimized_url(media_id: str, size: str = "medium", admin: dict = Depends(require_admin)):
    return ok(media.optimized_url(media_id, size))


@router.put("/{media_id}")
def update_media(media_id: str, payload: MediaUpdate, admin: dict = Depends(require_admin)):
    alt = payload.alt.model_dump() if payload.alt is not None else None
    return ok(out(media.update_media(media_id, alt, payload.tags)), message="Media updated")


@router.post("/{media_id}/usage")
def increment_usage(media_id: str, admin: dict = Depends(require_admin)):
    return ok(out(media.increment_usage(media_id)))


@router.delete("/{media_id}")
def delete_media(media_id: str, admin: dict = Depends(require_admin)):
    media.delete_media(media_id)
    return ok(message="Media deleted")
