from typing import Optional

from fastapi import APIRouter, Depends, Query

from routers.common import ok, out
from schemas import Content, ContentBody, ContentSection, RollbackRequest, TranslationsUpdate
from security import require_admin
from services import content

router = APIRouter(prefix="/api/content", tags=["content"])


@router.get("/translations")
def translations(lang: str = Query("en", pattern="^(en|ar)$")):
    return ok(content.get_translations(lang), language=lang)


@router.put("/translations")
def bulk_update(payload: TranslationsUpdate, admin: dict = Depends(require_admin)):
    sections = {section: body.model_dump() for section, body in payload.sections.items()}
    return ok(content.bulk_update_translations(sections, admin, payload.change_log), message="Translations updated")


@router.get("/{section}")
def get_section(section: ContentSection, lang: Optional[str] = Query(None, pattern="^(en|ar)$")):
    return ok(out(content.get_section(section, lang)))


@router.get("/{section}/fallback")
def get_with_fallback(section: ContentSection, lang: str = Query("en", pattern="^(en|ar)$")):
    return ok(out(content.get_section_with_fallback(section, lang)))


@router.put("/{section}")
def update_section(section: ContentSection, payload: Content, admin: dict = Depends(require_admin)):
    doc = content.update_section(section, payload.content.model_dump(), admin, payload.change_log)
    return ok(out(doc), message=f"Content updated to version {doc['version']}")


@router.get("/{section}/history")
def history(section: ContentSection, limit: int = Query(10, ge=1, le=50), admin: dict = Depends(require_admin)):
    return ok(out(content.history(section, limit)))


@router.post("/{section}/rollback")
def rollback(section: ContentSection, payload: RollbackRequest, admin: dict = Depends(require_admin)):
    doc = content.rollback(section, payload.version, admin, payload.change_log)
    return ok(out(doc), message=f"Rolled back to version {payload.version}")


@router.post("/{section}/validate")
def validate(section: ContentSection, payload: ContentBody, admin: dict = Depends(require_admin)):
    return ok(content.validate(section, payload.model_dump()))
