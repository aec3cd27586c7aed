"""
Versioned site content.

Each section keeps every saved version; exactly one is active. Saving
deactivates the older versions and inserts max(version) + 1.
"""

import logging
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

from database import get_collection, get_documents, utcnow
from errors import NotFoundError, ValidationError
from i18n import DEFAULT_LANGUAGE, LANGUAGES

logger = logging.getLogger(__name__)

COLLECTION = "content"

SECTIONS = ("hero", "about", "nav", "contact", "collections", "footer")

REQUIRED_FIELDS = {
    "hero": ("title", "subtitle", "button_text"),
    "about": ("title", "description"),
    "contact": ("title", "address", "phone", "email"),
    "collections": ("title",),
    "footer": ("copyright",),
}


def _check_section(section: str) -> None:
    if section not in SECTIONS:
        raise NotFoundError(f"Unknown content section: {section}", code="SECTION_NOT_FOUND")


def validate(section: str, content: Dict[str, Any]) -> Dict[str, Any]:
    """Check the section's structure in every language without saving."""
    _check_section(section)
    errors = []
    for lang in LANGUAGES:
        body = content.get(lang)
        if not isinstance(body, dict):
            errors.append(f"{lang}: content is required")
            continue
        if section == "nav":
            if not isinstance(body.get("items"), list):
                errors.append(f"{lang}.items: must be a list")
            continue
        for field in REQUIRED_FIELDS[section]:
            if not body.get(field):
                errors.append(f"{lang}.{field}: is required")
    return {"valid": not errors, "errors": errors}


def _active(section: str) -> Optional[dict]:
    return get_collection(COLLECTION).find_one(
        {"section": section, "is_active": True}, sort=[("version", DESCENDING)]
    )


def get_section(section: str, lang: Optional[str] = None) -> dict:
    _check_section(section)
    doc = _active(section)
    if not doc:
        raise NotFoundError(f"No content for section {section}", code="CONTENT_NOT_FOUND")
    if lang:
        doc = {**doc, "content": doc["content"].get(lang, {}), "language": lang}
    return doc


def get_section_with_fallback(section: str, lang: str) -> dict:
    """Content in lang with each missing key taken from the default language."""
    doc = get_section(section)
    base = dict(doc["content"].get(DEFAULT_LANGUAGE, {}))
    for key, value in doc["content"].get(lang, {}).items():
        if value not in (None, "", [], {}):
            base[key] = value
    return {**doc, "content": base, "language": lang}


def get_translations(lang: str) -> Dict[str, Any]:
    active = {doc["section"]: doc for doc in get_documents(COLLECTION, {"is_active": True})}
    return {section: active[section]["content"].get(lang, {}) for section in SECTIONS if section in active}


def update_section(section: str, content: Dict[str, Any], user: Optional[dict] = None,
                   change_log: Optional[str] = None) -> dict:
    result = validate(section, content)
    if not result["valid"]:
        raise ValidationError(
            f"Invalid content structure for section {section}",
            code="INVALID_CONTENT",
            details={"errors": result["errors"]},
        )

    coll = get_collection(COLLECTION)
    latest = coll.find_one({"section": section}, sort=[("version", DESCENDING)])
    version = latest["version"] + 1 if latest else 1
    now = utcnow()
    coll.update_many({"section": section, "is_active": True}, {"$set": {"is_active": False, "updated_at": now}})
    doc = {
        "section": section,
        "content": {lang: content[lang] for lang in LANGUAGES},
        "version": version,
        "is_active": True,
        "updated_by": str(user["_id"]) if user else None,
        "change_log": change_log,
        "created_at": now,
        "updated_at": now,
    }
    doc["_id"] = coll.insert_one(doc).inserted_id
    logger.info(f"Content section {section} saved as version {version}")
    return doc


def history(section: str, limit: int = 10) -> List[dict]:
    _check_section(section)
    cursor = get_collection(COLLECTION).find({"section": section}).sort("version", DESCENDING).limit(limit)
    return list(cursor)


def rollback(section: str, version: int, user: Optional[dict] = None,
             change_log: Optional[str] = None) -> dict:
    _check_section(section)
    target = get_collection(COLLECTION).find_one({"section": section, "version": version})
    if not target:
        raise NotFoundError(f"Version {version} of section {section} not found", code="VERSION_NOT_FOUND")
    return update_section(section, target["content"], user, change_log or f"Rollback to version {version}")


def bulk_update_translations(sections: Dict[str, Dict[str, Any]], user: Optional[dict] = None,
                             change_log: Optional[str] = None) -> Dict[str, Any]:
    """Validate every section first; save only if all are valid."""
    errors = {}
    for section, content in sections.items():
        result = validate(section, content)
        if not result["valid"]:
            errors[section] = result["errors"]
    if errors:
        raise ValidationError("Invalid content structure", code="INVALID_CONTENT", details={"errors": errors})
    saved = {section: update_section(section, content, user, change_log)["version"]
             for section, content in sections.items()}
    return {"updated": saved}
