from typing import Any, Optional

from fastapi import Query

from database import serialize
from i18n import localize


def ok(data: Any = None, message: Optional[str] = None, **extra) -> dict:
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def out(doc: Any, lang: Optional[str] = None) -> Any:
    """Serialize a document and, when a language is asked for, localize it."""
    doc = serialize(doc)
    return localize(doc, lang) if lang else doc


def lang_query(lang: Optional[str] = Query(None, pattern="^(en|ar)$")) -> Optional[str]:
    return lang
