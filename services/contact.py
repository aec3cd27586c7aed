"""
Contact message service with heuristic spam scoring.
"""

import logging
import re
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from database import create_document, generate_number, get_collection, paginate, sort_spec, to_object_id, utcnow
from errors import NotFoundError, ValidationError
from schemas import ContactMessage

logger = logging.getLogger(__name__)

COLLECTION = "contact_message"

SPAM_THRESHOLD = 70

DISPOSABLE_DOMAINS = (
    "tempmail.org",
    "10minutemail.com",
    "guerrillamail.com",
    "mailinator.com",
    "throwaway.email",
)

SPAM_KEYWORDS = (
    "viagra", "casino", "lottery", "winner", "congratulations",
    "urgent", "act now", "limited time", "free money", "guaranteed",
)

LINK_PATTERN = re.compile(r"https?://", re.IGNORECASE)

SORT_FIELDS = {"created_at", "updated_at", "status", "priority", "spam_score"}


def spam_score(email: str, message: str) -> Tuple[int, List[str]]:
    """Score a new message from 0 to 100 and say why."""
    coll = get_collection(COLLECTION)
    now = utcnow()
    score = 0
    reasons = []

    if coll.count_documents({
        "customer_info.email": email,
        "message": message,
        "created_at": {"$gte": now - timedelta(hours=24)},
    }):
        score += 30
        reasons.append("duplicate_message")

    domain = email.rsplit("@", 1)[-1].lower()
    if domain in DISPOSABLE_DOMAINS:
        score += 40
        reasons.append("disposable_email")

    if len(LINK_PATTERN.findall(message)) > 3:
        score += 25
        reasons.append("excessive_links")

    lowered = message.lower()
    for keyword in SPAM_KEYWORDS:
        if keyword in lowered:
            score += 15
            reasons.append(f"spam_keyword:{keyword}")

    recent = coll.count_documents({
        "customer_info.email": email,
        "created_at": {"$gte": now - timedelta(hours=1)},
    })
    if recent > 5:
        score += 50
        reasons.append("high_frequency")

    return min(score, 100), reasons


def create_message(data: ContactMessage) -> dict:
    doc = data.model_dump()
    email = doc["customer_info"]["email"]
    score, reasons = spam_score(email, doc["message"])
    is_spam = score >= SPAM_THRESHOLD
    previous = get_collection(COLLECTION).count_documents({"customer_info.email": email})
    status = "closed" if is_spam else "new"

    doc.update({
        "message_number": generate_number("CM", COLLECTION),
        "status": status,
        "assigned_to": None,
        "admin_notes": [],
        "responses": [],
        "status_history": [{"status": status, "changed_by": None, "changed_at": utcnow(),
                            "reason": "Automatic spam detection" if is_spam else None}],
        "spam_score": score,
        "is_spam": is_spam,
        "spam_reasons": reasons,
        "customer_interaction_count": previous + 1,
        "follow_up_required": False,
        "follow_up_date": None,
        "resolution": None,
    })
    message_id = create_document(COLLECTION, doc)
    if is_spam:
        logger.warning(f"Contact message {doc['message_number']} flagged as spam (score {score})")
    else:
        logger.info(f"Contact message received: {doc['message_number']} ({email})")
    return _get(message_id)


def _get(message_id: str) -> dict:
    message = get_collection(COLLECTION).find_one({"_id": to_object_id(message_id)})
    if not message:
        raise NotFoundError("Contact message not found", code="MESSAGE_NOT_FOUND")
    return message


def get_message(message_id: str) -> dict:
    """Fetch a message; opening a new one marks it read."""
    message = _get(message_id)
    if message["status"] == "new":
        return update_status(message_id, "read")
    return message


def build_message_query(status: Optional[str] = None, category: Optional[str] = None,
                        priority: Optional[str] = None, is_spam: Optional[bool] = None,
                        search: Optional[str] = None, start_date: Optional[datetime] = None,
                        end_date: Optional[datetime] = None) -> dict:
    query: Dict[str, Any] = {"is_spam": is_spam if is_spam is not None else False}
    if status:
        query["status"] = status
    if category:
        query["category"] = category
    if priority:
        query["priority"] = priority
    if start_date or end_date:
        query["created_at"] = {}
        if start_date:
            query["created_at"]["$gte"] = start_date
        if end_date:
            query["created_at"]["$lte"] = end_date
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [
            {"customer_info.first_name": pattern},
            {"customer_info.last_name": pattern},
            {"customer_info.email": pattern},
            {"subject": pattern},
            {"message": pattern},
            {"message_number": pattern},
        ]
    return query


def list_messages(page: int = 1, limit: int = 20, sort_by: str = "created_at",
                  sort_order: str = "desc", **filters):
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"Cannot sort by {sort_by}")
    return paginate(COLLECTION, build_message_query(**filters), page, limit, sort_spec(sort_by, sort_order))


def update_status(message_id: str, status: str, user: Optional[dict] = None,
                  reason: Optional[str] = None) -> dict:
    message = _get(message_id)
    changes: Dict[str, Any] = {"status": status, "updated_at": utcnow()}
    if status == "resolved" and reason:
        changes["resolution"] = reason
    entry = {
        "status": status,
        "changed_by": str(user["_id"]) if user else None,
        "changed_at": utcnow(),
        "reason": reason,
    }
    get_collection(COLLECTION).update_one(
        {"_id": message["_id"]}, {"$set": changes, "$push": {"status_history": entry}}
    )
    return _get(message_id)


def assign(message_id: str, user_id: str) -> dict:
    message = _get(message_id)
    assignee = get_collection("user").find_one({"_id": to_object_id(user_id)}, {"_id": 1})
    if not assignee:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    get_collection(COLLECTION).update_one(
        {"_id": message["_id"]},
        {"$set": {"assigned_to": str(assignee["_id"]), "updated_at": utcnow()}},
    )
    return _get(message_id)


def add_note(message_id: str, note: str, user: dict, is_internal: bool = True) -> dict:
    message = _get(message_id)
    entry = {"note": note, "added_by": str(user["_id"]), "added_at": utcnow(), "is_internal": is_internal}
    get_collection(COLLECTION).update_one(
        {"_id": message["_id"]},
        {"$push": {"admin_notes": entry}, "$set": {"updated_at": utcnow()}},
    )
    return _get(message_id)


def add_response(message_id: str, text: str, user: dict, method: str = "email") -> dict:
    message = _get(message_id)
    response = {"message": text, "sent_by": str(user["_id"]), "sent_at": utcnow(), "method": method}
    update: Dict[str, Any] = {"$push": {"responses": response}, "$set": {"updated_at": utcnow()}}
    if message["status"] in ("new", "read"):
        update["$set"]["status"] = "in_progress"
        update["$push"]["status_history"] = {
            "status": "in_progress",
            "changed_by": str(user["_id"]),
            "changed_at": utcnow(),
            "reason": "Response sent",
        }
    get_collection(COLLECTION).update_one({"_id": message["_id"]}, update)
    return _get(message_id)


def mark_spam(message_id: str, reasons: List[str], user: Optional[dict] = None) -> dict:
    message = _get(message_id)
    entry = {
        "status": "closed",
        "changed_by": str(user["_id"]) if user else None,
        "changed_at": utcnow(),
        "reason": "Marked as spam",
    }
    get_collection(COLLECTION).update_one(
        {"_id": message["_id"]},
        {
            "$set": {
                "is_spam": True,
                "spam_score": 100,
                "spam_reasons": reasons or ["manual"],
                "status": "closed",
                "updated_at": utcnow(),
            },
            "$push": {"status_history": entry},
        },
    )
    logger.info(f"Contact message {message['message_number']} marked as spam")
    return _get(message_id)


def set_follow_up(message_id: str, required: bool, date: Optional[datetime] = None) -> dict:
    message = _get(message_id)
    get_collection(COLLECTION).update_one(
        {"_id": message["_id"]},
        {"$set": {"follow_up_required": required, "follow_up_date": date, "updated_at": utcnow()}},
    )
    return _get(message_id)


def follow_ups() -> List[dict]:
    query = {
        "follow_up_required": True,
        "follow_up_date": {"$lte": utcnow()},
        "status": {"$ne": "closed"},
    }
    return list(get_collection(COLLECTION).find(query).sort("follow_up_date", 1))


def statistics() -> Dict[str, Any]:
    messages = list(get_collection(COLLECTION).find(
        {}, {"status": 1, "category": 1, "priority": 1, "is_spam": 1, "responses": 1}
    ))
    genuine = [m for m in messages if not m.get("is_spam")]
    return {
        "total": len(messages),
        "spam": len(messages) - len(genuine),
        "by_status": dict(Counter(m["status"] for m in genuine)),
        "by_category": dict(Counter(m["category"] for m in genuine)),
        "by_priority": dict(Counter(m["priority"] for m in genuine)),
        "unanswered": sum(1 for m in genuine if not m.get("responses") and m["status"] != "closed"),
    }
