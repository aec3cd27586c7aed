from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ratelimit import submit_limiter
from routers.common import ok, out
from schemas import (
    AssignRequest,
    ContactMessage,
    ContactNoteRequest,
    ContactResponseRequest,
    ContactStatusUpdate,
    FollowUpRequest,
    SpamRequest,
)
from security import require_admin
from services import contact

router = APIRouter(prefix="/api/contact", tags=["contact"])


@router.post("", status_code=201, dependencies=[Depends(submit_limiter)])
def submit(payload: ContactMessage):
    message = contact.create_message(payload)
    return ok(
        {"message_id": str(message["_id"]), "message_number": message["message_number"]},
        message="Thank you for contacting us",
    )


@router.get("/messages")
def list_messages(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    status: Optional[str] = None,
    category: Optional[str] = None,
    priority: Optional[str] = None,
    is_spam: Optional[bool] = None,
    search: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    admin: dict = Depends(require_admin),
):
    docs, pagination = contact.list_messages(
        page, limit, sort_by, sort_order,
        status=status, category=category, priority=priority, is_spam=is_spam,
        search=search, start_date=start_date, end_date=end_date,
    )
    return ok({"messages": out(docs), "pagination": pagination})


@router.get("/statistics")
def statistics(admin: dict = Depends(require_admin)):
    return ok(contact.statistics())


@router.get("/follow-up")
def follow_ups(admin: dict = Depends(require_admin)):
    return ok(out(contact.follow_ups()))


@router.get("/messages/{message_id}")
def get_message(message_id: str, admin: dict = Depends(require_admin)):
    return ok(out(contact.get_message(message_id)))


@router.put("/messages/{message_id}/status")
def update_status(message_id: str, payload: ContactStatusUpdate, admin: dict = Depends(require_admin)):
    return ok(out(contact.update_status(message_id, payload.status, admin, payload.reason)))


@router.put("/messages/{message_id}/assign")
def assign(message_id: str, payload: AssignRequest, admin: dict = Depends(require_admin)):
    return ok(out(contact.assign(message_id, payload.user_id)), message="Message assigned")


@router.post("/messages/{message_id}/notes")
def add_note(message_id: str, payload: ContactNoteRequest, admin: dict = Depends(require_admin)):
    return ok(out(contact.add_note(message_id, payload.note, admin, payload.is_internal)), message="Note added")


@router.post("/messages/{message_id}/responses")
def add_response(message_id: str, payload: ContactResponseRequest, admin: dict = Depends(require_admin)):
    message = contact.add_response(message_id, payload.message, admin, payload.method)
    return ok(out(message), message="Response recorded")


@router.put("/messages/{message_id}/spam")
def mark_spam(message_id: str, payload: SpamRequest = SpamRequest(), admin: dict = Depends(require_admin)):
    return ok(out(contact.mark_spam(message_id, payload.reasons, admin)), message="Marked as spam")


@router.put("/messages/{message_id}/follow-up")
def set_follow_up(message_id: str, payload: FollowUpRequest, admin: dict = Depends(require_admin)):
    message = contact.set_follow_up(message_id, payload.follow_up_required, payload.follow_up_date)
    return ok(out(message))
