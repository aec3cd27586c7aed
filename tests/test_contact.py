"""Contact messages and spam scoring."""

from datetime import timedelta

import pytest
from bson import ObjectId

from database import utcnow
from schemas import ContactMessage
from services import contact


def message_payload(email="hana@example.com", message="Do you ship to Jordan?", **overrides):
    payload = {
        "customer_info": {"first_name": "Hana", "last_name": "Khalil", "email": email},
        "subject": "Shipping question",
        "message": message,
        "category": "order_support",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def message_id(db):
    return str(contact.create_message(ContactMessage(**message_payload()))["_id"])


class TestSpamScoring:

    def test_clean_message(self, db):
        assert contact.spam_score("hana@example.com", "Do you ship to Jordan?") == (0, [])

    def test_disposable_domain_and_keywords(self, db):
        score, reasons = contact.spam_score("x@mailinator.com", "URGENT: you are a WINNER")
        assert score == 40 + 15 + 15
        assert "disposable_email" in reasons
        assert "spam_keyword:urgent" in reasons
        assert "spam_keyword:winner" in reasons

    def test_links(self, db):
        text = " ".join(f"https://spam{i}.example" for i in range(4))
        assert contact.spam_score("a@b.com", text) == (25, ["excessive_links"])
        assert contact.spam_score("a@b.com", text[:60])[0] == 0

    def test_duplicate_and_frequency(self, db):
        now = utcnow()
        for _ in range(6):
            db["contact_message"].insert_one({
                "customer_info": {"email": "a@b.com"},
                "message": "hello",
                "created_at": now - timedelta(minutes=10),
            })
        score, reasons = contact.spam_score("a@b.com", "hello")
        assert score == 80
        assert reasons == ["duplicate_message", "high_frequency"]

    def test_score_is_capped(self, db):
        text = "viagra casino lottery winner congratulations urgent act now limited time free money guaranteed"
        assert contact.spam_score("x@tempmail.org", text)[0] == 100


class TestSubmission:

    def test_submit(self, client, db):
        resp = client.post("/api/contact", json=message_payload())
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["message_number"].startswith("CM")
        stored = db["contact_message"].find_one({"_id": ObjectId(data["message_id"])})
        assert stored["status"] == "new"
        assert stored["is_spam"] is False
        assert stored["customer_interaction_count"] == 1

    def test_spam_is_closed(self, client, db):
        client.post("/api/contact", json=message_payload(
            email="bot@guerrillamail.com", message="Congratulations winner! Claim your free money now"))
        stored = db["contact_message"].find_one({})
        assert stored["is_spam"] is True
        assert stored["status"] == "closed"
        assert stored["spam_score"] == 85

    def test_interaction_count(self, client, db):
        client.post("/api/contact", json=message_payload(message="First"))
        client.post("/api/contact", json=message_payload(message="Second"))
        counts = sorted(m["customer_interaction_count"] for m in db["contact_message"].find())
        assert counts == [1, 2]

    def test_validation(self, client):
        assert client.post("/api/contact", json=message_payload(category="gossip")).status_code == 422
        assert client.post("/api/contact", json=message_payload(message="")).status_code == 422


class TestAdmin:

    def test_get_marks_read(self, client, admin_headers, message_id):
        resp = client.get(f"/api/contact/messages/{message_id}", headers=admin_headers)
        assert resp.json()["data"]["status"] == "read"

    def test_list_excludes_spam_by_default(self, client, admin_headers, message_id, db):
        db["contact_message"].insert_one({**message_payload(), "is_spam": True, "status": "closed",
                                          "created_at": utcnow()})
        resp = client.get("/api/contact/messages", headers=admin_headers)
        assert resp.json()["data"]["pagination"]["total"] == 1
        resp = client.get("/api/contact/messages", params={"is_spam": True}, headers=admin_headers)
        assert resp.json()["data"]["pagination"]["total"] == 1

    def test_response_moves_to_in_progress(self, client, admin_headers, message_id):
        resp = client.post(f"/api/contact/messages/{message_id}/responses",
                           json={"message": "Yes, we ship to Amman."}, headers=admin_headers)
        data = resp.json()["data"]
        assert data["status"] == "in_progress"
        assert data["responses"][0]["method"] == "email"

    def test_assign_note_and_status(self, client, admin_headers, admin_user, message_id):
        resp = client.put(f"/api/contact/messages/{message_id}/assign",
                          json={"user_id": str(admin_user["_id"])}, headers=admin_headers)
        assert resp.json()["data"]["assigned_to"] == str(admin_user["_id"])

        resp = client.post(f"/api/contact/messages/{message_id}/notes", json={"note": "Called back"},
                           headers=admin_headers)
        assert resp.json()["data"]["admin_notes"][0]["is_internal"] is True

        resp = client.put(f"/api/contact/messages/{message_id}/status",
                          json={"status": "resolved", "reason": "Answered"}, headers=admin_headers)
        assert resp.json()["data"]["resolution"] == "Answered"

    def test_assign_unknown_user(self, client, admin_headers, message_id):
        resp = client.put(f"/api/contact/messages/{message_id}/assign",
                          json={"user_id": "64b7f0c2a1b2c3d4e5f60718"}, headers=admin_headers)
        assert resp.status_code == 404

    def test_mark_spam(self, client, admin_headers, message_id):
        resp = client.put(f"/api/contact/messages/{message_id}/spam", json={"reasons": ["abusive"]},
                          headers=admin_headers)
        data = resp.json()["data"]
        assert (data["is_spam"], data["spam_score"], data["status"]) == (True, 100, "closed")

    def test_follow_ups(self, client, admin_headers, message_id):
        past = (utcnow() - timedelta(days=1)).isoformat()
        client.put(f"/api/contact/messages/{message_id}/follow-up",
                   json={"follow_up_required": True, "follow_up_date": past}, headers=admin_headers)
        resp = client.get("/api/contact/follow-up", headers=admin_headers)
        assert [m["id"] for m in resp.json()["data"]] == [message_id]

    def test_statistics(self, client, admin_headers, message_id):
        stats = client.get("/api/contact/statistics", headers=admin_headers).json()["data"]
        assert stats["total"] == 1
        assert stats["by_category"] == {"order_support": 1}
        assert stats["unanswered"] == 1
