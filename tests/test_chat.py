"""Tests for the RAG chat endpoint."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from lokseva.config.prompt_templates import ANONYMOUS_PROFILE, NO_AGENCIES_FOUND


SAHARA = {"id": "a1", "name": "Sahara Home Nursing", "area": "Kothrud", "services": "24x7 nursing, diabetes care", "rating": 4.7, "_distance": 0.12}
AADHAR = {"id": "a2", "name": "Aadhar Elder Care", "area": "Aundh", "services": "physiotherapy", "rating": 4.5, "_distance": 0.31}


def _model_json(reply: str, names: list[str]) -> str:
    return json.dumps({"reply": reply, "recommendations": [{"name": n, "rating": 4.0, "location": "Pune", "reason": "Fits"} for n in names]})


@pytest.fixture
def existing_conversation(fake_db):
    """A stored conversation with 35 messages numbered message-00 … message-34."""
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    messages = [{"sender": "user" if i % 2 == 0 else "bot", "text": f"message-{i:02d}", "timestamp": start + timedelta(minutes=i)} for i in range(35)]
    doc = {"_id": ObjectId(), "user_email": "asha@example.com", "title": "Physio for knee", "createdAt": start, "messages": messages}
    fake_db["conversations"].docs.append(doc)
    return doc


class TestChatValidation:
    def test_missing_user_email(self, test_client: TestClient, fake_llm) -> None:
        response = test_client.post("/api/chat", json={"message": "hello"})

        assert response.status_code == 400
        assert response.json() == {"error": "user_email is required"}
        assert fake_llm.prompts == []

    def test_blank_message(self, test_client: TestClient, fake_llm) -> None:
        response = test_client.post("/api/chat", json={"user_email": "asha@example.com", "message": "   "})

        assert response.status_code == 400
        assert response.json() == {"error": "message is required"}

    def test_unknown_conversation_is_not_found(self, test_client: TestClient, fake_llm, fake_store) -> None:
        for conversation_id in ("0123456789abcdef01234567", "not-an-object-id"):
            response = test_client.post("/api/chat", json={"user_email": "asha@example.com", "message": "hi", "conversationId": conversation_id})

            assert response.status_code == 404
            assert response.json() == {"error": "Chat not found"}
        assert fake_llm.prompts == []
        assert fake_store.queries == []


class TestChatFlow:
    def test_unknown_identity_gets_anonymous_reply(self, test_client: TestClient, fake_llm, fake_store) -> None:
        fake_store.matches = [SAHARA]
        fake_llm.reply = _model_json("Sahara can help.", ["Sahara Home Nursing"])

        response = test_client.post("/api/chat", json={"user_email": "stranger@example.com", "message": "Need a nurse for my father"})

        assert response.status_code == 200
        data = response.json()
        assert data["reply"] == "Sahara can help."
        assert [r["name"] for r in data["recommendations"]] == ["Sahara Home Nursing"]
        assert ANONYMOUS_PROFILE in fake_llm.chat_prompts[0]

    def test_profile_and_agencies_reach_the_prompt(self, test_client: TestClient, fake_db, fake_llm, fake_store) -> None:
        fake_db["users"].docs.append({"email": "asha@example.com", "name": "Asha", "age": 72, "medicalHistory": "Type 2 diabetes", "address": "Kothrud"})
        fake_store.matches = [SAHARA, AADHAR]

        test_client.post("/api/chat", json={"user_email": "asha@example.com", "message": "Who can check my sugar at home?"})

        prompt = fake_llm.chat_prompts[0]
        assert "Medical History: Type 2 diabetes" in prompt
        assert "Agency: Sahara Home Nursing, Services: 24x7 nursing, diabetes care, Rating: 4.7, Area: Kothrud" in prompt
        assert "Agency: Aadhar Elder Care" in prompt
        assert 'USER QUERY: "Who can check my sugar at home?"' in prompt
        # The raw message is what gets embedded.
        assert fake_store.queries == [("Who can check my sugar at home?", 5)]

    def test_empty_retrieval_never_yields_invented_agencies(self, test_client: TestClient, fake_llm, fake_store) -> None:
        fake_store.matches = []
        fake_llm.reply = _model_json("Try Imaginary Care.", ["Imaginary Care Pvt Ltd"])

        response = test_client.post("/api/chat", json={"user_email": "asha@example.com", "message": "Need a night nurse"})

        assert response.status_code == 200
        assert response.json()["recommendations"] == []
        assert NO_AGENCIES_FOUND in fake_llm.chat_prompts[0]

    def test_recommendations_outside_retrieved_set_are_dropped(self, test_client: TestClient, fake_llm, fake_store) -> None:
        fake_store.matches = [SAHARA]
        fake_llm.reply = _model_json("Two options.", ["sahara home nursing", "Made Up Agency"])

        response = test_client.post("/api/chat", json={"user_email": "asha@example.com", "message": "nurse"})

        assert [r["name"] for r in response.json()["recommendations"]] == ["sahara home nursing"]

    def test_code_fenced_json_is_parsed(self, test_client: TestClient, fake_llm, fake_store) -> None:
        fake_store.matches = [AADHAR]
        fake_llm.reply = "```json\n" + _model_json("Physio at home.", ["Aadhar Elder Care"]) + "\n```"

        response = test_client.post("/api/chat", json={"user_email": "asha@example.com", "message": "physio"})

        data = response.json()
        assert data["reply"] == "Physio at home."
        assert data["recommendations"][0]["location"] == "Pune"

    def test_malformed_output_degrades_to_plain_reply(self, test_client: TestClient, fake_llm, fake_store) -> None:
        fake_store.matches = [SAHARA]
        fake_llm.reply = "Sorry, I could not format that properly."

        response = test_client.post("/api/chat", json={"user_email": "asha@example.com", "message": "nurse"})

        assert response.status_code == 200
        assert response.json()["reply"] == "Sorry, I could not format that properly."
        assert response.json()["recommendations"] == []

    def test_off_schema_recommendation_fields_keep_the_reply(self, test_client: TestClient, fake_llm, fake_store) -> None:
        fake_store.matches = [SAHARA, AADHAR]
        fake_llm.reply = json.dumps({
            "reply": "Sahara fits.",
            "recommendations": [
                {"name": "Sahara Home Nursing", "rating": "N/A", "location": "Kothrud", "reason": "Night nurses"},
                {"rating": 4.5, "location": "Aundh"},
            ],
        })

        data = test_client.post("/api/chat", json={"user_email": "asha@example.com", "message": "nurse"}).json()

        assert data["reply"] == "Sahara fits."
        assert data["recommendations"] == [{"name": "Sahara Home Nursing", "rating": None, "location": "Kothrud", "reason": "Night nurses"}]

    @pytest.mark.parametrize("recommendations", [None, "none", {"name": "Sahara Home Nursing"}])
    def test_non_list_recommendations_keep_the_reply(self, test_client: TestClient, fake_llm, fake_store, recommendations) -> None:
        fake_store.matches = [SAHARA]
        fake_llm.reply = json.dumps({"reply": "Sahara fits.", "recommendations": recommendations})

        data = test_client.post("/api/chat", json={"user_email": "asha@example.com", "message": "nurse"}).json()

        assert data["reply"] == "Sahara fits."
        assert data["recommendations"] == []

    def test_json_without_reply_is_returned_as_text(self, test_client: TestClient, fake_llm) -> None:
        fake_llm.reply = '{"answer": "wrong key"}'

        data = test_client.post("/api/chat", json={"user_email": "asha@example.com", "message": "nurse"}).json()

        assert data["reply"] == '{"answer": "wrong key"}'

    def test_generation_failure_is_a_generic_error(self, test_client: TestClient, fake_llm) -> None:
        fake_llm.error = RuntimeError("429 quota exceeded")

        response = test_client.post("/api/chat", json={"user_email": "asha@example.com", "message": "nurse"})

        assert response.status_code == 500
        assert response.json() == {"error": "Something went wrong"}


class TestChatPersistence:
    def test_new_conversation_gets_generated_title(self, test_client: TestClient, fake_db, fake_llm) -> None:
        fake_llm.title = '"Finding a reliable night nurse for an elderly parent in Pune"\n'

        response = test_client.post("/api/chat", json={"user_email": "asha@example.com", "message": "Need a night nurse"})

        data = response.json()
        assert data["title"] == "Finding a reliable night nurse for an elderly pare"
        assert len(data["title"]) <= 50

        stored = fake_db["conversations"].docs
        assert len(stored) == 1
        assert str(stored[0]["_id"]) == data["conversationId"]
        assert stored[0]["user_email"] == "asha@example.com"
        assert [(m["sender"], m["text"]) for m in stored[0]["messages"]] == [("user", "Need a night nurse"), ("bot", "Here is what I found.")]

    def test_continuing_conversation_appends_and_keeps_title(self, test_client: TestClient, fake_db, fake_llm, existing_conversation) -> None:
        conversation_id = str(existing_conversation["_id"])

        response = test_client.post("/api/chat", json={"user_email": "asha@example.com", "message": "And on weekends?", "conversationId": conversation_id})

        data = response.json()
        assert data["conversationId"] == conversation_id
        assert data["title"] == "Physio for knee"
        assert len(fake_db["conversations"].docs) == 1
        assert len(existing_conversation["messages"]) == 37
        assert existing_conversation["messages"][-2]["text"] == "And on weekends?"
        # Only the chat prompt was generated; no title call.
        assert len(fake_llm.prompts) == 1

    def test_transcript_is_limited_to_recent_window(self, test_client: TestClient, fake_llm, existing_conversation) -> None:
        test_client.post("/api/chat", json={"user_email": "asha@example.com", "message": "next", "conversationId": str(existing_conversation["_id"])})

        prompt = fake_llm.chat_prompts[0]
        assert "message-04" not in prompt
        assert "BOT: message-05" in prompt
        assert "USER: message-34" in prompt

    def test_missing_title_is_regenerated(self, test_client: TestClient, fake_llm, existing_conversation) -> None:
        existing_conversation["title"] = None
        fake_llm.title = "Weekend physio"

        response = test_client.post("/api/chat", json={"user_email": "asha@example.com", "message": "weekends?", "conversationId": str(existing_conversation["_id"])})

        assert response.json()["title"] == "Weekend physio"
        assert existing_conversation["title"] == "Weekend physio"
