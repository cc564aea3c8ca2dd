import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from campushelp.main import app
from campushelp.utils.dependencies import get_chat_service, get_help_request_service, get_profile_service, get_question_service


ALICE = {"X-User-Id": "alice", "X-User-Email": "alice@metu.edu.tr", "X-User-Name": "Alice"}
BOB = {"X-User-Id": "bob", "X-User-Email": "bob@metu.edu.tr", "X-User-Name": "Bob"}
CAROL = {"X-User-Id": "carol", "X-User-Email": "carol@metu.edu.tr"}


@pytest.fixture
def client(chat_service, help_service, question_service, profile_service):
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    app.dependency_overrides[get_help_request_service] = lambda: help_service
    app.dependency_overrides[get_question_service] = lambda: question_service
    app.dependency_overrides[get_profile_service] = lambda: profile_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _accepted_chat(client) -> dict:
    created = client.post("/help-requests", json={"title": "Umbrella", "category": "other", "location": "Main gate"}, headers=ALICE)
    assert created.status_code == 201
    offered = client.post(f"/help-requests/{created.json()['id']}/offer", headers=BOB)
    assert offered.status_code == 200
    return offered.json()["chat"]


def receive_until(ws, predicate, limit: int = 20) -> dict:
    for _ in range(limit):
        frame = ws.receive_json()
        if predicate(frame):
            return frame
    raise AssertionError("expected frame never arrived")


def test_requires_identity(client) -> None:
    assert client.get("/chats").status_code == 401


def test_rejects_outside_domain(client) -> None:
    headers = {"X-User-Id": "eve", "X-User-Email": "eve@gmail.com"}
    response = client.get("/chats", headers=headers)
    assert response.status_code == 403
    assert "metu.edu.tr" in response.json()["detail"]


def test_help_request_lifecycle(client) -> None:
    chat = _accepted_chat(client)
    assert chat["participants"] == ["alice", "bob"]

    listed = client.get("/help-requests", headers=CAROL).json()["items"]
    assert listed == []

    again = client.post(f"/help-requests/{chat['request_id']}/offer", headers=CAROL)
    assert again.status_code == 409


def test_cannot_offer_help_on_own_request(client) -> None:
    created = client.post("/help-requests", json={"title": "Umbrella", "category": "other", "location": "Main gate"}, headers=ALICE)
    response = client.post(f"/help-requests/{created.json()['id']}/offer", headers=ALICE)
    assert response.status_code == 400


def test_unknown_help_request(client) -> None:
    assert client.get("/help-requests/nope", headers=ALICE).status_code == 404


def test_chat_routes(client) -> None:
    chat = _accepted_chat(client)
    chat_id = chat["id"]

    assert [c["id"] for c in client.get("/chats", headers=ALICE).json()["items"]] == [chat_id]
    assert client.get(f"/chats/by-request/{chat['request_id']}", headers=BOB).json()["id"] == chat_id
    assert client.get(f"/chats/{chat_id}", headers=CAROL).status_code == 403
    assert client.get("/chats/ghost", headers=ALICE).status_code == 404

    assert client.post(f"/chats/{chat_id}/messages", json={"body": "  "}, headers=BOB).status_code == 400
    sent = client.post(f"/chats/{chat_id}/messages", json={"body": "I have one"}, headers=BOB)
    assert sent.status_code == 201
    assert sent.json()["sender_name"] == "Bob"

    messages = client.get(f"/chats/{chat_id}/messages", headers=ALICE).json()["items"]
    assert [m["body"] for m in messages] == ["I have one"]

    done = client.post(f"/chats/{chat_id}/complete", headers=ALICE)
    assert done.status_code == 200
    assert done.json()["status"] == "finalized"
    assert client.get(f"/help-requests/{chat['request_id']}", headers=ALICE).json()["status"] == "finalized"

    late = client.post(f"/chats/{chat_id}/messages", json={"body": "thanks!"}, headers=ALICE)
    assert late.status_code == 409


def test_overlay_socket_requires_identity(client) -> None:
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/overlay/ws") as ws:
            ws.receive_json()
    assert exc.value.code == 4401


def test_overlay_socket_session(client) -> None:
    chat = _accepted_chat(client)

    with client.websocket_connect("/overlay/ws?user_id=bob&email=bob@metu.edu.tr&name=Bob") as ws:
        first = ws.receive_json()
        assert first["type"] == "state" and first["is_minimized"] is True

        state = receive_until(ws, lambda f: f["type"] == "state" and f["unread_count"] == 1)
        assert [c["id"] for c in state["chats"]] == [chat["id"]]

        ws.send_json({"type": "toggle_minimize"})
        expanded = receive_until(ws, lambda f: f["type"] == "state" and not f["is_minimized"])
        assert expanded["is_open"] is True and expanded["active_view"] == "threads"

        ws.send_json({"type": "open_chat", "chat_id": chat["id"]})
        opened = receive_until(ws, lambda f: f["type"] == "state" and f["active_chat_id"] == chat["id"])
        assert opened["active_view"] == "conversation"
        loaded = receive_until(ws, lambda f: f["type"] == "messages" and f["chat_id"] == chat["id"] and not f["loading"])
        assert loaded["chat"]["request_title"] == "Umbrella"

        ws.send_json({"type": "send_message", "body": "on my way"})
        thread = receive_until(ws, lambda f: f["type"] == "messages" and f["messages"])
        assert [m["body"] for m in thread["messages"]] == ["on my way"]

        ws.send_text("not json")
        assert receive_until(ws, lambda f: f["type"] == "error")["error"] == "Invalid frame"

        ws.send_json({"type": "close_chat"})
        closed = receive_until(ws, lambda f: f["type"] == "state" and not f["is_open"])
        assert closed["is_open"] is False and closed["active_chat_id"] is None


def test_request_status_and_delete_routes(client) -> None:
    created = client.post("/help-requests", json={"title": "Charger", "category": "other", "location": "Library"}, headers=ALICE).json()
    path = f"/help-requests/{created['id']}"

    assert client.patch(f"{path}/status", json={"status": "cancelled"}, headers=BOB).status_code == 403
    assert client.patch(f"{path}/status", json={"status": "accepted"}, headers=ALICE).status_code == 422
    cancelled = client.patch(f"{path}/status", json={"status": "cancelled"}, headers=ALICE)
    assert cancelled.status_code == 200 and cancelled.json()["status"] == "cancelled"

    assert client.delete(path, headers=BOB).status_code == 403
    assert client.delete(path, headers=ALICE).status_code == 204
    assert client.get(path, headers=ALICE).status_code == 404
    assert client.delete(path, headers=ALICE).status_code == 404


def test_accepted_request_is_locked(client) -> None:
    chat = _accepted_chat(client)
    path = f"/help-requests/{chat['request_id']}"
    assert client.patch(f"{path}/status", json={"status": "fulfilled"}, headers=ALICE).status_code == 409
    assert client.delete(path, headers=ALICE).status_code == 409


def test_question_routes(client) -> None:
    asked = client.post("/questions", json={"title": "Best study spot?", "tags": ["study"]}, headers=ALICE)
    assert asked.status_code == 201
    question_id = asked.json()["id"]
    assert client.post("/questions", json={"title": "   "}, headers=ALICE).status_code == 400

    assert client.patch(f"/questions/{question_id}", json={"title": "Mine"}, headers=BOB).status_code == 403
    assert client.get("/questions/ghost", headers=BOB).status_code == 404

    answer = client.post(f"/questions/{question_id}/answers", json={"body": "Library 3rd floor"}, headers=BOB)
    assert answer.status_code == 201
    answer_id = answer.json()["id"]

    assert client.post(f"/questions/{question_id}/answers/{answer_id}/accept", headers=BOB).status_code == 403
    accepted = client.post(f"/questions/{question_id}/answers/{answer_id}/accept", headers=ALICE)
    assert accepted.json()["accepted"] is True

    voted = client.post(f"/questions/{question_id}/vote", json={"vote": "upvote"}, headers=CAROL)
    assert voted.json()["votes"] == 1
    answer_vote = client.post(f"/questions/{question_id}/answers/{answer_id}/vote", json={"vote": "downvote"}, headers=CAROL)
    assert answer_vote.json()["votes"] == -1
    mine = client.get("/questions/votes", params={"ids": [question_id, answer_id]}, headers=CAROL).json()["votes"]
    assert mine == {question_id: "upvote", answer_id: "downvote"}

    listed = client.get("/questions", params={"tag": "study", "sort": "popular"}, headers=CAROL).json()["items"]
    assert [(q["id"], q["answer_count"], q["has_accepted_answer"]) for q in listed] == [(question_id, 1, True)]
    assert client.get("/questions", params={"sort": "unanswered"}, headers=CAROL).json()["items"] == []

    assert client.delete(f"/questions/{question_id}/answers/{answer_id}", headers=ALICE).status_code == 403
    assert client.delete(f"/questions/{question_id}", headers=ALICE).status_code == 204
    assert client.get(f"/questions/{question_id}/answers", headers=ALICE).status_code == 404


def test_profile_routes(client) -> None:
    _accepted_chat(client)
    client.post("/questions", json={"title": "Shuttle times?"}, headers=BOB)

    assert client.get("/profile/stats", headers=ALICE).json() == {"requests_posted": 1, "help_given": 0, "questions_asked": 0}
    bob = client.get("/profile/stats", params={"user_id": "bob"}, headers=ALICE).json()
    assert bob == {"requests_posted": 0, "help_given": 1, "questions_asked": 1}

    activity = client.get("/profile/activity", headers=BOB).json()["items"]
    assert [a["type"] for a in activity] == ["question", "help"]
