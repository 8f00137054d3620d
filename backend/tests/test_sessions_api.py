from fastapi.testclient import TestClient

from dmvprep.main import create_app
from dmvprep.services.gemini import AuthenticationFailedError, RemoteServiceError
from dmvprep.services.key_bridge import StaticKeySelector


def _new_session(client) -> str:
    r = client.post("/sessions")
    assert r.status_code == 201
    body = r.json()
    assert body["state"] == "WELCOME"
    return body["sessionId"]


def test_welcome_view(client):
    r = client.post("/sessions")
    body = r.json()
    assert body["seenCount"] == 0
    assert body["needsApiKey"] is False
    assert body["quiz"] is None


def test_full_quiz_flow(client, generator):
    sid = _new_session(client)

    r = client.post(f"/sessions/{sid}/start", json={"difficulty": "easy", "focus": "dui", "questionCount": 3})
    assert r.status_code == 200
    body = r.json()
    assert body["state"] == "QUIZ"
    assert [q["questionId"] for q in body["quiz"]["questions"]] == ["q1", "q2", "q3"]
    assert body["liveStats"]["percentage"] == 100
    config, seen = generator.calls[0]
    assert config.focus == "dui"
    assert seen == []

    r = client.post(f"/sessions/{sid}/answer", json={"questionId": "q1", "option": "A"})
    assert r.status_code == 200
    assert r.json()["recorded"] is True

    r = client.post(f"/sessions/{sid}/answer", json={"questionId": "q1", "option": "B"})
    assert r.json()["recorded"] is False
    assert r.json()["session"]["answers"] == {"q1": "A"}

    r = client.post(f"/sessions/{sid}/answer", json={"questionId": "q2", "option": "C"})
    live = r.json()["session"]["liveStats"]
    assert (live["correct"], live["incorrect"], live["unanswered"], live["percentage"]) == (1, 1, 1, 50)

    r = client.post(f"/sessions/{sid}/complete")
    assert r.status_code == 200
    result = r.json()["result"]
    assert r.json()["state"] == "RESULTS"
    assert (result["correct"], result["incorrect"], result["unanswered"]) == (1, 1, 1)
    assert result["score"] == 33
    assert result["passed"] is False
    assert len(result["review"]) == 3

    assert client.get("/history").json() == {"seenCount": 3}

    r = client.post(f"/sessions/{sid}/retry")
    assert r.json()["state"] == "WELCOME"
    assert r.json()["seenCount"] == 3

    client.post(f"/sessions/{sid}/start", json={"questionCount": 3})
    assert len(generator.calls[1][1]) == 3


def test_complete_with_submitted_answers(client):
    sid = _new_session(client)
    client.post(f"/sessions/{sid}/start", json={"questionCount": 3})
    r = client.post(f"/sessions/{sid}/complete", json={"answers": {"q1": "A", "q2": "A", "q3": "A"}})
    assert r.json()["result"]["score"] == 100
    assert r.json()["result"]["passed"] is True


def test_generation_failure_then_demo(client, generator):
    generator.error = RemoteServiceError("503 UNAVAILABLE: model overloaded")
    sid = _new_session(client)

    r = client.post(f"/sessions/{sid}/start", json={})
    body = r.json()
    assert body["state"] == "ERROR"
    assert body["error"] == "503 UNAVAILABLE: model overloaded"
    assert body["quiz"] is None
    assert body["canReselectKey"] is False

    r = client.post(f"/sessions/{sid}/demo")
    body = r.json()
    assert body["state"] == "QUIZ"
    assert body["error"] is None
    assert body["quiz"]["questions"][0]["questionId"] == "demo1"


def test_error_back_to_welcome(client, generator):
    generator.error = RuntimeError("")
    sid = _new_session(client)
    r = client.post(f"/sessions/{sid}/start", json={})
    assert r.json()["error"] == "We encountered an issue crafting your unique exam. Please try again."

    r = client.post(f"/sessions/{sid}/back")
    assert r.json()["state"] == "WELCOME"
    assert r.json()["error"] is None


def test_auth_failure_offers_key_reselection(generator, history):
    generator.error = AuthenticationFailedError()
    selector = StaticKeySelector(selected=False)
    client = TestClient(create_app(generator=generator, history_store=history, key_selector=selector))

    sid = client.post("/sessions").json()["sessionId"]
    body = client.post(f"/sessions/{sid}/start", json={}).json()
    assert body["error"] == "Authentication Failed: Please re-select your Google API Key."
    assert body["canReselectKey"] is True

    body = client.post(f"/sessions/{sid}/reselect-key").json()
    assert body["state"] == "WELCOME"
    assert body["needsApiKey"] is False
    assert selector.open_calls == 1


def test_connect_key_from_welcome(generator, history):
    selector = StaticKeySelector(selected=False)
    client = TestClient(create_app(generator=generator, history_store=history, key_selector=selector))

    body = client.post("/sessions").json()
    assert body["needsApiKey"] is True
    body = client.post(f"/sessions/{body['sessionId']}/connect-key").json()
    assert body["needsApiKey"] is False


class _UnreachableBridge:
    async def has_selected_api_key(self):
        raise RuntimeError("bridge unavailable")

    async def open_select_key(self):
        return None


def test_welcome_view_survives_key_bridge_failure(generator, history):
    client = TestClient(create_app(generator=generator, history_store=history, key_selector=_UnreachableBridge()))

    r = client.post("/sessions")
    assert r.status_code == 201
    body = r.json()
    assert body["state"] == "WELCOME"
    assert body["needsApiKey"] is False

    r = client.get(f"/sessions/{body['sessionId']}")
    assert r.status_code == 200


def test_invalid_transitions_conflict(client):
    sid = _new_session(client)

    r = client.post(f"/sessions/{sid}/answer", json={"questionId": "q1", "option": "A"})
    assert r.status_code == 409
    assert r.json()["error_code"] == "invalid_transition"
    assert r.json()["ok"] is False

    assert client.post(f"/sessions/{sid}/complete").status_code == 409
    assert client.post(f"/sessions/{sid}/retry").status_code == 409
    assert client.post(f"/sessions/{sid}/back").status_code == 409


def test_unknown_question_is_404(client):
    sid = _new_session(client)
    client.post(f"/sessions/{sid}/demo")
    r = client.post(f"/sessions/{sid}/answer", json={"questionId": "zzz", "option": "A"})
    assert r.status_code == 404


def test_unknown_session_is_404(client):
    r = client.get("/sessions/does-not-exist")
    assert r.status_code == 404
    assert r.json()["error_code"] == "not_found"


def test_delete_session(client):
    sid = _new_session(client)
    assert client.delete(f"/sessions/{sid}").status_code == 204
    assert client.get(f"/sessions/{sid}").status_code == 404


def test_invalid_config_is_rejected(client):
    sid = _new_session(client)
    r = client.post(f"/sessions/{sid}/start", json={"focus": "parking"})
    assert r.status_code == 422
    assert client.get(f"/sessions/{sid}").json()["state"] == "WELCOME"


def test_request_id_header(client):
    r = client.post("/sessions", headers={"X-Request-ID": "rid-1"})
    assert r.headers["X-Request-ID"] == "rid-1"
