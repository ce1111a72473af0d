"""Functional HTTP contract tests via FastAPI TestClient.

Status codes and problem+json bodies for submissions, case configuration,
session transitions (including If-Match), the board payload, the realtime
websocket and the test-support endpoints.
"""

from __future__ import annotations

import pytest

PROBLEM = "application/problem+json"


def _submit(client, **overrides):
    body = {"session_id": "A", "step": 1, "student_name": "Ann", "answer": "Growth loops"}
    body.update(overrides)
    return client.post("/api/v1/responses", json=body)


# -----------------------------
# Responses
# -----------------------------


def test_submit_returns_created_row(client):
    resp = _submit(client)

    assert resp.status_code == 201
    row = resp.json()
    assert (row["case_id"], row["session_id"], row["step"], row["student_name"]) == ("default", "A", 1, "Ann")
    assert isinstance(row["id"], int)
    assert resp.headers.get("X-Request-Id")


def test_duplicate_submit_is_conflict(client):
    assert _submit(client).status_code == 201
    resp = _submit(client, answer="again")

    assert resp.status_code == 409
    assert resp.headers["content-type"].startswith(PROBLEM)
    assert resp.json()["code"] == "DUPLICATE_SUBMISSION"
    assert resp.json()["detail"] == "Already submitted for this step"


@pytest.mark.parametrize("missing", ["student_name", "step", "session_id"])
def test_missing_fields_are_bad_request(client, missing):
    body = {"session_id": "A", "step": 1, "student_name": "Ann", "answer": "x"}
    body.pop(missing)
    resp = client.post("/api/v1/responses", json=body)

    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_FAILED"


def test_unknown_session_is_not_found(client):
    resp = _submit(client, session_id="Z")
    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"


def test_malformed_body_is_unprocessable(client):
    resp = client.post("/api/v1/responses", json={"session_id": "A", "step": "first"})
    assert resp.status_code == 422
    assert resp.headers["content-type"].startswith(PROBLEM)


def test_list_responses_in_store_order(client):
    ids = [_submit(client, student_name=name).json()["id"] for name in ("Ann", "Bob", "Cyd")]
    _submit(client, student_name="Dee", session_id="B")

    resp = client.get("/api/v1/responses", params={"session_id": "a"})
    assert resp.status_code == 200
    assert [r["id"] for r in resp.json()] == ids
    assert len(client.get("/api/v1/responses").json()) == 4


# -----------------------------
# Case configuration
# -----------------------------


def test_default_config_when_absent(client):
    body = client.get("/api/v1/cases/fresh/config").json()
    assert body["id"] == "fresh"
    assert body["title"] == "Case Discussion"
    assert [s["id"] for s in body["sessions"]] == ["A", "B", "C"]
    assert [s["id"] for s in body["steps"]] == list(range(5))


def test_put_config_normalizes_ids_and_registers_sessions(client):
    draft = {
        "title": "Pricing",
        "sessions": [{"id": "x1", "label": "Evening"}],
        "steps": [
            {"id": 7, "topic": "Warmup", "question": "First word?", "type": "sentiment"},
            {"id": 3, "topic": "Decide", "question": "Which tier?", "type": "poll", "pollOptions": ["Basic", " Pro "]},
        ],
        "topics": [{"name": "Warmup", "color": "teal"}, {"name": "Decide", "color": "red"}],
    }
    resp = client.put("/api/v1/cases/pricing/config", json=draft)

    assert resp.status_code == 200
    body = resp.json()
    assert [s["id"] for s in body["steps"]] == [0, 1]
    assert body["steps"][1]["poll_options"] == ["Basic", "Pro"]
    assert [t["step_ids"] for t in body["topics"]] == [[0], [1]]
    assert client.get("/api/v1/cases/pricing/config").json() == body

    sessions = client.get("/api/v1/cases/pricing/sessions").json()
    assert [(s["id"], s["label"]) for s in sessions] == [("X1", "Evening")]
    assert sessions[0]["state"]["current_step"] == 0


def test_put_config_rejects_poll_without_options(client):
    draft = {"steps": [{"topic": "T", "question": "Pick", "type": "poll", "pollOptions": ["  "]}]}
    resp = client.put("/api/v1/cases/bad/config", json=draft)
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_FAILED"


# -----------------------------
# Session state and transitions
# -----------------------------


def test_state_read_registers_default(client):
    resp = client.get("/api/v1/cases/default/sessions/a/state")
    assert resp.status_code == 200
    assert resp.json()["session_id"] == "A"
    assert resp.json()["version"] == 0
    assert resp.headers["ETag"] == '"0"'


def test_transitions_and_if_match(client):
    base = "/api/v1/cases/default/sessions/A/state"
    client.get(base)

    advanced = client.post(f"{base}/advance", headers={"If-Match": '"0"'})
    assert advanced.status_code == 200
    assert advanced.json()["current_step"] == 1
    assert advanced.headers["ETag"] == '"1"'

    stale = client.post(f"{base}/reveal", headers={"If-Match": '"0"'})
    assert stale.status_code == 409
    assert stale.json()["code"] == "STALE_STATE"

    revealed = client.post(f"{base}/reveal", headers={"If-Match": 'W/"1"'})
    assert revealed.json()["revealed_step"] == 0

    toggled = client.post(f"{base}/toggle-mode")
    assert toggled.json()["display_mode"] == "live"

    back = client.post(f"{base}/back")
    assert (back.json()["current_step"], back.json()["revealed_step"]) == (0, 0)


def test_noop_transition_returns_unchanged_state(client):
    base = "/api/v1/cases/default/sessions/A/state"
    resp = client.post(f"{base}/back")
    assert resp.status_code == 200
    assert resp.json()["version"] == 0


def test_invalid_if_match_and_unknown_action(client):
    base = "/api/v1/cases/default/sessions/A/state"
    bad = client.post(f"{base}/advance", headers={"If-Match": "latest"})
    assert bad.status_code == 400
    assert bad.json()["code"] == "PRE_IF_MATCH_INVALID_FORMAT"

    unknown = client.post(f"{base}/jump")
    assert unknown.status_code == 404


def test_reset_via_api(client):
    base = "/api/v1/cases/default/sessions/A/state"
    for _ in range(3):
        client.post(f"{base}/advance")
    for i in range(5):
        assert _submit(client, step=3, student_name=f"s{i}").status_code == 201

    resp = client.post(f"{base}/reset")

    assert resp.status_code == 200
    assert (resp.json()["current_step"], resp.json()["revealed_step"], resp.json()["display_mode"]) == (
        0,
        -1,
        "controlled",
    )
    assert client.get("/api/v1/responses", params={"session_id": "A"}).json() == []


# -----------------------------
# Board
# -----------------------------


def test_board_follows_transitions_and_submissions(client):
    base = "/api/v1/cases/default/sessions/A"
    board = client.get(f"{base}/board").json()
    assert board["loading"] is False
    assert board["connected"] is True
    assert board["step_label"] == "Step 0/4"
    assert board["session_label"] == "Section A"

    for _ in range(4):
        client.post(f"{base}/state/advance")
    client.post(f"{base}/state/toggle-mode")
    for name, choice in (("Ann", "Option A"), ("Bob", "Option A"), ("Cyd", "Option B")):
        _submit(client, step=4, student_name=name, answer=None, poll_choice=choice)

    board = client.get(f"{base}/board").json()
    poll = next(s for p in board["panels"] for s in p["steps"] if s["id"] == 4)["poll"]
    assert [(b["label"], b["count"], b["percent"]) for b in poll["bars"]] == [
        ("Option A", 2, 67),
        ("Option B", 1, 33),
        ("Option C", 0, 0),
    ]


def test_board_retains_only_persistent_case_scopes(client):
    from liveboard.logic import events
    from liveboard.logic.repository_session_state import get_session_state

    hub = client.app.state.hub
    for i in range(5):
        resp = client.get(f"/api/v1/cases/random{i}/sessions/A/board")
        assert resp.status_code == 200
        assert resp.json()["loading"] is False
        assert hub.refcount(f"random{i}", "A") == 0
    assert events.FEED.subscription_count() == 0
    assert get_session_state("random0", "A") is None

    client.get("/api/v1/cases/default/sessions/A/board")
    client.get("/api/v1/cases/default/sessions/A/board")
    assert hub.refcount("default", "A") == 1
    assert events.FEED.subscription_count() == 2


def test_unsaved_case_reads_do_not_write_and_first_transition_does(client):
    from liveboard.logic.repository_session_state import get_session_state

    base = "/api/v1/cases/adhoc/sessions/B/state"
    read = client.get(base)
    assert read.status_code == 200
    assert (read.json()["case_id"], read.json()["version"]) == ("adhoc", 0)
    assert get_session_state("adhoc", "B") is None

    advanced = client.post(f"{base}/advance", headers={"If-Match": '"0"'})
    assert advanced.status_code == 200
    assert (advanced.json()["current_step"], advanced.json()["version"]) == (1, 1)
    stored = get_session_state("adhoc", "B")
    assert stored is not None and stored.version == 1


# -----------------------------
# Realtime websocket
# -----------------------------


def test_websocket_sends_snapshot_then_changes(client):
    first = _submit(client).json()
    with client.websocket_connect("/api/v1/realtime/default/a") as ws:
        snapshot = ws.receive_json()
        assert snapshot["type"] == "snapshot"
        assert snapshot["state"]["session_id"] == "A"
        assert [r["id"] for r in snapshot["responses"]] == [first["id"]]

        second = _submit(client, student_name="Bob").json()
        change = ws.receive_json()
        assert (change["type"], change["table"], change["event"]) == ("change", "response", "insert")
        assert change["new_row"]["id"] == second["id"]

        client.post("/api/v1/cases/default/sessions/A/state/advance")
        change = ws.receive_json()
        assert (change["table"], change["event"]) == ("session_state", "update")
        assert change["new_row"]["current_step"] == 1


def test_websocket_rejects_unknown_session(client):
    from starlette.websockets import WebSocketDisconnect

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/v1/realtime/default/zz") as ws:
            ws.receive_json()


def test_websocket_forwards_resync_after_reset(client):
    _submit(client)
    with client.websocket_connect("/api/v1/realtime/default/A") as ws:
        assert len(ws.receive_json()["responses"]) == 1

        client.post("/api/v1/cases/default/sessions/A/state/advance")
        assert ws.receive_json()["table"] == "session_state"

        client.post("/api/v1/cases/default/sessions/A/state/reset")
        deleted = ws.receive_json()
        assert (deleted["table"], deleted["event"]) == ("response", "delete")
        reset = ws.receive_json()
        assert (reset["table"], reset["event"]) == ("session_state", "update")
        assert reset["new_row"]["current_step"] == 0
        assert client.get("/api/v1/responses", params={"session_id": "A"}).json() == []


def test_websocket_closes_slow_consumer_with_try_again():
    from fastapi.testclient import TestClient
    from starlette.websockets import WebSocketDisconnect

    from liveboard.config import RealtimeConfig, load_config
    from liveboard.logic import events
    from liveboard.main import create_app

    config = load_config()
    config = config.model_copy(update={"realtime": RealtimeConfig(default_case_id="default", ws_queue_max=1)})

    def burst() -> None:
        # Runs on the event loop, so every event is offered before the pump wakes
        for rid in range(1, 51):
            events.FEED.publish(
                events.RESPONSE,
                events.INSERT,
                case_id="default",
                session_id="A",
                new_row={
                    "id": rid,
                    "case_id": "default",
                    "session_id": "A",
                    "step": 1,
                    "student_name": f"s{rid}",
                    "answer": "x",
                    "sentiment": None,
                    "poll_choice": None,
                    "created_at": f"2026-01-01T00:00:{rid:02d}+00:00",
                },
            )

    with TestClient(create_app(config)) as client:
        with client.websocket_connect("/api/v1/realtime/default/A") as ws:
            assert ws.receive_json()["type"] == "snapshot"
            ws.portal.call(burst)
            with pytest.raises(WebSocketDisconnect) as closed:
                while True:
                    ws.receive_json()
            assert closed.value.code == 1013
        assert client.app.state.hub.refcount("default", "A") == 0


# -----------------------------
# Health and test support
# -----------------------------


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_test_support_events_and_reset(client):
    _submit(client)
    published = client.get("/__test__/events").json()
    assert [(e["table"], e["event"]) for e in published][-1] == ("response", "insert")

    assert client.post("/__test__/reset-state").status_code == 204
    assert client.get("/__test__/events").json() == []
    assert client.get("/api/v1/responses").json() == []


def test_request_id_is_echoed(client):
    resp = client.get("/health", headers={"X-Request-Id": "req-42"})
    assert resp.headers["X-Request-Id"] == "req-42"


def test_cors_exposes_etag_to_browsers(client):
    resp = client.get("/api/v1/cases/default/sessions/A/state", headers={"Origin": "http://board.example"})
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "ETag" in resp.headers["access-control-expose-headers"]
