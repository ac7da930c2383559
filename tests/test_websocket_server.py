"""PresentationServer tests using Flask and Flask-SocketIO test clients."""

import pytest

import config
from server.websocket_server import PresentationServer

PAYLOAD = {
    "status": "FOCUSED",
    "rawStatus": "FOCUSED",
    "gaze": {"gaze": "CENTER", "horizontalRatio": 0.56, "verticalRatio": -0.002},
    "headPosture": None,
    "stats": {"totalChecks": 1, "distractedChecks": 0},
    "timestamp": 0,
}

RECORD = {
    "participantId": "p-1", "name": "Ada", "status": "FOCUSED",
    "totalChecks": 1, "distractedChecks": 0,
    "peakDistractionPct": 0, "peakDistractionTime": 0,
}


@pytest.fixture
def server():
    return PresentationServer(port=5999)


def test_health_route(server):
    resp = server.app.test_client().get("/health")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "ok"
    assert body["port"] == 5999


def test_status_route_returns_latest(server):
    client = server.app.test_client()
    assert client.get("/status").get_json() == {"frame": None, "report": None}

    server.emit_frame(PAYLOAD)
    server.emit_report(RECORD)
    body = client.get("/status").get_json()
    assert body["frame"] == PAYLOAD
    assert body["report"] == RECORD


def test_socket_client_receives_events_while_running(server):
    client = server.socketio.test_client(server.app)
    assert client.is_connected()
    assert server.client_count == 1

    # Bridge not started: nothing is broadcast
    server.emit_frame(PAYLOAD)
    assert client.get_received() == []

    server._running = True
    server.emit_frame(PAYLOAD)
    server.emit_report(RECORD)
    received = client.get_received()
    names = [r["name"] for r in received]
    assert names == [config.EMIT_FRAME_EVENT, config.EMIT_REPORT_EVENT]
    assert received[0]["args"][0] == PAYLOAD

    server.stop()
    assert not server.is_running
    client.disconnect()


def test_ping_pong(server):
    client = server.socketio.test_client(server.app)
    client.emit("ping_attention", {})
    received = client.get_received()
    assert any(r["name"] == "pong_attention" for r in received)
