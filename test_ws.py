"""
test_ws.py

Integration test for WebSocket log streaming.

Uses FastAPI's TestClient (in-process ASGI transport) so:
  - No separate server process needed.
  - The test shares the same job_store and session singletons as the app.
  - WebSocket frames are received synchronously via the test client.

Tests three paths:
  A. Late-join  — WS connects after the job already finished (replays history).
  B. Live       — WS connects while job is still producing lines (streams live).
  C. Unknown    — WS for a job id that was never issued.
"""

import json
import threading
import time
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from api.app import app
from api.jobs import job_store
from api.schemas import JobStatus
from api.session import session
from fakes import FakeMySQLServers, arm_id, make_registry

client = TestClient(app, raise_server_exceptions=False)

HEADERS = {"X-API-Key": "test-key"}


@pytest.fixture(autouse=True)
def configured(monkeypatch):
    monkeypatch.setattr("api.middleware._API_KEY", HEADERS["X-API-Key"])
    session.configure(make_registry(mysql=SimpleNamespace(servers=FakeMySQLServers())))
    yield
    session.reset()


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------

def collect_ws_frames(job_id: str) -> list:
    """Open WS /ws/{job_id} and collect all frames until 'done'."""
    frames = []
    with client.websocket_connect(f"/ws/{job_id}") as ws:
        while True:
            frame = json.loads(ws.receive_text())
            frames.append(frame)
            if frame.get("type") == "done":
                break
    return frames


# ---------------------------------------------------------------------------
# Test A: Late-join path
# ---------------------------------------------------------------------------

def test_late_join():
    """
    Import a server that does not exist, so the job fails at once.
    Connect the WS after it has already finished.
    Expect: replayed log lines, status=failed, error frame, done frame.
    """
    resp = client.post(
        "/resources/azurerm_mysql_server/import",
        headers=HEADERS,
        json={"id": arm_id("rg1", "Microsoft.DBforMySQL", "servers", "missing")},
    )
    assert resp.status_code == 202, f"Expected 202, got {resp.status_code}"
    job_id = resp.json()["job_id"]

    deadline = time.monotonic() + 5
    while job_store.get(job_id).status not in (JobStatus.SUCCEEDED, JobStatus.FAILED):
        assert time.monotonic() < deadline, "job never finished"
        time.sleep(0.05)

    frames = collect_ws_frames(job_id)
    types = [f["type"] for f in frames]

    assert "log" in types, "Missing replayed log lines"
    assert types[-1] == "done", "done must be last"

    status_frame = next(f for f in frames if f["type"] == "status")
    assert status_frame["data"] == "failed"

    error_frame = next(f for f in frames if f["type"] == "error")
    assert "non-existent" in error_frame["data"]


# ---------------------------------------------------------------------------
# Test B: Live streaming path
# ---------------------------------------------------------------------------

def test_live_streaming():
    """
    Inject a job that produces 5 lines over ~1.5 s.
    Connect the WS before it finishes and verify all lines arrive live.
    """
    job = job_store.create("create azurerm_mysql_server")

    def _slow_worker():
        job.status = JobStatus.RUNNING
        for i in range(1, 6):
            job.log(f"Step {i}/5: waiting for creation")
            time.sleep(0.3)
        job.result = {"id": "x", "status": "present"}
        job.status = JobStatus.SUCCEEDED
        job.log_queue.put(None)   # sentinel

    threading.Thread(target=_slow_worker, daemon=True).start()

    t0 = time.time()
    frames = collect_ws_frames(job.job_id)
    elapsed = time.time() - t0

    types = [f["type"] for f in frames]
    log_frames = [f for f in frames if f["type"] == "log"]

    assert len(log_frames) == 5, f"Expected 5 log frames, got {len(log_frames)}"
    assert elapsed >= 1.0, "Took <1 s; streaming may not be live"
    assert types[-1] == "done"

    final_status = next(f for f in reversed(frames) if f["type"] == "status")
    assert final_status["data"] == "succeeded", f"Got: {final_status}"

    result = next(f for f in frames if f["type"] == "result")
    assert result["data"]["status"] == "present"


# ---------------------------------------------------------------------------
# Test C: Unknown job_id
# ---------------------------------------------------------------------------

def test_unknown_job():
    """WS for a non-existent job_id should send error then close."""
    with client.websocket_connect("/ws/does-not-exist") as ws:
        frame = json.loads(ws.receive_text())

    assert frame["type"] == "error"
    assert "does-not-exist" in frame["data"]
