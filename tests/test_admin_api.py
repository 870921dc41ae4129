from __future__ import annotations

from pathlib import Path

import pytest

pytest.importorskip("fastapi")

from fastapi.testclient import TestClient

from ftftrace import FtfLayer, FtfLayerConfig, Registry
from ftftrace.admin.app import create_app

pytestmark = pytest.mark.admin


def _write_trace(path: Path) -> None:
    with FtfLayer.open(path, FtfLayerConfig(process_id=5)) as layer:
        registry = Registry([layer])
        with registry.span("render", ftf=True, category="gfx"):
            registry.event("frame", index=1)
            registry.event("upload", category="io")
        registry.event("tick", ftf=True, category="timer")


@pytest.fixture()
def client(monkeypatch, tmp_path: Path) -> TestClient:
    monkeypatch.delenv("FTF_ADMIN_TOKEN", raising=False)
    _write_trace(tmp_path / "session.ftf")
    return TestClient(create_app(tmp_path))


def test_list_traces(client: TestClient, tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    response = client.get("/api/traces")

    assert response.status_code == 200
    payload = response.json()
    assert payload["root"] == str(tmp_path)
    assert [trace["name"] for trace in payload["traces"]] == ["session.ftf"]
    assert payload["traces"][0]["size_bytes"] > 0


def test_get_trace_summary(client: TestClient) -> None:
    response = client.get("/api/traces/session")

    assert response.status_code == 200
    payload = response.json()
    assert payload["name"] == "session.ftf"
    assert payload["provider"] == {"id": 1, "name": "trace"}
    assert payload["per_category"]["gfx"] == {"instant": 1, "begin": 1, "end": 1}
    assert [duration["name"] for duration in payload["durations"]] == ["render"]


def test_get_trace_not_found(client: TestClient) -> None:
    response = client.get("/api/traces/missing.ftf")

    assert response.status_code == 404


def test_query_trace_filters_events(client: TestClient) -> None:
    response = client.post(
        "/api/traces/session.ftf/query", json={"kind": "instant", "limit": 1}
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["total"] == 3
    assert len(payload["events"]) == 1
    assert payload["events"][0]["name"] == "frame"

    by_category = client.post("/api/traces/session/query", json={"category": "io"}).json()
    assert [event["name"] for event in by_category["events"]] == ["upload"]


def test_query_trace_rejects_bad_limit(client: TestClient) -> None:
    response = client.post("/api/traces/session/query", json={"limit": 0})

    assert response.status_code == 400


def test_admin_token_required(monkeypatch, client: TestClient) -> None:
    monkeypatch.setenv("FTF_ADMIN_TOKEN", "secret")

    assert client.get("/api/traces").status_code == 401
    assert client.get("/api/traces", headers={"X-Admin-Token": "wrong"}).status_code == 401
    assert client.get("/api/traces", headers={"X-Admin-Token": "secret"}).status_code == 200
