from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ftftrace.admin.trace_parser import parse_trace_file
from ftftrace.config import resolve_trace_root

TRACE_SUFFIX = ".ftf"


class TraceQuery(BaseModel):
    kind: str | None = None
    category: str | None = None
    name: str | None = None
    limit: int = 200


def _resolve_trace_path(root: Path, name: str) -> Path:
    if not name.endswith(TRACE_SUFFIX):
        name = f"{name}{TRACE_SUFFIX}"
    candidate = (root / name).resolve()
    try:
        candidate.relative_to(root.resolve())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="trace path escapes trace root") from exc
    if not candidate.is_file():
        raise HTTPException(status_code=404, detail="Trace file not found")
    return candidate


def _matches(event: dict[str, Any], query: TraceQuery) -> bool:
    if query.kind is not None and event.get("kind") != query.kind:
        return False
    if query.category is not None and event.get("category") != query.category:
        return False
    if query.name is not None and event.get("name") != query.name:
        return False
    return True


def create_app(trace_root: Path | None = None) -> FastAPI:
    root = resolve_trace_root(trace_root)

    app = FastAPI()
    app.state.trace_root = root

    @app.middleware("http")
    async def _auth_middleware(request: Request, call_next):
        token = os.getenv("FTF_ADMIN_TOKEN")
        if token:
            header = request.headers.get("X-Admin-Token")
            if header != token:
                return JSONResponse(status_code=401, content={"detail": "Invalid admin token"})
        return await call_next(request)

    @app.get("/api/traces")
    async def list_traces() -> dict[str, Any]:
        traces: list[dict[str, Any]] = []
        for path in root.glob(f"*{TRACE_SUFFIX}"):
            stat = path.stat()
            traces.append(
                {"name": path.name, "size_bytes": stat.st_size, "mtime": stat.st_mtime}
            )
        traces.sort(key=lambda item: item["mtime"], reverse=True)
        return {"root": str(root), "traces": traces}

    @app.get("/api/traces/{name}")
    async def get_trace(name: str) -> dict[str, Any]:
        path = _resolve_trace_path(root, name)
        return {"name": path.name, **parse_trace_file(path)}

    @app.post("/api/traces/{name}/query")
    async def query_trace(name: str, payload: TraceQuery) -> dict[str, Any]:
        if payload.limit <= 0:
            raise HTTPException(status_code=400, detail="limit must be positive")
        path = _resolve_trace_path(root, name)
        parsed = parse_trace_file(path)
        events = [event for event in parsed["events"] if _matches(event, payload)]
        return {
            "name": path.name,
            "total": len(events),
            "events": events[: payload.limit],
            "error": parsed["error"],
        }

    return app
