from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CAPTURE_FIELD = "ftf"
DEFAULT_CATEGORY_FIELD = "category"
DEFAULT_CATEGORY = "default"
DEFAULT_TRACE_DIR = Path("data") / "traces"


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


@dataclass(frozen=True, slots=True)
class FtfLayerConfig:
    provider_id: int = 1
    provider_name: str = "trace"
    # None means os.getpid()
    process_id: int | None = None
    capture_field: str = DEFAULT_CAPTURE_FIELD
    category_field: str = DEFAULT_CATEGORY_FIELD
    default_category: str = DEFAULT_CATEGORY
    trace_path: Path = DEFAULT_TRACE_DIR / "trace.ftf"


def load_config() -> FtfLayerConfig:
    defaults = FtfLayerConfig()
    provider_id = _env_int("FTF_PROVIDER_ID", defaults.provider_id)
    return FtfLayerConfig(
        provider_id=provider_id if provider_id is not None else defaults.provider_id,
        provider_name=_env_str("FTF_PROVIDER_NAME", defaults.provider_name),
        process_id=_env_int("FTF_PROCESS_ID", None),
        capture_field=_env_str("FTF_CAPTURE_FIELD", defaults.capture_field),
        category_field=_env_str("FTF_CATEGORY_FIELD", defaults.category_field),
        default_category=_env_str("FTF_DEFAULT_CATEGORY", defaults.default_category),
        trace_path=Path(_env_str("FTF_TRACE_PATH", str(defaults.trace_path))),
    )


def resolve_trace_root(trace_root: Path | None = None) -> Path:
    if trace_root is not None:
        return trace_root
    env_root = os.getenv("FTF_TRACE_ROOT")
    if env_root:
        return Path(env_root)
    return DEFAULT_TRACE_DIR
