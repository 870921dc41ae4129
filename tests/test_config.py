from __future__ import annotations

from pathlib import Path

from ftftrace.config import FtfLayerConfig, load_config, resolve_trace_root

ENV_VARS = [
    "FTF_PROVIDER_ID",
    "FTF_PROVIDER_NAME",
    "FTF_PROCESS_ID",
    "FTF_CAPTURE_FIELD",
    "FTF_CATEGORY_FIELD",
    "FTF_DEFAULT_CATEGORY",
    "FTF_TRACE_PATH",
    "FTF_TRACE_ROOT",
]


def _clear_env(monkeypatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_load_config_defaults(monkeypatch) -> None:
    _clear_env(monkeypatch)

    config = load_config()

    assert config == FtfLayerConfig()
    assert config.provider_id == 1
    assert config.provider_name == "trace"
    assert config.process_id is None
    assert (config.capture_field, config.category_field) == ("ftf", "category")
    assert config.default_category == "default"
    assert config.trace_path == Path("data") / "traces" / "trace.ftf"


def test_load_config_reads_environment(monkeypatch, tmp_path) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("FTF_PROVIDER_ID", "42")
    monkeypatch.setenv("FTF_PROVIDER_NAME", " renderer ")
    monkeypatch.setenv("FTF_PROCESS_ID", "900")
    monkeypatch.setenv("FTF_CAPTURE_FIELD", "trace")
    monkeypatch.setenv("FTF_CATEGORY_FIELD", "group")
    monkeypatch.setenv("FTF_DEFAULT_CATEGORY", "misc")
    monkeypatch.setenv("FTF_TRACE_PATH", str(tmp_path / "out.ftf"))

    config = load_config()

    assert config.provider_id == 42
    assert config.provider_name == "renderer"
    assert config.process_id == 900
    assert config.capture_field == "trace"
    assert config.category_field == "group"
    assert config.default_category == "misc"
    assert config.trace_path == tmp_path / "out.ftf"


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("FTF_PROVIDER_ID", "not-a-number")
    monkeypatch.setenv("FTF_PROCESS_ID", "")
    monkeypatch.setenv("FTF_PROVIDER_NAME", "   ")

    config = load_config()

    assert config.provider_id == 1
    assert config.process_id is None
    assert config.provider_name == "trace"


def test_resolve_trace_root(monkeypatch, tmp_path) -> None:
    _clear_env(monkeypatch)
    assert resolve_trace_root() == Path("data") / "traces"

    monkeypatch.setenv("FTF_TRACE_ROOT", str(tmp_path))
    assert resolve_trace_root() == tmp_path
    assert resolve_trace_root(tmp_path / "explicit") == tmp_path / "explicit"
