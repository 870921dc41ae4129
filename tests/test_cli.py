from __future__ import annotations

import json

import pytest

from ftftrace import cli
from ftftrace.codec import read_trace_file


def _demo(tmp_path, capsys):
    trace_path = tmp_path / "traces" / "demo.ftf"
    exit_code = cli.main(["demo", "--output", str(trace_path)])
    captured = capsys.readouterr()
    return exit_code, captured, trace_path


def test_cli_demo_writes_trace(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.delenv("FTF_PROCESS_ID", raising=False)

    exit_code, captured, trace_path = _demo(tmp_path, capsys)

    assert exit_code == 0
    assert captured.out.strip() == f"Trace file: {trace_path}"
    records = read_trace_file(trace_path)
    spans = [record.data["name"] for record in records if record.kind == "begin"]
    assert spans == ["default_category", "custom_category", "load_rows", "sort_values"]
    instants = [
        (record.data["category"], record.data["args"].get("message"))
        for record in records
        if record.kind == "instant"
    ]
    assert ("networking", "Explicit category with ftf") in instants
    assert ("io", "Using explicit IO category") in instants
    assert ("rendering", "Using parent's rendering category") in instants
    names = {record.data["name"] for record in records if record.kind != "magic" and "name" in record.data}
    assert "ignored" not in names
    assert "untraced" not in names


def test_cli_demo_uses_config_path(monkeypatch, capsys, tmp_path) -> None:
    trace_path = tmp_path / "from_env.ftf"
    monkeypatch.setenv("FTF_TRACE_PATH", str(trace_path))
    monkeypatch.setenv("FTF_PROVIDER_NAME", "demo")

    exit_code = cli.main(["demo"])

    assert exit_code == 0
    assert trace_path.exists()
    assert read_trace_file(trace_path)[1].data["name"] == "demo"
    capsys.readouterr()


def test_cli_dump_prints_json_lines(capsys, tmp_path) -> None:
    _, _, trace_path = _demo(tmp_path, capsys)

    exit_code = cli.main(["dump", str(trace_path), "--limit", "2"])

    lines = capsys.readouterr().out.strip().splitlines()
    assert exit_code == 0
    assert len(lines) == 2
    payloads = [json.loads(line) for line in lines]
    assert payloads[-1]["kind"] == "end"
    assert payloads[-1]["name"] == "load_rows"


def test_cli_dump_with_interning(capsys, tmp_path) -> None:
    _, _, trace_path = _demo(tmp_path, capsys)

    cli.main(["dump", str(trace_path), "--interning"])

    kinds = {json.loads(line)["kind"] for line in capsys.readouterr().out.splitlines()}
    assert {"string", "thread", "magic", "provider"} <= kinds


def test_cli_summary_text_and_json(capsys, tmp_path) -> None:
    _, _, trace_path = _demo(tmp_path, capsys)

    assert cli.main(["summary", str(trace_path)]) == 0
    text = capsys.readouterr().out
    assert text.startswith("Provider: trace (id 1)")
    assert "  compute: 1 begin, 1 end, 1 instant" in text

    assert cli.main(["summary", str(trace_path), "--json"]) == 0
    parsed = json.loads(capsys.readouterr().out)
    assert parsed["error"] is None
    assert parsed["open_spans"] == []
    assert {duration["name"] for duration in parsed["durations"]} == {
        "default_category",
        "custom_category",
        "load_rows",
        "sort_values",
    }


def test_cli_missing_trace_exits(tmp_path) -> None:
    with pytest.raises(SystemExit):
        cli.main(["dump", str(tmp_path / "missing.ftf")])
    with pytest.raises(SystemExit):
        cli.main(["summary", str(tmp_path / "missing.ftf")])


def test_cli_dump_reports_corrupt_trace(tmp_path) -> None:
    trace_path = tmp_path / "corrupt.ftf"
    trace_path.write_bytes(b"\x00" * 8)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["dump", str(trace_path)])

    assert "failed to decode" in str(excinfo.value)
