from __future__ import annotations

import argparse
from pathlib import Path

from ftftrace.codec import FtfError, read_trace_file
from ftftrace.config import resolve_trace_root


def _tail_lines(path: Path, limit: int) -> list[str]:
    try:
        records = read_trace_file(path)
    except FtfError as exc:
        return [f"[unreadable] {exc}"]
    lines = []
    for record in records[-limit:]:
        data = record.data
        if record.kind in {"instant", "begin", "end"}:
            args = data["args"] or ""
            lines.append(
                f"{data['ts']:>14} {record.kind:<7} tid={data['tid']} "
                f"[{data['category']}] {data['name']} {args}".rstrip()
            )
        else:
            lines.append(f"{'':>14} {record.kind:<7} {data}")
    return lines


def main() -> None:
    parser = argparse.ArgumentParser(description="Dump recent FTF trace files and their tails.")
    parser.add_argument(
        "--trace-root",
        type=Path,
        default=None,
        help="Directory holding .ftf files (default: FTF_TRACE_ROOT or data/traces).",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=5,
        help="Number of recent trace files to show (default: 5).",
    )
    parser.add_argument(
        "--lines",
        type=int,
        default=20,
        help="Number of records to print per trace file (default: 20).",
    )
    args = parser.parse_args()

    trace_root = resolve_trace_root(args.trace_root)
    paths = sorted(trace_root.glob("*.ftf"), key=lambda path: path.stat().st_mtime)
    if not paths:
        raise SystemExit(f"No trace files found under {trace_root}.")

    print("Recent traces:")
    for trace_path in paths[-args.limit :]:
        print(f"\n== {trace_path.name} ==")
        for line in _tail_lines(trace_path, args.lines):
            print(line)


if __name__ == "__main__":
    main()
