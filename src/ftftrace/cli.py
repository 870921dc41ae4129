from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from ftftrace.admin.trace_parser import parse_trace_file
from ftftrace.codec import FtfError, read_trace_file
from ftftrace.config import load_config
from ftftrace.core import FtfLayer
from ftftrace.host import Registry


def _run_demo(registry: Registry) -> None:
    with registry.span("default_category", ftf=True, id=123, name="test span"):
        registry.event(message="Inside default category span", value=42.5)

    with registry.span("custom_category", ftf=True, category="rendering", id=456):
        registry.event(message="Using parent's rendering category")
        registry.event(ftf=True, category="io", message="Using explicit IO category")

    registry.event(ftf=True, category="standalone", message="Standalone event")

    with registry.span("ignored", id=789, name="ignored span"):
        registry.event(ftf=True, category="networking", message="Explicit category with ftf")

    @registry.instrument(ftf=True, category="compute", kind="helper")
    def sort_values(size: int) -> int:
        values = list(range(size, 0, -1))
        registry.event(action="sorting", before_first=values[0], before_last=values[-1])
        values.sort()
        registry.event(category="results", after_first=values[0], after_last=values[-1])
        return len(values)

    @registry.instrument(ftf=True, category="database", extra="data", count=100)
    def load_rows(row_id: int, label: str) -> int:
        registry.event(operation="collecting", items=999)
        sort_values(999)
        registry.event(category="metrics", sorted=True, size=999)
        return row_id

    @registry.instrument()
    def untraced(row_id: int, label: str) -> int:
        registry.event(operation="untraced", items=row_id)
        return row_id

    load_rows(42, "test")
    untraced(84, "second test")


def _demo_command(args: argparse.Namespace) -> int:
    config = load_config()
    path = Path(args.output) if args.output else config.trace_path
    with FtfLayer.open(path, config) as layer:
        _run_demo(Registry([layer]))
    print(f"Trace file: {path}")
    return 0


def _dump_command(args: argparse.Namespace) -> int:
    path = Path(args.trace)
    if not path.exists():
        raise SystemExit(f"trace file not found: {path}")
    try:
        records = read_trace_file(path, include_interning=args.interning)
    except FtfError as exc:
        raise SystemExit(f"failed to decode {path}: {exc}") from exc
    if args.limit is not None:
        records = records[-args.limit :]
    for record in records:
        print(json.dumps({"kind": record.kind, **record.data}, ensure_ascii=False))
    return 0


def _summary_command(args: argparse.Namespace) -> int:
    path = Path(args.trace)
    if not path.exists():
        raise SystemExit(f"trace file not found: {path}")
    parsed = parse_trace_file(path)
    if args.json:
        print(json.dumps(parsed, indent=2, ensure_ascii=False))
        return 0
    provider = parsed["provider"] or {}
    print(f"Provider: {provider.get('name')} (id {provider.get('id')})")
    for category, counts in sorted(parsed["per_category"].items()):
        print(
            f"  {category}: {counts['begin']} begin, {counts['end']} end, "
            f"{counts['instant']} instant"
        )
    for duration in parsed["durations"]:
        print(f"  [{duration['category']}] {duration['name']}: {duration['duration_ns']} ns")
    if parsed["open_spans"]:
        print(f"Unclosed spans: {len(parsed['open_spans'])}")
    if parsed["error"]:
        print(f"Decode error: {parsed['error']}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ftftrace")
    parser.add_argument("--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    demo_parser = subparsers.add_parser("demo", help="Write a sample trace")
    demo_parser.add_argument("--output")
    demo_parser.set_defaults(func=_demo_command)

    dump_parser = subparsers.add_parser("dump", help="Print decoded records as JSON lines")
    dump_parser.add_argument("trace")
    dump_parser.add_argument("--interning", action="store_true")
    dump_parser.add_argument("--limit", type=int)
    dump_parser.set_defaults(func=_dump_command)

    summary_parser = subparsers.add_parser("summary", help="Summarize a trace file")
    summary_parser.add_argument("trace")
    summary_parser.add_argument("--json", action="store_true")
    summary_parser.set_defaults(func=_summary_command)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
