#!/usr/bin/env python3
"""
core-heart-inspect - read-only terminal view of the persisted stores

    core-heart-inspect breath --limit 20
    core-heart-inspect purify
    core-heart-inspect central
    core-heart-inspect ledger --limit 50
    core-heart-inspect meeting meet-1733212800000-a1b2c
    core-heart-inspect paths

Nothing here writes to the stores.
"""
import argparse
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from core_heart.core.config import get_config
from core_heart.core.error_handler import CoreHeartError
from core_heart.core.pipeline import CoreHeart

PREVIEW_CHARS = 60


def _preview(text) -> str:
    text = str(text or "").replace("\n", " ")
    return text[:PREVIEW_CHARS] + ("..." if len(text) > PREVIEW_CHARS else "")


def _ms(value) -> str:
    if not value:
        return "-"
    try:
        return datetime.fromtimestamp(int(value) / 1000).strftime("%Y-%m-%d %H:%M:%S")
    except (TypeError, ValueError, OverflowError, OSError):
        return str(value)


def show_breath(heart: CoreHeart, console: Console, limit=None) -> int:
    items = heart.breath.recent(limit)
    table = Table(title=f"🌬 Breath log ({len(items)} shown)", box=box.SIMPLE)
    table.add_column("id", style="cyan")
    table.add_column("room", width=12)
    table.add_column("received", width=19)
    table.add_column("text", style="white")
    table.add_column("consumed", style="dim")

    for item in items:
        table.add_row(
            item.id,
            item.room_id or "-",
            _ms(item.received_at),
            _preview(item.text),
            item.consumed_to or "",
        )

    console.print(table)
    return 0


def show_purify(heart: CoreHeart, console: Console) -> int:
    items = heart.purify.items()
    table = Table(title=f"🧺 Purify bin ({len(items)})", box=box.SIMPLE)
    table.add_column("id", style="cyan")
    table.add_column("reason", style="yellow", width=10)
    table.add_column("moved", width=19)
    table.add_column("text", style="white")

    for item in items:
        table.add_row(item.id, item.reason, _ms(item.moved_at), _preview(item.text))

    console.print(table)
    return 0


def show_central(heart: CoreHeart, console: Console) -> int:
    definitions = heart.central.definitions()
    table = Table(title=f"💎 Central memory ({len(definitions)})", box=box.SIMPLE)
    table.add_column("id", style="cyan")
    table.add_column("promoted", width=24)
    table.add_column("topic", width=10)
    table.add_column("summary", style="white")
    table.add_column("meta", style="dim")

    for definition in definitions:
        meta = definition.meta or {}
        table.add_row(
            definition.id,
            definition.promoted_at,
            definition.topic or "-",
            _preview(definition.summary),
            ", ".join(f"{k}={v}" for k, v in meta.items()) if isinstance(meta, dict) else str(meta),
        )

    console.print(table)
    return 0


def show_ledger(heart: CoreHeart, console: Console, limit=None) -> int:
    events = heart.ledger.events(limit)
    table = Table(title=f"🪙 Ha-coin ledger (last {len(events)})", box=box.SIMPLE)
    table.add_column("id", style="cyan")
    table.add_column("at", width=24)
    table.add_column("type", width=8)
    table.add_column("delta", justify="right")
    table.add_column("reason", style="white")

    total = 0
    for event in events:
        total += event.delta
        style = "green" if event.delta > 0 else "red"
        table.add_row(event.id, event.at, event.type, f"[{style}]{event.delta:+}[/{style}]", event.reason)

    console.print(table)
    console.print(f"Balance of shown events: [bold]{total:+}[/bold]")
    return 0


def show_meeting(heart: CoreHeart, console: Console, meeting_id: str) -> int:
    try:
        meeting = heart.meetings.get(meeting_id)
    except CoreHeartError as e:
        console.print(f"[red]{e.code}[/red]: {e.message}")
        return 1

    info = Table(box=box.SIMPLE, show_header=False)
    info.add_column("Field", style="cyan")
    info.add_column("Value", style="white")
    info.add_row("status", meeting.status.value)
    info.add_row("created", _ms(meeting.created_at))
    info.add_row("source", meeting.source.text)
    info.add_row("message", meeting.source.message_id or "-")
    for number, candidate in enumerate(meeting.auto_candidates, 1):
        info.add_row(f"candidate {number}", candidate)

    for version in meeting.after_language.versions:
        marker = "★" if version.v == meeting.after_language.current_version else " "
        promoted = version.promotion and version.promotion.promoted
        label = f"{marker} v{version.v}" + (" (promoted)" if promoted else "")
        info.add_row(label, "\n".join(version.lines))

    console.print(Panel(info, title=f"🗂 Meeting {meeting.meeting_id}", border_style="blue"))
    return 0


def show_paths(heart: CoreHeart, console: Console) -> int:
    table = Table(title="📁 Core heart paths", box=box.SIMPLE)
    table.add_column("Store", style="cyan")
    table.add_column("Path", style="white")
    table.add_column("Exists", width=6)

    for name, path in heart.config.get_paths().items():
        exists = Path(path).exists()
        table.add_row(name, path, "✓" if exists else "✗")

    console.print(table)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect the core heart stores (read-only)")
    parser.add_argument("--dir", type=str, default=None, help="Core heart base directory")
    parser.add_argument("--env", type=str, default=None, help="Config profile (development/production/test)")

    sub = parser.add_subparsers(dest="command", required=True)

    breath = sub.add_parser("breath", help="Newest breath items")
    breath.add_argument("--limit", type=int, default=None)

    sub.add_parser("purify", help="Purify bin contents")
    sub.add_parser("central", help="Central memory definitions")

    ledger = sub.add_parser("ledger", help="Tail of the ha-coin ledger")
    ledger.add_argument("--limit", type=int, default=None)

    meeting = sub.add_parser("meeting", help="One meeting record")
    meeting.add_argument("meeting_id")

    sub.add_parser("paths", help="Resolved store locations")
    return parser


def run(args, heart: CoreHeart, console: Console) -> int:
    if args.command == "breath":
        return show_breath(heart, console, args.limit)
    if args.command == "purify":
        return show_purify(heart, console)
    if args.command == "central":
        return show_central(heart, console)
    if args.command == "ledger":
        return show_ledger(heart, console, args.limit)
    if args.command == "meeting":
        return show_meeting(heart, console, args.meeting_id)
    return show_paths(heart, console)


def main(argv=None):
    load_dotenv()
    args = build_parser().parse_args(argv)
    heart = CoreHeart(get_config(args.env, base_dir=args.dir))
    sys.exit(run(args, heart, Console()))


if __name__ == "__main__":
    main()
