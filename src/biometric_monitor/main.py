"""Application entrypoint — start the API server or run one-off commands."""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timedelta
from pathlib import Path

import uvicorn

from biometric_monitor.config import get_settings
from biometric_monitor.logger import setup_logging


async def _replay(path: Path, *, persist: bool) -> dict[str, int]:
    """Run a recording through a fresh engine on simulated time.

    The logical clock starts at the first sample and is ticked forward
    until it catches up with each sample's timestamp, so a recording of an
    hour replays in well under a second with the full tick cadence.
    """
    from biometric_monitor.collectors.replay import ReplaySource
    from biometric_monitor.engine.core import MonitorEngine
    from biometric_monitor.engine.driver import LogicalClock, TickDriver
    from biometric_monitor.engine.state import EventKind
    from biometric_monitor.storage.database import close_db, init_db
    from biometric_monitor.storage.repository import ActivityRepository, SessionRepository, TriggerRepository

    samples = ReplaySource(path).samples()
    counts = {"samples": len(samples), "triggers": 0, "transitions": 0, "notifications": 0}
    if not samples:
        return counts

    engine = MonitorEngine.from_settings(get_settings())
    driver = TickDriver(engine, LogicalClock(samples[0].timestamp))
    events = engine.start_session(driver.clock.now())

    for sample in samples:
        while driver.clock.now() + timedelta(seconds=driver.interval) <= sample.timestamp:
            events.extend(driver.advance())
        events.extend(engine.handle_sample(sample))
    events.extend(driver.advance())
    events.extend(engine.stop_session(driver.clock.now()))

    for event in events:
        if event.kind is EventKind.TRIGGER_DETECTED:
            counts["triggers"] += 1
        elif event.kind is EventKind.ACTIVITY_TRANSITION:
            counts["transitions"] += 1
        elif event.kind is EventKind.NOTIFICATION:
            counts["notifications"] += 1

    if persist:
        await init_db()
        sessions, triggers, activity = SessionRepository(), TriggerRepository(), ActivityRepository()
        for event in events:
            if event.kind is EventKind.SESSION_ENDED:
                await sessions.save(event.data)  # type: ignore[arg-type]
            elif event.kind is EventKind.TRIGGER_DETECTED:
                await triggers.save(event.data)  # type: ignore[arg-type]
            elif event.kind is EventKind.ACTIVITY_DETECTED:
                await activity.save_detection(event.data)  # type: ignore[arg-type]
            elif event.kind is EventKind.ACTIVITY_TRANSITION:
                await activity.save_transition(event.data)  # type: ignore[arg-type]
        await close_db()
    return counts


async def _export(kind: str, fmt: str, output: Path, days: int) -> Path:
    from biometric_monitor.research.export import (
        export_sessions_csv,
        export_sessions_json,
        export_triggers_json,
    )
    from biometric_monitor.storage.database import close_db, init_db

    await init_db()
    try:
        if kind == "triggers":
            return await export_triggers_json(output)
        start = datetime.now() - timedelta(days=days)
        if fmt == "csv":
            return await export_sessions_csv(output, start)
        return await export_sessions_json(output, start)
    finally:
        await close_db()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="biometric-monitor",
        description="Stress and arousal analytics for a wearable GSR / heart-rate sensor.",
    )
    sub = parser.add_subparsers(dest="command")

    # ── serve ─────────────────────────────────────────────────
    serve_parser = sub.add_parser("serve", help="Start the API server.")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--reload", action="store_true")

    # ── init-db ───────────────────────────────────────────────
    sub.add_parser("init-db", help="Create database tables.")

    # ── replay ────────────────────────────────────────────────
    replay_parser = sub.add_parser("replay", help="Run a recorded sample file through the engine.")
    replay_parser.add_argument("file", type=Path)
    replay_parser.add_argument("--persist", action="store_true", help="Store the resulting records.")

    # ── export ────────────────────────────────────────────────
    export_parser = sub.add_parser("export", help="Export stored sessions or triggers.")
    export_parser.add_argument("--kind", choices=["sessions", "triggers"], default="sessions")
    export_parser.add_argument("--format", dest="fmt", choices=["csv", "json"], default="csv")
    export_parser.add_argument("--days", type=int, default=30)
    export_parser.add_argument("--output", type=Path, required=True)

    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)

    if args.command == "serve":
        uvicorn.run(
            "biometric_monitor.api.server:app",
            host=args.host or settings.api_host,
            port=args.port or settings.api_port,
            reload=args.reload,
        )
    elif args.command == "init-db":
        from biometric_monitor.storage.database import init_db

        asyncio.run(init_db())
        print("Database tables created.")
    elif args.command == "replay":
        counts = asyncio.run(_replay(args.file, persist=args.persist))
        print(
            f"Replayed {counts['samples']} samples: {counts['triggers']} triggers, "
            f"{counts['transitions']} activity transitions, {counts['notifications']} notifications."
        )
    elif args.command == "export":
        if args.kind == "triggers" and args.fmt == "csv":
            parser.error("triggers export only supports --format json")
        path = asyncio.run(_export(args.kind, args.fmt, args.output, args.days))
        print(f"Wrote {path}")
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
