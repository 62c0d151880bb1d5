from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from loadprobe.config import ProbeConfig, load_config
from loadprobe.logging_setup import configure_logging
from loadprobe.reporting.csv_export import logs_to_csv
from loadprobe.storage.kv_store import (
    KEY_INTERVAL_SECONDS,
    KEY_IS_RUNNING,
    KEY_TARGET_URL,
    KEY_TIMING_LOGS,
    JsonFileStore,
)
from loadprobe.storage.log_store import LogStore


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Background page/download load-time probe")
    parser.add_argument("--config", default=None, help="Path to YAML config (default: $LOADPROBE_CONFIG)")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (INFO, WARNING, ...)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the command API and resume a persisted schedule")

    probe = sub.add_parser("probe", help="Run one probe now and print its outcome")
    probe.add_argument("--url", default=None, help="Target URL (default: the persisted targetUrl)")

    export = sub.add_parser("export", help="Write the timing log as CSV")
    export.add_argument("-o", "--output", default=None, help="Output file (default: stdout)")

    configure = sub.add_parser("configure", help="Persist the target URL and/or interval")
    configure.add_argument("--url", default=None, help="Target URL")
    configure.add_argument("--interval", type=float, default=None, help="Interval in seconds")

    sub.add_parser("clear-log", help="Delete all logged outcomes")
    sub.add_parser("status", help="Print persisted settings and scheduler state")
    return parser


def _store(config: ProbeConfig) -> JsonFileStore:
    return JsonFileStore(config.state_path)


async def _probe(config: ProbeConfig, url: str | None) -> int:
    from loadprobe.coordinator import ProbeCoordinator

    coordinator = ProbeCoordinator(config)
    await coordinator.start(restore_schedule=False)
    try:
        outcome = await coordinator.runner.run_probe(url)
    finally:
        await coordinator.stop()
    if outcome is None:
        return 1
    print(json.dumps(outcome.to_dict(), sort_keys=True))
    return 0 if outcome.success else 1


async def _export(config: ProbeConfig, output: str | None) -> int:
    entries = await LogStore(_store(config), max_entries=config.max_log_entries).entries()
    text = logs_to_csv(entries)
    if output:
        Path(output).write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)
    return 0


async def _configure(config: ProbeConfig, url: str | None, interval: float | None) -> int:
    updates = {}
    if url is not None:
        updates[KEY_TARGET_URL] = url.strip()
    if interval is not None:
        if interval < config.min_interval_seconds:
            print(f"ERROR: interval must be >= {config.min_interval_seconds:g}", file=sys.stderr)
            return 2
        updates[KEY_INTERVAL_SECONDS] = interval
    if not updates:
        print("ERROR: nothing to configure (use --url and/or --interval)", file=sys.stderr)
        return 2
    await _store(config).set(**updates)
    return 0


async def _clear_log(config: ProbeConfig) -> int:
    await LogStore(_store(config), max_entries=config.max_log_entries).clear()
    return 0


async def _status(config: ProbeConfig) -> int:
    data = await _store(config).get(KEY_TARGET_URL, KEY_INTERVAL_SECONDS, KEY_IS_RUNNING, KEY_TIMING_LOGS)
    logs = data.get(KEY_TIMING_LOGS)
    print(
        json.dumps(
            {
                "targetUrl": data.get(KEY_TARGET_URL) or "",
                "intervalSeconds": data.get(KEY_INTERVAL_SECONDS),
                "isRunning": bool(data.get(KEY_IS_RUNNING)),
                "logEntries": len(logs) if isinstance(logs, list) else 0,
            },
            indent=2,
            sort_keys=True,
        )
    )
    return 0


def _serve(config: ProbeConfig) -> int:
    import uvicorn

    from loadprobe.api import create_app
    from loadprobe.coordinator import ProbeCoordinator

    app = create_app(ProbeCoordinator(config))
    uvicorn.run(app, host=config.api_host, port=config.api_port, log_level=config.log_level.lower())
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    config = load_config(args.config)
    if args.log_level:
        config = config.model_copy(update={"log_level": args.log_level})
    configure_logging(config.log_level)

    if args.command == "serve":
        return _serve(config)
    if args.command == "probe":
        return asyncio.run(_probe(config, args.url))
    if args.command == "export":
        return asyncio.run(_export(config, args.output))
    if args.command == "configure":
        return asyncio.run(_configure(config, args.url, args.interval))
    if args.command == "clear-log":
        return asyncio.run(_clear_log(config))
    if args.command == "status":
        return asyncio.run(_status(config))
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
