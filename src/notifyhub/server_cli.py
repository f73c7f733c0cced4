"""``notifyhub-server``: run the API, the queue consumer and live delivery in one process."""

import argparse
import os


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notifyhub-server",
        description="NotifyHub: template rendering, notification storage and live SSE delivery",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Bind port (default: 8080)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="SQLite store with in-process queue and change feed; no Redis or PostgreSQL needed",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Override NOTIFYHUB_LOG_LEVEL",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    # Settings are read at import of notifyhub.main, so the environment goes first
    if args.local:
        os.environ["NOTIFYHUB_LOCAL_MODE"] = "1"
    if args.log_level:
        os.environ["NOTIFYHUB_LOG_LEVEL"] = args.log_level

    import uvicorn

    # One worker: live sessions and the local queue are per process
    uvicorn.run(
        "notifyhub.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level or "info",
        workers=1,
    )


if __name__ == "__main__":
    main()
