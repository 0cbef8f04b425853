from __future__ import annotations

import argparse
import logging
import os
import sys

_LOG_LEVELS = ("debug", "info", "warning", "error")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mindsight", description="Blind-perception session trainer")
    sub = parser.add_subparsers(dest="command")
    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=os.environ.get("BIND", "127.0.0.1"), help="Interface to bind")
    serve.add_argument("--port", type=int, default=int(os.environ.get("PORT", "8000")), help="Port to listen on")
    serve.add_argument("--log-level", choices=_LOG_LEVELS, default="info", help="Logging verbosity")
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse the command line; ``serve`` is the default when omitted."""

    args_in = list(sys.argv[1:] if argv is None else argv)
    if not args_in or args_in[0].startswith("-"):
        args_in = ["serve", *args_in]
    return _build_parser().parse_args(args_in)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    import uvicorn

    from .web.app import create_app

    uvicorn.run(create_app(), host=args.host, port=args.port, log_level=args.log_level)


if __name__ == "__main__":
    main()
