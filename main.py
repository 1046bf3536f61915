from __future__ import annotations

import argparse
import sys
import traceback

from layerstamp.config import load_config
from layerstamp.log import get_logger, setup_logging

_log = get_logger("main")


def _install_exception_logging() -> None:
    """Route uncaught exceptions through the log before the default hook prints them."""

    def _log_uncaught_exception(exc_type, exc_value, exc_tb) -> None:
        message = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
        _log.error("uncaught exception\n%s", message.rstrip())
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = _log_uncaught_exception


def main() -> None:
    cfg = load_config()
    parser = argparse.ArgumentParser(description="Launch the layerstamp HTTP API.")
    parser.add_argument("--host", default=str(cfg["host"]), help="Interface to bind.")
    parser.add_argument("--port", type=int, default=int(cfg["port"]), help="Port to listen on.")
    parser.add_argument("--log-level", default=str(cfg.get("log_level") or "info"))
    args = parser.parse_args(sys.argv[1:])

    setup_logging(args.log_level)
    _install_exception_logging()
    _log.info("startup argv=%s", sys.argv[1:])

    from layerstamp.web import create_app

    app = create_app(cfg)
    _log.info("serving on %s:%s", args.host, args.port)
    app.run(host=args.host, port=args.port)


if __name__ == "__main__":
    main()
