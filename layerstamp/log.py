from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def get_logger(name: str) -> logging.Logger:
    if name.startswith("layerstamp"):
        return logging.getLogger(name)
    return logging.getLogger(f"layerstamp.{name}")


def setup_logging(level: str = "info") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
    )
