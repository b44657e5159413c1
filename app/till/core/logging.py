from __future__ import annotations

import json
import logging
from decimal import Decimal


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format="%(message)s")


def _json_default(value):
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def log_json(logger: logging.Logger, payload: dict) -> None:
    logger.info(json.dumps(payload, ensure_ascii=False, default=_json_default))
