"""
utils.py

Small collection of utilities: filesystem helpers, JSON atomic write,
awaitable resolution and a minimal logger setup helper.
"""

from typing import Any, Dict, Optional
from pathlib import Path
import inspect
import json
import tempfile
import os
import logging


def ensure_dir(path: str) -> str:
    """
    Ensure directory exists; returns the path.
    """
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return str(p)


def write_json_atomic(path: str, data: Any, indent: int = 2) -> None:
    """
    Write JSON to a temp file and atomically move into place.
    """
    p = Path(path)
    ensure_dir(str(p.parent))
    fd, tmp = tempfile.mkstemp(prefix=p.name, dir=str(p.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=indent, sort_keys=True, ensure_ascii=False)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, str(p))
    finally:
        if os.path.exists(tmp):
            os.remove(tmp)


def read_json(path: str) -> Optional[Dict]:
    p = Path(path)
    if not p.exists():
        return None
    with p.open("r", encoding="utf-8") as fh:
        return json.load(fh)


async def maybe_await(value: Any) -> Any:
    """
    Await value if it is awaitable, otherwise return it unchanged.

    Lets builders and circuit objects be plain functions (test doubles) or coroutines.
    """
    if inspect.isawaitable(value):
        return await value
    return value


def setup_basic_logger(name: str = "app", level: int = logging.INFO) -> logging.Logger:
    """
    Return a logger configured with a StreamHandler and a compact formatter.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(level)
    ch = logging.StreamHandler()
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    ch.setFormatter(fmt)
    logger.addHandler(ch)
    return logger
