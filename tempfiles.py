"""
tempfiles.py

Registry for temporary files and directories created by the harness and the
wasm tester.

Every path handed out is remembered until `cleanup()` runs. Cleanup is
explicit: call it yourself, use the registry as a context manager, or opt in
to interpreter-exit cleanup with `register_atexit()`.

Usage:
    with TempRegistry() as reg:
        tmp = reg.open(prefix="Multiplier", suffix=".circom")
        ...
"""

import atexit
import logging
import os
import shutil
import tempfile
import threading
from typing import List, NamedTuple, Optional

log = logging.getLogger(__name__)


class TempFile(NamedTuple):
    path: str
    fd: int


class TempRegistry:
    """
    Append-only set of temp paths; registration is safe from several threads
    and from concurrent coroutines.
    """

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = base_dir
        self._paths: List[str] = []
        self._seen = set()
        self._lock = threading.Lock()
        self._atexit = False

    def track(self, path: str) -> str:
        with self._lock:
            if path not in self._seen:
                self._seen.add(path)
                self._paths.append(path)
        return path

    @property
    def tracked(self) -> List[str]:
        with self._lock:
            return list(self._paths)

    def open(self, prefix: str = "", suffix: str = "", dir: Optional[str] = None) -> TempFile:
        """
        Create a uniquely named file and return (path, fd). The caller owns the fd.
        """
        fd, path = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=dir or self.base_dir)
        self.track(path)
        log.debug("temp file %s", path)
        return TempFile(path, fd)

    def mkdir(self, prefix: str = "", dir: Optional[str] = None) -> str:
        path = tempfile.mkdtemp(prefix=prefix, dir=dir or self.base_dir)
        self.track(path)
        log.debug("temp dir %s", path)
        return path

    def cleanup(self) -> int:
        """
        Remove every tracked path that still exists. Returns the number removed.
        """
        with self._lock:
            paths = list(reversed(self._paths))
            self._paths = []
            self._seen = set()
        removed = 0
        for path in paths:
            if os.path.isdir(path):
                shutil.rmtree(path, ignore_errors=True)
                removed += 1
            elif os.path.exists(path):
                os.remove(path)
                removed += 1
        if removed:
            log.debug("removed %d temp paths", removed)
        return removed

    def register_atexit(self) -> "TempRegistry":
        if not self._atexit:
            atexit.register(self.cleanup)
            self._atexit = True
        return self

    def __enter__(self) -> "TempRegistry":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()
