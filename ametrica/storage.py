"""
A small persisted key-value store, kept as a single JSON document on disk.

Every write replaces the whole file atomically, so readers (including other
processes) never see a partially written document.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from mitmproxy.utils import signals

logger = logging.getLogger(__name__)

DEFAULT_PATH = "~/.mitmproxy/ametrica.json"

EVENTS = "events"
LOGGING_ENABLED = "loggingEnabled"


class Storage:
    def __init__(self, path: str | os.PathLike = DEFAULT_PATH) -> None:
        self.path = Path(os.path.expanduser(path))
        self.lock = threading.RLock()
        self.sig_changed = signals.SyncSignal(lambda key, value: None)

    def __repr__(self):
        return f"Storage({str(self.path)!r})"

    def _read(self) -> dict[str, Any]:
        try:
            text = self.path.read_text("utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning(f"Failed reading {self.path}: {e}")
            return {}
        try:
            doc = json.loads(text)
        except ValueError as e:
            logger.warning(f"Ignoring corrupt store file {self.path}: {e}")
            return {}
        if not isinstance(doc, dict):
            logger.warning(f"Ignoring corrupt store file {self.path}: not an object")
            return {}
        return doc

    def _write(self, doc: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(doc, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except BaseException:
            os.unlink(tmp)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        with self.lock:
            return self._read().get(key, default)

    def put(self, key: str, value: Any) -> None:
        """
        Persist a single key. Other keys in the document are left untouched.

        Raises:
            OSError, if the document cannot be written.
        """
        with self.lock:
            doc = self._read()
            doc[key] = value
            self._write(doc)
        self.sig_changed.send(key, value)
