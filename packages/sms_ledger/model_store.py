"""On-disk storage for the classifier snapshot.

Layout (relative to the data directory, default ``./.sms_ledger``)::

    <data_dir>/classifier_model.json

Override the directory with ``SMS_LEDGER_DATA_DIR``. Writes go to a ``.tmp``
sibling first and are moved into place with ``os.replace`` so a crash never
leaves a half-written model behind.
"""

from __future__ import annotations

import contextlib
import os
from pathlib import Path

from pydantic import ValidationError

from .logging_setup import get_logger
from .models import ClassifierSnapshot

MODEL_FILENAME = "classifier_model.json"

_logger = get_logger("sms_ledger.model_store")


def get_data_dir() -> Path:
    """Return the data directory (``SMS_LEDGER_DATA_DIR`` or ``./.sms_ledger``)."""

    root = os.getenv("SMS_LEDGER_DATA_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".sms_ledger").resolve()


class FileModelStore:
    """Read, write and delete one JSON-encoded :class:`ClassifierSnapshot`."""

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path is not None else None

    @property
    def path(self) -> Path:
        # Resolved lazily so the env var is read at call time.
        return self._path if self._path is not None else get_data_dir() / MODEL_FILENAME

    def load(self) -> ClassifierSnapshot | None:
        """Return the stored snapshot, or ``None`` when absent or unreadable."""

        path = self.path
        if not path.exists():
            return None
        try:
            return ClassifierSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError):
            _logger.warning(
                "model_store:load_failed path=%s; classifier will re-bootstrap",
                os.fspath(path),
                exc_info=True,
            )
            return None

    def save(self, snapshot: ClassifierSnapshot) -> None:
        """Persist ``snapshot`` atomically. Raises ``OSError`` on failure."""

        path = self.path
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp.write_text(snapshot.model_dump_json(), encoding="utf-8")
            os.replace(tmp, path)
        except Exception:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()
            raise

    def delete(self) -> None:
        with contextlib.suppress(FileNotFoundError):
            self.path.unlink()


__all__ = ["MODEL_FILENAME", "FileModelStore", "get_data_dir"]
