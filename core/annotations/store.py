"""Durable per-symbol annotation storage."""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Protocol

__all__ = [
    "AnnotationStoreError",
    "AnnotationStore",
    "InMemoryAnnotationStore",
    "JsonFileAnnotationStore",
]

logger = logging.getLogger(__name__)

Record = dict[str, Any]


class AnnotationStoreError(Exception):
    """Annotation storage could not be read or written."""

    def __init__(self, message: str, path: Path | None = None):
        self.message = message
        self.path = path
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.path is not None:
            return f"{self.message} ({self.path})"
        return self.message


class AnnotationStore(Protocol):
    """Key-value store of annotation records keyed by symbol."""

    def get(self, symbol: str) -> list[Record]: ...

    def set(self, symbol: str, records: list[Record]) -> None: ...

    def delete(self, symbol: str) -> None: ...

    def symbols(self) -> list[str]: ...


class InMemoryAnnotationStore:
    def __init__(self) -> None:
        self._data: dict[str, list[Record]] = {}

    def get(self, symbol: str) -> list[Record]:
        return [dict(r) for r in self._data.get(symbol, [])]

    def set(self, symbol: str, records: list[Record]) -> None:
        self._data[symbol] = [dict(r) for r in records]

    def delete(self, symbol: str) -> None:
        self._data.pop(symbol, None)

    def symbols(self) -> list[str]:
        return sorted(self._data)


class JsonFileAnnotationStore:
    """All symbols in one JSON document: ``{"AAPL": [record, ...], ...}``.

    Every write replaces the file atomically (temp file + ``os.replace``),
    so a crash mid-write leaves the previous document intact.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> dict[str, list[Record]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise AnnotationStoreError(f"Cannot read annotations: {e}", self.path) from e

        if not isinstance(data, dict):
            raise AnnotationStoreError("Annotation document is not an object", self.path)
        return data

    def _file_mode(self) -> int:
        """Mode of the existing document, or the umask default for a new one."""
        try:
            return stat.S_IMODE(self.path.stat().st_mode)
        except FileNotFoundError:
            umask = os.umask(0)
            os.umask(umask)
            return 0o666 & ~umask

    def _write(self, data: dict[str, list[Record]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            mode = self._file_mode()
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, sort_keys=True)
                    f.flush()
                    os.fsync(f.fileno())
                os.chmod(tmp_name, mode)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise AnnotationStoreError(f"Cannot write annotations: {e}", self.path) from e

    def get(self, symbol: str) -> list[Record]:
        records = self._read().get(symbol, [])
        if not isinstance(records, list):
            raise AnnotationStoreError(f"Annotations for {symbol} are not a list", self.path)
        return records

    def set(self, symbol: str, records: list[Record]) -> None:
        data = self._read()
        data[symbol] = list(records)
        self._write(data)
        logger.debug(f"Saved {len(records)} annotations for {symbol} to {self.path}")

    def delete(self, symbol: str) -> None:
        data = self._read()
        if data.pop(symbol, None) is not None:
            self._write(data)

    def symbols(self) -> list[str]:
        return sorted(self._read())
