"""Append-only CSV position feed shared with an external map renderer."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import IO, Any

from trackstream._constants import FEED_HEADER
from trackstream.models.point import Point

_logger = logging.getLogger(__name__)


class PositionFeed:
    """Append ``lng,lat`` rows, one per generated position.

    The header is written once, only when the file is new or empty, so a
    restarted simulator keeps appending to the same feed. Every row is
    flushed immediately; write errors propagate as :class:`OSError`.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._handle: IO[str] | None = None
        self._writer: Any = None
        self.rows_written = 0

    @property
    def path(self) -> Path:
        return self._path

    def open(self) -> None:
        if self._handle is not None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        needs_header = not self._path.exists() or self._path.stat().st_size == 0
        handle = self._path.open("a", encoding="utf-8", newline="")
        self._handle = handle
        self._writer = csv.writer(handle, lineterminator="\n")
        if needs_header:
            self._writer.writerow(FEED_HEADER)
            handle.flush()
        _logger.debug("Position feed opened path=%s header=%s", self._path, needs_header)

    def append(self, point: Point) -> None:
        if self._handle is None:
            self.open()
        assert self._handle is not None  # noqa: S101
        self._writer.writerow((repr(point.lng), repr(point.lat)))
        self._handle.flush()
        self.rows_written += 1

    def close(self) -> None:
        handle = self._handle
        self._handle = None
        self._writer = None
        if handle is not None:
            handle.close()

    def __enter__(self) -> PositionFeed:
        self.open()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
