from __future__ import annotations

import csv
from pathlib import Path

import structlog

from csv_adapter.config import InputSettings
from csv_adapter.snapshot.formatting import FormatOptions, render_snapshot

logger = structlog.get_logger(__name__)


class ExtractionError(Exception):
    """The source file could not be read or parsed into a record."""


def _read_last_record(path: Path, delimiter: str, has_headers: bool) -> tuple[list[str], list[str] | None]:
    names: list[str] | None = None
    last: list[str] | None = None
    width: int | None = None

    with path.open("r", encoding="utf-8-sig", newline="") as fh:
        reader = csv.reader(fh, delimiter=delimiter, strict=True)
        for row in reader:
            if not row:
                continue
            if width is None:
                width = len(row)
            elif len(row) != width:
                raise ExtractionError(
                    f"{path}: record on line {reader.line_num} has {len(row)} fields, expected {width}"
                )

            if names is None:
                names = row
                if has_headers:
                    continue
            last = row

    return names or [], last


def extract_snapshot(source: InputSettings, options: FormatOptions) -> str:
    """
    Render the newest record of the source CSV file.

    Every record is parsed (so a malformed row anywhere fails the whole
    extraction) but only the last one is kept. With ``has_headers`` the first
    record names the columns and is never rendered; without it the first
    record still supplies the names and also counts as data.
    """
    try:
        headers, last = _read_last_record(source.file, source.delimiter_char, source.has_headers)
    except ExtractionError:
        raise
    except (OSError, ValueError, csv.Error) as exc:
        raise ExtractionError(f"failed to read {source.file}: {exc}") from exc

    if last is None:
        logger.debug("snapshot_extracted", source=str(source.file), columns=0)
        return ""

    snapshot = render_snapshot(headers, last, options)
    logger.debug("snapshot_extracted", source=str(source.file), columns=len(last))
    return snapshot


class SnapshotExtractor:
    """Zero-argument extraction bound to one source and one set of output options."""

    def __init__(self, source: InputSettings, options: FormatOptions) -> None:
        self.source = source
        self.options = options

    def __call__(self) -> str:
        return extract_snapshot(self.source, self.options)
