from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from csv_adapter.config import OutputSettings

# Finite decimal literal: no whitespace, no inf/nan, no digit separators.
_NUMERIC_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


@dataclass(frozen=True)
class FormatOptions:
    prefix: str = ""
    numeric_values_only: bool = False
    skip_duplicate_headers: bool = False

    @classmethod
    def from_settings(cls, output: OutputSettings) -> "FormatOptions":
        return cls(
            prefix=output.prefix,
            numeric_values_only=output.numeric_values_only,
            skip_duplicate_headers=output.skip_duplicate_headers,
        )


def normalize_metric_name(name: str) -> str:
    """
    Turn a column header into a metric name.

    Alphanumerics are lower-cased one character for one character (letters
    with no single-character lower case are kept), every run of other characters becomes a
    single underscore, and no underscore is emitted at either end. The result
    is not checked against the Prometheus name grammar, so names that start
    with a digit pass through unchanged.
    """
    out: list[str] = []
    pending_sep = False
    for ch in name:
        if ch.isalnum():
            if pending_sep and out:
                out.append("_")
            pending_sep = False
            lowered = ch.lower()
            out.append(lowered if len(lowered) == 1 else ch)
        else:
            pending_sep = True
    return "".join(out)


def is_numeric(value: str) -> bool:
    return _NUMERIC_RE.fullmatch(value) is not None


def _skipped(header: str, value: str) -> str:
    return f"# skipped: '{header}' '{value}'\n\n"


def render_snapshot(headers: Sequence[str], values: Sequence[str], options: FormatOptions) -> str:
    """Render one record as exposition text, pairing headers and values by position."""
    parts: list[str] = []
    seen: set[str] = set()
    for header, value in zip(headers, values):
        if options.skip_duplicate_headers:
            if header in seen:
                parts.append(_skipped(header, value))
                continue
            seen.add(header)

        if options.numeric_values_only and not is_numeric(value):
            parts.append(_skipped(header, value))
            continue

        parts.append(f"# {header}\n{options.prefix}{normalize_metric_name(header)}  {value}\n\n")
    return "".join(parts)
