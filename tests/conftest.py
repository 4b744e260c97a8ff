from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from csv_adapter.config import InputSettings
from csv_adapter.main import create_app
from csv_adapter.snapshot.cache import SnapshotCache
from csv_adapter.snapshot.extraction import SnapshotExtractor
from csv_adapter.snapshot.formatting import FormatOptions


@pytest.fixture
def source_file(tmp_path: Path) -> Path:
    path = tmp_path / "telemetry.csv"
    path.write_text("a,b\n1,2\n3,4\n", encoding="utf-8")
    return path


@pytest.fixture
def make_extractor(source_file: Path) -> Callable[..., SnapshotExtractor]:
    def _make(*, has_headers: bool = True, delimiter: str | None = None, **options) -> SnapshotExtractor:
        source = InputSettings(file=source_file, delimiter=delimiter, has_headers=has_headers)
        return SnapshotExtractor(source, FormatOptions(**options))

    return _make


@pytest.fixture
def snapshot_cache(make_extractor) -> SnapshotCache:
    return SnapshotCache(make_extractor(prefix="app_"))


@pytest.fixture
async def api_client(snapshot_cache: SnapshotCache) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=create_app(snapshot_cache))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
