from pathlib import Path

from structlog.testing import capture_logs

from csv_adapter.api.metrics import EXPOSITION_CONTENT_TYPE


async def test_metrics_returns_latest_row(api_client) -> None:
    resp = await api_client.get("/metrics")
    assert resp.status_code == 200
    assert resp.text == "# a\napp_a  3\n\n# b\napp_b  4\n\n"
    assert resp.headers["content-type"] == EXPOSITION_CONTENT_TYPE


async def test_responses_include_x_request_id(api_client) -> None:
    resp = await api_client.get("/metrics")
    assert resp.headers.get("x-request-id")


async def test_metrics_serves_cached_snapshot_until_overwritten(api_client, snapshot_cache, source_file: Path) -> None:
    first = await api_client.get("/metrics")
    source_file.write_text("a,b\n9,9\n", encoding="utf-8")

    cached = await api_client.get("/metrics")
    assert cached.text == first.text

    snapshot_cache.overwrite("# a\napp_a  9\n\n")
    fresh = await api_client.get("/metrics")
    assert fresh.text == "# a\napp_a  9\n\n"


async def test_metrics_without_snapshot_is_500(api_client, source_file: Path) -> None:
    source_file.unlink()
    resp = await api_client.get("/metrics")
    assert resp.status_code == 500
    assert resp.content == b""


async def test_metrics_recovers_once_source_appears(api_client, source_file: Path) -> None:
    source_file.unlink()
    assert (await api_client.get("/metrics")).status_code == 500

    source_file.write_text("a\n1\n", encoding="utf-8")
    resp = await api_client.get("/metrics")
    assert resp.status_code == 200
    assert resp.text == "# a\napp_a  1\n\n"


async def test_stale_snapshot_survives_broken_source(api_client, snapshot_cache, source_file: Path) -> None:
    assert (await api_client.get("/metrics")).status_code == 200
    source_file.unlink()
    assert snapshot_cache.read_or_regenerate() is not None
    resp = await api_client.get("/metrics")
    assert resp.status_code == 200


async def test_empty_source_serves_empty_body(api_client, source_file: Path) -> None:
    source_file.write_text("a,b\n", encoding="utf-8")
    resp = await api_client.get("/metrics")
    assert resp.status_code == 200
    assert resp.text == ""


async def test_non_get_on_metrics_is_405(api_client) -> None:
    for method in ("POST", "PUT", "DELETE", "HEAD"):
        resp = await api_client.request(method, "/metrics")
        assert resp.status_code == 405, method
    resp = await api_client.post("/metrics")
    assert "GET" in resp.headers.get("allow", "")


async def test_unknown_paths_are_404(api_client) -> None:
    for path in ("/", "/metrics/", "/health", "/docs"):
        resp = await api_client.get(path)
        assert resp.status_code == 404, path
    assert (await api_client.post("/other")).status_code == 404


async def test_incoming_request_id_is_reused(api_client) -> None:
    resp = await api_client.get("/metrics", headers={"X-Request-ID": "scrape-42"})
    assert resp.headers["x-request-id"] == "scrape-42"


async def test_malformed_request_id_is_replaced(api_client) -> None:
    resp = await api_client.get("/metrics", headers={"X-Request-ID": "bad id with spaces"})
    assert resp.headers["x-request-id"] != "bad id with spaces"
    assert len(resp.headers["x-request-id"]) == 32


async def test_access_log_records_snapshot_source(api_client, source_file: Path) -> None:
    with capture_logs() as logs:
        await api_client.get("/metrics", headers={"X-Request-ID": "first"})
        await api_client.get("/metrics", headers={"X-Request-ID": "second"})
        await api_client.get("/nope", headers={"X-Request-ID": "third"})

    access = {entry["request_id"]: entry for entry in logs if entry["event"] == "http_request"}
    assert access["first"]["snapshot"] == "regenerated"
    assert access["second"]["snapshot"] == "cache"
    assert access["second"]["body_bytes"] == len("# a\napp_a  3\n\n# b\napp_b  4\n\n")
    assert access["third"]["status_code"] == 404
    assert access["third"]["snapshot"] is None


async def test_access_log_marks_unavailable_snapshot(api_client, source_file: Path) -> None:
    source_file.unlink()
    with capture_logs() as logs:
        await api_client.get("/metrics")

    access = [entry for entry in logs if entry["event"] == "http_request"]
    assert access[0]["status_code"] == 500
    assert access[0]["snapshot"] == "unavailable"
