import asyncio
import json

import httpx
import pytest

from reportgen.client.api import ReportApiClient, ReportApiConfig, ReportApiError, TransportError

STREAM_BODY = (
    b'data: {"status": "pending", "name": "Sales Report"}\n\n'
    b'data: {"status": "completed", "name": "Sales Report", "filePath": "/reports/sales-report-abc.csv"}\n\n'
)


def make_api(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ReportApiClient(ReportApiConfig(base_url="http://test/api/"), client=client)


async def collect(api, job_id):
    return [frame async for frame in api.stream_status(job_id)]


def test_generate_posts_name():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = request.content
        return httpx.Response(200, json={"jobId": "abc"})

    api = make_api(handler)
    assert asyncio.run(api.generate("Sales Report")) == "abc"
    assert seen["url"] == "http://test/api/generate-report"
    assert json.loads(seen["body"]) == {"name": "Sales Report"}


def test_generate_error_carries_server_message():
    api = make_api(lambda request: httpx.Response(400, json={"error": "Report name is required"}))
    with pytest.raises(ReportApiError) as excinfo:
        asyncio.run(api.generate(""))
    assert excinfo.value.status_code == 400
    assert excinfo.value.message == "Report name is required"


def test_stream_status_decodes_frames():
    def handler(request):
        assert request.url.path == "/api/report-status/abc"
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=STREAM_BODY)

    frames = asyncio.run(collect(make_api(handler), "abc"))
    assert [frame["status"] for frame in frames] == ["pending", "completed"]
    assert frames[-1]["filePath"].endswith("sales-report-abc.csv")


def test_stream_status_connection_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError):
        asyncio.run(collect(make_api(handler), "abc"))


def test_stream_status_non_200():
    api = make_api(lambda request: httpx.Response(502, text="bad gateway"))
    with pytest.raises(TransportError):
        asyncio.run(collect(api, "abc"))


def test_stream_status_malformed_frame():
    api = make_api(lambda request: httpx.Response(200, content=b"data: {not json\n\n"))
    with pytest.raises(TransportError):
        asyncio.run(collect(api, "abc"))


def test_save_download_uses_attachment_name(tmp_path):
    def handler(request):
        return httpx.Response(
            200,
            headers={"content-type": "text/csv", "content-disposition": "attachment; filename=sales-report.csv"},
            content=b"id,name,value\n1,Product A,1000",
        )

    path = asyncio.run(make_api(handler).save_download("abc", tmp_path / "downloads"))
    assert path == tmp_path / "downloads" / "sales-report.csv"
    assert path.read_text().startswith("id,name,value")


def test_download_not_ready():
    api = make_api(lambda request: httpx.Response(400, json={"error": "Report is not ready for download"}))
    with pytest.raises(ReportApiError) as excinfo:
        asyncio.run(api.download("abc"))
    assert excinfo.value.message == "Report is not ready for download"


def test_cancel_tolerates_unknown_job():
    calls = []

    def handler(request):
        calls.append((request.method, request.url.path))
        return httpx.Response(404, json={"error": "Report not found"})

    asyncio.run(make_api(handler).cancel("abc"))
    assert calls == [("DELETE", "/api/report/abc")]


def test_download_url():
    api = ReportApiClient(ReportApiConfig(base_url="http://localhost:3000/api"))
    assert api.download_url("abc") == "http://localhost:3000/api/download-report/abc"
    asyncio.run(api.aclose())
