from types import SimpleNamespace
from unittest.mock import MagicMock

import requests

from planchat.config import ContentSettings
from planchat.services.report_content_service import (
    ReportContentService,
    ReportContentSource,
    ReportContentStatus,
    storage_key,
)


def _client(rows, download=None, download_error=None):
    client = MagicMock()
    query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
    query.execute.return_value = SimpleNamespace(data=rows)

    bucket = client.storage.from_.return_value
    if download_error:
        bucket.download.side_effect = download_error
    else:
        bucket.download.return_value = download
    return client


def _service(client, http=None):
    return ReportContentService(client=client, http=http or MagicMock(), settings=ContentSettings(report_fetch_timeout_seconds=5))


def test_inline_content_wins():
    client = _client([{"id": "r1", "generated_content": "# Inline", "file_path": "reports/r1.md"}])
    result = _service(client).fetch_report_content("r1")

    assert result.status is ReportContentStatus.READY
    assert result.source is ReportContentSource.INLINE
    assert result.content == "# Inline"
    client.storage.from_.assert_not_called()
    client.table.assert_called_with('report_generations')


def test_storage_path_strips_bucket_prefix():
    client = _client([{"id": "r1", "file_path": "reports/user/r1.md"}], download=b"# From storage")
    result = _service(client).fetch_report_content("r1")

    assert result.status is ReportContentStatus.READY
    assert result.source is ReportContentSource.STORAGE
    assert result.content == "# From storage"
    client.storage.from_.assert_called_with("reports")
    client.storage.from_.return_value.download.assert_called_with("user/r1.md")


def test_http_path_uses_requests():
    http = MagicMock()
    http.get.return_value = SimpleNamespace(text="# From URL", raise_for_status=lambda: None)
    client = _client([{"id": "r1", "file_path": "https://cdn.example.com/r1.md"}])

    result = _service(client, http).fetch_report_content("r1")

    assert result.source is ReportContentSource.HTTP
    assert result.content == "# From URL"
    http.get.assert_called_with("https://cdn.example.com/r1.md", timeout=5.0)


def test_http_failure_is_retryable_error():
    http = MagicMock()
    http.get.side_effect = requests.ConnectionError("refused")
    client = _client([{"id": "r1", "file_path": "http://example.com/r1.md"}])

    result = _service(client, http).fetch_report_content("r1")

    assert result.status is ReportContentStatus.ERROR
    assert result.retryable
    assert result.report_id == "r1"
    assert "refused" in result.error


def test_storage_failure_is_retryable_error():
    client = _client([{"id": "r1", "file_path": "r1.md"}], download_error=RuntimeError("object not found"))
    result = _service(client).fetch_report_content("r1")

    assert result.status is ReportContentStatus.ERROR
    assert result.retryable
    assert result.found


def test_missing_report():
    result = _service(_client([])).fetch_report_content("nope")
    assert result.status is ReportContentStatus.ERROR
    assert not result.found
    assert not result.retryable


def test_empty_content_is_distinct_from_error():
    result = _service(_client([{"id": "r1", "generated_content": "  ", "file_path": None}])).fetch_report_content("r1")
    assert result.status is ReportContentStatus.EMPTY
    assert result.ok


def test_query_failure_is_retryable():
    client = MagicMock()
    client.table.side_effect = RuntimeError("timeout")
    result = _service(client).fetch_report_content("r1")
    assert result.status is ReportContentStatus.ERROR
    assert result.retryable


def test_storage_key():
    assert storage_key("reports/a/b.md", "reports") == "a/b.md"
    assert storage_key("/reports/a.md", "reports") == "a.md"
    assert storage_key("other/a.md", "reports") == "other/a.md"
