"""
Report Content Service - lazy fetch of full report documents.

Resolution order for a report_generations row:
1. generated_content stored inline on the row
2. file_path starting with http(s): fetched over HTTP
3. any other file_path: downloaded from the reports storage bucket
   (a leading 'reports/' is stripped, the bucket name is not part of the key)

Failures come back as a ReportContentResult with status 'error' and the
report id, so the caller can retry; empty content is a distinct 'empty' status.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import requests
from supabase import Client

from planchat.config import ContentSettings, settings as default_settings
from planchat.errors import ReportFetchError
from planchat.types import ReportRow
from .supabase_client_factory import get_supabase_client

logger = logging.getLogger(__name__)

REPORT_COLUMNS = 'id, title, topic, address, status, file_path, file_format, generated_content'


class ReportContentStatus(str, Enum):
    READY = "ready"
    EMPTY = "empty"
    ERROR = "error"


class ReportContentSource(str, Enum):
    INLINE = "inline"
    STORAGE = "storage"
    HTTP = "http"


@dataclass
class ReportContentResult:
    status: ReportContentStatus
    report_id: str
    content: str = ""
    source: Optional[ReportContentSource] = None
    error: Optional[str] = None
    retryable: bool = False
    found: bool = True
    report: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.status is not ReportContentStatus.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "report_id": self.report_id,
            "source": self.source.value if self.source else None,
            "error": self.error,
            "retryable": self.retryable,
        }


def storage_key(file_path: str, bucket: str) -> str:
    """Strip a leading '<bucket>/' from a stored file path."""
    key = file_path.lstrip('/')
    prefix = f"{bucket}/"
    if key.startswith(prefix):
        key = key[len(prefix):]
    return key


def _decode(data: Any) -> str:
    if isinstance(data, bytes):
        return data.decode('utf-8', errors='replace')
    return "" if data is None else str(data)


class ReportContentService:
    """Fetches report content on demand; never raises into the caller"""

    def __init__(
        self,
        client: Optional[Client] = None,
        http: Optional[requests.Session] = None,
        settings: Optional[ContentSettings] = None,
    ):
        self._client = client
        self.http = http or requests.Session()
        self.settings = settings or default_settings

    @property
    def supabase(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def get_report(self, report_id: str) -> Optional[ReportRow]:
        result = (
            self.supabase
            .table('report_generations')
            .select(REPORT_COLUMNS)
            .eq('id', str(report_id))
            .limit(1)
            .execute()
        )
        if result.data:
            return result.data[0]
        return None

    def _fetch_http(self, report_id: str, url: str) -> str:
        try:
            response = self.http.get(url, timeout=self.settings.report_fetch_timeout_seconds)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ReportFetchError(report_id, f"HTTP fetch failed for {url}: {e}") from e
        return response.text

    def _fetch_storage(self, report_id: str, file_path: str) -> str:
        bucket = self.settings.reports_bucket
        key = storage_key(file_path, bucket)
        try:
            data = self.supabase.storage.from_(bucket).download(key)
        except Exception as e:
            raise ReportFetchError(report_id, f"Storage download failed for {bucket}/{key}: {e}") from e
        return _decode(data)

    def _resolve(self, report_id: str, report: ReportRow) -> tuple:
        inline = report.get('generated_content')
        if isinstance(inline, str) and inline.strip():
            return inline, ReportContentSource.INLINE

        file_path = (report.get('file_path') or '').strip()
        if not file_path:
            return "", None

        if file_path.lower().startswith('http'):
            logger.info(f"[REPORT_CONTENT] Fetching report {report_id} over HTTP")
            return self._fetch_http(report_id, file_path), ReportContentSource.HTTP

        logger.info(f"[REPORT_CONTENT] Downloading report {report_id} from storage: {file_path}")
        return self._fetch_storage(report_id, file_path), ReportContentSource.STORAGE

    def fetch_report_content(self, report_id: str) -> ReportContentResult:
        """
        Fetch the full content of one report.

        Returns:
            ReportContentResult with status ready, empty, or error
        """
        report_id = str(report_id)
        try:
            report = self.get_report(report_id)
        except Exception as e:
            logger.error(f"[REPORT_CONTENT] Failed to read report {report_id}: {e}", exc_info=True)
            return ReportContentResult(
                status=ReportContentStatus.ERROR,
                report_id=report_id,
                error=f"Failed to read report: {e}",
                retryable=True,
            )

        if report is None:
            logger.warning(f"[REPORT_CONTENT] Report {report_id} not found")
            return ReportContentResult(
                status=ReportContentStatus.ERROR,
                report_id=report_id,
                error="Report not found",
                found=False,
            )

        try:
            content, source = self._resolve(report_id, report)
        except ReportFetchError as e:
            logger.error(f"[REPORT_CONTENT] {e}")
            return ReportContentResult(
                status=ReportContentStatus.ERROR,
                report_id=e.report_id,
                error=str(e),
                retryable=True,
                report=dict(report),
            )

        if not content.strip():
            logger.info(f"[REPORT_CONTENT] Report {report_id} has no content")
            return ReportContentResult(
                status=ReportContentStatus.EMPTY,
                report_id=report_id,
                source=source,
                report=dict(report),
            )

        return ReportContentResult(
            status=ReportContentStatus.READY,
            report_id=report_id,
            content=content,
            source=source,
            report=dict(report),
        )
