"""
API Response Formatter Service
Standardizes API responses across all endpoints
"""
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class APIResponseFormatter:
    """Service for standardizing API responses"""

    @staticmethod
    def format_success_response(data: Any = None, message: str = "Success",
                               metadata: Optional[Dict] = None) -> Dict[str, Any]:
        """Format successful API response"""
        response = {
            'success': True,
            'message': message,
            'timestamp': _now()
        }

        if data is not None:
            response['data'] = data

        if metadata:
            response['metadata'] = metadata

        return response

    @staticmethod
    def format_error_response(error: str, error_code: str = "GENERIC_ERROR",
                            details: Optional[Dict] = None,
                            retryable: bool = False) -> Dict[str, Any]:
        """Format error response"""
        response = {
            'success': False,
            'error': error,
            'error_code': error_code,
            'retryable': retryable,
            'timestamp': _now()
        }

        if details:
            response['details'] = details

        return response

    @staticmethod
    def format_validation_error_response(errors: List[str],
                                       field_errors: Optional[Dict] = None) -> Dict[str, Any]:
        """Format validation error response"""
        response = {
            'success': False,
            'error': 'Validation failed',
            'error_code': 'VALIDATION_ERROR',
            'errors': errors,
            'timestamp': _now()
        }

        if field_errors:
            response['field_errors'] = field_errors

        return response

    @staticmethod
    def format_health_response(status: str, checks: Dict[str, Any]) -> Dict[str, Any]:
        """Format health check response"""
        return {
            'status': status,
            'timestamp': _now(),
            'checks': checks
        }

    @staticmethod
    def format_report_render_response(report: Dict[str, Any], rendered: Dict[str, Any],
                                      source: Optional[str] = None) -> Dict[str, Any]:
        """Format a rendered report with its row fields"""
        return {
            'success': True,
            'report': {
                'id': report.get('id'),
                'title': report.get('title'),
                'topic': report.get('topic'),
                'address': report.get('address'),
                'file_format': report.get('file_format'),
                'source': source,
            },
            'state': rendered.get('state'),
            'rendered': rendered,
            'timestamp': _now()
        }

    @staticmethod
    def format_list_response(items: List[Dict], item_type: str = "items",
                           metadata: Optional[Dict] = None) -> Dict[str, Any]:
        """Format generic list response"""
        response = {
            'success': True,
            item_type: items,
            'count': len(items),
            'timestamp': _now()
        }

        if metadata:
            response['metadata'] = metadata

        return response
