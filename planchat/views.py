from flask import Blueprint, request, jsonify, current_app
import logging

from .content import filter_sections, find_section, normalize_payload, render_message_content, render_report_content
from .realtime.transcript import ChatMessage, replace_history
from .services.report_content_service import ReportContentStatus
from .services.response_formatter import APIResponseFormatter

logger = logging.getLogger(__name__)

views = Blueprint('views', __name__)


def _service(name):
    return current_app.extensions['planchat'][name]


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


@views.route('/api/health', methods=['GET'])
def health_check():
    """Basic health check endpoint"""
    return jsonify(APIResponseFormatter.format_health_response(
        'healthy',
        {'app': 'planchat'}
    )), 200


@views.route('/api/content/normalize', methods=['POST'])
def normalize_content():
    """
    Classify and unwrap a raw payload.

    Body: {"payload": <any>, "render": "report" (optional)}
    """
    data = _json_body()
    if data is None or 'payload' not in data:
        return jsonify(APIResponseFormatter.format_validation_error_response(
            ['Request body must be a JSON object with a "payload" field']
        )), 400

    normalized = normalize_payload(data['payload'])
    result = {
        'content_kind': normalized.kind.value,
        'text': normalized.text,
        'is_empty': normalized.is_empty,
        'depth_capped': normalized.depth_capped,
        'shapes': normalized.shapes,
    }
    if data.get('render') == 'report':
        result['report'] = render_report_content(normalized).to_dict()

    return jsonify(APIResponseFormatter.format_success_response(result)), 200


@views.route('/api/messages/render', methods=['POST'])
def render_message():
    """Body: {"content": <any>, "metadata": {...} (optional)}"""
    data = _json_body()
    if data is None:
        return jsonify(APIResponseFormatter.format_validation_error_response(
            ['Request body must be a JSON object']
        )), 400

    metadata = data.get('metadata')
    if metadata is not None and not isinstance(metadata, dict):
        return jsonify(APIResponseFormatter.format_validation_error_response(
            ['metadata must be an object'],
            {'metadata': 'expected object'}
        )), 400

    view = render_message_content(data.get('content'), metadata)
    return jsonify(APIResponseFormatter.format_success_response(view.to_dict())), 200


@views.route('/api/reports/<report_id>/render', methods=['GET'])
def render_report(report_id):
    """Fetch a report on demand and return its section tree, figures and TOC (?search=, ?section=)"""
    result = _service('report_content').fetch_report_content(report_id)

    if result.status is ReportContentStatus.ERROR:
        if not result.found:
            return jsonify(APIResponseFormatter.format_error_response(
                result.error or 'Report not found', 'REPORT_NOT_FOUND',
                details={'report_id': result.report_id}
            )), 404
        return jsonify(APIResponseFormatter.format_error_response(
            result.error or 'Failed to fetch report content', 'REPORT_FETCH_FAILED',
            details={'report_id': result.report_id},
            retryable=result.retryable
        )), 502

    report = result.report or {'id': result.report_id}
    metadata = {key: value for key, value in report.items() if key != 'generated_content'}
    rendered_report = render_report_content(result.content, metadata=metadata)
    rendered = rendered_report.to_dict()

    section_id = request.args.get('section', '').strip()
    if section_id:
        section = find_section(rendered_report.tree.sections, section_id)
        if section is None:
            return jsonify(APIResponseFormatter.format_error_response(
                f'Section {section_id} not found', 'SECTION_NOT_FOUND',
                details={'report_id': result.report_id, 'section': section_id}
            )), 404
        rendered['section'] = section.to_dict()

    search = request.args.get('search', '').strip()
    if search:
        rendered['table_of_contents'] = filter_sections(rendered['table_of_contents'], search)

    source = result.source.value if result.source else None
    return jsonify(APIResponseFormatter.format_report_render_response(report, rendered, source)), 200


@views.route('/api/sessions/<session_id>/messages', methods=['GET'])
def get_session_messages(session_id):
    """Persisted transcript for a session, ordered and de-duplicated, with per-message views"""
    try:
        rows = _service('chat_history').load_history(session_id)
    except Exception as e:
        logger.error(f"[CHAT_HISTORY] Failed to load session {session_id}: {e}", exc_info=True)
        return jsonify(APIResponseFormatter.format_error_response(
            f'Failed to load chat history: {e}', 'HISTORY_LOAD_FAILED',
            details={'session_id': session_id},
            retryable=True
        )), 502

    state = replace_history(ChatMessage.from_row(row) for row in rows if isinstance(row, dict))
    messages = []
    for message in state.messages:
        item = message.to_dict()
        item['view'] = render_message_content(message.content, message.metadata).to_dict()
        messages.append(item)

    return jsonify(APIResponseFormatter.format_list_response(
        messages, 'messages', metadata={'session_id': session_id}
    )), 200
