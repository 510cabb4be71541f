from flask import Flask, jsonify
from dotenv import load_dotenv
import logging
from flask_cors import CORS
from .config import Config

logger = logging.getLogger(__name__)


def create_app(report_content_service=None, chat_history_service=None):
    load_dotenv() # Load environment variables from .env file

    app = Flask(__name__)
    app.config.from_object(Config)
    app.json.sort_keys = False

    # Enable CORS for the frontend
    CORS(app,
         resources={r"/api/*": {"origins": Config.CORS_ORIGINS}},
         supports_credentials=True,
         methods=['GET', 'POST', 'OPTIONS'],
         allow_headers=['Content-Type', 'Authorization'])

    # Services are lazy about their Supabase client, so nothing connects here
    from .services.report_content_service import ReportContentService
    from .services.chat_history_service import ChatHistoryService
    app.extensions['planchat'] = {
        'report_content': report_content_service or ReportContentService(),
        'chat_history': chat_history_service or ChatHistoryService(),
    }

    from .views import views
    app.register_blueprint(views, url_prefix='/')

    @app.errorhandler(500)
    def handle_500_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Internal server error',
            'error_code': 'INTERNAL_ERROR',
        }), 500

    return app
